"""
OAuth 1.0 request signing for the FatSecret API.

FatSecret authenticates every REST call with an HMAC-SHA1 signature over a
canonical "signature base string". All encoding goes through
encoding.percent_encode.
"""
import base64
import hashlib
import hmac
import secrets
import time
from typing import Dict, Optional

from encoding import percent_encode


SIGNATURE_METHOD = 'HMAC-SHA1'
OAUTH_VERSION = '1.0'


def signature_base_string(method: str, url: str, params: Dict[str, str]) -> str:
    """
    Build the OAuth signature base string.

    Each key and value is percent-encoded and joined with '=', the pairs
    are sorted by encoded key and joined with '&', and that parameter
    string is then percent-encoded again as a whole. The result is
    METHOD&encoded-url&encoded-parameter-string.

    Args:
        method: HTTP method (case-insensitive)
        url: Request URL without query string
        params: Every parameter to sign, except oauth_signature

    Returns:
        The base string
    """
    pairs = sorted(
        (percent_encode(key), percent_encode(value))
        for key, value in params.items()
    )
    param_string = '&'.join(f"{key}={value}" for key, value in pairs)

    return '&'.join([
        method.upper(),
        percent_encode(url),
        percent_encode(param_string),
    ])


def signing_key(consumer_secret: str, token_secret: Optional[str] = '') -> str:
    """Build the HMAC key: encoded consumer secret '&' encoded token secret."""
    return f"{percent_encode(consumer_secret or '')}&{percent_encode(token_secret or '')}"


def generate_signature(method: str, url: str, params: Dict[str, str],
                       consumer_secret: str, token_secret: Optional[str] = '') -> str:
    """
    Generate the HMAC-SHA1 OAuth signature for a request.

    Args:
        method: HTTP method
        url: Request URL without query string
        params: Every parameter to sign, except oauth_signature
        consumer_secret: Application (consumer) secret
        token_secret: Delegated token secret, empty for unauthenticated calls

    Returns:
        Base64 encoded signature
    """
    base_string = signature_base_string(method, url, params)
    key = signing_key(consumer_secret, token_secret)

    mac = hmac.new(key.encode('utf-8'), base_string.encode('utf-8'), hashlib.sha1)
    return base64.b64encode(mac.digest()).decode()


def generate_nonce() -> str:
    """Return 16 random bytes as 32 lowercase hex characters."""
    return secrets.token_hex(16)


def generate_timestamp() -> str:
    """Return whole seconds since the Unix epoch as a string."""
    return str(int(time.time()))


def build_oauth_params(consumer_key: str, token: Optional[str] = None) -> Dict[str, str]:
    """
    Build the standard OAuth parameter set for one request.

    A fresh nonce and timestamp are generated on every call. oauth_token is
    only included when a non-empty token is given.
    """
    params = {
        'oauth_consumer_key': consumer_key,
        'oauth_nonce': generate_nonce(),
        'oauth_signature_method': SIGNATURE_METHOD,
        'oauth_timestamp': generate_timestamp(),
        'oauth_version': OAUTH_VERSION,
    }

    if token:
        params['oauth_token'] = token

    return params
