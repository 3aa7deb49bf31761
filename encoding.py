"""
Encoding helpers for FatSecret OAuth requests.

Provides the RFC 3986 percent-encoder that every signed request is built
on, the parameter-string encoder used for query strings and POST bodies,
the parser for form-encoded token replies, and the date conversion the
diary/weight endpoints expect.
"""
import urllib.parse
from datetime import date, datetime, timezone
from typing import Dict, Optional


# RFC 3986 unreserved characters. urllib.parse.quote always keeps
# A-Za-z0-9 and '_.-~', so nothing else may be listed here.
_SAFE_CHARS = ''

EPOCH = date(1970, 1, 1)


def percent_encode(value) -> str:
    """
    Percent-encode a value per RFC 3986.

    Only A-Z, a-z, 0-9 and '-', '_', '.', '~' are left as-is. Every other
    byte of the UTF-8 encoding becomes %XX with uppercase hex digits, and
    a space becomes %20 (never '+').

    Args:
        value: String to encode (non-strings are converted with str())

    Returns:
        Encoded string
    """
    if not isinstance(value, str):
        value = str(value)
    return urllib.parse.quote(value.encode('utf-8'), safe=_SAFE_CHARS)


def encode_params(params: Dict[str, str]) -> str:
    """
    Encode parameters for a URL query string or form body.

    Pairs keep the order of the dictionary; the signature base string
    does its own sorting.
    """
    return '&'.join(
        f"{percent_encode(key)}={percent_encode(value)}"
        for key, value in params.items()
    )


def parse_form_reply(text: str) -> Dict[str, str]:
    """
    Parse a 'key=value&key=value' reply body into a dictionary.

    Used for the OAuth token endpoints, which do not answer in JSON.
    Keys and values are URL-decoded ('+' decodes to a space) and blank
    values are kept. When a key repeats, the last value wins.
    """
    return dict(urllib.parse.parse_qsl(text or '', keep_blank_values=True))


def date_to_days(date_string: Optional[str] = None) -> str:
    """
    Convert a YYYY-MM-DD date to FatSecret's date format.

    FatSecret identifies days by the number of days since 1970-01-01.

    Args:
        date_string: Date in YYYY-MM-DD format, or None for today (UTC)

    Returns:
        Days since the epoch as a string

    Raises:
        ValueError: If date_string is not a valid YYYY-MM-DD date
    """
    if date_string:
        try:
            day = datetime.strptime(date_string, '%Y-%m-%d').date()
        except ValueError as e:
            raise ValueError(f"Invalid date '{date_string}', expected YYYY-MM-DD") from e
    else:
        day = datetime.now(timezone.utc).date()
    return str((day - EPOCH).days)
