"""
Credential helpers for the FatSecret client.

Provides a single place to load a .env file, find FatSecret credentials,
and persist the OAuth tokens obtained by the console between runs.

Precedence when looking up a value:

1. Explicit environment variables (e.g., CLIENT_ID)
2. FATSECRET_-prefixed environment variables (e.g., FATSECRET_CLIENT_ID)
3. Variables loaded from a .env file (never overriding 1. or 2.)
4. The JSON config file written by the console (~/.fatsecret-config.json)

Functions:
- load_env(env_file='.env') -> loads .env into os.environ if not present
- get_env_var(name) -> checks name and the FATSECRET_ prefixed variant
- load_config(path) / save_config(credentials, path) -> JSON persistence
- find_fatsecret_credentials(env_file, config_path) -> Credentials
"""
from __future__ import annotations

import json
import os
import sys
from dataclasses import dataclass
from typing import Dict, Optional


DEFAULT_CONFIG_PATH = os.path.join(os.path.expanduser('~'), '.fatsecret-config.json')

# Credentials field -> (environment variable, config file key)
_FIELDS = {
    'client_id': ('CLIENT_ID', 'clientId'),
    'client_secret': ('CLIENT_SECRET', 'clientSecret'),
    'access_token': ('ACCESS_TOKEN', 'accessToken'),
    'access_token_secret': ('ACCESS_TOKEN_SECRET', 'accessTokenSecret'),
    'user_id': ('USER_ID', 'userId'),
}


@dataclass(frozen=True)
class Credentials:
    """Consumer credentials plus the optional delegated (user) token."""
    client_id: str = ''
    client_secret: str = ''
    access_token: Optional[str] = None
    access_token_secret: Optional[str] = None
    user_id: Optional[str] = None

    def has_consumer_credentials(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def has_access_token(self) -> bool:
        return bool(self.access_token and self.access_token_secret)

    def to_config(self) -> Dict[str, str]:
        """Return the config-file representation, omitting empty fields."""
        config = {}
        for field, (_, key) in _FIELDS.items():
            value = getattr(self, field)
            if value:
                config[key] = value
        return config

    @classmethod
    def from_config(cls, config: Dict[str, str]) -> 'Credentials':
        values = {}
        for field, (_, key) in _FIELDS.items():
            if config.get(key):
                values[field] = config[key]
        return cls(**values)

    def __repr__(self):
        # Secrets and tokens stay out of reprs and tracebacks
        return (f"Credentials(client_id={self.client_id!r}, "
                f"has_access_token={self.has_access_token()}, user_id={self.user_id!r})")


def load_env(env_file: str = '.env') -> None:
    """Load KEY=VALUE pairs from a .env file into os.environ when missing.

    Existing environment variables are not overridden.
    """
    if not os.path.exists(env_file):
        return

    try:
        with open(env_file, 'r') as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith('#'):
                    continue
                if '=' not in line:
                    continue
                key, val = line.split('=', 1)
                key = key.strip()
                val = val.strip()
                if (val.startswith('"') and val.endswith('"')) or (val.startswith("'") and val.endswith("'")):
                    val = val[1:-1]
                if key not in os.environ:
                    os.environ[key] = val
    except OSError as e:
        print(f"Warning: failed to load env file {env_file}: {e}", file=sys.stderr)


def get_env_var(name: str) -> Optional[str]:
    """Get an environment variable, falling back to the FATSECRET_ prefixed name."""
    val = os.environ.get(name)
    if val:
        return val

    val = os.environ.get(f"FATSECRET_{name}")
    if val:
        return val

    return None


def load_config(path: str = DEFAULT_CONFIG_PATH) -> Dict[str, str]:
    """Read the saved config file.

    Returns an empty dict when the file does not exist.

    Raises:
        ValueError: If the file is not a JSON object
    """
    if not os.path.exists(path):
        return {}

    with open(path, 'r') as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Config file {path} is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a JSON object")
    return data


def save_config(credentials: Credentials, path: str = DEFAULT_CONFIG_PATH) -> None:
    """Write credentials to the config file, readable by the owner only."""
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, 'w') as f:
        json.dump(credentials.to_config(), f, indent=2)


def find_fatsecret_credentials(env_file: str = '.env',
                               config_path: str = DEFAULT_CONFIG_PATH) -> Credentials:
    """Find FatSecret credentials.

    Environment values win over the config file, field by field.

    Returns: Credentials (fields left empty when not found anywhere)
    """
    # Ensure .env is loaded (but do not override existing env vars)
    load_env(env_file)
    saved = Credentials.from_config(load_config(config_path))

    values = {}
    for field, (env_name, _) in _FIELDS.items():
        value = get_env_var(env_name) or getattr(saved, field)
        if value:
            values[field] = value

    return Credentials(**values)
