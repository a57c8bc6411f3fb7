"""Credential lookup for the Manus research tool.

The tool only ever needs one thing from a credential store: the API key for a
named profile, or nothing. Backends implement that single method:

- EnvCredentialLookup: MANUS_API_KEY from the environment or ~/.manus-research/.env
- AuthProfileStore: the host agent's auth-profiles.json ({"profiles": {name: {"key": ...}}})
- ChainedCredentialLookup: first backend that answers wins
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Protocol, Union

from manus_cli.config import API_KEY_ENV, get_env_value, load_config

logger = logging.getLogger(__name__)

DEFAULT_CREDENTIAL_NAME = "manus:default"
DEFAULT_AUTH_PROFILES_PATH = "~/.clawdbot/agents/main/agent/auth-profiles.json"


class CredentialLookup(Protocol):
    def lookup_credential(self, name: str) -> Optional[str]:
        """Return the key stored under name, or None if there isn't one."""
        ...


class EnvCredentialLookup:
    """Reads the key from an environment variable regardless of the profile name."""

    def __init__(self, env_var: str = API_KEY_ENV):
        self.env_var = env_var

    def lookup_credential(self, name: str) -> Optional[str]:
        return get_env_value(self.env_var)


class AuthProfileStore:
    """
    Reads keys from an auth-profiles.json file.

    A missing file means no credential. A file that cannot be read or parsed
    is logged and also treated as no credential.
    """

    def __init__(self, path: Union[str, Path] = DEFAULT_AUTH_PROFILES_PATH):
        self.path = Path(path).expanduser()

    def read_profiles(self) -> Dict[str, Any]:
        """
        Parse the file and return its "profiles" mapping.

        Raises OSError or ValueError when the file cannot be read or parsed.
        """
        with open(self.path, encoding="utf-8") as f:
            data = json.load(f)
        profiles = data.get("profiles") if isinstance(data, dict) else None
        return profiles if isinstance(profiles, dict) else {}

    def lookup_credential(self, name: str) -> Optional[str]:
        if not self.path.exists():
            return None

        try:
            profiles = self.read_profiles()
        except (OSError, ValueError) as e:
            logger.error("Failed to read Manus auth profile from %s: %s", self.path, e)
            return None

        profile = profiles.get(name)
        if not isinstance(profile, dict):
            return None

        key = profile.get("key")
        return key if isinstance(key, str) and key else None


class ChainedCredentialLookup:
    def __init__(self, lookups: Iterable[CredentialLookup]):
        self.lookups = list(lookups)

    def lookup_credential(self, name: str) -> Optional[str]:
        for lookup in self.lookups:
            key = lookup.lookup_credential(name)
            if key:
                return key
        return None


def default_credential_lookup() -> ChainedCredentialLookup:
    """Environment first, then the configured auth-profiles.json."""
    credentials = load_config().get("credentials", {})
    return ChainedCredentialLookup([
        EnvCredentialLookup(),
        AuthProfileStore(credentials.get("auth_profiles_path") or DEFAULT_AUTH_PROFILES_PATH),
    ])


def get_credential_name() -> str:
    return load_config().get("credentials", {}).get("name") or DEFAULT_CREDENTIAL_NAME


def resolve_manus_api_key(lookup: Optional[CredentialLookup] = None) -> Optional[str]:
    """Resolve the Manus API key once, using the default chain unless one is given."""
    lookup = lookup or default_credential_lookup()
    return lookup.lookup_credential(get_credential_name())
