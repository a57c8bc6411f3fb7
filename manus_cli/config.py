"""
Configuration management for the Manus research tool.

Config files are stored in ~/.manus-research/ for easy access:
- ~/.manus-research/config.yaml  - Settings (API base, defaults, credential source)
- ~/.manus-research/.env         - API keys and secrets

This module provides:
- manus-research config          - Show current configuration
- manus-research config set      - Set a specific value
- manus-research config path     - Print the config file path
- manus-research config env-path - Print the .env file path
"""

import copy
import logging
import os
import sys
from pathlib import Path
from typing import Dict, Any, Optional

import yaml

logger = logging.getLogger(__name__)

# ANSI colors
class Colors:
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    CYAN = "\033[36m"

def color(text: str, *codes) -> str:
    if not sys.stdout.isatty():
        return text
    return "".join(codes) + text + Colors.RESET


# =============================================================================
# Config paths
# =============================================================================

def get_manus_home() -> Path:
    """Get the tool's home directory (~/.manus-research)."""
    return Path(os.getenv("MANUS_RESEARCH_HOME", Path.home() / ".manus-research"))

def get_config_path() -> Path:
    """Get the main config file path."""
    return get_manus_home() / "config.yaml"

def get_env_path() -> Path:
    """Get the .env file path (for API keys)."""
    return get_manus_home() / ".env"

def get_project_root() -> Path:
    """Get the project installation directory."""
    return Path(__file__).parent.parent.resolve()

def ensure_manus_home():
    """Ensure ~/.manus-research exists."""
    get_manus_home().mkdir(parents=True, exist_ok=True)


# =============================================================================
# Config loading/saving
# =============================================================================

API_KEY_ENV = "MANUS_API_KEY"

DEFAULT_CONFIG = {
    "api_base": "https://api.manus.ai/v1",
    "request_timeout": 30,

    # Defaults for the CLI research command
    "agent_profile": "manus-1.6",
    "max_wait_minutes": 10,

    "credentials": {
        "name": "manus:default",
        "auth_profiles_path": "~/.clawdbot/agents/main/agent/auth-profiles.json",
    },
}

# Keys that belong in .env rather than config.yaml
SECRET_KEYS = [API_KEY_ENV]


def load_config() -> Dict[str, Any]:
    """Load configuration from ~/.manus-research/config.yaml over the defaults."""
    config_path = get_config_path()

    config = copy.deepcopy(DEFAULT_CONFIG)

    if config_path.exists():
        try:
            with open(config_path) as f:
                user_config = yaml.safe_load(f) or {}

            # Deep merge
            for key, value in user_config.items():
                if isinstance(value, dict) and key in config and isinstance(config[key], dict):
                    config[key].update(value)
                else:
                    config[key] = value
        except (OSError, yaml.YAMLError) as e:
            logger.warning("Failed to load config %s: %s", config_path, e)

    return config


def save_config(config: Dict[str, Any]):
    """Save configuration to ~/.manus-research/config.yaml."""
    ensure_manus_home()
    config_path = get_config_path()

    with open(config_path, 'w') as f:
        yaml.dump(config, f, default_flow_style=False, sort_keys=False)


def load_env() -> Dict[str, str]:
    """Load variables from ~/.manus-research/.env without touching os.environ."""
    from dotenv import dotenv_values

    env_path = get_env_path()
    if not env_path.exists():
        return {}
    return {k: v for k, v in dotenv_values(env_path).items() if v is not None}


def save_env_value(key: str, value: str):
    """Save or update a value in ~/.manus-research/.env."""
    from dotenv import set_key

    ensure_manus_home()
    env_path = get_env_path()
    env_path.touch(exist_ok=True)
    set_key(str(env_path), key, value, quote_mode="never")


def get_env_value(key: str) -> Optional[str]:
    """Get a value from the environment, falling back to ~/.manus-research/.env."""
    # Check environment first
    if os.environ.get(key):
        return os.environ[key]

    # Then check .env file
    return load_env().get(key) or None


# =============================================================================
# Config display
# =============================================================================

def redact_key(key: Optional[str]) -> str:
    """Redact an API key for display."""
    if not key:
        return color("(not set)", Colors.DIM)
    if len(key) < 12:
        return "***"
    return key[:4] + "..." + key[-4:]


def show_config():
    """Display current configuration."""
    config = load_config()
    credentials = config.get("credentials", {})

    print()
    print(color("◆ Paths", Colors.CYAN, Colors.BOLD))
    print(f"  Config:        {get_config_path()}")
    print(f"  Secrets:       {get_env_path()}")
    print(f"  Install:       {get_project_root()}")

    print()
    print(color("◆ Manus API", Colors.CYAN, Colors.BOLD))
    print(f"  Base URL:      {config.get('api_base')}")
    print(f"  Timeout:       {config.get('request_timeout')}s per request")
    print(f"  {API_KEY_ENV}: {redact_key(get_env_value(API_KEY_ENV))}")

    print()
    print(color("◆ Credentials", Colors.CYAN, Colors.BOLD))
    print(f"  Profile name:  {credentials.get('name')}")
    print(f"  Auth profiles: {credentials.get('auth_profiles_path')}")

    print()
    print(color("◆ Research defaults", Colors.CYAN, Colors.BOLD))
    print(f"  Agent profile: {config.get('agent_profile')}")
    print(f"  Max wait:      {config.get('max_wait_minutes')} min")

    print()
    print(color("─" * 60, Colors.DIM))
    print(color("  manus-research config set KEY VALUE", Colors.DIM))
    print(color("  manus-research doctor", Colors.DIM))
    print()


def _coerce_value(value: str) -> Any:
    if value.lower() in ('true', 'yes', 'on'):
        return True
    if value.lower() in ('false', 'no', 'off'):
        return False
    if value.isdigit():
        return int(value)
    if value.replace('.', '', 1).isdigit():
        return float(value)
    return value


def set_config_value(key: str, value: str):
    """Set a configuration value."""
    # API keys go to .env
    if key.upper() in SECRET_KEYS:
        save_env_value(key.upper(), value)
        print(f"✓ Set {key.upper()} in {get_env_path()}")
        return

    config = load_config()

    # Handle nested keys (e.g., "credentials.name")
    parts = key.split('.')
    current = config

    for part in parts[:-1]:
        if not isinstance(current.get(part), dict):
            current[part] = {}
        current = current[part]

    current[parts[-1]] = _coerce_value(value)
    save_config(config)
    print(f"✓ Set {key} = {current[parts[-1]]} in {get_config_path()}")


# =============================================================================
# Command handler
# =============================================================================

def config_command(args):
    """Handle config subcommands."""
    subcmd = getattr(args, 'config_command', None)

    if subcmd is None or subcmd == "show":
        show_config()

    elif subcmd == "set":
        key = getattr(args, 'key', None)
        value = getattr(args, 'value', None)
        if not key or value is None:
            print("Usage: manus-research config set KEY VALUE")
            print()
            print("Examples:")
            print("  manus-research config set agent_profile manus-1.6-max")
            print("  manus-research config set credentials.name manus:work")
            print("  manus-research config set MANUS_API_KEY sk-...")
            sys.exit(1)
        set_config_value(key, value)

    elif subcmd == "path":
        print(get_config_path())

    elif subcmd == "env-path":
        print(get_env_path())

    else:
        print(f"Unknown config command: {subcmd}")
        sys.exit(1)
