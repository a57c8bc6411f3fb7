"""
Doctor command for the manus-research CLI.

Diagnoses issues with the Manus research setup.
"""

import sys

from manus_cli.config import (
    API_KEY_ENV,
    Colors,
    color,
    get_config_path,
    get_env_path,
    get_env_value,
    get_manus_home,
    load_config,
    redact_key,
)


def check_ok(text: str, detail: str = ""):
    print(f"  {color('✓', Colors.GREEN)} {text}" + (f" {color(detail, Colors.DIM)}" if detail else ""))

def check_warn(text: str, detail: str = ""):
    print(f"  {color('⚠', Colors.YELLOW)} {text}" + (f" {color(detail, Colors.DIM)}" if detail else ""))

def check_fail(text: str, detail: str = ""):
    print(f"  {color('✗', Colors.RED)} {text}" + (f" {color(detail, Colors.DIM)}" if detail else ""))

def check_info(text: str):
    print(f"    {color('→', Colors.CYAN)} {text}")


def run_doctor(args):
    """Run diagnostic checks. Returns the list of issues found."""
    issues = []

    print()
    print(color("◆ Python Environment", Colors.CYAN, Colors.BOLD))

    py_version = sys.version_info
    version_str = f"Python {py_version.major}.{py_version.minor}.{py_version.micro}"
    if py_version >= (3, 9):
        check_ok(version_str)
    else:
        check_fail(version_str, "(3.9+ required)")
        issues.append("Upgrade Python to 3.9+")

    # =========================================================================
    # Check: Required packages
    # =========================================================================
    print()
    print(color("◆ Required Packages", Colors.CYAN, Colors.BOLD))

    # (import name, display name, distribution name)
    required_packages = [
        ("aiohttp", "aiohttp", "aiohttp"),
        ("yaml", "PyYAML", "PyYAML"),
        ("dotenv", "python-dotenv", "python-dotenv"),
        ("fire", "python-fire (batch runner)", "fire"),
    ]

    for module, name, distribution in required_packages:
        try:
            __import__(module)
            check_ok(name)
        except ImportError:
            check_fail(name, "(missing)")
            issues.append(f"Install {name}: pip install {distribution}")

    # =========================================================================
    # Check: Configuration files
    # =========================================================================
    print()
    print(color("◆ Configuration Files", Colors.CYAN, Colors.BOLD))

    if get_manus_home().exists():
        check_ok(f"{get_manus_home()} exists")
    else:
        check_warn(f"{get_manus_home()} not found", "(created on first 'config set')")

    if get_config_path().exists():
        check_ok("config.yaml exists")
    else:
        check_warn("config.yaml not found", "(using defaults)")

    if get_env_path().exists():
        check_ok(".env file exists")
    else:
        check_info(f"No .env at {get_env_path()}")

    # =========================================================================
    # Check: Credentials
    # =========================================================================
    print()
    print(color("◆ Credentials", Colors.CYAN, Colors.BOLD))

    credentials = load_config().get("credentials", {})
    env_key = get_env_value(API_KEY_ENV)
    if env_key:
        check_ok(API_KEY_ENV, f"({redact_key(env_key)})")
    else:
        check_info(f"{API_KEY_ENV} not set")

    from tools.credentials import (
        DEFAULT_AUTH_PROFILES_PATH,
        AuthProfileStore,
        get_credential_name,
        resolve_manus_api_key,
    )

    store = AuthProfileStore(credentials.get("auth_profiles_path") or DEFAULT_AUTH_PROFILES_PATH)
    profile_name = get_credential_name()
    if store.path.exists():
        try:
            store.read_profiles()
        except (OSError, ValueError) as e:
            check_fail(f"Could not read {store.path}", f"({e})")
            issues.append(f"Fix or remove the malformed auth profiles file {store.path}")
        else:
            profile_key = store.lookup_credential(profile_name)
            if profile_key:
                check_ok(f"{profile_name} in {store.path}", f"({redact_key(profile_key)})")
            else:
                check_info(f"{profile_name} not found in {store.path}")
    else:
        check_info(f"No auth profiles file at {store.path}")

    if resolve_manus_api_key():
        check_ok("Manus API key resolved")
    else:
        check_fail("No Manus API key available")
        issues.append(f"Run 'manus-research config set {API_KEY_ENV} <key>' "
                      "(get key from https://manus.im/app?show_settings=integrations&app_name=api)")

    # =========================================================================
    # Summary
    # =========================================================================
    print()
    if issues:
        print(color("─" * 60, Colors.YELLOW))
        print(color(f"  Found {len(issues)} issue(s) to address:", Colors.YELLOW, Colors.BOLD))
        print()
        for i, issue in enumerate(issues, 1):
            print(f"  {i}. {issue}")
    else:
        print(color("─" * 60, Colors.GREEN))
        print(color("  All checks passed!", Colors.GREEN, Colors.BOLD))

    print()
    return issues
