#!/usr/bin/env python3
"""
Manus Research CLI - Main entry point.

Usage:
    manus-research research "PROMPT"          # Run one research task
    manus-research research "PROMPT" --json   # Print the raw tool payload
    manus-research config                     # Show configuration
    manus-research config set KEY VALUE       # Set a config value or API key
    manus-research doctor                     # Check configuration and dependencies
    manus-research version                    # Show version
"""

import argparse
import json
import logging
import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent.resolve()
sys.path.insert(0, str(PROJECT_ROOT))

# Load .env files (~/.manus-research/.env first, project .env as fallback)
from dotenv import load_dotenv
from manus_cli.config import get_env_path, load_config
if get_env_path().exists():
    load_dotenv(dotenv_path=get_env_path())
load_dotenv(dotenv_path=PROJECT_ROOT / '.env', override=False)

from manus_cli import __version__


def _setup_logging(verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def cmd_research(args):
    """Run a single Manus research task and print the result."""
    from model_tools import handle_function_call

    _setup_logging(args.verbose)
    config = load_config()

    function_args = {
        "prompt": args.prompt,
        "agent_profile": args.profile or config.get("agent_profile"),
        "max_wait_minutes": args.max_wait if args.max_wait is not None else config.get("max_wait_minutes"),
    }
    result = json.loads(handle_function_call("manus_research", function_args))

    if args.json:
        print(json.dumps(result, indent=2, ensure_ascii=False))
    elif "error" in result:
        print(f"✗ {result['error']}", file=sys.stderr)
    else:
        for block in result.get("content", []):
            print(block.get("text", ""))
        details = result.get("details", {})
        print()
        print(f"Task:    {details.get('task_url')}")
        if details.get("share_url"):
            print(f"Share:   {details['share_url']}")
        print(f"Status:  {details.get('status')}")
        if details.get("credit_usage"):
            print(f"Credits: {details['credit_usage']}")

    if "error" in result:
        sys.exit(1)


def cmd_doctor(args):
    """Check configuration and dependencies."""
    from manus_cli.doctor import run_doctor
    run_doctor(args)


def cmd_config(args):
    """Configuration management."""
    from manus_cli.config import config_command
    config_command(args)


def cmd_version(args):
    """Show version."""
    print(f"Manus Research v{__version__}")
    print(f"Project: {PROJECT_ROOT}")
    print(f"Python: {sys.version.split()[0]}")

    try:
        import aiohttp
        print(f"aiohttp: {aiohttp.__version__}")
    except ImportError:
        print("aiohttp: Not installed")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="manus-research",
        description="Delegate deep research tasks to the Manus agent",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    manus-research research "Map the EU heat pump market"
    manus-research research "..." --profile manus-1.6-max --max-wait 10
    manus-research config set MANUS_API_KEY sk-...
    manus-research doctor

For more help on a command:
    manus-research <command> --help
"""
    )
    parser.add_argument(
        "--version", "-V",
        action="store_true",
        help="Show version and exit"
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # =========================================================================
    # research command
    # =========================================================================
    research_parser = subparsers.add_parser(
        "research",
        help="Run a research task",
        description="Create a Manus task, wait for it and print the result"
    )
    research_parser.add_argument("prompt", help="The research task or question")
    research_parser.add_argument(
        "-p", "--profile",
        choices=["manus-1.6", "manus-1.6-lite", "manus-1.6-max"],
        help="Agent profile (default from config)"
    )
    research_parser.add_argument(
        "-w", "--max-wait",
        type=float,
        help="Maximum minutes to wait (capped at 10)"
    )
    research_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the raw tool payload as JSON"
    )
    research_parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output"
    )
    research_parser.set_defaults(func=cmd_research)

    # =========================================================================
    # doctor command
    # =========================================================================
    doctor_parser = subparsers.add_parser(
        "doctor",
        help="Check configuration and dependencies",
        description="Diagnose issues with the Manus research setup"
    )
    doctor_parser.set_defaults(func=cmd_doctor)

    # =========================================================================
    # config command
    # =========================================================================
    config_parser = subparsers.add_parser(
        "config",
        help="View and edit configuration",
        description="Manage Manus research configuration"
    )
    config_subparsers = config_parser.add_subparsers(dest="config_command")

    config_subparsers.add_parser("show", help="Show current configuration")

    config_set = config_subparsers.add_parser("set", help="Set a configuration value")
    config_set.add_argument("key", nargs="?", help="Configuration key (e.g., agent_profile, credentials.name)")
    config_set.add_argument("value", nargs="?", help="Value to set")

    config_subparsers.add_parser("path", help="Print config file path")
    config_subparsers.add_parser("env-path", help="Print .env file path")

    config_parser.set_defaults(func=cmd_config)

    # =========================================================================
    # version command
    # =========================================================================
    version_parser = subparsers.add_parser(
        "version",
        help="Show version information"
    )
    version_parser.set_defaults(func=cmd_version)

    return parser


def main(argv=None):
    """Main entry point for the manus-research CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # Handle --version flag
    if args.version:
        cmd_version(args)
        return

    if hasattr(args, 'func'):
        args.func(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
