"""
Manus Research CLI - command-line interface for the Manus research tool.

Provides subcommands for:
- manus-research research   - Run one research task and print the result
- manus-research config     - Show or change configuration
- manus-research doctor     - Check configuration and dependencies
- manus-research version    - Show version
"""

__version__ = "0.1.0"
