"""
CLI Main Entry Point

SightSpeak command-line interface main module.
"""

import sys

from ..diagnostics import enable_diagnostics
from .handlers import (
    handle_config,
    handle_describe,
    handle_detect,
    handle_live,
    handle_tts,
)
from .parser import create_parser, parse_args


def run_cli(args=None) -> int:
    """
    Run the CLI with given arguments.

    Args:
        args: Command line arguments (default: sys.argv[1:])

    Returns:
        Exit code (0 = success)
    """
    parsed = parse_args(args)

    handlers = {
        "live": handle_live,
        "describe": handle_describe,
        "detect": handle_detect,
        "config": handle_config,
        "tts": handle_tts,
    }

    command = parsed.command

    if not command:
        parser = create_parser()
        parser.print_help()
        return 0

    enable_diagnostics(level="DEBUG" if parsed.verbose else None)

    handler = handlers.get(command)
    if handler:
        return handler(parsed)
    else:
        print(f"Unknown command: {command}")
        return 1


def main():
    """Main entry point."""
    try:
        sys.exit(run_cli())
    except KeyboardInterrupt:
        print("\n🛑 Interrupted")
        sys.exit(130)


if __name__ == "__main__":
    main()
