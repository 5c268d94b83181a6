"""
Command-Line Interface - Argument Parsing and Entry Point

This module provides the command-line interface for the headless strike
monitor. It handles:
- Command-line argument parsing
- Argument validation
- Settings loading and overrides
- Logging setup

Usage:
    python -m py2blitz
    python -m py2blitz --server 2 --duration 60
    python -m py2blitz --url ws://127.0.0.1:8765 --log-level DEBUG
"""

import sys
import argparse
import logging
from typing import List, Optional

from py2blitz.application import BlitzApplication
from py2blitz.core.errors import ConfigurationError
from py2blitz.models.settings import load_settings


def parse_args(args: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        args: List of arguments to parse. If None, uses sys.argv[1:]

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        prog="py2blitz",
        description="Live Blitzortung lightning strike monitor",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s
  %(prog)s --server 1 --max-strikes 500
  %(prog)s --config blitz.yaml --duration 120
        """
    )

    target = parser.add_mutually_exclusive_group()
    target.add_argument(
        "--server",
        type=int,
        default=None,
        help="Index of the configured server to use (default: 0)"
    )
    target.add_argument(
        "--url",
        type=str,
        default=None,
        help="Connect to this WebSocket URL instead of a configured server"
    )

    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="YAML settings file"
    )

    parser.add_argument(
        "--max-strikes",
        type=int,
        default=None,
        help="Number of recent strikes kept in memory"
    )

    parser.add_argument(
        "--duration",
        type=float,
        default=None,
        help="Seconds to run before exiting (default: until Ctrl+C)"
    )

    parser.add_argument(
        "--log-level",
        type=str,
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set logging level (default: WARNING)"
    )

    return parser.parse_args(args)


def validate_args(args: argparse.Namespace) -> bool:
    """Validate parsed command-line arguments.

    Returns:
        True if arguments are valid, False otherwise
    """
    if args.url is not None and not args.url.startswith(("ws://", "wss://")):
        print(f"Error: URL must start with ws:// or wss://, got {args.url}")
        return False

    if args.duration is not None and args.duration <= 0:
        print(f"Error: Duration must be positive, got {args.duration}")
        return False

    return True


def setup_logging(level: str):
    """Configure application logging.

    Args:
        level: Logging level as string (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    numeric_level = getattr(logging, level.upper(), None)

    logging.basicConfig(
        level=numeric_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def main(args: Optional[List[str]] = None) -> int:
    """Main entry point for the application.

    Args:
        args: Command-line arguments. If None, uses sys.argv[1:]

    Returns:
        Exit code (0 = success, 1 = error)
    """
    parsed_args = parse_args(args)
    setup_logging(parsed_args.log_level)

    logger = logging.getLogger(__name__)

    if not validate_args(parsed_args):
        return 1

    try:
        settings = load_settings(parsed_args.config).with_overrides(
            server_index=parsed_args.server,
            max_strikes=parsed_args.max_strikes
        )
    except ConfigurationError as e:
        logger.debug(e.format_log_message())
        print(f"Error: {e.format_user_message()}")
        return 1

    logger.info(f"Starting strike monitor ({parsed_args.url or settings.url})")

    try:
        app = BlitzApplication(
            settings=settings,
            url=parsed_args.url,
            duration=parsed_args.duration
        )
        exit_code = app.run()
        logger.info(f"Application exited with code {exit_code}")
        return exit_code

    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        print(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
