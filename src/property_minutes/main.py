"""Command line entry point for the property minutes generator."""

import argparse
import asyncio
import locale
import sys
from datetime import date
from pathlib import Path
from typing import List, Optional

from . import __version__
from .core.application import MinutesApplication
from .core.config_manager import ConfigManager
from .core.models import Location, MinutesResult
from .utils.exceptions import MinutesError
from .utils.logging_config import get_logger, setup_logging


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="property-minutes",
        description="Generate property-review meeting minutes from Gmail with Gemini",
    )

    parser.add_argument(
        "--config-dir",
        type=str,
        help="Configuration directory (default: ~/.property_minutes)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: app.log_level setting)",
    )
    parser.add_argument("--log-file", type=str, help="Log file path")
    parser.add_argument("--debug", action="store_true", help="Enable debug mode")
    parser.add_argument(
        "--version", action="version", version=f"property-minutes {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    auth_parser = subparsers.add_parser("auth", help="Link a Google account")
    auth_parser.add_argument("--code", help="Authorization code from the consent page")

    subparsers.add_parser("auth-status", help="Check the stored Google authorization")
    subparsers.add_parser("auth-clear", help="Remove the stored Google authorization")
    subparsers.add_parser("labels", help="List user Gmail labels")

    folders_parser = subparsers.add_parser("folders", help="Browse Google Drive folders")
    folders_parser.add_argument("--parent", help="Parent folder id (default: My Drive)")

    generate_parser = subparsers.add_parser("generate", help="Generate meeting minutes")
    generate_parser.add_argument(
        "--date", type=date.fromisoformat, default=date.today(), help="Meeting date (YYYY-MM-DD)"
    )
    generate_parser.add_argument("--start", help="Start time (HH:MM)")
    generate_parser.add_argument("--end", help="End time (HH:MM)")
    generate_parser.add_argument(
        "--location", choices=[location.value for location in Location]
    )
    generate_parser.add_argument(
        "--participants", help="Comma-separated participant keys (default: all)"
    )
    generate_parser.add_argument(
        "--mail-from", type=date.fromisoformat, help="First day of the mail window"
    )
    generate_parser.add_argument(
        "--mail-to", type=date.fromisoformat, help="Day the mail window stops before"
    )

    return parser.parse_args(argv)


def initialize_logging(args: argparse.Namespace, config_manager: ConfigManager):
    """Initialize logging system."""
    app_settings = config_manager.get_config().app

    if args.debug:
        log_level = "DEBUG"
    else:
        log_level = args.log_level or app_settings.log_level

    log_file = args.log_file or app_settings.log_file or None

    setup_logging(level=log_level, log_file=log_file, enable_console=True, sanitize=True)

    logger = get_logger(__name__)
    logger.info(f"property-minutes starting - Version {__version__}")
    logger.info(f"Log level: {log_level}")
    return logger


def print_result(result: MinutesResult) -> None:
    print(f"Document: {result.document.title}")
    print(f"URL: {result.document.url}")
    if result.folder:
        print(f"Folder: {result.folder.name}")
    print(f"Mails used: {result.mail_count}")
    for kind, message in result.warnings:
        print(f"Warning: {kind}: {message}")


async def run_command(args: argparse.Namespace, app: MinutesApplication) -> int:
    if args.command == "auth":
        code = args.code
        if not code:
            print("Open this URL, approve access and paste the code:")
            print(app.get_auth_url())
            code = input("Code: ")
        await app.process_auth_code(code)
        print("Google account linked")
        return 0

    if args.command == "auth-status":
        authenticated = await app.check_auth()
        print("Authorized" if authenticated else "Not authorized")
        return 0 if authenticated else 1

    if args.command == "auth-clear":
        app.clear_auth()
        print("Authorization cleared")
        return 0

    if args.command == "labels":
        for label in await app.list_labels():
            print(f"{label['name']}\t{label['id']}")
        return 0

    if args.command == "folders":
        listing = await app.browse_folders(args.parent)
        if listing.breadcrumb:
            print(" / ".join(node.name for node in listing.breadcrumb))
        for folder in listing.children:
            print(f"{folder.name}\t{folder.id}")
        return 0

    if args.command == "generate":
        participant_keys = None
        if args.participants:
            participant_keys = [key.strip() for key in args.participants.split(",") if key.strip()]

        request = app.default_request(args.date, participant_keys)
        if args.start:
            request.start_time = args.start
        if args.end:
            request.end_time = args.end
        if args.location:
            request.location = Location(args.location)
        if args.mail_from:
            request.mail_window_start = args.mail_from
        if args.mail_to:
            request.mail_window_end = args.mail_to

        app.set_progress_callback(lambda message, percentage: print(f"[{percentage:3d}%] {message}"))

        outcome = await app.execute_generation(request)
        if outcome.result is None:
            print(outcome.error_text)
            return 1

        print_result(outcome.result)
        return 0

    return 2


def main(argv: Optional[List[str]] = None) -> int:
    """Main application entry point."""
    args = parse_arguments(argv)

    # Japanese label collation follows the user's locale
    try:
        locale.setlocale(locale.LC_ALL, "")
    except locale.Error:
        # Unsupported locale, collation falls back to code points
        pass

    try:
        config_manager = ConfigManager(Path(args.config_dir) if args.config_dir else None)
    except MinutesError as e:
        print(f"Error: {e.describe()}")
        return 1

    logger = initialize_logging(args, config_manager)

    try:
        app = MinutesApplication(config_manager)
        return asyncio.run(run_command(args, app))

    except MinutesError as e:
        logger.error(f"Application error: {e.describe()}")
        print(e.describe())
        return 1

    except KeyboardInterrupt:
        logger.info("Application interrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
