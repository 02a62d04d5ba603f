#!/usr/bin/env python3
"""
chord-dispatch command line entry points.

chord-copy and chord-paste take no arguments; chord-dispatch accepts the
operation and a few options.
"""
import argparse
import logging
import os
import sys

from .config_loader import ConfigLoader, ConfigValidationError, default_config_path
from .dependency_check import DependencyChecker
from .dispatcher import Dispatcher
from .key_injection import InjectionUnavailable
from .models import Operation

EXIT_OK = 0
EXIT_INJECTION_UNAVAILABLE = 1
EXIT_MISSING_DEPENDENCY = 1
EXIT_CONFIG_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chord-dispatch",
        description="Send copy/paste key chords suited to the focused window.",
    )
    parser.add_argument(
        "operation",
        nargs="?",
        choices=[o.value for o in Operation],
        default=Operation.COPY.value,
        help="clipboard operation to send (default: copy)",
    )
    parser.add_argument("-c", "--config", help="path to YAML configuration file")
    parser.add_argument("-n", "--dry-run", action="store_true", help="print the chord instead of sending it")
    parser.add_argument("--check-deps", action="store_true", help="report available tools and exit")
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="only log warnings and errors")
    return parser


def load_config(path):
    """
    Load configuration.

    An explicitly given path must exist and be valid. The default location
    is optional, and an invalid file there falls back to built-in settings.

    :return: (ConfigLoader, error message or None)
    """
    explicit = path is not None
    loader = ConfigLoader(path if explicit else default_config_path())

    if not explicit and not os.path.exists(loader.config_path):
        return loader, None

    try:
        loader.load()
    except (FileNotFoundError, ConfigValidationError) as e:
        if explicit:
            return loader, str(e)
        logging.error(f"Ignoring configuration {loader.config_path}: {e}")
        return ConfigLoader(loader.config_path), None

    return loader, None


def _log_level(args, loader=None):
    if args.verbose:
        return logging.DEBUG
    if args.quiet:
        return logging.WARNING
    if loader is not None and loader.log_level:
        return getattr(logging, loader.log_level)
    return logging.INFO


def main(argv=None) -> int:
    """Main application entry point."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=_log_level(args),
        format="%(name)s: %(levelname)s: %(message)s",
    )

    if args.check_deps:
        checker = DependencyChecker()
        checker.print_report()
        if checker.has_critical_failures():
            return EXIT_MISSING_DEPENDENCY
        return EXIT_OK

    loader, error = load_config(args.config)
    if error:
        logging.error(f"Configuration Error: {error}")
        return EXIT_CONFIG_ERROR

    logging.getLogger().setLevel(_log_level(args, loader))

    try:
        dispatcher = Dispatcher.from_config(loader)
    except ValueError as e:
        logging.error(f"Configuration Error: {e}")
        return EXIT_CONFIG_ERROR

    operation = Operation(args.operation)

    if args.dry_run:
        result = dispatcher.plan(operation)
        app_id = result.context.app_id if result.context else "<none>"
        print(f"{app_id}\t{result.action.value}\t{result.chord}")
        return EXIT_OK

    try:
        dispatcher.run(operation)
    except InjectionUnavailable as e:
        logging.error(str(e))
        return EXIT_INJECTION_UNAVAILABLE

    return EXIT_OK


def copy_main() -> int:
    return main([Operation.COPY.value] + sys.argv[1:])


def paste_main() -> int:
    return main([Operation.PASTE.value] + sys.argv[1:])


if __name__ == "__main__":
    sys.exit(main())
