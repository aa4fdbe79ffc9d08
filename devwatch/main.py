"""Main entry point for devwatch.

This module handles the command-line interface (CLI), configuration loading,
logging setup and signal handling. It wires a build command handler, the Go
ownership oracle and a reload action into :class:`~devwatch.loop.DevWatch`.

Key Responsibilities:
    - CLI Argument Parsing: Handles --root, --build-command, --reload-command, etc.
    - Signal Handling: SIGINT/SIGTERM set the exit event for an orderly shutdown.
    - Logging: Console logging plus optional rotating file logging (10MB).
"""

from __future__ import annotations

import argparse
import logging
import os
import shlex
import signal
import subprocess
import sys
import threading
from logging.handlers import RotatingFileHandler
from types import FrameType
from typing import Any, Callable, List, Optional

from devwatch import __version__
from devwatch.config import Config, load_config
from devwatch.handlers import CommandHandler
from devwatch.loop import DevWatch
from devwatch.ownership import GoImportOracle

# Logging configuration constants
LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


def setup_logging(log_level: str, log_file: Optional[str]) -> None:
    """Configure the logging system.

    Sets up console logging (stdout) and optional file logging with rotation.

    Logging Practices:
        - ``INFO``: Normal operations (builds, reloads, startup).
        - ``WARNING``: Recoverable issues (a handler failed).
        - ``ERROR``: Stream termination, reload action failures.
        - ``DEBUG``: Skipped duplicates, ownership decisions, registrations.

    Args:
        log_level (str): The logging level (e.g., "DEBUG", "INFO").
        log_file (Optional[str]): Optional path to a log file.

    Raises:
        ValueError: If the provided log_level is not a valid logging level.
    """
    numeric_level = getattr(logging, log_level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {log_level}")

    handlers: List[logging.Handler] = []
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    handlers.append(console_handler)

    if log_file:
        try:
            # Rotate at 10MB, keep 5 backups
            file_handler = RotatingFileHandler(log_file, maxBytes=10 * 1024 * 1024, backupCount=5)
            file_handler.setFormatter(formatter)
            handlers.append(file_handler)
        except Exception as e:
            sys.stderr.write(f"Warning: Failed to setup log file '{log_file}': {e}\n")

    logging.basicConfig(level=numeric_level, handlers=handlers, force=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="devwatch",
        description="Rebuild on file changes and trigger a debounced reload.",
    )
    parser.add_argument("--root", dest="root_dir", type=str, default=None, help="Project root directory.")
    parser.add_argument(
        "--build-command", type=str, default=None, help="Command run for each changed file."
    )
    parser.add_argument(
        "--reload-command", type=str, default=None, help="Command run once per burst of successful builds."
    )
    parser.add_argument(
        "--main-file",
        type=str,
        default=None,
        help="Main input file of the build target, relative to the root (e.g. cmd/app/main.go).",
    )
    parser.add_argument(
        "--extensions", type=str, default=None, help="Comma-separated extensions to build on (default: .go)."
    )
    parser.add_argument(
        "--exclude", type=str, default=None, help="Comma-separated directory or file names to ignore."
    )
    parser.add_argument(
        "--debounce-seconds", type=float, default=None, help="Duplicate-event window (default: 0.05)."
    )
    parser.add_argument(
        "--reload-delay",
        dest="reload_delay_seconds",
        type=float,
        default=None,
        help="Quiet period before a reload fires (default: 0.05).",
    )
    parser.add_argument("--log-file", type=str, default=None, help="Path to the log file.")
    parser.add_argument(
        "--log-level", type=str, default=None, help="Logging level (DEBUG, INFO, WARNING, ERROR). Default: INFO"
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging (overrides --log-level).")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def make_reload_action(config: Config) -> Callable[[], Any]:
    """Return the reload action for the configured reload command.

    Without a reload command the action only logs.
    """
    if not config.reload_command:

        def _log_reload() -> None:
            logger.info("Reload")

        return _log_reload

    command = shlex.split(config.reload_command)

    def _run_reload() -> None:
        logger.info(f"Reload: running {shlex.join(command)}")
        result = subprocess.run(command, cwd=config.root_dir, capture_output=True, text=True)
        if result.returncode != 0:
            raise RuntimeError(
                f"Reload command exited with status {result.returncode}: {(result.stderr or '').strip()}"
            )

    return _run_reload


def build_watch(config: Config, exit_event: threading.Event) -> DevWatch:
    """Assemble a DevWatch from configuration.

    The Go ownership oracle is enabled when ``.go`` files are handled, a
    ``go.mod`` exists in the root and a main file is configured.
    """
    handlers = []
    if config.build_command:
        handlers.append(
            CommandHandler(
                config.build_command,
                root=config.root_dir,
                extensions=config.extensions,
                main_input=config.main_file,
            )
        )
    else:
        logger.warning("No build command configured; file changes will not trigger reloads.")

    oracle = None
    if ".go" in config.extensions and config.main_file and os.path.isfile(os.path.join(config.root_dir, "go.mod")):
        oracle = GoImportOracle(config.root_dir)
        logger.info(f"Go ownership checks enabled for {config.main_file}")

    return DevWatch.from_config(
        config,
        handlers,
        oracle=oracle,
        reload_action=make_reload_action(config),
        exit_event=exit_event,
    )


def main(argv: Optional[List[str]] = None) -> None:
    """Execute the main application logic.

    Parse command-line arguments, load configuration, set up logging and run
    the event loop until SIGINT/SIGTERM.

    Raises:
        SystemExit: If configuration is invalid or startup fails.

    Example:
        $ devwatch --root ./app --main-file cmd/app/main.go --build-command "go build ./cmd/app"
    """
    args = build_parser().parse_args(argv)

    # Bootstrap logging to capture config loading events
    bootstrap_handler = logging.StreamHandler(sys.stdout)
    bootstrap_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    bootstrap_level = logging.DEBUG if args.debug else logging.INFO
    logging.basicConfig(level=bootstrap_level, handlers=[bootstrap_handler], force=True)

    try:
        config = load_config(vars(args))
        logger.debug(f"Configuration loaded: {config}")
        setup_logging(config.log_level, config.log_file)
    except ValueError as e:
        sys.exit(f"Configuration Error: {e}")

    logger.info(f"Starting devwatch v{__version__} (PID: {os.getpid()}) in {config.root_dir}")

    exit_event = threading.Event()
    watch = build_watch(config, exit_event)

    def signal_handler(sig: int, frame: Optional[FrameType]) -> None:
        sig_name = signal.Signals(sig).name
        logger.info(f"Received signal {sig_name}, shutting down...")
        watch.request_exit()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        watch.start()
    except (OSError, RuntimeError) as e:
        sys.exit(f"Startup Error: {e}")

    try:
        watch.run()
    except KeyboardInterrupt:
        logger.info("KeyboardInterrupt received, stopping...")
    except Exception as e:
        logger.critical(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)
    finally:
        watch.stop()
        logger.info(f"Stopped. Statistics: {watch.get_statistics()}")


if __name__ == "__main__":
    main()
