"""Configuration management for devwatch.

This module handles loading configuration from defaults, a TOML config file,
environment variables and CLI arguments. The result is a :class:`Config`
dataclass that is fixed for the lifetime of the process.

Priority Order:
    1. CLI Arguments
    2. Environment Variables
    3. Config File
    4. Defaults

Supported Environment Variables:
    * ``DEVWATCH_ROOT``: Project root directory.
    * ``DEVWATCH_DEBOUNCE_SECONDS``: Content debounce window.
    * ``DEVWATCH_RELOAD_DELAY``: Reload coalescing window.
    * ``DEVWATCH_EXCLUDE``: Comma-separated path segment names to ignore.
    * ``DEVWATCH_EXTENSIONS``: Comma-separated extensions handled by the build command.
    * ``DEVWATCH_MAIN_FILE``: Main input file of the build target, relative to the root.
    * ``DEVWATCH_BUILD_COMMAND``: Command run on each change.
    * ``DEVWATCH_RELOAD_COMMAND``: Command run on each coalesced reload.
    * ``DEVWATCH_LOG_FILE``: Path to the log file.
    * ``DEVWATCH_LOG_LEVEL``: Logging level.

Config File:
    The first existing file among ``./devwatch.toml``,
    ``$XDG_CONFIG_HOME/devwatch/devwatch.toml`` (``%APPDATA%`` on Windows,
    ``~/.config`` otherwise) is read. Settings live in a ``[devwatch]`` table::

        [devwatch]
        root_dir = "."
        exclude = ["node_modules", "vendor"]
        build_command = "go build -o app ./cmd/app"
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

import tomli

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

__all__ = ["Config", "load_config", "CONFIG_FILE_NAME"]

CONFIG_FILE_NAME = "devwatch.toml"
CONFIG_TABLE = "devwatch"


@dataclass
class Config:
    """Define the application configuration structure.

    Attributes:
        root_dir (str): Absolute path of the project root.
        debounce_seconds (float): Content debounce window in seconds. Defaults to 0.05.
        reload_delay_seconds (float): Reload coalescing window in seconds. Defaults to 0.05.
        excluded_names (List[str]): Path segment names that are never watched.
        extensions (List[str]): Extensions handled by the build command. Defaults to [".go"].
        main_file (str): Main input file of the build target, relative to the root.
        build_command (Optional[str]): Command run for each surviving file event.
        reload_command (Optional[str]): Command run on each coalesced reload.
        log_file (Optional[str]): Absolute path to the log file. Defaults to None.
        log_level (str): Logging level. Defaults to "INFO".
    """

    root_dir: str
    debounce_seconds: float = 0.05
    reload_delay_seconds: float = 0.05
    excluded_names: List[str] = field(default_factory=list)
    extensions: List[str] = field(default_factory=lambda: [".go"])
    main_file: str = ""
    build_command: Optional[str] = None
    reload_command: Optional[str] = None
    log_file: Optional[str] = None
    log_level: str = "INFO"


def _get_config_file_paths() -> List[str]:
    """Return potential config file paths in order of priority.

    Returns:
        List[str]: Local file first, then the per-user config directory.
    """
    paths = [CONFIG_FILE_NAME]

    xdg_config_home = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config_home:
        paths.append(os.path.join(os.path.expanduser(xdg_config_home), "devwatch", CONFIG_FILE_NAME))
    elif os.name == "nt" and os.environ.get("APPDATA"):
        paths.append(os.path.join(os.path.expanduser(os.environ["APPDATA"]), "devwatch", CONFIG_FILE_NAME))
    else:
        paths.append(os.path.join(os.path.expanduser("~"), ".config", "devwatch", CONFIG_FILE_NAME))
    return paths


def _read_config_file(path: str) -> Dict[str, Any]:
    """Read the ``[devwatch]`` table from a TOML file.

    Parse errors are logged and treated as an empty table.
    """
    try:
        with open(path, "rb") as f:
            data = tomli.load(f)
    except (tomli.TOMLDecodeError, OSError) as e:
        logger.error(f"Failed to parse config file {path}: {e}")
        return {}
    table = data.get(CONFIG_TABLE, {})
    if not isinstance(table, dict):
        logger.error(f"Config file {path}: [{CONFIG_TABLE}] must be a table")
        return {}
    return table


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return [str(item).strip() for item in value if str(item).strip()]


def _as_float(key: str, value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid float for {key}: {value}") from e
    if number < 0:
        raise ValueError(f"{key} must be non-negative, got {number}")
    return number


def _validate_root(path_str: str) -> str:
    """Resolve the project root and check it is an existing directory.

    Args:
        path_str (str): The raw path (``~`` is expanded).

    Returns:
        str: The resolved absolute path.

    Raises:
        ValueError: If the path does not exist or is not a directory.
    """
    try:
        resolved = Path(os.path.expanduser(path_str)).resolve(strict=True)
    except (FileNotFoundError, RuntimeError, OSError) as e:
        raise ValueError(f"Project root not found: {path_str}") from e
    if not resolved.is_dir():
        raise ValueError(f"Project root is not a directory: {resolved}")
    return str(resolved)


def load_config(args: Dict[str, Any]) -> Config:
    """Load and validate configuration with strict priority, returning a Config object.

    Args:
        args (Dict[str, Any]): Parsed CLI arguments (``vars(parser.parse_args())``).
            Keys match Config attributes, plus ``exclude`` and ``debug``.
            Values of None are ignored so lower-priority sources take effect.

    Returns:
        Config: The fully resolved and validated configuration.

    Raises:
        ValueError: If a numeric value or log level is invalid, or the project
            root does not exist.

    Examples:
        >>> import os
        >>> os.environ["DEVWATCH_DEBOUNCE_SECONDS"] = "0.2"
        >>> load_config({"root_dir": "."}).debounce_seconds
        0.2
        >>> del os.environ["DEVWATCH_DEBOUNCE_SECONDS"]
    """
    # 1. Defaults
    config_values: Dict[str, Any] = {
        "root_dir": None,
        "debounce_seconds": 0.05,
        "reload_delay_seconds": 0.05,
        "excluded_names": [],
        "extensions": [".go"],
        "main_file": "",
        "build_command": None,
        "reload_command": None,
        "log_file": None,
        "log_level": "INFO",
    }

    # 2. Config File
    for path in _get_config_file_paths():
        if os.path.isfile(path):
            logger.debug(f"Loading config from {path}")
            for key, value in _read_config_file(path).items():
                if key == "exclude":
                    key = "excluded_names"
                if value is not None and value != "":
                    config_values[key] = value
            break

    # 3. Environment Variables
    env_map = {
        "DEVWATCH_ROOT": "root_dir",
        "DEVWATCH_DEBOUNCE_SECONDS": "debounce_seconds",
        "DEVWATCH_RELOAD_DELAY": "reload_delay_seconds",
        "DEVWATCH_EXCLUDE": "excluded_names",
        "DEVWATCH_EXTENSIONS": "extensions",
        "DEVWATCH_MAIN_FILE": "main_file",
        "DEVWATCH_BUILD_COMMAND": "build_command",
        "DEVWATCH_RELOAD_COMMAND": "reload_command",
        "DEVWATCH_LOG_FILE": "log_file",
        "DEVWATCH_LOG_LEVEL": "log_level",
    }
    for env_var, config_key in env_map.items():
        val = os.getenv(env_var)
        if val is not None and val != "":
            config_values[config_key] = val

    # 4. CLI Arguments (override if not None)
    for key, value in args.items():
        if key == "exclude":
            key = "excluded_names"
        if value is not None:
            config_values[key] = value

    config_values["debounce_seconds"] = _as_float("debounce_seconds", config_values["debounce_seconds"])
    config_values["reload_delay_seconds"] = _as_float(
        "reload_delay_seconds", config_values["reload_delay_seconds"]
    )
    config_values["excluded_names"] = _as_list(config_values["excluded_names"])
    config_values["extensions"] = [
        ext if ext.startswith(".") else f".{ext}" for ext in _as_list(config_values["extensions"])
    ]
    if not config_values["extensions"]:
        raise ValueError("At least one file extension must be configured")

    config_values["root_dir"] = _validate_root(str(config_values["root_dir"] or "."))

    if config_values["log_file"]:
        config_values["log_file"] = os.path.abspath(os.path.expanduser(str(config_values["log_file"])))

    if args.get("debug"):
        config_values["log_level"] = "DEBUG"

    config_values["log_level"] = str(config_values["log_level"]).upper()
    if not isinstance(getattr(logging, config_values["log_level"], None), int):
        raise ValueError(f"Invalid log level: {config_values['log_level']}")

    # Filter out keys that are not in Config fields (e.g. 'debug' from CLI)
    config_fields = {f.name for f in fields(Config)}
    filtered_values = {k: v for k, v in config_values.items() if k in config_fields}

    return Config(**filtered_values)
