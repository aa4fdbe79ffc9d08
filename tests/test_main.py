from __future__ import annotations

import logging
import signal
import sys
import threading
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from devwatch.config import Config
from devwatch.handlers import CommandHandler
from devwatch.main import build_parser, build_watch, main, make_reload_action, setup_logging
from devwatch.ownership import GoImportOracle


def test_setup_logging(tmp_path: Path) -> None:
    log_file = tmp_path / "test.log"
    setup_logging("DEBUG", str(log_file))

    logger = logging.getLogger("test_logger")
    logger.debug("Test message")

    assert log_file.exists()
    assert "Test message" in log_file.read_text()


def test_setup_logging_invalid() -> None:
    with pytest.raises(ValueError, match="Invalid log level"):
        setup_logging("INVALID_LEVEL", None)


def test_setup_logging_file_error(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """A directory as log file is reported, not raised."""
    log_file = tmp_path / "log_dir"
    log_file.mkdir()

    setup_logging("INFO", str(log_file))

    assert "Warning: Failed to setup log file" in capsys.readouterr().err


def test_parser_maps_flags_to_config_keys() -> None:
    args = build_parser().parse_args(
        ["--root", "app", "--reload-delay", "0.2", "--debounce-seconds", "0.1", "--exclude", "vendor", "--debug"]
    )
    values = vars(args)

    assert values["root_dir"] == "app"
    assert values["reload_delay_seconds"] == 0.2
    assert values["debounce_seconds"] == 0.1
    assert values["exclude"] == "vendor"
    assert values["debug"] is True
    assert values["build_command"] is None


def test_reload_action_without_command_only_logs(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    action = make_reload_action(Config(root_dir=str(tmp_path)))
    with caplog.at_level(logging.INFO, logger="devwatch.main"):
        action()
    assert "Reload" in caplog.text


def test_reload_action_runs_command(tmp_path: Path) -> None:
    marker = tmp_path / "reloaded"
    command = f"{sys.executable} -c \"open('reloaded', 'w').close()\""
    action = make_reload_action(Config(root_dir=str(tmp_path), reload_command=command))

    action()

    assert marker.exists()


def test_reload_action_failure_raises(tmp_path: Path) -> None:
    command = f"{sys.executable} -c \"import sys; sys.exit(3)\""
    action = make_reload_action(Config(root_dir=str(tmp_path), reload_command=command))

    with pytest.raises(RuntimeError, match="status 3"):
        action()


def test_build_watch_enables_go_ownership(tmp_path: Path) -> None:
    (tmp_path / "go.mod").write_text("module example.com/app\n", encoding="utf-8")
    config = Config(
        root_dir=str(tmp_path),
        main_file="cmd/app/main.go",
        build_command="go build ./cmd/app",
        excluded_names=["tmp"],
        reload_delay_seconds=0.3,
    )

    watch = build_watch(config, threading.Event())

    assert isinstance(watch.classifier.oracle, GoImportOracle)
    assert len(watch.handlers) == 1
    assert isinstance(watch.handlers[0], CommandHandler)
    assert watch.handlers[0].main_input_path() == "cmd/app/main.go"
    assert watch.scheduler.delay == 0.3
    assert watch.exclusion.is_excluded(str(tmp_path / "tmp" / "x.go"))


@pytest.mark.parametrize(
    "kwargs,with_go_mod",
    [
        ({"main_file": "main.go"}, False),
        ({"main_file": ""}, True),
        ({"main_file": "main.go", "extensions": [".js"]}, True),
    ],
    ids=["no go.mod", "no main file", "no go extension"],
)
def test_build_watch_without_ownership(tmp_path: Path, kwargs: dict, with_go_mod: bool) -> None:
    if with_go_mod:
        (tmp_path / "go.mod").write_text("module example.com/app\n", encoding="utf-8")

    watch = build_watch(Config(root_dir=str(tmp_path), **kwargs), threading.Event())

    assert watch.classifier.oracle is None
    assert watch.handlers == []


def test_main_invalid_root_exits(tmp_path: Path) -> None:
    with pytest.raises(SystemExit, match="Configuration Error"):
        main(["--root", str(tmp_path / "missing")])


@patch("devwatch.main.build_watch")
@patch("devwatch.main.load_config")
@patch("devwatch.main.setup_logging")
@patch("signal.signal")
def test_main_execution(
    mock_signal: MagicMock,
    mock_setup_logging: MagicMock,
    mock_load_config: MagicMock,
    mock_build_watch: MagicMock,
    tmp_path: Path,
) -> None:
    config = Config(root_dir=str(tmp_path))
    mock_load_config.return_value = config
    watch = mock_build_watch.return_value
    watch.get_statistics.return_value = {}

    main(["--root", str(tmp_path)])

    mock_setup_logging.assert_called_once_with("INFO", None)
    mock_build_watch.assert_called_once()
    assert mock_build_watch.call_args[0][0] is config
    watch.start.assert_called_once()
    watch.run.assert_called_once()
    watch.stop.assert_called_once()

    calls = [args[0] for args, _ in mock_signal.call_args_list]
    assert signal.SIGINT in calls
    assert signal.SIGTERM in calls


@patch("devwatch.main.build_watch")
@patch("devwatch.main.load_config")
@patch("devwatch.main.setup_logging")
@patch("signal.signal")
def test_signal_handler_requests_exit(
    mock_signal: MagicMock,
    mock_setup_logging: MagicMock,
    mock_load_config: MagicMock,
    mock_build_watch: MagicMock,
    tmp_path: Path,
) -> None:
    mock_load_config.return_value = Config(root_dir=str(tmp_path))
    watch = mock_build_watch.return_value
    watch.get_statistics.return_value = {}

    def run() -> None:
        handler = mock_signal.call_args_list[0][0][1]
        handler(signal.SIGTERM, None)

    watch.run.side_effect = run

    main([])

    watch.request_exit.assert_called_once_with()
    watch.stop.assert_called_once()


@patch("devwatch.main.build_watch")
@patch("devwatch.main.load_config")
@patch("devwatch.main.setup_logging")
@patch("signal.signal")
def test_main_startup_failure(
    mock_signal: MagicMock,
    mock_setup_logging: MagicMock,
    mock_load_config: MagicMock,
    mock_build_watch: MagicMock,
    tmp_path: Path,
) -> None:
    mock_load_config.return_value = Config(root_dir=str(tmp_path))
    mock_build_watch.return_value.start.side_effect = FileNotFoundError("Project root not found")

    with pytest.raises(SystemExit, match="Startup Error"):
        main([])
    mock_build_watch.return_value.run.assert_not_called()


@patch("devwatch.main.build_watch")
@patch("devwatch.main.load_config")
@patch("devwatch.main.setup_logging")
@patch("signal.signal")
def test_main_keyboard_interrupt_stops_cleanly(
    mock_signal: MagicMock,
    mock_setup_logging: MagicMock,
    mock_load_config: MagicMock,
    mock_build_watch: MagicMock,
    tmp_path: Path,
) -> None:
    mock_load_config.return_value = Config(root_dir=str(tmp_path))
    watch = mock_build_watch.return_value
    watch.run.side_effect = KeyboardInterrupt
    watch.get_statistics.return_value = {}

    main([])

    watch.stop.assert_called_once()
