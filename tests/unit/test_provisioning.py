"""Unit tests for target and staging location provisioning."""

import os
import subprocess
import time
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from csi_sanity.exceptions import CommandTimeoutError, ProvisioningError
from csi_sanity.provisioning import (
    Callback,
    DefaultStrategy,
    ExternalCommand,
    create_location,
    remove_location,
    resolve_strategy,
)


class TestResolveStrategy:
    """Test strategy priority."""

    def test_command_wins_over_callback(self) -> None:
        strategy = resolve_strategy("mkpath", lambda p: p, 5)

        assert isinstance(strategy, ExternalCommand)
        assert strategy.command == "mkpath"
        assert strategy.timeout == 5

    def test_callback_when_no_command(self) -> None:
        fn = MagicMock()
        strategy = resolve_strategy("", fn, 5)

        assert isinstance(strategy, Callback)
        assert strategy.fn is fn

    def test_default_when_nothing_configured(self) -> None:
        assert isinstance(resolve_strategy(None, None), DefaultStrategy)

    def test_blank_command_is_not_configured(self, tmp_path: Path) -> None:
        fn = MagicMock()

        assert isinstance(resolve_strategy("  ", fn, 5), Callback)
        assert isinstance(resolve_strategy("\t", None, 5), DefaultStrategy)

        target = tmp_path / "mount"
        assert create_location(str(target), command="   ") == str(target)
        assert target.is_dir()

    def test_describe_names_command(self) -> None:
        assert "mkpath" in ExternalCommand("mkpath").describe()


class TestEmptyPath:
    """Test that an empty path disables provisioning."""

    def test_create_returns_empty_without_invoking_callback(self) -> None:
        callback = MagicMock()

        assert create_location("", callback=callback) == ""
        callback.assert_not_called()

    def test_create_with_command_returns_empty(self) -> None:
        assert create_location("", command="/nonexistent/command") == ""

    def test_remove_is_noop(self) -> None:
        callback = MagicMock()

        remove_location("", callback=callback)
        remove_location("", command="/nonexistent/command")
        remove_location("")

        callback.assert_not_called()


class TestDefaultCreate:
    """Test directory creation on the local host."""

    def test_creates_missing_directory(self, tmp_path: Path) -> None:
        target = tmp_path / "a" / "b" / "mount"

        result = create_location(str(target))

        assert result == str(target)
        assert target.is_dir()

    def test_existing_directory_is_returned_unchanged(self, tmp_path: Path) -> None:
        target = tmp_path / "mount"
        target.mkdir()
        (target / "keep").write_text("data")

        result = create_location(str(target))

        assert result == str(target)
        assert (target / "keep").read_text() == "data"

    def test_regular_file_fails_with_not_a_directory(self, tmp_path: Path) -> None:
        target = tmp_path / "mount"
        target.write_text("not a dir")

        with pytest.raises(NotADirectoryError, match="is not a directory"):
            create_location(str(target))

    def test_other_stat_errors_propagate(self, tmp_path: Path) -> None:
        target = str(tmp_path / "mount")
        denied = PermissionError(13, "Permission denied", target)

        with pytest.raises(PermissionError), patch("os.stat", side_effect=denied):
            create_location(target)

        assert not os.path.exists(target)


class TestDefaultRemove:
    """Test recursive removal on the local host."""

    def test_removes_directory_tree(self, tmp_path: Path) -> None:
        target = tmp_path / "mount"
        (target / "nested").mkdir(parents=True)
        (target / "nested" / "file").write_text("x")

        remove_location(str(target))

        assert not target.exists()

    def test_missing_path_is_not_an_error(self, tmp_path: Path) -> None:
        remove_location(str(tmp_path / "missing"))

    def test_removes_regular_file(self, tmp_path: Path) -> None:
        target = tmp_path / "mount"
        target.write_text("x")

        remove_location(str(target))

        assert not target.exists()


class TestCallbackStrategy:
    """Test user-supplied callbacks."""

    def test_create_returns_callback_result(self) -> None:
        callback = MagicMock(return_value="/custom/mount")

        assert create_location("/tmp/mount", callback=callback) == "/custom/mount"
        callback.assert_called_once_with("/tmp/mount")

    def test_create_error_passes_through_unchanged(self) -> None:
        error = RuntimeError("cannot create")
        callback = MagicMock(side_effect=error)

        with pytest.raises(RuntimeError) as exc_info:
            create_location("/tmp/mount", callback=callback)

        assert exc_info.value is error

    def test_remove_calls_callback(self) -> None:
        callback = MagicMock()

        remove_location("/tmp/mount", callback=callback)

        callback.assert_called_once_with("/tmp/mount")

    def test_remove_error_is_reported(self) -> None:
        callback = MagicMock(side_effect=OSError("busy"))

        with pytest.raises(OSError, match="busy"):
            remove_location("/tmp/mount", callback=callback)


class TestCommandStrategy:
    """Test external provisioning commands."""

    def test_stdout_becomes_path(self, make_script) -> None:
        script = make_script("create.sh", "echo '  /custom/path  '")

        assert create_location("/tmp/mount", command=script, timeout=5) == "/custom/path"

    def test_bare_executable_gets_path_as_only_argument(self, make_script) -> None:
        script = make_script("create.sh", 'echo "$#:$1"')

        assert create_location("/tmp/mount", command=script, timeout=5) == "1:/tmp/mount"

    def test_command_line_with_arguments_runs_as_given(self) -> None:
        result = create_location("/tmp/t", command="/bin/echo /custom/path", timeout=5)

        assert result == "/custom/path"

    def test_path_placeholder_is_substituted(self, make_script) -> None:
        script = make_script("create.sh", 'echo "$1-$2"')

        result = create_location("/tmp/mount", command=f"{script} prefix {{path}}", timeout=5)

        assert result == "prefix-/tmp/mount"

    def test_executable_path_with_spaces(self, tmp_path: Path) -> None:
        tools = tmp_path / "my tools"
        tools.mkdir()
        script = tools / "mk.sh"
        script.write_text('#!/bin/sh\necho "made $1"\n')
        os.chmod(script, 0o755)

        assert create_location("/tmp/mount", command=str(script), timeout=5) == (
            "made /tmp/mount"
        )

    def test_unbalanced_quotes_fail_with_provisioning_error(self) -> None:
        with pytest.raises(ProvisioningError, match="is invalid") as exc_info:
            create_location("/tmp/mount", command="/bin/echo 'oops", timeout=5)

        assert isinstance(exc_info.value.__cause__, ValueError)
        assert exc_info.value.path == "/tmp/mount"
        assert "/bin/echo 'oops" in exc_info.value.strategy

    def test_command_wins_over_callback(self, make_script) -> None:
        script = make_script("create.sh", "echo /from/command")
        callback = MagicMock(return_value="/from/callback")

        result = create_location("/tmp/mount", command=script, callback=callback, timeout=5)

        assert result == "/from/command"
        callback.assert_not_called()

    def test_remove_command_wins_over_callback(self, make_script, tmp_path: Path) -> None:
        marker = tmp_path / "removed"
        script = make_script("remove.sh", f'echo "$1" > {marker}')
        callback = MagicMock()

        remove_location("/tmp/mount", command=script, callback=callback, timeout=5)

        assert marker.read_text().strip() == "/tmp/mount"
        callback.assert_not_called()

    def test_non_zero_exit_fails(self, make_script) -> None:
        script = make_script("create.sh", "echo partial; exit 3")

        with pytest.raises(ProvisioningError, match="failed") as exc_info:
            create_location("/tmp/mount", command=script, timeout=5)

        assert isinstance(exc_info.value.__cause__, subprocess.CalledProcessError)
        assert exc_info.value.path == "/tmp/mount"
        assert script in exc_info.value.strategy

    def test_missing_executable_fails(self, tmp_path: Path) -> None:
        command = str(tmp_path / "does-not-exist")

        with pytest.raises(ProvisioningError) as exc_info:
            create_location("/tmp/mount", command=command, timeout=5)

        assert isinstance(exc_info.value.__cause__, OSError)

    def test_remove_failure_is_reported(self, make_script) -> None:
        script = make_script("remove.sh", "exit 1")

        with pytest.raises(ProvisioningError, match="removal command"):
            remove_location("/tmp/mount", command=script, timeout=5)

    def test_zero_timeout_fails_with_timeout_error(self, make_script) -> None:
        script = make_script("slow.sh", "exec sleep 30")

        with pytest.raises(CommandTimeoutError, match="timed out"):
            create_location("/tmp/mount", command=script, timeout=0)

    def test_timed_out_process_is_terminated(self, make_script, tmp_path: Path) -> None:
        pid_file = tmp_path / "pid"
        script = make_script("slow.sh", f"echo $$ > {pid_file}\nexec sleep 30")

        start = time.monotonic()
        with pytest.raises(CommandTimeoutError):
            create_location("/tmp/mount", command=script, timeout=1)

        assert time.monotonic() - start < 10
        pid = int(pid_file.read_text().strip())
        with pytest.raises(ProcessLookupError):
            os.kill(pid, 0)
