"""
Tests for command execution.
"""

import logging
import os
import stat

import pytest

from cronrunner.jobs import (
    CommandAction,
    JobExecutionError,
    NotExecutableError,
    command_path,
    validate_executable,
)


def make_script(tmp_path, name, body, executable=True):
    path = tmp_path / name
    path.write_text("#!/bin/sh\n" + body + "\n")
    mode = stat.S_IRUSR | stat.S_IWUSR
    if executable:
        mode |= stat.S_IXUSR
    os.chmod(path, mode)
    return path


def test_command_path():
    assert command_path("/usr/bin/backup --full  now") == "/usr/bin/backup"
    assert command_path("") == ""


def test_validate_executable(tmp_path):
    script = make_script(tmp_path, "ok.sh", "exit 0")
    assert validate_executable(f"{script} --flag") == script


def test_validate_executable_not_executable(tmp_path):
    script = make_script(tmp_path, "plain.sh", "exit 0", executable=False)
    with pytest.raises(NotExecutableError) as exc_info:
        validate_executable(f"{script} --flag")
    assert exc_info.value.path == str(script)
    assert "is NOT executable" in str(exc_info.value)


def test_validate_executable_missing_or_directory(tmp_path):
    with pytest.raises(NotExecutableError):
        validate_executable(str(tmp_path / "missing.sh"))
    with pytest.raises(NotExecutableError):
        validate_executable(str(tmp_path))
    with pytest.raises(NotExecutableError):
        validate_executable("   ")


def test_title_is_stable(tmp_path):
    action = CommandAction("/usr/local/bin/backup.sh --full")
    assert action.title() == "command[/usr/local/bin/backup.sh --full]"
    assert action.argv == ["/usr/local/bin/backup.sh", "--full"]


def test_escaped_backslashes_are_restored_in_arguments():
    action = CommandAction("/bin/echo a\\\\b")
    assert action.argv == ["/bin/echo", "a\\b"]


def test_run_captures_output(tmp_path, caplog):
    script = make_script(tmp_path, "hello.sh", 'echo "hello $1"\necho oops >&2')
    action = CommandAction(f"{script} world")

    with caplog.at_level(logging.INFO, logger="cronrunner.jobs"):
        result = action.run()

    assert result['returncode'] == 0
    assert result['stdout'] == "hello world"
    assert result['stderr'] == "oops"
    assert action.last_result['status'] == 'success'
    assert "hello world" in caplog.text


def test_run_nonzero_exit_raises(tmp_path):
    script = make_script(tmp_path, "fail.sh", "echo bad >&2\nexit 3")
    action = CommandAction(str(script))

    with pytest.raises(JobExecutionError) as exc_info:
        action.run()

    assert "exit code 3" in str(exc_info.value)
    assert action.last_result['status'] == 'failed'
    assert action.last_result['returncode'] == 3


def test_run_missing_executable_raises(tmp_path):
    action = CommandAction(str(tmp_path / "nope.sh"))
    with pytest.raises(JobExecutionError):
        action.run()


def test_run_timeout(tmp_path):
    script = make_script(tmp_path, "slow.sh", "sleep 10")
    action = CommandAction(str(script), timeout=1)

    with pytest.raises(JobExecutionError) as exc_info:
        action.run()

    assert "timed out" in str(exc_info.value)


def test_trigger_runs_once_in_background(tmp_path):
    marker = tmp_path / "runs.txt"
    script = make_script(tmp_path, "count.sh", f'echo run >> "{marker}"')
    action = CommandAction(str(script))

    assert action.trigger() is True
    assert action.wait(5)

    assert marker.read_text().splitlines() == ["run"]
    assert action.last_result['status'] == 'success'


def test_trigger_skips_while_running(tmp_path):
    script = make_script(tmp_path, "slow.sh", "sleep 2")
    action = CommandAction(str(script))

    assert action.trigger() is True
    assert action.is_running()
    assert action.trigger() is False
    assert action.wait(10)
    assert not action.is_running()


def test_trigger_failure_is_logged_not_raised(tmp_path, caplog):
    script = make_script(tmp_path, "fail.sh", "exit 1")
    action = CommandAction(str(script))

    with caplog.at_level(logging.ERROR, logger="cronrunner.jobs"):
        action.trigger()
        assert action.wait(5)

    assert "failed" in caplog.text


def test_quotes_are_literal_in_arguments(tmp_path):
    script = make_script(tmp_path, "say.sh", 'echo "$1 $2"')
    action = CommandAction(f"{script} don't panic")

    assert action.argv == [str(script), "don't", "panic"]
    assert action.run()['stdout'] == "don't panic"


def test_validation_and_execution_use_same_path(tmp_path):
    script = make_script(tmp_path, "ok.sh", "exit 0")
    command = f"'{script}' x"

    with pytest.raises(NotExecutableError):
        validate_executable(command)
    assert CommandAction(command).argv[0] == f"'{script}'"
