"""
Tests for the command-line interface.
"""

import json
import os
import stat

import pytest

from cronrunner.cli import build_parser, main, resolve_crontabs
from cronrunner.config import RunnerConfig
from cronrunner.parser import DEFAULT_CRONTAB


def make_script(tmp_path, name, body="exit 0"):
    path = tmp_path / name
    path.write_text(f"#!/bin/sh\n{body}\n")
    os.chmod(path, stat.S_IRUSR | stat.S_IWUSR | stat.S_IXUSR)
    return path


@pytest.fixture
def config_path(tmp_path):
    return str(tmp_path / "cronrunner.json")


def test_build_parser_subcommands():
    parser = build_parser()

    args = parser.parse_args(['-v', 'run', 'a', 'b', '--io', 'both'])
    assert args.command == 'run'
    assert args.crontabs == ['a', 'b']
    assert args.io == 'both'
    assert args.verbose

    args = parser.parse_args(['run-once', '/bin/echo hi', '--timeout', '5'])
    assert args.command_line == '/bin/echo hi'
    assert args.timeout == 5


def test_main_without_command_exits(capsys):
    with pytest.raises(SystemExit) as exc_info:
        main([])
    assert exc_info.value.code == 1


def test_resolve_crontabs(config_path):
    config = RunnerConfig(config_path)
    assert resolve_crontabs([], config) == [DEFAULT_CRONTAB]

    config.crontabs = ["/srv/crontab"]
    assert [str(p) for p in resolve_crontabs([], config)] == ["/srv/crontab"]
    assert [str(p) for p in resolve_crontabs(["/tmp/other"], config)] == ["/tmp/other"]


def test_check_reports_entries(tmp_path, config_path, capsys):
    script = make_script(tmp_path, "job.sh")
    crontab = tmp_path / "crontab"
    crontab.write_text(
        f"0 * * * * {script}\n"
        f"5 * * * * {tmp_path / 'missing.sh'}\n"
        f"1 2 3 * {script}\n"
    )

    main(['-c', config_path, 'check', str(crontab)])
    out = capsys.readouterr().out

    assert f"✓    1: 0 * * * *  {script}" in out
    assert "✗    2:" in out
    assert "is NOT executable" in out
    assert "-    3: skipped:" in out


def test_check_missing_file_exits(tmp_path, config_path, capsys):
    with pytest.raises(SystemExit) as exc_info:
        main(['-c', config_path, 'check', str(tmp_path / "missing")])
    assert exc_info.value.code == 1
    assert "✗" in capsys.readouterr().out


def test_run_once(tmp_path, capsys):
    script = make_script(tmp_path, "hello.sh", 'echo "hello $1"')

    main(['run-once', f"{script} world"])
    out = capsys.readouterr().out

    assert "hello world" in out
    assert "exit 0" in out


def test_run_once_not_executable(tmp_path, capsys):
    with pytest.raises(SystemExit) as exc_info:
        main(['run-once', str(tmp_path / "missing.sh")])
    assert exc_info.value.code == 1
    assert "is NOT executable" in capsys.readouterr().err


def test_init_and_show_config(config_path, capsys):
    main(['-c', config_path, 'init'])
    assert "Initialized configuration" in capsys.readouterr().out
    with open(config_path) as f:
        assert set(json.load(f)) == {'crontabs', 'logging', 'execution', 'watch'}

    main(['-c', config_path, 'init'])
    assert "already exists" in capsys.readouterr().out

    main(['-c', config_path, 'show-config'])
    out = capsys.readouterr().out
    assert f"Configuration file: {config_path}" in out
    assert f"Crontabs: {DEFAULT_CRONTAB}" in out


def test_logs_filters(tmp_path, capsys):
    log_file = tmp_path / "runner.log"
    log_file.write_text(
        "2024-09-01 14:30:00 [INFO] cronrunner.jobs: command[/bin/a] is executing\n"
        "2024-09-01 14:30:00 [ERROR] cronrunner.jobs: command[/bin/b] failed\n"
        "2024-09-01 14:31:00 [INFO] cronrunner.jobs: command[/bin/b] is executing\n"
    )
    config_path = tmp_path / "cronrunner.json"
    config_path.write_text(json.dumps({"logging": {"file": str(log_file)}}))

    main(['-c', str(config_path), 'logs', '--job', '/bin/b', '--level', 'error'])
    out = capsys.readouterr().out

    assert "command[/bin/b] failed" in out
    assert "is executing" not in out
    assert "Showing 1 log entries" in out
