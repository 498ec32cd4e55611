"""
Tests for cron expression and crontab file parsing.
"""

import logging

import pytest

from cronrunner.models import EVERY, TimeSpec
from cronrunner.parser import (
    ParseError,
    normalize_whitespace,
    parse_crontab_file,
    parse_expression,
    split_job_line,
)


def test_parse_expression_example():
    spec = parse_expression("0,10,20,30,40,50 * * 9 0")

    assert spec.minutes == frozenset({0, 10, 20, 30, 40, 50})
    assert spec.hours is EVERY
    assert spec.days_of_month is EVERY
    assert spec.months == frozenset({9})
    assert spec.days_of_week == frozenset({0})


def test_parse_expression_all_wildcards():
    spec = parse_expression("* * * * *")
    assert spec == TimeSpec(EVERY, EVERY, EVERY, EVERY, EVERY)


@pytest.mark.parametrize("text", [
    "",
    "* * * *",
    "* * * * * *",
    "0 1 2 3",
])
def test_parse_expression_wrong_field_count(text):
    with pytest.raises(ParseError) as exc_info:
        parse_expression(text)
    assert exc_info.value.reason == "wrong field count"


@pytest.mark.parametrize("text", [
    "a * * * *",
    "0,x * * * *",
    "1,,2 * * * *",
    "*/5 * * * *",
    "1-5 * * * *",
    "*,5 * * * *",
    "5,* * * * *",
])
def test_parse_expression_invalid_token(text):
    with pytest.raises(ParseError) as exc_info:
        parse_expression(text)
    assert exc_info.value.reason == "invalid token"


def test_parse_error_is_value_error():
    with pytest.raises(ValueError):
        parse_expression("not a schedule")


def test_parse_expression_does_not_range_check():
    spec = parse_expression("99 77 0 13 9")
    assert spec.minutes == frozenset({99})
    assert spec.hours == frozenset({77})
    assert spec.days_of_month == frozenset({0})
    assert spec.months == frozenset({13})
    assert spec.days_of_week == frozenset({9})


@pytest.mark.parametrize("text", [
    "0,10,20,30,40,50 * * 9 0",
    "  5   4\t* *   1 ",
    "30 8,20 1,15 * 1,2,3,4,5",
    "0 0 1 1 *",
])
def test_normalized_form_parses_to_equal_spec(text):
    original = parse_expression(text)
    assert parse_expression(normalize_whitespace(text)) == original
    assert parse_expression(original.expression()) == original


def test_equal_expressions_hash_equal():
    a = parse_expression("0,30 * * * *")
    b = parse_expression("30,0  *  *  *  *")
    assert a == b
    assert hash(a) == hash(b)
    assert len({a, b}) == 1


def test_split_job_line():
    schedule, command = split_job_line("0 * * * * /usr/bin/backup   --full")
    assert schedule == "0 * * * * "
    assert command == "/usr/bin/backup --full"


def test_split_job_line_escapes_backslashes():
    _, command = split_job_line("0 * * * * /bin/echo a\\b")
    assert command == "/bin/echo a\\\\b"


def test_short_lines_are_not_job_lines():
    # 11 characters, a valid schedule and a one-letter command
    assert split_job_line("* * * * * x") is None
    assert split_job_line("0 1 2 3 4 y") is None


@pytest.mark.parametrize("line", [
    "# 0 * * * * /bin/true comment",
    " 0 * * * * /bin/true leading space",
    "SHELL=/bin/sh and more text",
    "",
])
def test_non_schedule_lines_are_ignored(line):
    assert split_job_line(line) is None


def _write(tmp_path, text, name="crontab"):
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


def test_parse_crontab_file(tmp_path):
    path = _write(tmp_path, (
        "# nightly jobs\n"
        "0,10,20,30,40,50 * * 9 0 /usr/local/bin/backup.sh --full\n"
        "\n"
        "30  2  *  *  * /usr/local/bin/rotate.sh\n"
    ))

    entries = parse_crontab_file(path)

    assert [e.command for e in entries] == [
        "/usr/local/bin/backup.sh --full",
        "/usr/local/bin/rotate.sh",
    ]
    assert entries[0].spec == parse_expression("0,10,20,30,40,50 * * 9 0")
    assert entries[0].line_number == 2
    assert entries[1].schedule == "30 2 * * *"
    assert entries[1].line_number == 4


def test_parse_crontab_file_collapses_duplicates(tmp_path):
    path = _write(tmp_path, (
        "0 * * * * /usr/local/bin/job.sh\n"
        "0  *  * * *   /usr/local/bin/job.sh\n"
        "5 * * * * /usr/local/bin/job.sh\n"
    ))

    entries = parse_crontab_file(path)

    assert len(entries) == 2
    assert [e.line_number for e in entries] == [1, 3]


def test_parse_crontab_file_skips_bad_lines(tmp_path, caplog):
    path = _write(tmp_path, (
        "0 * * * /usr/local/bin/four-fields.sh\n"
        ",,, * * * * /usr/local/bin/bad-token.sh\n"
        "15 * * * * /usr/local/bin/good.sh\n"
    ))

    with caplog.at_level(logging.ERROR, logger="cronrunner.parser"):
        entries = parse_crontab_file(path)

    assert [e.command for e in entries] == ["/usr/local/bin/good.sh"]
    assert "skipping job" in caplog.text


def test_parse_crontab_file_no_jobs(tmp_path, caplog):
    path = _write(tmp_path, "# nothing here\nshort\n")

    with caplog.at_level(logging.INFO, logger="cronrunner.parser"):
        assert parse_crontab_file(path) == []

    assert "No jobs found" in caplog.text


def test_parse_crontab_file_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        parse_crontab_file(tmp_path / "missing")


def test_parse_crontab_file_directory(tmp_path):
    with pytest.raises(FileNotFoundError):
        parse_crontab_file(tmp_path)
