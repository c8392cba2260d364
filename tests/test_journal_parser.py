"""Tests for journal encoding and parsing."""

import time

from utils.journal_encoder import encode_line, format_value
from utils.journal_parser import parse_journal_contents, parse_leading_float
from utils.timestamps import make_timestamp, normalize_to_unix_seconds

NOW = 1500000000.0


def test_encode_line_exact_format():
    line = encode_line("stat-name", 111, "2015-01-01T12:34:56.789Z", prefix="unit.test.")
    assert line == "2015-01-01T12:34:56.789Z unit.test.stat-name 111\n"


def test_encode_line_defaults_timestamp():
    fields = encode_line("x", 1).rstrip("\n").split(" ")
    assert len(fields) == 3
    assert abs(normalize_to_unix_seconds(fields[0]) - time.time()) < 5


def test_format_value():
    assert format_value(111.0) == "111"
    assert format_value(1.5) == "1.5"
    assert format_value(7) == "7"


def test_encoded_line_parses_back():
    stamp = make_timestamp()
    records = parse_journal_contents(encode_line("stat", 2.5, stamp, prefix="p."))
    assert len(records) == 1
    assert records[0].name == "p.stat"
    assert records[0].value == 2.5
    assert records[0].collected_at == normalize_to_unix_seconds(stamp)


def test_stale_lines_are_rejected_in_order():
    now_s = int(time.time())
    rejects = []
    data = parse_journal_contents(
        f"1 sample 1.0\n{now_s} sample 2.0\n3 sample 3.0", rejects=rejects
    )
    assert len(data) == 1
    assert data[0].value == 2.0
    assert rejects == ["1 sample 1.0", "3 sample 3.0"]


def test_staleness_boundary():
    rejects = []
    contents = "1499992798 old 1\n1499992799 fresh 1\n"
    data = parse_journal_contents(contents, rejects=rejects, now=NOW)
    assert [r.name for r in data] == ["fresh"]
    assert rejects == ["1499992798 old 1"]


def test_custom_staleness_window():
    data = parse_journal_contents("1499999000 a 1", stale_after_s=60, now=NOW)
    assert data == []


def test_field_count_must_be_three():
    rejects = []
    contents = "1500000000 a 1 extra\n1500000000 a\n1500000000  a 1\n1500000000 ok 1"
    data = parse_journal_contents(contents, rejects=rejects, now=NOW)
    assert [r.name for r in data] == ["ok"]
    assert len(rejects) == 3


def test_values_must_be_finite_numbers():
    rejects = []
    contents = "\n".join(
        [
            "1500000000 a abc",
            "1500000000 b nan",
            "1500000000 c Infinity",
            "1500000000 d 12abc",
            "1500000000 e 0",
            "1500000000 f -0",
        ]
    )
    data = parse_journal_contents(contents, rejects=rejects, now=NOW)
    assert [(r.name, r.value) for r in data] == [("d", 12.0), ("e", 0.0), ("f", 0.0)]
    assert rejects == ["1500000000 a abc", "1500000000 b nan", "1500000000 c Infinity"]


def test_whitespace_in_name_is_rejected():
    rejects = []
    assert parse_journal_contents("1500000000 a\tb 1", rejects=rejects, now=NOW) == []
    assert rejects == ["1500000000 a\tb 1"]


def test_time_only_stamp_is_rejected():
    rejects = []
    assert parse_journal_contents("12:00 sample 1", rejects=rejects) == []
    assert rejects == ["12:00 sample 1"]


def test_empty_lines_are_skipped_not_rejected():
    rejects = []
    assert parse_journal_contents("\n\n", rejects=rejects) == []
    assert rejects == []


def test_rejects_dropped_without_sink():
    assert parse_journal_contents("1 sample 1.0\ngarbage", now=NOW) == []


def test_instance_attached():
    data = parse_journal_contents("1500000000 a 1", instance="i-123", now=NOW)
    assert data[0].instance == "i-123"


def test_parse_leading_float():
    assert parse_leading_float("3.5e2x") == 350.0
    assert parse_leading_float(".5") == 0.5
    assert parse_leading_float("x1") != parse_leading_float("x1")
