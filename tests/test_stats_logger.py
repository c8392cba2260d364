"""Tests for the stats logger and instance id lookup."""

import os
import socket
from unittest.mock import MagicMock

import pytest
import requests

from agents.stats_logger import StatsLogger, process_memory_usage
from journal.writer import FileJournal, StreamJournal
from utils.errors import ConfigError
from utils.instance_id import InstanceLookupError, look_up_instance_id


class ListJournal:
    def __init__(self):
        self.lines = []

    def write(self, line):
        self.lines.append(line)


@pytest.fixture
def stats():
    return StatsLogger(journal=ListJournal(), prefix="unit.test.")


def test_pid_and_hostname(stats):
    assert stats.pid == os.getpid()
    assert socket.gethostname().startswith(stats.hostname)
    assert "." not in stats.hostname


def test_default_prefix_is_hostname():
    logger = StatsLogger(hostname="web1")
    assert logger.prefix == "web1."
    assert isinstance(logger.journal, StreamJournal)


def test_journal_path_becomes_file_journal(tmp_path):
    logger = StatsLogger(journal=str(tmp_path / "j"), prefix="")
    assert isinstance(logger.journal, FileJournal)
    logger.log_stat("x", 1, "1500000000")
    assert (tmp_path / "j").read_text(encoding="utf-8") == "1500000000 x 1\n"


def test_set_instance_id():
    logger = StatsLogger(journal=ListJournal(), instance="testinstance")
    assert logger.instance == "testinstance"
    assert logger.set_instance_id("testid1234") is logger
    assert logger.instance == "testid1234"


def test_log_stat_writes_journal_lines(stats):
    stats.log_stat("stat-name", 111, "2015-01-01T12:34:56.789Z")
    stats.log_stat("stat2-name", 222, "2015-01-01T12:34:57.789Z")
    assert stats.journal.lines == [
        "2015-01-01T12:34:56.789Z unit.test.stat-name 111\n",
        "2015-01-01T12:34:57.789Z unit.test.stat2-name 222\n",
    ]


def test_log_memory_usage_records_three_points(stats):
    stats.log_memory_usage({"rss": 333, "heap_total": 222, "heap_used": 111})
    assert len(stats.journal.lines) == 3
    stamps = {line.split(" ")[0] for line in stats.journal.lines}
    assert len(stamps) == 1
    assert stats.journal.lines[0].endswith(" unit.test.mem_rss 333\n")


def test_log_memory_usage_skips_missing_values(stats):
    stats.log_memory_usage({"rss": 333, "heap_total": 0})
    assert len(stats.journal.lines) == 1


def test_process_memory_usage_has_rss():
    assert process_memory_usage()["rss"] > 0


def test_rejected_lines_off_by_default(stats):
    assert stats.rejected_lines is None
    assert stats.drain_rejected_lines() == []
    assert stats.rejected_lines is None


def test_swap_returns_previous_sink(stats):
    mine = []
    assert stats.swap_rejected_lines(mine) is None
    assert stats.rejected_lines is mine
    other = []
    assert stats.swap_rejected_lines(other) is mine
    assert stats.rejected_lines is other


def test_drain_installs_fresh_sink():
    logger = StatsLogger(journal=ListJournal(), collect_rejects=True)
    sink = logger.rejected_lines
    sink.append("bad line")
    assert logger.drain_rejected_lines() == ["bad line"]
    assert logger.rejected_lines == []
    assert logger.rejected_lines is not sink


def test_parse_journal_uses_instance_and_sink(stats):
    rejects = []
    stats.swap_rejected_lines(rejects)
    stats.set_instance_id("i-1")
    stamp = stats.make_timestamp()
    stats.log_stat("stat1-name", 111, stamp)
    stats.log_stat("stat2-name", 222, stamp)
    data = stats.parse_journal("".join(stats.journal.lines) + "1 old 3\n")
    assert [r.value for r in data] == [111, 222]
    assert data[1].collected_at == stats.unix_timestamp(stamp)
    assert data[0].instance == "i-1"
    assert rejects == ["1 old 3"]


def test_upload_to_stackdriver_requires_api_key(stats):
    with pytest.raises(ConfigError):
        stats.upload_to_stackdriver("", {"host": "localhost"})


def test_look_up_instance_id():
    session = MagicMock()
    session.get.return_value = MagicMock(status_code=200, text="instance-id: i-0abc\n")
    assert look_up_instance_id(url="http://meta", session=session) == "i-0abc"


def test_look_up_instance_id_errors():
    session = MagicMock()
    session.get.side_effect = requests.ConnectionError("no route")
    with pytest.raises(InstanceLookupError):
        look_up_instance_id(url="http://meta", session=session)

    session = MagicMock()
    session.get.return_value = MagicMock(status_code=404, text="")
    with pytest.raises(InstanceLookupError):
        look_up_instance_id(url="http://meta", session=session)
