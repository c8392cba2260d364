"""Tests for journal rotation and the journal writers."""

import io

import pytest

from journal.rotator import capture_path_for, rotate_journal
from journal.writer import FileJournal, StreamJournal
from utils.errors import RotationError


@pytest.fixture
def journal(tmp_path):
    path = tmp_path / "stats.journal"
    path.write_text("1500000000 a 1\n", encoding="utf-8")
    return path


def test_capture_path_naming():
    assert capture_path_for("/var/run/stats.journal") == "/var/run/stats.journal.up"


def test_rotate_moves_journal_to_capture(journal):
    result = rotate_journal(str(journal))
    assert result.capture_path == str(journal) + ".up"
    assert result.reused is False
    assert not journal.exists()
    with open(result.capture_path, encoding="utf-8") as f:
        assert f.read() == "1500000000 a 1\n"


def test_existing_capture_is_reused_and_journal_left_alone(journal):
    capture = capture_path_for(str(journal))
    with open(capture, "w", encoding="utf-8") as f:
        f.write("exists")
    result = rotate_journal(str(journal))
    assert result.reused is True
    assert journal.read_text(encoding="utf-8") == "1500000000 a 1\n"
    with open(capture, encoding="utf-8") as f:
        assert f.read() == "exists"


def test_rotating_twice_is_not_an_error(journal):
    first = rotate_journal(str(journal))
    second = rotate_journal(str(journal))
    assert second.capture_path == first.capture_path
    assert second.reused is True


def test_missing_journal(tmp_path):
    with pytest.raises(RotationError) as info:
        rotate_journal(str(tmp_path / "nonesuch"))
    assert info.value.code == "ENOENT"
    assert "ENOENT" in str(info.value)


def test_directory_is_not_a_journal(tmp_path):
    target = tmp_path / "dir"
    target.mkdir()
    with pytest.raises(RotationError) as info:
        rotate_journal(str(target))
    assert info.value.code == "EISDIR"
    assert target.is_dir()


def test_file_journal_appends_lines(tmp_path):
    path = tmp_path / "sub" / "stats.journal"
    writer = FileJournal(str(path))
    writer.write("a\n")
    writer.write("b\n")
    assert path.read_text(encoding="utf-8") == "a\nb\n"


def test_file_journal_recreates_after_rotation(journal):
    writer = FileJournal(str(journal))
    rotate_journal(str(journal))
    writer.write("new\n")
    assert journal.read_text(encoding="utf-8") == "new\n"


def test_stream_journal():
    buf = io.StringIO()
    StreamJournal(buf).write("line\n")
    assert buf.getvalue() == "line\n"
