import os

import pytest

from ptupdater.files import PollStatus, file_copy, file_insert, fpoll_inbound_data


def test_file_copy_round_trip(tmp_path):
    data = bytes(range(256)) * 5 + b"tail"
    src = tmp_path / "src.bin"
    dst = tmp_path / "dst.bin"
    src.write_bytes(data)
    count = file_copy(src, dst)
    assert count == len(data)
    assert dst.read_bytes() == data


def test_file_copy_empty_file(tmp_path):
    src = tmp_path / "empty"
    src.write_bytes(b"")
    dst = tmp_path / "out"
    assert file_copy(src, dst) == 0
    assert dst.read_bytes() == b""


def test_file_copy_missing_source_raises(tmp_path):
    dst = tmp_path / "out"
    with pytest.raises(FileNotFoundError):
        file_copy(tmp_path / "missing", dst)
    assert dst.exists()


def test_file_insert_after_matching_lines(tmp_path):
    target = tmp_path / "log.csv"
    target.write_text("header\nrow a\nmarker here\nrow b\n")
    file_insert("log.csv", f"{tmp_path}/", "marker", "inserted\n")
    expected = "header\nrow a\nmarker here\ninserted\nrow b\n"
    assert target.read_text() == expected
    assert sorted(os.listdir(tmp_path)) == ["log.csv"]


def test_file_insert_without_match_keeps_content(tmp_path):
    content = "one\ntwo\nthree\n"
    (tmp_path / "f.txt").write_text(content)
    file_insert("f.txt", f"{tmp_path}/", "^absent$", "x\n")
    assert (tmp_path / "f.txt").read_text() == content


def test_file_insert_every_match(tmp_path):
    (tmp_path / "f.txt").write_text("a1\nb\na2\n")
    file_insert("f.txt", f"{tmp_path}/", "^a", "+\n")
    assert (tmp_path / "f.txt").read_text() == "a1\n+\nb\na2\n+\n"


def test_file_insert_bad_regex_leaves_file(tmp_path):
    content = "keep\n"
    (tmp_path / "f.txt").write_text(content)
    with pytest.raises(ValueError):
        file_insert("f.txt", f"{tmp_path}/", "(unclosed", "x\n")
    assert (tmp_path / "f.txt").read_text() == content
    assert sorted(os.listdir(tmp_path)) == ["f.txt"]


def test_file_insert_missing_source_cleans_temp(tmp_path):
    with pytest.raises(FileNotFoundError):
        file_insert("nothing.txt", f"{tmp_path}/", "x", "y\n")
    assert os.listdir(tmp_path) == []


def test_poll_reports_data_when_readable():
    r, w = os.pipe()
    try:
        os.write(w, b"x")
        assert fpoll_inbound_data(r, 100_000) is PollStatus.GOT_DATA
    finally:
        os.close(r)
        os.close(w)


def test_poll_times_out_without_data():
    r, w = os.pipe()
    try:
        assert fpoll_inbound_data(r, 1000) is PollStatus.TIMEOUT
    finally:
        os.close(r)
        os.close(w)


def test_poll_closed_descriptor_is_error():
    r, w = os.pipe()
    os.close(r)
    os.close(w)
    assert fpoll_inbound_data(r, 1000) is PollStatus.ERROR


def test_poll_none_stream_raises():
    with pytest.raises(ValueError):
        fpoll_inbound_data(None, 1000)