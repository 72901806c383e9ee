"""Tests for the error taxonomy and error log."""

from ripple.errors import ErrorLog, ParserNotFoundError, ParsingError, RippleError


def test_error_hierarchy():
    err = ParsingError("bad token", "a.py")

    assert isinstance(err, RippleError)
    assert err.filename == "a.py"
    assert "a.rb" in str(ParserNotFoundError("a.rb"))


def test_error_log_is_bounded():
    log = ErrorLog(max_size=3)
    for i in range(5):
        log.record(ValueError(str(i)), "graph_manager", "update_file", {"n": i})

    entries = log.entries()
    assert len(log) == 3
    assert [str(e.error) for e in entries] == ["2", "3", "4"]
    assert entries[0].metadata == {"n": 2}

    log.clear()
    assert len(log) == 0
