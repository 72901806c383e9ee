"""Tests for symbol version history."""

from ripple.change_detector import ChangeDetector, detect_change_type


class TestRecordSymbol:
    """History bookkeeping and change synthesis."""

    def test_first_version_is_not_a_change(self, symbol_factory):
        detector = ChangeDetector()

        assert detector.record_symbol(symbol_factory("f", signature="def f(a)")) is None
        assert detector.get_changes() == []

    def test_last_symbol_is_previous_version(self, symbol_factory):
        detector = ChangeDetector()
        v1 = symbol_factory("f", signature="def f(a)")
        v2 = symbol_factory("f", signature="def f(a, b)")

        detector.record_symbol(v1)
        assert detector.get_last_symbol(v1) is None
        detector.record_symbol(v2)

        assert detector.get_last_symbol(v2) == v1
        assert detector.get_history(v2) == [v1, v2]

    def test_identity_ignores_position(self, symbol_factory):
        detector = ChangeDetector()
        detector.record_symbol(symbol_factory("f", start_line=1))
        detector.record_symbol(symbol_factory("f", start_line=40, end_line=50))

        assert len(detector) == 1
        assert detector.get_changes() == []

    def test_signature_change_is_logged(self, symbol_factory, fake_clock):
        detector = ChangeDetector(clock=fake_clock)
        v1 = symbol_factory("f", signature="def f(a)")
        v2 = symbol_factory("f", signature="def f(a, b)")
        detector.record_symbol(v1)

        change = detector.record_symbol(v2)

        assert change is not None
        assert change.change_type == "signature"
        assert change.old_symbol == v1
        assert change.timestamp == fake_clock.now
        assert detector.get_changes_for_symbol(v2) == [change]

    def test_parameter_only_change_is_modified(self, symbol_factory):
        detector = ChangeDetector()
        detector.record_symbol(symbol_factory("f", params=["a"]))

        change = detector.record_symbol(symbol_factory("f", params=["a", "b"]))

        assert change.change_type == "modified"

    def test_clear_changes_keeps_history(self, symbol_factory):
        detector = ChangeDetector()
        v1 = symbol_factory("f", return_type="int")
        detector.record_symbol(v1)
        detector.record_symbol(symbol_factory("f", return_type="str"))

        detector.clear_changes()

        assert detector.get_changes() == []
        assert len(detector.get_history(v1)) == 2


class TestDetectChangeType:
    """Classification order: added, removed, signature, type, modified."""

    def test_added_signature(self, symbol_factory):
        assert detect_change_type(symbol_factory("f"), symbol_factory("f", signature="s")) == "added"

    def test_removed_signature(self, symbol_factory):
        assert detect_change_type(symbol_factory("f", signature="s"), symbol_factory("f")) == "removed"

    def test_signature_wins_over_type(self, symbol_factory):
        old = symbol_factory("f", signature="s1", return_type="int")
        new = symbol_factory("f", signature="s2", return_type="str")

        assert detect_change_type(old, new) == "signature"

    def test_return_type(self, symbol_factory):
        old = symbol_factory("f", return_type="int")
        new = symbol_factory("f", return_type="str")

        assert detect_change_type(old, new) == "type"
