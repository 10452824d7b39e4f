"""
Scan-only input classifier tests.

Verifies:
- Scanner bursts (small inter-key gaps) are accepted
- Human typing (large gaps) is rejected and the field cleared
- Paste is treated as scanner input
- Idle partial input expires
"""

import pytest

from lotto.errors import ManualEntryError
from lotto.services.scan_classifier import (
    REASON_INCOMPLETE,
    REASON_INVALID_INPUT,
    REASON_MANUAL_ENTRY,
    SCAN_ACCEPTED,
    SCAN_PENDING,
    SCAN_REJECTED,
    SOURCE_MANUAL,
    SOURCE_SCANNER,
    ScanInputSession,
    classify_keystrokes,
)

CODE = "123400123450670123456789"


def _events(text, start_ms=0.0, gap_ms=10.0):
    return [(ch, start_ms + i * gap_ms) for i, ch in enumerate(text)]


class TestClassifyKeystrokes:

    def test_fast_burst_is_scanner(self):
        assert classify_keystrokes([0, 5, 12, 19]) == SOURCE_SCANNER

    def test_one_slow_gap_is_manual(self):
        assert classify_keystrokes([0, 5, 150, 155]) == SOURCE_MANUAL

    def test_single_keystroke_has_no_evidence(self):
        assert classify_keystrokes([0]) == SOURCE_SCANNER
        assert classify_keystrokes([]) == SOURCE_SCANNER

    def test_gap_equal_to_threshold_is_scanner(self):
        assert classify_keystrokes([0, 50], max_gap_ms=50) == SOURCE_SCANNER


class TestScanInputSession:

    def test_scanner_burst_accepted(self):
        session = ScanInputSession()
        verdict = session.feed(_events(CODE, gap_ms=15))
        assert verdict.status == SCAN_ACCEPTED
        assert verdict.value == CODE
        assert session.value == ""

    def test_typed_input_rejected_and_cleared(self):
        session = ScanInputSession()
        verdict = session.feed(_events(CODE, gap_ms=120))
        assert verdict.status == SCAN_REJECTED
        assert verdict.reason == REASON_MANUAL_ENTRY
        assert session.value == ""
        with pytest.raises(ManualEntryError):
            verdict.raise_for_rejection()

    def test_slow_keystroke_mid_scan_rejects(self):
        session = ScanInputSession()
        events = _events(CODE[:10], gap_ms=10) + _events(CODE[10:], start_ms=500, gap_ms=10)
        verdict = session.feed(events)
        assert verdict.rejected

    def test_rescan_after_rejection(self):
        session = ScanInputSession()
        assert session.feed(_events(CODE, gap_ms=200)).rejected
        verdict = session.feed(_events(CODE, start_ms=10_000, gap_ms=5))
        assert verdict.accepted

    def test_non_digit_keys_ignored(self):
        session = ScanInputSession()
        session.key("1", 0)
        verdict = session.key("\n", 5)
        assert verdict.status == SCAN_PENDING
        assert session.value == "1"

    def test_partial_input_pending(self):
        session = ScanInputSession()
        verdict = session.feed(_events(CODE[:5], gap_ms=10))
        assert verdict.status == SCAN_PENDING
        assert verdict.value == CODE[:5]

    def test_paste_accepted(self):
        session = ScanInputSession()
        verdict = session.paste(CODE)
        assert verdict.accepted
        assert verdict.value == CODE

    def test_paste_wrong_length_rejected(self):
        session = ScanInputSession()
        verdict = session.paste("12345")
        assert verdict.rejected
        assert verdict.reason == REASON_INVALID_INPUT

    def test_idle_partial_expires(self):
        session = ScanInputSession()
        session.feed(_events(CODE[:8], gap_ms=10))
        assert session.expire(now_ms=100).status == SCAN_PENDING
        verdict = session.expire(now_ms=70 + 400)
        assert verdict.rejected
        assert verdict.reason == REASON_INCOMPLETE
        assert session.value == ""

    def test_clear_resets_timing(self):
        session = ScanInputSession()
        session.key("1", 0)
        session.clear()
        # Without the reset the 1000ms gap would count as typing
        verdict = session.feed(_events(CODE, start_ms=1000, gap_ms=5))
        assert verdict.accepted
        assert session.gaps_ms == []

    def test_custom_threshold(self):
        session = ScanInputSession(max_gap_ms=200)
        assert session.feed(_events(CODE, gap_ms=120)).accepted

    def test_threshold_from_config(self):
        session = ScanInputSession.from_config({"SCAN_MAX_KEYSTROKE_GAP_MS": 150})
        assert session.max_gap_ms == 150.0
        assert session.feed(_events(CODE, gap_ms=120)).accepted
        assert ScanInputSession.from_config({}).max_gap_ms == 50.0
