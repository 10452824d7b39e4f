# Overview: Keystroke-timing classifier that tells barcode-scanner input from typed input.

"""
Scan-only enforcement for closing serials.

WHY: the ending serial decides how many tickets a shift sold. A cashier
typing a lower serial by hand would hide sales. A barcode scanner emits the
whole 24-digit code as one burst (well under 100ms total), while human typing
runs above 100ms per character, so inter-keystroke timing separates them.

RULES:
- Any gap between two characters above max_gap_ms marks the session MANUAL:
  the value is rejected and the field cleared.
- A paste (whole value in one event) has no keystroke timing and is treated
  as scanner input. This is a known bypass kept on purpose until product
  decides otherwise.
- clear() resets all timing state.

The classifier never reads a clock. Callers pass timestamps (ms), which keeps
it deterministic and lets tests drive it with a fake clock.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Mapping, Sequence

from lotto.errors import ManualEntryError
from lotto.services.barcode import BARCODE_LENGTH


DEFAULT_MAX_GAP_MS = 50.0
DEFAULT_IDLE_TIMEOUT_MS = 400.0

SCAN_PENDING = "PENDING"
SCAN_ACCEPTED = "ACCEPTED"
SCAN_REJECTED = "REJECTED"

SOURCE_SCANNER = "SCANNER"
SOURCE_MANUAL = "MANUAL"

REASON_MANUAL_ENTRY = "manual entry detected"
REASON_INVALID_INPUT = "invalid input"
REASON_INCOMPLETE = "incomplete scan"


@dataclass(frozen=True)
class ScanVerdict:
    status: str
    value: str = ""
    reason: str | None = None

    @property
    def accepted(self) -> bool:
        return self.status == SCAN_ACCEPTED

    @property
    def rejected(self) -> bool:
        return self.status == SCAN_REJECTED

    def raise_for_rejection(self) -> None:
        if self.status == SCAN_REJECTED:
            raise ManualEntryError(self.reason or REASON_MANUAL_ENTRY)


def classify_keystrokes(timestamps_ms: Sequence[float], max_gap_ms: float = DEFAULT_MAX_GAP_MS) -> str:
    """
    Classify a sequence of keystroke timestamps as SCANNER or MANUAL.

    Zero or one keystroke carries no timing evidence and counts as SCANNER.
    """
    for previous, current in zip(timestamps_ms, timestamps_ms[1:]):
        if current - previous > max_gap_ms:
            return SOURCE_MANUAL
    return SOURCE_SCANNER


@dataclass
class ScanInputSession:
    """
    Timing state for one input field.

    Not shared across fields or threads; create one per field.
    """
    expected_length: int = BARCODE_LENGTH
    max_gap_ms: float = DEFAULT_MAX_GAP_MS
    idle_timeout_ms: float = DEFAULT_IDLE_TIMEOUT_MS

    _buffer: list[str] = field(default_factory=list, init=False, repr=False)
    _last_ts: float | None = field(default=None, init=False, repr=False)
    _gaps: list[float] = field(default_factory=list, init=False, repr=False)

    @classmethod
    def from_config(cls, config: Mapping, expected_length: int = BARCODE_LENGTH) -> ScanInputSession:
        """Build a session using SCAN_MAX_KEYSTROKE_GAP_MS from an app config mapping."""
        return cls(
            expected_length=expected_length,
            max_gap_ms=float(config.get("SCAN_MAX_KEYSTROKE_GAP_MS", DEFAULT_MAX_GAP_MS)),
        )

    @property
    def value(self) -> str:
        return "".join(self._buffer)

    @property
    def gaps_ms(self) -> list[float]:
        return list(self._gaps)

    def clear(self) -> None:
        self._buffer.clear()
        self._gaps.clear()
        self._last_ts = None

    def _reject(self, reason: str) -> ScanVerdict:
        self.clear()
        return ScanVerdict(status=SCAN_REJECTED, reason=reason)

    def _accept(self, value: str) -> ScanVerdict:
        self.clear()
        return ScanVerdict(status=SCAN_ACCEPTED, value=value)

    def key(self, char: str, timestamp_ms: float) -> ScanVerdict:
        """Feed one typed/scanned character."""
        if not char or not char.isdigit():
            # Scanner suffixes (Enter, Tab) and stray keys carry no serial data
            return ScanVerdict(status=SCAN_PENDING, value=self.value)

        if self._last_ts is not None:
            gap = timestamp_ms - self._last_ts
            self._gaps.append(gap)
            if gap > self.max_gap_ms:
                return self._reject(REASON_MANUAL_ENTRY)

        self._last_ts = timestamp_ms
        self._buffer.append(char)

        if len(self._buffer) >= self.expected_length:
            return self._accept(self.value)
        return ScanVerdict(status=SCAN_PENDING, value=self.value)

    def paste(self, text: str, timestamp_ms: float | None = None) -> ScanVerdict:
        """
        Atomic insertion of a whole value.

        Accepted when it holds exactly expected_length digits.
        """
        self.clear()
        digits = "".join(ch for ch in (text or "") if ch.isdigit())
        if len(digits) != self.expected_length:
            return self._reject(REASON_INVALID_INPUT)
        return self._accept(digits)

    def expire(self, now_ms: float) -> ScanVerdict:
        """
        Check for a partial value left idle (scanner misread, typing stopped).

        Call from the input surface's idle timer.
        """
        if self._buffer and self._last_ts is not None and now_ms - self._last_ts >= self.idle_timeout_ms:
            return self._reject(REASON_INCOMPLETE)
        return ScanVerdict(status=SCAN_PENDING, value=self.value)

    def feed(self, events: Iterable[tuple[str, float]]) -> ScanVerdict:
        """
        Feed (character, timestamp_ms) events until one finishes the session.

        Returns the first ACCEPTED/REJECTED verdict, or the last PENDING one.
        """
        verdict = ScanVerdict(status=SCAN_PENDING, value=self.value)
        for char, ts in events:
            verdict = self.key(char, ts)
            if verdict.status != SCAN_PENDING:
                return verdict
        return verdict
