# Overview: Domain error types shared by the lottery services.

"""
Error taxonomy for pack accounting and day close.

All errors are local and recoverable by the caller (retry, re-scan or
escalate). Nothing here is raised for an unparseable serial inside an
aggregate: SerialMath degrades those to 0 / None instead.
"""

from __future__ import annotations


class ValidationError(ValueError):
    """400-level input problem (malformed barcode, bad serial format, missing approver)."""


class NotFoundError(ValueError):
    """Referenced store, game, bin, pack, shift or variance does not exist."""


class WrongPackError(ValueError):
    """
    Scanned pack_number does not match the pack expected for the bin.

    Raised before any range check so a foreign pack is never judged on
    its embedded ticket number.
    """

    def __init__(self, expected_pack_number: str, scanned_pack_number: str):
        self.expected_pack_number = expected_pack_number
        self.scanned_pack_number = scanned_pack_number
        super().__init__(
            f"Wrong pack: scanned pack {scanned_pack_number} does not match "
            f"expected pack {expected_pack_number}"
        )


class SerialRangeError(ValueError):
    """Serial falls outside the allowed window; message names the boundary."""

    BELOW_START = "below starting serial"
    ABOVE_MAX = "exceeds pack maximum"

    def __init__(self, serial: str, boundary: str, limit: str, pack_number: str | None = None):
        self.serial = serial
        self.boundary = boundary
        self.limit = limit
        self.pack_number = pack_number
        suffix = f" for pack {pack_number}" if pack_number else ""
        super().__init__(f"Serial {serial} {boundary} {limit}{suffix}")


class PackStateError(ValueError):
    """
    Lifecycle transition attempted from an incompatible state.

    Fatal to the current operation only; the pack is left untouched.
    """


class ManualEntryError(ValueError):
    """Serial was typed by hand where scanner input is required."""


class ShiftError(ValueError):
    """Raised for shift opening/closing capture errors."""


class DayCloseError(ValueError):
    """
    Raised by the two-phase day close.

    ``code`` is machine-readable (see day_close_service.DAY_CLOSE_ERROR_CODES).
    """

    def __init__(self, code: str, message: str, details: dict | None = None):
        self.code = code
        self.details = details or {}
        super().__init__(message)
