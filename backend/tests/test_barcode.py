"""
Barcode parsing and ending-serial validation tests.

Verifies:
- 24-digit layout: game(4) + pack(7) + ticket(3) + identifier(10)
- Wrong pack is reported before any range check
- Both range boundaries are inclusive and named in the error
"""

import pytest

from lotto.errors import SerialRangeError, ValidationError, WrongPackError
from lotto.services import barcode

from conftest import barcode_for


class TestParseBarcode:

    def test_segments(self):
        ticket = barcode.parse_barcode(barcode_for("1234", "0012345", "067"))
        assert ticket.game_code == "1234"
        assert ticket.pack_number == "0012345"
        assert ticket.ticket_number == "067"
        assert ticket.identifier == "0123456789"

    def test_surrounding_whitespace_is_ignored(self):
        code = barcode_for("1234", "0012345", "067")
        assert barcode.parse_barcode(f"  {code}\n").raw == code

    @pytest.mark.parametrize("value", [None, "", "123", "12340012345067012345678X", "1" * 25])
    def test_malformed_code_raises(self, value):
        with pytest.raises(ValidationError):
            barcode.parse_barcode(value)

    def test_is_barcode(self):
        assert barcode.is_barcode("1" * 24)
        assert not barcode.is_barcode("1" * 23)
        assert not barcode.is_barcode(None)


class TestValidateEndingSerial:

    def test_end_equal_to_pack_max_is_valid(self):
        assert barcode.validate_ending_serial("149", starting_serial="000", serial_end="149") == "149"

    def test_end_above_pack_max(self):
        with pytest.raises(SerialRangeError) as exc:
            barcode.validate_ending_serial("150", starting_serial="000", serial_end="149", pack_number="0012345")
        assert "exceeds pack maximum" in str(exc.value)
        assert exc.value.boundary == SerialRangeError.ABOVE_MAX

    def test_end_below_start(self):
        with pytest.raises(SerialRangeError) as exc:
            barcode.validate_ending_serial("029", starting_serial="030", serial_end="149")
        assert "below starting serial" in str(exc.value)

    def test_end_equal_to_start_is_valid(self):
        assert barcode.validate_ending_serial("030", starting_serial="030", serial_end="149") == "030"

    def test_non_numeric(self):
        with pytest.raises(ValidationError):
            barcode.validate_ending_serial("abc", starting_serial="000", serial_end="149")


class TestValidateScanForPack:

    def test_matching_pack_returns_serial(self):
        ticket = barcode.parse_barcode(barcode_for("1234", "0012345", "067"))
        serial = barcode.validate_scan_for_pack(
            ticket, pack_number="0012345", starting_serial="045", serial_end="149",
        )
        assert serial == "067"

    def test_wrong_pack_rejected(self):
        ticket = barcode.parse_barcode(barcode_for("1234", "9999999", "067"))
        with pytest.raises(WrongPackError) as exc:
            barcode.validate_scan_for_pack(
                ticket, pack_number="0012345", starting_serial="045", serial_end="149",
            )
        assert "Wrong pack" in str(exc.value)
        assert exc.value.scanned_pack_number == "9999999"

    def test_wrong_pack_checked_before_range(self):
        # Ticket 999 is out of range too, but identity wins
        ticket = barcode.parse_barcode(barcode_for("1234", "9999999", "999"))
        with pytest.raises(WrongPackError):
            barcode.validate_scan_for_pack(
                ticket, pack_number="0012345", starting_serial="045", serial_end="149",
            )

    def test_scan_sized_to_pack_width(self):
        ticket = barcode.parse_barcode(barcode_for("1234", "0012345", "067"))
        serial = barcode.validate_scan_for_pack(
            ticket, pack_number="0012345", starting_serial="0000", serial_end="0299",
        )
        assert serial == "0067"
