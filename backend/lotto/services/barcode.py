# Overview: Decoding of 24-digit lottery ticket barcodes and validation against a pack.

"""
Ticket barcode layout (24 digits):

    GGGG PPPPPPP TTT IIIIIIIIII
    |    |       |   +-- trailing identifier (10)
    |    |       +------ ticket number (3): candidate ending serial
    |    +-------------- pack number (7)
    +------------------- game code (4)

Validation order matters: identity (pack_number) is checked before range,
so a foreign pack is reported as "wrong pack" whatever ticket number it
carries.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from lotto.errors import SerialRangeError, ValidationError, WrongPackError
from lotto.services import serial_math


BARCODE_LENGTH = 24
GAME_CODE_LENGTH = 4
PACK_NUMBER_LENGTH = 7
TICKET_NUMBER_LENGTH = 3
IDENTIFIER_LENGTH = 10

_BARCODE_RE = re.compile(r"^\d{24}$")


@dataclass(frozen=True)
class ScannedTicket:
    game_code: str
    pack_number: str
    ticket_number: str
    identifier: str
    raw: str

    def to_dict(self) -> dict:
        return {
            "game_code": self.game_code,
            "pack_number": self.pack_number,
            "ticket_number": self.ticket_number,
            "identifier": self.identifier,
        }


def is_barcode(value: str | None) -> bool:
    return bool(value) and bool(_BARCODE_RE.match(value.strip()))


def parse_barcode(value: str | None) -> ScannedTicket:
    """
    Split a 24-digit scanned code into its segments.

    Raises:
        ValidationError: value is not exactly 24 digits
    """
    if value is None:
        raise ValidationError("Barcode is required")
    code = value.strip()
    if not _BARCODE_RE.match(code):
        raise ValidationError(
            f"Barcode must be exactly {BARCODE_LENGTH} digits (got {len(code)} characters)"
        )

    pos = 0
    game_code = code[pos:pos + GAME_CODE_LENGTH]
    pos += GAME_CODE_LENGTH
    pack_number = code[pos:pos + PACK_NUMBER_LENGTH]
    pos += PACK_NUMBER_LENGTH
    ticket_number = code[pos:pos + TICKET_NUMBER_LENGTH]
    pos += TICKET_NUMBER_LENGTH
    identifier = code[pos:pos + IDENTIFIER_LENGTH]

    return ScannedTicket(
        game_code=game_code,
        pack_number=pack_number,
        ticket_number=ticket_number,
        identifier=identifier,
        raw=code,
    )


def validate_ending_serial(
    serial: str,
    *,
    starting_serial: str,
    serial_end: str,
    pack_number: str | None = None,
) -> str:
    """
    Check a candidate ending serial against the day's start and the pack max.

    Both boundaries are inclusive: ending == serial_end is valid.

    Raises:
        ValidationError: serial is not numeric
        SerialRangeError: below starting serial / exceeds pack maximum
    """
    value = serial_math.parse_serial(serial)
    if value is None:
        raise ValidationError(f"Serial '{serial}' must contain only digits")

    start = serial_math.parse_serial(starting_serial)
    if start is not None and value < start:
        raise SerialRangeError(serial, SerialRangeError.BELOW_START, starting_serial, pack_number)

    maximum = serial_math.parse_serial(serial_end)
    if maximum is not None and value > maximum:
        raise SerialRangeError(serial, SerialRangeError.ABOVE_MAX, serial_end, pack_number)

    return serial


def validate_scan_for_pack(
    ticket: ScannedTicket,
    *,
    pack_number: str,
    starting_serial: str,
    serial_end: str,
) -> str:
    """
    Validate a scanned ticket as the ending serial of a specific pack.

    Returns the accepted ending serial, sized to the pack's serial width.

    Raises:
        WrongPackError: scanned pack_number differs from the expected pack
        SerialRangeError: ticket number outside [starting_serial, serial_end]
    """
    if ticket.pack_number != pack_number:
        raise WrongPackError(pack_number, ticket.pack_number)

    width = serial_math.serial_width(serial_end) or TICKET_NUMBER_LENGTH
    serial = serial_math.format_serial(int(ticket.ticket_number), width)
    return validate_ending_serial(
        serial,
        starting_serial=starting_serial,
        serial_end=serial_end,
        pack_number=pack_number,
    )
