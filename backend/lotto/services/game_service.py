# Overview: Read access to the lottery game catalog (plus seeding for the CLI).

"""
Game catalog lookups.

The catalog is maintained elsewhere (bulk import is not part of this
package); pack accounting only reads it. create_game exists so stores can be
seeded from the CLI and tests.
"""

from __future__ import annotations

import re

from lotto.extensions import db
from lotto.models import Game
from lotto.errors import NotFoundError, ValidationError


GAME_STATUS_ACTIVE = "ACTIVE"
GAME_STATUS_INACTIVE = "INACTIVE"
GAME_STATUS_DISCONTINUED = "DISCONTINUED"
VALID_GAME_STATUSES = {GAME_STATUS_ACTIVE, GAME_STATUS_INACTIVE, GAME_STATUS_DISCONTINUED}

DEFAULT_JURISDICTION = "DEFAULT"

_GAME_CODE_RE = re.compile(r"^\d{4}$")


def create_game(
    code: str,
    name: str,
    price_cents: int,
    *,
    pack_value_cents: int | None = None,
    tickets_per_pack: int = 150,
    jurisdiction: str = DEFAULT_JURISDICTION,
    status: str = GAME_STATUS_ACTIVE,
) -> Game:
    if not code or not _GAME_CODE_RE.match(code):
        raise ValidationError("Game code must be exactly 4 digits")
    if not name:
        raise ValidationError("Game name is required")
    if isinstance(price_cents, bool) or not isinstance(price_cents, int) or price_cents < 0:
        raise ValidationError("price_cents must be a non-negative integer")
    if tickets_per_pack <= 0:
        raise ValidationError("tickets_per_pack must be positive")
    if status not in VALID_GAME_STATUSES:
        raise ValidationError(
            f"Invalid game status '{status}'. Must be one of: {', '.join(sorted(VALID_GAME_STATUSES))}"
        )

    existing = db.session.query(Game).filter_by(jurisdiction=jurisdiction, code=code).first()
    if existing:
        raise ValidationError(f"Game code {code} already exists in {jurisdiction}")

    game = Game(
        jurisdiction=jurisdiction,
        code=code,
        name=name,
        price_cents=price_cents,
        pack_value_cents=pack_value_cents if pack_value_cents is not None else price_cents * tickets_per_pack,
        tickets_per_pack=tickets_per_pack,
        status=status,
    )
    db.session.add(game)
    db.session.flush()
    return game


def get_game(game_id: int) -> Game:
    game = db.session.query(Game).filter_by(id=game_id).first()
    if not game:
        raise NotFoundError(f"Game {game_id} not found")
    return game


def lookup_game_by_code(code: str, jurisdiction: str = DEFAULT_JURISDICTION) -> Game:
    """
    Resolve the game a barcode's first four digits refer to.

    Raises:
        NotFoundError: unknown code, or the game is no longer ACTIVE
    """
    game = db.session.query(Game).filter_by(jurisdiction=jurisdiction, code=code).first()
    if not game:
        raise NotFoundError(f"Game code {code} not found")
    if game.status != GAME_STATUS_ACTIVE:
        raise NotFoundError(f"Game code {code} is {game.status.lower()}")
    return game


def list_games(*, include_inactive: bool = False) -> list[Game]:
    query = db.session.query(Game)
    if not include_inactive:
        query = query.filter_by(status=GAME_STATUS_ACTIVE)
    return query.order_by(Game.code).all()
