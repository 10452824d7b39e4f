from __future__ import annotations

from ..extensions import db
from lotto.time_utils import to_utc_z

class Game(db.Model):
    """
    Lottery game catalog entry.

    Read-only to pack accounting: price and pack size are looked up here,
    never copied onto packs. The 4-digit code is what the first four digits
    of every ticket barcode carry, so it is unique per jurisdiction.
    """
    __tablename__ = "games"
    __table_args__ = (
        db.UniqueConstraint("jurisdiction", "code", name="uq_games_jurisdiction_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    jurisdiction = db.Column(db.String(16), nullable=False, default="DEFAULT")
    code = db.Column(db.String(4), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)

    # Authoritative storage in cents
    price_cents = db.Column(db.Integer, nullable=False)
    pack_value_cents = db.Column(db.Integer, nullable=True)
    tickets_per_pack = db.Column(db.Integer, nullable=False, default=150)

    status = db.Column(db.String(16), nullable=False, default="ACTIVE", index=True)  # ACTIVE, INACTIVE, DISCONTINUED

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Game id={self.id} code={self.code!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "jurisdiction": self.jurisdiction,
            "code": self.code,
            "name": self.name,
            "price_cents": self.price_cents,
            "pack_value_cents": self.pack_value_cents,
            "tickets_per_pack": self.tickets_per_pack,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
        }
