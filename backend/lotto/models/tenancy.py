from __future__ import annotations

from ..extensions import db
from lotto.time_utils import to_utc_z

class Store(db.Model):
    """
    Retail store running lottery packs.

    TIMEZONE: business days are calendar dates in the store's IANA
    timezone, not UTC. A shift opened at 01:30 UTC belongs to the previous
    day for a store in America/New_York.
    """
    __tablename__ = "stores"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_stores_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    code = db.Column(db.String(32), nullable=True, index=True)

    # IANA name, e.g. "America/Chicago"
    timezone = db.Column(db.String(64), nullable=False, default="UTC")

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Store id={self.id} name={self.name!r} tz={self.timezone!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "timezone": self.timezone,
            "created_at": to_utc_z(self.created_at),
        }
