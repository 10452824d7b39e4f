from __future__ import annotations

from ..extensions import db
from lotto.time_utils import to_utc_z

class Bin(db.Model):
    """
    Numbered display slot inside a store.

    OCCUPANCY: a bin never lists its packs. The single source of truth is
    Pack.current_bin_id, and activation is what keeps at most one ACTIVE
    pack pointing at a bin.

    SOFT DELETE: bins are deactivated, never deleted, so historical day
    snapshots keep resolving their bin.
    """
    __tablename__ = "bins"
    __table_args__ = (
        db.Index("ix_bins_store_active_order", "store_id", "is_active", "display_order"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    name = db.Column(db.String(64), nullable=False)
    display_order = db.Column(db.Integer, nullable=False, default=0)
    location = db.Column(db.String(128), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    store = db.relationship("Store", backref=db.backref("bins", lazy=True))

    @property
    def bin_number(self) -> int:
        return (self.display_order or 0) + 1

    def __repr__(self) -> str:
        return f"<Bin id={self.id} name={self.name!r} store_id={self.store_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "name": self.name,
            "bin_number": self.bin_number,
            "display_order": self.display_order,
            "location": self.location,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }

class Pack(db.Model):
    """
    Physical booklet of scratch tickets.

    LIFECYCLE:
    - RECEIVED: on the shelf, not for sale, no bin
    - ACTIVE: in exactly one bin, being sold down
    - DEPLETED: terminal, no bin

    SERIALS: serial_start/serial_end are fixed-width digit strings; the
    width is the pack's serial format ("000".."149").

    tickets_sold_count is a cache recomputed from serials on every closing.
    Never edit it by hand.
    """
    __tablename__ = "packs"
    __table_args__ = (
        db.UniqueConstraint("store_id", "pack_number", name="uq_packs_store_pack_number"),
        db.Index("ix_packs_store_status", "store_id", "status"),
        db.CheckConstraint(
            "status IN ('RECEIVED', 'ACTIVE', 'DEPLETED')",
            name="ck_packs_status",
        ),
        db.CheckConstraint(
            "status = 'ACTIVE' OR current_bin_id IS NULL",
            name="ck_packs_bin_only_when_active",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    game_id = db.Column(db.Integer, db.ForeignKey("games.id"), nullable=False, index=True)

    pack_number = db.Column(db.String(16), nullable=False)
    serial_start = db.Column(db.String(8), nullable=False)
    serial_end = db.Column(db.String(8), nullable=False)

    status = db.Column(db.String(16), nullable=False, default="RECEIVED", index=True)
    current_bin_id = db.Column(db.Integer, db.ForeignKey("bins.id"), nullable=True, index=True)

    # Serial the pack went on sale at (serial_start unless overridden)
    activation_serial = db.Column(db.String(8), nullable=True)
    serial_override_approved_by = db.Column(db.Integer, nullable=True)
    serial_override_reason = db.Column(db.String(255), nullable=True)

    # Pre-sold packs skip per-ticket accounting
    sold_as_unit = db.Column(db.Boolean, nullable=False, default=False)
    mark_sold_approved_by = db.Column(db.Integer, nullable=True)
    mark_sold_reason = db.Column(db.String(255), nullable=True)

    tickets_sold_count = db.Column(db.Integer, nullable=False, default=0)

    received_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    activated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    activated_by = db.Column(db.Integer, nullable=True)
    depleted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    depleted_by = db.Column(db.Integer, nullable=True)
    depletion_reason = db.Column(db.String(32), nullable=True)  # SOLD_OUT, MANUAL, AUTO_REPLACED, SOLD_AS_UNIT

    version_id = db.Column(db.Integer, nullable=False, default=1)

    store = db.relationship("Store", backref=db.backref("packs", lazy=True))
    game = db.relationship("Game", backref=db.backref("packs", lazy=True))
    current_bin = db.relationship("Bin", foreign_keys=[current_bin_id])
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def starting_serial(self) -> str:
        return self.activation_serial or self.serial_start

    def __repr__(self) -> str:
        return f"<Pack id={self.id} pack_number={self.pack_number!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "game_id": self.game_id,
            "pack_number": self.pack_number,
            "serial_start": self.serial_start,
            "serial_end": self.serial_end,
            "status": self.status,
            "current_bin_id": self.current_bin_id,
            "activation_serial": self.activation_serial,
            "serial_override_approved_by": self.serial_override_approved_by,
            "serial_override_reason": self.serial_override_reason,
            "sold_as_unit": self.sold_as_unit,
            "mark_sold_approved_by": self.mark_sold_approved_by,
            "mark_sold_reason": self.mark_sold_reason,
            "tickets_sold_count": self.tickets_sold_count,
            "received_at": to_utc_z(self.received_at),
            "activated_at": to_utc_z(self.activated_at),
            "activated_by": self.activated_by,
            "depleted_at": to_utc_z(self.depleted_at),
            "depleted_by": self.depleted_by,
            "depletion_reason": self.depletion_reason,
            "version_id": self.version_id,
        }
