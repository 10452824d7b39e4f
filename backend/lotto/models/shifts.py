from __future__ import annotations

from ..extensions import db
from lotto.time_utils import to_utc_z

class Shift(db.Model):
    """
    Cashier work shift.

    LIFECYCLE:
    - OPEN: serials can be captured
    - CLOSED: opening/closing rows are frozen

    A business day is the set of shifts whose opened_at falls on one
    store-local calendar date.
    """
    __tablename__ = "shifts"
    __table_args__ = (
        db.Index("ix_shifts_store_opened", "store_id", "opened_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    cashier_id = db.Column(db.Integer, nullable=True, index=True)

    status = db.Column(db.String(16), nullable=False, default="OPEN", index=True)  # OPEN, CLOSED

    opened_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    store = db.relationship("Store", backref=db.backref("shifts", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "cashier_id": self.cashier_id,
            "status": self.status,
            "opened_at": to_utc_z(self.opened_at),
            "closed_at": to_utc_z(self.closed_at),
            "version_id": self.version_id,
        }

class ShiftOpening(db.Model):
    """
    Serial observed when a shift starts handling a pack.

    APPEND-ONLY: one row per (shift, pack), never updated.
    """
    __tablename__ = "shift_openings"
    __table_args__ = (
        db.UniqueConstraint("shift_id", "pack_id", name="uq_shift_openings_shift_pack"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shift_id = db.Column(db.Integer, db.ForeignKey("shifts.id"), nullable=False, index=True)
    pack_id = db.Column(db.Integer, db.ForeignKey("packs.id"), nullable=False, index=True)
    opening_serial = db.Column(db.String(8), nullable=False)
    recorded_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    shift = db.relationship("Shift", backref=db.backref("openings", lazy=True))
    pack = db.relationship("Pack", backref=db.backref("shift_openings", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shift_id": self.shift_id,
            "pack_id": self.pack_id,
            "opening_serial": self.opening_serial,
            "recorded_at": to_utc_z(self.recorded_at),
        }

class ShiftClosing(db.Model):
    """
    Serial on the last ticket scanned when a shift stops handling a pack.

    APPEND-ONLY: one row per (shift, pack), never updated. MANUAL rows
    carry the id of whoever authorized typing the serial in.
    """
    __tablename__ = "shift_closings"
    __table_args__ = (
        db.UniqueConstraint("shift_id", "pack_id", name="uq_shift_closings_shift_pack"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shift_id = db.Column(db.Integer, db.ForeignKey("shifts.id"), nullable=False, index=True)
    pack_id = db.Column(db.Integer, db.ForeignKey("packs.id"), nullable=False, index=True)
    closing_serial = db.Column(db.String(8), nullable=False)

    entry_method = db.Column(db.String(16), nullable=False, default="SCAN")  # SCAN, MANUAL, DEPLETION
    manual_entry_authorized_by = db.Column(db.Integer, nullable=True)

    recorded_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    shift = db.relationship("Shift", backref=db.backref("closings", lazy=True))
    pack = db.relationship("Pack", backref=db.backref("shift_closings", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shift_id": self.shift_id,
            "pack_id": self.pack_id,
            "closing_serial": self.closing_serial,
            "entry_method": self.entry_method,
            "manual_entry_authorized_by": self.manual_entry_authorized_by,
            "recorded_at": to_utc_z(self.recorded_at),
        }
