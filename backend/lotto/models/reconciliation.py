from __future__ import annotations

from ..extensions import db
from lotto.time_utils import to_utc_z

class Variance(db.Model):
    """
    Mismatch between the ticket count implied by serials (expected) and
    the count reported by the store (actual).

    approved_by NULL means unresolved. Approval is a manager sign-off done
    elsewhere; this row only records who and when.
    """
    __tablename__ = "variances"
    __table_args__ = (
        db.UniqueConstraint("shift_id", "pack_id", name="uq_variances_shift_pack"),
        db.Index("ix_variances_store_date", "store_id", "business_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    shift_id = db.Column(db.Integer, db.ForeignKey("shifts.id"), nullable=False, index=True)
    pack_id = db.Column(db.Integer, db.ForeignKey("packs.id"), nullable=False, index=True)
    bin_id = db.Column(db.Integer, db.ForeignKey("bins.id"), nullable=True)
    business_date = db.Column(db.Date, nullable=False)

    expected = db.Column(db.Integer, nullable=False)
    actual = db.Column(db.Integer, nullable=False)
    difference = db.Column(db.Integer, nullable=False)  # actual - expected
    reason = db.Column(db.String(500), nullable=True)

    approved_by = db.Column(db.Integer, nullable=True, index=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    shift = db.relationship("Shift", backref=db.backref("variances", lazy=True))
    pack = db.relationship("Pack", backref=db.backref("variances", lazy=True))

    @property
    def is_resolved(self) -> bool:
        return self.approved_by is not None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "shift_id": self.shift_id,
            "pack_id": self.pack_id,
            "bin_id": self.bin_id,
            "business_date": self.business_date.isoformat() if self.business_date else None,
            "expected": self.expected,
            "actual": self.actual,
            "difference": self.difference,
            "reason": self.reason,
            "approved_by": self.approved_by,
            "approved_at": to_utc_z(self.approved_at),
            "is_resolved": self.is_resolved,
            "created_at": to_utc_z(self.created_at),
        }

class BusinessDay(db.Model):
    """
    Store-local calendar day being reconciled.

    LIFECYCLE:
    - OPEN: shifts running, no close requested
    - PENDING_CLOSE: closings validated and parked in pending_close_data,
      waiting for commit (expires after PENDING_CLOSE_EXPIRY_MINUTES)
    - CLOSED: DayPack snapshot written, immutable
    """
    __tablename__ = "business_days"
    __table_args__ = (
        db.UniqueConstraint("store_id", "business_date", name="uq_business_days_store_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    business_date = db.Column(db.Date, nullable=False)

    status = db.Column(db.String(16), nullable=False, default="OPEN", index=True)  # OPEN, PENDING_CLOSE, CLOSED

    pending_close_data = db.Column(db.JSON, nullable=True)
    pending_close_by = db.Column(db.Integer, nullable=True)
    pending_close_at = db.Column(db.DateTime(timezone=True), nullable=True)
    pending_close_expires_at = db.Column(db.DateTime(timezone=True), nullable=True)

    opened_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    closed_by = db.Column(db.Integer, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    store = db.relationship("Store", backref=db.backref("business_days", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def clear_pending(self) -> None:
        self.pending_close_data = None
        self.pending_close_by = None
        self.pending_close_at = None
        self.pending_close_expires_at = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "business_date": self.business_date.isoformat() if self.business_date else None,
            "status": self.status,
            "pending_close_by": self.pending_close_by,
            "pending_close_at": to_utc_z(self.pending_close_at),
            "pending_close_expires_at": to_utc_z(self.pending_close_expires_at),
            "opened_at": to_utc_z(self.opened_at),
            "closed_at": to_utc_z(self.closed_at),
            "closed_by": self.closed_by,
        }

class DayPack(db.Model):
    """Committed per-pack figures of a CLOSED business day."""
    __tablename__ = "day_packs"
    __table_args__ = (
        db.UniqueConstraint("day_id", "pack_id", name="uq_day_packs_day_pack"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    day_id = db.Column(db.Integer, db.ForeignKey("business_days.id"), nullable=False, index=True)
    pack_id = db.Column(db.Integer, db.ForeignKey("packs.id"), nullable=False, index=True)
    bin_id = db.Column(db.Integer, db.ForeignKey("bins.id"), nullable=True)

    starting_serial = db.Column(db.String(8), nullable=True)
    ending_serial = db.Column(db.String(8), nullable=True)
    tickets_sold = db.Column(db.Integer, nullable=False, default=0)
    sales_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    entry_method = db.Column(db.String(16), nullable=True)

    day = db.relationship("BusinessDay", backref=db.backref("day_packs", lazy=True))
    pack = db.relationship("Pack")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "day_id": self.day_id,
            "pack_id": self.pack_id,
            "bin_id": self.bin_id,
            "starting_serial": self.starting_serial,
            "ending_serial": self.ending_serial,
            "tickets_sold": self.tickets_sold,
            "sales_amount_cents": self.sales_amount_cents,
            "entry_method": self.entry_method,
        }
