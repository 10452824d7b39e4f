"""
Bin management.

DESIGN PRINCIPLES:
- Bins are soft-deleted (is_active=False), never removed
- Inactive bins are excluded from every listing and day view
- A bin holding an ACTIVE pack cannot be deactivated
"""

from __future__ import annotations

from lotto.extensions import db
from lotto.models import Bin, Pack
from lotto.errors import NotFoundError, PackStateError, ValidationError
from lotto.services.concurrency import lock_store, run_with_retry


def create_bin(
    store_id: int,
    name: str,
    display_order: int | None = None,
    location: str | None = None,
) -> Bin:
    """
    Create a bin; display_order defaults to the end of the store's list.
    """
    def _op():
        lock_store(store_id)

        if not name:
            raise ValidationError("Bin name is required")

        order = display_order
        if order is None:
            order = db.session.query(Bin).filter_by(store_id=store_id, is_active=True).count()
        if order < 0:
            raise ValidationError("display_order cannot be negative")

        bin_ = Bin(
            store_id=store_id,
            name=name,
            display_order=order,
            location=location,
            is_active=True,
        )
        db.session.add(bin_)
        db.session.flush()
        return bin_

    return run_with_retry(_op)


def get_bin(bin_id: int) -> Bin:
    bin_ = db.session.query(Bin).filter_by(id=bin_id).first()
    if not bin_:
        raise NotFoundError(f"Bin {bin_id} not found")
    return bin_


def get_active_bins(store_id: int) -> list[Bin]:
    """Get all active bins for a store in display order."""
    return db.session.query(Bin).filter_by(
        store_id=store_id,
        is_active=True
    ).order_by(Bin.display_order, Bin.id).all()


def get_bin_occupant(bin_id: int) -> Pack | None:
    """The ACTIVE pack currently in the bin, if any."""
    return db.session.query(Pack).filter_by(
        current_bin_id=bin_id,
        status="ACTIVE",
    ).first()


def deactivate_bin(bin_id: int) -> Bin:
    """
    Deactivate a bin (soft delete).

    Raises:
        PackStateError: an ACTIVE pack is still in the bin
    """
    bin_ = get_bin(bin_id)

    def _op():
        lock_store(bin_.store_id)

        occupant = get_bin_occupant(bin_id)
        if occupant:
            raise PackStateError(
                f"Cannot deactivate bin with active pack {occupant.pack_number}. Deplete or move it first."
            )

        bin_.is_active = False
        db.session.flush()
        return bin_

    return run_with_retry(_op)
