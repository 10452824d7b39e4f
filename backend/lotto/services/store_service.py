from __future__ import annotations

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from lotto.extensions import db
from lotto.models import Store
from lotto.errors import NotFoundError, ValidationError
from lotto.services.concurrency import lock_for_update, run_with_retry


def _validate_timezone(tz_name: str) -> str:
    try:
        ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError(f"Unknown timezone '{tz_name}'")
    return tz_name


def create_store(name: str, code: str | None = None, timezone: str = "UTC") -> Store:
    def _op():
        if not name:
            raise ValidationError("Store name is required")

        store = Store(
            name=name,
            code=code,
            timezone=_validate_timezone(timezone or "UTC"),
        )

        db.session.add(store)
        db.session.flush()
        return store

    return run_with_retry(_op)


def get_store(store_id: int) -> Store:
    store = db.session.query(Store).filter_by(id=store_id).first()
    if not store:
        raise NotFoundError(f"Store {store_id} not found")
    return store


def set_store_timezone(store_id: int, timezone: str) -> Store:
    def _op():
        store = lock_for_update(db.session.query(Store).filter_by(id=store_id)).first()
        if not store:
            raise NotFoundError(f"Store {store_id} not found")
        store.timezone = _validate_timezone(timezone)
        db.session.flush()
        return store

    return run_with_retry(_op)
