# Overview: Append-only audit events emitted by pack and day-close operations.

from __future__ import annotations

from typing import Any, Optional
from datetime import datetime

from ..extensions import db
from ..models import LedgerEvent
"""
Ledger invariants

- Append-only audit log for cross-cutting lottery events.
- No domain/business logic in the ledger itself.
- Events are written inside the same DB transaction as the change they record.
- occurred_at is business time; created_at is system time (DB default).
"""


def append_event(
    *,
    store_id: int,
    event_type: str,
    entity_type: str,
    entity_id: int,
    actor_user_id: int | None = None,
    occurred_at: Optional[datetime] = None,
    note: Optional[str] = None,
    payload: Optional[dict[str, Any]] = None,
) -> LedgerEvent:
    """
    Append-only ledger event.

    - No domain logic here.
    - No deletes/updates of existing events.
    - occurred_at is business time; created_at is system time (db default).
    """
    ev = LedgerEvent(
        store_id=store_id,
        event_type=event_type,
        entity_type=entity_type,
        entity_id=entity_id,
        actor_user_id=actor_user_id,
        occurred_at=occurred_at,  # if None, db default applies
        note=note,
        payload=payload,
    )
    db.session.add(ev)
    db.session.flush()  # ensures ev.id is assigned without committing
    return ev


def list_events(
    store_id: int,
    *,
    entity_type: str | None = None,
    entity_id: int | None = None,
    event_type: str | None = None,
) -> list[LedgerEvent]:
    """Events for a store, oldest first."""
    query = db.session.query(LedgerEvent).filter_by(store_id=store_id)
    if entity_type is not None:
        query = query.filter_by(entity_type=entity_type)
    if entity_id is not None:
        query = query.filter_by(entity_id=entity_id)
    if event_type is not None:
        query = query.filter_by(event_type=event_type)
    return query.order_by(LedgerEvent.occurred_at, LedgerEvent.id).all()
