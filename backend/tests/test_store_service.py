"""
Store setup, timezone and audit-ledger tests.
"""

from datetime import timedelta

import pytest

from lotto.errors import NotFoundError, ValidationError
from lotto.services import ledger_service, pack_service, store_service
from lotto.time_utils import store_day_bounds_utc, store_local_date

from conftest import T0


class TestStores:

    def test_unknown_timezone_rejected(self, db_session):
        with pytest.raises(ValidationError):
            store_service.create_store("Corner", timezone="Mars/Olympus")

    def test_set_timezone(self, db_session, store):
        store_service.set_store_timezone(store.id, "America/New_York")
        assert store_service.get_store(store.id).timezone == "America/New_York"

    def test_missing_store(self, db_session):
        with pytest.raises(NotFoundError):
            store_service.get_store(999)


class TestStoreTime:

    def test_local_date_crosses_midnight(self):
        late_utc = T0.replace(hour=3)  # 22:00 previous evening in New York (EST)
        assert store_local_date(late_utc, "America/New_York") == (T0 - timedelta(days=1)).date()
        assert store_local_date(late_utc, "UTC") == T0.date()

    def test_unknown_zone_falls_back_to_utc(self):
        assert store_local_date(T0, "Nowhere/Special") == T0.date()

    def test_dst_day_is_23_hours(self):
        # US spring-forward: 2026-03-08
        start, end = store_day_bounds_utc(T0.date() + timedelta(days=6), "America/New_York")
        assert end - start == timedelta(hours=23)


class TestLedger:

    def test_lifecycle_events_in_order(self, db_session, active_pack):
        pack_service.deplete_pack(active_pack.id, actor_user_id=5, now=T0 + timedelta(hours=1))
        events = ledger_service.list_events(active_pack.store_id, entity_type="pack", entity_id=active_pack.id)
        assert [e.event_type for e in events] == ["pack.received", "pack.activated", "pack.depleted"]
        assert events[-1].actor_user_id == 5
        assert events[-1].payload["reason"] == pack_service.DEPLETION_MANUAL
