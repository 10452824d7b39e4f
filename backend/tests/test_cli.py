"""
CLI smoke tests.

Runs the click groups through Flask's CLI runner against the test database.
"""

from lotto.models import Pack, ShiftClosing, Store
from lotto.services import shift_service

from conftest import barcode_for


class TestStoreSetupCommands:

    def test_create_store(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["stores", "create", "--name", "Corner", "--timezone", "America/Chicago"])
        assert "PASS Created store: Corner" in result.output
        assert db_session.query(Store).filter_by(name="Corner").one().timezone == "America/Chicago"

    def test_bad_timezone_reported(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["stores", "create", "--name", "Corner", "--timezone", "Mars/Olympus"])
        assert "FAIL Error" in result.output
        assert db_session.query(Store).count() == 0


class TestPackCommands:

    def test_batch_receive_and_list(self, app, db_session, store, game):
        runner = app.test_cli_runner()
        result = runner.invoke(args=[
            "packs", "receive", "--store-id", str(store.id),
            "--barcode", barcode_for("1234", "0000001", "000"),
            "--barcode", "123",
        ])
        assert "PASS Received pack 0000001 (000-149)" in result.output
        assert "FAIL 123" in result.output

        listed = runner.invoke(args=["packs", "list", "--store-id", str(store.id)])
        assert "0000001" in listed.output
        assert db_session.query(Pack).count() == 1

    def test_activate_and_deplete(self, app, db_session, pack, bins):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["packs", "activate", str(pack.id), "--bin-id", str(bins[0].id)])
        assert "PASS Activated pack 0012345 at serial 000" in result.output

        result = runner.invoke(args=["packs", "deplete", str(pack.id), "--reason", "SOLD_OUT"])
        assert "PASS Depleted pack 0012345 (SOLD_OUT)" in result.output

    def test_deplete_closes_pack_in_shift(self, app, db_session, store, active_pack):
        shift = shift_service.open_shift(store.id)
        db_session.commit()
        runner = app.test_cli_runner()
        result = runner.invoke(args=[
            "packs", "deplete", str(active_pack.id),
            "--shift-id", str(shift.id), "--closing-serial", "120",
        ])
        assert "PASS Depleted pack 0012345 (MANUAL)" in result.output
        closing = db_session.query(ShiftClosing).filter_by(shift_id=shift.id, pack_id=active_pack.id).one()
        assert closing.closing_serial == "120"

    def test_closing_serial_without_shift_reported(self, app, db_session, active_pack):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["packs", "deplete", str(active_pack.id), "--closing-serial", "120"])
        assert "FAIL Error: closing_serial requires a shift_id" in result.output
        assert db_session.get(Pack, active_pack.id).status == "ACTIVE"


class TestDayCommands:

    def test_summary_lists_unscanned_bins(self, app, db_session, store, active_pack, bins):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["day", "summary", "--store-id", str(store.id), "--date", "2026-03-02"])
        assert "Total: 0 tickets" in result.output
        assert "Bins without a closing scan: Bin 1" in result.output

    def test_close_rejects_malformed_count(self, app, db_session, store):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["day", "close", "--store-id", str(store.id), "--count", "abc"])
        assert result.exit_code != 0

    def test_cleanup_pending(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["day", "cleanup-pending"])
        assert "Reverted 0 expired pending day close(s)." in result.output
