# Overview: Flask CLI command groups for store setup, pack lifecycle and day close.

# backend/lotto/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Store setup:
# - python -m flask stores create --name "Main Street" --code MAIN --timezone America/New_York
#   Create a store. Business days follow the store's timezone.
# - python -m flask games create --code 1234 --name "Lucky 7s" --price-cents 500 --tickets-per-pack 150
#   Seed a game into the catalog.
# - python -m flask games list [--all]
#   List ACTIVE games (use --all to include inactive/discontinued).
# - python -m flask bins create --store-id 1 --name "Bin 1" [--display-order 0]
#   Create a display bin.
# - python -m flask bins list --store-id 1
#   List active bins with their current pack.
# - python -m flask bins deactivate 3
#   Soft-delete an empty bin.
#
# Pack lifecycle:
# - python -m flask packs receive --store-id 1 --game-id 1 --pack-number 0012345 --serial-start 000 --serial-end 149
#   Receive one pack by explicit serial range.
# - python -m flask packs receive --store-id 1 --barcode 123400123450000123456789 [--barcode ...]
#   Batch receive from scanned 24-digit codes.
# - python -m flask packs activate 7 --bin-id 2 [--starting-serial 010 --approved-by 4]
#   Activate a pack into a bin (auto-depletes the previous occupant).
# - python -m flask packs deplete 7 [--reason SOLD_OUT] [--shift-id 3 [--closing-serial 120]]
#   Deplete an ACTIVE pack, optionally closing it in a shift.
# - python -m flask packs list --store-id 1 [--status ACTIVE]
#   List packs.
#
# Day close:
# - python -m flask day summary --store-id 1 [--date 2026-03-01]
#   Print the per-bin day view (read-only).
# - python -m flask day close --store-id 1 --date 2026-03-01 [--count 2=23 --count 3=0]
#   Record variances for counted bins (BIN_ID=TICKETS).
# - python -m flask day cleanup-pending
#   Revert expired PENDING_CLOSE days to OPEN.

import click
from flask.cli import with_appcontext

from .extensions import db
from .services import bin_service, day_close_service, game_service, pack_service, store_service
from .services.bin_service import get_bin_occupant
from .time_utils import parse_iso_date, store_local_date, utcnow


def _fmt_cents(cents):
    if cents is None:
        return "-"
    return f"${cents / 100:.2f}"


@click.group('stores')
def stores_group():
    """Store setup commands."""


@stores_group.command('create')
@click.option('--name', required=True, help='Store name')
@click.option('--code', help='Store code')
@click.option('--timezone', 'tz_name', default='UTC', show_default=True, help='IANA timezone')
@with_appcontext
def create_store_cli(name, code, tz_name):
    """
    Create a store.

    Example:
        flask stores create --name "Main Street" --code MAIN --timezone America/New_York
    """
    try:
        store = store_service.create_store(name, code=code, timezone=tz_name)
        db.session.commit()
        click.echo(f"PASS Created store: {store.name} (ID: {store.id}, TZ: {store.timezone})")
    except ValueError as e:
        db.session.rollback()
        click.echo(f"FAIL Error: {str(e)}")


@click.group('games')
def games_group():
    """Game catalog commands."""


@games_group.command('create')
@click.option('--code', required=True, help='4-digit game code')
@click.option('--name', required=True, help='Game name')
@click.option('--price-cents', type=int, required=True, help='Ticket price in cents')
@click.option('--tickets-per-pack', type=int, default=150, show_default=True)
@click.option('--jurisdiction', default=game_service.DEFAULT_JURISDICTION, show_default=True)
@with_appcontext
def create_game_cli(code, name, price_cents, tickets_per_pack, jurisdiction):
    """Seed a game into the catalog."""
    try:
        game = game_service.create_game(
            code,
            name,
            price_cents,
            tickets_per_pack=tickets_per_pack,
            jurisdiction=jurisdiction,
        )
        db.session.commit()
        click.echo(f"PASS Created game: {game.code} - {game.name} ({_fmt_cents(game.price_cents)})")
    except ValueError as e:
        db.session.rollback()
        click.echo(f"FAIL Error: {str(e)}")


@games_group.command('list')
@click.option('--all', 'show_all', is_flag=True, help='Include inactive games')
@with_appcontext
def list_games_cli(show_all):
    """List games in the catalog."""
    games = game_service.list_games(include_inactive=show_all)
    if not games:
        click.echo("No games found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Code':<6} {'Name':<30} {'Price':<10} {'Pack':<6} {'Status'}")
    click.echo("="*80)
    for game in games:
        click.echo(f"{game.id:<5} {game.code:<6} {game.name[:30]:<30} {_fmt_cents(game.price_cents):<10} "
                   f"{game.tickets_per_pack:<6} {game.status}")
    click.echo("="*80 + "\n")


@click.group('bins')
def bins_group():
    """Bin management commands."""


@bins_group.command('create')
@click.option('--store-id', type=int, required=True, help='Store ID')
@click.option('--name', required=True, help='Bin name')
@click.option('--display-order', type=int, help='Position (0-based); defaults to the end')
@click.option('--location', help='Location in store')
@with_appcontext
def create_bin_cli(store_id, name, display_order, location):
    """Create a display bin."""
    try:
        bin_ = bin_service.create_bin(store_id, name, display_order=display_order, location=location)
        db.session.commit()
        click.echo(f"PASS Created bin #{bin_.bin_number}: {bin_.name} (ID: {bin_.id})")
    except ValueError as e:
        db.session.rollback()
        click.echo(f"FAIL Error: {str(e)}")


@bins_group.command('list')
@click.option('--store-id', type=int, required=True, help='Store ID')
@with_appcontext
def list_bins_cli(store_id):
    """List active bins with their current pack."""
    bins = bin_service.get_active_bins(store_id)
    if not bins:
        click.echo("No bins found.")
        return

    click.echo("\n" + "="*70)
    click.echo(f"{'#':<4} {'ID':<5} {'Name':<20} {'Pack':<12} {'Game'}")
    click.echo("="*70)
    for bin_ in bins:
        pack = get_bin_occupant(bin_.id)
        pack_number = pack.pack_number if pack else "-"
        game_name = pack.game.name if pack else "(empty)"
        click.echo(f"{bin_.bin_number:<4} {bin_.id:<5} {bin_.name[:20]:<20} {pack_number:<12} {game_name}")
    click.echo("="*70 + "\n")


@bins_group.command('deactivate')
@click.argument('bin_id', type=int)
@with_appcontext
def deactivate_bin_cli(bin_id):
    """Soft-delete an empty bin."""
    try:
        bin_ = bin_service.deactivate_bin(bin_id)
        db.session.commit()
        click.echo(f"PASS Deactivated bin {bin_.name}")
    except ValueError as e:
        db.session.rollback()
        click.echo(f"FAIL Error: {str(e)}")


@click.group('packs')
def packs_group():
    """Pack lifecycle commands."""


@packs_group.command('receive')
@click.option('--store-id', type=int, required=True, help='Store ID')
@click.option('--game-id', type=int, help='Game ID (explicit range mode)')
@click.option('--pack-number', help='Pack number (explicit range mode)')
@click.option('--serial-start', help='First ticket serial, e.g. 000')
@click.option('--serial-end', help='Last ticket serial, e.g. 149')
@click.option('--barcode', 'barcodes', multiple=True, help='24-digit code (repeatable, batch mode)')
@with_appcontext
def receive_pack_cli(store_id, game_id, pack_number, serial_start, serial_end, barcodes):
    """
    Receive packs, either one explicit range or a batch of scanned codes.

    Example:
        flask packs receive --store-id 1 --game-id 1 --pack-number 0012345 --serial-start 000 --serial-end 149
        flask packs receive --store-id 1 --barcode 123400123450000123456789
    """
    try:
        if barcodes:
            result = pack_service.receive_packs_from_barcodes(store_id, barcodes)
            db.session.commit()
            for pack in result.created:
                click.echo(f"PASS Received pack {pack.pack_number} ({pack.serial_start}-{pack.serial_end})")
            for code in result.duplicates:
                click.echo(f"WARN  Duplicate: {code}")
            for err in result.errors:
                click.echo(f"FAIL {err['barcode']}: {err['error']}")
            return

        if game_id is None or not pack_number or serial_start is None or serial_end is None:
            click.echo("FAIL Error: --game-id, --pack-number, --serial-start and --serial-end are required without --barcode")
            return

        pack = pack_service.receive_pack(store_id, game_id, pack_number, serial_start, serial_end)
        db.session.commit()
        click.echo(f"PASS Received pack {pack.pack_number} (ID: {pack.id}, {pack.serial_start}-{pack.serial_end})")
    except ValueError as e:
        db.session.rollback()
        click.echo(f"FAIL Error: {str(e)}")


@packs_group.command('activate')
@click.argument('pack_id', type=int)
@click.option('--bin-id', type=int, required=True, help='Target bin ID')
@click.option('--starting-serial', help='Override starting serial (needs --approved-by)')
@click.option('--approved-by', type=int, help='User approving a serial override')
@click.option('--reason', help='Override reason')
@click.option('--user-id', type=int, help='Acting user ID')
@with_appcontext
def activate_pack_cli(pack_id, bin_id, starting_serial, approved_by, reason, user_id):
    """Activate a RECEIVED pack into a bin."""
    try:
        result = pack_service.activate_pack(
            pack_id,
            bin_id,
            actor_user_id=user_id,
            starting_serial=starting_serial,
            serial_override_approved_by=approved_by,
            serial_override_reason=reason,
        )
        db.session.commit()
        click.echo(f"PASS Activated pack {result.pack.pack_number} at serial {result.pack.starting_serial}")
        if result.replaced_pack:
            click.echo(f"   Auto-depleted previous pack {result.replaced_pack.pack_number}")
    except ValueError as e:
        db.session.rollback()
        click.echo(f"FAIL Error: {str(e)}")


@packs_group.command('deplete')
@click.argument('pack_id', type=int)
@click.option('--reason', type=click.Choice(sorted(pack_service.VALID_DEPLETION_REASONS)),
              default=pack_service.DEPLETION_MANUAL, show_default=True)
@click.option('--shift-id', type=int, help='Open shift to record the closing serial in')
@click.option('--closing-serial', help='Last sold serial (default: pack serial_end); needs --shift-id')
@click.option('--user-id', type=int, help='Acting user ID')
@with_appcontext
def deplete_pack_cli(pack_id, reason, shift_id, closing_serial, user_id):
    """Deplete an ACTIVE pack and free its bin."""
    try:
        pack = pack_service.deplete_pack(
            pack_id,
            actor_user_id=user_id,
            reason=reason,
            shift_id=shift_id,
            closing_serial=closing_serial,
        )
        db.session.commit()
        click.echo(f"PASS Depleted pack {pack.pack_number} ({reason})")
    except ValueError as e:
        db.session.rollback()
        click.echo(f"FAIL Error: {str(e)}")


@packs_group.command('list')
@click.option('--store-id', type=int, required=True, help='Store ID')
@click.option('--status', type=click.Choice(sorted(pack_service.VALID_STATUSES)), help='Filter by status')
@with_appcontext
def list_packs_cli(store_id, status):
    """List packs of a store."""
    packs = pack_service.list_packs(store_id, status=status)
    if not packs:
        click.echo("No packs found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Pack':<12} {'Game':<25} {'Range':<12} {'Status':<10} {'Bin':<5} {'Sold'}")
    click.echo("="*90)
    for pack in packs:
        serial_range = f"{pack.serial_start}-{pack.serial_end}"
        bin_label = str(pack.current_bin.bin_number) if pack.current_bin else "-"
        click.echo(f"{pack.id:<5} {pack.pack_number:<12} {pack.game.name[:25]:<25} {serial_range:<12} "
                   f"{pack.status:<10} {bin_label:<5} {pack.tickets_sold_count}")
    click.echo("="*90 + "\n")


@click.group('day')
def day_group():
    """Business day reconciliation commands."""


def _resolve_date(store_id, date_str):
    if date_str:
        return parse_iso_date(date_str)
    store = store_service.get_store(store_id)
    return store_local_date(utcnow(), store.timezone)


@day_group.command('summary')
@click.option('--store-id', type=int, required=True, help='Store ID')
@click.option('--date', 'date_str', help='Business date YYYY-MM-DD (default: today in store time)')
@with_appcontext
def day_summary_cli(store_id, date_str):
    """Print the per-bin day view. Read-only."""
    try:
        summary = day_close_service.compute_day_summary(store_id, _resolve_date(store_id, date_str))
    except ValueError as e:
        click.echo(f"FAIL Error: {str(e)}")
        return

    click.echo("\n" + "="*90)
    click.echo(f"Business day {summary.business_date.isoformat()} (store {store_id})")
    click.echo("="*90)
    click.echo(f"{'#':<4} {'Bin':<16} {'Pack':<12} {'Start':<7} {'End':<7} {'Tickets':<8} {'Sales'}")
    for line in summary.bins:
        tickets = "-" if line.tickets_sold is None else str(line.tickets_sold)
        click.echo(f"{line.bin_number:<4} {line.bin_name[:16]:<16} {line.pack_number or '-':<12} "
                   f"{line.starting_serial or '-':<7} {line.ending_serial or '-':<7} {tickets:<8} "
                   f"{_fmt_cents(line.sales_amount_cents)}")
    for line in summary.depleted_packs:
        click.echo(f"{'-':<4} {'(depleted)':<16} {line.pack_number:<12} {line.starting_serial or '-':<7} "
                   f"{line.ending_serial or '-':<7} {line.tickets_sold or 0:<8} {_fmt_cents(line.sales_amount_cents)}")
    for line in summary.sold_as_unit:
        click.echo(f"{'-':<4} {'(sold as unit)':<16} {line.pack_number:<12} {line.starting_serial or '-':<7} "
                   f"{line.ending_serial or '-':<7} {line.tickets_sold or 0:<8} {_fmt_cents(line.sales_amount_cents)}")
    click.echo("="*90)
    click.echo(f"Total: {summary.total_tickets} tickets, {_fmt_cents(summary.total_sales_cents)}")
    if summary.unscanned_bins:
        names = ", ".join(line.bin_name for line in summary.unscanned_bins)
        click.echo(f"WARN  Bins without a closing scan: {names}")
    click.echo("")


def _parse_counts(values):
    counted = {}
    for value in values:
        bin_part, sep, count_part = value.partition("=")
        if not sep or not bin_part.strip().isdigit() or not count_part.strip().isdigit():
            raise click.BadParameter(f"expected BIN_ID=TICKETS, got '{value}'", param_hint="--count")
        counted[int(bin_part)] = int(count_part)
    return counted


@day_group.command('close')
@click.option('--store-id', type=int, required=True, help='Store ID')
@click.option('--date', 'date_str', help='Business date YYYY-MM-DD (default: today in store time)')
@click.option('--count', 'counts', multiple=True, help='Counted tickets per bin as BIN_ID=TICKETS (repeatable)')
@click.option('--user-id', type=int, help='Acting user ID')
@with_appcontext
def day_close_cli(store_id, date_str, counts, user_id):
    """
    Aggregate the day and record variances for counted bins.

    Example:
        flask day close --store-id 1 --date 2026-03-01 --count 2=23
    """
    counted = _parse_counts(counts)
    try:
        result = day_close_service.close_day(
            store_id,
            _resolve_date(store_id, date_str),
            counted,
            actor_user_id=user_id,
        )
        db.session.commit()
    except ValueError as e:
        db.session.rollback()
        click.echo(f"FAIL Error: {str(e)}")
        return

    summary = result.summary
    click.echo(f"PASS Day {summary.business_date.isoformat()}: {summary.total_tickets} tickets, "
               f"{_fmt_cents(summary.total_sales_cents)}")
    for variance in result.variances:
        click.echo(f"WARN  Variance pack {variance.pack_id}: expected {variance.expected}, "
                   f"counted {variance.actual} ({variance.difference:+d})")


@day_group.command('cleanup-pending')
@with_appcontext
def cleanup_pending_cli():
    """Revert expired PENDING_CLOSE days to OPEN."""
    reverted = day_close_service.cleanup_expired_pending_closes()
    db.session.commit()
    click.echo(f"Reverted {reverted} expired pending day close(s).")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(stores_group)
    app.cli.add_command(games_group)
    app.cli.add_command(bins_group)
    app.cli.add_command(packs_group)
    app.cli.add_command(day_group)
