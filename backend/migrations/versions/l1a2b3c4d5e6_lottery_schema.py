"""lottery pack lifecycle and day close schema

Revision ID: l1a2b3c4d5e6
Revises:
Create Date: 2026-03-02 00:00:00.000000

Creates the lottery schema from scratch:
- stores, games, bins, packs: catalog and physical inventory
- shifts, shift_openings, shift_closings: serial event log
- variances, business_days, day_packs: day-close reconciliation
- ledger_events: audit spine

Pack invariants enforced in the database as well as in services:
- status IN (RECEIVED, ACTIVE, DEPLETED)
- current_bin_id is NULL unless status = ACTIVE
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'l1a2b3c4d5e6'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ============================================================================
    # stores / games
    # ============================================================================
    op.create_table(
        'stores',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(120), nullable=False),
        sa.Column('code', sa.String(32), nullable=True),
        sa.Column('timezone', sa.String(64), nullable=False, server_default='UTC'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default=sa.text('1')),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code', name='uq_stores_code'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_stores_code', 'stores', ['code'])

    op.create_table(
        'games',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('jurisdiction', sa.String(16), nullable=False, server_default='DEFAULT'),
        sa.Column('code', sa.String(4), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('price_cents', sa.Integer(), nullable=False),
        sa.Column('pack_value_cents', sa.Integer(), nullable=True),
        sa.Column('tickets_per_pack', sa.Integer(), nullable=False, server_default=sa.text('150')),
        sa.Column('status', sa.String(16), nullable=False, server_default='ACTIVE'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('jurisdiction', 'code', name='uq_games_jurisdiction_code'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_games_code', 'games', ['code'])
    op.create_index('ix_games_status', 'games', ['status'])

    # ============================================================================
    # bins / packs
    # ============================================================================
    op.create_table(
        'bins',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(64), nullable=False),
        sa.Column('display_order', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('location', sa.String(128), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_bins_store_id', 'bins', ['store_id'])
    op.create_index('ix_bins_is_active', 'bins', ['is_active'])
    op.create_index('ix_bins_store_active_order', 'bins', ['store_id', 'is_active', 'display_order'])

    op.create_table(
        'packs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('game_id', sa.Integer(), nullable=False),
        sa.Column('pack_number', sa.String(16), nullable=False),
        sa.Column('serial_start', sa.String(8), nullable=False),
        sa.Column('serial_end', sa.String(8), nullable=False),
        sa.Column('status', sa.String(16), nullable=False, server_default='RECEIVED'),
        sa.Column('current_bin_id', sa.Integer(), nullable=True),
        sa.Column('activation_serial', sa.String(8), nullable=True),
        sa.Column('serial_override_approved_by', sa.Integer(), nullable=True),
        sa.Column('serial_override_reason', sa.String(255), nullable=True),
        sa.Column('sold_as_unit', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('mark_sold_approved_by', sa.Integer(), nullable=True),
        sa.Column('mark_sold_reason', sa.String(255), nullable=True),
        sa.Column('tickets_sold_count', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('received_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('activated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('activated_by', sa.Integer(), nullable=True),
        sa.Column('depleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('depleted_by', sa.Integer(), nullable=True),
        sa.Column('depletion_reason', sa.String(32), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default=sa.text('1')),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.ForeignKeyConstraint(['game_id'], ['games.id']),
        sa.ForeignKeyConstraint(['current_bin_id'], ['bins.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('store_id', 'pack_number', name='uq_packs_store_pack_number'),
        sa.CheckConstraint("status IN ('RECEIVED', 'ACTIVE', 'DEPLETED')", name='ck_packs_status'),
        sa.CheckConstraint("status = 'ACTIVE' OR current_bin_id IS NULL", name='ck_packs_bin_only_when_active'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_packs_store_id', 'packs', ['store_id'])
    op.create_index('ix_packs_game_id', 'packs', ['game_id'])
    op.create_index('ix_packs_status', 'packs', ['status'])
    op.create_index('ix_packs_current_bin_id', 'packs', ['current_bin_id'])
    op.create_index('ix_packs_store_status', 'packs', ['store_id', 'status'])

    # ============================================================================
    # shifts: serial event log
    # ============================================================================
    op.create_table(
        'shifts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('cashier_id', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(16), nullable=False, server_default='OPEN'),
        sa.Column('opened_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default=sa.text('1')),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_shifts_store_id', 'shifts', ['store_id'])
    op.create_index('ix_shifts_cashier_id', 'shifts', ['cashier_id'])
    op.create_index('ix_shifts_status', 'shifts', ['status'])
    op.create_index('ix_shifts_opened_at', 'shifts', ['opened_at'])
    op.create_index('ix_shifts_store_opened', 'shifts', ['store_id', 'opened_at'])

    op.create_table(
        'shift_openings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shift_id', sa.Integer(), nullable=False),
        sa.Column('pack_id', sa.Integer(), nullable=False),
        sa.Column('opening_serial', sa.String(8), nullable=False),
        sa.Column('recorded_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['shift_id'], ['shifts.id']),
        sa.ForeignKeyConstraint(['pack_id'], ['packs.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('shift_id', 'pack_id', name='uq_shift_openings_shift_pack'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_shift_openings_shift_id', 'shift_openings', ['shift_id'])
    op.create_index('ix_shift_openings_pack_id', 'shift_openings', ['pack_id'])

    op.create_table(
        'shift_closings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shift_id', sa.Integer(), nullable=False),
        sa.Column('pack_id', sa.Integer(), nullable=False),
        sa.Column('closing_serial', sa.String(8), nullable=False),
        sa.Column('entry_method', sa.String(16), nullable=False, server_default='SCAN'),
        sa.Column('manual_entry_authorized_by', sa.Integer(), nullable=True),
        sa.Column('recorded_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['shift_id'], ['shifts.id']),
        sa.ForeignKeyConstraint(['pack_id'], ['packs.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('shift_id', 'pack_id', name='uq_shift_closings_shift_pack'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_shift_closings_shift_id', 'shift_closings', ['shift_id'])
    op.create_index('ix_shift_closings_pack_id', 'shift_closings', ['pack_id'])

    # ============================================================================
    # reconciliation
    # ============================================================================
    op.create_table(
        'variances',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('shift_id', sa.Integer(), nullable=False),
        sa.Column('pack_id', sa.Integer(), nullable=False),
        sa.Column('bin_id', sa.Integer(), nullable=True),
        sa.Column('business_date', sa.Date(), nullable=False),
        sa.Column('expected', sa.Integer(), nullable=False),
        sa.Column('actual', sa.Integer(), nullable=False),
        sa.Column('difference', sa.Integer(), nullable=False),
        sa.Column('reason', sa.String(500), nullable=True),
        sa.Column('approved_by', sa.Integer(), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.ForeignKeyConstraint(['shift_id'], ['shifts.id']),
        sa.ForeignKeyConstraint(['pack_id'], ['packs.id']),
        sa.ForeignKeyConstraint(['bin_id'], ['bins.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('shift_id', 'pack_id', name='uq_variances_shift_pack'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_variances_store_id', 'variances', ['store_id'])
    op.create_index('ix_variances_shift_id', 'variances', ['shift_id'])
    op.create_index('ix_variances_pack_id', 'variances', ['pack_id'])
    op.create_index('ix_variances_approved_by', 'variances', ['approved_by'])
    op.create_index('ix_variances_store_date', 'variances', ['store_id', 'business_date'])

    op.create_table(
        'business_days',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('business_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(16), nullable=False, server_default='OPEN'),
        sa.Column('pending_close_data', sa.JSON(), nullable=True),
        sa.Column('pending_close_by', sa.Integer(), nullable=True),
        sa.Column('pending_close_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('pending_close_expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('opened_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('closed_by', sa.Integer(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default=sa.text('1')),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('store_id', 'business_date', name='uq_business_days_store_date'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_business_days_store_id', 'business_days', ['store_id'])
    op.create_index('ix_business_days_status', 'business_days', ['status'])

    op.create_table(
        'day_packs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('day_id', sa.Integer(), nullable=False),
        sa.Column('pack_id', sa.Integer(), nullable=False),
        sa.Column('bin_id', sa.Integer(), nullable=True),
        sa.Column('starting_serial', sa.String(8), nullable=True),
        sa.Column('ending_serial', sa.String(8), nullable=True),
        sa.Column('tickets_sold', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('sales_amount_cents', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('entry_method', sa.String(16), nullable=True),
        sa.ForeignKeyConstraint(['day_id'], ['business_days.id']),
        sa.ForeignKeyConstraint(['pack_id'], ['packs.id']),
        sa.ForeignKeyConstraint(['bin_id'], ['bins.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('day_id', 'pack_id', name='uq_day_packs_day_pack'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_day_packs_day_id', 'day_packs', ['day_id'])
    op.create_index('ix_day_packs_pack_id', 'day_packs', ['pack_id'])

    # ============================================================================
    # ledger_events: audit spine
    # ============================================================================
    op.create_table(
        'ledger_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('event_type', sa.String(64), nullable=False),
        sa.Column('entity_type', sa.String(32), nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=False),
        sa.Column('actor_user_id', sa.Integer(), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('note', sa.String(255), nullable=True),
        sa.Column('payload', sa.JSON(), nullable=True),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_ledger_events_store_id', 'ledger_events', ['store_id'])
    op.create_index('ix_ledger_events_event_type', 'ledger_events', ['event_type'])
    op.create_index('ix_ledger_events_occurred_at', 'ledger_events', ['occurred_at'])
    op.create_index('ix_ledger_events_store_occurred', 'ledger_events', ['store_id', 'occurred_at'])
    op.create_index('ix_ledger_events_entity', 'ledger_events', ['entity_type', 'entity_id'])


def downgrade():
    op.drop_table('ledger_events')
    op.drop_table('day_packs')
    op.drop_table('business_days')
    op.drop_table('variances')
    op.drop_table('shift_closings')
    op.drop_table('shift_openings')
    op.drop_table('shifts')
    op.drop_table('packs')
    op.drop_table('bins')
    op.drop_table('games')
    op.drop_table('stores')
