"""
Alembic migration: Create the courier marketplace schema.

Creates delivery orders with their tracking events and delivery proofs,
partner bids, order chat, gateway payments, bill payments, and the wallet
ledger. Partial unique indexes enforce one accepted bid per order and
per-customer create idempotency keys.

Revision ID: 001
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# Revision identifiers, used by Alembic
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


ENUM_TYPES = {
    'vehicle_type': ('bike', 'van', 'truck'),
    'delivery_type': ('standard', 'express', 'same_day'),
    'order_status': (
        'pending',
        'accepted',
        'pickup_confirmed',
        'in_transit',
        'delivered',
        'cancelled',
    ),
    'bidding_status': ('open_for_bids', 'bids_closed', 'bid_accepted'),
    'order_payment_status': ('pending', 'completed', 'failed'),
    'bid_status': ('pending', 'accepted', 'rejected', 'withdrawn'),
    'payment_purpose': ('order', 'wallet_topup'),
    'payment_transaction_status': ('pending', 'completed', 'failed'),
    'bill_category': ('airtime', 'data', 'dstv', 'electric'),
    'bill_payment_status': ('pending', 'completed', 'failed'),
    'wallet_transaction_type': ('credit', 'debit'),
    'wallet_transaction_status': ('pending', 'completed', 'failed'),
}


def _enum(name: str) -> postgresql.ENUM:
    return postgresql.ENUM(*ENUM_TYPES[name], name=name, create_type=False)


def _id_column() -> sa.Column:
    return sa.Column(
        'id',
        postgresql.UUID(as_uuid=True),
        nullable=False,
        server_default=sa.text('gen_random_uuid()'),
        comment='Unique identifier for the record',
    )


def _timestamp_columns() -> list[sa.Column]:
    return [
        sa.Column(
            'created_at',
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text('now()'),
            comment='Timestamp when record was created',
        ),
        sa.Column(
            'updated_at',
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text('now()'),
            comment='Timestamp when record was last updated',
        ),
    ]


def upgrade() -> None:
    """
    Upgrade database schema to the initial courier marketplace layout.
    """
    for name, values in ENUM_TYPES.items():
        postgresql.ENUM(*values, name=name).create(op.get_bind(), checkfirst=True)

    # Delivery orders
    op.create_table(
        'delivery_orders',
        _id_column(),
        sa.Column('order_number', sa.String(length=50), nullable=False, comment='Human-readable order number'),
        sa.Column('idempotency_key', sa.String(length=100), nullable=True, comment='Client supplied create idempotency key'),
        sa.Column('customer_id', postgresql.UUID(as_uuid=True), nullable=False, comment='Customer who placed the order'),
        sa.Column('partner_id', postgresql.UUID(as_uuid=True), nullable=True, comment='Partner assigned to deliver the order'),
        sa.Column('vehicle_type', _enum('vehicle_type'), nullable=False, comment='Requested vehicle class'),
        sa.Column('delivery_type', _enum('delivery_type'), nullable=False, comment='Delivery speed tier'),
        sa.Column('pickup_address', sa.Text(), nullable=False),
        sa.Column('dropoff_address', sa.Text(), nullable=False),
        sa.Column('recipient_name', sa.String(length=200), nullable=False),
        sa.Column('recipient_phone', sa.String(length=32), nullable=False),
        sa.Column('distance_km', sa.Numeric(precision=10, scale=2), nullable=False, comment='Distance between pickup and drop-off'),
        sa.Column('estimated_duration_minutes', sa.Integer(), nullable=False, comment='Nominal delivery duration'),
        sa.Column('package_description', sa.Text(), nullable=True),
        sa.Column('package_weight', sa.Numeric(precision=10, scale=2), nullable=True, comment='Package weight in kilograms'),
        sa.Column('declared_value', sa.Numeric(precision=14, scale=2), nullable=True, comment='Declared package value'),
        sa.Column('is_fragile', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('base_fee', sa.Integer(), nullable=False),
        sa.Column('fragile_handling_fee', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_cost', sa.Integer(), nullable=False),
        sa.Column('status', _enum('order_status'), nullable=False, comment='Current lifecycle status'),
        sa.Column('bid_status', _enum('bidding_status'), nullable=False, comment='Bidding state of the order'),
        sa.Column('selected_bid_id', postgresql.UUID(as_uuid=True), nullable=True, comment='Accepted bid'),
        sa.Column('accept_request_id', sa.String(length=100), nullable=True, comment='Request id of the accept command that assigned the partner'),
        sa.Column('payment_status', _enum('order_payment_status'), nullable=False),
        sa.Column('payment_reference', sa.String(length=100), nullable=True),
        sa.Column('bidding_window_minutes', sa.Integer(), nullable=True),
        sa.Column('auto_accept_threshold', sa.Integer(), nullable=True),
        sa.Column('min_bid_decrement', sa.Integer(), nullable=True),
        sa.Column('current_lowest_bid', sa.Integer(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1', comment='Optimistic concurrency version, bumped on every update'),
        sa.Column('estimated_delivery_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('actual_delivery_time', sa.DateTime(timezone=True), nullable=True),
        *_timestamp_columns(),
        sa.PrimaryKeyConstraint('id', name='pk_delivery_orders'),
        sa.UniqueConstraint('order_number', name='uq_delivery_orders_order_number'),
        sa.CheckConstraint('total_cost = base_fee + fragile_handling_fee', name='ck_delivery_orders_total_cost'),
        sa.CheckConstraint(
            "bid_status <> 'open_for_bids' OR partner_id IS NULL",
            name='ck_delivery_orders_no_partner_while_open',
        ),
        sa.CheckConstraint('base_fee >= 0', name='ck_delivery_orders_base_fee_non_negative'),
        sa.CheckConstraint('fragile_handling_fee >= 0', name='ck_delivery_orders_fragile_fee_non_negative'),
        sa.CheckConstraint('distance_km >= 0', name='ck_delivery_orders_distance_non_negative'),
        comment='Customer delivery orders',
    )
    op.create_index('ix_delivery_orders_customer_id', 'delivery_orders', ['customer_id'])
    op.create_index('ix_delivery_orders_partner_id', 'delivery_orders', ['partner_id'])
    op.create_index('ix_delivery_orders_status', 'delivery_orders', ['status'])
    op.create_index('ix_delivery_orders_bid_status', 'delivery_orders', ['bid_status'])
    op.create_index('ix_delivery_orders_customer_created', 'delivery_orders', ['customer_id', 'created_at'])
    op.create_index('ix_delivery_orders_partner_status', 'delivery_orders', ['partner_id', 'status'])
    op.create_index('ix_delivery_orders_bid_status_created', 'delivery_orders', ['bid_status', 'created_at'])
    op.create_index(
        'uq_delivery_orders_customer_idempotency_key',
        'delivery_orders',
        ['customer_id', 'idempotency_key'],
        unique=True,
        postgresql_where=sa.text('idempotency_key IS NOT NULL'),
    )

    # Bids
    op.create_table(
        'bids',
        _id_column(),
        sa.Column('order_id', postgresql.UUID(as_uuid=True), nullable=False, comment='Order the bid is made against'),
        sa.Column('partner_id', postgresql.UUID(as_uuid=True), nullable=False, comment='Partner who made the bid'),
        sa.Column('bid_amount', sa.Integer(), nullable=False),
        sa.Column('vehicle_type', _enum('vehicle_type'), nullable=False),
        sa.Column('estimated_pickup_minutes', sa.Integer(), nullable=False),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('status', _enum('bid_status'), nullable=False),
        *_timestamp_columns(),
        sa.PrimaryKeyConstraint('id', name='pk_bids'),
        sa.ForeignKeyConstraint(['order_id'], ['delivery_orders.id'], name='fk_bids_order_id', ondelete='CASCADE'),
        sa.CheckConstraint('bid_amount > 0', name='ck_bids_amount_positive'),
        sa.CheckConstraint('estimated_pickup_minutes > 0', name='ck_bids_pickup_minutes_positive'),
        comment='Partner offers against delivery orders',
    )
    op.create_index('ix_bids_partner_id', 'bids', ['partner_id'])
    op.create_index('ix_bids_order_created', 'bids', ['order_id', 'created_at'])
    op.create_index('ix_bids_order_status', 'bids', ['order_id', 'status'])
    op.create_index(
        'uq_bids_one_accepted_per_order',
        'bids',
        ['order_id'],
        unique=True,
        postgresql_where=sa.text("status = 'accepted'"),
    )

    # delivery_orders and bids reference each other
    op.create_foreign_key(
        'fk_delivery_orders_selected_bid_id',
        'delivery_orders',
        'bids',
        ['selected_bid_id'],
        ['id'],
        ondelete='SET NULL',
    )

    # Tracking events
    op.create_table(
        'tracking_events',
        _id_column(),
        sa.Column('order_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('status', _enum('order_status'), nullable=False, comment='Status the order moved into'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('actor_id', postgresql.UUID(as_uuid=True), nullable=True, comment='User whose action caused the transition'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id', name='pk_tracking_events'),
        sa.ForeignKeyConstraint(['order_id'], ['delivery_orders.id'], name='fk_tracking_events_order_id', ondelete='CASCADE'),
        comment='Append-only order tracking feed',
    )
    op.create_index('ix_tracking_events_order_created', 'tracking_events', ['order_id', 'created_at'])

    # Delivery proofs
    op.create_table(
        'delivery_proofs',
        _id_column(),
        sa.Column('order_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('partner_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('image_url', sa.String(length=2048), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamp_columns(),
        sa.PrimaryKeyConstraint('id', name='pk_delivery_proofs'),
        sa.UniqueConstraint('order_id', name='uq_delivery_proofs_order_id'),
        sa.ForeignKeyConstraint(['order_id'], ['delivery_orders.id'], name='fk_delivery_proofs_order_id', ondelete='CASCADE'),
    )

    # Chat messages
    op.create_table(
        'chat_messages',
        _id_column(),
        sa.Column('order_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('sender_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('receiver_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id', name='pk_chat_messages'),
        sa.ForeignKeyConstraint(['order_id'], ['delivery_orders.id'], name='fk_chat_messages_order_id', ondelete='CASCADE'),
    )
    op.create_index('ix_chat_messages_order_created', 'chat_messages', ['order_id', 'created_at'])
    op.create_index('ix_chat_messages_receiver_unread', 'chat_messages', ['receiver_id', 'is_read'])

    # Gateway payments
    op.create_table(
        'payment_transactions',
        _id_column(),
        sa.Column('reference', sa.String(length=100), nullable=False),
        sa.Column('order_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('purpose', _enum('payment_purpose'), nullable=False),
        sa.Column('status', _enum('payment_transaction_status'), nullable=False),
        sa.Column('authorization_url', sa.String(length=2048), nullable=True),
        sa.Column('gateway_response', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        *_timestamp_columns(),
        sa.PrimaryKeyConstraint('id', name='pk_payment_transactions'),
        sa.UniqueConstraint('reference', name='uq_payment_transactions_reference'),
        sa.ForeignKeyConstraint(['order_id'], ['delivery_orders.id'], name='fk_payment_transactions_order_id', ondelete='SET NULL'),
        sa.CheckConstraint('amount > 0', name='ck_payment_transactions_amount_positive'),
        comment='Payment gateway transactions',
    )
    op.create_index('ix_payment_transactions_order_id', 'payment_transactions', ['order_id'])
    op.create_index('ix_payment_transactions_user_id', 'payment_transactions', ['user_id'])

    # Bill payments
    op.create_table(
        'bill_payments',
        _id_column(),
        sa.Column('request_id', sa.String(length=64), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('category', _enum('bill_category'), nullable=False),
        sa.Column('provider', sa.String(length=50), nullable=False),
        sa.Column('service_id', sa.String(length=50), nullable=False),
        sa.Column('account_number', sa.String(length=50), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('payment_status', _enum('bill_payment_status'), nullable=False),
        sa.Column('wallet_reference', sa.String(length=100), nullable=False),
        sa.Column('transaction_reference', sa.String(length=100), nullable=True),
        sa.Column('response_code', sa.String(length=10), nullable=True),
        *_timestamp_columns(),
        sa.PrimaryKeyConstraint('id', name='pk_bill_payments'),
        sa.UniqueConstraint('request_id', name='uq_bill_payments_request_id'),
        sa.CheckConstraint('amount > 0', name='ck_bill_payments_amount_positive'),
        comment='Bills aggregator purchases',
    )
    op.create_index('ix_bill_payments_user_created', 'bill_payments', ['user_id', 'created_at'])

    # Wallets
    op.create_table(
        'wallets',
        _id_column(),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('balance', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        *_timestamp_columns(),
        sa.PrimaryKeyConstraint('id', name='pk_wallets'),
        sa.UniqueConstraint('user_id', name='uq_wallets_user_id'),
        sa.CheckConstraint('balance >= 0', name='ck_wallets_balance_non_negative'),
    )

    op.create_table(
        'wallet_transactions',
        _id_column(),
        sa.Column('wallet_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('transaction_type', _enum('wallet_transaction_type'), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('balance_before', sa.Integer(), nullable=False),
        sa.Column('balance_after', sa.Integer(), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('reference', sa.String(length=100), nullable=False),
        sa.Column('status', _enum('wallet_transaction_status'), nullable=False),
        *_timestamp_columns(),
        sa.PrimaryKeyConstraint('id', name='pk_wallet_transactions'),
        sa.UniqueConstraint('reference', name='uq_wallet_transactions_reference'),
        sa.ForeignKeyConstraint(['wallet_id'], ['wallets.id'], name='fk_wallet_transactions_wallet_id', ondelete='CASCADE'),
        sa.CheckConstraint('amount > 0', name='ck_wallet_transactions_amount_positive'),
    )
    op.create_index('ix_wallet_transactions_wallet_created', 'wallet_transactions', ['wallet_id', 'created_at'])


def downgrade() -> None:
    """
    Downgrade database schema by dropping every courier table and enum type.
    """
    op.drop_table('wallet_transactions')
    op.drop_table('wallets')
    op.drop_table('bill_payments')
    op.drop_table('payment_transactions')
    op.drop_table('chat_messages')
    op.drop_table('delivery_proofs')
    op.drop_table('tracking_events')
    op.drop_constraint('fk_delivery_orders_selected_bid_id', 'delivery_orders', type_='foreignkey')
    op.drop_table('bids')
    op.drop_table('delivery_orders')

    for name in reversed(list(ENUM_TYPES)):
        op.execute(f'DROP TYPE IF EXISTS {name}')
