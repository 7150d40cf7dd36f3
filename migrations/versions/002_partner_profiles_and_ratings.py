"""
Alembic migration: Add partner profiles, ratings and partner earnings.

Partner profiles carry the online toggle, vehicle details, lifetime
earnings and the running average rating. Ratings and earnings are unique
per order.

Revision ID: 002
Revises: 001
Create Date: 2026-10-18 15:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# Revision identifiers, used by Alembic
revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


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
    Upgrade database schema with partner profiles, ratings and earnings.
    """
    vehicle_type = postgresql.ENUM('bike', 'van', 'truck', name='vehicle_type', create_type=False)

    op.create_table(
        'partner_profiles',
        _id_column(),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False, comment='Partner the profile belongs to'),
        sa.Column('vehicle_type', vehicle_type, nullable=True),
        sa.Column('vehicle_registration', sa.String(length=32), nullable=True),
        sa.Column('is_online', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('total_earnings', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('pending_payout', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('completed_deliveries', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('average_rating', sa.Numeric(precision=3, scale=2), nullable=False, server_default='0'),
        sa.Column('rating_count', sa.Integer(), nullable=False, server_default='0'),
        *_timestamp_columns(),
        sa.PrimaryKeyConstraint('id', name='pk_partner_profiles'),
        sa.UniqueConstraint('user_id', name='uq_partner_profiles_user_id'),
        sa.CheckConstraint(
            'average_rating >= 0 AND average_rating <= 5',
            name='ck_partner_profiles_average_rating_range',
        ),
        sa.CheckConstraint('total_earnings >= 0', name='ck_partner_profiles_earnings_non_negative'),
        comment='Delivery partner profiles',
    )

    op.create_table(
        'ratings',
        _id_column(),
        sa.Column('order_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('customer_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('partner_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('rating', sa.Integer(), nullable=False),
        sa.Column('comment', sa.Text(), nullable=True),
        *_timestamp_columns(),
        sa.PrimaryKeyConstraint('id', name='pk_ratings'),
        sa.UniqueConstraint('order_id', name='uq_ratings_order_id'),
        sa.ForeignKeyConstraint(['order_id'], ['delivery_orders.id'], name='fk_ratings_order_id', ondelete='CASCADE'),
        sa.CheckConstraint('rating BETWEEN 1 AND 5', name='ck_ratings_rating_range'),
    )
    op.create_index('ix_ratings_partner_id', 'ratings', ['partner_id'])

    op.create_table(
        'partner_earnings',
        _id_column(),
        sa.Column('partner_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('order_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        *_timestamp_columns(),
        sa.PrimaryKeyConstraint('id', name='pk_partner_earnings'),
        sa.UniqueConstraint('order_id', name='uq_partner_earnings_order_id'),
        sa.ForeignKeyConstraint(['order_id'], ['delivery_orders.id'], name='fk_partner_earnings_order_id', ondelete='CASCADE'),
        sa.CheckConstraint('amount > 0', name='ck_partner_earnings_amount_positive'),
    )
    op.create_index('ix_partner_earnings_partner_created', 'partner_earnings', ['partner_id', 'created_at'])


def downgrade() -> None:
    """
    Downgrade database schema by dropping the partner tables.
    """
    op.drop_table('partner_earnings')
    op.drop_table('ratings')
    op.drop_table('partner_profiles')
