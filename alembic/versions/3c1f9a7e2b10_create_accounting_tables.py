"""create_accounting_tables

Revision ID: 3c1f9a7e2b10
Revises:
Create Date: 2026-10-18 09:12:44.301517

"""
from datetime import datetime, timezone
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3c1f9a7e2b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

SEED_EFFECTIVE_DATE = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _timestamps(*names):
    return [
        sa.Column(name, postgresql.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=True)
        for name in names
    ]


def upgrade() -> None:
    """Create the catalog, subscription and ledger tables and seed reference data."""
    op.create_table('users',
        sa.Column('id', sa.BIGINT(), autoincrement=True, nullable=False),
        sa.Column('username', sa.String(length=255), nullable=False),
        *_timestamps('created_at'),
        sa.PrimaryKeyConstraint('id', name='pk_users'),
    )
    op.create_index('ix_users_id', 'users', ['id'], unique=False)
    op.create_index('ix_users_username', 'users', ['username'], unique=True)

    op.create_table('resource_types',
        sa.Column('id', sa.BIGINT(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('unit', sa.String(length=100), nullable=False),
        sa.Column('consumable', sa.Boolean(), server_default='1', nullable=False),
        *_timestamps('created_at'),
        sa.PrimaryKeyConstraint('id', name='pk_resource_types'),
        sa.UniqueConstraint('name', name='uq_resource_types_name'),
    )
    op.create_index('ix_resource_types_id', 'resource_types', ['id'], unique=False)

    op.create_table('plans',
        sa.Column('id', sa.BIGINT(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_by', sa.String(length=255), nullable=True),
        sa.Column('last_modified_by', sa.String(length=255), nullable=True),
        *_timestamps('created_at', 'last_modified_at'),
        sa.PrimaryKeyConstraint('id', name='pk_plans'),
        sa.UniqueConstraint('name', name='uq_plans_name'),
    )
    op.create_index('ix_plans_id', 'plans', ['id'], unique=False)

    op.create_table('plan_quota_defaults',
        sa.Column('id', sa.BIGINT(), autoincrement=True, nullable=False),
        sa.Column('plan_id', sa.BIGINT(), nullable=False),
        sa.Column('resource_type_id', sa.BIGINT(), nullable=False),
        sa.Column('quota_value', sa.Float(), nullable=False),
        sa.Column('effective_date', postgresql.TIMESTAMP(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['plan_id'], ['plans.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['resource_type_id'], ['resource_types.id']),
        sa.PrimaryKeyConstraint('id', name='pk_plan_quota_defaults'),
        sa.UniqueConstraint('plan_id', 'resource_type_id', 'effective_date', name='uq_plan_quota_defaults_plan_resource_date'),
    )
    op.create_index('ix_plan_quota_defaults_id', 'plan_quota_defaults', ['id'], unique=False)
    op.create_index('idx_plan_quota_defaults_plan_date', 'plan_quota_defaults', ['plan_id', 'effective_date'], unique=False)

    op.create_table('plan_rates',
        sa.Column('id', sa.BIGINT(), autoincrement=True, nullable=False),
        sa.Column('plan_id', sa.BIGINT(), nullable=False),
        sa.Column('rate', sa.Float(), nullable=False),
        sa.Column('effective_date', postgresql.TIMESTAMP(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['plan_id'], ['plans.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name='pk_plan_rates'),
        sa.UniqueConstraint('plan_id', 'effective_date', name='uq_plan_rates_plan_date'),
    )
    op.create_index('ix_plan_rates_id', 'plan_rates', ['id'], unique=False)

    op.create_table('subscriptions',
        sa.Column('id', sa.BIGINT(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.BIGINT(), nullable=False),
        sa.Column('plan_id', sa.BIGINT(), nullable=False),
        sa.Column('effective_start_date', postgresql.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('effective_end_date', postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('paid', sa.Boolean(), server_default='1', nullable=False),
        sa.Column('created_by', sa.String(length=255), nullable=False),
        sa.Column('last_modified_by', sa.String(length=255), nullable=False),
        *_timestamps('created_at', 'last_modified_at'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['plan_id'], ['plans.id']),
        sa.PrimaryKeyConstraint('id', name='pk_subscriptions'),
    )
    op.create_index('ix_subscriptions_id', 'subscriptions', ['id'], unique=False)
    op.create_index('idx_subscriptions_user_start', 'subscriptions', ['user_id', 'effective_start_date'], unique=False)

    for table, value_column in (('quotas', 'quota'), ('usages', 'usage')):
        op.create_table(table,
            sa.Column('id', sa.BIGINT(), autoincrement=True, nullable=False),
            sa.Column('resource_type_id', sa.BIGINT(), nullable=False),
            sa.Column('subscription_id', sa.BIGINT(), nullable=False),
            sa.Column(value_column, sa.Float(), nullable=False),
            sa.Column('created_by', sa.String(length=255), nullable=False),
            sa.Column('last_modified_by', sa.String(length=255), nullable=False),
            *_timestamps('created_at', 'last_modified_at'),
            sa.ForeignKeyConstraint(['resource_type_id'], ['resource_types.id']),
            sa.ForeignKeyConstraint(['subscription_id'], ['subscriptions.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id', name=f'pk_{table}'),
            sa.UniqueConstraint('resource_type_id', 'subscription_id', name=f'uq_{table}_resource_type_subscription'),
        )
        op.create_index(f'ix_{table}_id', table, ['id'], unique=False)
        op.create_index(f'ix_{table}_subscription_id', table, ['subscription_id'], unique=False)

    op.create_table('addons',
        sa.Column('id', sa.BIGINT(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), server_default='', nullable=False),
        sa.Column('resource_type_id', sa.BIGINT(), nullable=False),
        sa.Column('default_amount', sa.Float(), nullable=False),
        sa.Column('default_paid', sa.Boolean(), server_default='1', nullable=False),
        *_timestamps('created_at', 'updated_at'),
        sa.ForeignKeyConstraint(['resource_type_id'], ['resource_types.id']),
        sa.PrimaryKeyConstraint('id', name='pk_addons'),
        sa.UniqueConstraint('name', name='uq_addons_name'),
    )
    op.create_index('ix_addons_id', 'addons', ['id'], unique=False)
    op.create_index('ix_addons_resource_type_id', 'addons', ['resource_type_id'], unique=False)

    op.create_table('addon_rates',
        sa.Column('id', sa.BIGINT(), autoincrement=True, nullable=False),
        sa.Column('addon_id', sa.BIGINT(), nullable=False),
        sa.Column('rate', sa.Float(), nullable=False),
        sa.Column('effective_date', postgresql.TIMESTAMP(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['addon_id'], ['addons.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name='pk_addon_rates'),
        sa.UniqueConstraint('addon_id', 'effective_date', name='uq_addon_rates_addon_date'),
    )
    op.create_index('ix_addon_rates_id', 'addon_rates', ['id'], unique=False)

    op.create_table('subscription_addons',
        sa.Column('id', sa.BIGINT(), autoincrement=True, nullable=False),
        sa.Column('subscription_id', sa.BIGINT(), nullable=False),
        sa.Column('addon_id', sa.BIGINT(), nullable=False),
        sa.Column('addon_rate_id', sa.BIGINT(), nullable=True),
        sa.Column('amount', sa.Float(), nullable=False),
        sa.Column('paid', sa.Boolean(), server_default='1', nullable=False),
        *_timestamps('created_at', 'updated_at'),
        sa.ForeignKeyConstraint(['subscription_id'], ['subscriptions.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['addon_id'], ['addons.id']),
        sa.ForeignKeyConstraint(['addon_rate_id'], ['addon_rates.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id', name='pk_subscription_addons'),
    )
    op.create_index('ix_subscription_addons_id', 'subscription_addons', ['id'], unique=False)
    op.create_index('ix_subscription_addons_subscription_id', 'subscription_addons', ['subscription_id'], unique=False)
    op.create_index('ix_subscription_addons_addon_id', 'subscription_addons', ['addon_id'], unique=False)

    op.create_table('updates',
        sa.Column('id', sa.BIGINT(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.BIGINT(), nullable=False),
        sa.Column('resource_type_id', sa.BIGINT(), nullable=False),
        sa.Column('operation', sa.String(length=10), nullable=False),
        sa.Column('value_type', sa.String(length=20), nullable=False),
        sa.Column('value', sa.Float(), nullable=False),
        sa.Column('effective_date', postgresql.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('created_by', sa.String(length=255), nullable=False),
        *_timestamps('created_at'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['resource_type_id'], ['resource_types.id']),
        sa.PrimaryKeyConstraint('id', name='pk_updates'),
    )
    op.create_index('ix_updates_id', 'updates', ['id'], unique=False)
    op.create_index('idx_updates_user_created', 'updates', ['user_id', 'created_at'], unique=False)

    # Reference data
    resource_types = sa.table('resource_types',
        sa.column('id', sa.BIGINT()),
        sa.column('name', sa.String()),
        sa.column('unit', sa.String()),
        sa.column('consumable', sa.Boolean()),
    )
    op.bulk_insert(resource_types, [
        {'id': 1, 'name': 'cpu.hours', 'unit': 'cpu hours', 'consumable': True},
        {'id': 2, 'name': 'data.size', 'unit': 'bytes', 'consumable': False},
    ])

    plans = sa.table('plans',
        sa.column('id', sa.BIGINT()),
        sa.column('name', sa.String()),
        sa.column('description', sa.Text()),
        sa.column('created_by', sa.String()),
        sa.column('last_modified_by', sa.String()),
    )
    op.bulk_insert(plans, [
        {'id': 1, 'name': 'Basic', 'description': 'Basic plan',
         'created_by': 'system', 'last_modified_by': 'system'},
    ])

    plan_quota_defaults = sa.table('plan_quota_defaults',
        sa.column('plan_id', sa.BIGINT()),
        sa.column('resource_type_id', sa.BIGINT()),
        sa.column('quota_value', sa.Float()),
        sa.column('effective_date', postgresql.TIMESTAMP(timezone=True)),
    )
    op.bulk_insert(plan_quota_defaults, [
        {'plan_id': 1, 'resource_type_id': 1, 'quota_value': 20000, 'effective_date': SEED_EFFECTIVE_DATE},
        {'plan_id': 1, 'resource_type_id': 2, 'quota_value': 5368709120, 'effective_date': SEED_EFFECTIVE_DATE},
    ])

    plan_rates = sa.table('plan_rates',
        sa.column('plan_id', sa.BIGINT()),
        sa.column('rate', sa.Float()),
        sa.column('effective_date', postgresql.TIMESTAMP(timezone=True)),
    )
    op.bulk_insert(plan_rates, [
        {'plan_id': 1, 'rate': 0, 'effective_date': SEED_EFFECTIVE_DATE},
    ])

    # Explicit ids above leave the sequences behind
    op.execute("SELECT setval('resource_types_id_seq', (SELECT MAX(id) FROM resource_types))")
    op.execute("SELECT setval('plans_id_seq', (SELECT MAX(id) FROM plans))")


def downgrade() -> None:
    """Drop the accounting tables."""
    for table in (
        'updates',
        'subscription_addons',
        'addon_rates',
        'addons',
        'usages',
        'quotas',
        'subscriptions',
        'plan_rates',
        'plan_quota_defaults',
        'plans',
        'resource_types',
        'users',
    ):
        op.drop_table(table)
