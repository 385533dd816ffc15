"""Baseline: reference data, members, subscriptions, invoices and imports.

Revision ID: 0001_baseline
Revises:
Create Date: 2026-10-19

Creates:
- branches, users, currencies, duration_types, plans
- rate_types, tax_rates, discount_types
- companies, company_subscriptions
- members, member_subscriptions, member_subscription_invoices
- company_subscription_members
- member_imports, member_import_logs
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '0001_baseline'
down_revision = None
branch_labels = None
depends_on = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), 'postgresql')


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    # ==========================================================================
    # Reference data
    # ==========================================================================
    op.create_table(
        'branches',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
    )

    op.create_table(
        'currencies',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(3), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code'),
    )

    op.create_table(
        'duration_types',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(50), nullable=False),
        sa.Column('unit', sa.String(10), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('unit'),
    )

    op.create_table(
        'plans',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('label', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price', sa.Numeric(12, 2), nullable=False),
        sa.Column('currency_id', sa.Integer(), nullable=True),
        sa.Column('duration', sa.Integer(), nullable=False),
        sa.Column('duration_type_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['currency_id'], ['currencies.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['duration_type_id'], ['duration_types.id']),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'rate_types',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(50), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
    )

    op.create_table(
        'tax_rates',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('rate_type_id', sa.Integer(), nullable=True),
        sa.Column('rate', sa.Numeric(5, 2), nullable=False),
        sa.ForeignKeyConstraint(['rate_type_id'], ['rate_types.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'discount_types',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(50), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
    )

    op.create_table(
        'companies',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'company_subscriptions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_id', sa.Integer(), nullable=False),
        sa.Column('plan_id', sa.Integer(), nullable=True),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['plan_id'], ['plans.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )

    # ==========================================================================
    # Members & subscriptions
    # ==========================================================================
    op.create_table(
        'members',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('reference', sa.String(50), nullable=False),
        sa.Column('first_name', sa.String(255), nullable=False),
        sa.Column('last_name', sa.String(255), nullable=False, server_default=''),
        sa.Column('gender', sa.String(10), nullable=False),
        sa.Column('date_of_birth', sa.Date(), nullable=True),
        sa.Column('national_id_number', sa.String(50), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('phone', JSON_TYPE, nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('branch_id', sa.Integer(), nullable=False),
        sa.Column('created_by_id', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id']),
        sa.ForeignKeyConstraint(['created_by_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('reference'),
        sa.UniqueConstraint('email'),
        sa.UniqueConstraint('national_id_number'),
    )
    op.create_index('idx_members_branch', 'members', ['branch_id'])

    op.create_table(
        'member_subscriptions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('member_id', sa.Integer(), nullable=False),
        sa.Column('plan_id', sa.Integer(), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('branch_id', sa.Integer(), nullable=False),
        sa.Column('created_by_id', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['member_id'], ['members.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['plan_id'], ['plans.id']),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id']),
        sa.ForeignKeyConstraint(['created_by_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_member_subscriptions_member', 'member_subscriptions', ['member_id', 'status'])

    op.create_table(
        'member_subscription_invoices',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('member_subscription_id', sa.Integer(), nullable=False),
        sa.Column('reference', sa.String(50), nullable=False),
        sa.Column('rate_type_id', sa.Integer(), nullable=False),
        sa.Column('tax_rate_id', sa.Integer(), nullable=False),
        sa.Column('discount_type_id', sa.Integer(), nullable=True),
        sa.Column('invoice_date', sa.Date(), nullable=False),
        sa.Column('from_date', sa.Date(), nullable=False),
        sa.Column('to_date', sa.Date(), nullable=True),
        sa.Column('due_date', sa.Date(), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('proration_amount', sa.Numeric(12, 2), nullable=True),
        sa.Column('tax_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('discount_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('action', sa.String(20), nullable=False),
        sa.Column('is_sent', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['member_subscription_id'], ['member_subscriptions.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['rate_type_id'], ['rate_types.id']),
        sa.ForeignKeyConstraint(['tax_rate_id'], ['tax_rates.id']),
        sa.ForeignKeyConstraint(['discount_type_id'], ['discount_types.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('reference'),
    )

    op.create_table(
        'company_subscription_members',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_subscription_id', sa.Integer(), nullable=False),
        sa.Column('member_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['company_subscription_id'], ['company_subscriptions.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['member_id'], ['members.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('company_subscription_id', 'member_id', name='uq_company_subscription_member'),
    )

    # ==========================================================================
    # Imports
    # ==========================================================================
    op.create_table(
        'member_imports',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('file', sa.String(500), nullable=False),
        sa.Column('original_filename', sa.String(255), nullable=True),
        sa.Column('failed_import_file', sa.String(500), nullable=True),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('branch_id', sa.Integer(), nullable=False),
        sa.Column('plan_id', sa.Integer(), nullable=True),
        sa.Column('company_subscription_id', sa.Integer(), nullable=True),
        sa.Column('created_by_id', sa.Integer(), nullable=False),
        sa.Column('data', JSON_TYPE, nullable=True),
        sa.Column('status', sa.String(30), nullable=False, server_default='pending'),
        *_timestamps(),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id']),
        sa.ForeignKeyConstraint(['plan_id'], ['plans.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['company_subscription_id'], ['company_subscriptions.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['created_by_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_member_imports_status_created', 'member_imports', ['status', 'created_at'])

    op.create_table(
        'member_import_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('member_import_id', sa.Integer(), nullable=False),
        sa.Column('row_number', sa.Integer(), nullable=False),
        sa.Column('log_message', sa.Text(), nullable=False),
        sa.Column('data', JSON_TYPE, nullable=True),
        sa.Column('is_resolved', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['member_import_id'], ['member_imports.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_member_import_logs_import', 'member_import_logs', ['member_import_id'])


def downgrade() -> None:
    op.drop_index('idx_member_import_logs_import', table_name='member_import_logs')
    op.drop_table('member_import_logs')
    op.drop_index('idx_member_imports_status_created', table_name='member_imports')
    op.drop_table('member_imports')
    op.drop_table('company_subscription_members')
    op.drop_table('member_subscription_invoices')
    op.drop_index('idx_member_subscriptions_member', table_name='member_subscriptions')
    op.drop_table('member_subscriptions')
    op.drop_index('idx_members_branch', table_name='members')
    op.drop_table('members')
    op.drop_table('company_subscriptions')
    op.drop_table('companies')
    op.drop_table('discount_types')
    op.drop_table('tax_rates')
    op.drop_table('rate_types')
    op.drop_table('plans')
    op.drop_table('duration_types')
    op.drop_table('currencies')
    op.drop_table('users')
    op.drop_table('branches')
