"""Create payroll engine tables - statutory rule sets, payroll periods, payroll entries

Revision ID: 20261018_0900_payroll_engine
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '20261018_0900_payroll_engine'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # =====================================================
    # STATUTORY RULE SETS
    # =====================================================
    op.create_table(
        'statutory_rule_sets',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('jurisdiction', sa.String(length=50), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('effective_from', sa.DateTime(timezone=True), nullable=False),
        sa.Column('effective_until', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('paye_bands', sa.JSON(), nullable=False),
        sa.Column('personal_relief_cents', sa.BigInteger(), nullable=False),
        sa.Column('nssf_tier_one_cap_cents', sa.BigInteger(), nullable=False),
        sa.Column('nssf_tier_two_cap_cents', sa.BigInteger(), nullable=False),
        sa.Column('nssf_rate', sa.Numeric(precision=7, scale=6), nullable=False),
        sa.Column('nssf_tier_two_rate', sa.Numeric(precision=7, scale=6), nullable=True),
        sa.Column('nssf_tier_one_fixed_cents', sa.BigInteger(), nullable=True),
        sa.Column('health_levy_rate', sa.Numeric(precision=7, scale=6), nullable=False),
        sa.Column('housing_levy_rate', sa.Numeric(precision=7, scale=6), nullable=False),
        sa.Column('updated_by', sa.String(length=100), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_statutory_rule_sets'),
        sa.UniqueConstraint('jurisdiction', 'version', name='uq_statutory_rule_sets_jurisdiction_version'),
    )
    op.create_index('ix_statutory_rule_sets_jurisdiction', 'statutory_rule_sets', ['jurisdiction'])
    # At most one active version per jurisdiction
    op.create_index(
        'uq_statutory_rule_sets_active_jurisdiction',
        'statutory_rule_sets',
        ['jurisdiction'],
        unique=True,
        postgresql_where=sa.text('is_active'),
    )

    # =====================================================
    # PAYROLL PERIODS
    # =====================================================
    op.create_table(
        'payroll_periods',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('organization_id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('total_days', sa.Integer(), nullable=False),
        sa.Column('is_finalized', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('finalized_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('finalized_by', sa.String(length=100), nullable=True),
        sa.Column('is_archived', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('archived_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('archived_by', sa.String(length=100), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_payroll_periods'),
        sa.CheckConstraint('end_date >= start_date', name='ck_payroll_periods_period_dates'),
        sa.CheckConstraint('NOT is_archived OR is_finalized', name='ck_payroll_periods_archived_requires_finalized'),
    )
    op.create_index('ix_payroll_periods_organization_id', 'payroll_periods', ['organization_id'])

    # =====================================================
    # PAYROLL ENTRIES
    # =====================================================
    pay_method_enum = postgresql.ENUM('FIXED', 'PRORATED', 'HOURLY', 'PER_SHIFT', name='pay_method', create_type=False)
    pay_method_enum.create(op.get_bind(), checkfirst=True)

    op.create_table(
        'payroll_entries',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('payroll_period_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('organization_id', sa.String(length=64), nullable=False),
        sa.Column('staff_id', sa.String(length=64), nullable=False),
        sa.Column('staff_name', sa.String(length=200), nullable=False),
        sa.Column('staff_email', sa.String(length=255), nullable=True),
        sa.Column('job_title', sa.String(length=200), nullable=True),
        sa.Column('pay_method', pay_method_enum, nullable=False),
        sa.Column('base_salary_cents', sa.BigInteger(), nullable=False),
        sa.Column('rate_cents', sa.BigInteger(), nullable=False),
        sa.Column('worked_units', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('paid_leave_units', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('unpaid_leave_units', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('absent_units', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('payable_base_cents', sa.BigInteger(), nullable=False),
        sa.Column('allowances_total_cents', sa.BigInteger(), nullable=False),
        sa.Column('gross_pay_cents', sa.BigInteger(), nullable=False),
        sa.Column('deductions_total_cents', sa.BigInteger(), nullable=False),
        sa.Column('net_pay_cents', sa.BigInteger(), nullable=False),
        sa.Column('deduction_details', sa.JSON(), nullable=False),
        sa.Column('rule_set_version', sa.Integer(), nullable=False),
        sa.Column('validation_errors', sa.JSON(), nullable=False),
        sa.Column('is_paid', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('paid_by', sa.String(length=100), nullable=True),
        sa.Column('payment_reference', sa.String(length=100), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_payroll_entries'),
        sa.ForeignKeyConstraint(
            ['payroll_period_id'], ['payroll_periods.id'],
            name='fk_payroll_entries_payroll_period_id_payroll_periods',
            ondelete='RESTRICT',
        ),
        sa.UniqueConstraint('payroll_period_id', 'staff_id', name='uq_payroll_entry_period_staff'),
        sa.CheckConstraint('gross_pay_cents >= 0', name='ck_payroll_entries_gross_non_negative'),
        sa.CheckConstraint('net_pay_cents >= 0', name='ck_payroll_entries_net_non_negative'),
    )
    op.create_index('ix_payroll_entries_payroll_period_id', 'payroll_entries', ['payroll_period_id'])
    op.create_index('ix_payroll_entries_organization_id', 'payroll_entries', ['organization_id'])


def downgrade() -> None:
    op.drop_index('ix_payroll_entries_organization_id', table_name='payroll_entries')
    op.drop_index('ix_payroll_entries_payroll_period_id', table_name='payroll_entries')
    op.drop_table('payroll_entries')
    sa.Enum(name='pay_method').drop(op.get_bind(), checkfirst=True)

    op.drop_index('ix_payroll_periods_organization_id', table_name='payroll_periods')
    op.drop_table('payroll_periods')

    op.drop_index('uq_statutory_rule_sets_active_jurisdiction', table_name='statutory_rule_sets')
    op.drop_index('ix_statutory_rule_sets_jurisdiction', table_name='statutory_rule_sets')
    op.drop_table('statutory_rule_sets')
