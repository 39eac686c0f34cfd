"""Loan repayments and the Completed request status.

Revision ID: 0002_loan_payments
Revises: 0001_benefit_desk_initial
Create Date: 2026-03-09
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0002_loan_payments"
down_revision = "0001_benefit_desk_initial"
branch_labels = None
depends_on = None


PAYMENT_METHODS = ("PAYROLL_DEDUCTION", "EARLY_PAYMENT")


def _is_sqlite() -> bool:
    return op.get_bind().dialect.name == "sqlite"


def upgrade() -> None:
    if _is_sqlite():
        method_type = sa.Enum(*PAYMENT_METHODS, name="payment_method")
    else:
        with op.get_context().autocommit_block():
            op.execute("ALTER TYPE request_status ADD VALUE IF NOT EXISTS 'COMPLETED'")
        postgresql.ENUM(*PAYMENT_METHODS, name="payment_method").create(op.get_bind(), checkfirst=True)
        method_type = postgresql.ENUM(*PAYMENT_METHODS, name="payment_method", create_type=False)

    op.create_table(
        "loan_payments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("request_id", sa.Integer(), nullable=False),
        sa.Column("transaction_id", sa.String(length=32), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("method", method_type, nullable=False),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("recorded_by", sa.String(length=32), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(
            ["request_id"],
            ["benefit_requests.id"],
            name="fk_loan_payments_request_id_benefit_requests",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["recorded_by"],
            ["employees.employee_id"],
            name="fk_loan_payments_recorded_by_employees",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_loan_payments"),
        sa.UniqueConstraint("transaction_id", name="uq_loan_payments_transaction_id"),
    )
    op.create_index("ix_loan_payments_id", "loan_payments", ["id"], unique=False)
    op.create_index("ix_loan_payments_request_id", "loan_payments", ["request_id"], unique=False)


def downgrade() -> None:
    op.drop_table("loan_payments")
    if not _is_sqlite():
        postgresql.ENUM(*PAYMENT_METHODS, name="payment_method").drop(op.get_bind(), checkfirst=True)
    # Enum value removal is not supported safely; COMPLETED stays on request_status.
