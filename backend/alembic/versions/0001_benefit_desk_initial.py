"""Benefit desk schema: employees, requests, approval stages, bookings, outbox.

Revision ID: 0001_benefit_desk_initial
Revises:
Create Date: 2026-03-02
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_benefit_desk_initial"
down_revision = None
branch_labels = None
depends_on = None


# Enum columns persist member names.
ENUMS = {
    "request_type": (
        "SALARY_LOAN",
        "CAR_LOAN",
        "HOUSING_LOAN",
        "MEDICAL_REIMBURSEMENT",
        "MEDICAL_LOA",
        "HOUSE_BOOKING",
    ),
    "request_status": ("PENDING", "APPROVED", "REJECTED", "CANCELLED"),
    "stage_status": ("PENDING", "APPROVED", "REJECTED"),
    "approver_role": ("HR", "SUPERVISOR", "VICE_PRESIDENT", "PRESIDENT"),
    "role_class": ("CLASS_A", "CLASS_B", "CLASS_C"),
    "benefits_package": ("PACKAGE_A", "PACKAGE_B"),
}


def _is_sqlite() -> bool:
    return op.get_bind().dialect.name == "sqlite"


def _enum(name: str) -> sa.types.TypeEngine:
    if _is_sqlite():
        return sa.Enum(*ENUMS[name], name=name)
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    if not _is_sqlite():
        bind = op.get_bind()
        for name, values in ENUMS.items():
            postgresql.ENUM(*values, name=name).create(bind, checkfirst=True)

    op.create_table(
        "employees",
        sa.Column("employee_id", sa.String(length=32), nullable=False),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("last_name", sa.String(length=100), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("position", sa.String(length=100), nullable=True),
        sa.Column("department", sa.String(length=100), nullable=True),
        sa.Column("role_class", _enum("role_class"), nullable=False),
        sa.Column("hire_date", sa.Date(), nullable=True),
        sa.Column("monthly_salary", sa.Numeric(12, 2), nullable=True),
        sa.Column("benefits_package", _enum("benefits_package"), nullable=True),
        sa.Column("benefits_amount_remaining", sa.Numeric(12, 2), nullable=True),
        sa.Column("approver_role", _enum("approver_role"), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("employee_id", name="pk_employees"),
        sa.UniqueConstraint("email", name="uq_employees_email"),
    )
    op.create_index("ix_employees_approver_role", "employees", ["approver_role"], unique=False)

    op.create_table(
        "staff_houses",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("location", sa.String(length=255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("booking_version", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_staff_houses"),
    )

    op.create_table(
        "benefit_requests",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("public_id", sa.String(length=36), nullable=False),
        sa.Column("token", sa.String(length=16), nullable=True),
        sa.Column("request_type", _enum("request_type"), nullable=False),
        sa.Column("requester_id", sa.String(length=32), nullable=False),
        sa.Column("status", _enum("request_status"), nullable=False),
        sa.Column("current_level", sa.Integer(), nullable=True),
        sa.Column("payload_json", sa.JSON(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_by", sa.String(length=32), nullable=True),
        sa.Column("cancel_reason", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["requester_id"],
            ["employees.employee_id"],
            name="fk_benefit_requests_requester_id_employees",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_benefit_requests"),
        sa.UniqueConstraint("token", name="uq_benefit_requests_token"),
    )
    op.create_index("ix_benefit_requests_id", "benefit_requests", ["id"], unique=False)
    op.create_index("ix_benefit_requests_public_id", "benefit_requests", ["public_id"], unique=True)
    op.create_index("ix_benefit_requests_request_type", "benefit_requests", ["request_type"], unique=False)
    op.create_index("ix_benefit_requests_requester_id", "benefit_requests", ["requester_id"], unique=False)
    op.create_index("ix_benefit_requests_status", "benefit_requests", ["status"], unique=False)
    op.create_index("ix_benefit_requests_current_level", "benefit_requests", ["current_level"], unique=False)

    op.create_table(
        "approval_stages",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("request_id", sa.Integer(), nullable=False),
        sa.Column("level", sa.Integer(), nullable=False),
        sa.Column("role", _enum("approver_role"), nullable=False),
        sa.Column("status", _enum("stage_status"), nullable=False),
        sa.Column("actor_id", sa.String(length=32), nullable=True),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(
            ["request_id"],
            ["benefit_requests.id"],
            name="fk_approval_stages_request_id_benefit_requests",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["actor_id"],
            ["employees.employee_id"],
            name="fk_approval_stages_actor_id_employees",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_approval_stages"),
        sa.UniqueConstraint("request_id", "level", name="uq_approval_stage_request_level"),
    )
    op.create_index("ix_approval_stages_id", "approval_stages", ["id"], unique=False)
    op.create_index("ix_approval_stages_request_id", "approval_stages", ["request_id"], unique=False)

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("request_id", sa.Integer(), nullable=False),
        sa.Column("property_id", sa.String(length=64), nullable=False),
        sa.Column("requester_id", sa.String(length=32), nullable=False),
        sa.Column("check_in", sa.DateTime(timezone=False), nullable=False),
        sa.Column("check_out", sa.DateTime(timezone=False), nullable=False),
        sa.Column("status", _enum("request_status"), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["request_id"],
            ["benefit_requests.id"],
            name="fk_bookings_request_id_benefit_requests",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["property_id"],
            ["staff_houses.id"],
            name="fk_bookings_property_id_staff_houses",
        ),
        sa.ForeignKeyConstraint(
            ["requester_id"],
            ["employees.employee_id"],
            name="fk_bookings_requester_id_employees",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_bookings"),
        sa.UniqueConstraint("request_id", name="uq_bookings_request_id"),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"], unique=False)
    op.create_index("ix_bookings_property_id", "bookings", ["property_id"], unique=False)
    op.create_index("ix_bookings_requester_id", "bookings", ["requester_id"], unique=False)
    op.create_index("ix_bookings_check_in", "bookings", ["check_in"], unique=False)
    op.create_index("ix_bookings_check_out", "bookings", ["check_out"], unique=False)
    op.create_index("ix_bookings_status", "bookings", ["status"], unique=False)

    op.create_table(
        "outbox_events",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=64), nullable=False),
        sa.Column("request_id", sa.String(length=36), nullable=False),
        sa.Column("payload_json", sa.JSON(), nullable=False),
        sa.Column("dispatched_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_outbox_events"),
    )
    op.create_index("ix_outbox_events_id", "outbox_events", ["id"], unique=False)
    op.create_index("ix_outbox_events_name", "outbox_events", ["name"], unique=False)
    op.create_index("ix_outbox_events_request_id", "outbox_events", ["request_id"], unique=False)
    op.create_index("ix_outbox_events_dispatched_at", "outbox_events", ["dispatched_at"], unique=False)

    op.create_table(
        "activity_logs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("request_id", sa.String(length=36), nullable=True),
        sa.Column("actor_id", sa.String(length=32), nullable=True),
        sa.Column("type", sa.String(length=100), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("payload_json", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["actor_id"],
            ["employees.employee_id"],
            name="fk_activity_logs_actor_id_employees",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_activity_logs"),
    )
    op.create_index("ix_activity_logs_id", "activity_logs", ["id"], unique=False)
    op.create_index("ix_activity_logs_request_id", "activity_logs", ["request_id"], unique=False)
    op.create_index("ix_activity_logs_actor_id", "activity_logs", ["actor_id"], unique=False)
    op.create_index("ix_activity_logs_type", "activity_logs", ["type"], unique=False)


def downgrade() -> None:
    for table in (
        "activity_logs",
        "outbox_events",
        "bookings",
        "approval_stages",
        "benefit_requests",
        "staff_houses",
        "employees",
    ):
        op.drop_table(table)

    if not _is_sqlite():
        bind = op.get_bind()
        for name, values in ENUMS.items():
            postgresql.ENUM(*values, name=name).drop(bind, checkfirst=True)
