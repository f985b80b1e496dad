# backend/alembic/versions/001_reservation_store.py
"""Reservation store - tenants, services, staff, holidays, reservations, locks

Revision ID: 001_reservation_store
Revises:
Create Date: 2026-10-18 00:00:00.000000

Reservations carry their own occupied end (end + buffer snapshot) so overlap
queries need no join. reservation_locks backs the reservation gate.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001_reservation_store"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "tenants",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("slug", sa.String(100), nullable=False),
        sa.Column("business_name", sa.String(200), nullable=False),
        sa.Column("timezone", sa.String(64), nullable=False, server_default="UTC"),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
    )
    op.create_index("ix_tenants_id", "tenants", ["id"])
    op.create_index("ix_tenants_slug", "tenants", ["slug"], unique=True)

    op.create_table(
        "services",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("tenant_id", sa.String(26), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("buffer_minutes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("require_staff", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("duration_minutes > 0", name="check_service_duration_positive"),
        sa.CheckConstraint("buffer_minutes >= 0", name="check_service_buffer_non_negative"),
    )
    op.create_index("ix_services_id", "services", ["id"])
    op.create_index("ix_services_tenant_id", "services", ["tenant_id"])

    op.create_table(
        "staff",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("tenant_id", sa.String(26), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("weekly_schedule", sa.JSON(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_staff_id", "staff", ["id"])
    op.create_index("ix_staff_tenant_id", "staff", ["tenant_id"])

    op.create_table(
        "staff_holidays",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("staff_id", sa.String(26), sa.ForeignKey("staff.id"), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
    )
    op.create_index("ix_staff_holidays_id", "staff_holidays", ["id"])
    op.create_index("idx_staff_holidays_staff_date", "staff_holidays", ["staff_id", "date"])

    op.create_table(
        "reservations",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("tenant_id", sa.String(26), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("service_id", sa.String(26), sa.ForeignKey("services.id"), nullable=False),
        sa.Column("staff_id", sa.String(26), sa.ForeignKey("staff.id"), nullable=True),
        sa.Column("start_utc", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_utc", sa.DateTime(timezone=True), nullable=False),
        sa.Column("buffer_minutes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("occupied_end_utc", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="confirmed"),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("end_utc > start_utc", name="check_reservation_window"),
        sa.CheckConstraint("buffer_minutes >= 0", name="check_reservation_buffer"),
        sa.CheckConstraint(
            "status IN ('confirmed', 'completed', 'cancelled', 'no_show')",
            name="check_reservation_status",
        ),
    )
    op.create_index("ix_reservations_id", "reservations", ["id"])
    op.create_index("ix_reservations_status", "reservations", ["status"])
    op.create_index("idx_reservations_tenant_start", "reservations", ["tenant_id", "start_utc"])
    op.create_index("idx_reservations_staff_start", "reservations", ["staff_id", "start_utc"])

    op.create_table(
        "reservation_locks",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("tenant_id", sa.String(26), nullable=False),
        sa.Column("scope_key", sa.String(26), nullable=False),
        sa.Column("bucket_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint(
            "tenant_id", "scope_key", "bucket_start", name="uq_reservation_lock_scope_bucket"
        ),
    )


def downgrade() -> None:
    op.drop_table("reservation_locks")
    op.drop_index("idx_reservations_staff_start", table_name="reservations")
    op.drop_index("idx_reservations_tenant_start", table_name="reservations")
    op.drop_index("ix_reservations_status", table_name="reservations")
    op.drop_index("ix_reservations_id", table_name="reservations")
    op.drop_table("reservations")
    op.drop_index("idx_staff_holidays_staff_date", table_name="staff_holidays")
    op.drop_index("ix_staff_holidays_id", table_name="staff_holidays")
    op.drop_table("staff_holidays")
    op.drop_index("ix_staff_tenant_id", table_name="staff")
    op.drop_index("ix_staff_id", table_name="staff")
    op.drop_table("staff")
    op.drop_index("ix_services_tenant_id", table_name="services")
    op.drop_index("ix_services_id", table_name="services")
    op.drop_table("services")
    op.drop_index("ix_tenants_slug", table_name="tenants")
    op.drop_index("ix_tenants_id", table_name="tenants")
    op.drop_table("tenants")
