# backend/alembic/versions/001_appointments.py
"""Appointments table

Revision ID: 001_appointments
Revises:
Create Date: 2026-10-17 00:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001_appointments"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ACTIVE_STATUS_SQL = "status IN ('PENDING', 'CONFIRMED')"


def _create_extension_prefer_extensions_schema(extension_name: str) -> None:
    """Create extension using extensions schema when available."""

    bind = op.get_bind()
    if bind is None or bind.dialect.name != "postgresql":
        return

    op.execute(
        f"""
        DO $$
        DECLARE
            extensions_schema_exists BOOLEAN;
            extension_installed BOOLEAN;
        BEGIN
            SELECT EXISTS (
                SELECT 1 FROM pg_namespace WHERE nspname = 'extensions'
            ) INTO extensions_schema_exists;

            SELECT EXISTS (
                SELECT 1 FROM pg_extension WHERE extname = '{extension_name}'
            ) INTO extension_installed;

            IF NOT extension_installed THEN
                IF extensions_schema_exists THEN
                    EXECUTE 'CREATE EXTENSION IF NOT EXISTS {extension_name} WITH SCHEMA extensions';
                ELSE
                    EXECUTE 'CREATE EXTENSION IF NOT EXISTS {extension_name}';
                END IF;
            END IF;
        END
        $$;
        """
    )


def upgrade() -> None:
    """Create the appointments table, its indexes and overlap protection."""
    print("Creating appointments table...")

    bind = op.get_bind()
    dialect_name = bind.dialect.name if bind is not None else "postgresql"
    is_postgres = dialect_name == "postgresql"

    op.create_table(
        "appointments",
        sa.Column("id", sa.String(length=26), nullable=False),
        sa.Column("student_id", sa.String(length=64), nullable=False),
        sa.Column("course_id", sa.String(length=64), nullable=False),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ends_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="PENDING"),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False, server_default="cad"),
        sa.Column(
            "payment_reference",
            sa.String(length=255),
            nullable=True,
            comment="Gateway payment intent id",
        ),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "status IN ('PENDING', 'CONFIRMED', 'COMPLETED', 'CANCELLED')",
            name="ck_appointments_status",
        ),
        sa.CheckConstraint("duration_minutes > 0", name="ck_appointments_duration_positive"),
        sa.CheckConstraint("amount >= 0", name="ck_appointments_amount_non_negative"),
        sa.CheckConstraint("ends_at > scheduled_at", name="ck_appointments_time_order"),
    )

    op.create_index("ix_appointments_id", "appointments", ["id"])
    op.create_index("ix_appointments_student_id", "appointments", ["student_id"])
    op.create_index("ix_appointments_course_id", "appointments", ["course_id"])
    op.create_index("ix_appointments_status", "appointments", ["status"])
    op.create_index("ix_appointments_payment_reference", "appointments", ["payment_reference"])
    op.create_index(
        "ix_appointments_course_window", "appointments", ["course_id", "scheduled_at", "ends_at"]
    )
    op.create_index(
        "uq_appointments_course_start_active",
        "appointments",
        ["course_id", "scheduled_at"],
        unique=True,
        postgresql_where=sa.text(ACTIVE_STATUS_SQL),
        sqlite_where=sa.text(ACTIVE_STATUS_SQL),
    )

    if is_postgres:
        print("Adding per-course overlap exclusion constraint...")
        _create_extension_prefer_extensions_schema("btree_gist")
        op.execute(
            f"""
            ALTER TABLE appointments
              ADD CONSTRAINT appointments_no_overlap_per_course
              EXCLUDE USING gist (
                course_id WITH =,
                tstzrange(scheduled_at, ends_at, '[)') WITH &&
              )
              WHERE ({ACTIVE_STATUS_SQL})
            """
        )

    print("Appointments table created")


def downgrade() -> None:
    """Drop the appointments table."""
    print("Dropping appointments table...")

    bind = op.get_bind()
    if bind is not None and bind.dialect.name == "postgresql":
        op.execute(
            "ALTER TABLE appointments DROP CONSTRAINT IF EXISTS appointments_no_overlap_per_course"
        )

    op.drop_index("uq_appointments_course_start_active", table_name="appointments")
    op.drop_index("ix_appointments_course_window", table_name="appointments")
    op.drop_index("ix_appointments_payment_reference", table_name="appointments")
    op.drop_index("ix_appointments_status", table_name="appointments")
    op.drop_index("ix_appointments_course_id", table_name="appointments")
    op.drop_index("ix_appointments_student_id", table_name="appointments")
    op.drop_index("ix_appointments_id", table_name="appointments")
    op.drop_table("appointments")
