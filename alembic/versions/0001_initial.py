"""initial allotment schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-16
"""

from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "roles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=True),
    )
    op.create_table(
        "stations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
    )
    op.create_table(
        "doctors",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("role_id", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(["role_id"], ["roles.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_doctors_role_id", "doctors", ["role_id"], unique=False)

    op.create_table(
        "doctor_station_restrictions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("doctor_id", sa.Integer(), nullable=False),
        sa.Column("station_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["doctor_id"], ["doctors.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["station_id"], ["stations.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("doctor_id", "station_id", name="uq_doctor_station_restriction"),
    )
    op.create_index("ix_doctor_station_restrictions_doctor_id", "doctor_station_restrictions", ["doctor_id"], unique=False)

    op.create_table(
        "role_station_permissions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("role_id", sa.Integer(), nullable=False),
        sa.Column("station_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["role_id"], ["roles.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["station_id"], ["stations.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("role_id", "station_id", name="uq_role_station_permission"),
    )
    op.create_index("ix_role_station_permissions_role_id", "role_station_permissions", ["role_id"], unique=False)

    op.create_table(
        "attendance",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("doctor_id", sa.Integer(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("marked_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("status IN ('present', 'absent', 'leave')", name="ck_attendance_status"),
        sa.ForeignKeyConstraint(["doctor_id"], ["doctors.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("doctor_id", "date", name="uq_attendance_doctor_date"),
    )
    op.create_index("ix_attendance_doctor_id", "attendance", ["doctor_id"], unique=False)
    op.create_index("ix_attendance_date", "attendance", ["date"], unique=False)

    op.create_table(
        "leaves",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("doctor_id", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("status IN ('pending', 'approved', 'rejected')", name="ck_leaves_status"),
        sa.CheckConstraint("start_date <= end_date", name="ck_leaves_date_range"),
        sa.ForeignKeyConstraint(["doctor_id"], ["doctors.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_leaves_doctor_id", "leaves", ["doctor_id"], unique=False)
    op.create_index("ix_leaves_start_date", "leaves", ["start_date"], unique=False)
    op.create_index("ix_leaves_end_date", "leaves", ["end_date"], unique=False)

    op.create_table(
        "allotments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("doctor_id", sa.Integer(), nullable=False),
        sa.Column("station_id", sa.Integer(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("shift", sa.String(length=40), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["doctor_id"], ["doctors.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["station_id"], ["stations.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("doctor_id", "date", "shift", name="uq_allotment_doctor_date_shift"),
    )
    op.create_index("ix_allotments_doctor_id", "allotments", ["doctor_id"], unique=False)
    op.create_index("ix_allotments_station_id", "allotments", ["station_id"], unique=False)
    op.create_index("ix_allotments_date", "allotments", ["date"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_allotments_date", table_name="allotments")
    op.drop_index("ix_allotments_station_id", table_name="allotments")
    op.drop_index("ix_allotments_doctor_id", table_name="allotments")
    op.drop_table("allotments")
    op.drop_index("ix_leaves_end_date", table_name="leaves")
    op.drop_index("ix_leaves_start_date", table_name="leaves")
    op.drop_index("ix_leaves_doctor_id", table_name="leaves")
    op.drop_table("leaves")
    op.drop_index("ix_attendance_date", table_name="attendance")
    op.drop_index("ix_attendance_doctor_id", table_name="attendance")
    op.drop_table("attendance")
    op.drop_index("ix_role_station_permissions_role_id", table_name="role_station_permissions")
    op.drop_table("role_station_permissions")
    op.drop_index("ix_doctor_station_restrictions_doctor_id", table_name="doctor_station_restrictions")
    op.drop_table("doctor_station_restrictions")
    op.drop_index("ix_doctors_role_id", table_name="doctors")
    op.drop_table("doctors")
    op.drop_table("stations")
    op.drop_table("roles")
