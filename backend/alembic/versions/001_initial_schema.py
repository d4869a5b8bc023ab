"""Initial schema: users, rooms, availability, sessions, bookings, recurring bookings.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Users table: members, coaches and owners
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default=sa.text("'member'")),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint("role IN ('member', 'coach', 'owner')", name="check_user_role"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "rooms",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
    )
    op.create_index("ix_rooms_id", "rooms", ["id"])

    op.create_table(
        "coach_settings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("coach_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("default_room_id", sa.Integer(), sa.ForeignKey("rooms.id"), nullable=True),
        sa.Column("default_duration", sa.Integer(), nullable=False, server_default=sa.text("60")),
        *_timestamps(),
        sa.UniqueConstraint("coach_id", name="uq_coach_settings_coach_id"),
        sa.CheckConstraint("default_duration > 0", name="check_default_duration_positive"),
    )
    op.create_index("ix_coach_settings_id", "coach_settings", ["id"])

    # Weekly template: "HH:MM" wall-clock rows per weekday (0 = Sunday)
    op.create_table(
        "weekly_availability",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("coach_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.String(5), nullable=False),
        sa.Column("end_time", sa.String(5), nullable=False),
        sa.Column("duration", sa.Integer(), nullable=True),
        sa.Column("is_individual", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_group", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("room_id", sa.Integer(), sa.ForeignKey("rooms.id"), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("day_of_week BETWEEN 0 AND 6", name="check_weekly_day_of_week"),
        sa.CheckConstraint("duration IS NULL OR duration > 0", name="check_weekly_duration_positive"),
    )
    op.create_index("ix_weekly_availability_id", "weekly_availability", ["id"])
    op.create_index("ix_weekly_availability_coach_id", "weekly_availability", ["coach_id"])
    op.create_index(
        "ix_weekly_availability_coach_day", "weekly_availability", ["coach_id", "day_of_week"]
    )

    op.create_table(
        "availability_additions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("coach_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("start_time", sa.DateTime(), nullable=False),
        sa.Column("end_time", sa.DateTime(), nullable=False),
        sa.Column("is_individual", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("is_group", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("room_id", sa.Integer(), sa.ForeignKey("rooms.id"), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("end_time > start_time", name="check_addition_range"),
    )
    op.create_index("ix_availability_additions_id", "availability_additions", ["id"])
    op.create_index("ix_availability_additions_coach_id", "availability_additions", ["coach_id"])
    op.create_index(
        "ix_availability_additions_coach_start", "availability_additions", ["coach_id", "start_time"]
    )

    op.create_table(
        "blocked_slots",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("coach_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("start_time", sa.DateTime(), nullable=False),
        sa.Column("end_time", sa.DateTime(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("end_time > start_time", name="check_block_range"),
    )
    op.create_index("ix_blocked_slots_id", "blocked_slots", ["id"])
    op.create_index("ix_blocked_slots_coach_id", "blocked_slots", ["coach_id"])
    op.create_index("ix_blocked_slots_coach_start", "blocked_slots", ["coach_id", "start_time"])

    op.create_table(
        "recurring_bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("coach_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("member_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.String(5), nullable=False),
        sa.Column("end_time", sa.String(5), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("frequency", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'ACTIVE'")),
        sa.Column("cancelled_at", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("day_of_week BETWEEN 0 AND 6", name="check_recurring_day_of_week"),
        sa.CheckConstraint("frequency > 0", name="check_recurring_frequency_positive"),
        sa.CheckConstraint("status IN ('ACTIVE', 'CANCELLED')", name="check_recurring_status"),
    )
    op.create_index("ix_recurring_bookings_id", "recurring_bookings", ["id"])
    op.create_index("ix_recurring_bookings_coach_id", "recurring_bookings", ["coach_id"])
    op.create_index("ix_recurring_bookings_member_id", "recurring_bookings", ["member_id"])
    op.create_index(
        "ix_recurring_bookings_coach_day_status",
        "recurring_bookings",
        ["coach_id", "day_of_week", "status"],
    )

    op.create_table(
        "training_sessions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("coach_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("room_id", sa.Integer(), sa.ForeignKey("rooms.id"), nullable=False),
        sa.Column("member_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column(
            "recurring_booking_id",
            sa.Integer(),
            sa.ForeignKey("recurring_bookings.id"),
            nullable=True,
        ),
        sa.Column("title", sa.String(255), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("type", sa.String(20), nullable=False, server_default=sa.text("'ONE_TO_ONE'")),
        sa.Column("capacity", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("booked_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("start_time", sa.DateTime(), nullable=False),
        sa.Column("end_time", sa.DateTime(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'scheduled'")),
        sa.Column("is_recurring", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.CheckConstraint("capacity > 0", name="check_session_capacity_positive"),
        sa.CheckConstraint("booked_count >= 0", name="check_booked_count_non_negative"),
        sa.CheckConstraint("booked_count <= capacity", name="check_booked_lte_capacity"),
        sa.CheckConstraint("end_time > start_time", name="check_session_range"),
        sa.CheckConstraint("type IN ('ONE_TO_ONE', 'GROUP')", name="check_session_type"),
        sa.CheckConstraint(
            "status IN ('scheduled', 'completed', 'cancelled', 'no_show')",
            name="check_session_status",
        ),
    )
    op.create_index("ix_training_sessions_id", "training_sessions", ["id"])
    op.create_index("ix_training_sessions_coach_id", "training_sessions", ["coach_id"])
    op.create_index("ix_training_sessions_member_id", "training_sessions", ["member_id"])
    op.create_index(
        "ix_training_sessions_recurring_booking_id", "training_sessions", ["recurring_booking_id"]
    )
    # ONE LIVE SESSION PER COACH AND START: the generator, ad-hoc creation and
    # slot booking all race on this index. Cancelled rows are excluded so a
    # cancelled slot can be booked again.
    op.create_index(
        "uq_training_sessions_coach_start_live",
        "training_sessions",
        ["coach_id", "start_time"],
        unique=True,
        postgresql_where=sa.text("status <> 'cancelled'"),
    )
    op.create_index(
        "ix_training_sessions_coach_start", "training_sessions", ["coach_id", "start_time"]
    )
    # Completion sweep: WHERE status = 'scheduled' AND end_time <= now
    op.create_index("ix_training_sessions_status_end", "training_sessions", ["status", "end_time"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("session_id", sa.Integer(), sa.ForeignKey("training_sessions.id"), nullable=False),
        sa.Column("member_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("status", sa.String(30), nullable=False, server_default=sa.text("'CONFIRMED'")),
        sa.Column("cancelled_at", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('CONFIRMED', 'CANCELLED_BY_MEMBER', 'CANCELLED_BY_COACH')",
            name="check_booking_status",
        ),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_session_id", "bookings", ["session_id"])
    op.create_index("ix_bookings_member_id", "bookings", ["member_id"])
    op.create_index(
        "uq_bookings_session_member_confirmed",
        "bookings",
        ["session_id", "member_id"],
        unique=True,
        postgresql_where=sa.text("status = 'CONFIRMED'"),
    )


def downgrade() -> None:
    op.drop_table("bookings")
    op.drop_table("training_sessions")
    op.drop_table("recurring_bookings")
    op.drop_table("blocked_slots")
    op.drop_table("availability_additions")
    op.drop_table("weekly_availability")
    op.drop_table("coach_settings")
    op.drop_table("rooms")
    op.drop_table("users")
