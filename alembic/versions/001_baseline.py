"""Baseline schema: tenants, lookups and the three feed source logs.

Revision ID: 001
Revises: None
Create Date: 2026-10-12
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── teachers ─────────────────────────────────────────────────────────────
    op.create_table(
        "teachers",
        sa.Column("chat_id", sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column("name", sa.String(255), nullable=False, server_default=""),
        sa.Column("activity_feed_seen_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )

    # ── students ─────────────────────────────────────────────────────────────
    op.create_table(
        "students",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("username", sa.String(255), nullable=True),
    )

    # ── teacher_students ─────────────────────────────────────────────────────
    op.create_table(
        "teacher_students",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("teacher_id", sa.BigInteger(), sa.ForeignKey("teachers.chat_id"), nullable=False),
        sa.Column("student_id", sa.Integer(), sa.ForeignKey("students.id"), nullable=False),
        sa.Column("custom_name", sa.String(255), nullable=True),
        sa.UniqueConstraint("teacher_id", "student_id", name="uq_teacher_students_pair"),
    )
    op.create_index("ix_teacher_students_teacher_id", "teacher_students", ["teacher_id"])

    # ── lessons ──────────────────────────────────────────────────────────────
    op.create_table(
        "lessons",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("teacher_id", sa.BigInteger(), sa.ForeignKey("teachers.chat_id"), nullable=False),
        sa.Column("start_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_lessons_teacher_id", "lessons", ["teacher_id"])

    # ── activity_events ──────────────────────────────────────────────────────
    op.create_table(
        "activity_events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("teacher_id", sa.BigInteger(), nullable=False),
        sa.Column("student_id", sa.Integer(), nullable=True),
        sa.Column("lesson_id", sa.Integer(), nullable=True),
        sa.Column("homework_id", sa.Integer(), nullable=True),
        sa.Column("category", sa.String(20), nullable=False),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="SUCCESS"),
        sa.Column("source", sa.String(20), nullable=False, server_default="USER"),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("payload", sa.Text(), nullable=True),
        sa.Column("occurred_at", sa.DateTime(), nullable=False),
        sa.Column("dedupe_key", sa.String(255), nullable=True, unique=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_activity_events_teacher_occurred", "activity_events", ["teacher_id", "occurred_at"])

    # ── payment_events ───────────────────────────────────────────────────────
    op.create_table(
        "payment_events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("teacher_id", sa.BigInteger(), nullable=True),
        sa.Column("student_id", sa.Integer(), nullable=False),
        sa.Column("lesson_id", sa.Integer(), sa.ForeignKey("lessons.id"), nullable=True),
        sa.Column("type", sa.String(30), nullable=False),
        sa.Column("lessons_delta", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("price_snapshot", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("money_amount", sa.Integer(), nullable=True),
        sa.Column("created_by", sa.String(20), nullable=False, server_default="SYSTEM"),
        sa.Column("reason", sa.String(50), nullable=True),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_payment_events_teacher_created", "payment_events", ["teacher_id", "created_at"])

    # ── notification_logs ────────────────────────────────────────────────────
    op.create_table(
        "notification_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("teacher_id", sa.BigInteger(), nullable=False),
        sa.Column("student_id", sa.Integer(), nullable=True),
        sa.Column("lesson_id", sa.Integer(), nullable=True),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("source", sa.String(20), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="SENT"),
        sa.Column("error_text", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("sent_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_notification_logs_teacher_created", "notification_logs", ["teacher_id", "created_at"])


def downgrade() -> None:
    op.drop_table("notification_logs")
    op.drop_table("payment_events")
    op.drop_table("activity_events")
    op.drop_table("lessons")
    op.drop_table("teacher_students")
    op.drop_table("students")
    op.drop_table("teachers")
