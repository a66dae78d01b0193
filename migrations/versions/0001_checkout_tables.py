"""checkout tables

Orders, purchased-course lists, course roster and the audit/security/error logs.

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op


revision: str = "0001_checkout_tables"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "orders",
        sa.Column("id", sa.String(length=32), primary_key=True),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("user_name", sa.String(), nullable=False),
        sa.Column("user_email", sa.String(), nullable=False),
        sa.Column("order_status", sa.String(), nullable=False),
        sa.Column("order_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("payment_method", sa.String(), nullable=False),
        sa.Column("payment_status", sa.String(), nullable=False),
        sa.Column("razorpay_order_id", sa.String(), nullable=False),
        sa.Column("razorpay_payment_id", sa.String(), nullable=True),
        sa.Column("razorpay_signature", sa.String(), nullable=True),
        sa.Column("payment_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("receipt", sa.String(), nullable=False),
        sa.Column("course_id", sa.String(), nullable=False),
        sa.Column("course_title", sa.String(), nullable=False),
        sa.Column("course_image", sa.String(), nullable=False),
        sa.Column("course_pricing", sa.Float(), nullable=False),
        sa.Column("instructor_id", sa.String(), nullable=False),
        sa.Column("instructor_name", sa.String(), nullable=False),
        sa.Column("currency", sa.String(), nullable=False),
        sa.Column("amount_in_paise", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_orders_user_id", "orders", ["user_id"])
    op.create_index("ix_orders_order_status", "orders", ["order_status"])
    op.create_index("ix_orders_payment_status", "orders", ["payment_status"])
    op.create_index("ix_orders_razorpay_order_id", "orders", ["razorpay_order_id"], unique=True)
    op.create_index("ix_orders_razorpay_payment_id", "orders", ["razorpay_payment_id"])
    op.create_index("ix_orders_course_id", "orders", ["course_id"])
    op.create_index("ix_orders_created_at", "orders", ["created_at"])

    op.create_table(
        "courses",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("image", sa.String(), nullable=False),
        sa.Column("pricing", sa.Float(), nullable=False),
        sa.Column("instructor_id", sa.String(), nullable=False),
        sa.Column("instructor_name", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_courses_instructor_id", "courses", ["instructor_id"])

    op.create_table(
        "course_students",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("course_id", sa.String(), sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("student_id", sa.String(), nullable=False),
        sa.Column("student_name", sa.String(), nullable=False),
        sa.Column("student_email", sa.String(), nullable=False),
        sa.Column("paid_amount", sa.Float(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("course_id", "student_id", name="ux_course_student"),
    )
    op.create_index("ix_course_students_course_id", "course_students", ["course_id"])
    op.create_index("ix_course_students_student_id", "course_students", ["student_id"])

    op.create_table(
        "student_courses",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_student_courses_user_id", "student_courses", ["user_id"], unique=True)

    op.create_table(
        "student_course_entries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("student_courses_id", sa.Integer(), sa.ForeignKey("student_courses.id"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("course_id", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("instructor_id", sa.String(), nullable=False),
        sa.Column("instructor_name", sa.String(), nullable=False),
        sa.Column("date_of_purchase", sa.DateTime(timezone=True), nullable=False),
        sa.Column("course_image", sa.String(), nullable=False),
        sa.UniqueConstraint("student_courses_id", "course_id", name="ux_student_course_entry"),
    )
    op.create_index("ix_student_course_entries_student_courses_id", "student_course_entries", ["student_courses_id"])
    op.create_index("ix_student_course_entries_course_id", "student_course_entries", ["course_id"])

    for table, extra in (
        ("audit_logs", [sa.Column("order_id", sa.String(), nullable=True)]),
        ("security_logs", [
            sa.Column("order_id", sa.String(), nullable=True),
            sa.Column("ip", sa.String(), nullable=True),
            sa.Column("endpoint", sa.String(), nullable=True),
        ]),
    ):
        op.create_table(
            table,
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("event", sa.String(), nullable=False),
            sa.Column("user_id", sa.String(), nullable=True),
            *extra,
            sa.Column("detail", sa.String(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        )
        op.create_index(f"ix_{table}_event", table, ["event"])
        op.create_index(f"ix_{table}_user_id", table, ["user_id"])
        op.create_index(f"ix_{table}_order_id", table, ["order_id"])

    op.create_table(
        "error_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.String(), nullable=True),
        sa.Column("endpoint", sa.String(), nullable=True),
        sa.Column("method", sa.String(), nullable=True),
        sa.Column("error_message", sa.String(), nullable=True),
        sa.Column("stack_trace", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_error_logs_user_id", "error_logs", ["user_id"])


def downgrade() -> None:
    for table in (
        "error_logs",
        "security_logs",
        "audit_logs",
        "student_course_entries",
        "student_courses",
        "course_students",
        "courses",
        "orders",
    ):
        op.drop_table(table)
