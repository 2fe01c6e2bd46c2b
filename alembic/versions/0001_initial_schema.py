"""initial schema: companies, users, sops, assignments, acknowledgments,
reviews, notifications, audit logs

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _has_table(name: str) -> bool:
    return name in sa.inspect(op.get_bind()).get_table_names()


def _timestamps(*, updated: bool = True):
    cols = [sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.text("CURRENT_TIMESTAMP"))]
    if updated:
        cols.append(
            sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.text("CURRENT_TIMESTAMP"))
        )
    return cols


def upgrade():
    if not _has_table("companies"):
        op.create_table(
            "companies",
            sa.Column("id", sa.Integer, primary_key=True),
            sa.Column("name", sa.String(255), nullable=False),
            sa.Column("domain", sa.String(255), nullable=True, unique=True),
            sa.Column("industry", sa.String(120), nullable=True),
            sa.Column("size", sa.String(20), nullable=True),
            sa.Column("settings", sa.JSON, nullable=True),
            sa.Column("subscription_plan", sa.String(50), nullable=True, server_default="basic"),
            sa.Column("subscription_status", sa.String(50), nullable=True, server_default="active"),
            *_timestamps(),
            sa.Column("deleted_at", sa.DateTime, nullable=True),
            sa.CheckConstraint(
                "size IS NULL OR size IN ('small', 'medium', 'large', 'enterprise')",
                name="ck_companies_size_allowed",
            ),
        )
        op.create_index("ix_companies_name", "companies", ["name"])

    if not _has_table("users"):
        op.create_table(
            "users",
            sa.Column("id", sa.Integer, primary_key=True),
            sa.Column("email", sa.String(255), nullable=False, unique=True),
            sa.Column("hashed_password", sa.String, nullable=False),
            sa.Column("company_id", sa.Integer, sa.ForeignKey("companies.id", ondelete="CASCADE"), nullable=True),
            sa.Column("role", sa.String(20), nullable=False, server_default="employee"),
            sa.Column("is_super_admin", sa.Boolean, nullable=False, server_default=sa.text("0")),
            sa.Column("first_name", sa.String(120), nullable=True),
            sa.Column("last_name", sa.String(120), nullable=True),
            sa.Column("department", sa.String(120), nullable=True),
            sa.Column("position", sa.String(120), nullable=True),
            sa.Column("status", sa.String(20), nullable=False, server_default="active"),
            sa.Column("failed_login_attempts", sa.Integer, nullable=False, server_default=sa.text("0")),
            sa.Column("locked_until", sa.DateTime, nullable=True),
            sa.Column("last_login_at", sa.DateTime, nullable=True),
            *_timestamps(),
            sa.Column("deleted_at", sa.DateTime, nullable=True),
            sa.CheckConstraint("role IN ('admin', 'employee', 'auditor')", name="ck_users_role_allowed"),
            sa.CheckConstraint(
                "status IN ('active', 'inactive', 'pending')", name="ck_users_status_allowed"
            ),
        )
        for col in ("email", "company_id", "role", "department", "status", "locked_until"):
            op.create_index(f"ix_users_{col}", "users", [col], unique=(col == "email"))

    if not _has_table("sops"):
        op.create_table(
            "sops",
            sa.Column("id", sa.Integer, primary_key=True),
            sa.Column("company_id", sa.Integer, sa.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False),
            sa.Column("title", sa.String(255), nullable=False),
            sa.Column("description", sa.Text, nullable=True),
            sa.Column("content", sa.Text, nullable=True),
            sa.Column("version", sa.String(20), nullable=False, server_default="1.0"),
            sa.Column("document_type", sa.String(20), nullable=False, server_default="sop"),
            sa.Column("department", sa.String(120), nullable=True),
            sa.Column("status", sa.String(20), nullable=False, server_default="draft"),
            sa.Column("priority", sa.String(20), nullable=False, server_default="medium"),
            sa.Column("tags", sa.JSON, nullable=True),
            sa.Column("author_id", sa.Integer, sa.ForeignKey("users.id"), nullable=True),
            sa.Column("approved_by", sa.Integer, sa.ForeignKey("users.id"), nullable=True),
            sa.Column("approved_at", sa.DateTime, nullable=True),
            sa.Column("published_at", sa.DateTime, nullable=True),
            sa.Column("expires_at", sa.DateTime, nullable=True),
            sa.Column("review_frequency", sa.Integer, nullable=True, server_default=sa.text("365")),
            sa.Column("next_review_date", sa.DateTime, nullable=True),
            sa.Column("view_count", sa.Integer, nullable=False, server_default=sa.text("0")),
            sa.Column("download_count", sa.Integer, nullable=False, server_default=sa.text("0")),
            *_timestamps(),
            sa.Column("deleted_at", sa.DateTime, nullable=True),
            sa.CheckConstraint(
                "status IN ('draft', 'review', 'approved', 'published', 'archived')",
                name="ck_sops_status_allowed",
            ),
            sa.CheckConstraint(
                "priority IN ('low', 'medium', 'high', 'critical')",
                name="ck_sops_priority_allowed",
            ),
            sa.CheckConstraint(
                "document_type IN ('sop', 'policy', 'training', 'procedure')",
                name="ck_sops_document_type_allowed",
            ),
        )
        for col in ("company_id", "title", "department", "status", "author_id", "next_review_date"):
            op.create_index(f"ix_sops_{col}", "sops", [col])
        op.create_index("ix_sops_company_status", "sops", ["company_id", "status"])

    if not _has_table("sop_assignments"):
        op.create_table(
            "sop_assignments",
            sa.Column("id", sa.Integer, primary_key=True),
            sa.Column("company_id", sa.Integer, sa.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False),
            sa.Column("sop_id", sa.Integer, sa.ForeignKey("sops.id", ondelete="CASCADE"), nullable=False),
            sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
            sa.Column("assigned_by", sa.Integer, sa.ForeignKey("users.id"), nullable=True),
            sa.Column("due_date", sa.DateTime, nullable=True),
            sa.Column("priority", sa.String(20), nullable=False, server_default="medium"),
            sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
            sa.Column("notes", sa.Text, nullable=True),
            *_timestamps(),
            sa.CheckConstraint(
                "status IN ('pending', 'acknowledged', 'overdue')",
                name="ck_sop_assignments_status_allowed",
            ),
        )
        for col in ("company_id", "sop_id", "user_id", "due_date", "status"):
            op.create_index(f"ix_sop_assignments_{col}", "sop_assignments", [col])
        op.create_index("ix_assignments_sop_user", "sop_assignments", ["sop_id", "user_id"])
        op.create_index("ix_assignments_company_status", "sop_assignments", ["company_id", "status"])

    if not _has_table("acknowledgments"):
        op.create_table(
            "acknowledgments",
            sa.Column("id", sa.Integer, primary_key=True),
            sa.Column(
                "assignment_id",
                sa.Integer,
                sa.ForeignKey("sop_assignments.id", ondelete="CASCADE"),
                nullable=True,
            ),
            sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
            sa.Column("sop_id", sa.Integer, sa.ForeignKey("sops.id", ondelete="CASCADE"), nullable=False),
            sa.Column("sop_version", sa.String(20), nullable=True),
            sa.Column("notes", sa.Text, nullable=True),
            sa.Column("ip_address", sa.String(64), nullable=True),
            sa.Column("user_agent", sa.String(512), nullable=True),
            sa.Column(
                "acknowledged_at", sa.DateTime, nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")
            ),
            *_timestamps(updated=False),
        )
        for col in ("assignment_id", "user_id", "sop_id", "acknowledged_at"):
            op.create_index(f"ix_acknowledgments_{col}", "acknowledgments", [col])

    if not _has_table("sop_reviews"):
        op.create_table(
            "sop_reviews",
            sa.Column("id", sa.Integer, primary_key=True),
            sa.Column("sop_id", sa.Integer, sa.ForeignKey("sops.id", ondelete="CASCADE"), nullable=False),
            sa.Column("reviewer_id", sa.Integer, sa.ForeignKey("users.id"), nullable=True),
            sa.Column("status", sa.String(30), nullable=False, server_default="pending"),
            sa.Column("comments", sa.Text, nullable=True),
            sa.Column("review_type", sa.String(20), nullable=False, server_default="approval"),
            sa.Column("due_date", sa.DateTime, nullable=True),
            sa.Column("completed_at", sa.DateTime, nullable=True),
            *_timestamps(),
            sa.CheckConstraint(
                "status IN ('pending', 'approved', 'rejected', 'changes_requested')",
                name="ck_sop_reviews_status_allowed",
            ),
            sa.CheckConstraint(
                "review_type IN ('approval', 'periodic', 'audit')",
                name="ck_sop_reviews_type_allowed",
            ),
        )
        op.create_index("ix_sop_reviews_sop_id", "sop_reviews", ["sop_id"])
        op.create_index("ix_sop_reviews_reviewer_id", "sop_reviews", ["reviewer_id"])

    if not _has_table("notifications"):
        op.create_table(
            "notifications",
            sa.Column("id", sa.Integer, primary_key=True),
            sa.Column("company_id", sa.Integer, sa.ForeignKey("companies.id", ondelete="CASCADE"), nullable=True),
            sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
            sa.Column("type", sa.String(50), nullable=False),
            sa.Column("title", sa.String(255), nullable=False),
            sa.Column("message", sa.Text, nullable=True),
            sa.Column("data", sa.JSON, nullable=True),
            sa.Column("read", sa.Boolean, nullable=False, server_default=sa.text("0")),
            sa.Column("priority", sa.String(20), nullable=False, server_default="medium"),
            sa.Column("expires_at", sa.DateTime, nullable=True),
            *_timestamps(updated=False),
            sa.CheckConstraint(
                "priority IN ('low', 'medium', 'high', 'urgent')",
                name="ck_notifications_priority_allowed",
            ),
        )
        for col in ("company_id", "user_id", "type", "created_at"):
            op.create_index(f"ix_notifications_{col}", "notifications", [col])
        op.create_index("ix_notifications_user_read", "notifications", ["user_id", "read"])

    if not _has_table("audit_logs"):
        op.create_table(
            "audit_logs",
            sa.Column("id", sa.Integer, primary_key=True),
            sa.Column("company_id", sa.Integer, sa.ForeignKey("companies.id", ondelete="SET NULL"), nullable=True),
            sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
            sa.Column("action", sa.String(100), nullable=False),
            sa.Column("resource_type", sa.String(50), nullable=True),
            sa.Column("resource_id", sa.Integer, nullable=True),
            sa.Column("old_values", sa.JSON, nullable=True),
            sa.Column("new_values", sa.JSON, nullable=True),
            sa.Column("ip_address", sa.String(64), nullable=True),
            sa.Column("user_agent", sa.String(512), nullable=True),
            sa.Column("metadata", sa.JSON, nullable=True),
            sa.Column("retention_expires_at", sa.DateTime, nullable=True),
            *_timestamps(updated=False),
        )
        for col in ("company_id", "user_id", "action", "created_at"):
            op.create_index(f"ix_audit_logs_{col}", "audit_logs", [col])
        op.create_index("ix_audit_company_created", "audit_logs", ["company_id", "created_at"])


def downgrade():
    for name in (
        "audit_logs",
        "notifications",
        "sop_reviews",
        "acknowledgments",
        "sop_assignments",
        "sops",
        "users",
        "companies",
    ):
        if _has_table(name):
            op.drop_table(name)
