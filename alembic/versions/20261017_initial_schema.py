"""Create users, review and report tables.

Revision ID: 3f9a1c2e7b10
Revises:
Create Date: 2026-10-17
"""
from alembic import op
import sqlalchemy as sa

revision = "3f9a1c2e7b10"
down_revision = None
branch_labels = None
depends_on = None


def _soft_delete_columns():
    return [
        sa.Column("is_deleted", sa.Boolean, nullable=False, server_default=sa.false(), index=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deleted_by", sa.String(36), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("email", sa.String(320), nullable=True, unique=True, index=True),
        sa.Column("full_name", sa.String(200), nullable=True),
        sa.Column("avatar_url", sa.String(2000), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default="customer"),
        sa.Column("is_admin", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("is_super_admin", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("is_verified", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True)),
    )

    op.create_table(
        "reviews",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("reviewer_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("reviewer_type", sa.String(20), nullable=False),
        sa.Column("reviewee_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("reviewee_type", sa.String(20), nullable=False),
        sa.Column("service_id", sa.String(36), nullable=True, index=True),
        sa.Column("project_id", sa.String(36), nullable=True, index=True),
        sa.Column("context", sa.String(30), nullable=False, server_default="general_experience"),
        sa.Column("rating", sa.Integer, nullable=False),
        sa.Column("title", sa.String(100), nullable=True),
        sa.Column("comment", sa.Text, nullable=True),
        sa.Column("images", sa.JSON),
        sa.Column("would_recommend", sa.Boolean, nullable=True),
        sa.Column("service_start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("service_end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_verified", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("quality_score", sa.Integer, nullable=False, server_default="0"),
        sa.Column("is_high_quality", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("helpful_votes", sa.Integer, nullable=False, server_default="0"),
        sa.Column("view_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("report_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("moderation_status", sa.String(20), nullable=False, server_default="pending", index=True),
        sa.Column("moderated_by", sa.String(36), nullable=True),
        sa.Column("moderated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("moderation_reason", sa.String(500), nullable=True),
        sa.Column("moderation_history", sa.JSON),
        *_soft_delete_columns(),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
        sa.CheckConstraint("rating >= 1 AND rating <= 5", name="ck_review_rating_range"),
        sa.CheckConstraint("helpful_votes >= 0", name="ck_review_helpful_nonneg"),
    )
    op.create_index("ix_review_reviewee_status", "reviews", ["reviewee_id", "moderation_status", "is_deleted"])
    op.create_index("ix_review_service_status", "reviews", ["service_id", "moderation_status", "is_deleted"])
    op.create_index(
        "ix_review_tuple", "reviews",
        ["reviewer_id", "reviewee_id", sa.text("coalesce(service_id, '')")],
        unique=True,
        sqlite_where=sa.text("is_deleted = 0"),
        postgresql_where=sa.text("is_deleted = false"),
    )

    for table, constraint in (
        ("review_helpful_votes", "uq_review_helpful_voter"),
        ("review_reporters", "uq_review_reporter"),
    ):
        op.create_table(
            table,
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("review_id", sa.String(36), sa.ForeignKey("reviews.id", ondelete="CASCADE"), nullable=False, index=True),
            sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True)),
            sa.UniqueConstraint("review_id", "user_id", name=constraint),
        )

    op.create_table(
        "review_responses",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("review_id", sa.String(36), sa.ForeignKey("reviews.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("responder_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("responder_type", sa.String(20), nullable=False),
        sa.Column("comment", sa.Text, nullable=False),
        sa.Column("is_official_response", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("responded_at", sa.DateTime(timezone=True)),
    )

    op.create_table(
        "reports",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("reporter_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("reporter_type", sa.String(20), nullable=False),
        sa.Column("report_type", sa.String(20), nullable=False, index=True),
        sa.Column("reason", sa.String(40), nullable=False, index=True),
        sa.Column("custom_reason", sa.String(200), nullable=True),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("evidence", sa.JSON),
        sa.Column("priority", sa.String(10), nullable=False, server_default="medium", index=True),
        sa.Column("severity", sa.String(10), nullable=False, server_default="moderate", index=True),
        sa.Column("category", sa.String(40), nullable=True, index=True),
        sa.Column("status", sa.String(30), nullable=False, server_default="pending", index=True),
        sa.Column("investigator_id", sa.String(36), nullable=True, index=True),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolution_summary", sa.String(1000), nullable=True),
        sa.Column("resolution_actions", sa.JSON),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True, index=True),
        sa.Column("resolution_type", sa.String(30), nullable=True),
        sa.Column("follow_up_required", sa.Boolean, nullable=False, server_default=sa.false(), index=True),
        sa.Column("follow_up_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("follow_up_notes", sa.String(1000), nullable=True),
        sa.Column("related_reports", sa.JSON),
        sa.Column("is_escalated", sa.Boolean, nullable=False, server_default=sa.false(), index=True),
        sa.Column("escalated_to", sa.String(36), nullable=True),
        sa.Column("escalated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("escalation_reason", sa.String(500), nullable=True),
        sa.Column("reported_user_id", sa.String(36), nullable=True, index=True),
        sa.Column("reported_user_type", sa.String(20), nullable=True),
        sa.Column("related_service_id", sa.String(36), nullable=True),
        sa.Column("related_project_id", sa.String(36), nullable=True),
        sa.Column("interaction_context", sa.String(30), nullable=True),
        sa.Column("behavior_type", sa.String(30), nullable=True),
        sa.Column("incident_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("witness_ids", sa.JSON),
        sa.Column("reported_review_id", sa.String(36), nullable=True, index=True),
        sa.Column("review_issue", sa.String(30), nullable=True),
        sa.Column("is_competitor_report", sa.Boolean, nullable=True),
        sa.Column("has_conflict_of_interest", sa.Boolean, nullable=True),
        sa.Column("reported_service_id", sa.String(36), nullable=True, index=True),
        sa.Column("service_issue", sa.String(30), nullable=True),
        sa.Column("customers_affected", sa.Integer, nullable=True),
        sa.Column("financial_impact", sa.Float, nullable=True),
        *_soft_delete_columns(),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_report_status_priority_created", "reports", ["status", "priority", "created_at"])
    op.create_index("ix_report_investigator_status", "reports", ["investigator_id", "status"])
    op.create_index("ix_report_type_reason", "reports", ["report_type", "reason"])
    op.create_index("ix_report_followup", "reports", ["follow_up_required", "follow_up_date"])

    op.create_table(
        "report_notes",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("report_id", sa.String(36), sa.ForeignKey("reports.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("author_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("content", sa.String(1000), nullable=False),
        sa.Column("category", sa.String(20), nullable=False, server_default="investigation"),
        sa.Column("is_private", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("added_at", sa.DateTime(timezone=True)),
    )


def downgrade() -> None:
    op.drop_table("report_notes")
    op.drop_table("reports")
    op.drop_table("review_responses")
    op.drop_table("review_reporters")
    op.drop_table("review_helpful_votes")
    op.drop_table("reviews")
    op.drop_table("users")
