"""initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-01 00:00:00.000000
"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        server_default=sa.func.now(),
        nullable=False,
    )


def upgrade() -> None:
    op.create_table(
        "tenants",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("slug", sa.String(), nullable=False),
        _created_at(),
    )
    op.create_index("ix_tenants_slug", "tenants", ["slug"], unique=True)

    op.create_table(
        "credentials",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("password_hash", sa.String(), nullable=False),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_credentials_email", "credentials", ["email"], unique=True)

    op.create_table(
        "user_profiles",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=True),
        sa.Column("first_name", sa.String(), nullable=False),
        sa.Column("last_name", sa.String(), nullable=False),
        sa.Column("phone_number", sa.String(), nullable=True),
        sa.Column("position", sa.String(), nullable=True),
        sa.Column("address", sa.String(), nullable=True),
        sa.Column("role", sa.String(), nullable=False, server_default="member"),
        sa.Column(
            "credential_id",
            sa.Integer(),
            sa.ForeignKey("credentials.id"),
            nullable=True,
        ),
        _created_at(),
        sa.UniqueConstraint("tenant_id", "email", name="uq_profile_tenant_email"),
    )
    op.create_index("ix_user_profiles_email", "user_profiles", ["email"])
    op.create_index("ix_user_profiles_tenant_id", "user_profiles", ["tenant_id"])

    op.create_table(
        "groups",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
    )
    op.create_index("ix_groups_tenant_id", "groups", ["tenant_id"])

    op.create_table(
        "group_members",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("group_id", sa.Integer(), sa.ForeignKey("groups.id"), nullable=False),
        sa.Column(
            "profile_id",
            sa.Integer(),
            sa.ForeignKey("user_profiles.id"),
            nullable=False,
        ),
        sa.UniqueConstraint("group_id", "profile_id", name="uq_group_member"),
    )
    op.create_index("ix_group_members_group_id", "group_members", ["group_id"])
    op.create_index("ix_group_members_profile_id", "group_members", ["profile_id"])

    op.create_table(
        "organization_applications",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("phone", sa.String(), nullable=False),
        sa.Column("club_name", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=False),
        sa.Column("member_count", sa.String(), nullable=False),
        sa.Column("community", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="pending"),
        _created_at(),
    )

    op.create_table(
        "access_tokens",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("token_hash", sa.String(), nullable=False),
        sa.Column("purpose", sa.String(), nullable=False),
        sa.Column("subject_email", sa.String(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=True),
        sa.Column("context_ref", sa.Integer(), nullable=True),
        sa.Column("subject_name", sa.String(), nullable=True),
        sa.Column(
            "created_by",
            sa.Integer(),
            sa.ForeignKey("user_profiles.id"),
            nullable=True,
        ),
        sa.Column("consumed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "ix_access_tokens_token_hash", "access_tokens", ["token_hash"], unique=True
    )
    op.create_index("ix_access_tokens_purpose", "access_tokens", ["purpose"])
    op.create_index("ix_access_tokens_subject_email", "access_tokens", ["subject_email"])
    op.create_index("ix_access_tokens_tenant_id", "access_tokens", ["tenant_id"])

    op.create_table(
        "projects",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("target_all_members", sa.Boolean(), nullable=False),
        sa.Column("target_groups", sa.JSON(), nullable=False),
    )
    op.create_index("ix_projects_tenant_id", "projects", ["tenant_id"])

    op.create_table(
        "opportunities",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column(
            "project_id", sa.Integer(), sa.ForeignKey("projects.id"), nullable=False
        ),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("volunteers_needed", sa.Integer(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("date_scheduled", sa.Date(), nullable=True),
        sa.Column("time_start", sa.Time(), nullable=True),
        sa.Column("duration_hours", sa.Float(), nullable=True),
        sa.Column("location", sa.String(), nullable=True),
        sa.Column("skills_required", sa.JSON(), nullable=False),
        sa.Column("filled_count", sa.Integer(), nullable=False, server_default="0"),
        sa.CheckConstraint(
            "filled_count <= volunteers_needed", name="ck_opportunity_capacity"
        ),
    )
    op.create_index("ix_opportunities_tenant_id", "opportunities", ["tenant_id"])
    op.create_index("ix_opportunities_project_id", "opportunities", ["project_id"])

    op.create_table(
        "signups",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column(
            "opportunity_id",
            sa.Integer(),
            sa.ForeignKey("opportunities.id"),
            nullable=False,
        ),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("member_email", sa.String(), nullable=False),
        sa.Column("member_name", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="confirmed"),
        sa.Column(
            "token_id", sa.Integer(), sa.ForeignKey("access_tokens.id"), nullable=True
        ),
        sa.Column("signed_up_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("opportunity_id", "member_email", name="uq_signup_member"),
    )
    op.create_index("ix_signups_opportunity_id", "signups", ["opportunity_id"])
    op.create_index("ix_signups_tenant_id", "signups", ["tenant_id"])
    op.create_index("ix_signups_member_email", "signups", ["member_email"])

    op.create_table(
        "hours_logs",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("member_email", sa.String(), nullable=False),
        sa.Column("hours", sa.Float(), nullable=False),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id"), nullable=True),
        sa.Column("logged_on", sa.Date(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
    )
    op.create_index("ix_hours_logs_tenant_id", "hours_logs", ["tenant_id"])
    op.create_index("ix_hours_logs_member_email", "hours_logs", ["member_email"])

    op.create_table(
        "polls",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("question", sa.String(), nullable=False),
        sa.Column("poll_type", sa.String(), nullable=False),
        sa.Column("options", sa.JSON(), nullable=False),
        sa.Column("is_anonymous", sa.Boolean(), nullable=False),
        sa.Column("target_all_members", sa.Boolean(), nullable=False),
        sa.Column("target_groups", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="active"),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("total_responses", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_emailed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_by",
            sa.Integer(),
            sa.ForeignKey("user_profiles.id"),
            nullable=True,
        ),
        _created_at(),
    )
    op.create_index("ix_polls_tenant_id", "polls", ["tenant_id"])

    op.create_table(
        "poll_responses",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("poll_id", sa.Integer(), sa.ForeignKey("polls.id"), nullable=False),
        sa.Column("member_email", sa.String(), nullable=False),
        sa.Column("member_name", sa.String(), nullable=False),
        sa.Column("response", sa.String(), nullable=True),
        sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "token_id", sa.Integer(), sa.ForeignKey("access_tokens.id"), nullable=True
        ),
        sa.UniqueConstraint("poll_id", "member_email", name="uq_poll_response_member"),
    )
    op.create_index("ix_poll_responses_poll_id", "poll_responses", ["poll_id"])
    op.create_index("ix_poll_responses_member_email", "poll_responses", ["member_email"])

    op.create_table(
        "email_broadcasts",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("broadcast_type", sa.String(), nullable=False),
        sa.Column("recipient_count", sa.Integer(), nullable=False),
        sa.Column("successful", sa.Integer(), nullable=False),
        sa.Column("failed", sa.Integer(), nullable=False),
        sa.Column(
            "sent_by", sa.Integer(), sa.ForeignKey("user_profiles.id"), nullable=True
        ),
        sa.Column("opportunity_ids", sa.JSON(), nullable=False),
        sa.Column("poll_id", sa.Integer(), sa.ForeignKey("polls.id"), nullable=True),
        sa.Column("targeting_summary", sa.String(), nullable=True),
        _created_at(),
    )
    op.create_index("ix_email_broadcasts_tenant_id", "email_broadcasts", ["tenant_id"])


def downgrade() -> None:
    for table in (
        "email_broadcasts",
        "poll_responses",
        "polls",
        "hours_logs",
        "signups",
        "opportunities",
        "projects",
        "access_tokens",
        "organization_applications",
        "group_members",
        "groups",
        "user_profiles",
        "credentials",
        "tenants",
    ):
        op.drop_table(table)
