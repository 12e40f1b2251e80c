"""baseline schema

Revision ID: 0001_baseline
Revises:
Create Date: 2026-02-05 18:56:27.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0001_baseline"
down_revision = None
branch_labels = None
depends_on = None


def _enum(name: str, *values: str) -> sa.Enum:
    return sa.Enum(*values, name=name, native_enum=False)


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def _profile_fk() -> sa.Column:
    return sa.Column(
        "trainee_profile_id",
        sa.String(length=36),
        sa.ForeignKey("trainee_profiles.id", ondelete="CASCADE"),
        nullable=False,
    )


def _sub_goal_link(table: str, owner_column: str, owner_table: str) -> None:
    op.create_table(
        table,
        sa.Column(
            owner_column,
            sa.String(length=36),
            sa.ForeignKey(f"{owner_table}.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "sub_goal_id",
            sa.String(length=36),
            sa.ForeignKey("sub_goals.id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )


def upgrade() -> None:
    op.create_table(
        "clinics",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("organization", sa.String(length=255), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_clinics_name", "clinics", ["name"], unique=False)

    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column(
            "role",
            _enum("account_role_enum", "TRAINEE", "SUPERVISOR", "STUDY_DIRECTOR", "ADMIN"),
            nullable=False,
        ),
        sa.Column("clinic_id", sa.String(length=36), sa.ForeignKey("clinics.id", ondelete="SET NULL"), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("hashed_password", sa.String(length=255), nullable=False),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_role", "users", ["role"], unique=False)
    op.create_index("ix_users_clinic_id", "users", ["clinic_id"], unique=False)
    op.create_index("ix_users_is_active", "users", ["is_active"], unique=False)
    op.create_index("idx_users_role_active", "users", ["role", "is_active"], unique=False)
    op.create_index("idx_users_clinic_role", "users", ["clinic_id", "role"], unique=False)

    op.create_table(
        "trainee_profiles",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("track_type", _enum("track_type_enum", "ST", "BT"), nullable=False),
        sa.Column("specialty", sa.String(length=255), nullable=True),
        sa.Column("clinic_id", sa.String(length=36), sa.ForeignKey("clinics.id", ondelete="SET NULL"), nullable=True),
        sa.Column("supervisor_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("planned_end_date", sa.Date(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_trainee_profiles_user_id", "trainee_profiles", ["user_id"], unique=True)
    op.create_index("ix_trainee_profiles_clinic_id", "trainee_profiles", ["clinic_id"], unique=False)
    op.create_index("ix_trainee_profiles_supervisor_id", "trainee_profiles", ["supervisor_id"], unique=False)

    op.create_table(
        "goal_specs",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("track_type", _enum("goal_spec_track_type_enum", "ST", "BT"), nullable=False),
        sa.Column("specialty", sa.String(length=255), nullable=True),
        sa.Column("version", sa.String(length=32), nullable=False),
        sa.Column("source_url", sa.String(length=512), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_goal_specs_track_type", "goal_specs", ["track_type"], unique=False)
    op.create_index("ix_goal_specs_created_at", "goal_specs", ["created_at"], unique=False)

    op.create_table(
        "sub_goals",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("goal_spec_id", sa.String(length=36), sa.ForeignKey("goal_specs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("code", sa.String(length=32), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "category",
            _enum(
                "sub_goal_category_enum",
                "MEDICINSK_KOMPETENS",
                "KOMMUNIKATION",
                "LEDARSKAP",
                "VETENSKAP",
                "PROFESSIONALISM",
            ),
            nullable=False,
        ),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint("goal_spec_id", "code", name="uq_sub_goals_spec_code"),
    )
    op.create_index("ix_sub_goals_goal_spec_id", "sub_goals", ["goal_spec_id"], unique=False)
    op.create_index(
        "idx_sub_goals_spec_category",
        "sub_goals",
        ["goal_spec_id", "category", "sort_order"],
        unique=False,
    )

    op.create_table(
        "trainee_sub_goal_progress",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        _profile_fk(),
        sa.Column("sub_goal_id", sa.String(length=36), sa.ForeignKey("sub_goals.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "status",
            _enum("sub_goal_status_enum", "EJ_PABORJAD", "PAGAENDE", "UPPNADD"),
            nullable=False,
        ),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("signed_by_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("signed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("trainee_profile_id", "sub_goal_id", name="uq_progress_trainee_sub_goal"),
    )
    op.create_index(
        "ix_trainee_sub_goal_progress_trainee_profile_id",
        "trainee_sub_goal_progress",
        ["trainee_profile_id"],
        unique=False,
    )
    op.create_index(
        "ix_trainee_sub_goal_progress_sub_goal_id",
        "trainee_sub_goal_progress",
        ["sub_goal_id"],
        unique=False,
    )
    op.create_index(
        "idx_progress_trainee_status",
        "trainee_sub_goal_progress",
        ["trainee_profile_id", "status"],
        unique=False,
    )

    op.create_table(
        "rotations",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        _profile_fk(),
        sa.Column("unit", sa.String(length=255), nullable=False),
        sa.Column("specialty_area", sa.String(length=255), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("planned", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("supervisor_name", sa.String(length=255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_rotations_trainee_profile_id", "rotations", ["trainee_profile_id"], unique=False)
    op.create_index("idx_rotations_trainee_start", "rotations", ["trainee_profile_id", "start_date"], unique=False)
    _sub_goal_link("rotation_sub_goals", "rotation_id", "rotations")

    op.create_table(
        "rotation_feedback",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column(
            "rotation_id",
            sa.String(length=36),
            sa.ForeignKey("rotations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _profile_fk(),
        sa.Column("overall_rating", sa.Integer(), nullable=False),
        sa.Column("educational_value", sa.Integer(), nullable=False),
        sa.Column("supervision_quality", sa.Integer(), nullable=False),
        sa.Column("work_environment", sa.Integer(), nullable=False),
        sa.Column("positives", sa.Text(), nullable=True),
        sa.Column("improvements", sa.Text(), nullable=True),
        sa.Column("other_comments", sa.Text(), nullable=True),
        sa.Column("anonymous", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("rotation_id", name="uq_rotation_feedback_rotation_id"),
    )
    op.create_index(
        "ix_rotation_feedback_trainee_profile_id", "rotation_feedback", ["trainee_profile_id"], unique=False
    )
    op.create_index("ix_rotation_feedback_submitted_at", "rotation_feedback", ["submitted_at"], unique=False)

    op.create_table(
        "courses",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        _profile_fk(),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("provider", sa.String(length=255), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("hours", sa.Integer(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_courses_trainee_profile_id", "courses", ["trainee_profile_id"], unique=False)
    _sub_goal_link("course_sub_goals", "course_id", "courses")

    op.create_table(
        "assessments",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        _profile_fk(),
        sa.Column("type", _enum("assessment_type_enum", "DOPS", "MINI_CEX", "CBD", "ANNAT"), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("context", sa.Text(), nullable=True),
        sa.Column("assessor_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("rating", sa.Integer(), nullable=True),
        sa.Column("narrative_feedback", sa.Text(), nullable=True),
        sa.Column("signed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("rating IS NULL OR (rating >= 1 AND rating <= 5)", name="ck_assessments_rating"),
    )
    op.create_index("ix_assessments_trainee_profile_id", "assessments", ["trainee_profile_id"], unique=False)
    op.create_index("ix_assessments_assessor_id", "assessments", ["assessor_id"], unique=False)
    op.create_index("ix_assessments_signed_at", "assessments", ["signed_at"], unique=False)
    _sub_goal_link("assessment_sub_goals", "assessment_id", "assessments")

    op.create_table(
        "supervision_meetings",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        _profile_fk(),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("agreed_actions", sa.Text(), nullable=True),
        sa.Column("supervisor_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("signed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("voided_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("voided_by_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("void_reason", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "ix_supervision_meetings_trainee_profile_id",
        "supervision_meetings",
        ["trainee_profile_id"],
        unique=False,
    )
    op.create_index(
        "ix_supervision_meetings_supervisor_id",
        "supervision_meetings",
        ["supervisor_id"],
        unique=False,
    )
    op.create_index(
        "idx_supervision_trainee_date",
        "supervision_meetings",
        ["trainee_profile_id", "date"],
        unique=False,
    )

    op.create_table(
        "certificates",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        _profile_fk(),
        sa.Column(
            "type",
            _enum(
                "certificate_type_enum",
                "TJANSTGORNINGSINTYG",
                "KURSINTYG",
                "KOMPETENSBEVIS",
                "HANDLEDARINTYG",
                "OVRIGT",
            ),
            nullable=False,
        ),
        sa.Column("title", sa.String(length=255), nullable=True),
        sa.Column("issue_date", sa.Date(), nullable=True),
        sa.Column("issuer", sa.String(length=255), nullable=True),
        sa.Column("file_path", sa.String(length=512), nullable=False),
        sa.Column("file_name", sa.String(length=255), nullable=False),
        sa.Column("mime_type", sa.String(length=128), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=False),
        sa.Column("parsed_fields", sa.JSON(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_certificates_trainee_profile_id", "certificates", ["trainee_profile_id"], unique=False)
    op.create_index("ix_certificates_created_at", "certificates", ["created_at"], unique=False)
    _sub_goal_link("certificate_sub_goals", "certificate_id", "certificates")

    op.create_table(
        "notifications",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "type",
            _enum(
                "notification_type_enum",
                "DEADLINE_REMINDER",
                "UNSIGNED_ASSESSMENT",
                "SUPERVISION_REMINDER",
                "SUBGOAL_SIGNED",
                "ASSESSMENT_SIGNED",
                "ROTATION_STARTING",
                "ROTATION_ENDING",
                "GENERAL",
            ),
            nullable=False,
        ),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("link", sa.String(length=512), nullable=True),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("email_sent", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("email_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_notifications_id", "notifications", ["id"], unique=False)
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"], unique=False)
    op.create_index("ix_notifications_created_at", "notifications", ["created_at"], unique=False)
    op.create_index("ix_notifications_user_read", "notifications", ["user_id", "read"], unique=False)
    op.create_index(
        "ix_notifications_user_type_created",
        "notifications",
        ["user_id", "type", "created_at"],
        unique=False,
    )
    op.create_index("ix_notifications_email_pending", "notifications", ["email_sent", "created_at"], unique=False)

    op.create_table(
        "notification_preferences",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("email_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("deadline_reminders", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("unsigned_assessments", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("supervision_reminders", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("subgoal_signed", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("assessment_signed", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("days_before_deadline", sa.Integer(), nullable=False, server_default="30"),
        *_timestamps(),
    )
    op.create_index(
        "ix_notification_preferences_user_id",
        "notification_preferences",
        ["user_id"],
        unique=True,
    )

    op.create_table(
        "email_logs",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column(
            "notification_id",
            sa.String(length=36),
            sa.ForeignKey("notifications.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("recipient", sa.String(length=255), nullable=False),
        sa.Column("subject", sa.String(length=255), nullable=False),
        sa.Column("template_key", sa.String(length=128), nullable=False),
        sa.Column(
            "status",
            _enum("email_status_enum", "QUEUED", "SENT", "FAILED", "SKIPPED_NO_PROVIDER"),
            nullable=False,
        ),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("context_json", sa.JSON(), nullable=True),
        sa.Column("correlation_id", sa.String(length=64), nullable=True),
    )
    op.create_index("ix_email_logs_id", "email_logs", ["id"], unique=False)
    op.create_index("ix_email_logs_notification_id", "email_logs", ["notification_id"], unique=False)
    op.create_index("ix_email_logs_created_at", "email_logs", ["created_at"], unique=False)
    op.create_index("ix_email_logs_template_key", "email_logs", ["template_key"], unique=False)
    op.create_index("ix_email_logs_correlation_id", "email_logs", ["correlation_id"], unique=False)
    op.create_index("ix_email_logs_status_created", "email_logs", ["status", "created_at"], unique=False)
    op.create_index("ix_email_logs_recipient", "email_logs", ["recipient"], unique=False)

    op.create_table(
        "audit_events",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("actor_user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column(
            "action",
            _enum("audit_action_enum", "CREATE", "UPDATE", "DELETE", "SIGN", "VOID"),
            nullable=False,
        ),
        sa.Column("entity_type", sa.String(length=64), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=False),
        sa.Column("before", sa.JSON(), nullable=True),
        sa.Column("after", sa.JSON(), nullable=True),
        sa.Column("ip_address", sa.String(length=64), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_audit_events_id", "audit_events", ["id"], unique=False)
    op.create_index("ix_audit_events_actor_user_id", "audit_events", ["actor_user_id"], unique=False)
    op.create_index("ix_audit_events_action", "audit_events", ["action"], unique=False)
    op.create_index("ix_audit_events_entity_type", "audit_events", ["entity_type"], unique=False)
    op.create_index("ix_audit_events_entity_id", "audit_events", ["entity_id"], unique=False)
    op.create_index("ix_audit_events_occurred_at", "audit_events", ["occurred_at"], unique=False)
    op.create_index("ix_audit_events_entity", "audit_events", ["entity_type", "entity_id"], unique=False)
    op.create_index("ix_audit_events_actor_time", "audit_events", ["actor_user_id", "occurred_at"], unique=False)
    op.create_index("ix_audit_events_time_desc", "audit_events", [sa.text("occurred_at DESC")], unique=False)


def downgrade() -> None:
    # Dropping a table drops its indexes.
    for table in (
        "audit_events",
        "email_logs",
        "notification_preferences",
        "notifications",
        "certificate_sub_goals",
        "certificates",
        "supervision_meetings",
        "assessment_sub_goals",
        "assessments",
        "course_sub_goals",
        "courses",
        "rotation_feedback",
        "rotation_sub_goals",
        "rotations",
        "trainee_sub_goal_progress",
        "sub_goals",
        "goal_specs",
        "trainee_profiles",
        "users",
        "clinics",
    ):
        op.drop_table(table)
