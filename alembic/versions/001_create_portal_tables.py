"""create document portal tables

Revision ID: 001
Revises: 
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

revision  = "001"
down_revision = None
branch_labels = None
depends_on    = None


user_role_enum = sa.Enum("superadmin", "registrar", name="user_role_enum")
otp_purpose_enum = sa.Enum("request", "tracking", "dashboard", name="otp_purpose_enum")
request_status_enum = sa.Enum(
    "Pending", "Verified", "Processing", "Ready", "Completed", "Rejected",
    name="request_status_enum",
)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id",            sa.Integer(),               primary_key=True, autoincrement=True),
        sa.Column("name",          sa.String(255),             nullable=False),
        sa.Column("email",         sa.String(255),             nullable=False),
        sa.Column("password_hash", sa.Text(),                  nullable=False),
        sa.Column("role",          user_role_enum,             nullable=False, server_default="registrar"),
        sa.Column("is_active",     sa.Boolean(),               nullable=False, server_default="true"),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at",    sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at",    sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_id",    "users", ["id"],    unique=False)

    op.create_table(
        "document_types",
        sa.Column("id",              sa.Integer(),               primary_key=True),
        sa.Column("name",            sa.String(255),             nullable=False),
        sa.Column("category",        sa.String(255),             nullable=False),
        sa.Column("description",     sa.Text(),                  nullable=True),
        sa.Column("processing_days", sa.Integer(),               nullable=False, server_default="7"),
        sa.Column("is_active",       sa.Boolean(),               nullable=False, server_default="true"),
        sa.Column("created_at",      sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at",      sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_document_types_category", "document_types", ["category"])

    op.create_table(
        "otp_codes",
        sa.Column("id",         sa.Integer(),               primary_key=True),
        sa.Column("email",      sa.String(255),             nullable=False),
        sa.Column("code_hash",  sa.String(64),              nullable=False),
        sa.Column("purpose",    otp_purpose_enum,           nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("used",       sa.Boolean(),               nullable=False, server_default="false"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_otp_codes_id",     "otp_codes", ["id"])
    op.create_index("ix_otp_codes_email",  "otp_codes", ["email"])
    op.create_index("ix_otp_codes_lookup", "otp_codes", ["email", "purpose", "used"])

    op.create_table(
        "document_requests",
        sa.Column("id",                        sa.Integer(),     primary_key=True),
        sa.Column("tracking_id",               sa.String(32),    nullable=False),
        sa.Column("email",                     sa.String(255),   nullable=False),
        sa.Column("first_name",                sa.String(255),   nullable=False),
        sa.Column("middle_name",               sa.String(255),   nullable=True),
        sa.Column("last_name",                 sa.String(255),   nullable=False),
        sa.Column("lrn",                       sa.String(12),    nullable=False),
        sa.Column("grade_level",               sa.String(20),    nullable=False),
        sa.Column("section",                   sa.String(255),   nullable=False),
        sa.Column("track_strand",              sa.String(255),   nullable=True),
        sa.Column("school_year_last_attended", sa.String(20),    nullable=False),
        sa.Column(
            "document_type_id", sa.Integer(),
            sa.ForeignKey("document_types.id", ondelete="RESTRICT"), nullable=False,
        ),
        sa.Column("purpose",                   sa.Text(),        nullable=False),
        sa.Column("quantity",                  sa.Integer(),     nullable=False, server_default="1"),
        sa.Column("status",                    request_status_enum, nullable=False, server_default="Pending"),
        sa.Column("admin_notes",               sa.Text(),        nullable=True),
        sa.Column(
            "processed_by", sa.Integer(),
            sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
        ),
        sa.Column("estimated_completion_date", sa.Date(),                  nullable=True),
        sa.Column("completed_at",              sa.DateTime(timezone=True), nullable=True),
        sa.Column("otp_verified",              sa.Boolean(),               nullable=False, server_default="false"),
        sa.Column("created_at",                sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at",                sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("deleted_at",                sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("tracking_id", name="uq_document_requests_tracking_id"),
    )
    op.create_index("ix_document_requests_tracking_id",      "document_requests", ["tracking_id"])
    op.create_index("ix_document_requests_email",            "document_requests", ["email"])
    op.create_index("ix_document_requests_lrn",              "document_requests", ["lrn"])
    op.create_index("ix_document_requests_document_type_id", "document_requests", ["document_type_id"])
    op.create_index("ix_document_requests_status",           "document_requests", ["status"])
    op.create_index("ix_document_requests_processed_by",     "document_requests", ["processed_by"])
    op.create_index("ix_document_requests_created_at",       "document_requests", ["created_at"])
    op.create_index("ix_document_requests_deleted_at",       "document_requests", ["deleted_at"])
    op.create_index(
        "ix_document_requests_email_type_status",
        "document_requests",
        ["email", "document_type_id", "status"],
    )

    op.create_table(
        "request_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "document_request_id", sa.Integer(),
            sa.ForeignKey("document_requests.id", ondelete="CASCADE"), nullable=True,
        ),
        sa.Column(
            "user_id", sa.Integer(),
            sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
        ),
        sa.Column("action",      sa.String(50),              nullable=False),
        sa.Column("old_value",   sa.Text(),                  nullable=True),
        sa.Column("new_value",   sa.Text(),                  nullable=True),
        sa.Column("description", sa.Text(),                  nullable=True),
        sa.Column("created_at",  sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_request_logs_document_request_id", "request_logs", ["document_request_id"])
    op.create_index("ix_request_logs_user_id",             "request_logs", ["user_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id",           sa.Integer(),               primary_key=True),
        sa.Column("user_id",      sa.Integer(),               nullable=True),
        sa.Column("user_role",    sa.String(30),              nullable=False, server_default="system"),
        sa.Column("action",       sa.String(30),              nullable=False),
        sa.Column("subject_type", sa.String(100),             nullable=True),
        sa.Column("subject_id",   sa.Integer(),               nullable=True),
        sa.Column("description",  sa.Text(),                  nullable=False),
        sa.Column("old_values",   sa.JSON(),                  nullable=True),
        sa.Column("new_values",   sa.JSON(),                  nullable=True),
        sa.Column("ip_address",   sa.String(45),              nullable=True),
        sa.Column("user_agent",   sa.Text(),                  nullable=True),
        sa.Column("created_at",   sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_audit_logs_user_id",    "audit_logs", ["user_id"])
    op.create_index("ix_audit_logs_action",     "audit_logs", ["action"])
    op.create_index("ix_audit_logs_created_at", "audit_logs", ["created_at"])
    op.create_index("ix_audit_logs_subject",    "audit_logs", ["subject_type", "subject_id"])


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("request_logs")
    op.drop_table("document_requests")
    op.drop_table("otp_codes")
    op.drop_table("document_types")
    op.drop_table("users")

    bind = op.get_bind()
    request_status_enum.drop(bind, checkfirst=True)
    otp_purpose_enum.drop(bind, checkfirst=True)
    user_role_enum.drop(bind, checkfirst=True)
