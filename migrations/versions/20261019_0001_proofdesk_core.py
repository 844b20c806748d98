"""proofdesk core schema

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamp(name: str, *, nullable: bool = False) -> sa.Column:
    if nullable:
        return sa.Column(name, sa.DateTime(timezone=True), nullable=True)
    return sa.Column(name, sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP"))


def upgrade() -> None:
    op.create_table(
        "orders",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("external_id", sa.String(length=64), nullable=True),
        sa.Column("platform", sa.String(length=32), nullable=False, server_default="manual"),
        sa.Column("order_number", sa.String(length=100), nullable=False),
        sa.Column("customer_email", sa.String(length=255), nullable=False),
        sa.Column("customer_name", sa.String(length=200), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="open"),
        sa.Column("order_total", sa.Numeric(12, 2), nullable=True),
        sa.Column("sku", sa.String(length=100), nullable=True),
        sa.Column("product_name", sa.String(length=500), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=True),
        sa.Column("product_image_url", sa.String(length=2000), nullable=True),
        sa.Column("customization_options_json", sa.Text(), nullable=True),
        sa.Column("raw_json", sa.Text(), nullable=True),
        sa.Column("reminder_count", sa.Integer(), nullable=False, server_default="0"),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        _timestamp("customer_decision_at", nullable=True),
        _timestamp("customer_last_activity_at", nullable=True),
        _timestamp("customer_last_viewed_at", nullable=True),
        _timestamp("last_reminder_sent_at", nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("external_id", "platform", name="uq_orders_external_platform"),
        sa.UniqueConstraint("platform", "order_number", name="uq_orders_platform_order_number"),
        sa.CheckConstraint(
            "status IN ('draft','open','proof_sent','approved','approved_with_notes','changes_requested')",
            name="ck_orders_status",
        ),
    )
    op.create_index("ix_orders_status_created_at", "orders", ["status", "created_at"], unique=False)

    op.create_table(
        "proof_versions",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("order_id", sa.String(length=36), nullable=False),
        sa.Column("version_number", sa.Integer(), nullable=False),
        sa.Column("staff_note", sa.Text(), nullable=True),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["order_id"], ["orders.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("order_id", "version_number", name="uq_proof_versions_order_version"),
    )

    op.create_table(
        "proof_files",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("version_id", sa.String(length=36), nullable=False),
        sa.Column("filename", sa.String(length=255), nullable=False),
        sa.Column("mime_type", sa.String(length=100), nullable=False),
        sa.Column("size_bytes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("storage_key", sa.String(length=512), nullable=False),
        sa.Column("original_path", sa.String(length=1024), nullable=False),
        sa.Column("preview_path", sa.String(length=1024), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["version_id"], ["proof_versions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_proof_files_version_sort", "proof_files", ["version_id", "sort_order"], unique=False)

    op.create_table(
        "magic_links",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("order_id", sa.String(length=36), nullable=False),
        sa.Column("token_hash", sa.String(length=64), nullable=False),
        _timestamp("expires_at", nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.ForeignKeyConstraint(["order_id"], ["orders.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("order_id", name="uq_magic_links_order_id"),
        sa.UniqueConstraint("token_hash", name="uq_magic_links_token_hash"),
    )

    op.create_table(
        "audit_events",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("order_id", sa.String(length=36), nullable=True),
        sa.Column("actor_type", sa.String(length=16), nullable=False),
        sa.Column("event_type", sa.String(length=64), nullable=False),
        sa.Column("metadata_json", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("ip", sa.String(length=64), nullable=True),
        sa.Column("user_agent", sa.String(length=500), nullable=True),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["order_id"], ["orders.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("actor_type IN ('customer','staff','system')", name="ck_audit_events_actor_type"),
    )
    op.create_index("ix_audit_events_order_created_at", "audit_events", ["order_id", "created_at"], unique=False)

    op.create_table(
        "threads",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("order_id", sa.String(length=36), nullable=False),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["order_id"], ["orders.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("order_id", name="uq_threads_order_id"),
    )

    op.create_table(
        "messages",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("thread_id", sa.String(length=36), nullable=False),
        sa.Column("author_type", sa.String(length=16), nullable=False),
        sa.Column("author_name", sa.String(length=200), nullable=True),
        sa.Column("body", sa.Text(), nullable=False),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["thread_id"], ["threads.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "shipstation_sync_runs",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="running"),
        sa.Column("sync_type", sa.String(length=16), nullable=False),
        sa.Column("triggered_by", sa.String(length=16), nullable=False),
        _timestamp("modified_after", nullable=True),
        _timestamp("started_at"),
        _timestamp("finished_at", nullable=True),
        sa.Column("fetched_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("inserted_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("skipped_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("error_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("error_summary", sa.String(length=500), nullable=True),
        sa.Column("error_details_json", sa.Text(), nullable=True),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("status IN ('running','success','failed')", name="ck_shipstation_sync_runs_status"),
    )
    op.create_index("ix_shipstation_sync_runs_started_at", "shipstation_sync_runs", ["started_at"], unique=False)

    op.create_table(
        "app_settings",
        sa.Column("id", sa.String(length=32), nullable=False),
        sa.Column("company_name", sa.String(length=200), nullable=True),
        sa.Column("accent_color", sa.String(length=7), nullable=True),
        sa.Column("logo_data_url", sa.Text(), nullable=True),
        sa.Column("email_from_name", sa.String(length=200), nullable=True),
        sa.Column("email_from_email", sa.String(length=255), nullable=True),
        sa.Column("staff_notify_email", sa.String(length=255), nullable=True),
        sa.Column("reminder_config_json", sa.Text(), nullable=True),
        sa.Column("templates_json", sa.Text(), nullable=True),
        _timestamp("last_shipstation_sync", nullable=True),
        _timestamp("last_shipstation_sync_attempt", nullable=True),
        sa.Column("last_shipstation_sync_error", sa.Text(), nullable=True),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    settings_table = sa.table("app_settings", sa.column("id", sa.String()))
    op.bulk_insert(settings_table, [{"id": "default"}])


def downgrade() -> None:
    op.drop_table("app_settings")
    op.drop_index("ix_shipstation_sync_runs_started_at", table_name="shipstation_sync_runs")
    op.drop_table("shipstation_sync_runs")
    op.drop_table("messages")
    op.drop_table("threads")
    op.drop_index("ix_audit_events_order_created_at", table_name="audit_events")
    op.drop_table("audit_events")
    op.drop_table("magic_links")
    op.drop_index("ix_proof_files_version_sort", table_name="proof_files")
    op.drop_table("proof_files")
    op.drop_table("proof_versions")
    op.drop_index("ix_orders_status_created_at", table_name="orders")
    op.drop_table("orders")
