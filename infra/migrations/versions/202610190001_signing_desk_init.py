"""signing desk tables

Revision ID: 202610190001
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "202610190001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "events",
        sa.Column("event_id", sa.String(), nullable=False),
        sa.Column("event_type", sa.String(), nullable=False),
        sa.Column("ts", sa.DateTime(timezone=True), nullable=False),
        sa.Column("actor_id", sa.String(), nullable=True),
        sa.Column("correlation_id", sa.String(), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint("event_id"),
    )
    op.create_index("ix_events_event_type", "events", ["event_type"])
    op.create_index("ix_events_ts", "events", ["ts"])
    op.create_index("ix_events_actor_id", "events", ["actor_id"])
    op.create_index("ix_events_correlation_id", "events", ["correlation_id"])

    op.create_table(
        "expense_processes",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("protocol_number", sa.String(), nullable=False),
        sa.Column("requester_name", sa.String(), nullable=False),
        sa.Column("requester_unit", sa.String(), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("workflow_state", sa.String(), nullable=False),
        sa.Column("current_owner", sa.String(), nullable=False),
        sa.Column("origin_unit", sa.String(), nullable=True),
        sa.Column("handoff_note", sa.String(), nullable=True),
        sa.Column("routed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_expense_processes_protocol_number", "expense_processes", ["protocol_number"], unique=True)
    op.create_index("ix_expense_processes_requester_unit", "expense_processes", ["requester_unit"])
    op.create_index("ix_expense_processes_workflow_state", "expense_processes", ["workflow_state"])
    op.create_index("ix_expense_processes_current_owner", "expense_processes", ["current_owner"])
    op.create_index("ix_expense_processes_created_at", "expense_processes", ["created_at"])
    op.create_index("ix_expense_processes_updated_at", "expense_processes", ["updated_at"])

    op.create_table(
        "signing_documents",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("process_id", sa.String(), nullable=False),
        sa.Column("kind", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("signed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("signed_by", sa.String(), nullable=True),
        sa.Column("signer_name", sa.String(), nullable=True),
        sa.Column("signer_role", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["process_id"], ["expense_processes.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_signing_documents_process_id", "signing_documents", ["process_id"])
    op.create_index("ix_signing_documents_kind", "signing_documents", ["kind"])
    op.create_index("ix_signing_documents_status", "signing_documents", ["status"])
    op.create_index("ix_signing_documents_created_at", "signing_documents", ["created_at"])

    op.create_table(
        "execution_records",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("process_id", sa.String(), nullable=False),
        sa.Column("document_kind", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("signed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["process_id"], ["expense_processes.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_execution_records_process_id", "execution_records", ["process_id"])
    op.create_index("ix_execution_records_status", "execution_records", ["status"])
    op.create_index("ix_execution_records_created_at", "execution_records", ["created_at"])
    op.create_index("ix_execution_records_process_kind", "execution_records", ["process_id", "document_kind"])

    op.create_table(
        "approvers",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("display_name", sa.String(), nullable=False),
        sa.Column("role_label", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("daily_capacity", sa.Integer(), nullable=False),
        sa.Column("signing_pin_hash", sa.String(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_approvers_email", "approvers", ["email"])
    op.create_index("ix_approvers_created_at", "approvers", ["created_at"])

    op.create_table(
        "signing_tasks",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("process_id", sa.String(), nullable=False),
        sa.Column("document_id", sa.String(), nullable=True),
        sa.Column("document_kind", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("signed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("signed_by", sa.String(), nullable=True),
        sa.Column("assigned_to", sa.String(), nullable=True),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.String(), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_by", sa.String(), nullable=True),
        sa.Column("protocol_number", sa.String(), nullable=False),
        sa.Column("requester_name", sa.String(), nullable=False),
        sa.Column("requester_unit", sa.String(), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("process_created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["process_id"], ["expense_processes.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_signing_tasks_process_id", "signing_tasks", ["process_id"])
    op.create_index("ix_signing_tasks_document_id", "signing_tasks", ["document_id"], unique=True)
    op.create_index("ix_signing_tasks_document_kind", "signing_tasks", ["document_kind"])
    op.create_index("ix_signing_tasks_status", "signing_tasks", ["status"])
    op.create_index("ix_signing_tasks_created_at", "signing_tasks", ["created_at"])
    op.create_index("ix_signing_tasks_signed_by", "signing_tasks", ["signed_by"])
    op.create_index("ix_signing_tasks_assigned_to", "signing_tasks", ["assigned_to"])
    op.create_index("ix_signing_tasks_process_status", "signing_tasks", ["process_id", "status"])
    op.create_index("ix_signing_tasks_assignee_status", "signing_tasks", ["assigned_to", "status"])

    op.create_table(
        "signing_task_history",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("task_id", sa.String(), nullable=False),
        sa.Column("action", sa.String(), nullable=False),
        sa.Column("from_state", sa.String(), nullable=True),
        sa.Column("to_state", sa.String(), nullable=True),
        sa.Column("actor_id", sa.String(), nullable=True),
        sa.Column("note", sa.String(), nullable=True),
        sa.Column("detail", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["task_id"], ["signing_tasks.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_signing_task_history_task_id", "signing_task_history", ["task_id"])
    op.create_index("ix_signing_task_history_action", "signing_task_history", ["action"])
    op.create_index("ix_signing_task_history_actor_id", "signing_task_history", ["actor_id"])
    op.create_index("ix_signing_task_history_created_at", "signing_task_history", ["created_at"])


def downgrade() -> None:
    op.drop_table("signing_task_history")
    op.drop_table("signing_tasks")
    op.drop_table("approvers")
    op.drop_table("execution_records")
    op.drop_table("signing_documents")
    op.drop_table("expense_processes")
    op.drop_table("events")
