# This project was developed with assistance from AI tools.
"""initial loanflow schema

Revision ID: 3f1a9c2d7b40
Revises:
Create Date: 2026-10-12
"""

import sqlalchemy as sa
from alembic import op

revision = "3f1a9c2d7b40"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "loan_officers",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("nmls_id", sa.String(50), nullable=True),
        sa.Column("compliance_data", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_loan_officers_tenant_id", "loan_officers", ["tenant_id"])

    op.create_table(
        "loans",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("loan_number", sa.String(50), nullable=False),
        sa.Column("status", sa.String(50), nullable=False, server_default="application"),
        sa.Column("loan_officer_id", sa.Integer(), nullable=True),
        sa.Column("borrower_id", sa.Integer(), nullable=True),
        sa.Column("loan_type", sa.String(50), nullable=True),
        sa.Column("property_type", sa.String(50), nullable=True),
        sa.Column("loan_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("application_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closing_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("funding_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("loan_data", sa.JSON(), nullable=True),
        sa.Column("compliance_data", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["loan_officer_id"], ["loan_officers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tenant_id", "loan_number", name="uq_loans_tenant_number"),
    )
    op.create_index("ix_loans_tenant_id", "loans", ["tenant_id"])
    op.create_index("ix_loans_loan_officer_id", "loans", ["loan_officer_id"])
    op.create_index("ix_loans_borrower_id", "loans", ["borrower_id"])

    op.create_table(
        "loan_documents",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("loan_id", sa.Integer(), nullable=False),
        sa.Column("doc_type", sa.String(50), nullable=False),
        sa.Column("file_name", sa.String(500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["loan_id"], ["loans.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_loan_documents_tenant_id", "loan_documents", ["tenant_id"])
    op.create_index("ix_loan_documents_loan_id", "loan_documents", ["loan_id"])

    op.create_table(
        "workflow_steps",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("loan_id", sa.Integer(), nullable=False),
        sa.Column("step_name", sa.String(100), nullable=False),
        sa.Column("step_order", sa.Integer(), nullable=False),
        sa.Column("step_type", sa.String(50), nullable=False),
        sa.Column("is_required", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("completion_criteria", sa.JSON(), nullable=True),
        sa.Column("compliance_requirements", sa.JSON(), nullable=True),
        sa.Column("assigned_role", sa.String(50), nullable=True),
        sa.Column("assigned_to", sa.String(255), nullable=True),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_by", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["loan_id"], ["loans.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("loan_id", "step_order", name="uq_workflow_steps_loan_order"),
    )
    op.create_index("ix_workflow_steps_tenant_id", "workflow_steps", ["tenant_id"])
    op.create_index("ix_workflow_steps_loan_id", "workflow_steps", ["loan_id"])
    op.create_index("ix_workflow_steps_assigned_to", "workflow_steps", ["assigned_to"])

    op.create_table(
        "workflow_events",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("loan_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(50), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_workflow_events_tenant_id", "workflow_events", ["tenant_id"])
    op.create_index("ix_workflow_events_loan_id", "workflow_events", ["loan_id"])

    op.create_table(
        "processing_runs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("loan_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(50), nullable=False, server_default="running"),
        sa.Column("current_stage", sa.String(50), nullable=True),
        sa.Column("outcome", sa.String(50), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_processing_runs_tenant_id", "processing_runs", ["tenant_id"])
    op.create_index("ix_processing_runs_loan_id", "processing_runs", ["loan_id"])

    op.create_table(
        "compliance_audit_entries",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("audit_type", sa.String(50), nullable=False),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("old_values", sa.JSON(), nullable=True),
        sa.Column("new_values", sa.JSON(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("actor", sa.String(255), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("prev_hash", sa.String(64), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "tenant_id", "entity_type", "entity_id", "sequence",
            name="uq_compliance_audit_entity_sequence",
        ),
    )
    op.create_index("ix_compliance_audit_entries_tenant_id", "compliance_audit_entries", ["tenant_id"])
    op.create_index("ix_compliance_audit_entries_audit_type", "compliance_audit_entries", ["audit_type"])
    op.create_index("ix_compliance_audit_entries_entity_id", "compliance_audit_entries", ["entity_id"])
    op.create_index("ix_compliance_audit_entries_timestamp", "compliance_audit_entries", ["timestamp"])

    op.create_table(
        "audit_violations",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("attempted_operation", sa.String(10), nullable=False),
        sa.Column("db_user", sa.String(255), nullable=False),
        sa.Column("audit_entry_id", sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )


def downgrade() -> None:
    op.drop_table("audit_violations")
    op.drop_table("compliance_audit_entries")
    op.drop_table("processing_runs")
    op.drop_table("workflow_events")
    op.drop_table("workflow_steps")
    op.drop_table("loan_documents")
    op.drop_table("loans")
    op.drop_table("loan_officers")
