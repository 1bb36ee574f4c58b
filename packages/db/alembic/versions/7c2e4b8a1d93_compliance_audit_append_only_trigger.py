# This project was developed with assistance from AI tools.
"""append-only trigger on compliance_audit_entries

Revision ID: 7c2e4b8a1d93
Revises: 3f1a9c2d7b40
Create Date: 2026-10-12
"""

from alembic import op

revision = "7c2e4b8a1d93"
down_revision = "3f1a9c2d7b40"
branch_labels = None
depends_on = None

TRIGGER_FUNCTION = """
CREATE OR REPLACE FUNCTION compliance_audit_prevent_mutation()
RETURNS TRIGGER AS $$
BEGIN
    INSERT INTO audit_violations (attempted_operation, db_user, audit_entry_id)
    VALUES (TG_OP, current_user, OLD.id);

    RAISE EXCEPTION 'compliance_audit_entries is append-only: % denied for row %', TG_OP, OLD.id;
    RETURN NULL;
END;
$$ LANGUAGE plpgsql;
"""

TRIGGER_UPDATE = """
CREATE TRIGGER compliance_audit_no_update
    BEFORE UPDATE ON compliance_audit_entries
    FOR EACH ROW
    EXECUTE FUNCTION compliance_audit_prevent_mutation();
"""

TRIGGER_DELETE = """
CREATE TRIGGER compliance_audit_no_delete
    BEFORE DELETE ON compliance_audit_entries
    FOR EACH ROW
    EXECUTE FUNCTION compliance_audit_prevent_mutation();
"""


def upgrade() -> None:
    op.execute(TRIGGER_FUNCTION)
    op.execute(TRIGGER_UPDATE)
    op.execute(TRIGGER_DELETE)


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS compliance_audit_no_delete ON compliance_audit_entries")
    op.execute("DROP TRIGGER IF EXISTS compliance_audit_no_update ON compliance_audit_entries")
    op.execute("DROP FUNCTION IF EXISTS compliance_audit_prevent_mutation()")
