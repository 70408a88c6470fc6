"""Create origination workflow tables"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_origination_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(updated: bool = True) -> list[sa.Column]:
    columns = [
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
    ]
    if updated:
        columns.append(
            sa.Column(
                "updated_at",
                sa.TIMESTAMP(timezone=True),
                nullable=False,
                server_default=sa.func.now(),
                server_onupdate=sa.func.now(),
            )
        )
    return columns


def _flag(name: str, default: bool = False) -> sa.Column:
    return sa.Column(
        name,
        sa.Boolean(),
        nullable=False,
        server_default=sa.text("true" if default else "false"),
    )


def _employee_ref(name: str) -> sa.Column:
    return sa.Column(
        name,
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="SET NULL"),
        nullable=True,
    )


def _workflow_flags() -> list[sa.Column]:
    return [
        _flag("on_hold"),
        _employee_ref("held_by"),
        _flag("is_rejected"),
        _employee_ref("rejected_by"),
    ]


def upgrade() -> None:
    op.create_table(
        "employees",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("f_name", sa.String(length=100), nullable=False),
        sa.Column("m_name", sa.String(length=100), nullable=True),
        sa.Column("l_name", sa.String(length=100), nullable=True),
        sa.Column(
            "roles",
            postgresql.ARRAY(sa.String(length=50)),
            nullable=False,
            server_default=sa.text("'{}'::varchar[]"),
        ),
        _flag("is_active", default=True),
        *_timestamps(),
    )
    op.create_index("ix_employees_email", "employees", ["email"], unique=True)

    op.create_table(
        "sequences",
        sa.Column("name", sa.String(length=50), primary_key=True),
        sa.Column("value", sa.BigInteger(), nullable=False, server_default=sa.text("0")),
    )

    op.create_table(
        "lead_statuses",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("pan", sa.String(length=10), nullable=False),
        sa.Column("lead_no", sa.String(length=20), nullable=False, unique=True),
        sa.Column("stage", sa.String(length=20), nullable=False, server_default="Lead"),
        _flag("is_in_process"),
        _flag("is_rejected"),
        _flag("is_on_hold"),
        _flag("is_approved"),
        _flag("is_disbursed"),
        _flag("is_closed"),
        *_timestamps(),
        sa.CheckConstraint(
            "stage IN ('Lead', 'Application', 'Sanction', 'Disbursal', 'Active', 'Closed')",
            name="ck_lead_statuses_stage",
        ),
    )
    op.create_index("ix_lead_statuses_pan", "lead_statuses", ["pan"])

    op.create_table(
        "documents",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("pan", sa.String(length=10), nullable=False, unique=True),
        sa.Column("items", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        *_timestamps(),
    )

    op.create_table(
        "leads",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("lead_no", sa.String(length=20), nullable=False, unique=True),
        sa.Column("f_name", sa.String(length=100), nullable=False),
        sa.Column("m_name", sa.String(length=100), nullable=True),
        sa.Column("l_name", sa.String(length=100), nullable=True),
        sa.Column("gender", sa.String(length=1), nullable=False),
        sa.Column("dob", sa.Date(), nullable=False),
        sa.Column("aadhaar", sa.LargeBinary(), nullable=False),
        sa.Column("pan", sa.String(length=10), nullable=False),
        sa.Column("cibil_score", sa.String(length=10), nullable=True),
        sa.Column("mobile", sa.String(length=15), nullable=False),
        sa.Column("alternate_mobile", sa.String(length=15), nullable=True),
        sa.Column("personal_email", sa.String(length=255), nullable=False),
        sa.Column("office_email", sa.String(length=255), nullable=False),
        sa.Column("loan_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("salary", sa.Numeric(14, 2), nullable=False),
        sa.Column("pin_code", sa.String(length=10), nullable=False),
        sa.Column("state", sa.String(length=100), nullable=False),
        sa.Column("city", sa.String(length=100), nullable=False),
        sa.Column("source", sa.String(length=20), nullable=False, server_default="website"),
        sa.Column("reference_id", sa.String(length=100), nullable=True),
        _employee_ref("screener_id"),
        sa.Column(
            "lead_status_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("lead_statuses.id"),
            nullable=True,
        ),
        sa.Column(
            "documents_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("documents.id"),
            nullable=True,
        ),
        _flag("is_mobile_verified"),
        _flag("is_email_verified"),
        _flag("is_aadhaar_verified"),
        _flag("is_aadhaar_details_saved"),
        _flag("is_pan_verified"),
        *_workflow_flags(),
        _flag("is_recommended"),
        _employee_ref("recommended_by"),
        *_timestamps(),
        sa.CheckConstraint("gender IN ('M', 'F', 'O')", name="ck_leads_gender"),
        sa.CheckConstraint(
            "source IN ('website', 'bulk', 'landingPage', 'whatsapp', 'app')",
            name="ck_leads_source",
        ),
        sa.CheckConstraint("loan_amount >= 0", name="ck_leads_loan_amount_nonneg"),
    )
    op.create_index("ix_leads_pan", "leads", ["pan"])
    op.create_index("ix_leads_mobile", "leads", ["mobile"])
    op.create_index("ix_leads_screener_queue", "leads", ["screener_id", "is_recommended", "is_rejected"])

    op.create_table(
        "lead_logs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "lead_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("leads.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("actor_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("status", sa.String(length=255), nullable=False),
        sa.Column("borrower", sa.String(length=255), nullable=False),
        sa.Column("lead_remark", sa.Text(), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("changes", sa.JSON(), nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index("ix_lead_logs_lead_id", "lead_logs", ["lead_id"])

    op.create_table(
        "applicants",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("pan", sa.String(length=10), nullable=False, unique=True),
        sa.Column("aadhaar", sa.LargeBinary(), nullable=True),
        sa.Column("personal_details", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("residence", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("employment", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        *_timestamps(),
    )

    op.create_table(
        "applicant_banks",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "applicant_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("applicants.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("beneficiary_name", sa.String(length=200), nullable=False),
        sa.Column("bank_acc_no", sa.String(length=30), nullable=False, unique=True),
        sa.Column("ifsc_code", sa.String(length=11), nullable=False),
        sa.Column("account_type", sa.String(length=20), nullable=False),
        sa.Column("bank_name", sa.String(length=200), nullable=False),
        sa.Column("branch_name", sa.String(length=200), nullable=True),
        _flag("is_verified"),
        *_timestamps(updated=False),
    )
    op.create_index("ix_applicant_banks_applicant_id", "applicant_banks", ["applicant_id"])

    op.create_table(
        "applications",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "lead_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("leads.id"),
            nullable=False,
            unique=True,
        ),
        sa.Column("lead_no", sa.String(length=20), nullable=False),
        sa.Column("pan", sa.String(length=10), nullable=False),
        sa.Column(
            "applicant_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("applicants.id"),
            nullable=True,
        ),
        _employee_ref("credit_manager_id"),
        *_workflow_flags(),
        _flag("is_recommended"),
        _employee_ref("recommended_by"),
        *_timestamps(),
    )
    op.create_index("ix_applications_pan", "applications", ["pan"])
    op.create_index("ix_applications_credit_manager_id", "applications", ["credit_manager_id"])

    op.create_table(
        "cam_details",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "lead_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("leads.id"),
            nullable=False,
            unique=True,
        ),
        sa.Column("lead_no", sa.String(length=20), nullable=False),
        sa.Column("details", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        *_timestamps(),
    )

    op.create_table(
        "sanctions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "application_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("applications.id"),
            nullable=False,
            unique=True,
        ),
        sa.Column("pan", sa.String(length=10), nullable=False),
        sa.Column("lead_no", sa.String(length=20), nullable=False),
        sa.Column("loan_no", sa.String(length=30), nullable=True, unique=True),
        sa.Column("sanction_date", sa.Date(), nullable=True),
        _employee_ref("recommended_by"),
        _employee_ref("approved_by"),
        _flag("is_approved"),
        _flag("e_sign_pending"),
        _flag("e_signed"),
        sa.Column("e_sign_reference", sa.String(length=100), nullable=True),
        *_workflow_flags(),
        _flag("is_disbursed"),
        *_timestamps(),
    )
    op.create_index("ix_sanctions_pan", "sanctions", ["pan"])

    op.create_table(
        "disbursals",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "sanction_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("sanctions.id"),
            nullable=False,
            unique=True,
        ),
        sa.Column("pan", sa.String(length=10), nullable=False),
        sa.Column("lead_no", sa.String(length=20), nullable=False),
        sa.Column("loan_no", sa.String(length=30), nullable=False),
        _employee_ref("disbursal_manager_id"),
        _flag("sanction_e_signed"),
        _flag("is_recommended"),
        _employee_ref("recommended_by"),
        _flag("is_approved"),
        _flag("is_disbursed"),
        _employee_ref("disbursed_by"),
        sa.Column("disbursed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("payable_account", sa.String(length=50), nullable=True),
        sa.Column("payment_mode", sa.String(length=30), nullable=True),
        sa.Column("amount", sa.Numeric(14, 2), nullable=True),
        sa.Column("channel", sa.String(length=30), nullable=True),
        sa.Column("utr", sa.String(length=100), nullable=True),
        sa.Column("remarks", sa.Text(), nullable=True),
        *_workflow_flags(),
        *_timestamps(),
        sa.CheckConstraint("amount IS NULL OR amount >= 0", name="ck_disbursals_amount_nonneg"),
    )
    op.create_index("ix_disbursals_pan", "disbursals", ["pan"])
    op.create_index("ix_disbursals_loan_no", "disbursals", ["loan_no"])
    op.create_index("ix_disbursals_disbursal_manager_id", "disbursals", ["disbursal_manager_id"])

    op.create_table(
        "closed_ledgers",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("pan", sa.String(length=10), nullable=False, unique=True),
        *_timestamps(updated=False),
    )

    op.create_table(
        "closed_entries",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "ledger_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("closed_ledgers.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("pan", sa.String(length=10), nullable=False),
        sa.Column("lead_no", sa.String(length=20), nullable=False),
        sa.Column("loan_no", sa.String(length=30), nullable=False, unique=True),
        sa.Column(
            "disbursal_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("disbursals.id"),
            nullable=True,
        ),
        _flag("is_active", default=True),
        _flag("is_disbursed"),
        _flag("is_verified"),
        _flag("is_closed"),
        _flag("is_settled"),
        _flag("is_write_off"),
        _flag("defaulted"),
        sa.Column("requested_status", sa.String(length=20), nullable=True),
        sa.Column("closing_date", sa.Date(), nullable=True),
        sa.Column("closing_amount", sa.Numeric(14, 2), nullable=True),
        sa.Column("utr", sa.String(length=100), nullable=True),
        sa.Column("dpd", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("partial_paid", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        *_timestamps(),
        sa.CheckConstraint(
            "requested_status IS NULL OR requested_status IN ('closed', 'settled', 'writeOff', 'partPaid')",
            name="ck_closed_entries_requested_status",
        ),
        sa.CheckConstraint("dpd >= 0", name="ck_closed_entries_dpd_nonneg"),
    )
    op.create_index("ix_closed_entries_ledger_id", "closed_entries", ["ledger_id"])
    op.create_index("ix_closed_entries_pan", "closed_entries", ["pan"])
    op.create_index(
        "uq_closed_entries_active_pan",
        "closed_entries",
        ["pan"],
        unique=True,
        postgresql_where=sa.text("is_active"),
    )

    op.create_table(
        "otps",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("mobile", sa.String(length=15), nullable=False, unique=True),
        sa.Column("f_name", sa.String(length=100), nullable=True),
        sa.Column("l_name", sa.String(length=100), nullable=True),
        sa.Column("otp", sa.String(length=6), nullable=False),
        *_timestamps(updated=False),
    )

    op.create_table(
        "pan_details",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("pan", sa.String(length=10), nullable=False, unique=True),
        sa.Column("data", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        *_timestamps(),
    )

    op.create_table(
        "aadhaar_details",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("unique_id", sa.String(length=120), nullable=False, unique=True),
        sa.Column("data", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        *_timestamps(updated=False),
    )


def downgrade() -> None:
    op.drop_table("aadhaar_details")
    op.drop_table("pan_details")
    op.drop_table("otps")
    op.drop_index("uq_closed_entries_active_pan", table_name="closed_entries")
    op.drop_index("ix_closed_entries_pan", table_name="closed_entries")
    op.drop_index("ix_closed_entries_ledger_id", table_name="closed_entries")
    op.drop_table("closed_entries")
    op.drop_table("closed_ledgers")
    op.drop_index("ix_disbursals_disbursal_manager_id", table_name="disbursals")
    op.drop_index("ix_disbursals_loan_no", table_name="disbursals")
    op.drop_index("ix_disbursals_pan", table_name="disbursals")
    op.drop_table("disbursals")
    op.drop_index("ix_sanctions_pan", table_name="sanctions")
    op.drop_table("sanctions")
    op.drop_table("cam_details")
    op.drop_index("ix_applications_credit_manager_id", table_name="applications")
    op.drop_index("ix_applications_pan", table_name="applications")
    op.drop_table("applications")
    op.drop_index("ix_applicant_banks_applicant_id", table_name="applicant_banks")
    op.drop_table("applicant_banks")
    op.drop_table("applicants")
    op.drop_index("ix_lead_logs_lead_id", table_name="lead_logs")
    op.drop_table("lead_logs")
    op.drop_index("ix_leads_screener_queue", table_name="leads")
    op.drop_index("ix_leads_mobile", table_name="leads")
    op.drop_index("ix_leads_pan", table_name="leads")
    op.drop_table("leads")
    op.drop_table("documents")
    op.drop_index("ix_lead_statuses_pan", table_name="lead_statuses")
    op.drop_table("lead_statuses")
    op.drop_table("sequences")
    op.drop_index("ix_employees_email", table_name="employees")
    op.drop_table("employees")
