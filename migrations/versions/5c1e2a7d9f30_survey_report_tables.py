"""survey_report_tables

Create organization, approach catalog, questionnaire/response and
organization_reports tables.

Revision ID: 5c1e2a7d9f30
Revises:
Create Date: 2026-02-01 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "5c1e2a7d9f30"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade():
    bind = op.get_bind()
    existing_tables = set(sa_inspect(bind).get_table_names())

    if "organizations" not in existing_tables:
        op.create_table(
            "organizations",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("slug", sa.String(length=100), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=True, server_default=sa.true()),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_organizations_slug", "organizations", ["slug"], unique=True)

    if "approaches" not in existing_tables:
        op.create_table(
            "approaches",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("slug", sa.String(length=100), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("category", sa.String(length=50), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=True, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("slug"),
        )

    if "approach_questionnaires" not in existing_tables:
        op.create_table(
            "approach_questionnaires",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("approach_id", sa.Integer(), nullable=False),
            sa.Column("title", sa.String(length=300), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("schema", sa.JSON(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["approach_id"], ["approaches.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index(
            "ix_approach_questionnaires_approach_id", "approach_questionnaires", ["approach_id"],
        )

    if "approach_report_templates" not in existing_tables:
        op.create_table(
            "approach_report_templates",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("approach_id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("slug", sa.String(length=100), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("type", sa.String(length=30), nullable=False, server_default="visualization"),
            sa.Column("config", sa.JSON(), nullable=True),
            sa.Column("order", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            *_timestamps(),
            sa.ForeignKeyConstraint(["approach_id"], ["approaches.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("approach_id", "slug", name="uq_report_template_approach_slug"),
        )
        op.create_index(
            "ix_approach_report_templates_approach_id", "approach_report_templates", ["approach_id"],
        )
        op.create_index(
            "ix_approach_report_templates_is_active", "approach_report_templates", ["is_active"],
        )

    if "questionnaires" not in existing_tables:
        op.create_table(
            "questionnaires",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("organization_id", sa.Integer(), nullable=False),
            sa.Column("approach_questionnaire_id", sa.Integer(), nullable=True),
            sa.Column("title", sa.String(length=300), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=True, server_default="draft"),
            sa.Column("schema", sa.JSON(), nullable=True),
            sa.Column("start_date", sa.Date(), nullable=True),
            sa.Column("end_date", sa.Date(), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(
                ["approach_questionnaire_id"], ["approach_questionnaires.id"], ondelete="SET NULL",
            ),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_questionnaires_organization_id", "questionnaires", ["organization_id"])
        op.create_index(
            "ix_questionnaires_approach_questionnaire_id", "questionnaires", ["approach_questionnaire_id"],
        )

    if "questionnaire_responses" not in existing_tables:
        op.create_table(
            "questionnaire_responses",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("questionnaire_id", sa.Integer(), nullable=False),
            sa.Column("participant_id", sa.String(length=64), nullable=False),
            sa.Column("answers", sa.JSON(), nullable=False),
            sa.Column("response_metadata", sa.JSON(), nullable=True),
            sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["questionnaire_id"], ["questionnaires.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index(
            "ix_questionnaire_responses_questionnaire_id", "questionnaire_responses", ["questionnaire_id"],
        )
        op.create_index(
            "ix_questionnaire_responses_participant_id", "questionnaire_responses", ["participant_id"],
        )

    if "organization_reports" not in existing_tables:
        op.create_table(
            "organization_reports",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("organization_id", sa.Integer(), nullable=False),
            sa.Column("template_id", sa.Integer(), nullable=False),
            sa.Column("questionnaire_id", sa.Integer(), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
            sa.Column("computed_data", sa.JSON(), nullable=True),
            sa.Column("config_override", sa.JSON(), nullable=True),
            sa.Column("generated_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("generation_started_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("error_message", sa.Text(), nullable=True),
            sa.Column("response_count", sa.Integer(), nullable=False, server_default="0"),
            *_timestamps(),
            sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(
                ["template_id"], ["approach_report_templates.id"], ondelete="CASCADE",
            ),
            sa.ForeignKeyConstraint(["questionnaire_id"], ["questionnaires.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint(
                "organization_id", "template_id", "questionnaire_id",
                name="uq_org_template_questionnaire",
            ),
        )
        op.create_index("ix_organization_reports_organization_id", "organization_reports", ["organization_id"])
        op.create_index("ix_organization_reports_template_id", "organization_reports", ["template_id"])
        op.create_index("ix_organization_reports_questionnaire_id", "organization_reports", ["questionnaire_id"])
        op.create_index("ix_organization_reports_status", "organization_reports", ["status"])
        op.create_index(
            "ix_organization_reports_org_questionnaire", "organization_reports",
            ["organization_id", "questionnaire_id"],
        )


def downgrade():
    bind = op.get_bind()
    existing_tables = set(sa_inspect(bind).get_table_names())

    for table in (
        "organization_reports",
        "questionnaire_responses",
        "questionnaires",
        "approach_report_templates",
        "approach_questionnaires",
        "approaches",
        "organizations",
    ):
        if table in existing_tables:
            op.drop_table(table)
