"""
Survey Report Platform
Generated report model.

Models:
    - OrganizationReport: computed report for one (organization, template, questionnaire)

Lifecycle states:
    pending → generating → complete | error
    complete → generating   (forced regeneration)
    error    → generating   (retry)
    generating → generating (takeover of a stale claim)
    generating → pending    (rollback of an insufficient-data attempt on a new row)
"""

from datetime import datetime, timezone

from app.models import db

REPORT_STATUSES = {"pending", "generating", "complete", "error"}

REPORT_TRANSITIONS = {
    "pending":    ["generating"],
    "generating": ["complete", "error", "pending", "generating"],
    "complete":   ["generating"],
    "error":      ["generating"],
}


def validate_report_transition(old_status, new_status):
    """Return True if OrganizationReport status transition is valid."""
    return new_status in REPORT_TRANSITIONS.get(old_status, [])


class OrganizationReport(db.Model):
    """Computed report — one row per (organization, template, questionnaire)."""

    __tablename__ = "organization_reports"

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(
        db.Integer, db.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    template_id = db.Column(
        db.Integer, db.ForeignKey("approach_report_templates.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    questionnaire_id = db.Column(
        db.Integer, db.ForeignKey("questionnaires.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    status = db.Column(
        db.String(20), nullable=False, default="pending", index=True,
        comment="pending | generating | complete | error",
    )
    computed_data = db.Column(
        db.JSON, nullable=True,
        comment="Aggregated data ready for rendering; set only with status=complete",
    )
    config_override = db.Column(db.JSON, nullable=True)
    generated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    generation_started_at = db.Column(
        db.DateTime(timezone=True), nullable=True,
        comment="When the current/last generating claim was taken",
    )
    error_message = db.Column(db.Text, nullable=True)
    response_count = db.Column(db.Integer, default=0, nullable=False)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    template = db.relationship("ReportTemplate")
    questionnaire = db.relationship("Questionnaire")

    __table_args__ = (
        db.UniqueConstraint(
            "organization_id", "template_id", "questionnaire_id",
            name="uq_org_template_questionnaire",
        ),
        db.Index("ix_organization_reports_org_questionnaire", "organization_id", "questionnaire_id"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "template_id": self.template_id,
            "questionnaire_id": self.questionnaire_id,
            "status": self.status,
            "computed_data": self.computed_data,
            "generated_at": self.generated_at.isoformat() if self.generated_at else None,
            "error_message": self.error_message,
            "response_count": self.response_count,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return (
            f"<OrganizationReport {self.id}: q={self.questionnaire_id} "
            f"t={self.template_id} {self.status}>"
        )
