"""
Survey Report Platform
Questionnaire instances and participant responses.

Models:
    - Questionnaire:           one survey run for an organization
    - QuestionnaireResponse:   one participant's answers (draft until submitted_at is set)
"""

from datetime import datetime, timezone

from app.models import db

QUESTIONNAIRE_STATUSES = {"draft", "active", "closed"}


class Questionnaire(db.Model):
    __tablename__ = "questionnaires"

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(
        db.Integer, db.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    approach_questionnaire_id = db.Column(
        db.Integer, db.ForeignKey("approach_questionnaires.id", ondelete="SET NULL"),
        nullable=True, index=True,
        comment="NULL → custom questionnaire without report templates",
    )
    title = db.Column(db.String(300), nullable=False)
    status = db.Column(db.String(20), default="draft", comment="draft | active | closed")
    schema = db.Column(db.JSON, nullable=True)
    start_date = db.Column(db.Date, nullable=True)
    end_date = db.Column(db.Date, nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    organization = db.relationship("Organization", back_populates="questionnaires")
    approach_questionnaire = db.relationship("ApproachQuestionnaire")
    responses = db.relationship(
        "QuestionnaireResponse", back_populates="questionnaire",
        lazy="dynamic", cascade="all, delete-orphan",
    )

    def effective_schema(self) -> dict:
        """Own schema, falling back to the approach questionnaire's schema."""
        if self.schema:
            return self.schema
        if self.approach_questionnaire is not None:
            return self.approach_questionnaire.schema or {}
        return {}

    def to_dict(self):
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "approach_questionnaire_id": self.approach_questionnaire_id,
            "title": self.title,
            "status": self.status,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
        }

    def __repr__(self):
        return f"<Questionnaire {self.id}: {self.title}>"


class QuestionnaireResponse(db.Model):
    __tablename__ = "questionnaire_responses"

    id = db.Column(db.Integer, primary_key=True)
    questionnaire_id = db.Column(
        db.Integer, db.ForeignKey("questionnaires.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    participant_id = db.Column(
        db.String(64), nullable=False, index=True,
        comment="Participant key — anonymous participants use their access-token id",
    )
    answers = db.Column(db.JSON, nullable=False, default=dict)
    response_metadata = db.Column(
        db.JSON, nullable=True,
        comment="Segmentation attributes used by data-mapping filters",
    )
    submitted_at = db.Column(
        db.DateTime(timezone=True), nullable=True,
        comment="NULL → draft, excluded from reports",
    )
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    questionnaire = db.relationship("Questionnaire", back_populates="responses")

    def to_dict(self):
        return {
            "id": self.id,
            "questionnaire_id": self.questionnaire_id,
            "participant_id": self.participant_id,
            "answers": self.answers or {},
            "metadata": self.response_metadata or {},
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
        }

    def __repr__(self):
        return f"<QuestionnaireResponse {self.id}: q={self.questionnaire_id}>"
