"""
Survey Report Platform
Approach catalog models.

Models:
    - Approach:               reusable survey blueprint (e.g. a Laloux culture scan)
    - ApproachQuestionnaire:  the questionnaire structure an approach ships with
    - ReportTemplate:         one report definition (type + config) scoped to an approach

Architecture:
    Approach ──1:N──▶ ApproachQuestionnaire ──1:N──▶ Questionnaire (per organization)
    Approach ──1:N──▶ ReportTemplate
"""

from datetime import datetime, timezone

from app.models import db


class Approach(db.Model):
    """Reusable survey blueprint bundling a questionnaire and report templates."""

    __tablename__ = "approaches"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    slug = db.Column(db.String(100), unique=True, nullable=False)
    description = db.Column(db.Text, default="")
    category = db.Column(db.String(50), nullable=True)
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    questionnaires = db.relationship(
        "ApproachQuestionnaire", back_populates="approach",
        lazy="dynamic", cascade="all, delete-orphan",
    )
    templates = db.relationship(
        "ReportTemplate", back_populates="approach",
        lazy="dynamic", cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "category": self.category,
            "is_active": self.is_active,
        }

    def __repr__(self):
        return f"<Approach {self.id}: {self.slug}>"


class ApproachQuestionnaire(db.Model):
    """Questionnaire structure owned by an approach."""

    __tablename__ = "approach_questionnaires"

    id = db.Column(db.Integer, primary_key=True)
    approach_id = db.Column(
        db.Integer, db.ForeignKey("approaches.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, nullable=True)
    schema = db.Column(
        db.JSON, nullable=True,
        comment='{"sections": [{"id", "title", "questions": [...]}]}',
    )
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    approach = db.relationship("Approach", back_populates="questionnaires")

    def to_dict(self):
        return {
            "id": self.id,
            "approach_id": self.approach_id,
            "title": self.title,
            "description": self.description,
            "schema": self.schema or {},
        }

    def __repr__(self):
        return f"<ApproachQuestionnaire {self.id}: approach={self.approach_id}>"


class ReportTemplate(db.Model):
    """Report configuration — type + type-specific parameters."""

    __tablename__ = "approach_report_templates"

    id = db.Column(db.Integer, primary_key=True)
    approach_id = db.Column(
        db.Integer, db.ForeignKey("approaches.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    name = db.Column(db.String(200), nullable=False)
    slug = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)
    type = db.Column(
        db.String(30), nullable=False, default="visualization",
        comment="visualization | dashboard | pdf",
    )
    config = db.Column(
        db.JSON, nullable=True,
        comment="data_mappings, score_scale, visualization/dashboard/pdf blocks",
    )
    order = db.Column(db.Integer, default=0, nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    approach = db.relationship("Approach", back_populates="templates")

    __table_args__ = (
        db.UniqueConstraint("approach_id", "slug", name="uq_report_template_approach_slug"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "approach_id": self.approach_id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "type": self.type,
            "config": self.config or {},
            "order": self.order,
            "is_active": self.is_active,
        }

    def __repr__(self):
        return f"<ReportTemplate {self.id}: {self.slug} ({self.type})>"
