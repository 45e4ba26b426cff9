"""
Report store — persistence for the report lifecycle.

Wraps the Flask-SQLAlchemy session. Every lifecycle write commits on its
own so a ``generating`` claim is visible to concurrent callers before the
(slow) aggregation starts.

Claiming uses a conditional UPDATE rather than read-then-write:

    UPDATE organization_reports
       SET status='generating', generation_started_at=:now
     WHERE id=:id
       AND (status != 'generating' OR generation_started_at IS NULL
            OR generation_started_at < :stale_cutoff)

Zero rows updated means a fresh claim is held elsewhere.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import GenerationInProgressError, NotFoundError
from app.models import db
from app.models.approach import ApproachQuestionnaire, ReportTemplate
from app.models.questionnaire import Questionnaire, QuestionnaireResponse
from app.models.reporting import OrganizationReport, validate_report_transition
from app.reports.types import ReportStatus, ResponseRecord
from app.services.helpers.scoped_queries import get_scoped

logger = logging.getLogger(__name__)


@dataclass
class Claim:
    """A successful ``generating`` claim and the state it replaced."""
    report: OrganizationReport
    created: bool
    prior_status: str | None = None
    prior_started_at: datetime | None = None


class ReportStore:
    """SQLAlchemy-backed store used by the generator and batch orchestrator."""

    def __init__(self, session=None, retry_after_seconds: int = 5):
        self._session = session
        self.retry_after_seconds = retry_after_seconds

    @property
    def session(self):
        return self._session if self._session is not None else db.session

    # ── Lookups ──────────────────────────────────────────────────────────

    def get_questionnaire(self, questionnaire_id: int, organization_id: int | None = None) -> Questionnaire:
        if organization_id is not None:
            return get_scoped(Questionnaire, questionnaire_id, organization_id=organization_id)
        questionnaire = self.session.get(Questionnaire, questionnaire_id)
        if questionnaire is None:
            raise NotFoundError(resource="Questionnaire", resource_id=questionnaire_id)
        return questionnaire

    def get_template(self, template_id: int) -> ReportTemplate:
        template = self.session.get(ReportTemplate, template_id)
        if template is None:
            raise NotFoundError(resource="ReportTemplate", resource_id=template_id)
        return template

    def get_approach_questionnaire(self, approach_questionnaire_id: int) -> ApproachQuestionnaire:
        aq = self.session.get(ApproachQuestionnaire, approach_questionnaire_id)
        if aq is None:
            raise NotFoundError(resource="ApproachQuestionnaire", resource_id=approach_questionnaire_id)
        return aq

    def active_templates(self, approach_id: int) -> list[ReportTemplate]:
        stmt = (
            select(ReportTemplate)
            .where(ReportTemplate.approach_id == approach_id, ReportTemplate.is_active.is_(True))
            .order_by(ReportTemplate.order, ReportTemplate.id)
        )
        return list(self.session.execute(stmt).scalars())

    def find_report(self, organization_id: int, template_id: int, questionnaire_id: int) -> OrganizationReport | None:
        stmt = select(OrganizationReport).where(
            OrganizationReport.organization_id == organization_id,
            OrganizationReport.template_id == template_id,
            OrganizationReport.questionnaire_id == questionnaire_id,
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def get_report(self, report_id: int, organization_id: int) -> OrganizationReport:
        return get_scoped(OrganizationReport, report_id, organization_id=organization_id)

    def list_reports(self, questionnaire_id: int, organization_id: int) -> list[OrganizationReport]:
        stmt = (
            select(OrganizationReport)
            .where(
                OrganizationReport.questionnaire_id == questionnaire_id,
                OrganizationReport.organization_id == organization_id,
            )
            .order_by(OrganizationReport.created_at.desc(), OrganizationReport.id.desc())
        )
        return list(self.session.execute(stmt).scalars())

    def load_responses(self, questionnaire_id: int) -> list[ResponseRecord]:
        stmt = (
            select(QuestionnaireResponse)
            .where(QuestionnaireResponse.questionnaire_id == questionnaire_id)
            .order_by(QuestionnaireResponse.submitted_at, QuestionnaireResponse.id)
        )
        return [
            ResponseRecord(
                id=row.id,
                participant_id=row.participant_id,
                answers=row.answers,
                metadata=row.response_metadata or {},
                submitted_at=row.submitted_at,
            )
            for row in self.session.execute(stmt).scalars()
        ]

    def count_submitted(self, questionnaire_id: int) -> int:
        return sum(
            1 for r in self.load_responses(questionnaire_id)
            if r.submitted_at is not None and isinstance(r.answers, dict)
        )

    # ── Lifecycle writes ─────────────────────────────────────────────────

    def claim(
        self,
        organization_id: int,
        template_id: int,
        questionnaire_id: int,
        *,
        now: datetime,
        stale_cutoff: datetime,
    ) -> Claim:
        """Move the report row to ``generating`` or raise GenerationInProgressError."""
        existing = self.find_report(organization_id, template_id, questionnaire_id)
        if existing is None:
            report = OrganizationReport(
                organization_id=organization_id,
                template_id=template_id,
                questionnaire_id=questionnaire_id,
                status=ReportStatus.GENERATING.value,
                generation_started_at=now,
            )
            self.session.add(report)
            try:
                self.session.commit()
            except IntegrityError:
                # Lost the insert race; fall through to the conditional update.
                self.session.rollback()
                existing = self.find_report(organization_id, template_id, questionnaire_id)
            else:
                logger.info(
                    "Report claim created id=%s", report.id,
                    extra={"report_id": report.id, "template_id": template_id,
                           "questionnaire_id": questionnaire_id},
                )
                return Claim(report=report, created=True)

        prior_status = existing.status
        prior_started_at = existing.generation_started_at
        stmt = (
            update(OrganizationReport)
            .where(OrganizationReport.id == existing.id)
            .where(or_(
                OrganizationReport.status != ReportStatus.GENERATING.value,
                OrganizationReport.generation_started_at.is_(None),
                OrganizationReport.generation_started_at < stale_cutoff,
            ))
            .values(status=ReportStatus.GENERATING.value, generation_started_at=now)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        if result.rowcount == 0:
            self.session.rollback()
            logger.info(
                "Report id=%s already generating", existing.id,
                extra={"report_id": existing.id},
            )
            raise GenerationInProgressError(existing.id, retry_after=self.retry_after_seconds)
        self.session.commit()
        self.session.refresh(existing)
        if prior_status == ReportStatus.GENERATING.value:
            logger.warning(
                "Took over stale generating claim on report id=%s", existing.id,
                extra={"report_id": existing.id},
            )
        return Claim(
            report=existing, created=False,
            prior_status=prior_status, prior_started_at=prior_started_at,
        )

    def complete(self, report: OrganizationReport, computed_data: dict, response_count: int, now: datetime) -> OrganizationReport:
        self._transition(report, ReportStatus.COMPLETE)
        report.computed_data = computed_data
        report.response_count = response_count
        report.generated_at = now
        report.error_message = None
        self.session.commit()
        return report

    def release(self, report: OrganizationReport, claim: Claim) -> OrganizationReport:
        """Undo a claim without touching computed data."""
        self.session.rollback()
        restored = claim.prior_status or ReportStatus.PENDING.value
        self._transition(report, ReportStatus(restored))
        report.generation_started_at = claim.prior_started_at
        self.session.commit()
        return report

    def fail(self, report: OrganizationReport, message: str) -> OrganizationReport:
        self.session.rollback()
        self._transition(report, ReportStatus.ERROR)
        report.error_message = message[:2000]
        self.session.commit()
        return report

    def _transition(self, report: OrganizationReport, new_status: ReportStatus) -> None:
        if not validate_report_transition(report.status, new_status.value):
            raise ValueError(f"Invalid report transition {report.status} → {new_status.value}")
        report.status = new_status.value
