"""
Report service — API boundary for report generation, retrieval and export.

Blueprints call these functions with an already-resolved organization id;
every lookup is scoped to that organization so cross-organization ids behave as
missing (404).

Functions return plain dicts shaped for JSON responses. Errors are raised as
app.core.exceptions types and mapped to HTTP in the blueprint.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from flask import current_app
from sqlalchemy import select

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models import db
from app.models.organization import Organization
from app.models.questionnaire import Questionnaire, QuestionnaireResponse
from app.models.reporting import OrganizationReport
from app.reports.aggregator import DataAggregator
from app.reports.batch import BatchItemResult, BatchOrchestrator
from app.reports.generator import ReportGenerator, effective_config
from app.reports.renderers import get_renderer
from app.reports.store import ReportStore
from app.reports.types import (
    ComputedReportData,
    ReportStatus,
    ReportTemplateConfig,
    parse_schema,
)
from app.services.export_service import (
    CSV_MIMETYPE,
    XLSX_MIMETYPE,
    export_report_csv,
    export_report_xlsx,
)
from app.services.helpers.scoped_queries import get_scoped

logger = logging.getLogger(__name__)

EXPORT_FORMATS = ("csv", "xlsx")


# ═════════════════════════════════════════════════════════════════════════════
# Wiring
# ═════════════════════════════════════════════════════════════════════════════

def _min_responses() -> int:
    return int(current_app.config.get("REPORT_MIN_RESPONSES", 5))


def build_generator() -> ReportGenerator:
    cfg = current_app.config
    store = ReportStore(retry_after_seconds=int(cfg.get("REPORT_ESTIMATED_SECONDS", 5)))
    return ReportGenerator(
        store=store,
        aggregator=DataAggregator(min_responses=_min_responses()),
        stale_after_seconds=int(cfg.get("REPORT_STALE_AFTER_SECONDS", 300)),
    )


def get_organization_by_slug(slug: str) -> Organization:
    org = db.session.execute(
        select(Organization).where(Organization.slug == slug, Organization.is_active.is_(True))
    ).scalar_one_or_none()
    if org is None:
        raise NotFoundError(resource="Organization", resource_id=slug)
    return org


def _report_summary(report: OrganizationReport) -> dict:
    out = {"id": report.id, "templateId": report.template_id, "status": report.status}
    if report.status == ReportStatus.GENERATING.value:
        out["estimatedTimeSeconds"] = int(current_app.config.get("REPORT_ESTIMATED_SECONDS", 5))
    return out


# ═════════════════════════════════════════════════════════════════════════════
# Generation
# ═════════════════════════════════════════════════════════════════════════════

def generate_reports(
    organization_id: int,
    questionnaire_id: int,
    template_id: int | None = None,
    force: bool = False,
) -> dict:
    """Generate one template, or every active template of the questionnaire's approach.

    Single template: errors propagate (InsufficientDataError → 400 etc.).
    Batch: failed templates are logged and omitted; successes are returned.
    """
    generator = build_generator()
    if template_id is not None:
        report = generator.generate(
            questionnaire_id, template_id, force=force, organization_id=organization_id,
        )
        return {"reports": [_report_summary(report)]}

    results = BatchOrchestrator(generator).generate_all(questionnaire_id, organization_id, force=force)
    return {"reports": [_report_summary(r.report) for r in results if r.ok]}


def generate_for_questionnaire(questionnaire_id: int, force: bool = False) -> list[BatchItemResult]:
    """CLI entry point — resolves the owning organization from the questionnaire."""
    generator = build_generator()
    questionnaire = generator.store.get_questionnaire(questionnaire_id)
    return BatchOrchestrator(generator).generate_all(
        questionnaire.id, questionnaire.organization_id, force=force,
    )


# ═════════════════════════════════════════════════════════════════════════════
# Retrieval
# ═════════════════════════════════════════════════════════════════════════════

def get_report(organization_id: int, report_id: int) -> dict:
    report = ReportStore().get_report(report_id, organization_id)
    template = report.template
    questionnaire = report.questionnaire
    computed = report.computed_data or {}

    metadata: dict = {"responseCount": report.response_count}
    if report.generated_at is not None:
        metadata["generatedAt"] = report.generated_at.isoformat()
    if "completion_rate" in computed:
        metadata["completionRate"] = computed["completion_rate"]

    return {
        "id": report.id,
        "template": {
            "id": template.id,
            "name": template.name,
            "type": template.type,
            "config": effective_config(template, report),
        },
        "questionnaire": {
            "id": questionnaire.id,
            "title": questionnaire.title,
            "status": questionnaire.status,
        },
        "status": report.status,
        "computedData": report.computed_data,
        "metadata": metadata,
    }


def list_questionnaire_reports(organization_id: int, questionnaire_id: int) -> dict:
    """Reports generated so far plus the templates available for generation."""
    store = ReportStore()
    questionnaire = store.get_questionnaire(questionnaire_id, organization_id)
    reports = store.list_reports(questionnaire.id, organization_id)
    by_template = {r.template_id: r for r in reports}

    available = []
    if questionnaire.approach_questionnaire is not None:
        for template in store.active_templates(questionnaire.approach_questionnaire.approach_id):
            existing = by_template.get(template.id)
            available.append({
                "templateId": template.id,
                "name": template.name,
                "slug": template.slug,
                "type": template.type,
                "description": template.description,
                "reportId": existing.id if existing else None,
                "status": existing.status if existing else None,
            })

    response_count = store.count_submitted(questionnaire.id)
    minimum = _min_responses()
    return {
        "questionnaire": questionnaire.to_dict(),
        "reports": [r.to_dict() for r in reports],
        "availableReports": available,
        "responseCount": response_count,
        "minimumResponses": minimum,
        "canGenerate": response_count >= minimum,
    }


def _complete_report(organization_id: int, report_id: int) -> tuple[OrganizationReport, ReportTemplateConfig]:
    report = ReportStore().get_report(report_id, organization_id)
    if report.status != ReportStatus.COMPLETE.value:
        raise ValidationError(
            "Report is not complete",
            details={"report_id": report.id, "status": report.status},
        )
    config = ReportTemplateConfig.from_dict(effective_config(report.template, report))
    return report, config


def render_report(organization_id: int, report_id: int) -> dict:
    report, config = _complete_report(organization_id, report_id)
    renderer = get_renderer(report.template.type)
    tree = renderer.render(ComputedReportData.from_dict(report.computed_data), config)
    return {"reportId": report.id, "type": renderer.type.value, "presentation": tree}


def export_report(organization_id: int, report_id: int, fmt: str = "xlsx") -> tuple[bytes, str, str]:
    """Return (payload, mimetype, filename) for a complete report."""
    fmt = (fmt or "").lower()
    if fmt not in EXPORT_FORMATS:
        raise ValidationError(
            f"Unsupported export format {fmt!r}", details={"supported": list(EXPORT_FORMATS)},
        )
    report, config = _complete_report(organization_id, report_id)
    data = ComputedReportData.from_dict(report.computed_data)
    order = list(config.dimension_names)
    stamp = (report.generated_at or datetime.now(timezone.utc)).strftime("%Y%m%d")
    filename = f"report_{report.id}_{report.template.slug}_{stamp}.{fmt}"

    if fmt == "csv":
        return export_report_csv(data, order).encode("utf-8"), CSV_MIMETYPE, filename
    title = f"{report.template.name} — {report.questionnaire.title}"
    return export_report_xlsx(title, data, order, config.score_scale), XLSX_MIMETYPE, filename


# ═════════════════════════════════════════════════════════════════════════════
# Analytics & responses
# ═════════════════════════════════════════════════════════════════════════════

def aggregate_questions(
    organization_id: int,
    questionnaire_id: int,
    question_ids: list[str] | None = None,
) -> dict:
    store = ReportStore()
    questionnaire = store.get_questionnaire(questionnaire_id, organization_id)
    schema = parse_schema(questionnaire.effective_schema())
    responses = store.load_responses(questionnaire.id)
    aggregator = DataAggregator(min_responses=_min_responses())
    questions = aggregator.aggregate_questions(schema, responses, question_ids)
    count = store.count_submitted(questionnaire.id)
    return {
        "questionnaireId": questionnaire.id,
        "responseCount": count,
        "sufficientData": count >= aggregator.min_responses,
        "questions": questions,
    }


def submit_response(
    organization_id: int,
    questionnaire_id: int,
    participant_id: str,
    answers: dict,
    metadata: dict | None = None,
    submit: bool = True,
    existing_response_id: int | None = None,
) -> dict:
    """Insert or update one participant's response.

    ``submit=False`` stores a draft (excluded from reports until submitted).
    A participant holds at most one response per questionnaire; a second
    insert raises ConflictError, updates go through ``existing_response_id``.
    """
    if not participant_id or not str(participant_id).strip():
        raise ValidationError("participant_id is required")
    if not isinstance(answers, dict):
        raise ValidationError("answers must be an object keyed by question id")

    questionnaire = get_scoped(Questionnaire, questionnaire_id, organization_id=organization_id)
    if questionnaire.status == "closed":
        raise ValidationError("Questionnaire is closed", details={"questionnaire_id": questionnaire.id})

    if existing_response_id is not None:
        response = get_scoped(QuestionnaireResponse, existing_response_id, questionnaire_id=questionnaire.id)
        if response.participant_id != str(participant_id):
            raise NotFoundError(resource="QuestionnaireResponse", resource_id=existing_response_id)
    else:
        duplicate = db.session.execute(
            select(QuestionnaireResponse.id).where(
                QuestionnaireResponse.questionnaire_id == questionnaire.id,
                QuestionnaireResponse.participant_id == str(participant_id),
            )
        ).first()
        if duplicate is not None:
            raise ConflictError("QuestionnaireResponse", "participant_id", str(participant_id))
        response = QuestionnaireResponse(
            questionnaire_id=questionnaire.id, participant_id=str(participant_id),
        )
        db.session.add(response)

    response.answers = answers
    if metadata is not None:
        response.response_metadata = metadata
    if submit and response.submitted_at is None:
        response.submitted_at = datetime.now(timezone.utc)
    db.session.commit()

    logger.info(
        "Response saved id=%s submitted=%s", response.id, response.submitted_at is not None,
        extra={"organization_id": organization_id, "questionnaire_id": questionnaire.id},
    )
    return response.to_dict()
