"""
Reports blueprint — organization-scoped report API.

Endpoints (all under /api/v1/orgs/<slug>):
    POST /reports/generate                              — generate one or all templates
    GET  /reports/<report_id>                           — report with template + questionnaire
    GET  /reports/<report_id>/render                    — presentation tree
    GET  /reports/<report_id>/export?format=csv|xlsx    — download computed data
    GET  /questionnaires/<questionnaire_id>/reports     — generated + available reports
    POST /questionnaires/<questionnaire_id>/responses   — submit / update a response
    POST /analytics/aggregate                           — per-question analytics

Authentication and role checks run upstream; this blueprint only enforces
the organization boundary (unknown slug or foreign id → 404).
"""

import io
import logging

from flask import Blueprint, current_app, jsonify, request, send_file
from werkzeug.exceptions import HTTPException

from app import limiter
from app.blueprints import parse_bool_arg
from app.core.exceptions import (
    ConflictError,
    GenerationFailure,
    GenerationInProgressError,
    InsufficientDataError,
    NotFoundError,
    ReportConfigurationError,
    ValidationError,
)
from app.services import report_service
from app.utils.errors import E, api_error

logger = logging.getLogger(__name__)

reports_bp = Blueprint("reports", __name__, url_prefix="/api/v1/orgs")


# ═════════════════════════════════════════════════════════════════════════
# Error handlers
# ═════════════════════════════════════════════════════════════════════════

@reports_bp.errorhandler(InsufficientDataError)
def _handle_insufficient(error: InsufficientDataError):
    return api_error(
        E.INSUFFICIENT_DATA, str(error),
        details={"count": error.count, "minimum": error.minimum},
    )


@reports_bp.errorhandler(NotFoundError)
def _handle_not_found(error: NotFoundError):
    logger.debug("Not found: %s", error)
    return api_error(E.NOT_FOUND, f"{error.resource} not found")


@reports_bp.errorhandler(ValidationError)
def _handle_validation(error: ValidationError):
    return api_error(E.VALIDATION_INVALID, str(error), details=error.details)


@reports_bp.errorhandler(ConflictError)
def _handle_conflict(error: ConflictError):
    return api_error(E.CONFLICT_DUPLICATE, str(error))


@reports_bp.errorhandler(ReportConfigurationError)
def _handle_configuration(error: ReportConfigurationError):
    return api_error(E.REPORT_CONFIGURATION, str(error), details=error.details)


@reports_bp.errorhandler(GenerationInProgressError)
def _handle_in_progress(error: GenerationInProgressError):
    response, status = api_error(
        E.GENERATION_IN_PROGRESS, "Report generation already in progress, retry later",
        details={"report_id": error.report_id},
    )
    if error.retry_after:
        response.headers["Retry-After"] = str(error.retry_after)
    return response, status


@reports_bp.errorhandler(GenerationFailure)
def _handle_generation_failure(error: GenerationFailure):
    # Cause already logged by the generator; never echo internals
    return api_error(E.INTERNAL, "Report generation failed")


@reports_bp.errorhandler(Exception)
def _handle_unexpected(error: Exception):
    if isinstance(error, HTTPException):
        return error
    logger.exception("Unexpected error in reports_bp endpoint=%s", request.endpoint)
    return api_error(E.INTERNAL, "Internal server error")


# ═════════════════════════════════════════════════════════════════════════
# Helpers
# ═════════════════════════════════════════════════════════════════════════

def _org(slug):
    return report_service.get_organization_by_slug(slug)


def _int_field(data: dict, *names):
    for name in names:
        if name in data and data[name] is not None:
            try:
                return int(data[name])
            except (TypeError, ValueError):
                raise ValidationError(f"{name} must be an integer") from None
    return None


def _generate_limit():
    return current_app.config.get("REPORT_GENERATE_RATE_LIMIT", "30/minute")


# ═════════════════════════════════════════════════════════════════════════
# Reports
# ═════════════════════════════════════════════════════════════════════════

@reports_bp.route("/<slug>/reports/generate", methods=["POST"])
@limiter.limit(_generate_limit)
def generate_reports(slug):
    """Generate reports for a questionnaire.

    Body: { questionnaireId, templateId?, force? }
    Returns: { reports: [{ id, templateId, status, estimatedTimeSeconds? }] }
    """
    org = _org(slug)
    data = request.get_json(silent=True) or {}
    questionnaire_id = _int_field(data, "questionnaireId", "questionnaire_id")
    if questionnaire_id is None:
        return api_error(E.VALIDATION_REQUIRED, "questionnaireId is required")
    template_id = _int_field(data, "templateId", "template_id")

    result = report_service.generate_reports(
        org.id, questionnaire_id,
        template_id=template_id,
        force=parse_bool_arg("force"),
    )
    return jsonify(result), 200


@reports_bp.route("/<slug>/reports/<int:report_id>", methods=["GET"])
def get_report(slug, report_id):
    org = _org(slug)
    return jsonify(report_service.get_report(org.id, report_id)), 200


@reports_bp.route("/<slug>/reports/<int:report_id>/render", methods=["GET"])
def render_report(slug, report_id):
    org = _org(slug)
    return jsonify(report_service.render_report(org.id, report_id)), 200


@reports_bp.route("/<slug>/reports/<int:report_id>/export", methods=["GET"])
def export_report(slug, report_id):
    """GET ?format=csv|xlsx (default xlsx) — download computed data."""
    org = _org(slug)
    payload, mimetype, filename = report_service.export_report(
        org.id, report_id, request.args.get("format", "xlsx"),
    )
    return send_file(
        io.BytesIO(payload),
        mimetype=mimetype,
        as_attachment=True,
        download_name=filename,
    )


@reports_bp.route("/<slug>/questionnaires/<int:questionnaire_id>/reports", methods=["GET"])
def list_questionnaire_reports(slug, questionnaire_id):
    org = _org(slug)
    return jsonify(report_service.list_questionnaire_reports(org.id, questionnaire_id)), 200


# ═════════════════════════════════════════════════════════════════════════
# Responses & analytics
# ═════════════════════════════════════════════════════════════════════════

@reports_bp.route("/<slug>/questionnaires/<int:questionnaire_id>/responses", methods=["POST"])
def submit_response(slug, questionnaire_id):
    """Body: { participantId, answers, metadata?, submit?, responseId? }"""
    org = _org(slug)
    data = request.get_json(silent=True) or {}
    participant_id = data.get("participantId") or data.get("participant_id")
    if not participant_id:
        return api_error(E.VALIDATION_REQUIRED, "participantId is required")
    if "answers" not in data:
        return api_error(E.VALIDATION_REQUIRED, "answers is required")

    existing_id = _int_field(data, "responseId", "response_id")
    result = report_service.submit_response(
        org.id, questionnaire_id,
        participant_id=participant_id,
        answers=data["answers"],
        metadata=data.get("metadata"),
        submit=parse_bool_arg("submit", default=True),
        existing_response_id=existing_id,
    )
    return jsonify(result), 200 if existing_id else 201


@reports_bp.route("/<slug>/analytics/aggregate", methods=["POST"])
def aggregate_questions(slug):
    """Body: { questionnaireId, questionIds? }"""
    org = _org(slug)
    data = request.get_json(silent=True) or {}
    questionnaire_id = _int_field(data, "questionnaireId", "questionnaire_id")
    if questionnaire_id is None:
        return api_error(E.VALIDATION_REQUIRED, "questionnaireId is required")
    question_ids = data.get("questionIds") or data.get("question_ids")
    if question_ids is not None and not isinstance(question_ids, list):
        return api_error(E.VALIDATION_INVALID, "questionIds must be a list")

    result = report_service.aggregate_questions(org.id, questionnaire_id, question_ids)
    return jsonify(result), 200
