"""
Organization-scoped query helpers.

Every get-by-id reachable from an API call MUST use these helpers instead of
db.session.get(Model, pk). A bare .get() ignores the organization boundary
and would let one organization read another organization's questionnaires or reports.

Usage:
    # Scope by organization_id (questionnaires, reports)
    q = get_scoped(Questionnaire, questionnaire_id, organization_id=org.id)

    # Scope by questionnaire_id (responses)
    resp = get_scoped(QuestionnaireResponse, resp_id, questionnaire_id=q.id)

    # When None is an acceptable outcome
    report = get_scoped_or_none(OrganizationReport, report_id, organization_id=org.id)

Scope field resolution:
    Each keyword argument maps directly to a column name on the model.
    A kwarg naming a column the model lacks raises ValueError, so the bug
    surfaces in tests rather than as an unscoped lookup in production.
"""

import logging

from sqlalchemy import select

from app.core.exceptions import NotFoundError
from app.models import db

logger = logging.getLogger(__name__)


def get_scoped(
    model,
    pk: int,
    *,
    organization_id: int | None = None,
    questionnaire_id: int | None = None,
    approach_id: int | None = None,
):
    """Fetch a single entity by PK with mandatory scope filter.

    Cross-organization access is indistinguishable from a missing record:
    both raise NotFoundError → HTTP 404.

    Raises:
        ValueError: If no scope is provided, or a provided scope column does
                    not exist on the model.
        NotFoundError: If the entity does not exist in the given scope.
    """
    scopes = {
        "organization_id": organization_id,
        "questionnaire_id": questionnaire_id,
        "approach_id": approach_id,
    }
    scopes = {k: v for k, v in scopes.items() if v is not None}

    if not scopes:
        raise ValueError(
            f"{model.__name__} id={pk} requires at least one scope filter "
            "(organization_id, questionnaire_id or approach_id)."
        )

    missing_fields = sorted(f for f in scopes if not hasattr(model, f))
    if missing_fields:
        raise ValueError(
            f"{model.__name__} has no scope column(s) {missing_fields}; "
            "refusing to perform an unscoped lookup."
        )

    stmt = select(model).where(model.id == pk)
    for field, value in scopes.items():
        stmt = stmt.where(getattr(model, field) == value)

    result = db.session.execute(stmt).scalar_one_or_none()

    if result is None:
        logger.debug("get_scoped: %s id=%s not found in scope %s", model.__name__, pk, scopes)
        raise NotFoundError(
            resource=model.__name__, resource_id=pk, organization_id=organization_id,
        )

    return result


def get_scoped_or_none(model, pk: int, **scopes):
    """Same as get_scoped but returns None instead of raising NotFoundError."""
    try:
        return get_scoped(model, pk, **scopes)
    except NotFoundError:
        return None
