"""
Tests for app/services/helpers/scoped_queries.py

These tests guard the organization boundary: every API lookup goes through
get_scoped, so a foreign id must behave exactly like a missing one.

Scenarios covered:
  1. ValueError when called with no scope parameter at all
  2. ValueError when the provided scope field does not exist on the model
  3. NotFoundError when PK is correct but the organization does not match
  4. Correct entity returned when PK + scope both match
  5. get_scoped_or_none returns None instead of raising NotFoundError
"""

import pytest

from app.core.exceptions import NotFoundError
from app.models import db
from app.models.questionnaire import Questionnaire, QuestionnaireResponse
from app.services.helpers.scoped_queries import get_scoped, get_scoped_or_none
from conftest import make_organization, make_questionnaire


# ── 1. ValueError — no scope provided ────────────────────────────────────────


class TestGetScopedRequiresAtLeastOneScope:
    def test_without_scope_raises_value_error(self):
        with pytest.raises(ValueError, match="requires at least one scope filter"):
            get_scoped(Questionnaire, 999)

    def test_error_message_includes_model_name(self):
        with pytest.raises(ValueError, match="Questionnaire"):
            get_scoped(Questionnaire, 1)

    def test_all_scope_kwargs_none_is_equivalent_to_no_scope(self):
        with pytest.raises(ValueError):
            get_scoped(Questionnaire, 1, organization_id=None, questionnaire_id=None, approach_id=None)


# ── 2. ValueError — scope column missing on model ────────────────────────────


def test_scope_column_missing_on_model():
    with pytest.raises(ValueError, match="no scope column"):
        get_scoped(QuestionnaireResponse, 1, organization_id=1)


# ── 3-4. Organization boundary ───────────────────────────────────────────────


class TestOrganizationBoundary:
    def test_match_returns_entity(self):
        org = make_organization("acme")
        questionnaire = make_questionnaire(org)
        db.session.commit()
        assert get_scoped(Questionnaire, questionnaire.id, organization_id=org.id).id == questionnaire.id

    def test_foreign_organization_raises_not_found(self):
        acme = make_organization("acme")
        globex = make_organization("globex")
        questionnaire = make_questionnaire(acme)
        db.session.commit()

        with pytest.raises(NotFoundError) as exc_info:
            get_scoped(Questionnaire, questionnaire.id, organization_id=globex.id)
        assert exc_info.value.resource == "Questionnaire"
        assert exc_info.value.organization_id == globex.id

    def test_missing_pk_raises_not_found(self):
        org = make_organization("acme")
        db.session.commit()
        with pytest.raises(NotFoundError):
            get_scoped(Questionnaire, 424242, organization_id=org.id)


# ── 5. get_scoped_or_none ────────────────────────────────────────────────────


def test_get_scoped_or_none():
    acme = make_organization("acme")
    globex = make_organization("globex")
    questionnaire = make_questionnaire(acme)
    db.session.commit()

    assert get_scoped_or_none(Questionnaire, questionnaire.id, organization_id=globex.id) is None
    assert get_scoped_or_none(Questionnaire, questionnaire.id, organization_id=acme.id) is questionnaire
    with pytest.raises(ValueError):
        get_scoped_or_none(Questionnaire, questionnaire.id)
