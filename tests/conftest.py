"""
Shared pytest fixtures for the survey report test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - survey: Organization + approach + questionnaire + two report templates
    - add_responses: factory that inserts submitted responses for a questionnaire
"""

import itertools
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from app import create_app
from app.models import db as _db
from app.models.approach import Approach, ApproachQuestionnaire, ReportTemplate
from app.models.organization import Organization
from app.models.questionnaire import Questionnaire, QuestionnaireResponse

# Purpose / autonomy answers used by the reference scenario:
#   purpose  mean 73.33, autonomy mean 57.5, overall 65.4
PURPOSE_SCORES = [70, 80, 90, 60, 75, 65]
AUTONOMY_SCORES = [50, 60, 55, 65, 70, 45]

SURVEY_SCHEMA = {
    "sections": [
        {
            "id": "culture",
            "title": "Culture",
            "questions": [
                {"id": "purpose", "text": "Purpose", "type": "scale", "required": True,
                 "scale": {"min": 0, "max": 100}},
                {"id": "autonomy", "text": "Autonomy", "type": "scale", "required": True,
                 "scale": {"min": 0, "max": 100}},
                {"id": "team", "text": "Team", "type": "single-choice",
                 "options": ["Product", "Engineering", "Sales"]},
                {"id": "comment", "text": "Anything else?", "type": "free-text"},
            ],
        }
    ]
}

FLOWER_CONFIG = {
    "dimensions": ["purpose", "autonomy"],
    "visualization": {"type": "flower", "options": {"title": "Culture flower"}},
}

BAR_CONFIG = {
    "data_mappings": {
        "purpose": {"question_ids": ["purpose"], "stats": ["min", "max"]},
        "autonomy": {"question_ids": ["autonomy"]},
    },
    "visualization": {"type": "bar", "dimensions": ["purpose", "autonomy"]},
}


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Factories ────────────────────────────────────────────────────────────


def make_organization(slug="acme", name=None):
    org = Organization(name=name or slug.title(), slug=slug)
    _db.session.add(org)
    _db.session.flush()
    return org


def make_approach(slug="laloux", schema=None):
    approach = Approach(name=slug.title(), slug=slug)
    _db.session.add(approach)
    _db.session.flush()
    aq = ApproachQuestionnaire(
        approach_id=approach.id, title=f"{approach.name} questionnaire",
        schema=schema if schema is not None else SURVEY_SCHEMA,
    )
    _db.session.add(aq)
    _db.session.flush()
    return approach, aq


def make_template(approach, slug, config, type="visualization", order=0, is_active=True):
    template = ReportTemplate(
        approach_id=approach.id, name=slug.replace("-", " ").title(), slug=slug,
        type=type, config=config, order=order, is_active=is_active,
    )
    _db.session.add(template)
    _db.session.flush()
    return template


def make_questionnaire(org, aq=None, title="Culture scan", status="active"):
    q = Questionnaire(
        organization_id=org.id,
        approach_questionnaire_id=aq.id if aq is not None else None,
        title=title,
        status=status,
        schema=None if aq is not None else SURVEY_SCHEMA,
    )
    _db.session.add(q)
    _db.session.flush()
    return q


_participant_seq = itertools.count(1)


def insert_responses(questionnaire, answers_list, submitted=True, metadata=None):
    base = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)
    rows = []
    for index, answers in enumerate(answers_list):
        row = QuestionnaireResponse(
            questionnaire_id=questionnaire.id,
            participant_id=f"p-{questionnaire.id}-{next(_participant_seq)}",
            answers=answers,
            response_metadata=metadata,
            submitted_at=base + timedelta(minutes=index) if submitted else None,
        )
        _db.session.add(row)
        rows.append(row)
    _db.session.commit()
    return rows


@pytest.fixture()
def survey():
    """Organization with an approach-linked questionnaire and two active templates."""
    org = make_organization("acme")
    approach, aq = make_approach()
    flower = make_template(approach, "culture-flower", FLOWER_CONFIG, order=1)
    bar = make_template(approach, "culture-bar", BAR_CONFIG, order=2)
    questionnaire = make_questionnaire(org, aq)
    _db.session.commit()
    return SimpleNamespace(
        org=org, approach=approach, approach_questionnaire=aq,
        flower=flower, bar=bar, questionnaire=questionnaire,
    )


@pytest.fixture()
def add_responses():
    """Insert responses; defaults to the purpose/autonomy reference scenario."""

    def _add(questionnaire, answers_list=None, submitted=True, metadata=None):
        if answers_list is None:
            answers_list = [
                {"purpose": p, "autonomy": a}
                for p, a in zip(PURPOSE_SCORES, AUTONOMY_SCORES)
            ]
        return insert_responses(questionnaire, answers_list, submitted=submitted, metadata=metadata)

    return _add
