"""
Tests for ReportGenerator — report lifecycle against the database.

Covers:
  - Happy path: complete row with computed data + generated_at
  - Idempotence: complete reports are reused unless force=True
  - Insufficient data: new rows roll back to pending, prior data untouched
  - Configuration errors persisted as status=error
  - Unexpected failures → GenerationFailure chained to the cause
  - Concurrency: fresh generating claim → GenerationInProgressError,
    stale claim taken over
  - Organization scoping and config_override
"""

from datetime import datetime, timedelta, timezone

import pytest

from app.core.exceptions import (
    GenerationFailure,
    GenerationInProgressError,
    InsufficientDataError,
    NotFoundError,
    ReportConfigurationError,
)
from app.models import db
from app.models.reporting import OrganizationReport, validate_report_transition
from app.reports.aggregator import DataAggregator
from app.reports.generator import ReportGenerator, effective_config
from app.reports.store import ReportStore
from conftest import make_organization, make_template

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


def _generator(aggregator=None, **kwargs):
    return ReportGenerator(aggregator=aggregator, clock=lambda: NOW, **kwargs)


def _report_row(survey, template, **fields):
    row = OrganizationReport(
        organization_id=survey.org.id,
        template_id=template.id,
        questionnaire_id=survey.questionnaire.id,
        **fields,
    )
    db.session.add(row)
    db.session.commit()
    return row


class CountingAggregator(DataAggregator):
    def __init__(self):
        super().__init__()
        self.calls = 0

    def aggregate(self, schema, responses, config):
        self.calls += 1
        return super().aggregate(schema, responses, config)


class ExplodingAggregator(DataAggregator):
    def aggregate(self, schema, responses, config):
        raise RuntimeError("disk on fire")


# ═════════════════════════════════════════════════════════════════════════════
# Happy path & idempotence
# ═════════════════════════════════════════════════════════════════════════════


class TestGenerate:
    def test_generates_complete_report(self, survey, add_responses):
        add_responses(survey.questionnaire)
        report = _generator().generate(
            survey.questionnaire.id, survey.flower.id, organization_id=survey.org.id,
        )
        assert report.status == "complete"
        assert report.response_count == 6
        assert report.error_message is None
        assert report.generated_at.replace(tzinfo=None) == NOW.replace(tzinfo=None)
        data = report.computed_data
        assert data["overall_score"] == 65.4
        assert data["dimensions"]["purpose"]["value"] == 73.33
        assert data["dimensions"]["autonomy"]["value"] == 57.5
        assert data["completion_rate"] == 1.0

    def test_complete_report_is_reused(self, survey, add_responses):
        add_responses(survey.questionnaire)
        aggregator = CountingAggregator()
        generator = _generator(aggregator)
        first = generator.generate(survey.questionnaire.id, survey.flower.id)
        second = generator.generate(survey.questionnaire.id, survey.flower.id)
        assert first.id == second.id
        assert aggregator.calls == 1
        assert db.session.query(OrganizationReport).count() == 1

    def test_force_recomputes(self, survey, add_responses):
        add_responses(survey.questionnaire)
        aggregator = CountingAggregator()
        generator = _generator(aggregator)
        first = generator.generate(survey.questionnaire.id, survey.flower.id)
        add_responses(survey.questionnaire, [{"purpose": 100, "autonomy": 100}])

        again = generator.generate(survey.questionnaire.id, survey.flower.id, force=True)
        assert again.id == first.id
        assert aggregator.calls == 2
        assert again.response_count == 7

    def test_force_twice_recomputes_each_time(self, survey, add_responses):
        add_responses(survey.questionnaire)
        aggregator = CountingAggregator()
        generator = _generator(aggregator)

        first = generator.generate(survey.questionnaire.id, survey.flower.id, force=True)
        first_data = dict(first.computed_data)
        second = generator.generate(survey.questionnaire.id, survey.flower.id, force=True)

        assert aggregator.calls == 2
        assert second.id == first.id
        assert second.status == "complete"
        assert second.computed_data == first_data

    def test_draft_responses_do_not_count(self, survey, add_responses):
        add_responses(survey.questionnaire)
        add_responses(survey.questionnaire, [{"purpose": 0, "autonomy": 0}] * 3, submitted=False)
        report = _generator().generate(survey.questionnaire.id, survey.flower.id)
        assert report.response_count == 6
        assert report.computed_data["metrics"]["total_responses"] == 9

    def test_config_override_applies(self, survey, add_responses):
        add_responses(survey.questionnaire)
        _report_row(survey, survey.flower, status="pending", config_override={"dimensions": ["purpose"]})
        report = _generator().generate(survey.questionnaire.id, survey.flower.id)
        assert list(report.computed_data["dimensions"]) == ["purpose"]
        assert effective_config(survey.flower, report)["dimensions"] == ["purpose"]
        assert effective_config(survey.flower)["dimensions"] == ["purpose", "autonomy"]


# ═════════════════════════════════════════════════════════════════════════════
# Scoping
# ═════════════════════════════════════════════════════════════════════════════


class TestScoping:
    def test_foreign_organization_is_not_found(self, survey, add_responses):
        add_responses(survey.questionnaire)
        other = make_organization("globex")
        db.session.commit()
        with pytest.raises(NotFoundError):
            _generator().generate(survey.questionnaire.id, survey.flower.id, organization_id=other.id)
        assert db.session.query(OrganizationReport).count() == 0

    def test_unknown_template(self, survey):
        with pytest.raises(NotFoundError):
            _generator().generate(survey.questionnaire.id, 9999)

    def test_list_and_get_are_scoped(self, survey, add_responses):
        add_responses(survey.questionnaire)
        generator = _generator()
        report = generator.generate(survey.questionnaire.id, survey.flower.id)
        assert generator.get_report(report.id, survey.org.id).id == report.id
        assert [r.id for r in generator.list_reports(survey.questionnaire.id, survey.org.id)] == [report.id]

        other = make_organization("globex")
        db.session.commit()
        with pytest.raises(NotFoundError):
            generator.get_report(report.id, other.id)
        with pytest.raises(NotFoundError):
            generator.list_reports(survey.questionnaire.id, other.id)


# ═════════════════════════════════════════════════════════════════════════════
# Failure handling
# ═════════════════════════════════════════════════════════════════════════════


class TestInsufficientData:
    def test_new_row_rolls_back_to_pending(self, survey, add_responses):
        add_responses(survey.questionnaire, [{"purpose": 50, "autonomy": 50}] * 4)
        with pytest.raises(InsufficientDataError) as exc_info:
            _generator().generate(survey.questionnaire.id, survey.flower.id)
        assert exc_info.value.count == 4

        row = db.session.query(OrganizationReport).one()
        assert row.status == "pending"
        assert row.computed_data is None
        assert row.error_message is None

    def test_prior_complete_report_keeps_its_data(self, survey, add_responses):
        rows = add_responses(survey.questionnaire)
        generator = _generator()
        report = generator.generate(survey.questionnaire.id, survey.flower.id)
        before = dict(report.computed_data)

        # Two responses revert to draft → below the floor
        for row in rows[:2]:
            row.submitted_at = None
        db.session.commit()

        with pytest.raises(InsufficientDataError):
            generator.generate(survey.questionnaire.id, survey.flower.id, force=True)
        db.session.refresh(report)
        assert report.status == "complete"
        assert report.computed_data == before


class TestConfigurationError:
    def test_missing_question_persists_error(self, survey, add_responses):
        add_responses(survey.questionnaire)
        broken = make_template(survey.approach, "broken", {"dimensions": ["purpose", "wellbeing"]})
        db.session.commit()

        with pytest.raises(ReportConfigurationError) as exc_info:
            _generator().generate(survey.questionnaire.id, broken.id)
        assert exc_info.value.details["missing"] == {"wellbeing": ["wellbeing"]}

        row = db.session.query(OrganizationReport).filter_by(template_id=broken.id).one()
        assert row.status == "error"
        assert "missing from the questionnaire" in row.error_message
        assert row.computed_data is None

    def test_malformed_config_persists_error(self, survey, add_responses):
        add_responses(survey.questionnaire)
        broken = make_template(survey.approach, "malformed", {"visualization": {"type": "bar"}})
        db.session.commit()
        with pytest.raises(ReportConfigurationError):
            _generator().generate(survey.questionnaire.id, broken.id)
        assert db.session.query(OrganizationReport).one().status == "error"

    @pytest.mark.parametrize("config", [
        {"dimensions": ["purpose"], "dashboard": "grid"},
        {"dimensions": ["purpose"], "pdf": "landscape"},
        {"data_mappings": {"purpose": {"question_ids": "purpose"}}},
        {"data_mappings": {"purpose": {"question_ids": ["purpose"], "weights": {"purpose": "heavy"}}}},
    ])
    def test_malformed_blocks_are_configuration_errors(self, survey, add_responses, config):
        add_responses(survey.questionnaire)
        broken = make_template(survey.approach, "malformed", config)
        db.session.commit()

        with pytest.raises(ReportConfigurationError):
            _generator(CountingAggregator()).generate(survey.questionnaire.id, broken.id)
        row = db.session.query(OrganizationReport).one()
        assert row.status == "error"
        assert row.error_message

    def test_malformed_schema_scale_is_configuration_error(self, survey, add_responses):
        add_responses(survey.questionnaire)
        schema = {"sections": [{"id": "s1", "questions": [
            {"id": "purpose", "type": "scale", "scale": {"min": "low", "max": 100}},
            {"id": "autonomy", "type": "scale", "scale": {"min": 0, "max": 100}},
        ]}]}
        survey.questionnaire.schema = schema
        db.session.commit()

        with pytest.raises(ReportConfigurationError):
            _generator().generate(survey.questionnaire.id, survey.flower.id)
        assert db.session.query(OrganizationReport).one().status == "error"


class TestUnexpectedFailure:
    def test_failure_is_chained_and_persisted(self, survey, add_responses):
        add_responses(survey.questionnaire)
        with pytest.raises(GenerationFailure) as exc_info:
            _generator(ExplodingAggregator()).generate(survey.questionnaire.id, survey.flower.id)

        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert exc_info.value.template_id == survey.flower.id
        row = db.session.query(OrganizationReport).one()
        assert exc_info.value.report_id == row.id
        assert row.status == "error"
        assert row.error_message == "RuntimeError: disk on fire"

    def test_error_report_can_be_retried(self, survey, add_responses):
        add_responses(survey.questionnaire)
        with pytest.raises(GenerationFailure):
            _generator(ExplodingAggregator()).generate(survey.questionnaire.id, survey.flower.id)

        report = _generator().generate(survey.questionnaire.id, survey.flower.id)
        assert report.status == "complete"
        assert report.error_message is None


# ═════════════════════════════════════════════════════════════════════════════
# Concurrency
# ═════════════════════════════════════════════════════════════════════════════


class ReentrantAggregator(DataAggregator):
    """Fires a second generate for the same pair while the first holds its claim."""

    def __init__(self, questionnaire_id, template_id):
        super().__init__()
        self.questionnaire_id = questionnaire_id
        self.template_id = template_id
        self.generator = None
        self.inner_error = None

    def aggregate(self, schema, responses, config):
        try:
            self.generator.generate(self.questionnaire_id, self.template_id)
        except GenerationInProgressError as exc:
            self.inner_error = exc
        return super().aggregate(schema, responses, config)


class TestConcurrency:
    def test_second_caller_sees_in_progress(self, survey, add_responses):
        add_responses(survey.questionnaire)
        aggregator = ReentrantAggregator(survey.questionnaire.id, survey.flower.id)
        generator = _generator(aggregator)
        aggregator.generator = generator

        report = generator.generate(survey.questionnaire.id, survey.flower.id)
        assert isinstance(aggregator.inner_error, GenerationInProgressError)
        assert aggregator.inner_error.report_id == report.id
        assert report.status == "complete"
        assert db.session.query(OrganizationReport).count() == 1

    def test_fresh_claim_blocks(self, survey, add_responses):
        add_responses(survey.questionnaire)
        row = _report_row(
            survey, survey.flower, status="generating",
            generation_started_at=NOW - timedelta(seconds=60),
        )
        generator = _generator(store=ReportStore(retry_after_seconds=7))
        with pytest.raises(GenerationInProgressError) as exc_info:
            generator.generate(survey.questionnaire.id, survey.flower.id)
        assert exc_info.value.report_id == row.id
        assert exc_info.value.retry_after == 7
        db.session.refresh(row)
        assert row.status == "generating"

    def test_stale_claim_is_taken_over(self, survey, add_responses):
        add_responses(survey.questionnaire)
        row = _report_row(
            survey, survey.flower, status="generating",
            generation_started_at=NOW - timedelta(minutes=10),
        )
        report = _generator().generate(survey.questionnaire.id, survey.flower.id)
        assert report.id == row.id
        assert report.status == "complete"

    def test_stale_threshold_is_configurable(self, survey, add_responses):
        add_responses(survey.questionnaire)
        _report_row(
            survey, survey.flower, status="generating",
            generation_started_at=NOW - timedelta(seconds=60),
        )
        report = _generator(stale_after_seconds=30).generate(survey.questionnaire.id, survey.flower.id)
        assert report.status == "complete"


@pytest.mark.parametrize("old,new,ok", [
    ("pending", "generating", True),
    ("generating", "complete", True),
    ("generating", "pending", True),
    ("complete", "generating", True),
    ("error", "generating", True),
    ("pending", "complete", False),
    ("complete", "error", False),
    ("error", "complete", False),
])
def test_report_transitions(old, new, ok):
    assert validate_report_transition(old, new) is ok
