"""
Report Generator — lifecycle orchestration for one (questionnaire, template).

    resolve questionnaire + template
      └─ complete and not force? → return as-is
    claim row (pending|complete|error|stale generating → generating)
    load responses → aggregate
      ├─ success                  → complete (+ computed_data, generated_at)
      ├─ InsufficientDataError    → prior status restored, re-raised
      ├─ ReportConfigurationError → error (+ message), re-raised
      └─ anything else            → error, GenerationFailure raised from cause
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable

from app.core.exceptions import (
    GenerationFailure,
    InsufficientDataError,
    ReportConfigurationError,
)
from app.models.reporting import OrganizationReport
from app.reports.aggregator import DataAggregator
from app.reports.store import ReportStore
from app.reports.types import ReportStatus, ReportTemplateConfig, parse_schema

logger = logging.getLogger(__name__)

STALE_AFTER_SECONDS = 300


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def effective_config(template, report: OrganizationReport | None = None) -> dict:
    """Template config with the report's ``config_override`` applied on top."""
    config = dict(template.config or {})
    if report is not None and report.config_override:
        config.update(report.config_override)
    return config


class ReportGenerator:
    def __init__(
        self,
        store: ReportStore | None = None,
        aggregator: DataAggregator | None = None,
        stale_after_seconds: int = STALE_AFTER_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store or ReportStore()
        self.aggregator = aggregator or DataAggregator()
        self.stale_after = timedelta(seconds=stale_after_seconds)
        self.clock = clock

    def generate(
        self,
        questionnaire_id: int,
        template_id: int,
        force: bool = False,
        organization_id: int | None = None,
    ) -> OrganizationReport:
        questionnaire = self.store.get_questionnaire(questionnaire_id, organization_id)
        template = self.store.get_template(template_id)
        org_id = questionnaire.organization_id
        log_ctx = {
            "organization_id": org_id,
            "questionnaire_id": questionnaire.id,
            "template_id": template.id,
        }

        existing = self.store.find_report(org_id, template.id, questionnaire.id)
        if existing is not None and existing.status == ReportStatus.COMPLETE.value and not force:
            logger.debug("Report id=%s already complete, reusing", existing.id, extra=log_ctx)
            return existing

        now = self.clock()
        claim = self.store.claim(
            org_id, template.id, questionnaire.id,
            now=now, stale_cutoff=now - self.stale_after,
        )
        report = claim.report
        log_ctx["report_id"] = report.id

        try:
            config = ReportTemplateConfig.from_dict(effective_config(template, report))
            schema = parse_schema(questionnaire.effective_schema())
            responses = self.store.load_responses(questionnaire.id)
            computed = self.aggregator.aggregate(schema, responses, config)
            report = self.store.complete(
                report, computed.to_dict(), computed.response_count, self.clock(),
            )
        except InsufficientDataError as exc:
            self.store.release(report, claim)
            logger.info("Report generation skipped: %s", exc, extra=log_ctx)
            raise
        except ReportConfigurationError as exc:
            self.store.fail(report, str(exc))
            logger.warning("Report configuration error: %s", exc, extra=log_ctx)
            raise
        except Exception as exc:
            logger.exception(
                "Report generation failed questionnaire=%s template=%s",
                questionnaire.id, template.id, extra=log_ctx,
            )
            self.store.fail(report, f"{type(exc).__name__}: {exc}")
            raise GenerationFailure(questionnaire.id, template.id, report.id) from exc

        logger.info(
            "Report generated id=%s responses=%s", report.id, report.response_count,
            extra=log_ctx,
        )
        return report

    def get_report(self, report_id: int, organization_id: int) -> OrganizationReport:
        return self.store.get_report(report_id, organization_id)

    def list_reports(self, questionnaire_id: int, organization_id: int) -> list[OrganizationReport]:
        self.store.get_questionnaire(questionnaire_id, organization_id)
        return self.store.list_reports(questionnaire_id, organization_id)
