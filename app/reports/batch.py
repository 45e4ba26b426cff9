"""
Batch Orchestrator — generate every active template for a questionnaire.

Templates run sequentially on the caller's session. A failing template never
aborts the batch: it is reported to the observer and returned as a failure
item, and callers keep the successes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from app.core.exceptions import NotFoundError, ValidationError
from app.models.reporting import OrganizationReport
from app.reports.generator import ReportGenerator
from app.reports.store import ReportStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchItemResult:
    template_id: int
    report: OrganizationReport | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, template_id: int, report: OrganizationReport) -> "BatchItemResult":
        return cls(template_id=template_id, report=report)

    @classmethod
    def failure(cls, template_id: int, error: Exception) -> "BatchItemResult":
        return cls(template_id=template_id, error=error)


class BatchObserver(Protocol):
    def on_failure(self, questionnaire_id: int, template_id: int, error: Exception) -> None:
        ...


class LoggingBatchObserver:
    """Default observer: one warning line per failed template."""

    def on_failure(self, questionnaire_id: int, template_id: int, error: Exception) -> None:
        logger.warning(
            "Batch item failed questionnaire=%s template=%s: %s",
            questionnaire_id, template_id, error,
            extra={"questionnaire_id": questionnaire_id, "template_id": template_id},
        )


class BatchOrchestrator:
    def __init__(
        self,
        generator: ReportGenerator,
        store: ReportStore | None = None,
        observer: BatchObserver | None = None,
    ):
        self.generator = generator
        self.store = store or generator.store
        self.observer = observer or LoggingBatchObserver()

    def generate_all(
        self,
        questionnaire_id: int,
        organization_id: int,
        force: bool = False,
    ) -> list[BatchItemResult]:
        questionnaire = self.store.get_questionnaire(questionnaire_id, organization_id)
        if questionnaire.approach_questionnaire_id is None:
            raise ValidationError(
                "Questionnaire is not linked to an approach",
                details={"questionnaire_id": questionnaire.id},
            )
        approach_questionnaire = self.store.get_approach_questionnaire(
            questionnaire.approach_questionnaire_id
        )
        templates = self.store.active_templates(approach_questionnaire.approach_id)
        if not templates:
            raise NotFoundError(resource="ReportTemplate", organization_id=organization_id)

        results: list[BatchItemResult] = []
        for template in templates:
            try:
                report = self.generator.generate(
                    questionnaire.id, template.id, force=force, organization_id=organization_id,
                )
            except Exception as exc:
                self.observer.on_failure(questionnaire.id, template.id, exc)
                results.append(BatchItemResult.failure(template.id, exc))
            else:
                results.append(BatchItemResult.success(template.id, report))

        logger.info(
            "Batch generation questionnaire=%s ok=%d failed=%d",
            questionnaire.id,
            sum(1 for r in results if r.ok),
            sum(1 for r in results if not r.ok),
            extra={"organization_id": organization_id, "questionnaire_id": questionnaire.id},
        )
        return results
