"""
Data Aggregator — turns participant responses into ComputedReportData.

Pure computation: no database access, no clock. The generator hands in the
parsed questionnaire schema, the responses and the parsed template config.

Per dimension:
    1. For each eligible participant, collect numeric values of the mapped
       questions they answered (metadata filters applied).
    2. Normalize to the template's score scale when the mapping declares a
       source scale; combine with a (weighted) mean → one participant score.
    3. Aggregate participant scores with the mapping's aggregation type.

Unanswered or malformed answers are skipped; they never count as zero.
"""

from __future__ import annotations

import logging

from app.core.exceptions import InsufficientDataError, ReportConfigurationError
from app.reports import statistics as stats
from app.reports.question_mapper import (
    extract_answer,
    mapped_question_ids,
    missing_question_ids,
    passes_filters,
)
from app.reports.types import (
    AggregationContext,
    AggregationFunction,
    AggregationType,
    ComputedReportData,
    DataMapping,
    DimensionData,
    FreeTextQuestion,
    MultipleChoiceQuestion,
    QuestionnaireSchema,
    RankingQuestion,
    ReportTemplateConfig,
    ResponseRecord,
    ScaleQuestion,
)

logger = logging.getLogger(__name__)

MIN_RESPONSES = 5


def eligible_responses(responses: list[ResponseRecord]) -> list[ResponseRecord]:
    """Submitted responses with a mapping-shaped answers payload, in stable order."""
    kept = [r for r in responses if r.submitted_at is not None and isinstance(r.answers, dict)]
    return sorted(kept, key=lambda r: (r.submitted_at.replace(tzinfo=None), r.id))


class DataAggregator:
    """Computes report data for one questionnaire and one template config."""

    def __init__(self, min_responses: int = MIN_RESPONSES):
        self.min_responses = max(int(min_responses), 1)
        self._custom: dict[str, AggregationFunction] = {}

    # ── Custom aggregators ───────────────────────────────────────────────

    def register_custom_aggregator(self, name: str, fn: AggregationFunction) -> None:
        self._custom[name] = fn

    def has_custom_aggregator(self, name: str) -> bool:
        return name in self._custom

    # ── Main entry point ─────────────────────────────────────────────────

    def aggregate(
        self,
        schema: QuestionnaireSchema,
        responses: list[ResponseRecord],
        config: ReportTemplateConfig,
    ) -> ComputedReportData:
        eligible = eligible_responses(responses)
        if len(eligible) < self.min_responses:
            raise InsufficientDataError(count=len(eligible), minimum=self.min_responses)

        self.validate_mappings(schema, config)

        dimensions: dict[str, DimensionData] = {}
        raw_values: list[float] = []
        for name, mapping in config.data_mappings.items():
            dimension, raw_value = self._aggregate_dimension(schema, eligible, mapping, config)
            dimensions[name] = dimension
            if raw_value is not None:
                raw_values.append(raw_value)

        completion = self._completion_rate(schema, eligible, config)
        overall = stats.average(raw_values)

        logger.debug(
            "Aggregated %d responses into %d dimensions",
            len(eligible), len(dimensions),
        )
        return ComputedReportData(
            response_count=len(eligible),
            completion_rate=stats.round_half_up(completion, 4),
            overall_score=stats.round_half_up(overall, 1),
            dimensions=dimensions,
            metrics={
                "total_responses": len(responses),
                "eligible_responses": len(eligible),
                "score_scale": {"min": config.score_scale[0], "max": config.score_scale[1]},
            },
        )

    def validate_mappings(self, schema: QuestionnaireSchema, config: ReportTemplateConfig) -> None:
        missing = missing_question_ids(schema, config)
        if missing:
            raise ReportConfigurationError(
                "Data mappings reference questions missing from the questionnaire",
                details={"missing": missing},
            )
        undefined = [d for d in config.dimension_names if d not in config.data_mappings]
        if undefined:
            raise ReportConfigurationError(
                "Configured dimensions have no data mapping",
                details={"missing": undefined},
            )
        for name, mapping in config.data_mappings.items():
            if mapping.aggregation == AggregationType.CUSTOM and not self.has_custom_aggregator(
                mapping.custom_aggregator
            ):
                raise ReportConfigurationError(
                    f"Unknown custom aggregator {mapping.custom_aggregator!r} for dimension {name!r}"
                )

    # ── Dimensions ───────────────────────────────────────────────────────

    def _aggregate_dimension(
        self,
        schema: QuestionnaireSchema,
        responses: list[ResponseRecord],
        mapping: DataMapping,
        config: ReportTemplateConfig,
    ) -> tuple[DimensionData, float | None]:
        participant_scores: list[float] = []
        categories: list[str] = []
        answers: list[tuple[str, str, object]] = []
        per_question: dict[str, list[float]] = {qid: [] for qid in mapping.question_ids}

        for response in responses:
            if not passes_filters(response.metadata, mapping.filters):
                continue
            values: list[float] = []
            weights: list[float] = []
            for qid in mapping.question_ids:
                question = schema.get(qid)
                raw = extract_answer(response.answers, qid)
                if not question.is_answered(raw):
                    continue
                answers.append((response.participant_id, qid, raw))
                categories.extend(question.categories(raw))
                number = question.numeric(raw)
                if number is None:
                    continue
                if mapping.scale is not None:
                    number = stats.normalize(number, mapping.scale, config.score_scale)
                values.append(number)
                weights.append(mapping.weights.get(qid, 1.0))
                per_question[qid].append(number)
            score = stats.weighted_average(values, weights)
            if score is not None:
                participant_scores.append(score)

        if mapping.aggregation == AggregationType.CUSTOM:
            fn = self._custom[mapping.custom_aggregator]
            dimension = fn(AggregationContext(
                question_ids=mapping.question_ids,
                participant_scores=participant_scores,
                answers=answers,
                scale=mapping.scale,
                weights=dict(mapping.weights),
            ))
            return dimension, dimension.value

        raw_value = self._combine(mapping.aggregation, participant_scores)
        dimension = DimensionData(
            value=stats.round_half_up(raw_value, 2),
            responses=len(participant_scores),
            stats=self._auxiliary_stats(mapping.stats, participant_scores),
        )
        if mapping.aggregation == AggregationType.DISTRIBUTION:
            dimension.distribution = dict(stats.distribution(categories))
        elif mapping.aggregation == AggregationType.PERCENTAGE:
            dimension.distribution = stats.percentages(categories)
        if len(mapping.question_ids) > 1:
            dimension.questions = {
                qid: {
                    "value": stats.round_half_up(stats.average(vals), 2),
                    "responses": len(vals),
                }
                for qid, vals in per_question.items()
            }
        return dimension, raw_value

    @staticmethod
    def _combine(aggregation: AggregationType, scores: list[float]) -> float | None:
        if aggregation == AggregationType.COUNT:
            return float(len(scores))
        if aggregation == AggregationType.SUM:
            return stats.total(scores)
        if aggregation == AggregationType.MEDIAN:
            return stats.median(scores)
        if aggregation == AggregationType.MODE:
            return stats.mode(scores)
        # average, distribution and percentage carry the mean as their value
        return stats.average(scores)

    @staticmethod
    def _auxiliary_stats(requested: tuple[str, ...], scores: list[float]) -> dict[str, float]:
        if not requested or not scores:
            return {}
        computed = {
            "min": min(scores),
            "max": max(scores),
            "stddev": stats.standard_deviation(scores),
            "median": stats.median(scores),
        }
        return {key: stats.round_half_up(computed[key], 2) for key in requested}

    # ── Completion ───────────────────────────────────────────────────────

    @staticmethod
    def _completion_rate(
        schema: QuestionnaireSchema,
        responses: list[ResponseRecord],
        config: ReportTemplateConfig,
    ) -> float:
        if not responses:
            return 0.0
        required = schema.required_ids() or mapped_question_ids(config)
        complete = 0
        for response in responses:
            if all(
                schema.get(qid).is_answered(extract_answer(response.answers, qid))
                for qid in required
                if qid in schema
            ):
                complete += 1
        return complete / len(responses)

    # ── Per-question analytics ───────────────────────────────────────────

    def aggregate_questions(
        self,
        schema: QuestionnaireSchema,
        responses: list[ResponseRecord],
        question_ids: list[str] | None = None,
    ) -> dict[str, dict]:
        """Per-question statistics, shaped by question kind.

        Does not enforce the response floor; callers decide whether small
        samples may be shown.
        """
        eligible = eligible_responses(responses)
        ids = question_ids or list(schema.questions)
        unknown = [qid for qid in ids if qid not in schema]
        if unknown:
            raise ReportConfigurationError(
                "Unknown question ids requested", details={"missing": unknown},
            )

        results: dict[str, dict] = {}
        for qid in ids:
            question = schema.get(qid)
            raw_answers = [extract_answer(r.answers, qid) for r in eligible]
            answered = [a for a in raw_answers if question.is_answered(a)]
            entry: dict = {"type": question.kind.value, "count": len(answered)}

            if isinstance(question, ScaleQuestion):
                numbers = [question.numeric(a) for a in answered]
                value_span = stats.value_range(numbers)
                entry.update({
                    "average": stats.round_half_up(stats.average(numbers), 2),
                    "median": stats.round_half_up(stats.median(numbers), 2),
                    "min": value_span[0] if value_span else None,
                    "max": value_span[1] if value_span else None,
                    "distribution": stats.distribution(
                        [c for a in answered for c in question.categories(a)]
                    ),
                })
            elif isinstance(question, RankingQuestion):
                positions: dict[str, list[int]] = {}
                for answer in answered:
                    for index, label in enumerate(question.ranked(answer), start=1):
                        positions.setdefault(label, []).append(index)
                entry["average_rank"] = {
                    label: stats.round_half_up(stats.average([float(p) for p in ranks]), 2)
                    for label, ranks in sorted(positions.items())
                }
            elif isinstance(question, FreeTextQuestion):
                pass
            else:
                labels = [c for a in answered for c in question.categories(a)]
                counts = stats.distribution(labels)
                entry["distribution"] = counts
                entry["top_answer"] = (
                    min(counts, key=lambda k: (-counts[k], k)) if counts else None
                )
                if isinstance(question, MultipleChoiceQuestion):
                    entry["selections"] = len(labels)
            results[qid] = entry
        return results
