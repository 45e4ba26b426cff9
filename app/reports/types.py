"""
Report core — shared types.

Enums for report lifecycle and rendering, the question sum type used by the
aggregator, the parsed template configuration, and the computed-data
structures persisted on ``OrganizationReport.computed_data``.

Usage:
    from app.reports.types import ReportTemplateConfig, parse_schema

    config = ReportTemplateConfig.from_dict(template.config)
    schema = parse_schema(questionnaire.effective_schema())
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, ClassVar, Union

from app.core.exceptions import ReportConfigurationError


# ═════════════════════════════════════════════════════════════════════════════
# Enums
# ═════════════════════════════════════════════════════════════════════════════

class ReportStatus(str, Enum):
    PENDING = "pending"
    GENERATING = "generating"
    COMPLETE = "complete"
    ERROR = "error"


class ReportType(str, Enum):
    VISUALIZATION = "visualization"
    DASHBOARD = "dashboard"
    PDF = "pdf"


class VisualizationType(str, Enum):
    BAR = "bar"
    LINE = "line"
    PIE = "pie"
    RADAR = "radar"
    FLOWER = "flower"


class AggregationType(str, Enum):
    AVERAGE = "average"
    SUM = "sum"
    COUNT = "count"
    MEDIAN = "median"
    MODE = "mode"
    DISTRIBUTION = "distribution"
    PERCENTAGE = "percentage"
    CUSTOM = "custom"


class QuestionKind(str, Enum):
    SCALE = "scale"
    SINGLE_CHOICE = "single-choice"
    MULTIPLE_CHOICE = "multiple-choice"
    RANKING = "ranking"
    FREE_TEXT = "free-text"


AUXILIARY_STATS = ("min", "max", "stddev", "median")


# ═════════════════════════════════════════════════════════════════════════════
# Questions: one class per kind
# ═════════════════════════════════════════════════════════════════════════════

def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _format_category(value) -> str:
    if _is_number(value) and float(value).is_integer():
        return str(int(value))
    return str(value)


def has_answer(value) -> bool:
    """True when a raw answer carries content (None, "", [] and {} do not)."""
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip() != ""
    if isinstance(value, (list, tuple, dict)):
        return len(value) > 0
    return True


@dataclass(frozen=True)
class ScaleQuestion:
    """Numeric rating between ``min`` and ``max`` (inclusive)."""
    id: str
    text: str = ""
    required: bool = False
    min: float = 1
    max: float = 5

    kind: ClassVar[QuestionKind] = QuestionKind.SCALE

    def is_answered(self, value) -> bool:
        return self.numeric(value) is not None

    def numeric(self, value) -> float | None:
        if isinstance(value, str):
            try:
                value = float(value.strip())
            except ValueError:
                return None
        if not _is_number(value):
            return None
        number = float(value)
        if number != number or number < self.min or number > self.max:
            return None
        return number

    def categories(self, value) -> list[str]:
        number = self.numeric(value)
        return [] if number is None else [_format_category(number)]


@dataclass(frozen=True)
class _ChoiceMixin:
    options: tuple[str, ...] = ()
    scores: dict[str, float] = field(default_factory=dict)

    def label(self, item) -> str | None:
        """Resolve an option index or an option label to the option label."""
        if _is_number(item):
            index = int(item)
            if index == item and 0 <= index < len(self.options):
                return self.options[index]
            return None
        if isinstance(item, str) and item.strip():
            return item
        return None

    def score(self, item) -> float | None:
        label = self.label(item)
        if label is None or label not in self.scores:
            return None
        return float(self.scores[label])


@dataclass(frozen=True)
class SingleChoiceQuestion(_ChoiceMixin):
    """One option out of ``options``; numeric only when ``scores`` are declared."""
    id: str = ""
    text: str = ""
    required: bool = False

    kind: ClassVar[QuestionKind] = QuestionKind.SINGLE_CHOICE

    def is_answered(self, value) -> bool:
        return self.label(value) is not None

    def numeric(self, value) -> float | None:
        return self.score(value)

    def categories(self, value) -> list[str]:
        label = self.label(value)
        return [] if label is None else [label]


@dataclass(frozen=True)
class MultipleChoiceQuestion(_ChoiceMixin):
    """Any subset of ``options``; numeric value is the sum of selected scores."""
    id: str = ""
    text: str = ""
    required: bool = False

    kind: ClassVar[QuestionKind] = QuestionKind.MULTIPLE_CHOICE

    def _selected(self, value) -> list[str]:
        if not isinstance(value, (list, tuple)):
            return []
        labels = [self.label(item) for item in value]
        return [lbl for lbl in labels if lbl is not None]

    def is_answered(self, value) -> bool:
        return len(self._selected(value)) > 0

    def numeric(self, value) -> float | None:
        scored = [self.score(item) for item in value] if isinstance(value, (list, tuple)) else []
        scored = [s for s in scored if s is not None]
        return sum(scored) if scored else None

    def categories(self, value) -> list[str]:
        return self._selected(value)


@dataclass(frozen=True)
class RankingQuestion(_ChoiceMixin):
    """Options in preference order; the top-ranked option is the category."""
    id: str = ""
    text: str = ""
    required: bool = False

    kind: ClassVar[QuestionKind] = QuestionKind.RANKING

    def ranked(self, value) -> list[str]:
        if not isinstance(value, (list, tuple)):
            return []
        labels = [self.label(item) for item in value]
        return [lbl for lbl in labels if lbl is not None]

    def is_answered(self, value) -> bool:
        return len(self.ranked(value)) > 0

    def numeric(self, value) -> float | None:
        ranked = self.ranked(value)
        if not ranked:
            return None
        return self.score(ranked[0])

    def categories(self, value) -> list[str]:
        ranked = self.ranked(value)
        return ranked[:1]


@dataclass(frozen=True)
class FreeTextQuestion:
    """Open answer — counts toward completion, never toward numeric stats."""
    id: str
    text: str = ""
    required: bool = False
    max_length: int = 500

    kind: ClassVar[QuestionKind] = QuestionKind.FREE_TEXT

    def is_answered(self, value) -> bool:
        return isinstance(value, str) and value.strip() != ""

    def numeric(self, value) -> float | None:
        return None

    def categories(self, value) -> list[str]:
        return []


Question = Union[
    ScaleQuestion,
    SingleChoiceQuestion,
    MultipleChoiceQuestion,
    RankingQuestion,
    FreeTextQuestion,
]


def _options_list(raw) -> tuple[str, ...]:
    if isinstance(raw, dict):
        # Translated options keyed by language: take the first declared language.
        for value in raw.values():
            if isinstance(value, list):
                return tuple(str(v) for v in value)
        return ()
    if isinstance(raw, list):
        return tuple(str(v) for v in raw)
    return ()


def _block(value, label: str) -> dict:
    """A nested config object; absent means empty."""
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ReportConfigurationError(f"{label} must be an object", details={"value": repr(value)})
    return value


def _sequence(value, label: str) -> list:
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        raise ReportConfigurationError(f"{label} must be a list", details={"value": repr(value)})
    return list(value)


def _number(value, label: str) -> float:
    if isinstance(value, bool):
        raise ReportConfigurationError(f"{label} must be numeric", details={"value": repr(value)})
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ReportConfigurationError(f"{label} must be numeric", details={"value": repr(value)}) from exc


def _build_question(raw: dict) -> Question:
    if not isinstance(raw, dict):
        raise ReportConfigurationError("Questionnaire schema question must be an object")
    qid = raw.get("id")
    if not isinstance(qid, str) or not qid:
        raise ReportConfigurationError("Question without an id in questionnaire schema")
    kind = raw.get("type", QuestionKind.SCALE.value)
    common = {"id": qid, "text": str(raw.get("text") or ""), "required": bool(raw.get("required", False))}

    if kind == QuestionKind.SCALE.value:
        scale = _block(raw.get("scale"), f"Question {qid!r} scale")
        return ScaleQuestion(
            min=_number(scale.get("min", 1), f"Question {qid!r} scale min"),
            max=_number(scale.get("max", 5), f"Question {qid!r} scale max"),
            **common,
        )
    if kind == QuestionKind.FREE_TEXT.value:
        max_length = _number(raw.get("maxLength") or 500, f"Question {qid!r} maxLength")
        return FreeTextQuestion(max_length=int(max_length), **common)

    scores = _block(raw.get("scores"), f"Question {qid!r} scores")
    choice = {
        "options": _options_list(raw.get("options")),
        "scores": {str(k): _number(v, f"Question {qid!r} score for {k!r}") for k, v in scores.items()},
    }
    if kind == QuestionKind.SINGLE_CHOICE.value:
        return SingleChoiceQuestion(**choice, **common)
    if kind == QuestionKind.MULTIPLE_CHOICE.value:
        return MultipleChoiceQuestion(**choice, **common)
    if kind == QuestionKind.RANKING.value:
        return RankingQuestion(**choice, **common)
    raise ReportConfigurationError(
        f"Unsupported question type {kind!r} for question {qid!r}",
        details={"question_id": qid, "type": kind},
    )


@dataclass
class QuestionnaireSchema:
    """Questions of a questionnaire in declared order, keyed by id."""
    questions: dict[str, Question] = field(default_factory=dict)

    def get(self, question_id: str) -> Question | None:
        return self.questions.get(question_id)

    def required_ids(self) -> list[str]:
        return [qid for qid, q in self.questions.items() if q.required]

    def __contains__(self, question_id) -> bool:
        return question_id in self.questions


def parse_schema(raw: dict | None) -> QuestionnaireSchema:
    """Build a QuestionnaireSchema from ``{"sections": [{"questions": [...]}]}``."""
    questions: dict[str, Question] = {}
    raw = _block(raw, "Questionnaire schema")
    for section in _sequence(raw.get("sections"), "Questionnaire schema sections"):
        section = _block(section, "Questionnaire schema section")
        for raw_question in _sequence(section.get("questions"), "Questionnaire section questions"):
            question = _build_question(raw_question)
            questions[question.id] = question
    return QuestionnaireSchema(questions=questions)


# ═════════════════════════════════════════════════════════════════════════════
# Template configuration
# ═════════════════════════════════════════════════════════════════════════════

def _pick(raw: dict, *keys, default=None):
    for key in keys:
        if key in raw:
            return raw[key]
    return default


def _parse_range(raw, label: str) -> tuple[float, float] | None:
    if raw is None:
        return None
    try:
        low, high = float(raw["min"]), float(raw["max"])
    except (KeyError, TypeError, ValueError) as exc:
        raise ReportConfigurationError(f"{label} must be an object with numeric min and max") from exc
    if high <= low:
        raise ReportConfigurationError(f"{label} max must be greater than min")
    return low, high


@dataclass(frozen=True)
class DataMapping:
    """How one dimension is computed from questionnaire answers."""
    question_ids: tuple[str, ...]
    aggregation: AggregationType = AggregationType.AVERAGE
    scale: tuple[float, float] | None = None
    weights: dict[str, float] = field(default_factory=dict)
    filters: dict[str, Any] = field(default_factory=dict)
    stats: tuple[str, ...] = ()
    custom_aggregator: str | None = None

    @classmethod
    def from_dict(cls, name: str, raw: dict) -> "DataMapping":
        if not isinstance(raw, dict):
            raise ReportConfigurationError(f"Data mapping {name!r} must be an object")
        question_ids = _sequence(_pick(raw, "question_ids", "questionIds"), f"Data mapping {name!r} question_ids")
        if not question_ids or not all(isinstance(q, str) for q in question_ids):
            raise ReportConfigurationError(f"Data mapping {name!r} needs at least one question id")
        try:
            aggregation = AggregationType(_pick(raw, "aggregation", "aggregationType", default="average"))
        except (TypeError, ValueError) as exc:
            raise ReportConfigurationError(f"Data mapping {name!r} has an unknown aggregation type") from exc
        stats = tuple(_sequence(raw.get("stats"), f"Data mapping {name!r} stats"))
        unknown = [s for s in stats if s not in AUXILIARY_STATS]
        if unknown:
            raise ReportConfigurationError(
                f"Data mapping {name!r} requests unknown stats", details={"stats": unknown},
            )
        custom = _pick(raw, "custom_aggregator", "customAggregator")
        if aggregation == AggregationType.CUSTOM and not custom:
            raise ReportConfigurationError(f"Data mapping {name!r} uses custom aggregation without a name")
        return cls(
            question_ids=tuple(question_ids),
            aggregation=aggregation,
            scale=_parse_range(raw.get("scale"), f"{name}.scale"),
            weights={
                str(k): _number(v, f"Data mapping {name!r} weight for {k!r}")
                for k, v in _block(raw.get("weights"), f"Data mapping {name!r} weights").items()
            },
            filters=dict(_block(raw.get("filters"), f"Data mapping {name!r} filters")),
            stats=stats,
            custom_aggregator=custom,
        )


@dataclass(frozen=True)
class VisualizationConfig:
    type: VisualizationType
    dimensions: tuple[str, ...] = ()
    options: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DashboardConfig:
    layout: str = "grid"
    widgets: tuple[dict, ...] = ()


@dataclass(frozen=True)
class ReportTemplateConfig:
    """Parsed ``ReportTemplate.config``.

    Accepts the full form ``{"data_mappings": {...}, "visualization": {...}}``
    (camelCase keys also accepted) and the shorthand ``{"dimensions": [...]}``
    in which each dimension averages the question with the same id.
    """
    data_mappings: dict[str, DataMapping]
    score_scale: tuple[float, float] = (0.0, 100.0)
    visualization: VisualizationConfig | None = None
    dashboard: DashboardConfig | None = None
    pdf: dict[str, Any] | None = None

    @property
    def dimension_names(self) -> tuple[str, ...]:
        """Dimensions in declared order — visualization order wins when given."""
        if self.visualization and self.visualization.dimensions:
            return self.visualization.dimensions
        return tuple(self.data_mappings)

    @classmethod
    def from_dict(cls, raw: dict | None) -> "ReportTemplateConfig":
        raw = raw or {}
        if not isinstance(raw, dict):
            raise ReportConfigurationError("Report template config must be an object")

        raw_mappings = _pick(raw, "data_mappings", "dataMappings")
        shorthand = _sequence(raw.get("dimensions"), "dimensions")
        if raw_mappings is None and shorthand:
            raw_mappings = {str(name): {"question_ids": [str(name)]} for name in shorthand}
        if not raw_mappings or not isinstance(raw_mappings, dict):
            raise ReportConfigurationError("Data mappings are required in configuration")
        mappings = {name: DataMapping.from_dict(name, m) for name, m in raw_mappings.items()}

        visualization = None
        raw_vis = raw.get("visualization")
        if raw_vis is not None:
            raw_vis = _block(raw_vis, "visualization")
            try:
                vis_type = VisualizationType(raw_vis.get("type"))
            except (TypeError, ValueError) as exc:
                raise ReportConfigurationError("Unsupported visualization type") from exc
            dims = tuple(
                _sequence(raw_vis.get("dimensions"), "visualization.dimensions")
                or shorthand
            )
            visualization = VisualizationConfig(
                type=vis_type, dimensions=dims,
                options=dict(_block(raw_vis.get("options"), "visualization.options")),
            )

        dashboard = None
        raw_dash = raw.get("dashboard")
        if raw_dash is not None:
            raw_dash = _block(raw_dash, "dashboard")
            widgets = _sequence(raw_dash.get("widgets"), "dashboard.widgets")
            if not all(isinstance(w, dict) for w in widgets):
                raise ReportConfigurationError("dashboard.widgets entries must be objects")
            dashboard = DashboardConfig(
                layout=str(raw_dash.get("layout") or "grid"),
                widgets=tuple(widgets),
            )

        pdf = None
        if raw.get("pdf") is not None:
            pdf = _block(raw["pdf"], "pdf")
            _block(pdf.get("options"), "pdf.options")

        return cls(
            data_mappings=mappings,
            score_scale=_parse_range(_pick(raw, "score_scale", "scoreScale"), "score_scale") or (0.0, 100.0),
            visualization=visualization,
            dashboard=dashboard,
            pdf=pdf,
        )


# ═════════════════════════════════════════════════════════════════════════════
# Aggregation inputs and outputs
# ═════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ResponseRecord:
    """One participant response as handed to the aggregator."""
    id: int
    participant_id: str
    answers: Any
    metadata: dict = field(default_factory=dict)
    submitted_at: datetime | None = None


@dataclass
class DimensionData:
    value: float | None
    responses: int
    stats: dict[str, float] = field(default_factory=dict)
    distribution: dict[str, float] | None = None
    questions: dict[str, dict] = field(default_factory=dict)

    def to_dict(self) -> dict:
        out: dict[str, Any] = {"value": self.value, "responses": self.responses}
        for key in AUXILIARY_STATS:
            if key in self.stats:
                out[key] = self.stats[key]
        if self.distribution is not None:
            out["distribution"] = dict(self.distribution)
        if self.questions:
            out["questions"] = {k: dict(v) for k, v in self.questions.items()}
        return out

    @classmethod
    def from_dict(cls, raw: dict) -> "DimensionData":
        return cls(
            value=raw.get("value"),
            responses=int(raw.get("responses") or 0),
            stats={k: raw[k] for k in AUXILIARY_STATS if k in raw},
            distribution=raw.get("distribution"),
            questions=dict(raw.get("questions") or {}),
        )


@dataclass
class AggregationContext:
    """Input handed to a registered custom aggregator."""
    question_ids: tuple[str, ...]
    participant_scores: list[float]
    answers: list[tuple[str, str, Any]]
    scale: tuple[float, float] | None = None
    weights: dict[str, float] = field(default_factory=dict)


AggregationFunction = Callable[[AggregationContext], DimensionData]


@dataclass
class ComputedReportData:
    response_count: int
    completion_rate: float
    overall_score: float | None
    dimensions: dict[str, DimensionData] = field(default_factory=dict)
    metrics: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "response_count": self.response_count,
            "completion_rate": self.completion_rate,
            "overall_score": self.overall_score,
            "dimensions": {name: dim.to_dict() for name, dim in self.dimensions.items()},
            "metrics": dict(self.metrics),
        }

    @classmethod
    def from_dict(cls, raw: dict | None) -> "ComputedReportData":
        raw = raw or {}
        return cls(
            response_count=int(raw.get("response_count") or 0),
            completion_rate=float(raw.get("completion_rate") or 0.0),
            overall_score=raw.get("overall_score"),
            dimensions={
                name: DimensionData.from_dict(dim)
                for name, dim in (raw.get("dimensions") or {}).items()
            },
            metrics=dict(raw.get("metrics") or {}),
        )


@dataclass
class ValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"valid": self.valid, "errors": list(self.errors)}
