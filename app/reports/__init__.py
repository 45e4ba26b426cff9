"""
Report core — aggregation, lifecycle and rendering for survey reports.

    types.py            enums, question kinds, template config, computed data
    statistics.py       mean / median / mode / stddev / normalization helpers
    question_mapper.py  answer lookup, metadata filters, mapping validation
    aggregator.py       DataAggregator: responses → ComputedReportData
    store.py            ReportStore: SQLAlchemy persistence + generation claim
    generator.py        ReportGenerator: one (questionnaire, template) lifecycle
    batch.py            BatchOrchestrator: all active templates of an approach
    renderers.py        renderer registry + presentation trees
"""

from app.reports.aggregator import DataAggregator
from app.reports.batch import BatchItemResult, BatchOrchestrator, LoggingBatchObserver
from app.reports.generator import ReportGenerator
from app.reports.renderers import get_renderer
from app.reports.store import ReportStore
from app.reports.types import (
    AggregationType,
    ComputedReportData,
    ReportStatus,
    ReportTemplateConfig,
    ReportType,
    VisualizationType,
    parse_schema,
)

__all__ = [
    "AggregationType",
    "BatchItemResult",
    "BatchOrchestrator",
    "ComputedReportData",
    "DataAggregator",
    "LoggingBatchObserver",
    "ReportGenerator",
    "ReportStatus",
    "ReportStore",
    "ReportTemplateConfig",
    "ReportType",
    "VisualizationType",
    "get_renderer",
    "parse_schema",
]
