"""
Renderer dispatch — computed report data → presentation tree.

Each ReportType has exactly one renderer; ``get_renderer`` is total over the
enum and the registry is checked at import time. Renderers are stateless and
return plain dicts (JSON-ready) describing what to draw, never drawing it.

Usage:
    renderer = get_renderer(template.type)
    tree = renderer.render(ComputedReportData.from_dict(report.computed_data), config)
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from decimal import ROUND_HALF_UP, Decimal

from app.core.exceptions import ReportConfigurationError
from app.reports.types import (
    ComputedReportData,
    DimensionData,
    ReportTemplateConfig,
    ReportType,
    ValidationResult,
    VisualizationType,
)

logger = logging.getLogger(__name__)

# Chart palette as (r, g, b): blue, green, orange, red, purple, pink
CHART_COLORS = [
    (59, 130, 246),
    (16, 185, 129),
    (245, 158, 11),
    (239, 68, 68),
    (139, 92, 246),
    (236, 72, 153),
]

PETAL_COLORS = ["#3b82f6", "#10b981", "#f59e0b", "#ef4444", "#8b5cf6", "#ec4899"]

BAND_LOW = "#ef4444"
BAND_MID = "#f59e0b"
BAND_HIGH = "#10b981"


# ═════════════════════════════════════════════════════════════════════════════
# BASE
# ═════════════════════════════════════════════════════════════════════════════

class BaseRenderer(ABC):
    """Shared validation and formatting helpers."""

    type: ReportType

    @abstractmethod
    def render(self, data: ComputedReportData, config: ReportTemplateConfig) -> dict:
        """Build the presentation tree for one complete report."""

    def can_render(self, report_type) -> bool:
        return self.type.value == str(getattr(report_type, "value", report_type))

    def validate(self, config: ReportTemplateConfig | None) -> ValidationResult:
        errors: list[str] = []
        if config is None:
            errors.append("Report configuration is required")
        elif not config.data_mappings:
            errors.append("Data mappings are required in configuration")
        else:
            errors.extend(self._type_errors(config))
        return ValidationResult(valid=not errors, errors=errors)

    def _type_errors(self, config: ReportTemplateConfig) -> list[str]:
        return []

    # ── Guards ───────────────────────────────────────────────────────────

    def _check(self, data: ComputedReportData, config: ReportTemplateConfig) -> None:
        result = self.validate(config)
        if not result.valid:
            raise ReportConfigurationError("; ".join(result.errors), details={"errors": result.errors})
        if data is None or data.response_count <= 0:
            raise ReportConfigurationError("No responses available for this report")

    @staticmethod
    def dimension(data: ComputedReportData, name: str) -> DimensionData:
        try:
            return data.dimensions[name]
        except KeyError:
            raise ReportConfigurationError(
                f"Dimension {name!r} is missing from the computed data",
                details={"missing": [name]},
            ) from None

    def dimensions(self, data: ComputedReportData, config: ReportTemplateConfig) -> list[tuple[str, DimensionData]]:
        names = config.dimension_names
        missing = [n for n in names if n not in data.dimensions]
        if missing:
            raise ReportConfigurationError(
                "Configured dimensions are missing from the computed data",
                details={"missing": missing},
            )
        return [(n, data.dimensions[n]) for n in names]

    # ── Formatting ───────────────────────────────────────────────────────

    @staticmethod
    def format_number(value, decimals: int = 2) -> str:
        if value is None or isinstance(value, bool) or not isinstance(value, (int, float)):
            return "0"
        quantum = Decimal(1).scaleb(-decimals)
        return str(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))

    @classmethod
    def format_percentage(cls, value, decimals: int = 1) -> str:
        if value is None or isinstance(value, bool) or not isinstance(value, (int, float)):
            return "0%"
        return f"{cls.format_number(value * 100, decimals)}%"

    @staticmethod
    def color_for_value(value, minimum: float = 0, maximum: float = 100) -> str:
        if value is None or maximum == minimum:
            return BAND_LOW
        normalized = (value - minimum) / (maximum - minimum)
        if normalized < 0.33:
            return BAND_LOW
        if normalized < 0.67:
            return BAND_MID
        return BAND_HIGH

    @staticmethod
    def label_for(name: str, options: dict) -> str:
        labels = options.get("labels") or {}
        return labels.get(name) or name.replace("_", " ").title()


# ═════════════════════════════════════════════════════════════════════════════
# REGISTRY
# ═════════════════════════════════════════════════════════════════════════════

_RENDERERS: dict[ReportType, BaseRenderer] = {}


def register_renderer(cls):
    """Class decorator: instantiate and register a renderer for ``cls.type``."""
    _RENDERERS[cls.type] = cls()
    return cls


def get_renderer(report_type) -> BaseRenderer:
    try:
        key = ReportType(getattr(report_type, "value", report_type))
    except ValueError:
        raise ReportConfigurationError(
            f"Unknown report type {report_type!r}",
            details={"supported": [t.value for t in ReportType]},
        ) from None
    return _RENDERERS[key]


def available_types() -> list[str]:
    return [t.value for t in ReportType if t in _RENDERERS]


# ═════════════════════════════════════════════════════════════════════════════
# VISUALIZATION
# ═════════════════════════════════════════════════════════════════════════════

def _rgba(index: int, alpha: float) -> str:
    r, g, b = CHART_COLORS[index % len(CHART_COLORS)]
    return f"rgba({r}, {g}, {b}, {alpha})"


@register_renderer
class VisualizationRenderer(BaseRenderer):
    """Standard charts (bar/line/pie/radar) and the flower chart."""

    type = ReportType.VISUALIZATION

    def _type_errors(self, config: ReportTemplateConfig) -> list[str]:
        if config.visualization is None:
            return ["Visualization configuration is required"]
        return []

    def render(self, data: ComputedReportData, config: ReportTemplateConfig) -> dict:
        self._check(data, config)
        if config.visualization.type == VisualizationType.FLOWER:
            return self._render_flower(data, config)
        return self._render_chart(data, config)

    def _render_chart(self, data: ComputedReportData, config: ReportTemplateConfig) -> dict:
        vis = config.visualization
        options = vis.options
        dims = self.dimensions(data, config)
        values = [dim.value for _, dim in dims]
        return {
            "type": ReportType.VISUALIZATION.value,
            "visualization": vis.type.value,
            "chart": {
                "labels": [self.label_for(name, options) for name, _ in dims],
                "datasets": [{
                    "label": options.get("label") or "Values",
                    "data": values,
                    "backgroundColor": [_rgba(i, 0.6) for i in range(len(values))],
                    "borderColor": [_rgba(i, 1) for i in range(len(values))],
                    "borderWidth": 2,
                    "fill": vis.type == VisualizationType.RADAR,
                }],
            },
            "options": self._chart_options(options, config),
            "summary": {
                "response_count": data.response_count,
                "overall_score": data.overall_score,
            },
        }

    @staticmethod
    def _chart_options(options: dict, config: ReportTemplateConfig) -> dict:
        chart = {
            "responsive": True,
            "maintainAspectRatio": True,
            "plugins": {
                "legend": {
                    "position": options.get("legendPosition", "top"),
                    "display": options.get("showLegend", True) is not False,
                },
                "title": {"display": bool(options.get("title")), "text": options.get("title") or ""},
                "tooltip": {"enabled": options.get("showTooltip", True) is not False},
            },
        }
        if not options.get("hideScales"):
            chart["scales"] = {
                "y": {"beginAtZero": True, "max": options.get("maxValue") or config.score_scale[1]},
            }
        chart.update(options.get("chartOptions") or {})
        return chart

    def _render_flower(self, data: ComputedReportData, config: ReportTemplateConfig) -> dict:
        options = config.visualization.options
        dims = self.dimensions(data, config)
        max_value = float(options.get("maxValue") or config.score_scale[1])
        inner = float(options.get("centerRadius", 40))
        outer = float(options.get("maxRadius", 200))
        palette = options.get("colors") or PETAL_COLORS
        count = len(dims)

        petals = []
        for index, (name, dim) in enumerate(dims):
            if dim.value is None or max_value <= 0:
                extent = 0.0
            else:
                extent = min(max(dim.value / max_value, 0.0), 1.0)
            petals.append({
                "dimension": name,
                "label": self.label_for(name, options),
                "value": dim.value,
                "display_value": self.format_number(dim.value, 1),
                "has_data": dim.value is not None,
                "extent": round(extent, 4),
                "angle": round(index * 360 / count, 4),
                "radius": round(inner + (outer - inner) * extent, 2),
                "color": palette[index % len(palette)],
            })

        return {
            "type": ReportType.VISUALIZATION.value,
            "visualization": VisualizationType.FLOWER.value,
            "title": options.get("title") or "",
            "center": {
                "radius": inner,
                "overall_score": data.overall_score,
                "display_value": self.format_number(data.overall_score, 1),
            },
            "max_radius": outer,
            "petals": petals,
            "show_labels": options.get("showLabels", True) is not False,
            "show_values": options.get("showValues", True) is not False,
            "summary": {
                "response_count": data.response_count,
                "overall_score": data.overall_score,
            },
        }


# ═════════════════════════════════════════════════════════════════════════════
# DASHBOARD
# ═════════════════════════════════════════════════════════════════════════════

@register_renderer
class DashboardRenderer(BaseRenderer):
    """Summary cards plus configured (or default) widgets."""

    type = ReportType.DASHBOARD

    def _type_errors(self, config: ReportTemplateConfig) -> list[str]:
        if config.dashboard is None:
            return ["Dashboard configuration is required"]
        return []

    def render(self, data: ComputedReportData, config: ReportTemplateConfig) -> dict:
        self._check(data, config)
        widgets = config.dashboard.widgets
        return {
            "type": ReportType.DASHBOARD.value,
            "layout": config.dashboard.layout,
            "cards": self._summary_cards(data),
            "widgets": (
                [self._widget(data, config, w) for w in widgets]
                if widgets else self._default_widgets(data, config)
            ),
        }

    def _summary_cards(self, data: ComputedReportData) -> list[dict]:
        cards = []
        if data.overall_score is not None:
            cards.append({
                "key": "overall_score",
                "label": "Overall Score",
                "value": data.overall_score,
                "display_value": self.format_number(data.overall_score, 1),
            })
        cards.append({
            "key": "response_count",
            "label": "Total Responses",
            "value": data.response_count,
            "display_value": str(data.response_count),
        })
        cards.append({
            "key": "completion_rate",
            "label": "Completion Rate",
            "value": data.completion_rate,
            "display_value": self.format_percentage(data.completion_rate),
        })
        return cards

    def _dimension_item(self, name: str, dim: DimensionData, config: ReportTemplateConfig, options: dict) -> dict:
        low, high = config.score_scale
        return {
            "dimension": name,
            "label": self.label_for(name, options),
            "value": dim.value,
            "display_value": self.format_number(dim.value, 1),
            "responses": dim.responses,
            "color": self.color_for_value(dim.value, low, high),
        }

    def _default_widgets(self, data: ComputedReportData, config: ReportTemplateConfig) -> list[dict]:
        items = [self._dimension_item(n, d, config, {}) for n, d in self.dimensions(data, config)]
        widgets = [{"type": "dimensions", "title": "Dimensions", "items": items}]
        if data.metrics:
            widgets.append({
                "type": "metrics",
                "title": "Metrics",
                "items": [
                    {"key": key, "value": value}
                    for key, value in data.metrics.items()
                    if not isinstance(value, dict)
                ],
            })
        return widgets

    def _widget(self, data: ComputedReportData, config: ReportTemplateConfig, widget: dict) -> dict:
        options = dict(widget.get("options") or {})
        names = widget.get("dimensions") or ([widget["dimension"]] if widget.get("dimension") else None)
        if names is None:
            names = list(config.dimension_names)
        items = [self._dimension_item(n, self.dimension(data, n), config, options) for n in names]
        return {
            "type": widget.get("type") or "dimensions",
            "title": options.get("title") or "",
            "items": items,
        }


# ═════════════════════════════════════════════════════════════════════════════
# PDF
# ═════════════════════════════════════════════════════════════════════════════

@register_renderer
class PdfRenderer(BaseRenderer):
    """Printable document outline: header, score, dimensions, metrics."""

    type = ReportType.PDF

    def render(self, data: ComputedReportData, config: ReportTemplateConfig) -> dict:
        self._check(data, config)
        pdf = config.pdf or {}
        options = dict(pdf.get("options") or {})
        sections: list[dict] = []

        if data.overall_score is not None:
            sections.append({
                "heading": "Overall Score",
                "value": data.overall_score,
                "display_value": self.format_number(data.overall_score, 1),
            })
        sections.append({
            "heading": "Dimensions",
            "rows": [
                {
                    "dimension": name,
                    "label": self.label_for(name, options),
                    "display_value": self.format_number(dim.value, 1),
                    "responses": dim.responses,
                }
                for name, dim in self.dimensions(data, config)
            ],
        })
        metrics = {k: v for k, v in data.metrics.items() if not isinstance(v, dict)}
        if metrics:
            sections.append({
                "heading": "Metrics",
                "rows": [
                    {"label": key, "display_value": self.format_number(value) if isinstance(value, float) else str(value)}
                    for key, value in metrics.items()
                ],
            })

        return {
            "type": ReportType.PDF.value,
            "title": options.get("title") or "Report",
            "subtitle": options.get("subtitle"),
            "page_size": pdf.get("pageSize") or "A4",
            "orientation": pdf.get("orientation") or "portrait",
            "sections": sections,
            "footer": {
                "response_count": data.response_count,
                "completion_rate": self.format_percentage(data.completion_rate),
            },
        }


def _check_registry() -> None:
    missing = [t.value for t in ReportType if t not in _RENDERERS]
    if missing:
        raise RuntimeError(f"No renderer registered for report type(s): {missing}")


_check_registry()
