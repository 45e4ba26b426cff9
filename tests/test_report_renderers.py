"""
Tests for renderer dispatch and the presentation trees each renderer builds.

Renderers are pure: they take ComputedReportData + ReportTemplateConfig and
return plain dicts, so no database rows are needed here.
"""

import pytest

from app.core.exceptions import ReportConfigurationError
from app.reports.renderers import (
    BAND_HIGH,
    BAND_LOW,
    BAND_MID,
    BaseRenderer,
    DashboardRenderer,
    PdfRenderer,
    VisualizationRenderer,
    available_types,
    get_renderer,
)
from app.reports.types import ComputedReportData, DimensionData, ReportTemplateConfig, ReportType


def _data(**dims):
    dimensions = {name: DimensionData(value=value, responses=6) for name, value in dims.items()}
    return ComputedReportData(
        response_count=6,
        completion_rate=1.0,
        overall_score=65.4,
        dimensions=dimensions,
        metrics={"total_responses": 6, "eligible_responses": 6, "score_scale": {"min": 0, "max": 100}},
    )


def _config(raw):
    return ReportTemplateConfig.from_dict(raw)


SCENARIO = _data(purpose=73.33, autonomy=57.5, mastery=None)
FLOWER = _config({
    "dimensions": ["purpose", "autonomy", "mastery"],
    "visualization": {"type": "flower", "options": {"title": "Culture"}},
})


# ═════════════════════════════════════════════════════════════════════════════
# Dispatch
# ═════════════════════════════════════════════════════════════════════════════


class TestDispatch:
    @pytest.mark.parametrize("report_type,cls", [
        ("visualization", VisualizationRenderer),
        ("dashboard", DashboardRenderer),
        ("pdf", PdfRenderer),
        (ReportType.PDF, PdfRenderer),
    ])
    def test_every_type_has_a_renderer(self, report_type, cls):
        renderer = get_renderer(report_type)
        assert isinstance(renderer, cls)
        assert renderer.can_render(report_type)

    def test_unknown_type(self):
        with pytest.raises(ReportConfigurationError) as exc_info:
            get_renderer("hologram")
        assert "visualization" in exc_info.value.details["supported"]

    def test_available_types_cover_enum(self):
        assert sorted(available_types()) == sorted(t.value for t in ReportType)

    def test_base_renderer_requires_render(self):
        with pytest.raises(TypeError):
            BaseRenderer()

        class Incomplete(BaseRenderer):
            type = ReportType.PDF

        with pytest.raises(TypeError):
            Incomplete()


# ═════════════════════════════════════════════════════════════════════════════
# Visualization
# ═════════════════════════════════════════════════════════════════════════════


class TestFlower:
    def test_petal_geometry(self):
        tree = get_renderer("visualization").render(SCENARIO, FLOWER)
        assert tree["visualization"] == "flower"
        assert tree["title"] == "Culture"
        assert tree["center"]["display_value"] == "65.4"

        purpose, autonomy, mastery = tree["petals"]
        assert purpose["extent"] == 0.7333
        assert purpose["radius"] == 157.33
        assert purpose["display_value"] == "73.3"
        assert [p["angle"] for p in tree["petals"]] == [0, 120, 240]
        assert autonomy["extent"] == 0.575
        assert mastery["has_data"] is False
        assert mastery["extent"] == 0.0
        assert mastery["radius"] == 40.0
        assert mastery["display_value"] == "0"

    def test_extent_clipped_to_max_value(self):
        config = _config({
            "dimensions": ["purpose"],
            "visualization": {"type": "flower", "options": {"maxValue": 50}},
        })
        petal = get_renderer("visualization").render(_data(purpose=73.33), config)["petals"][0]
        assert petal["extent"] == 1.0
        assert petal["radius"] == 200.0

    def test_missing_dimension(self):
        with pytest.raises(ReportConfigurationError) as exc_info:
            get_renderer("visualization").render(_data(purpose=70.0), FLOWER)
        assert exc_info.value.details["missing"] == ["autonomy", "mastery"]


class TestCharts:
    def test_bar_chart_datasets(self):
        config = _config({
            "dimensions": ["purpose", "autonomy"],
            "visualization": {"type": "bar", "options": {"labels": {"purpose": "Why we work"}}},
        })
        tree = get_renderer("visualization").render(SCENARIO, config)
        chart = tree["chart"]
        assert chart["labels"] == ["Why we work", "Autonomy"]
        dataset = chart["datasets"][0]
        assert dataset["data"] == [73.33, 57.5]
        assert dataset["backgroundColor"] == ["rgba(59, 130, 246, 0.6)", "rgba(16, 185, 129, 0.6)"]
        assert dataset["fill"] is False
        assert tree["options"]["scales"]["y"]["max"] == 100.0

    def test_radar_fills(self):
        config = _config({"dimensions": ["purpose"], "visualization": {"type": "radar"}})
        tree = get_renderer("visualization").render(SCENARIO, config)
        assert tree["chart"]["datasets"][0]["fill"] is True

    def test_requires_visualization_config(self):
        config = _config({"dimensions": ["purpose"]})
        renderer = get_renderer("visualization")
        result = renderer.validate(config)
        assert result.valid is False
        assert result.to_dict()["errors"] == ["Visualization configuration is required"]
        with pytest.raises(ReportConfigurationError):
            renderer.render(SCENARIO, config)

    def test_no_responses(self):
        empty = ComputedReportData(response_count=0, completion_rate=0.0, overall_score=None)
        with pytest.raises(ReportConfigurationError):
            get_renderer("visualization").render(empty, FLOWER)


# ═════════════════════════════════════════════════════════════════════════════
# Dashboard & PDF
# ═════════════════════════════════════════════════════════════════════════════


class TestDashboard:
    def test_default_widgets(self):
        config = _config({"dimensions": ["purpose", "autonomy"], "dashboard": {}})
        tree = get_renderer("dashboard").render(SCENARIO, config)
        assert tree["layout"] == "grid"
        assert [c["key"] for c in tree["cards"]] == ["overall_score", "response_count", "completion_rate"]
        assert tree["cards"][2]["display_value"] == "100.0%"

        dims, metrics = tree["widgets"]
        assert [i["dimension"] for i in dims["items"]] == ["purpose", "autonomy"]
        assert dims["items"][0]["color"] == BAND_HIGH
        assert dims["items"][1]["color"] == BAND_MID
        assert {i["key"] for i in metrics["items"]} == {"total_responses", "eligible_responses"}

    def test_configured_widgets(self):
        config = _config({
            "dimensions": ["purpose", "autonomy"],
            "dashboard": {"layout": "stack", "widgets": [
                {"type": "gauge", "dimension": "autonomy", "options": {"title": "Autonomy"}},
            ]},
        })
        tree = get_renderer("dashboard").render(SCENARIO, config)
        assert tree["layout"] == "stack"
        assert tree["widgets"] == [{
            "type": "gauge",
            "title": "Autonomy",
            "items": [{
                "dimension": "autonomy", "label": "Autonomy", "value": 57.5,
                "display_value": "57.5", "responses": 6, "color": BAND_MID,
            }],
        }]

    def test_widget_for_unknown_dimension(self):
        config = _config({
            "dimensions": ["purpose"],
            "dashboard": {"widgets": [{"dimension": "wellbeing"}]},
        })
        with pytest.raises(ReportConfigurationError):
            get_renderer("dashboard").render(SCENARIO, config)

    def test_requires_dashboard_config(self):
        assert get_renderer("dashboard").validate(_config({"dimensions": ["purpose"]})).valid is False


class TestPdf:
    def test_outline(self):
        config = _config({
            "dimensions": ["purpose", "autonomy"],
            "pdf": {"orientation": "landscape", "options": {"title": "Culture scan"}},
        })
        tree = get_renderer("pdf").render(SCENARIO, config)
        assert tree["title"] == "Culture scan"
        assert tree["page_size"] == "A4"
        assert tree["orientation"] == "landscape"
        assert [s["heading"] for s in tree["sections"]] == ["Overall Score", "Dimensions", "Metrics"]
        assert tree["sections"][1]["rows"][0]["display_value"] == "73.3"
        assert tree["footer"] == {"response_count": 6, "completion_rate": "100.0%"}

    def test_defaults(self):
        tree = get_renderer("pdf").render(SCENARIO, _config({"dimensions": ["purpose"]}))
        assert tree["title"] == "Report"
        assert tree["orientation"] == "portrait"


# ═════════════════════════════════════════════════════════════════════════════
# Formatting helpers
# ═════════════════════════════════════════════════════════════════════════════


@pytest.mark.parametrize("value,decimals,expected", [
    (73.335, 2, "73.34"),
    (2.5, 0, "3"),
    (None, 2, "0"),
    ("n/a", 2, "0"),
    (10, 1, "10.0"),
])
def test_format_number(value, decimals, expected):
    assert BaseRenderer.format_number(value, decimals) == expected


def test_format_percentage():
    assert BaseRenderer.format_percentage(0.8333) == "83.3%"
    assert BaseRenderer.format_percentage(None) == "0%"


@pytest.mark.parametrize("value,expected", [
    (None, BAND_LOW),
    (10, BAND_LOW),
    (50, BAND_MID),
    (67, BAND_HIGH),
    (100, BAND_HIGH),
])
def test_color_for_value(value, expected):
    assert BaseRenderer.color_for_value(value) == expected
