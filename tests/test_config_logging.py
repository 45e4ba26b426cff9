"""
Tests for app/config.py validation and the structured log formatters.
"""

import json
import logging

import pytest

from app.config import TestingConfig, validate_config
from app.middleware.logging_config import JSONFormatter, ReadableFormatter


def _settings(**overrides):
    cfg = {
        key: getattr(TestingConfig, key)
        for key in dir(TestingConfig)
        if key.isupper()
    }
    cfg.update(overrides)
    return cfg


def test_testing_config_is_valid():
    validate_config(_settings())


@pytest.mark.parametrize("overrides, message", [
    ({"SQLALCHEMY_DATABASE_URI": None}, "DATABASE_URL"),
    ({"REPORT_MIN_RESPONSES": 0}, "REPORT_MIN_RESPONSES"),
    ({"REPORT_STALE_AFTER_SECONDS": 0}, "REPORT_STALE_AFTER_SECONDS"),
    ({"REPORT_ESTIMATED_SECONDS": -1}, "REPORT_ESTIMATED_SECONDS"),
])
def test_invalid_settings_rejected(overrides, message):
    with pytest.raises(RuntimeError, match=message):
        validate_config(_settings(**overrides))


def _record(**extra):
    record = logging.LogRecord("app.reports.generator", logging.INFO, __file__, 1,
                               "Report generated id=%s", (9,), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_carries_report_ids():
    out = json.loads(JSONFormatter().format(
        _record(organization_id=1, questionnaire_id=4, template_id=2, report_id=9)
    ))
    assert out["message"] == "Report generated id=9"
    assert out["level"] == "INFO"
    assert (out["organization_id"], out["questionnaire_id"], out["template_id"], out["report_id"]) == (1, 4, 2, 9)
    assert "duration_ms" not in out


def test_readable_formatter_appends_ids_and_duration():
    line = ReadableFormatter().format(_record(questionnaire_id=4, report_id=9, duration_ms=12.4))
    assert "Report generated id=9" in line
    assert "[q=4 report=9]" in line
    assert line.endswith("(12ms)")
