"""
Answer lookup and data-mapping validation.

Answers arrive either flat (``{"q1": 4}``) or grouped by section
(``{"culture": {"q1": 4}}``). Metadata filters compare response metadata
attributes — dotted paths allowed — against a scalar or a list of accepted
values.
"""

from __future__ import annotations

from app.reports.types import QuestionnaireSchema, ReportTemplateConfig


_MISSING = object()


def extract_answer(answers, question_id: str):
    """Return the raw answer for ``question_id`` or ``None`` when absent."""
    if not isinstance(answers, dict):
        return None
    if question_id in answers:
        return answers[question_id]
    for value in answers.values():
        if isinstance(value, dict) and question_id in value:
            return value[question_id]
    return None


def get_nested_value(data, path: str):
    current = data
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return _MISSING
        current = current[part]
    return current


def passes_filters(metadata, filters: dict) -> bool:
    if not filters:
        return True
    metadata = metadata if isinstance(metadata, dict) else {}
    for path, expected in filters.items():
        actual = get_nested_value(metadata, path)
        if actual is _MISSING:
            return False
        if isinstance(expected, (list, tuple)):
            if actual not in expected:
                return False
        elif actual != expected:
            return False
    return True


def missing_question_ids(schema: QuestionnaireSchema, config: ReportTemplateConfig) -> dict[str, list[str]]:
    """Dimension → question ids referenced by its mapping but absent from the schema."""
    missing: dict[str, list[str]] = {}
    for name, mapping in config.data_mappings.items():
        absent = [qid for qid in mapping.question_ids if qid not in schema]
        if absent:
            missing[name] = absent
    return missing


def mapped_question_ids(config: ReportTemplateConfig) -> list[str]:
    seen: list[str] = []
    for mapping in config.data_mappings.values():
        for qid in mapping.question_ids:
            if qid not in seen:
                seen.append(qid)
    return seen
