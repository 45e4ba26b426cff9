"""
Platform-wide exception hierarchy.

Services raise these types; blueprints register handlers against them once
and get consistent HTTP status codes everywhere.

    NotFoundError              → 404
    ValidationError            → 400 / 422
    ConflictError              → 409
    InsufficientDataError      → 400  (caller-correctable, never persisted as error)
    ReportConfigurationError   → 422  (template / data mismatch)
    GenerationInProgressError  → 409  (retry later)
    GenerationFailure          → 500  (details logged, not returned)

Usage:
    from app.core.exceptions import NotFoundError, InsufficientDataError

    raise NotFoundError(resource="Questionnaire", resource_id=42)
    raise InsufficientDataError(count=3, minimum=5)
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist within the given scope.

    Used for BOTH genuinely missing records AND cross-organization access
    attempts, so a 404 never confirms that a resource exists elsewhere.

    Args:
        resource: Human-readable model/entity name (e.g. "Questionnaire").
        resource_id: The PK that was looked up. Included in logs, not in HTTP response.
        organization_id: Optional — the scope that was enforced. For debug logging only.
    """

    def __init__(
        self,
        resource: str,
        resource_id: int | str | None = None,
        organization_id: int | None = None,
    ) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.organization_id = organization_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        if organization_id is not None:
            msg += f" (organization={organization_id})"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input fails business-rule validation in the service layer.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would create a duplicate unique constraint violation.

    Args:
        resource: Model name.
        field: The unique field that would be duplicated.
        value: The conflicting value.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)


class InsufficientDataError(Exception):
    """Raised when fewer responses exist than the statistical floor.

    Retryable once more responses arrive. Report rows are never moved to
    ``error`` because of it.

    Args:
        count: Number of eligible responses observed.
        minimum: The response floor that was enforced.
    """

    def __init__(self, count: int, minimum: int) -> None:
        self.count = count
        self.minimum = minimum
        super().__init__(f"Need at least {minimum} responses, got {count}")


class ReportConfigurationError(Exception):
    """Raised when a template config and the data it reads do not fit together.

    Covers unknown report types at render time, malformed template configs,
    mappings that reference questions absent from the questionnaire, and
    configured dimensions missing from computed data.

    Args:
        message: Human-readable explanation.
        details: Optional structured payload (e.g. {"missing": [...]}).
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class GenerationInProgressError(Exception):
    """Raised when another caller holds a fresh ``generating`` claim on the report.

    Args:
        report_id: The contended report row.
        retry_after: Suggested wait in seconds before retrying.
    """

    def __init__(self, report_id: int, retry_after: int | None = None) -> None:
        self.report_id = report_id
        self.retry_after = retry_after
        super().__init__(f"Report id={report_id} is already being generated")


class GenerationFailure(Exception):
    """Raised when aggregation or persistence fails unexpectedly.

    The report row has been moved to ``error`` by the time this is raised.
    The original exception is chained as ``__cause__``.

    Args:
        questionnaire_id: Questionnaire being reported on.
        template_id: Template being generated.
        report_id: Row that was marked as failed, when one exists.
    """

    def __init__(
        self,
        questionnaire_id: int,
        template_id: int,
        report_id: int | None = None,
    ) -> None:
        self.questionnaire_id = questionnaire_id
        self.template_id = template_id
        self.report_id = report_id
        super().__init__(
            f"Report generation failed for questionnaire={questionnaire_id} template={template_id}"
        )
