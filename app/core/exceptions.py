"""Custom exception hierarchy."""

from typing import Optional


class AppError(Exception):
    """Base exception for application errors."""

    status_code = 500
    title = "Internal error"

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class ValidationError(AppError):
    """Raised when input validation fails."""

    status_code = 400
    title = "Validation error"


class NotFoundError(AppError):
    """Raised when a requested resource does not exist."""

    status_code = 404
    title = "Not found"


class ReportNotFoundError(NotFoundError):
    """Raised when a report is not found."""

    def __init__(self, report_id):
        super().__init__(f"Report {report_id} not found")
        self.report_id = report_id


class CategoryNotFoundError(NotFoundError):
    """Raised when a category slug is unknown."""

    def __init__(self, category: str):
        super().__init__(f"Category '{category}' not found")
        self.category = category


class SchemaInUseError(ValidationError):
    """Raised when deleting an attribute definition that is still referenced."""

    status_code = 409
    title = "Attribute in use"

    def __init__(self, key: str, usage_count: int):
        super().__init__(
            f"Cannot delete attribute '{key}': referenced by {usage_count} extracted attribute(s)"
        )
        self.key = key
        self.usage_count = usage_count


class SchemaMismatchError(AppError):
    """Raised when an extracted value does not conform to its definition.

    Handled inside extraction: the offending attribute is dropped.
    """

    status_code = 422
    title = "Schema mismatch"

    def __init__(self, key: str, value, reason: str):
        super().__init__(f"Attribute '{key}' rejected value {value!r}: {reason}")
        self.key = key
        self.value = value
        self.reason = reason


class APIClientError(AppError):
    """Raised when an external API call fails."""

    status_code = 502
    title = "Upstream API error"


class APITimeoutError(APIClientError):
    """Raised when an external API call times out."""

    pass


class UpstreamServiceError(AppError):
    """Raised when the completion or embedding service fails or returns garbage."""

    status_code = 502
    title = "Upstream service error"


class DatabaseError(AppError):
    """Raised when a database operation fails on a path with no fallback."""

    status_code = 503
    title = "Datastore unavailable"


class ConfigurationError(AppError):
    """Raised when configuration is invalid or missing."""

    pass
