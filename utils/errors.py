"""Error taxonomy for the bhajan signup API.

Every error the API reports on purpose is an ``ApiError``.  Each subclass
fixes its HTTP status and a machine-readable ``code``; ``to_dict()`` renders
the JSON error body returned by the exception handlers in ``api/app.py``::

    {"error": "Invalid diety value", "code": "InvalidEnumValue",
     "status_code": 400, "field": "diety", "validValues": [...]}

Validation errors are raised before any datastore call.  Datastore failures
are wrapped in ``UpstreamError`` (or ``DuplicateEntry`` for unique-constraint
violations) by the routes.
"""

from __future__ import annotations

from typing import Any, Sequence


class ApiError(Exception):
    """Base class for errors rendered as a JSON error body."""

    status_code: int = 500
    code: str = "ApiError"

    def __init__(self, message: str, details: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def extra(self) -> dict[str, Any]:
        """Additional keys merged into the error body."""
        return {}

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "error": self.message,
            "code": self.code,
            "status_code": self.status_code,
        }
        if self.details is not None:
            body["details"] = self.details
        body.update(self.extra())
        return body


# ── Client errors (400) ──────────────────────────────────────────────────────

class ValidationError(ApiError):
    """The request broke a validation rule; nothing was sent to the datastore."""

    status_code = 400
    code = "ValidationError"


class InvalidEnumValue(ValidationError):
    code = "InvalidEnumValue"

    def __init__(self, field: str, valid_values: Sequence[str],
                 message: str | None = None) -> None:
        super().__init__(message or f"Invalid {field} value")
        self.field = field
        self.valid_values = list(valid_values)

    def extra(self) -> dict[str, Any]:
        return {"field": self.field, "validValues": self.valid_values}


class InvalidDateFormat(ValidationError):
    code = "InvalidDateFormat"

    def __init__(self, field: str, message: str | None = None) -> None:
        super().__init__(message or f"Invalid {field} date format")
        self.field = field

    def extra(self) -> dict[str, Any]:
        return {"field": self.field}


class InvalidType(ValidationError):
    code = "InvalidType"

    def __init__(self, field: str, expected: str) -> None:
        super().__init__(f"{field} must be a {expected} value")
        self.field = field
        self.expected = expected

    def extra(self) -> dict[str, Any]:
        return {"field": self.field, "expected": self.expected}


class InvalidPagination(ValidationError):
    code = "InvalidPagination"

    def __init__(self, max_page_size: int = 100) -> None:
        super().__init__(
            "Invalid pagination values. Page must be >= 1 and pageSize must "
            f"be between 1 and {max_page_size}"
        )


class InvalidSortField(ValidationError):
    code = "InvalidSortField"

    def __init__(self, field: Any, valid_values: Sequence[str]) -> None:
        super().__init__(f"Invalid sort field: {field!r}")
        self.field = field
        self.valid_values = list(valid_values)

    def extra(self) -> dict[str, Any]:
        return {"validValues": self.valid_values}


class InvalidSortOrder(ValidationError):
    code = "InvalidSortOrder"

    def __init__(self, order: Any) -> None:
        super().__init__('Invalid sort order. Must be "asc" or "desc"')
        self.order = order

    def extra(self) -> dict[str, Any]:
        return {"validValues": ["asc", "desc"]}


class MissingRequiredFields(ValidationError):
    code = "MissingRequiredFields"

    def __init__(self, fields: Sequence[str]) -> None:
        super().__init__(f"Missing required fields: {', '.join(fields)}")
        self.fields = list(fields)

    def extra(self) -> dict[str, Any]:
        return {"missingFields": self.fields}


class InvalidRequestFormat(ValidationError):
    code = "InvalidRequestFormat"

    def __init__(self, details: str | None = None,
                 valid_values: Sequence[str] | None = None) -> None:
        super().__init__("Invalid request format", details)
        self.valid_values = list(valid_values) if valid_values is not None else None

    def extra(self) -> dict[str, Any]:
        if self.valid_values is None:
            return {}
        return {"validValues": self.valid_values}


# ── Conflicts (409) ──────────────────────────────────────────────────────────

class ConflictError(ApiError):
    status_code = 409
    code = "ConflictError"


class DuplicateEntry(ConflictError):
    code = "DuplicateEntry"

    def __init__(self, details: str | None = None) -> None:
        super().__init__("A signup with these details already exists", details)


# ── Server-side failures (500) ───────────────────────────────────────────────

class UpstreamError(ApiError):
    """The datastore rejected or failed a query."""

    status_code = 500
    code = "UpstreamError"


class UnknownError(ApiError):
    status_code = 500
    code = "UnknownError"

    def __init__(self) -> None:
        super().__init__("Internal server error")
