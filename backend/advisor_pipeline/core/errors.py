"""Error classes shared across the advisor pipeline.

WHY CUSTOM ERROR CLASSES:
- Every rejection carries a machine-readable code the view layer can branch on
- Status codes let a hosting API map errors without re-classifying them
- Bulk operations report per-item failures by code
"""


class APIError(Exception):
    """Base class for pipeline errors.

    All errors have a code, message, and HTTP status.
    Subclasses set default status_code.

    Attributes:
        code: Machine-readable error code (e.g., "NOT_FOUND").
        message: Human-readable error message.
        status_code: HTTP status code a hosting API should return.
        details: Optional list of additional error details.
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: list[dict] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class ValidationError(APIError):
    """Field validation failed (400).

    Use for missing or malformed input, e.g. a blank next step.
    """

    def __init__(
        self,
        message: str,
        details: list[dict] | None = None,
        code: str = "VALIDATION_ERROR",
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            status_code=400,
            details=details,
        )


class NotFoundError(APIError):
    """Resource not found (404).

    Use when a requested application ID is not in the working set.
    """

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        if resource_id:
            message = f"{resource} with id '{resource_id}' not found"
        else:
            message = f"{resource} not found"
        super().__init__(
            code="NOT_FOUND",
            message=message,
            status_code=404,
        )


class InvalidStateError(APIError):
    """Business rule violation (422).

    Use when input is well-formed but the record's state forbids the change.
    E.g., editing the next step of an application that already reached a
    terminal stage.
    """

    def __init__(self, message: str, code: str = "INVALID_STATE_TRANSITION") -> None:
        super().__init__(
            code=code,
            message=message,
            status_code=422,
        )
