"""Application-specific exceptions.

Route handlers catch these and translate them into the HTTP status codes (or
RPC error codes) listed next to each class. Anything else that escapes a
handler is treated as an internal error.
"""

from __future__ import annotations


class ValidationError(ValueError):
    """Raised when input validation fails (HTTP 400 / ``BAD_REQUEST``).

    Parameters
    ----------
    message:
        Human-readable error message.
    field:
        Optional name of the field/parameter that failed validation.
    code:
        Optional machine-readable error code.
    details:
        Optional extra context (e.g. the unmet password requirements).
    """

    def __init__(
        self,
        message: str = "Validation error",
        *,
        field: str | None = None,
        code: str | None = None,
        details: object | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.field = field
        self.code = code
        self.details = details

    def to_dict(self) -> dict:
        """Serialize the error into a JSON-friendly dictionary."""

        data = {"message": self.message}
        if self.field is not None:
            data["field"] = self.field
        if self.code is not None:
            data["code"] = self.code
        if self.details is not None:
            data["details"] = self.details
        return data


class TermsNotFoundError(LookupError):
    """No current terms, or the requested terms are not current (HTTP 404 / ``NOT_FOUND``)."""

    def __init__(self, message: str = "No current terms found") -> None:
        super().__init__(message)
        self.message = message


class AcceptanceConflictError(RuntimeError):
    """A concurrent acceptance collided on the unique constraint and could not be resolved (HTTP 409 / ``CONFLICT``).

    Safe for the client to retry.
    """

    def __init__(self, message: str = "Acceptance could not be recorded, please retry") -> None:
        super().__init__(message)
        self.message = message


class TermsVersionExistsError(ValueError):
    """Raised by the publish command when the version is already stored."""
