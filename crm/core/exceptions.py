"""
Domain error taxonomy.

Every failure surfaced by the domain actions is one of four kinds. The HTTP
layer maps them to status codes and the query cache stores them on failed
entries, so neither needs to know where the error came from.
"""

from typing import Any, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError


SchemaT = TypeVar("SchemaT", bound=BaseModel)


class CRMError(Exception):
    """Base class for domain errors."""
    
    reason: str = "Unknown"
    default_message: str = "Unexpected error"
    
    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class UnauthorizedError(CRMError):
    """No resolvable principal."""
    
    reason = "Unauthorized"
    default_message = "Unauthorized"


class NotFoundError(CRMError):
    """
    Record absent, not owned by the principal, or not in a state that
    allows the requested transition. Callers cannot tell these apart.
    """
    
    reason = "NotFound"
    default_message = "Not found"


class ValidationError(CRMError):
    """Payload failed required-field or shape checks."""
    
    reason = "ValidationError"
    default_message = "Invalid data"
    
    def __init__(
        self,
        message: str | None = None,
        errors: list[dict[str, str]] | None = None,
    ):
        super().__init__(message)
        self.errors = errors or []
    
    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls(message, errors=[{"field": field, "message": message}])


class UnknownError(CRMError):
    """Unexpected failure from the persistence layer."""
    
    reason = "Unknown"


def field_errors(exc: PydanticValidationError) -> list[dict[str, str]]:
    """Flatten pydantic errors into field/message pairs."""
    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"]) or "__root__"
        errors.append({"field": field, "message": error["msg"]})
    return errors


def parse_payload(schema: Type[SchemaT], data: Any) -> SchemaT:
    """
    Validate raw input against an operation's input schema.
    
    Raises:
        ValidationError: with one entry per offending field
    """
    try:
        return schema.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(errors=field_errors(exc)) from exc
