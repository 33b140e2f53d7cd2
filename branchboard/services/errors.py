from typing import Any, Dict, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError


class DomainError(Exception):
    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"detail": self.message}
        if self.field:
            body["field"] = self.field
        return body


class ValidationFailed(DomainError):
    status_code = 400


class NotFoundError(DomainError):
    status_code = 404

    def __init__(self, resource: str, key: Any) -> None:
        super().__init__(f"{resource} not found")
        self.resource = resource
        self.key = key


class AuthorizationError(DomainError):
    status_code = 403


class ConflictError(DomainError):
    status_code = 409


M = TypeVar("M", bound=BaseModel)


def parse_input(schema: Type[M], payload: Any) -> M:
    """Validate a request body against an operation schema."""
    if isinstance(payload, schema):
        return payload
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(exclude_unset=True)
    try:
        return schema.model_validate(payload if payload is not None else {})
    except ValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(p) for p in first.get("loc", ())) or None
        raise ValidationFailed(first.get("msg", "Invalid input"), field=field) from exc
