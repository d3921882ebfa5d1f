from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str

    def as_dict(self) -> dict[str, str]:
        return {"field": self.field, "message": self.message}


class ServiceError(Exception):
    def __init__(self, code: str, message: str | None = None) -> None:
        self.code = code
        self.message = message or code
        super().__init__(self.message)


class NotFoundError(ServiceError):
    pass


class ForbiddenError(ServiceError):
    pass


class ConflictError(ServiceError):
    pass


class ValidationError(ServiceError):
    def __init__(
        self,
        errors: list[FieldError],
        message: str = "Validation failed",
        code: str = "VALIDATION_FAILED",
    ) -> None:
        self.errors = list(errors)
        super().__init__(code, message)


class StorageUnavailableError(ServiceError):
    pass
