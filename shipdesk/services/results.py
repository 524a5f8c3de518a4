from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from shipdesk.errors import BackendError, BackendTimeout


class ErrorCode:
    TIMEOUT = "TIMEOUT"
    DATABASE_ERROR = "DATABASE_ERROR"
    NOT_FOUND = "NOT_FOUND"
    INVALID_STATUS = "INVALID_STATUS"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNKNOWN = "UNKNOWN"


@dataclass(frozen=True)
class OperationResult:
    ok: bool
    message: str
    error: str | None = None
    data: Mapping[str, Any] = field(default_factory=dict)
    warnings: tuple[str, ...] = ()

    @classmethod
    def success(cls, message: str, **data: Any) -> "OperationResult":
        return cls(ok=True, message=message, data=data)

    @classmethod
    def failure(cls, message: str, error: str = ErrorCode.UNKNOWN, **data: Any) -> "OperationResult":
        return cls(ok=False, message=message, error=error, data=data)

    @classmethod
    def from_exception(cls, exc: Exception, action: str) -> "OperationResult":
        if isinstance(exc, BackendTimeout):
            return cls.failure(
                f"{action} timed out. Check your connection and try again.",
                ErrorCode.TIMEOUT,
            )
        if isinstance(exc, BackendError):
            return cls.failure(
                f"Database error: {exc.message}",
                ErrorCode.DATABASE_ERROR,
                details=exc.details,
            )
        return cls.failure(f"{action} failed: {exc}", ErrorCode.UNKNOWN)

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": self.ok, "message": self.message}
        if self.error:
            payload["error"] = self.error
        if self.warnings:
            payload["warnings"] = list(self.warnings)
        payload.update(self.data)
        return payload
