"""Error taxonomy shared by the runtime adapter, compose loader and tools."""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    CONNECTION_FAILED = "connection_failed"
    NOT_FOUND = "not_found"
    PARSE_ERROR = "parse_error"
    PERMISSION_DENIED = "permission_denied"
    INTERNAL_ERROR = "internal_error"


class TriageError(Exception):
    """Failure with a closed error kind, propagated unchanged to the caller."""

    def __init__(self, kind: ErrorKind, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(f"[{kind.value}] {message}")
        self.kind = kind
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"code": self.kind.value, "message": self.message}
        if self.details:
            d["details"] = self.details
        return d

    def __repr__(self) -> str:
        return f"TriageError({self.kind.value!r}, {self.message!r})"
