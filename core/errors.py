"""
Shared error types for core services.
"""

from enum import Enum


class ErrorKind(str, Enum):
    not_found = "NotFound"
    invalid_argument = "InvalidArgument"
    invalid_operation = "InvalidOperation"
    collaborator_unavailable = "CollaboratorUnavailable"
    internal = "Internal"


class GatewayError(Exception):
    """Base for every failure the gateway reports as ``{message, kind}``."""

    kind = ErrorKind.internal

    def __init__(self, message: str, data: dict | None = None):
        super().__init__(message)
        self.message = message
        self.data = data

    def to_payload(self) -> dict:
        return {"message": self.message, "kind": self.kind.value}


class NotFound(GatewayError):
    kind = ErrorKind.not_found


class ValidationIssue(GatewayError, ValueError):
    kind = ErrorKind.invalid_argument

    def __init__(
        self,
        message: str,
        field: str = "unknown",
        error_type: str = "invalid",
        data: dict | None = None,
    ):
        super().__init__(message, data=data)
        self.field = field
        self.error_type = error_type


class InvalidOperation(GatewayError):
    kind = ErrorKind.invalid_operation


class CollaboratorUnavailable(GatewayError, RuntimeError):
    """Raised when the shared store or durable store call itself failed."""

    kind = ErrorKind.collaborator_unavailable


class StoreNotReady(RuntimeError):
    """Raised by a store whose collections have not been initialized."""


class DurableStoreError(RuntimeError):
    """Raised when the durable store rejects a read or write."""
