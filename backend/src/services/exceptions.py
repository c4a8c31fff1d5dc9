"""
Custom exceptions for service layer.

Provides specific exception types for business logic errors
that can be translated to appropriate HTTP responses.
"""

from typing import Any, Optional


class ServiceError(Exception):
    """Base exception for service layer errors."""
    pass


class NotFoundError(ServiceError):
    """Raised when a requested resource is not found."""

    def __init__(self, resource: str, identifier: Any):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} {identifier} not found")


class ConflictError(ServiceError):
    """Raised when an operation conflicts with existing state."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(ServiceError):
    """Raised when input validation fails."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.message = message
        self.field = field
        super().__init__(message)


class UnauthorizedError(ServiceError):
    """Raised when a credential is required but none was presented."""

    def __init__(self, message: str = "API key required for private release"):
        self.message = message
        super().__init__(message)


class ForbiddenError(ServiceError):
    """Raised when a presented credential is invalid or expired."""

    def __init__(self, message: str = "Invalid or expired API key"):
        self.message = message
        super().__init__(message)


class StorageError(ServiceError):
    """Raised when object storage cannot complete an operation."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        self.message = message
        super().__init__(f"Storage {operation} failed: {message}")
