"""
Core Exceptions
================

Custom exceptions for the application following clean architecture principles.

These exceptions define domain-specific errors that can be caught and handled
appropriately at the application boundaries.
"""

from typing import Optional, Any


class ApplicationException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """Base exception for domain logic violations."""


class RepositoryException(ApplicationException):
    """Base exception for repository/data access errors."""


class PersistenceException(RepositoryException):
    """
    Raised when a transaction or storage operation fails.

    Nothing from the enclosing unit of work is committed.
    """


class ValidationException(ApplicationException):
    """Exception for validation errors."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.field = field
        if field and details is None:
            details = {"field": field}
        super().__init__(message, details)


class ResourceNotFoundException(ApplicationException):
    """Exception when a requested resource is not found."""

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type}"
        if resource_id:
            message += f" with id '{resource_id}'"
        message += " not found"
        super().__init__(message, details)


class InvalidTransitionException(DomainException):
    """Exception raised when a ticket status transition is not permitted."""

    def __init__(
        self,
        current_status: Any,
        attempted_status: Any,
        reason: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.current_status = getattr(current_status, "value", current_status)
        self.attempted_status = getattr(attempted_status, "value", attempted_status)
        self.reason = reason or (
            f"Transition from {self.current_status} to {self.attempted_status} is not permitted"
        )
        super().__init__(
            self.reason,
            details or {
                "current_status": self.current_status,
                "attempted_status": self.attempted_status,
            }
        )


class DurationComputationException(ApplicationException):
    """
    Raised when the time spent in a previous status cannot be computed.

    Always recovered inside the history recorder.
    """


class ConfigurationException(ApplicationException):
    """Exception for configuration errors."""


class ExternalServiceException(ApplicationException):
    """Base exception for external service failures."""

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.service_name = service_name
        super().__init__(f"{service_name}: {message}", details)
