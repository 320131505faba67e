"""
Core Module
============

Shared core utilities and abstractions used across the application.

This module contains framework-agnostic code that defines the fundamental
building blocks of the system.
"""

from src.core.clock import Clock, utc_now, ensure_utc
from src.core.exceptions import (
    ApplicationException,
    DomainException,
    RepositoryException,
    PersistenceException,
    ValidationException,
    ResourceNotFoundException,
    InvalidTransitionException,
    DurationComputationException,
    ConfigurationException,
    ExternalServiceException,
)

__all__ = [
    "Clock",
    "utc_now",
    "ensure_utc",
    "ApplicationException",
    "DomainException",
    "RepositoryException",
    "PersistenceException",
    "ValidationException",
    "ResourceNotFoundException",
    "InvalidTransitionException",
    "DurationComputationException",
    "ConfigurationException",
    "ExternalServiceException",
]
