"""
Core Module
============

Shared core utilities and abstractions used across the application.

This module contains framework-agnostic code that defines the fundamental
building blocks of the system.
"""

from resolveit.core.exceptions import (
    ApplicationException,
    RepositoryException,
    ValidationException,
    ResourceNotFoundException,
    ExternalServiceException,
    EmailDeliveryException,
)

__all__ = [
    "ApplicationException",
    "RepositoryException",
    "ValidationException",
    "ResourceNotFoundException",
    "ExternalServiceException",
    "EmailDeliveryException",
]
