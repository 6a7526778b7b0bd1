"""
Core Module
============

Framework-agnostic pieces shared by every layer. Currently the exception
taxonomy.
"""

from src.core.exceptions import (
    ApplicationException,
    DomainException,
    ValidationException,
    PermissionDeniedException,
    ConflictException,
    ResourceNotFoundException,
    ExternalServiceException,
    InboxAPIException,
    InboxAPIResponseError,
)

__all__ = [
    "ApplicationException",
    "DomainException",
    "ValidationException",
    "PermissionDeniedException",
    "ConflictException",
    "ResourceNotFoundException",
    "ExternalServiceException",
    "InboxAPIException",
    "InboxAPIResponseError",
]
