"""
Custom exception classes for the backlog buddy tool.
"""

from __future__ import annotations


class BuddyError(Exception):
    """Base exception for backlog buddy errors."""


class FetchError(BuddyError):
    """Raised when the work item snapshot cannot be read from the repository."""


class RepositoryError(BuddyError):
    """Raised when creating, linking or updating a work item fails."""


class ConfigurationError(BuddyError):
    """Raised when the target or its credentials are invalid."""
