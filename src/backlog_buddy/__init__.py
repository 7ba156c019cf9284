"""
Backlog Buddy

Audits the hygiene of a work item backlog, consolidates Release Train marker
items under one aggregate parent per train, and keeps the SWAG estimates of
those parents in sync with their members.
"""

from __future__ import annotations

from .cli import main
from .exceptions import BuddyError, ConfigurationError, FetchError, RepositoryError
from .models import (
    AggregateParent,
    EstimateValidationResult,
    GroupFailure,
    HygieneCheckResult,
    HygieneCheckSummary,
    OperationType,
    ReleaseTrainOperation,
    ReleaseTrainSummary,
    Severity,
    WorkItem,
)
from .orchestrator import run_hygiene, run_release_trains, run_swag_updates, validate_item
from .protocols import WorkItemRepository
from .utils import setup_logging

# Package version
__version__ = "0.1.0"

# Public API
__all__ = [
    "AggregateParent",
    "BuddyError",
    "ConfigurationError",
    "EstimateValidationResult",
    "FetchError",
    "GroupFailure",
    "HygieneCheckResult",
    "HygieneCheckSummary",
    "OperationType",
    "ReleaseTrainOperation",
    "ReleaseTrainSummary",
    "RepositoryError",
    "Severity",
    "WorkItem",
    "WorkItemRepository",
    "main",
    "run_hygiene",
    "run_release_trains",
    "run_swag_updates",
    "setup_logging",
    "validate_item",
]
