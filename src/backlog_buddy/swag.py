"""SWAG estimate extraction, formatting and validation.

A SWAG can be recorded in two places on the same work item: the structured
estimate field and a ``[SWAG: <number>]`` token at the very start of the
status notes. The structured field always wins when both are present.
"""

from __future__ import annotations

import logging
import re
from typing import Final

from .models import FEATURE, EstimateValidationResult, Severity, WorkItem

logger: logging.Logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE: Final[float] = 0.1

_PREFIX_PATTERN: Final[re.Pattern[str]] = re.compile(r"^\[\s*SWAG:\s*(\d+(?:\.\d+)?)\s*\]")


def _require_item(item: WorkItem | None) -> WorkItem:
    if item is None:
        msg = "A work item is required"
        raise ValueError(msg)
    return item


def notes_value(status_notes: str | None) -> float | None:
    """Parse the SWAG token at the start of status notes, ignoring malformed tokens."""
    if not status_notes:
        return None

    match = _PREFIX_PATTERN.match(status_notes)
    if not match:
        return None
    try:
        return float(match.group(1))
    except ValueError:
        return None


def extract_value(item: WorkItem) -> float | None:
    """Return the item's SWAG, preferring the structured field over the notes token."""
    item = _require_item(item)

    if item.swag is not None:
        logger.debug(f"SWAG extracted from field for work item #{item.id}: {item.swag}")
        return item.swag

    value = notes_value(item.status_notes)
    if value is not None:
        logger.debug(f"SWAG extracted from status notes for work item #{item.id}: {value}")
    else:
        logger.debug(f"No SWAG value found for work item #{item.id}")
    return value


def format_value(value: float) -> str:
    """Format a SWAG with no decimals when whole, otherwise with one decimal.

    Examples:
        3.0 -> "3", 3.5 -> "3.5"
    """
    if value % 1 == 0:
        return f"{value:.0f}"
    return f"{value:.1f}"


def strip_prefix(notes: str | None) -> str:
    """Remove a leading SWAG token and the whitespace after it.

    Notes without a token are returned unchanged; None is treated as "".
    """
    if not notes:
        return notes or ""

    match = _PREFIX_PATTERN.match(notes)
    if not match:
        return notes
    return notes[match.end() :].lstrip()


def build_prefixed_notes(value: float, existing_notes: str | None) -> str:
    """Replace (or add) the SWAG token at the start of the status notes."""
    remainder = strip_prefix(existing_notes)
    token = f"[SWAG: {format_value(value)}]"
    return f"{token} {remainder}" if remainder else token


def reconcile_values(
    field_value: float | None,
    notes_value: float | None,
    *,
    tolerance: float = DEFAULT_TOLERANCE,
    estimate_required: bool = False,
) -> EstimateValidationResult:
    """Compare the two SWAG sources and describe any disagreement.

    Args:
        field_value: Value of the structured estimate field
        notes_value: Value parsed from the status notes token
        tolerance: Largest difference still considered equal
        estimate_required: Whether a missing estimate is a finding

    Returns:
        EstimateValidationResult; is_consistent is False only when both values
        exist and differ by more than tolerance
    """
    result = EstimateValidationResult(field_value=field_value, notes_value=notes_value)

    if field_value is not None and notes_value is not None:
        if abs(field_value - notes_value) > tolerance:
            result.is_consistent = False
            result.severity = Severity.WARNING
            result.issues.append(
                f"values disagree: SWAG field ({format_value(field_value)}) "
                f"differs from status notes ({format_value(notes_value)})"
            )
    elif field_value is not None:
        result.severity = Severity.INFO
        result.issues.append("field set but note marker missing")
    elif notes_value is not None:
        result.severity = Severity.WARNING
        result.issues.append("note marker present but field empty")
    elif estimate_required:
        result.severity = Severity.WARNING
        result.issues.append("missing estimate on active feature")

    return result


def validate(item: WorkItem) -> EstimateValidationResult:
    """Check that the SWAG field and the status notes token agree."""
    item = _require_item(item)
    return reconcile_values(
        item.swag,
        notes_value(item.status_notes),
        estimate_required=item.work_item_type == FEATURE and item.is_open,
    )


def is_update_needed(current: float | None, calculated: float, tolerance: float = DEFAULT_TOLERANCE) -> bool:
    """Return True when current is unset or further than tolerance from calculated."""
    if current is None:
        logger.debug(f"SWAG update needed: no current value, calculated: {calculated}")
        return True

    difference = abs(current - calculated)
    update_needed = difference > tolerance
    logger.debug(
        f"SWAG update {'needed' if update_needed else 'not needed'}: "
        f"current {current}, calculated {calculated}, difference {difference}"
    )
    return update_needed
