# hubrecords/records/lifecycle.py
"""
Status lifecycle of a hub record.

Physical goods move along

    Pending -> In-Transit -> Received -> Verified -> Sold

while session/course records (category "Internet") start out Active and end
Completed. Any record that has not reached an end state can be marked
Damaged. Sold, Damaged and Completed are terminal.

By default the graph is advisory: any authorized writer may set any status
at any time. With STRICT_STATUS_TRANSITIONS enabled, ``check_transition``
rejects moves that are not edges of the graph.

Whatever the mode, every status change appends an entry to the record's
timeline. The timeline is append-only: entries are never edited or removed,
and entries with an empty step are discarded before they are stored.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from hubrecords.errors import ValidationError


class RecordStatus(str, Enum):
    PENDING = "Pending"
    IN_TRANSIT = "In-Transit"
    RECEIVED = "Received"
    VERIFIED = "Verified"
    SOLD = "Sold"
    DAMAGED = "Damaged"
    ACTIVE = "Active"
    COMPLETED = "Completed"


class ProductCategory(str, Enum):
    ELECTRONICS = "Electronics"
    CONSUMER_GOODS = "Consumer Goods"
    INDUSTRIAL = "Industrial"
    OTHER = "Other"
    STUDENT = "Student"
    INTERNET = "Internet"


VALID_STATUSES = {s.value for s in RecordStatus}
VALID_CATEGORIES = {c.value for c in ProductCategory}
DEFAULT_CATEGORY = ProductCategory.OTHER.value

TERMINAL_STATUSES = {
    RecordStatus.SOLD.value,
    RecordStatus.DAMAGED.value,
    RecordStatus.COMPLETED.value,
}

CANONICAL_TRANSITIONS = {
    RecordStatus.PENDING.value: {RecordStatus.IN_TRANSIT.value, RecordStatus.DAMAGED.value},
    RecordStatus.IN_TRANSIT.value: {RecordStatus.RECEIVED.value, RecordStatus.DAMAGED.value},
    RecordStatus.RECEIVED.value: {RecordStatus.VERIFIED.value, RecordStatus.DAMAGED.value},
    RecordStatus.VERIFIED.value: {RecordStatus.SOLD.value, RecordStatus.DAMAGED.value},
    RecordStatus.ACTIVE.value: {RecordStatus.COMPLETED.value, RecordStatus.DAMAGED.value},
    RecordStatus.SOLD.value: set(),
    RecordStatus.DAMAGED.value: set(),
    RecordStatus.COMPLETED.value: set(),
}

TIMELINE_KEYS = ("step", "date", "note", "status")


class LifecycleError(ValidationError):
    """Raised when a status change is not allowed under strict transitions."""
    pass


def initial_status(category: str | None) -> str:
    """Starting status for a new record; category "Internet" starts Active."""
    if category == ProductCategory.INTERNET.value:
        return RecordStatus.ACTIVE.value
    return RecordStatus.PENDING.value


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


def can_transition(current: str, new: str) -> bool:
    if current == new:
        return True
    return new in CANONICAL_TRANSITIONS.get(current, set())


def check_transition(current: str, new: str, strict: bool = False) -> None:
    """
    Validate a status change.

    Raises:
        LifecycleError: if ``new`` is not a known status, or if ``strict`` is
            set and the move is not an edge of the canonical graph.
    """
    if new not in VALID_STATUSES:
        raise LifecycleError(
            f"Invalid status '{new}'. Must be one of: {', '.join(sorted(VALID_STATUSES))}",
            errors={"status": "invalid"},
        )
    if strict and is_terminal(current) and current != new:
        raise LifecycleError(
            f"Record is already '{current}' and cannot change status",
            errors={"status": "record is closed"},
        )
    if strict and not can_transition(current, new):
        raise LifecycleError(
            f"Cannot move record from '{current}' to '{new}'",
            errors={"status": "transition not allowed"},
        )


def today() -> str:
    return datetime.now(timezone.utc).date().isoformat()


def timeline_entry(step: str, date: str | None = None, note: str = "", status: str = "") -> dict:
    return {
        "step": step,
        "date": date or today(),
        "note": note or "",
        "status": status or "",
    }


def status_change_entry(old_status: str, new_status: str, note: str | None = None,
                        date: str | None = None) -> dict:
    """Timeline entry recording a move from ``old_status`` to ``new_status``."""
    return timeline_entry(
        step=new_status,
        date=date,
        note=note or f"Status changed from {old_status} to {new_status}",
        status=new_status,
    )


def clean_timeline(entries) -> list:
    """Drop entries whose step is empty."""
    return [entry for entry in entries or [] if (entry.get("step") or "").strip()]


def merge_timeline(existing, incoming) -> list:
    """
    Append ``incoming`` entries to ``existing`` without removing anything.

    Clients often resend the full timeline on edit, so entries already
    present are not appended a second time.
    """
    merged = list(existing or [])
    for entry in clean_timeline(incoming):
        if entry not in merged:
            merged.append(entry)
    return merged
