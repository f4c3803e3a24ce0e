"""
Shared utility functions for TaskHub.

This module contains common utilities used across the codebase.
"""

from __future__ import annotations

import math
import re
import uuid
from datetime import datetime, timezone


ID_PATTERN = re.compile(r"^[0-9a-f]{24}$")


def generate_id() -> str:
    """
    Generate a unique resource ID.

    Returns:
        A 24 character lowercase hex string like "65f1c2a9b3d4e5f607182930"
    """
    return uuid.uuid4().hex[:24]


def is_valid_id(value: str) -> bool:
    """Check whether a string looks like a resource ID."""
    return bool(ID_PATTERN.match(value or ""))


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def days_between(start: datetime, end: datetime) -> int:
    """Whole days from start to end, rounded up (negative when end is past)."""
    seconds = (as_utc(end) - as_utc(start)).total_seconds()
    return math.ceil(seconds / 86400)
