"""Common helper functions for the service layer."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime


def coerce_uuid(value):
    """Convert value to UUID, returning None if value is None."""
    if value is None:
        return None
    if isinstance(value, uuid.UUID):
        return value
    return uuid.UUID(str(value))


def utcnow() -> datetime:
    return datetime.now(UTC)


def apply_pagination(query, limit: int, offset: int):
    """Apply pagination to a query."""
    return query.limit(limit).offset(offset)
