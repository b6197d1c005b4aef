from datetime import datetime, timezone

from bson import ObjectId
from bson.errors import InvalidId


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(timezone.utc)


def as_utc(dt: datetime | None) -> datetime | None:
    """None-safe UTC conversion for JSON serialization.

    Use at API response boundaries to ensure naive datetimes from MongoDB
    serialize with '+00:00' suffix. Without this, Pydantic serializes naive
    datetimes as "2026-02-23T17:30:00" (no offset), and the browser's
    Date() interprets it as local time, off by the user's UTC offset.

    Returns None as-is for optional datetime fields.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def to_object_id(value) -> ObjectId | None:
    """Parse an id coming from a document or request; None if it is not an ObjectId."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None
