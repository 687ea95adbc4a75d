import secrets
import string
import time
from datetime import datetime
from typing import Any, Optional

from bson import ObjectId
from bson.errors import InvalidId

ORDER_ID_PREFIX = "ORD"
_ORDER_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits


def to_object_id(value: Any) -> Optional[ObjectId]:
    """Convert a string to ObjectId, or None if it is not a valid id."""
    if isinstance(value, ObjectId):
        return value
    if value is None:
        return None
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def id_filter(value: Any) -> dict:
    """Build an ``_id`` filter that also matches non-ObjectId string ids."""
    object_id = to_object_id(value)
    return {"_id": object_id if object_id is not None else value}


def _stringify_ids(value: Any) -> Any:
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return {key: _stringify_ids(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_stringify_ids(item) for item in value]
    return value


def format_document(document: dict) -> dict:
    """Format MongoDB document for API response."""
    if not document:
        return document
    document = _stringify_ids(document)
    if "_id" in document:
        document["id"] = document.pop("_id")
    return document


def get_current_timestamp() -> datetime:
    """Get current UTC timestamp."""
    return datetime.utcnow()


def generate_order_id() -> str:
    """
    Generate a human readable order id.

    Format: ``ORD`` + last 8 digits of the epoch milliseconds + 4 random
    uppercase alphanumerics, e.g. ``ORD53421987K2QZ``.
    """
    timestamp = str(int(time.time() * 1000))[-8:]
    suffix = "".join(secrets.choice(_ORDER_SUFFIX_ALPHABET) for _ in range(4))
    return f"{ORDER_ID_PREFIX}{timestamp}{suffix}"
