import json
import logging
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class DatabaseError(Exception):
    """Custom exception for database operations."""
    pass


def _encode_collection(items: List[Dict[str, Any]]) -> str:
    return json.dumps(items, ensure_ascii=False)


def _decode_collection(key: str, raw: Optional[str]) -> List[Dict[str, Any]]:
    """Decode a stored collection blob.

    A missing key is an empty collection. A blob that is not a JSON list
    is treated as corrupt and raises DatabaseError.
    """
    if raw is None or raw == "":
        return []
    try:
        value = json.loads(raw)
    except ValueError as e:
        logger.error(f"Corrupt collection blob for {key}: {e}")
        raise DatabaseError(f"Collection {key} is not valid JSON: {e}") from e
    if not isinstance(value, list):
        raise DatabaseError(f"Collection {key} is not a list")
    return value
