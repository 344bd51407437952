"""Self-describing JSON envelope for cache records.

Stored form::

    {"kind": "draft", "version": 1, "data": {...}}

``decode_record`` returns None for anything it cannot vouch for (bad JSON,
wrong kind, unknown version, non-object payload), so a corrupt record is
indistinguishable from an absent one.
"""

import json
import logging
from typing import Any

logger = logging.getLogger(__name__)

RECORD_VERSION = 1


def encode_record(kind: str, data: Any) -> str:
    """Serialize ``data`` inside an envelope tagged with ``kind``.

    Raises:
        TypeError, ValueError: ``data`` is not JSON-serializable
    """
    return json.dumps(
        {"kind": kind, "version": RECORD_VERSION, "data": data},
        ensure_ascii=False,
    )


def decode_record(kind: str, raw: str | None) -> Any | None:
    """Return the payload of a ``kind`` envelope, or None."""
    if raw is None:
        return None

    try:
        envelope = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        logger.warning(f"Discarding corrupt {kind} record: {e}")
        return None

    if not isinstance(envelope, dict):
        logger.warning(f"Discarding {kind} record: not an object")
        return None
    if envelope.get("kind") != kind:
        logger.warning(f"Discarding record: expected kind {kind!r}, got {envelope.get('kind')!r}")
        return None
    if envelope.get("version") != RECORD_VERSION:
        logger.warning(f"Discarding {kind} record with version {envelope.get('version')!r}")
        return None

    return envelope.get("data")
