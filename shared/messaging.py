"""Marketplace domain events on a Redis Stream.

Each stream entry is a flat mapping of strings::

    event_id      uuid4 hex
    event_type    one of EVENT_TYPES
    source        publishing service name
    occurred_at   ISO-8601 UTC timestamp
    payload       JSON object
    metadata      JSON object (optional, e.g. the acting user)

Publishing never fails the request that produced the event.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional
from uuid import uuid4

import redis

logger = logging.getLogger(__name__)

CONTAINER_CREATED = "container.created"
CONTAINER_DELETED = "container.deleted"
ASSIGNMENT_CREATED = "assignment.created"
ASSIGNMENT_REVOKED = "assignment.revoked"
COMPANY_DELETED = "company.deleted"
PERMISSION_UPDATED = "permission.updated"

EVENT_TYPES = frozenset(
    {
        CONTAINER_CREATED,
        CONTAINER_DELETED,
        ASSIGNMENT_CREATED,
        ASSIGNMENT_REVOKED,
        COMPANY_DELETED,
        PERMISSION_UPDATED,
    }
)


def build_envelope(
    event_type: str,
    payload: Mapping[str, Any],
    *,
    source: str,
    metadata: Optional[Mapping[str, Any]] = None,
) -> Dict[str, str]:
    if event_type not in EVENT_TYPES:
        raise ValueError(f"Unknown event type '{event_type}'")

    envelope = {
        "event_id": uuid4().hex,
        "event_type": event_type,
        "source": source,
        "occurred_at": datetime.now(timezone.utc).isoformat(),
        "payload": json.dumps(dict(payload), default=str),
    }
    if metadata:
        envelope["metadata"] = json.dumps(dict(metadata), default=str)
    return envelope


class EventPublisher:
    def __init__(
        self,
        redis_url: str,
        stream_name: str,
        *,
        source: str = "marketplace",
        maxlen: Optional[int] = 1000,
    ) -> None:
        self.stream_name = stream_name
        self.source = source
        self._maxlen = maxlen
        self._client = redis.Redis.from_url(redis_url)

    def publish(
        self,
        event_type: str,
        payload: Mapping[str, Any],
        *,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> Optional[str]:
        """Append one event and return its ``event_id``, or None when Redis refused it."""
        envelope = build_envelope(event_type, payload, source=self.source, metadata=metadata)
        try:
            self._client.xadd(
                self.stream_name,
                envelope,
                maxlen=self._maxlen,
                approximate=self._maxlen is not None,
            )
        except redis.RedisError:
            logger.exception("Could not append %s to stream %s", event_type, self.stream_name)
            return None
        return envelope["event_id"]


def create_event_publisher(redis_url: Optional[str], stream_name: str) -> Optional[EventPublisher]:
    """A publisher for ``redis_url``, or None when events are switched off (empty URL)."""
    if not redis_url or not redis_url.strip():
        return None
    return EventPublisher(redis_url, stream_name)
