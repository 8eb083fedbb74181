from __future__ import annotations

import json
import os
import logging

import redis

from .schema import EventEnvelope
from .metrics import get_events_total, get_event_stream_errors_total


STREAM_EVENTS = os.getenv("EVENTS_STREAM", "rebasevault.events")
STREAM_DLQ = os.getenv("EVENTS_DLQ", "rebasevault.dlq")
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")

log = logging.getLogger("rebasevault.events")


def _stream_enabled() -> bool:
    return os.getenv("EVENTS_REDIS_ENABLED", "1") == "1"


def _get_redis():
    return redis.Redis.from_url(REDIS_URL, decode_responses=True, socket_connect_timeout=0.5)


def encode(env: EventEnvelope) -> str:
    """Single-line JSON form of an envelope, as stored in the stream and logs."""
    return json.dumps({
        "schema_version": env.schema_version,
        "correlation_id": env.correlation_id,
        "sequence": env.sequence,
        "event": env.event.model_dump(),
    }, separators=(",", ":"))


def publish(env: EventEnvelope) -> None:
    """Publish an event to Redis Streams and log a single-line JSON.

    Best-effort: a missing or unreachable Redis never fails the ledger
    operation that produced the event.
    """
    try:
        get_events_total().labels(env.event.event_type).inc()
    except Exception:
        pass

    line = encode(env)
    if _stream_enabled():
        try:
            r = _get_redis()
            r.xadd(STREAM_EVENTS, {"json": line})
        except Exception:
            get_event_stream_errors_total().labels(STREAM_EVENTS).inc()
            try:
                r = _get_redis()
                r.xadd(STREAM_DLQ, {"json": line})
            except Exception:
                pass
    try:
        log.info(line)
    except Exception:
        pass


def ensure_group(group: str) -> None:
    try:
        r = _get_redis()
        r.xgroup_create(name=STREAM_EVENTS, groupname=group, id="$", mkstream=True)
    except Exception as e:
        if "BUSYGROUP" in str(e):
            return
        raise


def consume(group: str, consumer: str, block_ms: int = 15000):
    """Generator yielding (id, json_str) from the Redis Stream consumer group.

    Yields None when the block timeout elapses. Caller is responsible for XACK.
    """
    r = _get_redis()
    ensure_group(group)
    while True:
        resp = r.xreadgroup(group, consumer, {STREAM_EVENTS: ">"}, count=100, block=block_ms)
        if not resp:
            yield None
            continue
        for _stream, entries in resp:
            for msg_id, fields in entries:
                yield (msg_id, fields.get("json", ""))
