from __future__ import annotations

from ..metrics.ledger import _safe_counter

_events_total = None
_event_stream_errors_total = None


def get_events_total():
    global _events_total
    if _events_total is None:
        _events_total = _safe_counter("events_total", "Rebasevault events published", ["type"])
    return _events_total


def get_event_stream_errors_total():
    global _event_stream_errors_total
    if _event_stream_errors_total is None:
        _event_stream_errors_total = _safe_counter(
            "event_stream_errors_total", "Events that could not be appended to the stream", ["stream"]
        )
    return _event_stream_errors_total
