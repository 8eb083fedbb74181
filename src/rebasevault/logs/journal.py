from __future__ import annotations

import json
import os
from typing import Any, Dict, List

from ..metrics.ledger import _safe_counter


def _get_append_counters():
    app = _safe_counter("journal_appends_total", "Operation records appended", ["operation"])
    err = _safe_counter("journal_errors_total", "Operation journal errors", ["reason", "operation"])
    return app, err


REQUIRED_KEYS = {
    "ts", "operation", "caller", "account", "amount",
    "balance_after", "principal_after", "personal_rate", "reserve_after", "outcome",
}


def validate_record(rec: Dict[str, Any]) -> List[str]:
    return sorted(k for k in REQUIRED_KEYS if k not in rec)


def append_jsonl(path: str, rec: Dict[str, Any]) -> bool:
    """Append one operation record as a JSON line; return False if dropped.

    Amounts are written as strings so uint256 values survive JSON readers
    that parse numbers as doubles.
    """
    operation = str(rec.get("operation", "unknown"))
    app, err = _get_append_counters()
    missing = validate_record(rec)
    if missing:
        err.labels("missing_fields", operation).inc()
        return False
    out = {k: (str(v) if isinstance(v, int) and not isinstance(v, bool) and k != "ts" else v) for k, v in rec.items()}
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    try:
        with open(path, "a", encoding="utf-8") as f:
            f.write(json.dumps(out, ensure_ascii=False) + "\n")
        app.labels(operation).inc()
        return True
    except OSError:
        err.labels("io_error", operation).inc()
        return False
