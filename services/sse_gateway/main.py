from __future__ import annotations

import os
import json
from typing import AsyncGenerator, Optional, List
from fastapi import FastAPI, Request
from fastapi.responses import StreamingResponse
import redis.asyncio as aioredis

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
STREAM = os.getenv("EVENTS_STREAM", "rebasevault.events")
GROUP = os.getenv("SSE_GROUP", "sse_gateway")

app = FastAPI(title="Rebasevault SSE Gateway")


async def ensure_group(r):
    try:
        await r.xgroup_create(name=STREAM, groupname=GROUP, id="$", mkstream=True)
    except Exception as e:
        if "BUSYGROUP" in str(e):
            return
        raise


def _touches(ev: dict) -> set:
    return {a for a in (ev.get("account"), ev.get("sender"), ev.get("recipient")) if a}


def match_filters(js: str, types: Optional[List[str]], accounts: Optional[List[str]]) -> bool:
    """Keep an event if it has one of `types` and touches one of `accounts`."""
    try:
        ev = json.loads(js).get("event", {})
    except (ValueError, AttributeError):
        return False
    ok_t = True if not types else ev.get("event_type") in types
    ok_a = True if not accounts else bool(_touches(ev) & set(accounts))
    return ok_t and ok_a


async def event_stream(types: Optional[List[str]], accounts: Optional[List[str]]) -> AsyncGenerator[bytes, None]:
    r = aioredis.from_url(REDIS_URL, decode_responses=True)
    await ensure_group(r)
    consumer = os.getenv("SSE_CONSUMER", os.uname().nodename)
    try:
        while True:
            resp = await r.xreadgroup(GROUP, consumer, {STREAM: ">"}, count=100, block=15000)
            if resp:
                for _stream, entries in resp:
                    for msg_id, fields in entries:
                        js = fields.get("json", "")
                        if match_filters(js, types, accounts):
                            yield f"event: event\ndata: {js}\n\n".encode()
                        await r.xack(STREAM, GROUP, msg_id)
            else:
                yield b": keep-alive\n\n"
    finally:
        await r.aclose()


@app.get("/events")
async def sse(request: Request, types: Optional[str] = None, accounts: Optional[str] = None):
    ty = types.split(",") if types else None
    ac = accounts.split(",") if accounts else None
    return StreamingResponse(event_stream(ty, ac), media_type="text/event-stream")
