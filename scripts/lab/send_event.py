#!/usr/bin/env python3
"""Publish a NAT update request and wait for the agent's terminal report."""

from __future__ import annotations

import asyncio
import json
import os
import sys
from pathlib import Path

import nats

from nat_routing.event import DONE_SUBJECT, ERROR_SUBJECT, SUBJECT, Event


class LabError(RuntimeError):
    pass


def load_event(path: Path) -> bytes:
    payload = json.loads(path.read_text())
    if not isinstance(payload, dict):
        raise LabError(f"{path} does not hold a JSON object")
    try:
        return Event.from_dict(payload).to_json()
    except ValueError as exc:
        raise LabError(f"{path}: {exc}") from exc


async def send(uri: str, data: bytes, timeout: float) -> tuple[str, bytes]:
    nc = await nats.connect(servers=[uri])
    replies: asyncio.Queue = asyncio.Queue()

    async def _collect(msg) -> None:
        await replies.put((msg.subject, msg.data))

    try:
        await nc.subscribe(DONE_SUBJECT, cb=_collect)
        await nc.subscribe(ERROR_SUBJECT, cb=_collect)
        await nc.publish(SUBJECT, data)
        await nc.flush()
        try:
            return await asyncio.wait_for(replies.get(), timeout)
        except asyncio.TimeoutError as exc:
            raise LabError(f"no reply on {DONE_SUBJECT} or {ERROR_SUBJECT} within {timeout}s") from exc
    finally:
        await nc.drain()


def main() -> None:
    if len(sys.argv) != 2:
        raise SystemExit(f"usage: {sys.argv[0]} EVENT_JSON")

    event_file = Path(sys.argv[1])
    if not event_file.exists():
        raise SystemExit(f"event definition not found: {event_file}")

    uri = os.environ.get("NATS_URI", "nats://127.0.0.1:4222")
    timeout = float(os.environ.get("REPLY_TIMEOUT", "60"))

    subject, reply = asyncio.run(send(uri, load_event(event_file), timeout))
    print(reply.decode("utf-8", errors="replace"))
    if subject == ERROR_SUBJECT:
        raise LabError("agent reported an error")

    print("nat update succeeded")


if __name__ == "__main__":
    try:
        main()
    except LabError as exc:
        print(f"[send_event] ERROR: {exc}", file=sys.stderr)
        sys.exit(1)
