#!/usr/bin/env python3
"""
WebSocket server streaming decoded RuuviTag readings to browser clients.

Each client receives the latest reading of every known tag on connect,
then one JSON message per update:
  {"id": "...", "address": "...", "local_name": ..., "t_unix_ns": ..., "reading": {...}}
"""

import argparse
import asyncio
import json
import logging
import time
from typing import Any, Dict, Optional, Set

import websockets

from ruuvi_scanner import RuuviScanner, RuuviTag

PORT = 8765
CLIENT_QUEUE_SIZE = 256


def _reading_to_message(tag: RuuviTag, reading: Dict[str, Any], t_unix_ns: Optional[int] = None) -> str:
    return json.dumps(
        {
            "id": tag.id,
            "address": tag.address,
            "local_name": tag.local_name,
            "t_unix_ns": time.time_ns() if t_unix_ns is None else t_unix_ns,
            "reading": reading,
        }
    )


class ReadingHub:
    """Fan-out of scanner updates to connected clients."""

    def __init__(self, queue_size: int = CLIENT_QUEUE_SIZE):
        self.queue_size = queue_size
        self.latest: Dict[str, str] = {}
        self._clients: Set[asyncio.Queue] = set()

        # stats
        self.dropped = 0

    def register(self) -> asyncio.Queue:
        q: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        for msg in list(self.latest.values())[-self.queue_size:]:
            q.put_nowait(msg)
        self._clients.add(q)
        return q

    def unregister(self, q: asyncio.Queue) -> None:
        self._clients.discard(q)

    @property
    def client_count(self) -> int:
        return len(self._clients)

    def publish(self, tag: RuuviTag, reading: Dict[str, Any]) -> None:
        msg = _reading_to_message(tag, reading)
        self.latest[tag.address] = msg
        for q in self._clients:
            try:
                q.put_nowait(msg)
            except asyncio.QueueFull:
                self.dropped += 1


async def reading_stream(websocket, hub: ReadingHub):
    print("Client connected")
    q = hub.register()
    try:
        while True:
            msg = await q.get()
            await websocket.send(msg)
    except websockets.exceptions.ConnectionClosed:
        print("Client disconnected")
    finally:
        hub.unregister(q)


async def main():
    parser = argparse.ArgumentParser(description="WebSocket server for live RuuviTag readings.")
    parser.add_argument("--ws-port", type=int, default=PORT)
    parser.add_argument("--adapter", default="", help="Bluetooth adapter (optional, e.g. hci0)")
    parser.add_argument("--verbose", action="store_true", help="Log dropped advertisements")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(asctime)s %(name)s %(levelname)s %(message)s")

    hub = ReadingHub()

    def on_found(tag: RuuviTag) -> None:
        print(f"Found RuuviTag {tag.address}")

    scanner = RuuviScanner(on_found=on_found, on_updated=hub.publish, adapter=args.adapter or None)

    async def handler(ws):
        return await reading_stream(ws, hub)

    async with websockets.serve(handler, "0.0.0.0", args.ws_port):
        print(f"RuuviTag server running on port {args.ws_port}")
        async with scanner:
            await asyncio.Future()


if __name__ == "__main__":
    asyncio.run(main())
