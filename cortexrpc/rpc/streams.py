"""Typed publish/subscribe for subscription push frames."""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Callable

from loguru import logger

from cortexrpc.rpc.protocol import RESERVED_STREAM_KEYS, SESSION_KEY, TIMESTAMP_KEY, StreamEvent

StreamListener = Callable[[StreamEvent], Any]


class StreamRouter:
    """Routes push frames to listeners keyed by exact stream name.

    Listeners may be registered before or after the server-side subscription;
    data for a stream nobody listens to is logged and dropped.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[StreamListener]] = {}
        self._tasks: set[asyncio.Task] = set()

    def subscribe(self, stream: str, listener: StreamListener) -> Callable[[], bool]:
        """Add a listener; returns a callable that removes it again."""
        self._listeners.setdefault(stream, []).append(listener)
        return lambda: self.unsubscribe(stream, listener)

    def unsubscribe(self, stream: str, listener: StreamListener) -> bool:
        listeners = self._listeners.get(stream)
        if not listeners or listener not in listeners:
            return False
        listeners.remove(listener)
        if not listeners:
            del self._listeners[stream]
        return True

    def listeners(self, stream: str) -> list[StreamListener]:
        return list(self._listeners.get(stream, ()))

    def streams(self) -> list[str]:
        return list(self._listeners)

    @staticmethod
    def stream_keys(frame: dict[str, Any]) -> list[str]:
        """Keys of a push frame that carry stream data (list values)."""
        return [k for k, v in frame.items() if k not in RESERVED_STREAM_KEYS and isinstance(v, list)]

    def route(self, frame: dict[str, Any]) -> list[str]:
        """Emit one event per stream key of ``frame``; returns the emitted names."""
        if SESSION_KEY not in frame:
            logger.info(f"rpc: Unrecognised data {frame!r}")
            return []
        emitted: list[str] = []
        for stream in self.stream_keys(frame):
            event = StreamEvent(
                stream=stream,
                payload=frame,
                session_id=str(frame.get(SESSION_KEY) or ""),
                timestamp=frame.get(TIMESTAMP_KEY),
            )
            if not self._emit(event):
                logger.warning(f"rpc: No listeners for stream event {stream}")
                continue
            emitted.append(stream)
        return emitted

    def _emit(self, event: StreamEvent) -> bool:
        listeners = self.listeners(event.stream)
        for listener in listeners:
            try:
                result = listener(event)
            except Exception:
                logger.exception(f"rpc: Listener for {event.stream} raised")
                continue
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._tasks.add(task)
                task.add_done_callback(self._on_task_done)
        return bool(listeners)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.opt(exception=task.exception()).error("rpc: Async stream listener failed")
