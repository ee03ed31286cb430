"""WebSocket transport owned by one Cortex client."""

from __future__ import annotations

import asyncio
import ssl
from enum import Enum
from typing import Any, Awaitable, Callable

import websockets
from loguru import logger
from websockets.exceptions import ConnectionClosed

from cortexrpc.utils.exceptions import ConnectionClosedError, TransportError

FrameHandler = Callable[[Any], None]
CloseListener = Callable[[ConnectionClosedError], None]
Connector = Callable[..., Awaitable[Any]]


class ConnectionState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


def build_ssl_context(verify_tls: bool) -> ssl.SSLContext:
    """TLS context for wss:// URLs; verification can be disabled per connection."""
    ctx = ssl.create_default_context()
    if not verify_tls:
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE
    return ctx


class Connection:
    """Single WebSocket with a reader task, a writer queue and close notification.

    ``send`` is synchronous: it either enqueues the frame or raises, so a closed
    socket never drops a frame silently.
    """

    def __init__(
        self,
        url: str,
        *,
        verify_tls: bool = True,
        connector: Connector | None = None,
    ):
        self.url = url
        self.verify_tls = verify_tls
        self._connector = connector or websockets.connect
        self._ws: Any = None
        self._state = ConnectionState.IDLE
        self._outbox: asyncio.Queue[str] | None = None
        self._reader_task: asyncio.Task | None = None
        self._writer_task: asyncio.Task | None = None
        self._frame_handler: FrameHandler | None = None
        self._close_listeners: list[CloseListener] = []
        self._close_error: ConnectionClosedError | None = None
        self._closed = asyncio.Event()

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state is ConnectionState.OPEN

    @property
    def close_error(self) -> ConnectionClosedError | None:
        return self._close_error

    def on_frame(self, handler: FrameHandler) -> None:
        """Register the frame-received callback (replaces any previous one)."""
        self._frame_handler = handler

    def on_close(self, listener: CloseListener) -> None:
        """Register a listener called once with the terminal close error."""
        if self._close_error is not None:
            listener(self._close_error)
            return
        self._close_listeners.append(listener)

    def _connect_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {}
        if self.url.startswith("wss://") and not self.verify_tls:
            kwargs["ssl"] = build_ssl_context(False)
        return kwargs

    async def open(self) -> None:
        if self._state is ConnectionState.OPEN:
            return
        if self._state is ConnectionState.CLOSED:
            raise self._close_error or ConnectionClosedError()
        if self._state is ConnectionState.CONNECTING:
            raise TransportError("connection is already opening", code="ALREADY_CONNECTING")

        self._state = ConnectionState.CONNECTING
        logger.info(f"ws: Connecting to {self.url}")
        try:
            self._ws = await self._connector(self.url, **self._connect_kwargs())
        except Exception as exc:
            self._mark_closed(f"connect failed: {exc}")
            raise TransportError(f"failed to connect to {self.url}: {exc}", code="CONNECT_FAILED") from exc

        if self._state is ConnectionState.CLOSED:
            # close() won the race; nobody else owns this socket.
            ws, self._ws = self._ws, None
            try:
                await ws.close()
            except Exception as exc:
                logger.debug(f"ws: close of late socket raised {exc!r}")
            raise self._close_error or ConnectionClosedError()

        self._state = ConnectionState.OPEN
        self._outbox = asyncio.Queue()
        self._reader_task = asyncio.create_task(self._read_loop())
        self._writer_task = asyncio.create_task(self._write_loop())
        logger.info("ws: Socket opened")

    def send(self, frame: str) -> None:
        if self._state is ConnectionState.CLOSED:
            raise self._close_error or ConnectionClosedError()
        if self._state is not ConnectionState.OPEN or self._outbox is None:
            raise TransportError("connection is not open", code="NOT_OPEN")
        self._outbox.put_nowait(frame)

    async def close(self) -> None:
        """Close the socket and return once the reader and writer have stopped."""
        self._mark_closed("closed by client")
        current = asyncio.current_task()
        if self._writer_task is not None and self._writer_task is not current:
            self._writer_task.cancel()
        if self._ws is not None:
            try:
                await self._ws.close()
            except Exception as exc:
                logger.debug(f"ws: close raised {exc!r}")
        tasks = [t for t in (self._reader_task, self._writer_task) if t is not None and t is not current]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def wait_closed(self) -> None:
        await self._closed.wait()

    async def _read_loop(self) -> None:
        reason = "socket closed"
        try:
            async for raw in self._ws:
                self._deliver(raw)
        except ConnectionClosed as exc:
            reason = f"socket closed ({exc})"
        except asyncio.CancelledError:
            reason = "reader cancelled"
            raise
        except Exception as exc:
            logger.error(f"ws: reader failed: {exc}")
            reason = f"reader failed: {exc}"
        finally:
            self._mark_closed(reason)
            if self._writer_task is not None and not self._writer_task.done():
                self._writer_task.cancel()

    def _deliver(self, raw: Any) -> None:
        if self._frame_handler is None:
            logger.debug("ws: no frame handler, dropping frame")
            return
        try:
            self._frame_handler(raw)
        except Exception:
            logger.exception("ws: frame handler raised")

    async def _write_loop(self) -> None:
        assert self._outbox is not None
        while True:
            frame = await self._outbox.get()
            try:
                await self._ws.send(frame)
            except Exception as exc:
                logger.error(f"ws: send failed: {exc}")
                self._mark_closed(f"send failed: {exc}")
                try:
                    await self._ws.close()
                except Exception as close_exc:
                    logger.debug(f"ws: close after send failure raised {close_exc!r}")
                return

    def _mark_closed(self, reason: str) -> None:
        if self._state is ConnectionState.CLOSED:
            return
        self._state = ConnectionState.CLOSED
        self._close_error = ConnectionClosedError(reason)
        logger.info(f"ws: Socket closed ({reason})")
        listeners, self._close_listeners = self._close_listeners, []
        for listener in listeners:
            try:
                listener(self._close_error)
            except Exception:
                logger.exception("ws: close listener raised")
        self._closed.set()
