"""Request/response correlation over one Connection."""

from __future__ import annotations

import asyncio
import itertools
import warnings
from typing import Any, Mapping, Protocol

from loguru import logger

from cortexrpc.rpc.protocol import PROTOCOL_VERSION, PROTOCOL_VERSION_KEY, PendingRequest, RpcRequest
from cortexrpc.rpc.serialization import decode_response, encode_request
from cortexrpc.utils.exceptions import (
    ConnectionClosedError,
    CortexError,
    UnknownCorrelationWarning,
    sanitize_error_message,
)


class FrameSink(Protocol):
    def send(self, frame: str) -> None: ...

    def on_close(self, listener: Any) -> None: ...


class RequestDispatcher:
    """Assigns ids, keeps the pending table and settles each caller exactly once."""

    def __init__(
        self,
        connection: FrameSink,
        *,
        version: str = PROTOCOL_VERSION,
        version_key: str = PROTOCOL_VERSION_KEY,
    ):
        self._connection = connection
        self._version = version
        self._version_key = version_key
        self._ids = itertools.count()
        self._pending: dict[int, PendingRequest] = {}
        self._closed: ConnectionClosedError | None = None
        connection.on_close(self.fail_all)

    @property
    def pending_ids(self) -> list[int]:
        return sorted(self._pending)

    @property
    def closed(self) -> bool:
        return self._closed is not None

    def call(self, method: str, params: Mapping[str, Any] | None = None) -> asyncio.Future:
        """Send one request; the returned future settles with its response."""
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        if self._closed is not None:
            future.set_exception(self._closed)
            return future

        req_id = next(self._ids)
        frame = encode_request(
            RpcRequest(id=req_id, method=method, params=dict(params or {})),
            version=self._version,
            version_key=self._version_key,
        )
        self._pending[req_id] = PendingRequest(id=req_id, method=method, future=future)
        try:
            self._connection.send(frame)
        except CortexError as exc:
            self._pending.pop(req_id, None)
            logger.warning(f"[{req_id}] -> {method} not sent: {exc}")
            future.set_exception(exc)
            return future

        logger.info(f"[{req_id}] -> {method}")
        logger.debug(f"ws: -> {sanitize_error_message(frame)}")
        return future

    def handle_response(self, frame: dict[str, Any]) -> bool:
        """Settle the pending request matching ``frame['id']``; False when unknown."""
        req_id = frame.get("id")
        known = isinstance(req_id, int) and not isinstance(req_id, bool)
        pending = self._pending.pop(req_id, None) if known else None
        if pending is None:
            message = f"rpc: Got response for unknown id {req_id!r}"
            logger.warning(message)
            warnings.warn(message, UnknownCorrelationWarning, stacklevel=2)
            return False
        if pending.future.done():
            return True

        try:
            result = decode_response(frame)
        except CortexError as exc:
            logger.info(f"[{req_id}] <- error ({exc.message})")
            pending.future.set_exception(exc)
        else:
            logger.info(f"[{req_id}] <- success")
            pending.future.set_result(result)
        return True

    def fail_all(self, exc: ConnectionClosedError) -> None:
        """Reject every pending request; later calls fail with the same error."""
        self._closed = exc
        pending, self._pending = self._pending, {}
        if pending:
            logger.warning(f"rpc: Rejecting {len(pending)} pending request(s): {exc.reason}")
        for entry in pending.values():
            if not entry.future.done():
                entry.future.set_exception(exc)
