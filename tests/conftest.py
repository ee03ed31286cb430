"""Pytest fixtures: in-memory WebSocket and a scripted Cortex-like server."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Callable

import pytest

from cortexrpc.client import CortexClient
from cortexrpc.config.schema import CortexConfig
from cortexrpc.utils.exceptions import ConnectionClosedError

NO_REPLY = object()
_EOF = object()

CORTEX_API = [
    {"methodName": "getUserLogin", "params": []},
    {
        "methodName": "login",
        "params": [
            {"name": "username", "required": True},
            {"name": "password", "required": True},
            {"name": "client_id", "required": False},
            {"name": "client_secret", "required": False},
        ],
    },
    {"methodName": "logout", "params": [{"name": "username", "required": True}]},
    {
        "methodName": "authorize",
        "params": [
            {"name": "client_id", "required": False},
            {"name": "client_secret", "required": False},
            {"name": "debit", "required": False},
        ],
    },
    {"methodName": "queryHeadsets", "params": [{"name": "id", "required": False}]},
    {
        "methodName": "createSession",
        "params": [
            {"name": "_auth", "required": True},
            {"name": "status", "required": True},
            {"name": "headset", "required": False},
        ],
    },
    {
        "methodName": "subscribe",
        "params": [
            {"name": "_auth", "required": True},
            {"name": "streams", "required": True},
            {"name": "session", "required": False},
        ],
    },
    {
        "methodName": "getDetectionInfo",
        "params": [{"name": "_auth", "required": False}, {"name": "detection", "required": True}],
    },
]


class ServerError(Exception):
    def __init__(self, code: int, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


class FakeCortexServer:
    """Answers requests from a handler table; records every call in order."""

    def __init__(self, handlers: dict[str, Callable[[dict], Any]] | None = None, api: list | None = None):
        self.api = CORTEX_API if api is None else api
        self.logged_in: list[str] = []
        self.handlers: dict[str, Callable[[dict], Any]] = {
            "inspectApi": lambda params: self.api,
            "getUserLogin": lambda params: list(self.logged_in),
            "login": self._login,
            "logout": self._logout,
            "authorize": lambda params: {"_auth": "tok-1"},
            "queryHeadsets": lambda params: [{"id": "EPOC-1", "status": "connected"}],
            "createSession": lambda params: {"id": "sess-1", "status": params.get("status")},
            "subscribe": lambda params: [{"streamName": s} for s in params.get("streams", [])],
        }
        self.handlers.update(handlers or {})
        self.calls: list[tuple[str, dict]] = []

    def _login(self, params: dict) -> str:
        self.logged_in = [params["username"]]
        return "ok"

    def _logout(self, params: dict) -> str:
        self.logged_in = [u for u in self.logged_in if u != params["username"]]
        return "ok"

    @property
    def methods_called(self) -> list[str]:
        return [m for m, _ in self.calls]

    def __call__(self, msg: dict) -> list[dict]:
        method, params = msg["method"], msg.get("params") or {}
        self.calls.append((method, params))
        handler = self.handlers.get(method)
        if handler is None:
            return [{"id": msg["id"], "error": {"code": -32601, "message": "Method not found"}}]
        try:
            result = handler(params)
        except ServerError as exc:
            return [{"id": msg["id"], "error": {"code": exc.code, "message": exc.message}}]
        if result is NO_REPLY:
            return []
        return [{"id": msg["id"], "result": result}]


class FakeWebSocket:
    """Async-iterable stand-in for a websockets client connection."""

    def __init__(self, responder: Callable[[dict], list] | None = None):
        self.sent: list[dict] = []
        self.inbound: asyncio.Queue = asyncio.Queue()
        self.closed = False
        self._responder = responder

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self.inbound.get()
        if item is _EOF:
            raise StopAsyncIteration
        return item

    async def send(self, frame: str) -> None:
        if self.closed:
            raise RuntimeError("socket is closed")
        msg = json.loads(frame)
        self.sent.append(msg)
        if self._responder is not None:
            for reply in self._responder(msg):
                self.push(reply)

    def push(self, frame: dict | str) -> None:
        self.inbound.put_nowait(frame if isinstance(frame, str) else json.dumps(frame))

    def drop(self) -> None:
        """Simulate the server closing the socket."""
        self.closed = True
        self.inbound.put_nowait(_EOF)

    async def close(self) -> None:
        if not self.closed:
            self.drop()


class FakeConnector:
    def __init__(self, responder: Callable[[dict], list] | None = None):
        self.responder = responder
        self.calls: list[tuple[str, dict]] = []
        self.ws: FakeWebSocket | None = None

    async def __call__(self, url: str, **kwargs: Any) -> FakeWebSocket:
        self.calls.append((url, kwargs))
        self.ws = FakeWebSocket(self.responder)
        return self.ws


class FakeConnection:
    """Frame sink for dispatcher/registry tests."""

    def __init__(self):
        self.sent: list[dict] = []
        self.closed = False
        self._close_listeners: list = []

    def send(self, frame: str) -> None:
        if self.closed:
            raise ConnectionClosedError("test closed")
        self.sent.append(json.loads(frame))

    def on_close(self, listener) -> None:
        self._close_listeners.append(listener)

    def close_now(self, reason: str = "test closed") -> None:
        self.closed = True
        err = ConnectionClosedError(reason)
        for listener in self._close_listeners:
            listener(err)


@pytest.fixture
def fake_connection() -> FakeConnection:
    return FakeConnection()


@pytest.fixture
def cortex_server() -> FakeCortexServer:
    return FakeCortexServer()


@pytest.fixture
def make_client(cortex_server):
    """Factory returning (client, connector) wired to ``cortex_server``."""

    def _make(server: FakeCortexServer | None = None, **config: Any) -> tuple[CortexClient, FakeConnector]:
        connector = FakeConnector(server or cortex_server)
        cfg = CortexConfig(url="ws://cortex.test", **config)
        return CortexClient(cfg, connector=connector), connector

    return _make
