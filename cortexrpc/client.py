"""Cortex client: one WebSocket, runtime-discovered methods, chainable results and streams.

Usage::

    async with CortexClient(config) as client:
        await client.init(username="me", password="...", client_id="...", client_secret="...")
        headsets = await client.queryHeadsets()
        client.on("eeg", lambda event: print(event.data))
        await client.createSession(status="active", headset=headsets[0]["id"]).subscribe(streams=["eeg"])

Every method reported by ``inspectApi`` is reachable as ``client.<name>(params)``
and, on any ``ChainableResult``, as a chain step run after the previous call.
"""

from __future__ import annotations

from typing import Any, Mapping

from loguru import logger

from cortexrpc.config.schema import CortexConfig, CredentialsConfig
from cortexrpc.rpc.chain import ChainableResult, ChainSteps
from cortexrpc.rpc.connection import Connection, Connector
from cortexrpc.rpc.dispatcher import RequestDispatcher
from cortexrpc.rpc.protocol import AuthState, FrameKind, MethodDescriptor
from cortexrpc.rpc.registry import BoundMethod, MethodRegistry
from cortexrpc.rpc.serialization import classify_frame, decode_frame
from cortexrpc.rpc.streams import StreamListener, StreamRouter
from cortexrpc.session import AuthSession, SessionState
from cortexrpc.utils.exceptions import ParseError, sanitize_error_message


class CortexClient:
    """Generic JSON-RPC client whose method surface comes from the server."""

    def __init__(
        self,
        config: CortexConfig | None = None,
        *,
        url: str | None = None,
        verify_tls: bool | None = None,
        connector: Connector | None = None,
        connection: Connection | None = None,
    ):
        self.config = config or CortexConfig()
        self.connection = connection or Connection(
            url or self.config.url,
            verify_tls=self.config.verify_tls if verify_tls is None else verify_tls,
            connector=connector,
        )
        self.auth_state = AuthState()
        self.dispatcher = RequestDispatcher(
            self.connection,
            version=self.config.protocol_version,
            version_key=self.config.protocol_version_key,
        )
        self.methods = MethodRegistry(self.dispatcher, self.auth_state)
        self.streams = StreamRouter()
        self.session = AuthSession(self.methods, self.auth_state, self.connection.close)
        self.connection.on_frame(self._on_frame)
        self._ready: ChainableResult | None = None

    @property
    def steps(self) -> ChainSteps:
        return self.methods.steps

    @property
    def state(self) -> SessionState:
        return self.session.state

    @property
    def ready(self) -> ChainableResult:
        """Settles once the socket is open and discovery finished."""
        return self.connect()

    def connect(self) -> ChainableResult:
        if self._ready is None:
            self._ready = ChainableResult(self._bootstrap(), self.steps)
        return self._ready

    async def _bootstrap(self) -> list[MethodDescriptor]:
        await self.connection.open()
        descriptors = await self.methods.discover()
        self.session.mark_ready()
        return descriptors

    def call(self, method: str, params: Mapping[str, Any] | None = None) -> ChainableResult:
        """Raw call without local validation or token filling."""
        return ChainableResult(self.dispatcher.call(method, params), self.steps)

    def invoke(self, name: str, params: Mapping[str, Any] | None = None, **kwargs: Any) -> ChainableResult:
        """Call a discovered method by name."""
        return self.methods.invoke(name, params, **kwargs)

    def init(
        self,
        credentials: CredentialsConfig | Mapping[str, Any] | None = None,
        **kwargs: Any,
    ) -> ChainableResult:
        """Connect if needed, log in and authorize.

        Explicit credentials and keyword arguments override the configured ones.
        """
        merged = self.config.credentials.model_dump(exclude_none=True)
        if isinstance(credentials, CredentialsConfig):
            merged.update(credentials.model_dump(exclude_none=True))
        elif credentials:
            merged.update(credentials)
        merged.update(kwargs)
        return ChainableResult(self._init(CredentialsConfig.model_validate(merged)), self.steps)

    async def _init(self, credentials: CredentialsConfig) -> str:
        await self.connect()
        return await self.session.init(credentials)

    def create_session(self, params: Mapping[str, Any] | None = None, **kwargs: Any) -> ChainableResult:
        return ChainableResult(self.session.create_session(params, **kwargs), self.steps)

    def close(self) -> ChainableResult:
        """Close the socket; pending calls fail with ConnectionClosedError."""
        return ChainableResult(self.session.close(), self.steps)

    def on(self, stream: str, listener: StreamListener):
        """Listen for push data of ``stream``; returns an unsubscribe callable."""
        return self.streams.subscribe(stream, listener)

    def off(self, stream: str, listener: StreamListener) -> bool:
        return self.streams.unsubscribe(stream, listener)

    def _on_frame(self, raw: Any) -> None:
        try:
            frame = decode_frame(raw)
        except ParseError as exc:
            logger.warning(f"rpc: {exc.message}")
            return

        logger.debug(f"ws: <- {sanitize_error_message(str(raw))}")
        kind = classify_frame(frame)
        if kind is FrameKind.RESPONSE:
            self.dispatcher.handle_response(frame)
        elif kind is FrameKind.STREAM:
            self.streams.route(frame)
        else:
            logger.info(f"rpc: Unrecognised data {sanitize_error_message(repr(frame))}")

    def __getattr__(self, name: str) -> BoundMethod:
        if name.startswith("_"):
            raise AttributeError(name)
        methods = self.__dict__.get("methods")
        method = methods.get(name) if methods is not None else None
        if method is None:
            raise AttributeError(
                f"{type(self).__name__} has no attribute or discovered method {name!r}"
            )
        return method

    async def __aenter__(self) -> CortexClient:
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
