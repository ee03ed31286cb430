"""Shared RPC protocol models for the Cortex JSON-RPC client."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

PROTOCOL_VERSION = "2.0"
PROTOCOL_VERSION_KEY = "protocolVersion"
DISCOVERY_METHOD = "inspectApi"
AUTH_PARAM = "_auth"
SESSION_KEY = "sessionId"
TIMESTAMP_KEY = "timestamp"
RESERVED_STREAM_KEYS = frozenset({SESSION_KEY, TIMESTAMP_KEY})


class FrameKind(str, Enum):
    """Classification of a decoded inbound frame."""

    RESPONSE = "response"
    STREAM = "stream"
    UNRECOGNIZED = "unrecognized"


@dataclass(slots=True)
class RpcRequest:
    """JSON-RPC request frame."""

    id: int
    method: str
    params: dict[str, Any]


@dataclass(slots=True)
class PendingRequest:
    """In-flight request awaiting its response."""

    id: int
    method: str
    future: asyncio.Future


@dataclass(frozen=True, slots=True)
class ParamSpec:
    name: str
    required: bool = False


@dataclass(frozen=True, slots=True)
class MethodDescriptor:
    """One method as reported by discovery."""

    name: str
    params: tuple[ParamSpec, ...] = ()

    @property
    def needs_auth(self) -> bool:
        return any(p.name == AUTH_PARAM for p in self.params)

    @property
    def required_params(self) -> list[str]:
        return [p.name for p in self.params if p.required]


@dataclass(slots=True)
class AuthState:
    """Token and session id shared between the auth workflow and bound methods."""

    token: str | None = None
    session_id: str | None = None

    def clear(self) -> None:
        self.token = None
        self.session_id = None


@dataclass(frozen=True, slots=True)
class StreamEvent:
    """One stream's share of an inbound push frame."""

    stream: str
    payload: dict[str, Any] = field(default_factory=dict)
    session_id: str = ""
    timestamp: Any = None

    @property
    def data(self) -> Any:
        return self.payload.get(self.stream)
