"""JSON-RPC over WebSocket machinery: transport, correlation, discovery, chaining, streams."""

from cortexrpc.rpc.chain import ChainableResult, ChainSteps
from cortexrpc.rpc.connection import Connection, ConnectionState
from cortexrpc.rpc.dispatcher import RequestDispatcher
from cortexrpc.rpc.protocol import AuthState, MethodDescriptor, ParamSpec, StreamEvent
from cortexrpc.rpc.registry import BoundMethod, MethodRegistry
from cortexrpc.rpc.streams import StreamRouter

__all__ = [
    "AuthState",
    "BoundMethod",
    "ChainableResult",
    "ChainSteps",
    "Connection",
    "ConnectionState",
    "MethodDescriptor",
    "MethodRegistry",
    "ParamSpec",
    "RequestDispatcher",
    "StreamEvent",
    "StreamRouter",
]
