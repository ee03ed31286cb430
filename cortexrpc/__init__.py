"""
cortexrpc - JSON-RPC over WebSocket client with runtime method discovery
"""

__version__ = "0.1.0"
__logo__ = "🧠"

from cortexrpc.client import CortexClient
from cortexrpc.config.schema import CortexConfig, CredentialsConfig
from cortexrpc.rpc.chain import ChainableResult
from cortexrpc.rpc.protocol import StreamEvent
from cortexrpc.session import SessionState
from cortexrpc.utils.exceptions import (
    ConnectionClosedError,
    CortexError,
    MalformedResponseError,
    ParseError,
    RpcError,
    ValidationError,
)

__all__ = [
    "__version__",
    "ChainableResult",
    "ConnectionClosedError",
    "CortexClient",
    "CortexConfig",
    "CortexError",
    "CredentialsConfig",
    "MalformedResponseError",
    "ParseError",
    "RpcError",
    "SessionState",
    "StreamEvent",
    "ValidationError",
]
