"""Utility functions for cortexrpc."""

from cortexrpc.utils.exceptions import (
    CortexError,
    ValidationError,
    RpcError,
    MalformedResponseError,
    ParseError,
    UnknownMethodError,
    TransportError,
    ConnectionClosedError,
    UnknownCorrelationWarning,
    ErrorCategory,
    sanitize_error_message,
)

__all__ = [
    "CortexError",
    "ValidationError",
    "RpcError",
    "MalformedResponseError",
    "ParseError",
    "UnknownMethodError",
    "TransportError",
    "ConnectionClosedError",
    "UnknownCorrelationWarning",
    "ErrorCategory",
    "sanitize_error_message",
]
