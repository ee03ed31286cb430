"""
Exception hierarchy and error handling utilities for cortexrpc.

Provides:
- Custom exception classes with error codes
- Error categorization (validation, remote, transport)
- Safe error message formatting (no token or password leak into logs)
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any


class ErrorCategory(Enum):
    """Error categories for classification."""
    VALIDATION = "validation"
    REMOTE = "remote"
    PROTOCOL = "protocol"
    TRANSPORT = "transport"
    NOT_FOUND = "not_found"


class CortexError(Exception):
    """Base exception for all cortexrpc errors."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        category: ErrorCategory = ErrorCategory.PROTOCOL,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.code,
            "message": self.message,
            "category": self.category.value,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class ValidationError(CortexError):
    """Required parameters missing; raised before any frame is sent."""

    def __init__(self, method: str, missing: list[str]):
        self.method = method
        self.missing = list(missing)
        super().__init__(
            f"Missing required params for {method}: {', '.join(self.missing)}",
            code="VALIDATION_ERROR",
            category=ErrorCategory.VALIDATION,
            details={"method": method, "missing": self.missing},
        )


class RpcError(CortexError):
    """Server returned an error payload for a request."""

    def __init__(self, message: str, code: int | None = None, data: Any = None):
        self.rpc_code = code
        self.data = data
        super().__init__(
            message,
            code="RPC_ERROR",
            category=ErrorCategory.REMOTE,
            details={"rpc_code": code, "data": data},
        )

    def __str__(self) -> str:
        return f"{self.message} ({self.rpc_code})"


class MalformedResponseError(CortexError):
    """Response matched an id but carried neither result nor error."""

    def __init__(self, request_id: int):
        self.request_id = request_id
        super().__init__(
            f"Invalid JSON-RPC response for request {request_id}",
            code="MALFORMED_RESPONSE",
            category=ErrorCategory.PROTOCOL,
            details={"request_id": request_id},
        )


class ParseError(CortexError):
    """Inbound frame could not be decoded."""

    def __init__(self, raw: Any, reason: str = "unparseable message"):
        self.raw = raw
        super().__init__(reason, code="PARSE_ERROR", category=ErrorCategory.PROTOCOL)


class UnknownMethodError(CortexError):
    """Invoke-by-name for a method discovery never returned."""

    def __init__(self, name: str):
        super().__init__(
            f"Method not found: {name}",
            code="UNKNOWN_METHOD",
            category=ErrorCategory.NOT_FOUND,
            details={"method": name},
        )


class TransportError(CortexError):
    """WebSocket transport is unusable for the requested operation."""

    def __init__(self, message: str, code: str = "TRANSPORT_ERROR"):
        super().__init__(message, code=code, category=ErrorCategory.TRANSPORT)


class ConnectionClosedError(TransportError):
    """Terminal: the connection is closed."""

    def __init__(self, reason: str = "socket closed"):
        self.reason = reason
        super().__init__(f"connection closed: {reason}", code="CONNECTION_CLOSED")


class UnknownCorrelationWarning(UserWarning):
    """A response arrived for an id with no pending request."""


_SENSITIVE_PATTERNS = [
    re.compile(r"(\"?(?:_auth|token|secret|password|client_secret)\"?\s*[=:]\s*)\"([^\"]*)\"", re.IGNORECASE),
    re.compile(r"((?:_auth|token|secret|password)[=:]\s*)([^\s,'\"}]+)", re.IGNORECASE),
    re.compile(r"bearer\s+[a-zA-Z0-9\-._~+/]+=*", re.IGNORECASE),
]


def sanitize_error_message(message: str, replacement: str = "[REDACTED]") -> str:
    """Remove tokens and credentials from frames and error messages before logging."""
    sanitized = _SENSITIVE_PATTERNS[0].sub(lambda m: f'{m.group(1)}"{replacement}"', message)
    sanitized = _SENSITIVE_PATTERNS[1].sub(lambda m: f"{m.group(1)}{replacement}", sanitized)
    return _SENSITIVE_PATTERNS[2].sub(replacement, sanitized)
