"""Serialization helpers for Cortex RPC frames."""

from __future__ import annotations

import json
from typing import Any

from cortexrpc.rpc.protocol import (
    PROTOCOL_VERSION,
    PROTOCOL_VERSION_KEY,
    SESSION_KEY,
    FrameKind,
    MethodDescriptor,
    ParamSpec,
    RpcRequest,
)
from cortexrpc.utils.exceptions import MalformedResponseError, ParseError, RpcError


def safe_dict(value: Any) -> dict[str, Any]:
    """Return the value when dict-like, otherwise an empty dict."""
    return value if isinstance(value, dict) else {}


def encode_request(
    request: RpcRequest,
    *,
    version: str = PROTOCOL_VERSION,
    version_key: str = PROTOCOL_VERSION_KEY,
) -> str:
    """Encode a request into one JSON text frame.

    ``version_key`` names the envelope's version field; Cortex servers that
    expect plain JSON-RPC take ``"jsonrpc"``.
    """
    payload = {
        version_key: version,
        "method": request.method,
        "params": request.params,
        "id": request.id,
    }
    return json.dumps(payload, ensure_ascii=False)


def decode_frame(raw: str | bytes) -> dict[str, Any]:
    """Decode an inbound frame; anything other than a JSON object is a ParseError."""
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise ParseError(raw, f"unparseable message: {exc}") from exc
    if not isinstance(data, dict):
        raise ParseError(raw, "message is not a JSON object")
    return data


def classify_frame(frame: dict[str, Any]) -> FrameKind:
    if "id" in frame:
        return FrameKind.RESPONSE
    if SESSION_KEY in frame:
        return FrameKind.STREAM
    return FrameKind.UNRECOGNIZED


def normalize_rpc_error(error: Any) -> RpcError:
    """Normalize unknown error payloads into RpcError."""
    if not isinstance(error, dict):
        return RpcError(str(error or "rpc failed"))
    code = error.get("code")
    return RpcError(
        str(error.get("message") or "rpc failed"),
        code=code if isinstance(code, int) else None,
        data=error.get("data"),
    )


def decode_response(frame: dict[str, Any]) -> Any:
    """Return the result of a response frame or raise the error it carries."""
    if frame.get("error") is not None:
        raise normalize_rpc_error(frame["error"])
    if "result" in frame:
        return frame["result"]
    raise MalformedResponseError(frame.get("id"))


def parse_descriptor(row: Any) -> MethodDescriptor | None:
    """Parse one inspectApi entry; entries without a method name are skipped."""
    row = safe_dict(row)
    name = row.get("methodName") or row.get("name")
    if not isinstance(name, str) or not name:
        return None
    params: list[ParamSpec] = []
    for p in row.get("params") or []:
        p = safe_dict(p)
        pname = p.get("name")
        if isinstance(pname, str) and pname:
            params.append(ParamSpec(name=pname, required=bool(p.get("required"))))
    return MethodDescriptor(name=name, params=tuple(params))
