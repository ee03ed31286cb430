"""Runtime-discovered method table."""

from __future__ import annotations

from typing import Any, Iterator, Mapping

from loguru import logger

from cortexrpc.rpc.chain import ChainableResult, ChainSteps
from cortexrpc.rpc.dispatcher import RequestDispatcher
from cortexrpc.rpc.protocol import AUTH_PARAM, DISCOVERY_METHOD, AuthState, MethodDescriptor
from cortexrpc.rpc.serialization import parse_descriptor
from cortexrpc.utils.exceptions import UnknownMethodError, ValidationError


class BoundMethod:
    """Validated callable for one discovered method."""

    def __init__(
        self,
        descriptor: MethodDescriptor,
        dispatcher: RequestDispatcher,
        auth_state: AuthState,
        steps: ChainSteps,
    ):
        self.descriptor = descriptor
        self._dispatcher = dispatcher
        self._auth_state = auth_state
        self._steps = steps

    @property
    def name(self) -> str:
        return self.descriptor.name

    def prepare(self, params: Mapping[str, Any] | None = None, **kwargs: Any) -> dict[str, Any]:
        """Merge params, fill the stored token and validate required names."""
        merged = dict(params or {})
        merged.update(kwargs)
        token = self._auth_state.token
        if self.descriptor.needs_auth and token and merged.get(AUTH_PARAM) is None:
            merged[AUTH_PARAM] = token
        missing = [p for p in self.descriptor.required_params if merged.get(p) is None]
        if missing:
            raise ValidationError(self.name, missing)
        return merged

    def __call__(self, params: Mapping[str, Any] | None = None, **kwargs: Any) -> ChainableResult:
        try:
            merged = self.prepare(params, **kwargs)
        except ValidationError as exc:
            logger.warning(f"rpc: {exc.message}")
            return ChainableResult.rejected(exc, self._steps)
        return ChainableResult(self._dispatcher.call(self.name, merged), self._steps)

    def __repr__(self) -> str:
        params = ", ".join(
            f"{p.name}{'' if p.required else '?'}" for p in self.descriptor.params
        )
        return f"<BoundMethod {self.name}({params})>"


class MethodRegistry:
    """Write-once table of bound methods, filled by ``inspectApi`` discovery."""

    def __init__(self, dispatcher: RequestDispatcher, auth_state: AuthState):
        self._dispatcher = dispatcher
        self._auth_state = auth_state
        self._methods: dict[str, BoundMethod] = {}
        self.steps = ChainSteps(self.get_or_raise)

    async def discover(self) -> list[MethodDescriptor]:
        """Call ``inspectApi`` and bind every method it reports."""
        rows = await self._dispatcher.call(DISCOVERY_METHOD, {})
        descriptors = [d for d in (parse_descriptor(row) for row in rows or []) if d is not None]
        added = sum(1 for d in descriptors if self.define(d))
        logger.info(f"rpc: Added {added} methods from {DISCOVERY_METHOD}")
        return descriptors

    def define(self, descriptor: MethodDescriptor) -> bool:
        """Bind ``descriptor``; returns False when the name is already bound."""
        if descriptor.name in self._methods:
            return False
        self._methods[descriptor.name] = BoundMethod(descriptor, self._dispatcher, self._auth_state, self.steps)
        self.steps.register(descriptor.name)
        return True

    def get(self, name: str) -> BoundMethod | None:
        return self._methods.get(name)

    def get_or_raise(self, name: str) -> BoundMethod:
        method = self._methods.get(name)
        if method is None:
            raise UnknownMethodError(name)
        return method

    def invoke(self, name: str, params: Mapping[str, Any] | None = None, **kwargs: Any) -> ChainableResult:
        """Call a discovered method by name."""
        method = self._methods.get(name)
        if method is None:
            return ChainableResult.rejected(UnknownMethodError(name), self.steps)
        return method(params, **kwargs)

    def names(self) -> list[str]:
        return list(self._methods)

    def descriptors(self) -> list[MethodDescriptor]:
        return [m.descriptor for m in self._methods.values()]

    def __contains__(self, name: object) -> bool:
        return name in self._methods

    def __iter__(self) -> Iterator[str]:
        return iter(self._methods)

    def __len__(self) -> int:
        return len(self._methods)
