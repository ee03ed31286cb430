"""Awaitable results with fluent chaining of discovered methods.

``client.login(...).authorize(...).queryHeadsets()`` runs each call only after
the previous one succeeded. The chain steps live in one ``ChainSteps`` table per
client; every ``ChainableResult`` of that client looks steps up there instead of
carrying per-instance state.
"""

from __future__ import annotations

import asyncio
import functools
import inspect
from typing import Any, Awaitable, Callable, Iterator

from cortexrpc.utils.exceptions import UnknownMethodError

StepFn = Callable[..., "ChainableResult"]
Resolver = Callable[[str], Callable[..., Any]]


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class ChainSteps:
    """Table of chain steps keyed by method name, filled once per name."""

    def __init__(self, resolver: Resolver):
        self._resolver = resolver
        self._steps: dict[str, StepFn] = {}

    def register(self, name: str) -> bool:
        """Add the step for ``name``; returns False when it already exists."""
        if name in self._steps:
            return False

        def step(chain: ChainableResult, params: Any = None, **kwargs: Any) -> ChainableResult:
            async def run() -> Any:
                await chain
                return await self._resolver(name)(params, **kwargs)

            return chain.derive(run())

        step.__name__ = name
        self._steps[name] = step
        return True

    def get(self, name: str) -> StepFn | None:
        return self._steps.get(name)

    def names(self) -> list[str]:
        return list(self._steps)

    def __contains__(self, name: object) -> bool:
        return name in self._steps

    def __iter__(self) -> Iterator[str]:
        return iter(self._steps)

    def __len__(self) -> int:
        return len(self._steps)


class ChainableResult:
    """Deferred result of one call or sequence of calls."""

    def __init__(self, awaitable: Awaitable[Any], steps: ChainSteps | None = None):
        self._future = asyncio.ensure_future(awaitable)
        self._steps = steps

    @classmethod
    def resolved(cls, value: Any, steps: ChainSteps | None = None) -> ChainableResult:
        future = asyncio.get_running_loop().create_future()
        future.set_result(value)
        return cls(future, steps)

    @classmethod
    def rejected(cls, exc: BaseException, steps: ChainSteps | None = None) -> ChainableResult:
        future = asyncio.get_running_loop().create_future()
        future.set_exception(exc)
        return cls(future, steps)

    def derive(self, awaitable: Awaitable[Any]) -> ChainableResult:
        """Wrap another awaitable so it shares this chain's steps."""
        return ChainableResult(awaitable, self._steps)

    def __await__(self):
        return self._future.__await__()

    def done(self) -> bool:
        return self._future.done()

    def result(self) -> Any:
        return self._future.result()

    def exception(self) -> BaseException | None:
        return self._future.exception()

    def then(
        self,
        on_success: Callable[[Any], Any] | None = None,
        on_failure: Callable[[Exception], Any] | None = None,
    ) -> ChainableResult:
        async def run() -> Any:
            try:
                value = await self._future
            except Exception as exc:
                if on_failure is None:
                    raise
                return await _maybe_await(on_failure(exc))
            if on_success is None:
                return value
            return await _maybe_await(on_success(value))

        return self.derive(run())

    def catch(self, on_failure: Callable[[Exception], Any]) -> ChainableResult:
        return self.then(None, on_failure)

    def finally_(self, callback: Callable[[], Any]) -> ChainableResult:
        async def run() -> Any:
            try:
                return await self._future
            finally:
                await _maybe_await(callback())

        return self.derive(run())

    def step(self, name: str, params: Any = None, **kwargs: Any) -> ChainableResult:
        """Generic chain step by method name."""
        fn = self._steps.get(name) if self._steps is not None else None
        if fn is None:
            return self.derive(self._unknown_step(name))
        return fn(self, params, **kwargs)

    async def _unknown_step(self, name: str) -> Any:
        await self._future
        raise UnknownMethodError(name)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        steps = self.__dict__.get("_steps")
        fn = steps.get(name) if steps is not None else None
        if fn is None:
            raise AttributeError(f"{type(self).__name__!s} has no chain step {name!r}")
        return functools.partial(fn, self)

    def __repr__(self) -> str:
        if not self._future.done():
            state = "pending"
        elif self._future.cancelled():
            state = "cancelled"
        elif self._future.exception() is not None:
            state = f"failed: {self._future.exception()!r}"
        else:
            state = "resolved"
        return f"<ChainableResult {state}>"
