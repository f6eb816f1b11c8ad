"""
Graph — dependency-resolved computations over nodnod.

    from checkout import graph as G

    @G.node
    class CouponNode:
        @classmethod
        async def __compose__(cls, request: QuoteRequestNode) -> "CouponNode":
            return cls(await request.resolver.resolve(request.code))

    node = await G.run(BreakdownNode).inject(quote_request)

Nodes declare their inputs as `__compose__` parameters; nodnod discovers the
graph from the target and runs independent branches concurrently.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, cast
from collections.abc import Callable, Coroutine

from nodnod import Scope, Value, EventLoopAgent, Node
from nodnod import scalar_node as node


# ═══════════════════════════════════════════════════════════════════════════════
# TypedScope
# ═══════════════════════════════════════════════════════════════════════════════

class TypedScope:
    """Type-safe wrapper around nodnod.Scope."""

    __slots__ = ("_scope",)

    def __init__(self, detail: str = "scope") -> None:
        self._scope = Scope(detail=detail)

    @property
    def inner(self) -> Scope:
        return self._scope

    def inject[T](self, typ: type[T], value: T) -> TypedScope:
        self._scope.push(Value(typ, value))
        return self

    def get[T](self, typ: type[T]) -> T:
        result = self._scope.get(typ)
        if result is None:
            raise KeyError(f"{typ.__name__} not found in scope")
        return cast(T, result.value)

    async def __aenter__(self) -> TypedScope:
        await self._scope.__aenter__()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self._scope.__aexit__(*args)


# ═══════════════════════════════════════════════════════════════════════════════
# Run — Awaitable builder
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(slots=True, frozen=True)
class Run[T]:
    """
    Pending evaluation of a target node.

    Values are injected under their runtime type:

        await run(BreakdownNode).inject(request)
    """
    _target: type[T]
    _injections: tuple[tuple[type[Any], Any], ...] = ()

    def inject(self, value: object) -> Run[T]:
        return Run(
            _target=self._target,
            _injections=(*self._injections, (cast(type[Any], type(value)), value)),
        )

    def __await__(self) -> Any:
        return self._execute().__await__()

    async def _execute(self) -> T:
        agent = EventLoopAgent.build({cast(type[Node[Any, Any]], self._target)})

        async with TypedScope(detail=f"run:{self._target.__name__}") as scope:
            for typ, value in self._injections:
                scope.inject(typ, value)

            run_method = cast(
                Callable[[Scope, dict[type[Any], Scope]], Coroutine[Any, Any, None]],
                getattr(agent, "run"),
            )
            await run_method(scope.inner, {})

            return scope.get(self._target)


def run[T](target: type[T]) -> Run[T]:
    """Evaluate `target` and everything it depends on."""
    return Run(_target=target)


__all__ = ("node", "TypedScope", "Run", "run")
