"""
Saga step creation.
"""

from __future__ import annotations

from collections.abc import Callable, Awaitable
from kungfu import LazyCoroResult
from combinators import lift as L

from checkout.saga._types import SagaStep, CompensatorWithValue


def step[T, E](
    action: LazyCoroResult[T, E],
    compensate: CompensatorWithValue[T] | None = None,
    *,
    name: str = "step",
) -> SagaStep[T, E]:
    """
    Create a compensated saga step from a lazy result.

    Example:
        saved = S.step(
            store.save_lazy(continuation),
            compensate=lambda c: store.clear(c.session_key),
            name="save_continuation",
        )
    """
    return SagaStep(action=action, compensate=compensate, name=name)


def from_async[T, E](
    action: Callable[[], Awaitable[T]],
    on_error: Callable[[Exception], E],
    compensate: CompensatorWithValue[T] | None = None,
    *,
    name: str = "step",
) -> SagaStep[T, E]:
    """
    Create a step from a raising async callable.

    Example:
        S.from_async(
            lambda: store.save(continuation),
            on_error=lambda e: CheckoutError(ErrorKind.CONTINUATION, str(e), e),
            compensate=lambda _: store.clear(key),
            name="save_continuation",
        )
    """
    return SagaStep(
        action=L.catching_async(action, on_error=on_error),
        compensate=compensate,
        name=name,
    )


__all__ = ("step", "from_async")
