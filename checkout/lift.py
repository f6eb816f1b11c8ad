"""
Lift — helpers for bringing raising collaborators into Result-land.

Re-exports from combinators.lift with checkout-specific additions.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Awaitable

from kungfu import LazyCoroResult, Result

# Re-export from combinators.lift
from combinators.lift import catching_async

from checkout.errors import (
    CheckoutError,
    GatewayTimeoutError,
    from_gateway_exception,
)


def from_result[T, E](result: Result[T, E]) -> LazyCoroResult[T, E]:
    """Lift a Result into LazyCoroResult."""
    async def _run() -> Result[T, E]:
        return result
    return LazyCoroResult(_run)


def gateway_call[T](
    call: Callable[[], Awaitable[T]],
    timeout: float,
) -> LazyCoroResult[T, CheckoutError]:
    """
    Run a gateway call under a deadline.

    Raised gateway exceptions become CheckoutError values; an expired deadline
    becomes GATEWAY_TIMEOUT.

    Example:
        result = await gateway_call(
            lambda: gateway.retrieve_intent(secret),
            timeout=settings.gateway_timeout_seconds,
        )
    """
    async def bounded() -> T:
        try:
            return await asyncio.wait_for(call(), timeout=timeout)
        except TimeoutError as e:
            raise GatewayTimeoutError(f"no response within {timeout:g}s") from e

    return catching_async(bounded, on_error=from_gateway_exception)


__all__ = (
    "catching_async",
    "from_result",
    "gateway_call",
)
