"""
Saga — multi-step checkout actions with compensation.

    from checkout import saga as S

    chain = S.step(save_continuation, clear_continuation, name="continuation").then(
        lambda ctx: S.step(confirm_with_gateway, name="confirm")
    )
    result = await S.run_chain(chain)

Later steps run only when earlier ones succeed; on failure the recorded
compensators run in reverse.
"""

from __future__ import annotations

from checkout.saga._types import (
    CompensatorWithValue,
    SagaStep,
    SagaResult,
    SagaError,
    Then,
)
from checkout.saga._step import step, from_async
from checkout.saga._run import run_chain

__all__ = (
    "CompensatorWithValue",
    "SagaStep",
    "SagaResult",
    "SagaError",
    "Then",
    "step",
    "from_async",
    "run_chain",
)
