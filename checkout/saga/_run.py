"""
Saga execution with automatic rollback.
"""

from __future__ import annotations

from kungfu import Result, Ok, Error

from checkout.logs import get_logger
from checkout.saga._types import (
    SagaStep,
    SagaResult,
    SagaError,
    Then,
    CompensatorWithValue,
)

# ═══════════════════════════════════════════════════════════════════════════════
# Recorded Compensator
# ═══════════════════════════════════════════════════════════════════════════════

type RecordedCompensator[T] = tuple[str, T, CompensatorWithValue[T]]


async def run_step[T, E](
    step: SagaStep[T, E],
    compensators: list[RecordedCompensator[T]],
) -> Result[T, E]:
    """Execute single step, recording compensator on success."""
    result = await step.action
    match result:
        case Ok(value):
            if step.compensate is not None:
                compensators.append((step.name, value, step.compensate))
            return Ok(value)
        case Error(e):
            return Error(e)


async def run_compensators[T](
    compensators: list[RecordedCompensator[T]],
) -> tuple[int, int]:
    """
    Run compensators in reverse. Returns (run, failed).

    Note: A failing compensator does not stop the others; each failure is
    logged with its step name.
    """
    log = get_logger("saga")
    comp_run = 0
    comp_failed = 0

    for name, value, comp in reversed(compensators):
        try:
            await comp(value)
            comp_run += 1
        except Exception:
            comp_failed += 1
            log.exception("saga_compensation_failed", step=name)

    return comp_run, comp_failed


# ═══════════════════════════════════════════════════════════════════════════════
# run_chain() — Then chain
# ═══════════════════════════════════════════════════════════════════════════════

async def run_chain[T, U, E, E2](
    chain: Then[T, U, E, E2],
) -> Result[SagaResult[U], SagaError[E | E2]]:
    """
    Execute chained steps.

    Runs the inner step, feeds its value to f, runs the produced step.
    When the second step fails, the first step's compensator runs.

    Example:
        result = await S.run_chain(
            S.step(save, compensate=clear, name="save").then(
                lambda saved: S.step(confirm(saved), name="confirm")
            )
        )
        match result:
            case Ok(r): r.value
            case Error(e): e.step_failed  # "confirm"
    """
    compensators_t: list[RecordedCompensator[T]] = []
    compensators_u: list[RecordedCompensator[U]] = []

    match await run_step(chain.inner, compensators_t):
        case Error(e):
            return Error(SagaError(
                error=e,
                step_failed=chain.inner.name,
                compensators_run=0,
                compensators_failed=0,
            ))
        case Ok(value):
            pass

    next_step = chain.f(value)

    match await run_step(next_step, compensators_u):
        case Ok(final_value):
            return Ok(SagaResult(
                value=final_value,
                steps_executed=2,
                compensators_recorded=len(compensators_t) + len(compensators_u),
            ))
        case Error(e):
            run1, failed1 = await run_compensators(compensators_u)
            run2, failed2 = await run_compensators(compensators_t)
            return Error(SagaError(
                error=e,
                step_failed=next_step.name,
                compensators_run=run1 + run2,
                compensators_failed=failed1 + failed2,
            ))


__all__ = ("run_step", "run_compensators", "run_chain")
