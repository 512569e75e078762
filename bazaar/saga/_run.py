"""
Saga execution with automatic rollback.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from kungfu import Result, Ok, Error

from bazaar.saga._types import (
    SagaStep,
    SagaExpr,
    SagaResult,
    SagaError,
    Then,
    CompensatorWithValue,
)

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════════
# Journal — executed steps and recorded compensators
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(slots=True)
class _Recorded:
    name: str
    value: Any
    compensate: CompensatorWithValue[Any]


@dataclass(slots=True)
class _Journal:
    steps: int = 0
    last_step: str = ""
    compensators: list[_Recorded] = field(default_factory=list[_Recorded])


async def _run_step[T, E](step: SagaStep[T, E], journal: _Journal) -> Result[T, E]:
    """Execute single step, recording compensator on success."""
    journal.steps += 1
    journal.last_step = step.name
    result = await step.action
    match result:
        case Ok(value):
            if step.compensate is not None:
                journal.compensators.append(_Recorded(step.name, value, step.compensate))
            return Ok(value)
        case Error(e):
            return Error(e)


async def _run_expr(expr: SagaExpr[Any, Any], journal: _Journal) -> Result[Any, Any]:
    match expr:
        case SagaStep():
            return await _run_step(expr, journal)
        case Then(inner, f):
            inner_result = await _run_expr(inner, journal)
            match inner_result:
                case Ok(value):
                    return await _run_expr(f(value), journal)
                case Error(e):
                    return Error(e)
    raise TypeError(f"Not a saga expression: {expr!r}")


# ═══════════════════════════════════════════════════════════════════════════════
# Rollback
# ═══════════════════════════════════════════════════════════════════════════════


async def _run_compensators(journal: _Journal) -> tuple[int, int]:
    """Run compensators in reverse. Returns (run, failed)."""
    comp_run = 0
    comp_failed = 0

    for recorded in reversed(journal.compensators):
        try:
            await recorded.compensate(recorded.value)
            comp_run += 1
        except Exception:
            comp_failed += 1
            logger.critical(
                "Compensation for saga step %r failed; manual intervention required",
                recorded.name,
                exc_info=True,
            )

    return comp_run, comp_failed


# ═══════════════════════════════════════════════════════════════════════════════
# run() — Execute Saga
# ═══════════════════════════════════════════════════════════════════════════════


async def run[T, E](
    saga: SagaExpr[T, E],
) -> Result[SagaResult[T], SagaError[E]]:
    """
    Execute a step or a chain of steps with automatic rollback on failure.

    On success: returns SagaResult with value and metadata.
    On failure: runs recorded compensators in reverse, returns SagaError.
    A compensator that raises is logged and counted, the rest still run.

    Example:
        from bazaar import saga as S

        purchase = (
            S.step(charge, refund, name="charge")
            .then(lambda c: S.step(create_order(c), cancel, name="create-order"))
            .then(lambda o: S.step(reserve(o), restock, name="reserve"))
        )

        match await S.run(purchase):
            case Ok(r):
                print(f"Success: {r.value}")
            case Error(e):
                print(f"Failed at {e.failed_step_name}, rolled back: {e.rollback_complete}")
    """
    journal = _Journal()

    result = await _run_expr(saga, journal)

    match result:
        case Ok(value):
            return Ok(SagaResult(
                value=value,
                steps_executed=journal.steps,
                compensators_recorded=len(journal.compensators),
            ))

        case Error(error):
            logger.debug(
                "Saga failed at step %d (%s), rolling back %d step(s)",
                journal.steps,
                journal.last_step,
                len(journal.compensators),
            )
            comp_run, comp_failed = await _run_compensators(journal)

            return Error(SagaError(
                error=error,
                step_failed=journal.steps,
                failed_step_name=journal.last_step,
                compensators_run=comp_run,
                compensators_failed=comp_failed,
                rollback_complete=comp_failed == 0,
            ))


__all__ = ("run",)
