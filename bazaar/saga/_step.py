"""
Saga step creation.
"""

from __future__ import annotations

from collections.abc import Callable, Awaitable
from kungfu import LazyCoroResult, Result
from combinators import lift as L

from bazaar.saga._types import SagaStep, CompensatorWithValue


def step[T, E](
    action: LazyCoroResult[T, E],
    compensate: CompensatorWithValue[T] | None = None,
    *,
    name: str = "step",
) -> SagaStep[T, E]:
    """
    Create a compensated saga step.

    Args:
        action: The operation to perform (LazyCoroResult)
        compensate: The compensation action if rollback needed
        name: Label used in logs and in ``SagaError.failed_step_name``

    Example:
        from bazaar import saga as S

        charge = S.step(
            action=LazyCoroResult(lambda: gateway.charge(amount, method, buyer)),
            compensate=lambda c: refunds.raise_for(c),
            name="charge",
        )
    """
    return SagaStep(action=action, compensate=compensate, name=name)


def from_result[T, E](
    action: Callable[[], Awaitable[Result[T, E]]],
    compensate: CompensatorWithValue[T] | None = None,
    *,
    name: str = "step",
) -> SagaStep[T, E]:
    """Create step from an async callable that already returns a Result."""
    return SagaStep(action=LazyCoroResult(action), compensate=compensate, name=name)


def from_async[T, E](
    action: Callable[[], Awaitable[T]],
    on_error: Callable[[Exception], E],
    compensate: CompensatorWithValue[T] | None = None,
    *,
    name: str = "step",
) -> SagaStep[T, E]:
    """
    Create step from a raising async callable.

    Example:
        S.from_async(
            lambda: notifier.send(order),
            on_error=lambda e: StoreError(str(e), e),
        )
    """
    return SagaStep(
        action=L.catching_async(action, on_error=on_error),
        compensate=compensate,
        name=name,
    )


__all__ = ("step", "from_result", "from_async")
