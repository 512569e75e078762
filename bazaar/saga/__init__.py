"""
Saga — multi-step side effects with compensation.

    from bazaar import saga as S

    purchase = S.step(charge, refund, name="charge").then(
        lambda c: S.step(create_order(c), cancel_order, name="create-order")
    )
    result = await S.run(purchase)
"""

from __future__ import annotations

from bazaar.saga._types import (
    CompensatorWithValue,
    SagaStep,
    SagaExpr,
    SagaResult,
    SagaError,
    Then,
)
from bazaar.saga._step import step, from_result, from_async
from bazaar.saga._run import run

__all__ = (
    "CompensatorWithValue",
    "SagaStep",
    "SagaExpr",
    "SagaResult",
    "SagaError",
    "Then",
    "step",
    "from_result",
    "from_async",
    "run",
)
