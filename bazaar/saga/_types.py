"""
Saga types — core data structures.
"""

from __future__ import annotations

from dataclasses import dataclass
from collections.abc import Callable, Awaitable
from kungfu import LazyCoroResult

# ═══════════════════════════════════════════════════════════════════════════════
# Compensator — Undo Action
# ═══════════════════════════════════════════════════════════════════════════════

type CompensatorWithValue[T] = Callable[[T], Awaitable[None]]
"""Compensation function that receives the action result and undoes it."""

# ═══════════════════════════════════════════════════════════════════════════════
# SagaStep — Single Step with Compensation
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class SagaStep[T, E]:
    """
    A single saga step: action + compensator.

    When action succeeds, compensator is recorded.
    If a later step fails, recorded compensators run in reverse.
    """

    action: LazyCoroResult[T, E]
    compensate: CompensatorWithValue[T] | None
    name: str = "step"

    def then[U, E2](
        self,
        f: Callable[[T], SagaExpr[U, E2]],
    ) -> Then[T, U, E, E2]:
        """Chain another saga step after this one."""
        return Then(self, f)


# ═══════════════════════════════════════════════════════════════════════════════
# Then — Sequential Composition
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Then[T, U, E, E2]:
    """
    Sequential composition (monadic bind).

    ``inner`` may itself be a chain, so ``a.then(f).then(g)`` nests to the
    left and runs a → f(a) → g(f(a)) sharing one compensation journal.
    """

    inner: SagaExpr[T, E]
    f: Callable[[T], SagaExpr[U, E2]]

    def then[V, E3](
        self,
        g: Callable[[U], SagaExpr[V, E3]],
    ) -> Then[U, V, E | E2, E3]:
        return Then(self, g)


type SagaExpr[T, E] = SagaStep[T, E] | Then[object, T, object, E]

# ═══════════════════════════════════════════════════════════════════════════════
# Result Types
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class SagaResult[T]:
    """Successful saga result with metadata."""

    value: T
    steps_executed: int
    compensators_recorded: int


@dataclass(frozen=True, slots=True)
class SagaError[E]:
    """Saga error with rollback status."""

    error: E
    step_failed: int
    failed_step_name: str
    compensators_run: int
    compensators_failed: int
    rollback_complete: bool


__all__ = (
    "CompensatorWithValue",
    "SagaStep",
    "Then",
    "SagaExpr",
    "SagaResult",
    "SagaError",
)
