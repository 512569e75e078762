"""
Checkout policy — behavior configuration.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import timedelta


def _delta(
    seconds: float | None,
    minutes: float | None,
    hours: float | None,
    delta: timedelta | None,
) -> timedelta | None:
    if delta is not None:
        return delta
    total = (seconds or 0) + (minutes or 0) * 60 + (hours or 0) * 3600
    return timedelta(seconds=total) if total > 0 else None


@dataclass(frozen=True, slots=True)
class CheckoutPolicy:
    """
    Checkout configuration.

    Fluent builder — each method returns a new policy.

    Example:
        policy = (
            CheckoutPolicy()
            .with_gateway_timeout(seconds=10)
            .with_attempt_ttl(hours=24)
            .with_auto_refund(False)
        )

    gateway_timeout: how long to wait for the gateway before treating the
        charge outcome as unknown. Never retried.
    attempt_ttl: lifetime of checkout attempt keys; None keeps them forever.
    auto_refund: on rollback after a charge, ask the gateway to reverse it
        once. The refund obligation is recorded either way.
    """

    gateway_timeout: timedelta = timedelta(seconds=30)
    attempt_ttl: timedelta | None = timedelta(hours=24)
    auto_refund: bool = True

    def with_gateway_timeout(
        self,
        *,
        seconds: float | None = None,
        delta: timedelta | None = None,
    ) -> CheckoutPolicy:
        value = _delta(seconds, None, None, delta)
        if value is None:
            raise ValueError("gateway timeout must be positive")
        return replace(self, gateway_timeout=value)

    def with_attempt_ttl(
        self,
        *,
        seconds: float | None = None,
        minutes: float | None = None,
        hours: float | None = None,
        delta: timedelta | None = None,
    ) -> CheckoutPolicy:
        """
        Example:
            .with_attempt_ttl(hours=24)
            .with_attempt_ttl()          # keep keys forever
        """
        return replace(self, attempt_ttl=_delta(seconds, minutes, hours, delta))

    def with_auto_refund(self, enabled: bool = True) -> CheckoutPolicy:
        return replace(self, auto_refund=enabled)


__all__ = ("CheckoutPolicy",)
