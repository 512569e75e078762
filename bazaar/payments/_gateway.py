"""
Payment gateway — the untrusted, possibly slow party that moves money.

Checkout calls ``charge`` exactly once per attempt. A gateway that neither
confirms nor declines (times out, drops the connection) leaves the outcome
unknown; that is the caller's problem to surface, not the gateway's to retry.
"""

from __future__ import annotations

import asyncio
import logging
import random
import string
import time
from collections.abc import Mapping
from datetime import timedelta
from typing import Protocol

from kungfu import Result, Ok, Error

from bazaar.payments._types import Charge, Decline, MethodInfo, PaymentMethod

logger = logging.getLogger(__name__)


class Gateway(Protocol):
    async def charge(
        self, amount_cents: int, method: PaymentMethod, payer_id: str
    ) -> Result[Charge, Decline]:
        ...

    async def refund(self, charge: Charge) -> Result[str, Decline]:
        """Reverse a confirmed charge. Returns the refund reference."""
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Catalogue
# ═══════════════════════════════════════════════════════════════════════════════


_METHODS: tuple[MethodInfo, ...] = (
    MethodInfo(PaymentMethod.GCASH, "GCash", "Pay with GCash mobile wallet"),
    MethodInfo(PaymentMethod.PAYMAYA, "PayMaya", "Pay with PayMaya digital wallet"),
    MethodInfo(
        PaymentMethod.CARD,
        "Credit/Debit Card",
        "Pay with Visa, Mastercard, or other cards",
    ),
    MethodInfo(PaymentMethod.BANK_TRANSFER, "Bank Transfer", "Direct bank transfer"),
)


def payment_methods() -> tuple[MethodInfo, ...]:
    return _METHODS


# ═══════════════════════════════════════════════════════════════════════════════
# Simulated Gateway
# ═══════════════════════════════════════════════════════════════════════════════


DEFAULT_SUCCESS_RATES: Mapping[PaymentMethod, float] = {
    PaymentMethod.GCASH: 0.90,
    PaymentMethod.PAYMAYA: 0.95,
    PaymentMethod.CARD: 0.92,
    PaymentMethod.BANK_TRANSFER: 1.0,
}

_PREFIXES: Mapping[PaymentMethod, str] = {
    PaymentMethod.GCASH: "GCASH",
    PaymentMethod.PAYMAYA: "PAYMAYA",
    PaymentMethod.CARD: "CARD",
    PaymentMethod.BANK_TRANSFER: "BANK",
}

_DECLINES: Mapping[PaymentMethod, str] = {
    PaymentMethod.GCASH: "GCash payment failed. Please check your balance and try again.",
    PaymentMethod.PAYMAYA: "PayMaya payment failed. Please try again.",
    PaymentMethod.CARD: "Card payment declined. Please check your card details.",
    PaymentMethod.BANK_TRANSFER: "Bank transfer failed.",
}

_ALPHABET = string.digits + string.ascii_lowercase


class SimulatedGateway:
    """
    Stand-in gateway with per-method success rates.

    Example:
        gateway = SimulatedGateway(rng=random.Random(7), latency=timedelta(0))
        gateway = SimulatedGateway(success_rates={PaymentMethod.CARD: 0.0})
    """

    def __init__(
        self,
        *,
        rng: random.Random | None = None,
        latency: timedelta = timedelta(seconds=2),
        success_rates: Mapping[PaymentMethod, float] | None = None,
    ) -> None:
        self._rng = rng or random.Random()
        self._latency = latency
        self._success_rates = dict(
            DEFAULT_SUCCESS_RATES if success_rates is None else success_rates
        )
        self.call_count = 0
        self.refund_count = 0

    async def charge(
        self, amount_cents: int, method: PaymentMethod, payer_id: str
    ) -> Result[Charge, Decline]:
        self.call_count += 1
        await self._wait()

        rate = self._success_rates.get(method)
        if rate is None:
            return Error(Decline("Unsupported payment method"))
        if self._rng.random() >= rate:
            logger.info("Simulated %s decline for %s", method.value, payer_id)
            return Error(Decline(_DECLINES[method]))

        return Ok(
            Charge(
                transaction_id=self._reference(_PREFIXES[method]),
                amount_cents=amount_cents,
                method=method,
                payer_id=payer_id,
            )
        )

    async def refund(self, charge: Charge) -> Result[str, Decline]:
        self.refund_count += 1
        await self._wait()
        return Ok(self._reference("REFUND"))

    async def _wait(self) -> None:
        if self._latency > timedelta(0):
            await asyncio.sleep(self._latency.total_seconds())

    def _reference(self, prefix: str) -> str:
        suffix = "".join(self._rng.choice(_ALPHABET) for _ in range(9))
        return f"{prefix}_{int(time.time() * 1000)}_{suffix}"


__all__ = (
    "Gateway",
    "SimulatedGateway",
    "DEFAULT_SUCCESS_RATES",
    "payment_methods",
)
