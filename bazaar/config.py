"""
Configuration — settings from the environment, logging setup.

    settings = Settings.from_env()
    configure_logging(settings.log_level)
    market = await open_marketplace(settings)

Variables:
    BAZAAR_DATABASE_URL      SQLAlchemy async URL (default: in-memory SQLite)
    BAZAAR_GATEWAY_TIMEOUT   seconds before a charge counts as unknown (30)
    BAZAAR_GATEWAY_LATENCY   simulated gateway delay in seconds (2)
    BAZAAR_LOG_LEVEL         DEBUG / INFO / WARNING / ... (INFO)
    BAZAAR_AUTO_REFUND       reverse charges automatically on rollback (true)
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import timedelta

from bazaar.checkout import CheckoutPolicy

_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off"})


def _seconds(env: Mapping[str, str], name: str, default: float) -> timedelta:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return timedelta(seconds=default)
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number of seconds, got {raw!r}") from None
    if value < 0:
        raise ValueError(f"{name} must not be negative")
    return timedelta(seconds=value)


def _flag(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


@dataclass(frozen=True, slots=True)
class Settings:
    database_url: str = "sqlite+aiosqlite:///:memory:"
    gateway_timeout: timedelta = timedelta(seconds=30)
    gateway_latency: timedelta = timedelta(seconds=2)
    log_level: str = "INFO"
    auto_refund: bool = True

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            database_url=env.get("BAZAAR_DATABASE_URL") or defaults.database_url,
            gateway_timeout=_seconds(env, "BAZAAR_GATEWAY_TIMEOUT", 30),
            gateway_latency=_seconds(env, "BAZAAR_GATEWAY_LATENCY", 2),
            log_level=(env.get("BAZAAR_LOG_LEVEL") or defaults.log_level).upper(),
            auto_refund=_flag(env, "BAZAAR_AUTO_REFUND", defaults.auto_refund),
        )

    def with_database_url(self, url: str) -> Settings:
        return replace(self, database_url=url)

    def policy(self) -> CheckoutPolicy:
        return (
            CheckoutPolicy()
            .with_gateway_timeout(delta=self.gateway_timeout)
            .with_auto_refund(self.auto_refund)
        )


def configure_logging(level: str | int = "INFO") -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )


__all__ = ("Settings", "configure_logging")
