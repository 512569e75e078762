from __future__ import annotations

from datetime import timedelta

import pytest

from bazaar.app import open_marketplace
from bazaar.config import Settings
from bazaar.social import Cart

from tests.conftest import FakeGateway, ok


def test_defaults_without_environment() -> None:
    settings = Settings.from_env({})

    assert settings == Settings()
    assert settings.database_url.startswith("sqlite+aiosqlite")
    assert settings.gateway_timeout == timedelta(seconds=30)


def test_environment_overrides() -> None:
    settings = Settings.from_env(
        {
            "BAZAAR_DATABASE_URL": "sqlite+aiosqlite:///bazaar.db",
            "BAZAAR_GATEWAY_TIMEOUT": "2.5",
            "BAZAAR_GATEWAY_LATENCY": "0",
            "BAZAAR_LOG_LEVEL": "debug",
            "BAZAAR_AUTO_REFUND": "off",
        }
    )

    assert settings.database_url == "sqlite+aiosqlite:///bazaar.db"
    assert settings.gateway_timeout == timedelta(seconds=2.5)
    assert settings.gateway_latency == timedelta(0)
    assert settings.log_level == "DEBUG"
    assert settings.auto_refund is False


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("BAZAAR_GATEWAY_TIMEOUT", "soon"),
        ("BAZAAR_GATEWAY_LATENCY", "-1"),
        ("BAZAAR_AUTO_REFUND", "maybe"),
    ],
)
def test_bad_values_fail_loudly(name: str, value: str) -> None:
    with pytest.raises(ValueError, match=name):
        Settings.from_env({name: value})


def test_policy_follows_settings() -> None:
    settings = Settings(gateway_timeout=timedelta(seconds=5), auto_refund=False)

    policy = settings.policy()

    assert policy.gateway_timeout == timedelta(seconds=5)
    assert policy.auto_refund is False


async def test_open_marketplace_wires_sql_storage() -> None:
    market = await open_marketplace(Settings(), gateway=FakeGateway())
    try:
        assert market.engine is not None
        assert market.social is not None
        assert isinstance(market.social.cart, Cart)
        assert ok(await market.open_refunds()) == []
    finally:
        await market.close()
