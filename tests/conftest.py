# tests/conftest.py
from __future__ import annotations

import datetime as dt
from typing import Any, Sequence

import pytest

from app.main import create_app
from app.settings import Settings
from engine.models import BacktestConfig, MarketDataPoint

T0 = dt.datetime(2024, 1, 1, tzinfo=dt.timezone.utc)


def _candles(prices: Sequence[float], start: dt.datetime = T0,
             step: dt.timedelta = dt.timedelta(hours=1)):
    return tuple(
        MarketDataPoint(
            timestamp=start + i * step,
            price=p,
            volume=1.0,
            open=p,
            high=p,
            low=p,
            close=p,
        )
        for i, p in enumerate(prices)
    )


@pytest.fixture
def make_candles():
    return _candles


@pytest.fixture
def make_config():
    """
    BacktestConfig over the given prices. Defaults: 10k balance, 2% risk,
    price_threshold buying at or below 100, fixed_percent sizing with a
    2% stop, no fees.
    """

    def _make(prices: Sequence[float], **overrides: Any) -> BacktestConfig:
        fields = dict(
            initial_balance=10_000.0,
            start_date=T0,
            end_date=T0 + dt.timedelta(days=30),
            data=_candles(prices),
            strategy="price_threshold",
            strategy_params={"buy_below": 100},
            risk_rule="fixed_percent",
            risk_params={"stop_loss_percent": 2.0},
            risk_percent=2.0,
            fee_rate=0.0,
        )
        fields.update(overrides)
        return BacktestConfig(**fields)

    return _make


@pytest.fixture
def client(tmp_path):
    """
    Flask test client (no real server) writing runs under tmp_path.
    """
    app = create_app(Settings(results_dir=tmp_path / "runs", log_dir=tmp_path / "logs"))
    app.config["TESTING"] = True
    with app.test_client() as client:
        yield client
