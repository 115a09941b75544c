import datetime as dt

import pytest

from engine.metrics import compute_metrics
from engine.models import CLOSE, LONG, OPEN, Trade

T0 = dt.datetime(2024, 1, 1, tzinfo=dt.timezone.utc)


def _trade(action, balance, pnl=0.0, fee=0.0, i=0):
    return Trade(
        direction=LONG,
        action=action,
        price=100.0,
        size=1.0,
        timestamp=T0 + dt.timedelta(minutes=i),
        balance=balance,
        pnl=pnl,
        fee=fee,
    )


def test_no_trades_gives_zeros_not_nan():
    m = compute_metrics([], 10_000, 10_000)
    assert m["total_trades"] == 0
    assert m["winning_trades"] == 0
    assert m["win_rate"] == 0.0
    assert m["max_drawdown"] == 0.0
    assert m["total_return"] == 0.0


def test_counts_close_events_only():
    trades = [
        _trade(OPEN, 10_000, i=0),
        _trade(CLOSE, 10_500, pnl=500, i=1),
        _trade(OPEN, 10_500, i=2),
        _trade(CLOSE, 10_300, pnl=-200, i=3),
        _trade(OPEN, 10_300, i=4),
        _trade(CLOSE, 10_300, pnl=0, i=5),
        # dangling OPEN must not count as a round trip
        _trade(OPEN, 10_300, i=6),
    ]
    m = compute_metrics(trades, 10_000, 10_300)
    assert m["total_trades"] == 3
    assert m["winning_trades"] == 1
    assert m["losing_trades"] == 1
    assert m["win_rate"] == pytest.approx(100 / 3)
    assert m["total_return"] == pytest.approx(3.0)
    assert m["total_pnl"] == pytest.approx(300)


def test_total_fees_sum_close_fees():
    trades = [
        _trade(OPEN, 1_000, i=0),
        _trade(CLOSE, 1_009.79, pnl=10, fee=0.21, i=1),
    ]
    m = compute_metrics(trades, 1_000, 1_009.79)
    assert m["total_fees"] == pytest.approx(0.21)
    assert m["win_rate"] == 100.0


def test_max_drawdown_tracks_running_peak():
    balances = [10_000, 10_000, 10_000, 9_000, 9_000, 9_900, 9_900, 11_000]
    trades = [_trade(OPEN if i % 2 == 0 else CLOSE, b, i=i) for i, b in enumerate(balances)]
    m = compute_metrics(trades, 10_000, 11_000)
    assert m["max_drawdown"] == pytest.approx(10.0)


def test_initial_peak_is_first_balance():
    trades = [_trade(OPEN, 100, i=0), _trade(CLOSE, 50, pnl=-50, i=1)]
    assert compute_metrics(trades, 100, 50)["max_drawdown"] == pytest.approx(50.0)


def test_drawdown_never_negative_on_rising_balance():
    trades = [_trade(OPEN, 100 + i, i=i) for i in range(5)]
    assert compute_metrics(trades, 100, 104)["max_drawdown"] == 0.0
