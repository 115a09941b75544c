import pytest

from engine.execution import (
    END_OF_DATA,
    STOP_LOSS,
    TAKE_PROFIT,
    calc_fee,
    close_position,
    close_reason,
    open_position,
    stop_loss_price,
)
from engine.models import CLOSE, CLOSED, LONG, OPEN, SHORT, RiskResult
from engine.portfolio import PortfolioState


def _risk(size=1.0, stop=90.0, target=110.0, risk_amount=10.0):
    return RiskResult(
        position_size=size,
        stop_loss=stop,
        take_profit=target,
        risk_amount=risk_amount,
        risk_percent=1.0,
        risk_reward_ratio=1.0,
    )


def test_stop_loss_price_by_direction():
    assert stop_loss_price(LONG, 100, 2) == pytest.approx(98)
    assert stop_loss_price(SHORT, 100, 2) == pytest.approx(102)
    with pytest.raises(ValueError):
        stop_loss_price("none", 100, 2)


def test_open_records_candle_fill_and_ledger_entry(make_candles):
    candle = make_candles([100])[0]
    portfolio = PortfolioState(1_000)

    pos = open_position(LONG, _risk(), candle, portfolio)

    assert portfolio.position is pos
    assert pos.status == OPEN
    assert pos.entry_price == 100
    assert pos.entry_time == candle.timestamp
    assert pos.entry_balance == 10.0  # risk amount, not the account balance
    assert len(portfolio.trade_log) == 1
    trade = portfolio.trade_log[0]
    assert trade.action == OPEN
    assert trade.pnl == 0.0
    assert trade.balance == 1_000


def test_cannot_open_twice(make_candles):
    candle = make_candles([100])[0]
    portfolio = PortfolioState(1_000)
    open_position(LONG, _risk(), candle, portfolio)
    with pytest.raises(ValueError):
        open_position(SHORT, _risk(), candle, portfolio)


def test_close_reason_long(make_candles):
    c = make_candles([100, 95, 90, 89, 110, 120])
    pos = open_position(LONG, _risk(), c[0], PortfolioState(1_000))
    assert close_reason(pos, c[1]) is None
    assert close_reason(pos, c[2]) == STOP_LOSS
    assert close_reason(pos, c[3]) == STOP_LOSS
    assert close_reason(pos, c[4]) == TAKE_PROFIT
    assert close_reason(pos, c[5]) == TAKE_PROFIT


def test_close_reason_short(make_candles):
    c = make_candles([100, 105, 110, 90, 85])
    pos = open_position(SHORT, _risk(stop=110, target=90), c[0], PortfolioState(1_000))
    assert close_reason(pos, c[1]) is None
    assert close_reason(pos, c[2]) == STOP_LOSS
    assert close_reason(pos, c[3]) == TAKE_PROFIT
    assert close_reason(pos, c[4]) == TAKE_PROFIT


def test_fee_is_charged_on_both_legs():
    assert calc_fee(0.001, 1, 100, 110) == pytest.approx(0.21)


def test_close_long_applies_pnl_and_fee(make_candles):
    entry, exit_ = make_candles([100, 110])
    portfolio = PortfolioState(1_000)
    pos = open_position(LONG, _risk(), entry, portfolio)

    close_position(exit_, portfolio, 0.001, TAKE_PROFIT)

    assert portfolio.position is None
    assert pos.status == CLOSED
    assert pos.pnl == pytest.approx(10)
    assert pos.fee == pytest.approx(0.21)
    assert portfolio.balance == pytest.approx(1_009.79)
    assert pos.exit_balance == portfolio.balance
    assert pos.exit_price == 110
    assert pos.exit_time == exit_.timestamp

    close = portfolio.trade_log[-1]
    assert close.action == CLOSE
    assert close.pnl == pytest.approx(10)
    assert close.fee == pytest.approx(0.21)
    assert close.reason == TAKE_PROFIT
    assert close.balance == pytest.approx(1_009.79)


def test_close_short_profits_when_price_falls(make_candles):
    entry, exit_ = make_candles([100, 90])
    portfolio = PortfolioState(1_000)
    open_position(SHORT, _risk(size=2, stop=110, target=90), entry, portfolio)

    pos = close_position(exit_, portfolio, 0.0, END_OF_DATA)

    assert pos.pnl == pytest.approx(20)
    assert portfolio.balance == pytest.approx(1_020)


def test_close_without_position_fails(make_candles):
    with pytest.raises(ValueError):
        close_position(make_candles([100])[0], PortfolioState(1_000), 0.0, END_OF_DATA)
