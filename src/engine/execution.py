import logging
from typing import Optional

from .models import (
    CLOSE,
    CLOSED,
    LONG,
    OPEN,
    SHORT,
    MarketDataPoint,
    Position,
    RiskResult,
    Trade,
)
from .portfolio import PortfolioState

logger = logging.getLogger(__name__)

STOP_LOSS = "stop_loss"
TAKE_PROFIT = "take_profit"
END_OF_DATA = "end_of_data"


def stop_loss_price(signal: str, entry_price: float, stop_loss_percent: float) -> float:
    """
    Stop level a fixed percentage away from the entry, on the losing side.
    """
    offset = entry_price * stop_loss_percent / 100.0
    if signal == LONG:
        return entry_price - offset
    if signal == SHORT:
        return entry_price + offset
    raise ValueError(f"no stop for signal {signal!r}")


def calc_fee(fee_rate: float, size: float, entry_price: float, exit_price: float) -> float:
    """
    Flat fee on the notional of both legs:
      fee = fee_rate * size * (entry + exit)
    """
    return fee_rate * size * (entry_price + exit_price)


def open_position(
    signal: str,
    risk: RiskResult,
    candle: MarketDataPoint,
    portfolio: PortfolioState,
) -> Position:
    if portfolio.position is not None:
        raise ValueError("a position is already open")

    # fill at the evaluated candle price, not at any signal price
    pos = Position(
        direction=signal,
        entry_price=candle.price,
        size=risk.position_size,
        stop_loss=risk.stop_loss,
        take_profit=risk.take_profit,
        entry_time=candle.timestamp,
        entry_balance=risk.risk_amount,
    )
    portfolio.position = pos

    portfolio.trade_log.append(
        Trade(
            direction=signal,
            action=OPEN,
            price=pos.entry_price,
            size=pos.size,
            timestamp=candle.timestamp,
            balance=portfolio.balance,
        )
    )
    logger.debug(
        "open %s size=%.6f @ %.6f sl=%.6f tp=%.6f",
        signal, pos.size, pos.entry_price, pos.stop_loss, pos.take_profit,
    )
    return pos


def close_reason(position: Position, candle: MarketDataPoint) -> Optional[str]:
    """
    Which exit, if any, the candle price triggers. Stop-loss wins when
    both levels are crossed by the same price.
    """
    price = candle.price
    if position.direction == LONG:
        if price <= position.stop_loss:
            return STOP_LOSS
        if price >= position.take_profit:
            return TAKE_PROFIT
    else:
        if price >= position.stop_loss:
            return STOP_LOSS
        if price <= position.take_profit:
            return TAKE_PROFIT
    return None


def close_position(
    candle: MarketDataPoint,
    portfolio: PortfolioState,
    fee_rate: float,
    reason: str,
) -> Position:
    pos = portfolio.position
    if pos is None:
        raise ValueError("no open position to close")
    if pos.status == CLOSED:
        raise ValueError("position already closed")

    exit_price = candle.price
    if pos.direction == LONG:
        pnl = (exit_price - pos.entry_price) * pos.size
    else:
        pnl = (pos.entry_price - exit_price) * pos.size
    fee = calc_fee(fee_rate, pos.size, pos.entry_price, exit_price)

    portfolio.balance = portfolio.balance + pnl - fee

    pos.status = CLOSED
    pos.exit_price = exit_price
    pos.exit_time = candle.timestamp
    pos.exit_balance = portfolio.balance
    pos.pnl = pnl
    pos.fee = fee
    pos.exit_reason = reason
    portfolio.position = None

    portfolio.trade_log.append(
        Trade(
            direction=pos.direction,
            action=CLOSE,
            price=exit_price,
            size=pos.size,
            timestamp=candle.timestamp,
            balance=portfolio.balance,
            pnl=pnl,
            fee=fee,
            reason=reason,
        )
    )
    logger.debug(
        "close %s (%s) @ %.6f pnl=%.6f fee=%.6f balance=%.6f",
        pos.direction, reason, exit_price, pnl, fee, portfolio.balance,
    )
    return pos
