from __future__ import annotations

import datetime as dt
import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from .errors import ConfigurationError

LONG = "long"
SHORT = "short"
NONE = "none"
SIGNALS = (LONG, SHORT, NONE)

# trade actions; OPEN doubles as the open position status
OPEN = "OPEN"
CLOSE = "CLOSE"
CLOSED = "CLOSED"

_CANDLE_FIELDS = ("timestamp", "price", "volume", "open", "high", "low", "close")


def parse_timestamp(value: Any, field_name: str = "timestamp") -> dt.datetime:
    """
    Accept a datetime or an ISO-8601 string (``...Z`` or ``...+00:00``).
    Naive values are taken as UTC so every timestamp in a run compares.
    """
    if isinstance(value, dt.datetime):
        ts = value
    elif isinstance(value, dt.date):
        ts = dt.datetime(value.year, value.month, value.day)
    elif isinstance(value, str) and value:
        try:
            if value.endswith("Z"):
                ts = dt.datetime.fromisoformat(value.replace("Z", "+00:00"))
            else:
                ts = dt.datetime.fromisoformat(value)
        except ValueError:
            raise ConfigurationError(
                f"invalid timestamp {value!r}", field=field_name) from None
    else:
        raise ConfigurationError(
            f"invalid timestamp {value!r}", field=field_name)

    if ts.tzinfo is None:
        return ts.replace(tzinfo=dt.timezone.utc)
    return ts.astimezone(dt.timezone.utc)


def as_number(value: Any, field_name: str) -> float:
    if isinstance(value, bool):
        raise ConfigurationError(f"{field_name} must be a number", field=field_name)
    try:
        out = float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(
            f"{field_name} must be a number, got {value!r}", field=field_name) from None
    if math.isnan(out) or math.isinf(out):
        raise ConfigurationError(f"{field_name} must be finite", field=field_name)
    return out


@dataclass(frozen=True)
class MarketDataPoint:
    timestamp: dt.datetime
    price: float
    volume: float = 0.0
    open: float = 0.0
    high: float = 0.0
    low: float = 0.0
    close: float = 0.0
    extras: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any], where: str = "data") -> MarketDataPoint:
        if not isinstance(raw, Mapping):
            raise ConfigurationError(f"{where} must be an object", field=where)

        price = raw.get("price", raw.get("close"))
        if price is None:
            raise ConfigurationError(
                f"{where} needs a price or close", field=f"{where}.price")
        price = as_number(price, f"{where}.price")

        def _opt(key: str, default: float) -> float:
            value = raw.get(key)
            return default if value is None else as_number(value, f"{where}.{key}")

        return cls(
            timestamp=parse_timestamp(raw.get("timestamp"), f"{where}.timestamp"),
            price=price,
            volume=_opt("volume", 0.0),
            open=_opt("open", price),
            high=_opt("high", price),
            low=_opt("low", price),
            close=_opt("close", price),
            extras=MappingProxyType(
                {k: v for k, v in raw.items() if k not in _CANDLE_FIELDS}),
        )


@dataclass(frozen=True)
class BacktestConfig:
    initial_balance: float
    start_date: dt.datetime
    end_date: dt.datetime
    data: Tuple[MarketDataPoint, ...]
    strategy: str
    risk_rule: str
    risk_percent: float
    strategy_params: Mapping[str, Any] = field(default_factory=dict)
    risk_params: Mapping[str, Any] = field(default_factory=dict)
    fee_rate: float = 0.0

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> BacktestConfig:
        if not isinstance(payload, Mapping):
            raise ConfigurationError("config must be a JSON object")

        for key in ("initial_balance", "start_date", "end_date",
                    "strategy", "risk_rule", "risk_percent"):
            if payload.get(key) is None:
                raise ConfigurationError(f"{key} is required", field=key)

        rows = payload.get("data")
        if not isinstance(rows, list):
            raise ConfigurationError("data must be a list of candles", field="data")

        strategy_params = payload.get("strategy_params") or {}
        risk_params = payload.get("risk_params") or {}
        for key, value in (("strategy_params", strategy_params),
                           ("risk_params", risk_params)):
            if not isinstance(value, Mapping):
                raise ConfigurationError(f"{key} must be an object", field=key)

        fee_rate = payload.get("fee_rate")
        return cls(
            initial_balance=as_number(payload["initial_balance"], "initial_balance"),
            start_date=parse_timestamp(payload["start_date"], "start_date"),
            end_date=parse_timestamp(payload["end_date"], "end_date"),
            data=tuple(
                MarketDataPoint.from_dict(row, where=f"data[{i}]")
                for i, row in enumerate(rows)
            ),
            strategy=str(payload["strategy"]),
            risk_rule=str(payload["risk_rule"]),
            risk_percent=as_number(payload["risk_percent"], "risk_percent"),
            strategy_params=dict(strategy_params),
            risk_params=dict(risk_params),
            fee_rate=0.0 if fee_rate is None else as_number(fee_rate, "fee_rate"),
        )

    def to_dict(self, include_data: bool = False) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "initial_balance": self.initial_balance,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "strategy": self.strategy,
            "strategy_params": dict(self.strategy_params),
            "risk_rule": self.risk_rule,
            "risk_params": dict(self.risk_params),
            "risk_percent": self.risk_percent,
            "fee_rate": self.fee_rate,
            "num_data_points": len(self.data),
        }
        if include_data:
            out["data"] = [
                {
                    "timestamp": p.timestamp.isoformat(),
                    "price": p.price,
                    "volume": p.volume,
                    "open": p.open,
                    "high": p.high,
                    "low": p.low,
                    "close": p.close,
                    **dict(p.extras),
                }
                for p in self.data
            ]
        return out


@dataclass
class Position:
    direction: str          # "long" | "short"
    entry_price: float
    size: float
    stop_loss: float
    take_profit: float
    entry_time: dt.datetime
    entry_balance: float    # risk amount committed at entry
    status: str = OPEN
    exit_price: Optional[float] = None
    exit_time: Optional[dt.datetime] = None
    exit_balance: Optional[float] = None
    pnl: float = 0.0
    fee: float = 0.0
    exit_reason: Optional[str] = None


@dataclass(frozen=True)
class Trade:
    """
    One ledger event. `balance` is the account balance after the event:
    unchanged on OPEN, post-pnl and post-fee on CLOSE. The risk amount
    committed at entry lives on Position.entry_balance.
    """

    direction: str
    action: str             # "OPEN" | "CLOSE"
    price: float
    size: float
    timestamp: dt.datetime
    balance: float          # account balance after the event
    pnl: float = 0.0
    fee: float = 0.0
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "direction": self.direction,
            "action": self.action,
            "price": self.price,
            "size": self.size,
            "timestamp": self.timestamp.isoformat(),
            "balance": self.balance,
            "pnl": self.pnl,
            "fee": self.fee,
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> Trade:
        return cls(
            direction=raw["direction"],
            action=raw["action"],
            price=float(raw["price"]),
            size=float(raw["size"]),
            timestamp=parse_timestamp(raw["timestamp"]),
            balance=float(raw["balance"]),
            pnl=float(raw.get("pnl") or 0.0),
            fee=float(raw.get("fee") or 0.0),
            reason=raw.get("reason") or None,
        )


@dataclass(frozen=True)
class RiskResult:
    position_size: float
    stop_loss: float
    take_profit: float
    risk_amount: float
    risk_percent: float
    risk_reward_ratio: float


@dataclass(frozen=True)
class BacktestResult:
    trades: Tuple[Trade, ...]
    total_trades: int
    winning_trades: int
    losing_trades: int
    win_rate: float
    initial_balance: float
    final_balance: float
    total_return: float
    max_drawdown: float
    total_pnl: float
    total_fees: float
    executed_at: dt.datetime
    strategy_name: str
    risk_rule_name: str

    @property
    def summary(self) -> Dict[str, Any]:
        """Metrics only, no ledger."""
        out = self.to_dict()
        out.pop("trades")
        return out

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strategy_name": self.strategy_name,
            "risk_rule_name": self.risk_rule_name,
            "executed_at": self.executed_at.isoformat(),
            "initial_balance": self.initial_balance,
            "final_balance": self.final_balance,
            "total_return": self.total_return,
            "total_trades": self.total_trades,
            "winning_trades": self.winning_trades,
            "losing_trades": self.losing_trades,
            "win_rate": self.win_rate,
            "max_drawdown": self.max_drawdown,
            "total_pnl": self.total_pnl,
            "total_fees": self.total_fees,
            "trades": [t.to_dict() for t in self.trades],
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> BacktestResult:
        return cls(
            trades=tuple(Trade.from_dict(t) for t in raw.get("trades", [])),
            total_trades=int(raw["total_trades"]),
            winning_trades=int(raw["winning_trades"]),
            losing_trades=int(raw["losing_trades"]),
            win_rate=float(raw["win_rate"]),
            initial_balance=float(raw["initial_balance"]),
            final_balance=float(raw["final_balance"]),
            total_return=float(raw["total_return"]),
            max_drawdown=float(raw["max_drawdown"]),
            total_pnl=float(raw["total_pnl"]),
            total_fees=float(raw["total_fees"]),
            executed_at=parse_timestamp(raw["executed_at"], "executed_at"),
            strategy_name=raw["strategy_name"],
            risk_rule_name=raw["risk_rule_name"],
        )
