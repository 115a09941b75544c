# src/strategies/rsi_macd.py

from collections import deque
from typing import Any, Dict, Tuple

import pandas as pd

from engine.errors import ConfigurationError
from engine.models import LONG, NONE, SHORT, MarketDataPoint, as_number
from engine.registry import PluginParameter
from .strategy import Strategy


class RsiMacdStrategy(Strategy):
    """
    Oversold RSI with a positive MACD goes long; overbought RSI with a
    negative MACD goes short.

    If the candle carries precomputed `rsi` and `macd` extras those are
    used as-is. Otherwise the strategy keeps a rolling window of closes
    (`lookback` candles) in self.state and computes both indicators from
    it. Only candles seen while flat enter the window, because the engine
    does not consult the strategy while a position is open. Until
    `macd_slow` closes are collected it stays flat.
    """

    name = "rsi_macd"
    description = "RSI oversold/overbought filtered by MACD sign."
    parameters = [
        PluginParameter("rsi_period", "number", "RSI smoothing period.", 14),
        PluginParameter("macd_fast", "number", "Fast EMA span for MACD.", 12),
        PluginParameter("macd_slow", "number", "Slow EMA span for MACD.", 26),
        PluginParameter("oversold", "number", "RSI level below which to buy.", 30),
        PluginParameter("overbought", "number", "RSI level above which to sell.", 70),
        PluginParameter("lookback", "number", "Closes kept for indicators.", 200),
    ]

    def __init__(self, params: Dict[str, Any] | None = None):
        super().__init__(params)
        self.state.setdefault("closes", deque())

    def validate_params(self, params: Dict[str, Any] | None = None) -> None:
        for key, default in (("rsi_period", 14), ("macd_fast", 12),
                             ("macd_slow", 26), ("lookback", 200)):
            value = as_number(self._param(params, key, default), key)
            if int(value) <= 0:
                raise ConfigurationError(f"{key} must be positive, got {value}", field=key)
        for key, default in (("oversold", 30), ("overbought", 70)):
            as_number(self._param(params, key, default), key)

    # -------------------------
    # Indicators
    # -------------------------

    def _indicators(
        self,
        candle: MarketDataPoint,
        params: Dict[str, Any] | None,
    ) -> Tuple[float, float] | None:
        rsi = candle.extras.get("rsi")
        macd = candle.extras.get("macd")
        if rsi is not None and macd is not None:
            return float(rsi), float(macd)

        lookback = int(self._param(params, "lookback", 200))
        closes: deque = self.state["closes"]
        if closes.maxlen != lookback:
            closes = self.state["closes"] = deque(closes, maxlen=lookback)
        closes.append(candle.close)

        rsi_period = int(self._param(params, "rsi_period", 14))
        fast = int(self._param(params, "macd_fast", 12))
        slow = int(self._param(params, "macd_slow", 26))
        if len(closes) < max(slow, rsi_period + 1):
            return None

        series = pd.Series(list(closes), dtype=float)

        delta = series.diff().dropna()
        gain = delta.clip(lower=0.0).ewm(alpha=1.0 / rsi_period, adjust=False).mean().iloc[-1]
        loss = (-delta.clip(upper=0.0)).ewm(alpha=1.0 / rsi_period, adjust=False).mean().iloc[-1]
        if loss == 0.0:
            rsi_value = 100.0 if gain > 0.0 else 50.0
        else:
            rsi_value = 100.0 - 100.0 / (1.0 + gain / loss)

        macd_value = (
            series.ewm(span=fast, adjust=False).mean().iloc[-1]
            - series.ewm(span=slow, adjust=False).mean().iloc[-1]
        )
        return float(rsi_value), float(macd_value)

    # -------------------------
    # Strategy interface
    # -------------------------

    def evaluate(
        self,
        candle: MarketDataPoint,
        params: Dict[str, Any] | None = None,
    ) -> str:
        values = self._indicators(candle, params)
        if values is None:
            return NONE

        rsi, macd = values
        oversold = float(self._param(params, "oversold", 30))
        overbought = float(self._param(params, "overbought", 70))

        if rsi < oversold and macd > 0:
            return LONG
        if rsi > overbought and macd < 0:
            return SHORT
        return NONE
