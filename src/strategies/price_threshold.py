# src/strategies/price_threshold.py

from typing import Any, Dict

from engine.models import LONG, NONE, SHORT, MarketDataPoint
from engine.registry import PluginParameter
from .strategy import Strategy


class PriceThresholdStrategy(Strategy):
    """
    Buy below a fixed level, sell short above another. Keeps no memory,
    so the signal is a pure function of the candle and params.
    """

    name = "price_threshold"
    description = "Long at or below buy_below, short at or above sell_above."
    parameters = [
        PluginParameter("buy_below", "number", "Go long when price <= this level."),
        PluginParameter("sell_above", "number", "Go short when price >= this level."),
    ]

    def evaluate(
        self,
        candle: MarketDataPoint,
        params: Dict[str, Any] | None = None,
    ) -> str:
        buy_below = self._param(params, "buy_below", None)
        sell_above = self._param(params, "sell_above", None)

        if buy_below is not None and candle.price <= float(buy_below):
            return LONG
        if sell_above is not None and candle.price >= float(sell_above):
            return SHORT
        return NONE
