from collections import deque
from typing import Any, Dict

import numpy as np

from engine.errors import ConfigurationError
from engine.models import LONG, NONE, SHORT, MarketDataPoint, as_number
from engine.registry import PluginParameter
from .strategy import Strategy


class SmaCrossoverStrategy(Strategy):
    """
    Trade the cross of a fast and a slow simple moving average of closes.

    Stateful: remembers the last `slow` closes and the previous fast-slow
    spread in self.state. The window only advances on candles the engine
    shows it, i.e. while flat.
    """

    name = "sma_crossover"
    description = "Long when the fast SMA crosses above the slow SMA, short on the opposite cross."
    parameters = [
        PluginParameter("fast", "number", "Fast SMA length.", 5),
        PluginParameter("slow", "number", "Slow SMA length.", 20),
    ]

    def __init__(self, params: Dict[str, Any] | None = None):
        super().__init__(params)
        self.state.setdefault("closes", deque())
        self.state.setdefault("last_spread", None)

    def validate_params(self, params: Dict[str, Any] | None = None) -> None:
        fast = as_number(self._param(params, "fast", 5), "fast")
        slow = as_number(self._param(params, "slow", 20), "slow")
        if int(fast) <= 0:
            raise ConfigurationError(f"fast must be positive, got {fast}", field="fast")
        if int(slow) <= int(fast):
            raise ConfigurationError(
                f"slow must be longer than fast, got fast={fast} slow={slow}", field="slow")

    def evaluate(
        self,
        candle: MarketDataPoint,
        params: Dict[str, Any] | None = None,
    ) -> str:
        fast = int(self._param(params, "fast", 5))
        slow = int(self._param(params, "slow", 20))
        if fast <= 0 or slow <= fast:
            raise ValueError(f"need 0 < fast < slow, got fast={fast} slow={slow}")

        closes: deque = self.state["closes"]
        closes.append(candle.close)
        while len(closes) > slow:
            closes.popleft()
        if len(closes) < slow:
            return NONE

        window = np.asarray(closes, dtype=float)
        spread = float(window[-fast:].mean() - window.mean())

        prev = self.state["last_spread"]
        self.state["last_spread"] = spread
        if prev is None:
            return NONE

        if prev <= 0.0 < spread:
            return LONG
        if prev >= 0.0 > spread:
            return SHORT
        return NONE
