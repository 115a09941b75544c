from typing import Any, Dict, List

from engine.models import MarketDataPoint
from engine.registry import PluginParameter


class Strategy:
    name = ""
    description = ""
    parameters: List[PluginParameter] = []

    def __init__(self, params: Dict[str, Any] | None = None):
        self.params = params or {}
        self.state: Dict[str, Any] = {}  # optional internal memory

    def evaluate(
        self,
        candle: MarketDataPoint,
        params: Dict[str, Any] | None = None,
    ) -> str:
        """
        Called once per candle, only while no position is open.
        Should return "long", "short" or "none".

        Strategies that keep memory in self.state must document their
        window; the engine gives each run its own instance.
        """
        raise NotImplementedError

    def validate_params(self, params: Dict[str, Any] | None = None) -> None:
        """
        Checked once before the first candle. Override to reject bad
        parameters up front with a ConfigurationError naming the key.
        """

    def _param(self, params: Dict[str, Any] | None, key: str, default: Any) -> Any:
        if params and key in params:
            return params[key]
        return self.params.get(key, default)
