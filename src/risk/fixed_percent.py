from typing import Any, Dict

from engine.models import RiskResult
from engine.registry import PluginParameter
from .risk_rule import DEFAULT_RISK_REWARD_RATIO, RiskRule


class FixedPercentRiskRule(RiskRule):
    """
    Risk a fixed share of the balance between entry and stop; the target
    sits risk_reward_ratio stop-distances away on the winning side.
    """

    name = "fixed_percent"
    description = "Risk a fixed percent of balance per trade, target at R multiples."
    parameters = [
        PluginParameter("stop_loss_percent", "number",
                        "Stop distance from entry, percent of entry price.", 2.0),
        PluginParameter("risk_reward_ratio", "number",
                        "Take-profit distance as a multiple of the stop distance.",
                        DEFAULT_RISK_REWARD_RATIO),
    ]

    def size(self, signal: str, balance: float, params: Dict[str, Any]) -> RiskResult:
        return self._base_sizing(signal, balance, self._merged(params))
