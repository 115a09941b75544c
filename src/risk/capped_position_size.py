from dataclasses import replace
from typing import Any, Dict

from engine.errors import ConfigurationError, InvalidRiskParameters
from engine.models import RiskResult, as_number
from engine.registry import PluginParameter
from .risk_rule import DEFAULT_RISK_REWARD_RATIO, RiskRule


class CappedPositionSizeRule(RiskRule):
    """
    Fixed-percent sizing with the position notional capped to a share of
    the balance. Tight stops otherwise produce sizes far beyond what the
    account could pay for.
    """

    name = "capped_position_size"
    description = "Fixed-percent sizing with notional capped to a percent of balance."
    parameters = [
        PluginParameter("stop_loss_percent", "number",
                        "Stop distance from entry, percent of entry price.", 2.0),
        PluginParameter("risk_reward_ratio", "number",
                        "Take-profit distance as a multiple of the stop distance.",
                        DEFAULT_RISK_REWARD_RATIO),
        PluginParameter("max_position_percent", "number",
                        "Maximum notional (size * entry) as percent of balance.", 100.0),
    ]

    def validate_params(self, params: Dict[str, Any] | None = None) -> None:
        super().validate_params(params)
        merged = self._merged(params)
        if "max_position_percent" in merged:
            max_pct = as_number(merged["max_position_percent"], "max_position_percent")
            if max_pct <= 0.0:
                raise ConfigurationError(
                    f"max_position_percent must be positive, got {max_pct}",
                    field="max_position_percent",
                )

    def size(self, signal: str, balance: float, params: Dict[str, Any]) -> RiskResult:
        merged = self._merged(params)
        result = self._base_sizing(signal, balance, merged)

        max_pct = float(merged.get("max_position_percent", 100.0))
        if max_pct <= 0.0:
            raise InvalidRiskParameters(
                f"max_position_percent must be positive, got {max_pct}",
                field="max_position_percent",
            )

        entry_price = float(merged["entry_price"])
        max_size = balance * max_pct / 100.0 / entry_price if entry_price > 0 else 0.0
        if max_size <= 0.0 or result.position_size <= max_size:
            return result

        price_diff = abs(entry_price - result.stop_loss)
        return replace(
            result,
            position_size=max_size,
            risk_amount=max_size * price_diff,
        )
