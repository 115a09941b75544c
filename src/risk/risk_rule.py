from typing import Any, Dict, List

from engine.errors import ConfigurationError, InvalidRiskParameters
from engine.models import LONG, SHORT, RiskResult, as_number
from engine.registry import PluginParameter

DEFAULT_RISK_REWARD_RATIO = 2.0


class RiskRule:
    name = ""
    description = ""
    parameters: List[PluginParameter] = []

    def __init__(self, params: Dict[str, Any] | None = None):
        self.params = params or {}

    def size(
        self,
        signal: str,                  # "long" | "short"
        balance: float,
        params: Dict[str, Any],       # risk_percent, entry_price, stop_loss_price, ...
    ) -> RiskResult:
        """
        Called once per position-open event. Must not mutate instance
        state in a way that leaks into the next call.
        """
        raise NotImplementedError

    def validate_params(self, params: Dict[str, Any] | None = None) -> None:
        """
        Checked once before the first candle. Raises ConfigurationError
        with the offending key as `field`.
        """
        merged = self._merged(params)
        if "risk_reward_ratio" in merged:
            rr = as_number(merged["risk_reward_ratio"], "risk_reward_ratio")
            if rr <= 0.0:
                raise ConfigurationError(
                    f"risk_reward_ratio must be positive, got {rr}",
                    field="risk_reward_ratio",
                )

    # -------------------------
    # Shared sizing
    # -------------------------

    def _merged(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return {**self.params, **(params or {})}

    def _base_sizing(self, signal: str, balance: float, params: Dict[str, Any]) -> RiskResult:
        """
        riskAmount   = balance * riskPercent / 100
        priceDiff    = |entry - stop|
        positionSize = riskAmount / priceDiff
        takeProfit   = entry +/- priceDiff * riskRewardRatio (by direction)
        """
        if signal not in (LONG, SHORT):
            raise InvalidRiskParameters(
                f"cannot size signal {signal!r}", field="signal")

        try:
            risk_percent = float(params["risk_percent"])
            entry_price = float(params["entry_price"])
            stop_loss_price = float(params["stop_loss_price"])
        except KeyError as e:
            raise InvalidRiskParameters(
                f"missing risk parameter {e.args[0]}", field=e.args[0]) from None
        rr = float(params.get("risk_reward_ratio", DEFAULT_RISK_REWARD_RATIO))

        if not 0.0 < risk_percent <= 100.0:
            raise InvalidRiskParameters(
                f"risk_percent must be in (0, 100], got {risk_percent}",
                field="risk_percent",
            )
        if rr <= 0.0:
            raise InvalidRiskParameters(
                f"risk_reward_ratio must be positive, got {rr}",
                field="risk_reward_ratio",
            )

        price_diff = abs(entry_price - stop_loss_price)
        if price_diff == 0.0:
            raise InvalidRiskParameters(
                "entry_price equals stop_loss_price", field="stop_loss_price")

        risk_amount = balance * risk_percent / 100.0
        position_size = risk_amount / price_diff

        if signal == LONG:
            take_profit = entry_price + price_diff * rr
        else:
            take_profit = entry_price - price_diff * rr

        return RiskResult(
            position_size=position_size,
            stop_loss=stop_loss_price,
            take_profit=take_profit,
            risk_amount=risk_amount,
            risk_percent=risk_percent,
            risk_reward_ratio=rr,
        )
