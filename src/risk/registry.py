from engine.registry import Registry
from .capped_position_size import CappedPositionSizeRule
from .fixed_percent import FixedPercentRiskRule

RISK_REGISTRY = Registry(
    "risk_rule",
    [
        FixedPercentRiskRule,
        CappedPositionSizeRule,
    ],
)
