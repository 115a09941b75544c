from engine.registry import Registry
from .price_threshold import PriceThresholdStrategy
from .rsi_macd import RsiMacdStrategy
from .sma_crossover import SmaCrossoverStrategy

STRATEGY_REGISTRY = Registry(
    "strategy",
    [
        PriceThresholdStrategy,
        RsiMacdStrategy,
        SmaCrossoverStrategy,
    ],
)
