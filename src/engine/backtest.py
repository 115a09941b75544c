import datetime as dt
import logging
from typing import Any, Dict

from .errors import ConfigurationError, PluginExecutionError, RiskComputationError
from .execution import (
    END_OF_DATA,
    close_position,
    close_reason,
    open_position,
    stop_loss_price,
)
from .metrics import compute_metrics
from .models import NONE, SIGNALS, BacktestConfig, BacktestResult, RiskResult
from .portfolio import PortfolioState
from .registry import Registry

logger = logging.getLogger(__name__)

DEFAULT_STOP_LOSS_PERCENT = 2.0


def validate_config(config: BacktestConfig) -> None:
    if not config.data:
        raise ConfigurationError("backtest data is required", field="data")
    if config.initial_balance <= 0:
        raise ConfigurationError(
            "initial_balance must be greater than 0", field="initial_balance")
    if not 0 < config.risk_percent <= 100:
        raise ConfigurationError(
            "risk_percent must be in (0, 100]", field="risk_percent")
    if config.start_date >= config.end_date:
        raise ConfigurationError(
            "start_date must be before end_date", field="start_date")
    if config.fee_rate < 0:
        raise ConfigurationError("fee_rate must not be negative", field="fee_rate")

    stop_pct = _stop_loss_percent(config)
    if not 0 < stop_pct < 100:
        raise ConfigurationError(
            "risk_params.stop_loss_percent must be in (0, 100)",
            field="risk_params.stop_loss_percent",
        )


def run_backtest(
    config: BacktestConfig,
    strategies: Registry,
    risk_rules: Registry,
) -> BacktestResult:
    """
    Validate, resolve both plugins, then replay. Everything that can be
    checked up front is checked before the first candle is touched.
    """
    validate_config(config)
    strategy = strategies.resolve(config.strategy, dict(config.strategy_params))
    risk_rule = risk_rules.resolve(config.risk_rule, dict(config.risk_params))
    _validate_plugin_params(strategy, config.strategy_params, "strategy_params")
    _validate_plugin_params(risk_rule, config.risk_params, "risk_params")
    return simulate(strategy, risk_rule, config)


def simulate(strategy, risk_rule, config: BacktestConfig) -> BacktestResult:
    portfolio = PortfolioState(config.initial_balance)
    stop_pct = _stop_loss_percent(config)
    strategy_name = getattr(strategy, "name", None) or config.strategy
    risk_rule_name = getattr(risk_rule, "name", None) or config.risk_rule

    logger.info(
        "backtest start: strategy=%s risk_rule=%s candles=%d balance=%.2f",
        strategy_name, risk_rule_name, len(config.data), config.initial_balance,
    )

    for idx, candle in enumerate(config.data):
        if not portfolio.has_open_position:
            signal = _evaluate_strategy(strategy, strategy_name, candle, config, idx)
            if signal == NONE:
                continue

            risk_params: Dict[str, Any] = {
                **config.risk_params,
                "risk_percent": config.risk_percent,
                "entry_price": candle.price,
                "stop_loss_price": stop_loss_price(signal, candle.price, stop_pct),
            }
            risk = _size_position(
                risk_rule, risk_rule_name, signal, portfolio.balance, risk_params, idx)
            open_position(signal, risk, candle, portfolio)

        else:
            reason = close_reason(portfolio.position, candle)
            if reason is not None:
                close_position(candle, portfolio, config.fee_rate, reason)

    # Forced liquidation against the last candle
    if portfolio.has_open_position:
        close_position(config.data[-1], portfolio, config.fee_rate, END_OF_DATA)

    summary = compute_metrics(
        portfolio.trade_log, config.initial_balance, portfolio.balance)

    logger.info(
        "backtest done: strategy=%s trades=%d final_balance=%.2f return=%.2f%%",
        strategy_name, summary["total_trades"], summary["final_balance"],
        summary["total_return"],
    )

    return BacktestResult(
        trades=tuple(portfolio.trade_log),
        executed_at=dt.datetime.now(dt.timezone.utc),
        strategy_name=strategy_name,
        risk_rule_name=risk_rule_name,
        **summary,
    )


# -------------------------
# Internal helpers
# -------------------------

def _stop_loss_percent(config: BacktestConfig) -> float:
    value = config.risk_params.get("stop_loss_percent", DEFAULT_STOP_LOSS_PERCENT)
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(
            f"risk_params.stop_loss_percent must be a number, got {value!r}",
            field="risk_params.stop_loss_percent",
        ) from None


def _validate_plugin_params(plugin, params, prefix: str) -> None:
    try:
        plugin.validate_params(dict(params))
    except ConfigurationError as e:
        field = f"{prefix}.{e.field}" if e.field else prefix
        raise ConfigurationError(e.message, field=field) from None


def _evaluate_strategy(strategy, name: str, candle, config: BacktestConfig, idx: int) -> str:
    try:
        signal = strategy.evaluate(candle, dict(config.strategy_params))
    except Exception as e:
        raise PluginExecutionError(name, str(e) or type(e).__name__, index=idx) from e

    if signal is None:
        return NONE
    if signal not in SIGNALS:
        raise PluginExecutionError(name, f"invalid signal {signal!r}", index=idx)
    return signal


def _size_position(risk_rule, name: str, signal: str, balance: float,
                   params: Dict[str, Any], idx: int) -> RiskResult:
    try:
        risk = risk_rule.size(signal, balance, params)
    except RiskComputationError:
        raise
    except Exception as e:
        raise PluginExecutionError(name, str(e) or type(e).__name__, index=idx) from e

    if not isinstance(risk, RiskResult):
        raise PluginExecutionError(
            name, f"expected RiskResult, got {type(risk).__name__}", index=idx)
    if not risk.position_size > 0:
        raise RiskComputationError(
            f"non-positive position size {risk.position_size} at candle {idx}",
            field="position_size",
        )
    return risk
