from __future__ import annotations

import argparse
import json
import sys
from typing import Any, Dict, List, Optional

from app.logging_setup import setup_logging
from app.settings import Settings
from data.market_data import load_market_data_csv
from data.results_store import ResultStore
from engine.backtest import run_backtest
from engine.errors import BacktestError, ConfigurationError
from engine.models import BacktestConfig, parse_timestamp
from risk.registry import RISK_REGISTRY
from strategies.registry import STRATEGY_REGISTRY


def _json_arg(raw: Optional[str], name: str) -> Dict[str, Any]:
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"{name} is not valid JSON: {e}", field=name) from None
    if not isinstance(value, dict):
        raise ConfigurationError(f"{name} must be a JSON object", field=name)
    return value


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        description="Replay a CSV of candles through a strategy and risk rule."
    )
    p.add_argument("--data", required=True, help="CSV with timestamp,close[,open,high,low,volume].")
    p.add_argument("--strategy", required=True, choices=STRATEGY_REGISTRY.list_names())
    p.add_argument("--risk-rule", default="fixed_percent", choices=RISK_REGISTRY.list_names())
    p.add_argument("--initial-balance", type=float, default=10_000.0)
    p.add_argument("--risk-percent", type=float, default=2.0)
    p.add_argument("--fee-rate", type=float, default=0.0)
    p.add_argument("--strategy-params", help='JSON object, e.g. \'{"buy_below": 95}\'.')
    p.add_argument("--risk-params", help='JSON object, e.g. \'{"stop_loss_percent": 1.5}\'.')
    p.add_argument("--start", help="Run start (ISO). Defaults to the first candle.")
    p.add_argument("--end", help="Run end (ISO). Defaults to the last candle.")
    p.add_argument("--save", action="store_true", help="Persist the run to the result store.")
    p.add_argument("--trades", action="store_true", help="Include the trade ledger in the output.")
    return p.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    settings = Settings.from_env()
    setup_logging(settings.log_level, settings.log_dir, console_output=False)

    try:
        data = load_market_data_csv(args.data)
        if not data:
            raise ConfigurationError("backtest data is required", field="data")

        config = BacktestConfig(
            initial_balance=args.initial_balance,
            start_date=parse_timestamp(args.start, "start") if args.start else data[0].timestamp,
            end_date=parse_timestamp(args.end, "end") if args.end else data[-1].timestamp,
            data=data,
            strategy=args.strategy,
            strategy_params=_json_arg(args.strategy_params, "strategy_params"),
            risk_rule=args.risk_rule,
            risk_params=_json_arg(args.risk_params, "risk_params"),
            risk_percent=args.risk_percent,
            fee_rate=args.fee_rate,
        )
        result = run_backtest(config, STRATEGY_REGISTRY, RISK_REGISTRY)
    except BacktestError as e:
        print(json.dumps(e.to_dict(), indent=2), file=sys.stderr)
        return 2
    except FileNotFoundError as e:
        print(json.dumps({"error": "file_not_found", "message": str(e)}), file=sys.stderr)
        return 2

    out = result.to_dict() if args.trades else result.summary
    if args.save:
        out["run_id"] = ResultStore(settings.results_dir).save(result, config)

    print(json.dumps(out, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
