# src/app/backtests.py

import datetime as dt
import logging

from flask import Blueprint, current_app, jsonify, request

from engine.backtest import run_backtest
from engine.errors import BacktestError, ConfigurationError
from engine.models import BacktestConfig, parse_timestamp
from risk.registry import RISK_REGISTRY
from strategies.registry import STRATEGY_REGISTRY

logger = logging.getLogger(__name__)

bp = Blueprint("backtests", __name__)


def _store():
    return current_app.config["RESULT_STORE"]


def _parse_query_date(name: str, end_of_day: bool = False):
    """
    YYYY-MM-DD (whole day) or a full ISO timestamp; None when absent.
    """
    raw = request.args.get(name)
    if not raw:
        return None
    ts = parse_timestamp(raw, name)
    if end_of_day and len(raw) == 10:
        ts = ts + dt.timedelta(days=1) - dt.timedelta(microseconds=1)
    return ts


@bp.errorhandler(BacktestError)
def _backtest_error(e: BacktestError):
    logger.warning("request failed: %s", e.to_dict())
    return jsonify(e.to_dict()), 400


@bp.route("/backtests", methods=["POST"])
def create_backtest():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ConfigurationError("request body must be a JSON object")

    config = BacktestConfig.from_dict(data)
    result = run_backtest(config, STRATEGY_REGISTRY, RISK_REGISTRY)

    # Persist full run to disk
    run_id = _store().save(result, config)

    # Return only light summary + metadata
    response = {
        "run_id": run_id,
        "strategy": config.strategy,
        "risk_rule": config.risk_rule,
        "summary": result.summary,
        "num_trades": len(result.trades),
    }
    return jsonify(response)


@bp.route("/backtests", methods=["GET"])
def list_backtests():
    start = _parse_query_date("start") or dt.datetime(1970, 1, 1, tzinfo=dt.timezone.utc)
    end = _parse_query_date("end", end_of_day=True) or dt.datetime.now(dt.timezone.utc)
    if start > end:
        raise ConfigurationError("start must not be after end", field="start")

    runs = _store().list_runs(start, end)
    return jsonify([{"run_id": run_id, **result.summary} for run_id, result in runs])


@bp.route("/backtests/<run_id>", methods=["GET"])
def get_backtest(run_id: str):
    result = _store().find_by_id(run_id)
    if result is None:
        return jsonify({"error": "not_found", "message": f"no backtest run {run_id!r}"}), 404

    body = result.to_dict()
    body["run_id"] = run_id
    body["config"] = _store().load_config(run_id)
    return jsonify(body)


@bp.route("/strategies", methods=["GET"])
def list_strategies():
    return jsonify(STRATEGY_REGISTRY.describe())


@bp.route("/risk-rules", methods=["GET"])
def list_risk_rules():
    return jsonify(RISK_REGISTRY.describe())
