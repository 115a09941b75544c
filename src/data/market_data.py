from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable, Mapping, Tuple

import pandas as pd

from engine.errors import ConfigurationError
from engine.models import MarketDataPoint

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("timestamp", "close")


def parse_market_data(rows: Iterable[Mapping[str, Any]]) -> Tuple[MarketDataPoint, ...]:
    """
    Candles from JSON-like rows, in the order given. Ordering is the
    caller's responsibility; nothing is sorted or deduplicated here.
    """
    return tuple(
        MarketDataPoint.from_dict(row, where=f"data[{i}]")
        for i, row in enumerate(rows)
    )


def load_market_data_csv(path: str | Path) -> Tuple[MarketDataPoint, ...]:
    """
    Load candles from a CSV file.

    Columns:
      - timestamp, close       (required)
      - price                  (optional, defaults to close)
      - open, high, low, volume (optional)
    Any other column is kept in MarketDataPoint.extras.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"market data file not found: {path}")

    try:
        df = pd.read_csv(path)
    except pd.errors.EmptyDataError:
        raise ConfigurationError(f"{path.name} is empty", field="data") from None
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ConfigurationError(
            f"{path.name} is missing columns: {', '.join(missing)}", field="data")

    try:
        df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(
            f"unparseable timestamps in {path.name}: {e}", field="data.timestamp") from e
    if "price" not in df.columns:
        df["price"] = df["close"]

    rows = []
    for i, record in enumerate(df.to_dict(orient="records")):
        if _is_missing(record["timestamp"]):
            raise ConfigurationError(
                f"row {i} of {path.name} has no timestamp", field=f"data[{i}].timestamp")
        # NaN cells mean "not given"
        clean = {k: v for k, v in record.items() if not _is_missing(v)}
        clean["timestamp"] = record["timestamp"].to_pydatetime()
        rows.append(clean)

    points = parse_market_data(rows)
    logger.info("loaded %d candles from %s", len(points), path)
    return points


def _is_missing(value: Any) -> bool:
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False
