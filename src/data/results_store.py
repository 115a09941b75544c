from __future__ import annotations

import csv
import datetime as dt
import json
import logging
import os
import re
import shutil
import threading
import uuid
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from engine.errors import ConfigurationError
from engine.models import BacktestConfig, BacktestResult, Trade, parse_timestamp

logger = logging.getLogger(__name__)

TRADE_FIELDS = ["timestamp", "direction", "action", "price", "size",
                "balance", "pnl", "fee", "reason"]

_RUN_ID_RE = re.compile(r"^[0-9A-Za-z_-]+$")


class ResultStore:
    """
    Persist each backtest run under:

      <base_dir>/<run_id>/

    Files:
      - summary.json   (metrics + run metadata)
      - config.json    (what was run, candles omitted)
      - trades.csv     (full trade ledger)
    """

    def __init__(self, base_dir: str | Path):
        self.base_dir = Path(base_dir)
        self._lock = threading.Lock()

    def save(self, result: BacktestResult, config: BacktestConfig | None = None) -> str:
        self.base_dir.mkdir(parents=True, exist_ok=True)

        with self._lock:
            run_id = self._new_run_id(result.executed_at)
            staging = self.base_dir / f".{run_id}.tmp"
            staging.mkdir()

        # Files are written to a hidden staging dir and renamed into place,
        # so readers only ever see complete runs.
        try:
            self._write_run(staging, result, config)
            os.replace(staging, self.base_dir / run_id)
        except BaseException:
            shutil.rmtree(staging, ignore_errors=True)
            raise

        logger.info("saved backtest run %s (%d trades)", run_id, len(result.trades))
        return run_id

    def find_by_id(self, run_id: str) -> Optional[BacktestResult]:
        if not run_id or not _RUN_ID_RE.match(run_id):
            return None
        return self._load(self.base_dir / run_id)

    def find_by_date_range(self, start: dt.datetime, end: dt.datetime) -> List[BacktestResult]:
        """Runs executed within [start, end], most recent first."""
        return [result for _, result in self.list_runs(start, end)]

    def list_runs(self, start: dt.datetime, end: dt.datetime) -> List[Tuple[str, BacktestResult]]:
        """Same as find_by_date_range, paired with each run_id."""
        start = parse_timestamp(start, "start")
        end = parse_timestamp(end, "end")
        if not self.base_dir.exists():
            return []

        matches = []
        for run_dir in self.base_dir.iterdir():
            if run_dir.name.startswith("."):
                continue
            result = self._load(run_dir)
            if result is not None and start <= result.executed_at <= end:
                matches.append((result.executed_at, run_dir.name, result))

        matches.sort(key=lambda m: (m[0], m[1]), reverse=True)
        return [(run_id, result) for _, run_id, result in matches]

    def load_config(self, run_id: str) -> Optional[Dict[str, Any]]:
        if not run_id or not _RUN_ID_RE.match(run_id):
            return None
        path = self.base_dir / run_id / "config.json"
        if not path.exists():
            return None
        with open(path, "r") as f:
            return json.load(f)

    # -------------------------
    # Internal helpers
    # -------------------------

    def _new_run_id(self, executed_at: dt.datetime) -> str:
        # UTC timestamp, filesystem-safe (no colons), plus a random suffix
        stamp = executed_at.astimezone(dt.timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
        while True:
            run_id = f"{stamp}_{uuid.uuid4().hex[:8]}"
            taken = (self.base_dir / run_id, self.base_dir / f".{run_id}.tmp")
            if not any(p.exists() for p in taken):
                return run_id

    def _write_run(self, run_dir: Path, result: BacktestResult,
                   config: BacktestConfig | None) -> None:
        # 1) summary.json
        with open(run_dir / "summary.json", "w") as f:
            json.dump(result.summary, f, indent=2)

        # 2) config.json
        with open(run_dir / "config.json", "w") as f:
            json.dump(config.to_dict() if config else {}, f, indent=2)

        # 3) trades.csv
        with open(run_dir / "trades.csv", "w", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=TRADE_FIELDS)
            writer.writeheader()
            for t in result.trades:
                row = t.to_dict()
                row["reason"] = row["reason"] or ""
                writer.writerow({k: row[k] for k in TRADE_FIELDS})

    def _load(self, run_dir: Path) -> Optional[BacktestResult]:
        """
        Rebuild a stored run, or None when any of its files is missing or
        unreadable, or the ledger does not match the summary.
        """
        summary_path = run_dir / "summary.json"
        trades_path = run_dir / "trades.csv"
        if not summary_path.is_file() or not trades_path.is_file():
            return None

        try:
            with open(summary_path, "r") as f:
                result = BacktestResult.from_dict(json.load(f))
            with open(trades_path, "r", newline="") as f:
                trades = tuple(Trade.from_dict(row) for row in csv.DictReader(f))
        except (ValueError, KeyError, TypeError, ConfigurationError) as e:
            logger.warning("skipping unreadable run %s: %s", run_dir.name, e)
            return None

        if len(trades) != 2 * result.total_trades:
            logger.warning(
                "skipping run %s: %d ledger rows for %d trades",
                run_dir.name, len(trades), result.total_trades,
            )
            return None
        return replace(result, trades=trades)
