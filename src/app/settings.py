import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env from repo root
load_dotenv()

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    results_dir: Path = Path("src/data/backtest_runs")
    log_level: str = "INFO"
    log_dir: Path = Path("logs")
    debug: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            results_dir=Path(os.environ.get("BACKTEST_RESULTS_DIR", "src/data/backtest_runs")),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
            log_dir=Path(os.environ.get("LOG_DIR", "logs")),
            debug=os.environ.get("FLASK_DEBUG", "").strip().lower() in _TRUTHY,
        )
