"""Process-wide logging configuration with rotation."""
import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def setup_logging(
    log_level: str = "INFO",
    logs_dir: Optional[Path] = None,
    console_output: bool = True,
) -> logging.Logger:
    """
    Configure the root logger once per process.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        logs_dir: directory for backtest.log; 'logs/' under cwd if None
        console_output: also log to stdout

    Returns:
        The root logger
    """
    logs_dir = Path(logs_dir) if logs_dir is not None else Path.cwd() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger()
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    log_file = logs_dir / "backtest.log"
    file_handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=5 * 1024 * 1024,  # 5 MB
        backupCount=3,
        encoding="utf-8",
        delay=True,
    )
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    logger.info("logging initialized at %s, file %s", log_level, log_file)
    return logger
