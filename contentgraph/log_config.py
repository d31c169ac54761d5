"""Logging configuration for contentgraph.

One loguru setup shared by every module: a colourised stderr sink filtered
per component, and a rotating DEBUG file sink under ~/.contentgraph/logs
(or CONTENTGRAPH_LOG_DIR).

Levels:
- CONTENTGRAPH_LOG_LEVEL: default for everything (INFO)
- CONTENTGRAPH_LOG_SYNC: incremental and full sync ("sync.*" loggers)
- CONTENTGRAPH_LOG_QUERIES: graph query layer
- CONTENTGRAPH_LOG_ANALYTICS: analytics engine
"""

import os
import sys
from contextlib import contextmanager
from pathlib import Path
from time import perf_counter

from loguru import logger

_default_level = os.getenv("CONTENTGRAPH_LOG_LEVEL", "INFO").upper()

# Keyed by the first dotted segment of a logger name
_component_levels = {
    "sync": os.getenv("CONTENTGRAPH_LOG_SYNC", "").upper(),
    "queries": os.getenv("CONTENTGRAPH_LOG_QUERIES", "").upper(),
    "analytics": os.getenv("CONTENTGRAPH_LOG_ANALYTICS", "").upper(),
}


def _level_for(name: str) -> str:
    return _component_levels.get(name.split(".", 1)[0]) or _default_level


def _stderr_filter(record) -> bool:
    try:
        return record["level"].no >= logger.level(_level_for(record["extra"].get("name", ""))).no
    except ValueError:
        # Unknown level name in the environment
        return True


logger.remove()
logger.configure(extra={"name": "contentgraph"})

logger.add(
    sys.stderr,
    level=0,
    filter=_stderr_filter,
    format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{extra[name]}</cyan> - <level>{message}</level>",
    colorize=True,
)

_log_dir = Path(os.getenv("CONTENTGRAPH_LOG_DIR", str(Path.home() / ".contentgraph" / "logs")))
_log_dir.mkdir(parents=True, exist_ok=True)

logger.add(
    _log_dir / "contentgraph_{time:YYYY-MM-DD}.log",
    level="DEBUG",
    format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {extra[name]}:{function}:{line} | {message}",
    rotation="10 MB",
    retention="7 days",
    compression="zip",
    enqueue=True,
)


def get_logger(name: str):
    """Logger bound to a component name (e.g. "sync.full")."""
    return logger.bind(name=name)


@contextmanager
def log_timing(operation: str, log, level: str = "debug"):
    """Log how long the block took, whether or not it raised.

    Args:
        operation: Label used in the message
        log: Bound logger from get_logger
        level: Level of the timing message
    """
    start = perf_counter()
    try:
        yield
    finally:
        log.log(level.upper(), f"{operation}: {(perf_counter() - start) * 1000:.1f}ms")


__all__ = ["logger", "get_logger", "log_timing"]
