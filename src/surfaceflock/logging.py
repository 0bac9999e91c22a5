"""
Logging for the surfaceflock package.

Exports:
    - logger: Global Loguru logger.
    - setup_logfile: Add a rotating file sink.
    - setup_json_logfile: Add a JSON-format file sink for machine parsing.
"""

from __future__ import annotations

from pathlib import Path

from loguru import logger

__all__ = [
    "logger",
    "setup_logfile",
    "setup_json_logfile",
]


def setup_logfile(
    log_path: Path | str,
    rotation: str = "10 MB",
    retention: str = "10 days",
    level: str = "INFO",
) -> int:
    """
    Add a rotating file sink to the global logger.

    Returns the sink id so callers can remove it with ``logger.remove``.
    """
    Path(log_path).parent.mkdir(parents=True, exist_ok=True)
    sink_id = logger.add(
        str(log_path),
        rotation=rotation,
        retention=retention,
        level=level.upper(),
        colorize=False,
        backtrace=True,
        diagnose=False,
    )
    logger.info(f"File logging initialized: {log_path}")
    return sink_id


def setup_json_logfile(log_path: Path | str, **kwargs) -> int:
    """Add a serialized (one JSON object per line) file sink."""
    sink_id = logger.add(str(log_path), serialize=True, **kwargs)
    logger.info(f"JSON logging initialized: {log_path}")
    return sink_id
