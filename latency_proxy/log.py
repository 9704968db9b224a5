# latency_proxy/log.py
from __future__ import annotations

import json
import sys
from datetime import datetime, timezone
from pathlib import Path

from loguru import logger

ACCESS_LOG = "service.log"


def setup_logging(log_dir: Path, debug: bool = False) -> None:
    """stderr for the service log, one JSON line per HTTP request in <log_dir>/service.log"""
    log_dir.mkdir(parents=True, exist_ok=True)
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if debug else "INFO",
               filter=lambda r: "access" not in r["extra"])
    logger.add(log_dir / ACCESS_LOG, level="INFO", format="{message}",
               filter=lambda r: "access" in r["extra"])


def log_request(**fields) -> None:
    entry = {"timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")}
    entry.update(fields)
    logger.bind(access=True).info(json.dumps(entry))
