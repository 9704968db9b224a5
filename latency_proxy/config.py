# Central configuration. Every value can be overridden from the environment (Docker).
from __future__ import annotations

import os
from pathlib import Path
from typing import Tuple

from .models import ServerEndpoint


def _flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def parse_servers(value: str) -> Tuple[ServerEndpoint, ...]:
    """'host:port,host:port' -> tuple of endpoints (empty items ignored)."""
    return tuple(ServerEndpoint.parse(s) for s in value.split(",") if s.strip())


NAME = "SeedLink Latency API"

# ---- HTTP service ----
HOST = os.environ.get("SERVICE_HOST", "0.0.0.0")
PORT = int(os.environ.get("SERVICE_PORT", "8087"))
CORS = _flag("CORS", True)
DEBUG = _flag("DEBUG", False)          # include tracebacks in 400 responses

# ---- SeedLink servers ----
# Example: "rtserve.iris.washington.edu:18000,geofon.gfz-potsdam.de:18000"
SERVERS = parse_servers(os.environ.get("SEEDLINK_SERVERS", "rtserve.iris.washington.edu:18000"))

# ---- Refresh ----
REFRESH_INTERVAL = float(os.environ.get("REFRESH_INTERVAL", "30"))   # s, from end of previous cycle
CONNECT_TIMEOUT = float(os.environ.get("CONNECT_TIMEOUT", "5"))
READ_TIMEOUT = float(os.environ.get("READ_TIMEOUT", "10"))           # whole read phase
POLL_WORKERS = int(os.environ.get("POLL_WORKERS", "1"))              # 1 = sequential
SORT_LATENCIES = _flag("SORT_LATENCIES", True)

# ---- Logs ----
LOG_DIR = Path(os.environ.get("LOG_DIR", "logs")).resolve()
