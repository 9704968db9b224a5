"""
poller.py — one INFO STREAMS exchange against one SeedLink server.
"""
from __future__ import annotations

import socket
import time
from typing import List

from loguru import logger

from .decoder import decode_payload
from .errors import ConnectionFailed, IncompleteResponse
from .framer import RecordFramer
from .models import LatencyRecord, ServerEndpoint

INFO_REQUEST = b"INFO STREAMS\r\n"
RECV_SIZE = 8192
MAX_RECORDS = 10000  # ~5 MB of INFO text


def poll_server(endpoint: ServerEndpoint, connect_timeout: float = 5.0,
                read_timeout: float = 10.0) -> List[LatencyRecord]:
    """
    Connect, request INFO STREAMS, frame the response and decode it.
    `read_timeout` bounds the whole read phase, not each recv().
    Raises a PollError subclass on any failure; there is no retry.
    """
    framer = RecordFramer()
    try:
        with socket.create_connection((endpoint.host, endpoint.port), timeout=connect_timeout) as sock:
            sock.sendall(INFO_REQUEST)
            deadline = time.monotonic() + read_timeout
            while not framer.complete:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise IncompleteResponse(
                        f"{endpoint}: no terminal SLINFO record within {read_timeout:g}s "
                        f"({len(framer.payloads)} record(s) received)"
                    )
                sock.settimeout(remaining)
                chunk = sock.recv(RECV_SIZE)
                if not chunk:
                    break
                framer.feed(chunk)
                if len(framer.payloads) > MAX_RECORDS and not framer.complete:
                    raise IncompleteResponse(f"{endpoint}: more than {MAX_RECORDS} INFO records")
    except (OSError, ValueError) as e:  # refused, reset, timeouts; bad host names (UnicodeError)
        raise ConnectionFailed(f"{endpoint}: {e}") from e

    if not framer.complete:
        raise IncompleteResponse(
            f"{endpoint}: connection closed after {len(framer.payloads)} record(s) "
            "without a terminal SLINFO record"
        )

    logger.debug("{}: {} INFO record(s) received", endpoint, len(framer.payloads))
    return decode_payload(framer.payloads)
