#!/usr/bin/env python3
"""
simulator.py — tiny SeedLink stand-in that only answers INFO STREAMS.
--------------------------------------------------------------------
The XML status document is written as ASCII miniSEED (512-byte records) with
ObsPy, each record behind an 8-byte "SLINFO *" header, the last one behind
"SLINFO  ". Any other command closes the connection.

    python -m latency_proxy.simulator --port 18000 --stream GE.MARCO..HHZ --stream NL.HGN.02.BHZ
"""
from __future__ import annotations

import argparse
import signal
import socket
import threading
from dataclasses import dataclass
from io import BytesIO
from typing import List, Optional, Sequence

import numpy as np
from loguru import logger
from lxml import etree
from obspy import Stream, Trace, UTCDateTime

from .framer import PAYLOAD_SIZE, TERMINAL_TAG

MORE_TAG = b"SLINFO *"
SL_TIME = "%Y/%m/%d %H:%M:%S.%f"


@dataclass
class StreamStatus:
    net: str
    sta: str
    loc: str
    cha: str
    type: str = "D"
    lag: float = 5.0                      # seconds behind "now" when not pinned
    end: Optional[UTCDateTime] = None     # pinned end time


def parse_stream(s: str, lag: float = 5.0) -> StreamStatus:
    net, sta, loc, cha = s.split(".")
    return StreamStatus(net, sta, loc, cha, lag=lag)


def sl_time(t: UTCDateTime) -> str:
    return t.strftime(SL_TIME)[:-2]  # SeedLink prints 4 fractional digits


def info_streams_xml(streams: Sequence[StreamStatus], now: Optional[UTCDateTime] = None) -> bytes:
    now = now if now is not None else UTCDateTime()
    root = etree.Element("seedlink", software="latency_proxy simulator",
                         organization="simulator", started=sl_time(now))
    stations = {}
    for s in streams:
        key = (s.net, s.sta)
        if key not in stations:
            stations[key] = etree.SubElement(root, "station", name=s.sta, network=s.net,
                                             description="simulated", stream_check="enabled")
        end = s.end if s.end is not None else now - s.lag
        etree.SubElement(stations[key], "stream", location=s.loc, seedname=s.cha, type=s.type,
                         begin_time=sl_time(end - 86400), end_time=sl_time(end))
    return etree.tostring(root, xml_declaration=True, encoding="UTF-8")


def pack_info_records(xml: bytes) -> bytes:
    """XML -> concatenated 520-byte SeedLink INFO records."""
    data = np.frombuffer(xml, dtype="|S1").copy()
    tr = Trace(data=data, header={"network": "XX", "station": "INFO", "location": "", "channel": "LOG"})
    buf = BytesIO()
    Stream([tr]).write(buf, format="MSEED", reclen=PAYLOAD_SIZE, encoding="ASCII")
    raw = buf.getvalue()

    recs = [raw[i:i + PAYLOAD_SIZE] for i in range(0, len(raw), PAYLOAD_SIZE)]
    out = bytearray()
    for i, rec in enumerate(recs):
        out += (TERMINAL_TAG if i == len(recs) - 1 else MORE_TAG) + rec
    return bytes(out)


class InfoServer:
    def __init__(self, streams: List[StreamStatus], host: str = "127.0.0.1", port: int = 0):
        self.streams = streams
        self.stop_evt = threading.Event()
        self.srv = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.srv.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self.srv.bind((host, port))
        self.srv.listen(8)
        self.srv.settimeout(0.2)
        self.host, self.port = self.srv.getsockname()[:2]
        self._t: Optional[threading.Thread] = None

    def _handle(self, conn: socket.socket) -> None:
        with conn:
            conn.settimeout(5.0)
            line = b""
            while not line.endswith(b"\r\n"):
                chunk = conn.recv(64)
                if not chunk:
                    return
                line += chunk
            if line.strip().upper() != b"INFO STREAMS":
                logger.debug("[simulator] ignoring {!r}", line)
                return
            conn.sendall(pack_info_records(info_streams_xml(self.streams)))

    def serve_forever(self) -> None:
        while not self.stop_evt.is_set():
            try:
                conn, _addr = self.srv.accept()
            except socket.timeout:
                continue
            try:
                self._handle(conn)
            except OSError as e:
                logger.warning("[simulator] client error: {!r}", e)

    def start(self) -> "InfoServer":
        self._t = threading.Thread(target=self.serve_forever, name="InfoServer", daemon=True)
        self._t.start()
        return self

    def stop(self) -> None:
        self.stop_evt.set()
        if self._t:
            self._t.join(timeout=1.0)
        self.srv.close()


def main():
    ap = argparse.ArgumentParser(description="SeedLink INFO STREAMS simulator")
    ap.add_argument("--host", default="127.0.0.1")
    ap.add_argument("--port", type=int, default=18000)
    ap.add_argument("--lag", type=float, default=5.0, help="seconds each stream lags behind now")
    ap.add_argument("--stream", action="append", default=[], help="NET.STA.LOC.CHA (repeatable)")
    args = ap.parse_args()

    streams = [parse_stream(s, args.lag) for s in (args.stream or ["GE.MARCO..HHZ"])]
    srv = InfoServer(streams, args.host, args.port).start()
    logger.info("[simulator] INFO STREAMS on {}:{} ({} streams)", srv.host, srv.port, len(streams))

    stop_evt = threading.Event()

    def handle_sig(*_a):
        logger.info("[simulator] Stopping... (graceful)")
        stop_evt.set()

    signal.signal(signal.SIGINT, handle_sig)
    signal.signal(signal.SIGTERM, handle_sig)
    try:
        while not stop_evt.is_set():
            stop_evt.wait(0.2)
    finally:
        srv.stop()


if __name__ == "__main__":
    main()
