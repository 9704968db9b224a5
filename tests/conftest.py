from __future__ import annotations

import socket
import struct
from typing import List, Optional, Sequence

import pytest
from obspy import UTCDateTime

from latency_proxy.framer import PAYLOAD_SIZE, TERMINAL_TAG
from latency_proxy.models import LatencyRecord
from latency_proxy.simulator import InfoServer, StreamStatus

MORE_TAG = b"SLINFO *"


def station_xml(stations: Sequence[dict]) -> bytes:
    """
    stations: [{"network": "GE", "name": "MARCO",
                "streams": [{"location": "", "seedname": "HHZ", "type": "D", "end_time": "..."}]}]
    """
    parts = ['<?xml version="1.0"?>', '<seedlink software="test">']
    for st in stations:
        parts.append(f'<station name="{st["name"]}" network="{st["network"]}">')
        for s in st["streams"]:
            attrs = " ".join(f'{k}="{v}"' for k, v in s.items())
            parts.append(f"<stream {attrs}/>")
        parts.append("</station>")
    parts.append("</seedlink>")
    return "\n".join(parts).encode("ascii")


def text_chunks(text: bytes) -> List[bytes]:
    """Split text into 512-byte payloads, the last one NUL padded."""
    chunks = [text[i:i + PAYLOAD_SIZE] for i in range(0, len(text), PAYLOAD_SIZE)] or [b""]
    chunks[-1] = chunks[-1].ljust(PAYLOAD_SIZE, b"\x00")
    return chunks


def frame(chunks: Sequence[bytes], terminal: bool = True) -> bytes:
    out = b""
    for i, c in enumerate(chunks):
        last = terminal and i == len(chunks) - 1
        out += (TERMINAL_TAG if last else MORE_TAG) + c
    return out


def mseed_ascii_record(text: bytes, seq: int = 1, byteorder: str = ">", begin: int = 64) -> bytes:
    """Minimal 512-byte miniSEED record carrying `text` as ASCII samples."""
    hdr = b"%06dD " % seq + b"INFO " + b"  " + b"LOG" + b"XX"
    hdr += struct.pack(byteorder + "HHBBBBH", 2024, 15, 12, 0, 0, 0, 0)   # BTIME
    hdr += struct.pack(byteorder + "Hhh", len(text), 0, 0)                # nsamples, rate
    hdr += bytes([0, 0, 0, 1]) + struct.pack(byteorder + "i", 0)
    hdr += struct.pack(byteorder + "HH", begin, 48)
    assert len(hdr) == 48
    rec = hdr.ljust(begin, b"\x00") + text
    return rec.ljust(PAYLOAD_SIZE, b"\x00")


def make_record(network="GE", station="MARCO", location="", channel="HHZ",
                latency=1000, end: Optional[UTCDateTime] = None) -> LatencyRecord:
    return LatencyRecord(network, station, location, channel,
                         end if end is not None else UTCDateTime(2024, 1, 15, 12), latency)


@pytest.fixture()
def marco_xml() -> bytes:
    return station_xml([{
        "network": "GE", "name": "MARCO",
        "streams": [
            {"location": "", "seedname": "HHZ", "type": "D", "end_time": "2024/01/15 12:00:00.0000"},
            {"location": "", "seedname": "ACE", "type": "E", "end_time": "2024/01/15 11:00:00.0000"},
        ],
    }])


@pytest.fixture()
def free_port() -> int:
    """A localhost port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture()
def info_server():
    servers = []

    def _start(streams: List[StreamStatus]) -> InfoServer:
        srv = InfoServer(streams).start()
        servers.append(srv)
        return srv

    yield _start
    for srv in servers:
        srv.stop()
