"""
decoder.py — turns the payload of one INFO STREAMS response into LatencyRecords.

The payload is a sequence of 512-byte miniSEED records whose ASCII data
sections, joined in order, form one XML document:

    <seedlink ...>
      <station name="MARCO" network="GE" ...>
        <stream location="" seedname="HHZ" type="D" end_time="2024/01/15 12:00:00.1234" .../>
      </station>
    </seedlink>

Only streams of type "D" (live data) produce a record.
"""
from __future__ import annotations

import struct
from datetime import datetime
from typing import Iterable, List, Optional

from lxml import etree
from obspy import UTCDateTime

from .errors import DecodeError
from .models import LatencyRecord

LIVE_TYPE = "D"
END_TIME_FORMATS = ("%Y/%m/%d %H:%M:%S.%f", "%Y/%m/%d %H:%M:%S")

_FIXED_HEADER = 48
_QUALITY_CODES = b"DRQM"


def _looks_like_mseed(rec: bytes) -> bool:
    if len(rec) < _FIXED_HEADER:
        return False
    seq = rec[0:6]
    return (seq.replace(b" ", b"").isdigit()
            and rec[6] in _QUALITY_CODES
            and rec[7:8] in (b" ", b"\x00"))


def record_text(rec: bytes) -> bytes:
    """
    ASCII data section of one miniSEED record (nsamples bytes at begin-of-data).
    Anything that is not a miniSEED record is taken as raw text, minus NUL padding.
    """
    if not _looks_like_mseed(rec):
        return rec.rstrip(b"\x00")

    # libmseed's trick: the start year tells us the header byte order
    year_be = struct.unpack(">H", rec[20:22])[0]
    bo = ">" if 1900 <= year_be <= 2100 else "<"
    nsamples = struct.unpack(bo + "H", rec[30:32])[0]
    begin = struct.unpack(bo + "H", rec[44:46])[0]
    if begin < _FIXED_HEADER or begin + nsamples > len(rec):
        raise DecodeError(f"Bad miniSEED data section (begin={begin}, nsamples={nsamples})")
    return rec[begin:begin + nsamples]


def parse_end_time(value: str) -> UTCDateTime:
    for fmt in END_TIME_FORMATS:
        try:
            return UTCDateTime(datetime.strptime(value.strip(), fmt))
        except ValueError:
            continue
    raise DecodeError(f"Unparsable end_time {value!r}")


def _attr(node, name: str) -> str:
    value = node.get(name)
    if value is None:
        raise DecodeError(f"<{node.tag}> without {name!r} attribute")
    return value


def decode_payload(payloads: Iterable[bytes], now: Optional[UTCDateTime] = None) -> List[LatencyRecord]:
    """
    Decode the ordered payload chunks of one completed INFO response.
    `now` is the decode instant latencies are measured against (default: current time).
    """
    chunks = list(payloads)
    if not chunks:
        return []

    document = b"".join(record_text(c) for c in chunks)
    if not document.strip():
        return []
    try:
        parser = etree.XMLParser(resolve_entities=False, no_network=True)
        root = etree.fromstring(document, parser)
    except (etree.XMLSyntaxError, ValueError) as e:
        raise DecodeError(f"INFO payload is not valid XML: {e}") from e

    if now is None:
        now = UTCDateTime()
    now_ms = now.ns // 1_000_000

    out: List[LatencyRecord] = []
    for station in root.iterchildren("station"):
        for stream in station.iterchildren("stream"):
            if stream.get("type") != LIVE_TYPE:
                continue
            end = parse_end_time(_attr(stream, "end_time"))
            out.append(LatencyRecord(
                network=_attr(station, "network"),
                station=_attr(station, "name"),
                location=_attr(stream, "location"),
                channel=_attr(stream, "seedname"),
                end=end,
                latency=now_ms - end.ns // 1_000_000,
            ))
    return out
