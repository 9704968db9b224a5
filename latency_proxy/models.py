# latency_proxy/models.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from obspy import UTCDateTime

IDENTIFIER_FIELDS = ("network", "station", "location", "channel")


def iso_ms(t: UTCDateTime) -> str:
    """ISO-8601 UTC with millisecond precision, e.g. 2024-01-15T12:00:00.123Z"""
    return t.strftime("%Y-%m-%dT%H:%M:%S.") + "%03dZ" % (t.microsecond // 1000)


@dataclass(frozen=True)
class ServerEndpoint:
    host: str
    port: int

    @classmethod
    def parse(cls, s: str) -> "ServerEndpoint":
        host, sep, port = s.strip().rpartition(":")
        if not sep or not host:
            raise ValueError(f"Expected host:port, got {s!r}")
        return cls(host, int(port))

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class LatencyRecord:
    network: str
    station: str
    location: str
    channel: str
    end: UTCDateTime
    latency: int  # ms, negative under clock skew

    @property
    def sid(self) -> str:
        return f"{self.network}.{self.station}.{self.location}.{self.channel}"

    def to_json(self) -> dict:
        return {
            "network": self.network,
            "station": self.station,
            "location": self.location,
            "channel": self.channel,
            "end": iso_ms(self.end),
            "msLatency": self.latency,
        }


@dataclass(frozen=True)
class Snapshot:
    """
    One published refresh result. Never mutated; the refresher replaces it.
    populated=False only for the placeholder held before the first cycle.
    """
    records: Tuple[LatencyRecord, ...] = ()
    updated: Optional[UTCDateTime] = None
    populated: bool = False

    def __len__(self) -> int:
        return len(self.records)


@dataclass(frozen=True)
class FilterQuery:
    network: Tuple[str, ...] = ()
    station: Tuple[str, ...] = ()
    location: Tuple[str, ...] = ()
    channel: Tuple[str, ...] = ()
    min_latency: Optional[int] = None
    max_latency: Optional[int] = None

    def patterns(self, name: str) -> Tuple[str, ...]:
        return getattr(self, name)

    @property
    def is_empty(self) -> bool:
        return (not any(self.patterns(f) for f in IDENTIFIER_FIELDS)
                and self.min_latency is None and self.max_latency is None)
