# latency_proxy/service.py
from __future__ import annotations

from typing import Tuple

from .errors import NotReady
from .models import LatencyRecord, Snapshot
from .query import Params, filter_records, parse_query
from .refresher import SnapshotStore


class LatencyService:
    """Read-only view handed to the HTTP layer."""

    def __init__(self, store: SnapshotStore):
        self._store = store

    def current_snapshot(self) -> Snapshot:
        return self._store.current()

    @property
    def ready(self) -> bool:
        return self._store.current().populated

    def query(self, params: Params) -> Tuple[LatencyRecord, ...]:
        """
        Raises NotReady before the first refresh and InvalidQuery for bad input;
        never blocks on a refresh.
        """
        snap = self._store.current()
        if not snap.populated:
            raise NotReady("Service not ready.")
        fq = parse_query(params)
        return filter_records(snap.records, fq)
