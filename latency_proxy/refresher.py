"""
refresher.py — polls every configured SeedLink server, merges the results and
publishes them as the new Snapshot.

Cycle: POLLING (all endpoints) -> PUBLISHING (one reference swap) -> wait
`interval` seconds from the end of the cycle -> POLLING ...
"""
from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Sequence

from loguru import logger
from obspy import UTCDateTime

from .errors import PollError
from .models import LatencyRecord, ServerEndpoint, Snapshot
from .poller import poll_server

Poll = Callable[[ServerEndpoint], List[LatencyRecord]]


class SnapshotStore:
    """Single-writer holder of the published Snapshot."""

    def __init__(self) -> None:
        self._snapshot = Snapshot()
        self._lock = threading.Lock()

    def current(self) -> Snapshot:
        with self._lock:
            return self._snapshot

    def publish(self, records: Sequence[LatencyRecord]) -> Snapshot:
        snap = Snapshot(records=tuple(records), updated=UTCDateTime(), populated=True)
        with self._lock:
            self._snapshot = snap
        return snap


class Refresher:
    def __init__(
        self,
        endpoints: Sequence[ServerEndpoint],
        store: SnapshotStore,
        interval: float = 30.0,
        sort: bool = True,
        workers: int = 1,
        connect_timeout: float = 5.0,
        read_timeout: float = 10.0,
        poll: Optional[Poll] = None,
    ) -> None:
        self.endpoints = tuple(endpoints)
        self.store = store
        self.interval = float(interval)
        self.sort = sort
        self.workers = max(1, int(workers))
        self.poll = poll or (lambda ep: poll_server(ep, connect_timeout, read_timeout))
        self.stop_evt = threading.Event()
        self.cycles = 0
        self._thread: Optional[threading.Thread] = None

    # ---- one cycle ----
    def _poll_one(self, ep: ServerEndpoint) -> Optional[List[LatencyRecord]]:
        try:
            return self.poll(ep)
        except PollError as e:
            logger.warning("Poll of {} failed: {}", ep, e)
            return None
        except Exception:
            logger.exception("Poll of {} crashed", ep)
            return None

    def refresh_once(self) -> Snapshot:
        t0 = time.monotonic()
        if self.workers > 1 and len(self.endpoints) > 1:
            with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="poll") as pool:
                results = list(pool.map(self._poll_one, self.endpoints))
        else:
            results = [self._poll_one(ep) for ep in self.endpoints]

        merged: List[LatencyRecord] = []
        for res in results:
            if res is not None:
                merged.extend(res)
        if self.sort:
            merged.sort(key=lambda r: r.latency)

        snap = self.store.publish(merged)
        self.cycles += 1
        ok = sum(res is not None for res in results)
        logger.info("Refresh #{}: {} latencies from {}/{} server(s) in {:.2f}s",
                    self.cycles, len(snap), ok, len(self.endpoints), time.monotonic() - t0)
        return snap

    # ---- loop ----
    def run(self, cycles: Optional[int] = None) -> None:
        """Blocking loop; `cycles` bounds it, stop() ends it at the next wait."""
        done = 0
        while not self.stop_evt.is_set():
            try:
                self.refresh_once()
            except Exception:
                logger.exception("Refresh cycle failed; keeping previous snapshot")
            done += 1
            if cycles is not None and done >= cycles:
                break
            if self.stop_evt.wait(self.interval):
                break

    def start(self) -> threading.Thread:
        if self._thread and self._thread.is_alive():
            return self._thread
        self.stop_evt.clear()
        self._thread = threading.Thread(target=self.run, name="Refresher", daemon=True)
        self._thread.start()
        return self._thread

    def stop(self, timeout: float = 5.0) -> None:
        self.stop_evt.set()
        if self._thread:
            self._thread.join(timeout=timeout)
