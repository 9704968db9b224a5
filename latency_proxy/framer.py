"""
framer.py — reassembles the fixed 520-byte SeedLink records of one INFO response.

Each record is an 8-byte SeedLink header followed by a 512-byte miniSEED record.
INFO responses are tagged "SLINFO *" while more records follow and "SLINFO  "
on the last one.
"""
from __future__ import annotations

from typing import List

HEADER_SIZE = 8
PAYLOAD_SIZE = 512
RECORD_SIZE = HEADER_SIZE + PAYLOAD_SIZE
TERMINAL_TAG = b"SLINFO  "


class RecordFramer:
    def __init__(self) -> None:
        self._buf = bytearray()
        self.payloads: List[bytes] = []
        self.complete = False

    def feed(self, chunk: bytes) -> bool:
        """Append received bytes; returns True once the terminal record was seen."""
        if self.complete:
            return True
        self._buf.extend(chunk)
        while len(self._buf) >= RECORD_SIZE:
            tag = bytes(self._buf[:HEADER_SIZE])
            self.payloads.append(bytes(self._buf[HEADER_SIZE:RECORD_SIZE]))
            del self._buf[:RECORD_SIZE]
            if tag == TERMINAL_TAG:
                self.complete = True
                self._buf.clear()  # anything after the terminal record is dropped
                break
        return self.complete

    @property
    def pending(self) -> int:
        """Bytes buffered that do not yet form a whole record."""
        return len(self._buf)
