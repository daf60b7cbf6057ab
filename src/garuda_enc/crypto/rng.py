"""Random byte sources used for salts and IVs."""

from __future__ import annotations

import os
import threading
from typing import Protocol, runtime_checkable


@runtime_checkable
class RandomSource(Protocol):
    def random_bytes(self, length: int) -> bytes: ...


class SystemRandomSource:
    """OS CSPRNG with every request serialized behind one lock."""

    def __init__(self) -> None:
        self._lock = threading.Lock()

    def random_bytes(self, length: int) -> bytes:
        if length < 0:
            raise ValueError("length must be non-negative")
        with self._lock:
            return os.urandom(length)


_default_source = SystemRandomSource()


def default_random_source() -> SystemRandomSource:
    """Return the process-wide random source."""

    return _default_source
