"""
core/ids.py -- Process-wide unique 64-bit identifiers.

Sonyflake bit layout (most significant first):
  39 bits  elapsed time since _EPOCH in 10 ms ticks (~174 years)
   8 bits  sequence number within one tick
  16 bits  machine id

IDs are strictly increasing within a process. Uniqueness across processes
holds only if every process uses a distinct machine id.
"""

from __future__ import annotations

import threading
import time
from typing import Protocol

_EPOCH = 1_704_067_200  # 2024-01-01T00:00:00Z
_TICK_SECONDS = 0.01
_SEQUENCE_BITS = 8
_MACHINE_BITS = 16
_TIME_BITS = 39
_SEQUENCE_MASK = (1 << _SEQUENCE_BITS) - 1


class IdGenerator(Protocol):
    def next_id(self) -> int: ...


class SnowflakeIdGenerator:
    def __init__(self, machine_id: int = 1, clock=time.time) -> None:
        if not 0 <= machine_id < (1 << _MACHINE_BITS):
            raise ValueError(f"machine_id must fit in {_MACHINE_BITS} bits, got {machine_id}")
        self._machine_id = machine_id
        self._clock = clock
        self._lock = threading.Lock()
        self._last_tick = -1
        self._sequence = 0

    def _current_tick(self) -> int:
        return int((self._clock() - _EPOCH) / _TICK_SECONDS)

    def next_id(self) -> int:
        with self._lock:
            tick = max(self._current_tick(), self._last_tick)
            if tick == self._last_tick:
                self._sequence = (self._sequence + 1) & _SEQUENCE_MASK
                if self._sequence == 0:
                    # Sequence exhausted for this tick: borrow the next one.
                    tick += 1
            else:
                self._sequence = 0
            if tick >= (1 << _TIME_BITS):
                raise OverflowError("identifier time component exhausted")
            self._last_tick = tick
            return (tick << (_SEQUENCE_BITS + _MACHINE_BITS)) | (self._sequence << _MACHINE_BITS) | self._machine_id
