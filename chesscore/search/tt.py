from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from ..engine.move import Move


class Bound(str, Enum):
    EXACT = "EXACT"
    LOWER = "LOWER"  # failed high: true score >= stored score
    UPPER = "UPPER"  # failed low: true score <= stored score


@dataclass
class TTEntry:
    key: int
    depth: int
    score: int
    bound: Bound
    best_move: Optional[Move]
    generation: int


class TranspositionTable:
    """Fixed-capacity cache from position fingerprint to search results.

    One entry per slot, slot chosen by ``key % capacity``. A store into an
    occupied slot replaces the resident entry when it holds the same key,
    when the new result is at least as deep, or when the resident entry was
    written during an earlier search generation. The table never holds more
    than ``capacity`` entries.
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self._slots: List[Optional[TTEntry]] = [None] * capacity
        self._size = 0
        self.generation = 0
        self.probes = 0
        self.hits = 0
        self.stores = 0
        self.replacements = 0

    def __len__(self) -> int:
        return self._size

    def probe(self, key: int) -> Optional[TTEntry]:
        """Return the entry stored for ``key``, or ``None``."""
        self.probes += 1
        e = self._slots[key % self.capacity]
        if e is None or e.key != key:
            return None
        self.hits += 1
        return e

    def store(
        self, key: int, depth: int, score: int, bound: Bound, best_move: Optional[Move]
    ) -> bool:
        """Store a result; return True if it was written."""
        idx = key % self.capacity
        existing = self._slots[idx]
        if existing is None:
            self._size += 1
        elif not (
            existing.key == key
            or depth >= existing.depth
            or existing.generation < self.generation
        ):
            return False
        else:
            self.replacements += 1
        self._slots[idx] = TTEntry(key, depth, score, bound, best_move, self.generation)
        self.stores += 1
        return True

    def new_search(self) -> None:
        """Advance the generation so older entries become replaceable."""
        self.generation += 1
        self.probes = 0
        self.hits = 0
        self.stores = 0
        self.replacements = 0

    def clear(self) -> None:
        self._slots = [None] * self.capacity
        self._size = 0
        self.generation = 0
        self.probes = 0
        self.hits = 0
        self.stores = 0
        self.replacements = 0

    def hashfull(self) -> int:
        """Return table occupancy in permille."""
        return min(1000, (self._size * 1000) // self.capacity)
