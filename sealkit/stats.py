"""Queue-occupancy and event counters with snapshots for periodic reports."""

from __future__ import annotations

from dataclasses import dataclass, field, replace


@dataclass
class QueueSample:
    last_size: int = 0
    total: int = 0
    samples: int = 0


@dataclass
class QueueStat:
    """Average and latest size of a queue."""

    name: str = "null"
    capacity: int = 0
    enabled: bool = True
    cur: QueueSample = field(default_factory=QueueSample)
    snap: QueueSample = field(default_factory=QueueSample)

    def record(self, size: int) -> None:
        if not self.enabled:
            return
        self.cur.last_size = size
        self.cur.samples += 1
        self.cur.total += size

    def clear(self) -> None:
        self.cur.total = 0
        self.cur.samples = 0

    def snapshot(self) -> None:
        self.snap = replace(self.cur)

    def report(self) -> str:
        avg = 0 if self.snap.samples == 0 else self.snap.total // self.snap.samples
        return (
            f"{self.name:>30}: capacity {self.capacity:10d},"
            f" cur {self.snap.last_size:10d}, avg_size {avg:10d}"
        )


@dataclass
class CounterStat:
    """Number of times an event happened."""

    name: str = "null"
    enabled: bool = True
    count: int = 0
    snap_count: int = 0

    def record(self) -> None:
        if self.enabled:
            self.count += 1

    def clear(self) -> None:
        self.count = 0

    def snapshot(self) -> None:
        self.snap_count = self.count

    def report(self) -> str:
        return f"{self.name:>30}: count {self.snap_count}"