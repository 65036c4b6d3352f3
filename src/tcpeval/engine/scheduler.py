from __future__ import annotations

import heapq
from dataclasses import dataclass, field
from typing import Any, Callable, List, Tuple


@dataclass
class ScheduledEvent:
    time: float
    seq: int
    callback: Callable[..., None]
    args: Tuple[Any, ...] = field(default_factory=tuple)
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


class EventScheduler:
    """Virtual clock plus a heap of pending callbacks.

    Events with equal timestamps run in the order they were scheduled.
    """

    def __init__(self) -> None:
        self._heap: List[Tuple[float, int, ScheduledEvent]] = []
        self._seq = 0
        self._now = 0.0
        self._stopped = False
        self.executed = 0

    @property
    def now(self) -> float:
        return self._now

    def pending(self) -> int:
        return sum(1 for _, _, ev in self._heap if not ev.cancelled)

    def schedule(self, delay: float, callback: Callable[..., None], *args: Any) -> ScheduledEvent:
        if delay < 0:
            raise ValueError(f"cannot schedule in the past (delay={delay})")
        return self.schedule_at(self._now + delay, callback, *args)

    def schedule_at(self, time: float, callback: Callable[..., None], *args: Any) -> ScheduledEvent:
        if time < self._now:
            raise ValueError(f"cannot schedule at {time} < now {self._now}")
        event = ScheduledEvent(time=float(time), seq=self._seq, callback=callback, args=tuple(args))
        self._seq += 1
        heapq.heappush(self._heap, (event.time, event.seq, event))
        return event

    def stop(self) -> None:
        self._stopped = True

    def run(self, until: float | None = None) -> int:
        self._stopped = False
        executed = 0
        while self._heap and not self._stopped:
            time, _, event = self._heap[0]
            if until is not None and time > until:
                break
            heapq.heappop(self._heap)
            if event.cancelled:
                continue
            self._now = time
            event.callback(*event.args)
            executed += 1
        if until is not None and not self._stopped and until > self._now:
            self._now = float(until)
        self.executed += executed
        return executed
