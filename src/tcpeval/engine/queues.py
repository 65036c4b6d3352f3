from __future__ import annotations

import random
from collections import deque
from typing import Any, Deque, Optional

from tcpeval.core.types import QueueSpec, QueueStats, RedParameters


class PacketQueue:
    """Packet-mode FIFO with a hard limit and tail drop."""

    def __init__(self, limit: int) -> None:
        if int(limit) <= 0:
            raise ValueError(f"queue limit must be > 0, got {limit}")
        self.limit = int(limit)
        self._items: Deque[Any] = deque()
        self.received = 0
        self.enqueued = 0
        self.dequeued = 0
        self.dropped = 0

    def __len__(self) -> int:
        return len(self._items)

    def enqueue(self, packet: Any) -> bool:
        self.received += 1
        if len(self._items) >= self.limit or self._early_drop():
            self.dropped += 1
            return False
        self._items.append(packet)
        self.enqueued += 1
        return True

    def dequeue(self) -> Optional[Any]:
        if not self._items:
            return None
        self.dequeued += 1
        return self._items.popleft()

    def _early_drop(self) -> bool:
        return False

    def stats(self) -> QueueStats:
        return QueueStats(received=self.received, dropped=self.dropped, requeued=0, depth=len(self._items))


class DropTailQueue(PacketQueue):
    pass


class RedQueue(PacketQueue):
    """Random early detection in packet mode, with optional gentle ramp."""

    def __init__(self, limit: int, params: RedParameters, rng: random.Random) -> None:
        super().__init__(limit)
        if params.max_th <= params.min_th:
            raise ValueError("RED max threshold must exceed min threshold")
        self.params = params
        self.max_p = 1.0 / params.l_interm
        self.avg = 0.0
        self._count = -1
        self._rng = rng
        self.early_drops = 0

    def _drop_probability(self) -> float:
        p = self.params
        if self.avg < p.max_th:
            return self.max_p * (self.avg - p.min_th) / (p.max_th - p.min_th)
        return self.max_p + (1.0 - self.max_p) * (self.avg - p.max_th) / p.max_th

    def _early_drop(self) -> bool:
        p = self.params
        self.avg = (1.0 - p.queue_weight) * self.avg + p.queue_weight * len(self._items)
        if self.avg < p.min_th:
            self._count = -1
            return False
        if self.avg >= p.max_th and (not p.gentle or self.avg >= 2 * p.max_th):
            self._count = 0
            self.early_drops += 1
            return True
        self._count += 1
        p_b = self._drop_probability()
        if self._count * p_b >= 1.0:
            p_a = 1.0
        else:
            p_a = p_b / (1.0 - self._count * p_b)
        if self._rng.random() < p_a:
            self._count = 0
            self.early_drops += 1
            return True
        return False


def make_queue(spec: QueueSpec, rng: random.Random) -> PacketQueue:
    if spec.kind == "droptail":
        return DropTailQueue(spec.limit)
    if spec.kind == "red":
        if spec.red is None:
            raise ValueError("RED queue requires RED parameters")
        return RedQueue(spec.limit, spec.red, rng)
    raise ValueError(f"Unsupported queue discipline: {spec.kind}")
