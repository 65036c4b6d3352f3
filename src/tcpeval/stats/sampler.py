from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from tcpeval.core.logging import JsonlLogger
from tcpeval.core.types import QueueStats, SummaryRow
from tcpeval.engine.base import EVENT_ENQUEUE, EVENT_TRANSMIT, Engine
from tcpeval.utils.io import append_line

AGGREGATION_INTERVAL = 1.0


@dataclass
class MetricAccumulator:
    interval_bytes: int = 0
    queue_sum: float = 0.0
    queue_samples: int = 0
    utilization_total: float = 0.0
    queue_total: float = 0.0
    ticks: int = 0
    utilization_series: List[float] = field(default_factory=list)
    queue_series: List[float] = field(default_factory=list)

    def reset_interval(self) -> None:
        self.interval_bytes = 0
        self.queue_sum = 0.0
        self.queue_samples = 0

    def mean_utilization(self) -> float:
        if self.ticks == 0:
            return 0.0
        return self.utilization_total / self.ticks

    def mean_queue(self) -> float:
        if self.ticks == 0:
            return 0.0
        return self.queue_total / self.ticks


def drop_rate(layers: List[QueueStats]) -> float:
    """Percent of packets lost across stacked queue layers.

    ``layers[0]`` is the outermost layer, whose received count is the total
    offered load. Requeued packets were handed back, not lost, so they are
    subtracted from the summed drops.
    """
    if not layers:
        return 0.0
    drops = sum(layer.dropped for layer in layers) - sum(layer.requeued for layer in layers)
    total = layers[0].received
    if total <= 0 or drops <= 0:
        return 0.0
    return 100.0 * drops / total


class StatisticsSampler:
    """Samples one bottleneck device and writes one summary row per run."""

    def __init__(
        self,
        bandwidth: float,
        rtt: float,
        flow_count: int,
        duration: float,
        output_file: str | Path | None,
        queue_capacity: Optional[int] = None,
        normalize_queue: bool = False,
        interval: float = AGGREGATION_INTERVAL,
        queue_sample_interval: Optional[float] = None,
        trace: JsonlLogger | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        if bandwidth <= 0:
            raise ValueError("bandwidth must be > 0")
        if interval <= 0:
            raise ValueError("aggregation interval must be > 0")
        if queue_sample_interval is not None and queue_sample_interval <= 0:
            raise ValueError("queue sample interval must be > 0")
        self.bandwidth = float(bandwidth)
        self.rtt = float(rtt)
        self.flow_count = int(flow_count)
        self.duration = float(duration)
        self.output_file = Path(output_file) if output_file else None
        self.queue_capacity = queue_capacity
        self.normalize_queue = normalize_queue
        self.interval = float(interval)
        self.queue_sample_interval = queue_sample_interval
        self.metrics = MetricAccumulator()
        self.row: Optional[SummaryRow] = None
        self._trace = trace or JsonlLogger(path=None)
        self._log = logger or logging.getLogger("tcpeval.stats")
        self._engine: Optional[Engine] = None
        self._device: Any = None

    def install(self, engine: Engine, device: Any) -> None:
        self._engine = engine
        self._device = device
        engine.subscribe(device, EVENT_TRANSMIT, self.on_transmit)
        if self.queue_sample_interval is None:
            engine.subscribe(device, EVENT_ENQUEUE, self.on_enqueue)
        else:
            engine.schedule(self.queue_sample_interval, self._sample_queue)
        ticks = int(math.floor(self.duration / self.interval + 1e-9))
        for k in range(1, ticks + 1):
            engine.schedule(k * self.interval, self.aggregate)
        self._log.debug("sampler installed on device %s with %d ticks", device, ticks)

    def on_transmit(self, size: int) -> None:
        self.metrics.interval_bytes += size

    def on_enqueue(self, depth: int) -> None:
        self.metrics.queue_sum += depth
        self.metrics.queue_samples += 1

    def _sample_queue(self) -> None:
        if self._engine is None:
            raise RuntimeError("sampler was never installed")
        self.on_enqueue(self._engine.queue_depth(self._device))
        if self._engine.now() + self.queue_sample_interval <= self.duration:
            self._engine.schedule(self.queue_sample_interval, self._sample_queue)

    def aggregate(self) -> None:
        m = self.metrics
        utilization = m.interval_bytes * 8.0 / (self.bandwidth * 1e6 * self.interval)
        queue = m.queue_sum / m.queue_samples if m.queue_samples else 0.0
        if self.normalize_queue and self.queue_capacity:
            queue = 100.0 * queue / self.queue_capacity
        m.utilization_total += utilization
        m.queue_total += queue
        m.ticks += 1
        m.utilization_series.append(utilization)
        m.queue_series.append(queue)
        self._trace.log("aggregation_tick", tick=m.ticks, utilization=utilization, queue=queue, bytes=m.interval_bytes)
        m.reset_interval()

    def teardown(self, layers: Optional[List[QueueStats]] = None) -> SummaryRow:
        """Read the final queue counters and append the summary row.

        Must run after the engine has stopped. A second call returns the first
        row without writing again.
        """
        if self.row is not None:
            return self.row
        if layers is None:
            if self._engine is None:
                raise RuntimeError("sampler was never installed")
            layers = self._engine.queue_layers(self._device)
        self.row = SummaryRow(
            bandwidth=self.bandwidth,
            rtt=self.rtt,
            flow_count=self.flow_count,
            utilization=100.0 * self.metrics.mean_utilization(),
            queue=self.metrics.mean_queue(),
            drop_rate=drop_rate(layers),
        )
        if self.output_file is not None:
            append_line(self.output_file, self.row.format())
        self._trace.log("teardown", **self.row.as_dict())
        self._log.info(
            "utilization=%.2f%% queue=%.2f drop=%.3f%% over %d ticks",
            self.row.utilization,
            self.row.queue,
            self.row.drop_rate,
            self.metrics.ticks,
        )
        return self.row

    def series(self) -> Dict[str, List[float]]:
        return {
            "utilization": list(self.metrics.utilization_series),
            "queue": list(self.metrics.queue_series),
        }
