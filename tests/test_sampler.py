from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest

from tcpeval.core.types import QueueStats, SummaryRow
from tcpeval.engine.scheduler import EventScheduler
from tcpeval.stats.sampler import StatisticsSampler, drop_rate


class FakeEngine:
    """Just enough engine for the sampler: a clock, hooks and fixed counters."""

    def __init__(self, layers: Optional[List[QueueStats]] = None) -> None:
        self.scheduler = EventScheduler()
        self.hooks: Dict[str, List[Callable[[int], None]]] = {}
        self.layers = layers if layers is not None else [QueueStats(received=0, dropped=0)]
        self.depth = 0

    def now(self) -> float:
        return self.scheduler.now

    def schedule(self, delay: float, callback: Callable[..., None], *args: Any) -> None:
        self.scheduler.schedule(delay, callback, *args)

    def subscribe(self, device: Any, event: str, callback: Callable[[int], None]) -> None:
        self.hooks.setdefault(event, []).append(callback)

    def queue_depth(self, device: Any) -> int:
        return self.depth

    def queue_layers(self, device: Any) -> List[QueueStats]:
        return list(self.layers)

    def fire_at(self, at: float, event: str, value: int) -> None:
        def _fire() -> None:
            for cb in self.hooks.get(event, []):
                cb(value)

        self.scheduler.schedule_at(at, _fire)


def test_utilization_is_mean_of_ticks(tmp_path: Path) -> None:
    engine = FakeEngine(layers=[QueueStats(received=1000, dropped=0)])
    out = tmp_path / "result.txt"
    sampler = StatisticsSampler(bandwidth=1.0, rtt=0.08, flow_count=5, duration=3.0, output_file=out)
    sampler.install(engine, device=0)

    engine.fire_at(0.5, "transmit", 125_000)
    engine.fire_at(1.5, "transmit", 62_500)
    engine.fire_at(0.5, "enqueue", 4)
    engine.fire_at(0.6, "enqueue", 6)
    engine.fire_at(2.5, "enqueue", 3)
    engine.scheduler.run(until=3.0)
    row = sampler.teardown()

    assert sampler.series()["utilization"] == pytest.approx([1.0, 0.5, 0.0])
    assert row.utilization == pytest.approx(50.0)
    assert sampler.series()["queue"] == pytest.approx([5.0, 0.0, 3.0])
    assert row.queue == pytest.approx(8.0 / 3.0)
    assert row.drop_rate == 0.0
    assert out.read_text(encoding="utf-8").splitlines() == [row.format()]


def test_teardown_twice_appends_once(tmp_path: Path) -> None:
    engine = FakeEngine()
    out = tmp_path / "result.txt"
    sampler = StatisticsSampler(bandwidth=10.0, rtt=0.08, flow_count=1, duration=1.0, output_file=out)
    sampler.install(engine, device=0)
    engine.scheduler.run(until=1.0)

    first = sampler.teardown()
    second = sampler.teardown()
    assert first is second
    assert len(out.read_text(encoding="utf-8").splitlines()) == 1


def test_rows_accumulate_across_runs(tmp_path: Path) -> None:
    out = tmp_path / "result.txt"
    for flows in (1, 2):
        engine = FakeEngine()
        sampler = StatisticsSampler(bandwidth=10.0, rtt=0.08, flow_count=flows, duration=1.0, output_file=out)
        sampler.install(engine, device=0)
        engine.scheduler.run(until=1.0)
        sampler.teardown()
    assert len(out.read_text(encoding="utf-8").splitlines()) == 2


def test_no_ticks_means_zero_metrics() -> None:
    engine = FakeEngine(layers=[QueueStats(received=0, dropped=0)])
    sampler = StatisticsSampler(bandwidth=10.0, rtt=0.08, flow_count=1, duration=0.5, output_file=None)
    sampler.install(engine, device=0)
    engine.fire_at(0.1, "transmit", 1500)
    engine.scheduler.run(until=0.5)
    row = sampler.teardown()

    assert sampler.metrics.ticks == 0
    assert row.utilization == 0.0
    assert row.queue == 0.0
    assert row.drop_rate == 0.0


def test_queue_normalized_to_capacity() -> None:
    engine = FakeEngine()
    sampler = StatisticsSampler(
        bandwidth=10.0,
        rtt=0.08,
        flow_count=1,
        duration=1.0,
        output_file=None,
        queue_capacity=10,
        normalize_queue=True,
    )
    sampler.install(engine, device=0)
    engine.fire_at(0.5, "enqueue", 5)
    engine.scheduler.run(until=1.0)
    assert sampler.teardown().queue == pytest.approx(50.0)


def test_timer_queue_sampling() -> None:
    engine = FakeEngine()
    engine.depth = 4
    sampler = StatisticsSampler(
        bandwidth=10.0,
        rtt=0.08,
        flow_count=1,
        duration=2.0,
        output_file=None,
        queue_sample_interval=0.25,
    )
    sampler.install(engine, device=0)

    assert "enqueue" not in engine.hooks
    engine.scheduler.run(until=2.0)
    assert sampler.series()["queue"] == pytest.approx([4.0, 4.0])


def test_uninstalled_sampler_raises() -> None:
    sampler = StatisticsSampler(
        bandwidth=10.0,
        rtt=0.08,
        flow_count=1,
        duration=2.0,
        output_file=None,
        queue_sample_interval=0.25,
    )
    with pytest.raises(RuntimeError):
        sampler._sample_queue()
    with pytest.raises(RuntimeError):
        sampler.teardown()


def test_drop_rate_combines_layers_and_subtracts_requeues() -> None:
    layers = [
        QueueStats(received=200, dropped=10, requeued=4),
        QueueStats(received=190, dropped=6),
    ]
    assert drop_rate(layers) == pytest.approx(6.0)


def test_drop_rate_edge_cases() -> None:
    assert drop_rate([]) == 0.0
    assert drop_rate([QueueStats(received=0, dropped=0)]) == 0.0
    assert drop_rate([QueueStats(received=500, dropped=0)]) == 0.0
    assert drop_rate([QueueStats(received=100, dropped=2, requeued=2)]) == 0.0


def test_summary_row_is_fixed_width() -> None:
    line = SummaryRow(10.0, 0.08, 5, 93.5, 12.25, 1.5).format()
    assert line.split() == ["10", "0.08", "5", "93.5", "12.25", "1.5"]
    assert len(line) == 2 + 5 * 15
    assert line[2:17] == "0.08".rjust(15)


def test_sampler_rejects_zero_bandwidth() -> None:
    with pytest.raises(ValueError):
        StatisticsSampler(bandwidth=0.0, rtt=0.08, flow_count=1, duration=1.0, output_file=None)
