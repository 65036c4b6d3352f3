from __future__ import annotations

import random
from typing import List, Tuple

import pytest

from tcpeval.core.types import LinkSpec, QueueSpec, RateSpec, RedParameters
from tcpeval.engine.packet_sim import PacketSimEngine
from tcpeval.engine.queues import DropTailQueue, RedQueue, make_queue
from tcpeval.engine.scheduler import EventScheduler


def test_scheduler_runs_ties_in_schedule_order() -> None:
    sched = EventScheduler()
    seen: List[str] = []
    sched.schedule(1.0, seen.append, "a")
    sched.schedule(0.5, seen.append, "early")
    sched.schedule(1.0, seen.append, "b")
    sched.schedule(1.0, seen.append, "c")

    assert sched.run() == 4
    assert seen == ["early", "a", "b", "c"]


def test_scheduler_stops_at_horizon_and_keeps_later_events() -> None:
    sched = EventScheduler()
    seen: List[float] = []
    for t in (1.0, 2.0, 3.0):
        sched.schedule_at(t, lambda t=t: seen.append(t))

    sched.run(until=2.5)
    assert seen == [1.0, 2.0]
    assert sched.now == 2.5
    assert sched.pending() == 1


def test_scheduler_rejects_the_past_and_skips_cancelled() -> None:
    sched = EventScheduler()
    seen: List[int] = []
    event = sched.schedule(1.0, seen.append, 1)
    event.cancel()
    sched.run(until=2.0)
    assert seen == []
    with pytest.raises(ValueError):
        sched.schedule_at(1.0, seen.append, 2)
    with pytest.raises(ValueError):
        sched.schedule(-0.1, seen.append, 3)


def test_droptail_drops_when_full() -> None:
    queue = DropTailQueue(2)
    assert queue.enqueue("p1")
    assert queue.enqueue("p2")
    assert not queue.enqueue("p3")
    stats = queue.stats()
    assert (stats.received, stats.dropped, stats.depth) == (3, 1, 2)
    assert queue.dequeue() == "p1"


def _red(gentle: bool) -> RedQueue:
    # Weight 1 makes the average track the instantaneous depth; a tiny max_p
    # keeps the probabilistic region quiet.
    params = RedParameters(min_th=2.0, max_th=4.0, queue_weight=1.0, l_interm=1e9, gentle=gentle)
    return RedQueue(10, params, random.Random(0))


def test_red_forces_drop_above_max_threshold() -> None:
    queue = _red(gentle=False)
    for i in range(4):
        assert queue.enqueue(i)
    assert not queue.enqueue(4)
    assert queue.early_drops == 1
    assert len(queue) == 4


def test_gentle_red_ramps_instead_of_forcing() -> None:
    queue = _red(gentle=True)
    for i in range(5):
        assert queue.enqueue(i)
    assert queue.early_drops == 0


def test_make_queue_rejects_unknown_discipline() -> None:
    with pytest.raises(ValueError):
        make_queue(QueueSpec("fq_codel", 10), random.Random(0))
    with pytest.raises(ValueError):
        make_queue(QueueSpec("red", 10), random.Random(0))


def _pair(engine: PacketSimEngine, spec: LinkSpec) -> Tuple[int, int, int, int]:
    a = engine.create_node("a")
    b = engine.create_node("b")
    dev_a, dev_b = engine.create_link(a, b, spec)
    engine.assign_address(dev_a, "10.0.0.1", 24)
    engine.assign_address(dev_b, "10.0.0.2", 24)
    return a, b, dev_a, dev_b


def test_onoff_source_delivers_to_sink() -> None:
    engine = PacketSimEngine(seed=1)
    a, b, dev_a, _ = _pair(engine, LinkSpec(1e6, 0.01, QueueSpec("droptail", 100)))
    sent: List[int] = []
    engine.subscribe(dev_a, "transmit", sent.append)

    sink = engine.create_endpoint("sink", b, "10.0.0.2", 9000)
    source = engine.create_endpoint("onoff", a, "10.0.0.2", 9000, RateSpec(4000.0, 125, 10.0, 0.0))
    engine.start(source, 0.0)
    engine.start(sink, 0.0)
    engine.stop(source, 1.0)
    engine.populate_routes()
    engine.run(until=2.0)

    assert engine.apps[sink].rx_packets == 4
    assert engine.apps[sink].rx_bytes == 500
    assert sum(sent) == 500
    assert engine.now() == 2.0
    assert engine.unroutable == 0


def test_bulk_source_overloads_slow_link() -> None:
    engine = PacketSimEngine(seed=1)
    # Router r forwards from a fast access link into a slow one.
    leaf = engine.create_node("leaf")
    r = engine.create_node("r")
    dst = engine.create_node("dst")
    fast = LinkSpec(2e6, 0.001, QueueSpec("droptail", 10))
    slow = LinkSpec(1e6, 0.001, QueueSpec("droptail", 10))
    dev_leaf, dev_r1 = engine.create_link(leaf, r, fast)
    dev_r2, dev_dst = engine.create_link(r, dst, slow)
    for dev, addr in ((dev_leaf, "10.0.1.1"), (dev_r1, "10.0.1.2"), (dev_r2, "10.0.2.1"), (dev_dst, "10.0.2.2")):
        engine.assign_address(dev, addr, 24)

    depths: List[int] = []
    engine.subscribe(dev_r2, "enqueue", depths.append)
    sink = engine.create_endpoint("sink", dst, "10.0.2.2", 50000)
    source = engine.create_endpoint("bulk", leaf, "10.0.2.2", 50000)
    engine.start(sink, 0.0)
    engine.start(source, 0.0)
    engine.stop(source, 1.0)
    engine.populate_routes()
    engine.run(until=2.0)

    (stats,) = engine.queue_layers(dev_r2)
    assert stats.dropped > 0
    assert stats.received > engine.apps[sink].rx_packets
    assert max(depths) <= 10
    assert engine.queue_depth(dev_r2) == 0


def test_engine_rejects_bad_endpoints_and_events() -> None:
    engine = PacketSimEngine()
    a, b, dev_a, _ = _pair(engine, LinkSpec(1e6, 0.01, QueueSpec("droptail", 10)))
    engine.create_endpoint("sink", b, "10.0.0.2", 9000)
    with pytest.raises(ValueError):
        engine.create_endpoint("sink", b, "10.0.0.2", 9000)
    with pytest.raises(ValueError):
        engine.create_endpoint("onoff", a, "10.0.0.2", 9000)
    with pytest.raises(ValueError):
        engine.create_endpoint("multicast", a, "10.0.0.2", 9000)
    with pytest.raises(ValueError):
        engine.subscribe(dev_a, "dequeue", lambda n: None)
