from __future__ import annotations

import logging
import random
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from tcpeval.core.types import LinkSpec, QueueStats, RateSpec
from tcpeval.engine.base import (
    ENDPOINT_BULK,
    ENDPOINT_ONOFF,
    ENDPOINT_SINK,
    EVENT_ENQUEUE,
    EVENT_TRANSMIT,
    Engine,
)
from tcpeval.engine.queues import PacketQueue, make_queue
from tcpeval.engine.scheduler import EventScheduler

BULK_SEGMENT_SIZE = 1000


@dataclass(frozen=True)
class Packet:
    src: str
    dst: str
    port: int
    size: int


class Device:
    def __init__(
        self, engine: "PacketSimEngine", handle: int, node: "SimNode", spec: LinkSpec, queue: PacketQueue
    ) -> None:
        self.engine = engine
        self.handle = handle
        self.node = node
        self.rate_bps = float(spec.capacity_bps)
        self.delay = float(spec.delay)
        self.queue = queue
        self.peer: Optional[Device] = None
        self.address: Optional[str] = None
        self.busy = False
        self.tx_packets = 0
        self.tx_bytes = 0
        self.hooks: Dict[str, List[Callable[[int], None]]] = {EVENT_TRANSMIT: [], EVENT_ENQUEUE: []}

    def send(self, packet: Packet) -> bool:
        if not self.queue.enqueue(packet):
            return False
        for hook in self.hooks[EVENT_ENQUEUE]:
            hook(len(self.queue))
        if not self.busy:
            self._transmit_next()
        return True

    def _transmit_next(self) -> None:
        packet = self.queue.dequeue()
        if packet is None:
            self.busy = False
            return
        self.busy = True
        self.tx_packets += 1
        self.tx_bytes += packet.size
        for hook in self.hooks[EVENT_TRANSMIT]:
            hook(packet.size)
        self.engine.scheduler.schedule(packet.size * 8.0 / self.rate_bps, self._transmit_done, packet)

    def _transmit_done(self, packet: Packet) -> None:
        assert self.peer is not None
        self.engine.scheduler.schedule(self.delay, self.peer.node.receive, packet)
        self._transmit_next()


class SimNode:
    def __init__(self, engine: "PacketSimEngine", handle: int, name: str) -> None:
        self.engine = engine
        self.handle = handle
        self.name = name
        self.devices: List[Device] = []
        self.addresses: List[str] = []
        self.routes: Dict[str, Device] = {}
        self.sinks: Dict[int, "PacketSink"] = {}

    @property
    def primary_address(self) -> str:
        if not self.addresses:
            raise ValueError(f"node {self.name} has no address")
        return self.addresses[0]

    def receive(self, packet: Packet) -> None:
        if packet.dst in self.addresses:
            sink = self.sinks.get(packet.port)
            if sink is None:
                self.engine.unroutable += 1
                return
            sink.receive(packet)
            return
        self.output(packet)

    def output(self, packet: Packet) -> None:
        device = self.routes.get(packet.dst)
        if device is None:
            self.engine.unroutable += 1
            return
        device.send(packet)


class Application:
    def __init__(self, engine: "PacketSimEngine", node: SimNode) -> None:
        self.engine = engine
        self.node = node
        self.running = False

    def start(self) -> None:
        if self.running:
            return
        self.running = True
        self._on_start()

    def stop(self) -> None:
        self.running = False

    def _on_start(self) -> None:
        pass


class PacketSink(Application):
    def __init__(self, engine: "PacketSimEngine", node: SimNode, port: int) -> None:
        super().__init__(engine, node)
        self.port = port
        self.rx_packets = 0
        self.rx_bytes = 0
        self.discarded = 0

    def receive(self, packet: Packet) -> None:
        if not self.running:
            self.discarded += 1
            return
        self.rx_packets += 1
        self.rx_bytes += packet.size


class BulkSend(Application):
    """Unlimited transfer, paced at the node's first link rate."""

    def __init__(self, engine: "PacketSimEngine", node: SimNode, remote: str, port: int) -> None:
        super().__init__(engine, node)
        self.remote = remote
        self.port = port
        self.sent_packets = 0

    def _on_start(self) -> None:
        self._send()

    def _send(self) -> None:
        if not self.running:
            return
        self.node.output(Packet(self.node.primary_address, self.remote, self.port, BULK_SEGMENT_SIZE))
        self.sent_packets += 1
        interval = BULK_SEGMENT_SIZE * 8.0 / self.node.devices[0].rate_bps
        self.engine.scheduler.schedule(interval, self._send)


class OnOffSend(Application):
    """Constant bit rate during on periods, silent during off periods."""

    def __init__(self, engine: "PacketSimEngine", node: SimNode, remote: str, port: int, rate: RateSpec) -> None:
        super().__init__(engine, node)
        self.remote = remote
        self.port = port
        self.rate = rate
        self.sent_packets = 0
        self._period_end = 0.0

    def _on_start(self) -> None:
        self._begin_on()

    def _begin_on(self) -> None:
        if not self.running:
            return
        self._period_end = self.engine.now() + self.rate.on_time
        self._send()

    def _send(self) -> None:
        if not self.running:
            return
        if self.rate.off_time > 0 and self.engine.now() >= self._period_end:
            self.engine.scheduler.schedule(self.rate.off_time, self._begin_on)
            return
        self.node.output(Packet(self.node.primary_address, self.remote, self.port, self.rate.packet_size))
        self.sent_packets += 1
        self.engine.scheduler.schedule(self.rate.packet_size * 8.0 / self.rate.rate_bps, self._send)


class PacketSimEngine(Engine):
    """Small deterministic packet-level simulator behind the ``Engine`` API.

    Point-to-point links with per-direction queues, static shortest-hop
    routes and three applications (bulk send, on/off, sink). Transport
    behaviour such as congestion control is not modelled.
    """

    def __init__(self, seed: int = 0, logger: logging.Logger | None = None) -> None:
        self.scheduler = EventScheduler()
        self.rng = random.Random(seed)
        self._log = logger or logging.getLogger("tcpeval.engine")
        self.nodes: List[SimNode] = []
        self.devices: List[Device] = []
        self.apps: List[Application] = []
        self.unroutable = 0

    def now(self) -> float:
        return self.scheduler.now

    def schedule(self, delay: float, callback: Callable[..., None], *args: Any) -> None:
        self.scheduler.schedule(delay, callback, *args)

    def create_node(self, name: str) -> int:
        node = SimNode(self, len(self.nodes), name)
        self.nodes.append(node)
        return node.handle

    def create_link(self, a: int, b: int, spec: LinkSpec) -> Tuple[int, int]:
        dev_a = self._add_device(self.nodes[a], spec)
        dev_b = self._add_device(self.nodes[b], spec)
        dev_a.peer = dev_b
        dev_b.peer = dev_a
        return dev_a.handle, dev_b.handle

    def _add_device(self, node: SimNode, spec: LinkSpec) -> Device:
        device = Device(self, len(self.devices), node, spec, make_queue(spec.queue, self.rng))
        self.devices.append(device)
        node.devices.append(device)
        return device

    def assign_address(self, device: int, address: str, prefixlen: int) -> None:
        dev = self.devices[device]
        dev.address = address
        dev.node.addresses.append(address)

    def create_endpoint(
        self,
        kind: str,
        node: int,
        address: str,
        port: int,
        rate: Optional[RateSpec] = None,
    ) -> int:
        sim_node = self.nodes[node]
        app: Application
        if kind == ENDPOINT_SINK:
            if port in sim_node.sinks:
                raise ValueError(f"port {port} already bound on {sim_node.name}")
            app = PacketSink(self, sim_node, port)
            sim_node.sinks[port] = app
        elif kind == ENDPOINT_BULK:
            app = BulkSend(self, sim_node, address, port)
        elif kind == ENDPOINT_ONOFF:
            if rate is None:
                raise ValueError("on/off endpoint requires a rate")
            app = OnOffSend(self, sim_node, address, port, rate)
        else:
            raise ValueError(f"Unsupported endpoint kind: {kind}")
        self.apps.append(app)
        return len(self.apps) - 1

    def start(self, endpoint: int, at: float) -> None:
        self.scheduler.schedule_at(max(at, self.now()), self.apps[endpoint].start)

    def stop(self, endpoint: int, at: float) -> None:
        self.scheduler.schedule_at(max(at, self.now()), self.apps[endpoint].stop)

    def populate_routes(self) -> None:
        owners: Dict[str, SimNode] = {}
        for node in self.nodes:
            for address in node.addresses:
                owners[address] = node
        for node in self.nodes:
            first_hop = self._first_hops(node)
            node.routes = {
                address: first_hop[owner.handle]
                for address, owner in owners.items()
                if owner is not node and owner.handle in first_hop
            }
        self._log.debug("routes populated for %d nodes", len(self.nodes))

    def _first_hops(self, origin: SimNode) -> Dict[int, Device]:
        first_hop: Dict[int, Device] = {}
        seen = {origin.handle}
        frontier = deque()
        for device in origin.devices:
            peer = device.peer.node if device.peer else None
            if peer is not None and peer.handle not in seen:
                seen.add(peer.handle)
                first_hop[peer.handle] = device
                frontier.append(peer)
        while frontier:
            node = frontier.popleft()
            for device in node.devices:
                peer = device.peer.node if device.peer else None
                if peer is None or peer.handle in seen:
                    continue
                seen.add(peer.handle)
                first_hop[peer.handle] = first_hop[node.handle]
                frontier.append(peer)
        return first_hop

    def subscribe(self, device: int, event: str, callback: Callable[[int], None]) -> None:
        hooks = self.devices[device].hooks
        if event not in hooks:
            raise ValueError(f"Unsupported device event: {event}")
        hooks[event].append(callback)

    def queue_depth(self, device: int) -> int:
        return len(self.devices[device].queue)

    def queue_layers(self, device: int) -> List[QueueStats]:
        return [self.devices[device].queue.stats()]

    def run(self, until: float) -> None:
        executed = self.scheduler.run(until=until)
        self._log.info("simulation stopped at t=%.3fs after %d events", self.now(), executed)
