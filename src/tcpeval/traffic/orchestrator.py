from __future__ import annotations

import logging
import random
from typing import Any, Dict, List, Optional, Tuple

from tcpeval.core.logging import JsonlLogger
from tcpeval.core.types import ConfigError, FlowPair, RateSpec, TrafficClass, TrafficParameters
from tcpeval.engine.base import ENDPOINT_BULK, ENDPOINT_ONOFF, ENDPOINT_SINK, Engine

FWD_BULK_PORT = 50000
REV_BULK_PORT = 50001
VOICE_FWD_PORT = 50002
VOICE_REV_PORT = 50003
FWD_STREAMING_PORT = 50004
REV_STREAMING_PORT = 50005
CROSS_BULK_PORT = 50006

VOICE_PACKET_SIZE = 172
VOICE_RATE_BPS = 64_000.0
VOICE_ON_TIME = 1.0
VOICE_OFF_TIME = 1.35
STREAMING_ON_TIME = 10.0
STREAMING_OFF_TIME = 0.0

START_WINDOW = (0.001, 0.3)
STOP_MARGIN = 3.0

STOP_POLICIES = ("drain", "shared")


class TrafficOrchestrator:
    """Creates the flow endpoint pairs of every traffic class.

    ``plan`` is pure and deterministic for a given seed; ``install`` pushes
    the planned pairs into an engine. Leaf-based classes walk the index block
    the topology builder reserved for them, cross flows walk every hop.

    Stop policy ``drain`` stops sources ``STOP_MARGIN`` before the horizon and
    sinks at the horizon; ``shared`` stops both at the horizon. Cross flows
    always stop both ends early.
    """

    def __init__(
        self,
        builder: Any,
        traffic: TrafficParameters,
        seed: int = 0,
        stop_policy: str = "drain",
        start_window: Tuple[float, float] = START_WINDOW,
        trace: JsonlLogger | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        if stop_policy not in STOP_POLICIES:
            raise ConfigError(f"unknown stop policy: {stop_policy}")
        lo, hi = float(start_window[0]), float(start_window[1])
        if lo < 0 or hi < lo:
            raise ConfigError(f"invalid start window: {start_window}")
        self.builder = builder
        self.traffic = traffic
        self.stop_policy = stop_policy
        self.start_window = (lo, hi)
        self._rng = random.Random(seed)
        self._trace = trace or JsonlLogger(path=None)
        self._log = logger or logging.getLogger("tcpeval.traffic")
        self._flows: Optional[List[FlowPair]] = None

    @property
    def horizon(self) -> float:
        return float(self.traffic.simulation_time)

    def _start_time(self) -> float:
        return self._rng.uniform(*self.start_window)

    def _stops(self, start: float) -> Tuple[float, float]:
        early = max(start, self.horizon - STOP_MARGIN)
        if self.stop_policy == "shared":
            return self.horizon, self.horizon
        return early, self.horizon

    def _streaming_rate(self) -> RateSpec:
        return RateSpec(
            rate_bps=self.traffic.streaming_rate * 1000.0,
            packet_size=int(self.traffic.streaming_packet_size),
            on_time=STREAMING_ON_TIME,
            off_time=STREAMING_OFF_TIME,
        )

    def plan(self) -> List[FlowPair]:
        if self._flows is not None:
            return list(self._flows)
        flows: List[FlowPair] = []
        ranges = self.builder.leaf_ranges

        for i in ranges.get(TrafficClass.FWD_BULK, ()):
            flows.append(self._leaf_pair(TrafficClass.FWD_BULK, i, True, FWD_BULK_PORT))
        for i in ranges.get(TrafficClass.REV_BULK, ()):
            flows.append(self._leaf_pair(TrafficClass.REV_BULK, i, False, REV_BULK_PORT))

        if self.traffic.cross_ftp_flows > 0 and self.builder.variant == "parking-lot":
            flows.extend(self._cross_pairs())

        voice = RateSpec(VOICE_RATE_BPS, VOICE_PACKET_SIZE, VOICE_ON_TIME, VOICE_OFF_TIME)
        for i in ranges.get(TrafficClass.TWO_WAY, ()):
            start = self._start_time()
            flows.append(self._leaf_pair(TrafficClass.TWO_WAY, i, True, VOICE_FWD_PORT, voice, start))
            flows.append(self._leaf_pair(TrafficClass.TWO_WAY, i, False, VOICE_REV_PORT, voice, start))

        stream = self._streaming_rate()
        for i in ranges.get(TrafficClass.FWD_RATE, ()):
            flows.append(self._leaf_pair(TrafficClass.FWD_RATE, i, True, FWD_STREAMING_PORT, stream))
        for i in ranges.get(TrafficClass.REV_RATE, ()):
            flows.append(self._leaf_pair(TrafficClass.REV_RATE, i, False, REV_STREAMING_PORT, stream))

        self._flows = flows
        return list(flows)

    def _leaf_pair(
        self,
        traffic_class: TrafficClass,
        index: int,
        forward: bool,
        port: int,
        rate: Optional[RateSpec] = None,
        start: Optional[float] = None,
    ) -> FlowPair:
        if start is None:
            start = self._start_time()
        b = self.builder
        if forward:
            source, sink, sink_address = b.left(index), b.right(index), b.right_address(index)
        else:
            source, sink, sink_address = b.right(index), b.left(index), b.left_address(index)
        source_stop, sink_stop = self._stops(start)
        return FlowPair(
            traffic_class=traffic_class,
            index=index,
            source=source,
            sink=sink,
            sink_address=sink_address,
            port=port,
            start=start,
            source_stop=source_stop,
            sink_stop=sink_stop,
            rate=rate,
        )

    def _cross_pairs(self) -> List[FlowPair]:
        pairs: List[FlowPair] = []
        b = self.builder
        for hop in range(b.router_count() - 1):
            for j in range(b.cross_source_count(hop)):
                start = self._start_time()
                stop = max(start, self.horizon - STOP_MARGIN)
                pairs.append(
                    FlowPair(
                        traffic_class=TrafficClass.CROSS_BULK,
                        index=j,
                        source=b.cross_source(hop, j),
                        sink=b.cross_sink(hop, j),
                        sink_address=b.cross_sink_address(hop, j),
                        port=CROSS_BULK_PORT,
                        start=start,
                        source_stop=stop,
                        sink_stop=stop,
                        hop=hop,
                    )
                )
        return pairs

    def install(self, engine: Engine) -> List[FlowPair]:
        topology = self.builder.topology
        flows = self.plan()
        for flow in flows:
            sink_node = topology.node_handle(flow.sink)
            source_node = topology.node_handle(flow.source)
            sink = engine.create_endpoint(ENDPOINT_SINK, sink_node, flow.sink_address, flow.port)
            kind = ENDPOINT_ONOFF if flow.rate is not None else ENDPOINT_BULK
            source = engine.create_endpoint(kind, source_node, flow.sink_address, flow.port, flow.rate)
            engine.start(source, flow.start)
            engine.stop(source, flow.source_stop)
            engine.start(sink, flow.start)
            engine.stop(sink, flow.sink_stop)
            self._trace.log(
                "flow_created",
                traffic_class=flow.traffic_class.value,
                index=flow.index,
                hop=flow.hop,
                sink_address=flow.sink_address,
                port=flow.port,
                start=flow.start,
                source_stop=flow.source_stop,
                sink_stop=flow.sink_stop,
            )
        self._log.info("installed %d flow pairs: %s", len(flows), self.counts())
        return flows

    def counts(self) -> Dict[str, int]:
        out = {c.value: 0 for c in TrafficClass}
        for flow in self.plan():
            out[flow.traffic_class.value] += 1
        return out
