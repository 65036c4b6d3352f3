from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

NodeId = int
LinkId = int
IfaceId = int


class ConfigError(ValueError):
    """Invalid experiment configuration, raised before anything is built."""

    def __init__(self, errors: List[str] | str) -> None:
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class NodeRole(str, Enum):
    LEAF = "leaf"
    ROUTER = "router"
    CROSS_SOURCE = "cross_source"
    CROSS_SINK = "cross_sink"


class LinkKind(str, Enum):
    ACCESS = "access"
    BOTTLENECK = "bottleneck"
    CROSS = "cross"


class TrafficClass(str, Enum):
    FWD_BULK = "forward-bulk"
    REV_BULK = "reverse-bulk"
    CROSS_BULK = "cross-bulk"
    TWO_WAY = "two-way-low-rate"
    FWD_RATE = "forward-constant-rate"
    REV_RATE = "reverse-constant-rate"


# Leaf index blocks are handed out in this order; cross flows use their own leaves.
LEAF_CLASS_ORDER: Tuple[TrafficClass, ...] = (
    TrafficClass.FWD_BULK,
    TrafficClass.REV_BULK,
    TrafficClass.TWO_WAY,
    TrafficClass.FWD_RATE,
    TrafficClass.REV_RATE,
)


@dataclass(frozen=True)
class RedParameters:
    min_th: float
    max_th: float
    queue_weight: float
    l_interm: float
    gentle: bool


@dataclass(frozen=True)
class QueueSpec:
    kind: str
    limit: int
    red: Optional[RedParameters] = None


@dataclass(frozen=True)
class LinkSpec:
    capacity_bps: float
    delay: float
    queue: QueueSpec


@dataclass
class Node:
    node_id: NodeId
    role: NodeRole
    name: str
    interfaces: List[IfaceId] = field(default_factory=list)


@dataclass
class Interface:
    iface_id: IfaceId
    node_id: NodeId
    link_id: LinkId
    address: Optional[str] = None
    network: Optional[str] = None


@dataclass
class Link:
    link_id: LinkId
    kind: LinkKind
    a_iface: IfaceId
    b_iface: IfaceId
    spec: LinkSpec


@dataclass(frozen=True)
class TrafficParameters:
    fwd_ftp_flows: int = 5
    rev_ftp_flows: int = 5
    cross_ftp_flows: int = 5
    voice_flows: int = 5
    fwd_streaming_flows: int = 5
    rev_streaming_flows: int = 5
    streaming_rate: float = 640.0
    streaming_packet_size: int = 840
    use_aqm: bool = False
    simulation_time: float = 10.0

    def count(self, traffic_class: TrafficClass) -> int:
        return {
            TrafficClass.FWD_BULK: self.fwd_ftp_flows,
            TrafficClass.REV_BULK: self.rev_ftp_flows,
            TrafficClass.CROSS_BULK: self.cross_ftp_flows,
            TrafficClass.TWO_WAY: self.voice_flows,
            TrafficClass.FWD_RATE: self.fwd_streaming_flows,
            TrafficClass.REV_RATE: self.rev_streaming_flows,
        }[traffic_class]

    def leaf_count(self) -> int:
        return sum(self.count(c) for c in LEAF_CLASS_ORDER)


@dataclass(frozen=True)
class RateSpec:
    rate_bps: float
    packet_size: int
    on_time: float
    off_time: float


@dataclass(frozen=True)
class FlowPair:
    traffic_class: TrafficClass
    index: int
    source: NodeId
    sink: NodeId
    sink_address: str
    port: int
    start: float
    source_stop: float
    sink_stop: float
    rate: Optional[RateSpec] = None
    hop: Optional[int] = None


@dataclass(frozen=True)
class QueueStats:
    received: int
    dropped: int
    requeued: int = 0
    depth: int = 0


@dataclass(frozen=True)
class SummaryRow:
    bandwidth: float
    rtt: float
    flow_count: int
    utilization: float
    queue: float
    drop_rate: float

    def format(self) -> str:
        return (
            f"{self.bandwidth:g}{self.rtt:>15g}{self.flow_count:>15d}"
            f"{self.utilization:>15g}{self.queue:>15g}{self.drop_rate:>15g}"
        )

    def as_dict(self) -> Dict[str, float]:
        return {
            "bandwidth": self.bandwidth,
            "rtt": self.rtt,
            "flow_count": self.flow_count,
            "utilization": self.utilization,
            "queue": self.queue,
            "drop_rate": self.drop_rate,
        }
