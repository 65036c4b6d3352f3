from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict

from tcpeval.core.types import ConfigError, LinkSpec, QueueSpec, RedParameters, TrafficParameters

# Share of the round-trip propagation delay spent on the bottleneck chain.
BOTTLENECK_DELAY_SHARE = 0.8
ACCESS_DELAY_SHARE = 0.2
ACCESS_BANDWIDTH_FACTOR = 2.0

RED_MIN_FRACTION = 0.6
RED_MAX_FRACTION = 0.8
RED_QUEUE_WEIGHT = 0.001
RED_L_INTERM = 10.0
RED_GENTLE = True

ACCESS_BUFFER_POLICIES = ("mirror", "bdp")

# A queue must hold at least one packet, even with no bulk flows and a tiny BDP.
MIN_BUFFER_PACKETS = 1


@dataclass(frozen=True)
class TopologyTargets:
    bandwidth: float = 10.0
    rttp: float = 0.08
    rtt_difference: float = 0.0
    hops: int = 1
    cross_link_delay: float = 0.01
    bdp_factor: float = 1.0
    access_buffer: str = "mirror"


@dataclass(frozen=True)
class DerivedParameters:
    bottleneck_bandwidth: float
    bottleneck_delay: float
    access_bandwidth: float
    access_delay: float
    cross_link_delay: float
    delay_difference: float
    mean_rtt_ms: float
    bottleneck_buffer: int
    access_buffer: int

    def bottleneck_link(self, use_aqm: bool) -> LinkSpec:
        if use_aqm:
            queue = QueueSpec("red", self.bottleneck_buffer, red_parameters(self.bottleneck_buffer))
        else:
            queue = QueueSpec("droptail", self.bottleneck_buffer)
        return LinkSpec(self.bottleneck_bandwidth * 1e6, self.bottleneck_delay, queue)

    def access_link(self) -> LinkSpec:
        return LinkSpec(
            self.access_bandwidth * 1e6,
            self.access_delay,
            QueueSpec("droptail", self.access_buffer),
        )

    def cross_link(self) -> LinkSpec:
        return LinkSpec(
            self.access_bandwidth * 1e6,
            self.cross_link_delay,
            QueueSpec("droptail", self.access_buffer),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def check_targets(targets: TopologyTargets) -> None:
    errors = []
    if targets.bandwidth <= 0:
        errors.append("bottleneck bandwidth must be > 0")
    if int(targets.hops) < 1:
        errors.append("bottleneck hop count must be >= 1")
    if targets.rttp < 0:
        errors.append("rttp must be >= 0")
    if targets.rtt_difference < 0:
        errors.append("rtt difference must be >= 0")
    if targets.bdp_factor <= 0:
        errors.append("bdp factor must be > 0")
    if targets.access_buffer not in ACCESS_BUFFER_POLICIES:
        errors.append(f"unknown access buffer policy: {targets.access_buffer}")
    if errors:
        raise ConfigError(errors)


def derive_parameters(targets: TopologyTargets, traffic: TrafficParameters) -> DerivedParameters:
    """Turn aggregate experiment targets into per-link-class parameters.

    Delays are in seconds, bandwidths in Mbps and buffers in packets. The
    bottleneck buffer is one bandwidth-delay product of the mean flow RTT,
    floored at two packets per bulk flow and never below one packet.
    """
    check_targets(targets)
    hops = int(targets.hops)
    rttp = float(targets.rttp)
    rtt_diff = float(targets.rtt_difference)

    bottleneck_delay = (rttp * 0.5 * BOTTLENECK_DELAY_SHARE) / hops
    access_delay = (rttp * 0.5 * ACCESS_DELAY_SHARE) / 2.0
    access_bandwidth = targets.bandwidth * ACCESS_BANDWIDTH_FACTOR

    n_bulk = traffic.fwd_ftp_flows + traffic.rev_ftp_flows
    floor = max(2 * n_bulk, MIN_BUFFER_PACKETS)
    mean_rtt_ms = (rttp + rtt_diff * max(traffic.fwd_ftp_flows - 1, 0) / 2.0) * 1000.0

    bottleneck_buffer = max(_bdp_packets(targets.bdp_factor, targets.bandwidth, mean_rtt_ms), floor)
    if targets.access_buffer == "bdp":
        access_buffer = max(_bdp_packets(targets.bdp_factor, access_bandwidth, mean_rtt_ms), floor)
    else:
        access_buffer = bottleneck_buffer

    return DerivedParameters(
        bottleneck_bandwidth=float(targets.bandwidth),
        bottleneck_delay=bottleneck_delay,
        access_bandwidth=access_bandwidth,
        access_delay=access_delay,
        cross_link_delay=float(targets.cross_link_delay),
        delay_difference=rtt_diff / 4.0,
        mean_rtt_ms=mean_rtt_ms,
        bottleneck_buffer=bottleneck_buffer,
        access_buffer=access_buffer,
    )


def red_parameters(buffer_packets: int) -> RedParameters:
    return RedParameters(
        min_th=RED_MIN_FRACTION * buffer_packets,
        max_th=RED_MAX_FRACTION * buffer_packets,
        queue_weight=RED_QUEUE_WEIGHT,
        l_interm=RED_L_INTERM,
        gentle=RED_GENTLE,
    )


def _bdp_packets(factor: float, bandwidth_mbps: float, rtt_ms: float) -> int:
    # Mbps * ms / 8 is kilobytes, read as ~1 KB packets.
    return int(factor * bandwidth_mbps * rtt_ms / 8.0)
