from __future__ import annotations

import pytest

from tcpeval.core.params import TopologyTargets, derive_parameters
from tcpeval.core.types import LinkKind, NodeRole, TrafficParameters
from tcpeval.topology.parking_lot import ParkingLotTopology


def _builder(hops: int = 3, cross: int = 2, fwd: int = 1) -> ParkingLotTopology:
    traffic = TrafficParameters(
        fwd_ftp_flows=fwd,
        rev_ftp_flows=0,
        cross_ftp_flows=cross,
        voice_flows=0,
        fwd_streaming_flows=0,
        rev_streaming_flows=0,
        simulation_time=100.0,
    )
    params = derive_parameters(TopologyTargets(hops=hops), traffic)
    builder = ParkingLotTopology(params, traffic, hops=hops)
    builder.build()
    return builder


def test_parking_lot_shape() -> None:
    builder = _builder(hops=3, cross=2)
    topo = builder.topology

    assert builder.router_count() == 4
    assert builder.bottleneck_count() == 3
    for hop in range(3):
        assert builder.cross_source_count(hop) == 2
        assert builder.cross_sink_count(hop) == 2
    assert topo.count(NodeRole.CROSS_SOURCE) == 6
    assert topo.count(NodeRole.CROSS_SINK) == 6
    assert len(topo.links_of_kind(LinkKind.CROSS)) == 12


def test_cross_leaves_attach_to_adjacent_routers() -> None:
    builder = _builder(hops=3, cross=2)
    topo = builder.topology
    for hop in range(3):
        for j in range(2):
            assert topo.neighbors(builder.cross_source(hop, j)) == [builder.router(hop)]
            assert topo.neighbors(builder.cross_sink(hop, j)) == [builder.router(hop + 1)]


def test_router_chain_addresses() -> None:
    builder = _builder(hops=3)

    assert builder.router_to_router_address(0, 1) == "10.50.1.1"
    assert builder.router_to_router_address(1, 0) == "10.50.1.2"
    assert builder.router_to_router_address(1, 2) == "10.50.2.1"
    assert builder.router_to_router_address(2, 1) == "10.50.2.2"
    assert builder.router_to_router_address(3, 2) == "10.50.3.2"


def test_non_adjacent_routers_have_no_address() -> None:
    builder = _builder(hops=3)
    with pytest.raises(ValueError):
        builder.router_to_router_address(0, 2)
    with pytest.raises(ValueError):
        builder.router_to_router_interface(1, 1)
    with pytest.raises(ValueError):
        builder.router_to_router_address(0, -1)
    with pytest.raises(ValueError):
        builder.router_to_router_address(3, 4)
    with pytest.raises(ValueError):
        builder.router_to_router_interface(-1, 0)
    assert builder.router_to_router_address(2, 3) == "10.50.3.1"


def test_cross_addresses() -> None:
    builder = _builder(hops=2, cross=2)

    assert builder.router_cross_source_address(0, 0) == "10.100.1.1"
    assert builder.cross_source_address(0, 0) == "10.100.1.2"
    assert builder.cross_source_address(0, 1) == "10.100.2.2"
    assert builder.cross_source_address(1, 0) == "10.100.3.2"
    assert builder.router_cross_sink_address(0, 0) == "10.150.1.1"
    assert builder.cross_sink_address(1, 1) == "10.150.4.2"
    assert builder.left_address(0) == "10.1.1.1"
    assert builder.right_address(0) == "10.10.1.1"


def test_parking_lot_addresses_unique_and_deterministic() -> None:
    first = _builder(hops=4, cross=3, fwd=5)
    second = _builder(hops=4, cross=3, fwd=5)
    addresses = first.topology.addresses()
    assert len(set(addresses)) == len(addresses) == len(first.topology.interfaces)
    assert first.plan.to_rows() == second.plan.to_rows()


def test_zero_cross_flows_creates_no_cross_leaves() -> None:
    builder = _builder(hops=2, cross=0)
    assert builder.topology.count(NodeRole.CROSS_SOURCE) == 0
    assert builder.cross_source_count(0) == 0
    assert builder.router_count() == 3
