from __future__ import annotations

from typing import Any, List

from tcpeval.core.types import Link, LinkKind, NodeId, NodeRole, TrafficParameters
from tcpeval.topology.addressing import AddressHelper, AddressPlan
from tcpeval.topology.topology import TopologyBuilder

LEFT_BASE = "10.1.1.0"
RIGHT_BASE = "10.10.1.0"
ROUTER_BASE = "10.50.1.0"
CROSS_SOURCE_BASE = "10.100.1.0"
CROSS_SINK_BASE = "10.150.1.0"


class ParkingLotTopology(TopologyBuilder):
    """A chain of H+1 routers with K single-hop cross flows per hop.

    Cross sources of hop ``i`` hang off router ``i`` and their sinks off
    router ``i + 1``, so every cross flow crosses exactly one bottleneck.
    """

    variant = "parking-lot"

    def __init__(self, params: Any, traffic: TrafficParameters, hops: int) -> None:
        super().__init__(params, traffic, hops=hops)
        self.cross_per_hop = max(0, int(traffic.cross_ftp_flows))
        self._cross_sources: List[List[NodeId]] = []
        self._cross_sinks: List[List[NodeId]] = []
        self._cross_source_links: List[List[Link]] = []
        self._cross_sink_links: List[List[Link]] = []

    def _create(self) -> None:
        self._create_routers()
        self._create_leaves()
        cross = self.params.cross_link()
        for i in range(self.hops):
            sources: List[NodeId] = []
            sinks: List[NodeId] = []
            source_links: List[Link] = []
            sink_links: List[Link] = []
            for j in range(self.cross_per_hop):
                src = self.topology.add_node(NodeRole.CROSS_SOURCE, f"cross_source{i}_{j}")
                dst = self.topology.add_node(NodeRole.CROSS_SINK, f"cross_sink{i}_{j}")
                source_links.append(self.topology.add_link(self.router(i), src, cross, LinkKind.CROSS))
                sink_links.append(self.topology.add_link(self.router(i + 1), dst, cross, LinkKind.CROSS))
                sources.append(src)
                sinks.append(dst)
            self._cross_sources.append(sources)
            self._cross_sinks.append(sinks)
            self._cross_source_links.append(source_links)
            self._cross_sink_links.append(sink_links)

    def _assign_addresses(self) -> None:
        self.plan = AddressPlan()
        self._assign_leaf_and_router_addresses(
            self.plan,
            AddressHelper(LEFT_BASE),
            AddressHelper(RIGHT_BASE),
            AddressHelper(ROUTER_BASE),
        )
        source_ip = AddressHelper(CROSS_SOURCE_BASE)
        sink_ip = AddressHelper(CROSS_SINK_BASE)
        for i in range(self.hops):
            for j in range(self.cross_per_hop):
                src_link = self._cross_source_links[i][j]
                self.plan.allocate("cross-source", source_ip, self.topology, (src_link.a_iface, src_link.b_iface))
                dst_link = self._cross_sink_links[i][j]
                self.plan.allocate("cross-sink", sink_ip, self.topology, (dst_link.a_iface, dst_link.b_iface))

    def cross_source(self, hop: int, j: int) -> NodeId:
        return self._cross_sources[hop][j]

    def cross_sink(self, hop: int, j: int) -> NodeId:
        return self._cross_sinks[hop][j]

    def cross_source_count(self, hop: int) -> int:
        return len(self._cross_sources[hop])

    def cross_sink_count(self, hop: int) -> int:
        return len(self._cross_sinks[hop])

    def cross_source_address(self, hop: int, j: int) -> str:
        return self._address(self._cross_source_links[hop][j].b_iface)

    def cross_sink_address(self, hop: int, j: int) -> str:
        return self._address(self._cross_sink_links[hop][j].b_iface)

    def router_cross_source_address(self, hop: int, j: int) -> str:
        return self._address(self._cross_source_links[hop][j].a_iface)

    def router_cross_sink_address(self, hop: int, j: int) -> str:
        return self._address(self._cross_sink_links[hop][j].a_iface)

    def router_to_router_interface(self, from_router: int, to_router: int) -> int:
        for r in (from_router, to_router):
            if not 0 <= r < self.router_count():
                raise ValueError(f"router index {r} out of range (0..{self.router_count() - 1})")
        if abs(from_router - to_router) != 1:
            raise ValueError(f"routers {from_router} and {to_router} are not adjacent")
        # Router interfaces come in pairs per hop: 2*h faces downstream, 2*h+1 upstream.
        pairs = [iface for link in self._router_links for iface in (link.a_iface, link.b_iface)]
        if from_router < to_router:
            return pairs[2 * from_router]
        return pairs[2 * from_router - 1]

    def router_to_router_address(self, from_router: int, to_router: int) -> str:
        return self._address(self.router_to_router_interface(from_router, to_router))
