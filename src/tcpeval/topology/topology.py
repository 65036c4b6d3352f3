from __future__ import annotations

from typing import Any, Dict, List, Optional

from tcpeval.core.types import (
    LEAF_CLASS_ORDER,
    Interface,
    Link,
    LinkKind,
    LinkSpec,
    Node,
    NodeId,
    NodeRole,
    TrafficClass,
    TrafficParameters,
)

LEAF_ROLES = frozenset({NodeRole.LEAF, NodeRole.CROSS_SOURCE, NodeRole.CROSS_SINK})


class Topology:
    """Arena of nodes, links and interfaces, addressed by integer index."""

    def __init__(self) -> None:
        self.nodes: List[Node] = []
        self.links: List[Link] = []
        self.interfaces: List[Interface] = []
        self._node_handles: Dict[int, Any] = {}
        self._iface_handles: Dict[int, Any] = {}

    def add_node(self, role: NodeRole, name: str) -> NodeId:
        node = Node(node_id=len(self.nodes), role=role, name=name)
        self.nodes.append(node)
        return node.node_id

    def add_link(self, a: NodeId, b: NodeId, spec: LinkSpec, kind: LinkKind) -> Link:
        link_id = len(self.links)
        a_iface = self._add_interface(a, link_id)
        b_iface = self._add_interface(b, link_id)
        link = Link(link_id=link_id, kind=kind, a_iface=a_iface, b_iface=b_iface, spec=spec)
        self.links.append(link)
        return link

    def _add_interface(self, node_id: NodeId, link_id: int) -> int:
        iface = Interface(iface_id=len(self.interfaces), node_id=node_id, link_id=link_id)
        self.interfaces.append(iface)
        self.nodes[node_id].interfaces.append(iface.iface_id)
        return iface.iface_id

    def node(self, node_id: NodeId) -> Node:
        return self.nodes[node_id]

    def link(self, link_id: int) -> Link:
        return self.links[link_id]

    def interface(self, iface_id: int) -> Interface:
        return self.interfaces[iface_id]

    def count(self, role: NodeRole) -> int:
        return sum(1 for n in self.nodes if n.role == role)

    def links_of_kind(self, kind: LinkKind) -> List[Link]:
        return [link for link in self.links if link.kind == kind]

    def link_nodes(self, link: Link) -> tuple[NodeId, NodeId]:
        return self.interfaces[link.a_iface].node_id, self.interfaces[link.b_iface].node_id

    def neighbors(self, node_id: NodeId) -> List[NodeId]:
        out: List[NodeId] = []
        for iface_id in self.nodes[node_id].interfaces:
            a, b = self.link_nodes(self.links[self.interfaces[iface_id].link_id])
            out.append(b if a == node_id else a)
        return out

    def addresses(self) -> List[str]:
        return [i.address for i in self.interfaces if i.address is not None]

    def validate(self) -> None:
        for node in self.nodes:
            if node.role not in LEAF_ROLES and not node.interfaces:
                raise ValueError(f"{node.name} has no links")
        for link in self.links:
            a, b = self.link_nodes(link)
            roles = {self.nodes[a].role, self.nodes[b].role}
            if link.kind == LinkKind.BOTTLENECK:
                if roles != {NodeRole.ROUTER}:
                    raise ValueError(f"bottleneck link {link.link_id} does not join two routers")
            elif not roles & LEAF_ROLES:
                raise ValueError(f"{link.kind.value} link {link.link_id} has no leaf end")

    def install(self, engine: Any) -> None:
        """Realize the arena in a simulation engine, then push its addresses."""
        self._node_handles = {n.node_id: engine.create_node(n.name) for n in self.nodes}
        for link in self.links:
            a, b = self.link_nodes(link)
            dev_a, dev_b = engine.create_link(self._node_handles[a], self._node_handles[b], link.spec)
            self._iface_handles[link.a_iface] = dev_a
            self._iface_handles[link.b_iface] = dev_b
        for iface in self.interfaces:
            if iface.address is None or iface.network is None:
                continue
            prefixlen = int(iface.network.split("/")[1])
            engine.assign_address(self._iface_handles[iface.iface_id], iface.address, prefixlen)

    def node_handle(self, node_id: NodeId) -> Any:
        return self._node_handles[node_id]

    def iface_handle(self, iface_id: int) -> Any:
        return self._iface_handles[iface_id]


def allocate_leaf_ranges(traffic: TrafficParameters) -> Dict[TrafficClass, range]:
    ranges: Dict[TrafficClass, range] = {}
    offset = 0
    for traffic_class in LEAF_CLASS_ORDER:
        count = traffic.count(traffic_class)
        if count <= 0:
            continue
        ranges[traffic_class] = range(offset, offset + count)
        offset += count
    return ranges


class TopologyBuilder:
    """Shared leaf/router bookkeeping for the dumbbell and parking-lot builders.

    Left leaf ``i`` and right leaf ``i`` always form the endpoint pair of leaf
    index ``i``; traffic classes own contiguous blocks of these indices (see
    ``leaf_ranges``).
    """

    variant = ""

    def __init__(self, params: Any, traffic: TrafficParameters, hops: int) -> None:
        self.params = params
        self.traffic = traffic
        self.hops = int(hops)
        self.leaf_ranges = allocate_leaf_ranges(traffic)
        self.n_leaves = traffic.leaf_count()
        self.topology = Topology()
        self.plan: Optional[Any] = None
        self._routers: List[NodeId] = []
        self._left: List[NodeId] = []
        self._right: List[NodeId] = []
        self._left_links: List[Link] = []
        self._right_links: List[Link] = []
        self._router_links: List[Link] = []
        self._built = False

    def build(self) -> Topology:
        if self._built:
            return self.topology
        self._create()
        self._assign_addresses()
        self.topology.validate()
        self._built = True
        return self.topology

    def _create(self) -> None:
        raise NotImplementedError

    def _assign_addresses(self) -> None:
        raise NotImplementedError

    def _create_routers(self) -> None:
        bottleneck = self.params.bottleneck_link(self.traffic.use_aqm)
        for i in range(self.hops + 1):
            self._routers.append(self.topology.add_node(NodeRole.ROUTER, f"router{i}"))
            if i > 0:
                self._router_links.append(
                    self.topology.add_link(self._routers[i - 1], self._routers[i], bottleneck, LinkKind.BOTTLENECK)
                )

    def _create_leaves(self) -> None:
        access = self.params.access_link()
        first, last = self._routers[0], self._routers[-1]
        for i in range(self.n_leaves):
            leaf = self.topology.add_node(NodeRole.LEAF, f"left{i}")
            self._left.append(leaf)
            self._left_links.append(self.topology.add_link(first, leaf, access, LinkKind.ACCESS))
        for i in range(self.n_leaves):
            leaf = self.topology.add_node(NodeRole.LEAF, f"right{i}")
            self._right.append(leaf)
            self._right_links.append(self.topology.add_link(last, leaf, access, LinkKind.ACCESS))

    def _assign_leaf_and_router_addresses(self, plan: Any, left: Any, right: Any, router: Any) -> None:
        # Leaf side first so the leaf takes the .1 host address.
        for link in self._left_links:
            plan.allocate("left", left, self.topology, (link.b_iface, link.a_iface))
        for link in self._right_links:
            plan.allocate("right", right, self.topology, (link.b_iface, link.a_iface))
        for link in self._router_links:
            plan.allocate("router", router, self.topology, (link.a_iface, link.b_iface))

    def left(self, i: int) -> NodeId:
        return self._left[i]

    def right(self, i: int) -> NodeId:
        return self._right[i]

    def router(self, i: int) -> NodeId:
        return self._routers[i]

    def left_count(self) -> int:
        return len(self._left)

    def right_count(self) -> int:
        return len(self._right)

    def router_count(self) -> int:
        return len(self._routers)

    def bottleneck_count(self) -> int:
        return len(self._router_links)

    def left_address(self, i: int) -> str:
        return self._address(self._left_links[i].b_iface)

    def right_address(self, i: int) -> str:
        return self._address(self._right_links[i].b_iface)

    def left_router_address(self, i: int) -> str:
        return self._address(self._left_links[i].a_iface)

    def right_router_address(self, i: int) -> str:
        return self._address(self._right_links[i].a_iface)

    def bottleneck_interface(self) -> int:
        """Router 0's interface on the first bottleneck link, forward direction."""
        return self._router_links[0].a_iface

    def _address(self, iface_id: int) -> str:
        address = self.topology.interface(iface_id).address
        if address is None:
            raise ValueError("addresses have not been assigned; call build() first")
        return address

    def summary(self) -> Dict[str, int]:
        return {
            "routers": self.router_count(),
            "left_leaves": self.left_count(),
            "right_leaves": self.right_count(),
            "bottleneck_links": self.bottleneck_count(),
            "cross_sources": self.topology.count(NodeRole.CROSS_SOURCE),
            "cross_sinks": self.topology.count(NodeRole.CROSS_SINK),
            "links": len(self.topology.links),
            "interfaces": len(self.topology.interfaces),
        }
