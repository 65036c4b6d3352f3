from __future__ import annotations

from typing import Any

from tcpeval.core.types import TrafficParameters
from tcpeval.topology.addressing import AddressHelper, AddressPlan
from tcpeval.topology.topology import TopologyBuilder

LEFT_BASE = "10.1.1.0"
RIGHT_BASE = "10.10.1.0"
ROUTER_BASE = "10.100.1.0"


class DumbbellTopology(TopologyBuilder):
    """Two routers joined by one bottleneck link, N leaves on each side."""

    variant = "dumbbell"

    def __init__(self, params: Any, traffic: TrafficParameters) -> None:
        super().__init__(params, traffic, hops=1)

    def _create(self) -> None:
        self._create_routers()
        self._create_leaves()

    def _assign_addresses(self) -> None:
        self.plan = AddressPlan()
        self._assign_leaf_and_router_addresses(
            self.plan,
            AddressHelper(LEFT_BASE),
            AddressHelper(RIGHT_BASE),
            AddressHelper(ROUTER_BASE),
        )

    @property
    def left_router(self) -> int:
        return self.router(0)

    @property
    def right_router(self) -> int:
        return self.router(1)
