"""Topology builders: dumbbell and parking-lot link graphs with address plans."""

from tcpeval.topology.addressing import AddressHelper, AddressPlan
from tcpeval.topology.dumbbell import DumbbellTopology
from tcpeval.topology.parking_lot import ParkingLotTopology
from tcpeval.topology.topology import Topology, TopologyBuilder, allocate_leaf_ranges

__all__ = [
    "AddressHelper",
    "AddressPlan",
    "DumbbellTopology",
    "ParkingLotTopology",
    "Topology",
    "TopologyBuilder",
    "allocate_leaf_ranges",
]
