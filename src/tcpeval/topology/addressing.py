from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence, Set, Tuple

from tcpeval.core.types import IfaceId


class AddressHelper:
    """Hands out host addresses from one network at a time.

    ``assign`` returns the next host address of the current network;
    ``new_network`` advances the cursor to the next network of the same size,
    e.g. 10.1.1.0/24 -> 10.1.2.0/24.
    """

    def __init__(self, base: str, mask: str = "255.255.255.0") -> None:
        self._network = ipaddress.IPv4Network(f"{base}/{mask}", strict=True)
        self._next_host = 1

    @property
    def network(self) -> ipaddress.IPv4Network:
        return self._network

    def assign(self) -> Tuple[str, str]:
        host = int(self._network.network_address) + self._next_host
        if host >= int(self._network.broadcast_address):
            raise ValueError(f"no host addresses left in {self._network}")
        self._next_host += 1
        return str(ipaddress.IPv4Address(host)), str(self._network)

    def new_network(self) -> None:
        nxt = int(self._network.network_address) + self._network.num_addresses
        if nxt > int(ipaddress.IPv4Address("255.255.255.255")):
            raise ValueError(f"address space exhausted after {self._network}")
        self._network = ipaddress.IPv4Network((nxt, self._network.prefixlen))
        self._next_host = 1


@dataclass(frozen=True)
class AddressBlock:
    segment: str
    network: str
    interfaces: Tuple[IfaceId, ...]
    addresses: Tuple[str, ...]


class AddressPlan:
    """Ordered record of every address block handed out for one topology."""

    def __init__(self) -> None:
        self.blocks: List[AddressBlock] = []
        self._networks: Set[str] = set()
        self._addresses: Set[str] = set()

    def allocate(self, segment: str, helper: AddressHelper, topology: Any, ifaces: Sequence[IfaceId]) -> List[str]:
        addresses: List[str] = []
        network = ""
        for iface_id in ifaces:
            address, network = helper.assign()
            if address in self._addresses:
                raise ValueError(f"address {address} assigned twice ({segment})")
            iface = topology.interface(iface_id)
            iface.address = address
            iface.network = network
            self._addresses.add(address)
            addresses.append(address)
        if network in self._networks:
            raise ValueError(f"address segments overlap at {network} ({segment})")
        self._networks.add(network)
        self.blocks.append(
            AddressBlock(
                segment=segment,
                network=network,
                interfaces=tuple(ifaces),
                addresses=tuple(addresses),
            )
        )
        helper.new_network()
        return addresses

    def segment_blocks(self, segment: str) -> List[AddressBlock]:
        return [b for b in self.blocks if b.segment == segment]

    def to_rows(self) -> List[Dict[str, Any]]:
        return [
            {
                "segment": b.segment,
                "network": b.network,
                "interfaces": list(b.interfaces),
                "addresses": list(b.addresses),
            }
            for b in self.blocks
        ]
