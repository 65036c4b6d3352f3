from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional, Tuple

from tcpeval.core.types import LinkSpec, QueueStats, RateSpec

ENDPOINT_BULK = "bulk"
ENDPOINT_ONOFF = "onoff"
ENDPOINT_SINK = "sink"

EVENT_TRANSMIT = "transmit"
EVENT_ENQUEUE = "enqueue"


class Engine(ABC):
    """What the experiment core needs from a discrete-event network simulator.

    Handles returned by the engine are opaque to callers. ``transmit`` hooks
    receive the packet size in bytes, ``enqueue`` hooks the queue depth in
    packets right after the enqueue.
    """

    @abstractmethod
    def now(self) -> float:
        raise NotImplementedError

    @abstractmethod
    def schedule(self, delay: float, callback: Callable[..., None], *args: Any) -> None:
        raise NotImplementedError

    @abstractmethod
    def create_node(self, name: str) -> Any:
        raise NotImplementedError

    @abstractmethod
    def create_link(self, a: Any, b: Any, spec: LinkSpec) -> Tuple[Any, Any]:
        raise NotImplementedError

    @abstractmethod
    def assign_address(self, device: Any, address: str, prefixlen: int) -> None:
        raise NotImplementedError

    @abstractmethod
    def create_endpoint(
        self,
        kind: str,
        node: Any,
        address: str,
        port: int,
        rate: Optional[RateSpec] = None,
    ) -> Any:
        raise NotImplementedError

    @abstractmethod
    def start(self, endpoint: Any, at: float) -> None:
        raise NotImplementedError

    @abstractmethod
    def stop(self, endpoint: Any, at: float) -> None:
        raise NotImplementedError

    @abstractmethod
    def populate_routes(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def subscribe(self, device: Any, event: str, callback: Callable[[int], None]) -> None:
        raise NotImplementedError

    @abstractmethod
    def queue_depth(self, device: Any) -> int:
        raise NotImplementedError

    @abstractmethod
    def queue_layers(self, device: Any) -> List[QueueStats]:
        """Counters of every queueing layer on ``device``, outermost first."""
        raise NotImplementedError

    @abstractmethod
    def run(self, until: float) -> None:
        raise NotImplementedError
