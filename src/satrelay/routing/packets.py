"""Packet records and queue ordering."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Literal, Mapping, Optional, Tuple

PacketStatus = Literal["queued", "in-transit", "delivered", "dropped"]
DropReason = Literal["timeout", "no-route"]

TERMINAL_STATUSES: Tuple[str, ...] = ("delivered", "dropped")
INTERNET_NODE_ID = "internet"


class NodeKind(str, Enum):
    """Everything a packet endpoint or hop can be."""
    SATELLITE = "satellite"
    GROUND_STATION = "groundStation"
    INTERNET = "internet"

    @classmethod
    def parse(cls, value: object) -> Optional["NodeKind"]:
        """Coerce a kind or its string value; None when unrecognised."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


@dataclass(frozen=True)
class Endpoint:
    """
    Source or destination of a packet.

    ``position`` is (lat_deg, lon_deg) captured at creation. The internet sink
    has no position.
    """
    kind: NodeKind
    id: str
    position: Optional[Tuple[float, float]] = None


@dataclass
class DataPacket:
    id: str
    source: Endpoint
    destination: Endpoint
    size_kb: float
    priority: int
    created_at: float  # simulated seconds
    latency_seconds: float = 0.0
    path: List[str] = field(default_factory=list)
    status: PacketStatus = "queued"
    drop_reason: Optional[DropReason] = None

    @property
    def current_node(self) -> str:
        return self.path[-1]

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def hop_count(self) -> int:
        hops = len(self.path) - 1
        if self.path and self.path[-1] == INTERNET_NODE_ID:
            hops -= 1
        return hops


def insert_by_priority(
    queue: List[str], packet_id: str, priority: int, priorities: Mapping[str, int]
) -> int:
    """
    Insert ``packet_id`` into ``queue`` by priority (lower value = more urgent).

    The packet goes behind every queued packet with an equal or lower value,
    so packets already in the queue keep their relative order.

    Returns:
        Index at which the packet was inserted
    """
    index = len(queue)
    while index > 0 and priorities[queue[index - 1]] > priority:
        index -= 1
    queue.insert(index, packet_id)
    return index
