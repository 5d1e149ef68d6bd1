"""Packet routing and path search over topology snapshots."""

from satrelay.routing.packets import DataPacket, Endpoint, NodeKind
from satrelay.routing.pathfinding import NetworkPath, PathfindingEngine
from satrelay.routing.router import PacketRouter

__all__ = [
    # packets.py
    "DataPacket",
    "Endpoint",
    "NodeKind",
    # pathfinding.py
    "NetworkPath",
    "PathfindingEngine",
    # router.py
    "PacketRouter",
]
