"""
Store-and-forward packet routing.

PacketRouter owns the packet table and moves packets between node queues.
Each packet follows ``queued -> in-transit -> delivered | dropped``; the last
two are terminal. Per tick, in creation order, every live packet:

    1. accumulates the tick's seconds as latency
    2. is dropped ("timeout") once latency exceeds the timeout
    3. advances only if it heads its current node's queue
    4. is delivered if it sits at its destination (or at an internet-connected
       ground station when bound for the internet)
    5. waits until latency covers its transmission time on the current node
    6. moves to the next hop, or is dropped ("no-route") if there is none

Next-hop selection is greedy and local. It uses only the connection lists the
topology builder wrote this tick, plus a hop-count map toward internet
gateways. It can disagree with PathfindingEngine; both are kept.
"""

from __future__ import annotations

import logging
import random
from typing import Dict, Iterable, List, Optional, Tuple

import networkx as nx

from satrelay.network.geo import Vector3, distance_km, haversine_km
from satrelay.network.ground_stations import GroundStation, GroundStationRegistry
from satrelay.network.orbits import Satellite
from satrelay.network.topology import TopologySnapshot
from satrelay.routing.packets import (
    INTERNET_NODE_ID,
    DataPacket,
    DropReason,
    Endpoint,
    NodeKind,
    insert_by_priority,
)
from satrelay.simulation.events import EventBus, SimulationEvent

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
RANDOM_PACKET_RATE_PER_SECOND = 0.1
RANDOM_PACKET_MIN_SIZE_KB = 100
RANDOM_PACKET_SIZE_SPAN_KB = 1000
RANDOM_PACKET_PRIORITIES = 3


def transmission_time_seconds(size_kb: float, bandwidth_mbps: float) -> float:
    """Seconds needed to push ``size_kb`` through ``bandwidth_mbps``."""
    if bandwidth_mbps <= 0:
        return float("inf")
    return size_kb / (bandwidth_mbps * 1024 / 8)


def megabits(size_kb: float) -> float:
    return size_kb * 8 / 1024


class PacketRouter:
    """
    Packet table, queues and the per-tick routing pass.

    Args:
        satellites: Live satellites by id, owned by the simulation
        stations: Ground station registry, owned by the simulation
        events: Bus receiving packet and traffic notifications
        timeout_seconds: Latency after which a packet is dropped
    """

    def __init__(
        self,
        satellites: Dict[str, Satellite],
        stations: GroundStationRegistry,
        events: EventBus,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        if timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be > 0, got {timeout_seconds}")
        self.satellites = satellites
        self.stations = stations
        self.events = events
        self.timeout_seconds = timeout_seconds
        self.packets: Dict[str, DataPacket] = {}
        self._next_packet_number = 1
        self._hops_cache: Optional[Tuple[TopologySnapshot, Tuple[str, ...], Dict[str, int]]] = None

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def node_kind(self, node_id: str) -> Optional[NodeKind]:
        if node_id == INTERNET_NODE_ID:
            return NodeKind.INTERNET
        if node_id in self.satellites:
            return NodeKind.SATELLITE
        if node_id in self.stations:
            return NodeKind.GROUND_STATION
        return None

    def queue_of(self, node_id: str) -> Optional[List[str]]:
        kind = self.node_kind(node_id)
        if kind is NodeKind.SATELLITE:
            return self.satellites[node_id].queue
        if kind is NodeKind.GROUND_STATION:
            return self.stations.get(node_id).queue
        return None

    def _priorities(self) -> Dict[str, int]:
        return {pid: p.priority for pid, p in self.packets.items()}

    def _destination_point(self, packet: DataPacket) -> Optional[Vector3]:
        """Current Cartesian point of the destination (satellites move)."""
        dest = packet.destination
        if dest.kind is NodeKind.SATELLITE:
            sat = self.satellites.get(dest.id)
            return sat.position if sat is not None else None
        if dest.kind is NodeKind.GROUND_STATION:
            gs = self.stations.get(dest.id)
            return gs.position if gs is not None else None
        return None

    # ------------------------------------------------------------------
    # Injection
    # ------------------------------------------------------------------

    def create_packet(
        self,
        source_type: object,
        source_id: str,
        dest_type: object,
        dest_id: str,
        size_kb: float,
        priority: int,
        now_seconds: float,
        snapshot: Optional[TopologySnapshot] = None,
    ) -> Optional[DataPacket]:
        """
        Create a packet at its source and try one routing step straight away.

        The immediate step skips the transmission gate and only runs when the
        new packet heads its source queue; otherwise it waits its turn.

        Returns:
            The packet, or None if either endpoint is invalid
        """
        source_kind = NodeKind.parse(source_type)
        dest_kind = NodeKind.parse(dest_type)
        if source_kind is None or dest_kind is None:
            logger.warning("create_packet: unknown node type %r -> %r", source_type, dest_type)
            return None
        if source_kind is NodeKind.INTERNET:
            logger.warning("create_packet: the internet cannot originate packets")
            return None
        if size_kb <= 0:
            logger.warning("create_packet: size must be positive, got %r", size_kb)
            return None

        source = self._endpoint(source_kind, source_id)
        destination = self._endpoint(dest_kind, dest_id)
        if source is None or destination is None:
            logger.warning(
                "create_packet: invalid endpoint %s:%s -> %s:%s",
                source_kind.value, source_id, dest_kind.value, dest_id,
            )
            return None

        packet = DataPacket(
            id=f"packet_{self._next_packet_number}",
            source=source,
            destination=destination,
            size_kb=size_kb,
            priority=priority,
            created_at=now_seconds,
            path=[source.id],
        )
        self._next_packet_number += 1
        self.packets[packet.id] = packet

        queue = self.queue_of(source.id)
        insert_by_priority(queue, packet.id, priority, self._priorities())

        packet.status = "in-transit"
        self.events.emit(SimulationEvent.PACKET_CREATED, packet)

        if queue[0] == packet.id:
            self._advance(packet, snapshot, apply_gate=False)
        return packet

    def _endpoint(self, kind: NodeKind, node_id: str) -> Optional[Endpoint]:
        if kind is NodeKind.SATELLITE:
            sat = self.satellites.get(node_id)
            if sat is None:
                return None
            lat, lon, _ = sat.geodetic
            return Endpoint(kind, node_id, (lat, lon))
        if kind is NodeKind.GROUND_STATION:
            gs = self.stations.get(node_id)
            if gs is None:
                return None
            return Endpoint(kind, node_id, (gs.lat_deg, gs.lon_deg))
        if kind is NodeKind.INTERNET:
            return Endpoint(kind, INTERNET_NODE_ID)
        raise AssertionError(f"unhandled node kind {kind!r}")

    def generate_random_traffic(
        self,
        delta_seconds: float,
        now_seconds: float,
        rng: random.Random,
        snapshot: Optional[TopologySnapshot] = None,
        rate_per_second: float = RANDOM_PACKET_RATE_PER_SECOND,
    ) -> Optional[DataPacket]:
        """
        Maybe inject one packet between two distinct ground stations.

        Fires with probability ``rate_per_second * delta_seconds``. Size is
        100-1099 KB and priority 0-2.
        """
        if rng.random() >= rate_per_second * delta_seconds:
            return None
        stations = self.stations.all()
        if len(stations) < 2:
            return None

        source, destination = rng.sample(stations, 2)
        size_kb = rng.randrange(RANDOM_PACKET_SIZE_SPAN_KB) + RANDOM_PACKET_MIN_SIZE_KB
        priority = rng.randrange(RANDOM_PACKET_PRIORITIES)
        return self.create_packet(
            NodeKind.GROUND_STATION,
            source.id,
            NodeKind.GROUND_STATION,
            destination.id,
            size_kb,
            priority,
            now_seconds,
            snapshot,
        )

    # ------------------------------------------------------------------
    # Per-tick pass
    # ------------------------------------------------------------------

    def process(self, delta_seconds: float, snapshot: Optional[TopologySnapshot] = None) -> None:
        """Advance every live packet once, in creation order."""
        delivered = dropped = routed = 0
        for packet in list(self.packets.values()):
            if packet.is_terminal:
                continue

            packet.latency_seconds += delta_seconds
            if packet.latency_seconds > self.timeout_seconds:
                self._drop(packet, "timeout")
                dropped += 1
                continue

            queue = self.queue_of(packet.current_node)
            if not queue or queue[0] != packet.id:
                continue

            outcome = self._advance(packet, snapshot, apply_gate=True)
            if outcome == "delivered":
                delivered += 1
            elif outcome == "dropped":
                dropped += 1
            elif outcome == "routed":
                routed += 1

        logger.debug(
            "Routing pass: %d routed, %d delivered, %d dropped", routed, delivered, dropped
        )

    def _advance(
        self, packet: DataPacket, snapshot: Optional[TopologySnapshot], apply_gate: bool
    ) -> str:
        """
        One step for a packet at the head of its queue.

        Returns:
            "delivered", "dropped", "routed" or "waiting"
        """
        current = packet.current_node
        kind = self.node_kind(current)

        if self._at_destination(packet, current, kind):
            self.queue_of(current).remove(packet.id)
            if packet.destination.kind is NodeKind.INTERNET:
                packet.path.append(INTERNET_NODE_ID)
            packet.status = "delivered"
            self.events.emit(SimulationEvent.PACKET_DELIVERED, packet)
            return "delivered"

        if apply_gate:
            needed = transmission_time_seconds(packet.size_kb, self._node_bandwidth(current, kind))
            if packet.latency_seconds < needed:
                return "waiting"

        next_hop = self.find_next_hop(packet, snapshot)
        if next_hop is None:
            if apply_gate:
                self._drop(packet, "no-route")
                return "dropped"
            # Fresh packets wait at their source for a link to appear
            return "waiting"

        self._hop(packet, current, next_hop)
        return "routed"

    def _at_destination(self, packet: DataPacket, current: str, kind: Optional[NodeKind]) -> bool:
        dest = packet.destination
        if dest.kind is NodeKind.INTERNET:
            return kind is NodeKind.GROUND_STATION and self.stations.get(current).internet
        return dest.id == current

    def _node_bandwidth(self, node_id: str, kind: Optional[NodeKind]) -> float:
        if kind is NodeKind.SATELLITE:
            return self.satellites[node_id].isl_bandwidth_mbps
        if kind is NodeKind.GROUND_STATION:
            return self.stations.get(node_id).bandwidth_mbps
        return 0.0

    def _hop(self, packet: DataPacket, from_id: str, to_id: str) -> None:
        self.queue_of(from_id).remove(packet.id)
        packet.path.append(to_id)
        insert_by_priority(self.queue_of(to_id), packet.id, packet.priority, self._priorities())
        self.events.emit(SimulationEvent.PACKET_ROUTED, packet, from_id, to_id)

        amount = megabits(packet.size_kb)
        if from_id in self.stations:
            self._add_traffic(from_id, "outgoing", amount)
        if to_id in self.stations:
            self._add_traffic(to_id, "incoming", amount)

    def _add_traffic(self, station_id: str, direction: str, amount: float) -> None:
        if self.stations.add_traffic(station_id, direction, amount):
            self.events.emit(SimulationEvent.TRAFFIC_ADDED, station_id, direction, amount)

    def _drop(self, packet: DataPacket, reason: DropReason) -> None:
        queue = self.queue_of(packet.current_node)
        if queue is not None and packet.id in queue:
            queue.remove(packet.id)
        packet.status = "dropped"
        packet.drop_reason = reason
        logger.debug("Dropped %s at %s (%s)", packet.id, packet.current_node, reason)
        self.events.emit(SimulationEvent.PACKET_DROPPED, packet)

    def sweep(self) -> int:
        """Forget delivered and dropped packets. Returns how many were removed."""
        terminal = [pid for pid, p in self.packets.items() if p.is_terminal]
        for pid in terminal:
            del self.packets[pid]
        return len(terminal)

    # ------------------------------------------------------------------
    # Next-hop selection
    # ------------------------------------------------------------------

    def find_next_hop(
        self, packet: DataPacket, snapshot: Optional[TopologySnapshot] = None
    ) -> Optional[str]:
        """Pick the next node for ``packet``, never revisiting a node on its path."""
        current = packet.current_node
        kind = self.node_kind(current)
        if kind is NodeKind.SATELLITE:
            return self._next_hop_from_satellite(packet, self.satellites[current], snapshot)
        if kind is NodeKind.GROUND_STATION:
            return self._next_hop_from_station(packet, self.stations.get(current), snapshot)
        if kind is NodeKind.INTERNET:
            return None
        logger.warning("find_next_hop: %s sits at unknown node %r", packet.id, current)
        return None

    def _next_hop_from_satellite(
        self, packet: DataPacket, sat: Satellite, snapshot: Optional[TopologySnapshot]
    ) -> Optional[str]:
        dest = packet.destination
        visited = set(packet.path)

        if dest.kind is NodeKind.GROUND_STATION:
            if dest.id in sat.connected_ground_stations:
                return dest.id
            gateway = self._internet_station(sat.connected_ground_stations, visited)
            if gateway is not None:
                return gateway
            relay = self._relay_with_closest_station(packet, sat, visited)
            if relay is not None:
                return relay
            closer = self._greedy_neighbour(sat.connected_satellites, visited, self._destination_point(packet))
            if closer is not None:
                return closer
            return self._fewest_hops_to_internet(sat.connected_satellites, visited, snapshot)

        if dest.kind is NodeKind.INTERNET:
            gateway = self._internet_station(sat.connected_ground_stations, visited)
            if gateway is not None:
                return gateway
            return self._fewest_hops_to_internet(sat.connected_satellites, visited, snapshot)

        if dest.kind is NodeKind.SATELLITE:
            if dest.id in sat.connected_satellites:
                return dest.id
            return self._greedy_neighbour(sat.connected_satellites, visited, self._destination_point(packet))

        raise AssertionError(f"unhandled destination kind {dest.kind!r}")

    def _next_hop_from_station(
        self, packet: DataPacket, gs: GroundStation, snapshot: Optional[TopologySnapshot]
    ) -> Optional[str]:
        dest = packet.destination
        visited = set(packet.path)

        if dest.kind is NodeKind.INTERNET:
            if gs.internet:
                return INTERNET_NODE_ID
            return self._fewest_hops_to_internet(gs.connected_satellites, visited, snapshot)

        if dest.kind in (NodeKind.GROUND_STATION, NodeKind.SATELLITE):
            if dest.id == gs.id:
                return None
            target = self._destination_point(packet)
            candidates = [s for s in gs.connected_satellites if s not in visited and s in self.satellites]
            if target is None:
                return candidates[0] if candidates else None
            return self._greedy_neighbour(candidates, visited, target)

        raise AssertionError(f"unhandled destination kind {dest.kind!r}")

    def _internet_station(self, station_ids: Iterable[str], visited: set) -> Optional[str]:
        for gs_id in station_ids:
            if gs_id in visited:
                continue
            gs = self.stations.get(gs_id)
            if gs is not None and gs.internet:
                return gs_id
        return None

    def _relay_with_closest_station(
        self, packet: DataPacket, sat: Satellite, visited: set
    ) -> Optional[str]:
        """Neighbour satellite whose ground link (to an unvisited station) lands nearest the destination."""
        if packet.destination.position is None:
            return None
        dest_lat, dest_lon = packet.destination.position

        best: Optional[str] = None
        best_distance = float("inf")
        for sat_id in sat.connected_satellites:
            if sat_id in visited:
                continue
            neighbour = self.satellites.get(sat_id)
            if neighbour is None:
                continue
            for gs_id in neighbour.connected_ground_stations:
                gs = self.stations.get(gs_id)
                if gs is None or gs_id in visited:
                    continue
                d = haversine_km(gs.lat_deg, gs.lon_deg, dest_lat, dest_lon)
                if d < best_distance:
                    best_distance = d
                    best = sat_id
        return best

    def _greedy_neighbour(
        self, sat_ids: Iterable[str], visited: set, target: Optional[Vector3]
    ) -> Optional[str]:
        """Unvisited satellite nearest (Euclidean) to ``target``."""
        if target is None:
            return None
        best: Optional[str] = None
        best_distance = float("inf")
        for sat_id in sat_ids:
            if sat_id in visited:
                continue
            neighbour = self.satellites.get(sat_id)
            if neighbour is None:
                continue
            d = distance_km(neighbour.position, target)
            if d < best_distance:
                best_distance = d
                best = sat_id
        return best

    def _fewest_hops_to_internet(
        self, sat_ids: Iterable[str], visited: set, snapshot: Optional[TopologySnapshot]
    ) -> Optional[str]:
        if snapshot is None:
            return None
        hops = self._hops_to_internet(snapshot)

        best: Optional[str] = None
        best_hops = float("inf")
        for sat_id in sat_ids:
            if sat_id in visited or sat_id not in hops:
                continue
            if hops[sat_id] < best_hops:
                best_hops = hops[sat_id]
                best = sat_id
        return best

    def _hops_to_internet(self, snapshot: TopologySnapshot) -> Dict[str, int]:
        """Hop count from every node to its nearest internet gateway (active links only)."""
        gateways = tuple(
            gs.id for gs in self.stations if gs.internet and gs.id in snapshot.nodes
        )
        if self._hops_cache is not None:
            cached_snapshot, cached_gateways, cached_hops = self._hops_cache
            if cached_snapshot is snapshot and cached_gateways == gateways:
                return cached_hops

        if gateways:
            G = snapshot.graph()
            hops = dict(nx.multi_source_dijkstra_path_length(G, set(gateways)))
        else:
            hops = {}
        self._hops_cache = (snapshot, gateways, hops)
        return hops