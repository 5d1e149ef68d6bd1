"""
Per-tick connectivity for the relay constellation.

TopologyBuilder turns the current satellite and ground station state into a
TopologySnapshot: a node map and a central edge table keyed by the sorted id
pair. Nodes never point at each other; adjacency is always looked up by id.

Link rules:
    - Satellite <-> satellite: the segment must clear the Earth plus a 100 km
      atmosphere buffer, and its length must not exceed the range of the
      weaker terminal.
    - Satellite <-> ground station: straight-line distance below 2000 km.
      Elevation masking is deliberately ignored.
    - Offline nodes form no links.

A link whose ground track crosses a no-transmission region is still recorded,
but with ``active=False``. Inactive links never appear in connection lists or
in the routing graph; they are kept for auditing and for searches that ignore
denied regions.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Literal, Optional, Sequence, Tuple

import networkx as nx
import numpy as np

from satrelay.network.geo import (
    EARTH_RADIUS_KM,
    Vector3,
    cartesian_to_geodetic,
    distance_km,
    propagation_delay_ms,
)
from satrelay.network.geofence import GeofenceOracle
from satrelay.network.ground_stations import GroundStation
from satrelay.network.orbits import Satellite, link_range_km

logger = logging.getLogger(__name__)

ATMOSPHERE_BUFFER_KM = 100.0
GROUND_LINK_RANGE_KM = 2000.0

NodeType = Literal["satellite", "ground-station"]
EdgeType = Literal["satellite-to-satellite", "satellite-to-ground"]
EdgeKey = Tuple[str, str]


def edge_key(a: str, b: str) -> EdgeKey:
    """Canonical undirected key for a link."""
    return (a, b) if a <= b else (b, a)


# ---------------------------------------------------------------------------
# Snapshot Types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class NetworkNode:
    id: str
    kind: NodeType
    lat_deg: float
    lon_deg: float
    position: Vector3
    in_denied_region: bool = False
    region_name: Optional[str] = None


@dataclass(frozen=True)
class EdgeCrossing:
    """Geofence verdict for one link's ground track."""
    is_denied_region: bool = False
    region_name: Optional[str] = None
    no_transmission: bool = False


@dataclass(frozen=True)
class NetworkEdge:
    source: str
    target: str
    kind: EdgeType
    distance_km: float
    delay_ms: float
    bandwidth_mbps: float
    crossing: EdgeCrossing = field(default_factory=EdgeCrossing)
    active: bool = True

    @property
    def key(self) -> EdgeKey:
        return edge_key(self.source, self.target)

    def other(self, node_id: str) -> str:
        return self.target if node_id == self.source else self.source


@dataclass
class TopologySnapshot:
    """
    Connectivity at one instant.

    Treated as immutable once published; a new snapshot replaces the old one
    every tick.
    """

    time_seconds: float
    nodes: Dict[str, NetworkNode] = field(default_factory=dict)
    edges: Dict[EdgeKey, NetworkEdge] = field(default_factory=dict)

    def edge(self, a: str, b: str) -> Optional[NetworkEdge]:
        return self.edges.get(edge_key(a, b))

    def active_edges(self) -> List[NetworkEdge]:
        return [e for e in self.edges.values() if e.active]

    def active_keys(self) -> FrozenSet[EdgeKey]:
        return frozenset(k for k, e in self.edges.items() if e.active)

    def neighbours(self, node_id: str) -> List[str]:
        """Ids reachable from ``node_id`` over one active link."""
        return [
            e.other(node_id)
            for e in self.edges.values()
            if e.active and node_id in (e.source, e.target)
        ]

    def graph(self, include_inactive: bool = False, avoid_denied_regions: bool = False) -> nx.Graph:
        """
        Build a networkx graph of the snapshot.

        Args:
            include_inactive: Keep links disabled by a no-transmission region
            avoid_denied_regions: Drop every link whose ground track crosses
                any denied region, whatever its policy

        Returns:
            Undirected graph; edges carry ``delay_ms``, ``distance_km``,
            ``bandwidth_mbps`` and the originating ``edge``
        """
        G = nx.Graph()
        for node in self.nodes.values():
            G.add_node(node.id, kind=node.kind, in_denied_region=node.in_denied_region)

        dangling = 0
        for edge in self.edges.values():
            if edge.source not in self.nodes or edge.target not in self.nodes:
                dangling += 1
                continue
            if not edge.active and not include_inactive:
                continue
            if avoid_denied_regions and edge.crossing.is_denied_region:
                continue
            G.add_edge(
                edge.source,
                edge.target,
                delay_ms=edge.delay_ms,
                distance_km=edge.distance_km,
                bandwidth_mbps=edge.bandwidth_mbps,
                edge=edge,
            )
        if dangling:
            logger.debug("Pruned %d dangling edges from snapshot graph", dangling)
        return G


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------

def has_line_of_sight(
    pos1: Vector3, pos2: Vector3, atmosphere_buffer_km: float = ATMOSPHERE_BUFFER_KM
) -> bool:
    """
    Check that the segment between two points clears the Earth.

    Math:
        Closest point on the segment to the origin is r1 + t*d with
        t = -dot(r1, d) / dot(d, d) clamped to [0, 1]. The link is occluded
        when that point is nearer than EARTH_RADIUS_KM + atmosphere_buffer_km.

    Args:
        pos1: Cartesian position of the first terminal (km)
        pos2: Cartesian position of the second terminal (km)
        atmosphere_buffer_km: Extra clearance above the surface

    Returns:
        True if clear. A zero-length segment counts as clear.
    """
    r1 = np.asarray(pos1, dtype=float)
    r2 = np.asarray(pos2, dtype=float)

    d = r2 - r1
    d_len_sq = np.dot(d, d)
    if d_len_sq == 0:
        return True

    t = -np.dot(r1, d) / d_len_sq
    t_clamped = max(0.0, min(1.0, float(t)))
    closest_point = r1 + t_clamped * d
    h_min = np.linalg.norm(closest_point)

    return bool(h_min >= EARTH_RADIUS_KM + atmosphere_buffer_km)


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------

@dataclass
class TopologyStats:
    """Counters from the last build, for debug logging."""
    candidate_links: int = 0
    rejected_los: int = 0
    rejected_range: int = 0
    ground_links: int = 0
    inactive_links: int = 0


class TopologyBuilder:
    """Recomputes every link from current positions."""

    def __init__(
        self,
        geofence: Optional[GeofenceOracle] = None,
        ground_link_range_km: float = GROUND_LINK_RANGE_KM,
        atmosphere_buffer_km: float = ATMOSPHERE_BUFFER_KM,
    ):
        if ground_link_range_km <= 0:
            raise ValueError(f"ground_link_range_km must be > 0, got {ground_link_range_km}")
        self.geofence = geofence if geofence is not None else GeofenceOracle()
        self.ground_link_range_km = ground_link_range_km
        self.atmosphere_buffer_km = atmosphere_buffer_km
        self.last_stats = TopologyStats()

    def candidate_pairs(
        self, satellites: Sequence[Satellite]
    ) -> Iterable[Tuple[Satellite, Satellite]]:
        """
        Enumerate satellite pairs worth testing.

        All pairs of online satellites. Override with a spatial index to
        cut the O(N^2) scan; the builder still applies every link rule.
        """
        online = [s for s in satellites if s.status != "offline"]
        return itertools.combinations(online, 2)

    def build(
        self,
        satellites: Sequence[Satellite],
        stations: Iterable[GroundStation],
        time_seconds: float = 0.0,
        apply_connections: bool = True,
    ) -> TopologySnapshot:
        """
        Build the snapshot for the current positions.

        Args:
            satellites: Satellites in a stable order
            stations: Ground stations in a stable order
            time_seconds: Simulated time stamped on the snapshot
            apply_connections: Rewrite the connection lists of the given
                satellites and stations from the active links. Disable for
                throwaway forecast snapshots.

        Returns:
            The new TopologySnapshot
        """
        stations = list(stations)
        stats = TopologyStats()
        snapshot = TopologySnapshot(time_seconds=time_seconds)

        for sat in satellites:
            lat, lon, _ = cartesian_to_geodetic(sat.position)
            snapshot.nodes[sat.id] = self._make_node(sat.id, "satellite", lat, lon, sat.position)
        for gs in stations:
            snapshot.nodes[gs.id] = self._make_node(
                gs.id, "ground-station", gs.lat_deg, gs.lon_deg, gs.position
            )

        for sat_a, sat_b in self.candidate_pairs(satellites):
            if sat_a.id == sat_b.id:
                continue
            stats.candidate_links += 1
            if not has_line_of_sight(sat_a.position, sat_b.position, self.atmosphere_buffer_km):
                stats.rejected_los += 1
                continue
            dist = distance_km(sat_a.position, sat_b.position)
            if dist > link_range_km(sat_a.generation, sat_b.generation):
                stats.rejected_range += 1
                continue
            self._add_edge(
                snapshot,
                sat_a.id,
                sat_b.id,
                "satellite-to-satellite",
                dist,
                min(sat_a.isl_bandwidth_mbps, sat_b.isl_bandwidth_mbps),
            )

        for sat in satellites:
            if sat.status == "offline":
                continue
            for gs in stations:
                if gs.status == "offline":
                    continue
                dist = distance_km(sat.position, gs.position)
                if dist >= self.ground_link_range_km:
                    continue
                stats.ground_links += 1
                self._add_edge(
                    snapshot,
                    sat.id,
                    gs.id,
                    "satellite-to-ground",
                    dist,
                    min(gs.bandwidth_mbps, sat.downlink_capacity_mbps),
                )

        stats.inactive_links = sum(1 for e in snapshot.edges.values() if not e.active)

        if apply_connections:
            self._apply_connections(snapshot, satellites, stations)

        self.last_stats = stats
        logger.debug(
            "Topology at t=%.1fs: %d nodes, %d links (%d inactive, %d LOS-rejected, %d out of range)",
            time_seconds,
            len(snapshot.nodes),
            len(snapshot.edges),
            stats.inactive_links,
            stats.rejected_los,
            stats.rejected_range,
        )
        return snapshot

    def _make_node(
        self, node_id: str, kind: NodeType, lat: float, lon: float, position: Vector3
    ) -> NetworkNode:
        hit = self.geofence.point_in_region(lat, lon)
        return NetworkNode(
            id=node_id,
            kind=kind,
            lat_deg=lat,
            lon_deg=lon,
            position=position,
            in_denied_region=hit.in_region,
            region_name=hit.region_name,
        )

    def _add_edge(
        self,
        snapshot: TopologySnapshot,
        a: str,
        b: str,
        kind: EdgeType,
        dist: float,
        bandwidth_mbps: float,
    ) -> None:
        node_a = snapshot.nodes[a]
        node_b = snapshot.nodes[b]
        crossing = self._crossing(node_a, node_b)
        snapshot.edges[edge_key(a, b)] = NetworkEdge(
            source=a,
            target=b,
            kind=kind,
            distance_km=dist,
            delay_ms=propagation_delay_ms(dist),
            bandwidth_mbps=bandwidth_mbps,
            crossing=crossing,
            active=not crossing.no_transmission,
        )

    def _crossing(self, node_a: NetworkNode, node_b: NetworkNode) -> EdgeCrossing:
        blocking = self.geofence.blocking_region(
            node_a.lat_deg, node_a.lon_deg, node_b.lat_deg, node_b.lon_deg
        )
        if blocking is not None:
            return EdgeCrossing(True, blocking.name, True)

        crossing = self.geofence.segment_crosses_region(
            node_a.lat_deg, node_a.lon_deg, node_b.lat_deg, node_b.lon_deg
        )
        if crossing.crosses:
            return EdgeCrossing(True, crossing.region_name, False)
        return EdgeCrossing()

    @staticmethod
    def _apply_connections(
        snapshot: TopologySnapshot,
        satellites: Sequence[Satellite],
        stations: Sequence[GroundStation],
    ) -> None:
        sats_by_id = {s.id: s for s in satellites}
        stations_by_id = {g.id: g for g in stations}

        for sat in satellites:
            sat.connected_satellites = []
            sat.connected_ground_stations = []
        for gs in stations:
            gs.connected_satellites = []

        for edge in snapshot.edges.values():
            if not edge.active:
                continue
            if edge.kind == "satellite-to-satellite":
                sats_by_id[edge.source].connected_satellites.append(edge.target)
                sats_by_id[edge.target].connected_satellites.append(edge.source)
            else:
                sat_id, gs_id = (
                    (edge.source, edge.target)
                    if edge.source in sats_by_id
                    else (edge.target, edge.source)
                )
                sats_by_id[sat_id].connected_ground_stations.append(gs_id)
                stations_by_id[gs_id].connected_satellites.append(sat_id)


def connection_changes(
    previous: Optional[TopologySnapshot], current: TopologySnapshot
) -> Tuple[List[EdgeKey], List[EdgeKey]]:
    """
    Diff the active links of two snapshots.

    Returns:
        Tuple of (added, removed) edge keys, each sorted
    """
    before = previous.active_keys() if previous is not None else frozenset()
    after = current.active_keys()
    return sorted(after - before), sorted(before - after)
