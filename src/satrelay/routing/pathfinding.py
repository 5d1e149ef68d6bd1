"""
On-demand shortest and predictive paths over topology snapshots.

Searches run Dijkstra (networkx) on a graph built from one snapshot. With
denied-region avoidance on, only active links whose ground track touches no
denied region are searched; with it off, every recorded link is, inactive
ones included. Predictive searches rebuild a throwaway snapshot from
propagated copies of the satellites; live state is never touched.

These paths are a global view. The packet router makes greedy local choices
and may take a different route between the same two nodes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Sequence

import networkx as nx

from satrelay.network.ground_stations import GroundStation
from satrelay.network.orbits import OrbitalPropagator, Satellite
from satrelay.network.topology import NetworkEdge, TopologyBuilder, TopologySnapshot

logger = logging.getLogger(__name__)

PATH_WEIGHTS: Dict[str, str] = {
    "delay": "delay_ms",
    "distance": "distance_km",
}
FORECAST_OFFSET_SECONDS = 300.0


@dataclass
class NetworkPath:
    id: str
    nodes: List[str]
    edges: List[NetworkEdge] = field(default_factory=list)
    total_delay_ms: float = 0.0
    total_distance_km: float = 0.0
    crosses_denied_region: bool = False
    denied_regions: List[str] = field(default_factory=list)
    is_active: bool = True

    @property
    def hop_count(self) -> int:
        return len(self.edges)


def path_from_nodes(path_id: str, snapshot: TopologySnapshot, nodes: Sequence[str]) -> NetworkPath:
    """Assemble a NetworkPath and its aggregates from a node sequence."""
    edges = [snapshot.edge(a, b) for a, b in zip(nodes, nodes[1:])]
    regions: List[str] = []
    for edge in edges:
        name = edge.crossing.region_name
        if edge.crossing.is_denied_region and name is not None and name not in regions:
            regions.append(name)
    return NetworkPath(
        id=path_id,
        nodes=list(nodes),
        edges=edges,
        total_delay_ms=sum(e.delay_ms for e in edges),
        total_distance_km=sum(e.distance_km for e in edges),
        crosses_denied_region=any(e.crossing.is_denied_region for e in edges),
        denied_regions=regions,
        is_active=all(e.active for e in edges),
    )


class PathfindingEngine:
    """
    Shortest-path queries against snapshots.

    Args:
        builder: Topology builder used for forecast snapshots (shares the
            live geofence)
        propagator: Propagator used to advance satellite copies
    """

    def __init__(self, builder: TopologyBuilder, propagator: Optional[OrbitalPropagator] = None):
        self.builder = builder
        self.propagator = propagator if propagator is not None else OrbitalPropagator()

    def find_shortest_path(
        self,
        snapshot: TopologySnapshot,
        source_id: str,
        dest_id: str,
        weight: str = "delay",
        avoid_denied_regions: bool = True,
        path_id: Optional[str] = None,
    ) -> Optional[NetworkPath]:
        """
        Minimum-weight path between two nodes.

        Args:
            snapshot: Topology to search
            source_id: Start node id
            dest_id: End node id
            weight: "delay" or "distance"
            avoid_denied_regions: Search only active links that cross no
                denied region. Off searches every recorded link.
            path_id: Id for the result; defaults to "<src>-to-<dst>"

        Returns:
            The path, or None for unknown ids or when no path exists

        Raises:
            ValueError: If ``weight`` is not a known metric
        """
        if weight not in PATH_WEIGHTS:
            raise ValueError(f"Unknown path weight {weight!r}; expected one of {sorted(PATH_WEIGHTS)}")
        if source_id not in snapshot.nodes or dest_id not in snapshot.nodes:
            logger.warning("find_shortest_path: unknown node %r or %r", source_id, dest_id)
            return None

        G = snapshot.graph(
            include_inactive=not avoid_denied_regions,
            avoid_denied_regions=avoid_denied_regions,
        )
        try:
            _, nodes = nx.single_source_dijkstra(G, source_id, dest_id, weight=PATH_WEIGHTS[weight])
        except nx.NetworkXNoPath:
            return None

        return path_from_nodes(path_id or f"{source_id}-to-{dest_id}", snapshot, nodes)

    def forecast_snapshot(
        self,
        satellites: Iterable[Satellite],
        stations: Iterable[GroundStation],
        offset_seconds: float,
        now_seconds: float = 0.0,
    ) -> TopologySnapshot:
        """Topology ``offset_seconds`` ahead, built from propagated copies."""
        future = self.propagator.propagate_copy(satellites, offset_seconds)
        return self.builder.build(
            future,
            stations,
            time_seconds=now_seconds + offset_seconds,
            apply_connections=False,
        )

    def calculate_predictive_paths(
        self,
        satellites: Sequence[Satellite],
        stations: Sequence[GroundStation],
        source_id: str,
        dest_id: str,
        offsets_seconds: Iterable[float],
        now_seconds: float = 0.0,
        weight: str = "delay",
    ) -> List[NetworkPath]:
        """
        Search forecast topologies at each offset.

        Offsets with no path are skipped, so the result may be shorter than
        the offsets given. Path ids are "predict-<offset>-<src>-to-<dst>".
        """
        paths: List[NetworkPath] = []
        for offset in offsets_seconds:
            if offset < 0:
                logger.warning("calculate_predictive_paths: negative offset %r skipped", offset)
                continue
            snapshot = self.forecast_snapshot(satellites, stations, offset, now_seconds)
            path = self.find_shortest_path(
                snapshot,
                source_id,
                dest_id,
                weight=weight,
                path_id=f"predict-{offset:g}-{source_id}-to-{dest_id}",
            )
            if path is not None:
                paths.append(path)
        return paths

    def find_alternative_paths(
        self,
        snapshot: TopologySnapshot,
        source_id: str,
        dest_id: str,
        forecast: Callable[[float], TopologySnapshot],
        max_paths: int = 3,
    ) -> List[NetworkPath]:
        """
        Up to ``max_paths`` distinct routes between two nodes.

        Candidates in order: the fastest safe path, the shortest path by
        distance ignoring denied regions, and the fastest safe path five
        minutes ahead. Candidates sharing a node sequence are collapsed.

        Args:
            snapshot: Current topology
            source_id: Start node id
            dest_id: End node id
            forecast: Callable returning the snapshot at a given offset
            max_paths: Maximum number of paths returned
        """
        if max_paths <= 0:
            return []

        candidates = [
            self.find_shortest_path(
                snapshot, source_id, dest_id,
                path_id=f"safe-{source_id}-to-{dest_id}",
            ),
            self.find_shortest_path(
                snapshot, source_id, dest_id,
                weight="distance",
                avoid_denied_regions=False,
                path_id=f"distance-{source_id}-to-{dest_id}",
            ),
        ]
        if source_id in snapshot.nodes and dest_id in snapshot.nodes:
            candidates.append(self.find_shortest_path(
                forecast(FORECAST_OFFSET_SECONDS), source_id, dest_id,
                path_id=f"predict-{FORECAST_OFFSET_SECONDS:g}-{source_id}-to-{dest_id}",
            ))

        paths: List[NetworkPath] = []
        seen = set()
        for path in candidates:
            if path is None:
                continue
            signature = tuple(path.nodes)
            if signature in seen:
                continue
            seen.add(signature)
            paths.append(path)
            if len(paths) >= max_paths:
                break
        return paths
