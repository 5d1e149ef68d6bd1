"""Constellation physics and connectivity.

Orbital propagation, ground stations, denied regions and the per-tick
topology builder. Nothing here routes packets or emits events.
"""

from satrelay.network.geofence import (
    CircleRegion,
    DeniedRegion,
    GeofenceOracle,
    PolygonRegion,
    RegionConstraints,
    predefined_region,
)
from satrelay.network.ground_stations import GroundStation, GroundStationRegistry
from satrelay.network.orbits import OrbitalElements, OrbitalPropagator, Satellite
from satrelay.network.topology import (
    NetworkEdge,
    NetworkNode,
    TopologyBuilder,
    TopologySnapshot,
)

__all__ = [
    # orbits.py
    "OrbitalElements",
    "OrbitalPropagator",
    "Satellite",
    # ground_stations.py
    "GroundStation",
    "GroundStationRegistry",
    # geofence.py
    "CircleRegion",
    "DeniedRegion",
    "GeofenceOracle",
    "PolygonRegion",
    "RegionConstraints",
    "predefined_region",
    # topology.py
    "NetworkEdge",
    "NetworkNode",
    "TopologyBuilder",
    "TopologySnapshot",
]
