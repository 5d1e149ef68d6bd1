"""Ground station records and the registry that owns them.

Stations are created once and never destroyed at runtime; only their status,
bandwidth, internet flag and traffic counters change. Connection lists are
derived by the topology builder each tick.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Literal, Optional, Tuple

from satrelay.network.geo import Vector3, geodetic_to_cartesian, haversine_km
from satrelay.network.orbits import VALID_STATUSES, NodeStatus

logger = logging.getLogger(__name__)

TrafficDirection = Literal["incoming", "outgoing"]

TRAFFIC_DECAY_PER_SECOND = 0.1  # 10 % of the accumulated traffic per second
TRAFFIC_SPIKE_RATE_PER_SECOND = 0.05
TRAFFIC_SPIKE_MAX_MBPS = 10.0


@dataclass
class GroundStation:
    """A gateway on the Earth's surface."""

    id: str
    name: str
    lat_deg: float
    lon_deg: float
    coverage_radius_km: float = 1000.0
    bandwidth_mbps: float = 1000.0
    internet: bool = True
    status: NodeStatus = "operational"
    country: Optional[str] = None
    queue: List[str] = field(default_factory=list)
    traffic_incoming_mbps: float = 0.0
    traffic_outgoing_mbps: float = 0.0
    connected_satellites: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not -90.0 <= self.lat_deg <= 90.0:
            raise ValueError(f"lat_deg out of range for {self.id}: {self.lat_deg}")
        if self.status not in VALID_STATUSES:
            raise ValueError(f"Unknown ground station status {self.status!r}")

    @property
    def position(self) -> Vector3:
        """Cartesian position on the Earth's surface."""
        return geodetic_to_cartesian(self.lat_deg, self.lon_deg)


class GroundStationRegistry:
    """Owns every ground station. Lookups by unknown id return None/False."""

    def __init__(self, stations: Iterable[GroundStation] = ()):
        self._stations: Dict[str, GroundStation] = {}
        for station in stations:
            if station.id in self._stations:
                raise ValueError(f"Duplicate ground station id {station.id!r}")
            self._stations[station.id] = station

    def __contains__(self, station_id: object) -> bool:
        return station_id in self._stations

    def __iter__(self) -> Iterator[GroundStation]:
        return iter(self._stations.values())

    def __len__(self) -> int:
        return len(self._stations)

    def get(self, station_id: str) -> Optional[GroundStation]:
        return self._stations.get(station_id)

    def all(self) -> List[GroundStation]:
        return list(self._stations.values())

    def set_status(self, station_id: str, status: NodeStatus) -> bool:
        if status not in VALID_STATUSES:
            raise ValueError(f"Unknown ground station status {status!r}")
        station = self._stations.get(station_id)
        if station is None:
            logger.warning("set_status: unknown ground station %r", station_id)
            return False
        station.status = status
        return True

    def set_bandwidth(self, station_id: str, bandwidth_mbps: float) -> bool:
        if bandwidth_mbps < 0:
            raise ValueError(f"bandwidth_mbps must be >= 0, got {bandwidth_mbps}")
        station = self._stations.get(station_id)
        if station is None:
            logger.warning("set_bandwidth: unknown ground station %r", station_id)
            return False
        station.bandwidth_mbps = bandwidth_mbps
        return True

    def set_internet(self, station_id: str, internet: bool) -> bool:
        station = self._stations.get(station_id)
        if station is None:
            logger.warning("set_internet: unknown ground station %r", station_id)
            return False
        station.internet = bool(internet)
        return True

    def add_traffic(self, station_id: str, direction: TrafficDirection, amount: float) -> bool:
        if direction not in ("incoming", "outgoing"):
            raise ValueError(f"direction must be 'incoming' or 'outgoing', got {direction!r}")
        station = self._stations.get(station_id)
        if station is None:
            logger.warning("add_traffic: unknown ground station %r", station_id)
            return False
        if direction == "incoming":
            station.traffic_incoming_mbps += amount
        else:
            station.traffic_outgoing_mbps += amount
        return True

    def decay_traffic(
        self, delta_seconds: float, rng: random.Random
    ) -> List[Tuple[str, TrafficDirection, float]]:
        """
        Decay traffic counters and add random background spikes.

        Counters lose 10 % per simulated second (clamped at zero for long
        steps). Operational stations receive a spike of up to 10 Mbps with a
        probability of 5 % per second.

        Returns:
            The spikes added, as (station_id, direction, amount) tuples
        """
        factor = max(0.0, 1.0 - TRAFFIC_DECAY_PER_SECOND * delta_seconds)
        spikes: List[Tuple[str, TrafficDirection, float]] = []

        for station in self._stations.values():
            station.traffic_incoming_mbps *= factor
            station.traffic_outgoing_mbps *= factor

            if station.status != "operational":
                continue
            if rng.random() < TRAFFIC_SPIKE_RATE_PER_SECOND * delta_seconds:
                amount = rng.random() * TRAFFIC_SPIKE_MAX_MBPS
                direction: TrafficDirection = "incoming" if rng.random() < 0.5 else "outgoing"
                self.add_traffic(station.id, direction, amount)
                spikes.append((station.id, direction, amount))

        return spikes

    def distance_km(self, station_a: str, station_b: str) -> float:
        """Great-circle distance between two stations; infinity if either is unknown."""
        a = self._stations.get(station_a)
        b = self._stations.get(station_b)
        if a is None or b is None:
            return float("inf")
        return haversine_km(a.lat_deg, a.lon_deg, b.lat_deg, b.lon_deg)
