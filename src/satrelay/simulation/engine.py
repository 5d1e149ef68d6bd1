"""
Simulation engine for the satellite relay network.

ConstellationSimulation is the single entry point collaborators use. It owns
every satellite, ground station, packet and the current topology snapshot,
and advances them together, one tick at a time, in a fixed order:

    1. propagate satellite orbits
    2. decay ground station traffic (with random spikes)
    3. rebuild the topology and announce link changes
    4. route packets
    5. inject random background traffic

Getters hand out deep copies; the published snapshot is replaced every tick
and never edited afterwards. Path queries run against that snapshot.
"""

from __future__ import annotations

import copy
import logging
import random
from typing import Iterable, List, Optional, Sequence, Union

from satrelay.metrics.labels import SimulationStats, compute_simulation_stats
from satrelay.network.geofence import DeniedRegion, GeofenceOracle, predefined_region
from satrelay.network.ground_stations import GroundStation, GroundStationRegistry, TrafficDirection
from satrelay.network.orbits import VALID_STATUSES, NodeStatus, OrbitalPropagator, Satellite
from satrelay.network.topology import TopologyBuilder, TopologySnapshot, connection_changes
from satrelay.routing.packets import DataPacket
from satrelay.routing.pathfinding import NetworkPath, PathfindingEngine
from satrelay.routing.router import PacketRouter
from satrelay.simulation.config import (
    SimulationConfig,
    build_constellation,
    default_ground_stations,
)
from satrelay.simulation.events import EventBus, SimulationEvent

logger = logging.getLogger(__name__)


class FixedStepClock:
    """
    Accumulates wall-clock time and releases it in whole fixed steps.

    The remainder carries over to the next call, so integration stays
    stable regardless of frame jitter.
    """

    def __init__(self, step_seconds: float):
        if step_seconds <= 0:
            raise ValueError(f"step_seconds must be > 0, got {step_seconds}")
        self.step_seconds = step_seconds
        self.remainder = 0.0

    def advance(self, elapsed_seconds: float) -> int:
        """Add elapsed time and return how many whole steps are now due."""
        if elapsed_seconds < 0:
            raise ValueError(f"elapsed_seconds must be >= 0, got {elapsed_seconds}")
        self.remainder += elapsed_seconds
        steps = int(self.remainder // self.step_seconds)
        self.remainder -= steps * self.step_seconds
        return steps


class ConstellationSimulation:
    """
    LEO relay simulation facade.

    Args:
        config: Run parameters; defaults to SimulationConfig()
        satellites: Use these satellites instead of building the configured
            constellation
        ground_stations: Use these stations instead of the configured set
        regions: Denied regions active from t=0, added to the configured
            predefined ones
        events: Bus to publish on; a fresh one is created if omitted
        rng: Random source; defaults to random.Random(config.seed)
    """

    def __init__(
        self,
        config: Optional[SimulationConfig] = None,
        satellites: Optional[Sequence[Satellite]] = None,
        ground_stations: Optional[Iterable[GroundStation]] = None,
        regions: Iterable[DeniedRegion] = (),
        events: Optional[EventBus] = None,
        rng: Optional[random.Random] = None,
    ):
        self.config = config if config is not None else SimulationConfig()
        self.rng = rng if rng is not None else random.Random(self.config.seed)
        self.events = events if events is not None else EventBus()
        self.time_seconds = 0.0

        if satellites is None:
            satellites = build_constellation(self.config.constellation, self.rng)
        self._satellites = {}
        for sat in satellites:
            if sat.id in self._satellites:
                raise ValueError(f"Duplicate satellite id {sat.id!r}")
            self._satellites[sat.id] = sat

        if ground_stations is None:
            ground_stations = (
                default_ground_stations() if self.config.ground_station_set == "default" else []
            )
        self._stations = GroundStationRegistry(ground_stations)
        overlap = set(self._satellites) & {gs.id for gs in self._stations}
        if overlap:
            raise ValueError(f"Ids shared by satellites and ground stations: {sorted(overlap)}")

        geofence = GeofenceOracle.from_names(self.config.denied_regions)
        for region in regions:
            geofence = geofence.with_region(region)

        self.propagator = OrbitalPropagator()
        self.builder = TopologyBuilder(
            geofence=geofence,
            ground_link_range_km=self.config.ground_link_range_km,
        )
        self.pathfinder = PathfindingEngine(self.builder, self.propagator)
        self.router = PacketRouter(
            self._satellites,
            self._stations,
            self.events,
            timeout_seconds=self.config.packet_timeout_seconds,
        )
        self.clock = FixedStepClock(self.config.fixed_step_seconds)

        self._snapshot: TopologySnapshot = self.builder.build(
            list(self._satellites.values()), self._stations.all(), self.time_seconds
        )

        logger.info(
            "Simulation ready: %d satellites, %d ground stations, %d denied regions, "
            "%d active links (config %s)",
            len(self._satellites),
            len(self._stations),
            len(geofence.regions),
            len(self._snapshot.active_edges()),
            self.config.config_hash(),
        )

    # ------------------------------------------------------------------
    # Time
    # ------------------------------------------------------------------

    def tick(self, delta_seconds: float) -> None:
        """Advance the whole simulation by ``delta_seconds``."""
        if delta_seconds < 0:
            raise ValueError(f"delta_seconds must be >= 0, got {delta_seconds}")

        self.time_seconds += delta_seconds

        self.propagator.propagate(self._satellites.values(), delta_seconds)

        for station_id, direction, amount in self._stations.decay_traffic(delta_seconds, self.rng):
            self.events.emit(SimulationEvent.TRAFFIC_ADDED, station_id, direction, amount)

        self._rebuild_topology()

        self.router.process(delta_seconds, self._snapshot)

        if self.config.random_traffic:
            self.router.generate_random_traffic(
                delta_seconds,
                self.time_seconds,
                self.rng,
                self._snapshot,
                rate_per_second=self.config.traffic_rate_per_second,
            )

    def advance(self, elapsed_seconds: float) -> int:
        """Run as many fixed-step ticks as ``elapsed_seconds`` allows; returns the count."""
        steps = self.clock.advance(elapsed_seconds)
        for _ in range(steps):
            self.tick(self.clock.step_seconds)
        return steps

    def _rebuild_topology(self) -> None:
        previous = self._snapshot
        self._snapshot = self.builder.build(
            list(self._satellites.values()), self._stations.all(), self.time_seconds
        )
        added, removed = connection_changes(previous, self._snapshot)
        for a, b in removed:
            self.events.emit(SimulationEvent.CONNECTION_REMOVED, a, b)
        for a, b in added:
            self.events.emit(SimulationEvent.CONNECTION_ADDED, a, b)
        if added or removed:
            logger.debug("t=%.1fs: %d links up, %d links down", self.time_seconds, len(added), len(removed))

    # ------------------------------------------------------------------
    # Packets
    # ------------------------------------------------------------------

    def create_packet(
        self,
        source_type: str,
        source_id: str,
        dest_type: str,
        dest_id: str,
        size: float,
        priority: int = 1,
    ) -> Optional[DataPacket]:
        """
        Create a packet and try its first hop immediately.

        Args:
            source_type: "satellite" or "groundStation"
            source_id: Id of the source node
            dest_type: "satellite", "groundStation" or "internet"
            dest_id: Id of the destination node (ignored for "internet")
            size: Size in KB
            priority: Lower values are served first

        Returns:
            A copy of the new packet, or None for an invalid source/destination
        """
        packet = self.router.create_packet(
            source_type, source_id, dest_type, dest_id, size, priority,
            self.time_seconds, self._snapshot,
        )
        return copy.deepcopy(packet) if packet is not None else None

    def sweep_packets(self) -> int:
        """Remove delivered and dropped packets; returns how many went."""
        removed = self.router.sweep()
        if removed:
            logger.debug("Swept %d finished packets", removed)
        return removed

    # ------------------------------------------------------------------
    # Read-only queries
    # ------------------------------------------------------------------

    def get_satellite(self, satellite_id: str) -> Optional[Satellite]:
        sat = self._satellites.get(satellite_id)
        return copy.deepcopy(sat) if sat is not None else None

    def get_ground_station(self, station_id: str) -> Optional[GroundStation]:
        gs = self._stations.get(station_id)
        return copy.deepcopy(gs) if gs is not None else None

    def get_packet(self, packet_id: str) -> Optional[DataPacket]:
        packet = self.router.packets.get(packet_id)
        return copy.deepcopy(packet) if packet is not None else None

    def get_all_satellites(self) -> List[Satellite]:
        return copy.deepcopy(list(self._satellites.values()))

    def get_all_ground_stations(self) -> List[GroundStation]:
        return copy.deepcopy(self._stations.all())

    def get_all_packets(self) -> List[DataPacket]:
        return copy.deepcopy(list(self.router.packets.values()))

    def get_topology(self) -> TopologySnapshot:
        """The current snapshot. Replaced, never edited, on the next rebuild."""
        return self._snapshot

    def stats(self) -> SimulationStats:
        return compute_simulation_stats(self._snapshot, self.router.packets.values())

    # ------------------------------------------------------------------
    # Mutators
    # ------------------------------------------------------------------

    def set_ground_station_status(self, station_id: str, status: NodeStatus) -> bool:
        if not self._stations.set_status(station_id, status):
            return False
        self.events.emit(SimulationEvent.STATUS_CHANGED, station_id, status)
        return True

    def set_ground_station_bandwidth(self, station_id: str, bandwidth_mbps: float) -> bool:
        if not self._stations.set_bandwidth(station_id, bandwidth_mbps):
            return False
        self.events.emit(SimulationEvent.BANDWIDTH_CHANGED, station_id, bandwidth_mbps)
        return True

    def set_ground_station_internet(self, station_id: str, internet: bool) -> bool:
        if not self._stations.set_internet(station_id, internet):
            return False
        self.events.emit(SimulationEvent.INTERNET_CHANGED, station_id, bool(internet))
        return True

    def add_ground_station_traffic(
        self, station_id: str, direction: TrafficDirection, amount_mbps: float
    ) -> bool:
        if not self._stations.add_traffic(station_id, direction, amount_mbps):
            return False
        self.events.emit(SimulationEvent.TRAFFIC_ADDED, station_id, direction, amount_mbps)
        return True

    def set_satellite_status(self, satellite_id: str, status: NodeStatus) -> bool:
        if status not in VALID_STATUSES:
            raise ValueError(f"Unknown satellite status {status!r}")
        sat = self._satellites.get(satellite_id)
        if sat is None:
            logger.warning("set_satellite_status: unknown satellite %r", satellite_id)
            return False
        sat.status = status
        self.events.emit(SimulationEvent.STATUS_CHANGED, satellite_id, status)
        return True

    def add_denied_region(self, region: Union[DeniedRegion, str]) -> bool:
        """
        Register a denied region and rebuild the topology right away.

        Args:
            region: A region, or the name of a predefined one

        Returns:
            False if ``region`` names no predefined region
        """
        if isinstance(region, str):
            resolved = predefined_region(region)
            if resolved is None:
                logger.warning("add_denied_region: unknown predefined region %r", region)
                return False
            region = resolved

        self.builder.geofence = self.builder.geofence.with_region(region)
        logger.info("Denied region %r added (no_transmission=%s)", region.name, region.constraints.no_transmission)
        self._rebuild_topology()
        return True

    # ------------------------------------------------------------------
    # Path queries
    # ------------------------------------------------------------------

    def find_shortest_path(
        self,
        source_id: str,
        dest_id: str,
        weight: str = "delay",
        avoid_denied_regions: bool = True,
    ) -> Optional[NetworkPath]:
        return self.pathfinder.find_shortest_path(
            self._snapshot, source_id, dest_id,
            weight=weight,
            avoid_denied_regions=avoid_denied_regions,
        )

    def calculate_predictive_paths(
        self, source_id: str, dest_id: str, offsets_seconds: Iterable[float]
    ) -> List[NetworkPath]:
        return self.pathfinder.calculate_predictive_paths(
            list(self._satellites.values()),
            self._stations.all(),
            source_id,
            dest_id,
            offsets_seconds,
            now_seconds=self.time_seconds,
        )

    def find_alternative_paths(
        self, source_id: str, dest_id: str, max_paths: int = 3
    ) -> List[NetworkPath]:
        return self.pathfinder.find_alternative_paths(
            self._snapshot,
            source_id,
            dest_id,
            forecast=lambda offset: self.pathfinder.forecast_snapshot(
                list(self._satellites.values()),
                self._stations.all(),
                offset,
                self.time_seconds,
            ),
            max_paths=max_paths,
        )
