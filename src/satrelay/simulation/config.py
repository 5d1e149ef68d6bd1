"""Simulation configuration and constellation builders.

Configs are frozen dataclasses with a deterministic ``config_hash()`` so a
run can be identified and reproduced from its parameters. All randomness in
a run (altitude jitter, generation mix, beam counts, traffic) comes from one
``random.Random`` seeded by ``SimulationConfig.seed``.
"""

from __future__ import annotations

import hashlib
import json
import random
from dataclasses import asdict, dataclass, field
from typing import List, Optional, Tuple

from satrelay.network.ground_stations import GroundStation
from satrelay.network.orbits import SATELLITE_GENERATIONS, OrbitalElements, Satellite

# Cumulative generation mix: 5 % v0.9, 25 % v1.0, 55 % v1.5, 15 % v2.0
GENERATION_MIX: Tuple[Tuple[float, str], ...] = (
    (0.05, "v0.9"),
    (0.30, "v1.0"),
    (0.85, "v1.5"),
    (1.00, "v2.0"),
)


@dataclass(frozen=True)
class ConstellationConfig:
    """Walker-style shell layout.

    Attributes:
        num_planes: Number of orbital planes.
        sats_per_plane: Satellites per plane, evenly spaced in mean anomaly.
        base_altitude_km: Nominal shell altitude.
        altitude_jitter_km: Each satellite's altitude is drawn uniformly from
            base_altitude_km +/- altitude_jitter_km.
        base_inclination_deg: Inclination of plane 0.
        inclination_step_deg: Inclination added per plane index.
        raan_spacing_deg: Longitude of ascending node added per plane index.
        eccentricity: Shared eccentricity (near circular).
        min_beams: Fewest beams a satellite may carry.
        max_beams: Most beams a satellite may carry.
        uplink_mbps_per_beam: Ground uplink per beam.
        downlink_mbps_per_beam: Ground downlink per beam.
        generation: Force every satellite to one generation instead of the mix.
    """

    num_planes: int = 9
    sats_per_plane: int = 20
    base_altitude_km: float = 550.0
    altitude_jitter_km: float = 10.0
    base_inclination_deg: float = 53.0
    inclination_step_deg: float = 2.0
    raan_spacing_deg: float = 40.0
    eccentricity: float = 0.0001
    min_beams: int = 8
    max_beams: int = 11
    uplink_mbps_per_beam: float = 50.0
    downlink_mbps_per_beam: float = 150.0
    generation: Optional[str] = None

    def __post_init__(self) -> None:
        if self.num_planes < 1 or self.sats_per_plane < 1:
            raise ValueError("num_planes and sats_per_plane must be >= 1")
        if self.altitude_jitter_km < 0:
            raise ValueError(f"altitude_jitter_km must be >= 0, got {self.altitude_jitter_km}")
        if not 1 <= self.min_beams <= self.max_beams:
            raise ValueError(f"Invalid beam range {self.min_beams}..{self.max_beams}")
        if self.generation is not None and self.generation not in SATELLITE_GENERATIONS:
            raise ValueError(f"Unknown satellite generation {self.generation!r}")

    @property
    def total_satellites(self) -> int:
        return self.num_planes * self.sats_per_plane

    def config_hash(self) -> str:
        config_json = json.dumps(asdict(self), sort_keys=True)
        return hashlib.sha256(config_json.encode()).hexdigest()[:16]


@dataclass(frozen=True)
class SimulationConfig:
    """Run-level parameters.

    Attributes:
        constellation: Shell layout.
        ground_station_set: "default" for the built-in gateways, "none" to
            start without any.
        denied_regions: Predefined denied region names active from t=0.
        packet_timeout_seconds: Latency after which a packet is dropped.
        random_traffic: Inject background packets between ground stations.
        traffic_rate_per_second: Background packet rate.
        ground_link_range_km: Satellite to ground station link threshold.
        fixed_step_seconds: Step of the fixed-step clock.
        seed: Random seed for reproducibility.
    """

    constellation: ConstellationConfig = field(default_factory=ConstellationConfig)
    ground_station_set: str = "default"
    denied_regions: Tuple[str, ...] = ()
    packet_timeout_seconds: float = 30.0
    random_traffic: bool = True
    traffic_rate_per_second: float = 0.1
    ground_link_range_km: float = 2000.0
    fixed_step_seconds: float = 1.0
    seed: int = 42

    def __post_init__(self) -> None:
        if self.ground_station_set not in ("default", "none"):
            raise ValueError(f"Unknown ground_station_set {self.ground_station_set!r}")
        if self.packet_timeout_seconds <= 0:
            raise ValueError("packet_timeout_seconds must be > 0")
        if self.traffic_rate_per_second < 0:
            raise ValueError("traffic_rate_per_second must be >= 0")
        if self.fixed_step_seconds <= 0:
            raise ValueError("fixed_step_seconds must be > 0")

    def config_hash(self) -> str:
        """Compute a deterministic hash of this configuration.

        Returns:
            A hex string hash suitable for run identification.
        """
        config_json = json.dumps(asdict(self), sort_keys=True)
        return hashlib.sha256(config_json.encode()).hexdigest()[:16]


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

def pick_generation(rng: random.Random) -> str:
    roll = rng.random()
    for threshold, name in GENERATION_MIX:
        if roll < threshold:
            return name
    return GENERATION_MIX[-1][1]


def build_constellation(cfg: ConstellationConfig, rng: random.Random) -> List[Satellite]:
    """
    Create the constellation at t=0.

    Satellite ids are ``sat_<plane>_<index>``. Plane p has inclination
    base + p * step and ascending node p * spacing; satellites in a plane
    are spread evenly in mean anomaly.
    """
    satellites: List[Satellite] = []
    for plane in range(cfg.num_planes):
        inclination = cfg.base_inclination_deg + plane * cfg.inclination_step_deg
        raan = (plane * cfg.raan_spacing_deg) % 360.0

        for i in range(cfg.sats_per_plane):
            generation = cfg.generation or pick_generation(rng)
            altitude = cfg.base_altitude_km + rng.uniform(-cfg.altitude_jitter_km, cfg.altitude_jitter_km)
            elements = OrbitalElements(
                altitude_km=altitude,
                inclination_deg=inclination,
                eccentricity=cfg.eccentricity,
                arg_periapsis_deg=0.0,
                raan_deg=raan,
                mean_anomaly_deg=i * 360.0 / cfg.sats_per_plane,
            )
            satellites.append(Satellite(
                id=f"sat_{plane}_{i}",
                elements=elements,
                generation=generation,
                beams=rng.randint(cfg.min_beams, cfg.max_beams),
                uplink_mbps=cfg.uplink_mbps_per_beam,
                downlink_mbps=cfg.downlink_mbps_per_beam,
            ))
    return satellites


# (id, name, country, lat, lon)
DEFAULT_GROUND_STATIONS: Tuple[Tuple[str, str, str, float, float], ...] = (
    ("gs_1", "San Francisco", "United States", 37.7749, -122.4194),
    ("gs_2", "New York", "United States", 40.7128, -74.0060),
    ("gs_3", "London", "United Kingdom", 51.5074, -0.1278),
    ("gs_4", "Paris", "France", 48.8566, 2.3522),
    ("gs_5", "Tokyo", "Japan", 35.6762, 139.6503),
    ("gs_6", "Hong Kong", "China", 22.3193, 114.1694),
    ("gs_7", "Sydney", "Australia", -33.8688, 151.2093),
    ("gs_8", "Sao Paulo", "Brazil", -23.5505, -46.6333),
    ("gs_9", "Cape Town", "South Africa", -33.9249, 18.4241),
)


def default_ground_stations() -> List[GroundStation]:
    """Fresh copies of the built-in internet gateways."""
    return [
        GroundStation(
            id=gs_id,
            name=name,
            country=country,
            lat_deg=lat,
            lon_deg=lon,
            coverage_radius_km=1000.0,
            bandwidth_mbps=1000.0,
            internet=True,
        )
        for gs_id, name, country, lat, lon in DEFAULT_GROUND_STATIONS
    ]
