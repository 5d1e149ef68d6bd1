"""
Orbital model for the relay constellation.

Satellites carry classical orbital elements and are advanced with two-body
mean motion. Position and velocity are derived analytically from the mean
anomaly using the small-eccentricity approximation ``E = M + e*sin(M)``,
which is adequate for the near-circular shells simulated here.

Satellite generations fix the inter-satellite RF range and bandwidth:

    v0.9 -> 1200 km / 25 Mbps
    v1.0 -> 1400 km / 40 Mbps
    v1.5 -> 1600 km / 60 Mbps
    v2.0 -> 1800 km / 80 Mbps

Unknown generations fall back to v1.0.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Literal, Tuple

from satrelay.network.geo import EARTH_MU, EARTH_RADIUS_KM, Vector3, cartesian_to_geodetic

logger = logging.getLogger(__name__)

NodeStatus = Literal["operational", "degraded", "offline"]
VALID_STATUSES: Tuple[str, ...] = ("operational", "degraded", "offline")


# ---------------------------------------------------------------------------
# Satellite Generations
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SatelliteGeneration:
    """RF capabilities of one satellite generation."""
    name: str
    max_rf_range_km: float
    isl_bandwidth_mbps: float


SATELLITE_GENERATIONS: Dict[str, SatelliteGeneration] = {
    "v0.9": SatelliteGeneration("v0.9", 1200.0, 25.0),
    "v1.0": SatelliteGeneration("v1.0", 1400.0, 40.0),
    "v1.5": SatelliteGeneration("v1.5", 1600.0, 60.0),
    "v2.0": SatelliteGeneration("v2.0", 1800.0, 80.0),
}
FALLBACK_GENERATION = "v1.0"


def get_generation(name: str) -> SatelliteGeneration:
    """Look up a generation, falling back to v1.0 for unknown names."""
    return SATELLITE_GENERATIONS.get(name, SATELLITE_GENERATIONS[FALLBACK_GENERATION])


def link_range_km(generation_a: str, generation_b: str) -> float:
    """Maximum ISL range between two satellites: the weaker terminal limits the link."""
    return min(
        get_generation(generation_a).max_rf_range_km,
        get_generation(generation_b).max_rf_range_km,
    )


# ---------------------------------------------------------------------------
# Data Classes
# ---------------------------------------------------------------------------

@dataclass
class OrbitalElements:
    """Classical orbital elements. Angles in degrees, altitude in km."""

    altitude_km: float
    inclination_deg: float
    eccentricity: float = 0.0001
    arg_periapsis_deg: float = 0.0
    raan_deg: float = 0.0
    mean_anomaly_deg: float = 0.0

    def __post_init__(self) -> None:
        if not 0.0 <= self.eccentricity < 1.0:
            raise ValueError(f"eccentricity must be in [0, 1), got {self.eccentricity}")
        if self.altitude_km <= -EARTH_RADIUS_KM:
            raise ValueError(f"altitude_km must be above the Earth's centre, got {self.altitude_km}")
        self.mean_anomaly_deg = _wrap_degrees(self.mean_anomaly_deg)

    @property
    def semi_major_axis_km(self) -> float:
        return EARTH_RADIUS_KM + self.altitude_km

    @property
    def orbital_period_seconds(self) -> float:
        """Compute orbital period using Kepler's third law."""
        a = self.semi_major_axis_km
        return 2 * math.pi * math.sqrt(a**3 / EARTH_MU)

    @property
    def mean_motion_rad_s(self) -> float:
        return 2 * math.pi / self.orbital_period_seconds


@dataclass
class Satellite:
    """
    A relay satellite.

    ``queue`` holds packet ids in service order. The connection lists are
    derived by the topology builder every tick and only ever name active links.
    """

    id: str
    elements: OrbitalElements
    generation: str = "v1.5"
    beams: int = 8
    uplink_mbps: float = 50.0  # per beam
    downlink_mbps: float = 150.0  # per beam
    status: NodeStatus = "operational"
    position: Vector3 = (0.0, 0.0, 0.0)
    velocity: Vector3 = (0.0, 0.0, 0.0)
    queue: List[str] = field(default_factory=list)
    connected_satellites: List[str] = field(default_factory=list)
    connected_ground_stations: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.status not in VALID_STATUSES:
            raise ValueError(f"Unknown satellite status {self.status!r}")
        if self.position == (0.0, 0.0, 0.0):
            self.position, self.velocity = compute_state_vectors(self.elements)

    @property
    def isl_bandwidth_mbps(self) -> float:
        return get_generation(self.generation).isl_bandwidth_mbps

    @property
    def max_rf_range_km(self) -> float:
        return get_generation(self.generation).max_rf_range_km

    @property
    def downlink_capacity_mbps(self) -> float:
        return self.downlink_mbps * self.beams

    @property
    def geodetic(self) -> Tuple[float, float, float]:
        """Sub-satellite point as (lat_deg, lon_deg, alt_km)."""
        return cartesian_to_geodetic(self.position)


# ---------------------------------------------------------------------------
# Orbital Engine
# ---------------------------------------------------------------------------

def _wrap_degrees(angle_deg: float) -> float:
    wrapped = angle_deg % 360.0
    # x % 360.0 can round up to exactly 360.0 for tiny negative inputs
    if wrapped >= 360.0:
        wrapped -= 360.0
    return wrapped


def _rotate_to_earth_frame(
    x_orbit: float,
    y_orbit: float,
    arg_periapsis_rad: float,
    inclination_rad: float,
    raan_rad: float,
) -> Vector3:
    """Rotate an orbital-plane vector by periapsis (Z), inclination (X), then RAAN (Z)."""
    cos_w, sin_w = math.cos(arg_periapsis_rad), math.sin(arg_periapsis_rad)
    cos_i, sin_i = math.cos(inclination_rad), math.sin(inclination_rad)
    cos_o, sin_o = math.cos(raan_rad), math.sin(raan_rad)

    x1 = x_orbit * cos_w - y_orbit * sin_w
    y1 = x_orbit * sin_w + y_orbit * cos_w

    y2 = y1 * cos_i
    z2 = y1 * sin_i

    return (
        x1 * cos_o - y2 * sin_o,
        x1 * sin_o + y2 * cos_o,
        z2,
    )


def compute_state_vectors(elements: OrbitalElements) -> Tuple[Vector3, Vector3]:
    """
    Derive Earth-centred position (km) and velocity (km/s) from orbital elements.

    Args:
        elements: Orbital elements at the instant of interest

    Returns:
        Tuple of (position, velocity)
    """
    e = elements.eccentricity
    a = elements.semi_major_axis_km

    M = math.radians(elements.mean_anomaly_deg)
    E = M + e * math.sin(M)
    true_anomaly = 2 * math.atan2(
        math.sqrt(1 + e) * math.sin(E / 2),
        math.sqrt(1 - e) * math.cos(E / 2),
    )
    radius = a * (1 - e * math.cos(E))

    x_orbit = radius * math.cos(true_anomaly)
    y_orbit = radius * math.sin(true_anomaly)

    # Perifocal velocity: sqrt(mu/p) * (-sin v, e + cos v)
    p = a * (1 - e**2)
    speed_factor = math.sqrt(EARTH_MU / p)
    vx_orbit = -speed_factor * math.sin(true_anomaly)
    vy_orbit = speed_factor * (e + math.cos(true_anomaly))

    w = math.radians(elements.arg_periapsis_deg)
    i = math.radians(elements.inclination_deg)
    o = math.radians(elements.raan_deg)

    position = _rotate_to_earth_frame(x_orbit, y_orbit, w, i, o)
    velocity = _rotate_to_earth_frame(vx_orbit, vy_orbit, w, i, o)
    return position, velocity


def advance_mean_anomaly(elements: OrbitalElements, delta_seconds: float) -> float:
    """Return the mean anomaly (degrees, in [0, 360)) after ``delta_seconds``."""
    advance_deg = math.degrees(elements.mean_motion_rad_s * delta_seconds)
    return _wrap_degrees(elements.mean_anomaly_deg + advance_deg)


class OrbitalPropagator:
    """
    Two-body propagator for the whole constellation.

    Deterministic: identical elements and identical sequences of time steps
    produce identical states.
    """

    def propagate(self, satellites: Iterable[Satellite], delta_seconds: float) -> None:
        """Advance every satellite in place by ``delta_seconds``."""
        if delta_seconds < 0:
            raise ValueError(f"delta_seconds must be >= 0, got {delta_seconds}")

        count = 0
        for satellite in satellites:
            satellite.elements.mean_anomaly_deg = advance_mean_anomaly(
                satellite.elements, delta_seconds
            )
            satellite.position, satellite.velocity = compute_state_vectors(satellite.elements)
            count += 1
        logger.debug("Propagated %d satellites by %.3f s", count, delta_seconds)

    def propagate_copy(
        self, satellites: Iterable[Satellite], offset_seconds: float
    ) -> List[Satellite]:
        """
        Return copies of the satellites advanced by ``offset_seconds``.

        Live state is untouched. Copies carry empty queues and connection
        lists; they are meant for building forecast topologies only.
        """
        if offset_seconds < 0:
            raise ValueError(f"offset_seconds must be >= 0, got {offset_seconds}")

        future: List[Satellite] = []
        for satellite in satellites:
            elements = replace(
                satellite.elements,
                mean_anomaly_deg=advance_mean_anomaly(satellite.elements, offset_seconds),
            )
            position, velocity = compute_state_vectors(elements)
            future.append(replace(
                satellite,
                elements=elements,
                position=position,
                velocity=velocity,
                queue=[],
                connected_satellites=[],
                connected_ground_stations=[],
            ))
        return future
