"""Geodesy helpers shared by the topology, geofence and routing layers.

All positions live in one Earth-centred Cartesian frame (km) with the Z axis
toward the north pole. Ground stations are fixed in this frame; the Earth's
rotation is not modelled.
"""

from __future__ import annotations

import math
from typing import List, Tuple

# ---------------------------------------------------------------------------
# Physical Constants
# ---------------------------------------------------------------------------
EARTH_RADIUS_KM = 6371.0
EARTH_MU = 398600.4418  # km^3/s^2 (gravitational parameter)
SPEED_OF_LIGHT_KM_S = 300000.0  # rounded, used for link propagation delay

Vector3 = Tuple[float, float, float]


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two lat/lon points in km."""
    rlat1 = math.radians(lat1)
    rlat2 = math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    a = math.sin(dlat / 2) ** 2 + math.cos(rlat1) * math.cos(rlat2) * math.sin(dlon / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def geodetic_to_cartesian(
    lat_deg: float, lon_deg: float, radius_km: float = EARTH_RADIUS_KM
) -> Vector3:
    """Convert a geodetic point to Earth-centred Cartesian coordinates (spherical Earth)."""
    lat = math.radians(lat_deg)
    lon = math.radians(lon_deg)
    return (
        radius_km * math.cos(lat) * math.cos(lon),
        radius_km * math.cos(lat) * math.sin(lon),
        radius_km * math.sin(lat),
    )


def cartesian_to_geodetic(position: Vector3) -> Tuple[float, float, float]:
    """
    Convert an Earth-centred position to (lat_deg, lon_deg, alt_km).

    The origin itself maps to (0, 0, -EARTH_RADIUS_KM) instead of dividing
    by zero.
    """
    x, y, z = position
    r = math.sqrt(x**2 + y**2 + z**2)
    lat_rad = math.asin(max(-1.0, min(1.0, z / r))) if r > 0 else 0.0
    lon_rad = math.atan2(y, x)
    return math.degrees(lat_rad), math.degrees(lon_rad), r - EARTH_RADIUS_KM


def distance_km(a: Vector3, b: Vector3) -> float:
    """Euclidean distance between two Cartesian points."""
    dx = a[0] - b[0]
    dy = a[1] - b[1]
    dz = a[2] - b[2]
    return math.sqrt(dx**2 + dy**2 + dz**2)


def propagation_delay_ms(distance: float) -> float:
    """Free-space propagation delay for a link of the given length."""
    return distance / SPEED_OF_LIGHT_KM_S * 1000.0


def great_circle_points(
    lat1: float, lon1: float, lat2: float, lon2: float, steps: int
) -> List[Tuple[float, float]]:
    """
    Sample ``steps + 1`` points along the great circle between two points.

    Both endpoints are included. Antipodal or identical endpoints fall back to
    linear interpolation in lat/lon, since the great circle is then undefined
    or degenerate.

    Args:
        lat1, lon1: Start point in degrees
        lat2, lon2: End point in degrees
        steps: Number of intervals (must be >= 1)

    Returns:
        List of (lat_deg, lon_deg) tuples, start first
    """
    if steps < 1:
        raise ValueError(f"steps must be >= 1, got {steps}")

    p1 = geodetic_to_cartesian(lat1, lon1, 1.0)
    p2 = geodetic_to_cartesian(lat2, lon2, 1.0)
    dot = max(-1.0, min(1.0, sum(a * b for a, b in zip(p1, p2))))
    omega = math.acos(dot)
    sin_omega = math.sin(omega)

    points: List[Tuple[float, float]] = []
    for i in range(steps + 1):
        t = i / steps
        if sin_omega < 1e-6:
            points.append((lat1 + t * (lat2 - lat1), lon1 + t * (lon2 - lon1)))
            continue
        w1 = math.sin((1 - t) * omega) / sin_omega
        w2 = math.sin(t * omega) / sin_omega
        point = (
            w1 * p1[0] + w2 * p2[0],
            w1 * p1[1] + w2 * p2[1],
            w1 * p1[2] + w2 * p2[2],
        )
        lat, lon, _ = cartesian_to_geodetic(point)
        points.append((lat, lon))
    return points
