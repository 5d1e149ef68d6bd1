"""Shared fixtures: small hand-placed constellations with known geometry."""

from __future__ import annotations

from typing import Callable, List

import pytest

from satrelay.network.ground_stations import GroundStation
from satrelay.network.orbits import OrbitalElements, Satellite


def satellite_over(
    sat_id: str,
    lat: float,
    lon: float,
    altitude_km: float = 550.0,
    generation: str = "v1.5",
) -> Satellite:
    """Polar-orbit satellite whose t=0 sub-point is exactly (lat, lon)."""
    elements = OrbitalElements(
        altitude_km=altitude_km,
        inclination_deg=90.0,
        eccentricity=0.0,
        raan_deg=lon,
        mean_anomaly_deg=lat,
    )
    return Satellite(id=sat_id, elements=elements, generation=generation)


def station_at(gs_id: str, lat: float, lon: float, **kwargs) -> GroundStation:
    return GroundStation(id=gs_id, name=gs_id, lat_deg=lat, lon_deg=lon, **kwargs)


@pytest.fixture
def sat_over() -> Callable[..., Satellite]:
    return satellite_over


@pytest.fixture
def gs_at() -> Callable[..., GroundStation]:
    return station_at


@pytest.fixture
def equator_chain() -> List[Satellite]:
    """Satellites every 5 degrees along the equator, lon 0..80.

    Neighbours 5 and 10 degrees apart are in v1.5 range (604 / 1206 km);
    15 degrees (1807 km) is not.
    """
    return [satellite_over(f"sat_{lon}", 0.0, float(lon)) for lon in range(0, 85, 5)]


@pytest.fixture
def far_stations() -> List[GroundStation]:
    """Two gateways on the equator about 9,000 km apart."""
    return [station_at("gs_a", 0.0, 0.0), station_at("gs_b", 0.0, 81.0)]
