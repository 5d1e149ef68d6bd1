"""
Geofencing: named denied regions and the read-only oracle that queries them.

A region is either a lat/lon polygon (ray casting, no antimeridian wrap) or a
circle on the Earth's surface. Each region carries a constraint record; the
topology builder deactivates any link whose ground path crosses a region whose
record sets ``no_transmission``.

The oracle never mutates after construction. Adding a region produces a new
oracle, so concurrent readers always see a consistent set.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional, Tuple

from satrelay.network.geo import great_circle_points, haversine_km

logger = logging.getLogger(__name__)

DEFAULT_SEGMENT_STEPS = 20


@dataclass(frozen=True)
class RegionConstraints:
    """Regulatory constraints attached to a denied region."""
    no_transmission: bool = True
    no_overflight: bool = False
    limited_frequency: bool = False
    frequency_limits_mhz: Tuple[Tuple[float, float], ...] = ()


@dataclass(frozen=True)
class DeniedRegion:
    """Base class: a named area with constraints."""
    name: str
    constraints: RegionConstraints = field(default_factory=RegionConstraints)

    def contains(self, lat: float, lon: float) -> bool:
        raise NotImplementedError


@dataclass(frozen=True)
class PolygonRegion(DeniedRegion):
    """Polygon given as (lat, lon) vertices; closing edge is implicit."""
    boundary: Tuple[Tuple[float, float], ...] = ()

    def __post_init__(self) -> None:
        if len(self.boundary) < 3:
            raise ValueError(f"Region {self.name!r} needs at least 3 vertices")

    def contains(self, lat: float, lon: float) -> bool:
        lats = [p[0] for p in self.boundary]
        lons = [p[1] for p in self.boundary]
        if not (min(lats) <= lat <= max(lats) and min(lons) <= lon <= max(lons)):
            return False

        inside = False
        j = len(self.boundary) - 1
        for i in range(len(self.boundary)):
            yi, xi = self.boundary[i]
            yj, xj = self.boundary[j]
            if (yi > lat) != (yj > lat):
                x_cross = (xj - xi) * (lat - yi) / (yj - yi) + xi
                if lon < x_cross:
                    inside = not inside
            j = i
        return inside


@dataclass(frozen=True)
class CircleRegion(DeniedRegion):
    """All points within ``radius_km`` (great-circle) of a centre."""
    center_lat: float = 0.0
    center_lon: float = 0.0
    radius_km: float = 0.0

    def __post_init__(self) -> None:
        if self.radius_km < 0:
            raise ValueError(f"Region {self.name!r} radius must be >= 0")

    def contains(self, lat: float, lon: float) -> bool:
        return haversine_km(self.center_lat, self.center_lon, lat, lon) <= self.radius_km


@dataclass(frozen=True)
class RegionHit:
    in_region: bool
    region_name: Optional[str] = None


@dataclass(frozen=True)
class RegionCrossing:
    crosses: bool
    region_name: Optional[str] = None


# ---------------------------------------------------------------------------
# Predefined Regions
# ---------------------------------------------------------------------------

PREDEFINED_REGIONS: Dict[str, DeniedRegion] = {
    "iran": PolygonRegion(
        name="Iran",
        constraints=RegionConstraints(
            no_transmission=True,
            no_overflight=False,
            limited_frequency=True,
            frequency_limits_mhz=((10700.0, 12700.0), (17700.0, 20200.0)),
        ),
        boundary=(
            (39.782, 44.774),
            (37.974, 48.584),
            (37.650, 54.800),
            (36.585, 61.210),
            (31.785, 61.816),
            (29.284, 60.580),
            (25.380, 58.220),
            (27.190, 56.270),
            (28.900, 50.830),
            (29.975, 48.567),
            (33.746, 45.420),
            (37.480, 44.140),
        ),
    ),
    "north korea": PolygonRegion(
        name="North Korea",
        constraints=RegionConstraints(
            no_transmission=True,
            no_overflight=True,
            limited_frequency=True,
        ),
        boundary=(
            (42.450, 130.640),
            (43.385, 130.670),
            (42.985, 128.445),
            (41.584, 126.440),
            (40.100, 124.390),
            (38.680, 125.080),
            (38.300, 127.260),
            (38.610, 128.360),
            (40.590, 129.580),
            (41.740, 129.950),
        ),
    ),
    "custom": CircleRegion(
        name="Custom",
        constraints=RegionConstraints(
            no_transmission=False,
            limited_frequency=True,
            frequency_limits_mhz=((14000.0, 14500.0),),
        ),
        center_lat=35.0,
        center_lon=-115.0,
        radius_km=556.0,  # ~5 degrees of arc
    ),
}


def predefined_region(name: str) -> Optional[DeniedRegion]:
    """Look up a predefined region by case-insensitive name."""
    return PREDEFINED_REGIONS.get(name.lower())


# ---------------------------------------------------------------------------
# Oracle
# ---------------------------------------------------------------------------

class GeofenceOracle:
    """Point and segment queries against a fixed set of denied regions."""

    def __init__(
        self,
        regions: Iterable[DeniedRegion] = (),
        segment_steps: int = DEFAULT_SEGMENT_STEPS,
    ):
        if segment_steps < 1:
            raise ValueError(f"segment_steps must be >= 1, got {segment_steps}")
        self._regions: Tuple[DeniedRegion, ...] = tuple(regions)
        self._by_name: Dict[str, DeniedRegion] = {r.name.lower(): r for r in self._regions}
        if len(self._by_name) != len(self._regions):
            raise ValueError("Denied region names must be unique (case-insensitive)")
        self.segment_steps = segment_steps

    @classmethod
    def from_names(cls, names: Iterable[str]) -> "GeofenceOracle":
        """Build an oracle from predefined region names; unknown names are skipped."""
        regions = []
        for name in names:
            region = predefined_region(name)
            if region is None:
                logger.warning("Unknown predefined denied region %r ignored", name)
                continue
            regions.append(region)
        return cls(regions)

    @property
    def regions(self) -> Tuple[DeniedRegion, ...]:
        return self._regions

    def with_region(self, region: DeniedRegion) -> "GeofenceOracle":
        """Return a new oracle with ``region`` added (replacing a same-named one)."""
        kept = [r for r in self._regions if r.name.lower() != region.name.lower()]
        return GeofenceOracle(kept + [region], segment_steps=self.segment_steps)

    def get_region_constraints(self, name: str) -> Optional[RegionConstraints]:
        region = self._by_name.get(name.lower())
        return region.constraints if region is not None else None

    def point_in_region(self, lat: float, lon: float) -> RegionHit:
        for region in self._regions:
            if region.contains(lat, lon):
                return RegionHit(True, region.name)
        return RegionHit(False)

    def segment_crosses_region(
        self, lat1: float, lon1: float, lat2: float, lon2: float
    ) -> RegionCrossing:
        """
        Check whether the great-circle path between two points enters a region.

        The path is sampled at ``segment_steps`` intervals, endpoints included,
        so an endpoint inside a region always counts as a crossing.
        """
        if not self._regions:
            return RegionCrossing(False)
        for lat, lon in great_circle_points(lat1, lon1, lat2, lon2, self.segment_steps):
            hit = self.point_in_region(lat, lon)
            if hit.in_region:
                return RegionCrossing(True, hit.region_name)
        return RegionCrossing(False)

    def blocking_region(
        self, lat1: float, lon1: float, lat2: float, lon2: float
    ) -> Optional[DeniedRegion]:
        """First crossed region whose constraints forbid transmission, if any."""
        blocking = [r for r in self._regions if r.constraints.no_transmission]
        if not blocking:
            return None
        for lat, lon in great_circle_points(lat1, lon1, lat2, lon2, self.segment_steps):
            for region in blocking:
                if region.contains(lat, lon):
                    return region
        return None
