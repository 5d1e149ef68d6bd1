"""Unit tests for satrelay.network.geofence.

Tests validate:
- Point-in-region for polygons and circles
- Segment crossing sampled along the great circle
- Only no-transmission regions block
- Case-insensitive constraint lookup and immutability
"""

from __future__ import annotations

import pytest

from satrelay.network.geofence import (
    CircleRegion,
    GeofenceOracle,
    PolygonRegion,
    RegionConstraints,
    predefined_region,
)


@pytest.fixture
def oracle() -> GeofenceOracle:
    return GeofenceOracle.from_names(["iran", "north korea", "custom"])


class TestPredefinedRegions:
    def test_lookup_is_case_insensitive(self) -> None:
        assert predefined_region("IRAN") is predefined_region("iran")
        assert predefined_region("atlantis") is None

    def test_unknown_names_skipped(self) -> None:
        oracle = GeofenceOracle.from_names(["iran", "atlantis"])
        assert [r.name for r in oracle.regions] == ["Iran"]

    def test_constraints(self, oracle) -> None:
        iran = oracle.get_region_constraints("Iran")
        assert iran.no_transmission is True
        assert iran.frequency_limits_mhz == ((10700.0, 12700.0), (17700.0, 20200.0))
        assert oracle.get_region_constraints("NORTH KOREA").no_overflight is True
        assert oracle.get_region_constraints("custom").no_transmission is False
        assert oracle.get_region_constraints("nowhere") is None


class TestPointInRegion:
    def test_polygon_hits(self, oracle) -> None:
        hit = oracle.point_in_region(35.69, 51.39)  # Tehran
        assert hit.in_region is True
        assert hit.region_name == "Iran"
        assert oracle.point_in_region(39.03, 125.75).region_name == "North Korea"

    def test_polygon_misses(self, oracle) -> None:
        assert oracle.point_in_region(51.5, -0.13).in_region is False  # London
        assert oracle.point_in_region(37.57, 126.98).in_region is False  # Seoul

    def test_circle(self, oracle) -> None:
        assert oracle.point_in_region(36.17, -115.14).region_name == "Custom"  # Las Vegas
        assert oracle.point_in_region(37.77, -122.42).in_region is False  # San Francisco

    def test_polygon_needs_three_vertices(self) -> None:
        with pytest.raises(ValueError):
            PolygonRegion(name="line", boundary=((0.0, 0.0), (1.0, 1.0)))

    def test_empty_oracle(self) -> None:
        assert GeofenceOracle().point_in_region(0.0, 0.0).in_region is False


class TestSegmentCrossing:
    def test_segment_through_iran(self, oracle) -> None:
        crossing = oracle.segment_crosses_region(32.0, 40.0, 32.0, 70.0)
        assert crossing.crosses is True
        assert crossing.region_name == "Iran"
        assert oracle.blocking_region(32.0, 40.0, 32.0, 70.0).name == "Iran"

    def test_segment_clear(self, oracle) -> None:
        crossing = oracle.segment_crosses_region(0.0, 0.0, 0.0, 20.0)
        assert crossing.crosses is False
        assert crossing.region_name is None
        assert oracle.blocking_region(0.0, 0.0, 0.0, 20.0) is None

    def test_endpoint_inside_counts(self, oracle) -> None:
        assert oracle.segment_crosses_region(35.69, 51.39, 0.0, 0.0).crosses is True

    def test_limited_frequency_region_does_not_block(self, oracle) -> None:
        """The custom region is crossed but allows transmission."""
        assert oracle.segment_crosses_region(36.0, -120.0, 36.0, -110.0).region_name == "Custom"
        assert oracle.blocking_region(36.0, -120.0, 36.0, -110.0) is None


class TestOracleImmutability:
    def test_with_region_returns_new_oracle(self) -> None:
        base = GeofenceOracle()
        region = CircleRegion(
            name="Zone",
            constraints=RegionConstraints(no_transmission=True),
            center_lat=0.0,
            center_lon=0.0,
            radius_km=100.0,
        )
        extended = base.with_region(region)
        assert base.regions == ()
        assert extended.regions == (region,)
        assert extended.point_in_region(0.0, 0.0).in_region is True

    def test_with_region_replaces_same_name(self) -> None:
        small = CircleRegion(name="Zone", center_lat=0.0, center_lon=0.0, radius_km=10.0)
        large = CircleRegion(name="zone", center_lat=0.0, center_lon=0.0, radius_km=1000.0)
        oracle = GeofenceOracle([small]).with_region(large)
        assert oracle.regions == (large,)

    def test_duplicate_names_rejected(self) -> None:
        region = CircleRegion(name="Zone", radius_km=10.0)
        with pytest.raises(ValueError):
            GeofenceOracle([region, region])
