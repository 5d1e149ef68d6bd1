"""Unit tests for satrelay.network.topology.

Tests validate:
- Line-of-sight occlusion (including the zero-length guard)
- Range rule uses the weaker terminal
- No self-loops or duplicate connections
- Offline nodes form no links
- No-transmission regions leave inactive, retained links
- Connection diffs between snapshots
"""

from __future__ import annotations

import pytest

from satrelay.network.geofence import CircleRegion, GeofenceOracle, RegionConstraints
from satrelay.network.topology import (
    TopologyBuilder,
    connection_changes,
    edge_key,
    has_line_of_sight,
)


def _zone_around(lat: float, lon: float, radius_km: float = 300.0) -> CircleRegion:
    return CircleRegion(
        name="Zone",
        constraints=RegionConstraints(no_transmission=True),
        center_lat=lat,
        center_lon=lon,
        radius_km=radius_km,
    )


class TestLineOfSight:
    def test_opposite_sides_blocked(self) -> None:
        assert has_line_of_sight((7000.0, 0.0, 0.0), (-7000.0, 0.0, 0.0)) is False

    def test_neighbours_clear(self) -> None:
        assert has_line_of_sight((6921.0, 0.0, 0.0), (6816.0, 1202.0, 0.0)) is True

    def test_zero_length_segment_is_clear(self) -> None:
        assert has_line_of_sight((6921.0, 0.0, 0.0), (6921.0, 0.0, 0.0)) is True

    def test_grazing_inside_buffer_blocked(self) -> None:
        """Segment dipping to 6400 km from the centre is inside the 100 km buffer."""
        assert has_line_of_sight((6400.0, -3000.0, 0.0), (6400.0, 3000.0, 0.0)) is False


class TestSatelliteLinks:
    def test_mixed_generations_use_smaller_range(self, sat_over) -> None:
        """v2.0 with v0.9 1300 km apart: out of the 1200 km v0.9 range."""
        builder = TopologyBuilder()
        new = sat_over("sat_new", 0.0, 0.0, generation="v2.0")
        old = sat_over("sat_old", 0.0, 10.78, generation="v0.9")
        snapshot = builder.build([new, old], [])
        assert snapshot.edges == {}
        assert new.connected_satellites == []

    def test_same_pair_links_when_both_v2_0(self, sat_over) -> None:
        builder = TopologyBuilder()
        a = sat_over("sat_a", 0.0, 0.0, generation="v2.0")
        b = sat_over("sat_b", 0.0, 10.78, generation="v2.0")
        snapshot = builder.build([a, b], [])
        edge = snapshot.edge("sat_b", "sat_a")
        assert edge is not None
        assert edge.distance_km == pytest.approx(1300.0, rel=0.01)
        assert edge.delay_ms == pytest.approx(edge.distance_km / 300.0)
        assert edge.bandwidth_mbps == 80.0
        assert a.connected_satellites == ["sat_b"]
        assert b.connected_satellites == ["sat_a"]

    def test_bandwidth_is_weaker_terminal(self, sat_over) -> None:
        a = sat_over("sat_a", 0.0, 0.0, generation="v2.0")
        b = sat_over("sat_b", 0.0, 5.0, generation="v1.0")
        snapshot = TopologyBuilder().build([a, b], [])
        assert snapshot.edge("sat_a", "sat_b").bandwidth_mbps == 40.0

    def test_earth_occludes_far_side(self, sat_over) -> None:
        a = sat_over("sat_a", 0.0, 0.0)
        b = sat_over("sat_b", 0.0, 180.0)
        builder = TopologyBuilder()
        snapshot = builder.build([a, b], [])
        assert snapshot.edges == {}
        assert builder.last_stats.candidate_links == 1
        assert builder.last_stats.rejected_los == 1

    def test_chain_neighbours(self, equator_chain) -> None:
        TopologyBuilder().build(equator_chain, [])
        first = equator_chain[0]
        assert sorted(first.connected_satellites) == ["sat_10", "sat_5"]

    def test_no_self_loops_or_duplicates(self, equator_chain, far_stations) -> None:
        snapshot = TopologyBuilder().build(equator_chain, far_stations)
        for key, edge in snapshot.edges.items():
            assert edge.source != edge.target
            assert key == edge_key(edge.source, edge.target)
        for sat in equator_chain:
            assert sat.id not in sat.connected_satellites
            assert len(set(sat.connected_satellites)) == len(sat.connected_satellites)
            assert len(set(sat.connected_ground_stations)) == len(sat.connected_ground_stations)
            for other_id in sat.connected_satellites:
                other = next(s for s in equator_chain if s.id == other_id)
                assert sat.id in other.connected_satellites

    def test_offline_satellite_has_no_links(self, equator_chain, far_stations) -> None:
        equator_chain[1].status = "offline"
        snapshot = TopologyBuilder().build(equator_chain, far_stations)
        assert snapshot.neighbours("sat_5") == []
        assert equator_chain[1].connected_satellites == []
        assert "sat_5" not in far_stations[0].connected_satellites
        assert "sat_5" in snapshot.nodes

    def test_candidate_pairs_hook(self, equator_chain) -> None:
        class NoIslBuilder(TopologyBuilder):
            def candidate_pairs(self, satellites):
                return []

        snapshot = NoIslBuilder().build(equator_chain, [])
        assert snapshot.edges == {}


class TestGroundLinks:
    def test_ground_coverage(self, equator_chain, far_stations) -> None:
        TopologyBuilder().build(equator_chain, far_stations)
        gs_a, gs_b = far_stations
        assert gs_a.connected_satellites == ["sat_0", "sat_5", "sat_10", "sat_15"]
        assert gs_b.connected_satellites == ["sat_65", "sat_70", "sat_75", "sat_80"]
        assert equator_chain[0].connected_ground_stations == ["gs_a"]

    def test_ground_bandwidth(self, sat_over, gs_at) -> None:
        sat = sat_over("sat", 0.0, 0.0)
        sat.beams = 8  # 8 x 150 Mbps = 1200
        wide = gs_at("gs_wide", 0.0, 0.0, bandwidth_mbps=5000.0)
        narrow = gs_at("gs_narrow", 0.0, 1.0, bandwidth_mbps=500.0)
        snapshot = TopologyBuilder().build([sat], [wide, narrow])
        assert snapshot.edge("sat", "gs_wide").bandwidth_mbps == 1200.0
        assert snapshot.edge("sat", "gs_narrow").bandwidth_mbps == 500.0
        assert snapshot.edge("sat", "gs_wide").kind == "satellite-to-ground"

    def test_offline_station_has_no_links(self, equator_chain, far_stations) -> None:
        far_stations[0].status = "offline"
        snapshot = TopologyBuilder().build(equator_chain, far_stations)
        assert snapshot.neighbours("gs_a") == []
        assert far_stations[0].connected_satellites == []

    def test_no_ground_stations_in_range(self, sat_over, gs_at) -> None:
        sat = sat_over("sat", 0.0, 0.0)
        far = gs_at("gs_far", 0.0, 30.0)
        TopologyBuilder().build([sat], [far])
        assert far.connected_satellites == []


class TestDeniedRegions:
    def test_every_link_touching_region_inactive(self, equator_chain, far_stations) -> None:
        """A no-transmission zone around gs_b disables all of gs_b's links."""
        builder = TopologyBuilder(GeofenceOracle([_zone_around(0.0, 81.0)]))
        snapshot = builder.build(equator_chain, far_stations)

        touching = [e for e in snapshot.edges.values() if "gs_b" in (e.source, e.target)]
        assert len(touching) == 4
        for edge in touching:
            assert edge.active is False
            assert edge.crossing.is_denied_region is True
            assert edge.crossing.no_transmission is True
            assert edge.crossing.region_name == "Zone"

        assert far_stations[1].connected_satellites == []
        assert "gs_b" not in snapshot.graph().adj["sat_75"]
        assert snapshot.graph(include_inactive=True).has_edge("gs_b", "sat_75")
        assert snapshot.nodes["gs_b"].in_denied_region is True

    def test_transmission_allowed_region_tags_only(self, equator_chain, far_stations) -> None:
        zone = CircleRegion(
            name="Watch",
            constraints=RegionConstraints(no_transmission=False, limited_frequency=True),
            center_lat=0.0,
            center_lon=81.0,
            radius_km=300.0,
        )
        snapshot = TopologyBuilder(GeofenceOracle([zone])).build(equator_chain, far_stations)
        edge = snapshot.edge("sat_75", "gs_b")
        assert edge.active is True
        assert edge.crossing.is_denied_region is True
        assert edge.crossing.no_transmission is False
        assert "sat_75" in far_stations[1].connected_satellites
        assert not snapshot.graph(avoid_denied_regions=True).has_edge("sat_75", "gs_b")


class TestSnapshots:
    def test_apply_connections_false_leaves_lists(self, equator_chain, far_stations) -> None:
        builder = TopologyBuilder()
        builder.build(equator_chain, far_stations)
        before = list(far_stations[0].connected_satellites)
        equator_chain[0].status = "offline"
        builder.build(equator_chain, far_stations, apply_connections=False)
        assert far_stations[0].connected_satellites == before

    def test_connection_changes(self, equator_chain, far_stations) -> None:
        builder = TopologyBuilder()
        first = builder.build(equator_chain, far_stations)
        equator_chain[0].status = "offline"
        second = builder.build(equator_chain, far_stations)

        added, removed = connection_changes(first, second)
        assert added == []
        assert ("gs_a", "sat_0") in removed
        assert ("sat_0", "sat_5") in removed
        assert all("sat_0" in key for key in removed)

    def test_initial_diff_adds_everything(self, equator_chain) -> None:
        snapshot = TopologyBuilder().build(equator_chain, [])
        added, removed = connection_changes(None, snapshot)
        assert len(added) == len(snapshot.edges)
        assert removed == []

    def test_graph_prunes_dangling_edges(self, equator_chain) -> None:
        snapshot = TopologyBuilder().build(equator_chain, [])
        del snapshot.nodes["sat_0"]
        G = snapshot.graph()
        assert "sat_0" not in G
        assert G.number_of_edges() == len(snapshot.edges) - 2
