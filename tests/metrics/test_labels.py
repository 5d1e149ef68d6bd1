"""Unit tests for satrelay.metrics.labels.

Tests validate the pure metric functions for:
- Empty graph handling
- Connected vs multi-component graphs
- Partition streak aggregation
- Isolated ground stations on a snapshot
- Delivery ratio and latency over packets
"""

from __future__ import annotations

import networkx as nx
import pytest

from satrelay.metrics.labels import (
    aggregate_partition_streaks,
    compute_delivery_ratio,
    compute_gcc_frac,
    compute_gcc_size,
    compute_isolated_ground_stations,
    compute_mean_delivery_latency,
    compute_num_components,
    compute_partitioned,
    compute_simulation_stats,
    count_packets_by_status,
)
from satrelay.network.topology import TopologyBuilder
from satrelay.routing.packets import DataPacket, Endpoint, NodeKind


def _two_components() -> nx.Graph:
    G = nx.Graph()
    G.add_edges_from([(0, 1), (1, 2), (2, 3)])  # 4 nodes
    G.add_edge(10, 11)  # 2 nodes
    return G


def _packet(packet_id: str, status: str, latency: float = 0.0) -> DataPacket:
    return DataPacket(
        id=packet_id,
        source=Endpoint(NodeKind.GROUND_STATION, "gs_a", (0.0, 0.0)),
        destination=Endpoint(NodeKind.INTERNET, "internet"),
        size_kb=100.0,
        priority=1,
        created_at=0.0,
        latency_seconds=latency,
        path=["gs_a"],
        status=status,
    )


class TestGraphMetrics:
    def test_empty_graph(self) -> None:
        """Empty graph: no components and no division by zero."""
        G = nx.Graph()
        assert compute_num_components(G) == 0
        assert compute_gcc_size(G) == 0
        assert compute_gcc_frac(G) == 0.0

    def test_connected_graph(self) -> None:
        G = nx.path_graph(10)
        assert compute_num_components(G) == 1
        assert compute_gcc_size(G) == 10
        assert compute_gcc_frac(G) == 1.0

    def test_two_components(self) -> None:
        G = _two_components()
        assert compute_num_components(G) == 2
        assert compute_gcc_size(G) == 4
        assert compute_gcc_frac(G) == pytest.approx(4 / 6)

    def test_all_isolated(self) -> None:
        G = nx.Graph()
        G.add_nodes_from(range(10))
        assert compute_num_components(G) == 10
        assert compute_gcc_frac(G) == pytest.approx(1 / 10)


class TestPartitioned:
    @pytest.mark.parametrize(
        "gcc_frac, threshold, expected",
        [(1.0, 0.8, 0), (0.8, 0.8, 0), (0.79, 0.8, 1), (0.0, 0.8, 1), (0.85, 0.9, 1)],
    )
    def test_threshold(self, gcc_frac: float, threshold: float, expected: int) -> None:
        """Partitioned only strictly below the threshold."""
        assert compute_partitioned(gcc_frac, threshold) == expected

    @pytest.mark.parametrize(
        "series, expected",
        [
            ([], 0),
            ([0, 0, 0], 0),
            ([1, 1, 1, 1], 4),
            ([1, 1, 0, 1, 1, 1, 0, 1], 3),
            ([0, 1, 0, 1, 0], 1),
        ],
    )
    def test_streaks(self, series, expected: int) -> None:
        assert aggregate_partition_streaks(series) == expected


class TestIsolatedGroundStations:
    def test_isolated_station_listed(self, equator_chain, far_stations, gs_at) -> None:
        stations = far_stations + [gs_at("gs_c", 0.0, -100.0)]
        snapshot = TopologyBuilder().build(equator_chain, stations)
        assert compute_isolated_ground_stations(snapshot) == ["gs_c"]

    def test_no_satellites(self, far_stations) -> None:
        snapshot = TopologyBuilder().build([], far_stations)
        assert compute_isolated_ground_stations(snapshot) == ["gs_a", "gs_b"]


class TestDeliveryMetrics:
    def test_counts(self) -> None:
        packets = [
            _packet("p0", "delivered", 3.0),
            _packet("p1", "delivered", 5.0),
            _packet("p2", "dropped"),
            _packet("p3", "in-transit"),
        ]
        assert count_packets_by_status(packets) == {
            "queued": 0,
            "in-transit": 1,
            "delivered": 2,
            "dropped": 1,
        }
        assert compute_delivery_ratio(packets) == pytest.approx(2 / 3)
        assert compute_mean_delivery_latency(packets) == pytest.approx(4.0)

    def test_nothing_finished(self) -> None:
        packets = [_packet("p0", "in-transit")]
        assert compute_delivery_ratio(packets) == 0.0
        assert compute_mean_delivery_latency(packets) == 0.0
        assert compute_delivery_ratio([]) == 0.0


class TestSimulationStats:
    def test_partitioned_snapshot(self, equator_chain, far_stations, gs_at) -> None:
        stations = far_stations + [gs_at("gs_c", 0.0, -100.0)]
        snapshot = TopologyBuilder().build(equator_chain, stations, time_seconds=12.0)
        packets = [_packet("p0", "delivered", 2.0), _packet("p1", "dropped")]

        stats = compute_simulation_stats(snapshot, packets)

        assert stats.time_seconds == 12.0
        assert stats.num_nodes == 20
        assert stats.num_components == 2
        assert stats.gcc_frac == pytest.approx(19 / 20)
        assert stats.partitioned == 0
        assert stats.isolated_ground_stations == 1
        assert stats.num_inactive_links == 0
        assert stats.packets_delivered == 1
        assert stats.packets_dropped == 1
        assert stats.delivery_ratio == 0.5

        as_dict = stats.to_dict()
        assert as_dict["num_nodes"] == 20
        assert set(as_dict) >= {"gcc_frac", "delivery_ratio", "mean_delivery_latency_seconds"}
