"""Unit tests for satrelay.network.ground_stations."""

from __future__ import annotations

import random

import pytest

from satrelay.network.ground_stations import GroundStationRegistry


@pytest.fixture
def registry(gs_at) -> GroundStationRegistry:
    return GroundStationRegistry([
        gs_at("gs_1", 37.77, -122.42),
        gs_at("gs_2", 40.71, -74.01, internet=False),
    ])


class TestRegistry:
    """Lookups and setters."""

    def test_lookup(self, registry) -> None:
        assert len(registry) == 2
        assert "gs_1" in registry
        assert registry.get("missing") is None
        assert [gs.id for gs in registry] == ["gs_1", "gs_2"]

    def test_duplicate_ids_rejected(self, gs_at) -> None:
        with pytest.raises(ValueError):
            GroundStationRegistry([gs_at("gs_1", 0.0, 0.0), gs_at("gs_1", 1.0, 1.0)])

    def test_setters_return_false_for_unknown_id(self, registry) -> None:
        assert registry.set_status("nope", "offline") is False
        assert registry.set_bandwidth("nope", 10.0) is False
        assert registry.set_internet("nope", True) is False
        assert registry.add_traffic("nope", "incoming", 1.0) is False

    def test_setters_mutate(self, registry) -> None:
        assert registry.set_status("gs_1", "degraded") is True
        assert registry.set_bandwidth("gs_1", 250.0) is True
        assert registry.set_internet("gs_2", True) is True
        assert registry.get("gs_1").status == "degraded"
        assert registry.get("gs_1").bandwidth_mbps == 250.0
        assert registry.get("gs_2").internet is True

    def test_invalid_values_raise(self, registry) -> None:
        with pytest.raises(ValueError):
            registry.set_status("gs_1", "exploded")
        with pytest.raises(ValueError):
            registry.set_bandwidth("gs_1", -1.0)
        with pytest.raises(ValueError):
            registry.add_traffic("gs_1", "sideways", 1.0)

    def test_distance(self, registry) -> None:
        assert registry.distance_km("gs_1", "gs_2") == pytest.approx(4130, rel=0.01)
        assert registry.distance_km("gs_1", "nope") == float("inf")


class TestTrafficDecay:
    """Traffic accumulators decay at 10 % per second."""

    def test_decay_without_spikes(self, registry) -> None:
        registry.add_traffic("gs_1", "incoming", 100.0)
        registry.add_traffic("gs_1", "outgoing", 50.0)
        for gs in registry:
            gs.status = "offline"  # offline stations get no spikes

        spikes = registry.decay_traffic(1.0, random.Random(0))

        assert spikes == []
        gs = registry.get("gs_1")
        assert gs.traffic_incoming_mbps == pytest.approx(90.0)
        assert gs.traffic_outgoing_mbps == pytest.approx(45.0)

    def test_long_step_clamps_to_zero(self, registry) -> None:
        registry.add_traffic("gs_1", "incoming", 100.0)
        registry.set_status("gs_1", "offline")
        registry.set_status("gs_2", "offline")
        registry.decay_traffic(20.0, random.Random(0))
        assert registry.get("gs_1").traffic_incoming_mbps == 0.0

    def test_spikes_are_reported_and_bounded(self, registry) -> None:
        rng = random.Random(7)
        spikes = []
        for _ in range(200):
            spikes.extend(registry.decay_traffic(1.0, rng))
        assert spikes  # 5 % per second per station over 400 station-seconds
        for station_id, direction, amount in spikes:
            assert station_id in registry
            assert direction in ("incoming", "outgoing")
            assert 0.0 <= amount <= 10.0
