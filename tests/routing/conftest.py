"""Fixtures wiring a PacketRouter to a static hand-placed network."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List

import pytest

from satrelay.network.ground_stations import GroundStationRegistry
from satrelay.network.orbits import Satellite
from satrelay.network.topology import TopologyBuilder, TopologySnapshot
from satrelay.routing.router import PacketRouter
from satrelay.simulation.events import EventBus, SimulationEvent


@dataclass
class RelayNetwork:
    satellites: Dict[str, Satellite]
    stations: GroundStationRegistry
    builder: TopologyBuilder
    snapshot: TopologySnapshot
    router: PacketRouter
    received: Dict[SimulationEvent, List[tuple]]

    def run(self, ticks: int, delta: float = 1.0) -> None:
        for _ in range(ticks):
            self.router.process(delta, self.snapshot)


@pytest.fixture
def network(equator_chain, far_stations, gs_at) -> RelayNetwork:
    """Equator chain lon 0..80, gs_a at lon 0, gs_b at lon 81, isolated gs_c at lon -100."""
    satellites = {sat.id: sat for sat in equator_chain}
    stations = GroundStationRegistry(far_stations + [gs_at("gs_c", 0.0, -100.0)])
    builder = TopologyBuilder()
    snapshot = builder.build(equator_chain, stations.all())

    events = EventBus()
    received: Dict[SimulationEvent, List[tuple]] = defaultdict(list)
    for event in SimulationEvent:
        events.subscribe(event, lambda *args, _event=event: received[_event].append(args))

    router = PacketRouter(satellites, stations, events)
    return RelayNetwork(satellites, stations, builder, snapshot, router, received)
