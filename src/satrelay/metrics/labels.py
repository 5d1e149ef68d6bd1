"""Pure connectivity and delivery metrics.

Graph metrics take a networkx graph, usually ``TopologySnapshot.graph()``
(active links only). Delivery metrics take an iterable of packets. Nothing
here mutates its input or depends on the simulation facade.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict, Iterable, List

import networkx as nx

from satrelay.network.topology import TopologySnapshot
from satrelay.routing.packets import DataPacket

DEFAULT_PARTITION_THRESHOLD = 0.8


# ---------------------------------------------------------------------------
# Connectivity
# ---------------------------------------------------------------------------

def compute_num_components(G: nx.Graph) -> int:
    """Number of connected components; 0 for an empty graph."""
    if G.number_of_nodes() == 0:
        return 0
    return nx.number_connected_components(G)


def compute_gcc_size(G: nx.Graph) -> int:
    """Node count of the largest connected component; 0 for an empty graph."""
    if G.number_of_nodes() == 0:
        return 0
    return len(max(nx.connected_components(G), key=len))


def compute_gcc_frac(G: nx.Graph) -> float:
    """Fraction of nodes inside the largest component: |GCC| / |V|.

    Returns 0.0 for an empty graph.
    """
    n = G.number_of_nodes()
    if n == 0:
        return 0.0
    return compute_gcc_size(G) / n


def compute_partitioned(gcc_frac: float, threshold: float = DEFAULT_PARTITION_THRESHOLD) -> int:
    """1 when the largest component holds less than ``threshold`` of the nodes."""
    return 1 if gcc_frac < threshold else 0


def aggregate_partition_streaks(partitioned: List[int]) -> int:
    """Longest run of consecutive partitioned ticks (1s) in ``partitioned``."""
    max_streak = 0
    current_streak = 0
    for p in partitioned:
        current_streak = current_streak + 1 if p == 1 else 0
        max_streak = max(max_streak, current_streak)
    return max_streak


def compute_isolated_ground_stations(snapshot: TopologySnapshot) -> List[str]:
    """Ground stations with no active satellite link, in node order."""
    linked = set()
    for edge in snapshot.active_edges():
        if edge.kind == "satellite-to-ground":
            linked.update((edge.source, edge.target))
    return [
        node.id
        for node in snapshot.nodes.values()
        if node.kind == "ground-station" and node.id not in linked
    ]


# ---------------------------------------------------------------------------
# Delivery
# ---------------------------------------------------------------------------

def count_packets_by_status(packets: Iterable[DataPacket]) -> Dict[str, int]:
    counts = {"queued": 0, "in-transit": 0, "delivered": 0, "dropped": 0}
    for packet in packets:
        counts[packet.status] += 1
    return counts


def compute_delivery_ratio(packets: Iterable[DataPacket]) -> float:
    """Delivered / (delivered + dropped).

    Live packets are ignored. Returns 0.0 when nothing has finished yet.
    """
    counts = count_packets_by_status(packets)
    finished = counts["delivered"] + counts["dropped"]
    if finished == 0:
        return 0.0
    return counts["delivered"] / finished


def compute_mean_delivery_latency(packets: Iterable[DataPacket]) -> float:
    """Mean latency in seconds over delivered packets; 0.0 if none."""
    latencies = [p.latency_seconds for p in packets if p.status == "delivered"]
    if not latencies:
        return 0.0
    return sum(latencies) / len(latencies)


@dataclass
class SimulationStats:
    """Point-in-time summary of one simulation.

    Attributes:
        time_seconds: Simulated time of the snapshot.
        num_nodes: Satellites plus ground stations.
        num_active_links: Links usable for routing.
        num_inactive_links: Links disabled by a no-transmission region.
        num_components: Connected components over active links.
        gcc_frac: Share of nodes in the largest component.
        partitioned: 1 if gcc_frac is below the partition threshold.
        isolated_ground_stations: Stations with no satellite in reach.
        packets_queued: Packets not yet routed.
        packets_in_transit: Packets moving through the network.
        packets_delivered: Delivered packets not yet swept.
        packets_dropped: Dropped packets not yet swept.
        delivery_ratio: delivered / (delivered + dropped).
        mean_delivery_latency_seconds: Average latency of delivered packets.
    """

    time_seconds: float
    num_nodes: int
    num_active_links: int
    num_inactive_links: int
    num_components: int
    gcc_frac: float
    partitioned: int
    isolated_ground_stations: int
    packets_queued: int
    packets_in_transit: int
    packets_delivered: int
    packets_dropped: int
    delivery_ratio: float
    mean_delivery_latency_seconds: float

    def to_dict(self) -> dict:
        return asdict(self)


def compute_simulation_stats(
    snapshot: TopologySnapshot,
    packets: Iterable[DataPacket],
    partition_threshold: float = DEFAULT_PARTITION_THRESHOLD,
) -> SimulationStats:
    packets = list(packets)
    G = snapshot.graph()
    gcc_frac = compute_gcc_frac(G)
    counts = count_packets_by_status(packets)
    num_active = G.number_of_edges()

    return SimulationStats(
        time_seconds=snapshot.time_seconds,
        num_nodes=G.number_of_nodes(),
        num_active_links=num_active,
        num_inactive_links=len(snapshot.edges) - len(snapshot.active_edges()),
        num_components=compute_num_components(G),
        gcc_frac=gcc_frac,
        partitioned=compute_partitioned(gcc_frac, partition_threshold),
        isolated_ground_stations=len(compute_isolated_ground_stations(snapshot)),
        packets_queued=counts["queued"],
        packets_in_transit=counts["in-transit"],
        packets_delivered=counts["delivered"],
        packets_dropped=counts["dropped"],
        delivery_ratio=compute_delivery_ratio(packets),
        mean_delivery_latency_seconds=compute_mean_delivery_latency(packets),
    )
