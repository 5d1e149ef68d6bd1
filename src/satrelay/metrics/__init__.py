"""Metrics for satellite relay analysis.

Pure functions over topology graphs and packet tables. No simulation
dependencies.
"""

from satrelay.metrics.labels import (
    SimulationStats,
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

__all__ = [
    # connectivity
    "compute_num_components",
    "compute_gcc_size",
    "compute_gcc_frac",
    "compute_partitioned",
    "aggregate_partition_streaks",
    "compute_isolated_ground_stations",
    # delivery
    "count_packets_by_status",
    "compute_delivery_ratio",
    "compute_mean_delivery_latency",
    "SimulationStats",
    "compute_simulation_stats",
]
