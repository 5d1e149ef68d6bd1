"""Run the relay constellation for a while and print what happened.

Example:
    python scripts/simulate.py --duration 120 --region iran --packets 5
"""

import argparse
import logging
import sys
from pathlib import Path

# --- Make sure Python can see the `src` folder ---
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"

if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from satrelay.metrics.labels import aggregate_partition_streaks  # noqa: E402
from satrelay.simulation.config import ConstellationConfig, SimulationConfig  # noqa: E402
from satrelay.simulation.engine import ConstellationSimulation  # noqa: E402
from satrelay.simulation.events import SimulationEvent  # noqa: E402


def parse_args() -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Simulate packet relay over a LEO constellation",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--planes", type=int, default=9, help="Number of orbital planes")
    parser.add_argument("--sats-per-plane", type=int, default=20, help="Satellites per plane")
    parser.add_argument("--duration", type=float, default=60.0, help="Simulated seconds to run")
    parser.add_argument("--step", type=float, default=1.0, help="Tick length in seconds")
    parser.add_argument(
        "--region",
        action="append",
        default=[],
        help="Predefined denied region to enable (repeatable)",
    )
    parser.add_argument(
        "--packets",
        type=int,
        default=3,
        help="Explicit gs_1 -> gs_5 packets to inject at t=0",
    )
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    cfg = SimulationConfig(
        constellation=ConstellationConfig(
            num_planes=args.planes,
            sats_per_plane=args.sats_per_plane,
        ),
        denied_regions=tuple(args.region),
        fixed_step_seconds=args.step,
        seed=args.seed,
    )
    sim = ConstellationSimulation(cfg)

    delivered = []
    dropped = []
    sim.events.subscribe(SimulationEvent.PACKET_DELIVERED, delivered.append)
    sim.events.subscribe(SimulationEvent.PACKET_DROPPED, dropped.append)

    print("=== Relay Simulation Started ===")
    print(f"Config hash: {cfg.config_hash()}")
    print(f"Satellites: {cfg.constellation.total_satellites}")
    print(f"Denied regions: {', '.join(args.region) or 'none'}")

    path = sim.find_shortest_path("gs_1", "gs_5")
    if path is None:
        print("No safe path gs_1 -> gs_5 at t=0")
    else:
        print(
            f"Shortest path gs_1 -> gs_5: {path.hop_count} hops, "
            f"{path.total_delay_ms:.1f} ms, {path.total_distance_km:.0f} km"
        )

    for _ in range(args.packets):
        sim.create_packet("groundStation", "gs_1", "groundStation", "gs_5", 500, 1)

    partitioned = []
    while sim.time_seconds < args.duration:
        sim.advance(args.step)
        partitioned.append(sim.stats().partitioned)

    stats = sim.stats()
    print("\n=== Simulation Complete ===")
    print(f"Simulated time: {stats.time_seconds:.0f} s")
    print(f"Active links: {stats.num_active_links} ({stats.num_inactive_links} inactive)")
    print(f"Components: {stats.num_components}, GCC fraction: {stats.gcc_frac:.3f}")
    print(f"Longest partition streak: {aggregate_partition_streaks(partitioned)} ticks")
    print(f"Isolated ground stations: {stats.isolated_ground_stations}")
    print(f"Packets delivered: {len(delivered)}, dropped: {len(dropped)}")
    print(f"Delivery ratio: {stats.delivery_ratio:.3f}")
    print(f"Mean delivery latency: {stats.mean_delivery_latency_seconds:.2f} s")

    for packet in delivered[:5]:
        print(f"  {packet.id}: {' -> '.join(packet.path)}")


if __name__ == "__main__":
    main()
