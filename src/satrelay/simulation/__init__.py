"""Simulation facade, configuration and events."""

# Lazy imports: routing depends on simulation.events, and the engine depends
# on routing, so the package itself must not import the engine eagerly.
__all__ = [
    "ConstellationSimulation",
    "FixedStepClock",
    "SimulationConfig",
    "ConstellationConfig",
    "EventBus",
    "SimulationEvent",
]


def __getattr__(name: str):
    """Lazy import for the engine and its contracts."""
    if name in ("ConstellationSimulation", "FixedStepClock"):
        from satrelay.simulation import engine
        return getattr(engine, name)
    if name in ("SimulationConfig", "ConstellationConfig"):
        from satrelay.simulation import config
        return getattr(config, name)
    if name in ("EventBus", "SimulationEvent"):
        from satrelay.simulation import events
        return getattr(events, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
