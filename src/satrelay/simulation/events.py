"""
Observer interface for simulation notifications.

Each simulation instance owns one EventBus. Dispatch is synchronous and in
emission order, so subscribers see events in tick order. A subscriber that
raises is logged and skipped; the tick carries on.

Payloads:
    packet_created(packet)
    packet_routed(packet, from_id, to_id)
    packet_delivered(packet)
    packet_dropped(packet)
    connection_added(node_a, node_b)
    connection_removed(node_a, node_b)
    status_changed(node_id, status)
    bandwidth_changed(node_id, bandwidth_mbps)
    internet_changed(station_id, internet)
    traffic_added(station_id, direction, amount_mbps)
"""

from __future__ import annotations

import logging
from collections import defaultdict
from enum import Enum
from typing import Any, Callable, DefaultDict, List

logger = logging.getLogger(__name__)

Subscriber = Callable[..., None]


class SimulationEvent(str, Enum):
    PACKET_CREATED = "packet_created"
    PACKET_ROUTED = "packet_routed"
    PACKET_DELIVERED = "packet_delivered"
    PACKET_DROPPED = "packet_dropped"
    CONNECTION_ADDED = "connection_added"
    CONNECTION_REMOVED = "connection_removed"
    STATUS_CHANGED = "status_changed"
    BANDWIDTH_CHANGED = "bandwidth_changed"
    INTERNET_CHANGED = "internet_changed"
    TRAFFIC_ADDED = "traffic_added"


class EventBus:
    """Synchronous publish/subscribe keyed by SimulationEvent."""

    def __init__(self) -> None:
        self._subscribers: DefaultDict[SimulationEvent, List[Subscriber]] = defaultdict(list)

    def subscribe(self, event: SimulationEvent, callback: Subscriber) -> Callable[[], None]:
        """
        Register ``callback`` for ``event``.

        Returns:
            A function that removes this subscription. Calling it twice is harmless.
        """
        event = SimulationEvent(event)
        self._subscribers[event].append(callback)

        def unsubscribe() -> None:
            callbacks = self._subscribers[event]
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    def subscriber_count(self, event: SimulationEvent) -> int:
        return len(self._subscribers.get(SimulationEvent(event), []))

    def emit(self, event: SimulationEvent, *args: Any) -> None:
        for callback in list(self._subscribers.get(event, [])):
            try:
                callback(*args)
            except Exception:
                logger.exception("Subscriber %r failed handling %s", callback, event.value)
