"""
Change notification and the debounced line-drift trigger.

``CollisionWatcher`` listens for edits on an ``EventBus``, coalesces bursts
of events into one resolution run after a quiet period, and ignores the
events its own waypoint updates produce until shortly after the run.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from typing import Any, Callable, Optional

from drawio_lanes.host import (
    CONTAINER_TYPES,
    ELEMENTS_CHANGED,
    LABEL,
    WATCHED_EVENTS,
    LayoutContext,
)
from drawio_lanes.layout_types import DEFAULT_LAYOUT_CONSTANTS, LayoutConstants
from drawio_lanes.service import resolve_edge_collisions

logger = logging.getLogger("drawio-lanes")

Listener = Callable[[dict[str, Any]], None]

# Changes to these never move a connector by themselves
_IGNORED_TYPES = CONTAINER_TYPES | {LABEL}


class EventBus:
    """Named-event publish/subscribe, delivered synchronously in order."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = defaultdict(list)

    def on(self, event: str, callback: Listener) -> None:
        self._listeners[event].append(callback)

    def off(self, event: str, callback: Listener) -> None:
        listeners = self._listeners.get(event, [])
        if callback in listeners:
            listeners.remove(callback)

    def emit(self, event: str, payload: Optional[dict[str, Any]] = None) -> None:
        for callback in list(self._listeners.get(event, [])):
            callback(payload or {})


def touches_flow(payload: dict[str, Any]) -> bool:
    """Whether an ``elements.changed`` payload involves a flow or a flow node."""
    for el in payload.get("elements", []):
        el_type = getattr(el, "type", None)
        if el_type and el_type not in _IGNORED_TYPES:
            return True
    return False


class CollisionWatcher:
    """Runs line-drift resolution after edits settle.

    Args:
        context: Host context the resolver reads and mutates.
        bus: Event bus carrying the host's change notifications.
        max_passes: Pass cap handed to the resolver.
        constants: Layout constants handed to the resolver.
        debounce: Quiet period in seconds before a run.
        release_delay: Seconds after a run before events are heeded again.
        lock: Optional lock held while the resolver mutates the diagram.
        timer_factory: ``threading.Timer``-compatible constructor.
    """

    def __init__(
        self,
        context: LayoutContext,
        bus: EventBus,
        *,
        max_passes: int = 5,
        constants: LayoutConstants = DEFAULT_LAYOUT_CONSTANTS,
        debounce: float = 0.3,
        release_delay: float = 0.1,
        lock: Optional[Any] = None,
        timer_factory: Callable[..., Any] = threading.Timer,
    ) -> None:
        self.context = context
        self.bus = bus
        self.max_passes = max_passes
        self.constants = constants
        self.debounce = debounce
        self.release_delay = release_delay
        self._lock = lock
        self._timer_factory = timer_factory
        self._state_lock = threading.Lock()
        self._adjusting = False
        self._pending: Any = None
        self._release_timer: Any = None
        self._attached = False
        self.runs = 0

    @property
    def adjusting(self) -> bool:
        return self._adjusting

    @property
    def attached(self) -> bool:
        return self._attached

    def _handler(self, event: str) -> Listener:
        if event == ELEMENTS_CHANGED:
            return self._on_elements_changed
        return self._on_event

    def attach(self) -> None:
        if self._attached:
            return
        for event in WATCHED_EVENTS:
            self.bus.on(event, self._handler(event))
        self._attached = True

    def detach(self) -> None:
        if not self._attached:
            return
        for event in WATCHED_EVENTS:
            self.bus.off(event, self._handler(event))
        self._attached = False
        with self._state_lock:
            for timer in (self._pending, self._release_timer):
                if timer is not None:
                    timer.cancel()
            self._pending = None
            self._release_timer = None
            self._adjusting = False

    # ----- event handling -----

    def _on_event(self, payload: dict[str, Any]) -> None:
        self.schedule()

    def _on_elements_changed(self, payload: dict[str, Any]) -> None:
        if touches_flow(payload):
            self.schedule()

    def schedule(self) -> None:
        """(Re)start the debounce timer unless a run is in progress."""
        with self._state_lock:
            if self._adjusting:
                logger.debug("Ignoring change while line drift is adjusting")
                return
            if self._pending is not None:
                self._pending.cancel()
            timer = self._timer_factory(self.debounce, self._fire)
            timer.daemon = True
            self._pending = timer
        timer.start()

    def _fire(self) -> None:
        with self._state_lock:
            self._pending = None
        self.run_now()

    # ----- resolution -----

    def run_now(self) -> int:
        """Run one guarded resolution synchronously.

        Returns the number of waypoint updates, or 0 if a run was already
        in progress.
        """
        with self._state_lock:
            if self._adjusting:
                logger.debug("Line drift already running, skipping")
                return 0
            self._adjusting = True
        try:
            if self._lock is not None:
                with self._lock:
                    updates = resolve_edge_collisions(
                        self.context, self.max_passes, self.constants
                    )
            else:
                updates = resolve_edge_collisions(
                    self.context, self.max_passes, self.constants
                )
        finally:
            self.runs += 1
            self._schedule_release()
        return updates

    def _schedule_release(self) -> None:
        if self.release_delay <= 0:
            self._release()
            return
        timer = self._timer_factory(self.release_delay, self._release)
        timer.daemon = True
        with self._state_lock:
            self._release_timer = timer
        timer.start()

    def _release(self) -> None:
        with self._state_lock:
            self._adjusting = False
            self._release_timer = None
