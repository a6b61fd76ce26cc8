"""Gesture vocabulary, gesture session state machine and hand-off mailbox.

Gestures come from an untrusted remote collaborator.  Anything that does not
parse to a known :class:`Gesture` is dropped without touching any state.

The session is either ``IDLE`` or ``ACTIVE``.  A non-stop gesture applies its
effect and (re)arms a dwell deadline; when the frame tick observes that the
deadline has passed the stop effect is applied once and the session returns to
``IDLE``.  An explicit ``stop`` gesture does the same immediately.
"""

from __future__ import annotations

import logging
from collections import deque
from enum import Enum
from typing import Callable, Deque, Dict, List, Optional

from .errors import ConfigurationError
from .motion import MotionController

__all__ = [
    "DEFAULT_DWELL_SECONDS",
    "GESTURE_EFFECTS",
    "Gesture",
    "GestureMailbox",
    "GestureSession",
    "SessionState",
    "parse_gesture",
]

log = logging.getLogger(__name__)

DEFAULT_DWELL_SECONDS = 1.8


class Gesture(str, Enum):
    ZOOM_IN = "zoom_in"
    ZOOM_OUT = "zoom_out"
    MOVE_LEFT = "move_left"
    MOVE_RIGHT = "move_right"
    MOVE_UP = "move_up"
    MOVE_DOWN = "move_down"
    STOP = "stop"
    ROTATE = "rotate"

    def __str__(self) -> str:
        return self.value


def parse_gesture(value: object) -> Optional[Gesture]:
    """Return the matching :class:`Gesture` or ``None`` for anything unknown.

    Matching ignores surrounding whitespace and letter case, so ``"ZOOM_IN"``
    and ``" zoom_in "`` are both accepted; any other spelling is unknown.
    """

    if isinstance(value, Gesture):
        return value
    if not isinstance(value, str):
        return None
    try:
        return Gesture(value.strip().lower())
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Effects on the controller targets

GestureEffect = Callable[[MotionController], None]


def _zoom_in(c: MotionController) -> None:
    c.zoom_by(-c.settings.zoom_step)


def _zoom_out(c: MotionController) -> None:
    c.zoom_by(c.settings.zoom_step)


def _move_left(c: MotionController) -> None:
    c.pan_yaw(-c.settings.pan_step)


def _move_right(c: MotionController) -> None:
    c.pan_yaw(c.settings.pan_step)


def _move_up(c: MotionController) -> None:
    c.pan_pitch(-c.settings.pan_step)


def _move_down(c: MotionController) -> None:
    c.pan_pitch(c.settings.pan_step)


def _stop(c: MotionController) -> None:
    c.apply_stop()


def _no_effect(c: MotionController) -> None:
    del c


GESTURE_EFFECTS: Dict[Gesture, GestureEffect] = {
    Gesture.ZOOM_IN: _zoom_in,
    Gesture.ZOOM_OUT: _zoom_out,
    Gesture.MOVE_LEFT: _move_left,
    Gesture.MOVE_RIGHT: _move_right,
    Gesture.MOVE_UP: _move_up,
    Gesture.MOVE_DOWN: _move_down,
    Gesture.STOP: _stop,
    # Reserved by the remote vocabulary; it arms the dwell timer but moves nothing.
    Gesture.ROTATE: _no_effect,
}


# ---------------------------------------------------------------------------
# Session


class SessionState(Enum):
    IDLE = "idle"
    ACTIVE = "active"


class GestureSession:
    """Applies gestures to a :class:`MotionController` and reverts them after a dwell."""

    def __init__(self, controller: MotionController, dwell_seconds: float = DEFAULT_DWELL_SECONDS) -> None:
        if not (dwell_seconds > 0):
            raise ConfigurationError(f"dwell duration must be positive, got {dwell_seconds}")
        self.controller = controller
        self.dwell_seconds = float(dwell_seconds)
        self._state = SessionState.IDLE
        self._gesture: Optional[Gesture] = None
        self._deadline: Optional[float] = None
        self.accepted = 0
        self.dropped = 0

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def active_gesture(self) -> Optional[Gesture]:
        return self._gesture

    @property
    def deadline(self) -> Optional[float]:
        return self._deadline

    def apply_gesture(self, value: object, now: float) -> bool:
        """Apply one inbound gesture; return ``False`` when it was dropped."""

        gesture = parse_gesture(value)
        if gesture is None:
            self.dropped += 1
            log.debug("Dropping unknown gesture %r", value)
            return False
        self.accepted += 1
        GESTURE_EFFECTS[gesture](self.controller)
        if gesture is Gesture.STOP:
            self._enter_idle()
        else:
            self._state = SessionState.ACTIVE
            self._gesture = gesture
            self._deadline = now + self.dwell_seconds
        log.debug("Gesture %s applied, target=%r", gesture, self.controller.get_target())
        return True

    def tick(self, now: float) -> bool:
        """Expire the active gesture once its deadline is reached.

        Returns ``True`` when the stop effect was applied by this call.
        """

        if self._state is not SessionState.ACTIVE or self._deadline is None:
            return False
        if now < self._deadline:
            return False
        log.debug("Gesture %s expired", self._gesture)
        GESTURE_EFFECTS[Gesture.STOP](self.controller)
        self._enter_idle()
        return True

    def reset(self) -> None:
        self._enter_idle()
        self.accepted = 0
        self.dropped = 0

    def _enter_idle(self) -> None:
        self._state = SessionState.IDLE
        self._gesture = None
        self._deadline = None


# ---------------------------------------------------------------------------
# Cross-thread hand-off


class GestureMailbox:
    """Bounded FIFO between one producer thread and the frame tick.

    ``deque.append`` and ``deque.popleft`` are atomic, which is all a single
    producer / single consumer pair needs.  When the consumer falls behind the
    oldest pending gestures are discarded.
    """

    def __init__(self, capacity: int = 64) -> None:
        if capacity < 1:
            raise ConfigurationError(f"mailbox capacity must be >= 1, got {capacity}")
        self.capacity = int(capacity)
        self._items: Deque[object] = deque(maxlen=self.capacity)
        self.overflowed = 0

    def __len__(self) -> int:
        return len(self._items)

    def post(self, value: object) -> None:
        if len(self._items) >= self.capacity:
            self.overflowed += 1
            log.warning("Gesture mailbox full, discarding the oldest entry")
        self._items.append(value)

    def drain(self) -> List[object]:
        items: List[object] = []
        while True:
            try:
                items.append(self._items.popleft())
            except IndexError:
                return items

    def clear(self) -> None:
        self._items.clear()
