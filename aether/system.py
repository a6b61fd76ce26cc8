"""Owned state of one galaxy instance."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Mapping, Optional

import numpy as np

from .config import default_config, merge_config
from .field_generator import GalaxyParams, ParticleField, generate
from .gestures import GestureMailbox, GestureSession, SessionState
from .motion import FrameTransform, MotionController, MotionSettings

__all__ = ["GalaxyStatus", "GalaxySystem"]

log = logging.getLogger(__name__)

Clock = Callable[[], float]


@dataclass(frozen=True)
class GalaxyStatus:
    """Snapshot used by the HUD."""

    zoom: float
    rotation_x: float
    rotation_y: float
    is_moving: bool
    current_gesture: str


class GalaxySystem:
    """Particle field, motion controller, gesture session and mailbox.

    Gestures reach the system either through :meth:`apply_gesture` (same
    thread as the frame tick) or :meth:`post_gesture` (any single producer
    thread); posted gestures are applied at the start of the next
    :meth:`step`.
    """

    def __init__(
        self,
        field: ParticleField,
        controller: MotionController,
        session: GestureSession,
        mailbox: Optional[GestureMailbox] = None,
        clock: Clock = time.monotonic,
    ) -> None:
        if session.controller is not controller:
            raise ValueError("the gesture session must drive the system controller")
        self.field = field
        self.controller = controller
        self.session = session
        self.mailbox = mailbox if mailbox is not None else GestureMailbox()
        self.clock = clock

    @classmethod
    def from_config(
        cls,
        config: Optional[Mapping[str, Mapping[str, object]]] = None,
        *,
        rng: Optional[np.random.Generator] = None,
        clock: Clock = time.monotonic,
    ) -> "GalaxySystem":
        cfg = merge_config(default_config(), config or {})
        field_cfg = cfg["field"]
        params = GalaxyParams.from_config(field_cfg)
        controller = MotionController(MotionSettings.from_config(cfg["motion"]))
        session = GestureSession(controller, dwell_seconds=float(cfg["session"]["dwellSeconds"]))
        mailbox = GestureMailbox(int(cfg["session"]["mailboxCapacity"]))
        field = generate(params, int(field_cfg["count"]), rng=rng)
        log.info("Galaxy ready: %d particles, %d arms", len(field), params.branches)
        return cls(field, controller, session, mailbox, clock=clock)

    # ------------------------------------------------------------------ gestures
    def apply_gesture(self, value: object, now: Optional[float] = None) -> bool:
        return self.session.apply_gesture(value, self.clock() if now is None else now)

    def post_gesture(self, value: object) -> None:
        self.mailbox.post(value)

    # ------------------------------------------------------------------ frame
    def step(self, now: Optional[float] = None, dt: Optional[float] = None) -> FrameTransform:
        """Run one frame: pending gestures, dwell expiry, smoothing."""

        if now is None:
            now = self.clock()
        for value in self.mailbox.drain():
            self.session.apply_gesture(value, now)
        self.session.tick(now)
        self.controller.advance(dt)
        return self.controller.transform()

    def transform(self) -> FrameTransform:
        return self.controller.transform()

    def status(self) -> GalaxyStatus:
        current = self.controller.get_current()
        gesture = self.session.active_gesture
        return GalaxyStatus(
            zoom=current.zoom,
            rotation_x=current.pitch,
            rotation_y=self.controller.heading,
            is_moving=self.session.state is SessionState.ACTIVE or not self.controller.is_settled(),
            current_gesture=gesture.value if gesture is not None else "stop",
        )

    def reset(self) -> None:
        """Return to the start-up motion state; the particle field is kept."""

        self.mailbox.clear()
        self.session.reset()
        self.controller.reset()
        log.info("Galaxy motion reset")
