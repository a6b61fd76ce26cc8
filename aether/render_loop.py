"""Frame driver independent of the graphics API.

The loop does no scheduling of its own: whoever owns the display cadence (a
``QTimer`` in the desktop application, a plain ``for`` loop when rendering
offscreen) calls :meth:`RenderLoop.tick` once per refresh.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Protocol

from .errors import RenderBackendError
from .motion import FrameTransform
from .system import GalaxySystem

__all__ = ["MAX_FRAME_DT", "RenderBackend", "RenderLoop"]

log = logging.getLogger(__name__)

# Long stalls (debugger, window drag) must not turn into one giant step.
MAX_FRAME_DT = 0.1


class RenderBackend(Protocol):
    def acquire(self) -> None:
        """Allocate graphics resources; raise :class:`RenderBackendError` on failure."""

    def release(self) -> None:
        """Free everything :meth:`acquire` allocated."""

    def resize_viewport(self, width: int, height: int) -> None:
        """Recompute the projection for a new viewport size."""

    def submit(self, transform: FrameTransform) -> None:
        """Draw one frame with the given transform."""


class RenderLoop:
    """Advances a :class:`GalaxySystem` and submits its transform every frame."""

    def __init__(
        self,
        system: GalaxySystem,
        backend: RenderBackend,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.system = system
        self.backend = backend
        self.clock = clock or system.clock or time.monotonic
        self._running = False
        self._last_time: Optional[float] = None
        self.frames = 0

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        if self._running:
            return
        try:
            self.backend.acquire()
        except RenderBackendError:
            raise
        except Exception as exc:
            raise RenderBackendError(f"render backend failed to start: {exc}") from exc
        self._running = True
        self._last_time = self.clock()
        log.debug("Render loop started")

    def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        self._last_time = None
        self.backend.release()
        log.debug("Render loop stopped after %d frames", self.frames)

    def tick(self) -> Optional[FrameTransform]:
        """Run one frame; returns ``None`` once the loop has been stopped."""

        if not self._running:
            return None
        now = self.clock()
        last = self._last_time if self._last_time is not None else now
        dt = min(MAX_FRAME_DT, max(0.0, now - last))
        self._last_time = now
        transform = self.system.step(now, dt)
        self.backend.submit(transform)
        self.frames += 1
        return transform

    def resize(self, width: int, height: int) -> None:
        self.backend.resize_viewport(int(width), int(height))

    def __enter__(self) -> "RenderLoop":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
