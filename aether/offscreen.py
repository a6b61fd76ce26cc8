"""Display-less rendering backend writing frames into a numpy buffer."""

from __future__ import annotations

import logging
from typing import List, Optional

import numpy as np

from .errors import RenderBackendError
from .field_generator import ParticleField
from .motion import FrameTransform
from .projection import PointRasterizer, Projection, RenderSettings

__all__ = ["OffscreenBackend", "SteppedClock"]

log = logging.getLogger(__name__)


class SteppedClock:
    """Clock advancing by a fixed step on every read, for reproducible runs."""

    def __init__(self, step: float = 1.0 / 60.0, start: float = 0.0) -> None:
        self.step = float(step)
        self.now = float(start)

    def __call__(self) -> float:
        self.now += self.step
        return self.now


class OffscreenBackend:
    """:class:`~aether.render_loop.RenderBackend` without a window.

    ``rasterize=False`` skips the pixel work and only records transforms,
    which is what most headless runs need.
    """

    def __init__(
        self,
        field: ParticleField,
        width: int = 320,
        height: int = 240,
        *,
        settings: RenderSettings = RenderSettings(),
        projection: Optional[Projection] = None,
        rasterize: bool = True,
        keep_history: bool = False,
    ) -> None:
        self.field = field
        self._projection = (projection or Projection()).resized(width, height)
        self._settings = settings
        self._rasterize = rasterize
        self._keep_history = keep_history
        self._rasterizer: Optional[PointRasterizer] = None
        self.frame: Optional[np.ndarray] = None
        self.last_transform: Optional[FrameTransform] = None
        self.history: List[FrameTransform] = []
        self.acquisitions = 0
        self.releases = 0

    @property
    def acquired(self) -> bool:
        return self._rasterizer is not None

    @property
    def projection(self) -> Projection:
        if self._rasterizer is not None:
            return self._rasterizer.projection
        return self._projection

    def acquire(self) -> None:
        if self._rasterizer is not None:
            raise RenderBackendError("offscreen backend already acquired")
        self._rasterizer = PointRasterizer(self._projection, self._settings)
        self.acquisitions += 1

    def release(self) -> None:
        if self._rasterizer is None:
            return
        self._projection = self._rasterizer.projection
        self._rasterizer = None
        self.frame = None
        self.releases += 1

    def resize_viewport(self, width: int, height: int) -> None:
        self._projection = self._projection.resized(width, height)
        if self._rasterizer is not None:
            self._rasterizer.resize(width, height)
        log.debug("Offscreen viewport resized to %dx%d", width, height)

    def submit(self, transform: FrameTransform) -> None:
        if self._rasterizer is None:
            raise RenderBackendError("frame submitted to a released backend")
        self.last_transform = transform
        if self._keep_history:
            self.history.append(transform)
        if self._rasterize:
            self.frame = self._rasterizer.render(self.field.positions, self.field.colors, transform)
