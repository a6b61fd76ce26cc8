"""Damped camera/rotation controller.

Gestures move *targets*; every frame :meth:`MotionController.advance` moves the
*current* values a fixed fraction of the remaining distance towards them.  The
approach is an exponential decay, so the current value never crosses its
target.

Besides the smoothed state the controller accumulates a *heading*: the object
rotation actually rendered about the vertical axis.  Each step adds a small
ambient drift plus the current yaw, which therefore behaves as a spin rate.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

from .errors import ConfigurationError

__all__ = [
    "FrameTransform",
    "MOTION_FIELDS",
    "MotionController",
    "MotionSettings",
    "MotionState",
    "SMOOTHING_MODES",
]

MOTION_FIELDS = ("zoom", "pitch", "yaw")
SMOOTHING_MODES = ("frame", "time")


@dataclass(frozen=True)
class MotionState:
    zoom: float = 45.0
    pitch: float = 0.3
    yaw: float = 0.0

    def as_dict(self) -> Dict[str, float]:
        return {"zoom": self.zoom, "pitch": self.pitch, "yaw": self.yaw}


@dataclass(frozen=True)
class FrameTransform:
    """Per-frame output handed to the rendering backend."""

    camera_distance: float
    object_pitch: float
    object_yaw: float


@dataclass(frozen=True)
class MotionSettings:
    smoothing: float = 0.04
    smoothing_mode: str = "frame"
    frame_reference: float = 1.0 / 60.0
    drift: float = 0.0006
    zoom_min: float = 8.0
    zoom_max: float = 180.0
    zoom_step: float = 10.0
    pan_step: float = 0.12
    stop_decay: float = 0.4
    resting_pitch: float = 0.3
    initial_zoom: float = 45.0
    initial_pitch: float = 0.3
    initial_yaw: float = 0.0

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        if not (0.0 < self.smoothing <= 1.0):
            raise ConfigurationError(f"smoothing must lie in (0, 1], got {self.smoothing}")
        if self.smoothing_mode not in SMOOTHING_MODES:
            raise ConfigurationError(
                f"smoothing mode must be one of {SMOOTHING_MODES}, got {self.smoothing_mode!r}"
            )
        if not (self.frame_reference > 0.0):
            raise ConfigurationError(f"frame reference must be positive, got {self.frame_reference}")
        if not (self.zoom_min < self.zoom_max):
            raise ConfigurationError(
                f"zoom bounds must satisfy min < max, got [{self.zoom_min}, {self.zoom_max}]"
            )
        if self.zoom_step < 0 or self.pan_step < 0:
            raise ConfigurationError("zoom and pan steps must be >= 0")
        for name in ("drift", "stop_decay", "resting_pitch", "initial_zoom", "initial_pitch", "initial_yaw"):
            if not math.isfinite(getattr(self, name)):
                raise ConfigurationError(f"{name} must be finite")

    @classmethod
    def from_config(cls, section: Mapping[str, object]) -> "MotionSettings":
        hz = float(section.get("frameReferenceHz", 60.0))
        if hz <= 0:
            raise ConfigurationError(f"frame reference rate must be positive, got {hz}")
        return cls(
            smoothing=float(section.get("smoothing", 0.04)),
            smoothing_mode=str(section.get("smoothingMode", "frame")),
            frame_reference=1.0 / hz,
            drift=float(section.get("drift", 0.0006)),
            zoom_min=float(section.get("zoomMin", 8.0)),
            zoom_max=float(section.get("zoomMax", 180.0)),
            zoom_step=float(section.get("zoomStep", 10.0)),
            pan_step=float(section.get("panStep", 0.12)),
            stop_decay=float(section.get("stopDecay", 0.4)),
            resting_pitch=float(section.get("restingPitch", 0.3)),
            initial_zoom=float(section.get("initialZoom", 45.0)),
            initial_pitch=float(section.get("initialPitch", 0.3)),
            initial_yaw=float(section.get("initialYaw", 0.0)),
        )


def _clamp(value: float, minimum: float, maximum: float) -> float:
    return max(minimum, min(maximum, value))


class MotionController:
    """Holds current and target motion state and smooths one towards the other."""

    def __init__(self, settings: Optional[MotionSettings] = None) -> None:
        self.settings = settings or MotionSettings()
        self._current: Dict[str, float] = {}
        self._target: Dict[str, float] = {}
        self._heading = 0.0
        self.steps = 0
        self.reset()

    # ------------------------------------------------------------------ state
    def reset(self) -> None:
        s = self.settings
        zoom = _clamp(s.initial_zoom, s.zoom_min, s.zoom_max)
        self._current = {"zoom": zoom, "pitch": s.initial_pitch, "yaw": s.initial_yaw}
        self._target = dict(self._current)
        self._heading = 0.0
        self.steps = 0

    def get_current(self) -> MotionState:
        return MotionState(**self._current)

    def get_target(self) -> MotionState:
        return MotionState(**self._target)

    @property
    def heading(self) -> float:
        return self._heading

    def set_target(self, name: str, value: float) -> float:
        """Assign a target and return the stored value (zoom is clamped)."""

        if name not in self._target:
            raise KeyError(f"unknown motion field: {name!r}")
        value = float(value)
        if name == "zoom":
            value = _clamp(value, self.settings.zoom_min, self.settings.zoom_max)
        self._target[name] = value
        return value

    def is_settled(self, tolerance: float = 1e-3) -> bool:
        return all(abs(self._target[k] - self._current[k]) <= tolerance for k in MOTION_FIELDS)

    def transform(self) -> FrameTransform:
        return FrameTransform(
            camera_distance=self._current["zoom"],
            object_pitch=self._current["pitch"],
            object_yaw=self._heading,
        )

    # ------------------------------------------------------------------ gesture helpers
    def zoom_by(self, delta: float) -> float:
        return self.set_target("zoom", self._target["zoom"] + delta)

    def pan_yaw(self, delta: float) -> float:
        return self.set_target("yaw", self._target["yaw"] + delta)

    def pan_pitch(self, delta: float) -> float:
        return self.set_target("pitch", self._target["pitch"] + delta)

    def apply_stop(self) -> None:
        """Partial stop: the spin target decays, the pitch returns to rest."""

        self._target["yaw"] *= self.settings.stop_decay
        self._target["pitch"] = self.settings.resting_pitch

    # ------------------------------------------------------------------ stepping
    def _step_factors(self, dt: Optional[float]):
        s = self.settings
        if s.smoothing_mode == "frame":
            return s.smoothing, 1.0
        frames = 1.0 if dt is None else max(0.0, float(dt)) / s.frame_reference
        if frames <= 0.0:
            return 0.0, 0.0
        return 1.0 - (1.0 - s.smoothing) ** frames, frames

    def advance(self, dt: Optional[float] = None) -> MotionState:
        """Move every current value one step closer to its target.

        In ``"frame"`` mode ``dt`` is ignored and the smoothing fraction is
        applied once per call.  In ``"time"`` mode the fraction is rescaled so
        that the same wall-clock duration yields the same motion at any refresh
        rate.
        """

        factor, frames = self._step_factors(dt)
        for name in MOTION_FIELDS:
            current = self._current[name]
            gap = self._target[name] - current
            if gap == 0.0:
                continue
            if factor >= 1.0:
                self._current[name] = self._target[name]
            else:
                self._current[name] = current + gap * factor
        self._heading += (self.settings.drift + self._current["yaw"]) * frames
        self.steps += 1
        return self.get_current()

    def __repr__(self) -> str:
        return (
            f"MotionController(current={self.get_current()!r}, "
            f"target={self.get_target()!r}, heading={self._heading:.4f})"
        )

