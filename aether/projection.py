"""Camera projection and additive point rasterisation.

The camera sits above the galaxy plane at ``camera_height`` and at the
smoothed zoom distance along +Z, tilted down by a fixed angle.  The object is
rotated by the frame pitch (about X) then the heading (about Y), matching the
default XYZ Euler order of most scene graphs.  Points are splatted into an RGB
float buffer with additive blending and converted to 8-bit at the end.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Mapping, Tuple

import numpy as np

from .errors import ConfigurationError
from .field_generator import parse_color
from .motion import FrameTransform

__all__ = [
    "PointRasterizer",
    "Projection",
    "RenderSettings",
    "project_points",
    "rotation_matrix",
]


def _rot_x(angle: float) -> np.ndarray:
    c, s = math.cos(angle), math.sin(angle)
    return np.array([[1.0, 0.0, 0.0], [0.0, c, -s], [0.0, s, c]])


def _rot_y(angle: float) -> np.ndarray:
    c, s = math.cos(angle), math.sin(angle)
    return np.array([[c, 0.0, s], [0.0, 1.0, 0.0], [-s, 0.0, c]])


def rotation_matrix(pitch: float, yaw: float) -> np.ndarray:
    """Object rotation: pitch about X composed with yaw about Y."""

    return _rot_x(pitch) @ _rot_y(yaw)


@dataclass(frozen=True)
class Projection:
    """Perspective projection for a viewport, recomputed on resize."""

    width: int = 1
    height: int = 1
    fov_deg: float = 60.0
    near: float = 0.1
    far: float = 5000.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "width", max(1, int(self.width)))
        object.__setattr__(self, "height", max(1, int(self.height)))
        if not (0.0 < self.fov_deg < 180.0):
            raise ConfigurationError(f"field of view must lie in (0, 180), got {self.fov_deg}")
        if not (0.0 < self.near < self.far):
            raise ConfigurationError(f"clipping planes must satisfy 0 < near < far, got {self.near}, {self.far}")

    @property
    def aspect(self) -> float:
        return self.width / self.height

    @property
    def focal_length(self) -> float:
        """Distance in pixels from the eye to the image plane."""

        return (self.height / 2.0) / math.tan(math.radians(self.fov_deg) / 2.0)

    def resized(self, width: int, height: int) -> "Projection":
        return replace(self, width=width, height=height)


@dataclass(frozen=True)
class RenderSettings:
    camera_height: float = 30.0
    camera_tilt_deg: float = 26.565051
    opacity: float = 0.75
    background: Tuple[float, float, float] = (1 / 255.0, 2 / 255.0, 6 / 255.0)

    @classmethod
    def from_config(cls, section: Mapping[str, object]) -> "RenderSettings":
        opacity = float(section.get("opacity", 0.75))
        if not (0.0 <= opacity <= 1.0):
            raise ConfigurationError(f"opacity must lie in [0, 1], got {opacity}")
        return cls(
            camera_height=float(section.get("cameraHeight", 30.0)),
            camera_tilt_deg=float(section.get("cameraTiltDeg", 26.565051)),
            opacity=opacity,
            background=parse_color(section.get("background", "#010206")),  # type: ignore[arg-type]
        )


def project_points(
    positions: np.ndarray,
    transform: FrameTransform,
    projection: Projection,
    settings: RenderSettings = RenderSettings(),
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Return ``(screen_xy, depth, visible)`` for every point.

    ``screen_xy`` is in pixels with the origin at the top-left corner; points
    outside the clipping range are flagged ``False`` in ``visible``.
    """

    world = positions @ rotation_matrix(transform.object_pitch, transform.object_yaw).T
    eye = np.array([0.0, settings.camera_height, transform.camera_distance])
    view = (world - eye) @ _rot_x(math.radians(settings.camera_tilt_deg)).T
    depth = -view[:, 2]
    visible = (depth > projection.near) & (depth < projection.far)
    safe = np.where(visible, depth, 1.0)
    f = projection.focal_length
    sx = projection.width / 2.0 + f * view[:, 0] / safe
    sy = projection.height / 2.0 - f * view[:, 1] / safe
    return np.stack([sx, sy], axis=1), depth, visible


class PointRasterizer:
    """Splat coloured points into an 8-bit RGB frame."""

    def __init__(self, projection: Projection, settings: RenderSettings = RenderSettings()) -> None:
        self.projection = projection
        self.settings = settings

    def resize(self, width: int, height: int) -> None:
        self.projection = self.projection.resized(width, height)

    def render(self, positions: np.ndarray, colors: np.ndarray, transform: FrameTransform) -> np.ndarray:
        w, h = self.projection.width, self.projection.height
        screen, _depth, visible = project_points(positions, transform, self.projection, self.settings)
        xi = np.floor(np.clip(screen[:, 0], -1.0, w)).astype(np.int64)
        yi = np.floor(np.clip(screen[:, 1], -1.0, h)).astype(np.int64)
        inside = visible & (xi >= 0) & (xi < w) & (yi >= 0) & (yi < h)
        idx = yi[inside] * w + xi[inside]
        picked = colors[inside]

        accum = np.empty((h * w, 3), dtype=np.float64)
        for channel in range(3):
            accum[:, channel] = np.bincount(idx, weights=picked[:, channel], minlength=h * w)
        frame = np.asarray(self.settings.background, dtype=np.float64) + accum * self.settings.opacity
        np.clip(frame, 0.0, 1.0, out=frame)
        return (frame * 255.0 + 0.5).astype(np.uint8).reshape(h, w, 3)
