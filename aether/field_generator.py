"""Procedural spiral-galaxy particle field.

The generator spreads ``count`` particles over ``branches`` spiral arms.  Arm
membership is decided by particle index so every arm receives the same share
of particles; the distance from the centre, the jitter and its sign are drawn
from the random source.  Positions and colours are returned as read-only
``float32`` buffers ready to be handed to a renderer.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from .errors import ConfigurationError

__all__ = [
    "GalaxyParams",
    "ParticleField",
    "VERTICAL_FLATTENING",
    "branch_index",
    "generate",
    "parse_color",
]

log = logging.getLogger(__name__)

RGB = Tuple[float, float, float]
ColorLike = Union[str, Sequence[float]]

# Jitter on the vertical axis is squashed so the disc stays thin.
VERTICAL_FLATTENING = 0.35


def _hex_to_rgb(value: str) -> RGB:
    text = value.strip().lstrip("#")
    if len(text) == 3:
        text = "".join(ch * 2 for ch in text)
    if len(text) != 6:
        raise ConfigurationError(f"invalid colour: {value!r}")
    try:
        number = int(text, 16)
    except ValueError as exc:
        raise ConfigurationError(f"invalid colour: {value!r}") from exc
    return (
        ((number >> 16) & 255) / 255.0,
        ((number >> 8) & 255) / 255.0,
        (number & 255) / 255.0,
    )


def parse_color(value: ColorLike) -> RGB:
    """Return an RGB triple in ``[0, 1]`` from ``#rrggbb``/``#rgb`` or a sequence."""

    if isinstance(value, str):
        return _hex_to_rgb(value)
    try:
        components = tuple(float(c) for c in value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"invalid colour: {value!r}") from exc
    if len(components) != 3:
        raise ConfigurationError(f"colour needs 3 components, got {len(components)}")
    for component in components:
        if not (0.0 <= component <= 1.0):
            raise ConfigurationError(f"colour components must lie in [0, 1]: {value!r}")
    return components  # type: ignore[return-value]


@dataclass(frozen=True)
class GalaxyParams:
    """Shape and colour parameters of the galaxy.

    Parameters
    ----------
    radius:
        Upper bound (exclusive) of the distance drawn for each particle.
    branches:
        Number of spiral arms, at least one.
    spin:
        Twist in radians added per unit of distance from the centre.
    randomness:
        Jitter amplitude relative to the particle distance.
    randomness_power:
        Exponent applied to the uniform jitter draw; larger values keep the
        particles closer to the arm centre line.
    inner_color / outer_color:
        Colours at the centre and at the rim, as hex strings or RGB triples.
    """

    radius: float = 35.0
    branches: int = 5
    spin: float = 1.8
    randomness: float = 0.4
    randomness_power: float = 3.0
    inner_color: RGB = field(default=(1.0, 0xBB / 255.0, 0x33 / 255.0))
    outer_color: RGB = field(default=(0x33 / 255.0, 0x99 / 255.0, 1.0))

    def __post_init__(self) -> None:
        object.__setattr__(self, "inner_color", parse_color(self.inner_color))
        object.__setattr__(self, "outer_color", parse_color(self.outer_color))
        self.validate()

    def validate(self) -> None:
        if isinstance(self.branches, bool) or int(self.branches) != self.branches:
            raise ConfigurationError(f"branches must be an integer, got {self.branches!r}")
        if self.branches < 1:
            raise ConfigurationError(f"branches must be >= 1, got {self.branches}")
        if not (math.isfinite(self.radius) and self.radius > 0):
            raise ConfigurationError(f"radius must be positive, got {self.radius}")
        if not math.isfinite(self.spin):
            raise ConfigurationError(f"spin must be finite, got {self.spin}")
        if not (math.isfinite(self.randomness) and self.randomness >= 0):
            raise ConfigurationError(f"randomness must be >= 0, got {self.randomness}")
        if not (math.isfinite(self.randomness_power) and self.randomness_power > 0):
            raise ConfigurationError(f"randomness power must be > 0, got {self.randomness_power}")

    @classmethod
    def from_config(cls, section: Mapping[str, object]) -> "GalaxyParams":
        return cls(
            radius=float(section.get("radius", 35.0)),
            branches=int(section.get("branches", 5)),
            spin=float(section.get("spin", 1.8)),
            randomness=float(section.get("randomness", 0.4)),
            randomness_power=float(section.get("randomnessPower", 3.0)),
            inner_color=section.get("innerColor", "#ffbb33"),  # type: ignore[arg-type]
            outer_color=section.get("outerColor", "#3399ff"),  # type: ignore[arg-type]
        )


@dataclass(frozen=True)
class ParticleField:
    """Generated particles.  All buffers are read-only."""

    params: GalaxyParams
    positions: np.ndarray
    colors: np.ndarray
    radii: np.ndarray

    def __len__(self) -> int:
        return int(self.positions.shape[0])

    @property
    def count(self) -> int:
        return len(self)


def _validate_count(count: int) -> int:
    if isinstance(count, bool) or int(count) != count:
        raise ConfigurationError(f"particle count must be an integer, got {count!r}")
    count = int(count)
    if count <= 0:
        raise ConfigurationError(f"particle count must be positive, got {count}")
    return count


def branch_index(count: int, branches: int) -> np.ndarray:
    """Arm assigned to each particle: ``i mod branches``."""

    return np.arange(count, dtype=np.int64) % branches


def generate(
    params: GalaxyParams,
    count: int,
    rng: Optional[np.random.Generator] = None,
) -> ParticleField:
    """Generate ``count`` particles distributed over the galaxy arms.

    ``rng`` makes the output reproducible; when omitted a fresh unseeded
    generator is used and each call yields a different but statistically
    identical field.
    """

    params.validate()
    count = _validate_count(count)
    if rng is None:
        rng = np.random.default_rng()

    radii = rng.random(count) * params.radius
    spin_angle = radii * params.spin
    branch_angle = branch_index(count, params.branches) / params.branches * (2.0 * math.pi)

    magnitude = rng.random((count, 3)) ** params.randomness_power
    sign = np.where(rng.random((count, 3)) < 0.5, 1.0, -1.0)
    offsets = magnitude * sign * params.randomness * radii[:, None]

    angle = branch_angle + spin_angle
    positions = np.empty((count, 3), dtype=np.float32)
    positions[:, 0] = np.cos(angle) * radii + offsets[:, 0]
    positions[:, 1] = offsets[:, 1] * VERTICAL_FLATTENING
    positions[:, 2] = np.sin(angle) * radii + offsets[:, 2]

    inner = np.asarray(params.inner_color, dtype=np.float64)
    outer = np.asarray(params.outer_color, dtype=np.float64)
    t = np.clip(radii / params.radius, 0.0, 1.0)[:, None]
    colors = np.clip(inner + (outer - inner) * t, 0.0, 1.0).astype(np.float32)

    for buffer in (positions, colors, radii):
        buffer.setflags(write=False)

    log.debug("Generated %d particles over %d arms", count, params.branches)
    return ParticleField(params=params, positions=positions, colors=colors, radii=radii)
