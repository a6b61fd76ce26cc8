"""Start-up configuration: defaults, descriptions and override merging.

Every tuneable knob lives in :data:`DEFAULTS`, grouped by the component that
consumes it.  Keys use the same camelCase spelling as the JSON files accepted
by ``--config``; the components translate them to their own attribute names.
"""

from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional, Tuple

from .errors import ConfigurationError
from .field_generator import parse_color

__all__ = [
    "COLOR_KEYS",
    "DEFAULTS",
    "DESCRIPTIONS",
    "apply_overrides",
    "default_config",
    "describe",
    "load_config",
    "merge_config",
    "parse_override",
]


DEFAULTS = dict(
    field=dict(
        count=85000, radius=35.0, branches=5, spin=1.8,
        randomness=0.4, randomnessPower=3.0,
        innerColor="#ffbb33", outerColor="#3399ff",
    ),
    motion=dict(
        smoothing=0.04, smoothingMode="frame", frameReferenceHz=60.0,
        drift=0.0006,
        zoomMin=8.0, zoomMax=180.0, zoomStep=10.0,
        panStep=0.12, stopDecay=0.4, restingPitch=0.3,
        initialZoom=45.0, initialPitch=0.3, initialYaw=0.0,
    ),
    session=dict(dwellSeconds=1.8, mailboxCapacity=64),
    render=dict(
        backend="auto", frameIntervalMs=16,
        fovDeg=60.0, near=0.1, far=5000.0,
        cameraHeight=30.0, cameraTiltDeg=26.565051,
        opacity=0.75, background="#010206", hud=True,
    ),
)

DESCRIPTIONS = {
    "field.count": "Number of particles generated at start-up.",
    "field.radius": "Radius of the galaxy disc in world units.",
    "field.branches": "Number of spiral arms; particles are spread over them by index.",
    "field.spin": "Angular twist applied per unit of distance from the centre.",
    "field.randomness": "Jitter amplitude, relative to the distance from the centre.",
    "field.randomnessPower": "Exponent pulling the jitter towards the arm centre line.",
    "field.innerColor": "Colour of the particles at the centre.",
    "field.outerColor": "Colour of the particles at the rim.",
    "motion.smoothing": "Fraction of the remaining distance covered per step.",
    "motion.smoothingMode": "'frame' applies the fraction once per frame, 'time' normalises it by elapsed time.",
    "motion.frameReferenceHz": "Refresh rate the smoothing fraction is calibrated for in 'time' mode.",
    "motion.drift": "Ambient rotation added to the heading every step (radians).",
    "motion.zoomMin": "Closest camera distance.",
    "motion.zoomMax": "Farthest camera distance.",
    "motion.zoomStep": "Camera distance change per zoom gesture.",
    "motion.panStep": "Rotation change per move gesture (radians).",
    "motion.stopDecay": "Factor applied to the yaw target when motion stops.",
    "motion.restingPitch": "Pitch target restored when motion stops (radians).",
    "motion.initialZoom": "Camera distance at start-up.",
    "motion.initialPitch": "Object pitch at start-up (radians).",
    "motion.initialYaw": "Object spin at start-up (radians per step).",
    "session.dwellSeconds": "Time a gesture stays active before reverting to stop.",
    "session.mailboxCapacity": "Pending gestures kept between two frames; the oldest are dropped.",
    "render.backend": "'auto', 'opengl' or 'raster'.",
    "render.frameIntervalMs": "Interval of the frame timer; 0 pauses rendering.",
    "render.fovDeg": "Vertical field of view of the camera.",
    "render.near": "Near clipping distance.",
    "render.far": "Far clipping distance.",
    "render.cameraHeight": "Height of the camera above the galaxy plane.",
    "render.cameraTiltDeg": "Downward tilt of the camera.",
    "render.opacity": "Contribution of one particle to its pixel (additive).",
    "render.background": "Window background colour.",
    "render.hud": "Draw the gesture/zoom status line.",
}


# Colours take a "#rrggbb"/"#rgb" string or an RGB triple in [0, 1].
COLOR_KEYS = frozenset({("field", "innerColor"), ("field", "outerColor"), ("render", "background")})


def default_config() -> Dict[str, dict]:
    return copy.deepcopy(DEFAULTS)


def _coerce(value: object, default: object, name: str) -> object:
    """Return ``value`` converted to the type of ``default``."""

    try:
        if isinstance(default, bool):
            if isinstance(value, str):
                lowered = value.strip().lower()
                if lowered in {"1", "true", "yes", "on"}:
                    return True
                if lowered in {"0", "false", "no", "off"}:
                    return False
                raise ValueError(value)
            return bool(value)
        if isinstance(default, int):
            if isinstance(value, bool):
                raise ValueError(value)
            number = float(value)  # type: ignore[arg-type]
            if not number.is_integer():
                raise ValueError(value)
            return int(number)
        if isinstance(default, float):
            if isinstance(value, bool):
                raise ValueError(value)
            return float(value)  # type: ignore[arg-type]
        if isinstance(default, str):
            if not isinstance(value, str):
                raise ValueError(value)
            return value
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(
            f"{name}: expected {type(default).__name__}, got {value!r}"
        ) from exc
    return value


def _coerce_color(value: object, name: str) -> object:
    try:
        rgb = parse_color(value)  # type: ignore[arg-type]
    except ConfigurationError as exc:
        raise ConfigurationError(f"{name}: {exc}") from exc
    return value if isinstance(value, str) else list(rgb)


def merge_config(base: Mapping[str, Mapping[str, object]], payload: Mapping[str, object]) -> Dict[str, dict]:
    """Return a copy of ``base`` updated with ``payload``.

    Unknown sections or keys are rejected: a typo in a configuration file
    would otherwise be silently ignored.
    """

    merged = copy.deepcopy(dict(base))
    if not isinstance(payload, Mapping):
        raise ConfigurationError(f"configuration must be a mapping, got {type(payload).__name__}")
    for section, values in payload.items():
        if section not in merged:
            raise ConfigurationError(f"unknown configuration section: {section!r}")
        if not isinstance(values, Mapping):
            raise ConfigurationError(f"section {section!r} must be a mapping")
        for key, value in values.items():
            if key not in merged[section]:
                raise ConfigurationError(f"unknown configuration key: {section}.{key}")
            if (section, key) in COLOR_KEYS:
                merged[section][key] = _coerce_color(value, f"{section}.{key}")
            else:
                merged[section][key] = _coerce(value, DEFAULTS[section][key], f"{section}.{key}")
    return merged


def load_config(path: Optional[Path] = None) -> Dict[str, dict]:
    """Load a JSON configuration file on top of the defaults."""

    config = default_config()
    if path is None:
        return config
    path = Path(path)
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigurationError(f"cannot read configuration file {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"invalid JSON in {path}: {exc}") from exc
    return merge_config(config, payload)


def parse_override(text: str) -> Tuple[str, str, object]:
    """Split ``"section.key=value"`` into its parts.

    The value is decoded as JSON when possible so numbers and booleans keep
    their type; anything else is taken verbatim as a string.
    """

    if "=" not in text:
        raise ConfigurationError(f"override must look like section.key=value: {text!r}")
    dotted, raw = text.split("=", 1)
    if "." not in dotted:
        raise ConfigurationError(f"override must look like section.key=value: {text!r}")
    section, key = (part.strip() for part in dotted.split(".", 1))
    raw = raw.strip()
    try:
        value: object = json.loads(raw)
    except json.JSONDecodeError:
        value = raw
    return section, key, value


def apply_overrides(config: Mapping[str, Mapping[str, object]], overrides: Iterable[str]) -> Dict[str, dict]:
    payload: Dict[str, Dict[str, object]] = {}
    for text in overrides:
        section, key, value = parse_override(text)
        payload.setdefault(section, {})[key] = value
    return merge_config(config, payload)


def describe(config: Optional[Mapping[str, Mapping[str, object]]] = None) -> str:
    """Human readable listing of every key, its value and its description."""

    config = config if config is not None else DEFAULTS
    lines = []
    for section, values in config.items():
        for key, value in values.items():
            name = f"{section}.{key}"
            lines.append(f"{name:<28} {value!r:<12} {DESCRIPTIONS.get(name, '')}")
    return "\n".join(lines)
