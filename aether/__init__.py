"""Aether: a gesture-driven point-cloud galaxy explorer.

The package is split the same way the frame pipeline flows:

* :mod:`aether.field_generator` builds the particle buffers once at start-up.
* :mod:`aether.motion` smooths camera/rotation targets frame after frame.
* :mod:`aether.gestures` turns discrete gesture events into target changes.
* :mod:`aether.system` owns all of the above for one galaxy instance.
* :mod:`aether.render_loop` pushes the smoothed state to a rendering backend.

Qt specific code lives in :mod:`aether.view` and :mod:`aether.main` so the
core modules can be imported without a display.
"""

from __future__ import annotations

from .errors import AetherError, ConfigurationError, RenderBackendError
from .field_generator import GalaxyParams, ParticleField, generate
from .gestures import Gesture, GestureMailbox, GestureSession, SessionState, parse_gesture
from .motion import FrameTransform, MotionController, MotionSettings, MotionState
from .render_loop import RenderBackend, RenderLoop
from .system import GalaxyStatus, GalaxySystem

__all__ = [
    "AetherError",
    "ConfigurationError",
    "FrameTransform",
    "GalaxyParams",
    "GalaxyStatus",
    "GalaxySystem",
    "Gesture",
    "GestureMailbox",
    "GestureSession",
    "MotionController",
    "MotionSettings",
    "MotionState",
    "ParticleField",
    "RenderBackend",
    "RenderBackendError",
    "RenderLoop",
    "SessionState",
    "generate",
    "parse_gesture",
]

__version__ = "0.1.0"
