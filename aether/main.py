# -*- coding: utf-8 -*-
"""Command line entry point.

Run with ``python -m aether.main`` (or the ``aether`` console script).
``--headless-frames N`` renders N frames offscreen without Qt, which is handy
on machines without a display.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from contextlib import ExitStack
from pathlib import Path
from typing import List, Mapping, NoReturn, Optional, Sequence, TextIO

import numpy as np

from .config import apply_overrides, describe, load_config, merge_config
from .errors import AetherError, ConfigurationError
from .feed import (
    GestureFeed,
    control_galaxy_declaration,
    parse_feed_entries,
    tolerant_text_stream,
    tool_response,
)
from .gestures import Gesture
from .logging_config import setup_logging
from .offscreen import OffscreenBackend, SteppedClock
from .projection import Projection, RenderSettings
from .render_loop import RenderLoop
from .system import GalaxyStatus, GalaxySystem

log = logging.getLogger(__name__)


def _handle_qt_import_error(exc: ImportError) -> NoReturn:
    """Exit with a helpful message when the Qt bindings cannot be imported."""

    details = str(exc)
    message_lines = [
        "Unable to start Aether: importing PyQt5 failed.",
        "Check that PyQt5 is installed and that the required OpenGL libraries are available.",
    ]
    if "libGL.so.1" in details:
        message_lines.append(
            "Hint: the system library libGL.so.1 is missing. Install the Mesa/OpenGL packages."
        )
    message_lines.append("Use --headless-frames to render without a display.")
    message_lines.append(f"Original error: {details}")
    raise SystemExit("\n".join(message_lines)) from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="aether", description="Gesture-driven galaxy explorer.")
    parser.add_argument("--config", type=Path, help="JSON file overriding the defaults")
    parser.add_argument(
        "--set", dest="overrides", action="append", default=[], metavar="SECTION.KEY=VALUE",
        help="override one configuration value (repeatable)",
    )
    parser.add_argument("--count", type=int, help="number of particles")
    parser.add_argument("--dwell", type=float, help="gesture dwell duration in seconds")
    parser.add_argument("--smoothing-mode", choices=("frame", "time"), help="smoothing normalisation")
    parser.add_argument("--backend", choices=("auto", "opengl", "raster"), help="rendering backend")
    parser.add_argument("--feed", metavar="PATH", help="read gestures from a file, '-' for stdin")
    parser.add_argument(
        "--ack", metavar="PATH",
        help="write one controlGalaxy acknowledgement per call read from --feed, '-' for stdout",
    )
    parser.add_argument(
        "--print-declaration", action="store_true",
        help="print the controlGalaxy function declaration as JSON and exit",
    )
    parser.add_argument("--seed", type=int, help="seed the particle generator")
    parser.add_argument("--headless-frames", type=int, metavar="N", help="render N frames offscreen and exit")
    parser.add_argument(
        "--gesture-every", type=int, default=30, metavar="FRAMES",
        help="headless mode: frames between two gestures read from --feed",
    )
    parser.add_argument("--show-config", action="store_true", help="print the effective configuration and exit")
    parser.add_argument("--log-level", default="info", help="logging level (debug, info, warning...)")
    parser.add_argument("--log-file", help="also write logs to this file")
    return parser


def build_config(args: argparse.Namespace) -> dict:
    config = load_config(args.config)
    config = apply_overrides(config, args.overrides)
    flags: dict = {}
    if args.count is not None:
        flags.setdefault("field", {})["count"] = args.count
    if args.dwell is not None:
        flags.setdefault("session", {})["dwellSeconds"] = args.dwell
    if args.smoothing_mode is not None:
        flags.setdefault("motion", {})["smoothingMode"] = args.smoothing_mode
    if args.backend is not None:
        flags.setdefault("render", {})["backend"] = args.backend
    return merge_config(config, flags)


def _read_feed_gestures(stream: TextIO, ack: Optional[TextIO] = None) -> List[Gesture]:
    gestures: List[Gesture] = []
    for line in tolerant_text_stream(stream):
        for call in parse_feed_entries(line):
            if call.gesture is not None:
                gestures.append(call.gesture)
            if call.call_id is not None and ack is not None:
                ack.write(json.dumps(tool_response(call.call_id)) + "\n")
    if ack is not None:
        ack.flush()
    return gestures


def run_headless(
    system: GalaxySystem,
    render_cfg: Mapping[str, object],
    frames: int,
    gestures: Sequence[Gesture] = (),
    gesture_every: int = 30,
    width: int = 320,
    height: int = 240,
) -> GalaxyStatus:
    """Render ``frames`` frames offscreen, posting ``gestures`` at a fixed pace."""

    projection = Projection(
        fov_deg=float(render_cfg.get("fovDeg", 60.0)),
        near=float(render_cfg.get("near", 0.1)),
        far=float(render_cfg.get("far", 5000.0)),
    )
    backend = OffscreenBackend(
        system.field, width, height,
        settings=RenderSettings.from_config(render_cfg),
        projection=projection,
    )
    pending = list(gestures)
    gesture_every = max(1, gesture_every)
    with RenderLoop(system, backend) as loop:
        for frame in range(frames):
            if pending and frame % gesture_every == 0:
                system.post_gesture(pending.pop(0))
            loop.tick()
    status = system.status()
    log.info(
        "Rendered %d frames: zoom=%.2f pitch=%.3f heading=%.3f gesture=%s",
        frames, status.zoom, status.rotation_x, status.rotation_y, status.current_gesture,
    )
    return status


def run_window(
    system: GalaxySystem,
    render_cfg: Mapping[str, object],
    feed: Optional[TextIO],
    ack: Optional[TextIO] = None,
) -> int:
    try:
        from PyQt5 import QtWidgets
        from .view import ViewWindow
    except ImportError as exc:  # pragma: no cover - environment dependent
        _handle_qt_import_error(exc)

    app = QtWidgets.QApplication.instance() or QtWidgets.QApplication(sys.argv)
    window = ViewWindow(system, render_cfg, app.primaryScreen())
    window.renderFailed.connect(lambda message: log.error("Render session failed: %s", message))

    feed_thread: Optional[GestureFeed] = None
    if feed is not None:
        feed_thread = GestureFeed(feed, system.post_gesture, ack=ack)
        feed_thread.start()

    window.show()
    try:
        window.start()
        return int(app.exec_())
    finally:
        if feed_thread is not None and not feed_thread.close(timeout=0.5):
            log.debug("Gesture feed still blocked on a read; leaving the daemon thread behind")


def _open_text(stack: ExitStack, path: Optional[str], mode: str, default: TextIO) -> Optional[TextIO]:
    if not path:
        return None
    if path == "-":
        return tolerant_text_stream(default) if mode == "r" else default
    try:
        return stack.enter_context(open(path, mode, encoding="utf-8", errors="replace"))
    except OSError as exc:
        raise ConfigurationError(f"cannot open {path}: {exc}") from exc


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        setup_logging(args.log_level, args.log_file)
    except ValueError as exc:
        parser.error(str(exc))

    if args.print_declaration:
        print(json.dumps(control_galaxy_declaration(), indent=2))
        return 0

    try:
        config = build_config(args)
        if args.show_config:
            print(describe(config))
            return 0

        rng = np.random.default_rng(args.seed) if args.seed is not None else None
        with ExitStack() as stack:
            feed = _open_text(stack, args.feed, "r", sys.stdin)
            ack = _open_text(stack, args.ack, "w", sys.stdout)

            if args.headless_frames is not None:
                system = GalaxySystem.from_config(config, rng=rng, clock=SteppedClock())
                gestures = _read_feed_gestures(feed, ack) if feed is not None else []
                run_headless(system, config["render"], args.headless_frames, gestures, args.gesture_every)
                return 0

            system = GalaxySystem.from_config(config, rng=rng)
            return run_window(system, config["render"], feed, ack)
    except AetherError as exc:
        log.error("%s", exc)
        return 2


if __name__ == "__main__":
    sys.exit(main())
