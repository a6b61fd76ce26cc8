"""Inbound gesture feed.

The remote vision agent reports gestures by calling a ``controlGalaxy``
function with a single ``gesture`` argument and expects one acknowledgement
per call.  This module describes that function, decodes the calls (or plain
gesture names, one per line) and runs a reader thread that posts them to a
:class:`~aether.gestures.GestureMailbox` and writes the acknowledgements.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Callable, Dict, Iterable, List, Mapping, NamedTuple, Optional, TextIO

from .gestures import Gesture, parse_gesture

__all__ = [
    "CONTROL_FUNCTION_NAME",
    "FeedCall",
    "GestureFeed",
    "calls_from_message",
    "control_galaxy_declaration",
    "gestures_from_message",
    "parse_feed_entries",
    "parse_feed_line",
    "tolerant_text_stream",
    "tool_response",
]

log = logging.getLogger(__name__)

CONTROL_FUNCTION_NAME = "controlGalaxy"


class FeedCall(NamedTuple):
    """One decoded feed entry.

    ``call_id`` is ``None`` for plain gesture lines, which need no
    acknowledgement; ``gesture`` is ``None`` when a ``controlGalaxy`` call
    carried an unknown gesture (it is still acknowledged).
    """

    call_id: Optional[str]
    gesture: Optional[Gesture]


def control_galaxy_declaration() -> Dict[str, object]:
    """Function schema advertised to the remote agent."""

    return {
        "name": CONTROL_FUNCTION_NAME,
        "parameters": {
            "type": "OBJECT",
            "description": "Control the galaxy visualization based on user hand gestures.",
            "properties": {
                "gesture": {
                    "type": "STRING",
                    "enum": [g.value for g in Gesture],
                    "description": "The specific gesture detected (zoom_in, zoom_out, etc).",
                }
            },
            "required": ["gesture"],
        },
    }


def tool_response(call_id: Optional[str]) -> Dict[str, object]:
    """Acknowledgement sent back for every handled call."""

    return {"id": call_id, "name": CONTROL_FUNCTION_NAME, "response": {"result": "ok"}}


def tolerant_text_stream(stream: TextIO) -> TextIO:
    """Make undecodable bytes on ``stream`` come out as U+FFFD instead of raising."""

    reconfigure = getattr(stream, "reconfigure", None)
    if reconfigure is not None:
        reconfigure(errors="replace")
    return stream


def _call_from_mapping(call: Mapping[str, object]) -> Optional[FeedCall]:
    if call.get("name") != CONTROL_FUNCTION_NAME:
        return None
    call_id = call.get("id")
    args = call.get("args")
    gesture = parse_gesture(args.get("gesture")) if isinstance(args, Mapping) else None
    return FeedCall(call_id if isinstance(call_id, str) else None, gesture)


def calls_from_message(message: object) -> List[FeedCall]:
    """Extract every ``controlGalaxy`` call from a single call or a ``toolCall`` envelope."""

    if not isinstance(message, Mapping):
        return []
    calls: Iterable[object]
    tool_call = message.get("toolCall")
    if isinstance(tool_call, Mapping):
        raw = tool_call.get("functionCalls")
        calls = raw if isinstance(raw, list) else []
    else:
        calls = [message]
    out: List[FeedCall] = []
    for call in calls:
        if isinstance(call, Mapping):
            decoded = _call_from_mapping(call)
            if decoded is not None:
                out.append(decoded)
    return out


def gestures_from_message(message: object) -> List[Gesture]:
    return [c.gesture for c in calls_from_message(message) if c.gesture is not None]


def parse_feed_entries(line: str) -> List[FeedCall]:
    """Decode one feed line: a gesture name or a JSON message.

    Blank lines and ``#`` comments yield nothing; malformed lines too.
    """

    text = line.strip()
    if not text or text.startswith("#"):
        return []
    if text.startswith("{"):
        try:
            message = json.loads(text)
        except (ValueError, RecursionError):
            log.debug("Ignoring malformed feed line: %.80r", text)
            return []
        return calls_from_message(message)
    gesture = parse_gesture(text)
    if gesture is None:
        log.debug("Ignoring unknown gesture on feed: %.80r", text)
        return []
    return [FeedCall(None, gesture)]


def parse_feed_line(line: str) -> List[Gesture]:
    return [c.gesture for c in parse_feed_entries(line) if c.gesture is not None]


class GestureFeed(threading.Thread):
    """Reads gesture lines from ``stream`` and hands them to ``post``.

    ``post`` is normally :meth:`GalaxySystem.post_gesture`; it is the only
    thing this thread touches besides ``ack``, which receives one
    :func:`tool_response` line per ``controlGalaxy`` call when given.

    :meth:`stop` takes effect at the next line: a read blocked on an idle
    stream is not interrupted.  The thread is a daemon so such a read never
    keeps the process alive; :meth:`close` stops and joins with a timeout.
    """

    def __init__(
        self,
        stream: TextIO,
        post: Callable[[Gesture], None],
        name: str = "aether-feed",
        ack: Optional[TextIO] = None,
    ) -> None:
        super().__init__(name=name, daemon=True)
        self._stream = tolerant_text_stream(stream)
        self._post = post
        self._ack = ack
        self._stop_event = threading.Event()
        self.received = 0
        self.acknowledged = 0
        self.rejected = 0

    def stop(self) -> None:
        self._stop_event.set()

    def close(self, timeout: float = 1.0) -> bool:
        """Stop reading and wait up to ``timeout``; ``True`` when the thread ended."""

        self.stop()
        if self.is_alive():
            self.join(timeout)
        return not self.is_alive()

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def run(self) -> None:
        log.info("Gesture feed reading from %s", getattr(self._stream, "name", "<stream>"))
        for line in self._stream:
            if self._stop_event.is_set():
                break
            try:
                self._handle_line(line)
            except Exception:
                self.rejected += 1
                log.exception("Skipping feed line %.80r", line)
        log.info("Gesture feed closed after %d gestures", self.received)

    def _handle_line(self, line: str) -> None:
        for call in parse_feed_entries(line):
            if call.gesture is not None:
                self.received += 1
                self._post(call.gesture)
            if call.call_id is not None and self._ack is not None:
                self._ack.write(json.dumps(tool_response(call.call_id)) + "\n")
                self._ack.flush()
                self.acknowledged += 1
