"""Tests for the inbound gesture feed."""

import io
import json
import os

import pytest

from aether.feed import (
    CONTROL_FUNCTION_NAME,
    FeedCall,
    GestureFeed,
    calls_from_message,
    control_galaxy_declaration,
    gestures_from_message,
    parse_feed_entries,
    parse_feed_line,
    tool_response,
)
from aether.gestures import Gesture


def _call(gesture, name=CONTROL_FUNCTION_NAME, call_id="c1"):
    return {"id": call_id, "name": name, "args": {"gesture": gesture}}


class TestDeclaration:
    """Function schema advertised to the remote agent."""

    def test_declaration(self):
        declaration = control_galaxy_declaration()
        gesture = declaration["parameters"]["properties"]["gesture"]

        assert declaration["name"] == "controlGalaxy"
        assert declaration["parameters"]["required"] == ["gesture"]
        assert gesture["enum"] == [g.value for g in Gesture]
        assert len(gesture["enum"]) == 8

    def test_tool_response(self):
        assert tool_response("abc") == {
            "id": "abc",
            "name": "controlGalaxy",
            "response": {"result": "ok"},
        }


class TestParsing:
    """Feed lines and function call messages."""

    def test_plain_name(self):
        assert parse_feed_line("zoom_in\n") == [Gesture.ZOOM_IN]

    @pytest.mark.parametrize("line", ["", "   \n", "# comment", "wave", "{not json"])
    def test_ignored_lines(self, line):
        assert parse_feed_line(line) == []

    def test_single_call(self):
        assert parse_feed_line(json.dumps(_call("move_up"))) == [Gesture.MOVE_UP]

    def test_envelope(self):
        message = {"toolCall": {"functionCalls": [_call("zoom_out"), _call("stop", call_id="c2")]}}

        assert parse_feed_line(json.dumps(message)) == [Gesture.ZOOM_OUT, Gesture.STOP]

    def test_other_function_ignored(self):
        assert gestures_from_message(_call("stop", name="somethingElse")) == []

    def test_unknown_gesture_ignored(self):
        message = {"toolCall": {"functionCalls": [_call("spin"), _call("move_down")]}}

        assert gestures_from_message(message) == [Gesture.MOVE_DOWN]

    @pytest.mark.parametrize(
        "message",
        [None, [], "stop", {"toolCall": {"functionCalls": "stop"}}, {"name": CONTROL_FUNCTION_NAME}],
    )
    def test_malformed_messages(self, message):
        assert gestures_from_message(message) == []

    def test_deeply_nested_json_is_dropped(self):
        depth = 100000
        line = '{"a":' * depth + "1" + "}" * depth

        assert parse_feed_line(line) == []

    def test_replacement_characters_are_dropped(self):
        assert parse_feed_line("�� garbage") == []

    def test_entries_keep_call_ids(self):
        message = {"toolCall": {"functionCalls": [_call("zoom_in", call_id="a"), _call("warp", call_id="b")]}}

        assert parse_feed_entries(json.dumps(message)) == [
            FeedCall("a", Gesture.ZOOM_IN),
            FeedCall("b", None),
        ]
        assert parse_feed_entries("move_left") == [FeedCall(None, Gesture.MOVE_LEFT)]

    def test_calls_from_other_functions_are_not_acknowledged(self):
        assert calls_from_message(_call("stop", name="somethingElse")) == []


class TestGestureFeed:
    """Reader thread posting gestures."""

    def test_reads_stream(self):
        stream = io.StringIO("zoom_in\n# comment\nbogus\n" + json.dumps(_call("move_left")) + "\nstop\n")
        posted = []
        feed = GestureFeed(stream, posted.append)

        feed.start()
        feed.join(timeout=5)

        assert not feed.is_alive()
        assert posted == [Gesture.ZOOM_IN, Gesture.MOVE_LEFT, Gesture.STOP]
        assert feed.received == 3
        assert feed.daemon

    def test_stop_before_start_reads_nothing(self):
        posted = []
        feed = GestureFeed(io.StringIO("zoom_in\nzoom_out\n"), posted.append)
        feed.stop()

        feed.start()
        feed.join(timeout=5)

        assert feed.stopped
        assert posted == []

    def test_invalid_bytes_are_skipped(self, tmp_path):
        path = tmp_path / "feed.txt"
        path.write_bytes(b"zoom_in\n\xff\xfe garbage\nzoom_out\n")
        posted = []

        with open(path, "r", encoding="utf-8") as stream:
            feed = GestureFeed(stream, posted.append)
            feed.start()
            feed.join(timeout=5)

        assert not feed.is_alive()
        assert posted == [Gesture.ZOOM_IN, Gesture.ZOOM_OUT]

    def test_failing_line_does_not_end_feed(self):
        posted = []

        def post(gesture):
            if gesture is Gesture.STOP:
                raise RuntimeError("consumer rejected")
            posted.append(gesture)

        feed = GestureFeed(io.StringIO("stop\nzoom_in\n"), post)
        feed.start()
        feed.join(timeout=5)

        assert posted == [Gesture.ZOOM_IN]
        assert feed.rejected == 1

    def test_acknowledges_every_call(self):
        lines = [
            json.dumps(_call("zoom_in", call_id="a")),
            json.dumps({"toolCall": {"functionCalls": [_call("spin", call_id="b"), _call("stop", call_id="c")]}}),
            "move_up",
        ]
        ack = io.StringIO()
        posted = []
        feed = GestureFeed(io.StringIO("\n".join(lines) + "\n"), posted.append, ack=ack)
        feed.start()
        feed.join(timeout=5)

        replies = [json.loads(line) for line in ack.getvalue().splitlines()]
        assert [r["id"] for r in replies] == ["a", "b", "c"]
        assert all(r == tool_response(r["id"]) for r in replies)
        assert posted == [Gesture.ZOOM_IN, Gesture.STOP, Gesture.MOVE_UP]
        assert feed.acknowledged == 3

    def test_close_returns_while_read_is_blocked(self):
        read_fd, write_fd = os.pipe()
        reader = os.fdopen(read_fd, "r", encoding="utf-8")
        posted = []
        feed = GestureFeed(reader, posted.append)
        feed.start()

        assert not feed.close(timeout=0.1)
        assert feed.stopped

        os.write(write_fd, b"zoom_in\n")
        os.close(write_fd)
        feed.join(timeout=5)
        reader.close()

        assert not feed.is_alive()
        assert posted == []
