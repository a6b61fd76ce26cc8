"""Tests for the render loop and the offscreen backend."""

import numpy as np
import pytest

from aether.errors import RenderBackendError
from aether.motion import FrameTransform
from aether.offscreen import OffscreenBackend, SteppedClock
from aether.render_loop import MAX_FRAME_DT, RenderLoop
from aether.system import GalaxySystem


class RecordingBackend:
    def __init__(self, fail_with=None):
        self.fail_with = fail_with
        self.calls = []

    def acquire(self):
        self.calls.append("acquire")
        if self.fail_with is not None:
            raise self.fail_with

    def release(self):
        self.calls.append("release")

    def resize_viewport(self, width, height):
        self.calls.append(("resize", width, height))

    def submit(self, transform):
        self.calls.append(("submit", transform))


class RecordingSystem:
    """Stands in for GalaxySystem and records the step arguments."""

    def __init__(self, clock):
        self.clock = clock
        self.steps = []

    def step(self, now=None, dt=None):
        self.steps.append((now, dt))
        return FrameTransform(45.0, 0.3, 0.0)


@pytest.fixture
def system(clock):
    return GalaxySystem.from_config({"field": {"count": 200}}, rng=np.random.default_rng(5), clock=clock)


class TestRenderLoop:
    """Lifecycle and frame stepping."""

    def test_start_tick_stop(self, system):
        backend = RecordingBackend()
        loop = RenderLoop(system, backend)

        loop.start()
        transform = loop.tick()
        loop.stop()

        assert backend.calls[0] == "acquire"
        assert backend.calls[1] == ("submit", transform)
        assert backend.calls[2] == "release"
        assert loop.frames == 1

    def test_start_and_stop_are_idempotent(self, system):
        backend = RecordingBackend()
        loop = RenderLoop(system, backend)

        loop.start()
        loop.start()
        loop.stop()
        loop.stop()

        assert backend.calls == ["acquire", "release"]

    def test_tick_after_stop_does_nothing(self, system):
        backend = RecordingBackend()
        loop = RenderLoop(system, backend)
        loop.start()
        loop.stop()

        assert loop.tick() is None
        assert not any(isinstance(c, tuple) and c[0] == "submit" for c in backend.calls)

    def test_tick_before_start_does_nothing(self, system):
        loop = RenderLoop(system, RecordingBackend())

        assert loop.tick() is None
        assert loop.frames == 0

    def test_repeated_cycles_pair_acquire_and_release(self, system):
        backend = OffscreenBackend(system.field, 32, 24, rasterize=False)
        loop = RenderLoop(system, backend)
        for _ in range(5):
            loop.start()
            loop.tick()
            loop.stop()

        assert backend.acquisitions == 5
        assert backend.releases == 5
        assert not backend.acquired

    def test_acquire_failure_wrapped(self, system):
        loop = RenderLoop(system, RecordingBackend(fail_with=OSError("no context")))

        with pytest.raises(RenderBackendError, match="no context"):
            loop.start()
        assert not loop.running

    def test_backend_error_passes_through(self, system):
        error = RenderBackendError("driver missing")
        loop = RenderLoop(system, RecordingBackend(fail_with=error))

        with pytest.raises(RenderBackendError) as excinfo:
            loop.start()
        assert excinfo.value is error

    def test_context_manager_releases_on_error(self, system):
        backend = RecordingBackend()
        with pytest.raises(RuntimeError):
            with RenderLoop(system, backend):
                raise RuntimeError("boom")

        assert backend.calls == ["acquire", "release"]

    def test_resize_forwarded(self, system):
        backend = RecordingBackend()
        RenderLoop(system, backend).resize(640.0, 480.0)

        assert backend.calls == [("resize", 640, 480)]

    def test_dt_is_clamped(self, clock):
        fake = RecordingSystem(clock)
        loop = RenderLoop(fake, RecordingBackend())
        loop.start()

        clock.advance(1.0 / 60.0)
        loop.tick()
        clock.advance(5.0)
        loop.tick()

        assert fake.steps[0][1] == pytest.approx(1.0 / 60.0)
        assert fake.steps[1][1] == MAX_FRAME_DT

    def test_dwell_expires_during_loop(self, system):
        system.clock = SteppedClock(step=0.5)
        loop = RenderLoop(system, OffscreenBackend(system.field, 16, 16, rasterize=False))
        with loop:
            system.post_gesture("move_left")
            loop.tick()
            assert system.status().current_gesture == "move_left"
            for _ in range(4):
                loop.tick()

        assert system.status().current_gesture == "stop"
        assert system.controller.get_target().yaw == pytest.approx(-0.048)


class TestOffscreenBackend:
    """Numpy backed rendering without a window."""

    def test_renders_frames(self, system):
        backend = OffscreenBackend(system.field, 64, 48)
        with RenderLoop(system, backend, clock=SteppedClock()) as loop:
            for _ in range(3):
                loop.tick()
            frame = backend.frame

        assert frame.shape == (48, 64, 3)
        assert frame.dtype == np.uint8
        assert frame.max() > frame.min()
        assert backend.frame is None

    def test_history(self, system):
        backend = OffscreenBackend(system.field, 16, 16, rasterize=False, keep_history=True)
        with RenderLoop(system, backend, clock=SteppedClock()) as loop:
            for _ in range(4):
                loop.tick()

        assert len(backend.history) == 4
        assert backend.last_transform is backend.history[-1]
        assert backend.frame is None

    def test_double_acquire_rejected(self, system):
        backend = OffscreenBackend(system.field)
        backend.acquire()

        with pytest.raises(RenderBackendError):
            backend.acquire()

    def test_submit_after_release_rejected(self, system):
        backend = OffscreenBackend(system.field)
        backend.acquire()
        backend.release()

        with pytest.raises(RenderBackendError):
            backend.submit(system.transform())

    def test_resize(self, system):
        backend = OffscreenBackend(system.field, 16, 16)
        backend.acquire()
        backend.resize_viewport(40, 30)
        backend.submit(system.transform())

        assert backend.frame.shape == (30, 40, 3)
        assert backend.projection.width == 40

    def test_stepped_clock(self):
        tick = SteppedClock(step=0.25, start=1.0)

        assert [tick(), tick(), tick()] == [1.25, 1.5, 1.75]
