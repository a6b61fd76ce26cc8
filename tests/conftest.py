import numpy as np
import pytest

from aether.field_generator import GalaxyParams, generate
from aether.gestures import GestureSession
from aether.motion import MotionController


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def params():
    return GalaxyParams()


@pytest.fixture
def small_field(params, rng):
    return generate(params, 2000, rng=rng)


@pytest.fixture
def controller():
    return MotionController()


@pytest.fixture
def session(controller):
    return GestureSession(controller, dwell_seconds=1.8)


class ManualClock:
    """Clock whose time only moves when a test says so."""

    def __init__(self, start=0.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return ManualClock()
