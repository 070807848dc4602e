import threading
from concurrent.futures import Future

import numpy as np
import pytest

from ecosort_pipeline.ep_types import DetectedObject, Frame, Label, Rect
from ecosort_pipeline.errors import DetectorNotReadyError
from ecosort_pipeline.strategies.detector_base import ObjectDetector


class FakeClock:
    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class ScriptedDetector(ObjectDetector):
    """Returns queued results; records every frame it is asked to analyze."""

    def __init__(self, results=None, fail_init=None):
        self.results = list(results or [])
        self.fail_init = fail_init
        self.calls = []
        self.ready = False
        self.stop_calls = 0

    def initialize(self):
        if self.fail_init is not None:
            raise self.fail_init
        self.ready = True

    def detect_objects(self, frame, rotation_degrees):
        if not self.ready:
            raise DetectorNotReadyError("not initialized")
        self.calls.append((frame.idx, rotation_degrees))
        fut = Future()
        nxt = self.results.pop(0) if self.results else []
        if isinstance(nxt, Exception):
            fut.set_exception(nxt)
        else:
            fut.set_result(nxt)
        return fut

    def stop(self):
        self.stop_calls += 1
        self.ready = False

    def is_ready(self):
        return self.ready


class BlockingDetector(ScriptedDetector):
    """Holds the first call open until ``release`` is set."""

    def __init__(self, results=None):
        super().__init__(results)
        self.entered = threading.Event()
        self.release = threading.Event()
        self.done = threading.Event()

    def detect_objects(self, frame, rotation_degrees):
        fut = super().detect_objects(frame, rotation_degrees)
        if len(self.calls) == 1:
            self.entered.set()
            self.release.wait(5.0)
        if len(self.calls) >= 2:
            self.done.set()
        return fut


class ReleaseCounter:
    def __init__(self):
        self.closed = []

    def __call__(self, frame):
        self.closed.append(frame.idx)


def make_object(x, y, w, h, label="Bottle", conf=0.9, tid=None):
    return DetectedObject(Rect.from_xywh(x, y, w, h), tid, (Label(label, conf, 5),))


def make_frame(idx=1, width=640, height=480, rotation=0, on_close=None, fill=0):
    img = np.full((height, width, 3), fill, dtype=np.uint8)
    return Frame(idx, f"ts{idx}", img, rotation, on_close=on_close)


@pytest.fixture
def clock():
    return FakeClock()
