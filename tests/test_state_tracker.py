from ecosort_pipeline.ep_types import DetectionSnapshot
from ecosort_vision.state_tracker import DetectionStateTracker

from conftest import FakeClock, make_object


def _snap(ts, *objects):
    return DetectionSnapshot(tuple(objects), 480, 640, 90, ts)


def _tracker(resets):
    return DetectionStateTracker(5000, 50, on_reset=lambda: resets.append(True), clock=FakeClock())


def test_resets_after_timeout_and_frame_count():
    resets = []
    tracker = _tracker(resets)
    tracker.update(_snap(0.0, make_object(10, 10, 50, 50)))

    fired = [tracker.update(_snap(5001.0 * (i + 1) / 51)) for i in range(51)]

    assert fired[-1] is True
    assert fired[:-1] == [False] * 50
    assert resets == [True]
    assert tracker.frames_since_detection == 0


def test_no_reset_before_timeout():
    resets = []
    tracker = _tracker(resets)
    tracker.update(_snap(0.0, make_object(10, 10, 50, 50)))

    for i in range(200):
        assert tracker.update(_snap(4000.0 * (i + 1) / 200)) is False
    assert resets == []


def test_no_reset_with_too_few_frames():
    resets = []
    tracker = _tracker(resets)
    tracker.update(_snap(0.0, make_object(10, 10, 50, 50)))

    for _ in range(50):
        tracker.update(_snap(9000.0))
    assert resets == []
    assert tracker.update(_snap(9000.0)) is True


def test_single_missed_frame_does_not_flicker():
    resets = []
    tracker = _tracker(resets)
    tracker.update(_snap(0.0, make_object(10, 10, 50, 50)))
    tracker.update(_snap(30.0))
    tracker.update(_snap(60.0, make_object(10, 10, 50, 50)))
    assert tracker.last_detection_ms == 60.0
    assert tracker.frames_since_detection == 0
    assert resets == []


def test_manual_reset_is_unconditional():
    resets = []
    tracker = _tracker(resets)
    tracker.update(_snap(0.0, make_object(10, 10, 50, 50)))
    tracker.reset()
    assert resets == [True]
    assert tracker.last_detection_ms is None
    assert tracker.is_stale(0.0)


def test_staleness():
    tracker = DetectionStateTracker(5000, 50, clock=FakeClock())
    assert tracker.is_stale(0.0)
    tracker.update(_snap(1000.0, make_object(10, 10, 50, 50)))
    assert not tracker.is_stale(6000.0)
    assert tracker.is_stale(6000.5)
