import numpy as np

from passport_capture.infrastructure.quality.screen_replay_detector import ScreenReplayDetector

from conftest import rgb_frame


def test_same_frame_same_verdict(noise_frame):
    detector = ScreenReplayDetector()
    assert detector.evaluate(noise_frame) == detector.evaluate(noise_frame)


def test_striped_frame_is_replay(striped_frame):
    verdict = ScreenReplayDetector().evaluate(striped_frame)

    assert verdict.is_screen_replay
    assert verdict.signals["strong_scanlines"]
    assert verdict.signals["strong_moire"]
    assert not verdict.signals["strong_uniformity"]
    assert verdict.indicators == 2


def test_flat_frame_is_replay(gray_frame):
    verdict = ScreenReplayDetector().evaluate(gray_frame)

    assert verdict.is_screen_replay
    assert verdict.signals["strong_uniformity"]
    assert verdict.signals["brightness_variance"] == 0.0


def test_single_signal_is_not_enough(noise_frame):
    verdict = ScreenReplayDetector().evaluate(noise_frame)

    assert verdict.indicators == 1
    assert verdict.signals["strong_scanlines"]
    assert not verdict.is_screen_replay


def test_min_indicators_is_configurable(striped_frame):
    assert not ScreenReplayDetector(min_indicators=3).evaluate(striped_frame).is_screen_replay


def test_tiny_frame_does_not_crash():
    verdict = ScreenReplayDetector().evaluate(rgb_frame(np.zeros((1, 2, 3), dtype=np.uint8)))
    assert verdict.signals["moire_pairs"] == 0
