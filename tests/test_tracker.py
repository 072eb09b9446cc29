"""Unit tests for iloc.analysis.tracker.PredictionTracker."""

import asyncio

import pytest

from iloc.analysis.config import LocalizationConfig
from iloc.analysis.engine import LocalizationEngine
from iloc.analysis.pdr import PdrEngine
from iloc.analysis.tracker import PredictionTracker
from iloc.analysis.types import Point2D
from iloc.parsers.scan import FileScanSource, ScanFileError


@pytest.fixture
def engine(dao, scan):
    e = LocalizationEngine(dao, LocalizationConfig.default())
    e.save_fingerprint("Lobby", scan, 3.0, 4.0)
    return e


@pytest.fixture
def pdr():
    p = PdrEngine()
    p.start()
    return p


class TestRunOnce:
    """Single iterations of the loop."""

    def test_prediction_anchors_pdr(self, engine, scan, pdr):
        seen = []
        tracker = PredictionTracker(engine, lambda: scan, pdr=pdr, on_prediction=seen.append)
        prediction = tracker.run_once()
        assert prediction.location_name == "Lobby"
        assert seen == [prediction]
        assert pdr.correction_steps_remaining == 6
        for _ in range(6):
            pdr.on_step()
        assert pdr.position.as_tuple() == pytest.approx((3.0 + 6 * 0.7, 4.0))

    def test_empty_scan_skips(self, engine, pdr):
        seen = []
        tracker = PredictionTracker(engine, lambda: [], pdr=pdr, on_prediction=seen.append)
        assert tracker.run_once() is None
        assert seen == [None]
        assert pdr.correction_steps_remaining == 0

    def test_uncalibrated_match_does_not_anchor(self, dao, scan, pdr):
        e = LocalizationEngine(dao)
        e.save_fingerprint("Hall", scan)
        tracker = PredictionTracker(e, lambda: scan, pdr=pdr)
        assert tracker.run_once().location_name == "Hall"
        assert pdr.correction_steps_remaining == 0

    def test_without_pdr(self, engine, scan):
        assert PredictionTracker(engine, lambda: scan).run_once() is not None

    def test_unreadable_scan_counts_as_empty(self, engine, pdr):
        def broken():
            raise ScanFileError("invalid scan")

        seen = []
        tracker = PredictionTracker(engine, broken, pdr=pdr, on_prediction=seen.append)
        assert tracker.run_once() is None
        assert seen == [None]
        assert pdr.correction_steps_remaining == 0

    def test_default_interval_from_config(self, engine, scan):
        assert PredictionTracker(engine, lambda: scan).interval_s == 5.0


class TestLoop:
    """The asyncio loop and its cancellation."""

    def test_max_iterations(self, engine, scan):
        seen = []
        tracker = PredictionTracker(
            engine, lambda: scan, on_prediction=seen.append, interval_s=0.0, max_iterations=3
        )
        asyncio.run(tracker.run())
        assert tracker.iterations == 3
        assert len(seen) == 3

    def test_truncated_scan_file_keeps_looping(self, engine, tmp_path):
        """A scan file caught mid-rewrite is skipped, not fatal."""
        scan_file = tmp_path / "scan.json"
        scan_file.write_text('[{"bssid": "AA:01", "rssi": -5')
        seen = []
        tracker = PredictionTracker(
            engine, FileScanSource(scan_file), on_prediction=seen.append,
            interval_s=0.0, max_iterations=3,
        )
        asyncio.run(tracker.run())
        assert tracker.iterations == 3
        assert seen == [None, None, None]

    def test_stop_cancels_between_iterations(self, engine, scan):
        async def scenario():
            tracker = PredictionTracker(engine, lambda: scan, interval_s=10.0)
            await tracker.start()
            await asyncio.sleep(0.05)
            assert tracker.running
            await tracker.stop()
            return tracker

        tracker = asyncio.run(scenario())
        assert not tracker.running
        assert tracker.iterations == 1

    def test_stop_when_not_started(self, engine, scan):
        tracker = PredictionTracker(engine, lambda: scan)
        asyncio.run(tracker.stop())
        assert not tracker.running

    def test_restart_replaces_task(self, engine, scan):
        async def scenario():
            tracker = PredictionTracker(engine, lambda: scan, interval_s=10.0)
            first = await tracker.start()
            await asyncio.sleep(0)
            second = await tracker.start()
            assert first.cancelled()
            await asyncio.sleep(0.05)
            assert first is not second
            await tracker.stop()

        asyncio.run(scenario())

    def test_restart_after_max_iterations(self, engine, scan):
        async def scenario():
            seen = []
            tracker = PredictionTracker(
                engine, lambda: scan, on_prediction=seen.append, interval_s=0.0, max_iterations=2
            )
            await (await tracker.start())
            await (await tracker.start())
            await tracker.stop()
            return tracker, seen

        tracker, seen = asyncio.run(scenario())
        assert tracker.iterations == 2
        assert len(seen) == 4


def test_anchor_point_matches_fingerprint(engine, scan):
    assert engine.anchor_for(engine.predict(scan)) == Point2D(3.0, 4.0)
