"""
Continuous prediction loop: poll a scan source, run the label matcher, and
feed calibrated matches into dead reckoning as anchors.
"""

from __future__ import annotations
import asyncio
from typing import Callable, Optional

from iloc.analysis.engine import LocalizationEngine
from iloc.analysis.pdr import PdrEngine
from iloc.analysis.types import Prediction
from iloc.parsers.scan import ScanFileError
from iloc.utils.validate import AccessPointReading
from iloc.utils.log import get_logger

logger = get_logger(__name__)

ScanSource = Callable[[], list[AccessPointReading]]
PredictionCallback = Callable[[Optional[Prediction]], None]


class PredictionTracker:
    """
    Runs `engine.predict` every `interval_s` seconds on a single asyncio task.

    Cancellation is checked between iterations only; an iteration in flight
    always completes (its work is synchronous).
    """
    def __init__(
        self,
        engine: LocalizationEngine,
        scan_source: ScanSource,
        pdr: Optional[PdrEngine] = None,
        on_prediction: Optional[PredictionCallback] = None,
        interval_s: Optional[float] = None,
        max_iterations: Optional[int] = None,
    ) -> None:
        self.engine = engine
        self.scan_source = scan_source
        self.pdr = pdr
        self.on_prediction = on_prediction
        self.interval_s = engine.cfg.prediction_interval_s if interval_s is None else interval_s
        self.max_iterations = max_iterations
        self.iterations = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def run_once(self) -> Optional[Prediction]:
        """
        One poll: scan, predict, anchor, notify.
        """
        self.iterations += 1
        try:
            readings = self.scan_source()
        except ScanFileError as e:
            # a capture being rewritten reads as no data this round
            logger.warning("Unreadable scan, skipping: %s", e)
            readings = []
        if not readings:
            logger.info("No fresh Wi-Fi scan available")
            self._emit(None)
            return None

        prediction = self.engine.predict(readings)
        if prediction is None:
            logger.info("No matching fingerprints (%d APs scanned)", len(readings))
        else:
            logger.info(
                "At %s (score %.1f, %d matching APs)",
                prediction.location_name, prediction.score, prediction.matched_count,
            )
            anchor = self.engine.anchor_for(prediction)
            if anchor is not None and self.pdr is not None:
                self.pdr.apply_anchor(anchor)
        self._emit(prediction)
        return prediction

    async def run(self) -> None:
        """
        Loop until cancelled or `max_iterations` is reached.
        """
        while self.max_iterations is None or self.iterations < self.max_iterations:
            self.run_once()
            if self.max_iterations is not None and self.iterations >= self.max_iterations:
                break
            await asyncio.sleep(self.interval_s)

    async def start(self) -> asyncio.Task:
        """
        Schedule the loop on the running event loop. Restarting stops and
        awaits any previous task, then counts iterations from zero.
        """
        await self.stop()
        self.iterations = 0
        self._task = asyncio.get_running_loop().create_task(self.run())
        logger.info("Continuous prediction started (every %.1fs)", self.interval_s)
        return self._task

    async def stop(self) -> None:
        """
        Cancel the loop and wait for it to finish.
        """
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Continuous prediction stopped")

    def _emit(self, prediction: Optional[Prediction]) -> None:
        if self.on_prediction is not None:
            self.on_prediction(prediction)
