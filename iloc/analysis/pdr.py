"""
Pedestrian dead reckoning: integrate step and heading events into a running
position, keep a short trail of past positions, and blend toward anchor fixes
over several steps instead of jumping.

The engine is driven through explicit ports:
- on_heading(azimuth_rad) / on_rotation_vector(values): heading input
- on_step(): one detected step
- set_listener(callback): output, called with (position, trail)
"""

from __future__ import annotations
import math
import threading
from collections import deque
from typing import Callable, Optional, Sequence

from iloc.analysis.config import PdrConfig
from iloc.analysis.types import ORIGIN, Point2D
from iloc.utils.orientation import azimuth_from_rotation_vector
from iloc.utils.log import get_logger

logger = get_logger(__name__)

PositionListener = Callable[[Point2D, tuple[Point2D, ...]], None]


class PdrEngine:
    """
    Step-and-heading dead-reckoning engine.

    Heading and step events are only consumed while running. All state is
    mutated under one lock, so producers on different threads never interleave
    mid-update; the listener is called outside the lock.
    """
    def __init__(self, cfg: Optional[PdrConfig] = None) -> None:
        self.cfg = cfg or PdrConfig.default()
        self._lock = threading.RLock()
        self._running = False
        self._step_length = self.cfg.step_length_m
        self._heading = 0.0
        self._position = ORIGIN
        self._trail: deque[Point2D] = deque(maxlen=self.cfg.max_trail_points)
        self._correction_per_step = ORIGIN
        self._correction_steps_remaining = 0
        self._listener: Optional[PositionListener] = None

    # ------------------------------------------------------------------
    # lifecycle

    def start(self) -> None:
        with self._lock:
            if self._running:
                return
            self._running = True
        logger.debug("PDR started")

    def stop(self) -> None:
        with self._lock:
            if not self._running:
                return
            self._running = False
        logger.debug("PDR stopped")

    def reset(self) -> None:
        """
        Back to the origin: empty trail, no pending correction.
        """
        with self._lock:
            self._position = ORIGIN
            self._trail.clear()
            self._correction_per_step = ORIGIN
            self._correction_steps_remaining = 0
            snapshot = self._snapshot()
        self._notify(*snapshot)

    # ------------------------------------------------------------------
    # configuration

    def set_listener(self, listener: Optional[PositionListener]) -> None:
        with self._lock:
            self._listener = listener

    def set_step_length(self, length_m: float) -> None:
        """
        Change the stride length. Non-positive values are ignored.
        """
        if not length_m > 0:
            return
        with self._lock:
            self._step_length = float(length_m)

    # ------------------------------------------------------------------
    # input ports

    def on_heading(self, azimuth_rad: float) -> None:
        """
        Replace the current heading (radians). No smoothing.
        """
        with self._lock:
            if not self._running:
                return
            self._heading = float(azimuth_rad)

    def on_rotation_vector(self, values: Sequence[float]) -> None:
        """
        Heading update from a raw rotation-vector sensor sample.
        """
        self.on_heading(azimuth_from_rotation_vector(values))

    def on_step(self) -> None:
        """
        Advance one stride along the current heading, plus one slice of any
        pending anchor correction, then notify the listener.
        """
        with self._lock:
            if not self._running:
                return
            displacement = Point2D(
                self._step_length * math.cos(self._heading),
                self._step_length * math.sin(self._heading),
            )
            correction = ORIGIN
            if self._correction_steps_remaining > 0:
                correction = self._correction_per_step
                self._correction_steps_remaining -= 1
            self._position = self._position + displacement + correction
            self._trail.append(self._position)
            snapshot = self._snapshot()
        self._notify(*snapshot)

    def apply_anchor(self, anchor: Point2D, smoothing_steps: Optional[int] = None) -> None:
        """
        Pull the track toward `anchor` over the next `smoothing_steps` steps.

        The gap between the anchor and the current position is split evenly
        across those steps; a later anchor replaces a pending one. Non-positive
        step counts are ignored.
        """
        steps = self.cfg.correction_steps if smoothing_steps is None else smoothing_steps
        if steps <= 0:
            return
        with self._lock:
            self._correction_per_step = (anchor - self._position) / steps
            self._correction_steps_remaining = steps
        logger.debug("Anchor (%.2f, %.2f) over %d steps", anchor.x, anchor.y, steps)

    # ------------------------------------------------------------------
    # read-only state

    @property
    def running(self) -> bool:
        return self._running

    @property
    def position(self) -> Point2D:
        return self._position

    @property
    def heading(self) -> float:
        return self._heading

    @property
    def step_length(self) -> float:
        return self._step_length

    @property
    def trail(self) -> tuple[Point2D, ...]:
        with self._lock:
            return tuple(self._trail)

    @property
    def correction_steps_remaining(self) -> int:
        return self._correction_steps_remaining

    # ------------------------------------------------------------------

    def _snapshot(self) -> tuple[Optional[PositionListener], Point2D, tuple[Point2D, ...]]:
        return self._listener, self._position, tuple(self._trail)

    @staticmethod
    def _notify(
        listener: Optional[PositionListener],
        position: Point2D,
        trail: tuple[Point2D, ...],
    ) -> None:
        if listener is not None:
            listener(position, trail)
