# iloc/analysis/types.py

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Point2D:
    """
    Plain 2-D vector in metres, used for dead-reckoning arithmetic.

    Parameters
    ----------
    x : float
        East-ish component, in the site's local frame.
    y : float
        North-ish component, in the site's local frame.
    """
    x: float = 0.0
    y: float = 0.0

    def __add__(self, other: Point2D) -> Point2D:
        return Point2D(self.x + other.x, self.y + other.y)

    def __sub__(self, other: Point2D) -> Point2D:
        return Point2D(self.x - other.x, self.y - other.y)

    def __mul__(self, scalar: float) -> Point2D:
        return Point2D(self.x * scalar, self.y * scalar)

    __rmul__ = __mul__

    def __truediv__(self, scalar: float) -> Point2D:
        return Point2D(self.x / scalar, self.y / scalar)

    def as_tuple(self) -> tuple[float, float]:
        return (self.x, self.y)


ORIGIN = Point2D(0.0, 0.0)


@dataclass(frozen=True)
class Position:
    """
    Coordinate estimate produced by a positioning strategy.

    Parameters
    ----------
    x : float
        Estimated x coordinate in metres.
    y : float
        Estimated y coordinate in metres.
    location_name : str
        Label of the fingerprint the estimate is attributed to.
    confidence : float
        Strategy-specific score; higher is better. Not comparable across
        strategies.
    """
    x: float
    y: float
    location_name: str
    confidence: float


@dataclass(frozen=True)
class Prediction:
    """
    Label-only match from the BSSID-overlap matcher.

    Parameters
    ----------
    fingerprint_id : int
        Store id of the winning fingerprint.
    location_name : str
        Its label.
    score : float
        Mean absolute RSSI difference per matched AP (lower is better).
    matched_count : int
        Number of the fingerprint's APs also present in the scan.
    """
    fingerprint_id: int
    location_name: str
    score: float
    matched_count: int
