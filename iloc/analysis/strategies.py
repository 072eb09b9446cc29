"""
Positioning strategies: turn a live scan plus the fingerprint database into a
coordinate estimate.

Three interchangeable algorithms share one contract,
`calculate_position(scan, database) -> Position | None`:
- EuclideanStrategy: nearest fingerprint in RSSI space
- WKNNStrategy: inverse-distance weighted average of the k nearest
- CosineSimilarityStrategy: best cosine match on noise-floor-shifted RSSI

All comparisons run over the union of BSSIDs seen on either side. An AP seen
on only one side is not ignored: the missing side reads as NO_SIGNAL.
Fingerprints without coordinates are never returned.
"""

from __future__ import annotations
import math
from abc import ABC, abstractmethod
from enum import Enum
from typing import Iterable, Optional

from iloc.analysis.types import Position
from iloc.utils.log import get_logger
from iloc.utils.validate import AccessPointReading, Fingerprint

logger = get_logger(__name__)

# Noise floor (dBm): the weakest signal we model
NO_SIGNAL = -100.0

# keeps WKNN weights finite for an exact match
WEIGHT_EPSILON = 0.1


def _by_bssid(readings: Iterable[AccessPointReading]) -> dict[str, float]:
    return {r.bssid: float(r.rssi) for r in readings}


def union_distance(
    scan: dict[str, float],
    stored: dict[str, float],
    no_signal: float = NO_SIGNAL,
) -> float:
    """
    Euclidean distance between two RSSI maps over the union of their BSSIDs.

    Parameters
    ----------
    scan
        BSSID -> RSSI of the live scan.
    stored
        BSSID -> RSSI of a stored fingerprint.
    no_signal
        Value substituted on the side where a BSSID is absent.

    Returns
    -------
    float
        sqrt of the accumulated squared differences. Not normalised by the
        number of APs, so sparse fingerprints are not favoured.
    """
    total = 0.0
    for bssid in scan.keys() | stored.keys():
        diff = scan.get(bssid, no_signal) - stored.get(bssid, no_signal)
        total += diff * diff
    return math.sqrt(total)


def cosine_similarity(
    scan: dict[str, float],
    stored: dict[str, float],
    no_signal: float = NO_SIGNAL,
) -> float:
    """
    Cosine similarity of two RSSI maps after shifting by the noise floor.

    Each value becomes max(0, rssi - no_signal), so -30 dBm -> 70 and an
    absent AP -> 0. Returns 0.0 when either vector is all zeros.
    """
    dot = norm_a = norm_b = 0.0
    for bssid in scan.keys() | stored.keys():
        a = max(0.0, scan.get(bssid, no_signal) - no_signal)
        b = max(0.0, stored.get(bssid, no_signal) - no_signal)
        dot += a * b
        norm_a += a * a
        norm_b += b * b
    if norm_a <= 0 or norm_b <= 0:
        return 0.0
    return dot / (math.sqrt(norm_a) * math.sqrt(norm_b))


class PositioningStrategy(ABC):
    """
    Shared contract for all positioning algorithms.

    Implementations only read their inputs, so one instance may be used from
    several callers at once.
    """
    def __init__(self, no_signal: float = NO_SIGNAL) -> None:
        self.no_signal = no_signal

    @abstractmethod
    def calculate_position(
        self,
        scan: list[AccessPointReading],
        database: list[Fingerprint],
    ) -> Optional[Position]:
        """
        Estimate the position of `scan` against `database`.

        Returns None when either input is empty or no fingerprint with
        coordinates qualifies.
        """


class EuclideanStrategy(PositioningStrategy):
    """
    Nearest calibrated fingerprint by union Euclidean distance.

    confidence = max(0, 100 - distance).
    """
    def calculate_position(self, scan, database):
        if not scan or not database:
            return None

        scan_map = _by_bssid(scan)
        best: Optional[Fingerprint] = None
        best_distance = math.inf
        for fp in database:
            if not fp.has_coordinates:
                continue
            d = union_distance(scan_map, _by_bssid(fp.readings), self.no_signal)
            if d < best_distance:
                best, best_distance = fp, d

        if best is None:
            return None
        return Position(
            x=best.x_meters,
            y=best.y_meters,
            location_name=best.location_name,
            confidence=max(0.0, 100.0 - best_distance),
        )


class WKNNStrategy(PositioningStrategy):
    """
    Weighted k-nearest-neighbour: inverse-distance weighted mean of the k
    nearest calibrated fingerprints.

    The label is that of the single nearest neighbour, and
    confidence = max(0, 100 - nearest distance).
    """
    def __init__(self, k: int = 3, no_signal: float = NO_SIGNAL) -> None:
        super().__init__(no_signal)
        if k < 1:
            raise ValueError(f"k must be >= 1, got {k}")
        self.k = k

    def calculate_position(self, scan, database):
        if not scan or not database:
            return None

        scan_map = _by_bssid(scan)
        ranked = sorted(
            ((fp, union_distance(scan_map, _by_bssid(fp.readings), self.no_signal)) for fp in database),
            key=lambda pair: pair[1],
        )
        neighbours = [(fp, d) for fp, d in ranked if fp.has_coordinates][: self.k]
        if not neighbours:
            return None

        total_w = sum_x = sum_y = 0.0
        for fp, d in neighbours:
            w = 1.0 / (d + WEIGHT_EPSILON)
            total_w += w
            sum_x += w * fp.x_meters
            sum_y += w * fp.y_meters

        nearest, nearest_d = neighbours[0]
        return Position(
            x=sum_x / total_w,
            y=sum_y / total_w,
            location_name=nearest.location_name,
            confidence=max(0.0, 100.0 - nearest_d),
        )


class CosineSimilarityStrategy(PositioningStrategy):
    """
    Calibrated fingerprint with the highest cosine similarity.

    confidence = similarity * 100.
    """
    def calculate_position(self, scan, database):
        if not scan or not database:
            return None

        scan_map = _by_bssid(scan)
        best: Optional[Fingerprint] = None
        best_similarity = -1.0
        for fp in database:
            if not fp.has_coordinates:
                continue
            s = cosine_similarity(scan_map, _by_bssid(fp.readings), self.no_signal)
            if s > best_similarity:
                best, best_similarity = fp, s

        if best is None:
            return None
        return Position(
            x=best.x_meters,
            y=best.y_meters,
            location_name=best.location_name,
            confidence=best_similarity * 100.0,
        )


class Algorithm(str, Enum):
    """
    The closed set of selectable positioning algorithms.
    """
    EUCLIDEAN = "EUCLIDEAN"
    WKNN = "WKNN"
    COSINE = "COSINE"

    @classmethod
    def parse(cls, name: Optional[str]) -> Algorithm:
        """
        Case-insensitive lookup; anything unrecognised is EUCLIDEAN.
        """
        key = (name or "").strip().upper()
        try:
            return cls(key)
        except ValueError:
            logger.warning("Unknown algorithm %r, falling back to %s", name, cls.EUCLIDEAN.value)
            return cls.EUCLIDEAN


def strategy_for(
    algorithm: Algorithm | str,
    k: int = 3,
    no_signal: float = NO_SIGNAL,
) -> PositioningStrategy:
    """
    Build the strategy for an algorithm (or algorithm name).
    """
    if not isinstance(algorithm, Algorithm):
        algorithm = Algorithm.parse(algorithm)
    match algorithm:
        case Algorithm.WKNN:
            return WKNNStrategy(k=k, no_signal=no_signal)
        case Algorithm.COSINE:
            return CosineSimilarityStrategy(no_signal=no_signal)
        case _:
            return EuclideanStrategy(no_signal=no_signal)
