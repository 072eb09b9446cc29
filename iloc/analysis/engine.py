"""
Localization engine: fingerprint persistence requests, the BSSID-overlap
label matcher, and dispatch to the active positioning strategy.
"""

from __future__ import annotations
import time
from typing import Optional

from iloc.storage.dao import FingerprintDAO
from iloc.analysis.config import LocalizationConfig
from iloc.analysis.strategies import Algorithm, PositioningStrategy, strategy_for
from iloc.analysis.types import Point2D, Position, Prediction
from iloc.utils.validate import AccessPointReading, Fingerprint
from iloc.utils.log import get_logger

logger = get_logger(__name__)


class LocalizationEngine:
    """
    Orchestrates the fingerprint store and the positioning strategies.

    The store handle is passed in and owned by the caller. Apart from the
    active-strategy selection, the engine keeps no mutable state: every
    prediction works on a fresh snapshot from the store.
    """
    def __init__(self, dao: FingerprintDAO, cfg: Optional[LocalizationConfig] = None) -> None:
        self.dao = dao
        self.cfg = cfg or LocalizationConfig.default()
        self._algorithm = Algorithm.EUCLIDEAN
        self._strategy: PositioningStrategy = strategy_for(
            Algorithm.EUCLIDEAN, k=self.cfg.wknn_k, no_signal=self.cfg.no_signal
        )

    @property
    def algorithm(self) -> Algorithm:
        return self._algorithm

    @property
    def strategy(self) -> PositioningStrategy:
        return self._strategy

    def set_algorithm(self, name: str) -> None:
        """
        Select the active strategy by name (EUCLIDEAN, WKNN, COSINE; any case).
        Unrecognised names fall back to EUCLIDEAN.
        """
        self._algorithm = Algorithm.parse(name)
        self._strategy = strategy_for(self._algorithm, k=self.cfg.wknn_k, no_signal=self.cfg.no_signal)
        logger.info("Positioning algorithm: %s", self._algorithm.value)

    def save_fingerprint(
        self,
        label: str,
        readings: list[AccessPointReading],
        x: Optional[float] = None,
        y: Optional[float] = None,
    ) -> None:
        """
        Persist a new fingerprint for `label`.

        Silently does nothing when the label is blank or there are no
        readings; callers wanting user feedback check those themselves.
        """
        if not label or not label.strip() or not readings:
            logger.debug("Ignoring save: label=%r, %d readings", label, len(readings or []))
            return
        fingerprint = Fingerprint(
            location_name=label.strip(),
            timestamp=int(time.time() * 1000),
            readings=list(readings),
            x_meters=x,
            y_meters=y,
        )
        fp_id = self.dao.insert(fingerprint)
        logger.info(
            "Saved fingerprint %d for %r (%d APs, coords=%s)",
            fp_id, fingerprint.location_name, len(readings),
            (x, y) if fingerprint.has_coordinates else None,
        )

    def predict(self, readings: list[AccessPointReading]) -> Optional[Prediction]:
        """
        Label-only match of a scan against every stored fingerprint.

        For each fingerprint, every stored AP found in the scan is a match and
        contributes |current - stored|; every stored AP missing from the scan
        contributes the fixed missing-AP penalty. The score is the total
        divided by the number of matches only. Fingerprints with no match at
        all are skipped. Lowest score wins; ties keep the first.
        """
        fingerprints = self.dao.list_all()
        if not fingerprints or not readings:
            return None

        current = {r.bssid: r for r in readings}
        best: Optional[Prediction] = None
        for fp in fingerprints:
            total_diff = 0.0
            matches = 0
            for stored in fp.readings:
                seen = current.get(stored.bssid)
                if seen is not None:
                    matches += 1
                    total_diff += abs(seen.rssi - stored.rssi)
                else:
                    total_diff += self.cfg.missing_ap_penalty
            if matches == 0:
                continue
            score = total_diff / matches
            if best is None or score < best.score:
                best = Prediction(
                    fingerprint_id=fp.id,
                    location_name=fp.location_name,
                    score=score,
                    matched_count=matches,
                )
        return best

    def update_position(self, readings: list[AccessPointReading]) -> Optional[Position]:
        """
        Coordinate estimate from the active strategy over the full store.
        """
        if not readings:
            return None
        database = self.dao.list_all()
        if not database:
            return None
        return self._strategy.calculate_position(readings, database)

    def anchor_for(self, prediction: Optional[Prediction]) -> Optional[Point2D]:
        """
        Coordinate of the predicted fingerprint, for correcting dead reckoning.
        None when there is no prediction, or its fingerprint is gone or
        uncalibrated.
        """
        if prediction is None:
            return None
        fp = self.dao.get_by_id(prediction.fingerprint_id)
        if fp is None or not fp.has_coordinates:
            return None
        return Point2D(fp.x_meters, fp.y_meters)

    def fingerprints(self) -> list[Fingerprint]:
        return self.dao.list_all()

    def delete_fingerprint(self, fingerprint_id: int) -> bool:
        deleted = self.dao.delete_by_id(fingerprint_id)
        if deleted:
            logger.info("Deleted fingerprint %d", fingerprint_id)
        return deleted

    def clear(self) -> int:
        n = self.dao.clear_all()
        logger.info("Cleared %d fingerprints", n)
        return n
