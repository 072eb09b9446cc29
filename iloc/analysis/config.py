# iloc/analysis/config.py

from dataclasses import dataclass

@dataclass
class LocalizationConfig:
    """
    Configuration for fingerprint matching and the continuous prediction loop.

    Attributes
    ----------
    no_signal
        RSSI (dBm) substituted for an AP seen on only one side of a comparison.
    missing_ap_penalty
        Difference (dB) charged by the label matcher for a stored AP absent
        from the live scan.
    wknn_k
        Neighbour count used when the WKNN algorithm is selected by name.
    fresh_threshold_ms
        Maximum reading age (ms) the scan source lets through.
    prediction_interval_s
        Sleep (s) between iterations of the continuous prediction loop.
    """
    no_signal:             float = -100.0
    missing_ap_penalty:    float = 18.0
    wknn_k:                int   = 3
    fresh_threshold_ms:    int   = 7_000
    prediction_interval_s: float = 5.0

    @classmethod
    def default(cls):
        """Preset matching the handheld app."""
        return cls()

    @classmethod
    def responsive(cls):
        """Preset for faster UI feedback (shorter loop, stricter freshness)."""
        return cls(
            fresh_threshold_ms=4_000,
            prediction_interval_s=2.0,
        )


@dataclass
class PdrConfig:
    """
    Configuration for the pedestrian dead-reckoning engine.

    Attributes
    ----------
    step_length_m
        Initial stride length (m).
    max_trail_points
        Capacity of the ghost trail; oldest points are evicted first.
    correction_steps
        Default number of steps over which an anchor correction is spread.
    """
    step_length_m:    float = 0.7
    max_trail_points: int   = 20
    correction_steps: int   = 6

    @classmethod
    def default(cls):
        """Preset for an average adult walking pace."""
        return cls()

    @classmethod
    def short_stride(cls):
        """Preset for slow walking or shorter users."""
        return cls(step_length_m=0.55)
