"""
File-based scan and sensor sources: read captured Wi-Fi scan dumps and
JSON-lines sensor event logs into validated records.
"""

import json
from pathlib import Path
from typing import Iterator, Union

from pydantic import TypeAdapter, ValidationError

from iloc.analysis.config import LocalizationConfig
from iloc.analysis.pdr import PdrEngine
from iloc.analysis.types import Point2D
from iloc.utils.log import get_logger
from iloc.utils.validate import (
    AccessPointReading,
    AnchorEvent,
    HeadingEvent,
    ResetEvent,
    RotationEvent,
    ScanFile,
    SensorEvent,
    StepEvent,
)

logger = get_logger(__name__)

# readings older than this (ms) are not considered "fresh"
_DEFAULT_FRESH_MS = LocalizationConfig.fresh_threshold_ms

_readings_adapter = TypeAdapter(list[AccessPointReading])
_event_adapter = TypeAdapter(SensorEvent)


class ScanFileError(ValueError):
    """
    Raised when a scan or sensor-event file cannot be read or decoded.
    """


def is_fresh(reading: AccessPointReading, threshold_ms: int = _DEFAULT_FRESH_MS) -> bool:
    """
    Whether a reading's age lies within [0, threshold_ms].
    """
    return 0 <= reading.age_ms <= threshold_ms


def parse_scan(raw: Union[str, bytes], fresh_threshold_ms: int = _DEFAULT_FRESH_MS) -> list[AccessPointReading]:
    """
    Decode a scan dump and keep only fresh readings.

    Parameters
    ----------
    raw
        JSON text: either an array of readings or {"readings": [...]}.
    fresh_threshold_ms
        Maximum age (ms) of a reading to keep.

    Returns
    -------
    list[AccessPointReading]
        Fresh readings, in file order. Empty means "no fresh data".
    """
    try:
        data = json.loads(raw)
        if isinstance(data, dict):
            readings = ScanFile.model_validate(data).readings
        else:
            readings = _readings_adapter.validate_python(data)
    except (ValueError, ValidationError) as e:
        raise ScanFileError(f"invalid scan: {e}") from e

    fresh = [r for r in readings if is_fresh(r, fresh_threshold_ms)]
    if len(fresh) < len(readings):
        logger.debug("Dropped %d stale readings", len(readings) - len(fresh))
    return fresh


def read_scan(file_path: Union[str, Path], fresh_threshold_ms: int = _DEFAULT_FRESH_MS) -> list[AccessPointReading]:
    """
    Read a scan dump from disk. See parse_scan.
    """
    try:
        raw = Path(file_path).read_text(encoding="utf-8")
    except OSError as e:
        raise ScanFileError(f"cannot read scan file {file_path}: {e}") from e
    return parse_scan(raw, fresh_threshold_ms)


class FileScanSource:
    """
    Scan source for the prediction loop: re-reads a scan dump each call.

    A missing file yields no readings, so a capture that has not been written
    yet is treated as "no fresh data".
    """
    def __init__(self, file_path: Union[str, Path], fresh_threshold_ms: int = _DEFAULT_FRESH_MS) -> None:
        self.file_path = Path(file_path)
        self.fresh_threshold_ms = fresh_threshold_ms

    def __call__(self) -> list[AccessPointReading]:
        if not self.file_path.exists():
            return []
        return read_scan(self.file_path, self.fresh_threshold_ms)


def read_sensor_events(file_path: Union[str, Path]) -> Iterator[SensorEvent]:
    """
    Yield sensor events from a JSON-lines file, skipping blank lines.
    """
    try:
        f = open(file_path, "r", encoding="utf-8")
    except OSError as e:
        raise ScanFileError(f"cannot read event file {file_path}: {e}") from e
    with f:
        for lineno, line in enumerate(f, start=1):
            if not line.strip():
                continue
            try:
                yield _event_adapter.validate_json(line)
            except ValidationError as e:
                raise ScanFileError(f"{file_path}:{lineno}: invalid event: {e}") from e


def replay_events(engine: PdrEngine, events: Iterator[SensorEvent]) -> int:
    """
    Feed recorded sensor events into a dead-reckoning engine.

    Returns the number of events applied.
    """
    n = 0
    for event in events:
        match event:
            case HeadingEvent():
                engine.on_heading(event.azimuth)
            case RotationEvent():
                engine.on_rotation_vector(event.values)
            case StepEvent():
                engine.on_step()
            case AnchorEvent():
                engine.apply_anchor(Point2D(event.x, event.y), event.steps)
            case ResetEvent():
                engine.reset()
        n += 1
    return n
