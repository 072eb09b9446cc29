"""
Pydantic schemas for scan records, stored fingerprints, sensor events and
HTTP request bodies.
"""

from typing import Annotated, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator


class AccessPointReading(BaseModel):
    """
    One observed Wi-Fi access point at scan time.

    `age_ms` is milliseconds since the platform captured the reading; on the
    wire it is spelled `ageMs`.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    bssid: str
    ssid: Optional[str] = None
    rssi: int
    frequency: int = 0
    age_ms: int = Field(default=0, ge=0, alias="ageMs")


class Fingerprint(BaseModel):
    """
    A labeled snapshot of access point readings, optionally calibrated at a
    known (x, y) coordinate in metres.
    """
    model_config = ConfigDict(frozen=True)

    id: int = 0
    location_name: str
    timestamp: int
    readings: list[AccessPointReading]
    x_meters: Optional[float] = None
    y_meters: Optional[float] = None

    @field_validator("location_name")
    @classmethod
    def _label_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("location_name must not be blank")
        return v

    @property
    def has_coordinates(self) -> bool:
        return self.x_meters is not None and self.y_meters is not None


class ScanFile(BaseModel):
    """
    Envelope form of a scan dump: {"readings": [...]}.
    """
    readings: list[AccessPointReading]


# -----------------------------------------------------------------------------
# Sensor events (JSON lines, one object per event)

class HeadingEvent(BaseModel):
    type: Literal["heading"]
    azimuth: float  # radians


class RotationEvent(BaseModel):
    type: Literal["rotation"]
    values: list[float] = Field(min_length=3, max_length=5)


class StepEvent(BaseModel):
    type: Literal["step"]


class AnchorEvent(BaseModel):
    type: Literal["anchor"]
    x: float
    y: float
    steps: Optional[int] = None


class ResetEvent(BaseModel):
    type: Literal["reset"]


SensorEvent = Annotated[
    Union[HeadingEvent, RotationEvent, StepEvent, AnchorEvent, ResetEvent],
    Field(discriminator="type"),
]


# -----------------------------------------------------------------------------
# HTTP request bodies

class SaveFingerprintRequest(BaseModel):
    location_name: str
    readings: list[AccessPointReading]
    x_meters: Optional[float] = None
    y_meters: Optional[float] = None


class ScanRequest(BaseModel):
    readings: list[AccessPointReading]
    algorithm: Optional[str] = None


class HeadingRequest(BaseModel):
    azimuth: Optional[float] = None
    rotation_vector: Optional[list[float]] = None


class AnchorRequest(BaseModel):
    x: float
    y: float
    steps: Optional[int] = None


class PdrState(BaseModel):
    """
    Snapshot of the dead-reckoning engine for the UI.
    """
    running: bool
    x: float
    y: float
    heading: float
    step_length: float
    trail: list[tuple[float, float]]
    correction_steps_remaining: int
