"""Shared fixtures: sample scans, a three-room fingerprint database and a
throwaway SQLite store."""

import pytest

from iloc.storage.dao import FingerprintDAO
from iloc.utils.validate import AccessPointReading, Fingerprint


def make_readings(*pairs):
    """Build readings from (bssid, rssi) pairs."""
    return [AccessPointReading(bssid=bssid, ssid=None, rssi=rssi, frequency=2412, age_ms=0) for bssid, rssi in pairs]


def make_fingerprint(name, pairs, x=None, y=None, fp_id=0, timestamp=0):
    return Fingerprint(
        id=fp_id,
        location_name=name,
        timestamp=timestamp,
        readings=make_readings(*pairs),
        x_meters=x,
        y_meters=y,
    )


@pytest.fixture
def scan():
    return make_readings(("AA:01", -50), ("AA:02", -60), ("AA:03", -70), ("AA:04", -55))


@pytest.fixture
def room_database():
    """Room A nearly identical to `scan`, B partially overlapping, C mostly disjoint."""
    return [
        make_fingerprint(
            "Room A", [("AA:01", -48), ("AA:02", -62), ("AA:03", -72), ("AA:04", -53)], 1.0, 2.0, fp_id=1
        ),
        make_fingerprint(
            "Room B", [("AA:01", -55), ("AA:02", -58), ("AA:03", -68), ("AA:05", -65)], 5.0, 4.0, fp_id=2
        ),
        make_fingerprint(
            "Room C", [("AA:01", -45), ("AA:02", -65), ("AA:06", -70), ("AA:07", -75)], 10.0, 15.0, fp_id=3
        ),
    ]


@pytest.fixture
def dao(tmp_path):
    store = FingerprintDAO(str(tmp_path / "fingerprints.sqlite"))
    yield store
    store.close()
