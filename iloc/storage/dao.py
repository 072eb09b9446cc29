import json
from sqlite3 import Connection, Row
from typing import Iterable, Optional
from iloc.utils.validate import AccessPointReading, Fingerprint
from iloc.storage.db import init_db
from iloc.utils.log import get_logger

logger = get_logger(__name__)


def site_db_path(site: str) -> str:
    """
    SQLite file backing a named site.
    """
    return f"iloc_{site}.sqlite"


def readings_to_json(readings: Iterable[AccessPointReading]) -> str:
    """
    Serialize readings as a JSON array using the on-wire field names
    (bssid, ssid, rssi, frequency, ageMs).
    """
    return json.dumps([r.model_dump(by_alias=True) for r in readings])


def readings_from_json(raw: Optional[str]) -> list[AccessPointReading]:
    """
    Inverse of readings_to_json; a blank column decodes to no readings.
    """
    if not raw or not raw.strip():
        return []
    return [AccessPointReading.model_validate(obj) for obj in json.loads(raw)]


class FingerprintDAO:
    """
    Encapsulates all inserts/queries against the fingerprint store.

    Each query returns a fully materialised list, so callers iterate a
    consistent snapshot even if another handle writes meanwhile.
    """

    def __init__(self, db_path: str):
        """
        Create/connect and apply schema if needed.
        """
        self.db_path = db_path
        self.conn: Connection = init_db(db_path)

    def close(self) -> None:
        self.conn.close()

    def insert(self, fingerprint: Fingerprint) -> int:
        """
        Persist a new fingerprint and return its assigned id.

        Any id already set on `fingerprint` is ignored.
        """
        with self.conn:
            cur = self.conn.execute(
                """
                INSERT INTO fingerprints
                  (location_name, timestamp, readings_json, x_meters, y_meters)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    fingerprint.location_name,
                    fingerprint.timestamp,
                    readings_to_json(fingerprint.readings),
                    fingerprint.x_meters,
                    fingerprint.y_meters,
                ),
            )
        logger.debug("Inserted fingerprint id=%d (%s)", cur.lastrowid, fingerprint.location_name)
        return cur.lastrowid

    def list_all(self) -> list[Fingerprint]:
        """
        Return every fingerprint, most recent first.
        """
        cursor = self.conn.execute(
            """
            SELECT id, location_name, timestamp, readings_json, x_meters, y_meters
            FROM fingerprints
            ORDER BY timestamp DESC, id DESC
            """
        )
        return [self._to_model(row) for row in cursor.fetchall()]

    def get_by_id(self, fingerprint_id: int) -> Optional[Fingerprint]:
        """
        Return one fingerprint, or None if it does not exist.
        """
        cursor = self.conn.execute(
            """
            SELECT id, location_name, timestamp, readings_json, x_meters, y_meters
            FROM fingerprints
            WHERE id = ?
            """,
            (fingerprint_id,),
        )
        row = cursor.fetchone()
        return self._to_model(row) if row is not None else None

    def delete_by_id(self, fingerprint_id: int) -> bool:
        """
        Remove one fingerprint. Returns whether a row was deleted.
        """
        with self.conn:
            cur = self.conn.execute("DELETE FROM fingerprints WHERE id = ?", (fingerprint_id,))
        return cur.rowcount > 0

    def clear_all(self) -> int:
        """
        Remove every fingerprint. Returns the number of rows deleted.
        """
        with self.conn:
            cur = self.conn.execute("DELETE FROM fingerprints")
        return cur.rowcount

    def count(self) -> int:
        row = self.conn.execute("SELECT COUNT(*) AS n FROM fingerprints").fetchone()
        return row["n"]

    @staticmethod
    def _to_model(row: Row) -> Fingerprint:
        return Fingerprint(
            id=row["id"],
            location_name=row["location_name"],
            timestamp=row["timestamp"],
            readings=readings_from_json(row["readings_json"]),
            x_meters=row["x_meters"],
            y_meters=row["y_meters"],
        )
