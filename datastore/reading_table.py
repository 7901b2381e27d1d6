from __future__ import annotations

import bisect
import json
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import AbstractSet, Iterable, List, Optional

from models.errors import StorageUnavailable
from models.records import Reading
from settings import get_settings


def _to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class ReadingTable:
    """Append-only reading store kept ordered by timestamp."""

    def __init__(self, name: str, persistence_path: Optional[Path] = None) -> None:
        self.name = name
        self._readings: List[Reading] = []
        self.persistence_path = persistence_path
        self._lock = Lock()
        if persistence_path:
            try:
                persistence_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise StorageUnavailable(
                    f"Cannot prepare storage directory for table {name!r}: {exc}"
                ) from exc
            self._load_from_disk()

    def insert(
        self,
        temperature: float,
        device_id: str,
        timestamp: Optional[datetime] = None,
    ) -> Reading:
        moment = datetime.now(timezone.utc) if timestamp is None else _to_utc(timestamp)
        reading = Reading(temperature=temperature, device_id=device_id, timestamp=moment)
        with self._lock:
            staged = list(self._readings)
            _insort(staged, reading)
            self._commit(staged)
        return reading

    def insert_many(self, readings: Iterable[Reading]) -> int:
        """Bulk insert pre-built readings with a single write to disk."""
        inserted = 0
        with self._lock:
            staged = list(self._readings)
            for reading in readings:
                _insort(
                    staged,
                    Reading(
                        temperature=reading.temperature,
                        device_id=reading.device_id,
                        timestamp=_to_utc(reading.timestamp),
                    ),
                )
                inserted += 1
            if inserted:
                self._commit(staged)
        return inserted

    def query(
        self,
        start: datetime,
        end: datetime,
        device_ids: Optional[AbstractSet[str]] = None,
    ) -> List[Reading]:
        """Readings with ``start <= timestamp < end`` in ascending order."""
        lower = _to_utc(start)
        upper = _to_utc(end)
        with self._lock:
            first = bisect.bisect_left(self._readings, lower, key=_timestamp_key)
            last = bisect.bisect_left(self._readings, upper, key=_timestamp_key)
            window = self._readings[first:last]
        if device_ids is None:
            return window
        return [reading for reading in window if reading.device_id in device_ids]

    def latest(self, device_ids: Optional[AbstractSet[str]] = None) -> Optional[Reading]:
        with self._lock:
            for reading in reversed(self._readings):
                if device_ids is None or reading.device_id in device_ids:
                    return reading
        return None

    def count(self) -> int:
        with self._lock:
            return len(self._readings)

    def _commit(self, readings: List[Reading]) -> None:
        """Write ``readings`` to disk, then make them visible to queries."""
        self._persist(readings)
        self._readings = readings

    def _persist(self, readings: List[Reading]) -> None:
        if not self.persistence_path:
            return
        payload = {
            "readings": [
                {
                    "temperature": reading.temperature,
                    "device_id": reading.device_id,
                    "timestamp": reading.timestamp.isoformat(),
                }
                for reading in readings
            ]
        }
        try:
            self.persistence_path.write_text(json.dumps(payload, indent=2))
        except OSError as exc:
            raise StorageUnavailable(
                f"Failed to persist table {self.name!r} to {self.persistence_path}: {exc}"
            ) from exc

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "{}"
            data = json.loads(raw)
            records = data.get("readings", [])
            loaded = [
                Reading(
                    temperature=float(record["temperature"]),
                    device_id=str(record["device_id"]),
                    timestamp=_to_utc(datetime.fromisoformat(record["timestamp"])),
                )
                for record in records
            ]
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as exc:
            raise StorageUnavailable(
                f"Failed to load table {self.name!r} from {self.persistence_path}: {exc}"
            ) from exc

        loaded.sort(key=_timestamp_key)
        self._readings = loaded


def _timestamp_key(reading: Reading) -> datetime:
    return reading.timestamp


def _insort(readings: List[Reading], reading: Reading) -> None:
    # bisect_right keeps insertion order among equal timestamps.
    bisect.insort_right(readings, reading, key=_timestamp_key)


@lru_cache
def build_default_table(
    name: Optional[str] = None,
    path: Optional[str] = None,
) -> ReadingTable:
    settings = get_settings()
    table_name = "temperature_readings" if name is None else name
    table_path = settings.store_path if path is None else path
    persistence = Path(table_path) if table_path else None
    return ReadingTable(name=table_name, persistence_path=persistence)
