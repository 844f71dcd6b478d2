# ABOUTME: Persistent city-name -> coordinates cache backed by one JSON file
# ABOUTME: Whole-table read-modify-write under a lock; corrupt files read as empty

import json
import os
import sys
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from weather_models import Coordinates, normalize_city_name


APP_NAME = 'weather-relay'
CACHE_FILE_NAME = 'geocoding.json'
CACHE_FORMAT_VERSION = 1


@dataclass(frozen=True)
class GeocodingCacheEntry:
    coordinates: Coordinates
    name: str

    def to_dict(self) -> dict[str, Any]:
        return {
            'name': self.name,
            'latitude': self.coordinates.latitude,
            'longitude': self.coordinates.longitude,
        }

    @classmethod
    def from_dict(cls, data: Any) -> 'GeocodingCacheEntry | None':
        """Build an entry from stored JSON, or None if the record is unusable"""
        if not isinstance(data, dict):
            return None
        try:
            latitude = float(data['latitude'])
            longitude = float(data['longitude'])
        except (KeyError, TypeError, ValueError):
            return None
        name = data.get('name')
        return cls(
            coordinates=Coordinates(latitude, longitude),
            name=name if isinstance(name, str) else '',
        )


def default_cache_path() -> Path:
    """Per-user cache location following each platform's convention"""
    if sys.platform == 'win32':
        base = Path(os.getenv('LOCALAPPDATA') or Path.home() / 'AppData' / 'Local')
    elif sys.platform == 'darwin':
        base = Path.home() / 'Library' / 'Caches'
    else:
        base = Path(os.getenv('XDG_CACHE_HOME') or Path.home() / '.cache')
    return base / APP_NAME / CACHE_FILE_NAME


class GeocodingCache:
    """File-backed geocoding cache.

    Every operation loads the whole table from disk; writers hold a lock that
    is shared by all handles pointing at the same file, so a live-mode tick
    and an explicit clear never interleave their read-modify-write cycles.
    """

    _locks: dict[Path, threading.Lock] = {}
    _locks_guard = threading.Lock()

    def __init__(self, path: str | Path | None = None, verbose: int = 0):
        self.path = Path(path) if path else default_cache_path()
        self.verbose = verbose
        with self._locks_guard:
            self._lock = self._locks.setdefault(self.path.resolve(), threading.Lock())

    def get(self, city: str) -> GeocodingCacheEntry | None:
        """Return the cached entry for a city (any spelling of its key)"""
        with self._lock:
            return self._load().get(normalize_city_name(city))

    def put(self, city: str, entry: GeocodingCacheEntry) -> None:
        """Store or overwrite the entry for a city; last write wins"""
        with self._lock:
            table = self._load()
            table[normalize_city_name(city)] = entry
            self._save(table)

    def clear(self) -> None:
        """Drop every entry; succeeds even if the file was never created"""
        with self._lock:
            if self.path.is_dir():
                # Nothing we wrote lives there; reads already treat it as empty
                if self.verbose >= 1:
                    print(f'⚠️  Geocoding cache path {self.path} is a directory, nothing to clear')
                return
            try:
                self.path.unlink()
            except FileNotFoundError:
                pass

    def entries(self) -> dict[str, GeocodingCacheEntry]:
        with self._lock:
            return self._load()

    def __len__(self) -> int:
        return len(self.entries())

    def _load(self) -> dict[str, GeocodingCacheEntry]:
        try:
            with open(self.path, encoding='utf-8') as f:
                raw = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            # Unreadable or corrupt cache never blocks a weather lookup
            if self.verbose >= 1:
                print(f'⚠️  Ignoring unreadable geocoding cache {self.path}: {e}')
            return {}

        entries = raw.get('entries') if isinstance(raw, dict) else None
        if not isinstance(entries, dict):
            return {}

        table = {}
        for key, value in entries.items():
            entry = GeocodingCacheEntry.from_dict(value)
            if entry is not None:
                table[key] = entry
        return table

    def _save(self, table: dict[str, GeocodingCacheEntry]) -> None:
        payload = {
            'version': CACHE_FORMAT_VERSION,
            'entries': {key: entry.to_dict() for key, entry in table.items()},
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + '.tmp')
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, self.path)
