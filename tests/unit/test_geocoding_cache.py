"""ABOUTME: Tests for the persistent geocoding cache
ABOUTME: File format, normalization, corruption tolerance and clearing"""

import json
import threading
from pathlib import Path

import pytest

from geocoding_cache import (
    CACHE_FORMAT_VERSION,
    GeocodingCache,
    GeocodingCacheEntry,
    default_cache_path,
)
from weather_models import Coordinates


# Test constants
LONDON = GeocodingCacheEntry(Coordinates(51.5085, -0.1257), 'London')
PARIS = GeocodingCacheEntry(Coordinates(48.8534, 2.3488), 'Paris')
WRITER_THREADS = 8


class TestGeocodingCache:
    """Test cache reads, writes and clearing"""

    def test_missing_file_is_empty(self, geocoding_cache: GeocodingCache) -> None:
        assert geocoding_cache.get('London') is None
        assert len(geocoding_cache) == 0

    def test_put_then_get(self, geocoding_cache: GeocodingCache) -> None:
        geocoding_cache.put('London', LONDON)
        assert geocoding_cache.get('London') == LONDON

    def test_keys_are_normalized(self, geocoding_cache: GeocodingCache) -> None:
        geocoding_cache.put('  New   York ', PARIS)
        assert geocoding_cache.get('new york') == PARIS
        assert geocoding_cache.get('NEW YORK') == PARIS
        assert list(geocoding_cache.entries()) == ['new york']

    def test_last_write_wins(self, geocoding_cache: GeocodingCache) -> None:
        geocoding_cache.put('london', LONDON)
        geocoding_cache.put('London', PARIS)
        assert geocoding_cache.get('london') == PARIS
        assert len(geocoding_cache) == 1

    def test_file_format(self, geocoding_cache: GeocodingCache) -> None:
        geocoding_cache.put('London', LONDON)

        data = json.loads(Path(geocoding_cache.path).read_text(encoding='utf-8'))
        assert data['version'] == CACHE_FORMAT_VERSION
        assert data['entries']['london'] == {
            'name': 'London',
            'latitude': 51.5085,
            'longitude': -0.1257,
        }

    def test_persists_across_handles(self, geocoding_cache: GeocodingCache) -> None:
        geocoding_cache.put('London', LONDON)
        other = GeocodingCache(geocoding_cache.path)
        assert other.get('london') == LONDON

    def test_creates_parent_directories(self, tmp_path: Path) -> None:
        cache = GeocodingCache(tmp_path / 'nested' / 'dir' / 'geocoding.json')
        cache.put('London', LONDON)
        assert cache.path.exists()
        assert not cache.path.with_suffix('.json.tmp').exists()

    def test_clear_removes_entries(self, geocoding_cache: GeocodingCache) -> None:
        geocoding_cache.put('London', LONDON)
        geocoding_cache.clear()
        assert geocoding_cache.get('London') is None
        assert not geocoding_cache.path.exists()

    def test_clear_without_file(self, geocoding_cache: GeocodingCache) -> None:
        """Clearing a cache that was never written succeeds"""
        geocoding_cache.clear()
        assert geocoding_cache.get('London') is None

    def test_clear_when_path_is_directory(self, tmp_path: Path) -> None:
        cache = GeocodingCache(tmp_path / 'geocoding.json')
        cache.path.mkdir()

        cache.clear()

        assert cache.path.is_dir()
        assert cache.get('London') is None

    def test_concurrent_writers_keep_every_entry(self, geocoding_cache: GeocodingCache) -> None:
        def write(index: int) -> None:
            GeocodingCache(geocoding_cache.path).put(
                f'city {index}', GeocodingCacheEntry(Coordinates(index, index), f'City {index}')
            )

        threads = [threading.Thread(target=write, args=(i,)) for i in range(WRITER_THREADS)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(geocoding_cache) == WRITER_THREADS


class TestCorruptCache:
    """A damaged cache file never raises"""

    @pytest.mark.parametrize(
        'content',
        [
            '',
            '{"version": 1, "entries": {"london": {"name": "Lon',
            'not json at all',
            '[1, 2, 3]',
            '{"version": 1, "entries": []}',
        ],
    )
    def test_corrupt_file_reads_as_empty(self, geocoding_cache: GeocodingCache, content: str) -> None:
        geocoding_cache.path.write_text(content, encoding='utf-8')
        assert geocoding_cache.get('London') is None
        assert geocoding_cache.entries() == {}

    def test_corrupt_file_is_replaced_on_put(self, geocoding_cache: GeocodingCache) -> None:
        geocoding_cache.path.write_text('garbage', encoding='utf-8')
        geocoding_cache.put('London', LONDON)
        assert geocoding_cache.get('London') == LONDON

    def test_malformed_entries_and_unknown_keys_ignored(
        self, geocoding_cache: GeocodingCache
    ) -> None:
        payload = {
            'version': 1,
            'generated_by': 'something else',
            'entries': {
                'london': {'name': 'London', 'latitude': 51.5085, 'longitude': -0.1257},
                'broken': {'name': 'Broken', 'latitude': 'north'},
                'scalar': 42,
            },
        }
        geocoding_cache.path.write_text(json.dumps(payload), encoding='utf-8')

        assert geocoding_cache.entries() == {'london': LONDON}


class TestDefaultCachePath:
    """Test the per-user cache location"""

    def test_linux_uses_xdg_cache_home(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setattr('geocoding_cache.sys.platform', 'linux')
        monkeypatch.setenv('XDG_CACHE_HOME', str(tmp_path))
        assert default_cache_path() == tmp_path / 'weather-relay' / 'geocoding.json'

    def test_macos_uses_library_caches(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr('geocoding_cache.sys.platform', 'darwin')
        assert default_cache_path() == (
            Path.home() / 'Library' / 'Caches' / 'weather-relay' / 'geocoding.json'
        )

    def test_cache_uses_default_path(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setattr('geocoding_cache.sys.platform', 'linux')
        monkeypatch.setenv('XDG_CACHE_HOME', str(tmp_path))
        assert GeocodingCache().path == tmp_path / 'weather-relay' / 'geocoding.json'
