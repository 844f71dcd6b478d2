"""ABOUTME: Tests for city-name resolution and the Open-Meteo geocoder
ABOUTME: Cache hits must not touch the network; cache failures are non-fatal"""

from collections.abc import Callable
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
import requests

from geocoding_cache import GeocodingCache, GeocodingCacheEntry
from location_resolver import LocationResolver, OpenMeteoGeocoder
from weather_models import CityName, Coordinates, GeocodedLocation, ResolutionError


# Test constants
LONDON_LAT = 51.50853
LONDON_LON = -0.12574


class TestOpenMeteoGeocoder:
    """Test the default geocoding service"""

    def test_lookup_city(
        self,
        mock_requests_get: MagicMock,
        make_response: Callable[..., MagicMock],
        open_meteo_geocoding_response: dict[str, Any],
    ) -> None:
        mock_requests_get.return_value = make_response(open_meteo_geocoding_response)

        result = OpenMeteoGeocoder(language='es').lookup_city('London')

        assert result == GeocodedLocation(Coordinates(LONDON_LAT, LONDON_LON), 'London')
        params = mock_requests_get.call_args[1]['params']
        assert params['name'] == 'London'
        assert params['count'] == 1
        assert params['language'] == 'es'
        assert mock_requests_get.call_args[1]['timeout'] == 10

    def test_city_not_found(
        self, mock_requests_get: MagicMock, make_response: Callable[..., MagicMock]
    ) -> None:
        mock_requests_get.return_value = make_response({'generationtime_ms': 0.2})

        with pytest.raises(ResolutionError) as exc_info:
            OpenMeteoGeocoder().lookup_city('Atlantis')

        assert exc_info.value.not_found
        assert exc_info.value.city == 'Atlantis'

    def test_service_error(
        self, mock_requests_get: MagicMock, make_response: Callable[..., MagicMock]
    ) -> None:
        mock_requests_get.return_value = make_response(
            {'error': True, 'reason': 'Parameter count must be between 1 and 100.'},
            status_code=400,
        )

        with pytest.raises(ResolutionError, match='Parameter count') as exc_info:
            OpenMeteoGeocoder().lookup_city('London')
        assert not exc_info.value.not_found

    def test_network_failure(self, mock_requests_get: MagicMock) -> None:
        mock_requests_get.side_effect = requests.exceptions.ConnectionError('offline')

        with pytest.raises(ResolutionError, match='geocoding request failed') as exc_info:
            OpenMeteoGeocoder().lookup_city('London')
        assert not exc_info.value.not_found


class TestLocationResolver:
    """Test resolution through the cache and geocoder"""

    def _geocoder(self, label: str = 'London') -> MagicMock:
        geocoder = MagicMock()
        geocoder.lookup_city.return_value = GeocodedLocation(
            Coordinates(LONDON_LAT, LONDON_LON), label
        )
        return geocoder

    def test_coordinates_pass_through(self, mock_requests_get: MagicMock) -> None:
        geocoder = self._geocoder()
        resolver = LocationResolver(geocoder=geocoder)

        coords = Coordinates(10.0, 20.0)
        assert resolver.resolve(coords).coordinates == coords
        geocoder.lookup_city.assert_not_called()
        mock_requests_get.assert_not_called()

    def test_cache_hit_makes_no_network_call(
        self, mock_requests_get: MagicMock, geocoding_cache: GeocodingCache
    ) -> None:
        geocoding_cache.put(
            'london', GeocodingCacheEntry(Coordinates(LONDON_LAT, LONDON_LON), 'London')
        )
        resolver = LocationResolver(
            geocoder=OpenMeteoGeocoder(), cache=geocoding_cache, use_cache=True
        )

        result = resolver.resolve(CityName('  LONDON '))

        assert result.coordinates == Coordinates(LONDON_LAT, LONDON_LON)
        assert result.label == 'London'
        mock_requests_get.assert_not_called()

    def test_miss_stores_result(self, geocoding_cache: GeocodingCache) -> None:
        geocoder = self._geocoder()
        resolver = LocationResolver(geocoder=geocoder, cache=geocoding_cache)

        resolver.resolve(CityName('London'))
        resolver.resolve(CityName('london'))

        geocoder.lookup_city.assert_called_once_with('London')
        assert geocoding_cache.get('london') == GeocodingCacheEntry(
            Coordinates(LONDON_LAT, LONDON_LON), 'London'
        )

    def test_caching_disabled(self, geocoding_cache: GeocodingCache) -> None:
        geocoder = self._geocoder()
        resolver = LocationResolver(geocoder=geocoder, cache=geocoding_cache, use_cache=False)

        resolver.resolve(CityName('London'))
        resolver.resolve(CityName('London'))

        assert geocoder.lookup_city.call_count == 2
        assert len(geocoding_cache) == 0
        assert not resolver.caching_enabled

    def test_per_call_override_skips_cache(self, geocoding_cache: GeocodingCache) -> None:
        geocoding_cache.put('london', GeocodingCacheEntry(Coordinates(0.0, 0.0), 'Stale'))
        geocoder = self._geocoder()
        resolver = LocationResolver(geocoder=geocoder, cache=geocoding_cache)

        result = resolver.resolve(CityName('London'), use_cache=False)

        assert result.label == 'London'
        geocoder.lookup_city.assert_called_once()
        assert geocoding_cache.get('london').name == 'Stale'  # type: ignore[union-attr]

    def test_explicit_geocoder_overrides_default(self) -> None:
        default = self._geocoder()
        override = self._geocoder('London, GB')
        resolver = LocationResolver(geocoder=default)

        result = resolver.resolve(CityName('London'), geocoder=override)

        assert result.label == 'London, GB'
        default.lookup_city.assert_not_called()

    def test_failure_is_not_cached(self, geocoding_cache: GeocodingCache) -> None:
        geocoder = MagicMock()
        geocoder.lookup_city.side_effect = ResolutionError('Atlantis', 'city not found', True)
        resolver = LocationResolver(geocoder=geocoder, cache=geocoding_cache)

        with pytest.raises(ResolutionError):
            resolver.resolve(CityName('Atlantis'))
        assert len(geocoding_cache) == 0

    def test_blank_city_rejected(self) -> None:
        geocoder = self._geocoder()
        resolver = LocationResolver(geocoder=geocoder)

        with pytest.raises(ResolutionError) as exc_info:
            resolver.resolve(CityName('   '))
        assert exc_info.value.not_found
        geocoder.lookup_city.assert_not_called()

    def test_unreadable_cache_falls_back_to_geocoder(
        self, geocoding_cache: GeocodingCache
    ) -> None:
        geocoder = self._geocoder()
        resolver = LocationResolver(geocoder=geocoder, cache=geocoding_cache)

        with patch.object(geocoding_cache, 'get', side_effect=OSError('permission denied')):
            result = resolver.resolve(CityName('London'))

        assert result.label == 'London'
        geocoder.lookup_city.assert_called_once()

    def test_cache_write_failure_is_non_fatal(
        self, geocoding_cache: GeocodingCache, capsys: pytest.CaptureFixture[str]
    ) -> None:
        geocoder = self._geocoder()
        resolver = LocationResolver(geocoder=geocoder, cache=geocoding_cache)

        with patch.object(geocoding_cache, 'put', side_effect=OSError('read-only')):
            result = resolver.resolve(CityName('London'))

        assert result.coordinates == Coordinates(LONDON_LAT, LONDON_LON)
        assert 'Could not write geocoding cache' in capsys.readouterr().out
