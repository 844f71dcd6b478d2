# ABOUTME: Turns a city name into coordinates, consulting the geocoding cache first
# ABOUTME: Open-Meteo geocoding is the default lookup; providers may bring their own

from abc import ABC, abstractmethod
from typing import Any

import requests

from geocoding_cache import GeocodingCache, GeocodingCacheEntry
from weather_models import (
    CityName,
    Coordinates,
    GeocodedLocation,
    Location,
    ResolutionError,
)


DEFAULT_TIMEOUT = 10


class Geocoder(ABC):
    """Anything that can look up a free-text city name"""

    @abstractmethod
    def lookup_city(self, city: str) -> GeocodedLocation:
        """Resolve a city name, raising ResolutionError on failure"""


class OpenMeteoGeocoder(Geocoder):
    """Open-Meteo geocoding API - free, no key required"""

    def __init__(self, language: str = 'en', timeout: float = DEFAULT_TIMEOUT):
        self.base_url = 'https://geocoding-api.open-meteo.com/v1/search'
        self.language = language
        self.timeout = timeout

    def lookup_city(self, city: str) -> GeocodedLocation:
        params: dict[str, str | int] = {
            'name': city,
            'count': 1,
            'language': self.language,
            'format': 'json',
        }
        try:
            response = requests.get(self.base_url, params=params, timeout=self.timeout)
            data: dict[str, Any] = response.json()
        except requests.RequestException as e:
            raise ResolutionError(city, f'geocoding request failed: {e}') from e
        except ValueError as e:
            raise ResolutionError(city, 'geocoding service returned invalid JSON') from e

        if not isinstance(data, dict):
            raise ResolutionError(city, 'unexpected geocoding response')
        if data.get('error'):
            raise ResolutionError(city, data.get('reason') or 'Unknown error')
        if response.status_code != 200:  # noqa: PLR2004
            raise ResolutionError(city, f'geocoding API returned {response.status_code}')

        results = data.get('results') or []
        if not results:
            raise ResolutionError(city, 'city not found', not_found=True)

        try:
            first = results[0]
            coordinates = Coordinates(float(first['latitude']), float(first['longitude']))
        except (KeyError, TypeError, ValueError) as e:
            raise ResolutionError(city, f'malformed geocoding result: {e}') from e

        return GeocodedLocation(coordinates=coordinates, label=first.get('name') or city)


class LocationResolver:
    """Resolve locations to coordinates through an optional persistent cache"""

    def __init__(
        self,
        geocoder: Geocoder | None = None,
        cache: GeocodingCache | None = None,
        use_cache: bool = True,
        verbose: int = 0,
    ):
        self.geocoder = geocoder or OpenMeteoGeocoder()
        self.cache = cache
        self.use_cache = use_cache
        self.verbose = verbose

    @property
    def caching_enabled(self) -> bool:
        return self.use_cache and self.cache is not None

    def resolve(
        self,
        location: Location,
        geocoder: Geocoder | None = None,
        use_cache: bool | None = None,
    ) -> GeocodedLocation:
        """Return coordinates for a location.

        Coordinates pass straight through. City names hit the cache first
        (unless caching is off or ``use_cache=False`` overrides it), then the
        geocoder; fresh results are written back when caching is on.
        """
        if isinstance(location, Coordinates):
            return GeocodedLocation(coordinates=location)

        if not isinstance(location, CityName) or not location.key:
            msg = f'Cannot resolve location {location!r}'
            raise ResolutionError(str(location), msg, not_found=True)

        caching = self.caching_enabled and use_cache is not False

        if caching:
            cached = self._cache_get(location)
            if cached is not None:
                if self.verbose >= 2:  # noqa: PLR2004
                    print(f'📦 Using cached coordinates for {location.name}')
                return GeocodedLocation(
                    coordinates=cached.coordinates, label=cached.name or location.name
                )

        if self.verbose >= 2:  # noqa: PLR2004
            print(f'🌐 Geocoding {location.name}')
        resolved = (geocoder or self.geocoder).lookup_city(location.name)

        if caching:
            self._cache_put(location, resolved)

        return resolved

    def _cache_get(self, location: CityName) -> GeocodingCacheEntry | None:
        if self.cache is None:
            return None
        try:
            return self.cache.get(location.key)
        except OSError as e:
            if self.verbose >= 1:
                print(f'⚠️  Geocoding cache read failed: {e}')
            return None

    def _cache_put(self, location: CityName, resolved: GeocodedLocation) -> None:
        if self.cache is None:
            return
        entry = GeocodingCacheEntry(
            coordinates=resolved.coordinates, name=resolved.label or location.name
        )
        try:
            self.cache.put(location.key, entry)
        except OSError as e:
            print(f'❌ Could not write geocoding cache {self.cache.path}: {e}')
        else:
            if self.verbose >= 2:  # noqa: PLR2004
                print(f'💾 Cached coordinates for {location.name}')
