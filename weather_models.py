# ABOUTME: Provider-independent data model for weather retrieval
# ABOUTME: Locations, provider identities, normalized reports and the error taxonomy

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

import weather_units


class Units(str, Enum):
    METRIC = 'metric'
    IMPERIAL = 'imperial'

    @classmethod
    def from_name(cls, name: str) -> 'Units':
        try:
            return cls(name.strip().lower())
        except ValueError:
            msg = f"Unknown units '{name}' (expected 'metric' or 'imperial')"
            raise ValueError(msg) from None


class Condition(str, Enum):
    """Closed set of weather conditions shared by every provider"""

    CLEAR = 'clear'
    PARTLY_CLOUDY = 'partly-cloudy'
    CLOUDY = 'cloudy'
    FOG = 'fog'
    LIGHT_RAIN = 'light-rain'
    RAIN = 'rain'
    LIGHT_SNOW = 'light-snow'
    SNOW = 'snow'
    THUNDERSTORM = 'thunderstorm'
    UNKNOWN = 'unknown'


@dataclass(frozen=True)
class ProviderTraits:
    aliases: tuple[str, ...]
    supports_city_input: bool
    requires_api_key: bool
    api_key_slot: str | None
    is_auxiliary: bool = False


class ProviderIdentity(str, Enum):
    """Every data source the fetch pipeline knows how to talk to"""

    OPEN_METEO = 'open_meteo'
    OPEN_WEATHER_MAP = 'open_weather_map'
    WORLD_WEATHER_ONLINE = 'world_weather_online'
    WEATHER_API = 'weather_api'
    WEATHER_BIT = 'weather_bit'
    TOMORROW_IO = 'tomorrow_io'
    YR = 'yr'
    OPEN_UV = 'open_uv'

    @property
    def traits(self) -> ProviderTraits:
        return PROVIDER_TRAITS[self]

    @property
    def aliases(self) -> tuple[str, ...]:
        return self.traits.aliases

    @property
    def supports_city_input(self) -> bool:
        return self.traits.supports_city_input

    @property
    def requires_api_key(self) -> bool:
        return self.traits.requires_api_key

    @property
    def api_key_slot(self) -> str | None:
        return self.traits.api_key_slot

    @property
    def is_auxiliary(self) -> bool:
        return self.traits.is_auxiliary

    @classmethod
    def from_name(cls, name: str) -> 'ProviderIdentity':
        """Look up a provider by canonical name or short alias"""
        key = name.strip().lower().replace('-', '_')
        for identity in cls:
            if key == identity.value or key in identity.aliases:
                return identity
        msg = f"Unknown provider '{name}'"
        raise ValueError(msg)


PROVIDER_TRAITS: dict[ProviderIdentity, ProviderTraits] = {
    ProviderIdentity.OPEN_METEO: ProviderTraits(
        aliases=('om', 'openmeteo'),
        supports_city_input=False,
        requires_api_key=False,
        api_key_slot=None,
    ),
    ProviderIdentity.OPEN_WEATHER_MAP: ProviderTraits(
        aliases=('owm', 'openweathermap'),
        supports_city_input=False,
        requires_api_key=True,
        api_key_slot='open_weather_map',
    ),
    ProviderIdentity.WORLD_WEATHER_ONLINE: ProviderTraits(
        aliases=('wwo', 'worldweatheronline'),
        supports_city_input=True,
        requires_api_key=True,
        api_key_slot='world_weather_online',
    ),
    ProviderIdentity.WEATHER_API: ProviderTraits(
        aliases=('wa', 'weatherapi'),
        supports_city_input=True,
        requires_api_key=True,
        api_key_slot='weather_api',
    ),
    ProviderIdentity.WEATHER_BIT: ProviderTraits(
        aliases=('wb', 'weatherbit'),
        supports_city_input=False,
        requires_api_key=True,
        api_key_slot='weather_bit',
    ),
    ProviderIdentity.TOMORROW_IO: ProviderTraits(
        aliases=('tio', 'tomorrow'),
        supports_city_input=True,
        requires_api_key=True,
        api_key_slot='tomorrow_io',
    ),
    ProviderIdentity.YR: ProviderTraits(
        aliases=('met_no', 'metno'),
        supports_city_input=False,
        requires_api_key=False,
        api_key_slot=None,
    ),
    ProviderIdentity.OPEN_UV: ProviderTraits(
        aliases=('uv', 'openuv'),
        supports_city_input=False,
        requires_api_key=True,
        api_key_slot='open_uv',
        is_auxiliary=True,
    ),
}


@dataclass(frozen=True)
class Coordinates:
    latitude: float
    longitude: float

    def __str__(self) -> str:
        return f'{self.latitude},{self.longitude}'


def normalize_city_name(name: str) -> str:
    """Collapse whitespace and case so 'New  York' and 'new york' share a key"""
    return ' '.join(name.split()).casefold()


@dataclass(frozen=True)
class CityName:
    """A free-text city that still needs geocoding"""

    name: str

    @property
    def key(self) -> str:
        return normalize_city_name(self.name)

    def __str__(self) -> str:
        return self.name


Location = Coordinates | CityName


@dataclass(frozen=True)
class GeocodedLocation:
    """Outcome of location resolution: coordinates plus a display label"""

    coordinates: Coordinates
    label: str | None = None


@dataclass(frozen=True)
class WeatherReport:
    """Normalized current conditions, every number in ``units``"""

    temperature: float
    feels_like: float
    condition: Condition
    description: str
    wind_speed: float
    wind_direction: int
    humidity: int
    precipitation: float
    pressure: float
    units: Units
    provider: ProviderIdentity
    dew_point: float | None = None
    uv_index: int | None = None
    location_name: str | None = None
    coordinates: Coordinates | None = field(default=None, compare=False)

    def convert(self, units: Units) -> 'WeatherReport':
        """Return a copy of this report expressed in another unit system"""
        if units == self.units:
            return self

        if units == Units.IMPERIAL:
            temp = weather_units.c_to_f
            speed = weather_units.ms_to_mph
            amount = weather_units.mm_to_inches
            pressure = weather_units.hpa_to_inhg
        else:
            temp = weather_units.f_to_c
            speed = weather_units.mph_to_ms
            amount = weather_units.inches_to_mm
            pressure = weather_units.inhg_to_hpa

        return replace(
            self,
            temperature=temp(self.temperature),
            feels_like=temp(self.feels_like),
            dew_point=temp(self.dew_point) if self.dew_point is not None else None,
            wind_speed=speed(self.wind_speed),
            precipitation=amount(self.precipitation),
            pressure=pressure(self.pressure),
            units=units,
        )

    def with_derived_metrics(self) -> 'WeatherReport':
        """Fill in the dew point locally when the provider did not supply one"""
        if self.dew_point is not None or self.humidity <= 0:
            return self
        return replace(
            self,
            dew_point=weather_units.dew_point(
                self.temperature,
                self.humidity,
                imperial=self.units == Units.IMPERIAL,
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            'temperature': self.temperature,
            'feels_like': self.feels_like,
            'condition': self.condition.value,
            'description': self.description,
            'wind_speed': self.wind_speed,
            'wind_direction': self.wind_direction,
            'humidity': self.humidity,
            'precipitation': self.precipitation,
            'pressure': self.pressure,
            'dew_point': self.dew_point,
            'location': self.location_name or 'Unknown Location',
            'units': self.units.value,
            'provider': self.provider.value,
        }
        if self.uv_index is not None:
            data['uv_index'] = self.uv_index
        if self.coordinates is not None:
            data['lat'] = self.coordinates.latitude
            data['lon'] = self.coordinates.longitude
        return data


class ProviderErrorKind(str, Enum):
    NETWORK = 'network'
    AUTHENTICATION = 'authentication'
    MALFORMED_RESPONSE = 'malformed_response'
    RATE_LIMITED = 'rate_limited'
    UNSUPPORTED_LOCATION = 'unsupported_location'


class ProviderError(Exception):
    """A single provider attempt that did not yield a report.

    Providers raise it internally; ``get_weather`` hands it back as a value so
    the manager can move on to the next provider with a plain conditional.
    """

    def __init__(
        self,
        provider: ProviderIdentity,
        kind: ProviderErrorKind,
        detail: str | None = None,
    ):
        self.provider = provider
        self.kind = kind
        self.detail = detail
        super().__init__(str(self))

    def __str__(self) -> str:
        text = f'{self.provider.value}: {self.kind.value}'
        if self.detail:
            text += f' ({self.detail})'
        return text

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ProviderError):
            return NotImplemented
        return (self.provider, self.kind, self.detail) == (
            other.provider,
            other.kind,
            other.detail,
        )

    def __hash__(self) -> int:
        return hash((self.provider, self.kind, self.detail))

    def to_dict(self) -> dict[str, Any]:
        return {
            'provider': self.provider.value,
            'kind': self.kind.value,
            'detail': self.detail,
        }


class ResolutionError(Exception):
    """Geocoding could not turn a city name into coordinates"""

    def __init__(
        self,
        city: str,
        detail: str,
        not_found: bool = False,
        kind: ProviderErrorKind | None = None,
    ):
        self.city = city
        self.detail = detail
        self.not_found = not_found
        # Set when the geocoder rejected the request itself (bad key, quota)
        self.kind = kind
        super().__init__(f'{city}: {detail}')


class AggregateFetchError(Exception):
    """Every configured provider failed; failures are kept in attempt order"""

    def __init__(self, failures: list[ProviderError]):
        self.failures = list(failures)
        reasons = '; '.join(str(failure) for failure in self.failures)
        super().__init__(f'All weather providers failed: {reasons}')

    def to_dict(self) -> dict[str, Any]:
        return {
            'error': 'Failed to fetch weather data from all sources',
            'failures': [failure.to_dict() for failure in self.failures],
        }
