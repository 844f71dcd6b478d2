# ABOUTME: Environment-driven configuration for the weather relay
# ABOUTME: Parses provider order, units, keys and live-mode options into a frozen Settings

import os
from collections.abc import Mapping
from dataclasses import dataclass, field

from weather_models import CityName, Coordinates, Location, ProviderIdentity, Units


# Chicago coordinates
DEFAULT_LAT = 41.8781
DEFAULT_LON = -87.6298

DEFAULT_TIMEOUT = 10
DEFAULT_LIVE_MODE_INTERVAL = 300
DEFAULT_CACHE_TTL = 180
SUPPORTED_LANGUAGES = ('en', 'ru', 'es')

TRUE_VALUES = ('1', 'true', 'yes', 'on')
FALSE_VALUES = ('0', 'false', 'no', 'off', '')


@dataclass(frozen=True)
class Settings:
    providers: tuple[ProviderIdentity, ...] = (ProviderIdentity.OPEN_METEO,)
    units: Units = Units.METRIC
    language: str = 'en'
    city: str | None = None
    latitude: float = DEFAULT_LAT
    longitude: float = DEFAULT_LON
    timeout: float = DEFAULT_TIMEOUT
    use_geocoding_cache: bool = False
    geocoding_cache_path: str | None = None
    verbose: int = 0
    live_mode: bool = False
    live_mode_interval: int = DEFAULT_LIVE_MODE_INTERVAL
    cache_ttl: int = DEFAULT_CACHE_TTL
    api_keys: Mapping[str, str] = field(default_factory=dict)

    def api_key(self, identity: ProviderIdentity) -> str | None:
        """Key configured for a provider's slot, if it needs one"""
        slot = identity.api_key_slot
        return self.api_keys.get(slot) if slot else None

    @property
    def default_location(self) -> Location:
        if self.city:
            return CityName(self.city)
        return Coordinates(self.latitude, self.longitude)


def api_key_variable(identity: ProviderIdentity) -> str | None:
    """Environment variable holding a provider's key, e.g. OPEN_UV_API_KEY"""
    slot = identity.api_key_slot
    return f'{slot.upper()}_API_KEY' if slot else None


def _parse_bool(name: str, value: str | None, default: bool) -> bool:
    if value is None:
        return default
    text = value.strip().lower()
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES:
        return False
    msg = f"{name} must be a boolean, got '{value}'"
    raise ValueError(msg)


def _parse_number(name: str, value: str | None, default: float) -> float:
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        msg = f"{name} must be a number, got '{value}'"
        raise ValueError(msg) from None


def _parse_providers(value: str | None) -> tuple[ProviderIdentity, ...]:
    if value is None or not value.strip():
        return (ProviderIdentity.OPEN_METEO,)

    providers: list[ProviderIdentity] = []
    for name in value.split(','):
        if not name.strip():
            continue
        identity = ProviderIdentity.from_name(name)
        if identity.is_auxiliary:
            msg = f"Provider '{name.strip()}' only supplies UV data and cannot be listed"
            raise ValueError(msg)
        if identity not in providers:
            providers.append(identity)

    if not providers:
        msg = 'WEATHER_PROVIDERS must name at least one provider'
        raise ValueError(msg)
    return tuple(providers)


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build Settings from environment variables, raising ValueError on bad input"""
    env = os.environ if environ is None else environ

    language = (env.get('WEATHER_LANGUAGE') or 'en').strip().lower()
    if language not in SUPPORTED_LANGUAGES:
        msg = f"Unsupported language '{language}' (expected one of {', '.join(SUPPORTED_LANGUAGES)})"
        raise ValueError(msg)

    latitude = _parse_number('WEATHER_LAT', env.get('WEATHER_LAT'), DEFAULT_LAT)
    longitude = _parse_number('WEATHER_LON', env.get('WEATHER_LON'), DEFAULT_LON)
    if not -90 <= latitude <= 90:  # noqa: PLR2004
        msg = f'WEATHER_LAT out of range: {latitude}'
        raise ValueError(msg)
    if not -180 <= longitude <= 180:  # noqa: PLR2004
        msg = f'WEATHER_LON out of range: {longitude}'
        raise ValueError(msg)

    timeout = _parse_number('WEATHER_TIMEOUT', env.get('WEATHER_TIMEOUT'), DEFAULT_TIMEOUT)
    if timeout <= 0:
        msg = f'WEATHER_TIMEOUT must be positive, got {timeout}'
        raise ValueError(msg)

    verbose = int(_parse_number('WEATHER_VERBOSE', env.get('WEATHER_VERBOSE'), 0))
    if verbose < 0:
        msg = f'WEATHER_VERBOSE must not be negative, got {verbose}'
        raise ValueError(msg)

    # 0 means "use the default interval"
    interval = int(
        _parse_number(
            'LIVE_MODE_INTERVAL', env.get('LIVE_MODE_INTERVAL'), DEFAULT_LIVE_MODE_INTERVAL
        )
    )
    if interval < 0:
        msg = f'LIVE_MODE_INTERVAL must not be negative, got {interval}'
        raise ValueError(msg)

    cache_ttl = int(_parse_number('WEATHER_CACHE_TTL', env.get('WEATHER_CACHE_TTL'), DEFAULT_CACHE_TTL))

    api_keys: dict[str, str] = {}
    for identity in ProviderIdentity:
        slot = identity.api_key_slot
        variable = api_key_variable(identity)
        if slot and variable and env.get(variable, '').strip():
            api_keys[slot] = env[variable].strip()

    city = (env.get('WEATHER_CITY') or '').strip() or None

    return Settings(
        providers=_parse_providers(env.get('WEATHER_PROVIDERS')),
        units=Units.from_name(env.get('WEATHER_UNITS') or 'metric'),
        language=language,
        city=city,
        latitude=latitude,
        longitude=longitude,
        timeout=timeout,
        use_geocoding_cache=_parse_bool(
            'USE_GEOCODING_CACHE', env.get('USE_GEOCODING_CACHE'), False
        ),
        geocoding_cache_path=(env.get('GEOCODING_CACHE_PATH') or '').strip() or None,
        verbose=verbose,
        live_mode=_parse_bool('LIVE_MODE', env.get('LIVE_MODE'), False),
        live_mode_interval=interval or DEFAULT_LIVE_MODE_INTERVAL,
        cache_ttl=cache_ttl,
        api_keys=api_keys,
    )
