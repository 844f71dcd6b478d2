# ABOUTME: Weather provider classes for the supported third-party weather APIs
# ABOUTME: Abstraction layer normalizing every provider into one WeatherReport, plus fallback manager

from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Any

import requests

from location_resolver import Geocoder, LocationResolver
from weather_models import (
    AggregateFetchError,
    CityName,
    Condition,
    Coordinates,
    GeocodedLocation,
    Location,
    ProviderError,
    ProviderErrorKind,
    ProviderIdentity,
    ResolutionError,
    Units,
    WeatherReport,
)
from weather_units import (
    apparent_temperature,
    compass_to_degrees,
    dew_point,
    hpa_to_inhg,
    kmh_to_ms,
    mm_to_inches,
    normalize_wind_direction,
)


DEFAULT_TIMEOUT = 10
USER_AGENT = 'weather-relay/0.1 (https://github.com/weather-relay/weather-relay)'

# HTTP status codes used for error classification
HTTP_UNAUTHORIZED = 401
HTTP_FORBIDDEN = 403
HTTP_NOT_FOUND = 404
HTTP_TOO_MANY_REQUESTS = 429
HTTP_CLIENT_ERROR = 400
HTTP_SERVER_ERROR = 500


def _optional_float(value: Any) -> float | None:
    return None if value is None or value == '' else float(value)


def _optional_round(value: Any) -> int | None:
    return None if value is None or value == '' else round(float(value))


class BaseProvider(ABC):
    """Shared plumbing for every data source: credentials, timeout, HTTP errors"""

    identity: ProviderIdentity

    def __init__(
        self,
        name: str,
        api_key: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        language: str = 'en',
        verbose: int = 0,
    ):
        self.name = name
        self.api_key = api_key
        self.timeout = timeout
        self.language = language
        self.verbose = verbose

    @property
    def supports_city_input(self) -> bool:
        return self.identity.supports_city_input

    @property
    def requires_api_key(self) -> bool:
        return self.identity.requires_api_key

    def check_ready(self) -> ProviderError | None:
        """Report a missing API key before any network traffic happens"""
        if self.requires_api_key and not self.api_key:
            return self._error(
                ProviderErrorKind.AUTHENTICATION,
                f'{self.name} API key not configured',
            )
        return None

    def get_provider_info(self) -> dict[str, Any]:
        """Get information about this provider"""
        return {
            'name': self.name,
            'identity': self.identity.value,
            'timeout': self.timeout,
            'supports_city_input': self.supports_city_input,
            'requires_api_key': self.requires_api_key,
            'configured': self.check_ready() is None,
            'description': self.__doc__ or f'{self.name} weather provider',
        }

    def _error(self, kind: ProviderErrorKind, detail: str | None = None) -> ProviderError:
        return ProviderError(self.identity, kind, detail)

    def _require_coordinates(self, location: Location) -> Coordinates:
        if not isinstance(location, Coordinates):
            raise self._error(
                ProviderErrorKind.UNSUPPORTED_LOCATION,
                f'{self.name} needs coordinates, got {location!r}',
            )
        return location

    def _get_json(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """Single GET request (never retried) returning the decoded JSON body"""
        if self.verbose >= 3:  # noqa: PLR2004
            print(f'🌐 {self.name} request: {url}')

        response = requests.get(url, params=params, headers=headers, timeout=self.timeout)

        try:
            payload = response.json()
        except ValueError:
            payload = None

        status = response.status_code
        if status >= HTTP_CLIENT_ERROR:
            message = self._error_message(payload) if payload is not None else None
            raise self._error(
                self._classify_error(status, payload, message),
                message or f'HTTP {status}',
            )
        if payload is None:
            raise self._error(
                ProviderErrorKind.MALFORMED_RESPONSE, 'response is not valid JSON'
            )
        return payload

    def _error_message(self, payload: Any) -> str | None:
        """Pull a human-readable message out of an error body"""
        if isinstance(payload, dict):
            message = payload.get('message') or payload.get('error')
            if isinstance(message, str):
                return message
        return None

    def _classify_error(
        self,
        status: int,
        payload: Any,  # noqa: ARG002
        message: str | None,  # noqa: ARG002
    ) -> ProviderErrorKind:
        """Map an HTTP error status onto the provider error taxonomy"""
        if status in (HTTP_UNAUTHORIZED, HTTP_FORBIDDEN):
            return ProviderErrorKind.AUTHENTICATION
        if status == HTTP_TOO_MANY_REQUESTS:
            return ProviderErrorKind.RATE_LIMITED
        if status == HTTP_NOT_FOUND:
            return ProviderErrorKind.UNSUPPORTED_LOCATION
        if status >= HTTP_SERVER_ERROR:
            return ProviderErrorKind.NETWORK
        return ProviderErrorKind.MALFORMED_RESPONSE

    def _call(self, operation: Any, *args: Any) -> Any:
        """Run a provider operation, turning any failure into a ProviderError value"""
        try:
            return operation(*args)
        except ProviderError as e:
            return e
        except requests.Timeout as e:
            return self._error(ProviderErrorKind.NETWORK, f'request timed out: {e}')
        except requests.RequestException as e:
            return self._error(ProviderErrorKind.NETWORK, f'request failed: {e}')
        except (
            KeyError, IndexError, TypeError, ValueError, AttributeError, ArithmeticError
        ) as e:
            # Missing fields, wrong types, NaN or Infinity that cannot become ints
            return self._error(
                ProviderErrorKind.MALFORMED_RESPONSE,
                f'unexpected response: {e.__class__.__name__}: {e}',
            )


class WeatherProvider(BaseProvider):
    """Abstract base class for weather providers"""

    @abstractmethod
    def fetch_weather_data(self, location: Location, units: Units) -> Any:
        """Fetch raw weather data from the provider"""

    @abstractmethod
    def process_weather_data(
        self, raw_data: Any, location: Location, units: Units
    ) -> WeatherReport:
        """Process raw weather data into a normalized report"""

    def get_weather(
        self, location: Location, units: Units = Units.METRIC
    ) -> WeatherReport | ProviderError:
        """Fetch current conditions; failures come back as ProviderError values"""
        not_ready = self.check_ready()
        if not_ready is not None:
            return not_ready

        if isinstance(location, CityName) and not self.supports_city_input:
            return self._error(
                ProviderErrorKind.UNSUPPORTED_LOCATION,
                f'{self.name} needs coordinates, got city {location.name!r}',
            )

        return self._call(self._fetch_and_process, location, units)  # type: ignore[no-any-return]

    def _fetch_and_process(self, location: Location, units: Units) -> WeatherReport:
        raw_data = self.fetch_weather_data(location, units)
        return self.process_weather_data(raw_data, location, units)


class OpenMeteoProvider(WeatherProvider):
    """Open-Meteo weather provider - free, accurate, European weather service"""

    identity = ProviderIdentity.OPEN_METEO

    def __init__(self, timeout: float = DEFAULT_TIMEOUT, language: str = 'en', verbose: int = 0):
        super().__init__('OpenMeteo', timeout=timeout, language=language, verbose=verbose)
        self.base_url = 'https://api.open-meteo.com/v1/forecast'

    def fetch_weather_data(self, location: Location, units: Units) -> Any:
        """Fetch current conditions from Open-Meteo API"""
        coordinates = self._require_coordinates(location)
        if units == Units.IMPERIAL:
            temperature_unit, wind_speed_unit, precipitation_unit = 'fahrenheit', 'mph', 'inch'
        else:
            temperature_unit, wind_speed_unit, precipitation_unit = 'celsius', 'ms', 'mm'

        params: dict[str, str | float] = {
            'latitude': coordinates.latitude,
            'longitude': coordinates.longitude,
            'current': (
                'temperature_2m,apparent_temperature,relative_humidity_2m,'
                'precipitation,surface_pressure,wind_speed_10m,wind_direction_10m,'
                'weather_code,dew_point_2m,uv_index'
            ),
            'temperature_unit': temperature_unit,
            'wind_speed_unit': wind_speed_unit,
            'precipitation_unit': precipitation_unit,
        }
        return self._get_json(self.base_url, params=params)

    def process_weather_data(
        self, raw_data: Any, location: Location, units: Units
    ) -> WeatherReport:
        """Process Open-Meteo data into a normalized report"""
        current = raw_data['current']
        code = int(current['weather_code'])

        # Open-Meteo has no pressure unit switch; it always reports hPa
        pressure = float(current['surface_pressure'])
        if units == Units.IMPERIAL:
            pressure = hpa_to_inhg(pressure)

        return WeatherReport(
            temperature=float(current['temperature_2m']),
            feels_like=float(current['apparent_temperature']),
            condition=self._map_weather_code(code),
            description=self._get_weather_description(code),
            wind_speed=float(current['wind_speed_10m']),
            wind_direction=normalize_wind_direction(current.get('wind_direction_10m') or 0),
            humidity=round(float(current['relative_humidity_2m'])),
            precipitation=float(current.get('precipitation') or 0),
            pressure=pressure,
            units=units,
            provider=self.identity,
            dew_point=_optional_float(current.get('dew_point_2m')),
            uv_index=_optional_round(current.get('uv_index')),
            coordinates=location if isinstance(location, Coordinates) else None,
        )

    def _classify_error(self, status: int, payload: Any, message: str | None) -> ProviderErrorKind:
        if status == HTTP_CLIENT_ERROR and message and 'itude' in message:
            return ProviderErrorKind.UNSUPPORTED_LOCATION
        return super()._classify_error(status, payload, message)

    def _error_message(self, payload: Any) -> str | None:
        if isinstance(payload, dict) and payload.get('reason'):
            return str(payload['reason'])
        return super()._error_message(payload)

    def _map_weather_code(self, code: int) -> Condition:
        """Map Open-Meteo WMO weather codes to shared conditions"""
        code_map = {
            0: Condition.CLEAR,  # Clear sky
            1: Condition.PARTLY_CLOUDY,  # Mainly clear
            2: Condition.PARTLY_CLOUDY,  # Partly cloudy
            3: Condition.CLOUDY,  # Overcast
            45: Condition.FOG,  # Fog
            48: Condition.FOG,  # Depositing rime fog
            51: Condition.LIGHT_RAIN,  # Light drizzle
            53: Condition.LIGHT_RAIN,  # Moderate drizzle
            55: Condition.LIGHT_RAIN,  # Dense drizzle
            56: Condition.LIGHT_RAIN,  # Light freezing drizzle
            57: Condition.LIGHT_RAIN,  # Dense freezing drizzle
            61: Condition.RAIN,  # Slight rain
            63: Condition.RAIN,  # Moderate rain
            65: Condition.RAIN,  # Heavy rain
            66: Condition.RAIN,  # Light freezing rain
            67: Condition.RAIN,  # Heavy freezing rain
            71: Condition.LIGHT_SNOW,  # Slight snow fall
            73: Condition.LIGHT_SNOW,  # Moderate snow fall
            75: Condition.SNOW,  # Heavy snow fall
            77: Condition.SNOW,  # Snow grains
            80: Condition.LIGHT_RAIN,  # Slight rain showers
            81: Condition.RAIN,  # Moderate rain showers
            82: Condition.RAIN,  # Violent rain showers
            85: Condition.SNOW,  # Slight snow showers
            86: Condition.SNOW,  # Heavy snow showers
            95: Condition.THUNDERSTORM,  # Thunderstorm
            96: Condition.THUNDERSTORM,  # Thunderstorm with slight hail
            99: Condition.THUNDERSTORM,  # Thunderstorm with heavy hail
        }
        return code_map.get(code, Condition.UNKNOWN)

    def _get_weather_description(self, weather_code: int) -> str:
        """Get human-readable weather description from WMO code"""
        descriptions = {
            0: 'Clear sky',
            1: 'Mainly clear',
            2: 'Partly cloudy',
            3: 'Overcast',
            45: 'Fog',
            48: 'Depositing rime fog',
            51: 'Light drizzle',
            53: 'Moderate drizzle',
            55: 'Dense drizzle',
            56: 'Light freezing drizzle',
            57: 'Dense freezing drizzle',
            61: 'Slight rain',
            63: 'Moderate rain',
            65: 'Heavy rain',
            66: 'Light freezing rain',
            67: 'Heavy freezing rain',
            71: 'Slight snow fall',
            73: 'Moderate snow fall',
            75: 'Heavy snow fall',
            77: 'Snow grains',
            80: 'Slight rain showers',
            81: 'Moderate rain showers',
            82: 'Violent rain showers',
            85: 'Slight snow showers',
            86: 'Heavy snow showers',
            95: 'Thunderstorm',
            96: 'Thunderstorm with slight hail',
            99: 'Thunderstorm with heavy hail',
        }
        return descriptions.get(weather_code, 'Unknown')


def _owm_condition(code: int) -> Condition:
    """Condition for OpenWeatherMap-style ids, also used by Weatherbit"""
    if 200 <= code <= 233:  # noqa: PLR2004
        return Condition.THUNDERSTORM
    if 300 <= code <= 321 or code in (500, 520):  # noqa: PLR2004
        return Condition.LIGHT_RAIN
    if 501 <= code <= 531:  # noqa: PLR2004
        return Condition.RAIN
    if code in (600, 612, 615, 620, 623):
        return Condition.LIGHT_SNOW
    if 601 <= code <= 622:  # noqa: PLR2004
        return Condition.SNOW
    if 700 <= code <= 781:  # noqa: PLR2004
        return Condition.FOG
    if code == 800:  # noqa: PLR2004
        return Condition.CLEAR
    if code in (801, 802):
        return Condition.PARTLY_CLOUDY
    if code in (803, 804):
        return Condition.CLOUDY
    return Condition.UNKNOWN


class OpenWeatherMapProvider(WeatherProvider, Geocoder):
    """OpenWeatherMap current weather API (API key required)"""

    identity = ProviderIdentity.OPEN_WEATHER_MAP

    def __init__(
        self,
        api_key: str | None,
        timeout: float = DEFAULT_TIMEOUT,
        language: str = 'en',
        verbose: int = 0,
    ):
        super().__init__(
            'OpenWeatherMap', api_key=api_key, timeout=timeout, language=language, verbose=verbose
        )
        self.base_url = 'https://api.openweathermap.org/data/2.5/weather'
        self.geocoding_url = 'https://api.openweathermap.org/geo/1.0/direct'

    def lookup_city(self, city: str) -> GeocodedLocation:
        """Resolve a city through OpenWeatherMap's direct geocoding endpoint"""
        if not self.api_key:
            raise ResolutionError(
                city,
                'OpenWeatherMap API key not configured',
                kind=ProviderErrorKind.AUTHENTICATION,
            )

        params = {'q': city, 'limit': 1, 'appid': self.api_key, 'lang': self.language}
        try:
            response = requests.get(self.geocoding_url, params=params, timeout=self.timeout)
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            raise ResolutionError(city, f'geocoding request failed: {e}') from e

        if response.status_code != 200:  # noqa: PLR2004
            message = self._error_message(data) or f'HTTP {response.status_code}'
            raise ResolutionError(
                city, message, kind=self._classify_error(response.status_code, data, message)
            )
        if not isinstance(data, list) or not data:
            raise ResolutionError(city, 'city not found', not_found=True)

        try:
            first = data[0]
            coordinates = Coordinates(float(first['lat']), float(first['lon']))
        except (KeyError, TypeError, ValueError) as e:
            raise ResolutionError(city, f'malformed geocoding result: {e}') from e
        return GeocodedLocation(coordinates=coordinates, label=first.get('name') or city)

    def fetch_weather_data(self, location: Location, units: Units) -> Any:
        """Fetch current conditions from OpenWeatherMap API"""
        coordinates = self._require_coordinates(location)
        params = {
            'lat': coordinates.latitude,
            'lon': coordinates.longitude,
            'units': units.value,
            'lang': self.language,
            'appid': self.api_key,
        }
        return self._get_json(self.base_url, params=params)

    def process_weather_data(
        self, raw_data: Any, location: Location, units: Units
    ) -> WeatherReport:
        """Process OpenWeatherMap data into a normalized report"""
        main = raw_data['main']
        wind = raw_data.get('wind') or {}
        weather = (raw_data.get('weather') or [{}])[0]

        # Precipitation and pressure ignore the units parameter (mm, hPa)
        precipitation = float((raw_data.get('rain') or {}).get('1h', 0)) + float(
            (raw_data.get('snow') or {}).get('1h', 0)
        )
        pressure = float(main['pressure'])
        if units == Units.IMPERIAL:
            precipitation = mm_to_inches(precipitation)
            pressure = hpa_to_inhg(pressure)

        description = weather.get('description') or 'Unknown'
        coord = raw_data.get('coord') or {}
        coordinates = (
            Coordinates(float(coord['lat']), float(coord['lon']))
            if 'lat' in coord and 'lon' in coord
            else location if isinstance(location, Coordinates) else None
        )

        return WeatherReport(
            temperature=float(main['temp']),
            feels_like=float(main['feels_like']),
            condition=_owm_condition(int(weather.get('id', 0))),
            description=description[:1].upper() + description[1:],
            wind_speed=float(wind.get('speed', 0)),
            wind_direction=normalize_wind_direction(wind.get('deg', 0)),
            humidity=round(float(main['humidity'])),
            precipitation=precipitation,
            pressure=pressure,
            units=units,
            provider=self.identity,
            location_name=raw_data.get('name') or None,
            coordinates=coordinates,
        )


class WorldWeatherOnlineProvider(WeatherProvider):
    """WorldWeatherOnline premium API - accepts city names directly (API key required)"""

    identity = ProviderIdentity.WORLD_WEATHER_ONLINE

    def __init__(
        self,
        api_key: str | None,
        timeout: float = DEFAULT_TIMEOUT,
        language: str = 'en',
        verbose: int = 0,
    ):
        super().__init__(
            'WorldWeatherOnline',
            api_key=api_key,
            timeout=timeout,
            language=language,
            verbose=verbose,
        )
        self.base_url = 'https://api.worldweatheronline.com/premium/v1/weather.ashx'

    def fetch_weather_data(self, location: Location, units: Units) -> Any:  # noqa: ARG002
        """Fetch current conditions from WorldWeatherOnline API"""
        params = {
            'q': str(location),
            'key': self.api_key,
            'format': 'json',
            'lang': self.language,
            'fx': 'no',
            'mca': 'no',
        }
        data = self._get_json(self.base_url, params=params)

        # WWO reports errors inside a 200 response
        errors = (data.get('data') or {}).get('error')
        if errors:
            message = self._error_message(data) or 'Unknown error'
            raise self._error(self._classify_error(200, data, message), message)
        return data

    def process_weather_data(
        self, raw_data: Any, location: Location, units: Units
    ) -> WeatherReport:
        """Process WorldWeatherOnline data into a normalized report"""
        data = raw_data['data']
        condition = data['current_condition'][0]
        imperial = units == Units.IMPERIAL

        if imperial:
            temperature = float(condition['temp_F'])
            feels_like = float(condition['FeelsLikeF'])
            wind_speed = float(condition['windspeedMiles'])
            precipitation = float(condition['precipInches'])
        else:
            temperature = float(condition['temp_C'])
            feels_like = float(condition['FeelsLikeC'])
            wind_speed = kmh_to_ms(float(condition['windspeedKmph']))
            precipitation = float(condition['precipMM'])

        pressure = float(condition['pressure'])
        if imperial:
            pressure = (
                float(condition['pressureInches'])
                if condition.get('pressureInches')
                else hpa_to_inhg(pressure)
            )

        if condition.get('winddirDegree') not in (None, ''):
            wind_direction = normalize_wind_direction(float(condition['winddirDegree']))
        else:
            wind_direction = compass_to_degrees(condition['winddir16Point'])

        request_info = data.get('request') or []
        location_name = request_info[0].get('query') if request_info else None

        return WeatherReport(
            temperature=temperature,
            feels_like=feels_like,
            condition=self._map_weather_code(int(condition['weatherCode'])),
            description=self._description(condition),
            wind_speed=wind_speed,
            wind_direction=wind_direction,
            humidity=round(float(condition['humidity'])),
            precipitation=precipitation,
            pressure=pressure,
            units=units,
            provider=self.identity,
            uv_index=_optional_round(condition.get('uvIndex')),
            location_name=location_name or str(location),
            coordinates=location if isinstance(location, Coordinates) else None,
        )

    def _description(self, condition: dict[str, Any]) -> str:
        """Localized description when the API returned one, English otherwise"""
        localized = condition.get(f'lang_{self.language}') or []
        english = condition.get('weatherDesc') or []
        for entries in (localized, english):
            if entries and entries[0].get('value'):
                return str(entries[0]['value']).strip()
        return 'Unknown'

    def _error_message(self, payload: Any) -> str | None:
        if isinstance(payload, dict):
            errors = (payload.get('data') or {}).get('error') or []
            messages = [e.get('msg', '') for e in errors if isinstance(e, dict)]
            if messages:
                return ', '.join(m for m in messages if m)
        return super()._error_message(payload)

    def _classify_error(self, status: int, payload: Any, message: str | None) -> ProviderErrorKind:
        text = (message or '').lower()
        if 'api key' in text:
            return ProviderErrorKind.AUTHENTICATION
        if 'unable to find' in text or 'location' in text:
            return ProviderErrorKind.UNSUPPORTED_LOCATION
        if 'limit' in text:
            return ProviderErrorKind.RATE_LIMITED
        return super()._classify_error(status, payload, message)

    def _map_weather_code(self, code: int) -> Condition:
        """Map WWO weather codes to shared conditions"""
        if code == 113:  # noqa: PLR2004
            return Condition.CLEAR
        if code == 116:  # noqa: PLR2004
            return Condition.PARTLY_CLOUDY
        if code in (119, 122):
            return Condition.CLOUDY
        if code in (143, 248, 260):
            return Condition.FOG
        if code in (263, 266, 281, 284):
            return Condition.LIGHT_RAIN
        if code in (
            176, 293, 296, 299, 302, 305, 308, 311, 314,
            317, 320, 353, 356, 359, 362, 365, 374, 377,
        ):  # fmt: skip
            return Condition.RAIN
        if code in (179, 227, 230, 323, 326, 329, 332, 335, 338, 368, 371):
            return Condition.SNOW
        if code in (200, 386, 389, 392, 395):
            return Condition.THUNDERSTORM
        return Condition.UNKNOWN


class WeatherApiProvider(WeatherProvider):
    """WeatherAPI.com current conditions - accepts city names directly (API key required)"""

    identity = ProviderIdentity.WEATHER_API

    # Error codes from https://www.weatherapi.com/docs/
    AUTH_ERROR_CODES = (1002, 2006, 2008, 2009)
    QUOTA_ERROR_CODES = (2007,)
    LOCATION_ERROR_CODES = (1003, 1006)

    def __init__(
        self,
        api_key: str | None,
        timeout: float = DEFAULT_TIMEOUT,
        language: str = 'en',
        verbose: int = 0,
    ):
        super().__init__(
            'WeatherAPI', api_key=api_key, timeout=timeout, language=language, verbose=verbose
        )
        self.base_url = 'https://api.weatherapi.com/v1/current.json'

    def fetch_weather_data(self, location: Location, units: Units) -> Any:  # noqa: ARG002
        """Fetch current conditions from WeatherAPI.com"""
        params = {
            'key': self.api_key,
            'q': str(location),
            'lang': self.language,
            'aqi': 'no',
        }
        return self._get_json(self.base_url, params=params)

    def process_weather_data(
        self, raw_data: Any, location: Location, units: Units
    ) -> WeatherReport:
        """Process WeatherAPI.com data into a normalized report"""
        current = raw_data['current']
        place = raw_data.get('location') or {}

        if units == Units.IMPERIAL:
            temperature = float(current['temp_f'])
            feels_like = float(current['feelslike_f'])
            wind_speed = float(current['wind_mph'])
            precipitation = float(current['precip_in'])
            pressure = float(current['pressure_in'])
            dew = _optional_float(current.get('dewpoint_f'))
        else:
            temperature = float(current['temp_c'])
            feels_like = float(current['feelslike_c'])
            wind_speed = kmh_to_ms(float(current['wind_kph']))
            precipitation = float(current['precip_mm'])
            pressure = float(current['pressure_mb'])
            dew = _optional_float(current.get('dewpoint_c'))

        if current.get('wind_degree') is not None:
            wind_direction = normalize_wind_direction(float(current['wind_degree']))
        else:
            wind_direction = compass_to_degrees(current['wind_dir'])

        condition = current.get('condition') or {}
        coordinates = (
            Coordinates(float(place['lat']), float(place['lon']))
            if 'lat' in place and 'lon' in place
            else location if isinstance(location, Coordinates) else None
        )

        return WeatherReport(
            temperature=temperature,
            feels_like=feels_like,
            condition=self._map_condition_code(int(condition.get('code', 0))),
            description=condition.get('text') or 'Unknown',
            wind_speed=wind_speed,
            wind_direction=wind_direction,
            humidity=round(float(current['humidity'])),
            precipitation=precipitation,
            pressure=pressure,
            units=units,
            provider=self.identity,
            dew_point=dew,
            uv_index=_optional_round(current.get('uv')),
            location_name=self._location_name(place, coordinates),
            coordinates=coordinates,
        )

    def _location_name(self, place: dict[str, Any], coordinates: Coordinates | None) -> str | None:
        """Build 'name, region, country' from whatever parts are present"""
        name = place.get('name') or ''
        region = place.get('region') or ''
        country = place.get('country') or ''
        if not name:
            return str(coordinates) if coordinates else None
        if region and country:
            return f'{name}, {region}, {country}'
        if country:
            return f'{name}, {country}'
        return str(name)

    def _error_message(self, payload: Any) -> str | None:
        if isinstance(payload, dict) and isinstance(payload.get('error'), dict):
            error = payload['error']
            return f"{error.get('code')} {error.get('message', '')}".strip()
        return super()._error_message(payload)

    def _classify_error(self, status: int, payload: Any, message: str | None) -> ProviderErrorKind:
        code = None
        if isinstance(payload, dict) and isinstance(payload.get('error'), dict):
            code = payload['error'].get('code')
        if code in self.AUTH_ERROR_CODES:
            return ProviderErrorKind.AUTHENTICATION
        if code in self.QUOTA_ERROR_CODES:
            return ProviderErrorKind.RATE_LIMITED
        if code in self.LOCATION_ERROR_CODES:
            return ProviderErrorKind.UNSUPPORTED_LOCATION
        return super()._classify_error(status, payload, message)

    def _map_condition_code(self, code: int) -> Condition:
        """Map WeatherAPI condition codes (conditions.json) to shared conditions"""
        code_map = {
            1000: Condition.CLEAR,  # Sunny / Clear
            1003: Condition.PARTLY_CLOUDY,  # Partly cloudy
            1006: Condition.CLOUDY,  # Cloudy
            1009: Condition.CLOUDY,  # Overcast
            1030: Condition.FOG,  # Mist
            1135: Condition.FOG,  # Fog
            1147: Condition.FOG,  # Freezing fog
            1087: Condition.THUNDERSTORM,  # Thundery outbreaks possible
            1273: Condition.THUNDERSTORM,  # Patchy light rain with thunder
            1276: Condition.THUNDERSTORM,  # Moderate or heavy rain with thunder
            1279: Condition.THUNDERSTORM,  # Patchy light snow with thunder
            1282: Condition.THUNDERSTORM,  # Moderate or heavy snow with thunder
        }
        light_rain = (1063, 1150, 1153, 1180, 1183, 1240, 1249, 1252)
        rain = (1186, 1189, 1192, 1195, 1243, 1246)
        light_snow = (1066, 1069, 1072, 1210, 1213, 1216, 1219, 1222, 1225, 1237, 1255)
        snow = (1114, 1117, 1228, 1231, 1258)

        if code in code_map:
            return code_map[code]
        if code in light_rain:
            return Condition.LIGHT_RAIN
        if code in rain:
            return Condition.RAIN
        if code in light_snow:
            return Condition.LIGHT_SNOW
        if code in snow:
            return Condition.SNOW
        return Condition.UNKNOWN


class WeatherBitProvider(WeatherProvider, Geocoder):
    """Weatherbit current observations API (API key required)"""

    identity = ProviderIdentity.WEATHER_BIT

    def __init__(
        self,
        api_key: str | None,
        timeout: float = DEFAULT_TIMEOUT,
        language: str = 'en',
        verbose: int = 0,
    ):
        super().__init__(
            'Weatherbit', api_key=api_key, timeout=timeout, language=language, verbose=verbose
        )
        self.base_url = 'https://api.weatherbit.io/v2.0/current'
        self.geocoding_url = 'https://api.weatherbit.io/v2.0/geocode'

    def lookup_city(self, city: str) -> GeocodedLocation:
        """Resolve a city through Weatherbit's geocoding endpoint"""
        if not self.api_key:
            raise ResolutionError(
                city,
                'Weatherbit API key not configured',
                kind=ProviderErrorKind.AUTHENTICATION,
            )

        try:
            response = requests.get(
                self.geocoding_url,
                params={'city': city, 'key': self.api_key},
                timeout=self.timeout,
            )
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            raise ResolutionError(city, f'geocoding request failed: {e}') from e

        if not isinstance(data, dict) or data.get('error'):
            message = self._error_message(data) or 'Unknown error'
            kind = None
            if response.status_code >= HTTP_CLIENT_ERROR:
                kind = self._classify_error(response.status_code, data, message)
            raise ResolutionError(city, message, kind=kind)
        if response.status_code == HTTP_NOT_FOUND or 'lat' not in data:
            raise ResolutionError(city, 'city not found', not_found=True)

        try:
            coordinates = Coordinates(float(data['lat']), float(data['lon']))
        except (KeyError, TypeError, ValueError) as e:
            raise ResolutionError(city, f'malformed geocoding result: {e}') from e
        return GeocodedLocation(coordinates=coordinates, label=data.get('name') or city)

    def fetch_weather_data(self, location: Location, units: Units) -> Any:
        """Fetch current observations from Weatherbit API"""
        coordinates = self._require_coordinates(location)
        params = {
            'lat': coordinates.latitude,
            'lon': coordinates.longitude,
            'key': self.api_key,
            'lang': self.language,
            'units': 'I' if units == Units.IMPERIAL else 'M',
        }
        return self._get_json(self.base_url, params=params)

    def process_weather_data(
        self, raw_data: Any, location: Location, units: Units
    ) -> WeatherReport:
        """Process Weatherbit data into a normalized report"""
        observations = raw_data.get('data') or []
        if not raw_data.get('count') or not observations:
            raise self._error(
                ProviderErrorKind.UNSUPPORTED_LOCATION,
                f'no observations for {location}',
            )
        observation = observations[0]

        # Weatherbit reports pressure in mb regardless of units
        pressure = float(observation['pres'])
        if units == Units.IMPERIAL:
            pressure = hpa_to_inhg(pressure)

        if observation.get('wind_dir') is not None:
            wind_direction = normalize_wind_direction(float(observation['wind_dir']))
        else:
            wind_direction = compass_to_degrees(observation['wind_cdir'])

        weather = observation.get('weather') or {}
        coordinates = (
            Coordinates(float(observation['lat']), float(observation['lon']))
            if 'lat' in observation and 'lon' in observation
            else location if isinstance(location, Coordinates) else None
        )

        return WeatherReport(
            temperature=float(observation['temp']),
            feels_like=float(observation['app_temp']),
            condition=_owm_condition(int(weather.get('code', 0))),
            description=weather.get('description') or 'Unknown',
            wind_speed=float(observation['wind_spd']),
            wind_direction=wind_direction,
            humidity=round(float(observation['rh'])),
            precipitation=float(observation.get('precip') or 0),
            pressure=pressure,
            units=units,
            provider=self.identity,
            dew_point=_optional_float(observation.get('dewpt')),
            uv_index=_optional_round(observation.get('uv')),
            location_name=observation.get('city_name') or None,
            coordinates=coordinates,
        )

    def _classify_error(self, status: int, payload: Any, message: str | None) -> ProviderErrorKind:
        if message and 'key' in message.lower():
            return ProviderErrorKind.AUTHENTICATION
        return super()._classify_error(status, payload, message)


class TomorrowIoProvider(WeatherProvider):
    """Tomorrow.io realtime API - accepts city names directly (API key required)"""

    identity = ProviderIdentity.TOMORROW_IO

    # Long localized names are cut down to "city, country"
    MAX_CITY_LABEL_LENGTH = 20

    def __init__(
        self,
        api_key: str | None,
        timeout: float = DEFAULT_TIMEOUT,
        language: str = 'en',
        verbose: int = 0,
    ):
        super().__init__(
            'TomorrowIo', api_key=api_key, timeout=timeout, language=language, verbose=verbose
        )
        self.base_url = 'https://api.tomorrow.io/v4/weather/realtime'

    def fetch_weather_data(self, location: Location, units: Units) -> Any:
        """Fetch realtime conditions from Tomorrow.io API"""
        params = {
            'location': str(location),
            'units': units.value,
            'apikey': self.api_key,
        }
        return self._get_json(self.base_url, params=params)

    def process_weather_data(
        self, raw_data: Any, location: Location, units: Units
    ) -> WeatherReport:
        """Process Tomorrow.io data into a normalized report"""
        values = raw_data['data']['values']
        place = raw_data.get('location') or {}
        code = int(values.get('weatherCode', 0))

        precipitation = sum(
            float(values.get(key) or 0)
            for key in (
                'rainIntensity',
                'sleetIntensity',
                'snowIntensity',
                'freezingRainIntensity',
            )
        )
        coordinates = (
            Coordinates(float(place['lat']), float(place['lon']))
            if 'lat' in place and 'lon' in place
            else location if isinstance(location, Coordinates) else None
        )

        return WeatherReport(
            temperature=float(values['temperature']),
            feels_like=float(values['temperatureApparent']),
            condition=self._map_weather_code(code),
            description=self._get_weather_description(code),
            wind_speed=float(values['windSpeed']),
            wind_direction=normalize_wind_direction(values.get('windDirection') or 0),
            humidity=round(float(values['humidity'])),
            precipitation=precipitation,
            pressure=float(values['pressureSurfaceLevel']),
            units=units,
            provider=self.identity,
            dew_point=_optional_float(values.get('dewPoint')),
            uv_index=_optional_round(values.get('uvIndex')),
            location_name=self._location_name(place.get('name')),
            coordinates=coordinates,
        )

    def _location_name(self, name: str | None) -> str | None:
        if not name:
            return None
        parts = [part.strip() for part in name.split(',')]
        if len(parts) < 2:  # noqa: PLR2004
            return name
        city, country = parts[0], parts[-1]
        if len(city) <= self.MAX_CITY_LABEL_LENGTH:
            return f'{city}, {country}'
        return city

    def _error_message(self, payload: Any) -> str | None:
        if isinstance(payload, dict) and 'code' in payload:
            return f"#{payload.get('code')} {payload.get('type', '')}: {payload.get('message', '')}"
        return super()._error_message(payload)

    def _classify_error(self, status: int, payload: Any, message: str | None) -> ProviderErrorKind:
        code = payload.get('code') if isinstance(payload, dict) else None
        if code == 401001:  # noqa: PLR2004
            return ProviderErrorKind.AUTHENTICATION
        if code == 429001:  # noqa: PLR2004
            return ProviderErrorKind.RATE_LIMITED
        if code == 400001:  # noqa: PLR2004
            return ProviderErrorKind.UNSUPPORTED_LOCATION
        return super()._classify_error(status, payload, message)

    def _map_weather_code(self, code: int) -> Condition:
        """Map Tomorrow.io weather codes to shared conditions"""
        code_map = {
            1000: Condition.CLEAR,  # Clear
            1100: Condition.PARTLY_CLOUDY,  # Mostly clear
            1101: Condition.PARTLY_CLOUDY,  # Partly cloudy
            1102: Condition.CLOUDY,  # Mostly cloudy
            1001: Condition.CLOUDY,  # Cloudy
            2000: Condition.FOG,  # Fog
            2100: Condition.FOG,  # Light fog
            4000: Condition.LIGHT_RAIN,  # Drizzle
            4200: Condition.LIGHT_RAIN,  # Light rain
            6000: Condition.LIGHT_RAIN,  # Freezing drizzle
            6200: Condition.LIGHT_RAIN,  # Light freezing rain
            4001: Condition.RAIN,  # Rain
            4201: Condition.RAIN,  # Heavy rain
            6001: Condition.RAIN,  # Freezing rain
            6201: Condition.RAIN,  # Heavy freezing rain
            5001: Condition.LIGHT_SNOW,  # Flurries
            5100: Condition.LIGHT_SNOW,  # Light snow
            7102: Condition.LIGHT_SNOW,  # Light ice pellets
            5000: Condition.SNOW,  # Snow
            5101: Condition.SNOW,  # Heavy snow
            7000: Condition.SNOW,  # Ice pellets
            7101: Condition.SNOW,  # Heavy ice pellets
            8000: Condition.THUNDERSTORM,  # Thunderstorm
        }
        return code_map.get(code, Condition.UNKNOWN)

    def _get_weather_description(self, code: int) -> str:
        descriptions = {
            1000: 'Clear',
            1100: 'Mostly clear',
            1101: 'Partly cloudy',
            1102: 'Mostly cloudy',
            1001: 'Cloudy',
            2000: 'Fog',
            2100: 'Light fog',
            4000: 'Drizzle',
            4001: 'Rain',
            4200: 'Light rain',
            4201: 'Heavy rain',
            5000: 'Snow',
            5001: 'Flurries',
            5100: 'Light snow',
            5101: 'Heavy snow',
            6000: 'Freezing drizzle',
            6001: 'Freezing rain',
            6200: 'Light freezing rain',
            6201: 'Heavy freezing rain',
            7000: 'Ice pellets',
            7101: 'Heavy ice pellets',
            7102: 'Light ice pellets',
            8000: 'Thunderstorm',
        }
        return descriptions.get(code, 'Unknown')


class YrProvider(WeatherProvider):
    """MET Norway (yr.no) locationforecast - free, metric only, needs a User-Agent"""

    identity = ProviderIdentity.YR

    SYMBOL_SUFFIXES = ('_day', '_night', '_polartwilight')

    def __init__(self, timeout: float = DEFAULT_TIMEOUT, language: str = 'en', verbose: int = 0):
        super().__init__('Yr', timeout=timeout, language=language, verbose=verbose)
        self.base_url = 'https://api.met.no/weatherapi/locationforecast/2.0/compact'
        self.user_agent = USER_AGENT

    def fetch_weather_data(self, location: Location, units: Units) -> Any:  # noqa: ARG002
        """Fetch the compact forecast; the first timeseries entry is 'now'"""
        coordinates = self._require_coordinates(location)
        # met.no rejects more than four decimals
        params = {
            'lat': round(coordinates.latitude, 4),
            'lon': round(coordinates.longitude, 4),
        }
        headers = {'User-Agent': self.user_agent}
        return self._get_json(self.base_url, params=params, headers=headers)

    def process_weather_data(
        self, raw_data: Any, location: Location, units: Units
    ) -> WeatherReport:
        """Process met.no data into a metric report, then convert"""
        timeseries = raw_data['properties']['timeseries']
        if not timeseries:
            raise self._error(ProviderErrorKind.MALFORMED_RESPONSE, 'no timeseries returned')

        data = timeseries[0]['data']
        details = data['instant']['details']
        next_hour = data.get('next_1_hours') or {}
        symbol = (next_hour.get('summary') or {}).get('symbol_code', '')

        temperature = float(details['air_temperature'])
        humidity = float(details['relative_humidity'])
        wind_speed = float(details['wind_speed'])

        precipitation = details.get('precipitation_amount')
        if precipitation is None:
            precipitation = (next_hour.get('details') or {}).get('precipitation_amount', 0)

        report = WeatherReport(
            temperature=temperature,
            feels_like=apparent_temperature(temperature, wind_speed, humidity),
            condition=self._map_symbol_code(symbol),
            description=self._get_symbol_description(symbol),
            wind_speed=wind_speed,
            wind_direction=normalize_wind_direction(details.get('wind_from_direction') or 0),
            humidity=round(humidity),
            precipitation=float(precipitation or 0),
            pressure=float(details['air_pressure_at_sea_level']),
            units=Units.METRIC,
            provider=self.identity,
            dew_point=dew_point(temperature, humidity) if humidity > 0 else None,
            coordinates=location if isinstance(location, Coordinates) else None,
        )
        return report.convert(units)

    def _base_symbol(self, symbol: str) -> str:
        for suffix in self.SYMBOL_SUFFIXES:
            if symbol.endswith(suffix):
                return symbol[: -len(suffix)]
        return symbol

    def _map_symbol_code(self, symbol: str) -> Condition:
        """Map met.no symbol codes (without day/night suffix) to shared conditions"""
        base = self._base_symbol(symbol)
        if 'thunder' in base:
            return Condition.THUNDERSTORM
        code_map = {
            'clearsky': Condition.CLEAR,
            'fair': Condition.PARTLY_CLOUDY,
            'partlycloudy': Condition.PARTLY_CLOUDY,
            'cloudy': Condition.CLOUDY,
            'fog': Condition.FOG,
            'lightrain': Condition.LIGHT_RAIN,
            'lightrainshowers': Condition.LIGHT_RAIN,
            'rain': Condition.RAIN,
            'rainshowers': Condition.RAIN,
            'heavyrain': Condition.RAIN,
            'heavyrainshowers': Condition.RAIN,
            'lightsleet': Condition.LIGHT_SNOW,
            'lightsleetshowers': Condition.LIGHT_SNOW,
            'lightsnow': Condition.LIGHT_SNOW,
            'lightsnowshowers': Condition.LIGHT_SNOW,
            'sleet': Condition.SNOW,
            'sleetshowers': Condition.SNOW,
            'heavysleet': Condition.SNOW,
            'heavysleetshowers': Condition.SNOW,
            'snow': Condition.SNOW,
            'snowshowers': Condition.SNOW,
            'heavysnow': Condition.SNOW,
            'heavysnowshowers': Condition.SNOW,
        }
        return code_map.get(base, Condition.UNKNOWN)

    def _get_symbol_description(self, symbol: str) -> str:
        base = self._base_symbol(symbol)
        descriptions = {
            'clearsky': 'Clear sky',
            'fair': 'Fair',
            'partlycloudy': 'Partly cloudy',
            'cloudy': 'Cloudy',
            'fog': 'Fog',
            'lightrain': 'Light rain',
            'lightrainshowers': 'Light rain showers',
            'rain': 'Rain',
            'rainshowers': 'Rain showers',
            'heavyrain': 'Heavy rain',
            'heavyrainshowers': 'Heavy rain showers',
            'lightsleet': 'Light sleet',
            'sleet': 'Sleet',
            'heavysleet': 'Heavy sleet',
            'lightsnow': 'Light snow',
            'snow': 'Snow',
            'heavysnow': 'Heavy snow',
        }
        if base in descriptions:
            return descriptions[base]
        if 'thunder' in base:
            return 'Thunderstorm'
        return f'Unknown ({symbol})' if symbol else 'Unknown'


class OpenUVProvider(BaseProvider):
    """OpenUV index API - auxiliary source that only augments other reports"""

    identity = ProviderIdentity.OPEN_UV

    def __init__(self, api_key: str | None, timeout: float = DEFAULT_TIMEOUT, verbose: int = 0):
        super().__init__('OpenUV', api_key=api_key, timeout=timeout, verbose=verbose)
        self.base_url = 'https://api.openuv.io/api/v1/uv'

    def get_uv_index(self, coordinates: Coordinates) -> int | ProviderError:
        """Current UV index rounded to an integer, or the reason it is unavailable"""
        not_ready = self.check_ready()
        if not_ready is not None:
            return not_ready
        return self._call(self._fetch_uv_index, coordinates)  # type: ignore[no-any-return]

    def _fetch_uv_index(self, coordinates: Coordinates) -> int:
        data = self._get_json(
            self.base_url,
            params={'lat': coordinates.latitude, 'lng': coordinates.longitude},
            headers={'x-access-token': str(self.api_key)},
        )
        return round(float(data['result']['uv']))


PROVIDER_CLASSES: dict[ProviderIdentity, type[WeatherProvider]] = {
    ProviderIdentity.OPEN_METEO: OpenMeteoProvider,
    ProviderIdentity.OPEN_WEATHER_MAP: OpenWeatherMapProvider,
    ProviderIdentity.WORLD_WEATHER_ONLINE: WorldWeatherOnlineProvider,
    ProviderIdentity.WEATHER_API: WeatherApiProvider,
    ProviderIdentity.WEATHER_BIT: WeatherBitProvider,
    ProviderIdentity.TOMORROW_IO: TomorrowIoProvider,
    ProviderIdentity.YR: YrProvider,
}


def create_provider(
    identity: ProviderIdentity,
    api_key: str | None = None,
    timeout: float = DEFAULT_TIMEOUT,
    language: str = 'en',
    verbose: int = 0,
) -> WeatherProvider:
    """Instantiate the primary weather provider for an identity"""
    if identity.is_auxiliary:
        msg = f"Provider '{identity.value}' cannot produce weather reports"
        raise ValueError(msg)

    provider_class = PROVIDER_CLASSES[identity]
    if identity.requires_api_key:
        return provider_class(  # type: ignore[call-arg]
            api_key=api_key, timeout=timeout, language=language, verbose=verbose
        )
    return provider_class(timeout=timeout, language=language, verbose=verbose)  # type: ignore[call-arg]


class WeatherProviderManager:
    """Manager class that tries weather providers in priority order"""

    def __init__(
        self,
        resolver: LocationResolver | None = None,
        uv_provider: OpenUVProvider | None = None,
        verbose: int = 0,
    ) -> None:
        self.providers: dict[str, WeatherProvider] = {}
        self.primary_provider: str | None = None
        self.fallback_providers: list[str] = []
        self.resolver = resolver or LocationResolver(verbose=verbose)
        self.uv_provider = uv_provider
        self.verbose = verbose

    @property
    def provider_order(self) -> list[str]:
        """Provider names in the order they are tried"""
        order = [self.primary_provider] if self.primary_provider else []
        return order + [name for name in self.fallback_providers if name in self.providers]

    def add_provider(self, provider: WeatherProvider, is_primary: bool = False) -> None:
        """Add a weather provider to the manager"""
        self.providers[provider.name] = provider

        if is_primary:
            if self.primary_provider and self.primary_provider != provider.name:
                self.fallback_providers.insert(0, self.primary_provider)
            self.primary_provider = provider.name
        elif self.primary_provider is None:
            self.primary_provider = provider.name
        else:
            self.fallback_providers.append(provider.name)

    def set_primary_provider(self, provider_name: str) -> None:
        """Set the primary weather provider"""
        name = self._find_provider(provider_name)
        if name is None:
            msg = f"Provider '{provider_name}' not found"
            raise ValueError(msg)

        if name == self.primary_provider:
            return

        # Remove from fallbacks if it was there
        if name in self.fallback_providers:
            self.fallback_providers.remove(name)

        # The old primary becomes the first fallback
        if self.primary_provider:
            self.fallback_providers.insert(0, self.primary_provider)

        self.primary_provider = name

    def switch_provider(self, provider_name: str) -> bool:
        """Switch to a different primary provider"""
        if self._find_provider(provider_name) is None:
            print(f"❌ Provider '{provider_name}' not found")
            return False
        self.set_primary_provider(provider_name)
        print(f'🔄 Switched to provider: {provider_name}')
        return True

    def get_provider_info(self) -> dict[str, Any]:
        """Get information about all available providers"""
        return {
            'primary': self.primary_provider,
            'fallbacks': list(self.fallback_providers),
            'order': self.provider_order,
            'providers': {
                name: provider.get_provider_info()
                for name, provider in self.providers.items()
            },
            'uv_provider': self.uv_provider.get_provider_info() if self.uv_provider else None,
        }

    def get_weather(
        self,
        location: Location,
        units: Units = Units.METRIC,
        use_cache: bool | None = None,
    ) -> WeatherReport:
        """Get weather from the first provider that succeeds.

        Providers are tried strictly in order; the first success is enriched
        and returned without consulting the rest. When every provider fails,
        AggregateFetchError carries each failure in the order attempted.
        """
        if not self.primary_provider:
            msg = 'No weather providers configured'
            raise ValueError(msg)

        failures: list[ProviderError] = []
        resolved: GeocodedLocation | None = None

        for index, provider_name in enumerate(self.provider_order):
            provider = self.providers[provider_name]
            if self.verbose >= 2:  # noqa: PLR2004
                role = 'primary' if index == 0 else 'fallback'
                icon = '🎯' if index == 0 else '🔄'
                print(f'{icon} Trying {role} provider: {provider_name}')

            outcome, resolved = self._attempt(provider, location, units, resolved, use_cache)
            if isinstance(outcome, WeatherReport):
                return self._enrich(outcome, location, resolved)

            failures.append(outcome)
            if self.verbose >= 1:
                print(f'❌ {provider_name} provider error: {outcome}')

        print('❌ All weather providers failed')
        raise AggregateFetchError(failures)

    def _attempt(
        self,
        provider: WeatherProvider,
        location: Location,
        units: Units,
        resolved: GeocodedLocation | None,
        use_cache: bool | None,
    ) -> tuple[WeatherReport | ProviderError, GeocodedLocation | None]:
        """One provider attempt; a successful resolution is reused by later attempts"""
        not_ready = provider.check_ready()
        if not_ready is not None:
            return not_ready, resolved

        target: Location = location
        if isinstance(location, CityName) and not provider.supports_city_input:
            if resolved is None:
                resolution = self._resolve(provider, location, use_cache)
                if isinstance(resolution, ProviderError):
                    return resolution, None
                resolved = resolution
            target = resolved.coordinates

        return provider.get_weather(target, units), resolved

    def _resolve(
        self, provider: WeatherProvider, location: CityName, use_cache: bool | None
    ) -> GeocodedLocation | ProviderError:
        geocoder = provider if isinstance(provider, Geocoder) else None
        try:
            return self.resolver.resolve(location, geocoder=geocoder, use_cache=use_cache)
        except ResolutionError as e:
            if e.kind is not None:
                kind = e.kind
            elif e.not_found:
                kind = ProviderErrorKind.UNSUPPORTED_LOCATION
            else:
                kind = ProviderErrorKind.NETWORK
            return ProviderError(provider.identity, kind, f'geocoding failed: {e.detail}')

    def _enrich(
        self,
        report: WeatherReport,
        location: Location,
        resolved: GeocodedLocation | None,
    ) -> WeatherReport:
        """Fill in label, coordinates, dew point and (optionally) UV index"""
        if report.location_name is None:
            label = resolved.label if resolved else None
            if label is None and isinstance(location, CityName):
                label = location.name
            report = replace(report, location_name=label)

        if report.coordinates is None:
            if resolved is not None:
                report = replace(report, coordinates=resolved.coordinates)
            elif isinstance(location, Coordinates):
                report = replace(report, coordinates=location)

        report = report.with_derived_metrics()

        if self.uv_provider is not None and report.uv_index is None:
            report = self._add_uv_index(report, location)
        return report

    def _add_uv_index(self, report: WeatherReport, location: Location) -> WeatherReport:
        if self.uv_provider is None:
            return report
        coordinates = report.coordinates
        if coordinates is None:
            try:
                coordinates = self.resolver.resolve(location).coordinates
            except ResolutionError as e:
                if self.verbose >= 1:
                    print(f'⚠️  Skipping UV index, location unresolved: {e}')
                return report

        uv_index = self.uv_provider.get_uv_index(coordinates)
        if isinstance(uv_index, ProviderError):
            if self.verbose >= 1:
                print(f'⚠️  UV index unavailable: {uv_index}')
            return report
        return replace(report, uv_index=uv_index)

    def _find_provider(self, provider_name: str) -> str | None:
        """Match a display name, canonical name or alias to a registered provider"""
        if provider_name in self.providers:
            return provider_name
        try:
            identity = ProviderIdentity.from_name(provider_name)
        except ValueError:
            return None
        for name, provider in self.providers.items():
            if provider.identity == identity:
                return name
        return None
