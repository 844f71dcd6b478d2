import os
import sys
import tempfile
from collections.abc import Callable, Generator
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
from flask import Flask
from flask.testing import FlaskClient


# Add the project root to the path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

# Keep the app away from the real per-user cache and any local provider setup
os.environ['GEOCODING_CACHE_PATH'] = os.path.join(
    tempfile.mkdtemp(prefix='weather-relay-tests-'), 'geocoding.json'
)
os.environ['WEATHER_PROVIDERS'] = 'open_meteo,yr'
os.environ['WEATHER_UNITS'] = 'metric'
os.environ['WEATHER_VERBOSE'] = '0'
os.environ['USE_GEOCODING_CACHE'] = 'false'
os.environ.pop('WEATHER_CITY', None)
os.environ.pop('OPEN_UV_API_KEY', None)

from geocoding_cache import GeocodingCache  # noqa: E402
from main import app  # noqa: E402
from weather_models import (  # noqa: E402
    Condition,
    Coordinates,
    ProviderIdentity,
    Units,
    WeatherReport,
)


@pytest.fixture  # type: ignore[misc]
def flask_app() -> Flask:
    """Create a Flask app instance for testing"""
    app.config['TESTING'] = True
    return app


@pytest.fixture  # type: ignore[misc]
def client(flask_app: Flask) -> FlaskClient:
    """Create a test client for the Flask app"""
    return flask_app.test_client()


@pytest.fixture  # type: ignore[misc]
def mock_requests_get() -> Generator[MagicMock, None, None]:
    """Mock requests.get for testing API calls"""
    with patch('requests.get') as mock_get:
        yield mock_get


@pytest.fixture  # type: ignore[misc]
def make_response() -> Callable[..., MagicMock]:
    """Factory for fake requests.Response objects"""

    def _make(payload: Any = None, status_code: int = 200, invalid_json: bool = False) -> MagicMock:
        response = MagicMock()
        response.status_code = status_code
        if invalid_json:
            response.json.side_effect = ValueError('No JSON object could be decoded')
        else:
            response.json.return_value = payload
        return response

    return _make


@pytest.fixture  # type: ignore[misc]
def geocoding_cache(tmp_path: Any) -> GeocodingCache:
    """Geocoding cache backed by a throwaway file"""
    return GeocodingCache(tmp_path / 'geocoding.json')


@pytest.fixture  # type: ignore[misc]
def sample_report() -> WeatherReport:
    """A metric report as a provider would return it"""
    return WeatherReport(
        temperature=20.0,
        feels_like=19.5,
        condition=Condition.PARTLY_CLOUDY,
        description='Partly cloudy',
        wind_speed=3.0,
        wind_direction=180,
        humidity=50,
        precipitation=0.0,
        pressure=1013.0,
        units=Units.METRIC,
        provider=ProviderIdentity.OPEN_METEO,
        location_name='Chicago',
        coordinates=Coordinates(41.8781, -87.6298),
    )


@pytest.fixture  # type: ignore[misc]
def open_meteo_response() -> dict[str, Any]:
    """Mock Open-Meteo forecast API response (metric)"""
    return {
        'latitude': 41.88,
        'longitude': -87.63,
        'current': {
            'time': '2024-01-01T12:00',
            'temperature_2m': 20.0,
            'apparent_temperature': 19.2,
            'relative_humidity_2m': 50,
            'precipitation': 0.2,
            'surface_pressure': 1013.25,
            'wind_speed_10m': 3.5,
            'wind_direction_10m': 370,
            'weather_code': 61,
            'dew_point_2m': 9.3,
            'uv_index': 4.6,
        },
    }


@pytest.fixture  # type: ignore[misc]
def open_weather_map_response() -> dict[str, Any]:
    """Mock OpenWeatherMap current weather response (metric)"""
    return {
        'coord': {'lon': -0.1257, 'lat': 51.5085},
        'weather': [{'id': 501, 'main': 'Rain', 'description': 'moderate rain'}],
        'main': {
            'temp': 12.3,
            'feels_like': 11.1,
            'pressure': 1008,
            'humidity': 81,
        },
        'wind': {'speed': 4.1, 'deg': 250},
        'rain': {'1h': 1.5},
        'snow': {'1h': 0.5},
        'name': 'London',
        'cod': 200,
    }


@pytest.fixture  # type: ignore[misc]
def world_weather_online_response() -> dict[str, Any]:
    """Mock WorldWeatherOnline premium API response"""
    return {
        'data': {
            'request': [{'type': 'City', 'query': 'Madrid, Spain'}],
            'current_condition': [
                {
                    'temp_C': '25',
                    'temp_F': '77',
                    'FeelsLikeC': '26',
                    'FeelsLikeF': '79',
                    'weatherCode': '116',
                    'weatherDesc': [{'value': 'Partly cloudy'}],
                    'windspeedMiles': '9',
                    'windspeedKmph': '18',
                    'winddirDegree': '',
                    'winddir16Point': 'WSW',
                    'precipMM': '0.0',
                    'precipInches': '0.0',
                    'humidity': '40',
                    'pressure': '1016',
                    'pressureInches': '30',
                    'uvIndex': '7',
                }
            ],
        }
    }


@pytest.fixture  # type: ignore[misc]
def weather_api_response() -> dict[str, Any]:
    """Mock WeatherAPI.com current.json response"""
    return {
        'location': {
            'name': 'Paris',
            'region': 'Ile-de-France',
            'country': 'France',
            'lat': 48.87,
            'lon': 2.33,
        },
        'current': {
            'temp_c': 18.0,
            'temp_f': 64.4,
            'feelslike_c': 17.0,
            'feelslike_f': 62.6,
            'condition': {'text': 'Light rain shower', 'code': 1240},
            'wind_kph': 18.0,
            'wind_mph': 11.2,
            'wind_degree': 200,
            'wind_dir': 'SSW',
            'pressure_mb': 1012.0,
            'pressure_in': 29.88,
            'precip_mm': 0.4,
            'precip_in': 0.02,
            'humidity': 77,
            'dewpoint_c': 13.9,
            'dewpoint_f': 57.0,
            'uv': 3.0,
        },
    }


@pytest.fixture  # type: ignore[misc]
def weatherbit_response() -> dict[str, Any]:
    """Mock Weatherbit current observations response (metric)"""
    return {
        'count': 1,
        'data': [
            {
                'city_name': 'Berlin',
                'lat': 52.52,
                'lon': 13.405,
                'temp': 5.0,
                'app_temp': 2.1,
                'rh': 87,
                'dewpt': 3.0,
                'precip': 0.0,
                'pres': 1000.0,
                'wind_spd': 5.2,
                'wind_dir': None,
                'wind_cdir': 'NW',
                'uv': 0.4,
                'weather': {'code': 600, 'description': 'Light snow'},
            }
        ],
    }


@pytest.fixture  # type: ignore[misc]
def tomorrow_io_response() -> dict[str, Any]:
    """Mock Tomorrow.io realtime response (metric)"""
    return {
        'data': {
            'time': '2024-01-01T12:00:00Z',
            'values': {
                'temperature': 28.0,
                'temperatureApparent': 31.0,
                'humidity': 70,
                'dewPoint': 22.0,
                'windSpeed': 2.5,
                'windDirection': 90,
                'pressureSurfaceLevel': 1009.0,
                'rainIntensity': 1.0,
                'sleetIntensity': 0.25,
                'snowIntensity': 0,
                'freezingRainIntensity': 0.25,
                'uvIndex': 9,
                'weatherCode': 8000,
            },
        },
        'location': {
            'lat': 13.75,
            'lon': 100.5,
            'name': 'Bangkok, Bangkok Metropolitan Region, Thailand',
        },
    }


@pytest.fixture  # type: ignore[misc]
def yr_response() -> dict[str, Any]:
    """Mock met.no locationforecast compact response"""
    return {
        'properties': {
            'timeseries': [
                {
                    'time': '2024-01-01T12:00:00Z',
                    'data': {
                        'instant': {
                            'details': {
                                'air_pressure_at_sea_level': 1020.0,
                                'air_temperature': 20.0,
                                'relative_humidity': 50.0,
                                'wind_from_direction': 45.0,
                                'wind_speed': 2.0,
                            }
                        },
                        'next_1_hours': {
                            'summary': {'symbol_code': 'lightrainshowers_day'},
                            'details': {'precipitation_amount': 0.6},
                        },
                    },
                }
            ]
        }
    }


@pytest.fixture  # type: ignore[misc]
def open_meteo_geocoding_response() -> dict[str, Any]:
    """Mock Open-Meteo geocoding search response"""
    return {
        'results': [
            {
                'id': 2643743,
                'name': 'London',
                'latitude': 51.50853,
                'longitude': -0.12574,
                'country': 'United Kingdom',
            }
        ],
        'generationtime_ms': 0.5,
    }
