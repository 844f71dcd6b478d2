# ABOUTME: Flask + Socket.IO surface for the weather relay
# ABOUTME: Serves normalized reports, provider management, cache control and live updates

import os
import time
from collections.abc import Mapping
from typing import Any

from cachetools import TTLCache
from dotenv import load_dotenv
from flask import Flask, Response, jsonify, request
from flask_compress import Compress
from flask_socketio import SocketIO, emit

from geocoding_cache import GeocodingCache
from live_mode import LiveModeScheduler
from location_resolver import LocationResolver, OpenMeteoGeocoder
from weather_models import (
    AggregateFetchError,
    CityName,
    Coordinates,
    Location,
    ProviderIdentity,
    Units,
    WeatherReport,
)
from weather_providers import (
    OpenUVProvider,
    WeatherProviderManager,
    create_provider,
)
from weather_settings import Settings, load_settings


load_dotenv()
settings = load_settings()

app = Flask(__name__)
secret_key = os.getenv('SECRET_KEY')
if not secret_key:
    import secrets

    secret_key = secrets.token_hex(16)
    print(
        'Warning: No SECRET_KEY environment variable set. '
        'Generated temporary key for this session.'
    )
app.config['SECRET_KEY'] = secret_key

# Enable gzip compression for all responses
Compress(app)

# Initialize SocketIO with secure CORS settings
cors_origins = os.getenv(
    'CORS_ALLOWED_ORIGINS', 'http://localhost:5001,http://127.0.0.1:5001'
).split(',')
socketio = SocketIO(app, cors_allowed_origins=cors_origins)

# Cache for normalized reports (in memory only, max 100 entries)
weather_cache: TTLCache[str, Any] = TTLCache(maxsize=100, ttl=settings.cache_ttl)

# Persistent city -> coordinates cache, only consulted when enabled
geocoding_cache = GeocodingCache(settings.geocoding_cache_path, verbose=settings.verbose)
location_resolver = LocationResolver(
    geocoder=OpenMeteoGeocoder(language=settings.language, timeout=settings.timeout),
    cache=geocoding_cache,
    use_cache=settings.use_geocoding_cache,
    verbose=settings.verbose,
)


def build_provider_manager(
    config: Settings, resolver: LocationResolver | None = None
) -> WeatherProviderManager:
    """Create the providers named in the configuration, first one primary"""
    uv_key = config.api_key(ProviderIdentity.OPEN_UV)
    if uv_key:
        uv_provider: OpenUVProvider | None = OpenUVProvider(
            uv_key, timeout=config.timeout, verbose=config.verbose
        )
        print('☀️  OpenUV API key found - UV index enrichment enabled')
    else:
        uv_provider = None

    manager = WeatherProviderManager(
        resolver=resolver, uv_provider=uv_provider, verbose=config.verbose
    )
    for index, identity in enumerate(config.providers):
        provider = create_provider(
            identity,
            api_key=config.api_key(identity),
            timeout=config.timeout,
            language=config.language,
            verbose=config.verbose,
        )
        manager.add_provider(provider, is_primary=index == 0)
        if provider.check_ready() is not None:
            print(f'🔑 No API key for {provider.name} - it will be skipped as failed')

    print(f"🌤️  Provider order: {' → '.join(manager.provider_order)}")
    return manager


weather_manager = build_provider_manager(settings, location_resolver)

# Scheduler driving Socket.IO live updates, if started
live_scheduler: LiveModeScheduler | None = None


def parse_location(args: Mapping[str, Any]) -> Location:
    """Read a city or lat/lon pair from query args or a socket payload"""
    city = str(args.get('city') or '').strip()
    if city:
        return CityName(city)

    lat = args.get('lat')
    lon = args.get('lon')
    if lat in (None, '') and lon in (None, ''):
        return settings.default_location
    if lat in (None, '') or lon in (None, ''):
        msg = 'Both lat and lon are required'
        raise ValueError(msg)

    try:
        latitude, longitude = float(lat), float(lon)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        msg = f'Invalid coordinates: {lat},{lon}'
        raise ValueError(msg) from None

    # Valid coordinate range check
    min_lat, max_lat = -90, 90
    min_lon, max_lon = -180, 180
    if not (min_lat <= latitude <= max_lat and min_lon <= longitude <= max_lon):
        msg = f'Coordinates out of range: {latitude},{longitude}'
        raise ValueError(msg)
    return Coordinates(latitude, longitude)


def parse_units(args: Mapping[str, Any]) -> Units:
    return Units.from_name(str(args.get('units') or settings.units.value))


def make_cache_key(location: Location, units: Units) -> str:
    if isinstance(location, Coordinates):
        return f'{location.latitude:.4f},{location.longitude:.4f}:{units.value}'
    return f'city:{location.key}:{units.value}'


def fetch_report(location: Location, units: Units, use_cache: bool | None = None) -> WeatherReport:
    """Fetch through the provider manager and remember the serialized report"""
    report = weather_manager.get_weather(location, units, use_cache=use_cache)
    cache_key = make_cache_key(location, units)
    weather_cache[cache_key] = report.to_dict()
    if settings.verbose >= 2:  # noqa: PLR2004
        print(f'💾 Cached weather data for {cache_key}')
    return report


def error_response(payload: dict[str, Any], status_code: int) -> Response:
    response = jsonify(payload)
    response.status_code = status_code
    return response


@app.route('/api/weather')  # type: ignore[misc]
def weather_api() -> Response:
    """API endpoint for weather data"""
    try:
        location = parse_location(request.args)
        units = parse_units(request.args)
    except ValueError as e:
        return error_response({'error': str(e)}, 400)

    nocache = request.args.get('nocache') == '1'
    cache_key = make_cache_key(location, units)

    # Check cache first
    if not nocache and cache_key in weather_cache:
        if settings.verbose >= 2:  # noqa: PLR2004
            print(f'📦 Returning cached data for {cache_key}')
        response = jsonify(weather_cache[cache_key])
        response.headers['Cache-Control'] = f'public, max-age={settings.cache_ttl}'
        return response

    if settings.verbose >= 2:  # noqa: PLR2004
        print(f'🌤️  Fetching weather for {location} using provider system')
    try:
        report = fetch_report(location, units, use_cache=False if nocache else None)
    except AggregateFetchError as e:
        return error_response(e.to_dict(), 500)

    response = jsonify(report.to_dict())
    response.headers['Cache-Control'] = f'public, max-age={settings.cache_ttl}'
    return response


@app.route('/api/cache/stats')  # type: ignore[misc]
def cache_stats() -> Response:
    """API endpoint for cache statistics"""
    try:
        geocoded_cities = len(geocoding_cache)
    except OSError:
        geocoded_cities = 0

    return jsonify(
        {
            'cache_size': len(weather_cache),
            'max_size': weather_cache.maxsize,
            'ttl_seconds': weather_cache.ttl,
            'cached_locations': list(weather_cache.keys()),
            'geocoding': {
                'enabled': location_resolver.caching_enabled,
                'path': str(geocoding_cache.path),
                'entries': geocoded_cities,
            },
        }
    )


@app.route('/api/cache/clear', methods=['POST'])  # type: ignore[misc]
def clear_cache() -> Response:
    """API endpoint to drop cached reports and geocoding results"""
    weather_cache.clear()
    try:
        geocoding_cache.clear()
    except OSError as e:
        print(f'❌ Could not clear geocoding cache {geocoding_cache.path}: {e}')
        return error_response({'success': False, 'error': str(e)}, 500)
    return jsonify({'success': True, 'message': 'Caches cleared'})


@app.route('/api/providers')  # type: ignore[misc]
def get_providers() -> Response:
    """API endpoint to get weather provider information"""
    return jsonify(weather_manager.get_provider_info())


@app.route('/api/providers/switch', methods=['POST'])  # type: ignore[misc]
def switch_provider() -> Response:
    """API endpoint to switch weather provider"""
    data = request.get_json(silent=True) or {}
    provider_name = data.get('provider')

    if not provider_name:
        return error_response({'error': 'Provider name is required'}, 400)

    success = weather_manager.switch_provider(provider_name)

    if success:
        # Clear cache when switching providers
        weather_cache.clear()

        # Notify all connected clients via WebSocket
        provider_info = weather_manager.get_provider_info()
        socketio.emit(
            'provider_switched',
            {'provider': provider_name, 'provider_info': provider_info},
        )

        return jsonify(
            {
                'success': True,
                'message': f'Switched to {provider_name} provider',
                'provider_info': provider_info,
            }
        )
    return error_response(
        {
            'success': False,
            'error': f'Provider {provider_name} not found',
            'available_providers': list(weather_manager.providers.keys()),
        },
        400,
    )


def start_live_updates(
    location: Location, units: Units, interval: float | None = None
) -> LiveModeScheduler:
    """Replace any running live loop with one for this location"""
    global live_scheduler  # noqa: PLW0603

    # The old loop finishes its in-flight tick before the new one fetches
    stop_live_updates(wait=True)

    def on_report(report: WeatherReport) -> None:
        data = report.to_dict()
        weather_cache[make_cache_key(location, units)] = data
        socketio.emit('weather_update', data)

    def on_error(error: AggregateFetchError) -> None:
        socketio.emit('weather_error', error.to_dict())

    live_scheduler = LiveModeScheduler(
        fetch=lambda: weather_manager.get_weather(location, units),
        on_report=on_report,
        on_error=on_error,
        interval=interval or settings.live_mode_interval,
        verbose=settings.verbose,
    )
    live_scheduler.start()
    print(f'🔄 Live updates for {location} every {live_scheduler.interval}s')
    return live_scheduler


def stop_live_updates(wait: bool = False) -> bool:
    """Stop the live loop; returns False when none was running"""
    global live_scheduler  # noqa: PLW0603

    if live_scheduler is None:
        return False
    scheduler, live_scheduler = live_scheduler, None
    scheduler.stop(wait=wait)
    return True


# WebSocket event handlers
@socketio.on('connect')  # type: ignore[misc]
def handle_connect() -> None:
    """Handle client connection"""
    if settings.verbose >= 2:  # noqa: PLR2004
        print(f'🔗 Client connected: {request.sid}')

    # Send current provider info to the newly connected client
    emit('provider_info', weather_manager.get_provider_info())


@socketio.on('disconnect')  # type: ignore[misc]
def handle_disconnect() -> None:
    """Handle client disconnection"""
    if settings.verbose >= 2:  # noqa: PLR2004
        print(f'📡 Client disconnected: {request.sid}')


@socketio.on('request_weather_update')  # type: ignore[misc]
def handle_weather_update_request(data: dict | None = None) -> None:
    """Handle weather update request from client"""
    data = data or {}
    try:
        location = parse_location(data)
        units = parse_units(data)
    except ValueError as e:
        emit('weather_error', {'error': str(e)})
        return

    if settings.verbose >= 2:  # noqa: PLR2004
        print(f'🌤️  Weather update requested for {location}')

    try:
        report = fetch_report(location, units)
    except AggregateFetchError as e:
        emit('weather_error', e.to_dict())
        return
    emit('weather_update', report.to_dict())


@socketio.on('start_live_updates')  # type: ignore[misc]
def handle_start_live_updates(data: dict | None = None) -> None:
    """Begin periodic weather pushes to all connected clients"""
    data = data or {}
    try:
        location = parse_location(data)
        units = parse_units(data)
        interval = float(data['interval']) if data.get('interval') else None
    except (TypeError, ValueError) as e:
        emit('weather_error', {'error': str(e)})
        return

    scheduler = start_live_updates(location, units, interval)
    emit('live_updates_started', {'location': str(location), 'interval': scheduler.interval})


@socketio.on('stop_live_updates')  # type: ignore[misc]
def handle_stop_live_updates() -> None:
    """Stop periodic weather pushes"""
    emit('live_updates_stopped', {'was_running': stop_live_updates()})


@socketio.on('ping')  # type: ignore[misc]
def handle_ping() -> None:
    """Handle ping from client to check connection"""
    emit('pong', {'timestamp': time.time()})


if __name__ == '__main__':
    if settings.live_mode:
        start_live_updates(settings.default_location, settings.units)
    port = int(os.getenv('PORT', '5001'))
    host = os.getenv('HOST', '127.0.0.1')  # Default to localhost, allow override
    socketio.run(app, debug=False, host=host, port=port, allow_unsafe_werkzeug=True)
