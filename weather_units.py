# ABOUTME: Unit conversion helpers and derived weather metrics
# ABOUTME: Dew point (Magnus formula), apparent temperature, compass-point wind directions

import math


# Magnus formula coefficients (Alduchov & Eskridge)
MAGNUS_B = 17.625
MAGNUS_C = 243.04

KMH_PER_MS = 3.6
MPH_PER_MS = 2.2369362920544
MM_PER_INCH = 25.4
HPA_PER_INHG = 33.8638866667

WIND_DIRECTIONS = [
    'N', 'NNE', 'NE', 'ENE', 'E', 'ESE', 'SE', 'SSE',
    'S', 'SSW', 'SW', 'WSW', 'W', 'WNW', 'NW', 'NNW',
]  # fmt: skip


def c_to_f(celsius: float) -> float:
    """Convert Celsius to Fahrenheit"""
    return celsius * 9.0 / 5.0 + 32.0


def f_to_c(fahrenheit: float) -> float:
    """Convert Fahrenheit to Celsius"""
    return (fahrenheit - 32.0) * 5.0 / 9.0


def ms_to_mph(speed: float) -> float:
    return speed * MPH_PER_MS


def mph_to_ms(speed: float) -> float:
    return speed / MPH_PER_MS


def kmh_to_ms(speed: float) -> float:
    return speed / KMH_PER_MS


def mm_to_inches(amount: float) -> float:
    return amount / MM_PER_INCH


def inches_to_mm(amount: float) -> float:
    return amount * MM_PER_INCH


def hpa_to_inhg(pressure: float) -> float:
    return pressure / HPA_PER_INHG


def inhg_to_hpa(pressure: float) -> float:
    return pressure * HPA_PER_INHG


def dew_point(temperature: float, humidity: float, imperial: bool = False) -> float:
    """Calculate dew point with the Magnus formula, rounded to one decimal.

    ``temperature`` is in Fahrenheit when ``imperial`` is set, Celsius otherwise;
    the result uses the same scale. ``humidity`` is relative humidity in percent
    and must be positive.
    """
    if humidity <= 0:
        msg = f'Relative humidity must be positive, got {humidity}'
        raise ValueError(msg)

    temp_c = f_to_c(temperature) if imperial else temperature
    gamma = (MAGNUS_B * temp_c) / (MAGNUS_C + temp_c) + math.log(humidity / 100.0)
    result = (MAGNUS_C * gamma) / (MAGNUS_B - gamma)
    if imperial:
        result = c_to_f(result)

    return round(result, 1)


def apparent_temperature(temperature: float, wind_speed: float, humidity: float) -> float:
    """Australian apparent temperature (Steadman) in Celsius.

    AT = T + 0.33e - 0.70v - 4.00, where e is vapour pressure in hPa and v
    is wind speed in m/s. Valid roughly for 10-40°C and winds up to 10 m/s.
    """
    vapour_pressure = (
        (humidity / 100.0)
        * 6.105
        * math.exp(17.27 * temperature / (237.7 + temperature))
    )
    result = temperature + 0.33 * vapour_pressure - 0.70 * wind_speed - 4.00
    return round(result, 1)


def normalize_wind_direction(degrees: float) -> int:
    """Clamp a bearing into the 0-359 integer range"""
    return int(round(degrees)) % 360


def compass_to_degrees(point: str) -> int:
    """Convert a 16-point compass direction (e.g. 'WSW') into degrees"""
    key = point.strip().upper()
    if key not in WIND_DIRECTIONS:
        msg = f'Unknown compass direction: {point!r}'
        raise ValueError(msg)
    return normalize_wind_direction(WIND_DIRECTIONS.index(key) * 22.5)
