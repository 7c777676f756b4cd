"""
Utility functions for distance calculations, text helpers and logging setup.
"""
import json
import logging
import math
import re
from typing import Any, Optional

from rich.logging import RichHandler

from acars_processor.core.exceptions import AIResponseError

logger = logging.getLogger(__name__)

EARTH_RADIUS_NM = 3440.065
EARTH_RADIUS_KM = 6371.0088
KM_PER_MI = 1.609344
NM_PER_KM = 1 / 1.852

# WGS-84 ellipsoid
WGS84_A = 6378137.0
WGS84_F = 1 / 298.257223563
WGS84_B = (1 - WGS84_F) * WGS84_A

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_blank_pattern = re.compile(r"^\s*$")
_registration_strip = re.compile(r"[.\s-]")
_json_object_pattern = re.compile(r"\{[^{}]+\}")
_smart_quotes = {
    "“": '"',
    "”": '"',
    "„": '"',
    "″": '"',
    "‘": "'",
    "’": "'",
    "‚": "'",
    "′": "'",
}


def configure_logging(level: str = "INFO", color: bool = False):
    """Configure the root logger, optionally with rich terminal colours."""
    handlers = None
    if color:
        handlers = [RichHandler(rich_tracebacks=True, show_path=False)]
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(name)s: %(message)s" if color else LOG_FORMAT,
        handlers=handlers,
        force=True,
    )


def calculate_distance_nm(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate distance in nautical miles using Haversine formula."""
    lat1_rad, lat2_rad = math.radians(lat1), math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lon = math.radians(lon2 - lon1)

    a = (math.sin(delta_lat / 2) ** 2 +
         math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lon / 2) ** 2)

    return EARTH_RADIUS_NM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in kilometres on a spherical earth."""
    return calculate_distance_nm(lat1, lon1, lat2, lon2) / EARTH_RADIUS_NM * EARTH_RADIUS_KM


def vincenty_km(lat1: float, lon1: float, lat2: float, lon2: float,
                max_iterations: int = 200, tolerance: float = 1e-12) -> float:
    """
    Ellipsoidal distance in kilometres using Vincenty's inverse formula.

    Falls back to the Haversine distance for nearly antipodal points where
    the iteration does not converge.
    """
    if lat1 == lat2 and lon1 == lon2:
        return 0.0

    u1 = math.atan((1 - WGS84_F) * math.tan(math.radians(lat1)))
    u2 = math.atan((1 - WGS84_F) * math.tan(math.radians(lat2)))
    big_l = math.radians(lon2 - lon1)
    lam = big_l
    sin_u1, cos_u1 = math.sin(u1), math.cos(u1)
    sin_u2, cos_u2 = math.sin(u2), math.cos(u2)

    for _ in range(max_iterations):
        sin_lam, cos_lam = math.sin(lam), math.cos(lam)
        sin_sigma = math.sqrt(
            (cos_u2 * sin_lam) ** 2 +
            (cos_u1 * sin_u2 - sin_u1 * cos_u2 * cos_lam) ** 2
        )
        if sin_sigma == 0:
            return 0.0
        cos_sigma = sin_u1 * sin_u2 + cos_u1 * cos_u2 * cos_lam
        sigma = math.atan2(sin_sigma, cos_sigma)
        sin_alpha = cos_u1 * cos_u2 * sin_lam / sin_sigma
        cos_sq_alpha = 1 - sin_alpha ** 2
        # Equatorial line: cos_sq_alpha is zero
        cos_2sigma_m = cos_sigma - 2 * sin_u1 * sin_u2 / cos_sq_alpha if cos_sq_alpha else 0.0
        c = WGS84_F / 16 * cos_sq_alpha * (4 + WGS84_F * (4 - 3 * cos_sq_alpha))
        lam_prev = lam
        lam = big_l + (1 - c) * WGS84_F * sin_alpha * (
            sigma + c * sin_sigma * (cos_2sigma_m + c * cos_sigma * (-1 + 2 * cos_2sigma_m ** 2))
        )
        if abs(lam - lam_prev) < tolerance:
            break
    else:
        logger.debug("Vincenty formula did not converge, using Haversine")
        return haversine_km(lat1, lon1, lat2, lon2)

    u_sq = cos_sq_alpha * (WGS84_A ** 2 - WGS84_B ** 2) / WGS84_B ** 2
    big_a = 1 + u_sq / 16384 * (4096 + u_sq * (-768 + u_sq * (320 - 175 * u_sq)))
    big_b = u_sq / 1024 * (256 + u_sq * (-128 + u_sq * (74 - 47 * u_sq)))
    delta_sigma = big_b * sin_sigma * (
        cos_2sigma_m + big_b / 4 * (
            cos_sigma * (-1 + 2 * cos_2sigma_m ** 2) -
            big_b / 6 * cos_2sigma_m * (-3 + 4 * sin_sigma ** 2) * (-3 + 4 * cos_2sigma_m ** 2)
        )
    )
    return WGS84_B * big_a * (sigma - delta_sigma) / 1000


def km_to_mi(km: float) -> float:
    return km / KM_PER_MI


def km_to_nm(km: float) -> float:
    return km * NM_PER_KM


def parse_geolocation(value: Optional[str]) -> tuple[float, float]:
    """
    Parse a "LAT,LON" string.

    Returns (0.0, 0.0) with a warning when the value is missing or invalid.
    """
    if not value:
        logger.warning("Reference geolocation not set, distances will be measured from 0,0")
        return 0.0, 0.0
    try:
        lat_str, lon_str = value.split(",")
        lat, lon = float(lat_str), float(lon_str)
    except ValueError:
        logger.warning(f"Reference geolocation {value!r} is not LAT,LON, using 0,0")
        return 0.0, 0.0
    if not (-90 <= lat <= 90) or not (-180 <= lon <= 180):
        logger.warning(f"Reference geolocation {value!r} is out of range, using 0,0")
        return 0.0, 0.0
    return lat, lon


def normalize_registration(registration: str) -> str:
    """Strip dots, spaces and dashes and lowercase (".N-99 9AB" -> "n999ab")."""
    return _registration_strip.sub("", registration or "").lower()


def is_blank(text: Any) -> bool:
    """True for None or strings that are empty or whitespace."""
    if text is None:
        return True
    return bool(_blank_pattern.match(str(text)))


def aircraft_or_tower(flight_number: Optional[str]) -> str:
    """Messages with a flight number come from an aircraft."""
    return "Tower" if is_blank(flight_number) else "Aircraft"


def last_characters(text: Optional[str], count: int = 20) -> str:
    """Last count characters of text with newlines flattened, for log lines."""
    if not text:
        return ""
    return text[-count:].replace("\n", " ").replace("\r", " ")


def sanitize_json_string(text: str) -> str:
    """Replace typographic quotes that models like to emit with ASCII ones."""
    for fancy, plain in _smart_quotes.items():
        text = text.replace(fancy, plain)
    return text


def extract_last_json_object(text: str) -> dict:
    """
    Return the last flat {...} object in text.

    Model output can include reasoning before the answer, so only the final
    object is used.
    """
    if text is not None and not isinstance(text, str):
        raise AIResponseError("Response is not text", details={"response": repr(text)[-200:]})
    matches = _json_object_pattern.findall(sanitize_json_string(text or ""))
    if not matches:
        raise AIResponseError("No JSON object found in response", details={"response": (text or "")[-200:]})
    try:
        parsed = json.loads(matches[-1])
    except json.JSONDecodeError as e:
        raise AIResponseError("Response JSON could not be decoded", original_error=e,
                              details={"json": matches[-1]})
    if not isinstance(parsed, dict):
        raise AIResponseError("Response JSON is not an object", details={"json": matches[-1]})
    return parsed


def bearing_between(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Initial bearing in degrees from point 1 to point 2."""
    lat1_rad, lat2_rad = math.radians(lat1), math.radians(lat2)
    delta_lon = math.radians(lon2 - lon1)

    y = math.sin(delta_lon) * math.cos(lat2_rad)
    x = math.cos(lat1_rad) * math.sin(lat2_rad) - math.sin(lat1_rad) * math.cos(lat2_rad) * math.cos(delta_lon)
    return (math.degrees(math.atan2(y, x)) + 360) % 360


def safe_int_altitude(alt_value: Any) -> Optional[int]:
    """Safely convert altitude to int, handling 'ground' and other strings."""
    if alt_value is None:
        return None
    if isinstance(alt_value, bool):
        return None
    if isinstance(alt_value, int):
        return alt_value
    if isinstance(alt_value, float):
        return int(alt_value)
    if isinstance(alt_value, str):
        if alt_value.lower() == "ground":
            return 0
        try:
            return int(float(alt_value))
        except (ValueError, TypeError):
            return None
    return None
