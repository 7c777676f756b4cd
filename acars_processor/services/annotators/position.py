"""
Aircraft position shared by the ADS-B Exchange and tar1090 annotators.

Both services return readsb style aircraft objects; only the envelope and
the distance formula differ.
"""
import logging
from typing import Any, Callable, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from acars_processor.apmessage import AP_PREFIX, APMessage, get_as_string
from acars_processor.core.utils import (
    bearing_between,
    km_to_mi,
    km_to_nm,
    normalize_registration,
    parse_geolocation,
    safe_int_altitude,
)
from acars_processor.schemas import ACARSMessage, VDLM2Message
from acars_processor.services.annotators.base import Annotator

logger = logging.getLogger(__name__)

DistanceFunc = Callable[[float, float, float, float], float]


class AircraftPosition(BaseModel):
    """One aircraft from a readsb style aircraft list."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True, coerce_numbers_to_str=True)

    hex: str = ""
    type: str = ""
    flight: str = ""
    registration: str = Field("", alias="r")
    aircraft_type: str = Field("", alias="t")
    description: str = Field("", alias="desc")
    owner_operator: str = Field("", alias="ownOp")
    year: str = ""
    # Either feet or the string "ground"
    alt_baro: Union[float, str, None] = None
    alt_geom: Optional[float] = None
    baro_rate: Optional[float] = None
    gs: Optional[float] = None
    track: Optional[float] = None
    squawk: str = ""
    emergency: str = ""
    category: str = ""
    lat: Optional[float] = None
    lon: Optional[float] = None
    r_dir: Optional[float] = None
    rssi: Optional[float] = None
    seen: Optional[float] = None
    messages: Optional[int] = None


# Model attribute -> output field suffix
POSITION_FIELDS = {
    "hex": "Hex",
    "type": "SourceType",
    "flight": "FlightNumber",
    "registration": "Registration",
    "aircraft_type": "AircraftType",
    "description": "AircraftDescription",
    "owner_operator": "AircraftOwnerOperator",
    "year": "AircraftManufactureYear",
    "alt_geom": "GeometricAltitudeFeet",
    "baro_rate": "BarometricAltitudeRateFeet",
    "gs": "GroundSpeedKnots",
    "track": "Track",
    "squawk": "Squawk",
    "emergency": "Emergency",
    "category": "Category",
    "rssi": "RSSISignalPowerdBm",
    "seen": "SecondsSinceLastMessage",
    "messages": "MessageCount",
}

CALCULATED_FIELDS = [
    "BarometricAltitudeFeet",
    "Geolocation",
    "Latitude",
    "Longitude",
    "DirectionDegrees",
    "DistanceKm",
    "DistanceMi",
    "DistanceNm",
]

# Calculated field -> canonical alias shared by both annotators
ALIASES = {
    "Geolocation": "AircraftGeolocation",
    "Latitude": "AircraftLatitude",
    "Longitude": "AircraftLongitude",
    "DistanceKm": "AircraftDistanceKm",
    "DistanceMi": "AircraftDistanceMi",
    "DistanceNm": "AircraftDistanceNm",
    "Emergency": "AircraftEmergency",
}


def position_fields(prefix: str) -> list[str]:
    names = [prefix + suffix for suffix in list(POSITION_FIELDS.values()) + CALCULATED_FIELDS]
    names += [AP_PREFIX + alias for alias in ALIASES.values()]
    return sorted(names)


def position_annotation(
    prefix: str,
    aircraft: AircraftPosition,
    origin: tuple[float, float],
    distance_km: DistanceFunc,
) -> APMessage:
    """
    Fields for one aircraft, namespaced with prefix.

    An aircraft reported at 0,0 has no usable position, so its distance is
    0 rather than the distance to null island.
    """
    lat = aircraft.lat or 0.0
    lon = aircraft.lon or 0.0
    if lat == 0.0 and lon == 0.0:
        km = 0.0
        direction = aircraft.r_dir
    else:
        km = distance_km(origin[0], origin[1], lat, lon)
        direction = aircraft.r_dir if aircraft.r_dir is not None else bearing_between(origin[0], origin[1], lat, lon)

    values: dict[str, Any] = {
        suffix: getattr(aircraft, attribute) for attribute, suffix in POSITION_FIELDS.items()
    }
    values.update({
        "BarometricAltitudeFeet": safe_int_altitude(aircraft.alt_baro),
        "Geolocation": f"{lat:f},{lon:f}",
        "Latitude": lat,
        "Longitude": lon,
        "DirectionDegrees": direction,
        "DistanceKm": km,
        "DistanceMi": km_to_mi(km),
        "DistanceNm": km_to_nm(km),
    })

    annotation = {prefix + suffix: value for suffix, value in values.items() if value is not None}
    for suffix, alias in ALIASES.items():
        annotation[AP_PREFIX + alias] = values[suffix]
    return annotation


class PositionAnnotator(Annotator):
    """Looks the aircraft up by tail code and measures its distance."""

    prefix = ""

    def __init__(self, reference_geolocation: str, selected_fields: Optional[list[str]] = None):
        super().__init__(selected_fields)
        self.origin = parse_geolocation(reference_geolocation)

    def default_fields(self) -> list[str]:
        return position_fields(self.prefix)

    async def lookup(self, registration: str) -> Optional[AircraftPosition]:
        raise NotImplementedError

    def distance_km(self, lat1: float, lon1: float, lat2: float, lon2: float) -> float:
        raise NotImplementedError

    async def _annotate(self, message: APMessage) -> APMessage:
        tail = get_as_string(message, "TailCode")
        if not normalize_registration(tail):
            logger.debug(f"{self.name}: message has no tail code, this is not unusual")
            return {}
        aircraft = await self.lookup(tail)
        if aircraft is None:
            return {}
        return position_annotation(self.prefix, aircraft, self.origin, self.distance_km)

    async def annotate_acars(self, record: ACARSMessage, message: APMessage) -> APMessage:
        return await self._annotate(message)

    async def annotate_vdlm2(self, record: VDLM2Message, message: APMessage) -> APMessage:
        return await self._annotate(message)
