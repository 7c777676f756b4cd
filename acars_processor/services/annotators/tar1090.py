"""
tar1090 position lookup from a local receiver's aircraft list.
"""
import logging
import time
from typing import Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from acars_processor.core.config import Tar1090Config
from acars_processor.core.exceptions import AnnotatorError
from acars_processor.core.http import send_request
from acars_processor.core.utils import normalize_registration, vincenty_km
from acars_processor.services.annotators.position import AircraftPosition, PositionAnnotator

logger = logging.getLogger(__name__)


class AircraftList(BaseModel):
    """data/aircraft.json"""
    model_config = ConfigDict(extra="ignore")

    now: Optional[float] = None
    messages: Optional[int] = None
    aircraft: list[AircraftPosition] = Field(default_factory=list)


class Tar1090Annotator(PositionAnnotator):
    name = "tar1090"
    prefix = "tar1090"

    def __init__(self, config: Tar1090Config, client: Optional[httpx.AsyncClient] = None):
        super().__init__(config.reference_geolocation, config.selected_fields)
        self.url = config.url.rstrip("/")
        self.timeout = config.timeout
        self.client = client

    def distance_km(self, lat1: float, lon1: float, lat2: float, lon2: float) -> float:
        return vincenty_km(lat1, lon1, lat2, lon2)

    async def fetch_aircraft(self) -> list[AircraftPosition]:
        url = f"{self.url}/data/aircraft.json"
        try:
            response = await send_request(
                "GET", url, client=self.client, timeout=self.timeout, params={"_": int(time.time())}
            )
            return AircraftList.model_validate(response.json()).aircraft
        except httpx.HTTPError as e:
            raise AnnotatorError("Error fetching aircraft from tar1090", self.name, {"error": str(e)})
        except (ValueError, ValidationError) as e:
            raise AnnotatorError("Unable to parse tar1090 aircraft list", self.name, {"error": str(e)})

    async def lookup(self, registration: str) -> Optional[AircraftPosition]:
        wanted = normalize_registration(registration)
        for aircraft in await self.fetch_aircraft():
            if normalize_registration(aircraft.registration) == wanted:
                return aircraft
        logger.debug(f"{self.name}: aircraft {wanted} not found")
        raise AnnotatorError("aircraft not found", self.name, {"registration": wanted})
