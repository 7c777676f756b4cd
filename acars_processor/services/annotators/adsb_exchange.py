"""
ADS-B Exchange position lookup by registration.
"""
import logging
from typing import Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from acars_processor.core.config import ADSBExchangeConfig
from acars_processor.core.exceptions import AnnotatorError
from acars_processor.core.http import send_request
from acars_processor.core.utils import haversine_km, normalize_registration
from acars_processor.services.annotators.position import AircraftPosition, PositionAnnotator

logger = logging.getLogger(__name__)

ADSB_EXCHANGE_API = "https://adsbexchange-com1.p.rapidapi.com/v2"
API_KEY_HEADER = "x-rapidapi-key"


class RegistrationResponse(BaseModel):
    """Envelope of the v2 registration endpoint."""
    model_config = ConfigDict(extra="ignore")

    aircraft: list[AircraftPosition] = Field(default_factory=list, alias="ac")
    msg: str = ""
    now: Optional[int] = None
    total: Optional[int] = None


class ADSBExchangeAnnotator(PositionAnnotator):
    name = "adsb_exchange"
    prefix = "adsb"

    def __init__(self, config: ADSBExchangeConfig, client: Optional[httpx.AsyncClient] = None,
                 base_url: str = ADSB_EXCHANGE_API):
        super().__init__(config.reference_geolocation, config.selected_fields)
        self.api_key = config.api_key
        self.timeout = config.timeout
        self.base_url = base_url.rstrip("/")
        self.client = client

    def distance_km(self, lat1: float, lon1: float, lat2: float, lon2: float) -> float:
        return haversine_km(lat1, lon1, lat2, lon2)

    async def lookup(self, registration: str) -> Optional[AircraftPosition]:
        registration = normalize_registration(registration)
        url = f"{self.base_url}/registration/{registration}/"
        logger.debug(f"{self.name}: looking up {registration}")
        try:
            response = await send_request(
                "GET", url, client=self.client, timeout=self.timeout, headers={API_KEY_HEADER: self.api_key}
            )
            result = RegistrationResponse.model_validate(response.json())
        except httpx.HTTPError as e:
            raise AnnotatorError("Error finding aircraft position", self.name, {"error": str(e)})
        except (ValueError, ValidationError) as e:
            raise AnnotatorError("Unable to parse returned aircraft position", self.name, {"error": str(e)})

        if not result.aircraft:
            logger.info(f"{self.name}: no aircraft returned for {registration}: {result.msg}")
            return None
        return result.aircraft[0]
