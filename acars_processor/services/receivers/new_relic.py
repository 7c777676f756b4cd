"""
New Relic custom event receiver using the Event API.
"""
import logging
import time
from typing import Optional

import httpx

from acars_processor.apmessage import APMessage
from acars_processor.core.config import NewRelicConfig
from acars_processor.core.exceptions import ReceiverError
from acars_processor.core.http import send_request
from acars_processor.services.receivers.base import Receiver

logger = logging.getLogger(__name__)

EVENTS_ENDPOINT = "https://insights-collector.newrelic.com/v1/accounts/events"
ACCOUNT_EVENTS_ENDPOINT = "https://insights-collector.newrelic.com/v1/accounts/{account_id}/events"
SUBMIT_TIMEOUT = 10


class NewRelicReceiver(Receiver):
    """Records one custom event per message and flushes it immediately."""

    name = "new_relic"

    def __init__(self, config: NewRelicConfig, client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self.client = client
        if config.endpoint:
            self.endpoint = config.endpoint
        elif config.account_id:
            self.endpoint = ACCOUNT_EVENTS_ENDPOINT.format(account_id=config.account_id)
        else:
            self.endpoint = EVENTS_ENDPOINT

    def build_event(self, message: APMessage) -> dict:
        event = {key: value for key, value in message.items() if value is not None}
        event["eventType"] = self.config.custom_event_type
        event["timestamp"] = int(time.time() * 1000)
        return event

    async def submit(self, message: APMessage):
        logger.info(f"Sending {self.config.custom_event_type} event to New Relic")
        try:
            await send_request(
                "POST",
                self.endpoint,
                client=self.client,
                timeout=SUBMIT_TIMEOUT,
                headers={"Api-Key": self.config.api_key},
                json=[self.build_event(message)],
            )
        except httpx.HTTPStatusError as e:
            raise ReceiverError("New Relic rejected event", self.name, e.response.status_code, e)
        except httpx.HTTPError as e:
            raise ReceiverError("Error sending event to New Relic", self.name, original_error=e)
