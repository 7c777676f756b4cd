"""
Generic webhook receiver.
"""
import logging
from typing import Optional

import httpx

from acars_processor.apmessage import APMessage
from acars_processor.core.config import WebhookConfig
from acars_processor.core.exceptions import ReceiverError
from acars_processor.core.http import send_request
from acars_processor.services.receivers.base import Receiver
from acars_processor.services.receivers.templates import json_escape, render_template

logger = logging.getLogger(__name__)


class WebhookReceiver(Receiver):
    """Renders the body template and sends it with the configured method and headers."""

    name = "webhook"

    def __init__(self, config: WebhookConfig, client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self.client = client
        self.headers = {header.name: header.value for header in config.headers}
        # Values substituted into a JSON body must not break the document
        self.escape = json_escape if config.template.lstrip().startswith(("{", "[")) else None

    def render(self, message: APMessage) -> str:
        return render_template(self.config.template, message, escape=self.escape)

    async def submit(self, message: APMessage):
        body = self.render(message)
        headers = dict(self.headers)
        if self.escape is not None:
            headers.setdefault("Content-Type", "application/json")
        logger.info(f"Calling webhook {self.config.method} {self.config.url}")
        try:
            response = await send_request(
                self.config.method.upper(),
                self.config.url,
                client=self.client,
                timeout=self.config.timeout,
                headers=headers,
                content=body.encode(),
            )
        except httpx.HTTPStatusError as e:
            raise ReceiverError("Webhook rejected message", self.name, e.response.status_code, e)
        except httpx.HTTPError as e:
            raise ReceiverError("Error calling webhook", self.name, original_error=e)
        if response.text:
            logger.debug(f"Webhook returned: {response.text[:200]}")
