"""
Mastodon receiver, posting statuses through apprise.
"""
import logging
from typing import Optional
from urllib.parse import quote, urlsplit

import apprise

from acars_processor.apmessage import APMessage
from acars_processor.core.config import MastodonConfig
from acars_processor.core.exceptions import ConfigError, ReceiverError
from acars_processor.services.receivers.base import Receiver
from acars_processor.services.receivers.templates import render_template

logger = logging.getLogger(__name__)


def apprise_url(config: MastodonConfig) -> str:
    """mastodons://token@host/?visibility=unlisted"""
    server = config.server if "://" in config.server else f"https://{config.server}"
    parts = urlsplit(server)
    if not parts.netloc:
        raise ConfigError(f"Mastodon server {config.server!r} is not a valid URL")
    scheme = "mastodons" if parts.scheme == "https" else "mastodon"
    token = quote(config.access_token, safe="")
    return f"{scheme}://{token}@{parts.netloc}{parts.path.rstrip('/')}/?visibility={config.visibility}"


class MastodonReceiver(Receiver):
    name = "mastodon"

    def __init__(self, config: MastodonConfig, notifier: Optional[apprise.Apprise] = None):
        self.config = config
        if notifier is None:
            notifier = apprise.Apprise()
            if not notifier.add(apprise_url(config)):
                raise ConfigError("Mastodon configuration was not accepted by apprise",
                                  {"server": config.server})
        self.notifier = notifier

    def render(self, message: APMessage) -> str:
        return render_template(self.config.template, message)

    async def submit(self, message: APMessage):
        status = self.render(message)
        logger.info(f"Posting {self.config.visibility} status to {self.config.server}")
        result = await self.notifier.async_notify(body=status)
        if not result:
            raise ReceiverError("Mastodon status was not posted", self.name)
