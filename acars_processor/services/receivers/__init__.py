"""Receivers that deliver processed messages."""
from acars_processor.services.receivers.base import Receiver
from acars_processor.services.receivers.discord import DiscordReceiver
from acars_processor.services.receivers.mastodon import MastodonReceiver
from acars_processor.services.receivers.new_relic import NewRelicReceiver
from acars_processor.services.receivers.webhook import WebhookReceiver

__all__ = [
    "Receiver",
    "WebhookReceiver",
    "DiscordReceiver",
    "NewRelicReceiver",
    "MastodonReceiver",
]
