"""
Discord webhook receiver.

Every field of the message is rendered as a sorted ``**key**: value`` line.
In embed mode the lines become the embed description and the embed colour
is derived from the message; otherwise they are sent as plain content.
"""
import hashlib
import logging
import re
from typing import Any, Optional

import httpx

from acars_processor.apmessage import AP_PREFIX, APMessage, get_as_string
from acars_processor.core.config import DiscordConfig, RGBColor
from acars_processor.core.exceptions import ReceiverError
from acars_processor.core.http import send_request
from acars_processor.core.utils import is_blank
from acars_processor.services.receivers.base import Receiver

logger = logging.getLogger(__name__)

FOOTER = "-# Message generated with [acars-processor](<https://github.com/tyzbit/acars-processor>)"
DESCRIPTION_LIMIT = 4096

DEFAULT_GRADIENT = [
    RGBColor(r=0x64, g=0x8F, b=0xFF),
    RGBColor(r=0x78, g=0x5E, b=0xF0),
    RGBColor(r=0xFF, g=0xB0, b=0x00),
    RGBColor(r=0xFE, g=0x61, b=0x00),
    RGBColor(r=0xDC, g=0x26, b=0x7F),
]

_text_key = re.compile(r".*Text$")
_link_key = re.compile(r".*Link$")
_timestamp_key = re.compile(r".*Timestamp$")


def color_for_string(value: str) -> int:
    """Deterministic colour from the first three bytes of the SHA-256 of value."""
    digest = hashlib.sha256(value.encode()).digest()
    return int.from_bytes(digest[:3], "big")


def color_for_int(value: int, steps: Optional[list[RGBColor]] = None) -> int:
    """Colour interpolated along the gradient for value in 1..100."""
    steps = steps or DEFAULT_GRADIENT
    if len(steps) == 1:
        c = steps[0]
        return (c.r << 16) | (c.g << 8) | c.b
    value = min(100, max(1, value))
    position = (value - 1) / 99 * (len(steps) - 1)
    segment = min(int(position), len(steps) - 2)
    t = position - segment
    c1, c2 = steps[segment], steps[segment + 1]
    r = int(c1.r * (1 - t) + c2.r * t)
    g = int(c1.g * (1 - t) + c2.g * t)
    b = int(c1.b * (1 - t) + c2.b * t)
    return (r << 16) | (g << 8) | b


def link_label(key: str) -> str:
    """TrackingLink -> Tracking"""
    name = key.rsplit(".", 1)[-1]
    return name[:-len("Link")] or name


class DiscordReceiver(Receiver):
    name = "discord"

    def __init__(self, config: DiscordConfig, client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self.client = client

    def missing_required_fields(self, message: APMessage) -> list[str]:
        return [field for field in self.config.required_fields if is_blank(message.get(field))]

    def format_value(self, key: str, value: Any) -> str:
        if isinstance(value, bool):
            value = "true" if value else "false"
        if self.config.format_timestamps and _timestamp_key.match(key) and isinstance(value, (int, float)):
            return f"<t:{int(value)}:R>"
        text = "" if value is None else str(value)
        if self.config.format_text and text and _text_key.match(key):
            return f"```{text}```"
        if text and _link_key.match(key):
            return f"[{link_label(key)}]({text})"
        return text

    def format_lines(self, message: APMessage) -> str:
        lines = [f"**{key}**: {self.format_value(key, message[key])}" for key in sorted(message)]
        return "\n".join(lines) + "\n" + FOOTER

    def title(self, message: APMessage) -> str:
        tail = get_as_string(message, "TailCode")
        if not tail:
            return "ACARS Message"
        direction = "to" if get_as_string(message, "From") == "Tower" else "from"
        return f"ACARS Message {direction} {tail}"

    def embed_color(self, message: APMessage) -> Optional[int]:
        config = self.config
        if config.embed_color_gradient_field:
            value = message.get(config.embed_color_gradient_field)
            if isinstance(value, (int, float)) and not isinstance(value, bool) and value:
                return color_for_int(int(value), config.embed_color_gradient_steps)
        if config.embed_color_facet_fields:
            facet = "".join(
                str(message.get(field, "")) for field in sorted(config.embed_color_facet_fields)
            )
            return color_for_string(facet)
        return None

    def build_payload(self, message: APMessage) -> dict:
        content = self.format_lines(message)
        if not self.config.embed:
            return {"content": "# ACARS Message\n" + content}

        if len(content) > DESCRIPTION_LIMIT:
            logger.warning(f"Discord description is {len(content)} characters, truncating")
            content = content[:DESCRIPTION_LIMIT]
        embed: dict[str, Any] = {"title": self.title(message), "description": content}
        color = self.embed_color(message)
        if color is not None:
            embed["color"] = color
        thumbnail = get_as_string(message, AP_PREFIX + "ThumbnailLink")
        if thumbnail:
            embed["thumbnail"] = {"url": thumbnail}
        return {"embeds": [embed]}

    async def submit(self, message: APMessage):
        missing = self.missing_required_fields(message)
        if missing:
            logger.info(f"Required fields {', '.join(missing)} not present, not calling Discord")
            return

        logger.info("Calling Discord webhook")
        try:
            response = await send_request(
                "POST", self.config.url, client=self.client, timeout=self.config.timeout,
                json=self.build_payload(message),
            )
        except httpx.HTTPStatusError as e:
            raise ReceiverError("Discord rejected message", self.name, e.response.status_code, e)
        except httpx.HTTPError as e:
            raise ReceiverError("Error calling Discord", self.name, original_error=e)
        if response.text:
            logger.debug(f"Discord API returned: {response.text[:200]}")
