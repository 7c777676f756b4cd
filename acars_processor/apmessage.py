"""
Flat key/value view of a message ("APMessage").

A record is flattened into dot-path keys prefixed with its type name
(``ACARSMessage.app.name``, ``VDLM2Message.vdl2.avlc.acars.reg``). A small
set of canonical fields is added under the ``ACARSProcessor.`` prefix so
filters and receiver templates can address ACARS and VDLM2 the same way.
"""
from collections.abc import Mapping
from typing import Any, Optional
from urllib.parse import quote_plus

from pydantic import BaseModel

from acars_processor.core.config import LinkTemplates
from acars_processor.core.utils import aircraft_or_tower
from acars_processor.schemas import ACARSMessage, MessageKind, UpstreamMessage, VDLM2Message

AP_PREFIX = "ACARSProcessor."

APMessage = dict[str, Any]

# Verbatim field path -> canonical alias
ACARS_ALIASES = {
    "flight": "FlightNumber",
    "freq": "FrequencyMHz",
    "level": "SignalLeveldBm",
    "station_id": "StationId",
    "assstat": "ASSStatus",
    "label": "Label",
    "text": "MessageText",
}

VDLM2_ALIASES = {
    "vdl2.avlc.acars.flight": "FlightNumber",
    "vdl2.freq": "FrequencyHz",
    "vdl2.sig_level": "SignalLeveldBm",
    "vdl2.station": "StationId",
    "vdl2.avlc.acars.label": "Label",
    "vdl2.avlc.acars.more": "More",
    "vdl2.avlc.acars.msg_text": "MessageText",
    "vdl2.t.sec": "UnixTimestamp",
}

# Every alias a projection can emit
CANONICAL_FIELDS = [
    "TailCode",
    "FlightNumber",
    "FrequencyMHz",
    "FrequencyHz",
    "UnixTimestamp",
    "SignalLeveldBm",
    "StationId",
    "MessageText",
    "Label",
    "ASSStatus",
    "More",
    "From",
    "TrackingLink",
    "PhotosLink",
    "ThumbnailLink",
    "ImageLink",
    "TranslateLink",
    "ACARSDramaTailNumberLink",
]


def ap_key(name: str) -> str:
    """Canonical key for name; already prefixed names are returned as is."""
    return name if name.startswith(AP_PREFIX) else AP_PREFIX + name


def flatten(value: Any, prefix: str, out: Optional[APMessage] = None) -> APMessage:
    """
    Flatten nested models, mappings and sequences into dot-path keys.

    Mappings extend the path with ``.key``, sequences with ``.[i]``.
    None values produce no entry.
    """
    if out is None:
        out = {}
    if value is None:
        return out
    if isinstance(value, BaseModel):
        value = value.model_dump()
    if isinstance(value, Mapping):
        for key, item in value.items():
            flatten(item, f"{prefix}.{key}" if prefix else str(key), out)
    elif isinstance(value, (list, tuple)):
        for index, item in enumerate(value):
            flatten(item, f"{prefix}.[{index}]", out)
    else:
        out[prefix] = value
    return out


def _lookup(data: Mapping, path: str) -> Any:
    value: Any = data
    for part in path.split("."):
        if not isinstance(value, Mapping):
            return None
        value = value.get(part)
    return value


def _stringify_ack(ack: Any) -> Optional[str]:
    if ack is None:
        return None
    if isinstance(ack, bool):
        return "true" if ack else "false"
    return str(ack)


def _links(tail: Optional[str], text: Optional[str], links: LinkTemplates) -> APMessage:
    tail = tail or ""
    return {
        "TrackingLink": links.tracking.format(tail=tail) if tail else "",
        "PhotosLink": links.photos.format(tail=tail) if tail else "",
        # Image lookups need the network, so projection leaves them empty
        "ThumbnailLink": "",
        "ImageLink": "",
        "TranslateLink": links.translate.format(text=quote_plus(text or "")),
        "ACARSDramaTailNumberLink": links.acars_drama.format(tail=tail) if tail else "",
    }


def _strip_tail(tail: Optional[str]) -> Optional[str]:
    if tail is None:
        return None
    return tail[1:] if tail.startswith(".") else tail


def _add_aliases(message: APMessage, data: Mapping, aliases: dict[str, str]):
    for path, alias in aliases.items():
        message[AP_PREFIX + alias] = _lookup(data, path)


def ap_message_from_acars(record: ACARSMessage, links: Optional[LinkTemplates] = None) -> APMessage:
    """Project an ACARS message to its flat view."""
    links = links or LinkTemplates()
    data = record.model_dump()
    data["ack"] = _stringify_ack(data.get("ack"))

    message = flatten(data, "ACARSMessage")
    _add_aliases(message, data, ACARS_ALIASES)

    tail = _strip_tail(record.tail)
    derived = {
        "TailCode": tail,
        "FrequencyHz": int(round(record.freq * 1_000_000)),
        "UnixTimestamp": int(record.timestamp),
        "From": aircraft_or_tower(record.flight),
        **_links(tail, record.text, links),
    }
    message.update({AP_PREFIX + k: v for k, v in derived.items()})
    return message


def ap_message_from_vdlm2(record: VDLM2Message, links: Optional[LinkTemplates] = None) -> APMessage:
    """Project a VDLM2 frame to its flat view."""
    links = links or LinkTemplates()
    data = record.model_dump()
    acars = _lookup(data, "vdl2.avlc.acars")
    if isinstance(acars, dict):
        acars["ack"] = _stringify_ack(acars.get("ack"))

    message = flatten(data, "VDLM2Message")
    _add_aliases(message, data, VDLM2_ALIASES)

    tail = _strip_tail(_lookup(data, "vdl2.avlc.acars.reg"))
    frequency_hz = message.get(AP_PREFIX + "FrequencyHz")
    flight = message.get(AP_PREFIX + "FlightNumber")
    derived = {
        "TailCode": tail,
        "FrequencyMHz": frequency_hz / 1_000_000 if frequency_hz is not None else None,
        "From": aircraft_or_tower(flight),
        **_links(tail, message.get(AP_PREFIX + "MessageText"), links),
    }
    message.update({AP_PREFIX + k: v for k, v in derived.items()})
    return message


def project(kind: MessageKind, record: UpstreamMessage, links: Optional[LinkTemplates] = None) -> APMessage:
    """Project a record of the given kind."""
    if kind == MessageKind.ACARS:
        return ap_message_from_acars(record, links)
    return ap_message_from_vdlm2(record, links)


def merge_ap_messages(first: Mapping[str, Any], second: Mapping[str, Any]) -> APMessage:
    """New message with the entries of first then second; second wins."""
    merged = dict(first)
    merged.update(second)
    return merged


def get_as_string(message: Mapping[str, Any], name: str) -> str:
    value = message.get(ap_key(name))
    return value if isinstance(value, str) else ""


def get_as_int(message: Mapping[str, Any], name: str) -> int:
    value = message.get(ap_key(name))
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return 0


def get_as_float(message: Mapping[str, Any], name: str) -> float:
    """Float value of name; integers are widened, anything else is 0.0."""
    value = message.get(ap_key(name))
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    return 0.0


def get_as_bool(message: Mapping[str, Any], name: str) -> bool:
    value = message.get(ap_key(name))
    return value if isinstance(value, bool) else False


def has_field(message: Mapping[str, Any], name: str) -> bool:
    """True when name is present with a non-null value."""
    return message.get(ap_key(name)) is not None


def select_fields(message: Mapping[str, Any], selected: list[str]) -> APMessage:
    """Keep only selected keys; an empty selection keeps everything."""
    if not selected:
        return dict(message)
    allowed = set(selected)
    return {k: v for k, v in message.items() if k in allowed}
