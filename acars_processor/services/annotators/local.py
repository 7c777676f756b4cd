"""
Annotators that re-emit fields of the upstream record under their own keys.
"""
from acars_processor.apmessage import APMessage
from acars_processor.core.config import LinkTemplates
from acars_processor.schemas import ACARSMessage, VDLM2Message
from acars_processor.services.annotators.base import Annotator


def _ack(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return "" if value is None else str(value)


class ACARSAnnotator(Annotator):
    """Echo of an ACARS record as ``acars*`` keys."""

    name = "acars"

    def __init__(self, selected_fields=None, links: LinkTemplates | None = None):
        super().__init__(selected_fields)
        self.links = links or LinkTemplates()

    def default_fields(self) -> list[str]:
        return sorted(self._fields(ACARSMessage()))

    def _fields(self, m: ACARSMessage) -> APMessage:
        app = m.app
        tail = m.tail[1:] if m.tail.startswith(".") else m.tail
        return {
            "acarsFrequencyMHz": m.freq,
            "acarsChannel": m.channel,
            "acarsErrorCode": m.error,
            "acarsSignaldBm": m.level,
            "acarsTimestamp": m.timestamp,
            "acarsAppName": app.name if app else "",
            "acarsAppVersion": app.version if app else "",
            "acarsAppProxied": app.proxied if app else False,
            "acarsAppProxiedBy": app.proxied_by if app else "",
            "acarsAppRouterVersion": app.acars_router_version if app else "",
            "acarsAppRouterUUID": app.acars_router_uuid if app else "",
            "acarsStationID": m.station_id,
            "acarsASSStatus": m.assstat,
            "acarsMode": m.mode,
            "acarsLabel": m.label,
            "acarsBlockID": m.block_id,
            "acarsAcknowledge": _ack(m.ack),
            "acarsAircraftTailCode": tail,
            "acarsMessageText": m.text,
            "acarsMessageNumber": m.msgno,
            "acarsFlightNumber": m.flight,
            "acarsExtraURL": self.links.tracking.format(tail=tail),
            "acarsExtraPhotos": self.links.photos.format(tail=tail),
        }

    async def annotate_acars(self, record: ACARSMessage, message: APMessage) -> APMessage:
        return self._fields(record)


class VDLM2Annotator(Annotator):
    """Echo of a VDLM2 frame as ``vdlm2*`` keys, ACARS payload as ``acars*``."""

    name = "vdlm2"

    def __init__(self, selected_fields=None, links: LinkTemplates | None = None):
        super().__init__(selected_fields)
        self.links = links or LinkTemplates()

    def default_fields(self) -> list[str]:
        return sorted(self._fields(VDLM2Message()))

    def _fields(self, m: VDLM2Message) -> APMessage:
        vdl2 = m.vdl2
        app = vdl2.app if vdl2 else None
        avlc = vdl2.avlc if vdl2 else None
        dst = avlc.dst if avlc else None
        src = avlc.src if avlc else None
        t = vdl2.t if vdl2 else None
        acars = m.acars
        tail = acars.reg[1:] if acars.reg.startswith(".") else acars.reg
        return {
            "vdlm2AppName": app.name if app else "",
            "vdlm2AppVersion": app.ver if app else "",
            "vdlm2AppProxied": app.proxied if app else False,
            "vdlm2AppProxiedBy": app.proxied_by if app else "",
            "vdlm2AppRouterVersion": app.acars_router_version if app else "",
            "vdlm2AppRouterUUID": app.acars_router_uuid if app else "",
            "vdlm2CR": avlc.cr if avlc else "",
            "vdlm2DestinationAddress": dst.addr if dst else "",
            "vdlm2DestinationType": dst.type if dst else "",
            "vdlm2FrameType": avlc.frame_type if avlc else "",
            "vdlm2SourceAddress": src.addr if src else "",
            "vdlm2SourceType": src.type if src else "",
            "vdlm2SourceStatus": src.status if src else "",
            "vdlm2RSequence": avlc.rseq if avlc else 0,
            "vdlm2SSequence": avlc.sseq if avlc else 0,
            "vdlm2Poll": avlc.poll if avlc else False,
            "vdlm2BurstLengthOctets": vdl2.burst_len_octets if vdl2 else 0,
            "vdlm2FrequencyHz": vdl2.freq if vdl2 else 0,
            "vdlm2Index": vdl2.idx if vdl2 else 0,
            "vdlm2FrequencySkew": vdl2.freq_skew if vdl2 else 0.0,
            "vdlm2HDRBitsFixed": vdl2.hdr_bits_fixed if vdl2 else 0,
            "vdlm2NoiseLevel": vdl2.noise_level if vdl2 else 0.0,
            "vdlm2OctetsCorrectedByFEC": vdl2.octets_corrected_by_fec if vdl2 else 0,
            "vdlm2SignalLeveldBm": vdl2.sig_level if vdl2 else 0.0,
            "vdlm2Station": vdl2.station if vdl2 else "",
            "vdlm2Timestamp": t.sec if t else 0,
            "vdlm2TimestampMicroseconds": t.usec if t else 0,
            # The embedded payload has the same fields as an ACARS message
            "acarsErrorCode": acars.err,
            "acarsCRCOK": acars.crc_ok,
            "acarsMore": acars.more,
            "acarsAircraftTailCode": tail,
            "acarsMode": acars.mode,
            "acarsLabel": acars.label,
            "acarsBlockID": acars.blk_id,
            "acarsAcknowledge": _ack(acars.ack),
            "acarsFlightNumber": acars.flight,
            "acarsMessageNumber": acars.msg_num,
            "acarsMessageNumberSequence": acars.msg_num_seq,
            "acarsMessageText": acars.msg_text,
            "acarsExtraURL": self.links.tracking.format(tail=tail),
            "acarsExtraPhotos": self.links.photos.format(tail=tail),
        }

    async def annotate_vdlm2(self, record: VDLM2Message, message: APMessage) -> APMessage:
        return self._fields(record)
