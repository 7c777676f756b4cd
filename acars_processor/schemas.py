"""
Pydantic schemas for upstream ACARSHub JSON messages.
"""
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class MessageKind(str, Enum):
    """Upstream stream a message came from."""
    ACARS = "acars"
    VDLM2 = "vdlm2"


class UpstreamModel(BaseModel):
    """Base for decoded upstream JSON; unknown fields are ignored."""
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    def is_empty(self) -> bool:
        """True when nothing distinguishes this from a default instance."""
        return self == type(self)()


# ============================================================================
# ACARS
# ============================================================================

class AppInfo(UpstreamModel):
    """Decoder application block."""
    name: str = ""
    version: str = ""
    proxied: bool = False
    proxied_by: str = ""
    acars_router_version: str = ""
    acars_router_uuid: str = ""


class ACARSMessage(UpstreamModel):
    """ACARS message as emitted by acarsdec through ACARSHub."""
    freq: float = Field(0.0, description="Frequency in MHz")
    channel: int = 0
    error: int = 0
    level: float = Field(0.0, description="Signal level in dBm")
    timestamp: float = Field(0.0, description="Unix time with fractional seconds")
    app: Optional[AppInfo] = None
    station_id: str = ""
    assstat: str = ""
    mode: str = ""
    label: str = ""
    block_id: str = ""
    # Some decoders send booleans here, others a single character
    ack: Union[bool, str, None] = None
    tail: str = ""
    text: str = ""
    msgno: str = ""
    flight: str = ""


# ============================================================================
# VDLM2
# ============================================================================

class VDL2App(UpstreamModel):
    name: str = ""
    ver: str = ""
    proxied: bool = False
    proxied_by: str = ""
    acars_router_version: str = ""
    acars_router_uuid: str = ""


class AVLCAddress(UpstreamModel):
    addr: str = ""
    type: str = ""
    status: str = ""


class AVLCACARS(UpstreamModel):
    err: bool = False
    crc_ok: bool = False
    more: bool = False
    reg: str = ""
    mode: str = ""
    label: str = ""
    blk_id: str = ""
    ack: Union[bool, str, None] = None
    flight: str = ""
    msg_num: str = ""
    msg_num_seq: str = ""
    msg_text: str = ""


class AVLC(UpstreamModel):
    cr: str = ""
    dst: Optional[AVLCAddress] = None
    frame_type: str = ""
    src: Optional[AVLCAddress] = None
    rseq: int = 0
    sseq: int = 0
    poll: bool = False
    acars: Optional[AVLCACARS] = None


class VDL2Timestamp(UpstreamModel):
    sec: int = 0
    usec: int = 0


class VDL2(UpstreamModel):
    app: Optional[VDL2App] = None
    avlc: Optional[AVLC] = None
    burst_len_octets: int = 0
    freq: int = Field(0, description="Frequency in Hz")
    idx: int = 0
    freq_skew: float = 0.0
    hdr_bits_fixed: int = 0
    noise_level: float = 0.0
    octets_corrected_by_fec: int = 0
    sig_level: float = Field(0.0, description="Signal level in dBm")
    station: str = ""
    t: Optional[VDL2Timestamp] = None


class VDLM2Message(UpstreamModel):
    """VDL Mode 2 frame as emitted by dumpvdl2 through ACARSHub."""
    vdl2: Optional[VDL2] = None

    @property
    def acars(self) -> AVLCACARS:
        """The embedded ACARS payload, or an empty one."""
        if self.vdl2 and self.vdl2.avlc and self.vdl2.avlc.acars:
            return self.vdl2.avlc.acars
        return AVLCACARS()


UpstreamMessage = Union[ACARSMessage, VDLM2Message]

SCHEMAS: dict[MessageKind, type[UpstreamModel]] = {
    MessageKind.ACARS: ACARSMessage,
    MessageKind.VDLM2: VDLM2Message,
}
