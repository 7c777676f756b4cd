"""
Shared pytest fixtures for acars-processor tests.

Provides an in-memory message store, sample upstream messages and helpers
for faking HTTP services with httpx.MockTransport.
"""
import json
import os
from typing import Callable

import httpx
import pytest
import pytest_asyncio

# Set test environment variables before importing the package
os.environ.setdefault("ACARS_PROCESSOR_CONFIG_FILE", "config.yaml")
os.environ.setdefault("ACARS_PROCESSOR_LOG_LEVEL", "DEBUG")
os.environ.setdefault("ACARS_PROCESSOR_COLOR_OUTPUT", "false")

from acars_processor.core.database import MEMORY_URL, create_engine, create_session_factory, init_db
from acars_processor.schemas import ACARSMessage, VDLM2Message
from acars_processor.services.store import MessageStore


@pytest_asyncio.fixture
async def db_engine():
    """Create an in-memory database with all tables."""
    engine = create_engine(MEMORY_URL)
    await init_db(engine)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def store(db_engine) -> MessageStore:
    """Message store over the in-memory database."""
    return MessageStore(create_session_factory(db_engine))


# =============================================================================
# Sample Message Fixtures
# =============================================================================

def acars_data(**overrides) -> dict:
    data = {
        "freq": 131.55,
        "channel": 2,
        "error": 0,
        "level": -12.3,
        "timestamp": 1718000000.123,
        "app": {"name": "acarsdec", "version": "3.7", "proxied": True, "proxied_by": "acars_router"},
        "station_id": "KSEA-ACARS",
        "assstat": "skipped",
        "mode": "2",
        "label": "H1",
        "block_id": "5",
        "ack": False,
        "tail": ".N123AB",
        "text": "HELLO",
        "msgno": "M01A",
        "flight": "UA0123",
    }
    data.update(overrides)
    return data


def vdlm2_data(reg: str = ".N-99 9AB", text: str = "POS N47.5 W122.3", **acars_overrides) -> dict:
    acars = {
        "err": False,
        "crc_ok": True,
        "more": False,
        "reg": reg,
        "mode": "2",
        "label": "H1",
        "blk_id": "3",
        "ack": "!",
        "flight": "AS0456",
        "msg_num": "D12",
        "msg_num_seq": "A",
        "msg_text": text,
    }
    acars.update(acars_overrides)
    return {
        "vdl2": {
            "app": {"name": "dumpvdl2", "ver": "2.3.0"},
            "avlc": {
                "cr": "Command",
                "dst": {"addr": "10A2B3", "type": "Ground station"},
                "frame_type": "I",
                "src": {"addr": "A1B2C3", "type": "Aircraft", "status": "Airborne"},
                "rseq": 1,
                "sseq": 2,
                "poll": False,
                "acars": acars,
            },
            "burst_len_octets": 120,
            "freq": 136975000,
            "idx": 0,
            "freq_skew": 1.2,
            "hdr_bits_fixed": 0,
            "noise_level": -40.1,
            "octets_corrected_by_fec": 0,
            "sig_level": -18.5,
            "station": "KSEA-VDLM2",
            "t": {"sec": 1718000100, "usec": 5000},
        }
    }


@pytest.fixture
def acars_message() -> ACARSMessage:
    return ACARSMessage.model_validate(acars_data())


@pytest.fixture
def vdlm2_message() -> VDLM2Message:
    return VDLM2Message.model_validate(vdlm2_data())


# =============================================================================
# HTTP Mocking
# =============================================================================

class RecordingTransport(httpx.MockTransport):
    """MockTransport that remembers every request it served."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.requests: list[httpx.Request] = []

        def recording_handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(recording_handler)


def json_response(data, status_code: int = 200) -> Callable[[httpx.Request], httpx.Response]:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, content=json.dumps(data).encode(),
                              headers={"Content-Type": "application/json"})
    return handler


@pytest.fixture
def mock_http():
    """Factory returning (client, transport) for a request handler."""
    clients: list[httpx.AsyncClient] = []

    def factory(handler: Callable[[httpx.Request], httpx.Response]):
        transport = RecordingTransport(handler)
        client = httpx.AsyncClient(transport=transport)
        clients.append(client)
        return client, transport

    return factory


@pytest.fixture
def make_acars():
    """Factory for ACARS JSON payloads."""
    return acars_data


@pytest.fixture
def make_vdlm2():
    """Factory for VDLM2 JSON payloads."""
    return vdlm2_data


@pytest.fixture
def respond_json():
    """Factory for MockTransport handlers returning a JSON body."""
    return json_response
