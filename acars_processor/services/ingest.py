"""
Ingestion of ACARSHub JSON feeds.

Every decoded message is stored before its id is queued, so a worker never
sees an id the store does not know about. Queueing waits while the queue
is full, which holds back reading from upstream.
"""
import asyncio
import concurrent.futures
import json
import logging
import threading
from typing import Any, Optional, TextIO

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from acars_processor.schemas import SCHEMAS, MessageKind, UpstreamModel
from acars_processor.services.processor import Processor, QueueItem
from acars_processor.services.store import MessageStore

logger = logging.getLogger(__name__)

RECONNECT_DELAY = 1.0
READ_LIMIT = 2 ** 20
STDIN_BUFFER_LINES = 100
STDIN_READER_THREAD = "stdin-reader"

EMPTY_MESSAGE_ERROR = "json message did not match expected structure"


class Ingestor:
    """Validates, stores and queues decoded JSON objects."""

    def __init__(self, store: MessageStore, processor: Processor):
        self.store = store
        self.processor = processor
        self._stats = {"received": 0, "queued": 0, "errors": 0}

    @property
    def stats(self) -> dict:
        return dict(self._stats)

    def decode(self, kind: MessageKind, data: Any) -> Optional[UpstreamModel]:
        """Validate data as a message of kind; None when it does not fit."""
        if not isinstance(data, dict):
            logger.warning(f"Ignoring {kind.value} JSON value that is not an object: {type(data).__name__}")
            return None
        try:
            message = SCHEMAS[kind].model_validate(data)
        except ValidationError as e:
            logger.warning(f"Invalid {kind.value} message: {e.error_count()} validation error(s): {e}")
            return None
        if message.is_empty():
            return None
        return message

    async def store_and_queue(self, kind: MessageKind, message: UpstreamModel) -> Optional[int]:
        try:
            record_id = await self.store.add(message)
        except SQLAlchemyError as e:
            self._stats["errors"] += 1
            logger.error(f"Unable to store {kind.value} message: {e}")
            return None
        await self.processor.enqueue(QueueItem(kind, record_id))
        self._stats["queued"] += 1
        logger.debug(f"Queued {kind.value} message {record_id}")
        return record_id

    async def handle_object(self, kind: MessageKind, data: Any) -> Optional[int]:
        """Store and queue one decoded JSON object; returns the record id."""
        self._stats["received"] += 1
        message = self.decode(kind, data)
        if message is None:
            self._stats["errors"] += 1
            logger.error(f"{kind.value}: {EMPTY_MESSAGE_ERROR}")
            return None
        return await self.store_and_queue(kind, message)


class TCPIngestor(Ingestor):
    """Reads one ACARSHub JSON output port, reconnecting forever."""

    def __init__(
        self,
        kind: MessageKind,
        host: str,
        port: int,
        store: MessageStore,
        processor: Processor,
        recover_pending: bool = True,
    ):
        super().__init__(store, processor)
        self.kind = kind
        self.host = host
        self.port = port
        self.recover = recover_pending

    async def recover_pending(self) -> int:
        """Queue records left pending by a previous run, oldest first."""
        ids = await self.store.pending_ids(self.kind)
        if ids:
            logger.info(f"Re-queueing {len(ids)} pending {self.kind.value} message(s)")
        for record_id in ids:
            await self.processor.enqueue(QueueItem(self.kind, record_id))
        return len(ids)

    async def read_stream(self, reader: asyncio.StreamReader):
        """
        Decode newline framed JSON until EOF.

        A line may hold several concatenated objects.
        """
        decoder = json.JSONDecoder()
        while True:
            line = await reader.readline()
            if not line:
                return
            text = line.decode("utf-8", errors="replace").strip()
            position = 0
            while position < len(text):
                data, position = decoder.raw_decode(text, position)
                await self.handle_object(self.kind, data)
                while position < len(text) and text[position].isspace():
                    position += 1

    async def run(self):
        if self.recover:
            await self.recover_pending()

        while True:
            try:
                reader, writer = await asyncio.open_connection(self.host, self.port, limit=READ_LIMIT)
            except OSError as e:
                logger.error(f"Unable to connect to {self.kind.value} feed at {self.host}:{self.port}: {e}")
                await asyncio.sleep(RECONNECT_DELAY)
                continue

            logger.info(f"Connected to {self.kind.value} feed at {self.host}:{self.port}")
            try:
                await self.read_stream(reader)
                logger.warning(f"{self.kind.value} feed closed the connection")
            except json.JSONDecodeError as e:
                logger.error(f"Invalid JSON from {self.kind.value} feed, reconnecting: {e}")
            except (OSError, ValueError) as e:
                logger.error(f"Error reading {self.kind.value} feed, reconnecting: {e}")
            finally:
                writer.close()
                try:
                    await writer.wait_closed()
                except OSError:
                    pass
            await asyncio.sleep(RECONNECT_DELAY)


class StdinIngestor(Ingestor):
    """Reads one JSON message per line until EOF."""

    def __init__(self, store: MessageStore, processor: Processor, stream: TextIO):
        super().__init__(store, processor)
        self.stream = stream

    async def handle_line(self, line: str) -> Optional[int]:
        line = line.strip()
        if not line:
            return None
        self._stats["received"] += 1
        try:
            data = json.loads(line)
        except json.JSONDecodeError as e:
            self._stats["errors"] += 1
            logger.warning(f"Ignoring line that is not JSON: {e}")
            return None

        # A VDLM2 frame never validates as a non-empty ACARS message and vice versa
        for kind in (MessageKind.VDLM2, MessageKind.ACARS):
            message = self.decode(kind, data)
            if message is not None:
                return await self.store_and_queue(kind, message)
        self._stats["errors"] += 1
        logger.warning(f"Line was neither an ACARS nor a VDLM2 message: {EMPTY_MESSAGE_ERROR}")
        return None

    def _read_lines(self, loop: asyncio.AbstractEventLoop, lines: "asyncio.Queue[str]"):
        try:
            for line in iter(self.stream.readline, ""):
                asyncio.run_coroutine_threadsafe(lines.put(line), loop).result()
            asyncio.run_coroutine_threadsafe(lines.put(""), loop).result()
        except (RuntimeError, concurrent.futures.CancelledError):
            # Event loop closed or shutting down
            return

    async def run(self):
        # A daemon thread, so a read blocked on stdin never holds up shutdown
        loop = asyncio.get_running_loop()
        lines: asyncio.Queue[str] = asyncio.Queue(maxsize=STDIN_BUFFER_LINES)
        threading.Thread(target=self._read_lines, args=(loop, lines), name=STDIN_READER_THREAD, daemon=True).start()
        while True:
            line = await lines.get()
            if not line:
                logger.info("Reached end of standard input")
                return
            await self.handle_line(line)
