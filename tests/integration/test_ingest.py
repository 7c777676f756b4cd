"""Integration tests for ingestion"""
import asyncio
import io
import json
import logging
import threading

import pytest

from acars_processor.schemas import MessageKind
from acars_processor.services.ingest import EMPTY_MESSAGE_ERROR, STDIN_READER_THREAD, StdinIngestor, TCPIngestor
from acars_processor.services.processor import Processor


def stream_of(*chunks: bytes) -> asyncio.StreamReader:
    reader = asyncio.StreamReader()
    for chunk in chunks:
        reader.feed_data(chunk)
    reader.feed_eof()
    return reader


def line(data) -> bytes:
    return json.dumps(data).encode() + b"\n"


class TestTCPIngestor:
    """Tests for reading an ACARSHub feed"""

    @pytest.mark.asyncio
    async def test_empty_object_rejected(self, store, make_acars, caplog):
        """An empty object is logged and skipped, reading continues"""
        processor = Processor(store, [])
        ingestor = TCPIngestor(MessageKind.ACARS, "acarshub", 15550, store, processor)

        with caplog.at_level(logging.ERROR):
            await ingestor.read_stream(stream_of(b"{}\n", line(make_acars())))

        assert EMPTY_MESSAGE_ERROR in caplog.text
        assert processor.queue.qsize() == 1
        assert ingestor.stats == {"received": 2, "queued": 1, "errors": 1}

    @pytest.mark.asyncio
    async def test_several_objects_per_line(self, store, make_acars):
        """Concatenated objects on one line are all ingested"""
        processor = Processor(store, [])
        ingestor = TCPIngestor(MessageKind.ACARS, "acarshub", 15550, store, processor)
        data = json.dumps(make_acars(text="ONE")) + " " + json.dumps(make_acars(text="TWO"))

        await ingestor.read_stream(stream_of(data.encode() + b"\n"))

        items = [processor.queue.get_nowait() for _ in range(processor.queue.qsize())]
        texts = [(await store.get(item.kind, item.id)).text for item in items]
        assert texts == ["ONE", "TWO"]

    @pytest.mark.asyncio
    async def test_partial_chunks(self, store, make_vdlm2):
        """A message split across reads is decoded once complete"""
        processor = Processor(store, [])
        ingestor = TCPIngestor(MessageKind.VDLM2, "acarshub", 15555, store, processor)
        payload = line(make_vdlm2())

        await ingestor.read_stream(stream_of(payload[:40], payload[40:]))

        item = processor.queue.get_nowait()
        assert item.kind == MessageKind.VDLM2
        record = await store.get(MessageKind.VDLM2, item.id)
        assert record.registration == ".N-99 9AB"

    @pytest.mark.asyncio
    async def test_invalid_json_raises(self, store):
        """Broken JSON ends the read so the connection is re-established"""
        processor = Processor(store, [])
        ingestor = TCPIngestor(MessageKind.ACARS, "acarshub", 15550, store, processor)

        with pytest.raises(json.JSONDecodeError):
            await ingestor.read_stream(stream_of(b"{not json\n"))

    @pytest.mark.asyncio
    async def test_wrong_types_rejected(self, store, make_acars):
        processor = Processor(store, [])
        ingestor = TCPIngestor(MessageKind.ACARS, "acarshub", 15550, store, processor)

        await ingestor.read_stream(stream_of(line(make_acars(freq="not a number")), line([1, 2])))

        assert processor.queue.qsize() == 0
        assert ingestor.stats["errors"] == 2

    @pytest.mark.asyncio
    async def test_reads_from_server(self, store, make_acars):
        """The ingestor connects, reads and reconnects after the feed closes"""
        async def serve(reader, writer):
            writer.write(line(make_acars(text="FROM SERVER")))
            await writer.drain()
            writer.close()

        server = await asyncio.start_server(serve, "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        processor = Processor(store, [])
        ingestor = TCPIngestor(MessageKind.ACARS, "127.0.0.1", port, store, processor, recover_pending=False)
        task = asyncio.create_task(ingestor.run())
        try:
            item = await asyncio.wait_for(processor.queue.get(), timeout=5)
        finally:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            server.close()
            await server.wait_closed()

        assert (await store.get(item.kind, item.id)).text == "FROM SERVER"


class TestStdinIngestor:
    """Tests for reading messages from standard input"""

    @pytest.mark.asyncio
    async def test_routes_by_shape(self, store, make_acars, make_vdlm2):
        """Each line is stored as ACARS or VDLM2 by its structure"""
        processor = Processor(store, [])
        stream = io.StringIO(
            json.dumps(make_acars()) + "\n"
            + "\n"
            + "not json\n"
            + "{}\n"
            + json.dumps(make_vdlm2()) + "\n"
        )
        ingestor = StdinIngestor(store, processor, stream)

        await ingestor.run()

        kinds = [processor.queue.get_nowait().kind for _ in range(processor.queue.qsize())]
        assert kinds == [MessageKind.ACARS, MessageKind.VDLM2]
        assert ingestor.stats == {"received": 4, "queued": 2, "errors": 2}

    @pytest.mark.asyncio
    async def test_blocked_read_does_not_hold_shutdown(self, store):
        """Cancelling while stdin is silent returns at once, the reader is a daemon thread"""
        release = threading.Event()

        class SilentStream(io.StringIO):
            def readline(self, *args):
                release.wait(timeout=5)
                return ""

        ingestor = StdinIngestor(store, Processor(store, []), SilentStream())
        task = asyncio.create_task(ingestor.run())
        await asyncio.sleep(0.05)

        readers = [t for t in threading.enumerate() if t.name == STDIN_READER_THREAD]
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await asyncio.wait_for(task, timeout=1)
        release.set()

        assert readers and all(t.daemon for t in readers)
