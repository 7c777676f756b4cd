"""
Work queue, worker pool and step chain.

Ingestors persist each message and then put its id on a bounded queue.
Workers take ids off the queue, load the record, project it to an
APMessage and run it through the configured steps. A vetoed record is
soft-deleted, a completed one is marked processed. Errors inside a chain
never stop a worker. A failing filter resolves to its filter_on_failure
setting, failing annotators and receivers are skipped, and a chain that
fails outright still leaves its record processed. Only a store failure
leaves a record pending for the next start.
"""
import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from acars_processor.apmessage import APMessage, get_as_string, merge_ap_messages, project
from acars_processor.core.config import LinkTemplates
from acars_processor.core.exceptions import ACARSProcessorError, FilterError
from acars_processor.core.utils import last_characters
from acars_processor.schemas import MessageKind, UpstreamMessage
from acars_processor.services.filters.base import Filter
from acars_processor.services.steps import Step
from acars_processor.services.store import MessageStore, message_from_record

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_CAPACITY = 10_000


@dataclass(frozen=True)
class QueueItem:
    kind: MessageKind
    id: int


@dataclass
class ChainResult:
    filtered: bool = False
    step: int = 0
    reason: str = ""
    message: APMessage = field(default_factory=dict)


class Processor:
    """Runs queued messages through the step chain with a pool of workers."""

    def __init__(
        self,
        store: MessageStore,
        steps: list[Step],
        max_concurrent: int = 1,
        capacity: int = DEFAULT_QUEUE_CAPACITY,
        links: Optional[LinkTemplates] = None,
    ):
        self.store = store
        self.steps = steps
        self.worker_count = max(1, max_concurrent)
        self.capacity = capacity
        self.links = links or LinkTemplates()
        self.queue: asyncio.Queue[QueueItem] = asyncio.Queue(maxsize=capacity)
        self._workers: list[asyncio.Task] = []
        self._running = False

        self._stats = {"processed": 0, "filtered": 0, "errors": 0}

    @property
    def stats(self) -> dict:
        return dict(self._stats)

    async def enqueue(self, item: QueueItem):
        """Queue an already stored record; waits while the queue is full."""
        await self.queue.put(item)

    async def start(self):
        if self._running:
            return
        self._running = True
        for number in range(self.worker_count):
            self._workers.append(asyncio.create_task(self._worker(number), name=f"worker-{number}"))
        logger.info(f"Started {self.worker_count} worker(s), queue capacity {self.capacity}")

    async def stop(self):
        """Cancel workers; in-flight records stay pending."""
        self._running = False
        for task in self._workers:
            task.cancel()
        for task in self._workers:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._workers.clear()
        logger.info(f"Processor stopped: {self._stats}")

    async def join(self):
        """Wait until every queued item has been handled."""
        await self.queue.join()

    async def _worker(self, number: int):
        while True:
            item = await self.queue.get()
            try:
                await self.process_item(item)
            except Exception as e:
                self._stats["errors"] += 1
                logger.exception(f"Worker {number}: error processing {item.kind.value} message {item.id}, "
                                 f"leaving it pending: {e}")
            finally:
                self.queue.task_done()

    async def process_item(self, item: QueueItem) -> Optional[ChainResult]:
        started = time.monotonic()
        try:
            record = await self.store.get(item.kind, item.id)
        except SQLAlchemyError as e:
            logger.error(f"Unable to load {item.kind.value} message {item.id}: {e}")
            return None
        if record is None:
            logger.error(f"{item.kind.value} message {item.id} not found in store")
            return None
        if record.processed:
            logger.info(f"{item.kind.value} message {item.id} was already processed, skipping")
            return None

        await self.store.mark_started(item.kind, item.id)
        try:
            upstream = message_from_record(item.kind, record)
            message = project(item.kind, upstream, self.links)
            result = await self.run_chain(item.kind, upstream, message)
        except Exception as e:
            # Settled anyway so the record is not re-queued at every start
            self._stats["errors"] += 1
            logger.exception(f"Step chain failed for {item.kind.value} message {item.id}, "
                             f"marking it processed: {e}")
            await self.store.mark_processed(item.kind, item.id)
            return ChainResult(False, 0, f"error: {e}")

        if result.filtered:
            await self.store.soft_delete(item.kind, item.id)
            self._stats["filtered"] += 1
        else:
            await self.store.mark_processed(item.kind, item.id)
            self._stats["processed"] += 1

        elapsed = time.monotonic() - started
        age = (datetime.utcnow() - record.created_at).total_seconds() if record.created_at else 0.0
        outcome = f"filtered ({result.reason})" if result.filtered else "processed"
        logger.info(
            f"{item.kind.value} message {item.id} ending in "
            f"\"{last_characters(get_as_string(result.message, 'MessageText'))}\" {outcome} "
            f"after {result.step} step(s) in {elapsed:.2f}s, {age:.1f}s after ingest"
        )
        return result

    async def apply_filter(self, f: Filter, message: APMessage) -> tuple[bool, str]:
        """Run a filter; an error becomes a veto when filter_on_failure is set."""
        try:
            result = await f.filter(message)
        except FilterError as e:
            action = "filtering" if f.filter_on_failure else "not filtering"
            logger.warning(f"{f.name} filter could not decide, {action}: {e}")
            return f.filter_on_failure, f"error: {e.message}"
        except Exception as e:
            action = "filtering" if f.filter_on_failure else "not filtering"
            logger.exception(f"{f.name} filter failed unexpectedly, {action}: {e}")
            return f.filter_on_failure, f"error: {e}"
        return result.filtered, result.reason

    async def run_chain(self, kind: MessageKind, record: UpstreamMessage, message: APMessage) -> ChainResult:
        for number, step in enumerate(self.steps, start=1):
            for f in step.filters:
                filtered, reason = await self.apply_filter(f, message)
                if filtered:
                    logger.info(f"Step {number}: {f.name} filtered message: {reason}")
                    return ChainResult(True, number, f"{f.name}:{reason}" if reason else f.name, message)

            for annotator in step.annotators:
                try:
                    annotation = await annotator.annotate(kind, record, message)
                except ACARSProcessorError as e:
                    logger.warning(f"Step {number}: {annotator.name} annotator failed: {e}")
                    continue
                except Exception as e:
                    logger.exception(f"Step {number}: {annotator.name} annotator failed unexpectedly: {e}")
                    continue
                if annotation:
                    message = merge_ap_messages(message, annotation)

            for receiver in step.receivers:
                try:
                    await receiver.submit(message)
                except ACARSProcessorError as e:
                    logger.warning(f"Step {number}: {receiver.name} receiver failed: {e}")
                except Exception as e:
                    logger.exception(f"Step {number}: {receiver.name} receiver failed unexpectedly: {e}")

        return ChainResult(False, len(self.steps), "", message)
