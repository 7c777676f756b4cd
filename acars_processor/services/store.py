"""
Message store.

Records are written once by an ingestor, then moved by exactly one worker
from pending to either processed or soft-deleted. The store is the single
source of truth; queues only carry record ids.
"""
import logging
from datetime import datetime
from typing import Optional, Union

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from acars_processor.models import ACARSRecord, AIDecision, VDLM2Record
from acars_processor.schemas import ACARSMessage, MessageKind, SCHEMAS, UpstreamMessage, VDLM2Message

logger = logging.getLogger(__name__)

Record = Union[ACARSRecord, VDLM2Record]

RECORD_MODELS: dict[MessageKind, type] = {
    MessageKind.ACARS: ACARSRecord,
    MessageKind.VDLM2: VDLM2Record,
}


def record_from_message(message: UpstreamMessage) -> Record:
    """Build an unsaved row for a decoded upstream message."""
    payload = message.model_dump(mode="json")
    if isinstance(message, ACARSMessage):
        return ACARSRecord(
            payload=payload,
            frequency_mhz=message.freq,
            station_id=message.station_id,
            tail=message.tail,
            flight=message.flight,
            label=message.label,
            text=message.text,
        )
    acars = message.acars
    vdl2 = message.vdl2
    return VDLM2Record(
        payload=payload,
        frequency_hz=vdl2.freq if vdl2 else None,
        station=vdl2.station if vdl2 else None,
        registration=acars.reg,
        flight=acars.flight,
        label=acars.label,
        text=acars.msg_text,
    )


def message_from_record(kind: MessageKind, record: Record) -> UpstreamMessage:
    """Rebuild the typed upstream message stored in a row."""
    return SCHEMAS[kind].model_validate(record.payload)


def kind_of(message: UpstreamMessage) -> MessageKind:
    return MessageKind.ACARS if isinstance(message, ACARSMessage) else MessageKind.VDLM2


class MessageStore:
    """Async persistence for messages and AI filter decisions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def add(self, message: UpstreamMessage) -> int:
        """Persist a message and return its id."""
        record = record_from_message(message)
        async with self._session_factory() as session:
            session.add(record)
            await session.commit()
            return record.id

    async def get(self, kind: MessageKind, record_id: int) -> Optional[Record]:
        """Return the live (not soft-deleted) record with this id."""
        model = RECORD_MODELS[kind]
        async with self._session_factory() as session:
            result = await session.execute(
                select(model).where(model.id == record_id, model.deleted_at.is_(None))
            )
            return result.scalar_one_or_none()

    async def _set(self, kind: MessageKind, record_id: int, **values):
        model = RECORD_MODELS[kind]
        values["updated_at"] = datetime.utcnow()
        async with self._session_factory() as session:
            await session.execute(update(model).where(model.id == record_id).values(**values))
            await session.commit()

    async def mark_started(self, kind: MessageKind, record_id: int):
        await self._set(kind, record_id, processing_started_at=datetime.utcnow())

    async def mark_processed(self, kind: MessageKind, record_id: int):
        await self._set(kind, record_id, processing_finished_at=datetime.utcnow(), processed=True)

    async def soft_delete(self, kind: MessageKind, record_id: int):
        await self._set(kind, record_id, deleted_at=datetime.utcnow())

    async def pending_ids(self, kind: MessageKind) -> list[int]:
        """Ids of unprocessed, undeleted records in creation order."""
        model = RECORD_MODELS[kind]
        async with self._session_factory() as session:
            result = await session.execute(
                select(model.id)
                .where(model.processed.is_(False), model.deleted_at.is_(None))
                .order_by(model.created_at, model.id)
            )
            return list(result.scalars().all())

    async def recent_processed_texts(self, limit: int) -> list[str]:
        """
        Message texts of the most recent processed records across both kinds.

        At most limit rows are read per kind; the merged list is cut to
        limit, newest first.
        """
        if limit <= 0:
            return []
        rows: list[tuple[datetime, str]] = []
        async with self._session_factory() as session:
            for model in RECORD_MODELS.values():
                result = await session.execute(
                    select(model.created_at, model.text)
                    .where(model.processed.is_(True), model.deleted_at.is_(None))
                    .order_by(model.created_at.desc(), model.id.desc())
                    .limit(limit)
                )
                rows.extend((created_at, text or "") for created_at, text in result.all())
        rows.sort(key=lambda row: row[0], reverse=True)
        return [text for _, text in rows[:limit]]

    async def record_ai_decision(
        self,
        provider: str,
        model: str,
        system_prompt: str,
        user_prompt: str,
        input_text: str,
        verdict: bool,
        reasoning: str,
    ) -> int:
        decision = AIDecision(
            provider=provider,
            model=model,
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            input_text=input_text,
            verdict=verdict,
            reasoning=reasoning,
        )
        async with self._session_factory() as session:
            session.add(decision)
            await session.commit()
            return decision.id

    async def ai_decisions(self, limit: int = 100) -> list[AIDecision]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(AIDecision).order_by(AIDecision.created_at.desc(), AIDecision.id.desc()).limit(limit)
            )
            return list(result.scalars().all())
