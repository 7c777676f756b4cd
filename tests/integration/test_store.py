"""Integration tests for the message store"""
import pytest

from acars_processor.schemas import ACARSMessage, MessageKind, VDLM2Message
from acars_processor.services.store import message_from_record


class TestMessageLifecycle:
    """Tests for storing and finalising messages"""

    @pytest.mark.asyncio
    async def test_add_and_get(self, store, acars_message):
        """A stored message can be loaded and rebuilt"""
        record_id = await store.add(acars_message)
        record = await store.get(MessageKind.ACARS, record_id)

        assert record is not None
        assert record.tail == ".N123AB"
        assert record.text == "HELLO"
        assert record.processed is False
        assert record.deleted_at is None
        assert message_from_record(MessageKind.ACARS, record) == acars_message

    @pytest.mark.asyncio
    async def test_vdlm2_columns(self, store, vdlm2_message):
        record_id = await store.add(vdlm2_message)
        record = await store.get(MessageKind.VDLM2, record_id)

        assert record.registration == ".N-99 9AB"
        assert record.frequency_hz == 136_975_000
        assert record.station == "KSEA-VDLM2"
        assert message_from_record(MessageKind.VDLM2, record) == vdlm2_message

    @pytest.mark.asyncio
    async def test_kinds_are_separate(self, store, acars_message):
        """Ids are looked up in the table of their kind"""
        record_id = await store.add(acars_message)
        assert await store.get(MessageKind.VDLM2, record_id) is None

    @pytest.mark.asyncio
    async def test_mark_processed(self, store, acars_message):
        record_id = await store.add(acars_message)
        await store.mark_started(MessageKind.ACARS, record_id)
        await store.mark_processed(MessageKind.ACARS, record_id)

        record = await store.get(MessageKind.ACARS, record_id)
        assert record.processed is True
        assert record.processing_started_at is not None
        assert record.processing_finished_at is not None

    @pytest.mark.asyncio
    async def test_soft_delete_hides_record(self, store, acars_message):
        """Soft-deleted records are no longer returned"""
        record_id = await store.add(acars_message)
        await store.soft_delete(MessageKind.ACARS, record_id)

        assert await store.get(MessageKind.ACARS, record_id) is None
        assert await store.pending_ids(MessageKind.ACARS) == []

    @pytest.mark.asyncio
    async def test_pending_ids_in_order(self, store, make_acars):
        """Only unprocessed, undeleted records are pending, oldest first"""
        ids = [await store.add(ACARSMessage.model_validate(make_acars(text=f"MSG {n}"))) for n in range(4)]
        await store.mark_processed(MessageKind.ACARS, ids[1])
        await store.soft_delete(MessageKind.ACARS, ids[2])

        assert await store.pending_ids(MessageKind.ACARS) == [ids[0], ids[3]]


class TestRecentProcessedTexts:
    """Tests for the history used by duplicate suppression"""

    @pytest.mark.asyncio
    async def test_merges_kinds_newest_first(self, store, make_acars, make_vdlm2):
        acars_id = await store.add(ACARSMessage.model_validate(make_acars(text="FIRST")))
        vdlm2_id = await store.add(VDLM2Message.model_validate(make_vdlm2(text="SECOND")))
        pending_id = await store.add(ACARSMessage.model_validate(make_acars(text="PENDING")))
        await store.mark_processed(MessageKind.ACARS, acars_id)
        await store.mark_processed(MessageKind.VDLM2, vdlm2_id)

        texts = await store.recent_processed_texts(10)

        assert set(texts) == {"FIRST", "SECOND"}
        assert pending_id not in texts

    @pytest.mark.asyncio
    async def test_limit(self, store, make_acars):
        for n in range(5):
            record_id = await store.add(ACARSMessage.model_validate(make_acars(text=f"MSG {n}")))
            await store.mark_processed(MessageKind.ACARS, record_id)

        assert len(await store.recent_processed_texts(3)) == 3
        assert await store.recent_processed_texts(0) == []

    @pytest.mark.asyncio
    async def test_deleted_excluded(self, store, make_acars):
        record_id = await store.add(ACARSMessage.model_validate(make_acars(text="GONE")))
        await store.mark_processed(MessageKind.ACARS, record_id)
        await store.soft_delete(MessageKind.ACARS, record_id)

        assert await store.recent_processed_texts(10) == []


class TestAIDecisions:
    """Tests for the AI decision log"""

    @pytest.mark.asyncio
    async def test_record_and_list(self, store):
        decision_id = await store.record_ai_decision(
            provider="ollama",
            model="llama3.1",
            system_prompt="system",
            user_prompt="Is this about a part?",
            input_text="DEFECT LAV INOP",
            verdict=True,
            reasoning="mentions a defect",
        )

        decisions = await store.ai_decisions()
        assert [d.id for d in decisions] == [decision_id]
        assert decisions[0].verdict is True
        assert decisions[0].model == "llama3.1"
