"""Tests for the built-in filter predicates"""
import pytest

from acars_processor.apmessage import ap_message_from_acars
from acars_processor.core.config import BuiltinFilterConfig, TermCountConfig
from acars_processor.core.exceptions import ConfigError, FilterError, MissingFieldError
from acars_processor.schemas import ACARSMessage, MessageKind
from acars_processor.services.filters.builtin import BuiltinFilter, freetext_term_present, normalize_frequency_hz


def message(**values) -> dict:
    return {f"ACARSProcessor.{key}": value for key, value in values.items()}


async def run(config: BuiltinFilterConfig, msg: dict, **kwargs):
    return await BuiltinFilter(config, **kwargs).filter(msg)


class TestHelpers:
    """Tests for predicate helpers"""

    def test_frequency_mhz_and_hz(self):
        """MHz and Hz values normalise to the same Hz"""
        assert normalize_frequency_hz(136.95) == 136_950_000
        assert normalize_frequency_hz(136_950_000) == 136_950_000

    def test_freetext_terms(self):
        assert freetext_term_present("LAV INOP AFT")
        assert freetext_term_present("DISP REQUEST")
        assert not freetext_term_present("POS N47 W122")


class TestPredicates:
    """Tests for individual predicates"""

    @pytest.mark.asyncio
    async def test_no_predicates_pass(self):
        """A filter with nothing configured never vetoes"""
        result = await run(BuiltinFilterConfig(), message())
        assert not result.filtered

    @pytest.mark.asyncio
    async def test_has_text(self):
        """Blank text is vetoed when text is required"""
        config = BuiltinFilterConfig(has_text=True)
        assert (await run(config, message(MessageText="  "))).filtered
        assert not (await run(config, message(MessageText="HELLO"))).filtered

    @pytest.mark.asyncio
    async def test_tail_code(self):
        config = BuiltinFilterConfig(tail_code="N123AB")
        assert not (await run(config, message(TailCode="N123AB"))).filtered
        result = await run(config, message(TailCode="N999ZZ"))
        assert result.filtered
        assert result.reason == "tail_code:N999ZZ"

    @pytest.mark.asyncio
    async def test_frequency_mhz_matches_hz_field(self):
        """Configured MHz compares against the message Hz"""
        config = BuiltinFilterConfig(frequency=136.975)
        assert not (await run(config, message(FrequencyHz=136_975_000))).filtered
        assert (await run(config, message(FrequencyHz=131_550_000))).filtered

    @pytest.mark.asyncio
    async def test_signal_bounds(self):
        """Signal must be above and below the configured levels"""
        config = BuiltinFilterConfig(above_signal_dbm=-20, below_signal_dbm=-5)
        assert not (await run(config, message(SignalLeveldBm=-12.3))).filtered
        assert (await run(config, message(SignalLeveldBm=-25.0))).filtered
        assert (await run(config, message(SignalLeveldBm=-1.0))).filtered

    @pytest.mark.asyncio
    async def test_from_aircraft(self):
        config = BuiltinFilterConfig(from_aircraft=True)
        assert not (await run(config, message(From="Aircraft"))).filtered
        assert (await run(config, message(From="Tower"))).filtered

    @pytest.mark.asyncio
    async def test_labels(self):
        config = BuiltinFilterConfig(labels=["H1", "SA"])
        assert not (await run(config, message(Label="H1"))).filtered
        assert (await run(config, message(Label="Q0"))).filtered

    @pytest.mark.asyncio
    async def test_distance(self):
        """Distance predicates use the annotated aircraft distance"""
        config = BuiltinFilterConfig(below_distance_nm=100)
        assert not (await run(config, message(AircraftDistanceNm=42.0))).filtered
        assert (await run(config, message(AircraftDistanceNm=250.0))).filtered

    @pytest.mark.asyncio
    async def test_emergency(self):
        """Only a status other than none is an emergency"""
        config = BuiltinFilterConfig(emergency=True)
        assert (await run(config, message(AircraftEmergency="none"))).filtered
        assert not (await run(config, message(AircraftEmergency="general"))).filtered

    @pytest.mark.asyncio
    async def test_require_terms(self):
        """At least count of the terms must be present"""
        config = BuiltinFilterConfig(require_terms=TermCountConfig(count=2, terms=["LAV", "INOP", "SMOKE"]))
        assert not (await run(config, message(MessageText="LAV INOP"))).filtered
        assert (await run(config, message(MessageText="LAV OK"))).filtered

    @pytest.mark.asyncio
    async def test_require_all_terms(self):
        config = BuiltinFilterConfig(require_all_terms=["LAV", "INOP"])
        assert not (await run(config, message(MessageText="LAV INOP"))).filtered
        result = await run(config, message(MessageText="LAV OK"))
        assert result.reason == "require_all_terms:INOP"

    @pytest.mark.asyncio
    async def test_require_regex_matches(self):
        config = BuiltinFilterConfig(require_regex_matches=TermCountConfig(count=1, terms=[r"FL\d{3}"]))
        assert not (await run(config, message(MessageText="CLIMB FL350"))).filtered
        assert (await run(config, message(MessageText="CLIMB"))).filtered

    @pytest.mark.asyncio
    async def test_llm_processed_number(self):
        config = BuiltinFilterConfig(llm_processed_number_above=5)
        assert not (await run(config, message(LLMProcessedNumber=8))).filtered
        assert (await run(config, message(LLMProcessedNumber=5))).filtered

    @pytest.mark.asyncio
    async def test_dictionary_phrase(self):
        """Messages need a run of dictionary words"""
        config = BuiltinFilterConfig(dictionary_phrase_length_minimum=3)
        words = frozenset({"the", "lav", "is", "inop"})
        assert not (await run(config, message(MessageText="THE LAV IS INOP"), dictionary=words)).filtered
        assert (await run(config, message(MessageText="POS N47 W122"), dictionary=words)).filtered

    @pytest.mark.asyncio
    async def test_projected_message(self, acars_message):
        """Predicates work on a projected ACARS message"""
        config = BuiltinFilterConfig(tail_code="N123AB", from_aircraft=True, has_text=True, labels=["H1"])
        result = await run(config, ap_message_from_acars(acars_message))
        assert not result.filtered


class TestInvertAndErrors:
    """Tests for invert and error handling"""

    @pytest.mark.asyncio
    async def test_invert(self):
        """Invert flips every predicate and marks the reason"""
        config = BuiltinFilterConfig(tail_code="N123AB", invert=True)
        result = await run(config, message(TailCode="N123AB"))
        assert result.filtered
        assert result.reason.endswith("_INVERTED_")
        assert not (await run(config, message(TailCode="N999ZZ"))).filtered

    @pytest.mark.asyncio
    async def test_first_veto_wins(self):
        """Evaluation stops at the first veto"""
        config = BuiltinFilterConfig(tail_code="N123AB", labels=["H1"])
        result = await run(config, message(TailCode="N999ZZ", Label="Q0"))
        assert result.reason.startswith("tail_code")

    @pytest.mark.asyncio
    async def test_missing_field_raises(self):
        """A predicate whose field is missing raises when nothing vetoes"""
        config = BuiltinFilterConfig(tail_code="N123AB")
        with pytest.raises(FilterError) as exc_info:
            await run(config, message())
        assert "tail_code:TailCode field was empty" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_missing_field_does_not_mask_veto(self):
        """A later veto still applies after a missing field"""
        config = BuiltinFilterConfig(tail_code="N123AB", labels=["H1"])
        result = await run(config, message(Label="Q0"))
        assert result.filtered

    @pytest.mark.asyncio
    async def test_errors_combined(self):
        """Every failed predicate is named in the error"""
        config = BuiltinFilterConfig(tail_code="N123AB", station_id="KSEA")
        with pytest.raises(FilterError) as exc_info:
            await run(config, message())
        assert exc_info.value.message == "tail_code:TailCode field was empty,station_id:StationId field was empty"

    def test_missing_field_error(self):
        error = MissingFieldError("TailCode", "builtin")
        assert error.details == {"field": "TailCode", "filter": "builtin"}

    def test_similarity_needs_store(self):
        """Duplicate suppression cannot be configured without a store"""
        config = BuiltinFilterConfig.model_validate({"previous_message_similarity": {"similarity": 0.9}})
        with pytest.raises(ConfigError):
            BuiltinFilter(config)

    def test_invalid_regex(self):
        with pytest.raises(ConfigError):
            BuiltinFilter(BuiltinFilterConfig(require_all_regex_matches=["("]))

    @pytest.mark.asyncio
    async def test_similarity_uses_store(self, store, make_acars):
        """Recent processed messages from the store are compared"""
        record_id = await store.add(ACARSMessage.model_validate(make_acars(text="POS REPORT 42")))
        await store.mark_processed(MessageKind.ACARS, record_id)

        config = BuiltinFilterConfig.model_validate({"previous_message_similarity": {"similarity": 0.9}})
        builtin = BuiltinFilter(config, store=store)
        assert (await builtin.filter(message(MessageText="POS REPORT 42"))).filtered
        assert not (await builtin.filter(message(MessageText="WX KSEA RVR 6000"))).filtered
