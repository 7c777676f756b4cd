"""
Built-in filter predicates.

Each configured option of BuiltinFilterConfig enables one predicate. A
predicate returns True to veto the message. Predicates run in declaration
order and the first veto wins.
"""
import logging
import re
from typing import Awaitable, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError

from acars_processor.apmessage import APMessage, get_as_string
from acars_processor.core.config import BuiltinFilterConfig
from acars_processor.core.exceptions import ConfigError, FilterError
from acars_processor.core.utils import is_blank
from acars_processor.services.filters.base import Filter, FilterResult, require, require_number, require_string
from acars_processor.services.filters.dictionary import longest_phrase
from acars_processor.services.filters.duplicate import DuplicateCheck
from acars_processor.services.store import MessageStore

logger = logging.getLogger(__name__)

# Terms more likely to appear in messages typed by a person
FREETEXT_TERMS = [
    "BINGO",
    "CHOP",
    "COMMENTS",
    "CONFIRM",
    "DEFECT",
    "EVENING",
    "FREETEXT",
    "FTM",
    "INOP",
    "MEET",
    "MSG FROM",
    "PAN-PAN",
    "PAX",
    "POTABLE",
    "TEXT",
    "THANKS",
    "THX",
    "TXT",
]

# Config fields that are settings rather than predicates
SETTINGS_FIELDS = {"filter_on_failure", "invert"}

Check = Callable[[APMessage], Awaitable[tuple[bool, str]]]


def freetext_term_present(text: str) -> bool:
    """Messages starting with DISP are usually typed by dispatch."""
    return any(term in text for term in FREETEXT_TERMS) or text.startswith("DISP")


def count_terms(terms: list[str], text: str) -> int:
    return sum(1 for term in terms if term in text)


def normalize_frequency_hz(frequency: float) -> int:
    """Frequencies below 100 kHz are taken as MHz."""
    if frequency < 100_000:
        return int(round(frequency * 1_000_000))
    return int(round(frequency))


def compile_patterns(patterns: list[str]) -> list[re.Pattern]:
    compiled = []
    for pattern in patterns:
        try:
            compiled.append(re.compile(pattern))
        except re.error as e:
            raise ConfigError(f"Invalid regular expression {pattern!r}", {"error": str(e)})
    return compiled


class BuiltinFilter(Filter):
    """Local predicates over message fields and recent history."""

    name = "builtin"

    def __init__(
        self,
        config: BuiltinFilterConfig,
        store: Optional[MessageStore] = None,
        dictionary: Optional[frozenset[str]] = None,
    ):
        self.config = config
        self.filter_on_failure = config.filter_on_failure
        self.store = store
        self.dictionary = dictionary

        self._all_regexes = compile_patterns(config.require_all_regex_matches or [])
        self._some_regexes = compile_patterns(config.require_regex_matches.terms if config.require_regex_matches else [])
        self._duplicates = None
        if config.previous_message_similarity is not None:
            if store is None:
                raise ConfigError("Previous message similarity needs a message store")
            similarity = config.previous_message_similarity
            self._duplicates = DuplicateCheck(
                similarity=similarity.similarity,
                maximum_look_behind=similarity.maximum_look_behind,
                dont_filter_if_longer=similarity.dont_filter_if_longer,
            )
        if config.dictionary_phrase_length_minimum is not None and dictionary is None:
            raise ConfigError("Dictionary phrase filter needs a dictionary")

        self.checks: list[tuple[str, Check]] = [
            (field, getattr(self, f"_check_{field}"))
            for field in BuiltinFilterConfig.model_fields
            if field not in SETTINGS_FIELDS and getattr(config, field) is not None
        ]

    @property
    def predicates(self) -> list[str]:
        return [field for field, _ in self.checks]

    async def filter(self, message: APMessage) -> FilterResult:
        errors: list[str] = []
        suffix = "_INVERTED_" if self.config.invert else ""

        for field, check in self.checks:
            try:
                veto, detail = await check(message)
            except FilterError as e:
                logger.warning(f"{self.name} filter {field} could not be evaluated: {e}")
                errors.append(f"{field}:{e.message}")
                continue
            if self.config.invert:
                veto = not veto
            if veto:
                reason = f"{field}:{detail}" if detail else field
                return FilterResult(True, reason + suffix)

        if errors:
            raise FilterError(",".join(errors), self.name)
        return FilterResult(False)

    # ------------------------------------------------------------------
    # Predicates: return (veto, detail)
    # ------------------------------------------------------------------

    def _text(self, message: APMessage) -> str:
        return require_string(message, "MessageText", self.name)

    async def _check_has_text(self, message: APMessage) -> tuple[bool, str]:
        blank = is_blank(message.get("ACARSProcessor.MessageText"))
        if self.config.has_text:
            return blank, "message has no text" if blank else ""
        return not blank, "message has text" if not blank else ""

    async def _check_tail_code(self, message: APMessage) -> tuple[bool, str]:
        tail = require_string(message, "TailCode", self.name)
        return tail != self.config.tail_code, tail

    async def _check_flight_number(self, message: APMessage) -> tuple[bool, str]:
        flight = require_string(message, "FlightNumber", self.name).strip()
        return flight != self.config.flight_number.strip(), flight

    async def _check_frequency(self, message: APMessage) -> tuple[bool, str]:
        if message.get("ACARSProcessor.FrequencyHz") is not None:
            frequency = normalize_frequency_hz(require_number(message, "FrequencyHz", self.name))
        else:
            frequency = normalize_frequency_hz(require_number(message, "FrequencyMHz", self.name))
        return frequency != normalize_frequency_hz(self.config.frequency), f"{frequency}Hz"

    async def _check_station_id(self, message: APMessage) -> tuple[bool, str]:
        station = require_string(message, "StationId", self.name)
        return station != self.config.station_id, station

    async def _check_above_signal_dbm(self, message: APMessage) -> tuple[bool, str]:
        level = require_number(message, "SignalLeveldBm", self.name)
        return level < self.config.above_signal_dbm, f"{level}dBm"

    async def _check_below_signal_dbm(self, message: APMessage) -> tuple[bool, str]:
        level = require_number(message, "SignalLeveldBm", self.name)
        return level > self.config.below_signal_dbm, f"{level}dBm"

    async def _check_ass_status(self, message: APMessage) -> tuple[bool, str]:
        status = require_string(message, "ASSStatus", self.name)
        return status != self.config.ass_status, status

    async def _check_from_tower(self, message: APMessage) -> tuple[bool, str]:
        origin = require_string(message, "From", self.name)
        return (origin == "Tower") != self.config.from_tower, origin

    async def _check_from_aircraft(self, message: APMessage) -> tuple[bool, str]:
        origin = require_string(message, "From", self.name)
        return (origin == "Aircraft") != self.config.from_aircraft, origin

    async def _check_more(self, message: APMessage) -> tuple[bool, str]:
        more = bool(require(message, "More", self.name))
        return more != self.config.more, f"more={more}"

    async def _distance(self, message: APMessage, unit: str) -> float:
        return require_number(message, f"AircraftDistance{unit}", self.name)

    async def _check_above_distance_nm(self, message: APMessage) -> tuple[bool, str]:
        distance = await self._distance(message, "Nm")
        return distance < self.config.above_distance_nm, f"{distance:.1f}nm"

    async def _check_below_distance_nm(self, message: APMessage) -> tuple[bool, str]:
        distance = await self._distance(message, "Nm")
        return distance > self.config.below_distance_nm, f"{distance:.1f}nm"

    async def _check_above_distance_mi(self, message: APMessage) -> tuple[bool, str]:
        distance = await self._distance(message, "Mi")
        return distance < self.config.above_distance_mi, f"{distance:.1f}mi"

    async def _check_below_distance_mi(self, message: APMessage) -> tuple[bool, str]:
        distance = await self._distance(message, "Mi")
        return distance > self.config.below_distance_mi, f"{distance:.1f}mi"

    async def _check_emergency(self, message: APMessage) -> tuple[bool, str]:
        status = str(require(message, "AircraftEmergency", self.name))
        emergency = status.lower() not in ("", "none")
        return emergency != self.config.emergency, status

    async def _check_labels(self, message: APMessage) -> tuple[bool, str]:
        label = require_string(message, "Label", self.name)
        return label not in self.config.labels, label

    async def _check_dictionary_phrase_length_minimum(self, message: APMessage) -> tuple[bool, str]:
        length, phrase = longest_phrase(self._text(message), self.dictionary)
        return length < self.config.dictionary_phrase_length_minimum, f"longest phrase {length} ({phrase})"

    async def _check_freetext_term_present(self, message: APMessage) -> tuple[bool, str]:
        present = freetext_term_present(self._text(message))
        return present != self.config.freetext_term_present, ""

    async def _check_require_all_terms(self, message: APMessage) -> tuple[bool, str]:
        text = self._text(message)
        missing = [term for term in self.config.require_all_terms if term not in text]
        return bool(missing), ",".join(missing)

    async def _check_require_terms(self, message: APMessage) -> tuple[bool, str]:
        required = self.config.require_terms
        found = count_terms(required.terms, self._text(message))
        return found < required.count, f"{found}/{required.count} terms"

    async def _check_require_all_regex_matches(self, message: APMessage) -> tuple[bool, str]:
        text = self._text(message)
        missing = [regex.pattern for regex in self._all_regexes if not regex.search(text)]
        return bool(missing), ",".join(missing)

    async def _check_require_regex_matches(self, message: APMessage) -> tuple[bool, str]:
        text = self._text(message)
        matched = [regex.pattern for regex in self._some_regexes if regex.search(text)]
        if matched:
            logger.debug(f"Regexes that matched: {','.join(matched)}")
        required = self.config.require_regex_matches.count
        return len(matched) < required, f"{len(matched)}/{required} regexes"

    async def _check_llm_processed_number_above(self, message: APMessage) -> tuple[bool, str]:
        number = require_number(message, "LLMProcessedNumber", self.name)
        return not number > self.config.llm_processed_number_above, str(number)

    async def _check_llm_processed_number_below(self, message: APMessage) -> tuple[bool, str]:
        number = require_number(message, "LLMProcessedNumber", self.name)
        return not number < self.config.llm_processed_number_below, str(number)

    async def _check_previous_message_similarity(self, message: APMessage) -> tuple[bool, str]:
        text = get_as_string(message, "MessageText")
        if self._duplicates.similarity == 0:
            return False, ""
        try:
            previous = await self.store.recent_processed_texts(self._duplicates.maximum_look_behind)
        except SQLAlchemyError as e:
            raise FilterError("Error checking message similarity", self.name, {"error": str(e)})
        return self._duplicates.find_duplicate(text, previous)
