"""
Language model filters.

The model is given the operator's criteria and the message text and must
answer with {message_matches_criteria, reasoning}. Messages that do not
match are vetoed. When the model cannot be reached or never returns a
usable answer, the filter's filter_on_failure setting decides.
"""
import logging
from typing import Optional

import httpx
from pydantic import AliasChoices, BaseModel, Field, ValidationError
from sqlalchemy.exc import SQLAlchemyError

from acars_processor.apmessage import APMessage, get_as_string
from acars_processor.core.config import OllamaFilterConfig, OpenAIFilterConfig
from acars_processor.core.exceptions import AIResponseError, FilterError, RetriableError
from acars_processor.core.utils import is_blank
from acars_processor.services.filters.base import Filter, FilterResult
from acars_processor.services.llm import MESSAGE_PROMPT_PREFIX, OllamaClient, OpenAIClient, json_schema
from acars_processor.services.store import MessageStore

logger = logging.getLogger(__name__)

FILTER_FIRST_INSTRUCTIONS = """You are an AI that is an expert at careful reasoning.
You will be provided criteria and then a communication message. Use your
skills and any examples provided to determine if the message positively
matches the provided criteria.

Here's the criteria:
"""

FILTER_FINAL_INSTRUCTIONS = """
If the message definitely matches the criteria, return true in the
'message_matches_criteria' field.

If the message definitely does not match the criteria, return false in the
'message_matches_criteria' field.

Provide a very short, high-level explanation of the reasoning for your
decision in the 'reasoning' field.
"""

FILTER_RESPONSE_SCHEMA = json_schema({
    "message_matches_criteria": "boolean",
    "reasoning": "string",
})


class FilterVerdict(BaseModel):
    """Model answer; older prompts used "verdict" for the boolean."""
    matches: bool = Field(validation_alias=AliasChoices("message_matches_criteria", "verdict"))
    reasoning: str = ""


def parse_verdict(data: dict) -> FilterVerdict:
    try:
        return FilterVerdict.model_validate(data)
    except ValidationError as e:
        raise AIResponseError("Model response is missing a verdict", original_error=e, details={"json": data})


class AIFilter(Filter):
    """Shared flow for the language model filters."""

    provider = ""
    invert = False

    def __init__(self, model: str, user_prompt: str, system_prompt: str, store: Optional[MessageStore]):
        self.model = model
        self.user_prompt = user_prompt
        self.system_prompt = (system_prompt or FILTER_FIRST_INSTRUCTIONS) + user_prompt + FILTER_FINAL_INSTRUCTIONS
        self.store = store

    async def ask(self, text: str) -> FilterVerdict:
        raise NotImplementedError

    async def filter(self, message: APMessage) -> FilterResult:
        text = get_as_string(message, "MessageText")
        if is_blank(text):
            logger.debug(f"{self.name}: message has no text, not calling model")
            return FilterResult(False, "message had no text")

        try:
            verdict = await self.ask(text)
        except (RetriableError, httpx.HTTPError) as e:
            raise FilterError(f"No usable answer from {self.model}", self.name, {"error": str(e)})

        await self._record(text, verdict)
        filtered = not verdict.matches
        if self.invert:
            filtered = not filtered
        logger.info(
            f"{self.name}: {self.model} says message {'matches' if verdict.matches else 'does not match'}"
            f" criteria: {verdict.reasoning}"
        )
        return FilterResult(filtered, verdict.reasoning)

    async def _record(self, text: str, verdict: FilterVerdict):
        if self.store is None:
            return
        try:
            await self.store.record_ai_decision(
                provider=self.provider,
                model=self.model,
                system_prompt=self.system_prompt,
                user_prompt=self.user_prompt,
                input_text=text,
                verdict=verdict.matches,
                reasoning=verdict.reasoning,
            )
        except SQLAlchemyError as e:
            logger.warning(f"{self.name}: unable to record decision: {e}")


class OllamaFilter(AIFilter):
    name = "ollama"
    provider = "ollama"

    def __init__(self, config: OllamaFilterConfig, store: Optional[MessageStore] = None,
                 client: Optional[httpx.AsyncClient] = None):
        super().__init__(config.model, config.user_prompt, config.system_prompt, store)
        self.filter_on_failure = config.filter_on_failure
        self.client = OllamaClient(
            url=config.url,
            model=config.model,
            timeout=config.timeout,
            max_retry_attempts=config.max_retry_attempts,
            retry_delay=config.max_retry_delay_seconds,
            options={option.name: option.value for option in config.options},
            client=client,
        )

    async def ask(self, text: str) -> FilterVerdict:
        return await self.client.generate_json(
            self.system_prompt, MESSAGE_PROMPT_PREFIX + text, FILTER_RESPONSE_SCHEMA, parse=parse_verdict
        )


class OpenAIFilter(AIFilter):
    name = "openai"
    provider = "openai"

    def __init__(self, config: OpenAIFilterConfig, store: Optional[MessageStore] = None,
                 client: Optional[httpx.AsyncClient] = None):
        super().__init__(config.model, config.user_prompt, config.system_prompt, store)
        self.filter_on_failure = config.filter_on_failure
        self.invert = config.invert
        self.first_instructions = config.system_prompt or FILTER_FIRST_INSTRUCTIONS
        self.client = OpenAIClient(
            api_key=config.api_key,
            model=config.model,
            base_url=config.base_url,
            timeout=config.timeout,
            max_retry_attempts=config.max_retry_attempts,
            retry_delay=config.max_retry_delay_seconds,
            client=client,
        )

    async def ask(self, text: str) -> FilterVerdict:
        messages = [
            {"role": "system", "content": self.first_instructions},
            {"role": "system", "content": self.user_prompt},
            {"role": "system", "content": FILTER_FINAL_INSTRUCTIONS},
            {"role": "user", "content": MESSAGE_PROMPT_PREFIX + text},
        ]
        return await self.client.complete_json(
            messages, FILTER_RESPONSE_SCHEMA, "filter_verdict", parse=parse_verdict
        )
