"""
Ollama text annotator.

Answers a question about the message, rewrites its text or scores it,
according to the operator's prompt. The numeric score is exposed as
ACARSProcessor.LLMProcessedNumber so later built-in filters can act on it.
"""
import logging
from typing import Optional

import httpx
from pydantic import BaseModel, ValidationError

from acars_processor.apmessage import AP_PREFIX, APMessage, get_as_string
from acars_processor.core.config import OllamaAnnotatorConfig
from acars_processor.core.exceptions import AIResponseError, AnnotatorError, RetriableError
from acars_processor.core.utils import is_blank, last_characters
from acars_processor.schemas import ACARSMessage, VDLM2Message
from acars_processor.services.annotators.base import Annotator
from acars_processor.services.llm import MESSAGE_PROMPT_PREFIX, OllamaClient, json_schema

logger = logging.getLogger(__name__)

ANNOTATOR_FIRST_INSTRUCTIONS = """You will be provided instructions and then a communication message.

Answer any questions that may have been asked about the message.

If asked to process the message, you will use your skills and any examples
or rules provided to edit, select, transform, evaluate or otherwise process
the text strictly according to the directions given. Only make additions or
subtractions from the original text. Do not replace or transform words such
as to modify case unless specifically instructed to.

If asked to evaluate the message numerically, use your skills and any
examples, rules or criteria given to calculate a numerical result for the
message.

Here's the criteria:
"""

ANNOTATOR_FINAL_INSTRUCTIONS = """
Return true or false corresponding to the answer in the 'question' field.
Describe any edits you made to the text in the 'edit_actions' field.
Return the processed text in the 'processed_text' field.
Return any numerical evaluation in the 'processed_number' field.
"""

ANNOTATOR_RESPONSE_SCHEMA = json_schema({
    "question": "boolean",
    "edit_actions": "string",
    "processed_text": "string",
    "processed_number": "integer",
})


class AnnotatorAnswer(BaseModel):
    question: bool = False
    edit_actions: str = ""
    processed_text: str = ""
    processed_number: int = 0


def parse_answer(data: dict) -> AnnotatorAnswer:
    try:
        return AnnotatorAnswer.model_validate(data)
    except ValidationError as e:
        raise AIResponseError("Model response did not match the annotator schema", original_error=e,
                              details={"json": data})


class OllamaAnnotator(Annotator):
    name = "ollama"

    def __init__(self, config: OllamaAnnotatorConfig, client: Optional[httpx.AsyncClient] = None):
        super().__init__(config.selected_fields)
        self.filter_with_question = config.filter_with_question
        self.user_prompt = config.user_prompt
        self.system_prompt = (config.system_prompt or ANNOTATOR_FIRST_INSTRUCTIONS) + \
            config.user_prompt + ANNOTATOR_FINAL_INSTRUCTIONS
        self.client = OllamaClient(
            url=config.url,
            model=config.model,
            timeout=config.timeout,
            max_retry_attempts=config.max_retry_attempts,
            retry_delay=config.max_retry_delay_seconds,
            options={option.name: option.value for option in config.options},
            client=client,
        )

    def default_fields(self) -> list[str]:
        return sorted([
            "ollamaQuestion",
            "ollamaEditActions",
            "ollamaProcessedText",
            "ollamaProcessedNumber",
            AP_PREFIX + "LLMProcessedNumber",
        ])

    async def _annotate(self, message: APMessage) -> APMessage:
        text = get_as_string(message, "MessageText")
        if is_blank(text):
            logger.debug(f"{self.name}: message was blank, not annotating")
            return {}

        logger.debug(f"{self.name}: asking {self.client.model} about message ending in "
                     f"\"{last_characters(text)}\"")
        try:
            answer = await self.client.generate_json(
                self.system_prompt, MESSAGE_PROMPT_PREFIX + text, ANNOTATOR_RESPONSE_SCHEMA, parse=parse_answer
            )
        except (RetriableError, httpx.HTTPError) as e:
            raise AnnotatorError(f"No usable answer from {self.client.model}", self.name, {"error": str(e)})

        if self.filter_with_question and not answer.question:
            logger.info(f"{self.name}: question answered false, not annotating")
            return {}
        return {
            "ollamaQuestion": answer.question,
            "ollamaEditActions": answer.edit_actions,
            "ollamaProcessedText": answer.processed_text,
            "ollamaProcessedNumber": answer.processed_number,
            AP_PREFIX + "LLMProcessedNumber": answer.processed_number,
        }

    async def annotate_acars(self, record: ACARSMessage, message: APMessage) -> APMessage:
        return await self._annotate(message)

    async def annotate_vdlm2(self, record: VDLM2Message, message: APMessage) -> APMessage:
        return await self._annotate(message)
