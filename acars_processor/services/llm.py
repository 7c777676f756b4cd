"""
Language model clients used by the AI filters and the Ollama annotator.

Both clients ask for a JSON object matching a schema, retry transient
failures through the retry harness and parse the last JSON object out of
the model output, since some models think out loud before answering.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import httpx

from acars_processor.core.exceptions import AIResponseError
from acars_processor.core.http import send_request
from acars_processor.core.retry import call_with_retry
from acars_processor.core.utils import extract_last_json_object

logger = logging.getLogger(__name__)

MESSAGE_PROMPT_PREFIX = "Here is the message to evaluate:\n"


def json_schema(properties: dict[str, str]) -> dict:
    """Object schema where every property is required."""
    return {
        "type": "object",
        "properties": {name: {"type": kind} for name, kind in properties.items()},
        "required": list(properties),
        "additionalProperties": False,
    }


@dataclass
class OllamaClient:
    """Client for the Ollama generate endpoint with structured output."""

    url: str
    model: str
    timeout: float = 120
    max_retry_attempts: int = 6
    retry_delay: float = 5
    options: dict[str, Any] = field(default_factory=dict)
    client: Optional[httpx.AsyncClient] = None

    @property
    def endpoint(self) -> str:
        return f"{self.url.rstrip('/')}/api/generate"

    async def generate(self, system: str, prompt: str, schema: dict) -> str:
        """Single generate call; returns the raw response text."""
        payload = {
            "model": self.model,
            "system": system,
            "prompt": prompt,
            "format": schema,
            "stream": False,
        }
        if self.options:
            payload["options"] = self.options
        response = await send_request(
            "POST", self.endpoint, client=self.client, timeout=self.timeout, json=payload
        )
        try:
            body = response.json()
        except ValueError as e:
            raise AIResponseError("Ollama returned invalid JSON", original_error=e)
        if not isinstance(body, dict):
            raise AIResponseError("Ollama response is not a JSON object", details={"body": str(body)[:200]})
        text = body.get("response") or ""
        if not isinstance(text, str):
            raise AIResponseError("Ollama response field is not a string", details={"response": str(text)[:200]})
        return text

    async def generate_json(self, system: str, prompt: str, schema: dict,
                            parse: Optional[Callable[[dict], Any]] = None) -> Any:
        """Generate and parse a JSON object, retrying on failure.

        parse runs inside each attempt, so an answer it rejects is retried.
        """

        async def attempt() -> Any:
            text = await self.generate(system, prompt, schema)
            logger.debug(f"Ollama {self.model} responded: {text}")
            data = extract_last_json_object(text)
            return parse(data) if parse else data

        return await call_with_retry(
            attempt,
            attempts=self.max_retry_attempts,
            delay=self.retry_delay,
            timeout=self.timeout,
            name=f"Ollama {self.model}",
        )


@dataclass
class OpenAIClient:
    """OpenAI-compatible chat completions client."""

    api_key: str
    model: str = "gpt-4o"
    base_url: str = "https://api.openai.com/v1"
    timeout: float = 5
    max_retry_attempts: int = 6
    retry_delay: float = 5
    temperature: float = 0
    client: Optional[httpx.AsyncClient] = None

    @property
    def endpoint(self) -> str:
        return f"{self.base_url.rstrip('/')}/chat/completions"

    async def complete(self, messages: list[dict], schema: dict, schema_name: str) -> str:
        payload = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "response_format": {
                "type": "json_schema",
                "json_schema": {"name": schema_name, "schema": schema, "strict": True},
            },
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}
        response = await send_request(
            "POST", self.endpoint, client=self.client, timeout=self.timeout, headers=headers, json=payload
        )
        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise AIResponseError("Unexpected chat completion response format", original_error=e)
        if not isinstance(content, str):
            raise AIResponseError("Chat completion content is not a string", details={"content": str(content)[:200]})
        return content

    async def complete_json(self, messages: list[dict], schema: dict, schema_name: str,
                            parse: Optional[Callable[[dict], Any]] = None) -> Any:
        """Complete and parse a JSON object, retrying on failure."""

        async def attempt() -> Any:
            text = await self.complete(messages, schema, schema_name)
            logger.debug(f"OpenAI {self.model} responded: {text}")
            data = extract_last_json_object(text)
            return parse(data) if parse else data

        return await call_with_retry(
            attempt,
            attempts=self.max_retry_attempts,
            delay=self.retry_delay,
            timeout=self.timeout,
            name=f"OpenAI {self.model}",
        )
