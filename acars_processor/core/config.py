"""
Application configuration.

Process-level settings come from environment variables via pydantic
settings. The processing pipeline itself is described in a YAML file which
is validated into the ``Config`` model below.
"""
import logging
import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings

from acars_processor.core.exceptions import ConfigError

logger = logging.getLogger(__name__)

ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")
DEFAULT_DICTIONARY_URL = "https://raw.githubusercontent.com/dwyl/english-words/master/words.txt"


class Settings(BaseSettings):
    """Process settings loaded from environment variables."""

    config_file: str = "config.yaml"
    log_level: str = "INFO"
    color_output: bool = False

    class Config:
        env_prefix = "ACARS_PROCESSOR_"
        env_file = ".env"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


class ConfigModel(BaseModel):
    """Base for YAML config sections; unknown keys are rejected."""
    model_config = ConfigDict(extra="forbid")


# ============================================================================
# Processor settings
# ============================================================================

class DatabaseConfig(ConfigModel):
    enabled: bool = Field(True, description="Persist messages; when false an in-memory store is used")
    type: str = Field("sqlite", description="sqlite, postgresql or any SQLAlchemy async dialect")
    sqlite_database_path: str = Field("./messages.db", description="Path of the SQLite database file")
    connection_string: str = Field("", description="Database URL, used when type is not sqlite")


class UpstreamConfig(ConfigModel):
    host: str = Field("", description="ACARSHub host to connect to", examples=["acarshub"])
    port: int = Field(0, description="ACARSHub JSON output port", examples=[15550])

    @property
    def enabled(self) -> bool:
        return bool(self.host) and self.port > 0


class ACARSHubConfig(ConfigModel):
    max_concurrent_requests: int = Field(1, description="Number of workers processing messages")
    queue_capacity: int = Field(10_000, description="Messages held in memory before ingestion blocks")
    acars: UpstreamConfig = Field(default_factory=UpstreamConfig)
    vdlm2: UpstreamConfig = Field(default_factory=UpstreamConfig)


class DictionaryConfig(ConfigModel):
    path: str = Field("", description="Local word list, one word per line")
    url: str = Field(DEFAULT_DICTIONARY_URL, description="Word list downloaded when path is unset")


class LinkTemplates(ConfigModel):
    """URL templates used for the derived link fields of a message."""
    tracking: str = "https://flightaware.com/live/flight/{tail}"
    photos: str = "https://www.flightaware.com/photos/aircraft/{tail}"
    translate: str = "https://translate.google.com/?sl=auto&tl=en&text={text}&op=translate"
    acars_drama: str = "https://live.acarsdrama.com/tags/{tail}"


class ProcessorSettings(ConfigModel):
    log_level: Optional[str] = None
    color_output: Optional[bool] = None
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    acarshub: ACARSHubConfig = Field(default_factory=ACARSHubConfig)
    stdin: bool = Field(False, description="Read newline delimited JSON messages from standard input")
    dictionary: DictionaryConfig = Field(default_factory=DictionaryConfig)
    links: LinkTemplates = Field(default_factory=LinkTemplates)


# ============================================================================
# Filters
# ============================================================================

class SimilarityConfig(ConfigModel):
    similarity: float = Field(0.9, ge=0.0, le=1.0, description="Veto when a recent message is at least this similar")
    maximum_look_behind: int = Field(1000, gt=0, description="Number of recent processed messages to compare")
    dont_filter_if_longer: bool = Field(True, description="Keep the new message when it is longer than the match")


class TermCountConfig(ConfigModel):
    count: int = 1
    terms: list[str] = Field(default_factory=list)


class BuiltinFilterConfig(ConfigModel):
    filter_on_failure: bool = False
    invert: bool = Field(False, description="Invert the result of every predicate")
    has_text: Optional[bool] = None
    tail_code: Optional[str] = None
    flight_number: Optional[str] = None
    frequency: Optional[float] = Field(None, description="MHz (e.g. 136.95) or Hz")
    station_id: Optional[str] = None
    above_signal_dbm: Optional[float] = None
    below_signal_dbm: Optional[float] = None
    ass_status: Optional[str] = None
    from_tower: Optional[bool] = None
    from_aircraft: Optional[bool] = None
    more: Optional[bool] = None
    above_distance_nm: Optional[float] = None
    below_distance_nm: Optional[float] = None
    above_distance_mi: Optional[float] = None
    below_distance_mi: Optional[float] = None
    emergency: Optional[bool] = None
    labels: Optional[list[str]] = None
    dictionary_phrase_length_minimum: Optional[int] = None
    freetext_term_present: Optional[bool] = None
    require_all_terms: Optional[list[str]] = None
    require_terms: Optional[TermCountConfig] = None
    require_all_regex_matches: Optional[list[str]] = None
    require_regex_matches: Optional[TermCountConfig] = None
    llm_processed_number_above: Optional[int] = None
    llm_processed_number_below: Optional[int] = None
    previous_message_similarity: Optional[SimilarityConfig] = None


class OllamaOption(ConfigModel):
    name: str
    value: Any


class RetryConfig(ConfigModel):
    max_retry_attempts: int = Field(6, ge=1)
    max_retry_delay_seconds: float = Field(5, ge=0)


class OllamaFilterConfig(RetryConfig):
    filter_on_failure: bool = True
    url: str = Field(..., examples=["http://ollama:11434"])
    model: str = Field(..., examples=["llama3.1"])
    user_prompt: str = Field(..., examples=["Is this message about a medical emergency?"])
    system_prompt: str = Field("", description="Replaces the built-in instructions when set")
    options: list[OllamaOption] = Field(default_factory=list)
    timeout: float = 120


class OpenAIFilterConfig(RetryConfig):
    filter_on_failure: bool = True
    invert: bool = False
    api_key: str
    base_url: str = "https://api.openai.com/v1"
    model: str = "gpt-4o"
    user_prompt: str
    system_prompt: str = ""
    timeout: float = 5


class FilterConfig(ConfigModel):
    builtin: Optional[BuiltinFilterConfig] = None
    ollama: Optional[OllamaFilterConfig] = None
    openai: Optional[OpenAIFilterConfig] = None


# ============================================================================
# Annotators
# ============================================================================

class LocalAnnotatorConfig(ConfigModel):
    enabled: bool = True
    selected_fields: list[str] = Field(default_factory=list)


class ADSBExchangeConfig(ConfigModel):
    api_key: str
    reference_geolocation: str = Field("", examples=["35.6244416,139.7753782"])
    selected_fields: list[str] = Field(default_factory=list)
    timeout: float = 10


class Tar1090Config(ConfigModel):
    url: str = Field(..., examples=["http://tar1090/"])
    reference_geolocation: str = Field("", examples=["35.6244416,139.7753782"])
    selected_fields: list[str] = Field(default_factory=list)
    timeout: float = 10


class OllamaAnnotatorConfig(RetryConfig):
    url: str
    model: str
    user_prompt: str
    system_prompt: str = ""
    options: list[OllamaOption] = Field(default_factory=list)
    filter_with_question: bool = False
    selected_fields: list[str] = Field(default_factory=list)
    timeout: float = 120


class AnnotateConfig(ConfigModel):
    acars: Optional[LocalAnnotatorConfig] = None
    vdlm2: Optional[LocalAnnotatorConfig] = None
    adsb_exchange: Optional[ADSBExchangeConfig] = None
    tar1090: Optional[Tar1090Config] = None
    ollama: Optional[OllamaAnnotatorConfig] = None


# ============================================================================
# Receivers
# ============================================================================

class WebhookHeader(ConfigModel):
    name: str
    value: str


class WebhookConfig(ConfigModel):
    url: str
    method: str = "POST"
    headers: list[WebhookHeader] = Field(default_factory=list)
    template: str = Field(
        '{"tail": "{ACARSProcessor.TailCode}", "text": "{ACARSProcessor.MessageText}"}',
        description="Body template; insert fields like {ACARSProcessor.TailCode}",
    )
    timeout: float = 10


class RGBColor(ConfigModel):
    r: int = Field(0, ge=0, le=255)
    g: int = Field(0, ge=0, le=255)
    b: int = Field(0, ge=0, le=255)


class DiscordConfig(ConfigModel):
    url: str
    required_fields: list[str] = Field(default_factory=list)
    format_text: bool = True
    format_timestamps: bool = False
    embed: bool = True
    embed_color_facet_fields: list[str] = Field(default_factory=list)
    embed_color_gradient_field: str = ""
    embed_color_gradient_steps: list[RGBColor] = Field(default_factory=list)
    timeout: float = 10


class NewRelicConfig(ConfigModel):
    api_key: str
    account_id: str = ""
    custom_event_type: str = "CustomACARS"
    endpoint: str = Field("", description="Overrides the Event API URL built from account_id")


class MastodonConfig(ConfigModel):
    server: str = "https://mastodon.social"
    client_id: str = ""
    client_secret: str = ""
    access_token: str
    visibility: str = Field("unlisted", pattern="^(public|unlisted|private|direct)$")
    template: str = "New message from aircraft! Message is: {ACARSProcessor.MessageText}"


class SendConfig(ConfigModel):
    webhook: Optional[WebhookConfig] = None
    discord: Optional[DiscordConfig] = None
    new_relic: Optional[NewRelicConfig] = None
    mastodon: Optional[MastodonConfig] = None


class StepConfig(ConfigModel):
    filter: Optional[FilterConfig] = None
    annotate: Optional[AnnotateConfig] = None
    send: Optional[SendConfig] = None


class Config(ConfigModel):
    """Complete pipeline configuration."""
    acars_processor_settings: ProcessorSettings = Field(default_factory=ProcessorSettings)
    steps: list[StepConfig] = Field(default_factory=list)


# ============================================================================
# Loading
# ============================================================================

def substitute_env_vars(text: str) -> str:
    """Replace ${NAME} with the value of environment variable NAME."""

    def replace(match: re.Match) -> str:
        name = match.group(1)
        value = os.environ.get(name)
        if value is None:
            logger.warning(f"Environment variable {name} referenced in config is not set")
            return ""
        return value

    return ENV_VAR_PATTERN.sub(replace, text)


def parse_config(text: str) -> Config:
    """Parse YAML text into a validated Config."""
    try:
        data = yaml.safe_load(substitute_env_vars(text)) or {}
    except yaml.YAMLError as e:
        raise ConfigError("Config is not valid YAML", {"error": str(e)})
    if not isinstance(data, dict):
        raise ConfigError("Config must be a mapping", {"type": type(data).__name__})
    try:
        return Config.model_validate(data)
    except ValidationError as e:
        raise ConfigError("Config failed validation", {"errors": e.errors(include_url=False)})


def load_config(path: Union[str, Path]) -> Config:
    """Load and validate the YAML config file at path."""
    path = Path(path)
    try:
        text = path.read_text()
    except OSError as e:
        raise ConfigError(f"Unable to read config file {path}", {"error": str(e)})
    config = parse_config(text)
    logger.info(f"Loaded config from {path} with {len(config.steps)} step(s)")
    return config
