"""
JSON schema and example configuration generation.
"""
import json
import logging
from pathlib import Path
from typing import Union

import yaml

from acars_processor.core.config import (
    ADSBExchangeConfig,
    AnnotateConfig,
    BuiltinFilterConfig,
    Config,
    DiscordConfig,
    FilterConfig,
    LocalAnnotatorConfig,
    MastodonConfig,
    NewRelicConfig,
    OllamaAnnotatorConfig,
    OllamaFilterConfig,
    OllamaOption,
    OpenAIFilterConfig,
    ProcessorSettings,
    RGBColor,
    SendConfig,
    SimilarityConfig,
    StepConfig,
    Tar1090Config,
    TermCountConfig,
    WebhookConfig,
    WebhookHeader,
)

logger = logging.getLogger(__name__)

SCHEMA_FILE = "schema.json"
EXAMPLE_FILE = "config_all_options.yaml"

REFERENCE_GEOLOCATION = "35.6244416,139.7753782"


def config_schema() -> str:
    return json.dumps(Config.model_json_schema(), indent=2) + "\n"


def example_config() -> Config:
    """A config that sets every option."""
    settings = ProcessorSettings(log_level="INFO", color_output=True)
    settings.acarshub.acars.host = "acarshub"
    settings.acarshub.acars.port = 15550
    settings.acarshub.vdlm2.host = "acarshub"
    settings.acarshub.vdlm2.port = 15555

    builtin = BuiltinFilterConfig(
        has_text=True,
        tail_code="N123AB",
        flight_number="UAL123",
        frequency=136.95,
        station_id="KSEA",
        above_signal_dbm=-30.0,
        below_signal_dbm=-3.0,
        ass_status="",
        from_tower=False,
        from_aircraft=True,
        more=False,
        above_distance_nm=1.0,
        below_distance_nm=250.0,
        above_distance_mi=1.0,
        below_distance_mi=300.0,
        emergency=False,
        labels=["H1", "SA"],
        dictionary_phrase_length_minimum=3,
        freetext_term_present=True,
        require_all_terms=["PAX"],
        require_terms=TermCountConfig(count=1, terms=["MEDICAL", "DIVERT"]),
        require_all_regex_matches=[r"\bFL\d{3}\b"],
        require_regex_matches=TermCountConfig(count=1, terms=[r"MAYDAY", r"PAN-?PAN"]),
        llm_processed_number_above=5,
        llm_processed_number_below=100,
        previous_message_similarity=SimilarityConfig(),
    )
    ollama_options = [OllamaOption(name="num_predict", value=512)]
    filters = FilterConfig(
        builtin=builtin,
        ollama=OllamaFilterConfig(
            url="http://ollama:11434",
            model="llama3.1",
            user_prompt="Is this message about a medical emergency?",
            options=ollama_options,
        ),
        openai=OpenAIFilterConfig(
            api_key="${OPENAI_API_KEY}",
            user_prompt="Is this message about a medical emergency?",
        ),
    )
    annotate = AnnotateConfig(
        acars=LocalAnnotatorConfig(),
        vdlm2=LocalAnnotatorConfig(),
        adsb_exchange=ADSBExchangeConfig(api_key="${ADSB_EXCHANGE_API_KEY}",
                                         reference_geolocation=REFERENCE_GEOLOCATION),
        tar1090=Tar1090Config(url="http://tar1090/", reference_geolocation=REFERENCE_GEOLOCATION),
        ollama=OllamaAnnotatorConfig(
            url="http://ollama:11434",
            model="llama3.1",
            user_prompt="Rate the urgency of this message from 1 to 100.",
            filter_with_question=False,
            options=ollama_options,
        ),
    )
    send = SendConfig(
        webhook=WebhookConfig(
            url="https://example.com/acars",
            headers=[WebhookHeader(name="Authorization", value="Bearer ${WEBHOOK_TOKEN}")],
        ),
        discord=DiscordConfig(
            url="${DISCORD_WEBHOOK_URL}",
            required_fields=["ACARSProcessor.MessageText"],
            embed_color_facet_fields=["ACARSProcessor.TailCode"],
            embed_color_gradient_field="ACARSProcessor.LLMProcessedNumber",
            embed_color_gradient_steps=[RGBColor(r=0x64, g=0x8F, b=0xFF), RGBColor(r=0xDC, g=0x26, b=0x7F)],
        ),
        new_relic=NewRelicConfig(api_key="${NEW_RELIC_LICENSE_KEY}", account_id="1234567"),
        mastodon=MastodonConfig(access_token="${MASTODON_ACCESS_TOKEN}"),
    )
    return Config(
        acars_processor_settings=settings,
        steps=[StepConfig(filter=filters, annotate=annotate, send=send)],
    )


def example_yaml() -> str:
    return yaml.safe_dump(example_config().model_dump(mode="json"), sort_keys=False, allow_unicode=True)


def write_if_changed(path: Union[str, Path], content: str) -> bool:
    """Write content to path; returns True when the file changed."""
    path = Path(path)
    if path.exists() and path.read_text() == content:
        return False
    path.write_text(content)
    logger.info(f"Wrote {path}")
    return True


def generate(directory: Union[str, Path] = ".") -> bool:
    """Write the schema and example config; True when either changed."""
    directory = Path(directory)
    schema_changed = write_if_changed(directory / SCHEMA_FILE, config_schema())
    example_changed = write_if_changed(directory / EXAMPLE_FILE, example_yaml())
    return schema_changed or example_changed
