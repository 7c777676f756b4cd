"""
Build the configured step chain.

Each step is a {filter, annotate, send} triple from the config. Within a
step filters run first, then annotators, then receivers.
"""
import logging
from dataclasses import dataclass, field
from typing import Optional

import httpx

from acars_processor.core.config import Config, LinkTemplates, StepConfig
from acars_processor.services.annotators import (
    ACARSAnnotator,
    ADSBExchangeAnnotator,
    Annotator,
    OllamaAnnotator,
    Tar1090Annotator,
    VDLM2Annotator,
)
from acars_processor.services.filters import BuiltinFilter, Filter, OllamaFilter, OpenAIFilter
from acars_processor.services.receivers import (
    DiscordReceiver,
    MastodonReceiver,
    NewRelicReceiver,
    Receiver,
    WebhookReceiver,
)
from acars_processor.services.store import MessageStore

logger = logging.getLogger(__name__)


@dataclass
class Step:
    filters: list[Filter] = field(default_factory=list)
    annotators: list[Annotator] = field(default_factory=list)
    receivers: list[Receiver] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not (self.filters or self.annotators or self.receivers)

    def describe(self) -> str:
        parts = [f"filter:{f.name}" for f in self.filters]
        parts += [f"annotate:{a.name}" for a in self.annotators]
        parts += [f"send:{r.name}" for r in self.receivers]
        return ", ".join(parts) or "empty"


def needs_dictionary(config: Config) -> bool:
    """True when any step uses the dictionary phrase predicate."""
    for step in config.steps:
        builtin = step.filter.builtin if step.filter else None
        if builtin is not None and builtin.dictionary_phrase_length_minimum is not None:
            return True
    return False


def build_step(
    config: StepConfig,
    store: Optional[MessageStore] = None,
    dictionary: Optional[frozenset[str]] = None,
    client: Optional[httpx.AsyncClient] = None,
    links: Optional[LinkTemplates] = None,
) -> Step:
    step = Step()

    if config.filter:
        f = config.filter
        if f.builtin:
            step.filters.append(BuiltinFilter(f.builtin, store, dictionary))
        if f.ollama:
            step.filters.append(OllamaFilter(f.ollama, store, client))
        if f.openai:
            step.filters.append(OpenAIFilter(f.openai, store, client))

    if config.annotate:
        a = config.annotate
        if a.acars and a.acars.enabled:
            step.annotators.append(ACARSAnnotator(a.acars.selected_fields, links))
        if a.vdlm2 and a.vdlm2.enabled:
            step.annotators.append(VDLM2Annotator(a.vdlm2.selected_fields, links))
        if a.adsb_exchange:
            step.annotators.append(ADSBExchangeAnnotator(a.adsb_exchange, client))
        if a.tar1090:
            step.annotators.append(Tar1090Annotator(a.tar1090, client))
        if a.ollama:
            step.annotators.append(OllamaAnnotator(a.ollama, client))

    if config.send:
        s = config.send
        if s.webhook:
            step.receivers.append(WebhookReceiver(s.webhook, client))
        if s.discord:
            step.receivers.append(DiscordReceiver(s.discord, client))
        if s.new_relic:
            step.receivers.append(NewRelicReceiver(s.new_relic, client))
        if s.mastodon:
            step.receivers.append(MastodonReceiver(s.mastodon))

    return step


def build_steps(
    config: Config,
    store: Optional[MessageStore] = None,
    dictionary: Optional[frozenset[str]] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> list[Step]:
    """Construct every configured step, skipping empty ones."""
    links = config.acars_processor_settings.links
    steps = []
    for index, step_config in enumerate(config.steps, start=1):
        step = build_step(step_config, store, dictionary, client, links)
        if step.empty:
            logger.warning(f"Step {index} has nothing configured, skipping")
            continue
        logger.info(f"Step {index}: {step.describe()}")
        steps.append(step)
    return steps
