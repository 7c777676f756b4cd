"""
English word list support for the dictionary phrase filter.
"""
import logging
import re
from pathlib import Path
from typing import Iterable, Optional

import httpx

from acars_processor.core.config import DictionaryConfig
from acars_processor.core.exceptions import ConfigError
from acars_processor.core.http import send_request

logger = logging.getLogger(__name__)

_token_split = re.compile(r"[\s,.]+")
_has_digit = re.compile(r"\d")


def build_word_set(lines: Iterable[str]) -> frozenset[str]:
    """Lowercased words, skipping blanks and anything containing a digit."""
    words = set()
    for line in lines:
        word = line.strip().lower()
        if word and not _has_digit.search(word):
            words.add(word)
    return frozenset(words)


async def load_dictionary(config: DictionaryConfig, client: Optional[httpx.AsyncClient] = None) -> frozenset[str]:
    """Load the word list from a local path, or download it."""
    if config.path:
        try:
            text = Path(config.path).read_text(errors="ignore")
        except OSError as e:
            raise ConfigError(f"Unable to read dictionary {config.path}", {"error": str(e)})
        source = config.path
    else:
        try:
            response = await send_request("GET", config.url, client=client, timeout=60)
        except httpx.HTTPError as e:
            raise ConfigError(f"Unable to download dictionary from {config.url}", {"error": str(e)})
        text = response.text
        source = config.url
    words = build_word_set(text.splitlines())
    logger.info(f"Loaded {len(words)} dictionary words from {source}")
    return words


def longest_phrase(text: str, words: frozenset[str]) -> tuple[int, str]:
    """
    Longest run of consecutive dictionary words in text.

    Tokens are separated by whitespace, commas and periods; matching
    ignores case. Returns the run length and the words in it.
    """
    best: list[str] = []
    current: list[str] = []
    for token in _token_split.split(text or ""):
        if not token:
            continue
        if token.lower() in words:
            current.append(token)
            if len(current) > len(best):
                best = list(current)
        else:
            current = []
    return len(best), " ".join(best)
