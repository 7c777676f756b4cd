"""
Duplicate suppression against recently processed messages.
"""
import logging
from dataclasses import dataclass

from acars_processor.core.utils import is_blank, last_characters

logger = logging.getLogger(__name__)

DEFAULT_LOOK_BEHIND = 1000


def hamming_similarity(a: str, b: str) -> float:
    """
    Hamming based similarity in [0, 1].

    Characters are compared position by position over the shorter string;
    every extra character of the longer string counts as a mismatch. The
    mismatch count is normalised by the longer length.
    """
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    mismatches = sum(1 for x, y in zip(a, b) if x != y) + abs(len(a) - len(b))
    return 1.0 - mismatches / longest


@dataclass
class DuplicateCheck:
    similarity: float
    maximum_look_behind: int = DEFAULT_LOOK_BEHIND
    dont_filter_if_longer: bool = True

    def find_duplicate(self, text: str, previous: list[str]) -> tuple[bool, str]:
        """
        Compare text to previous texts, newest first.

        Returns (veto, reason). Never vetoes when similarity is 0.
        """
        if self.similarity == 0:
            return False, "similarity was 0"
        if is_blank(text):
            return True, "message text was empty"

        for prior in previous[: self.maximum_look_behind]:
            score = hamming_similarity(text, prior)
            if score < self.similarity:
                continue
            if self.dont_filter_if_longer and len(text) > len(prior):
                logger.debug(f"Similar message found but new message is longer: ...{last_characters(prior)}")
                continue
            return True, f"{score:.2f} similar to ...{last_characters(prior)}"
        return False, ""
