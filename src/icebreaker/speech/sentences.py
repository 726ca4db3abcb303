"""Sentence splitting for speech output."""

import re
from typing import List

# Japanese and Latin sentence terminators plus line breaks
_SENTENCE_BOUNDARY = re.compile(r"[。！？.!?\n]")


def split_sentences(text: str) -> List[str]:
    """
    Split a reply into the units that are synthesized one at a time.

    Units are trimmed and empty ones are dropped, so
    ``"Hello. How are you? Fine\\n"`` gives ``["Hello", "How are you", "Fine"]``.
    """
    if not text:
        return []
    return [unit.strip() for unit in _SENTENCE_BOUNDARY.split(text) if unit.strip()]
