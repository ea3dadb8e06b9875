"""Russian lemmatization on top of pymorphy3.

The morphology model is loaded once per process and only read afterwards,
so every function here can be called from concurrent tasks and threads.
"""

from __future__ import annotations

import re
from collections import Counter
from functools import lru_cache
from typing import Dict, Iterator, List, Optional, Set

import pymorphy3
from loguru import logger


# conjunctions, prepositions, interjections
FUNCTION_WORD_TAGS = frozenset({"CONJ", "PREP", "INTJ"})

_NON_CYRILLIC = re.compile(r"[^а-яё\s]")


@lru_cache(maxsize=1)
def get_morph_analyzer() -> pymorphy3.MorphAnalyzer:
    logger.info("Loading Russian morphology dictionaries...")
    return pymorphy3.MorphAnalyzer(lang="ru")


def split_words(text: str) -> List[str]:
    cleaned = _NON_CYRILLIC.sub(" ", (text or "").lower())
    return cleaned.split()


class Lemmatizer:
    def __init__(self, morph: Optional[pymorphy3.MorphAnalyzer] = None):
        self.morph = morph or get_morph_analyzer()

    def _parses(self, word: str):
        try:
            return self.morph.parse(word)
        except Exception as exc:
            logger.debug(f"Morphology lookup failed for '{word}': {exc}")
            return []

    def _normal_form(self, word: str) -> Optional[str]:
        parses = self._parses(word)
        if not parses:
            return None
        if any(p.tag.POS in FUNCTION_WORD_TAGS for p in parses):
            return None
        return parses[0].normal_form

    def _lemmas(self, text: str) -> Iterator[str]:
        for word in split_words(text):
            lemma = self._normal_form(word)
            if lemma:
                yield lemma

    def analyze(self, text: str) -> Dict[str, int]:
        """Lemma -> number of occurrences in ``text``."""
        return dict(Counter(self._lemmas(text)))

    def lemma_set(self, text: str) -> Set[str]:
        return set(self._lemmas(text))

    def is_function_word(self, word: str) -> bool:
        words = split_words(word)
        if len(words) != 1:
            return False
        return any(p.tag.POS in FUNCTION_WORD_TAGS for p in self._parses(words[0]))
