"""Highlighted excerpts for search results.

Three sources are tried in order: the meta description, texts of links that
mention a query word, and finally raw text around the first occurrence of
each query word not covered yet.
"""

from __future__ import annotations

import re
from typing import Iterable, List

from bs4 import BeautifulSoup

from searchengine.parsing.html_extractor import (
    extract_anchor_texts,
    extract_description,
    extract_text,
)

SNIPPET_BUDGET = 220
SEPARATOR = " ... "
CONTEXT_BEFORE = 20
CONTEXT_AFTER = 30


def mark_in_bold(text: str, terms: Iterable[str]) -> str:
    terms = tuple(terms)
    words = []
    for word in text.split():
        if terms and word.lower().startswith(terms):
            word = f"<b>{word}</b>"
        words.append(word)
    return " ".join(words)


def _context_window(text: str, term: str) -> str | None:
    index = text.find(term)
    if index == -1:
        return None
    start = max(0, index - CONTEXT_BEFORE)
    end = min(len(text), index + len(term) + CONTEXT_AFTER)
    return f"{text[start:index]}<b>{term}</b>{text[index + len(term):end]}"


def build_snippet(document: BeautifulSoup, terms: List[str]) -> str:
    snippet = ""

    description = extract_description(document)
    if description:
        snippet = mark_in_bold(description, terms) + SEPARATOR

    for anchor in extract_anchor_texts(document):
        lowered = anchor.lower()
        if not any(term in lowered for term in terms):
            continue
        piece = mark_in_bold(anchor, terms) + SEPARATOR
        if len(snippet) + len(piece) > SNIPPET_BUDGET:
            break
        snippet += piece

    text = re.sub(r"\s+", " ", extract_text(document).lower())
    covered = snippet.lower()
    for term in terms:
        if term in covered:
            continue
        window = _context_window(text, term)
        if window is None:
            continue
        piece = window + SEPARATOR
        if len(snippet) + len(piece) > SNIPPET_BUDGET:
            break
        snippet += piece
        covered = snippet.lower()

    return snippet
