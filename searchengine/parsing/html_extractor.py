from __future__ import annotations

import re
from typing import List, Union

from bs4 import BeautifulSoup, CData, NavigableString

from searchengine.utils.url_utils import absolute_url


HtmlSource = Union[str, BeautifulSoup]

_WHITESPACE = re.compile(r"\s+")

NON_CONTENT_TAGS = frozenset({"script", "style", "noscript"})


def parse_document(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "lxml")


def _soup(source: HtmlSource) -> BeautifulSoup:
    if isinstance(source, BeautifulSoup):
        return source
    return parse_document(source)


def extract_title(source: HtmlSource) -> str:
    soup = _soup(source)
    if soup.title and soup.title.string:
        return soup.title.string.strip()
    return ""


def extract_text(source: HtmlSource) -> str:
    """
    Visible text of the page, used for lemmatization and snippet windows.
    Read-only: a shared document is neither copied nor modified.
    """
    parts = []
    for string in _soup(source).find_all(string=True):
        # comments, doctype and script/style strings have their own classes
        if type(string) not in (NavigableString, CData):
            continue
        if any(parent.name in NON_CONTENT_TAGS for parent in string.parents):
            continue
        text = string.strip()
        if text:
            parts.append(text)
    return " ".join(" ".join(parts).split())


def extract_links(base_url: str, source: HtmlSource) -> List[str]:
    """
    Every ``a[href]`` of the page as an absolute http(s) URL, in document
    order and without duplicates. Scope is decided by the caller.
    """
    links: List[str] = []
    seen: set[str] = set()

    for tag in _soup(source).find_all("a", href=True):
        url = absolute_url(base_url, tag["href"])
        if url is None or url in seen:
            continue
        seen.add(url)
        links.append(url)

    return links


def extract_description(source: HtmlSource) -> str:
    tag = _soup(source).find("meta", attrs={"name": "description"})
    if tag is None:
        return ""
    return _WHITESPACE.sub(" ", tag.get("content") or "").strip()


def extract_anchor_texts(source: HtmlSource) -> List[str]:
    texts = []
    for tag in _soup(source).find_all("a"):
        text = _WHITESPACE.sub(" ", tag.get_text(" ", strip=True))
        if text:
            texts.append(text)
    return texts
