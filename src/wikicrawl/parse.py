from __future__ import annotations
import json
import re
from typing import Dict, Iterable, List, Optional
from urllib.parse import unquote

from bs4 import BeautifulSoup

from .models import Page, RawLink

# ------------------ link tokens ------------------

# /wiki/<token> with an optional #fragment; subpaths and query strings are not articles
WIKI_HREF = re.compile(r"^/wiki/([^/?#]+)(?:#.*)?$")

def normalize_link(token: str) -> str:
    """Percent-decode and case-fold a raw ``/wiki/`` token."""
    return unquote(token).lower()

def is_article_link(link: str, namespaces: Iterable[str]) -> bool:
    return not any(link.startswith(namespace) for namespace in namespaces)

def extract_wiki_links(html: str, namespaces: Iterable[str]) -> List[RawLink]:
    """
    Extract outbound article links from a page.
    Returns deduplicated (token, display_text) pairs in document order; the
    first non-empty display text wins for a token seen several times.
    """
    namespaces = tuple(namespaces)
    soup = BeautifulSoup(html, "html.parser")
    links: Dict[str, Optional[str]] = {}

    for a in soup.find_all("a", href=True):
        match = WIKI_HREF.match(a["href"])
        if not match:
            continue
        link = normalize_link(match.group(1))
        if not link or not is_article_link(link, namespaces):
            continue
        display = a.get_text(strip=True) or None
        if links.get(link) is None:
            links[link] = display

    return list(links.items())

# ------------------ page metadata ------------------

# MediaWiki embeds the page configuration (RLCONF) as a JS object in a <script> tag
_WG_STRING = r'"{key}":\s*("(?:[^"\\]|\\.)*")'
_WG_NUMBER = r'"{key}":\s*(-?[0-9]+)'

def _wg_value(script: str, key: str, number: bool):
    pattern = (_WG_NUMBER if number else _WG_STRING).format(key=key)
    match = re.search(pattern, script)
    if not match:
        return None
    return json.loads(match.group(1))

def extract_page_metadata(html: str) -> Optional[Page]:
    """Read ``wgArticleId``/``wgTitle`` from the embedded page configuration.

    Returns None when the document carries no such configuration. An article
    id of 0 means the document is not an article (e.g. a search result list).
    """
    soup = BeautifulSoup(html, "html.parser")
    for script in soup.find_all("script"):
        text = script.string or script.get_text()
        if not text or "wgArticleId" not in text:
            continue
        page_id = _wg_value(text, "wgArticleId", number=True)
        title = _wg_value(text, "wgTitle", number=False)
        if page_id is None or title is None:
            continue
        return Page(id=int(page_id), title=title)
    return None

# ------------------ user input ------------------

def page_name_from_input(text: str, search_page: str = "Spécial:Recherche") -> str:
    """Turn a title, a token or a full page URL into a lowercase link token."""
    text = text.strip()
    if text.startswith("http"):
        text = text.split("wiki/")[-1]
        prefix = f"{search_page}/"
        if unquote(text).startswith(prefix):
            text = unquote(text)[len(prefix):]
        text = unquote(text.split("#")[0])
    return text.lower()
