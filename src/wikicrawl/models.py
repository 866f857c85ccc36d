from __future__ import annotations
import json
from dataclasses import dataclass, field
from typing import List, Optional, Tuple


@dataclass(frozen=True, eq=False)
class Page:
    """An article of the wiki. Identity is the upstream page id alone."""
    id: int
    title: str

    def __eq__(self, other):
        if not isinstance(other, Page):
            return NotImplemented
        return self.id == other.id

    def __hash__(self):
        return hash(self.id)

    def __str__(self):
        return f'{{ "id": {self.id}, "title": {json.dumps(self.title, ensure_ascii=False)} }}'


# (raw link token, display text of the anchor)
RawLink = Tuple[str, Optional[str]]


@dataclass
class ExploreResult:
    page: Page
    links: List[RawLink]


@dataclass
class CrawlCounters:
    """Process-wide crawl totals. Advisory only; storage holds the real counts."""
    explored: int = 0
    bugged: int = 0
    pages: int = 0
    links: int = 0

    def add(self, explored: int = 0, bugged: int = 0, pages: int = 0, links: int = 0):
        self.explored += explored
        self.bugged += bugged
        self.pages += pages
        self.links += links

    def summary(self) -> str:
        return (
            f"explored {self.explored} pages (with {self.bugged} bugged) \n"
            f"found {self.pages} pages \n"
            f"listed {self.links} links\n"
        )


@dataclass
class CycleReport:
    """Outcome of one select -> explore -> resolve -> merge cycle."""
    batch: List[Page] = field(default_factory=list)
    explored: int = 0
    bugged: int = 0
    new_pages: int = 0
    new_aliases: int = 0
    new_links: int = 0
    elapsed: float = 0.0
