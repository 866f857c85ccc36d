from __future__ import annotations
import threading
from dataclasses import dataclass, field
from typing import List

from .models import CrawlCounters, Page


@dataclass
class CrawlContext:
    """State shared by the supervisor, the pools and the merger of one crawl.

    The stop flag is a ``threading.Event`` so that signal handlers can set it.
    """
    counters: CrawlCounters = field(default_factory=CrawlCounters)
    in_flight: List[Page] = field(default_factory=list)
    show_progress: bool = True
    _stop: threading.Event = field(default_factory=threading.Event)

    def request_stop(self):
        self._stop.set()

    @property
    def stop_requested(self) -> bool:
        return self._stop.is_set()

    def progress(self, message: str):
        if self.show_progress:
            print(f"{message}      ", end="\r", flush=True)
