import os
import time
from collections import OrderedDict
from collections.abc import Callable
from datetime import datetime
from logging import Logger

from fastmcp.utilities.logging import get_logger

from github_profile_analyzer.models.analysis import AnalysisResponse

DEFAULT_MAX_ENTRIES = 100
DEFAULT_TTL_SECONDS = 3600.0

logger: Logger = get_logger(name=__name__)


def build_cache_key(username: str, updated_at: datetime | str | None) -> str:
    """Key results on the lowercased username and the profile's last update so edits invalidate them."""

    if isinstance(updated_at, datetime):
        updated_at = updated_at.isoformat()

    return f"{username.lower()}:{updated_at or ''}"


class AnalysisCache[T]:
    """A bounded, time-limited store of results. Least recently used entries are evicted first."""

    max_entries: int
    ttl_seconds: float

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES, ttl_seconds: float = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        if max_entries < 1:
            msg = "max_entries must be at least 1"
            raise ValueError(msg)

        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._entries: OrderedDict[str, tuple[T, float]] = OrderedDict()

    def get(self, key: str) -> T | None:
        if (entry := self._entries.get(key)) is None:
            return None

        value, stored_at = entry

        if self.clock() - stored_at > self.ttl_seconds:
            del self._entries[key]
            return None

        self._entries.move_to_end(key)

        return value

    def set(self, key: str, value: T) -> None:
        if key in self._entries:
            del self._entries[key]
        elif len(self._entries) >= self.max_entries:
            evicted_key, _ = self._entries.popitem(last=False)
            logger.debug(f"Evicted {evicted_key} from the analysis cache")

        self._entries[key] = (value, self.clock())

    def has(self, key: str) -> bool:
        return self.get(key) is not None

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


def get_analysis_cache() -> AnalysisCache[AnalysisResponse]:
    max_entries = int(os.environ.get("ANALYSIS_CACHE_MAX_ENTRIES") or DEFAULT_MAX_ENTRIES)
    ttl_seconds = float(os.environ.get("ANALYSIS_CACHE_TTL_SECONDS") or DEFAULT_TTL_SECONDS)

    return AnalysisCache[AnalysisResponse](max_entries=max_entries, ttl_seconds=ttl_seconds)
