"""
Recent and saved searches, persisted as ordered JSON in the settings table.
"""

import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional
from danbooru_explorer.config.constants import (
    MAX_RECENT_SEARCHES,
    MAX_UNPINNED_SAVED_SEARCHES,
)
from danbooru_explorer.data.database import Database
from danbooru_explorer.data.models import Rating, SortMode

logger = logging.getLogger(__name__)

RECENT_SEARCHES_KEY = "recent_searches"
SAVED_SEARCHES_KEY = "saved_searches"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class RecentSearch:
    """A search the user ran recently."""

    query: str
    rating: Rating
    sort: Optional[SortMode] = None
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=_now)
    last_used_at: datetime = field(default_factory=_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "query": self.query,
            "rating": self.rating.value,
            "sort": self.sort.value if self.sort else None,
            "created_at": self.created_at.isoformat(),
            "last_used_at": self.last_used_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RecentSearch":
        return cls(
            id=data["id"],
            query=data["query"],
            rating=Rating(data["rating"]),
            sort=SortMode(data["sort"]) if data.get("sort") else None,
            created_at=datetime.fromisoformat(data["created_at"]),
            last_used_at=datetime.fromisoformat(data["last_used_at"]),
        )


@dataclass(frozen=True)
class SavedSearch:
    """A search the user saved, optionally pinned to the top."""

    query: str
    rating: Rating
    sort: Optional[SortMode] = None
    pinned: bool = False
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=_now)
    last_used_at: datetime = field(default_factory=_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "query": self.query,
            "rating": self.rating.value,
            "sort": self.sort.value if self.sort else None,
            "pinned": self.pinned,
            "created_at": self.created_at.isoformat(),
            "last_used_at": self.last_used_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SavedSearch":
        return cls(
            id=data["id"],
            query=data["query"],
            rating=Rating(data["rating"]),
            sort=SortMode(data["sort"]) if data.get("sort") else None,
            pinned=bool(data.get("pinned", False)),
            created_at=datetime.fromisoformat(data["created_at"]),
            last_used_at=datetime.fromisoformat(data["last_used_at"]),
        )


class RecentSearchStore:
    """Most-recently-used list of searches, capped at MAX_RECENT_SEARCHES."""

    def __init__(self, db: Database, clock: Callable[[], datetime] = _now):
        self.db = db
        self.clock = clock

    def list(self) -> List[RecentSearch]:
        raw = self.db.get_setting(RECENT_SEARCHES_KEY, [])
        try:
            items = [RecentSearch.from_dict(item) for item in raw]
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Discarding unreadable recent searches: %s", e)
            return []
        return self._sort(items)

    def add_or_touch(
        self, query: str, rating: Rating, sort: Optional[SortMode] = None
    ) -> None:
        """Add a search, or mark an identical one as just used."""
        items = self.list()
        for index, item in enumerate(items):
            if item.query == query and item.rating == rating and item.sort == sort:
                items[index] = replace(item, last_used_at=self.clock())
                break
        else:
            now = self.clock()
            items.append(
                RecentSearch(query=query, rating=rating, sort=sort, created_at=now, last_used_at=now)
            )
        self._save(items)

    def remove(self, search_id: str) -> None:
        self._save([item for item in self.list() if item.id != search_id])

    def clear(self) -> None:
        self.db.delete_setting(RECENT_SEARCHES_KEY)

    @staticmethod
    def _sort(items: List[RecentSearch]) -> List[RecentSearch]:
        return sorted(items, key=lambda item: item.last_used_at, reverse=True)

    def _save(self, items: List[RecentSearch]) -> None:
        capped = self._sort(items)[:MAX_RECENT_SEARCHES]
        self.db.set_setting(RECENT_SEARCHES_KEY, [item.to_dict() for item in capped])


class SavedSearchStore:
    """
    Saved searches, pinned first then most recently used.

    Pinned searches are never dropped; unpinned ones are capped at
    MAX_UNPINNED_SAVED_SEARCHES.
    """

    def __init__(self, db: Database, clock: Callable[[], datetime] = _now):
        self.db = db
        self.clock = clock

    def list(self) -> List[SavedSearch]:
        raw = self.db.get_setting(SAVED_SEARCHES_KEY, [])
        try:
            items = [SavedSearch.from_dict(item) for item in raw]
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Discarding unreadable saved searches: %s", e)
            return []
        return self._sort(items)

    def add_or_update(
        self, query: str, rating: Rating, sort: Optional[SortMode] = None
    ) -> None:
        """Save a search; an existing one with the same query and rating is touched."""
        items = self.list()
        for index, item in enumerate(items):
            if item.query == query and item.rating == rating:
                items[index] = replace(
                    item, last_used_at=self.clock(), sort=sort or item.sort
                )
                break
        else:
            now = self.clock()
            items.append(
                SavedSearch(query=query, rating=rating, sort=sort, created_at=now, last_used_at=now)
            )
        self._save(items)

    def toggle_pin(self, search_id: str) -> None:
        self._update(search_id, lambda item: replace(item, pinned=not item.pinned))

    def touch(self, search_id: str) -> None:
        self._update(search_id, lambda item: replace(item, last_used_at=self.clock()))

    def remove(self, search_id: str) -> None:
        self._save([item for item in self.list() if item.id != search_id])

    def _update(self, search_id: str, change: Callable[[SavedSearch], SavedSearch]) -> None:
        items = self.list()
        for index, item in enumerate(items):
            if item.id == search_id:
                items[index] = change(item)
                self._save(items)
                return

    @staticmethod
    def _sort(items: List[SavedSearch]) -> List[SavedSearch]:
        by_recency = sorted(items, key=lambda item: item.last_used_at, reverse=True)
        return sorted(by_recency, key=lambda item: not item.pinned)

    def _save(self, items: List[SavedSearch]) -> None:
        ordered = self._sort(items)
        pinned = [item for item in ordered if item.pinned]
        others = [item for item in ordered if not item.pinned]
        capped = pinned + others[:MAX_UNPINNED_SAVED_SEARCHES]
        self.db.set_setting(SAVED_SEARCHES_KEY, [item.to_dict() for item in capped])
