"""
Data models for Danbooru Explorer.
"""

import enum
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional, Dict, Any, List, Type, TypeVar
from danbooru_explorer.config.constants import DANBOORU_BASE_URL
from danbooru_explorer.services.urls import make_danbooru_url

T = TypeVar("T")

DATE_FORMATS = ("%Y-%m-%dT%H:%M:%S.%f%z", "%Y-%m-%dT%H:%M:%S%z")

TAG_CATEGORIES: Dict[int, str] = {
    0: "general",
    1: "artist",
    3: "copyright",
    4: "character",
    5: "meta",
}


def parse_date(value: str) -> datetime:
    """
    Parse an ISO-8601 timestamp as sent by Danbooru.

    The fractional-seconds form is tried first, then the whole-second form.

    Raises:
        ValueError: If the value matches neither form
    """
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    raise ValueError(f"Invalid ISO-8601 date: {value!r}")


def _field(data: Dict[str, Any], key: str, kind: Type[T]) -> Optional[T]:
    """Read an optional field, failing on a JSON type mismatch."""
    value = data.get(key)
    if value is None:
        return None
    # bool is an int subclass, never accept it where a number is expected
    if kind is int and isinstance(value, bool):
        raise TypeError(f"Field {key!r} expected int, got bool")
    if not isinstance(value, kind):
        raise TypeError(
            f"Field {key!r} expected {kind.__name__}, got {type(value).__name__}"
        )
    return value


def _required(data: Dict[str, Any], key: str, kind: Type[T]) -> T:
    value = _field(data, key, kind)
    if value is None:
        raise KeyError(f"Missing required field {key!r}")
    return value


def _date_field(data: Dict[str, Any], key: str) -> Optional[datetime]:
    value = _field(data, key, str)
    return parse_date(value) if value is not None else None


def _split_tags(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return value.split()


def _ensure_object(data: Any) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise TypeError(f"Expected JSON object, got {type(data).__name__}")
    return data


class Rating(enum.Enum):
    """Rating filter used when composing search queries."""

    ANY = "any"
    G = "g"
    S = "s"
    Q = "q"
    E = "e"

    @property
    def tag(self) -> Optional[str]:
        """Get the search tag for this rating, None for any rating."""
        if self is Rating.ANY:
            return None
        return f"rating:{self.value}"

    @property
    def display(self) -> str:
        return "Any" if self is Rating.ANY else self.value.upper()


class SortMode(enum.Enum):
    """Ordering applied to post searches."""

    RECENT = "recent"
    SCORE = "score"
    FAVORITES = "favorites"
    POPULAR = "popular"

    @property
    def tag(self) -> Optional[str]:
        """Get the order: metatag for this mode, None for the default order."""
        return {
            SortMode.RECENT: None,
            SortMode.SCORE: "order:score",
            SortMode.FAVORITES: "order:favcount",
            SortMode.POPULAR: "order:rank",
        }[self]

    @property
    def label(self) -> str:
        return self.value.capitalize()


@dataclass(frozen=True)
class Post:
    """Represents a Danbooru post."""

    id: int
    created_at: Optional[datetime] = None
    rating: Optional[str] = None
    tag_string: Optional[str] = None
    tag_string_artist: Optional[str] = None
    tag_string_copyright: Optional[str] = None
    tag_string_character: Optional[str] = None
    tag_string_general: Optional[str] = None
    tag_string_meta: Optional[str] = None
    file_url: Optional[str] = None
    preview_file_url: Optional[str] = None
    large_file_url: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    score: Optional[int] = None
    fav_count: Optional[int] = None
    source: Optional[str] = None
    is_favorited: Optional[bool] = None
    up_score: Optional[int] = None
    down_score: Optional[int] = None
    base_url: str = field(default=DANBOORU_BASE_URL, compare=False, repr=False)

    @classmethod
    def from_api(cls, data: Dict[str, Any], base_url: str = DANBOORU_BASE_URL) -> "Post":
        """
        Create a Post instance from Danbooru API data.

        Raises:
            KeyError: If the id is missing
            TypeError: If a field has the wrong JSON type
            ValueError: If a date cannot be parsed
        """
        data = _ensure_object(data)
        width = _field(data, "image_width", int)
        height = _field(data, "image_height", int)
        return cls(
            id=_required(data, "id", int),
            created_at=_date_field(data, "created_at"),
            rating=_field(data, "rating", str),
            tag_string=_field(data, "tag_string", str),
            tag_string_artist=_field(data, "tag_string_artist", str),
            tag_string_copyright=_field(data, "tag_string_copyright", str),
            tag_string_character=_field(data, "tag_string_character", str),
            tag_string_general=_field(data, "tag_string_general", str),
            tag_string_meta=_field(data, "tag_string_meta", str),
            file_url=_field(data, "file_url", str),
            preview_file_url=_field(data, "preview_file_url", str),
            large_file_url=_field(data, "large_file_url", str),
            width=width if width is not None else _field(data, "width", int),
            height=height if height is not None else _field(data, "height", int),
            score=_field(data, "score", int),
            fav_count=_field(data, "fav_count", int),
            source=_field(data, "source", str),
            is_favorited=_field(data, "is_favorited", bool),
            up_score=_field(data, "up_score", int),
            down_score=_field(data, "down_score", int),
            base_url=base_url,
        )

    @property
    def file_link(self) -> Optional[str]:
        return make_danbooru_url(self.file_url, self.base_url)

    @property
    def preview_link(self) -> Optional[str]:
        return make_danbooru_url(self.preview_file_url, self.base_url)

    @property
    def large_link(self) -> Optional[str]:
        return make_danbooru_url(self.large_file_url, self.base_url)

    @property
    def tags_artist(self) -> List[str]:
        return _split_tags(self.tag_string_artist)

    @property
    def tags_copyright(self) -> List[str]:
        return _split_tags(self.tag_string_copyright)

    @property
    def tags_character(self) -> List[str]:
        return _split_tags(self.tag_string_character)

    @property
    def tags_general(self) -> List[str]:
        return _split_tags(self.tag_string_general)

    @property
    def tags_meta(self) -> List[str]:
        return _split_tags(self.tag_string_meta)

    @property
    def all_tags(self) -> List[str]:
        return _split_tags(self.tag_string)

    @property
    def image_candidates(self) -> List[str]:
        """Image URLs from lowest to highest fidelity, for tiles."""
        return _unique([self.preview_link, self.large_link, self.file_link])

    @property
    def best_image_candidates(self) -> List[str]:
        """Image URLs for the detail view, the sharpest usable one first."""
        return _unique([self.large_link, self.file_link, self.preview_link])


def _unique(urls: List[Optional[str]]) -> List[str]:
    result: List[str] = []
    for url in urls:
        if url and url not in result:
            result.append(url)
    return result


@dataclass(frozen=True)
class Tag:
    """Represents a Danbooru tag."""

    name: str
    category: Optional[int] = None
    post_count: Optional[int] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Tag":
        """Create a Tag instance from Danbooru API data."""
        data = _ensure_object(data)
        return cls(
            name=_required(data, "name", str),
            category=_field(data, "category", int),
            post_count=_field(data, "post_count", int),
        )

    @property
    def kind(self) -> str:
        """Get the tag category name."""
        return TAG_CATEGORIES.get(self.category if self.category is not None else -1, "tag")

    @property
    def display_name(self) -> str:
        return self.name.replace("_", " ")


@dataclass(frozen=True)
class Comment:
    """Represents a comment on a post."""

    id: int
    post_id: int
    body: str
    creator_id: Optional[int] = None
    creator_name: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Comment":
        """Create a Comment instance from Danbooru API data."""
        data = _ensure_object(data)
        return cls(
            id=_required(data, "id", int),
            post_id=_required(data, "post_id", int),
            body=_required(data, "body", str),
            creator_id=_field(data, "creator_id", int),
            creator_name=_field(data, "creator_name", str),
            created_at=_date_field(data, "created_at"),
        )


@dataclass(frozen=True)
class UserProfile:
    """Represents the authenticated Danbooru user."""

    id: int
    name: str
    level: Optional[str] = None
    email: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "UserProfile":
        """Create a UserProfile instance from Danbooru API data."""
        data = _ensure_object(data)
        return cls(
            id=_required(data, "id", int),
            name=_required(data, "name", str),
            level=_field(data, "level_string", str),
            email=_field(data, "email", str),
            created_at=_date_field(data, "created_at"),
        )


@dataclass(frozen=True)
class DanbooruConfig:
    """Connection settings for the Danbooru API."""

    base_url: str = DANBOORU_BASE_URL
    username: Optional[str] = None
    api_key: Optional[str] = None


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


@dataclass(frozen=True)
class Credentials:
    """A Danbooru username and API key pair."""

    username: Optional[str] = None
    api_key: Optional[str] = None

    @classmethod
    def empty(cls) -> "Credentials":
        return cls()

    def sanitized(self) -> "Credentials":
        """Get a copy with whitespace trimmed and empty strings dropped."""
        return replace(self, username=_clean(self.username), api_key=_clean(self.api_key))

    @property
    def has_credentials(self) -> bool:
        """Whether both parts are present after sanitizing."""
        clean = self.sanitized()
        return clean.username is not None and clean.api_key is not None

    def as_config(self, base_url: str = DANBOORU_BASE_URL) -> DanbooruConfig:
        clean = self.sanitized()
        return DanbooruConfig(base_url=base_url, username=clean.username, api_key=clean.api_key)
