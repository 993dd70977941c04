"""
Use cases combining repositories into application operations.
"""

from typing import List, Optional
from danbooru_explorer.config.constants import COMMENTS_PAGE_SIZE
from danbooru_explorer.data.models import Comment, Post, Rating, SortMode, Tag, UserProfile
from danbooru_explorer.services.repositories import (
    AccountRepository,
    PostsRepository,
    TagsRepository,
)


def build_query(
    tags: Optional[str], rating: Rating = Rating.ANY, sort: SortMode = SortMode.RECENT
) -> Optional[str]:
    """
    Compose a Danbooru search query.

    Args:
        tags: Tags typed by the user
        rating: Rating filter, prepended as rating:x
        sort: Ordering, added as an order: metatag

    Returns:
        Space-separated query, or None when there is nothing to search for
    """
    parts = [rating.tag, sort.tag, (tags or "").strip()]
    parts = [part for part in parts if part]
    return " ".join(parts) if parts else None


class SearchPostsUseCase:
    """Search posts by tags, falling back to the most recent posts."""

    def __init__(self, posts_repository: PostsRepository):
        self.posts_repository = posts_repository

    async def execute(self, query: Optional[str], page: int, limit: int) -> List[Post]:
        """
        Search posts.

        The query is trimmed first. A non-empty result is sent as a tag
        search, anything else (None, empty, whitespace only) lists recent
        posts.
        """
        trimmed = query.strip() if query is not None else None
        if trimmed:
            return await self.posts_repository.by_tags(trimmed, page=page, limit=limit)
        return await self.posts_repository.recent(page=page, limit=limit)


class AutocompleteTagsUseCase:
    def __init__(self, tags_repository: TagsRepository):
        self.tags_repository = tags_repository

    async def execute(self, prefix: str, limit: int) -> List[Tag]:
        return await self.tags_repository.autocomplete(prefix, limit=limit)


class FavoritePostUseCase:
    def __init__(self, posts_repository: PostsRepository):
        self.posts_repository = posts_repository

    async def favorite(self, post_id: int) -> None:
        await self.posts_repository.favorite(post_id)

    async def unfavorite(self, post_id: int) -> None:
        await self.posts_repository.unfavorite(post_id)


class VotePostUseCase:
    def __init__(self, posts_repository: PostsRepository):
        self.posts_repository = posts_repository

    async def vote(self, post_id: int, score: int) -> None:
        await self.posts_repository.vote(post_id, score)


class CommentsUseCase:
    def __init__(self, posts_repository: PostsRepository):
        self.posts_repository = posts_repository

    async def load(
        self, post_id: int, page: int = 1, limit: int = COMMENTS_PAGE_SIZE
    ) -> List[Comment]:
        return await self.posts_repository.comments(post_id, page=page, limit=limit)

    async def create(self, post_id: int, body: str) -> Comment:
        return await self.posts_repository.create_comment(post_id, body)


class FetchCurrentUserUseCase:
    def __init__(self, account_repository: AccountRepository):
        self.account_repository = account_repository

    async def execute(self) -> UserProfile:
        return await self.account_repository.current_user()


class FetchPostUseCase:
    def __init__(self, posts_repository: PostsRepository):
        self.posts_repository = posts_repository

    async def execute(self, post_id: int) -> Post:
        return await self.posts_repository.post(post_id)
