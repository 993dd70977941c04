"""
Repositories wrapping the Danbooru client per resource.
"""

from typing import List
from danbooru_explorer.config.constants import COMMENTS_PAGE_SIZE, DEFAULT_TAGS_LIMIT
from danbooru_explorer.data.models import Comment, Post, Tag, UserProfile
from danbooru_explorer.services.danbooru_client import DanbooruClient


class PostsRepository:
    """Posts, favorites, votes and comments."""

    def __init__(self, client: DanbooruClient):
        self.client = client

    async def recent(self, page: int, limit: int) -> List[Post]:
        return await self.client.fetch_posts(tags=None, page=page, limit=limit)

    async def by_tags(self, query: str, page: int, limit: int) -> List[Post]:
        return await self.client.fetch_posts(tags=query, page=page, limit=limit)

    async def post(self, post_id: int) -> Post:
        return await self.client.fetch_post(post_id)

    async def favorite(self, post_id: int) -> None:
        await self.client.favorite(post_id)

    async def unfavorite(self, post_id: int) -> None:
        await self.client.unfavorite(post_id)

    async def vote(self, post_id: int, score: int) -> None:
        await self.client.vote(post_id, score)

    async def comments(
        self, post_id: int, page: int = 1, limit: int = COMMENTS_PAGE_SIZE
    ) -> List[Comment]:
        return await self.client.fetch_comments(post_id, page=page, limit=limit)

    async def create_comment(self, post_id: int, body: str) -> Comment:
        return await self.client.create_comment(post_id, body)


class TagsRepository:
    """Tag autocompletion."""

    def __init__(self, client: DanbooruClient):
        self.client = client

    async def autocomplete(self, prefix: str, limit: int = DEFAULT_TAGS_LIMIT) -> List[Tag]:
        return await self.client.fetch_tags(prefix, limit=limit)


class AccountRepository:
    """The authenticated account."""

    def __init__(self, client: DanbooruClient):
        self.client = client

    async def current_user(self) -> UserProfile:
        return await self.client.fetch_current_user()
