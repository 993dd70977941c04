"""
Interaction state for a single post: favorites, votes and comments.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional
from danbooru_explorer.config.constants import COMMENTS_PAGE_SIZE
from danbooru_explorer.data.models import Comment, Post
from danbooru_explorer.services.errors import (
    DanbooruError,
    authentication_failure_message,
    describe_error,
)
from danbooru_explorer.services.session import AppDependencies
from danbooru_explorer.services.urls import post_page_url

logger = logging.getLogger(__name__)

CREDENTIALS_REQUIRED_MESSAGE = (
    "Authenticate with Danbooru (API key + username) to use this action."
)

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def _comment_order(comment: Comment) -> datetime:
    return comment.created_at or _OLDEST


class PostDetailController:
    """
    Favorites, votes and comments for one post.

    Successful favorites and votes are tracked as a local overlay on top of
    the Post, which itself is never modified.
    """

    def __init__(
        self,
        post: Post,
        dependencies: AppDependencies,
        has_credentials: bool = False,
        on_authentication_failure: Optional[Callable[[str], None]] = None,
    ):
        self.post = post
        self.dependencies = dependencies
        self.has_credentials = has_credentials
        self.on_authentication_failure = on_authentication_failure

        self.is_favorited: Optional[bool] = post.is_favorited
        self.favorite_count: Optional[int] = post.fav_count
        self.up_score: Optional[int] = post.up_score
        self.down_score: Optional[int] = post.down_score
        self.last_vote_score: Optional[int] = None
        self.is_interaction_in_progress = False

        self.comments: List[Comment] = []
        self.comments_page = 1
        self.has_more_comments = True
        self.comments_error: Optional[str] = None
        self.message: Optional[str] = None

    @property
    def page_url(self) -> str:
        return post_page_url(self.post.id, self.post.base_url)

    @property
    def current_favorite_state(self) -> bool:
        return bool(self.is_favorited)

    # Favorites and votes

    async def set_favorite(self, add: bool) -> bool:
        """
        Favorite or unfavorite the post.

        Returns:
            True if the change went through
        """
        if not self._can_interact():
            return False

        self.is_interaction_in_progress = True
        try:
            if add:
                await self.dependencies.favorite_post.favorite(self.post.id)
            else:
                await self.dependencies.favorite_post.unfavorite(self.post.id)
        except DanbooruError as e:
            self._report(e)
            return False
        finally:
            self.is_interaction_in_progress = False

        self._update_favorite_state(add)
        self.message = "Added to favorites" if add else "Removed from favorites"
        return True

    async def vote(self, score: int) -> bool:
        """
        Vote on the post.

        Returns:
            True if the vote went through
        """
        if not self._can_interact():
            return False

        self.is_interaction_in_progress = True
        try:
            await self.dependencies.vote_post.vote(self.post.id, score)
        except DanbooruError as e:
            self._report(e)
            return False
        finally:
            self.is_interaction_in_progress = False

        self._update_vote_state(score)
        self.last_vote_score = score
        self.message = "Upvote sent" if score >= 0 else "Downvote sent"
        return True

    # Comments

    async def refresh_comments(self) -> None:
        """Reload comments from the first page."""
        self.comments_page = 1
        self.has_more_comments = True
        self.comments = []
        await self._load_comments(page=1, replace=True)

    async def load_more_comments(self) -> None:
        if not self.has_more_comments:
            return
        await self._load_comments(page=self.comments_page + 1, replace=False)

    async def submit_comment(self, body: str) -> Optional[Comment]:
        """
        Post a comment.

        Args:
            body: Comment text, surrounding whitespace is dropped

        Returns:
            The created comment, or None if nothing was posted
        """
        trimmed = body.strip()
        if not trimmed:
            return None
        if not self.has_credentials:
            self.comments_error = CREDENTIALS_REQUIRED_MESSAGE
            return None

        self.comments_error = None
        try:
            comment = await self.dependencies.comments.create(self.post.id, trimmed)
        except DanbooruError as e:
            self._notify_auth_failure(e)
            self.comments_error = describe_error(e)
            return None

        self.comments.append(comment)
        self.comments.sort(key=_comment_order)
        self.message = "Comment posted"
        return comment

    async def _load_comments(self, page: int, replace: bool) -> None:
        self.comments_error = None
        try:
            items = await self.dependencies.comments.load(
                self.post.id, page=page, limit=COMMENTS_PAGE_SIZE
            )
        except DanbooruError as e:
            logger.warning("Could not load comments for post %s: %s", self.post.id, e)
            self.comments_error = describe_error(e)
            return

        if replace:
            self.comments = list(items)
        else:
            self.comments.extend(items)
        self.comments.sort(key=_comment_order)
        self.comments_page = page
        self.has_more_comments = len(items) == COMMENTS_PAGE_SIZE

    # Helpers

    def _can_interact(self) -> bool:
        if not self.has_credentials:
            self.message = "Log in with your Danbooru username and API key first"
            return False
        return not self.is_interaction_in_progress

    def _report(self, error: DanbooruError) -> None:
        self._notify_auth_failure(error)
        self.message = describe_error(error)

    def _notify_auth_failure(self, error: DanbooruError) -> None:
        message = authentication_failure_message(error)
        if message is not None and self.on_authentication_failure is not None:
            self.on_authentication_failure(message)

    def _update_favorite_state(self, favorited: bool) -> None:
        previous = bool(self.is_favorited)
        count = self.favorite_count or 0
        if favorited and not previous:
            count += 1
        elif not favorited and previous:
            count = max(0, count - 1)
        self.is_favorited = favorited
        self.favorite_count = count

    def _update_vote_state(self, score: int) -> None:
        if score >= 0:
            self.up_score = (self.up_score or 0) + score
        else:
            self.down_score = (self.down_score or 0) + abs(score)
