"""
Application wiring: builds the service graph from the stored credentials and
tracks whether those credentials are trusted.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional
import requests
from danbooru_explorer.config.constants import CACHE_DIR, DANBOORU_BASE_URL
from danbooru_explorer.data.database import Database
from danbooru_explorer.data.models import Credentials, DanbooruConfig, UserProfile
from danbooru_explorer.services.credentials_store import CredentialsStore
from danbooru_explorer.services.danbooru_client import DanbooruClient
from danbooru_explorer.services.errors import DanbooruError, describe_error
from danbooru_explorer.services.image_cache import ImageDiskCache, ImageMemoryCache
from danbooru_explorer.services.image_decoder import ImageDecoder, PillowImageDecoder
from danbooru_explorer.services.image_service import ThrottledImageLoader
from danbooru_explorer.services.repositories import (
    AccountRepository,
    PostsRepository,
    TagsRepository,
)
from danbooru_explorer.services.use_cases import (
    AutocompleteTagsUseCase,
    CommentsUseCase,
    FavoritePostUseCase,
    FetchCurrentUserUseCase,
    FetchPostUseCase,
    SearchPostsUseCase,
    VotePostUseCase,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppDependencies:
    """Use cases handed to the presentation layer."""

    search_posts: SearchPostsUseCase
    fetch_post: FetchPostUseCase
    autocomplete_tags: AutocompleteTagsUseCase
    favorite_post: FavoritePostUseCase
    vote_post: VotePostUseCase
    comments: CommentsUseCase
    fetch_current_user: FetchCurrentUserUseCase

    @classmethod
    def make_default(
        cls, config: Optional[DanbooruConfig] = None, session: Optional[requests.Session] = None
    ) -> "AppDependencies":
        """Build the use cases on top of a single DanbooruClient."""
        client = DanbooruClient(config=config, session=session)
        posts_repository = PostsRepository(client)
        return cls(
            search_posts=SearchPostsUseCase(posts_repository),
            fetch_post=FetchPostUseCase(posts_repository),
            autocomplete_tags=AutocompleteTagsUseCase(TagsRepository(client)),
            favorite_post=FavoritePostUseCase(posts_repository),
            vote_post=VotePostUseCase(posts_repository),
            comments=CommentsUseCase(posts_repository),
            fetch_current_user=FetchCurrentUserUseCase(AccountRepository(client)),
        )


DependenciesFactory = Callable[[DanbooruConfig], AppDependencies]


class DependenciesStore:
    """
    Owns the current credentials and the services built from them.

    Changing credentials persists them and rebuilds the services, so the new
    values apply without a restart.
    """

    def __init__(
        self,
        persistence: CredentialsStore,
        factory: DependenciesFactory = AppDependencies.make_default,
        base_url: str = DANBOORU_BASE_URL,
    ):
        self.persistence = persistence
        self.factory = factory
        self.base_url = base_url
        self._lock = threading.Lock()
        self.credentials = persistence.load().sanitized()
        self.dependencies = factory(self.credentials.as_config(base_url))
        self.profile: Optional[UserProfile] = None
        self.authentication_error: Optional[str] = None

    @property
    def has_credentials(self) -> bool:
        return self.credentials.has_credentials

    def update_credentials(self, username: Optional[str], api_key: Optional[str]) -> None:
        """
        Save new credentials; unusable ones clear the store instead.

        Raises:
            CredentialsStoreError: If the store rejects the change
        """
        credentials = Credentials(username=username, api_key=api_key).sanitized()
        if not credentials.has_credentials:
            self.clear_credentials()
            return

        with self._lock:
            self.persistence.save(credentials)
            self._apply(credentials)
        logger.info("Credentials updated for %s", credentials.username)

    def clear_credentials(self) -> None:
        """
        Remove stored credentials and fall back to anonymous access.

        Raises:
            CredentialsStoreError: If the store rejects the change
        """
        with self._lock:
            self.persistence.clear()
            self._apply(Credentials.empty())
        logger.info("Credentials cleared")

    async def refresh_profile(self) -> Optional[UserProfile]:
        """
        Validate the stored credentials by fetching the current user.

        Returns:
            The profile, or None when there are no credentials or the check failed
        """
        if not self.has_credentials:
            self.profile = None
            return None

        try:
            profile = await self.dependencies.fetch_current_user.execute()
        except DanbooruError as e:
            logger.warning("Could not verify credentials: %s", e)
            self.profile = None
            self.authentication_error = describe_error(e)
            return None

        self.profile = profile
        self.authentication_error = None
        return profile

    def handle_authentication_failure(self, message: str) -> None:
        """Stop trusting the stored credentials until the user re-authenticates."""
        logger.warning("Authentication failure: %s", message)
        self.authentication_error = message
        self.profile = None

    def _apply(self, credentials: Credentials) -> None:
        self.credentials = credentials
        self.dependencies = self.factory(credentials.as_config(self.base_url))
        self.profile = None
        self.authentication_error = None


def make_image_loader(
    db: Database,
    cache_dir: str = CACHE_DIR,
    decoder: Optional[ImageDecoder] = None,
    session: Optional[requests.Session] = None,
) -> ThrottledImageLoader:
    """Build the process-wide image loader with its memory and disk caches."""
    return ThrottledImageLoader(
        memory_cache=ImageMemoryCache(),
        disk_cache=ImageDiskCache(cache_dir, db),
        decoder=decoder or PillowImageDecoder(),
        session=session,
    )
