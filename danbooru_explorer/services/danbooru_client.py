"""
Service for interacting with the Danbooru API.
"""

import asyncio
import base64
import logging
import time
from typing import Any, Callable, Dict, List, Optional, TypeVar
import requests
from requests.adapters import HTTPAdapter
from danbooru_explorer.config.constants import (
    API_ACCEPT,
    API_REQUEST_TIMEOUT,
    API_RESOURCE_TIMEOUT,
    COMMENTS_PAGE_SIZE,
    CONNECTIVITY_POLL_INTERVAL,
    DEFAULT_POSTS_LIMIT,
    DEFAULT_TAGS_LIMIT,
    MAX_CONNECTIONS_PER_HOST,
    MAX_POSTS_LIMIT,
    SESSION_HEADERS,
)
from danbooru_explorer.data.models import Comment, DanbooruConfig, Post, Tag, UserProfile
from danbooru_explorer.services.errors import (
    DecodingError,
    InvalidResponseError,
    MissingCredentialsError,
    ServerError,
    TransportError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def make_session(headers: Dict[str, str], max_connections: int) -> requests.Session:
    """
    Create a requests session capped at max_connections per host.

    The pool blocks instead of opening extra connections, so callers over the
    cap wait for a free connection rather than being rejected.
    """
    session = requests.Session()
    adapter = HTTPAdapter(
        pool_connections=max_connections,
        pool_maxsize=max_connections,
        pool_block=True,
        max_retries=0,
    )
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.headers.update(headers)
    return session


class DanbooruClient:
    """Client for the Danbooru JSON API."""

    def __init__(
        self,
        config: Optional[DanbooruConfig] = None,
        session: Optional[requests.Session] = None,
        wait_for_connectivity: bool = True,
        request_timeout: float = API_REQUEST_TIMEOUT,
        resource_timeout: float = API_RESOURCE_TIMEOUT,
        max_connections: int = MAX_CONNECTIONS_PER_HOST,
    ):
        """
        Initialize the client.

        Args:
            config: Host and optional credentials, defaults to anonymous access
            session: Session used for HTTP calls, a pooled one is created if None
            wait_for_connectivity: Keep retrying the connection while offline
                until the resource timeout passes instead of failing at once
            request_timeout: Timeout in seconds for each connect/read
            resource_timeout: Upper bound in seconds for a whole request
            max_connections: Concurrent requests allowed against the host
        """
        self.config = config or DanbooruConfig()
        self.session = session or make_session(SESSION_HEADERS, max_connections)
        self.wait_for_connectivity = wait_for_connectivity
        self.request_timeout = request_timeout
        self.resource_timeout = resource_timeout
        self._slots = asyncio.Semaphore(max_connections)

    @property
    def base_url(self) -> str:
        return self.config.base_url.rstrip("/")

    # Posts

    async def fetch_posts(
        self, tags: Optional[str] = None, page: int = 1, limit: int = DEFAULT_POSTS_LIMIT
    ) -> List[Post]:
        """
        Fetch a page of posts, optionally filtered by a tag query.

        Args:
            tags: Danbooru tag query, None or empty for the most recent posts
            page: 1-based page number
            limit: Posts per page, values above MAX_POSTS_LIMIT are sent as MAX_POSTS_LIMIT

        Returns:
            List of Post objects

        Raises:
            ServerError: If the status is outside 200-299
            InvalidResponseError: If the transport reply is not HTTP
            DecodingError: If the body does not match the post schema
            TransportError: If the network call fails
        """
        params: Dict[str, Any] = {"page": page, "limit": min(limit, MAX_POSTS_LIMIT)}
        if tags:
            params["tags"] = tags

        response = await self._request("GET", "/posts.json", params=params)
        return self._decode_list(response, self._post_from_api)

    async def fetch_post(self, post_id: int) -> Post:
        """Fetch a single post by ID."""
        response = await self._request("GET", f"/posts/{post_id}.json")
        return self._decode(response, self._post_from_api)

    # Tags

    async def fetch_tags(self, prefix: str, limit: int = DEFAULT_TAGS_LIMIT) -> List[Tag]:
        """
        Fetch tags whose name starts with prefix, most used first.

        An empty prefix returns an empty list without contacting the server.
        """
        prefix = prefix.strip()
        if not prefix:
            return []

        params = {
            "search[name_matches]": f"{prefix}*",
            "search[order]": "count",
            "limit": limit,
        }
        response = await self._request("GET", "/tags.json", params=params)
        return self._decode_list(response, Tag.from_api)

    # Favorites and votes

    async def favorite(self, post_id: int) -> None:
        """Add a post to the user's favorites."""
        await self._request(
            "POST", "/favorites.json", data={"post_id": post_id}, authenticated=True
        )

    async def unfavorite(self, post_id: int) -> None:
        """Remove a post from the user's favorites."""
        await self._request("DELETE", f"/favorites/{post_id}.json", authenticated=True)

    async def vote(self, post_id: int, score: int) -> None:
        """Vote on a post, score is usually 1 or -1."""
        await self._request(
            "POST",
            f"/posts/{post_id}/votes.json",
            data={"score": score},
            authenticated=True,
        )

    # Comments

    async def fetch_comments(
        self, post_id: int, page: int = 1, limit: int = COMMENTS_PAGE_SIZE
    ) -> List[Comment]:
        """Fetch a page of comments on a post."""
        params = {
            "search[post_id]": post_id,
            "group_by": "comment",
            "page": page,
            "limit": limit,
        }
        response = await self._request("GET", "/comments.json", params=params)
        return self._decode_list(response, Comment.from_api)

    async def create_comment(self, post_id: int, body: str) -> Comment:
        """
        Post a new comment.

        Args:
            post_id: ID of the post to comment on
            body: Comment text, sent form-encoded

        Returns:
            The created Comment
        """
        data = {"comment[post_id]": post_id, "comment[body]": body}
        response = await self._request("POST", "/comments.json", data=data, authenticated=True)
        return self._decode(response, Comment.from_api)

    # Account

    async def fetch_current_user(self) -> UserProfile:
        """Fetch the profile of the authenticated user."""
        response = await self._request("GET", "/profile.json", authenticated=True)
        return self._decode(response, UserProfile.from_api)

    # Transport

    def _authorization_header(self) -> Dict[str, str]:
        username = self.config.username
        api_key = self.config.api_key
        if not username or not api_key:
            raise MissingCredentialsError()
        token = base64.b64encode(f"{username}:{api_key}".encode("utf-8")).decode("ascii")
        return {"Authorization": f"Basic {token}"}

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
        authenticated: bool = False,
    ) -> requests.Response:
        headers = {"Accept": API_ACCEPT, "Referer": self.base_url}
        if authenticated:
            headers.update(self._authorization_header())

        url = f"{self.base_url}{path}"
        async with self._slots:
            try:
                response = await asyncio.wait_for(
                    asyncio.to_thread(self._send, method, url, params, data, headers),
                    timeout=self.resource_timeout,
                )
            except asyncio.TimeoutError as e:
                logger.warning("%s %s exceeded %ss", method, path, self.resource_timeout)
                raise TransportError(e) from e

        if not isinstance(response, requests.Response):
            raise InvalidResponseError()
        if not 200 <= response.status_code < 300:
            logger.warning("%s %s failed with status %s", method, path, response.status_code)
            raise ServerError(response.status_code)

        logger.debug("%s %s -> %s", method, path, response.status_code)
        return response

    def _send(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]],
        data: Optional[Dict[str, Any]],
        headers: Dict[str, str],
    ) -> requests.Response:
        """Blocking request, run in a worker thread."""
        deadline = time.monotonic() + self.resource_timeout
        while True:
            try:
                return self.session.request(
                    method,
                    url,
                    params=params,
                    data=data,
                    headers=headers,
                    timeout=self.request_timeout,
                )
            except requests.Timeout as e:
                raise TransportError(e) from e
            except requests.ConnectionError as e:
                if (
                    self.wait_for_connectivity
                    and time.monotonic() + CONNECTIVITY_POLL_INTERVAL < deadline
                ):
                    logger.info("Waiting for connectivity to %s: %s", url, e)
                    time.sleep(CONNECTIVITY_POLL_INTERVAL)
                    continue
                raise TransportError(e) from e
            except requests.RequestException as e:
                raise TransportError(e) from e

    def _post_from_api(self, data: Dict[str, Any]) -> Post:
        return Post.from_api(data, base_url=self.base_url)

    @staticmethod
    def _payload(response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise DecodingError(e) from e

    def _decode(self, response: requests.Response, build: Callable[[Any], T]) -> T:
        payload = self._payload(response)
        try:
            return build(payload)
        except (KeyError, TypeError, ValueError) as e:
            raise DecodingError(e) from e

    def _decode_list(self, response: requests.Response, build: Callable[[Any], T]) -> List[T]:
        payload = self._payload(response)
        if not isinstance(payload, list):
            raise DecodingError(TypeError(f"Expected JSON array, got {type(payload).__name__}"))
        try:
            return [build(item) for item in payload]
        except (KeyError, TypeError, ValueError) as e:
            raise DecodingError(e) from e
