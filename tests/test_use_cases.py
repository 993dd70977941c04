from unittest.mock import AsyncMock
import pytest
from danbooru_explorer.data.models import Rating, SortMode
from danbooru_explorer.services.repositories import PostsRepository
from danbooru_explorer.services.use_cases import (
    CommentsUseCase,
    FavoritePostUseCase,
    SearchPostsUseCase,
    VotePostUseCase,
    build_query,
)


@pytest.fixture
def posts_repository():
    return AsyncMock(spec=PostsRepository)


@pytest.mark.asyncio
@pytest.mark.parametrize("query", [None, "", "   "])
async def test_search_without_tags_lists_recent(posts_repository, query):
    posts_repository.recent.return_value = []
    use_case = SearchPostsUseCase(posts_repository)

    await use_case.execute(query, page=1, limit=20)

    posts_repository.recent.assert_awaited_once_with(page=1, limit=20)
    posts_repository.by_tags.assert_not_awaited()


@pytest.mark.asyncio
async def test_search_with_tags_is_trimmed(posts_repository):
    posts_repository.by_tags.return_value = []
    use_case = SearchPostsUseCase(posts_repository)

    await use_case.execute(" rating:s tag1 ", page=3, limit=50)

    posts_repository.by_tags.assert_awaited_once_with("rating:s tag1", page=3, limit=50)
    posts_repository.recent.assert_not_awaited()


def test_build_query():
    assert build_query(None) is None
    assert build_query("  ") is None
    assert build_query(" cat ") == "cat"
    assert build_query("cat", Rating.S) == "rating:s cat"
    assert build_query("cat dog", Rating.G, SortMode.SCORE) == "rating:g order:score cat dog"
    assert build_query("", Rating.E) == "rating:e"


@pytest.mark.asyncio
async def test_interaction_use_cases_delegate(posts_repository):
    await FavoritePostUseCase(posts_repository).favorite(1)
    await FavoritePostUseCase(posts_repository).unfavorite(2)
    await VotePostUseCase(posts_repository).vote(3, -1)
    await CommentsUseCase(posts_repository).load(4, page=2)
    await CommentsUseCase(posts_repository).create(4, "hello")

    posts_repository.favorite.assert_awaited_once_with(1)
    posts_repository.unfavorite.assert_awaited_once_with(2)
    posts_repository.vote.assert_awaited_once_with(3, -1)
    posts_repository.comments.assert_awaited_once_with(4, page=2, limit=40)
    posts_repository.create_comment.assert_awaited_once_with(4, "hello")
