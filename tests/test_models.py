from datetime import datetime, timedelta, timezone
import pytest
from danbooru_explorer.data.models import (
    Comment,
    Credentials,
    Post,
    Rating,
    SortMode,
    Tag,
    UserProfile,
    parse_date,
)
from danbooru_explorer.services.urls import make_danbooru_url


POST_JSON = {
    "id": 123,
    "created_at": "2024-04-01T12:34:56.000-04:00",
    "rating": "s",
    "tag_string": "tag1 tag2",
    "tag_string_artist": "some_artist",
    "file_url": "https://example.com/file.jpg",
    "preview_file_url": "/data/preview.jpg",
    "large_file_url": "https://example.com/large.jpg",
    "width": 1024,
    "height": 768,
    "score": 42,
    "fav_count": 3,
    "source": "https://artist.example/post/1",
    "is_favorited": True,
    "up_score": 123,
    "down_score": 5,
}


def test_make_danbooru_url_absolute():
    assert make_danbooru_url("https://example.com/a.jpg") == "https://example.com/a.jpg"


def test_make_danbooru_url_relative():
    assert make_danbooru_url("/data/preview.jpg") == "https://danbooru.donmai.us/data/preview.jpg"
    assert make_danbooru_url("data/preview.jpg") == "https://danbooru.donmai.us/data/preview.jpg"


def test_make_danbooru_url_none_or_empty():
    assert make_danbooru_url(None) is None
    assert make_danbooru_url("") is None


def test_decode_post():
    post = Post.from_api(POST_JSON)

    assert post.id == 123
    assert post.rating == "s"
    assert post.score == 42
    assert post.fav_count == 3
    assert post.is_favorited is True
    assert post.up_score == 123
    assert post.down_score == 5
    assert post.width == 1024
    assert post.height == 768
    assert post.created_at == datetime(2024, 4, 1, 12, 34, 56, tzinfo=timezone(timedelta(hours=-4)))
    assert post.all_tags == ["tag1", "tag2"]
    assert post.tags_artist == ["some_artist"]
    assert post.tags_meta == []
    assert post.preview_link == "https://danbooru.donmai.us/data/preview.jpg"
    assert post.file_link == "https://example.com/file.jpg"


def test_post_prefers_image_dimensions():
    post = Post.from_api({"id": 1, "image_width": 300, "image_height": 200, "width": 5})
    assert (post.width, post.height) == (300, 200)


def test_post_candidates_are_ordered_and_unique():
    post = Post.from_api(
        {
            "id": 1,
            "preview_file_url": "/p.jpg",
            "large_file_url": "/f.jpg",
            "file_url": "/f.jpg",
        }
    )
    assert post.image_candidates == [
        "https://danbooru.donmai.us/p.jpg",
        "https://danbooru.donmai.us/f.jpg",
    ]
    assert post.best_image_candidates == [
        "https://danbooru.donmai.us/f.jpg",
        "https://danbooru.donmai.us/p.jpg",
    ]


@pytest.mark.parametrize(
    "payload",
    [
        {"id": "123"},
        {"id": 1, "score": "high"},
        {"id": 1, "score": True},
        {"id": 1, "is_favorited": 1},
        {"id": 1, "created_at": "yesterday"},
        {"score": 1},
    ],
)
def test_post_decoding_fails_closed(payload):
    with pytest.raises((KeyError, TypeError, ValueError)):
        Post.from_api(payload)


def test_parse_date_with_and_without_fraction():
    assert parse_date("2024-01-02T03:04:05.123Z").microsecond == 123000
    assert parse_date("2024-01-02T03:04:05+09:00").utcoffset() == timedelta(hours=9)
    with pytest.raises(ValueError):
        parse_date("2024-01-02")


def test_tag_kind_and_display_name():
    tag = Tag.from_api({"name": "blue_sky", "category": 4, "post_count": 10})
    assert tag.kind == "character"
    assert tag.display_name == "blue sky"
    assert Tag.from_api({"name": "x", "category": 2}).kind == "tag"
    assert Tag.from_api({"name": "x"}).kind == "tag"


def test_comment_and_profile_decoding():
    comment = Comment.from_api(
        {"id": 7, "post_id": 3, "body": "nice", "creator_name": "anon", "created_at": None}
    )
    assert comment.post_id == 3
    assert comment.created_at is None

    profile = UserProfile.from_api(
        {"id": 42, "name": "Tester", "level_string": "Gold", "created_at": "2020-05-01T00:00:00.000+00:00"}
    )
    assert profile.level == "Gold"
    assert profile.email is None


def test_credentials_sanitized():
    credentials = Credentials(username=" user ", api_key="   ")
    assert credentials.sanitized() == Credentials(username="user", api_key=None)
    assert not credentials.has_credentials
    assert Credentials(username=" u ", api_key=" k ").has_credentials


def test_credentials_as_config():
    config = Credentials(username=" name ", api_key="key\n").as_config()
    assert config.username == "name"
    assert config.api_key == "key"
    assert config.base_url == "https://danbooru.donmai.us"


def test_rating_and_sort_tags():
    assert Rating.ANY.tag is None
    assert Rating.E.tag == "rating:e"
    assert SortMode.RECENT.tag is None
    assert SortMode.SCORE.tag == "order:score"
