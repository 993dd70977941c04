"""
Main entry point for the Danbooru Explorer application.
"""

import argparse
import asyncio
import sys
from typing import List, Optional
from danbooru_explorer.config.constants import (
    BYTES_PER_MEGABYTE,
    CACHE_DIR,
    COMMENTS_PAGE_SIZE,
    DEFAULT_POSTS_LIMIT,
    DEFAULT_TAGS_LIMIT,
)
from danbooru_explorer.config.logging_setup import configure_logging
from danbooru_explorer.data.database import Database
from danbooru_explorer.data.models import Post, Rating, SortMode
from danbooru_explorer.data.search_history import RecentSearchStore, SavedSearchStore
from danbooru_explorer.services.credentials_store import KeyringCredentialsStore
from danbooru_explorer.services.errors import DanbooruError, describe_error
from danbooru_explorer.services.image_cache import ImageDiskCache
from danbooru_explorer.services.image_decoder import ImageDecoder, PillowImageDecoder
from danbooru_explorer.services.post_detail import PostDetailController
from danbooru_explorer.services.session import DependenciesStore, make_image_loader
from danbooru_explorer.services.use_cases import build_query

DECODERS = ("pillow", "qt")


def make_decoder(name: str) -> ImageDecoder:
    """Get the image decoder for a --decoder choice."""
    if name == "qt":
        # PySide6 is only loaded when Qt decoding is asked for
        from danbooru_explorer.services.qt_image_decoder import QtImageDecoder

        return QtImageDecoder()
    return PillowImageDecoder()


def _add_search_filters(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--rating", choices=[r.value for r in Rating], default=Rating.ANY.value
    )
    parser.add_argument(
        "--sort", choices=[s.value for s in SortMode], default=SortMode.RECENT.value
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="danbooru_explorer", description="Browse Danbooru from the command line"
    )
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR")
    commands = parser.add_subparsers(dest="command", required=True)

    search = commands.add_parser("search", help="Search posts, recent posts without tags")
    search.add_argument("tags", nargs="*")
    search.add_argument("--page", type=int, default=1)
    search.add_argument("--limit", type=int, default=DEFAULT_POSTS_LIMIT)
    _add_search_filters(search)

    tags = commands.add_parser("tags", help="Autocomplete tag names")
    tags.add_argument("prefix")
    tags.add_argument("--limit", type=int, default=DEFAULT_TAGS_LIMIT)

    post = commands.add_parser("post", help="Show a single post")
    post.add_argument("post_id", type=int)

    comments = commands.add_parser("comments", help="List comments on a post")
    comments.add_argument("post_id", type=int)
    comments.add_argument("--page", type=int, default=1)

    favorite = commands.add_parser("favorite", help="Add a post to your favorites")
    favorite.add_argument("post_id", type=int)
    unfavorite = commands.add_parser("unfavorite", help="Remove a post from your favorites")
    unfavorite.add_argument("post_id", type=int)

    vote = commands.add_parser("vote", help="Vote on a post")
    vote.add_argument("post_id", type=int)
    vote.add_argument("direction", choices=["up", "down"])

    comment = commands.add_parser("comment", help="Post a comment")
    comment.add_argument("post_id", type=int)
    comment.add_argument("body", nargs="+")

    saved = commands.add_parser("saved", help="Manage saved searches")
    saved_commands = saved.add_subparsers(dest="saved_command", required=True)
    saved_commands.add_parser("list")
    saved_add = saved_commands.add_parser("add")
    saved_add.add_argument("tags", nargs="+")
    _add_search_filters(saved_add)
    for name in ("pin", "remove"):
        saved_commands.add_parser(name).add_argument("search_id")
    saved_run = saved_commands.add_parser("run")
    saved_run.add_argument("search_id")
    saved_run.add_argument("--page", type=int, default=1)
    saved_run.add_argument("--limit", type=int, default=DEFAULT_POSTS_LIMIT)

    login = commands.add_parser("login", help="Store and verify credentials")
    login.add_argument("username")
    login.add_argument("api_key")

    commands.add_parser("logout", help="Remove stored credentials")
    commands.add_parser("whoami", help="Show the authenticated user")

    cache = commands.add_parser("cache", help="Inspect or change the image cache")
    cache_commands = cache.add_subparsers(dest="cache_command", required=True)
    cache_commands.add_parser("usage")
    limit = cache_commands.add_parser("limit")
    limit.add_argument("megabytes", type=int)
    cache_commands.add_parser("clear")

    fetch = commands.add_parser("fetch-image", help="Download the best image of a post")
    fetch.add_argument("post_id", type=int)
    fetch.add_argument("output")
    fetch.add_argument("--decoder", choices=DECODERS, default="pillow")

    return parser


def print_posts(posts: List[Post]) -> None:
    for post in posts:
        print(f"{post.id}\t{post.rating or '-'}\tscore {post.score or 0}\t{post.preview_link or ''}")


async def open_post(store: DependenciesStore, post_id: int) -> PostDetailController:
    """Fetch a post and wrap it in a controller bound to the session."""
    post = await store.dependencies.fetch_post.execute(post_id)
    return PostDetailController(
        post,
        store.dependencies,
        has_credentials=store.has_credentials,
        on_authentication_failure=store.handle_authentication_failure,
    )


def report_interaction(controller: PostDetailController, done: bool, store: DependenciesStore) -> int:
    print(controller.message or "")
    if store.authentication_error:
        print(store.authentication_error, file=sys.stderr)
    return 0 if done else 1


async def run(args: argparse.Namespace, db: Database, store: DependenciesStore) -> int:
    """Run one command, returns the process exit code."""
    deps = store.dependencies

    if args.command == "search":
        query = build_query(" ".join(args.tags), Rating(args.rating), SortMode(args.sort))
        posts = await deps.search_posts.execute(query, page=args.page, limit=args.limit)
        if args.tags:
            RecentSearchStore(db).add_or_touch(
                " ".join(args.tags), Rating(args.rating), SortMode(args.sort)
            )
        print_posts(posts)
        return 0

    if args.command == "tags":
        for tag in await deps.autocomplete_tags.execute(args.prefix, limit=args.limit):
            print(f"{tag.name}\t{tag.kind}\t{tag.post_count or 0}")
        return 0

    if args.command == "post":
        post = await deps.fetch_post.execute(args.post_id)
        print(f"{post.id}\trating {post.rating or '-'}\tscore {post.score or 0}\tfavorites {post.fav_count or 0}")
        print(" ".join(post.all_tags))
        print(post.file_link or post.large_link or post.preview_link or "")
        return 0

    if args.command == "comments":
        comments = await deps.comments.load(
            args.post_id, page=args.page, limit=COMMENTS_PAGE_SIZE
        )
        for comment in comments:
            print(f"[{comment.creator_name or comment.creator_id}] {comment.body}")
        return 0

    if args.command in ("favorite", "unfavorite"):
        controller = await open_post(store, args.post_id)
        done = await controller.set_favorite(args.command == "favorite")
        if done:
            controller.message = f"{controller.message} ({controller.favorite_count} favorites)"
        return report_interaction(controller, done, store)

    if args.command == "vote":
        controller = await open_post(store, args.post_id)
        done = await controller.vote(1 if args.direction == "up" else -1)
        if done:
            controller.message = (
                f"{controller.message} (+{controller.up_score or 0} / -{controller.down_score or 0})"
            )
        return report_interaction(controller, done, store)

    if args.command == "comment":
        controller = await open_post(store, args.post_id)
        created = await controller.submit_comment(" ".join(args.body))
        if created is None:
            controller.message = controller.comments_error or "Nothing to post"
        return report_interaction(controller, created is not None, store)

    if args.command == "saved":
        saved = SavedSearchStore(db)
        if args.saved_command == "add":
            saved.add_or_update(" ".join(args.tags), Rating(args.rating), SortMode(args.sort))
        elif args.saved_command == "pin":
            saved.toggle_pin(args.search_id)
        elif args.saved_command == "remove":
            saved.remove(args.search_id)
        elif args.saved_command == "run":
            match = next((s for s in saved.list() if s.id == args.search_id), None)
            if match is None:
                print(f"No saved search {args.search_id}", file=sys.stderr)
                return 1
            saved.touch(match.id)
            query = build_query(match.query, match.rating, match.sort or SortMode.RECENT)
            print_posts(await deps.search_posts.execute(query, page=args.page, limit=args.limit))
            return 0

        for item in saved.list():
            pin = "*" if item.pinned else " "
            sort = item.sort.value if item.sort else SortMode.RECENT.value
            print(f"{pin} {item.id}\t{item.query}\t{item.rating.value}\t{sort}")
        return 0

    if args.command == "login":
        store.update_credentials(args.username, args.api_key)
        profile = await store.refresh_profile()
        if profile is None:
            print(store.authentication_error or "Credentials are incomplete")
            return 1
        print(f"Logged in as {profile.name} ({profile.level or 'member'})")
        return 0

    if args.command == "logout":
        store.clear_credentials()
        print("Credentials removed")
        return 0

    if args.command == "whoami":
        profile = await store.refresh_profile()
        if profile is None:
            print(store.authentication_error or "Not logged in")
            return 1
        print(f"{profile.name} (id {profile.id}, {profile.level or 'member'})")
        return 0

    if args.command == "cache":
        disk_cache = ImageDiskCache(CACHE_DIR, db)
        if args.cache_command == "limit":
            disk_cache.update_limit(args.megabytes)
        elif args.cache_command == "clear":
            disk_cache.clear()
        usage = disk_cache.current_usage_bytes() / BYTES_PER_MEGABYTE
        print(f"{usage:.1f} MB used of {disk_cache.limit_in_megabytes()} MB")
        return 0

    if args.command == "fetch-image":
        post = await deps.fetch_post.execute(args.post_id)
        loader = make_image_loader(db, cache_dir=CACHE_DIR, decoder=make_decoder(args.decoder))
        image = await loader.load_candidates(post.best_image_candidates)
        await asyncio.to_thread(image.save, args.output)
        print(f"Saved {image.width}x{image.height} image to {args.output}")
        return 0

    return 2


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    db = Database()
    try:
        store = DependenciesStore(KeyringCredentialsStore())
        return asyncio.run(run(args, db, store))
    except DanbooruError as e:
        print(describe_error(e), file=sys.stderr)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
