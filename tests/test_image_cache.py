import os
from danbooru_explorer.config.constants import BYTES_PER_MEGABYTE, DEFAULT_DISK_CACHE_LIMIT_BYTES
from danbooru_explorer.services.image_cache import ImageDiskCache, ImageMemoryCache

BLOB = b"x" * 600_000


def test_memory_cache_evicts_least_recently_used():
    cache = ImageMemoryCache(max_entries=2)
    cache.set("a", 1)
    cache.set("b", 2)
    assert cache.get("a") == 1

    cache.set("c", 3)

    assert cache.get("b") is None
    assert cache.get("a") == 1
    assert cache.get("c") == 3
    assert len(cache) == 2

    cache.clear()
    assert len(cache) == 0


def test_disk_cache_store_and_read(tmp_path, db):
    cache = ImageDiskCache(str(tmp_path / "images"), db)

    assert cache.data_for("https://example.com/a.jpg") is None
    cache.store("https://example.com/a.jpg", b"abc")

    assert cache.data_for("https://example.com/a.jpg") == b"abc"
    assert cache.current_usage_bytes() == 3
    filename = ImageDiskCache.filename_for("https://example.com/a.jpg")
    assert os.path.exists(tmp_path / "images" / filename)


def test_disk_cache_default_limit(tmp_path, db):
    cache = ImageDiskCache(str(tmp_path / "images"), db)
    assert cache.limit_in_megabytes() == DEFAULT_DISK_CACHE_LIMIT_BYTES // BYTES_PER_MEGABYTE


def test_disk_cache_stays_under_limit(tmp_path, db):
    cache = ImageDiskCache(str(tmp_path / "images"), db)
    cache.update_limit(1)

    for i in range(5):
        cache.store(f"https://example.com/{i}.jpg", BLOB)
        assert cache.current_usage_bytes() <= BYTES_PER_MEGABYTE

    assert cache.data_for("https://example.com/4.jpg") == BLOB
    assert cache.data_for("https://example.com/0.jpg") is None


def test_disk_cache_evicts_least_recently_read(tmp_path, db):
    cache = ImageDiskCache(str(tmp_path / "images"), db)
    cache.update_limit(2)
    cache.store("a", BLOB)
    cache.store("b", BLOB)
    cache.store("c", BLOB)

    assert cache.data_for("a") == BLOB
    cache.store("d", BLOB)

    assert cache.data_for("b") is None
    assert cache.data_for("a") == BLOB
    assert cache.data_for("c") == BLOB
    assert cache.data_for("d") == BLOB


def test_lowering_limit_evicts(tmp_path, db):
    cache = ImageDiskCache(str(tmp_path / "images"), db)
    cache.update_limit(4)
    for name in "abcd":
        cache.store(name, BLOB)
    assert cache.current_usage_bytes() == 4 * len(BLOB)

    cache.update_limit(1)

    assert cache.current_usage_bytes() <= BYTES_PER_MEGABYTE
    assert cache.data_for("d") == BLOB


def test_limit_is_clamped_and_persisted(tmp_path, db):
    cache = ImageDiskCache(str(tmp_path / "images"), db)
    cache.update_limit(0)
    assert cache.limit_in_megabytes() == 1

    cache.update_limit(64)
    reopened = ImageDiskCache(str(tmp_path / "images"), db)
    assert reopened.limit_in_megabytes() == 64


def test_clear_and_remove(tmp_path, db):
    cache = ImageDiskCache(str(tmp_path / "images"), db)
    cache.store("a", b"1234")
    cache.store("b", b"5678")

    cache.remove("a")
    assert cache.data_for("a") is None
    assert cache.current_usage_bytes() == 4

    cache.clear()
    assert cache.current_usage_bytes() == 0
    assert cache.data_for("b") is None
    assert os.listdir(tmp_path / "images") == []


def test_missing_file_is_a_miss(tmp_path, db):
    cache = ImageDiskCache(str(tmp_path / "images"), db)
    cache.store("a", b"1234")
    os.remove(tmp_path / "images" / ImageDiskCache.filename_for("a"))

    assert cache.data_for("a") is None
    assert cache.current_usage_bytes() == 0
