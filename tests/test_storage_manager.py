"""
Testes do storage local.
"""
import os
import time

import pytest


@pytest.mark.asyncio
async def test_save_object_and_public_url(storage):
    key = await storage.save_object("videos", "owner-1", "a.webm", b"video")

    assert key == "videos/owner-1/a.webm"
    url = storage.public_url(key)
    assert url == "http://testserver/media/videos/owner-1/a.webm"
    assert storage.key_from_url(url) == key
    assert storage.key_from_url("https://elsewhere/a.webm") is None

    assert await storage.delete_object(key) is True
    assert await storage.delete_object(key) is False


def test_unknown_bucket_rejected(storage):
    with pytest.raises(ValueError):
        storage.get_bucket_path("avatars", "owner-1")


@pytest.mark.asyncio
async def test_temp_file_removed_after_block(storage):
    async with storage.temp_file(b"abc", suffix=".webm") as path:
        assert path.read_bytes() == b"abc"
        assert path.suffix == ".webm"

    assert not path.exists()


@pytest.mark.asyncio
async def test_cleanup_removes_only_old_temp_files(storage):
    old = await storage.write_temp(b"old", ".webm")
    recent = await storage.write_temp(b"recent", ".webm")
    two_days_ago = time.time() - 48 * 3600
    os.utime(old, (two_days_ago, two_days_ago))

    removed = await storage.cleanup_temp(max_age_hours=24)

    assert removed == 1
    assert not old.exists()
    assert recent.exists()


@pytest.mark.asyncio
async def test_storage_stats(storage):
    await storage.save_object("thumbnails", "owner-1", "t.jpg", b"x" * 10)

    stats = storage.get_storage_stats()
    assert stats["thumbnails_bytes"] == 10
    assert stats["total_bytes"] >= 10
