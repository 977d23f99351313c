import threading
from unittest.mock import MagicMock

from thumbgrab.codec_cache import CodecCache, find_decoder


def test_repeated_resolves_hit_cache():
    lookup = MagicMock(return_value="h264-decoder")
    cache = CodecCache(lookup)
    for _ in range(10):
        assert cache.resolve("h264") == "h264-decoder"
    lookup.assert_called_once_with("h264")
    assert cache.stats()["h264"]["hits"] == 9


def test_not_found_is_not_cached():
    lookup = MagicMock(return_value=None)
    cache = CodecCache(lookup)
    assert cache.resolve("nope") is None
    assert cache.resolve("nope") is None
    assert lookup.call_count == 2
    assert "nope" not in cache


def test_last_used_advances_on_hit():
    cache = CodecCache(lambda name: object())
    cache.resolve("vp9")
    first = cache.stats()["vp9"]["last_used"]
    cache.resolve("vp9")
    assert cache.stats()["vp9"]["last_used"] >= first


def test_clear_forces_new_lookup_and_is_safe_when_empty():
    lookup = MagicMock(side_effect=lambda n: n.upper())
    cache = CodecCache(lookup)
    cache.clear()
    cache.resolve("hevc")
    cache.clear()
    cache.clear()
    assert len(cache) == 0
    cache.resolve("hevc")
    assert lookup.call_count == 2


def test_concurrent_first_use_looks_up_once():
    lookup = MagicMock(return_value="dec")
    cache = CodecCache(lookup)
    barrier = threading.Barrier(8)

    def worker():
        barrier.wait()
        cache.resolve("av1")

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert lookup.call_count == 1


def test_find_decoder_against_ffmpeg_registry():
    assert find_decoder("mpeg4") is not None
    assert find_decoder("definitely-not-a-codec") is None
    assert find_decoder("") is None
