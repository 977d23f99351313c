import av
import pytest

from thumbgrab.errors import CodecOpenError, NoVideoStreamError, OpenFailureError
from thumbgrab.probe import open_media
from thumbgrab.quality import QualityTier, profile_for

from conftest import FakeContainer, FakeStream, make_media


def test_missing_file_is_open_failure(tmp_path):
    with pytest.raises(OpenFailureError):
        open_media(tmp_path / "nope.mp4", profile_for(QualityTier.NORMAL))


def test_garbage_file_is_open_failure(tmp_path):
    p = tmp_path / "junk.mp4"
    p.write_bytes(b"\x00not a video at all" * 10)
    with pytest.raises(OpenFailureError):
        open_media(p, profile_for(QualityTier.FAST))


def test_audio_only_container_closed_on_no_video(monkeypatch):
    container = FakeContainer([FakeStream(type="audio", codec="aac")])
    seen = {}

    def fake_open(src, mode="r", **kw):
        seen.update(kw, src=src)
        return container

    monkeypatch.setattr(av, "open", fake_open)
    with pytest.raises(NoVideoStreamError):
        open_media("song.m4a", profile_for(QualityTier.HIGH_QUALITY))
    assert container.close_calls == 1
    assert seen["container_options"]["probesize"] == "10000000"
    assert "hwaccel" not in seen


def test_first_video_stream_is_picked(monkeypatch):
    video = FakeStream(type="video", index=2, codec="vp9", width=1280, height=720)
    container = FakeContainer([FakeStream(type="audio", index=0), FakeStream(type="data", index=1), video])
    accel = object()
    seen = {}

    def fake_open(src, mode="r", **kw):
        seen.update(kw)
        return container

    monkeypatch.setattr(av, "open", fake_open)
    with open_media("clip.webm", profile_for(QualityTier.NORMAL), accel) as media:
        d = media.descriptor
        assert (d.index, d.codec_name, d.width, d.height) == (2, "vp9", 1280, 720)
        assert seen["hwaccel"] is accel
    assert container.close_calls == 1


def test_open_decoder_applies_profile():
    media = make_media(codec="h264")
    media.open_decoder(profile_for(QualityTier.FAST))
    dec = media.decoder
    assert media.decoder_open
    assert (dec.thread_type, dec.thread_count) == ("SLICE", 2)
    assert dec.options["skip_loop_filter"] == "all"


def test_open_decoder_wraps_ffmpeg_errors():
    media = make_media()
    media.decoder.open_error = av.error.FFmpegError(-22, "Invalid argument")
    with pytest.raises(CodecOpenError):
        media.open_decoder(profile_for(QualityTier.NORMAL))
    assert not media.decoder_open


def test_close_is_idempotent():
    media = make_media()
    media.close()
    media.close()
    assert media.closed
    assert media.container.close_calls == 1
