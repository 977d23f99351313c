from fractions import Fraction

import av
import pytest

from thumbgrab.decode import decode_and_match, frame_time
from thumbgrab.errors import DecodeError, NoFrameFoundError
from thumbgrab.matcher import FrameMatcher
from thumbgrab.quality import QualityTier, profile_for

from conftest import FakeFrame, FakePacket, make_media


def _matcher(target, tier=QualityTier.NORMAL):
    return FrameMatcher.for_profile(target, profile_for(tier))


class TestFrameTime:
    def test_uses_pts_and_time_base(self):
        assert frame_time(FakeFrame(pts=1500), Fraction(1, 1000)) == 1.5

    def test_falls_back_to_dts(self):
        assert frame_time(FakeFrame(pts=None, dts=250), Fraction(1, 100)) == 2.5

    def test_pyav_frame_without_pts_uses_dts(self):
        f = av.VideoFrame(16, 16, "yuv420p")
        f.pts = None
        f.dts = 30
        assert frame_time(f, Fraction(1, 10)) == 3.0

    def test_no_timestamp_is_zero(self):
        assert frame_time(FakeFrame(pts=None), Fraction(1, 1000)) == 0.0

    def test_no_time_base_is_zero(self):
        assert frame_time(FakeFrame(pts=42), None) == 0.0


def test_target_four_selects_five_seconds():
    media = make_media([0.0, 1.0, 2.0, 5.0, 9.0])
    res = decode_and_match(media, _matcher(4.0), max_frames=300)
    assert res.frame_time == 5.0
    assert res.decoded == 4
    assert res.skipped == 3


def test_zero_target_accepts_first_decodable_frame():
    media = make_media([0.04, 0.08])
    res = decode_and_match(media, _matcher(0.0), max_frames=300)
    assert res.frame_time == pytest.approx(0.04)
    assert res.decoded == 1


def test_all_frames_yielded_by_one_packet_are_drained():
    media = make_media([])
    media.container.packets = [
        FakePacket([]),
        FakePacket([FakeFrame(0), FakeFrame(1000), FakeFrame(3000)]),
    ]
    res = decode_and_match(media, _matcher(3.0), max_frames=300)
    assert res.frame_time == 3.0
    assert res.decoded == 3


def test_frame_limit_bounds_untimed_stream():
    media = make_media([None] * 1000)
    with pytest.raises(NoFrameFoundError, match="within 300"):
        decode_and_match(media, _matcher(10.0), max_frames=300)
    assert media.container.demuxed == 300


def test_exhausted_stream_raises_no_frame_found():
    media = make_media([0.0, 1.0])
    with pytest.raises(NoFrameFoundError, match="stream ended"):
        decode_and_match(media, _matcher(30.0), max_frames=300)


def test_corrupt_packet_is_dropped():
    media = make_media([])
    bad = av.error.InvalidDataError(-1094995529, "Invalid data found when processing input")
    media.container.packets = [FakePacket(error=bad), FakePacket([FakeFrame(0)])]
    res = decode_and_match(media, _matcher(0.0), max_frames=300)
    assert res.frame_time == 0.0


def test_other_decoder_errors_propagate_as_decode_error():
    media = make_media([])
    media.container.packets = [FakePacket(error=av.error.FFmpegError(-5, "I/O error"))]
    with pytest.raises(DecodeError):
        decode_and_match(media, _matcher(0.0), max_frames=300)
