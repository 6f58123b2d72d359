"""Manifest 파서 (DASH MPD / HLS playlist / HLS master) 테스트."""

from __future__ import annotations

from pathlib import Path

import pytest
from hypothesis import given, settings, strategies as st

from apps.worker.rendition_worker.video.manifest import (
    STREAM_AUDIO,
    STREAM_SUBTITLE,
    STREAM_VIDEO,
    load_hls_playlist,
    parse_dash_manifest,
    parse_hls_master,
    parse_hls_playlist,
)
from src.domain.rendition.errors import ManifestParseError

TWO_ADAPTATION_SETS = """<?xml version="1.0" encoding="utf-8"?>
<MPD xmlns="urn:mpeg:dash:schema:mpd:2011" type="static">
  <Period id="0" start="PT0.0S">
    <AdaptationSet id="0" contentType="video">
      <SegmentURL media="seg.mp4"/>
    </AdaptationSet>
    <AdaptationSet id="1" contentType="audio">
      <SegmentURL media="seg.mp4"/>
    </AdaptationSet>
  </Period>
</MPD>
"""

SEGMENT_LIST_MPD = """<MPD>
  <Period>
    <AdaptationSet id="0" contentType="video">
      <Representation id="0" bandwidth="1500000" width="1280" height="720">
        <SegmentList timescale="1000000" duration="8000000">
          <Initialization sourceURL="v1_init_0.m4s" />
          <SegmentURL media="v1_chunk_0_00001.m4s" />
          <SegmentURL media="v1_chunk_0_00002.m4s" />
        </SegmentList>
      </Representation>
    </AdaptationSet>
    <AdaptationSet id="1" contentType="audio">
      <Representation id="1" bandwidth="128000">
        <SegmentList timescale="1000000" duration="8000000">
          <Initialization sourceURL="v1_init_1.m4s"/>
          <SegmentURL media="v1_chunk_1_00001.m4s"/>
        </SegmentList>
      </Representation>
    </AdaptationSet>
  </Period>
</MPD>
"""

MEDIA_PLAYLIST = """#EXTM3U
#EXT-X-VERSION:3
#EXT-X-TARGETDURATION:6
#EXT-X-MEDIA-SEQUENCE:0
#EXT-X-PLAYLIST-TYPE:VOD
#EXTINF:4,
v1_0_720p_0000.ts
#EXTINF:4,
v1_0_720p_0001.ts
#EXT-X-ENDLIST
"""

MASTER_PLAYLIST = """#EXTM3U
#EXT-X-VERSION:3
#EXT-X-MEDIA:TYPE=SUBTITLES,GROUP-ID="subs",NAME="English",DEFAULT=YES,AUTOSELECT=YES,LANGUAGE="en",URI="../subtitles/v1_subtitles_en.m3u8"
#EXT-X-STREAM-INF:BANDWIDTH=1628000,RESOLUTION=1280x720,CODECS="avc1.64001f,mp4a.40.2",SUBTITLES="subs"
v1_0_720p.m3u8
#EXT-X-MEDIA:TYPE=AUDIO,GROUP-ID="group_aud",NAME="audio_0",LANGUAGE="ko",URI="v1_1_720p.m3u8"
"""


class TestDashManifest:
    """DASH MPD 세그먼트 / stream index 추출."""

    def test_two_adaptation_sets_give_stream_ids_zero_and_one(self) -> None:
        mpd = parse_dash_manifest(TWO_ADAPTATION_SETS)

        assert [(s.stream_id, s.file_name, s.is_init) for s in mpd.segments] == [
            (0, "seg.mp4", False),
            (1, "seg.mp4", False),
        ]

    def test_initialization_lines_are_init_segments(self) -> None:
        mpd = parse_dash_manifest(SEGMENT_LIST_MPD)

        assert [(s.stream_id, s.file_name, s.is_init) for s in mpd.segments] == [
            (0, "v1_init_0.m4s", True),
            (0, "v1_chunk_0_00001.m4s", False),
            (0, "v1_chunk_0_00002.m4s", False),
            (1, "v1_init_1.m4s", True),
            (1, "v1_chunk_1_00001.m4s", False),
        ]

    def test_non_segment_lines_become_metadata(self) -> None:
        mpd = parse_dash_manifest(SEGMENT_LIST_MPD)

        assert "<AdaptationSet id=\"0\" contentType=\"video\">" in mpd.metadata
        assert "SegmentURL" not in mpd.metadata
        assert "Initialization" not in mpd.metadata
        # 쉼표는 제거된다
        assert "," not in mpd.metadata

    def test_empty_manifest(self) -> None:
        mpd = parse_dash_manifest("")
        assert mpd.segments == []
        assert mpd.metadata == ""

    @given(counts=st.lists(st.integers(min_value=0, max_value=5), min_size=1, max_size=6))
    @settings(max_examples=50)
    def test_stream_index_follows_adaptation_sets(self, counts: list) -> None:
        """각 AdaptationSet 의 세그먼트는 해당 set 의 0-based index 를 갖는다."""
        lines = ["<MPD>"]
        for n in counts:
            lines.append("<AdaptationSet>")
            lines.extend(f'<SegmentURL media="s{i}.m4s"/>' for i in range(n))
            lines.append("</AdaptationSet>")
        lines.append("</MPD>")

        mpd = parse_dash_manifest("\n".join(lines))

        expected = [idx for idx, n in enumerate(counts) for _ in range(n)]
        assert [s.stream_id for s in mpd.segments] == expected


class TestHlsPlaylist:
    """HLS media / subtitle playlist."""

    def test_target_duration_and_segments(self) -> None:
        playlist = parse_hls_playlist(MEDIA_PLAYLIST)

        assert playlist.target_duration == 6
        assert [(s.file_name, s.duration) for s in playlist.segments] == [
            ("v1_0_720p_0000.ts", 4.0),
            ("v1_0_720p_0001.ts", 4.0),
        ]

    def test_unmatched_extinf_does_not_leak(self) -> None:
        text = "#EXTM3U\n#EXTINF:3.5,\n#EXT-X-DISCONTINUITY\nfirst.ts\nsecond.ts\n"
        playlist = parse_hls_playlist(text)

        assert [(s.file_name, s.duration) for s in playlist.segments] == [("first.ts", 3.5)]

    def test_vtt_segments(self) -> None:
        text = "#EXTM3U\n#EXT-X-TARGETDURATION:8\n#EXTINF:8.000000,\nv1_subtitles_en_0000.vtt\n"
        playlist = parse_hls_playlist(text)

        assert playlist.target_duration == 8
        assert playlist.segments[0].file_name == "v1_subtitles_en_0000.vtt"

    def test_invalid_duration_raises(self) -> None:
        with pytest.raises(ManifestParseError):
            parse_hls_playlist("#EXTINF:abc,\nx.ts\n")

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(ManifestParseError):
            load_hls_playlist(tmp_path / "missing.m3u8")

    @given(durations=st.lists(st.integers(min_value=1, max_value=20), min_size=0, max_size=30))
    @settings(max_examples=50)
    def test_segments_in_file_order(self, durations: list) -> None:
        body = "".join(f"#EXTINF:{d},\nseg_{i:04d}.ts\n" for i, d in enumerate(durations))
        playlist = parse_hls_playlist("#EXTM3U\n#EXT-X-TARGETDURATION:20\n" + body)

        assert [s.file_name for s in playlist.segments] == [f"seg_{i:04d}.ts" for i in range(len(durations))]
        assert [s.duration for s in playlist.segments] == [float(d) for d in durations]


class TestHlsMaster:
    """master playlist variant 탐색."""

    def test_variants(self) -> None:
        variants = parse_hls_master(MASTER_PLAYLIST, "v1")

        assert [(v.type, v.path, v.id) for v in variants] == [
            (STREAM_SUBTITLE, "v1_subtitles_en.m3u8", None),
            (STREAM_VIDEO, "v1_0_720p.m3u8", 0),
            (STREAM_AUDIO, "v1_1_720p.m3u8", 1),
        ]

    def test_video_variant_attributes(self) -> None:
        video = [v for v in parse_hls_master(MASTER_PLAYLIST, "v1") if v.type == STREAM_VIDEO][0]

        assert video.bandwidth == "1628000"
        assert video.resolution == "1280x720"
        assert video.codecs == "avc1.64001f,mp4a.40.2"
        assert video.to_dict() == {
            "id": 0,
            "path": "v1_0_720p.m3u8",
            "type": "video",
            "resolution": "1280x720",
            "bandwidth": "1628000",
            "codecs": "avc1.64001f,mp4a.40.2",
        }

    def test_audio_variant_carries_language(self) -> None:
        audio = [v for v in parse_hls_master(MASTER_PLAYLIST, "v1") if v.type == STREAM_AUDIO][0]

        assert audio.language == "ko"
        assert "resolution" not in audio.to_dict()

    def test_lines_without_video_id_are_skipped(self) -> None:
        text = "#EXTM3U\n#EXT-X-STREAM-INF:BANDWIDTH=1\nother_0_720p.m3u8\n"
        assert parse_hls_master(text, "v1") == []
