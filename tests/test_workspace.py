"""job workspace 생성/삭제 + 업로드 분류."""

from __future__ import annotations

from pathlib import Path

import pytest

from apps.worker.rendition_worker import utils
from apps.worker.rendition_worker.utils import (
    cache_control_for_object,
    guess_content_type,
    job_workspace,
    remove_workspace,
)
from apps.worker.rendition_worker.video.uploader import is_subtitle_file, upload_outputs


class TestWorkspace:
    """성공 / 예외 / SystemExit 모두 삭제."""

    def test_layout_and_cleanup(self, tmp_path: Path) -> None:
        with job_workspace(str(tmp_path), prefix="v1-") as ws:
            assert ws.in_dir.is_dir() and ws.out_dir.is_dir()
            assert ws.base.name.startswith("v1-")
            (ws.out_dir / "x.ts").write_bytes(b"x")
            base = ws.base

        assert not base.exists()

    @pytest.mark.parametrize("exc", [RuntimeError("boom"), SystemExit(143)])
    def test_removed_on_exception(self, tmp_path: Path, exc: BaseException) -> None:
        seen = {}
        with pytest.raises(type(exc)):
            with job_workspace(str(tmp_path)) as ws:
                seen["base"] = ws.base
                raise exc

        assert not seen["base"].exists()

    def test_unique_directories(self, tmp_path: Path) -> None:
        with job_workspace(str(tmp_path)) as a, job_workspace(str(tmp_path)) as b:
            assert a.base != b.base

    def test_removal_failure_is_reported_not_raised(self, tmp_path: Path, monkeypatch, caplog) -> None:
        def deny(path):
            raise PermissionError("denied")

        monkeypatch.setattr(utils.shutil, "rmtree", deny)

        assert remove_workspace(tmp_path) is False
        assert "Failed removing files" in caplog.text


class TestUploader:
    def test_classification(self) -> None:
        assert is_subtitle_file("v1_subtitles_en.m3u8")
        assert is_subtitle_file("v1_subtitles_en_0000.vtt")
        assert is_subtitle_file("s1.vtt")
        assert not is_subtitle_file("v1_0_720p.m3u8")
        assert not is_subtitle_file("master.m3u8")

    def test_upload_outputs(self, tmp_path: Path, video_device) -> None:
        out = tmp_path / "out"
        out.mkdir()
        for name in ("master.m3u8", "v1_0_720p.m3u8", "v1_0_720p_0000.ts", "v1_subtitles_en.m3u8"):
            (out / name).write_text(name)
        (out / "nested").mkdir()

        calls = []
        rendition_path = video_device.get_path("v1") + "/r/"
        subtitles_path = video_device.get_path("v1") + "/subtitles/"

        count = upload_outputs(
            out_dir=out,
            device=video_device,
            rendition_path=rendition_path,
            subtitles_path=subtitles_path,
            on_first_upload=lambda: calls.append("first"),
        )

        assert count == 4
        assert calls == ["first"]
        assert sorted(p.name for p in Path(rendition_path).iterdir()) == [
            "master.m3u8", "v1_0_720p.m3u8", "v1_0_720p_0000.ts",
        ]
        assert [p.name for p in Path(subtitles_path).iterdir()] == ["v1_subtitles_en.m3u8"]

    def test_empty_output(self, tmp_path: Path, video_device) -> None:
        calls = []
        assert upload_outputs(
            out_dir=tmp_path,
            device=video_device,
            rendition_path="/r/",
            subtitles_path="/s/",
            on_first_upload=lambda: calls.append(1),
        ) == 0
        assert calls == []


class TestContentTypes:
    def test_types(self) -> None:
        assert guess_content_type("a.m3u8") == "application/vnd.apple.mpegurl"
        assert guess_content_type("a.mpd") == "application/dash+xml"
        assert guess_content_type("a.vtt") == "text/vtt"
        assert guess_content_type("a.bin") == "application/octet-stream"

    def test_cache_control(self) -> None:
        assert cache_control_for_object("master.m3u8") == "no-cache"
        assert "immutable" in cache_control_for_object("seg.ts")
