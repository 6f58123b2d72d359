# PATH: apps/worker/rendition_worker/video/transcoder.py

from __future__ import annotations

import logging
import re
import subprocess
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from apps.worker.rendition_worker.utils import ensure_dir, trim_tail
from apps.worker.rendition_worker.video.probe import probe_media
from src.domain.rendition.entities import OutputFormat, Profile, Subtitle
from src.domain.rendition.errors import ProbeError, TranscodeError

logger = logging.getLogger(__name__)

# ffmpeg -progress pipe:1 출력 (out_time_ms=마이크로초)
_RE_OUT_TIME_MS = re.compile(r"out_time_ms=(\d+)")

# 출력 모드와 무관한 고정 파라미터
# - 원본 data / subtitle 스트림 제외
# - 짝수 높이 강제 + SAR 1:1
# - B-frame 3, 최소 2초마다 keyframe (세그먼트 경계 안정화)
FIXED_PARAMS = [
    "-dn",
    "-sn",
    "-vf", "scale=iw:-2:force_original_aspect_ratio=increase,setsar=1:1",
    "-bf", "3",
    "-force_key_frames", "expr:gte(t,n_forced*2)",
]

MASTER_PLAYLIST = "master.m3u8"
SUBTITLE_GROUP = "subs"
# master 기준 자막 playlist 위치 (rendition 경로와 subtitles/ 는 형제 디렉토리)
SUBTITLE_URI_PREFIX = "../subtitles/"

ProgressCallback = Callable[[int], None]


@dataclass(frozen=True)
class SubtitleTrack:
    """인코딩에 포함할 WebVTT 자막 (이름 / 언어 코드 / 로컬 경로)"""
    subtitle: Subtitle
    path: Path

    @property
    def name(self) -> str:
        return self.subtitle.name

    @property
    def code(self) -> str:
        return self.subtitle.code


# --------------------------------------------------
# Output names
# --------------------------------------------------

def hls_variant_playlist(video_id: str, profile: Profile) -> str:
    # <videoId>_<n>_<height>p.m3u8 (n = var_stream_map index)
    return f"{video_id}_%v_{profile.height}p.m3u8"


def hls_segment_pattern(video_id: str, profile: Profile) -> str:
    return f"{video_id}_%v_{profile.height}p_%04d.ts"


def dash_manifest_name(video_id: str) -> str:
    return f"{video_id}.mpd"


def subtitle_playlist_name(video_id: str, code: str) -> str:
    return f"{video_id}_subtitles_{code}.m3u8"


def subtitle_segment_pattern(video_id: str, code: str) -> str:
    return f"{video_id}_subtitles_{code}_%04d.vtt"


# --------------------------------------------------
# Command builders
# --------------------------------------------------

def _representation_params(profile: Profile) -> List[str]:
    return [
        "-s:v", f"{int(profile.width)}x{int(profile.height)}",
        "-b:v", f"{int(profile.video_bit_rate)}k",
        "-b:a", f"{int(profile.audio_bit_rate)}k",
    ]


def _base_command(*, ffmpeg_bin: str, input_path: str, threads: int, with_audio: bool) -> List[str]:
    cmd: List[str] = [
        ffmpeg_bin,
        "-y",
        "-nostats",
        "-i", input_path,
        "-map", "0:v:0",
    ]
    if with_audio:
        cmd += ["-map", "0:a:0"]
    cmd += [
        "-c:v", "libx264",
        "-pix_fmt", "yuv420p",
    ]
    if with_audio:
        cmd += ["-c:a", "aac", "-ac", "2"]
    cmd += ["-threads", str(threads)]
    return cmd


def build_hls_command(
    *,
    input_path: str,
    video_id: str,
    profile: Profile,
    ffmpeg_bin: str,
    segment_seconds: int,
    threads: int,
    with_audio: bool,
) -> List[str]:
    cmd = _base_command(ffmpeg_bin=ffmpeg_bin, input_path=input_path, threads=threads, with_audio=with_audio)
    cmd += FIXED_PARAMS
    cmd += _representation_params(profile)
    cmd += [
        "-progress", "pipe:1",
        "-f", "hls",
        "-hls_time", str(segment_seconds),
        "-hls_playlist_type", "vod",
        "-hls_list_size", "0",
        "-hls_segment_filename", hls_segment_pattern(video_id, profile),
        "-master_pl_name", MASTER_PLAYLIST,
        "-var_stream_map", "v:0,a:0" if with_audio else "v:0",
        hls_variant_playlist(video_id, profile),
    ]
    return cmd


def build_dash_command(
    *,
    input_path: str,
    video_id: str,
    profile: Profile,
    ffmpeg_bin: str,
    segment_seconds: int,
    threads: int,
    with_audio: bool,
) -> List[str]:
    cmd = _base_command(ffmpeg_bin=ffmpeg_bin, input_path=input_path, threads=threads, with_audio=with_audio)
    cmd += FIXED_PARAMS
    cmd += _representation_params(profile)
    cmd += [
        "-progress", "pipe:1",
        "-f", "dash",
        "-seg_duration", str(segment_seconds),
        # SegmentList (Initialization / SegmentURL) 형식으로 출력
        "-use_template", "0",
        "-use_timeline", "0",
        "-init_seg_name", f"{video_id}_init_$RepresentationID$.m4s",
        "-media_seg_name", f"{video_id}_chunk_$RepresentationID$_$Number%05d$.m4s",
        "-adaptation_sets", "id=0,streams=v id=1,streams=a" if with_audio else "id=0,streams=v",
        dash_manifest_name(video_id),
    ]
    return cmd


def build_subtitle_segment_command(
    *,
    subtitle: SubtitleTrack,
    video_id: str,
    ffmpeg_bin: str,
    segment_seconds: int,
) -> List[str]:
    return [
        ffmpeg_bin,
        "-y",
        "-i", str(subtitle.path),
        "-c:s", "webvtt",
        "-f", "segment",
        "-segment_time", str(segment_seconds),
        "-segment_list", subtitle_playlist_name(video_id, subtitle.code),
        "-segment_list_type", "m3u8",
        "-segment_format", "webvtt",
        subtitle_segment_pattern(video_id, subtitle.code),
    ]


# --------------------------------------------------
# Runners
# --------------------------------------------------

def run_ffmpeg(
    cmd: Sequence[str],
    *,
    timeout: int,
    cwd: Optional[Path] = None,
    error: type = TranscodeError,
    what: str = "ffmpeg",
) -> None:
    """짧은 ffmpeg 실행 (자막 변환 / 프레임 추출 / sprite). 실패 시 error(...)"""
    try:
        p = subprocess.run(
            list(cmd),
            cwd=str(cwd) if cwd else None,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        raise error(f"{what} timeout ({timeout}s)") from e
    except OSError as e:
        raise error(f"{what} not runnable: {e}") from e

    if p.returncode != 0:
        raise error(f"{what} failed: {trim_tail(p.stderr)}")


def has_audio_stream(*, input_path: str, ffprobe_bin: str, timeout: int) -> bool:
    try:
        info = probe_media(input_path, ffprobe_bin=ffprobe_bin, timeout=timeout)
    except ProbeError:
        return False
    return any(s.get("codec_type") == "audio" for s in info.get("streams") or [])


def _run_with_progress(
    *,
    cmd: List[str],
    cwd: Path,
    video_id: str,
    duration_ms: Optional[int],
    timeout: int,
    progress_callback: Optional[ProgressCallback],
) -> None:
    """
    -progress pipe:1 를 호출 스레드에서 읽으며 callback 을 동기 호출.
    stderr 는 별도 스레드에서 tail 만 보관, 타임아웃은 Timer 가 kill.
    """
    total_ms = float(duration_ms or 0)
    last_pct = -1
    stderr_lines: List[str] = []
    timed_out = threading.Event()

    logger.info("[TRANSCODER] Starting ffmpeg for video_id=%s cmd=%s", video_id, " ".join(cmd[:6]) + "...")
    try:
        p = subprocess.Popen(
            cmd,
            cwd=str(cwd.resolve()),
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            bufsize=1,
        )
    except OSError as e:
        raise TranscodeError(f"ffmpeg not runnable video_id={video_id}: {e}") from e

    def read_stderr() -> None:
        for line in p.stderr or []:
            stderr_lines.append(line)
            if len(stderr_lines) > 50:
                stderr_lines.pop(0)

    def kill() -> None:
        timed_out.set()
        p.kill()

    stderr_reader = threading.Thread(target=read_stderr, daemon=True)
    stderr_reader.start()
    watchdog = threading.Timer(timeout, kill)
    watchdog.daemon = True
    watchdog.start()

    started = time.monotonic()
    try:
        for line in p.stdout or []:
            m = _RE_OUT_TIME_MS.search(line)
            if not m or total_ms <= 0:
                continue
            current_ms = int(m.group(1)) / 1000.0
            pct = min(100, max(0, int(current_ms / total_ms * 100)))
            if pct > last_pct:
                last_pct = pct
                if progress_callback is not None:
                    progress_callback(pct)
        p.wait()
    except BaseException:
        p.kill()
        p.wait()
        raise
    finally:
        watchdog.cancel()
        stderr_reader.join(timeout=2.0)

    if timed_out.is_set():
        raise TranscodeError(f"ffmpeg timeout video_id={video_id} ({timeout}s) exceeded")
    if p.returncode != 0:
        raise TranscodeError(f"ffmpeg failed video_id={video_id} stderr={trim_tail(''.join(stderr_lines))}")

    logger.info(
        "[TRANSCODER] ffmpeg finished video_id=%s elapsed=%.1fs last_progress=%s",
        video_id, time.monotonic() - started, last_pct,
    )


def attach_subtitles_to_master(master: Path, video_id: str, subtitles: Sequence[SubtitleTrack]) -> None:
    """
    master playlist 에 자막 트랙 추가 (기본 트랙 지정).
    - #EXT-X-MEDIA:TYPE=SUBTITLES 라인 삽입
    - 각 #EXT-X-STREAM-INF 에 SUBTITLES 그룹 연결
    """
    if not subtitles:
        return

    media = []
    for i, sub in enumerate(subtitles):
        default = "YES" if i == 0 else "NO"
        media.append(
            f'#EXT-X-MEDIA:TYPE=SUBTITLES,GROUP-ID="{SUBTITLE_GROUP}",NAME="{sub.name}",'
            f'DEFAULT={default},AUTOSELECT=YES,LANGUAGE="{sub.code}",'
            f'URI="{SUBTITLE_URI_PREFIX}{subtitle_playlist_name(video_id, sub.code)}"'
        )

    out: List[str] = []
    inserted = False
    for line in master.read_text(encoding="utf-8").splitlines():
        if line.startswith("#EXT-X-STREAM-INF"):
            if not inserted:
                out.extend(media)
                inserted = True
            if "SUBTITLES=" not in line:
                line = f'{line},SUBTITLES="{SUBTITLE_GROUP}"'
        out.append(line)
    if not inserted:
        out.extend(media)
    master.write_text("\n".join(out) + "\n", encoding="utf-8")


def transcode(
    *,
    output: OutputFormat,
    video_id: str,
    input_path: str,
    out_dir: Path,
    profile: Profile,
    ffmpeg_bin: str,
    ffprobe_bin: str,
    segment_seconds: int,
    threads: int,
    timeout: int,
    probe_timeout: int,
    duration_ms: Optional[int] = None,
    subtitles: Sequence[SubtitleTrack] = (),
    progress_callback: Optional[ProgressCallback] = None,
) -> Path:
    """
    HLS / DASH 인코딩. 생성된 manifest 경로 반환.
    - HLS: master.m3u8 + <videoId>_0_<h>p.m3u8 + .ts, 자막은 <videoId>_subtitles_<code>.m3u8 + .vtt
    - DASH: <videoId>.mpd + init / chunk .m4s
    progress_callback 은 0~100 정수, 값이 증가할 때만 호출.
    """
    ensure_dir(out_dir)
    with_audio = has_audio_stream(input_path=input_path, ffprobe_bin=ffprobe_bin, timeout=probe_timeout)

    builder = build_hls_command if OutputFormat(output) == OutputFormat.HLS else build_dash_command
    cmd = builder(
        input_path=input_path,
        video_id=video_id,
        profile=profile,
        ffmpeg_bin=ffmpeg_bin,
        segment_seconds=segment_seconds,
        threads=threads,
        with_audio=with_audio,
    )

    _run_with_progress(
        cmd=cmd,
        cwd=out_dir,
        video_id=video_id,
        duration_ms=duration_ms,
        timeout=timeout,
        progress_callback=progress_callback,
    )

    if OutputFormat(output) == OutputFormat.DASH:
        manifest = out_dir / dash_manifest_name(video_id)
        if not manifest.exists():
            raise TranscodeError(f"{manifest.name} not created")
        return manifest

    master = out_dir / MASTER_PLAYLIST
    if not master.exists():
        raise TranscodeError(f"{MASTER_PLAYLIST} not created")

    for sub in subtitles:
        logger.info("[TRANSCODER] Segmenting subtitle video_id=%s code=%s", video_id, sub.code)
        run_ffmpeg(
            build_subtitle_segment_command(
                subtitle=sub,
                video_id=video_id,
                ffmpeg_bin=ffmpeg_bin,
                segment_seconds=segment_seconds,
            ),
            timeout=probe_timeout,
            cwd=out_dir,
            what=f"subtitle segment ({sub.code})",
        )
    attach_subtitles_to_master(master, video_id, subtitles)
    return master
