"""
RenditionJobProcessor - job 1건 처리 (파이프라인 컨트롤러)

흐름:
1. bucket / file 조회 → workspace(in/out) 생성
2. 원본 가져오기 (복호화 / 압축 해제) → 메타데이터 probe (최초 1회)
3. action=preview  : 프레임 추출 → 업로드 → Preview upsert
   action=timeline : sprite + cue sheet
   그 외           : Rendition 생성(STARTED) 후
      자막 claim/변환 → 인코딩(progress) → manifest 파싱/세그먼트 저장
      → 자막 세그먼트 / READY → ENDED → 업로드(UPLOADING) → READY
4. workspace 삭제 (성공/실패 무관)

Rendition 생성 전 오류(조회/가져오기/probe)는 그대로 전파 (job 실패).
Rendition 생성 후 오류는 여기서 한 번만 잡아 ERROR 로 기록하고 "failed" 반환.
"""
from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Optional

from apps.worker.rendition_worker.config import Config
from apps.worker.rendition_worker.retrieve import retrieve
from apps.worker.rendition_worker.utils import Workspace, job_workspace
from apps.worker.rendition_worker.video.manifest import (
    STREAM_SUBTITLE,
    load_dash_manifest,
    load_hls_master,
    load_hls_playlist,
)
from apps.worker.rendition_worker.video.preview import generate_preview, publish_preview
from apps.worker.rendition_worker.video.probe import probe_video_metadata
from apps.worker.rendition_worker.video.subtitles import prepare_subtitles, publish_subtitles
from apps.worker.rendition_worker.video.timeline import generate_timeline
from apps.worker.rendition_worker.video.transcoder import transcode
from apps.worker.rendition_worker.video.uploader import upload_outputs
from src.application.ports.cache import ICacheInvalidation
from src.application.ports.realtime import IRealtime
from src.application.ports.rendition_repository import IRenditionRepository
from src.application.ports.storage import IStorageDevice
from src.application.rendition.publisher import RenditionPublisher
from src.domain.rendition.entities import (
    Bucket,
    File,
    OutputFormat,
    Rendition,
    RenditionJob,
    Segment,
)
from src.domain.rendition.errors import TranscodeError
from src.infrastructure.storage.local_adapter import LocalStorageAdapter

logger = logging.getLogger("rendition_worker.processor")


class RenditionJobProcessor:
    """
    Rendition job 처리기

    상태 전이 / 오류 경계 소유. 단계별 작업은 video/* 모듈에 위임.
    """

    def __init__(
        self,
        cfg: Config,
        repo: IRenditionRepository,
        realtime: IRealtime,
        cache: ICacheInvalidation,
        files_device: IStorageDevice,
        video_device: IStorageDevice,
        local_device: Optional[IStorageDevice] = None,
    ) -> None:
        self._cfg = cfg
        self._repo = repo
        self._realtime = realtime
        self._cache = cache
        self._files = files_device
        self._videos = video_device
        self._local = local_device or LocalStorageAdapter("/")

    def run(self, job: RenditionJob) -> str:
        """
        Returns:
            "preview" | "timeline" | "ok" | "failed"
            - "failed": Rendition 에 ERROR 기록 완료 (예외 전파 없음)
        """
        started = time.time()
        video = job.video

        bucket = self._repo.get_bucket(video.bucket_id)
        file = self._repo.get_file(bucket, video.file_id)

        with job_workspace(self._cfg.TEMP_DIR, prefix=f"{video.id}-") as ws:
            input_path = retrieve(
                file=file,
                files_device=self._files,
                local_device=self._local,
                in_dir=ws.in_dir,
            )
            logger.info("[PROCESSOR] Source ready video_id=%s path=%s", video.id, input_path)

            probe_video_metadata(
                video=video,
                input_path=str(input_path),
                repo=self._repo,
                ffprobe_bin=self._cfg.FFPROBE_BIN,
                timeout=self._cfg.FFPROBE_TIMEOUT_SECONDS,
            )

            if job.is_preview:
                self._preview(job, input_path, ws)
                return "preview"

            if job.is_timeline:
                generate_timeline(
                    video=video,
                    input_path=str(input_path),
                    out_dir=ws.out_dir,
                    repo=self._repo,
                    video_device=self._videos,
                    base_url=self._cfg.PREVIEW_BASE_URL,
                    ffmpeg_bin=self._cfg.FFMPEG_BIN,
                    timeout=self._cfg.FFMPEG_TIMEOUT_SECONDS,
                )
                return "timeline"

            result = self._rendition(job, bucket, file, input_path, ws)

        logger.info("[PROCESSOR] Job total time %.2f seconds video_id=%s", time.time() - started, video.id)
        return result

    # --------------------------------------------------
    # preview
    # --------------------------------------------------

    def _preview(self, job: RenditionJob, input_path: Path, ws: Workspace) -> None:
        logger.info("[PREVIEW] Creating preview image from second %s video_id=%s", job.second, job.video.id)
        image = generate_preview(
            video=job.video,
            input_path=str(input_path),
            out_dir=ws.out_dir,
            at_seconds=job.second,
            ffmpeg_bin=self._cfg.FFMPEG_BIN,
            timeout=self._cfg.FFPROBE_TIMEOUT_SECONDS,
        )
        if image is None:
            return
        publish_preview(
            video=job.video,
            image=image,
            at_seconds=job.second,
            repo=self._repo,
            video_device=self._videos,
            cache=self._cache,
        )

    # --------------------------------------------------
    # rendition
    # --------------------------------------------------

    def _rendition(self, job: RenditionJob, bucket: Bucket, file: File, input_path: Path, ws: Workspace) -> str:
        video, profile = job.video, job.profile
        publisher = RenditionPublisher(self._repo, self._realtime, bucket, file)
        rendition = publisher.create(Rendition.start(video, profile, job.output))

        root = self._videos.get_path(video.id) + "/"
        rendition_path = f"{root}{rendition.name}-{rendition.id}/"
        subtitles_path = f"{root}subtitles/"

        try:
            tracks = prepare_subtitles(
                video=video,
                repo=self._repo,
                files_device=self._files,
                local_device=self._local,
                in_dir=ws.in_dir,
                ffmpeg_bin=self._cfg.FFMPEG_BIN,
                timeout=self._cfg.FFPROBE_TIMEOUT_SECONDS,
            )

            logger.info(
                "[PROCESSOR] Input video_id=%s name=%s width=%s height=%s duration=%.1fs size=%.2fMiB "
                "video_bit_rate=%.1fkb/s audio_bit_rate=%.1fkb/s",
                video.id, file.name, video.width, video.height,
                (video.duration or 0) / 1000, (video.size or 0) / 1024 / 1024,
                (video.video_bit_rate or 0) / 1000, (video.audio_bit_rate or 0) / 1000,
            )
            logger.info(
                "[PROCESSOR] Output video_id=%s name=%s width=%s height=%s "
                "video_bit_rate=%sk audio_bit_rate=%sk output=%s",
                video.id, file.name, profile.width, profile.height,
                profile.video_bit_rate, profile.audio_bit_rate, job.output.value,
            )

            manifest = transcode(
                output=job.output,
                video_id=video.id,
                input_path=str(input_path),
                out_dir=ws.out_dir,
                profile=profile,
                ffmpeg_bin=self._cfg.FFMPEG_BIN,
                ffprobe_bin=self._cfg.FFPROBE_BIN,
                segment_seconds=self._cfg.SEGMENT_SECONDS,
                threads=self._cfg.FFMPEG_THREADS,
                timeout=self._cfg.FFMPEG_TIMEOUT_SECONDS,
                probe_timeout=self._cfg.FFPROBE_TIMEOUT_SECONDS,
                duration_ms=video.duration,
                subtitles=tracks,
                progress_callback=lambda pct: publisher.progress(rendition, pct),
            )

            self._persist_segments(rendition, job.output, manifest, ws.out_dir, rendition_path)

            publish_subtitles(
                tracks=tracks,
                output=job.output,
                video_id=video.id,
                out_dir=ws.out_dir,
                subtitles_path=subtitles_path,
                repo=self._repo,
                local_device=self._local,
            )

            publisher.ended(rendition)
            logger.info("[PROCESSOR] Rendition %s conversion, done", rendition.id)

            uploaded = upload_outputs(
                out_dir=ws.out_dir,
                device=self._videos,
                rendition_path=rendition_path,
                subtitles_path=subtitles_path,
                on_first_upload=lambda: publisher.uploading(rendition, rendition_path),
            )
            if uploaded == 0:
                raise TranscodeError(f"no output files for rendition {rendition.id}")

            publisher.ready(rendition)
            return "ok"

        except Exception as e:
            logger.exception(
                "[PROCESSOR] Rendition failed video_id=%s rendition_id=%s error=%s",
                video.id, rendition.id, e,
            )
            try:
                publisher.failed(rendition, e)
            except Exception:
                logger.exception("[PROCESSOR] Could not record failure rendition_id=%s", rendition.id)
            return "failed"

    def _persist_segments(
        self,
        rendition: Rendition,
        output: OutputFormat,
        manifest: Path,
        out_dir: Path,
        rendition_path: str,
    ) -> None:
        """manifest 파싱 → Segment 저장 + Rendition.metadata / targetDuration"""
        if output == OutputFormat.HLS:
            variants = load_hls_master(manifest, rendition.video_id)
            for variant in variants:
                if variant.type == STREAM_SUBTITLE:
                    continue
                playlist = load_hls_playlist(out_dir / variant.path)
                for segment in playlist.segments:
                    self._repo.create_segment(
                        Segment(
                            rendition_id=rendition.id,
                            stream_id=variant.id,
                            file_name=segment.file_name,
                            path=rendition_path,
                            duration=segment.duration,
                        )
                    )
                rendition.metadata = {"hls": [v.to_dict() for v in variants]}
                rendition.target_duration = playlist.target_duration
            return

        mpd = load_dash_manifest(manifest)
        for segment in mpd.segments:
            self._repo.create_segment(
                Segment(
                    rendition_id=rendition.id,
                    stream_id=segment.stream_id,
                    file_name=segment.file_name,
                    path=rendition_path,
                    is_init=segment.is_init,
                )
            )
        if mpd.metadata:
            rendition.metadata = {"mpd": mpd.metadata}
