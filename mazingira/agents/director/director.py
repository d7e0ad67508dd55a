from __future__ import annotations

import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from google import genai
from google.genai import types

from ...config.settings import Settings
from ...shared.logging import get_logger
from ...shared.poller import JobPoller, JobStatus, PollPolicy, ProgressCallback, ProgressTicker
from .prompts import REASSURING_MESSAGES, VIDEO_PROMPT

LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class VideoResult:
    uri: str
    local_path: Optional[str] = None
    polls: int = 0


def _first_video(op: Any) -> Any:
    response = getattr(op, "response", None) or getattr(op, "result", None)
    videos = getattr(response, "generated_videos", None) or []
    return videos[0].video if videos and videos[0].video else None


class VeoJobBackend:
    """Adapts Veo long-running operations to the poller's backend protocol."""

    def __init__(self, cfg: Settings, client: genai.Client):
        self.cfg = cfg
        self.client = client

    async def submit(self, prompt: str) -> Any:
        return await self.client.aio.models.generate_videos(
            model=self.cfg.veo_model,
            prompt=VIDEO_PROMPT.format(prompt=prompt),
            config=types.GenerateVideosConfig(
                number_of_videos=1,
                resolution=self.cfg.video_resolution,
                aspect_ratio=self.cfg.video_aspect_ratio,
            ),
        )

    async def refresh(self, op: Any) -> Any:
        return await self.client.aio.operations.get(op)

    def status(self, op: Any) -> JobStatus:
        if op is None:
            raise ValueError("empty operation")
        if getattr(op, "error", None):
            return JobStatus(state="failed", error=str(op.error), payload=op)
        if not op.done:
            return JobStatus(state="running", payload=op)
        video = _first_video(op)
        locator = getattr(video, "uri", None) if video else None
        if not locator and video is not None and getattr(video, "video_bytes", None):
            locator = f"inline:{op.name or 'video'}"
        return JobStatus(state="completed", result_locator=locator, payload=op)


def policy_from_settings(cfg: Settings) -> PollPolicy:
    return PollPolicy(
        interval_s=cfg.video_poll_interval_s,
        backoff=cfg.video_poll_backoff,
        max_interval_s=cfg.video_poll_max_interval_s,
        max_wait_s=cfg.video_max_wait_s,
        max_attempts=cfg.video_max_polls,
    )


class DirectorService:
    def __init__(self, cfg: Settings, client: genai.Client, poller: Optional[JobPoller] = None):
        self.cfg = cfg
        self.client = client
        self.poller = poller or JobPoller(VeoJobBackend(cfg, client), policy_from_settings(cfg))

    async def _save(self, op: Any) -> Optional[str]:
        if not self.cfg.video_output_dir:
            return None
        video = _first_video(op)
        data = getattr(video, "video_bytes", None) or await self.client.aio.files.download(file=video)
        out_dir = Path(self.cfg.video_output_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        path = out_dir / f"{uuid.uuid4().hex}.mp4"
        path.write_bytes(data)
        return str(path)

    async def generate(self, prompt: str, on_progress: Optional[ProgressCallback] = None) -> VideoResult:
        async with ProgressTicker(REASSURING_MESSAGES, on_progress, self.cfg.video_progress_interval_s):
            status = await self.poller.run(prompt)
            polls = self.poller.last_polls
            local_path = await self._save(status.payload)
        LOGGER.info("[director] video ready uri=%s polls=%d saved=%s", status.result_locator, polls, bool(local_path))
        return VideoResult(uri=status.result_locator, local_path=local_path, polls=polls)
