from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional
from dotenv import load_dotenv

from ..shared.errors import ConfigurationError


@dataclass(frozen=True)
class Settings:
    gemini_api_key: str
    use_vertex: bool
    gcp_project: str
    gcp_region: str
    gemini_analysis_model: str
    gemini_chat_model: str
    gemini_tts_model: str
    tts_voice: str
    veo_model: str
    video_resolution: str
    video_aspect_ratio: str
    min_confidence: float
    analysis_thinking_budget: int
    speech_sample_rate: int
    speech_channels: int
    video_poll_interval_s: float
    video_poll_backoff: float
    video_poll_max_interval_s: float
    video_max_wait_s: Optional[float]
    video_max_polls: Optional[int]
    video_progress_interval_s: float
    video_output_dir: str
    agent_log_limit: int
    export_prefix: str
    api_host: str
    api_port: int
    log_level: str


def _require(name: str, *fallbacks: str) -> str:
    for key in (name, *fallbacks):
        v = os.getenv(key, "").strip()
        if v:
            return v
    raise ConfigurationError(f"Missing required env var: {name}")


def _optional(name: str, default: str = "") -> str:
    return os.getenv(name, default).strip()


def _flag(name: str) -> bool:
    return _optional(name).lower() in ("1", "true", "yes", "on")


def _optional_number(name: str, cast, default: str = ""):
    raw = _optional(name, default)
    if not raw or raw.lower() == "none":
        return None
    return cast(raw)


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _validate(cfg: Settings) -> None:
    if cfg.video_poll_interval_s <= 0:
        raise ConfigurationError("VIDEO_POLL_INTERVAL_S must be greater than 0")
    if cfg.video_poll_backoff < 1:
        raise ConfigurationError("VIDEO_POLL_BACKOFF must be at least 1")
    if cfg.video_poll_max_interval_s <= 0:
        raise ConfigurationError("VIDEO_POLL_MAX_INTERVAL_S must be greater than 0")
    if cfg.log_level not in LOG_LEVELS:
        raise ConfigurationError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}")


def load_settings(env_path: str = ".env") -> Settings:
    load_dotenv(env_path)

    use_vertex = _flag("GOOGLE_GENAI_USE_VERTEXAI")
    if use_vertex:
        api_key = _optional("GEMINI_API_KEY", os.getenv("API_KEY", ""))
        gcp_project = _require("GCP_PROJECT", "GOOGLE_CLOUD_PROJECT")
    else:
        api_key = _require("GEMINI_API_KEY", "API_KEY")
        gcp_project = _optional("GCP_PROJECT")

    try:
        cfg = Settings(
            gemini_api_key=api_key,
            use_vertex=use_vertex,
            gcp_project=gcp_project,
            gcp_region=_optional("GCP_REGION", "us-central1"),
            gemini_analysis_model=_optional("GEMINI_ANALYSIS_MODEL", "gemini-3-pro-preview"),
            gemini_chat_model=_optional("GEMINI_CHAT_MODEL", "gemini-3-flash-preview"),
            gemini_tts_model=_optional("GEMINI_TTS_MODEL", "gemini-2.5-flash-preview-tts"),
            tts_voice=_optional("TTS_VOICE", "Kore"),
            veo_model=_optional("VEO_MODEL", "veo-3.1-fast-generate-preview"),
            video_resolution=_optional("VIDEO_RESOLUTION", "720p"),
            video_aspect_ratio=_optional("VIDEO_ASPECT_RATIO", "16:9"),
            min_confidence=float(_optional("MIN_CONFIDENCE", "0.4")),
            analysis_thinking_budget=int(_optional("ANALYSIS_THINKING_BUDGET", "12000")),
            speech_sample_rate=int(_optional("SPEECH_SAMPLE_RATE", "24000")),
            speech_channels=int(_optional("SPEECH_CHANNELS", "1")),
            video_poll_interval_s=float(_optional("VIDEO_POLL_INTERVAL_S", "5")),
            video_poll_backoff=float(_optional("VIDEO_POLL_BACKOFF", "1.0")),
            video_poll_max_interval_s=float(_optional("VIDEO_POLL_MAX_INTERVAL_S", "30")),
            video_max_wait_s=_optional_number("VIDEO_MAX_WAIT_S", float, "600"),
            video_max_polls=_optional_number("VIDEO_MAX_POLLS", int),
            video_progress_interval_s=float(_optional("VIDEO_PROGRESS_INTERVAL_S", "4")),
            video_output_dir=_optional("VIDEO_OUTPUT_DIR", ""),
            agent_log_limit=int(_optional("AGENT_LOG_LIMIT", "20")),
            export_prefix=_optional("EXPORT_PREFIX", "mazingira_reports"),
            api_host=_optional("API_HOST", "127.0.0.1"),
            api_port=int(_optional("API_PORT", os.getenv("PORT", "8000"))),
            log_level=_optional("LOG_LEVEL", "INFO").upper(),
        )
    except ValueError as e:
        raise ConfigurationError(f"Invalid numeric setting: {e}") from e
    _validate(cfg)
    return cfg
