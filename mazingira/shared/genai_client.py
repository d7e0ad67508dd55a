from __future__ import annotations

from google import genai

from ..config.settings import Settings


def make_client(cfg: Settings) -> genai.Client:
    if cfg.use_vertex:
        return genai.Client(vertexai=True, project=cfg.gcp_project, location=cfg.gcp_region)
    return genai.Client(api_key=cfg.gemini_api_key)
