"""Shared fixtures: settings without a .env and fake Gemini clients."""

import asyncio
import json
from dataclasses import replace
from types import SimpleNamespace

import pytest

from mazingira.config.settings import Settings
from mazingira.shared.models import DetectionResult, Location, PlainReasoning


@pytest.fixture
def settings() -> Settings:
    return Settings(
        gemini_api_key="test-key",
        use_vertex=False,
        gcp_project="",
        gcp_region="us-central1",
        gemini_analysis_model="analysis-model",
        gemini_chat_model="chat-model",
        gemini_tts_model="tts-model",
        tts_voice="Kore",
        veo_model="veo-model",
        video_resolution="720p",
        video_aspect_ratio="16:9",
        min_confidence=0.4,
        analysis_thinking_budget=1024,
        speech_sample_rate=24000,
        speech_channels=1,
        video_poll_interval_s=5.0,
        video_poll_backoff=1.0,
        video_poll_max_interval_s=30.0,
        video_max_wait_s=600.0,
        video_max_polls=None,
        video_progress_interval_s=4.0,
        video_output_dir="",
        agent_log_limit=20,
        export_prefix="mazingira_reports",
        api_host="127.0.0.1",
        api_port=8000,
        log_level="INFO",
    )


@pytest.fixture
def settings_factory(settings):
    def _make(**overrides) -> Settings:
        return replace(settings, **overrides)

    return _make


def analysis_json(confidence: float = 0.85, category: str = "Illegal Logging", **extra) -> str:
    body = {
        "type": category,
        "severity": "High",
        "description": "Fresh clear-cut patches along the eastern ridge.",
        "confidence": confidence,
        "reasoningChain": {
            "hypothesis": "Selective logging by an organised crew",
            "evidencePoints": ["Linear skid trails", "Stacked timber near track"],
            "alternatives": ["Sanctioned fire-break clearing"],
            "changeDetection": "Cleared area expanded since last report",
        },
    }
    body.update(extra)
    return json.dumps(body)


class FakeModels:
    """Stands in for ``client.aio.models``; records every call."""

    def __init__(self, responses=None, error: Exception | None = None):
        self.responses = list(responses or [])
        self.error = error
        self.calls = []

    async def generate_content(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.responses.pop(0)


class FakeChat:
    """Stands in for an ``aio.chats`` session; replies with scripted fragments."""

    def __init__(self, fragments=(), fail_after=None, open_error: Exception | None = None, delay: float = 0.0):
        self.fragments = list(fragments)
        self.delay = delay
        self.fail_after = fail_after
        self.open_error = open_error
        self.messages = []

    async def send_message_stream(self, message):
        self.messages.append(message)
        if self.open_error is not None:
            raise self.open_error
        return self._chunks()

    async def _chunks(self):
        for i, fragment in enumerate(self.fragments):
            if self.fail_after is not None and i == self.fail_after:
                raise ConnectionError("stream reset by peer")
            if self.delay:
                await asyncio.sleep(self.delay)
            yield SimpleNamespace(text=fragment)


def fake_client(models: FakeModels | None = None, chat: FakeChat | None = None):
    chat = chat or FakeChat()
    chats = SimpleNamespace(create=lambda **kwargs: chat)
    return SimpleNamespace(aio=SimpleNamespace(models=models or FakeModels(), chats=chats))


def speech_response(data):
    part = SimpleNamespace(inline_data=SimpleNamespace(data=data, mime_type="audio/L16;rate=24000"))
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=[part]))])


def grounded_response(text: str, sources=()):
    chunks = [SimpleNamespace(web=SimpleNamespace(title=t, uri=u)) for t, u in sources]
    candidate = SimpleNamespace(grounding_metadata=SimpleNamespace(grounding_chunks=chunks))
    return SimpleNamespace(text=text, candidates=[candidate])


def make_detection(**overrides) -> DetectionResult:
    fields = {
        "category": "Illegal Logging",
        "severity": "High",
        "location": Location(lat=-0.55, lng=35.75, region="Mau Forest"),
        "narrative": "Fresh clear-cut patches along the eastern ridge.",
        "confidence": 0.85,
        "reasoning": PlainReasoning(text="Canopy loss visible in the north-east quadrant."),
    }
    fields.update(overrides)
    return DetectionResult(**fields)


def veo_operation(done=False, uri=None, error=None):
    response = None
    if done:
        video = SimpleNamespace(uri=uri, video_bytes=None)
        response = SimpleNamespace(generated_videos=[SimpleNamespace(video=video)])
    return SimpleNamespace(name="operations/veo-1", done=done, error=error, response=response)


class FakeVeo:
    """Serves both ``aio.models.generate_videos`` and ``aio.operations.get``."""

    def __init__(self, operations=(), forever_running=False):
        self.operations = list(operations)
        self.forever_running = forever_running
        self.submitted = []
        self.gets = 0

    async def generate_videos(self, **kwargs):
        self.submitted.append(kwargs)
        return veo_operation()

    async def get(self, operation):
        self.gets += 1
        if self.forever_running:
            return veo_operation()
        return self.operations.pop(0)


def attach_veo(client, veo: FakeVeo):
    client.aio.models.generate_videos = veo.generate_videos
    client.aio.operations = veo
    return client


async def no_sleep(_delay: float) -> None:
    await asyncio.sleep(0)
