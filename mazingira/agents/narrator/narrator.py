from __future__ import annotations

from typing import Optional, Union

from google import genai
from google.genai import types

from ...config.settings import Settings
from ...shared.decoder import AudioBuffer, decode_audio_payload
from .prompts import SPEECH_PROMPT


class NarratorService:
    def __init__(self, cfg: Settings, client: genai.Client):
        self.cfg = cfg
        self.client = client

    def _config(self) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            response_modalities=["AUDIO"],
            speech_config=types.SpeechConfig(
                voice_config=types.VoiceConfig(
                    prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=self.cfg.tts_voice),
                )
            ),
        )

    async def fetch_audio(self, text: str) -> Optional[Union[bytes, str]]:
        resp = await self.client.aio.models.generate_content(
            model=self.cfg.gemini_tts_model,
            contents=SPEECH_PROMPT.format(text=text),
            config=self._config(),
        )
        candidates = resp.candidates or []
        if not candidates or not candidates[0].content or not candidates[0].content.parts:
            return None
        inline = candidates[0].content.parts[0].inline_data
        return inline.data if inline and inline.data else None

    async def synthesize(self, text: str) -> Optional[AudioBuffer]:
        payload = await self.fetch_audio(text)
        if payload is None:
            return None
        return decode_audio_payload(payload, self.cfg.speech_sample_rate, self.cfg.speech_channels)
