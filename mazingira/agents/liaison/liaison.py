from __future__ import annotations

from typing import Any, AsyncIterator, Optional

from google import genai
from google.genai import types

from ...config.settings import Settings
from ...shared.streaming import TranscriptStream
from .prompts import LIAISON_SYSTEM


async def _chunk_texts(response: AsyncIterator[Any]) -> AsyncIterator[Optional[str]]:
    async for chunk in response:
        yield chunk.text


class LiaisonService:
    def __init__(self, cfg: Settings, client: genai.Client):
        self.cfg = cfg
        self.client = client
        self.chat = client.aio.chats.create(
            model=cfg.gemini_chat_model,
            config=types.GenerateContentConfig(system_instruction=LIAISON_SYSTEM),
        )

    async def stream_reply(self, message: str) -> TranscriptStream:
        response = await self.chat.send_message_stream(message)
        return TranscriptStream(_chunk_texts(response))
