from __future__ import annotations

import asyncio
from typing import AsyncIterator, List, Optional

from ..agents.agent import MazingiraAgent
from ..agents.liaison.prompts import CHAT_ERROR_TEXT, GREETING
from ..shared.audio import AudioContextProvider
from ..shared.errors import ChatBusyError, MazingiraError
from ..shared.logging import get_logger
from ..shared.models import ChatTurn

LOGGER = get_logger(__name__)


class ChatSession:
    """Conversation state for one ranger: transcript plus speech/video flags.

    ``loading``, ``speaking`` and ``generating_video`` are the busy flags a
    caller checks before starting an operation. At most one of each kind runs
    at a time. A second video or speech request while busy is ignored.
    """

    def __init__(self, agent: MazingiraAgent, audio: AudioContextProvider):
        self.agent = agent
        self.audio = audio
        self.turns: List[ChatTurn] = [ChatTurn(role="agent", text=GREETING)]
        self.loading = False
        self.speaking: Optional[int] = None
        self.generating_video: Optional[int] = None
        self.video_progress: Optional[str] = None
        self.last_error: Optional[str] = None
        self._video_task: Optional[asyncio.Task] = None
        self._video_abandoned = False

    def turn(self, index: int) -> ChatTurn:
        if index < 0 or index >= len(self.turns):
            raise IndexError(f"no chat turn at index {index}")
        return self.turns[index]

    def begin(self, message: str) -> Optional[str]:
        """Claims the reply slot and records the user turn.

        Returns the cleaned message, or None for blank input. Raises
        ``ChatBusyError`` while another reply holds the slot.
        """
        text = (message or "").strip()
        if not text:
            return None
        if self.loading:
            raise ChatBusyError("wait for the current reply to finish")
        self.loading = True
        self.last_error = None
        self.turns.append(ChatTurn(role="user", text=text))
        return text

    async def send(self, message: str) -> AsyncIterator[str]:
        text = self.begin(message)
        if text is None:
            return
        async for snapshot in self.reply(text):
            yield snapshot

    async def reply(self, text: str) -> AsyncIterator[str]:
        """Streams the agent turn for a message already claimed by ``begin``."""
        answer: Optional[ChatTurn] = None
        try:
            async for snapshot in self.agent.chat_stream(text):
                if answer is None:
                    answer = ChatTurn(role="agent")
                    self.turns.append(answer)
                answer.text = snapshot.text
                yield answer.text
        except MazingiraError as e:
            LOGGER.warning("[chat] reply failed: %s", e)
            self.last_error = CHAT_ERROR_TEXT
            self.turns.append(ChatTurn(role="agent", text=CHAT_ERROR_TEXT))
        finally:
            self.loading = False

    async def speak(self, index: int) -> Optional[bytes]:
        turn = self.turn(index)
        if self.speaking is not None:
            return None
        self.speaking = index
        try:
            buffer = await self.agent.synthesize_speech(turn.text)
            if buffer is None:
                return None
            ctx = self.audio.get()
            with ctx.source(buffer) as src:
                return src.render()
        finally:
            self.speaking = None

    def _set_progress(self, message: str) -> None:
        self.video_progress = message

    async def visualize(self, index: int) -> Optional[str]:
        turn = self.turn(index)
        if self.generating_video is not None:
            return None
        if turn.media_url:
            return turn.media_url
        self.generating_video = index
        self._video_abandoned = False
        task = asyncio.create_task(self.agent.generate_video(turn.text, on_progress=self._set_progress))
        self._video_task = task
        try:
            result = await task
        except asyncio.CancelledError:
            if self._video_abandoned and task.cancelled():
                LOGGER.info("[chat] video for turn %d abandoned", index)
                return None
            raise
        finally:
            self._video_task = None
            self.generating_video = None
            self.video_progress = None
        if result is None:
            return None
        turn.media_url = result.local_path or result.uri
        return turn.media_url

    def cancel_video(self) -> bool:
        task = self._video_task
        if task is None or task.done():
            return False
        self._video_abandoned = True
        task.cancel()
        return True

    def status(self) -> dict:
        return {
            "loading": self.loading,
            "speaking": self.speaking,
            "generating_video": self.generating_video,
            "video_progress": self.video_progress,
            "turns": len(self.turns),
        }
