"""Single entry point the desk, chat session and HTTP layer talk to.

Every backend call made here is independently failable. Raw SDK and
network exceptions never leave this module: they are logged and turned
into ``None`` or one of the typed errors in ``shared.errors``.
"""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, Optional, Sequence

from google import genai

from ..config.settings import Settings
from ..shared.decoder import AudioBuffer
from ..shared.errors import ChatBusyError, JobFailed, JobTimeoutError, MazingiraError, TransportError
from ..shared.genai_client import make_client
from ..shared.logging import get_logger
from ..shared.models import ChatTurn, DetectionResult
from ..shared.poller import ProgressCallback
from .analyst.analyst import AnalystService
from .director.director import DirectorService, VideoResult
from .liaison.liaison import LiaisonService
from .narrator.narrator import NarratorService

LOGGER = get_logger(__name__)


class MazingiraAgent:
    def __init__(
        self,
        cfg: Settings,
        client: Optional[genai.Client] = None,
        analyst: Optional[AnalystService] = None,
        liaison: Optional[LiaisonService] = None,
        narrator: Optional[NarratorService] = None,
        director: Optional[DirectorService] = None,
    ):
        self.cfg = cfg
        if client is None and None in (analyst, liaison, narrator, director):
            client = make_client(cfg)
        self.analyst = analyst or AnalystService(cfg, client)
        self.liaison = liaison or LiaisonService(cfg, client)
        self.narrator = narrator or NarratorService(cfg, client)
        self.director = director or DirectorService(cfg, client)
        self._streaming = False

    @property
    def streaming(self) -> bool:
        return self._streaming

    async def analyze_image(
        self,
        image_bytes: bytes,
        region_label: str,
        prior_results: Sequence[DetectionResult] = (),
        mime_type: str = "image/jpeg",
    ) -> Optional[DetectionResult]:
        try:
            return await self.analyst.analyze(image_bytes, region_label, prior_results, mime_type=mime_type)
        except MazingiraError as e:
            LOGGER.warning("[agent] analysis rejected for region=%s: %s", region_label, e)
            raise
        except Exception as e:
            LOGGER.exception("[agent] analysis transport failure for region=%s", region_label)
            raise TransportError(f"analysis request failed: {e}") from e

    async def chat_stream(self, message: str) -> AsyncIterator[ChatTurn]:
        """Yields the agent turn after every fragment of the reply.

        Only one reply may stream at a time; a second call made while one is
        open raises ``ChatBusyError`` on its first iteration.
        """
        if self._streaming:
            raise ChatBusyError("a reply is already streaming for this session")
        self._streaming = True
        try:
            try:
                stream = await self.liaison.stream_reply(message)
            except Exception as e:
                LOGGER.exception("[agent] chat stream could not be opened")
                raise TransportError(f"chat request failed: {e}") from e
            try:
                async for text in stream:
                    yield ChatTurn(role="agent", text=text)
            except MazingiraError as e:
                LOGGER.warning("[agent] chat stream interrupted after %d chars: %s", len(stream.text), e)
                raise
        finally:
            self._streaming = False

    async def synthesize_speech(self, text: str) -> Optional[AudioBuffer]:
        try:
            return await self.narrator.synthesize(text)
        except asyncio.CancelledError:
            raise
        except Exception:
            LOGGER.exception("[agent] speech synthesis failed")
            return None

    async def generate_video(self, prompt: str, on_progress: Optional[ProgressCallback] = None) -> Optional[VideoResult]:
        try:
            return await self.director.generate(prompt, on_progress=on_progress)
        except (JobFailed, JobTimeoutError) as e:
            LOGGER.warning("[agent] video job ended without a result: %s (last status=%s)", e, getattr(e, "status", None))
            return None
        except asyncio.CancelledError:
            LOGGER.info("[agent] video job abandoned by caller")
            raise
        except Exception:
            LOGGER.exception("[agent] video generation failed")
            return None
