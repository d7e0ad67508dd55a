from __future__ import annotations

from typing import AsyncIterable, AsyncIterator, Optional

from .errors import StreamInterrupted


class TranscriptStream:
    """Accumulates additive text fragments and yields the running prefix.

    Each fragment is appended in arrival order and the whole text so far is
    yielded right after, so a subscriber always sees the latest prefix. The
    stream can be iterated once, by one subscriber. If the source fails
    mid-stream the prefix gathered so far stays on ``text`` and is attached
    to the ``StreamInterrupted`` that is raised.
    """

    def __init__(self, fragments: AsyncIterable[Optional[str]]):
        self._source = fragments
        self._text = ""
        self._started = False
        self.fragments_seen = 0
        self.finished = False

    @property
    def text(self) -> str:
        return self._text

    def __aiter__(self) -> AsyncIterator[str]:
        if self._started:
            raise RuntimeError("transcript stream can only be consumed once")
        self._started = True
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[str]:
        try:
            async for fragment in self._source:
                self._text += fragment or ""
                self.fragments_seen += 1
                yield self._text
        except StreamInterrupted:
            raise
        except Exception as e:
            raise StreamInterrupted(self._text, f"stream interrupted after {self.fragments_seen} fragment(s): {e}") from e
        self.finished = True

    async def collect(self) -> str:
        async for _ in self:
            pass
        return self._text
