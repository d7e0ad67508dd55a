from __future__ import annotations

import io
import threading
import wave
from contextlib import contextmanager
from typing import Callable, Iterator, Optional, Set

import numpy as np

from .decoder import AudioBuffer, PCM16_SCALE
from .logging import get_logger

LOGGER = get_logger(__name__)


def to_wav_bytes(buffer: AudioBuffer) -> bytes:
    clipped = np.clip(buffer.samples, -1.0, 1.0 - 1.0 / PCM16_SCALE)
    interleaved = np.round(clipped.T * PCM16_SCALE).astype("<i2")
    out = io.BytesIO()
    with wave.open(out, "wb") as w:
        w.setnchannels(buffer.channels)
        w.setsampwidth(2)
        w.setframerate(buffer.sample_rate)
        w.writeframes(interleaved.tobytes())
    return out.getvalue()


class AudioSource:
    """One playback node bound to a context; valid until released."""

    def __init__(self, ctx: "AudioContext", buffer: AudioBuffer):
        self.ctx = ctx
        self.buffer = buffer
        self.released = False

    def render(self) -> bytes:
        if self.released:
            raise RuntimeError("audio source already released")
        return to_wav_bytes(self.buffer)


class AudioContext:
    def __init__(self, sample_rate: int):
        self.sample_rate = sample_rate
        self.closed = False
        self._sources: Set[AudioSource] = set()

    @property
    def active_sources(self) -> int:
        return len(self._sources)

    @contextmanager
    def source(self, buffer: AudioBuffer) -> Iterator[AudioSource]:
        if self.closed:
            raise RuntimeError("audio context is closed")
        src = AudioSource(self, buffer)
        self._sources.add(src)
        try:
            yield src
        finally:
            src.released = True
            self._sources.discard(src)

    def close(self) -> None:
        for src in list(self._sources):
            src.released = True
        self._sources.clear()
        self.closed = True


class AudioContextProvider:
    """Process-scoped owner of the single output context.

    The context is created on first ``get()`` and handed out again on every
    later call; a new one is only built after the current one was closed.
    """

    def __init__(self, sample_rate: int = 24000, factory: Callable[[int], AudioContext] = AudioContext):
        self.sample_rate = sample_rate
        self._factory = factory
        self._ctx: Optional[AudioContext] = None
        self._lock = threading.Lock()
        self.created = 0

    def get(self) -> AudioContext:
        with self._lock:
            if self._ctx is None or self._ctx.closed:
                self._ctx = self._factory(self.sample_rate)
                self.created += 1
                LOGGER.debug("[audio] output context opened at %d Hz", self.sample_rate)
            return self._ctx

    def close(self) -> None:
        with self._lock:
            if self._ctx is not None:
                self._ctx.close()
                self._ctx = None
