import io
import wave

import numpy as np
import pytest

from mazingira.shared.audio import AudioContext, AudioContextProvider, to_wav_bytes
from mazingira.shared.decoder import AudioBuffer


def _buffer(channels=1, frames=240) -> AudioBuffer:
    samples = np.zeros((channels, frames), dtype=np.float32)
    samples[:, 0] = 0.5
    return AudioBuffer(sample_rate=24000, samples=samples)


def test_provider_creates_context_lazily_and_reuses_it() -> None:
    provider = AudioContextProvider(sample_rate=24000)
    assert provider.created == 0

    first = provider.get()
    second = provider.get()

    assert first is second
    assert provider.created == 1


def test_provider_recreates_only_after_close() -> None:
    provider = AudioContextProvider()
    first = provider.get()

    provider.close()
    second = provider.get()

    assert first.closed
    assert second is not first
    assert provider.created == 2


def test_source_released_on_every_exit() -> None:
    ctx = AudioContext(24000)

    with ctx.source(_buffer()) as src:
        assert ctx.active_sources == 1
    assert src.released
    assert ctx.active_sources == 0

    with pytest.raises(ValueError):
        with ctx.source(_buffer()) as failing:
            raise ValueError("playback aborted")
    assert failing.released
    assert ctx.active_sources == 0

    with pytest.raises(RuntimeError):
        src.render()


def test_closed_context_refuses_new_sources() -> None:
    ctx = AudioContext(24000)
    ctx.close()

    with pytest.raises(RuntimeError):
        with ctx.source(_buffer()):
            pass


def test_wav_bytes_carry_format_and_samples() -> None:
    data = to_wav_bytes(_buffer(channels=2, frames=100))

    assert data[:4] == b"RIFF"
    assert data[8:12] == b"WAVE"
    with wave.open(io.BytesIO(data), "rb") as w:
        assert w.getnchannels() == 2
        assert w.getframerate() == 24000
        assert w.getnframes() == 100
        first = np.frombuffer(w.readframes(1), dtype="<i2")
    assert list(first) == [16384, 16384]
