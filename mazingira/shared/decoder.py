"""Turns raw backend payloads into typed in-memory values.

Covers three shapes coming back from the generative API:

* speech audio, delivered as PCM16 little-endian interleaved samples
  (sometimes base64 text, sometimes raw bytes depending on the SDK path);
* the structured JSON blob produced by the imagery analysis prompt;
* grounding metadata attached to a grounded response.
"""

from __future__ import annotations

import base64
import binascii
import json
import re
from dataclasses import dataclass
from typing import Any, Dict, List

import numpy as np
from pydantic import ValidationError

from .errors import DecodeError, SchemaValidationError
from .models import AnalysisPayload, GroundingReference

PCM16_SCALE = 32768.0


@dataclass(frozen=True)
class AudioBuffer:
    """Planar float buffer, shape ``(channels, frames)``, samples in [-1.0, 1.0)."""

    sample_rate: int
    samples: np.ndarray

    @property
    def channels(self) -> int:
        return int(self.samples.shape[0])

    @property
    def frames(self) -> int:
        return int(self.samples.shape[1])

    @property
    def duration_s(self) -> float:
        return self.frames / float(self.sample_rate)

    def channel(self, index: int) -> np.ndarray:
        return self.samples[index]


def decode_base64(payload: str) -> bytes:
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"audio payload is not valid base64: {e}") from e


def decode_pcm16(raw: bytes, sample_rate: int, channels: int) -> AudioBuffer:
    if channels < 1:
        raise DecodeError(f"channel count must be positive, got {channels}")
    if sample_rate < 1:
        raise DecodeError(f"sample rate must be positive, got {sample_rate}")
    frame_bytes = 2 * channels
    if len(raw) % frame_bytes != 0:
        raise DecodeError(
            f"PCM16 payload of {len(raw)} bytes is not a multiple of {frame_bytes} ({channels} channel(s))"
        )
    interleaved = np.frombuffer(raw, dtype="<i2")
    # (frames, channels) -> (channels, frames)
    planar = interleaved.reshape(-1, channels).T.astype(np.float32) / PCM16_SCALE
    return AudioBuffer(sample_rate=sample_rate, samples=np.ascontiguousarray(planar))


def decode_audio_payload(payload: bytes | str, sample_rate: int, channels: int) -> AudioBuffer:
    raw = decode_base64(payload) if isinstance(payload, str) else payload
    return decode_pcm16(raw, sample_rate, channels)


def _extract_json_object(text: str) -> Dict[str, Any]:
    m = re.search(r"\{.*\}", text or "", re.DOTALL)
    if not m:
        raise SchemaValidationError("No JSON object in analysis response", raw=text)
    try:
        data = json.loads(m.group(0))
    except json.JSONDecodeError as e:
        raise SchemaValidationError(f"Analysis response is not valid JSON: {e}", raw=text) from e
    if not isinstance(data, dict):
        raise SchemaValidationError("Analysis response is not a JSON object", raw=text)
    return data


def _tag_reasoning(value: Any) -> Any:
    if isinstance(value, str):
        return {"kind": "plain", "text": value}
    if isinstance(value, dict):
        return {**value, "kind": "structured"}
    return value


def parse_analysis(text: str) -> AnalysisPayload:
    data = _extract_json_object(text)
    if "reasoningChain" in data:
        data["reasoningChain"] = _tag_reasoning(data["reasoningChain"])
    try:
        return AnalysisPayload.model_validate(data)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise SchemaValidationError(f"Analysis response failed schema validation: {fields}", raw=text) from e


def extract_grounding(response: Any) -> List[GroundingReference]:
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return []
    metadata = getattr(candidates[0], "grounding_metadata", None)
    chunks = getattr(metadata, "grounding_chunks", None) or []
    refs: List[GroundingReference] = []
    for chunk in chunks:
        web = getattr(chunk, "web", None)
        uri = getattr(web, "uri", None) if web else None
        if not uri:
            continue
        refs.append(GroundingReference(title=getattr(web, "title", None) or "Source Verified", url=uri))
    return refs
