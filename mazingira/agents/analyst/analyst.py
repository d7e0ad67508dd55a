from __future__ import annotations

import base64
import json
import random
import time
from typing import Optional, Sequence

from google import genai
from google.genai import types

from ...config.settings import Settings
from ...incidents.regions import jittered_location
from ...shared.decoder import extract_grounding, parse_analysis
from ...shared.logging import get_logger
from ...shared.models import AnalysisPayload, DetectionResult
from .prompts import ANALYSIS_RESPONSE_SCHEMA, ANALYST_PROMPT, HISTORY_PREFIX, NO_HISTORY

LOGGER = get_logger(__name__)


def historical_context(prior: Sequence[DetectionResult]) -> str:
    if not prior:
        return NO_HISTORY
    summary = [{"type": r.category, "status": r.status, "date": r.ts.date().isoformat()} for r in prior]
    return HISTORY_PREFIX + json.dumps(summary)


def meets_threshold(payload: AnalysisPayload, min_confidence: float) -> bool:
    return bool(payload.category) and payload.confidence >= min_confidence


class AnalystService:
    def __init__(self, cfg: Settings, client: genai.Client, rng: Optional[random.Random] = None):
        self.cfg = cfg
        self.client = client
        self.rng = rng or random.Random()

    def _config(self) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            tools=[types.Tool(google_search=types.GoogleSearch())],
            response_mime_type="application/json",
            response_schema=ANALYSIS_RESPONSE_SCHEMA,
            thinking_config=types.ThinkingConfig(thinking_budget=self.cfg.analysis_thinking_budget),
        )

    async def analyze(
        self,
        image_bytes: bytes,
        region: str,
        prior: Sequence[DetectionResult] = (),
        mime_type: str = "image/jpeg",
    ) -> Optional[DetectionResult]:
        prompt = ANALYST_PROMPT.format(region=region, history=historical_context(prior))
        t0 = time.time()
        resp = await self.client.aio.models.generate_content(
            model=self.cfg.gemini_analysis_model,
            contents=[types.Part.from_bytes(data=image_bytes, mime_type=mime_type), prompt],
            config=self._config(),
        )
        latency_ms = int((time.time() - t0) * 1000)
        payload = parse_analysis(resp.text or "{}")
        if not meets_threshold(payload, self.cfg.min_confidence):
            LOGGER.info(
                "[analyst] region=%s below threshold (type=%r conf=%.2f) latency_ms=%d",
                region, payload.category, payload.confidence, latency_ms,
            )
            return None
        grounding = extract_grounding(resp)
        LOGGER.info(
            "[analyst] region=%s type=%s severity=%s conf=%.2f sources=%d latency_ms=%d",
            region, payload.category, payload.severity, payload.confidence, len(grounding), latency_ms,
        )
        return DetectionResult(
            category=payload.category,
            severity=payload.severity,
            location=jittered_location(region, self.rng),
            narrative=payload.narrative,
            confidence=payload.confidence,
            image_data_url=f"data:{mime_type};base64,{base64.b64encode(image_bytes).decode('ascii')}",
            reasoning=payload.reasoning,
            grounding_references=grounding,
        )
