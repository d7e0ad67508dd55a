from __future__ import annotations

import base64
import binascii
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.responses import PlainTextResponse, Response, StreamingResponse
from pydantic import BaseModel, Field

from ..agents.agent import MazingiraAgent
from ..config.settings import Settings
from ..incidents.desk import IncidentDesk
from ..incidents.regions import DEFAULT_REGION, list_regions
from ..incidents.store import ALL_CATEGORIES, AgentLog, InvalidTransition
from ..shared.audio import AudioContextProvider
from ..shared.errors import BusyError, ChatBusyError
from ..shared.models import AccuracyRating, FieldStatus
from .session import ChatSession


class AnalyzeIn(BaseModel):
    image_base64: str = Field(min_length=1)
    region: str = DEFAULT_REGION
    mime_type: str = "image/jpeg"


class StatusIn(BaseModel):
    status: FieldStatus


class FeedbackIn(BaseModel):
    accuracy_rating: AccuracyRating
    notes: str = ""
    confirmed: Optional[bool] = True
    reviewer: str = "Ranger-KWS-HQ"


class ChatIn(BaseModel):
    message: str = Field(min_length=1)


def _strip_data_url(value: str) -> str:
    return value.split(",", 1)[1] if value.startswith("data:") and "," in value else value


def build_app(cfg: Settings, agent: Optional[MazingiraAgent] = None) -> FastAPI:
    agent = agent or MazingiraAgent(cfg)
    audio = AudioContextProvider(sample_rate=cfg.speech_sample_rate)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        audio.close()

    app = FastAPI(title="Mazingira AI", version="0.1.0", lifespan=lifespan)
    desk = IncidentDesk(agent, log=AgentLog(limit=cfg.agent_log_limit), export_prefix=cfg.export_prefix)
    session = ChatSession(agent, audio)
    app.state.desk = desk
    app.state.session = session
    app.state.audio = audio

    @app.get("/meta")
    def meta():
        return {
            "backend": "vertex" if cfg.use_vertex else "gemini_api",
            "models": {
                "analysis": cfg.gemini_analysis_model,
                "chat": cfg.gemini_chat_model,
                "tts": cfg.gemini_tts_model,
                "video": cfg.veo_model,
            },
            "min_confidence": cfg.min_confidence,
            "video_polling": {
                "interval_s": cfg.video_poll_interval_s,
                "max_wait_s": cfg.video_max_wait_s,
                "max_polls": cfg.video_max_polls,
            },
        }

    @app.get("/regions")
    def regions():
        return list_regions()

    @app.get("/kpi")
    def kpi():
        return desk.store.stats()

    @app.get("/log")
    def log():
        return {"entries": desk.log.entries()}

    @app.post("/analyze")
    async def analyze(inp: AnalyzeIn):
        try:
            image = base64.b64decode(_strip_data_url(inp.image_base64), validate=True)
        except (binascii.Error, ValueError):
            raise HTTPException(status_code=422, detail="image_base64 is not valid base64")
        try:
            result = await desk.analyze_upload(image, inp.region, mime_type=inp.mime_type)
        except BusyError as e:
            raise HTTPException(status_code=409, detail=str(e))
        return {
            "incident": result.model_dump(mode="json") if result else None,
            "log": desk.log.entries()[:3],
        }

    @app.get("/incidents")
    def incidents(type: str = ALL_CATEGORIES):
        return [r.model_dump(mode="json") for r in desk.store.list(type)]

    @app.get("/incidents/export.csv")
    def export(type: str = ALL_CATEGORIES):
        out = desk.export(type)
        if out is None:
            return Response(status_code=204)
        filename, content = out
        return PlainTextResponse(
            content,
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    @app.get("/incidents/{incident_id}")
    def incident(incident_id: str):
        try:
            return desk.store.get(incident_id).model_dump(mode="json")
        except KeyError as e:
            raise HTTPException(status_code=404, detail=str(e))

    @app.post("/incidents/{incident_id}/status")
    def set_status(incident_id: str, inp: StatusIn):
        try:
            return desk.update_status(incident_id, inp.status).model_dump(mode="json")
        except KeyError as e:
            raise HTTPException(status_code=404, detail=str(e))

    @app.post("/incidents/{incident_id}/feedback")
    def feedback(incident_id: str, inp: FeedbackIn):
        try:
            record = desk.submit_feedback(
                incident_id,
                inp.accuracy_rating,
                notes=inp.notes,
                confirmed=inp.confirmed,
                reviewer=inp.reviewer,
            )
        except KeyError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except InvalidTransition as e:
            raise HTTPException(status_code=409, detail=str(e))
        return record.model_dump(mode="json")

    @app.get("/chat")
    def transcript():
        return [t.model_dump() for t in session.turns]

    @app.get("/chat/status")
    def chat_status():
        return session.status()

    @app.post("/chat")
    async def chat(inp: ChatIn):
        try:
            text = session.begin(inp.message)
        except ChatBusyError as e:
            raise HTTPException(status_code=409, detail=str(e))
        if text is None:
            return PlainTextResponse("")

        async def deltas():
            sent = 0
            async for snapshot in session.reply(text):
                yield snapshot[sent:]
                sent = len(snapshot)
            if session.last_error:
                yield ("\n" if sent else "") + session.last_error

        return StreamingResponse(deltas(), media_type="text/plain")

    @app.post("/chat/{index}/speech")
    async def speech(index: int):
        try:
            wav = await session.speak(index)
        except IndexError as e:
            raise HTTPException(status_code=404, detail=str(e))
        if wav is None:
            return Response(status_code=204)
        return Response(content=wav, media_type="audio/wav")

    @app.post("/chat/{index}/video")
    async def video(index: int):
        if session.generating_video is not None:
            raise HTTPException(status_code=409, detail="a video is already being generated")
        try:
            media_url = await session.visualize(index)
        except IndexError as e:
            raise HTTPException(status_code=404, detail=str(e))
        return {"index": index, "media_url": media_url}

    @app.delete("/chat/video")
    def cancel_video():
        return {"cancelled": session.cancel_video()}

    return app
