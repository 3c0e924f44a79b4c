import json
import logging
import time
import traceback
import uuid
from dataclasses import asdict
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import BaseModel, ValidationError

from weaver.config.config import config
from weaver.engine import SceneSession
from weaver.feedback.coordinator import RequestFn
from weaver.scene.presets import dump_snapshot, get_preset, load_presets
from weaver.services.director_client import analyze_layout
from weaver.timeline.curves import to_svg_points
from weaver.utils.logging_setup import configure_logging, log_context

configure_logging(log_file=config["log_file"], level=str(config.get("log_level", "INFO")).upper(), enable_console=True)
logger = logging.getLogger(__name__)

app = FastAPI(title="Weaver Scene API", version="0.1.0")

# CORS middleware setting
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

sessions: Dict[str, SceneSession] = {}

# Overridable feedback collaborator; None uses the configured director model.
feedback_request_fn: Optional[RequestFn] = None


class HealthResponse(BaseModel):
    status: str
    timestamp: str


class SessionRequest(BaseModel):
    preset_id: str = "big-buck-bunny"


class TickRequest(BaseModel):
    time: Optional[float] = None
    now: Optional[float] = None


class SeekRequest(BaseModel):
    time: float


class MoveRequest(BaseModel):
    x: Optional[float] = None
    y: Optional[float] = None
    z: Optional[float] = None


class AnalyzeRequest(BaseModel):
    frames: List[str]


class ViewRequest(BaseModel):
    show_blocking: Optional[bool] = None
    show_camera_path: Optional[bool] = None
    show_emotion: Optional[bool] = None


def _get_session(session_id: str) -> SceneSession:
    session = sessions.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Unknown session: {session_id}")
    return session


def _load(session: SceneSession, doc: Dict[str, Any]) -> Dict[str, Any]:
    try:
        state = session.load_analysis(doc)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=json.loads(e.json()))
    return {"session_id": session.scene_id, "entities": state.identities()}


@app.get("/health")
async def health():
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now().isoformat()
    )


@app.get("/")
async def root():
    return {"message": "Weaver Scene API is running"}


@app.get("/presets")
async def presets():
    return [{"id": p.id, "name": p.name, "duration": p.data.duration} for p in load_presets()]


@app.post("/sessions")
async def create_session(request: SessionRequest):
    try:
        preset = get_preset(request.preset_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown preset: {request.preset_id}")
    session_id = str(uuid.uuid4())
    sessions[session_id] = SceneSession(preset.data, request_fn=feedback_request_fn, scene_id=session_id)
    with log_context(scene_id=session_id, component="server"):
        logger.info(f"Created session from preset {preset.id}")
    return {"session_id": session_id, "preset_id": preset.id, "duration": preset.data.duration}


@app.delete("/sessions/{session_id}")
async def close_session(session_id: str):
    session = _get_session(session_id)
    await session.close()
    del sessions[session_id]
    return {"closed": session_id}


@app.post("/sessions/{session_id}/tick")
async def tick(session_id: str, request: TickRequest):
    session = _get_session(session_id)
    now = request.now if request.now is not None else time.monotonic()
    return session.tick(now, media_time=request.time).to_dict()


@app.post("/sessions/{session_id}/seek")
async def seek(session_id: str, request: SeekRequest):
    return {"time": _get_session(session_id).seek(request.time)}


@app.put("/sessions/{session_id}/view")
async def set_view(session_id: str, request: ViewRequest):
    view = _get_session(session_id).set_view(**request.model_dump(exclude_none=True))
    return asdict(view)


@app.get("/sessions/{session_id}/curves")
async def curves(session_id: str):
    session = _get_session(session_id)
    emotions, (cam_polyline, cam_curve) = session.emotion_geometry, session.camera_geometry
    return {
        "height": session.graph_height,
        "emotions": {
            identity: {
                "points": to_svg_points(polyline),
                "ramp": [asdict(stop) for stop in ramp],
            }
            for identity, (polyline, ramp) in emotions.items()
        },
        "camera": {
            "points": to_svg_points(cam_polyline),
            "curve": to_svg_points(cam_curve.points),
            "fill": to_svg_points(cam_curve.fill),
        },
    }


@app.post("/sessions/{session_id}/analysis")
async def load_analysis(session_id: str, doc: Dict[str, Any]):
    return _load(_get_session(session_id), doc)


@app.post("/sessions/{session_id}/analyze")
async def analyze(session_id: str, request: AnalyzeRequest):
    session = _get_session(session_id)
    resp = await analyze_layout(request.frames)
    if not resp.success:
        raise HTTPException(status_code=502, detail=resp.message)
    return _load(session, resp.content)


@app.get("/sessions/{session_id}/snapshot")
async def snapshot(session_id: str):
    session = _get_session(session_id)
    if session.store.state is None:
        raise HTTPException(status_code=404, detail="No scene layout loaded")
    return Response(content=dump_snapshot(session.store.state), media_type="application/json")


@app.post("/sessions/{session_id}/entities/{identity}/move")
async def move_entity(session_id: str, identity: str, request: MoveRequest):
    session = _get_session(session_id)
    if session.store.get(identity) is None:
        raise HTTPException(status_code=404, detail=f"Unknown entity: {identity}")
    try:
        state = session.move_entity(identity, request.model_dump(exclude_none=True))
    except Exception as e:
        logger.error(f"Error moving {identity}: {e}")
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail=str(e))
    entity = state.find(identity)
    return {"identity": identity, "position": asdict(entity.position)}


@app.get("/sessions/{session_id}/feedback")
async def feedback(session_id: str):
    return _get_session(session_id).coordinator.slot.to_dict()


@app.post("/sessions/{session_id}/feedback/flush")
async def flush_feedback(session_id: str):
    coordinator = _get_session(session_id).coordinator
    coordinator.flush()
    await coordinator.wait_idle()
    return coordinator.slot.to_dict()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
