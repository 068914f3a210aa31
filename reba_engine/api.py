# api.py (REBA scoring HTTP service)
import logging
from typing import Dict, List, Literal, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field, model_validator

from .config import ServiceSettings, load_settings
from .landmarks import NUM_POSE_LANDMARKS, Landmark
from .session import RebaSession, RebaSnapshot, build_snapshot

logger = logging.getLogger(__name__)


# --- Request models ---
class FrameInput(BaseModel):
    """ One frame: up to 33 MediaPipe landmarks, or a list of such poses """
    landmarks: List[Landmark] = Field(default_factory=list, max_length=NUM_POSE_LANDMARKS)
    poses: Optional[List[List[Landmark]]] = None # multi-person result; the first pose is analysed
    timestamp: Optional[float] = Field(default=None, allow_inf_nan=False) # seconds
    elapsed: Optional[float] = Field(default=None, ge=0.0, allow_inf_nan=False) # seconds since previous frame

    @model_validator(mode="after")
    def _check_frame(self) -> "FrameInput":
        if self.timestamp is None and self.elapsed is None:
            raise ValueError("Either 'timestamp' or 'elapsed' must be given")
        if self.poses and any(len(pose) > NUM_POSE_LANDMARKS for pose in self.poses):
            raise ValueError(f"A pose has at most {NUM_POSE_LANDMARKS} landmarks")
        return self

    def pose(self) -> List[Landmark]:
        if self.poses:
            return self.poses[0]
        return self.landmarks

class SessionCreate(BaseModel):
    force_load: Optional[Literal[0, 1, 2]] = None

class ForceLoadUpdate(BaseModel):
    force_load: Literal[0, 1, 2]

class AnalyzeInput(BaseModel):
    frames: List[FrameInput]
    force_load: Literal[0, 1, 2] = 0


class RegistryFullError(RuntimeError):
    pass


class SessionRegistry:
    """ Live sessions of one application instance """

    def __init__(self, max_sessions: int):
        self.max_sessions = max_sessions
        self._sessions: Dict[str, RebaSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self, force_load: int) -> RebaSession:
        if len(self._sessions) >= self.max_sessions:
            raise RegistryFullError(f"Session limit ({self.max_sessions}) reached")
        session = RebaSession(force_load=force_load)
        self._sessions[session.session_id] = session
        logger.info("Created REBA session %s (force/load %s)", session.session_id, force_load)
        return session

    def get(self, session_id: str) -> RebaSession:
        return self._sessions[session_id]

    def remove(self, session_id: str) -> None:
        del self._sessions[session_id]
        logger.info("Discarded REBA session %s", session_id)


def _get_session(request: Request, session_id: str) -> RebaSession:
    try:
        return request.app.state.sessions.get(session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Session '{session_id}' not found")


def create_app(settings: Optional[ServiceSettings] = None) -> FastAPI:
    settings = settings or load_settings()

    app = FastAPI(title="REBA Scoring API")
    app.state.settings = settings
    app.state.sessions = SessionRegistry(settings.max_sessions)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["*"],
    )

    @app.get("/")
    async def read_root():
        return {"message": "REBA Scoring API is running"}

    @app.post("/sessions", response_model=RebaSnapshot, status_code=201)
    async def create_session(request: Request, body: Optional[SessionCreate] = None):
        force_load = settings.default_force_load
        if body is not None and body.force_load is not None:
            force_load = body.force_load
        try:
            session = request.app.state.sessions.create(force_load)
        except RegistryFullError as e:
            raise HTTPException(status_code=429, detail=str(e))
        return session.snapshot()

    @app.get("/sessions/{session_id}", response_model=RebaSnapshot)
    async def get_session(request: Request, session_id: str):
        return _get_session(request, session_id).snapshot()

    @app.post("/sessions/{session_id}/frames", response_model=RebaSnapshot)
    async def post_frame(request: Request, session_id: str, frame: FrameInput):
        session = _get_session(request, session_id)
        session.update(frame.pose(), timestamp=frame.timestamp, elapsed=frame.elapsed)
        return session.snapshot()

    @app.put("/sessions/{session_id}/force_load", response_model=RebaSnapshot)
    async def put_force_load(request: Request, session_id: str, body: ForceLoadUpdate):
        session = _get_session(request, session_id)
        session.set_force_load(body.force_load)
        return session.snapshot()

    @app.post("/sessions/{session_id}/reset", response_model=RebaSnapshot)
    async def reset_session(request: Request, session_id: str):
        session = _get_session(request, session_id)
        session.reset()
        return session.snapshot()

    @app.delete("/sessions/{session_id}", status_code=204)
    async def delete_session(request: Request, session_id: str):
        _get_session(request, session_id)
        request.app.state.sessions.remove(session_id)

    @app.post("/analyze", response_model=RebaSnapshot)
    async def analyze(body: AnalyzeInput):
        # Stateless: fold the whole frame list through a throwaway session
        session = RebaSession(force_load=body.force_load)
        for frame in body.frames:
            session.update(frame.pose(), timestamp=frame.timestamp, elapsed=frame.elapsed)
        return build_snapshot(session.state)

    return app
