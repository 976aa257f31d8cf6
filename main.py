import logging
import os
import threading
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

from config import DRAFT_DIR, EVENT_TYPES, LOG_LEVEL, PORT
from database import db
from drafts import SetupDraftStore, EventLogStore
from gateway import MatchGateway, MatchNotFound
from schemas import (
    Player as PlayerSchema, MatchEvent as MatchEventSchema, Match as MatchSchema,
    SetupDraft, SetupUpdate, PlayerCreate, PlayerPatch, EventPatch, PlaybackReport,
    Selection, MatchSave,
)
from setup_store import MatchSetup, SetupValidationError, PlayerNotFound
from tracking import TrackingSession, EventValidationError, EventNotFound, ConfirmationRequired

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

# ----------------------
# Application state
# ----------------------
class AppState:
    """Single-user state: one setup draft and at most one tracking session."""

    def __init__(self):
        self.configure(db)

    def configure(self, database, draft_dir: str = DRAFT_DIR, timer_factory=threading.Timer, poll: bool = True):
        self.gateway: Optional[MatchGateway] = MatchGateway(database) if database is not None else None
        self.setup = MatchSetup(SetupDraftStore(draft_dir))
        self.event_log = EventLogStore(draft_dir)
        self.timer_factory = timer_factory
        self.poll = poll
        self.session: Optional[TrackingSession] = None

    def close_session(self):
        if self.session is not None:
            self.session.close()
            self.session = None


state = AppState()


@asynccontextmanager
async def lifespan(app: FastAPI):
    if state.gateway is not None:
        try:
            state.gateway.ensure_indexes()
        except PyMongoError:
            logger.exception("Could not create indexes on the matches collection")
    yield
    state.close_session()

# ----------------------
# FastAPI app + CORS
# ----------------------
app = FastAPI(title="Match Tagger API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ----------------------
# Error mapping
# ----------------------
@app.exception_handler(SetupValidationError)
@app.exception_handler(EventValidationError)
def validation_error(request: Request, exc: Exception):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(PlayerNotFound)
@app.exception_handler(EventNotFound)
@app.exception_handler(MatchNotFound)
def not_found(request: Request, exc: Exception):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(ConfirmationRequired)
def confirmation_required(request: Request, exc: ConfirmationRequired):
    return JSONResponse(
        status_code=409,
        content={"detail": str(exc), "player_id": exc.player.id, "event_count": exc.event_count},
    )


def remote_failure(action: str, exc: PyMongoError) -> HTTPException:
    logger.exception("Error %s", action)
    return HTTPException(status_code=502, detail=f"Failed {action}: {str(exc)[:120]}")


def get_gateway() -> MatchGateway:
    if state.gateway is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    return state.gateway


def get_session() -> TrackingSession:
    if state.session is None:
        raise HTTPException(status_code=404, detail="No tracking session, start one from setup")
    return state.session

# ----------------------
# Basic endpoints
# ----------------------
@app.get("/")
def read_root():
    return {"message": "Match Tagger API is running"}

@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
        "database_name": "✅ Set" if os.getenv("DATABASE_NAME") else "❌ Not Set",
        "collections": []
    }
    try:
        if state.gateway is None:
            response["database"] = "❌ Not Connected"
        else:
            response["database"] = "✅ Connected"
            response["collections"] = state.gateway.db.list_collection_names()
    except PyMongoError as e:
        response["database"] = f"⚠️ Error: {str(e)[:80]}"
    return response

# Expose schemas (lightweight) so viewers can inspect
@app.get("/schema")
def get_schema():
    return {
        "player": PlayerSchema.model_json_schema(),
        "match": MatchSchema.model_json_schema(),
        "event": MatchEventSchema.model_json_schema(),
        "setup_draft": SetupDraft.model_json_schema(),
    }

@app.get("/event-types", response_model=List[str])
def list_event_types():
    return EVENT_TYPES

# ----------------------
# Setup
# ----------------------
@app.get("/setup", response_model=SetupDraft)
def get_setup():
    return state.setup.draft

@app.put("/setup", response_model=SetupDraft)
def update_setup(payload: SetupUpdate):
    if payload.youtube_id is not None:
        state.setup.set_video(payload.youtube_id)
    if payload.home_team_name is not None or payload.away_team_name is not None:
        state.setup.set_team_names(payload.home_team_name, payload.away_team_name)
    return state.setup.draft

@app.delete("/setup", response_model=SetupDraft)
def reset_setup():
    state.setup.reset()
    return state.setup.draft

@app.post("/setup/players", response_model=PlayerSchema)
def add_setup_player(payload: PlayerCreate):
    player = state.setup.add_player(payload.name, payload.number, payload.team)
    if player is None:
        raise HTTPException(status_code=400, detail="Player name and number are required")
    return player

@app.patch("/setup/players/{player_id}", response_model=PlayerSchema)
def edit_setup_player(player_id: str, payload: PlayerPatch):
    return state.setup.edit_player(player_id, payload.model_dump(exclude_none=True))

@app.delete("/setup/players/{player_id}", response_model=SetupDraft)
def remove_setup_player(player_id: str):
    state.setup.remove_player(player_id)
    return state.setup.draft

@app.post("/setup/start")
def start_tracking():
    draft = state.setup.start_tracking()
    state.close_session()
    session = TrackingSession(
        draft,
        gateway=state.gateway,
        event_store=state.event_log,
        on_roster_change=state.setup.replace_players,
        timer_factory=state.timer_factory,
        poll=state.poll,
    )
    try:
        session.restore()
    except PyMongoError:
        logger.exception("Could not load stored events for %s", draft.youtube_id)
        session.status.last_error = "Could not load stored events, starting with an empty list"
    state.session = session
    return session.snapshot()

# ----------------------
# Tracking
# ----------------------
@app.get("/tracking")
def get_tracking():
    return get_session().snapshot()

@app.post("/tracking/playback")
def report_playback(payload: PlaybackReport):
    session = get_session()
    session.report_playback(payload.current_time, payload.state)
    return {"current_time": session.current_time}

@app.post("/tracking/select")
def select(payload: Selection):
    session = get_session()
    if "player_id" in payload.model_fields_set:
        session.select_player(payload.player_id)
    if "event_type" in payload.model_fields_set:
        session.select_event_type(payload.event_type)
    return {
        "selected_player_id": session.selected_player_id,
        "selected_event_type": session.selected_event_type,
    }

@app.post("/tracking/events", response_model=MatchEventSchema)
def track_event():
    event = get_session().track_event()
    if event is None:
        raise HTTPException(status_code=400, detail="Select a player and an event type first")
    return event

@app.patch("/tracking/events/{event_id}", response_model=MatchEventSchema)
def edit_event(event_id: str, payload: EventPatch):
    return get_session().edit_event(event_id, payload.model_dump(exclude_unset=True))

@app.delete("/tracking/events/{event_id}")
def delete_event(event_id: str):
    get_session().delete_event(event_id)
    return {"deleted": event_id}

@app.patch("/tracking/players/{player_id}", response_model=PlayerSchema)
def edit_tracking_player(player_id: str, payload: PlayerPatch):
    return get_session().edit_player(player_id, payload.model_dump(exclude_none=True))

@app.delete("/tracking/players/{player_id}")
def remove_tracking_player(player_id: str, confirm: bool = False):
    removed_events = get_session().remove_player(player_id, confirm=confirm)
    return {"deleted": player_id, "removed_events": removed_events}

@app.post("/tracking/save")
def save_tracking():
    session = get_session()
    get_gateway()
    try:
        match_id = session.save()
    except PyMongoError as e:
        raise remote_failure("to save match data", e)
    return {"match_id": match_id, "status": session.status.model_dump()}

# ----------------------
# Matches
# ----------------------
@app.get("/matches", response_model=List[MatchSchema])
def list_matches():
    try:
        return get_gateway().list_matches()
    except PyMongoError as e:
        raise remote_failure("to list matches", e)

@app.get("/matches/by-video/{youtube_id}", response_model=MatchSchema)
def get_match_by_video(youtube_id: str):
    try:
        match = get_gateway().find_by_external_id(youtube_id)
    except PyMongoError as e:
        raise remote_failure("to look up match", e)
    if match is None:
        raise HTTPException(status_code=404, detail="Match not found")
    return match

@app.get("/matches/{match_id}", response_model=MatchSchema)
def get_match(match_id: str):
    try:
        return get_gateway().get_match(match_id)
    except PyMongoError as e:
        raise remote_failure("to get match", e)

@app.get("/matches/{match_id}/events", response_model=List[MatchEventSchema])
def get_match_events(match_id: str):
    try:
        return get_gateway().events_for(match_id)
    except PyMongoError as e:
        raise remote_failure("to get match events", e)

@app.post("/matches")
def save_match(payload: MatchSave):
    try:
        match_id = get_gateway().upsert(payload.match, payload.events)
    except PyMongoError as e:
        raise remote_failure("to save match", e)
    return {"match_id": match_id}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=PORT)
