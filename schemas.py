"""
Database Schemas for the Match Tagger

Each Pydantic model describes a stored record or a request body. Matches live
in the "matches" collection; players and events are embedded inside them.

Use these models for validation in API endpoints and to keep a clear contract of stored data.
"""
from typing import Optional, List, Literal, Any, Dict, Union
from pydantic import BaseModel, Field
from datetime import datetime

TeamSide = Literal["home", "away"]

# Core domain schemas

class Player(BaseModel):
    id: str = Field(..., description="Client-generated id, unique within one roster")
    name: str = Field(..., description="Display name")
    number: int = Field(..., ge=0, le=99, description="Jersey number")
    team: TeamSide = Field(..., description="Which side the player is on")

class MatchEvent(BaseModel):
    # stored embedded inside Match.events
    id: str = Field(..., description="Client-generated event id")
    match_id: Optional[str] = Field(None, description="Match ObjectId as string, set once the match is stored")
    timestamp: float = Field(..., ge=0, description="Playback position in seconds")
    time_string: str = Field(..., description="Playback position as M:SS")
    player_id: str
    player_name: str = Field(..., description="Snapshot of the player's name")
    player_number: int = Field(..., description="Snapshot of the player's jersey number")
    event_type: str
    additional_data: Optional[Dict[str, Any]] = None

class Match(BaseModel):
    id: Optional[str] = Field(None, description="Assigned by the database")
    youtube_id: str = Field(..., description="External video id, the natural key of a match")
    home_team_name: str
    away_team_name: str
    date: datetime = Field(default_factory=datetime.utcnow)
    players: List[Player] = Field(default_factory=list)

# Local draft kept between restarts

class SetupDraft(BaseModel):
    youtube_id: str = ""
    home_team_name: str = ""
    away_team_name: str = ""
    players: List[Player] = Field(default_factory=list)

class EventLog(BaseModel):
    youtube_id: str
    events: List[MatchEvent] = Field(default_factory=list)

# Request bodies

class SetupUpdate(BaseModel):
    youtube_id: Optional[str] = Field(None, description="Video id or full YouTube URL")
    home_team_name: Optional[str] = None
    away_team_name: Optional[str] = None

class PlayerCreate(BaseModel):
    name: str = ""
    number: Optional[Union[int, str]] = Field(None, description="Jersey number as typed; blank is rejected")
    team: TeamSide = "home"

class PlayerPatch(BaseModel):
    name: Optional[str] = None
    number: Optional[int] = Field(None, ge=0, le=99)
    team: Optional[TeamSide] = None

class EventPatch(BaseModel):
    time_string: Optional[str] = None
    timestamp: Optional[float] = Field(None, ge=0)
    player_id: Optional[str] = None
    event_type: Optional[str] = None
    additional_data: Optional[Dict[str, Any]] = None

class PlaybackReport(BaseModel):
    current_time: float = Field(..., ge=0)
    state: Literal["playing", "paused", "buffering", "ended", "unstarted", "cued"] = "playing"

class Selection(BaseModel):
    player_id: Optional[str] = None
    event_type: Optional[str] = None

class MatchSave(BaseModel):
    match: Match
    events: List[MatchEvent] = Field(default_factory=list)

class SessionStatus(BaseModel):
    match_id: Optional[str] = None
    saving: bool = False
    last_saved_at: Optional[datetime] = None
    last_error: Optional[str] = None
