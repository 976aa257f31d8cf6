"""
Match setup: video reference, team names and roster.

Every change is written straight to the draft store so an interrupted setup
can be picked up again.
"""
import logging
import threading
import uuid
from typing import Any, Dict, List, Optional

from config import MIN_PLAYERS
from drafts import InMemoryStore
from schemas import Player, SetupDraft
from video import extract_video_id

logger = logging.getLogger(__name__)


class SetupValidationError(Exception):
    pass


class PlayerNotFound(Exception):
    def __init__(self, player_id: str):
        super().__init__(f"Player not found: {player_id}")
        self.player_id = player_id


def new_player_id() -> str:
    return f"player_{uuid.uuid4().hex[:12]}"


class MatchSetup:
    def __init__(self, store=None):
        self.store = store if store is not None else InMemoryStore()
        self.draft = self.store.load() or SetupDraft()
        # handlers and tracking sessions call in from different threads
        self._lock = threading.RLock()

    def _persist(self):
        with self._lock:
            self.store.save(self.draft)

    def set_video(self, youtube_id: str):
        with self._lock:
            self.draft.youtube_id = extract_video_id(youtube_id)
            self._persist()

    def set_team_names(self, home: Optional[str] = None, away: Optional[str] = None):
        with self._lock:
            if home is not None:
                self.draft.home_team_name = home.strip()
            if away is not None:
                self.draft.away_team_name = away.strip()
            self._persist()

    def add_player(self, name: str, number: Any, team: str = "home") -> Optional[Player]:
        """Append a player to the roster. Blank name or number adds nothing."""
        name = (name or "").strip()
        number_text = "" if number is None else str(number).strip()
        if not name or not number_text:
            return None
        try:
            parsed_number = int(number_text)
        except ValueError:
            raise SetupValidationError(f"Invalid jersey number: {number_text}")
        if not 0 <= parsed_number <= 99:
            raise SetupValidationError(f"Jersey number must be between 0 and 99: {parsed_number}")
        player = Player(id=new_player_id(), name=name, number=parsed_number, team=team)
        with self._lock:
            self.draft.players.append(player)
            self._persist()
        return player

    def remove_player(self, player_id: str):
        with self._lock:
            remaining = [p for p in self.draft.players if p.id != player_id]
            if len(remaining) == len(self.draft.players):
                raise PlayerNotFound(player_id)
            self.draft.players = remaining
            self._persist()

    def edit_player(self, player_id: str, patch: Dict[str, Any]) -> Player:
        with self._lock:
            for i, p in enumerate(self.draft.players):
                if p.id == player_id:
                    updated = Player.model_validate({**p.model_dump(), **patch, "id": player_id})
                    self.draft.players[i] = updated
                    self._persist()
                    return updated
        raise PlayerNotFound(player_id)

    def replace_players(self, players: List[Player]):
        with self._lock:
            self.draft.players = list(players)
            self._persist()

    def reset(self):
        with self._lock:
            self.draft = SetupDraft()
            self._persist()

    def validate(self):
        d = self.draft
        if not d.youtube_id or not d.home_team_name or not d.away_team_name or len(d.players) < MIN_PLAYERS:
            raise SetupValidationError(
                "Please fill in the video id and both team names and add at least two players"
            )

    def start_tracking(self) -> SetupDraft:
        """Check the draft is complete and hand a copy to the tracking session."""
        with self._lock:
            self.validate()
            logger.info("Starting tracking for video %s", self.draft.youtube_id)
            return self.draft.model_copy(deep=True)
