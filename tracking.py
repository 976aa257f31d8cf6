"""
Tracking session: tag the current playback time with a player and an event type.

The session owns the roster and the event list for one video. Local changes
are written to the event log store at once and pushed to the database by a
debounced autosave; save() pushes immediately through the same upsert.
"""
import logging
import threading
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from pymongo.errors import PyMongoError

from autosave import DebouncedSaver
from config import AUTOSAVE_DELAY, EVENT_TYPES
from drafts import InMemoryStore
from schemas import EventLog, Match, MatchEvent, Player, SessionStatus, SetupDraft
from setup_store import PlayerNotFound
from timecode import format_time, parse_time, is_time_string, is_partial_time_string
from video import ReportedPlayer, VideoPlayer

logger = logging.getLogger(__name__)


class EventValidationError(Exception):
    pass


class EventNotFound(Exception):
    def __init__(self, event_id: str):
        super().__init__(f"Event not found: {event_id}")
        self.event_id = event_id


class ConfirmationRequired(Exception):
    def __init__(self, player: Player, event_count: int):
        super().__init__(
            f"Removing {player.name} ({player.number}) also deletes {event_count} tracked events"
        )
        self.player = player
        self.event_count = event_count


def new_event_id() -> str:
    return f"event_{uuid.uuid4().hex[:12]}"


class TrackingSession:
    def __init__(
        self,
        draft: SetupDraft,
        gateway=None,
        event_store=None,
        on_roster_change: Optional[Callable[[List[Player]], None]] = None,
        autosave_delay: float = AUTOSAVE_DELAY,
        timer_factory=threading.Timer,
        poll: bool = True,
    ):
        self.youtube_id = draft.youtube_id
        self.home_team_name = draft.home_team_name
        self.away_team_name = draft.away_team_name
        self.players: List[Player] = [p.model_copy() for p in draft.players]
        self.events: List[MatchEvent] = []

        self.current_time = 0.0
        self.selected_player_id: Optional[str] = None
        self.selected_event_type: Optional[str] = None
        self.status = SessionStatus()

        self.gateway = gateway
        self.event_store = event_store if event_store is not None else InMemoryStore()
        self.on_roster_change = on_roster_change
        self._lock = threading.RLock()
        self.saver = DebouncedSaver(self._autosave, delay=autosave_delay, timer_factory=timer_factory)

        self.playback = ReportedPlayer()
        self.video = VideoPlayer(self.youtube_id, self.update_time, self.pause_at)
        self.video.ready(self.playback, start_polling=poll)

    # --- loading -----------------------------------------------------------

    def restore(self) -> str:
        """Load events from the local log, or from the stored match if there is none."""
        log = self.event_store.load()
        if log is not None and log.youtube_id == self.youtube_id and log.events:
            with self._lock:
                self.events = list(log.events)
            logger.info("Restored %d unsaved events for %s", len(self.events), self.youtube_id)
            return "local"
        if self.gateway is None:
            return "none"
        match = self.gateway.find_by_external_id(self.youtube_id)
        if match is None:
            return "none"
        events = self.gateway.events_for(match.id)
        with self._lock:
            self.events = events
            self.status.match_id = match.id
        logger.info("Loaded %d events of match %s", len(events), match.id)
        return "remote"

    # --- playback ----------------------------------------------------------

    def update_time(self, current_time: float):
        with self._lock:
            self.current_time = current_time

    def pause_at(self, current_time: float):
        logger.debug("Video paused at: %.2f", current_time)
        self.update_time(current_time)

    def report_playback(self, current_time: float, state: str):
        self.playback.report(current_time, state)
        if state == "paused":
            self.video.paused()

    # --- selection ---------------------------------------------------------

    def _player(self, player_id: str) -> Player:
        for p in self.players:
            if p.id == player_id:
                return p
        raise PlayerNotFound(player_id)

    def select_player(self, player_id: Optional[str]):
        with self._lock:
            if player_id is not None:
                self._player(player_id)
            self.selected_player_id = player_id

    def select_event_type(self, event_type: Optional[str]):
        if event_type and event_type not in EVENT_TYPES:
            raise EventValidationError(f"Unknown event type: {event_type}")
        with self._lock:
            self.selected_event_type = event_type or None

    # --- events ------------------------------------------------------------

    def track_event(self) -> Optional[MatchEvent]:
        """Tag the current time. Needs a selected player and event type, else does nothing."""
        with self._lock:
            if not self.selected_player_id or not self.selected_event_type:
                return None
            player = self._player(self.selected_player_id)
            event = MatchEvent(
                id=new_event_id(),
                match_id=self.status.match_id,
                timestamp=self.current_time,
                time_string=format_time(self.current_time),
                player_id=player.id,
                player_name=player.name,
                player_number=player.number,
                event_type=self.selected_event_type,
            )
            self.events.append(event)
            # keep the player selected for quick consecutive tagging
            self.selected_event_type = None
            self._changed()
            return event

    def _find_event(self, event_id: str):
        for i, ev in enumerate(self.events):
            if ev.id == event_id:
                return i, ev
        raise EventNotFound(event_id)

    def edit_event(self, event_id: str, patch: Dict[str, Any]) -> MatchEvent:
        with self._lock:
            idx, ev = self._find_event(event_id)
            data = ev.model_dump()

            event_type = patch.get("event_type")
            if event_type is not None:
                if event_type not in EVENT_TYPES:
                    raise EventValidationError(f"Unknown event type: {event_type}")
                data["event_type"] = event_type

            player_id = patch.get("player_id")
            if player_id is not None and player_id != ev.player_id:
                try:
                    player = self._player(player_id)
                except PlayerNotFound:
                    raise EventValidationError(f"Unknown player: {player_id}")
                data.update(player_id=player.id, player_name=player.name, player_number=player.number)

            if patch.get("timestamp") is not None:
                data["timestamp"] = patch["timestamp"]
                data["time_string"] = format_time(patch["timestamp"])

            time_string = patch.get("time_string")
            if time_string is not None:
                if is_time_string(time_string):
                    data["time_string"] = time_string
                    data["timestamp"] = parse_time(time_string)
                elif is_partial_time_string(time_string):
                    # still being typed, timestamp follows once it is complete
                    data["time_string"] = time_string
                else:
                    raise EventValidationError(f"Invalid time: {time_string!r} (expected MM:SS)")

            if "additional_data" in patch:
                data["additional_data"] = patch["additional_data"]

            updated = MatchEvent.model_validate(data)
            self.events[idx] = updated
            self._changed()
            return updated

    def delete_event(self, event_id: str):
        with self._lock:
            idx, _ = self._find_event(event_id)
            del self.events[idx]
            self._changed()

    # --- roster ------------------------------------------------------------

    def resync_events_for_player(self, player_id: str, name: str, number: int) -> int:
        """Rewrite the name/number snapshot on every event of one player."""
        count = 0
        with self._lock:
            for i, ev in enumerate(self.events):
                if ev.player_id == player_id:
                    self.events[i] = ev.model_copy(update={"player_name": name, "player_number": number})
                    count += 1
        return count

    def edit_player(self, player_id: str, patch: Dict[str, Any]) -> Player:
        with self._lock:
            old = self._player(player_id)
            updated = Player.model_validate({**old.model_dump(), **patch, "id": player_id})
            self.players = [updated if p.id == player_id else p for p in self.players]
            if (updated.name, updated.number) != (old.name, old.number):
                resynced = self.resync_events_for_player(player_id, updated.name, updated.number)
                logger.info("Updated %d events for player %s", resynced, player_id)
            self._roster_changed()
            self._changed()
            return updated

    def remove_player(self, player_id: str, confirm: bool = False) -> int:
        """Remove a player and all of their events; returns how many events went with them."""
        with self._lock:
            player = self._player(player_id)
            affected = sum(1 for ev in self.events if ev.player_id == player_id)
            if affected and not confirm:
                raise ConfirmationRequired(player, affected)
            self.players = [p for p in self.players if p.id != player_id]
            self.events = [ev for ev in self.events if ev.player_id != player_id]
            if self.selected_player_id == player_id:
                self.selected_player_id = None
            self._roster_changed()
            self._changed()
            return affected

    def _roster_changed(self):
        if self.on_roster_change is not None:
            self.on_roster_change([p.model_copy() for p in self.players])

    # --- persistence -------------------------------------------------------

    def _changed(self):
        self.event_store.save(EventLog(youtube_id=self.youtube_id, events=list(self.events)))
        if self.gateway is not None:
            self.saver.schedule()

    def to_match(self) -> Match:
        return Match(
            id=self.status.match_id,
            youtube_id=self.youtube_id,
            home_team_name=self.home_team_name,
            away_team_name=self.away_team_name,
            date=datetime.utcnow(),
            players=[p.model_copy() for p in self.players],
        )

    def save(self) -> str:
        """Push the match and its events to the database now."""
        if self.gateway is None:
            raise RuntimeError("Database not configured")
        # this save covers any change the pending autosave was waiting for
        self.saver.cancel()
        with self._lock:
            match = self.to_match()
            events = [ev.model_copy(deep=True) for ev in self.events]
            self.status.saving = True
        try:
            match_id = self.gateway.upsert(match, events)
        except PyMongoError as e:
            with self._lock:
                self.status.saving = False
                self.status.last_error = f"Failed to save match data: {e}"
            raise
        with self._lock:
            self.status.saving = False
            self.status.match_id = match_id
            self.status.last_saved_at = datetime.utcnow()
            self.status.last_error = None
            self.events = [
                ev if ev.match_id == match_id else ev.model_copy(update={"match_id": match_id})
                for ev in self.events
            ]
        return match_id

    def _autosave(self):
        try:
            self.save()
        except PyMongoError:
            logger.exception("Autosave of %s failed", self.youtube_id)

    def close(self):
        self.video.stop()
        if self.saver.pending:
            self.saver.cancel()
            self._autosave()

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "youtube_id": self.youtube_id,
                "embed_url": self.video.url,
                "home_team_name": self.home_team_name,
                "away_team_name": self.away_team_name,
                "players": [p.model_dump() for p in self.players],
                "events": [ev.model_dump() for ev in self.events],
                "current_time": self.current_time,
                "current_time_string": format_time(self.current_time),
                "selected_player_id": self.selected_player_id,
                "selected_event_type": self.selected_event_type,
                "status": self.status.model_dump(),
            }
