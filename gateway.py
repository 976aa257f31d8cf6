"""
Persistence gateway for matches and their embedded events.

A match is keyed by its external video id (youtube_id). Saving the same
video twice updates the stored match in place instead of adding a second one.
"""
import logging
import threading
from datetime import datetime
from typing import Any, Dict, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from config import MATCH_COLLECTION
from database import create_document
from schemas import Match, MatchEvent

logger = logging.getLogger(__name__)


class MatchNotFound(Exception):
    def __init__(self, match_id: str):
        super().__init__(f"Match not found: {match_id}")
        self.match_id = match_id


def to_object_id(id_str: Optional[str]) -> Optional[ObjectId]:
    if id_str is None:
        return None
    try:
        return ObjectId(id_str)
    except (InvalidId, TypeError):
        return None


def serialize_doc(doc: Dict[str, Any]) -> Dict[str, Any]:
    if not doc:
        return doc
    d = dict(doc)
    if d.get("_id"):
        d["id"] = str(d.pop("_id"))
    for k, v in d.items():
        if isinstance(v, ObjectId):
            d[k] = str(v)
    return d


class MatchGateway:
    def __init__(self, database: Database):
        self.db = database
        self.collection = database[MATCH_COLLECTION]
        self._key_locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def ensure_indexes(self):
        self.collection.create_index("youtube_id", unique=True)

    def _lock_for(self, youtube_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._key_locks.setdefault(youtube_id, threading.Lock())

    def find_by_external_id(self, youtube_id: str) -> Optional[Match]:
        doc = self.collection.find_one({"youtube_id": youtube_id}, {"events": 0})
        if not doc:
            return None
        return Match.model_validate(serialize_doc(doc))

    def get_match(self, match_id: str) -> Match:
        oid = to_object_id(match_id)
        doc = self.collection.find_one({"_id": oid}, {"events": 0}) if oid else None
        if not doc:
            raise MatchNotFound(match_id)
        return Match.model_validate(serialize_doc(doc))

    def upsert(self, match: Match, events: List[MatchEvent]) -> str:
        """Create or update the match stored for match.youtube_id and return its id."""
        with self._lock_for(match.youtube_id):
            existing = self.collection.find_one({"youtube_id": match.youtube_id}, {"_id": 1})
            if existing:
                return self._update(existing["_id"], match, events)
            try:
                return self._insert(match, events)
            except DuplicateKeyError:
                # another process created it between our read and insert
                logger.info("Match for %s created concurrently, updating instead", match.youtube_id)
                existing = self.collection.find_one({"youtube_id": match.youtube_id}, {"_id": 1})
                return self._update(existing["_id"], match, events)

    def _match_fields(self, match: Match) -> Dict[str, Any]:
        data = match.model_dump(exclude={"id"})
        data["date"] = datetime.utcnow()
        return data

    def _update(self, oid: ObjectId, match: Match, events: List[MatchEvent]) -> str:
        match_id = str(oid)
        now = datetime.utcnow()
        stored_events = [
            {**ev.model_dump(), "match_id": match_id, "updated_at": now}
            for ev in events
        ]
        data = self._match_fields(match)
        data["events"] = stored_events
        data["updated_at"] = now
        self.collection.update_one({"_id": oid}, {"$set": data})
        logger.info("Updated match %s (%s) with %d events", match_id, match.youtube_id, len(events))
        return match_id

    def _insert(self, match: Match, events: List[MatchEvent]) -> str:
        now = datetime.utcnow()
        oid = ObjectId()
        data = self._match_fields(match)
        data["_id"] = oid
        data["events"] = [
            {**ev.model_dump(), "match_id": str(oid), "created_at": now}
            for ev in events
        ]
        match_id = create_document(MATCH_COLLECTION, data, database=self.db)
        logger.info("Created match %s (%s) with %d events", match_id, match.youtube_id, len(events))
        return match_id

    def events_for(self, match_id: str) -> List[MatchEvent]:
        oid = to_object_id(match_id)
        doc = self.collection.find_one({"_id": oid}, {"events": 1}) if oid else None
        if not doc:
            raise MatchNotFound(match_id)
        return [
            MatchEvent.model_validate({**ev, "match_id": match_id})
            for ev in doc.get("events") or []
        ]

    def list_matches(self) -> List[Match]:
        docs = self.collection.find({}, {"events": 0}).sort("date", -1)
        return [Match.model_validate(serialize_doc(d)) for d in docs]
