"""
Local durable storage for work that has not reached the database yet.

The setup form and the tracked event list are each kept as one JSON file so
they survive a restart. Stores expose load() / save(value) and nothing else,
which lets the setup and tracking code run against InMemoryStore in tests.
"""
import logging
import os
import tempfile
from typing import Generic, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from config import DRAFT_DIR, SETUP_DRAFT_FILE, EVENT_LOG_FILE
from schemas import SetupDraft, EventLog

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class InMemoryStore(Generic[T]):
    def __init__(self, value: Optional[T] = None):
        self.value = value

    def load(self) -> Optional[T]:
        return self.value

    def save(self, value: Optional[T]):
        self.value = value


class JsonFileStore(Generic[T]):
    model: Type[T]

    def __init__(self, path: str):
        self.path = path

    def load(self) -> Optional[T]:
        if not os.path.exists(self.path):
            return None
        try:
            with open(self.path, "rb") as fh:
                return self.model.model_validate_json(fh.read())
        except (ValidationError, UnicodeDecodeError, OSError) as e:
            logger.warning("Ignoring unreadable draft %s: %s", self.path, e)
            return None

    def save(self, value: Optional[T]):
        if value is None:
            if os.path.exists(self.path):
                os.remove(self.path)
            return
        directory = os.path.dirname(self.path) or "."
        os.makedirs(directory, exist_ok=True)
        # one temp file per write so concurrent saves never share a path
        with tempfile.NamedTemporaryFile("w", encoding="utf-8", dir=directory, suffix=".tmp", delete=False) as fh:
            fh.write(value.model_dump_json(indent=2))
            tmp_path = fh.name
        try:
            os.replace(tmp_path, self.path)
        except OSError:
            os.remove(tmp_path)
            raise


class SetupDraftStore(JsonFileStore[SetupDraft]):
    model = SetupDraft

    def __init__(self, directory: str = DRAFT_DIR):
        super().__init__(os.path.join(directory, SETUP_DRAFT_FILE))


class EventLogStore(JsonFileStore[EventLog]):
    model = EventLog

    def __init__(self, directory: str = DRAFT_DIR):
        super().__init__(os.path.join(directory, EVENT_LOG_FILE))
