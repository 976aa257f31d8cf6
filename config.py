"""
Settings for the Match Tagger API.

Everything is read from the environment so the same code runs locally and
in a container. Constants used by validation live here too.
"""
import os

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")

# Local durable storage for the setup draft and the unsaved event list
DRAFT_DIR = os.getenv("DRAFT_DIR", ".drafts")
SETUP_DRAFT_FILE = "setup.json"
EVENT_LOG_FILE = "events.json"

# Seconds of quiet before local changes are pushed to the database
AUTOSAVE_DELAY = float(os.getenv("AUTOSAVE_DELAY", "1.0"))

# Seconds between playback position reads
POLL_INTERVAL = float(os.getenv("POLL_INTERVAL", "0.1"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
PORT = int(os.getenv("PORT", 8000))

MATCH_COLLECTION = "matches"

EVENT_TYPES = [
    "Pass",
    "Bad pass",
    "Receiving",
    "Bad receiving",
    "Shot on target",
    "Shot off target",
    "Dribble",
    "Goal",
    "Assist",
    "Defense",
]

MIN_PLAYERS = 2

# Embedded player options
PLAYER_VARS = {
    "autoplay": 0,
    "modestbranding": 1,
    "rel": 0,
}
