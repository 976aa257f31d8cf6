"""
Conversion between playback seconds and the M:SS strings shown to users.

Editable times stop at 99:59. Past that format_time still works (6000 s is
"100:00") but the text no longer matches TIME_PATTERN, so such an event can
only be retimed through its timestamp.
"""
import math
import re

TIME_PATTERN = re.compile(r"[0-9]{1,2}:[0-9]{2}")
MAX_PARTIAL_LENGTH = 5


def format_time(seconds: float) -> str:
    if seconds < 0:
        raise ValueError(f"Negative playback time: {seconds}")
    mins = math.floor(seconds / 60)
    secs = math.floor(seconds % 60)
    return f"{mins}:{secs:02d}"


def parse_time(text: str) -> int:
    if not is_time_string(text):
        raise ValueError(f"Invalid time string: {text!r} (expected MM:SS)")
    minutes, seconds = text.split(":")
    return int(minutes) * 60 + int(seconds)


def is_time_string(text: str) -> bool:
    return bool(TIME_PATTERN.fullmatch(text or ""))


def is_partial_time_string(text: str) -> bool:
    """True for text that could still become a valid time while typing."""
    return len(text) <= MAX_PARTIAL_LENGTH
