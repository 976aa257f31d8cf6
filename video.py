"""
Video playback adapter.

The browser embeds the YouTube player and reports its position to us; that
report lands in a ReportedPlayer. VideoPlayer polls the attached player on a
fixed interval and forwards the time to its owner, plus a separate callback
when playback pauses.
"""
import logging
import threading
from typing import Callable, Optional
from urllib.parse import urlencode, urlparse, parse_qs

from config import POLL_INTERVAL, PLAYER_VARS

logger = logging.getLogger(__name__)

EMBED_BASE = "https://www.youtube.com/embed/"


def extract_video_id(text: str) -> str:
    """Return the video id from a bare id or a YouTube watch/short/embed URL."""
    text = (text or "").strip()
    if not text or "/" not in text:
        return text
    parsed = urlparse(text if "://" in text else "https://" + text)
    host = parsed.netloc.lower()
    if host.endswith("youtu.be"):
        return parsed.path.lstrip("/").split("/")[0]
    query_id = parse_qs(parsed.query).get("v")
    if query_id:
        return query_id[0]
    parts = [p for p in parsed.path.split("/") if p]
    if len(parts) >= 2 and parts[0] in ("embed", "shorts", "live", "v"):
        return parts[1]
    return text


def embed_url(video_id: str) -> str:
    return f"{EMBED_BASE}{video_id}?{urlencode(PLAYER_VARS)}"


class ReportedPlayer:
    """Last position and state the browser-side player told us about."""

    def __init__(self):
        self._lock = threading.Lock()
        self._current_time = 0.0
        self.state = "unstarted"

    def report(self, current_time: float, state: str):
        with self._lock:
            self._current_time = current_time
            self.state = state

    def get_current_time(self) -> float:
        with self._lock:
            return self._current_time


class VideoPlayer:
    def __init__(
        self,
        video_id: str,
        on_time_update: Callable[[float], None],
        on_pause: Optional[Callable[[float], None]] = None,
        interval: float = POLL_INTERVAL,
    ):
        self.video_id = video_id
        self.on_time_update = on_time_update
        self.on_pause = on_pause
        self.interval = interval
        self.player = None
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def url(self) -> str:
        return embed_url(self.video_id)

    def ready(self, player, start_polling: bool = True):
        """Attach the underlying player once it has loaded."""
        logger.info("Player is ready for %s", self.video_id)
        self.player = player
        if start_polling:
            self.start()

    def poll_once(self) -> Optional[float]:
        if self.player is None:
            return None
        try:
            current_time = self.player.get_current_time()
        except Exception:
            logger.exception("Error getting current time")
            return None
        self.on_time_update(current_time)
        return current_time

    def paused(self):
        if self.player is None:
            return
        current_time = self.player.get_current_time()
        logger.debug("Video paused at %.2f", current_time)
        if self.on_pause:
            self.on_pause(current_time)

    def _run(self):
        while not self._stop.wait(self.interval):
            self.poll_once()

    def start(self):
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name=f"poll-{self.video_id}", daemon=True)
        self._thread.start()

    def stop(self):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=1)
            self._thread = None
