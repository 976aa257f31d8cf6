import mongomock
import pytest

from schemas import Player, SetupDraft


class FakeTimer:
    """Stands in for threading.Timer; tests fire it by hand."""

    def __init__(self, delay, fn):
        self.delay = delay
        self.fn = fn
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.fn()


@pytest.fixture
def timers():
    created = []

    def factory(delay, fn):
        timer = FakeTimer(delay, fn)
        created.append(timer)
        return timer

    factory.created = created
    return factory


@pytest.fixture
def mongo_db():
    return mongomock.MongoClient()["match_tagger_test"]


@pytest.fixture
def gateway(mongo_db):
    from gateway import MatchGateway

    gw = MatchGateway(mongo_db)
    gw.ensure_indexes()
    return gw


@pytest.fixture
def roster():
    return [
        Player(id="player_a", name="A", number=10, team="home"),
        Player(id="player_b", name="B", number=7, team="away"),
    ]


@pytest.fixture
def draft(roster):
    return SetupDraft(
        youtube_id="abc123",
        home_team_name="Home FC",
        away_team_name="Away United",
        players=roster,
    )
