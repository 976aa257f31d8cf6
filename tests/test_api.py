"""
Tests for the HTTP surface.
"""

from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient
from pymongo.errors import PyMongoError

import main


@pytest.fixture
def client(mongo_db, tmp_path, timers):
    main.state.configure(mongo_db, draft_dir=str(tmp_path), timer_factory=timers, poll=False)
    main.state.gateway.ensure_indexes()
    yield TestClient(main.app)
    main.state.close_session()


def fill_setup(client):
    client.put("/setup", json={
        "youtube_id": "https://youtu.be/abc123",
        "home_team_name": "Home FC",
        "away_team_name": "Away United",
    })
    a = client.post("/setup/players", json={"name": "A", "number": "10", "team": "home"}).json()
    b = client.post("/setup/players", json={"name": "B", "number": 7, "team": "away"}).json()
    return a, b


class TestBasics:

    def test_root_and_event_types(self, client):
        assert client.get("/").status_code == 200
        types = client.get("/event-types").json()
        assert "Goal" in types and "Bad pass" in types

    def test_schema(self, client):
        body = client.get("/schema").json()
        assert set(body) == {"player", "match", "event", "setup_draft"}

    def test_database_report(self, client):
        assert client.get("/test").json()["database"] == "✅ Connected"


class TestSetupEndpoints:

    def test_blank_player_rejected(self, client):
        resp = client.post("/setup/players", json={"name": "", "number": "10"})
        assert resp.status_code == 400
        assert client.get("/setup").json()["players"] == []

    def test_incomplete_setup_cannot_start(self, client):
        client.put("/setup", json={"youtube_id": "abc123"})
        resp = client.post("/setup/start")
        assert resp.status_code == 400
        assert "two players" in resp.json()["detail"]
        assert client.get("/tracking").status_code == 404

    def test_edit_and_remove(self, client):
        a, b = fill_setup(client)

        resp = client.patch(f"/setup/players/{a['id']}", json={"name": "Alan"})
        assert resp.json()["name"] == "Alan"

        draft = client.delete(f"/setup/players/{b['id']}").json()
        assert [p["id"] for p in draft["players"]] == [a["id"]]

        assert client.delete("/setup/players/player_missing").status_code == 404

    def test_video_url_is_reduced_to_id(self, client):
        fill_setup(client)
        assert client.get("/setup").json()["youtube_id"] == "abc123"


class TestTrackingEndpoints:

    def test_tag_edit_save_and_fetch(self, client):
        a, b = fill_setup(client)
        state = client.post("/setup/start").json()
        assert state["embed_url"].startswith("https://www.youtube.com/embed/abc123")

        client.post("/tracking/playback", json={"current_time": 125.4, "state": "paused"})
        assert client.post("/tracking/events").status_code == 400

        client.post("/tracking/select", json={"player_id": a["id"], "event_type": "Goal"})
        event = client.post("/tracking/events").json()
        assert event["time_string"] == "2:05"
        assert event["player_number"] == 10

        selection = client.get("/tracking").json()
        assert selection["selected_player_id"] == a["id"]
        assert selection["selected_event_type"] is None

        edited = client.patch(f"/tracking/events/{event['id']}", json={"time_string": "3:00"}).json()
        assert edited["timestamp"] == 180

        bad = client.patch(f"/tracking/events/{event['id']}", json={"time_string": "3:000:0"})
        assert bad.status_code == 400

        saved = client.post("/tracking/save").json()
        match_id = saved["match_id"]

        events = client.get(f"/matches/{match_id}/events").json()
        assert [e["event_type"] for e in events] == ["Goal"]
        assert client.get("/matches/by-video/abc123").json()["id"] == match_id
        assert client.get(f"/matches/{match_id}").json()["home_team_name"] == "Home FC"
        assert [m["youtube_id"] for m in client.get("/matches").json()] == ["abc123"]

    def test_player_removal_requires_confirmation(self, client):
        a, b = fill_setup(client)
        client.post("/setup/start")
        client.post("/tracking/playback", json={"current_time": 5, "state": "paused"})
        client.post("/tracking/select", json={"player_id": a["id"], "event_type": "Pass"})
        client.post("/tracking/events")

        resp = client.delete(f"/tracking/players/{a['id']}")
        assert resp.status_code == 409
        assert resp.json()["event_count"] == 1

        resp = client.delete(f"/tracking/players/{a['id']}", params={"confirm": "true"})
        assert resp.json()["removed_events"] == 1
        assert client.get("/tracking").json()["events"] == []
        # roster change flows back into the setup draft
        assert [p["id"] for p in client.get("/setup").json()["players"]] == [b["id"]]

    def test_player_edit_resyncs_events(self, client):
        a, b = fill_setup(client)
        client.post("/setup/start")
        client.post("/tracking/select", json={"player_id": b["id"], "event_type": "Dribble"})
        client.post("/tracking/events")

        client.patch(f"/tracking/players/{b['id']}", json={"name": "Bobby", "number": 11})

        event = client.get("/tracking").json()["events"][0]
        assert (event["player_name"], event["player_number"]) == ("Bobby", 11)

    def test_save_failure_is_reported(self, client):
        fill_setup(client)
        client.post("/setup/start")
        failing = Mock()
        failing.upsert.side_effect = PyMongoError("timed out")
        main.state.session.gateway = failing

        resp = client.post("/tracking/save")

        assert resp.status_code == 502
        assert client.get("/tracking").json()["status"]["last_error"]


class TestMatchEndpoints:

    def test_upsert_is_idempotent_on_video(self, client, mongo_db):
        match = {"youtube_id": "xyz", "home_team_name": "H", "away_team_name": "A", "players": []}
        first = client.post("/matches", json={"match": match, "events": []}).json()
        second = client.post("/matches", json={"match": match, "events": []}).json()

        assert first == second
        assert mongo_db.matches.count_documents({"youtube_id": "xyz"}) == 1

    def test_unknown_match(self, client):
        assert client.get("/matches/000000000000000000000000/events").status_code == 404
        assert client.get("/matches/by-video/nothing").status_code == 404
        assert client.get("/matches/000000000000000000000000").status_code == 404

    def test_database_not_configured(self, client):
        main.state.gateway = None
        assert client.get("/matches").status_code == 500
