import json

import pytest
import requests

from engine.config import EngineConfig
from storage.providers.base import StoreError
from storage.providers.supabase import SupabaseProfileStore

URL = "https://proj.supabase.co"


class FakeResponse:
    def __init__(self, status_code=200, payload=None, content=None):
        self.status_code = status_code
        if content is None:
            content = b"" if payload is None else json.dumps(payload).encode("utf-8")
        self.content = content
        self.text = content.decode("utf-8", errors="replace")

    def json(self):
        return json.loads(self.content)


class FakeSession:
    """Stands in for requests.Session: replays queued responses, records calls."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        r = self.responses.pop(0)
        if isinstance(r, Exception):
            raise r
        return r


def _store(*responses):
    session = FakeSession(*responses)
    return SupabaseProfileStore(url=URL + "/", api_key="anon-key", timeout=3.0, session=session), session


def test_load_profile_sends_postgrest_query():
    store, session = _store(FakeResponse(payload=[{"id": "u1", "username": "kong", "current_stage": 4}]))
    p = store.load_profile("u1")

    assert p.id == "u1"
    assert p.current_stage == 4
    call = session.calls[0]
    assert call["method"] == "GET"
    assert call["url"] == URL + "/rest/v1/profiles"
    assert call["params"]["id"] == "eq.u1"
    assert call["headers"]["apikey"] == "anon-key"
    assert call["headers"]["Authorization"] == "Bearer anon-key"
    assert call["timeout"] == 3.0


def test_missing_profile_is_none():
    store, _ = _store(FakeResponse(payload=[]))
    assert store.load_profile("ghost") is None


def test_create_and_save_profile():
    store, session = _store(
        FakeResponse(201, payload=[{"id": "u1", "current_stage": 1}]),
        FakeResponse(204),
    )
    assert store.create_profile("u1", {"current_stage": 1}).id == "u1"
    store.save_profile("u1", {"ape_balance": 9})

    post, patch = session.calls
    assert post["method"] == "POST"
    assert post["json"] == {"current_stage": 1, "id": "u1"}
    assert post["headers"]["Prefer"] == "return=representation"
    assert patch["method"] == "PATCH"
    assert patch["params"] == {"id": "eq.u1"}
    assert patch["json"] == {"ape_balance": 9}


def test_insert_game_event_and_find_by_code():
    store, session = _store(FakeResponse(201), FakeResponse(payload=[{"id": "ref", "referral_code": "APEKONG1"}]))
    store.insert_game_event({"user_id": "u1", "event_type": "tap", "stage": 1, "taps": 1})
    ref = store.find_profile_by_referral_code("APEKONG1")

    assert session.calls[0]["url"] == URL + "/rest/v1/game_events"
    assert session.calls[1]["params"]["referral_code"] == "eq.APEKONG1"
    assert ref.referral_code == "APEKONG1"


@pytest.mark.parametrize(
    "response",
    [
        FakeResponse(500, content=b"boom"),
        FakeResponse(200, content=b"<html>"),
        requests.ConnectionError("no route"),
        requests.Timeout("slow"),
    ],
)
def test_failures_become_store_errors(response):
    store, _ = _store(response)
    with pytest.raises(StoreError):
        store.load_profile("u1")


def test_unconfigured_store():
    store = SupabaseProfileStore(url="", api_key="", session=FakeSession())
    assert not store.status().ok
    with pytest.raises(StoreError):
        store.load_profile("u1")


def test_from_config():
    cfg = EngineConfig.from_env({"SUPABASE_URL": URL, "SUPABASE_ANON_KEY": "k", "APE_ESCAPE_TIMEOUT": "4"})
    store = SupabaseProfileStore.from_config(cfg)
    assert store.status().ok
    assert store.timeout == 4.0
    assert isinstance(store.session, requests.Session)


def test_refresh_notifies_only_on_change():
    row = {"id": "u1", "total_referrals": 1}
    store, _ = _store(
        FakeResponse(payload=[row]),
        FakeResponse(payload=[row]),
        FakeResponse(payload=[dict(row, total_referrals=2)]),
    )
    seen = []
    unsubscribe = store.on_profile_change(seen.append)

    store.refresh("u1")
    store.refresh("u1")
    store.refresh("u1")
    assert [p.total_referrals for p in seen] == [1, 2]

    unsubscribe()
    assert store._listeners == []
