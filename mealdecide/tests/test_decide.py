from __future__ import annotations

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from mealdecide.app import app
from mealdecide.decide.store import clear_decisions, clear_events, decision_store
from mealdecide.items.models import Item
from mealdecide.items.store import clear_items, save_item
from mealdecide.preferences.store import clear_preferences

client = TestClient(app)

T0 = datetime(2026, 1, 17, 12, 0, tzinfo=timezone.utc)
BIRYANI_REQUEST = {"budget": 250, "mustHaveTags": ["comfort"], "query": "biryani", "limit": 3}


def _login(c, username="user", password="user123") -> dict:
    resp = c.post("/auth/login", json={"username": username, "password": password})
    return {"Authorization": f"Bearer {resp.json()['token']}"}


def _seed_biryani_items(user_id="usr_user"):
    save_item(Item(
        id="i1", user_id=user_id, name="Chicken Biryani", restaurant_name="Spice Hub",
        tags=["comfort", "rice"], price_estimate=199, created_at=T0, updated_at=T0,
    ))
    save_item(Item(
        id="i2", user_id=user_id, name="Mutton Biryani", restaurant_name="Royal Kitchen",
        tags=["rice"], price_estimate=499, created_at=T0, updated_at=T0,
    ))
    save_item(Item(
        id="i3", user_id=user_id, name="Dal Khichdi", restaurant_name="Home Bowl",
        tags=["comfort"], price_estimate=220, platform_hints=["eatsure"], created_at=T0, updated_at=T0,
    ))


@pytest.fixture(autouse=True)
def _reset():
    clear_items()
    clear_decisions()
    clear_events()
    clear_preferences()


# ── Empty pool ───────────────────────────────────────────────────────────


def test_empty_pool_returns_message_and_persists_nothing():
    resp = client.post("/decide", json=BIRYANI_REQUEST, headers=_login(client))
    assert resp.status_code == 200
    body = resp.json()
    assert body["decisionId"] is None
    assert body["candidates"] == []
    assert body["message"] == "No saved items yet. Add a few items first to get decisions."
    assert decision_store.count() == 0


def test_inactive_items_are_not_candidates():
    save_item(Item(id="gone", user_id="usr_user", name="Old Favourite", active=False))
    body = client.post("/decide", json={}, headers=_login(client)).json()
    assert body["decisionId"] is None


def test_other_users_items_are_not_candidates():
    _seed_biryani_items(user_id="usr_guest")
    body = client.post("/decide", json={}, headers=_login(client)).json()
    assert body["candidates"] == []


# ── Ranking ──────────────────────────────────────────────────────────────


def test_biryani_scenario_ranks_and_explains():
    _seed_biryani_items()
    resp = client.post("/decide", json=BIRYANI_REQUEST, headers=_login(client))
    assert resp.status_code == 200
    body = resp.json()

    assert body["decisionId"]
    assert body["userId"] == "usr_user"
    assert body["limit"] == 3
    assert body["time"].endswith("Z")

    candidates = body["candidates"]
    assert [c["item"]["id"] for c in candidates] == ["i1", "i3", "i2"]
    assert [c["score"] for c in candidates] == pytest.approx([3.4, 2.9, 0.3])
    assert sum(c["confidence"] for c in candidates) == pytest.approx(1.0)

    top = candidates[0]
    assert top["why"] == ["Within budget (≤ 250)", "Matches tag: comfort", "Matches your query"]
    assert top["breakdown"]["budgetFit"] == pytest.approx(1.2)
    assert top["breakdown"]["total"] == pytest.approx(top["score"])
    assert [l["platform"] for l in top["deepLinks"]] == ["SWIGGY", "ZOMATO"]
    assert [l["platform"] for l in candidates[1]["deepLinks"]] == ["EATSURE"]

    assert "Above budget (> 250)" in candidates[2]["why"]


def test_limit_truncates():
    _seed_biryani_items()
    body = client.post("/decide", json={**BIRYANI_REQUEST, "limit": 1}, headers=_login(client)).json()
    assert [c["item"]["id"] for c in body["candidates"]] == ["i1"]
    assert body["candidates"][0]["confidence"] == pytest.approx(1.0)


def test_no_body_uses_defaults():
    _seed_biryani_items()
    resp = client.post("/decide", headers=_login(client))
    assert resp.status_code == 200
    body = resp.json()
    assert body["limit"] == 50
    assert len(body["candidates"]) == 3
    assert all(c["why"] == ["A safe pick from your saved items"] for c in body["candidates"])


def test_profile_budget_caps_request_budget():
    _seed_biryani_items()
    headers = _login(client)
    client.put("/preferences/profile", json={"budgetMax": 200}, headers=headers)
    body = client.post("/decide", json=BIRYANI_REQUEST, headers=headers).json()
    dal = next(c for c in body["candidates"] if c["item"]["id"] == "i3")
    assert "Above budget (> 200)" in dal["why"]


def test_hard_avoid_sinks_item():
    _seed_biryani_items()
    headers = _login(client)
    client.put("/preferences/profile", json={"allergens": ["rice"]}, headers=headers)
    body = client.post("/decide", json=BIRYANI_REQUEST, headers=headers).json()
    assert body["candidates"][0]["item"]["id"] == "i3"


# ── Persistence and reproducibility ─────────────────────────────────────


def test_decision_is_persisted_with_meta():
    _seed_biryani_items()
    headers = _login(client)
    decision_id = client.post("/decide", json=BIRYANI_REQUEST, headers=headers).json()["decisionId"]

    resp = client.get(f"/decisions/{decision_id}", headers=headers)
    assert resp.status_code == 200
    decision = resp.json()
    assert decision["userId"] == "usr_user"
    assert decision["feedback"] is None
    assert decision["input"]["budget"] == 250
    assert decision["input"]["limit"] == 3
    assert len(decision["candidates"]) == 3

    meta = decision["meta"]
    assert meta["schemaVersion"] == 2
    assert meta["algorithm"] == "heuristic-score"
    assert meta["algorithmVersion"] == "1"
    for key in ("inputHash", "itemsHash", "preferenceHash"):
        assert len(meta[key]) == 64
    assert meta["preferenceSnapshot"]["tagWeights"] == {}


def test_same_inputs_give_same_ranking_and_hashes():
    _seed_biryani_items()
    headers = _login(client)
    first = client.post("/decide", json=BIRYANI_REQUEST, headers=headers).json()
    second = client.post("/decide", json=BIRYANI_REQUEST, headers=headers).json()
    assert first["decisionId"] != second["decisionId"]
    assert first["candidates"] == second["candidates"]

    meta_a = client.get(f"/decisions/{first['decisionId']}", headers=headers).json()["meta"]
    meta_b = client.get(f"/decisions/{second['decisionId']}", headers=headers).json()["meta"]
    assert meta_a == meta_b


# ── Validation ───────────────────────────────────────────────────────────


@pytest.mark.parametrize("body,field", [
    ({"limit": 0}, "limit"),
    ({"limit": 51}, "limit"),
    ({"budget": -1}, "budget"),
    ({"query": "x" * 201}, "query"),
    ({"mustHaveTags": ["t"] * 21}, "mustHaveTags"),
])
def test_invalid_request_is_rejected(body, field):
    resp = client.post("/decide", json=body, headers=_login(client))
    assert resp.status_code == 400
    payload = resp.json()
    assert payload["message"] == "Validation failed"
    assert payload["fieldErrors"][0]["field"] == field


def test_field_named_like_a_location_keeps_its_name():
    resp = client.post("/decide", json={"query": "x" * 201}, headers=_login(client))
    assert resp.json()["fieldErrors"] == [
        {"field": "query", "message": "String should have at most 200 characters"},
    ]


def test_null_limit_falls_back_to_default():
    _seed_biryani_items()
    resp = client.post("/decide", json={"limit": None}, headers=_login(client))
    assert resp.status_code == 200
    assert resp.json()["limit"] == 50
    assert len(resp.json()["candidates"]) == 3
