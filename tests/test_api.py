import random

from fastapi.testclient import TestClient

from api import create_app
from engine import NegotiationEngine
from gateway import DialogueGateway

engine = NegotiationEngine(gateway=DialogueGateway(rng=random.Random(0)), rng=random.Random(0))
client = TestClient(create_app(engine))

BASE = "/v1/negotiation"


def _new_session():
    resp = client.post(f"{BASE}/sessions")
    assert resp.status_code == 200
    return resp.json()["session_id"]


def _phase(sid, phase):
    return client.post(f"{BASE}/sessions/{sid}/phase", json={"phase": phase})


def test_start_session():
    resp = client.post(f"{BASE}/sessions")
    assert resp.status_code == 200
    data = resp.json()
    assert "session_id" in data
    assert data["phase"] == "intro"
    assert data["user"]["remaining_budget"] == 14
    assert len(data["agents"]) == 4


def test_unknown_session_is_404():
    assert client.get(f"{BASE}/sessions/nope").status_code == 404
    assert client.post(f"{BASE}/sessions/nope/reset").status_code == 404
    assert client.get(f"{BASE}/sessions/nope/report").status_code == 404


def test_phase_guard():
    sid = _new_session()
    resp = _phase(sid, "report")
    assert resp.status_code == 200
    assert resp.json() == {"phase": "intro", "changed": False}
    assert _phase(sid, "collectingUserInfo").json()["changed"] is True
    assert _phase(sid, "lobby").status_code == 400


def test_selection_rejected_over_budget():
    sid = _new_session()
    for cat_id in (1, 2, 3, 4):
        resp = client.post(f"{BASE}/sessions/{sid}/selections", json={"category_id": cat_id, "option_id": 3})
        assert resp.status_code == 200
    assert resp.json()["remaining_budget"] == 2
    resp = client.post(f"{BASE}/sessions/{sid}/selections", json={"category_id": 5, "option_id": 3})
    assert resp.status_code == 400
    state = client.get(f"{BASE}/sessions/{sid}").json()
    assert state["user"]["remaining_budget"] == 2


def test_user_info_merge():
    sid = _new_session()
    client.post(f"{BASE}/sessions/{sid}/user-info", json={"age": "29"})
    data = client.post(f"{BASE}/sessions/{sid}/user-info", json={"location": "Bean City"}).json()
    assert data["user"]["age"] == "29"
    assert data["user"]["location"] == "Bean City"


def test_full_negotiation_flow():
    sid = _new_session()
    _phase(sid, "collectingUserInfo")
    _phase(sid, "individualSelection")
    for cat_id in range(1, 8):
        picked = client.post(f"{BASE}/sessions/{sid}/selections", json={"category_id": cat_id, "option_id": 2}).json()
        assert picked["selections_complete"] is (cat_id == 7)

    assert client.post(f"{BASE}/sessions/{sid}/negotiation/start").status_code == 400
    _phase(sid, "groupNegotiation")
    neg = client.post(f"{BASE}/sessions/{sid}/negotiation/start").json()
    assert neg["step"] == "discussing"
    assert neg["category_id"] == 1
    assert neg["complete"] is False

    sent = client.post(f"{BASE}/sessions/{sid}/negotiation/messages", json={"text": "I agree"}).json()
    assert sent[0]["is_user"] is True
    again = client.post(f"{BASE}/sessions/{sid}/negotiation/messages", json={"text": "I agree"}).json()
    assert again == []

    for _ in range(7):
        assert client.post(f"{BASE}/sessions/{sid}/negotiation/vote").status_code == 200
    neg = client.get(f"{BASE}/sessions/{sid}/negotiation").json()
    assert neg["step"] == "summary"
    assert len(neg["group_decisions"]) == 7
    assert neg["complete"] is True

    _phase(sid, "reflection")
    resp = client.post(f"{BASE}/sessions/{sid}/reflections", json={"question_id": "emotions", "answer": "Uneasy."})
    assert resp.status_code == 200
    assert client.post(f"{BASE}/sessions/{sid}/reflections", json={"question_id": "x", "answer": "?"}).status_code == 400
    _phase(sid, "report")

    report = client.get(f"{BASE}/sessions/{sid}/report").json()
    assert report["negotiation_complete"] is True
    assert report["group_budget_spent"] == 14
    assert report["reflection_answers"][0]["question_id"] == "emotions"

    text = client.post(f"{BASE}/sessions/{sid}/report/reflection").json()["text"]
    assert text

    reset = client.post(f"{BASE}/sessions/{sid}/reset").json()
    assert reset["phase"] == "intro"
    assert client.get(f"{BASE}/sessions/{sid}/negotiation").status_code == 404


def test_catalog():
    data = client.get(f"{BASE}/catalog").json()
    assert len(data["categories"]) == 7
    assert all([o["cost"] for o in c["options"]] == [1, 2, 3] for c in data["categories"])
    assert len(data["reflection_questions"]) == 10
