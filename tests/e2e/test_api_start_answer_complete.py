from fastapi.testclient import TestClient

from api.routes import get_machine
from api_server import app
from services.errors import AnswerConflict, StorageFailure

client = TestClient(app)
OWNER = {"X-Owner-Id": "owner-1"}


def _subscribe(plan_id="starter"):
    resp = client.post("/api/subscriptions", json={"plan_id": plan_id}, headers=OWNER)
    assert resp.status_code == 201
    return resp.json()


def test_full_flow(fake_models):
    subscription = _subscribe()
    assert subscription["interviews_remaining"] == 10

    start = client.post(
        "/api/interviews/start",
        json={"candidate_name": "Ada", "position": "Backend Engineer", "max_questions": 2},
        headers=OWNER,
    )
    assert start.status_code == 200
    body = start.json()
    token = body["session_token"]
    assert body["first_question"]["text"] == "Generated question 1"

    first = client.post(
        "/api/interviews/answer",
        json={
            "session_token": token,
            "answer_text": "I designed the payments ledger.",
            "sensor_metadata": {
                "emotion": {"primary_emotion": "calm"},
                "integrity": {"flags": [{"type": "tab_switch", "severity": "high"}], "confidence": 0.8},
            },
        },
    )
    assert first.status_code == 200
    assert first.json()["completed"] is False
    assert "report_id" not in first.json()
    assert first.json()["next_question"]["text"] == "Generated question 2"

    done = client.post("/api/interviews/answer", json={"session_token": token, "answer_text": "Add more tests."})
    assert done.status_code == 200
    assert done.json()["completed"] is True
    report_id = done.json()["report_id"]

    interview_id = body["interview_id"]
    snapshot = client.get(f"/api/interviews/{interview_id}", headers=OWNER).json()
    assert snapshot["status"] == "completed"
    assert len(snapshot["transcript"]) == 4

    report = client.get(f"/api/interviews/{interview_id}/report", headers=OWNER).json()
    assert report["id"] == report_id
    assert report["integrity_flags"][0]["type"] == "tab_switch"

    pdf = client.get(f"/api/interviews/{interview_id}/report.pdf", headers=OWNER)
    assert pdf.status_code == 200
    assert pdf.headers["content-type"] == "application/pdf"
    assert pdf.content.startswith(b"%PDF")

    again = client.post("/api/interviews/answer", json={"session_token": token, "answer_text": "More"})
    assert again.status_code == 409
    assert again.json()["error"] == "InterviewTerminal"

    listing = client.get("/api/interviews", headers=OWNER).json()
    assert [item["id"] for item in listing] == [interview_id]


def test_quota_exhausted_is_forbidden():
    _subscribe("free-trial")
    payload = {"candidate_name": "Ada", "position": "Engineer"}
    assert client.post("/api/interviews/start", json=payload, headers=OWNER).status_code == 200
    resp = client.post("/api/interviews/start", json=payload, headers=OWNER)
    assert resp.status_code == 403
    assert resp.json() == {"error": "QuotaExhausted", "detail": "no interviews remaining on an active subscription"}


def test_cancel_refunds_unanswered_interview():
    _subscribe()
    start = client.post(
        "/api/interviews/start", json={"candidate_name": "Ada", "position": "Engineer"}, headers=OWNER
    ).json()
    resp = client.post("/api/interviews/cancel", json={"session_token": start["session_token"]})
    assert resp.status_code == 200
    assert resp.json() == {"cancelled": True, "refunded": True}
    subs = client.get("/api/subscriptions", headers=OWNER).json()
    assert subs[0]["interviews_remaining"] == 10


def test_error_mapping():
    resp = client.post("/api/interviews/answer", json={"session_token": "forged", "answer_text": "hi"})
    assert resp.status_code == 401
    assert resp.json()["error"] == "InvalidToken"

    resp = client.get("/api/interviews/missing", headers=OWNER)
    assert resp.status_code == 404
    assert resp.json()["error"] == "NotFound"

    resp = client.post("/api/subscriptions", json={"plan_id": "platinum"}, headers=OWNER)
    assert resp.status_code == 422
    assert resp.json()["error"] == "ValidationFailed"

    resp = client.post("/api/interviews/start", json={"candidate_name": "Ada", "position": "Engineer"})
    assert resp.status_code == 422
    assert resp.json()["error"] == "ValidationFailed"


class RaisingMachine:
    def __init__(self, error):
        self.error = error

    def submit_answer(self, *args, **kwargs):
        raise self.error


def _answer_with(error):
    app.dependency_overrides[get_machine] = lambda: RaisingMachine(error)
    try:
        return client.post("/api/interviews/answer", json={"session_token": "tok", "answer_text": "hi"})
    finally:
        app.dependency_overrides.pop(get_machine, None)


def test_lost_answer_race_is_not_retryable():
    resp = _answer_with(AnswerConflict("the question was already answered"))
    assert resp.status_code == 409
    assert resp.json()["error"] == "StateConflict"
    assert "retry-after" not in resp.headers


def test_storage_failure_asks_for_retry():
    resp = _answer_with(StorageFailure("database is locked"))
    assert resp.status_code == 503
    assert resp.headers["retry-after"] == "1"


def test_healthz():
    assert client.get("/healthz").json() == {"status": "ok"}
