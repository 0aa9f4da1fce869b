import cv2
import numpy as np
import pytest
from fastapi.testclient import TestClient

from passport_capture.api import dependencies
from passport_capture.api.main import app
from passport_capture.core.use_cases.pairing import PairingService
from passport_capture.infrastructure.pairing.memory_store import InMemoryMessageStore

from conftest import FakeFaceEngine, FakeTextRecognizer


def png(rgb: np.ndarray) -> bytes:
    ok, buf = cv2.imencode(".png", cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR))
    assert ok
    return buf.tobytes()


NOISE_PNG = png(np.random.default_rng(7).integers(0, 256, size=(120, 160, 3), dtype=np.uint8))
SELFIE_PNG = png(np.full((96, 96, 3), 150, dtype=np.uint8))


@pytest.fixture
def client():
    dependencies.override(
        face_engine=FakeFaceEngine(cosine=0.8),
        text_recognizer=FakeTextRecognizer(),
        message_store=InMemoryMessageStore(),
        pairing_service=PairingService("http://testserver", secret_key="test-key"),
    )
    with TestClient(app) as c:
        yield c
    dependencies.reset()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


# ─── Documents ─────────────────────────────────────────

def test_validate_document(client):
    response = client.post(
        "/api/v1/documents/validate",
        files={"file": ("passport.png", NOISE_PNG, "image/png")},
    )
    assert response.status_code == 200
    data = response.json()

    assert data["validation"]["is_valid"] is True
    assert data["validation"]["is_real_document"] is True
    assert data["validation"]["elements"]["passportNumber"]["value"] == "L898902C"
    assert data["fields"]["surname"] == "ERIKSSON"
    assert data["fields"]["unverified"] == []
    assert data["mrz_format"] == "TD3"
    assert data["composite_verified"] is True
    assert set(data["stage_latencies"]) == {"spoof_ms", "regions_ms", "ocr_ms", "photo_ms"}


def test_validate_rejects_non_image(client):
    response = client.post(
        "/api/v1/documents/validate",
        files={"file": ("notes.txt", b"hello", "text/plain")},
    )
    assert response.status_code == 400


def test_validate_rejects_empty_upload(client):
    response = client.post(
        "/api/v1/documents/validate",
        files={"file": ("passport.png", b"", "image/png")},
    )
    assert response.status_code == 400


def test_validate_rejects_undecodable_image(client):
    response = client.post(
        "/api/v1/documents/validate",
        files={"file": ("passport.png", b"not really a png", "image/png")},
    )
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "CAPTURE_FAILED"


def _match(client, **params):
    return client.post(
        "/api/v1/faces/match",
        params=params,
        files={
            "document": ("passport.png", NOISE_PNG, "image/png"),
            "selfie": ("selfie.png", SELFIE_PNG, "image/png"),
        },
    )


def test_face_match(client):
    response = _match(client)
    assert response.status_code == 200
    data = response.json()
    assert data["score"] == pytest.approx(0.9)
    assert data["threshold"] == 0.70
    assert data["matched"] is True


def test_strict_face_match(client):
    data = _match(client, strict="true").json()
    assert data["threshold"] == 0.95
    assert data["matched"] is False


def test_face_match_without_face(client):
    dependencies.override(face_engine=FakeFaceEngine(live_faces=False))
    response = _match(client)
    assert response.status_code == 422
    assert response.json()["detail"]["code"] == "FACE_NOT_DETECTED"


# ─── Pairing ───────────────────────────────────────────

def _session(client) -> dict:
    response = client.post("/api/v1/pairing/sessions")
    assert response.status_code == 200
    return response.json()


def _publish(client, session: dict, kind: str = "connected", token: str | None = None, **payload):
    return client.post("/api/v1/pairing/messages", json={
        "type": kind,
        "sessionId": session["session_id"],
        "secretToken": session["secret_token"] if token is None else token,
        "payload": payload,
    })


def test_create_session(client):
    session = _session(client)
    assert session["url"].startswith("http://testserver/mobile-capture?session=")
    assert session["secret_token"] in session["url"]


def test_publish_and_poll(client):
    session = _session(client)
    first = _publish(client, session)
    assert first.status_code == 200
    assert first.json()["sequence"] == 1
    _publish(client, session, "document", image="abc")

    url = f"/api/v1/pairing/sessions/{session['session_id']}/messages"
    data = client.get(url, params={"token": session["secret_token"]}).json()
    assert [m["type"] for m in data["messages"]] == ["connected", "document"]
    assert data["last_sequence"] == 2

    data = client.get(url, params={"token": session["secret_token"], "after": 1}).json()
    assert [m["payload"] for m in data["messages"]] == [{"image": "abc"}]

    data = client.get(url, params={"token": session["secret_token"], "type": "connected"}).json()
    assert len(data["messages"]) == 1
    assert data["last_sequence"] == 2


def test_sessions_are_isolated(client):
    a, b = _session(client), _session(client)
    _publish(client, a)
    _publish(client, b, "face", image="b-face")

    data = client.get(
        f"/api/v1/pairing/sessions/{a['session_id']}/messages",
        params={"token": a["secret_token"]},
    ).json()
    assert [m["sessionId"] for m in data["messages"]] == [a["session_id"]]


@pytest.mark.parametrize("token", ["", "forged-token"])
def test_bad_token_is_rejected(client, token):
    session = _session(client)
    assert _publish(client, session, token=token).status_code == 401

    response = client.get(
        f"/api/v1/pairing/sessions/{session['session_id']}/messages",
        params={"token": token},
    )
    assert response.status_code == 401
    assert response.json()["detail"]["code"] == "SESSION_INVALID"


def test_unknown_message_type_is_rejected(client):
    assert _publish(client, _session(client), "selfie").status_code == 422
