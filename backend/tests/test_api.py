"""
HTTP and WebSocket tests against the FastAPI app with a temporary SQLite
database and fake cache, generative client and mailer.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

import main
from config import Settings
from main import create_app

from fakes import SUBJECT_ID, FakeCache, make_fake_genai

AUTH = {"X-User-Id": SUBJECT_ID}


@pytest.fixture
def client(tmp_path):
    settings = Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'api.db'}",
        seed_subject_id=SUBJECT_ID,
        seed_email="candidate@example.com",
        seed_industry="Software Engineering",
    )
    app = create_app(settings)
    with TestClient(app) as client:
        app.state.cache = FakeCache()
        app.state.genai = make_fake_genai()
        app.state.mailer = MagicMock()
        yield client


def _transcript():
    return [
        {"role": "assistant", "message": "Tell me about yourself."},
        {"role": "user", "message": "I build APIs in Python."},
    ]


class TestAuth:

    def test_health_needs_no_session(self, client):
        assert client.get("/api/health").json() == {"status": "ok"}

    def test_missing_session_is_401(self, client):
        response = client.get("/api/assessments")
        assert response.status_code == 401
        assert response.json() == {"detail": "Unauthorized"}

    def test_unknown_subject_is_404(self, client):
        response = client.get("/api/assessments", headers={"X-User-Id": "user_missing"})
        assert response.status_code == 404
        assert response.json()["detail"] == "User not found"


class TestVoiceInterviewRoutes:

    def test_start_and_save_feedback(self, client):
        started = client.post("/api/voice-interviews", json={"topic": "React"}, headers=AUTH).json()
        assert started["success"] is True
        assessment_id = started["assessment_id"]
        assert len(started["questions"]) == 5

        saved = client.post(
            f"/api/voice-interviews/{assessment_id}/feedback",
            json={"transcript": _transcript()},
            headers=AUTH,
        ).json()
        assert saved == {"success": True, "assessment_id": assessment_id}

        detail = client.get(f"/api/assessments/{assessment_id}", headers=AUTH).json()
        assert detail["type"] == "VOICE"
        assert detail["category"] == "React"
        assert detail["quiz_score"] == 8
        assert detail["feedback_available"] is True
        client.app.state.mailer.send_email.assert_called_once()

    def test_second_feedback_save_is_rejected(self, client):
        assessment_id = client.post("/api/voice-interviews", json={}, headers=AUTH).json()["assessment_id"]
        url = f"/api/voice-interviews/{assessment_id}/feedback"

        client.post(url, json={"transcript": _transcript()}, headers=AUTH)
        second = client.post(url, json={"transcript": _transcript()}, headers=AUTH).json()

        assert second == {"error": "Feedback has already been saved for this assessment"}

    def test_invalid_transcript_is_reported(self, client):
        assessment_id = client.post("/api/voice-interviews", json={}, headers=AUTH).json()["assessment_id"]

        result = client.post(
            f"/api/voice-interviews/{assessment_id}/feedback", json={"transcript": "oops"}, headers=AUTH
        ).json()

        assert result == {"error": "Transcript data is missing or invalid"}

    def test_in_progress_interview_has_no_feedback(self, client):
        assessment_id = client.post("/api/voice-interviews", json={}, headers=AUTH).json()["assessment_id"]

        detail = client.get(f"/api/assessments/{assessment_id}", headers=AUTH).json()

        assert detail["category"] == "Software Engineering"
        assert detail["improvement_tip"] == "Interview in progress..."
        assert detail["feedback_available"] is False

    def test_missing_assessment_is_404(self, client):
        response = client.get("/api/assessments/999", headers=AUTH)
        assert response.status_code == 404
        assert response.json()["detail"] == "Assessment 999 not found"


class TestQuizRoutes:

    def test_generate_quiz(self, client):
        response = client.get("/api/quiz", headers=AUTH)
        assert response.status_code == 200
        assert len(response.json()["questions"]) == 10

    def test_generation_failure_is_502(self, client):
        client.app.state.genai.generate_quiz.return_value = []

        response = client.get("/api/quiz", headers=AUTH)

        assert response.status_code == 502
        assert response.json()["detail"] == "Failed to generate quiz questions"

    def test_save_quiz_result(self, client):
        questions = client.get("/api/quiz", headers=AUTH).json()["questions"]
        answers = [q["correctAnswer"] for q in questions]
        answers[0] = "B1"

        saved = client.post(
            "/api/quiz/results",
            json={"questions": questions, "answers": answers, "score": 90},
            headers=AUTH,
        ).json()

        assert saved["type"] == "QUIZ"
        assert saved["quiz_score"] == 90
        assert saved["improvement_tip"] == "Review closures and the event loop."
        assert saved["questions"][0]["isCorrect"] is False

    def test_malformed_quiz_result_is_422(self, client):
        response = client.post("/api/quiz/results", json={"answers": []}, headers=AUTH)
        assert response.status_code == 422


class TestAssessmentReads:

    def test_listing_is_cached_and_invalidated(self, client):
        assert client.get("/api/assessments", headers=AUTH).json() == []
        cache = client.app.state.cache
        assert cache.store[f"assessments:{SUBJECT_ID}"] == []

        client.post("/api/voice-interviews", json={"topic": "Go"}, headers=AUTH)
        assert f"assessments:{SUBJECT_ID}" not in cache.store

        listed = client.get("/api/assessments", headers=AUTH).json()
        assert [a["category"] for a in listed] == ["Go"]

    def test_dashboard(self, client):
        questions = client.get("/api/quiz", headers=AUTH).json()["questions"]
        client.post(
            "/api/quiz/results",
            json={"questions": questions, "answers": [q["correctAnswer"] for q in questions], "score": 100},
            headers=AUTH,
        )
        client.post("/api/voice-interviews", json={"topic": "SQL"}, headers=AUTH)

        dashboard = client.get("/api/dashboard", headers=AUTH).json()

        assert dashboard["total_assessments"] == 2
        assert dashboard["average_score"] == 50
        assert len(dashboard["quiz_assessments"]) == 1
        assert len(dashboard["voice_assessments"]) == 1


class TestVoiceSocket:

    def test_rejects_connection_without_subject(self, client):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/ws/voice"):
                pass
        assert exc_info.value.code == 4401

    def test_full_call(self, client):
        with client.websocket_connect(f"/ws/voice?subject={SUBJECT_ID}") as ws:
            assert ws.receive_json() == {"type": "status", "status": "idle"}

            ws.send_json({"event": "start", "topic": "React"})
            command = ws.receive_json()
            assert command["type"] == "command"
            assert command["command"] == "start"
            assert command["config"]["variables"]["assessmentId"] > 0
            started = ws.receive_json()
            assert started["action"] == "start"
            assert started["success"] is True
            assert ws.receive_json() == {"type": "status", "status": "starting"}

            ws.send_json({"event": "call-start"})
            assert ws.receive_json() == {"type": "status", "status": "active"}

            for entry in _transcript():
                ws.send_json({
                    "event": "message",
                    "message": {"type": "transcript", "transcriptType": "final",
                                "role": entry["role"], "transcript": entry["message"]},
                })
                assert ws.receive_json() == {"type": "transcript", **entry}

            ws.send_json({"event": "call-end"})
            finished = ws.receive_json()
            assert finished["action"] == "feedback"
            assert finished["success"] is True
            assert ws.receive_json() == {"type": "status", "status": "finished"}

        detail = client.get(f"/api/assessments/{started['assessment_id']}", headers=AUTH).json()
        assert detail["transcript"] == _transcript()
        assert detail["feedback_available"] is True

    def test_out_of_order_event_is_reported(self, client):
        with client.websocket_connect(f"/ws/voice?subject={SUBJECT_ID}") as ws:
            ws.receive_json()

            ws.send_json({"event": "call-end"})

            assert ws.receive_json() == {
                "type": "error",
                "error": "Cannot handle 'call-end' while call is idle",
                "status": "idle",
            }

    def test_malformed_message_keeps_session_alive(self, client):
        with client.websocket_connect(f"/ws/voice?subject={SUBJECT_ID}") as ws:
            ws.receive_json()
            ws.send_json({"event": "start", "topic": "React"})
            ws.receive_json()
            ws.receive_json()
            ws.receive_json()
            ws.send_json({"event": "call-start"})
            ws.receive_json()

            ws.send_json({"event": "message", "message": "hello"})
            assert ws.receive_json()["type"] == "error"

            entry = _transcript()[1]
            ws.send_json({
                "event": "message",
                "message": {"type": "transcript", "role": entry["role"], "transcript": entry["message"]},
            })
            assert ws.receive_json() == {"type": "transcript", **entry}

            ws.send_json({"event": "call-end"})
            finished = ws.receive_json()
            assert finished["success"] is True

        detail = client.get(f"/api/assessments/{finished['assessment_id']}", headers=AUTH).json()
        assert detail["transcript"] == [entry]

    def test_unexpected_handler_error_is_reported(self, client, monkeypatch):
        monkeypatch.setattr(main, "handle_voice_event", AsyncMock(side_effect=RuntimeError("boom")))

        with client.websocket_connect(f"/ws/voice?subject={SUBJECT_ID}") as ws:
            ws.receive_json()

            ws.send_json({"event": "start"})
            assert ws.receive_json() == {"type": "error", "error": "boom", "status": "idle"}

            ws.send_json({"event": "start"})
            assert ws.receive_json()["error"] == "boom"

    def test_stop_while_connecting_records_empty_interview(self, client):
        with client.websocket_connect(f"/ws/voice?subject={SUBJECT_ID}") as ws:
            ws.receive_json()
            ws.send_json({"event": "start", "topic": "React"})
            ws.receive_json()
            started = ws.receive_json()
            assert ws.receive_json() == {"type": "status", "status": "starting"}

            ws.send_json({"event": "stop"})
            assert ws.receive_json() == {"type": "command", "command": "stop"}

            ws.send_json({"event": "call-end"})
            assert ws.receive_json()["success"] is True
            assert ws.receive_json() == {"type": "status", "status": "finished"}

            ws.send_json({"event": "start", "topic": "React"})
            assert ws.receive_json()["command"] == "start"

        detail = client.get(f"/api/assessments/{started['assessment_id']}", headers=AUTH).json()
        assert detail["quiz_score"] == 0
        assert detail["improvement_tip"] == "Interview ended before any conversation was recorded."

    def test_invalid_json_is_reported(self, client):
        with client.websocket_connect(f"/ws/voice?subject={SUBJECT_ID}") as ws:
            ws.receive_json()

            ws.send_text("not json")

            assert ws.receive_json() == {"type": "error", "error": "Invalid JSON"}
