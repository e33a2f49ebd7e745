import pytest

from pitch_coach.errors import GenerationError, TranscriptionError
from pitch_coach.routes import audio


def _analysis(clarity: int) -> dict:
    return {
        "summary": "Solid pitch",
        "scores": {"clarity": {"score": clarity, "comment": "ok"}, "storytelling": 6},
        "strengths": ["energy"],
        "improvements": [],
        "suggestions": [],
        "improved_pitch": "Better pitch",
    }


class FakeTranscription:
    transcript = "Hi, we are building pitch coaching for founders."
    calls: list = []

    async def transcribe(self, audio, filename, content_type=None, language=None):
        FakeTranscription.calls.append({"filename": filename, "language": language})
        return self.transcript


class FailingTranscription:
    async def transcribe(self, audio, filename, content_type=None, language=None):
        raise TranscriptionError("ElevenLabs API error: 401 - bad key")


class FakeAnalysis:
    calls: list = []
    clarity = 5

    async def analyze(self, transcript, session_type="pitch", **kwargs):
        FakeAnalysis.calls.append({"transcript": transcript, "session_type": session_type, **kwargs})
        return _analysis(FakeAnalysis.clarity)


@pytest.fixture(autouse=True)
def fakes(monkeypatch):
    FakeTranscription.calls = []
    FakeAnalysis.calls = []
    FakeAnalysis.clarity = 5
    monkeypatch.setattr(audio, "TranscriptionService", FakeTranscription)
    monkeypatch.setattr(audio, "AnalysisService", FakeAnalysis)


def _upload(client, headers, session_type="pitch", project_id=None):
    data = {"type": session_type}
    if project_id:
        data["project_id"] = project_id
    return client.post(
        "/api/audio/upload-and-transcribe",
        data=data,
        files={"audio": ("pitch.webm", b"\x1a\x45\xdf\xa3fake", "audio/webm")},
        headers=headers,
    )


def test_upload_and_transcribe(client, alice, make_project) -> None:
    project = make_project(alice)
    client.post(
        "/api/project/update-context",
        json={"project_id": project["id"], "context": {"transcription_language": "de"}},
        headers=alice,
    )

    response = _upload(client, alice, project_id=project["id"])
    assert response.status_code == 200
    body = response.json()
    assert body["transcript"] == FakeTranscription.transcript
    assert body["audio_path"].endswith(f"{body['audio_session_id']}/original.webm")
    assert FakeTranscription.calls[-1]["language"] == "de"

    session = client.get(
        f"/api/audio/sessions/{body['audio_session_id']}", headers=alice
    ).json()["session"]
    assert session["type"] == "pitch"
    assert session["project_id"] == project["id"]
    assert session["transcript"] == FakeTranscription.transcript


def test_upload_validates_input(client, alice) -> None:
    response = _upload(client, alice, session_type="speech")
    assert response.status_code == 400

    response = client.post(
        "/api/audio/upload-and-transcribe", data={"type": "pitch"}, headers=alice
    )
    assert response.status_code == 400
    assert response.json()["error"] == "No audio file provided"

    response = client.post(
        "/api/audio/upload-and-transcribe",
        data={"type": "pitch"},
        files={"audio": ("pitch.webm", b"", "audio/webm")},
        headers=alice,
    )
    assert response.status_code == 400


def test_upload_into_foreign_project_is_not_found(client, alice, bob, make_project) -> None:
    project = make_project(alice)
    assert _upload(client, bob, project_id=project["id"]).status_code == 404


def test_transcription_failure_keeps_the_recording(client, alice, monkeypatch) -> None:
    monkeypatch.setattr(audio, "TranscriptionService", FailingTranscription)

    response = _upload(client, alice)
    assert response.status_code == 200
    body = response.json()
    assert body["transcript"].startswith("[Transcription error:")

    url = client.get(
        f"/api/audio/sessions/{body['audio_session_id']}/url", headers=alice
    ).json()["url"]
    download = client.get(url)
    assert download.status_code == 200
    assert download.content == b"\x1a\x45\xdf\xa3fake"


def test_analyze_stored_session(client, alice) -> None:
    session_id = _upload(client, alice).json()["audio_session_id"]

    response = client.post(
        "/api/audio/analyze",
        json={"audio_session_id": session_id, "context": {"audience": "VCs"}},
        headers=alice,
    )
    assert response.status_code == 200
    body = response.json()
    assert body["analysis_json"]["summary"] == "Solid pitch"
    assert body["combined_context"]["audience"] == "VCs"
    assert body["session_id"] == session_id
    assert FakeAnalysis.calls[-1]["transcript"] == FakeTranscription.transcript

    stored = client.get(f"/api/audio/sessions/{session_id}", headers=alice).json()["session"]
    assert stored["analysis_json"]["summary"] == "Solid pitch"


def test_analyze_context_session(client, alice) -> None:
    session_id = _upload(client, alice, session_type="context").json()["audio_session_id"]
    response = client.post(
        "/api/audio/analyze", json={"audio_session_id": session_id}, headers=alice
    )
    assert response.status_code == 200
    assert FakeAnalysis.calls[-1]["session_type"] == "context"
    assert response.json()["attempt_number"] is None


def test_analyze_requires_a_transcript(client, alice) -> None:
    response = client.post("/api/audio/analyze", json={}, headers=alice)
    assert response.status_code == 400
    assert "audio_session_id" in response.json()["error"]

    response = client.post("/api/audio/analyze", json={"pitch_transcript": "   "}, headers=alice)
    assert response.status_code == 400
    assert response.json()["error"] == "Transcript is required"
    assert FakeAnalysis.calls == []


def test_analyze_foreign_session_is_forbidden(client, alice, bob) -> None:
    session_id = _upload(client, alice).json()["audio_session_id"]

    response = client.post(
        "/api/audio/analyze",
        json={"audio_session_id": session_id, "pitch_transcript": "stolen"},
        headers=bob,
    )
    assert response.status_code == 403
    assert client.get(f"/api/audio/sessions/{session_id}", headers=bob).status_code == 403


def test_analyze_missing_session(client, alice) -> None:
    response = client.post(
        "/api/audio/analyze", json={"audio_session_id": "missing"}, headers=alice
    )
    assert response.status_code == 404


def test_project_defaults_fill_context(client, alice, make_project) -> None:
    project = make_project(alice, default_audience="Bank executives", default_goal="Win a pilot")

    response = client.post(
        "/api/audio/analyze",
        json={
            "pitch_transcript": "We cut onboarding time in half.",
            "project_id": project["id"],
            "context": {"goal": "Raise a seed round"},
        },
        headers=alice,
    )
    assert response.status_code == 200
    combined = response.json()["combined_context"]
    assert combined["audience"] == "Bank executives"
    assert combined["goal"] == "Raise a seed round"


def test_direct_transcripts_build_attempt_history(client, alice, make_project) -> None:
    project = make_project(alice)
    body = {"pitch_transcript": "We cut onboarding time in half.", "project_id": project["id"]}

    numbers = []
    for clarity in (4, 6, 6, 8, 9):
        FakeAnalysis.clarity = clarity
        response = client.post("/api/audio/analyze", json=body, headers=alice)
        assert response.status_code == 200
        numbers.append(response.json()["attempt_number"])
    assert numbers == [1, 2, 3, 4, 5]

    # Only the most recent attempts are sent back to the model
    history = FakeAnalysis.calls[-1]["previous_attempts"]
    assert [a["attempt"] for a in history] == [2, 3, 4]
    assert history[-1]["scores"] == {"clarity": 8, "storytelling": 6}

    sessions = client.get(
        "/api/audio/sessions",
        params={"type": "pitch", "project_id": project["id"]},
        headers=alice,
    ).json()["sessions"]
    assert len(sessions) == 5
    assert {s["audio_path"] for s in sessions} == {audio.DIRECT_TRANSCRIPT_PATH}

    progress = client.get(f"/api/projects/{project['id']}/progress", headers=alice).json()
    attempts = progress["attempts"]
    assert len(attempts) == 5
    assert [a["scores"]["clarity"] for a in attempts] == [4, 6, 6, 8, 9]
    assert attempts[0]["changes"]["clarity"] is None
    assert attempts[1]["changes"]["clarity"] == "up"
    assert attempts[2]["changes"]["clarity"] == "same"


def test_direct_transcript_without_project_is_not_stored(client, alice) -> None:
    response = client.post(
        "/api/audio/analyze", json={"pitch_transcript": "Quick pitch."}, headers=alice
    )
    assert response.status_code == 200
    assert response.json()["session_id"] is None
    assert response.json()["attempt_number"] is None
    assert client.get("/api/audio/sessions", headers=alice).json()["sessions"] == []


def test_generation_failure_is_500(client, alice, monkeypatch) -> None:
    class BrokenAnalysis:
        async def analyze(self, transcript, session_type="pitch", **kwargs):
            raise GenerationError("All generation models failed: rate limited")

    monkeypatch.setattr(audio, "AnalysisService", BrokenAnalysis)
    response = client.post(
        "/api/audio/analyze", json={"pitch_transcript": "Quick pitch."}, headers=alice
    )
    assert response.status_code == 500
    assert "All generation models failed" in response.json()["error"]


def test_list_sessions_filters(client, alice, bob) -> None:
    _upload(client, alice)
    _upload(client, alice, session_type="context")
    _upload(client, bob)

    everything = client.get("/api/audio/sessions", headers=alice).json()["sessions"]
    assert len(everything) == 2

    context_only = client.get(
        "/api/audio/sessions", params={"type": "context"}, headers=alice
    ).json()["sessions"]
    assert [s["type"] for s in context_only] == ["context"]

    bad = client.get("/api/audio/sessions", params={"type": "speech"}, headers=alice)
    assert bad.status_code == 400


def test_direct_transcript_has_no_audio_url(client, alice, make_project) -> None:
    project = make_project(alice)
    session_id = client.post(
        "/api/audio/analyze",
        json={"pitch_transcript": "We cut costs.", "project_id": project["id"]},
        headers=alice,
    ).json()["session_id"]

    response = client.get(f"/api/audio/sessions/{session_id}/url", headers=alice)
    assert response.status_code == 404


def test_oversized_upload_is_rejected(client, alice, monkeypatch) -> None:
    from pitch_coach.config import settings

    monkeypatch.setattr(settings, "max_upload_bytes", 4)
    response = client.post(
        "/api/audio/upload-and-transcribe",
        data={"type": "pitch"},
        files={"audio": ("pitch.webm", b"0123456789", "audio/webm")},
        headers=alice,
    )
    assert response.status_code == 400
    assert response.json()["error"] == "File too large (limit 4 bytes)"
    assert FakeTranscription.calls == []
    assert client.get("/api/audio/sessions", headers=alice).json()["sessions"] == []
