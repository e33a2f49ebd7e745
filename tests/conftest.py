import io

import fitz
import pytest
from fastapi.testclient import TestClient
from pptx import Presentation

from pitch_coach.config import settings
from pitch_coach.main import app


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "database_path", str(tmp_path / "test.db"))
    monkeypatch.setattr(settings, "storage_root", str(tmp_path / "storage"))
    monkeypatch.setattr(settings, "signing_secret", "test-secret")
    monkeypatch.setattr(settings, "transcription_provider", "elevenlabs")
    monkeypatch.setattr(settings, "elevenlabs_api_key", "")


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


def register(client: TestClient, email: str) -> dict:
    response = client.post("/api/auth/register", json={"email": email})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['api_token']}"}


@pytest.fixture
def alice(client) -> dict:
    return register(client, "alice@example.com")


@pytest.fixture
def bob(client) -> dict:
    return register(client, "bob@example.com")


@pytest.fixture
def make_project(client):
    def _make(headers: dict, **fields) -> dict:
        payload = {"name": "Seed round"} | fields
        response = client.post("/api/projects", json=payload, headers=headers)
        assert response.status_code == 200
        return response.json()["project"]

    return _make


@pytest.fixture
def make_pdf():
    def _make(pages: list[str]) -> bytes:
        doc = fitz.open()
        for text in pages:
            page = doc.new_page()
            page.insert_text((72, 72), text)
        data = doc.tobytes()
        doc.close()
        return data

    return _make


@pytest.fixture
def make_pptx():
    def _make(slides: list[tuple[str, str]]) -> bytes:
        prs = Presentation()
        for title, body in slides:
            slide = prs.slides.add_slide(prs.slide_layouts[1])
            slide.shapes.title.text = title
            slide.placeholders[1].text = body
        buf = io.BytesIO()
        prs.save(buf)
        return buf.getvalue()

    return _make
