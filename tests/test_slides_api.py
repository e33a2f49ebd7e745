import pytest

from pitch_coach.services.storage import DECK_BUCKET, StorageService


@pytest.fixture
def deck(make_pptx) -> bytes:
    return make_pptx([("Problem", "Onboarding is slow"), ("Solution", "Guided setup"), ("Ask", "$1M")])


def _upload(client, headers, project_id, data, filename="deck.pptx"):
    return client.post(
        "/api/slides/upload",
        data={"project_id": project_id},
        files={"file": (filename, data, "application/octet-stream")},
        headers=headers,
    )


def test_upload_and_extract(client, alice, make_project, deck) -> None:
    project = make_project(alice)

    response = _upload(client, alice, project["id"], deck)
    assert response.status_code == 200
    assert response.json()["file_size"] == len(deck)

    stored = client.get(f"/api/projects/{project['id']}", headers=alice).json()["project"]
    assert stored["slide_deck_path"] == response.json()["file_path"]

    for _ in range(2):
        response = client.post(
            "/api/slides/extract", json={"project_id": project["id"]}, headers=alice
        )
        assert response.status_code == 200
        assert response.json()["slide_count"] == 3

    slides = client.get(f"/api/projects/{project['id']}/slides", headers=alice).json()["slides"]
    assert [s["index"] for s in slides] == [1, 2, 3]
    assert [s["title"] for s in slides] == ["Problem", "Solution", "Ask"]


def test_upload_rejects_other_formats(client, alice, make_project, deck) -> None:
    project = make_project(alice)
    response = _upload(client, alice, project["id"], deck, filename="deck.key")
    assert response.status_code == 400
    assert "Only PDF and PPTX" in response.json()["error"]


def test_upload_requires_project(client, alice, deck) -> None:
    response = client.post(
        "/api/slides/upload",
        files={"file": ("deck.pptx", deck, "application/octet-stream")},
        headers=alice,
    )
    assert response.status_code == 400
    assert response.json()["error"] == "Project ID is required"


def test_extract_without_deck(client, alice, make_project) -> None:
    project = make_project(alice)
    response = client.post("/api/slides/extract", json={"project_id": project["id"]}, headers=alice)
    assert response.status_code == 400


def test_slides_of_foreign_project(client, alice, bob, make_project, deck) -> None:
    project = make_project(alice)
    _upload(client, alice, project["id"], deck)

    assert _upload(client, bob, project["id"], deck).status_code == 404
    response = client.post("/api/slides/extract", json={"project_id": project["id"]}, headers=bob)
    assert response.status_code == 404
    assert client.get(f"/api/projects/{project['id']}/slides", headers=bob).status_code == 404


def test_corrupt_deck_is_500(client, alice, make_project) -> None:
    project = make_project(alice)
    _upload(client, alice, project["id"], b"not a pdf", filename="deck.pdf")
    response = client.post("/api/slides/extract", json={"project_id": project["id"]}, headers=alice)
    assert response.status_code == 500
    assert "Failed to parse PDF" in response.json()["error"]


def test_replacing_deck_removes_old_file(client, alice, make_project, deck) -> None:
    project = make_project(alice)
    first = _upload(client, alice, project["id"], deck, filename="v1.pptx").json()["file_path"]
    second = _upload(client, alice, project["id"], deck, filename="v2.pptx").json()["file_path"]

    assert not StorageService.exists(DECK_BUCKET, first)
    assert StorageService.exists(DECK_BUCKET, second)
