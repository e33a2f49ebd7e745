import pytest

from pitch_coach.errors import SlideExtractionError
from pitch_coach.services.slides import SlideService, page_to_slide, split_pages


def test_split_pages_on_form_feeds() -> None:
    assert split_pages("one\ftwo\f  \fthree", chars_per_page=500) == ["one", "two", "three"]


def test_split_pages_chunks_text_without_breaks() -> None:
    pages = split_pages("a" * 1200, chars_per_page=500)
    assert [len(p) for p in pages] == [500, 500, 200]


def test_split_pages_empty() -> None:
    assert split_pages("", chars_per_page=500) == []


def test_page_to_slide() -> None:
    slide = page_to_slide("\n  Problem \n\nTeams waste hours\nEvery week\n", 3)
    assert slide == {"index": 3, "title": "Problem", "content": "Teams waste hours\nEvery week"}
    assert page_to_slide("Only a title", 1)["content"] is None


def test_extract_pdf(make_pdf) -> None:
    data = make_pdf(["Problem\nOnboarding is slow", "Solution\nGuided setup"])
    slides = SlideService.extract(data, "deck.PDF")
    assert [s["index"] for s in slides] == [1, 2]
    assert slides[0]["title"] == "Problem"
    assert slides[0]["content"] == "Onboarding is slow"
    assert slides[1]["title"] == "Solution"


def test_extract_pptx(make_pptx) -> None:
    data = make_pptx([("Problem", "Onboarding is slow"), ("Ask", "$1M seed")])
    slides = SlideService.extract(data, "deck.pptx")
    assert slides == [
        {"index": 1, "title": "Problem", "content": "Onboarding is slow"},
        {"index": 2, "title": "Ask", "content": "$1M seed"},
    ]


def test_unsupported_extension() -> None:
    with pytest.raises(ValueError):
        SlideService.extract(b"whatever", "deck.key")


def test_corrupt_file() -> None:
    with pytest.raises(SlideExtractionError):
        SlideService.extract(b"definitely not a pdf", "deck.pdf")
