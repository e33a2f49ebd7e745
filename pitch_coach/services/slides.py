import io
import logging
import os
import re

import fitz  # PyMuPDF
from pptx import Presentation

from pitch_coach.config import settings
from pitch_coach.errors import SlideExtractionError

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".pdf", ".pptx")


def split_pages(text: str, chars_per_page: int | None = None) -> list[str]:
    """Split extracted document text into pages.

    Pages are separated by form-feed characters.  When the text has no page
    breaks at all it is cut into fixed-size chunks instead.
    """
    chars_per_page = chars_per_page or settings.pdf_chars_per_page
    pages = [page for page in text.split("\f") if page.strip()]
    if len(pages) == 1:
        only = pages[0]
        return [only[i : i + chars_per_page] for i in range(0, len(only), chars_per_page)]
    return pages


def page_to_slide(page_text: str, index: int) -> dict:
    """First non-empty line is the title; the remaining lines are the content."""
    lines = [line.strip() for line in re.split(r"\n+", page_text) if line.strip()]
    title = lines[0] if lines else None
    content = "\n".join(lines[1:]).strip() or None
    return {"index": index, "title": title, "content": content}


def _keep(slide: dict) -> bool:
    return bool(slide["title"] or slide["content"])


class SlideService:
    """Extract ordinal slide title/content from PDF and PPTX decks."""

    @staticmethod
    def extract(data: bytes, filename: str) -> list[dict]:
        """Dispatch to the correct parser based on file extension.

        Returns::

            [{"index": int, "title": str | None, "content": str | None}, ...]

        ``index`` is 1-based.  Slides with neither title nor content are dropped.
        """
        ext = os.path.splitext(filename)[1].lower()
        if ext == ".pdf":
            parse = SlideService._parse_pdf
        elif ext == ".pptx":
            parse = SlideService._parse_pptx
        else:
            raise ValueError(
                f"Unsupported file type: {ext or filename}. Only PDF and PPTX files are supported."
            )

        try:
            slides = parse(data)
        except Exception as e:
            kind = ext.lstrip(".").upper()
            raise SlideExtractionError(
                f"Failed to parse {kind} file: {e}. "
                f"Please ensure the file is a valid {kind} document."
            ) from e

        logger.info("Extracted %d slides from %s", len(slides), filename)
        return slides

    # ------------------------------------------------------------------
    # PDF parsing
    # ------------------------------------------------------------------
    @staticmethod
    def _parse_pdf(data: bytes) -> list[dict]:
        with fitz.open(stream=data, filetype="pdf") as doc:
            text = "\f".join(page.get_text() for page in doc)

        slides = [
            page_to_slide(page_text, idx + 1)
            for idx, page_text in enumerate(split_pages(text))
        ]
        return [s for s in slides if _keep(s)]

    # ------------------------------------------------------------------
    # PPTX parsing
    # ------------------------------------------------------------------
    @staticmethod
    def _parse_pptx(data: bytes) -> list[dict]:
        prs = Presentation(io.BytesIO(data))
        if len(prs.slides) == 0:
            raise ValueError("No slides found in presentation")

        slides: list[dict] = []
        for slide_idx, slide in enumerate(prs.slides):
            title: str | None = None
            texts: list[str] = []

            for shape in slide.shapes:
                if not shape.has_text_frame:
                    continue
                frame_text = shape.text_frame.text.strip()
                if not frame_text:
                    continue
                # Title placeholder has idx == 0
                if (
                    title is None
                    and shape.is_placeholder
                    and shape.placeholder_format.idx == 0
                ):
                    title = frame_text
                    continue
                texts.append(frame_text)

            # Fallback title: first text block
            if title is None and texts:
                title, texts = texts[0], texts[1:]

            slides.append({
                "index": slide_idx + 1,
                "title": title,
                "content": "\n".join(texts).strip() or None,
            })

        return [s for s in slides if _keep(s)]
