import json
import logging
import re

from pitch_coach.clients import GroqClient
from pitch_coach.config import settings
from pitch_coach.models import Project
from pitch_coach.services.context import format_context

logger = logging.getLogger(__name__)

SCORE_DIMENSIONS = (
    "clarity",
    "structure_flow",
    "persuasiveness",
    "storytelling",
    "conciseness",
    "fit_for_audience",
    "delivery_energy",
)

# ---------------------------------------------------------------------------
# Prompt templates
# ---------------------------------------------------------------------------

SYSTEM_PROMPT = (
    "You are Pitch Coach, an expert pitch and communication coach. "
    "You give honest, specific, encouraging feedback and always answer with a "
    "single JSON object and nothing else."
)

PITCH_INSTRUCTIONS = """Analyze this pitch transcript and return ONLY a JSON object with these fields:
- summary: a brief summary of the pitch
- scores: an object with the keys clarity, structure_flow, persuasiveness, storytelling,
  conciseness, fit_for_audience, delivery_energy; each value is
  {"score": <integer 1-10>, "comment": "<one sentence>"}
- strengths: an array of strengths identified
- improvements: an array of areas for improvement
- suggestions: an array of actionable suggestions
- improved_pitch: a rewritten, improved version of the pitch"""

PROGRESS_INSTRUCTIONS = """- progress_note: one or two sentences comparing this attempt with the previous attempts"""

CONTEXT_INSTRUCTIONS = """Analyze this context transcript (audience/goal information) and return ONLY a JSON object with these fields:
- summary: a brief summary of the context
- strengths: an array of strengths identified
- improvements: an array of areas for improvement
- suggestions: an array of actionable suggestions"""

LIST_FIELDS = ("strengths", "improvements", "suggestions")


# ---------------------------------------------------------------------------
# JSON recovery
# ---------------------------------------------------------------------------

_FENCE_RE = re.compile(r"```(?:json|JSON)?[ \t]*\n?(.*?)```", re.DOTALL)


def strip_code_fences(text: str) -> str:
    """Return the body of the first markdown code block, or *text* unfenced."""
    match = _FENCE_RE.search(text)
    if match:
        return match.group(1).strip()
    # An opening fence whose closing fence was cut off
    return re.sub(r"^\s*```(?:json|JSON)?[ \t]*\n?", "", text).strip()


def isolate_json_object(text: str) -> str | None:
    """Slice from the first ``{`` to the last ``}``.

    A truncated reply with no closing brace keeps everything after the first
    ``{`` so :func:`close_open_brackets` can finish it.
    """
    start = text.find("{")
    if start == -1:
        return None
    end = text.rfind("}")
    if end < start:
        return text[start:]
    return text[start : end + 1]


def remove_trailing_commas(text: str) -> str:
    return re.sub(r",\s*([}\]])", r"\1", text)


def replace_smart_quotes(text: str) -> str:
    return (
        text.replace("“", '"')
        .replace("”", '"')
        .replace("‘", "'")
        .replace("’", "'")
    )


def escape_control_characters(text: str) -> str:
    """Escape raw newlines and tabs that appear inside string literals."""
    out = []
    in_string = False
    escaped = False
    for ch in text:
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            elif ch == "\n":
                out.append("\\n")
                continue
            elif ch == "\r":
                out.append("\\r")
                continue
            elif ch == "\t":
                out.append("\\t")
                continue
        elif ch == '"':
            in_string = True
        out.append(ch)
    return "".join(out)


def escape_inner_quotes(text: str) -> str:
    """Escape double quotes inside strings that do not terminate the string.

    A quote closes a string only when the next non-blank character is a
    structural one (``, : } ]``) or the end of input.
    """
    out = []
    in_string = False
    escaped = False
    n = len(text)
    for i, ch in enumerate(text):
        if not in_string:
            if ch == '"':
                in_string = True
            out.append(ch)
            continue
        if escaped:
            escaped = False
        elif ch == "\\":
            escaped = True
        elif ch == '"':
            j = i + 1
            while j < n and text[j] in " \t\r\n":
                j += 1
            if j == n or text[j] in ",:}]":
                in_string = False
            else:
                out.append('\\"')
                continue
        out.append(ch)
    return "".join(out)


def close_open_brackets(text: str) -> str:
    """Terminate an unfinished string and append missing ``]``/``}``."""
    stack = []
    in_string = False
    escaped = False
    for ch in text:
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch in "{[":
            stack.append("}" if ch == "{" else "]")
        elif ch in "}]" and stack and stack[-1] == ch:
            stack.pop()
    if in_string:
        text += '"'
    if not stack:
        return text
    text = re.sub(r"[,:\s]+$", "", text)
    return text + "".join(reversed(stack))


# Applied cumulatively, cheapest first.
_REPAIRS = (
    remove_trailing_commas,
    replace_smart_quotes,
    escape_control_characters,
    escape_inner_quotes,
    close_open_brackets,
    remove_trailing_commas,
)


def _loads_object(text: str) -> dict | None:
    try:
        data = json.loads(text)
    except (ValueError, RecursionError):
        return None
    return data if isinstance(data, dict) else None


def parse_model_json(raw: str | None) -> dict | None:
    """Recover a JSON object from free-form model output.

    Returns ``None`` when nothing parseable can be salvaged.  Never raises.
    """
    if not raw or not isinstance(raw, str):
        return None
    candidate = isolate_json_object(strip_code_fences(raw))
    if candidate is None:
        return None
    data = _loads_object(candidate)
    if data is not None:
        return data
    for repair in _REPAIRS:
        candidate = repair(candidate)
        data = _loads_object(candidate)
        if data is not None:
            logger.debug("Recovered model JSON after %s", repair.__name__)
            return data
    return None


def placeholder_analysis(session_type: str, raw_text: str = "") -> dict:
    """Fixed result used when the model reply cannot be parsed."""
    result: dict = {
        "summary": raw_text.strip()
        or "Analysis could not be completed. Please try again.",
        "scores": {},
        "strengths": [],
        "improvements": [],
        "suggestions": [],
    }
    if session_type == "pitch":
        result["improved_pitch"] = ""
    if raw_text:
        result["raw_response"] = raw_text
    return result


def normalize_analysis(data: dict, session_type: str) -> dict:
    """Fill in any missing fields so callers can rely on the shape."""
    result = dict(data)
    if not isinstance(result.get("summary"), str):
        result["summary"] = ""
    if not isinstance(result.get("scores"), dict):
        result["scores"] = {}
    for field in LIST_FIELDS:
        value = result.get(field)
        if value is None:
            result[field] = []
        elif not isinstance(value, list):
            result[field] = [value]
    if session_type == "pitch" and not isinstance(result.get("improved_pitch"), str):
        result["improved_pitch"] = ""
    return result


def extract_scores(analysis: dict | None) -> dict[str, float]:
    """Pull numeric scores from an analysis; accepts ``n`` or ``{"score": n}``."""
    if not isinstance(analysis, dict):
        return {}
    scores = analysis.get("scores")
    if not isinstance(scores, dict):
        return {}
    result = {}
    for dim in SCORE_DIMENSIONS:
        value = scores.get(dim)
        if isinstance(value, dict):
            value = value.get("score")
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            result[dim] = value
    return result


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def _format_previous_attempts(previous_attempts: list[dict]) -> str:
    lines = []
    for attempt in previous_attempts:
        scores = attempt.get("scores") or {}
        rendered = ", ".join(f"{k}={v}" for k, v in scores.items()) or "no scores"
        when = f" ({attempt['created_at']})" if attempt.get("created_at") else ""
        lines.append(f"Attempt {attempt.get('attempt')}{when}: {rendered}")
    return "\n".join(lines)


def build_messages(
    transcript: str,
    session_type: str = "pitch",
    context: dict | None = None,
    project: Project | None = None,
    attempt_number: int | None = None,
    previous_attempts: list[dict] | None = None,
) -> list[dict]:
    """Render the analysis prompt for one transcript."""
    if session_type == "pitch":
        instructions = PITCH_INSTRUCTIONS
        if previous_attempts:
            instructions += "\n" + PROGRESS_INSTRUCTIONS
    else:
        instructions = CONTEXT_INSTRUCTIONS

    parts = [instructions]
    context_block = format_context(context or {}, project)
    if context_block:
        parts.append(context_block)
    if attempt_number:
        parts.append(f"This is attempt number {attempt_number} of this pitch.")
    if previous_attempts:
        parts.append(
            "Scores from previous attempts:\n"
            + _format_previous_attempts(previous_attempts)
        )
    parts.append(f"Transcript:\n{transcript}")

    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": "\n\n".join(parts)},
    ]


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class AnalysisService:
    """Generate structured pitch feedback via the Groq API."""

    def __init__(self, groq: GroqClient | None = None) -> None:
        # A client created here is closed after each analysis.
        self._owns_client = groq is None
        self.groq = groq or GroqClient()

    async def analyze(
        self,
        transcript: str,
        session_type: str = "pitch",
        context: dict | None = None,
        project: Project | None = None,
        attempt_number: int | None = None,
        previous_attempts: list[dict] | None = None,
    ) -> dict:
        """Analyze *transcript* and return the analysis JSON.

        Unparseable replies yield :func:`placeholder_analysis`.  Exhausting
        every model raises :class:`~pitch_coach.errors.GenerationError`.
        """
        if not transcript or not transcript.strip():
            raise ValueError("Transcript is required")

        messages = build_messages(
            transcript,
            session_type,
            context=context,
            project=project,
            attempt_number=attempt_number,
            previous_attempts=previous_attempts,
        )
        try:
            content, model = await self.groq.chat_with_fallback(
                messages,
                temperature=settings.analysis_temperature,
                max_tokens=settings.analysis_max_tokens,
            )
        finally:
            if self._owns_client:
                await self.groq.close()

        data = parse_model_json(content)
        if data is None:
            logger.warning("Model %s returned unparseable output, using placeholder", model)
            return placeholder_analysis(session_type, content)
        logger.info("Analysis generated with %s", model)
        return normalize_analysis(data, session_type)
