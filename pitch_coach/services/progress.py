from pitch_coach.models import AudioSession
from pitch_coach.services.analysis import extract_scores

MAX_PROGRESS_ATTEMPTS = 5


def score_change(current: float | None, previous: float | None) -> str | None:
    if current is None or previous is None:
        return None
    if current > previous:
        return "up"
    if current < previous:
        return "down"
    return "same"


def build_progress(sessions: list[AudioSession], limit: int = MAX_PROGRESS_ATTEMPTS) -> list[dict]:
    """Score trend over the last *limit* analyzed pitch attempts, oldest first.

    *sessions* is expected newest first, as the session listing returns them.
    """
    analyzed = [s for s in reversed(sessions) if s.type == "pitch" and s.analysis_json]
    analyzed.sort(key=lambda s: s.created_at or "")
    analyzed = analyzed[-limit:]

    attempts = []
    previous: dict = {}
    for number, session in enumerate(analyzed, start=1):
        scores = extract_scores(session.analysis_json)
        attempts.append({
            "attempt": number,
            "session_id": session.id,
            "created_at": session.created_at,
            "scores": scores,
            "changes": {
                dim: score_change(value, previous.get(dim))
                for dim, value in scores.items()
            },
        })
        previous = scores
    return attempts
