from pitch_coach.models import Project

# Request field -> project column holding its default.
CONTEXT_FIELDS = {
    "audience": "default_audience",
    "goal": "default_goal",
    "duration": "default_duration",
    "scenario": "default_scenario",
    "english_level": "english_level",
    "tone_style": "tone_style",
    "constraints": "constraints",
    "additional_notes": "additional_notes",
    "context_transcript": "context_transcript",
}

CONTEXT_LABELS = {
    "audience": "Audience",
    "goal": "Goal",
    "duration": "Duration",
    "scenario": "Scenario",
    "english_level": "English Level",
    "tone_style": "Tone/Style",
    "constraints": "Constraints",
    "additional_notes": "Additional Notes",
    "context_transcript": "Context Transcript",
}


def combine_context(request_context: dict | None, project: Project | None) -> dict:
    """Merge per-request context over the project's saved defaults.

    A non-empty request value wins, then the project default, then "".
    """
    request_context = request_context or {}
    combined = {}
    for field, column in CONTEXT_FIELDS.items():
        value = request_context.get(field) or ""
        if not value and project is not None:
            value = getattr(project, column) or ""
        combined[field] = value.strip() if isinstance(value, str) else str(value)
    return combined


def format_context(combined: dict, project: Project | None = None) -> str:
    """Render the context block embedded in the analysis prompt."""
    lines = []
    if project is not None:
        suffix = f" ({project.project_type})" if project.project_type else ""
        lines.append(f"Project: {project.name}{suffix}")
    for field, label in CONTEXT_LABELS.items():
        if combined.get(field):
            lines.append(f"{label}: {combined[field]}")
    if not lines:
        return ""
    return "Context Information:\n" + "\n".join(lines)
