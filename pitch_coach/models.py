import json
from dataclasses import asdict, dataclass, fields

SESSION_TYPES = ("pitch", "context")


def _from_row(cls, row):
    names = {f.name for f in fields(cls)}
    return cls(**{k: row[k] for k in row.keys() if k in names})


@dataclass
class User:
    id: str
    email: str
    full_name: str | None
    api_token: str
    created_at: str

    @classmethod
    def from_row(cls, row) -> "User":
        return _from_row(cls, row)

    def to_dict(self) -> dict:
        # The token is only returned once, at registration.
        data = asdict(self)
        data.pop("api_token")
        return data


@dataclass
class Project:
    id: str
    user_id: str
    name: str
    project_type: str | None = None
    description: str | None = None
    default_audience: str | None = None
    default_goal: str | None = None
    default_duration: str | None = None
    default_scenario: str | None = None
    english_level: str | None = None
    tone_style: str | None = None
    constraints: str | None = None
    additional_notes: str | None = None
    context_transcript: str | None = None
    transcription_language: str | None = None
    slide_deck_path: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_row(cls, row) -> "Project":
        return _from_row(cls, row)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class AudioSession:
    id: str
    user_id: str
    project_id: str | None
    type: str  # pitch | context
    audio_path: str
    transcript: str | None = None
    analysis_json: dict | None = None
    created_at: str | None = None

    @classmethod
    def from_row(cls, row) -> "AudioSession":
        session = _from_row(cls, row)
        if isinstance(session.analysis_json, str):
            session.analysis_json = json.loads(session.analysis_json)
        return session

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ProjectSlide:
    id: str
    project_id: str
    index: int
    title: str | None = None
    content: str | None = None
    thumbnail_url: str | None = None
    created_at: str | None = None

    @classmethod
    def from_row(cls, row) -> "ProjectSlide":
        return _from_row(cls, row)

    def to_dict(self) -> dict:
        return asdict(self)
