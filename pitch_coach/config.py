from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Groq
    groq_api_key: str = "gsk_placeholder"
    # Tried in order; the next one is used when a model is rate-limited.
    analysis_models: list[str] = [
        "llama-3.3-70b-versatile",
        "meta-llama/llama-4-maverick-17b-128e-instruct",
        "llama-3.1-8b-instant",
    ]
    analysis_temperature: float = 0.7
    analysis_max_tokens: int = 2048
    max_history_attempts: int = 3

    # Transcription: "elevenlabs" or "whisper"
    transcription_provider: str = "elevenlabs"
    elevenlabs_api_key: str = ""
    elevenlabs_model: str = "scribe_v1"
    elevenlabs_url: str = "https://api.elevenlabs.io/v1/speech-to-text"
    elevenlabs_timeout_seconds: float = 120.0

    # Whisper
    whisper_model: str = "small"
    whisper_device: str = "cpu"
    whisper_compute_type: str = "int8"

    # Storage
    database_path: str = "pitch_coach.db"
    storage_root: str = "storage"
    signing_secret: str = "change-me"
    signed_url_ttl_seconds: int = 3600
    max_upload_bytes: int = 50 * 1024 * 1024

    # Slides
    pdf_chars_per_page: int = 500

    # Server
    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
