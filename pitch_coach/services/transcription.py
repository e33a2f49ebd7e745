import asyncio
import logging
import os
import tempfile

import httpx

from pitch_coach.config import settings
from pitch_coach.errors import TranscriptionError

logger = logging.getLogger(__name__)


class WhisperService:
    """Lazy singleton around a faster-whisper model.

    The model is downloaded and loaded on the first call to ``get()``,
    not at import time or server startup.
    """

    _instance: "WhisperService | None" = None

    def __init__(self) -> None:
        from faster_whisper import WhisperModel

        logger.info("Loading Whisper model %s", settings.whisper_model)
        self.model = WhisperModel(
            settings.whisper_model,
            device=settings.whisper_device,
            compute_type=settings.whisper_compute_type,
        )

    @classmethod
    def get(cls) -> "WhisperService":
        """Return the singleton, creating it (and downloading the model) if needed."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def transcribe(self, audio_path: str, language: str | None = None) -> str:
        """Transcribe an audio file.  Blocking; call through ``asyncio.to_thread``."""
        segments, _info = self.model.transcribe(audio_path, beam_size=5, language=language)
        # segments is a lazy generator; joining forces evaluation
        return " ".join(seg.text.strip() for seg in segments).strip()


class ElevenLabsService:
    """Speech-to-text over the ElevenLabs REST API."""

    def __init__(self, api_key: str | None = None) -> None:
        self.api_key = api_key or settings.elevenlabs_api_key

    async def transcribe(
        self,
        audio: bytes,
        filename: str = "audio.mp3",
        content_type: str = "audio/mpeg",
        *,
        language_code: str | None = None,
        diarize: bool = True,
        tag_audio_events: bool = True,
    ) -> str:
        if not self.api_key:
            raise TranscriptionError("ELEVENLABS_API_KEY is not set")

        data = {
            "model_id": settings.elevenlabs_model,
            "diarize": str(diarize).lower(),
            "tag_audio_events": str(tag_audio_events).lower(),
        }
        if language_code:
            data["language_code"] = language_code

        try:
            async with httpx.AsyncClient(timeout=settings.elevenlabs_timeout_seconds) as client:
                response = await client.post(
                    settings.elevenlabs_url,
                    headers={"xi-api-key": self.api_key},
                    data=data,
                    files={"file": (filename, audio, content_type)},
                )
        except httpx.HTTPError as e:
            raise TranscriptionError(f"ElevenLabs request failed: {e}") from e

        if response.status_code >= 400:
            raise TranscriptionError(
                f"ElevenLabs API error: {response.status_code} - {response.text or 'Unknown error'}"
            )

        if "application/json" in response.headers.get("content-type", ""):
            try:
                payload = response.json()
            except ValueError as e:
                raise TranscriptionError(f"ElevenLabs returned an invalid response: {e}") from e
            if not isinstance(payload, dict):
                raise TranscriptionError(
                    f"ElevenLabs returned an invalid response: expected an object, "
                    f"got {type(payload).__name__}"
                )
            for key in ("text", "transcript", "transcription"):
                if payload.get(key):
                    return payload[key]
            return ""
        return response.text


class TranscriptionService:
    """Pick the configured speech-to-text provider."""

    def __init__(self, provider: str | None = None) -> None:
        self.provider = provider or settings.transcription_provider

    async def transcribe(
        self,
        audio: bytes,
        filename: str,
        content_type: str | None = None,
        language: str | None = None,
    ) -> str:
        if not audio:
            raise TranscriptionError("Audio file is empty")

        if self.provider == "elevenlabs":
            transcript = await ElevenLabsService().transcribe(
                audio,
                filename,
                content_type or "application/octet-stream",
                language_code=language,
            )
        elif self.provider == "whisper":
            transcript = await asyncio.to_thread(self._transcribe_local, audio, filename, language)
        else:
            raise TranscriptionError(f"Unknown transcription provider: {self.provider}")

        logger.info("Transcribed %s with %s (%d chars)", filename, self.provider, len(transcript))
        return transcript

    @staticmethod
    def _transcribe_local(audio: bytes, filename: str, language: str | None) -> str:
        suffix = os.path.splitext(filename)[1] or ".wav"
        fd, path = tempfile.mkstemp(suffix=suffix)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(audio)
            return WhisperService.get().transcribe(path, language=language)
        except Exception as e:
            raise TranscriptionError(f"Whisper transcription failed: {e}") from e
        finally:
            os.remove(path)
