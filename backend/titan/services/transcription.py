"""
Speech-to-Text Transcription Service using OpenAI Whisper API.
"""

import io
import logging
from typing import Optional

import openai
from openai import AsyncOpenAI

from ..core.errors import TranscriptionFailed

logger = logging.getLogger(__name__)


class TranscriptionService:
    """
    Transcribes recorded voice commands to text using OpenAI Whisper.
    """

    def __init__(self, api_key: Optional[str] = None, model: str = "whisper-1",
                 timeout: float = 60.0, client: Optional[AsyncOpenAI] = None):
        """
        Initialize transcription service.

        Args:
            api_key: OpenAI API key; the service is unconfigured without one
            model: Whisper model name
            timeout: Request timeout in seconds
            client: Pre-built client (tests)
        """
        self.model = model
        if client is not None:
            self.client = client
        elif api_key:
            self.client = AsyncOpenAI(api_key=api_key, timeout=timeout)
        else:
            self.client = None

    def is_configured(self) -> bool:
        return self.client is not None

    async def transcribe_audio(
        self,
        audio_data: bytes,
        filename: str = "recording.webm",
        language: Optional[str] = None,
    ) -> dict:
        """
        Transcribe audio bytes to text.

        Args:
            audio_data: Raw audio file bytes
            filename: Original filename (helps Whisper detect format)
            language: Optional ISO 639-1 language code; auto-detected when omitted

        Returns:
            dict with ``text``, ``language`` and ``duration``

        Raises:
            TranscriptionFailed: service not configured, API error, or no speech recognised
        """
        if not self.client:
            raise TranscriptionFailed(
                "Transcription not configured. Set OPENAI_API_KEY in environment variables."
            )
        if not audio_data:
            raise TranscriptionFailed("Empty audio recording")

        audio_file = io.BytesIO(audio_data)
        audio_file.name = filename

        transcription_params = {
            "model": self.model,
            "file": audio_file,
            "response_format": "verbose_json",
        }
        if language:
            transcription_params["language"] = language

        try:
            response = await self.client.audio.transcriptions.create(**transcription_params)
        except openai.APIError as e:
            logger.error(f"Whisper API error: {e.message}", exc_info=True)
            raise TranscriptionFailed(f"Transcription failed: {e.message}")

        text = (getattr(response, "text", None) or "").strip()
        if not text:
            raise TranscriptionFailed("No speech recognised in the recording")

        logger.info(
            f"Transcription received: {text}",
            extra={"extra_fields": {"audio_bytes": len(audio_data)}}
        )
        return {
            "text": text,
            "language": getattr(response, "language", None),
            "duration": getattr(response, "duration", None),
        }
