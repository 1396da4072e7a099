"""
Lifely — Audio Transcriber.

Voice notes are transcribed with OpenAI Whisper, then flow into the chat
orchestrator exactly like typed messages. The front end only calls this
when the user's `voice_input` setting is on.

OpenAI is used here for Whisper only; chat replies go through
lifely/core/llm.py and whichever provider LLM_PROVIDER selects.
"""

from __future__ import annotations

import logging
from pathlib import Path

from openai import AsyncOpenAI

logger = logging.getLogger(__name__)

# Lazy singleton, created on first transcription
_client: AsyncOpenAI | None = None


def _get_client() -> AsyncOpenAI:
    global _client
    if _client is None:
        from lifely.config import settings

        _client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY)
    return _client


async def transcribe_audio(file_path: str, language: str | None = None) -> str:
    """Transcribe an audio file using OpenAI Whisper.

    Args:
        file_path: Path to the audio file (OGG, MP3, etc.).
        language: Optional ISO-639-1 hint; defaults to TRANSCRIPTION_LANGUAGE,
            and Whisper auto-detects when both are empty.

    Returns:
        Transcribed text string.
    """
    if language is None:
        from lifely.config import settings

        language = settings.TRANSCRIPTION_LANGUAGE

    kwargs = {"language": language} if language else {}
    try:
        with open(file_path, "rb") as audio_file:
            response = await _get_client().audio.transcriptions.create(
                model="whisper-1",
                file=audio_file,
                **kwargs,
            )
    except Exception as exc:
        logger.error("Whisper transcription failed for %s: %s", file_path, exc)
        raise
    text = response.text.strip()
    logger.info("Transcribed %d chars from %s", len(text), Path(file_path).name)
    return text
