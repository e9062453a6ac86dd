from __future__ import annotations

import logging
from typing import Optional

from openai import OpenAI

from fieldmemo import config


class OpenAIServices:
    """
    Transcription and completion calls against OpenAI.

    Build one per process and pass it into the pipeline. The underlying
    client is created on first use so that importing this module (or
    building the app in tests) does not explode when the key is missing.
    Errors from the API propagate to the calling stage.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        transcribe_model: Optional[str] = None,
        extract_model: Optional[str] = None,
        report_model: Optional[str] = None,
    ):
        self.api_key = api_key if api_key is not None else config.OPENAI_API_KEY
        self.transcribe_model = transcribe_model or config.TRANSCRIBE_MODEL
        self.extract_model = extract_model or config.EXTRACT_MODEL
        self.report_model = report_model or config.REPORT_MODEL
        self._client: Optional[OpenAI] = None

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _get_client(self) -> OpenAI:
        if self._client is None:
            if not self.api_key:
                logging.error("OPENAI_API_KEY is not set; transcription and extraction are unavailable.")
                raise RuntimeError("OPENAI_API_KEY is not set")
            self._client = OpenAI(api_key=self.api_key)
        return self._client

    def transcribe(self, audio_bytes: bytes, filename: str = "audio.webm") -> str:
        """
        Send audio to the transcription model and return the plain text.

        The filename only tells the API which container format to expect.
        """
        client = self._get_client()
        transcription = client.audio.transcriptions.create(
            model=self.transcribe_model,
            file=(filename, audio_bytes),
        )
        return transcription.text or ""

    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        json_mode: bool = False,
        model: Optional[str] = None,
    ) -> str:
        """
        One chat completion. With json_mode the model is asked for a JSON
        object; the caller still has to parse and validate it.
        """
        client = self._get_client()
        kwargs = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        response = client.chat.completions.create(
            model=model or self.extract_model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            **kwargs,
        )
        return response.choices[0].message.content or ""
