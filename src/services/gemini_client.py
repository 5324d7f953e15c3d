from __future__ import annotations

from pathlib import Path

import google.generativeai as genai
from google.api_core.exceptions import GoogleAPIError, ResourceExhausted

from src.services.errors import (
    RateLimitedError,
    ServiceError,
    VisionConfigurationError,
    VisionPromptError,
    VisionResponseError,
)


def _is_rate_limited_error(exc: Exception) -> bool:
    if isinstance(exc, ResourceExhausted):
        return True
    if getattr(exc, "code", None) == 429 or getattr(exc, "status_code", None) == 429:
        return True
    return "RESOURCE_EXHAUSTED" in str(exc)


class GeminiVisionClient:
    def __init__(self, api_key: str, model_name: str = "gemini-2.5-flash", max_output_tokens: int = 1000) -> None:
        self.api_key = api_key
        self.model_name = model_name
        self.max_output_tokens = max_output_tokens
        self._configure_api()

    def _configure_api(self) -> None:
        if not self.api_key:
            raise VisionConfigurationError("Missing Google API key.")
        genai.configure(api_key=self.api_key)

    def _load_system_prompt(self, file_path: Path) -> str:
        try:
            return file_path.read_text(encoding="utf-8")
        except FileNotFoundError as not_found_error:
            raise VisionPromptError(f"Prompt file not found: {file_path}") from not_found_error
        except OSError as io_error:
            raise VisionPromptError(f"Unable to read prompt file: {io_error}") from io_error

    def describe_image(
        self,
        image_bytes: bytes,
        mime_type: str,
        system_prompt_path: Path,
        user_prompt: str = "",
    ) -> str:
        system_instruction = self._load_system_prompt(system_prompt_path)
        model = genai.GenerativeModel(
            model_name=self.model_name,
            system_instruction=system_instruction,
            generation_config={"max_output_tokens": self.max_output_tokens},
        )

        parts: list = [{"mime_type": mime_type, "data": image_bytes}]
        if user_prompt:
            parts.append(user_prompt)

        try:
            response = model.generate_content(parts)
        except GoogleAPIError as err:
            if _is_rate_limited_error(err):
                raise RateLimitedError("Gemini API rate limit reached. Try again shortly.") from err
            raise ServiceError(f"Gemini request failed: {err}") from err

        try:
            text = response.text
        except ValueError as err:
            # Raised when the candidate was blocked and carries no text part
            raise VisionResponseError(f"Model returned no text: {err}") from err

        if not text:
            raise VisionResponseError("Model returned an empty response")
        return text
