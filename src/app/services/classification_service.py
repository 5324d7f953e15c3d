# src/app/services/classification_service.py
"""
Classification stage: client for the vision endpoints.

classify() never fails; a remote problem yields the fallback result so the
save goes through. generate() raises ClassificationError and lets the caller
decide.
"""
from __future__ import annotations

import base64
import logging
import time
from typing import Any, Optional

import httpx

from src.app.domain.errors import ClassificationError
from src.app.domain.models import Category, ClassificationResult, GeneratedContent
from src.app.domain.normalize import normalize_classification, normalize_generated_content

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
ANALYZE_PATH = "/analyze-image"
GENERATE_PATH = "/generate-content"


class ClassificationService:
    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        started = time.monotonic()
        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout_seconds,
            transport=self._transport,
        ) as client:
            response = await client.post(path, json=body, headers=self._headers())
            response.raise_for_status()
            payload = response.json()

        logger.info(
            "Vision call done: path=%s, status=%d, elapsed=%.0fms",
            path,
            response.status_code,
            (time.monotonic() - started) * 1000,
        )
        if not isinstance(payload, dict):
            raise ValueError("response body is not a JSON object")
        return payload

    async def classify(self, image_bytes: bytes) -> ClassificationResult:
        """Auto-categorize one screenshot. Always returns a result."""
        body = {"imageBase64": base64.b64encode(image_bytes).decode("ascii")}

        try:
            payload = await self._post(ANALYZE_PATH, body)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Image analysis failed, using fallback: %s", e)
            return ClassificationResult.fallback()

        if payload.get("error"):
            logger.warning("Image analysis returned fallback values: %s", payload.get("error"))

        return normalize_classification(payload)

    async def generate(self, image_bytes: bytes, category: Category) -> GeneratedContent:
        """
        Generate category-specific content for one screenshot.

        Raises:
            ClassificationError: If the endpoint fails or answers garbage
        """
        body = {
            "imageBase64": base64.b64encode(image_bytes).decode("ascii"),
            "category": category.value,
        }

        try:
            payload = await self._post(GENERATE_PATH, body)
        except httpx.HTTPStatusError as e:
            logger.error("Content generation failed: category=%s, status=%d", category.value, e.response.status_code)
            raise ClassificationError(
                f"Content generation failed with HTTP {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.TimeoutException as e:
            raise ClassificationError(f"Content generation timed out after {self.timeout_seconds}s") from e
        except (httpx.HTTPError, ValueError) as e:
            raise ClassificationError(f"Content generation failed: {e}") from e

        return normalize_generated_content(payload)
