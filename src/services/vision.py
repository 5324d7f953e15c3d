from __future__ import annotations

import base64
import binascii
import json
import logging
import os
import re
from pathlib import Path
from typing import AbstractSet, Any, Optional, Protocol
from urllib.parse import urlparse

import httpx

from src.app.domain.models import Category, ClassificationResult, GeneratedContent
from src.app.domain.normalize import normalize_classification, normalize_generated_content
from src.services.errors import FetchFailedError, NetworkTimeoutError, VisionResponseError

logger = logging.getLogger(__name__)

PROMPT_DIR = Path(os.getenv("PROMPT_DIR", "data/Prompt"))
ANALYZE_PROMPT = PROMPT_DIR / "ANALYZE_IMAGE_PROMPT.txt"
GENERATE_FULL_PROMPT = PROMPT_DIR / "GENERATE_FULL_PROMPT.txt"
GENERATE_LIGHT_PROMPT = PROMPT_DIR / "GENERATE_LIGHT_PROMPT.txt"

FULL_GENERATION_CATEGORIES = frozenset({Category.VIDEO_IDEA, Category.HOOK, Category.SCRIPT})

# Confidence reported when the model omits it
SERVER_DEFAULT_CONFIDENCE = 0.5

DEFAULT_MIME_TYPE = "image/jpeg"
IMAGE_FETCH_TIMEOUT_SECONDS = 15.0
MAX_IMAGE_BYTES = 20 * 1024 * 1024

JSON_OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")
DATA_URL_PATTERN = re.compile(r"^data:(?P<mime>[\w/+.-]+);base64,")


class ImageDescriber(Protocol):
    def describe_image(
        self,
        image_bytes: bytes,
        mime_type: str,
        system_prompt_path: Path,
        user_prompt: str = "",
    ) -> str: ...


def extract_json_object(text: str) -> dict[str, Any]:
    match = JSON_OBJECT_PATTERN.search(text or "")
    if match is None:
        raise VisionResponseError("No JSON object in model response", raw_text=text or "")
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError as err:
        raise VisionResponseError(f"Invalid JSON in model response: {err}", raw_text=text) from err
    if not isinstance(parsed, dict):
        raise VisionResponseError("Model response is not a JSON object", raw_text=text)
    return parsed


def decode_image_base64(value: str) -> tuple[bytes, str]:
    """Decode a base64 payload, optionally wrapped as a data URL."""
    mime_type = DEFAULT_MIME_TYPE
    match = DATA_URL_PATTERN.match(value)
    if match:
        mime_type = match.group("mime")
        value = value[match.end():]
    try:
        data = base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as err:
        raise ValueError("imageBase64 is not valid base64") from err
    if not data:
        raise ValueError("imageBase64 is empty")
    return data, mime_type


def check_image_url(url: str, allowed_hosts: AbstractSet[str]) -> None:
    """
    Only https URLs on a known storage host are fetched.

    Raises:
        ValueError: If the URL is not allowed
    """
    parsed = urlparse(url)
    if parsed.scheme != "https":
        raise ValueError("imageUrl must be an https URL")
    if not parsed.hostname or parsed.hostname.lower() not in allowed_hosts:
        raise ValueError("imageUrl host is not allowed")


def fetch_image(
    url: str,
    allowed_hosts: AbstractSet[str],
    timeout: float = IMAGE_FETCH_TIMEOUT_SECONDS,
    max_bytes: int = MAX_IMAGE_BYTES,
    transport: Optional[httpx.BaseTransport] = None,
) -> tuple[bytes, str]:
    check_image_url(url, allowed_hosts)

    try:
        with httpx.Client(timeout=timeout, follow_redirects=False, transport=transport) as client:
            with client.stream("GET", url) as response:
                response.raise_for_status()
                mime_type = response.headers.get("content-type", DEFAULT_MIME_TYPE).split(";")[0].strip()
                if not mime_type.startswith("image/"):
                    raise FetchFailedError(f"Not an image: {mime_type}")

                chunks = []
                size = 0
                for chunk in response.iter_bytes():
                    size += len(chunk)
                    if size > max_bytes:
                        raise FetchFailedError(f"Image exceeds {max_bytes} bytes")
                    chunks.append(chunk)
    except httpx.TimeoutException as error:
        raise NetworkTimeoutError(url, timeout) from error
    except httpx.HTTPError as error:
        raise FetchFailedError(f"HTTP error downloading image: {error}") from error

    return b"".join(chunks), mime_type


def prompt_for_category(category: Category) -> Path:
    if category in FULL_GENERATION_CATEGORIES:
        return GENERATE_FULL_PROMPT
    return GENERATE_LIGHT_PROMPT


def analyze_image(
    client: ImageDescriber,
    image_bytes: bytes,
    mime_type: str = DEFAULT_MIME_TYPE,
) -> ClassificationResult:
    text = client.describe_image(image_bytes, mime_type, ANALYZE_PROMPT)
    payload = extract_json_object(text)
    result = normalize_classification(payload, default_confidence=SERVER_DEFAULT_CONFIDENCE)
    logger.info(
        "Image analyzed: category=%s, platform=%s, confidence=%.2f",
        result.category.value,
        result.source_platform.value,
        result.confidence,
    )
    return result


def generate_content(
    client: ImageDescriber,
    image_bytes: bytes,
    category: Category,
    mime_type: str = DEFAULT_MIME_TYPE,
) -> GeneratedContent:
    prompt_path = prompt_for_category(category)
    user_prompt = f"Category: {category.value}"
    text = client.describe_image(image_bytes, mime_type, prompt_path, user_prompt)
    payload = extract_json_object(text)
    result = normalize_generated_content(payload, default_confidence=SERVER_DEFAULT_CONFIDENCE)
    logger.info("Content generated: category=%s, prompt=%s", category.value, prompt_path.name)
    return result


def load_image(
    image_base64: Optional[str],
    image_url: Optional[str] = None,
    allowed_hosts: AbstractSet[str] = frozenset(),
) -> tuple[bytes, str]:
    """
    Pick the image out of a request body.

    Raises:
        ValueError: If neither field is usable or the URL is not allowed
        ServiceError: If the URL could not be fetched
    """
    if image_base64:
        return decode_image_base64(image_base64)
    if image_url:
        return fetch_image(image_url, allowed_hosts)
    raise ValueError("imageBase64 or imageUrl is required")
