"""
Extraction client — one call to a Gemini ``generateContent`` endpoint.

The stored bytes are re-read from blob storage so an extraction can be
restarted from the storage key alone. There is no retry here: one call,
then success or a recoverable ``ExtractionError``.
"""
from __future__ import annotations

import base64
import json
import logging
import re
from typing import Optional, Protocol

import httpx

from docvault.errors import (
    ExtractionParseError,
    ExtractionTransportError,
    NotFoundError,
)
from docvault.schemas import ExtractionResult
from docvault.storage import BlobStore

logger = logging.getLogger(__name__)

EXTRACTION_PROMPT = (
    'Extract document details as JSON: { "vendor": string, "date": "YYYY-MM-DD", '
    '"amount": string, "type": "Invoice"|"Receipt"|"Contract"|"Other", '
    '"confidence": number }. Use the text in the document. For \'amount\', extract '
    "ONLY the numeric value (e.g. '1251.74' instead of '1251.74 EUR'). If numeric "
    "amount is not found, use null. Return ONLY the JSON object."
)

_FENCE = re.compile(r"```(?:json)?\s?|\s?```", re.IGNORECASE)


class Extractor(Protocol):
    async def extract(self, storage_key: str) -> ExtractionResult: ...


def mime_hint(storage_key: str) -> str:
    key = storage_key.lower()
    if key.endswith(".pdf"):
        return "application/pdf"
    if key.endswith(".png"):
        return "image/png"
    return "image/jpeg"


def strip_code_fences(text: str) -> str:
    return _FENCE.sub("", text).strip()


def parse_model_text(text: str) -> ExtractionResult:
    """Decode the model's text part into a raw ``ExtractionResult``."""
    cleaned = strip_code_fences(text)
    try:
        payload = json.loads(cleaned)
    except ValueError as e:
        raise ExtractionParseError(f"Model response is not valid JSON: {e}", raw_text=text) from e
    if not isinstance(payload, dict):
        raise ExtractionParseError(
            f"Model response is {type(payload).__name__}, expected an object", raw_text=text
        )
    try:
        return ExtractionResult.from_payload(payload)
    except ValueError as e:
        # pydantic ValidationError is a ValueError
        raise ExtractionParseError(f"Model response has invalid fields: {e}", raw_text=text) from e


def _response_text(body: dict) -> str:
    try:
        text = body["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError) as e:
        raise ExtractionParseError("Model response has no text candidate") from e
    if not isinstance(text, str):
        raise ExtractionParseError("Model response text is not a string")
    return text


class GeminiExtractionClient:
    def __init__(
        self,
        blob_store: BlobStore,
        api_key: str,
        model: str = "gemini-2.0-flash",
        base_url: str = "https://generativelanguage.googleapis.com/v1",
        timeout: float = 60.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.blob_store = blob_store
        self.api_key = (api_key or "").strip()
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._http = http_client

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    def build_request(self, data: bytes, mime_type: str) -> dict:
        return {
            "contents": [{
                "parts": [
                    {"text": EXTRACTION_PROMPT},
                    {
                        "inlineData": {
                            "mimeType": mime_type,
                            "data": base64.b64encode(data).decode("ascii"),
                        }
                    },
                ]
            }]
        }

    async def _post(self, payload: dict) -> httpx.Response:
        params = {"key": self.api_key}
        if self._http is not None:
            return await self._http.post(self.endpoint, params=params, json=payload, timeout=self.timeout)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(self.endpoint, params=params, json=payload)

    async def extract(self, storage_key: str) -> ExtractionResult:
        if not self.api_key:
            raise ExtractionTransportError("Extraction model API key is not configured")

        try:
            data = await self.blob_store.get(storage_key)
        except NotFoundError as e:
            raise ExtractionTransportError(f"Stored object missing: {storage_key}") from e
        except OSError as e:
            raise ExtractionTransportError(f"Stored object unreadable: {storage_key}: {e}") from e

        mime_type = mime_hint(storage_key)
        logger.info("Requesting %s analysis for %s (%d bytes, %s)", self.model, storage_key, len(data), mime_type)

        try:
            response = await self._post(self.build_request(data, mime_type))
        except httpx.HTTPError as e:
            raise ExtractionTransportError(f"Model request failed: {e.__class__.__name__}: {e}") from e

        if response.is_error:
            raise ExtractionTransportError(
                f"AI provider error: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
                details=response.text,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise ExtractionParseError("Model response body is not JSON", raw_text=response.text) from e

        return parse_model_text(_response_text(body))
