"""Image analysis service for extracting products from photos.

The tracker depends only on the ImageAnalyzer protocol. GeminiImageAnalyzer
is the default implementation, calling Google's generateContent REST endpoint
with a structured response schema.
"""

import base64
import json
import logging
from typing import Protocol

import httpx
from pydantic import ValidationError

from .models import AnalysisResponse, AnalysisResult

logger = logging.getLogger(__name__)

DEFAULT_INSTRUCTION = (
    "Extract product name, price, and unit from this supermarket shelf or "
    "receipt image. Return as JSON."
)

RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "products": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "name": {"type": "STRING", "description": "Name of the grocery item"},
                    "price": {"type": "NUMBER", "description": "Price in KRW"},
                    "unit": {
                        "type": "STRING",
                        "description": "Unit like '1 ea', '100g', 'pack' etc",
                    },
                },
                "required": ["name", "price", "unit"],
            },
        }
    },
    "required": ["products"],
}

_MAGIC_NUMBERS = [
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
]


class AnalysisError(Exception):
    """Raised by an analyzer when a request cannot produce results."""


class ImageAnalyzer(Protocol):
    """Capability that turns image bytes into proposed products."""

    async def analyze(self, image_bytes: bytes, credential: str) -> list[AnalysisResult]: ...


def detect_mime_type(image_bytes: bytes) -> str:
    """Guess an image MIME type from its leading bytes, PNG when unknown."""
    for magic, mime_type in _MAGIC_NUMBERS:
        if image_bytes.startswith(magic):
            return mime_type
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    return "image/png"


def parse_analysis_text(text: str | None) -> list[AnalysisResult]:
    """Parse the model's JSON text into analysis results.

    Args:
        text: JSON document produced by the model

    Returns:
        List of AnalysisResult

    Raises:
        AnalysisError: If the text is missing, malformed, or lists no products
    """
    if not text or not text.strip():
        raise AnalysisError("No data returned from the analysis service")

    try:
        response = AnalysisResponse.model_validate_json(text, strict=True)
    except ValidationError as e:
        raise AnalysisError(f"Malformed analysis response: {e}") from e

    if not response.products:
        raise AnalysisError("No products recognized in the image")

    return response.products


class GeminiImageAnalyzer:
    """Image analyzer backed by the Gemini generateContent API."""

    def __init__(
        self,
        model: str = "gemini-3-flash-preview",
        base_url: str = "https://generativelanguage.googleapis.com",
        timeout: float = 60.0,
        instruction: str = DEFAULT_INSTRUCTION,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the analyzer.

        Args:
            model: Gemini model name
            base_url: API root URL
            timeout: Request timeout in seconds
            instruction: Extraction prompt sent with the image
            transport: Optional httpx transport, used by tests
        """
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.instruction = instruction
        self.transport = transport

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/v1beta/models/{self.model}:generateContent"

    def build_payload(self, image_bytes: bytes) -> dict:
        """Build the generateContent request body."""
        return {
            "contents": [
                {
                    "parts": [
                        {"text": self.instruction},
                        {
                            "inline_data": {
                                "mime_type": detect_mime_type(image_bytes),
                                "data": base64.b64encode(image_bytes).decode("ascii"),
                            }
                        },
                    ]
                }
            ],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": RESPONSE_SCHEMA,
            },
        }

    async def analyze(self, image_bytes: bytes, credential: str) -> list[AnalysisResult]:
        """Send one image to Gemini and parse the proposed products.

        Args:
            image_bytes: Raw image contents
            credential: Google API key

        Returns:
            List of AnalysisResult

        Raises:
            AnalysisError: On transport errors, HTTP errors, or a bad response
        """
        if not credential:
            raise AnalysisError("No API key configured")

        logger.info("Requesting image analysis from %s", self.model)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    self.endpoint,
                    headers={"x-goog-api-key": credential},
                    json=self.build_payload(image_bytes),
                )
                response.raise_for_status()
                data = response.json()
        except httpx.TimeoutException as e:
            raise AnalysisError(f"Analysis request timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise AnalysisError(f"HTTP error calling Gemini: {e}") from e
        except json.JSONDecodeError as e:
            raise AnalysisError(f"Gemini returned invalid JSON: {e}") from e

        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise AnalysisError("Gemini response has no content") from e

        results = parse_analysis_text(text)
        logger.info("Gemini proposed %d products", len(results))
        return results
