"""AI vision extraction of rental slips."""

from __future__ import annotations

import base64
import json
import logging
import re
from typing import Any, Protocol

from openai import AsyncOpenAI, OpenAIError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o"
TEMPERATURE = 0.1
MAX_TOKENS = 1500

EXTRACTION_PROMPT = """You are an AI assistant that extracts structured data from invoice/rental documents.
Analyze this image and extract the following information, then return it as a JSON object:

Required fields:
- customer_name: string (customer or client name)
- phone_number: string (phone number if found)
- rental_start_date: string (start date in YYYY-MM-DD format if found)
- rental_duration_days: number (rental duration in days, e.g., 1, 2, 7)
- notes: string (any additional notes or special instructions)
- equipment: array of objects with fields:
  - equipment_name: string (EXACT name/description of equipment as written)
  - quantity: number (quantity, default to 1 if not specified)

Duration:
- Look for phrases like "1 day", "2 days", "3 day rental", "week", "weekend"
- Convert to days: "1 week" = 7, "weekend" = 2
- If you find start and end dates instead, calculate the duration in days
- If no duration is found, use 1

Equipment:
- Extract the EXACT equipment names as they appear in the document
- Do NOT modify or standardize the names
- Include ALL equipment items mentioned
- Extract quantities like "2x" or "3 units" accurately
- IGNORE all pricing information: do not extract prices, rates or costs

If a field is not found, set it to null or an empty string.
Return only valid JSON, no explanations."""

_CODE_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")


class ScanExtractionError(Exception):
    """Raised when the vision model call fails or returns unusable output."""

    def __init__(self, message: str, raw_output: str | None = None):
        self.raw_output = raw_output
        super().__init__(message)


class VisionExtractor(Protocol):
    """Turns an image into the raw extraction dict described by EXTRACTION_PROMPT."""

    async def extract(self, image: bytes, mime_type: str) -> dict[str, Any]:
        """Raises ScanExtractionError on provider or parse failure."""
        ...


def image_data_url(image: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(image).decode('ascii')}"


def parse_model_output(content: str) -> dict[str, Any]:
    """Parse the model's JSON answer, unwrapping a markdown code fence if present."""
    text = (content or "").strip()
    match = _CODE_FENCE.search(text)
    if match:
        text = match.group(1).strip()
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ScanExtractionError("Failed to parse extracted data", raw_output=content) from e
    if not isinstance(data, dict):
        raise ScanExtractionError("Extracted data is not a JSON object", raw_output=content)
    return data


class OpenAIVisionExtractor:
    """VisionExtractor backed by the OpenAI chat completions API."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        client: AsyncOpenAI | None = None,
    ):
        self.model = model
        self.client = client or AsyncOpenAI(api_key=api_key)

    async def extract(self, image: bytes, mime_type: str) -> dict[str, Any]:
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": EXTRACTION_PROMPT},
                            {
                                "type": "image_url",
                                "image_url": {"url": image_data_url(image, mime_type)},
                            },
                        ],
                    }
                ],
                temperature=TEMPERATURE,
                max_tokens=MAX_TOKENS,
            )
        except OpenAIError as e:
            logger.error("Vision request failed: %s", e)
            raise ScanExtractionError("AI processing error") from e

        if not response.choices:
            raise ScanExtractionError("Vision model returned no choices")
        content = response.choices[0].message.content or ""
        return parse_model_output(content)
