"""Gemini-backed collaborators: receipt extraction and monthly insights.

The client is built once from settings and handed to whatever needs it; it
holds the API key and model name and nothing else.
"""

from __future__ import annotations

import json
import re
from typing import Any, Protocol

import google.generativeai as genai
import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from smartspend.core.errors import ExternalServiceError

logger = structlog.get_logger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\n?")

RECEIPT_CATEGORIES = (
    "housing",
    "transportation",
    "groceries",
    "utilities",
    "entertainment",
    "food",
    "shopping",
    "healthcare",
    "education",
    "personal",
    "travel",
    "insurance",
    "gifts",
    "bills",
    "other-expense",
)

RECEIPT_PROMPT = f"""
Analyze this receipt image and extract the following information in JSON format:
- Total amount (just the number)
- Date (in ISO format)
- Description or items purchased (brief summary)
- Merchant/store name
- Suggested category (one of: {", ".join(RECEIPT_CATEGORIES)})

Only respond with valid JSON in this format:
{{
  "amount": number,
  "date": "ISO date string",
  "description": "string",
  "merchantName": "string",
  "category": "string"
}}

If it's not a receipt, return an empty object.
"""


class ReceiptExtractor(Protocol):
    def extract(self, image: bytes, mime_type: str) -> dict[str, Any]: ...


class InsightGenerator(Protocol):
    def generate(self, stats: dict[str, Any]) -> list[str]: ...


def strip_code_fences(text: str) -> str:
    return _FENCE_RE.sub("", text or "").strip()


class GeminiClient:
    def __init__(self, api_key: str, model_name: str = "gemini-1.5-flash") -> None:
        if not api_key:
            raise ExternalServiceError("Gemini API key is not configured")
        self.model_name = model_name
        genai.configure(api_key=api_key)
        self._model = genai.GenerativeModel(model_name)

    @retry(
        retry=retry_if_exception_type(ExternalServiceError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        reraise=True,
    )
    def generate_text(self, parts: list[Any]) -> str:
        try:
            response = self._model.generate_content(parts)
            return response.text
        except Exception as exc:
            logger.warning("gemini_request_failed", model=self.model_name, error=str(exc))
            raise ExternalServiceError("Gemini request failed") from exc


class GeminiReceiptExtractor:
    def __init__(self, client: GeminiClient) -> None:
        self.client = client

    def extract(self, image: bytes, mime_type: str) -> dict[str, Any]:
        """Return the raw fields Gemini read off the receipt, or ``{}``.

        Transport failures raise ``ExternalServiceError``; unparseable model
        output is treated as "not a receipt".
        """
        text = self.client.generate_text([{"mime_type": mime_type, "data": image}, RECEIPT_PROMPT])
        try:
            parsed = json.loads(strip_code_fences(text))
        except json.JSONDecodeError:
            logger.info("receipt_response_not_json", preview=(text or "")[:80])
            return {}
        return parsed if isinstance(parsed, dict) else {}


class GeminiInsightGenerator:
    def __init__(self, client: GeminiClient) -> None:
        self.client = client

    def generate(self, stats: dict[str, Any]) -> list[str]:
        categories = ", ".join(f"{name}: ${amount}" for name, amount in (stats.get("by_category") or {}).items())
        prompt = f"""
Analyze this financial data and provide 3 concise, actionable insights.
Focus on spending patterns and practical advice.
Keep it friendly and conversational.

Financial Data for {stats.get("month")}:
- Total Income: ${stats.get("total_income")}
- Total Expenses: ${stats.get("total_expenses")}
- Net Income: ${stats.get("net")}
- Expense Categories: {categories}

Format the response as a JSON array of strings.
"""
        text = self.client.generate_text([prompt])
        parsed = json.loads(strip_code_fences(text))
        if not isinstance(parsed, list) or not all(isinstance(item, str) for item in parsed):
            raise ValueError("insight response is not a list of strings")
        return parsed
