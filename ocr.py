# ocr.py
import base64
import json
import logging
from typing import Any, List, Optional, Sequence

import openai
from openai import OpenAI

from config import DEFAULT_MODEL, DEFAULT_TIMEOUT
from errors import (
    ConfigurationError,
    EmptyResponseError,
    MalformedResponseError,
    TransportError,
    TransportReason,
)
from models import CONTACT_FIELDS, ContactFields, ImagePayload

logger = logging.getLogger(__name__)

PROMPT = """Extract all contact information from these business card images.
Analyze the visual details carefully. An image may contain several cards, and a
card may list several people: return one entry per distinct person.
Return a JSON object with a "contacts" array. For each person found, include:
- name (Full Name)
- title (Job Position)
- company (Company)
- email (Email)
- phone (Phone)
- website (URL)
- address (Address)
- linkedin (LinkedIn)
- notes (Extra info like slogans or certifications)

Return ONLY valid JSON. Use empty strings for missing fields, never null and
never omit a field."""

RESPONSE_SCHEMA = {
    "type": "object",
    "properties": {
        "contacts": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {f: {"type": "string"} for f in CONTACT_FIELDS},
                "required": ["name"],
            },
        },
    },
    "required": ["contacts"],
}

RESPONSE_FORMAT = {
    "type": "json_schema",
    "json_schema": {"name": "business_cards", "schema": RESPONSE_SCHEMA},
}


def data_uri(payload: ImagePayload) -> str:
    return f"data:{payload.mime_type};base64," + base64.b64encode(payload.data).decode()


def build_messages(payloads: Sequence[ImagePayload]) -> List[dict]:
    # 画像 (入力順) のあとに指示テキストを 1 つ
    parts: List[dict] = [
        {"type": "image_url", "image_url": {"url": data_uri(p)}} for p in payloads
    ]
    parts.append({"type": "text", "text": PROMPT})
    return [{"role": "user", "content": parts}]


def strip_code_fence(text: str) -> str:
    """```json ... ``` で囲まれた応答から中身だけを取り出す"""
    text = text.strip()
    if not text.startswith("```"):
        return text
    first_newline = text.find("\n")
    text = text[first_newline + 1:] if first_newline != -1 else text[3:]
    last_backticks = text.rfind("```")
    if last_backticks != -1:
        text = text[:last_backticks]
    return text.strip()


def coerce_value(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value).strip()
    return ""


def coerce_record(raw: dict) -> ContactFields:
    return {f: coerce_value(raw.get(f)) for f in CONTACT_FIELDS}


def parse_contacts(text: Optional[str]) -> List[ContactFields]:
    if text is None or not text.strip():
        raise EmptyResponseError("No response text from the extraction endpoint")

    body = strip_code_fence(text)
    try:
        result = json.loads(body)
    except json.JSONDecodeError as exc:
        raise MalformedResponseError(f"Response is not valid JSON: {exc}") from exc
    if not isinstance(result, dict):
        raise MalformedResponseError("Response JSON is not an object")

    contacts = result.get("contacts")
    if contacts is None:
        return []
    if not isinstance(contacts, list):
        raise MalformedResponseError("'contacts' is not an array")

    records: List[ContactFields] = []
    for i, item in enumerate(contacts):
        if not isinstance(item, dict):
            logger.warning("skipping contacts[%d]: not an object (%s)", i, type(item).__name__)
            continue
        records.append(coerce_record(item))
    return records


def _translate_error(exc: openai.OpenAIError) -> TransportError:
    if isinstance(exc, openai.APITimeoutError):
        return TransportError("Extraction request timed out", TransportReason.TIMEOUT)
    if isinstance(exc, openai.APIConnectionError):
        return TransportError(f"Network error: {exc}", TransportReason.NETWORK)
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return TransportError(
            f"API key was rejected: {exc}", TransportReason.UNAUTHORIZED, exc.status_code,
        )
    if isinstance(exc, openai.RateLimitError):
        return TransportError(
            f"Rate limit exceeded, wait and retry: {exc}", TransportReason.RATE_LIMITED, exc.status_code,
        )
    if isinstance(exc, openai.APIStatusError):
        if exc.status_code == 413:
            return TransportError(
                f"Images are too large for one request: {exc}",
                TransportReason.PAYLOAD_TOO_LARGE, exc.status_code,
            )
        return TransportError(f"Extraction endpoint error: {exc}", TransportReason.NETWORK, exc.status_code)
    return TransportError(f"Extraction failed: {exc}", TransportReason.NETWORK)


class ExtractionClient:
    """Vision モデルで名刺画像から連絡先を抽出する"""

    def __init__(
        self,
        api_key: Optional[str],
        model: str = DEFAULT_MODEL,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[Any] = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._client = client

    def _get_client(self):
        if self._client is None:
            # リトライは呼び出し側で判断する
            self._client = OpenAI(api_key=self.api_key, timeout=self.timeout, max_retries=0)
        return self._client

    def extract(self, payloads: Sequence[ImagePayload]) -> List[ContactFields]:
        if not self.api_key:
            raise ConfigurationError("API key is missing. Please connect your key.")
        if not payloads:
            raise ValueError("at least one image is required")

        logger.info("extracting contacts from %d image(s) with %s", len(payloads), self.model)
        try:
            resp = self._get_client().chat.completions.create(
                model=self.model,
                temperature=0,
                messages=build_messages(payloads),
                response_format=RESPONSE_FORMAT,
            )
        except openai.OpenAIError as exc:
            err = _translate_error(exc)
            logger.warning("extraction request failed (%s): %s", err.reason.value, err)
            raise err from exc

        text = resp.choices[0].message.content if resp.choices else None
        records = parse_contacts(text)
        logger.info("extracted %d contact(s)", len(records))
        return records
