from __future__ import annotations

import http.client
import json
import logging
import os
import typing as t
import urllib.error
import urllib.parse
import urllib.request

from .errors import GenerationError
from .models import Segment

logger = logging.getLogger(__name__)

JsonDict = dict[str, t.Any]


def segment_to_content(segment: Segment) -> JsonDict:
    parts: list[JsonDict] = [{"text": segment.text}]
    if segment.image is not None:
        parts.append({"inline_data": {"mime_type": segment.image.mime_type, "data": segment.image.data}})
    return {"role": segment.role, "parts": parts}


def text_from_envelope(raw: str) -> str:
    """Pull the reply text out of a generateContent response; anything unexpected yields ""."""
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return ""
    if not isinstance(data, dict):
        return ""
    candidates = data.get("candidates") or []
    if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
        return ""
    content = candidates[0].get("content") or {}
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list):
        return ""
    text_parts = [p.get("text") for p in parts if isinstance(p, dict) and isinstance(p.get("text"), str)]
    return "".join(t.cast(list[str], text_parts)).strip()


def _error_message(body: str | None) -> str:
    if not body:
        return ""
    try:
        parsed = json.loads(body)
    except json.JSONDecodeError:
        return body[:500]
    if isinstance(parsed, dict) and isinstance(parsed.get("error"), dict):
        return str(parsed["error"].get("message") or "")[:500]
    return body[:500]


class GeminiClient:
    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gemini-2.5-flash",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout_s: float = 60.0,
    ) -> None:
        self.api_key = api_key or os.environ.get("GEMINI_API_KEY") or os.environ.get("GOOGLE_API_KEY")
        if not self.api_key:
            raise RuntimeError("Missing GEMINI_API_KEY (or GOOGLE_API_KEY).")
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s

    def _post(self, payload: JsonDict) -> str:
        url = f"{self.base_url}/models/{urllib.parse.quote(self.model)}:generateContent?key={urllib.parse.quote(self.api_key)}"
        req = urllib.request.Request(
            url,
            data=json.dumps(payload, ensure_ascii=False).encode("utf-8"),
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        try:
            with urllib.request.urlopen(req, timeout=self.timeout_s) as resp:
                return resp.read().decode("utf-8", errors="replace")
        except urllib.error.HTTPError as e:
            body = None
            try:
                body = e.read().decode("utf-8", errors="replace")
            except (OSError, http.client.HTTPException):
                body = None
            logger.warning("Generation service HTTP %s: %s", e.code, _error_message(body))
            raise GenerationError(f"Generation service returned HTTP {e.code}", status=e.code) from e
        except (urllib.error.URLError, http.client.HTTPException, TimeoutError, OSError) as e:
            logger.warning("Generation service unreachable: %s", e)
            raise GenerationError("Generation service unreachable") from e

    def generate(
        self,
        segments: t.Sequence[Segment],
        *,
        temperature: float = 0.7,
        max_output_tokens: int = 2048,
    ) -> str:
        """One request/response call; returns the reply text ("" when the envelope is unreadable)."""
        payload: JsonDict = {
            "contents": [segment_to_content(s) for s in segments],
            "generationConfig": {
                "temperature": temperature,
                "maxOutputTokens": max_output_tokens,
            },
        }
        return text_from_envelope(self._post(payload))
