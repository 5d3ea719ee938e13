from __future__ import annotations

import dataclasses
import logging
import os
import typing as t

logger = logging.getLogger(__name__)


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring malformed %s=%r; using %s", name, raw, default)
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring malformed %s=%r; using %s", name, raw, default)
        return default


def _env_str(name: str, default: str) -> str:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


@dataclasses.dataclass(frozen=True)
class Locale:
    place: str
    timezone: str
    units: str


@dataclasses.dataclass(frozen=True)
class PipelineConfig:
    gemini_model: str = "gemini-2.5-flash"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    generation_timeout_s: float = 60.0
    chat_temperature: float = 0.7
    quiz_temperature: float = 0.5
    rewrite_temperature: float = 0.3
    chat_max_output_tokens: int = 2048
    quiz_max_output_tokens: int = 8192

    http_timeout_s: float = 10.0
    user_agent: str = "Mozilla/5.0 (compatible; derja-assistant)"
    max_page_bytes: int = 2_000_000

    history_turns: int = 30
    history_turn_chars: int = 4000
    history_total_chars: int = 24000
    url_scan_turns: int = 10
    web_snippet_chars: int = 1200
    fetched_page_chars: int = 50000
    fetched_page_prompt_chars: int = 8000
    chat_document_chars: int = 16000
    quiz_document_chars: int = 8000
    context_total_chars: int = 20000
    message_chars: int = 8000
    quiz_subject_chars: int = 400

    search_min_chars: int = 10

    # Drift thresholds, overridable through DERJA_DRIFT_* variables.
    drift_latin_ratio: float = 0.35
    drift_min_script_chars: int = 20
    drift_min_latin_chars: int = 12
    drift_min_connectors: int = 2

    mcma_subset_probability: float = 0.75
    quiz_min_valid_items: int = 3

    default_place: str = "تونس العاصمة"
    default_timezone: str = "Africa/Tunis"
    default_units: str = "metric (°C, km/h, mm)"

    @property
    def locale(self) -> Locale:
        return Locale(place=self.default_place, timezone=self.default_timezone, units=self.default_units)

    @staticmethod
    def from_env() -> "PipelineConfig":
        d = PipelineConfig()
        overrides: dict[str, t.Any] = {
            "gemini_model": _env_str("GEMINI_MODEL", d.gemini_model),
            "gemini_base_url": _env_str("GEMINI_BASE_URL", d.gemini_base_url),
            "generation_timeout_s": _env_float("DERJA_GENERATION_TIMEOUT_S", d.generation_timeout_s),
            "chat_temperature": _env_float("DERJA_CHAT_TEMPERATURE", d.chat_temperature),
            "quiz_temperature": _env_float("DERJA_QUIZ_TEMPERATURE", d.quiz_temperature),
            "rewrite_temperature": _env_float("DERJA_REWRITE_TEMPERATURE", d.rewrite_temperature),
            "chat_max_output_tokens": _env_int("DERJA_CHAT_MAX_OUTPUT_TOKENS", d.chat_max_output_tokens),
            "quiz_max_output_tokens": _env_int("DERJA_QUIZ_MAX_OUTPUT_TOKENS", d.quiz_max_output_tokens),
            "http_timeout_s": _env_float("DERJA_HTTP_TIMEOUT_S", d.http_timeout_s),
            "user_agent": _env_str("DERJA_USER_AGENT", d.user_agent),
            "history_turns": _env_int("DERJA_HISTORY_TURNS", d.history_turns),
            "context_total_chars": _env_int("DERJA_CONTEXT_TOTAL_CHARS", d.context_total_chars),
            "search_min_chars": _env_int("DERJA_SEARCH_MIN_CHARS", d.search_min_chars),
            "drift_latin_ratio": _env_float("DERJA_DRIFT_LATIN_RATIO", d.drift_latin_ratio),
            "drift_min_script_chars": _env_int("DERJA_DRIFT_MIN_SCRIPT_CHARS", d.drift_min_script_chars),
            "drift_min_latin_chars": _env_int("DERJA_DRIFT_MIN_LATIN_CHARS", d.drift_min_latin_chars),
            "drift_min_connectors": _env_int("DERJA_DRIFT_MIN_CONNECTORS", d.drift_min_connectors),
            "mcma_subset_probability": _env_float("DERJA_MCMA_SUBSET_PROBABILITY", d.mcma_subset_probability),
            "default_place": _env_str("DERJA_DEFAULT_PLACE", d.default_place),
            "default_timezone": _env_str("DERJA_DEFAULT_TIMEZONE", d.default_timezone),
        }
        return dataclasses.replace(d, **overrides)
