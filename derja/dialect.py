from __future__ import annotations

import dataclasses
import logging
import re
import typing as t

from .config import PipelineConfig
from .errors import GenerationError
from .lexicon import ARABIC_LETTERS, COMPARATIVE, FINANCE_WORDS, RULES, LexicalRule
from .models import Segment
from .outcome import Degraded, Ok, Outcome
from .prompting import build_rewrite_segments

logger = logging.getLogger(__name__)

_ARABIC_CHAR_RE = re.compile(f"[{ARABIC_LETTERS}]")
_LATIN_CHAR_RE = re.compile(r"[A-Za-zÀ-ÿ]")
# Code, links and addresses legitimately stay in Latin script.
_NON_PROSE_RE = re.compile(r"```.*?```|`[^`\n]*`|https?://\S+|www\.\S+|\S+@\S+\.\S+", re.DOTALL)
_CONNECTOR_RE = re.compile(
    r"\b(?:the|and|is|are|with|because|however|which|this|that|"
    r"les|est|avec|parce|mais|pour|dans|une|des|aussi)\b",
    re.IGNORECASE,
)
_WORD_RE = re.compile(f"[{ARABIC_LETTERS}]+")

WINDOW_WORDS = 4


class Generator(t.Protocol):
    def generate(self, segments: t.Sequence[Segment], *, temperature: float = ..., max_output_tokens: int = ...) -> str:
        ...


@dataclasses.dataclass(frozen=True)
class ScriptCounts:
    arabic: int
    latin: int
    connectors: int


def measure_script(text: t.Any) -> ScriptCounts:
    if not isinstance(text, str):
        return ScriptCounts(0, 0, 0)
    prose = _NON_PROSE_RE.sub(" ", text)
    return ScriptCounts(
        arabic=len(_ARABIC_CHAR_RE.findall(prose)),
        latin=len(_LATIN_CHAR_RE.findall(prose)),
        connectors=len(_CONNECTOR_RE.findall(prose)),
    )


def detect_drift(text: t.Any, config: PipelineConfig | None = None) -> str | None:
    """Name the drift signal found in ``text``, or None when it reads as Derja."""
    cfg = config or PipelineConfig()
    c = measure_script(text)
    if c.latin == 0:
        return None
    if c.arabic < cfg.drift_min_script_chars and c.latin >= cfg.drift_min_latin_chars:
        return "low_script"
    if c.latin > cfg.drift_latin_ratio * c.arabic:
        return "latin_ratio"
    if c.connectors >= cfg.drift_min_connectors:
        return "foreign_connectors"
    return None


def _phrase_regex(phrase: str) -> str:
    words = [re.escape(w) for w in phrase.split()]
    return rf"(?<![{ARABIC_LETTERS}])" + r"\s+".join(words) + rf"(?![{ARABIC_LETTERS}])"


def _near_finance(text: str, start: int, end: int, window: int = WINDOW_WORDS) -> bool:
    before = _WORD_RE.findall(text[:start])[-window:]
    after = _WORD_RE.findall(text[end:])[:window]
    return any(w in FINANCE_WORDS for w in before + after)


@dataclasses.dataclass(frozen=True)
class _CompiledEntry:
    pattern: re.Pattern[str]
    rule: LexicalRule
    length: int


class LexiconEngine:
    """Applies a rule table in one pass: the comparative idiom, then phrases longest-first."""

    def __init__(self, rules: t.Sequence[LexicalRule] = RULES, *, comparative: bool = True) -> None:
        entries: list[_CompiledEntry] = []
        for rule in rules:
            for p in rule.patterns:
                entries.append(_CompiledEntry(re.compile(_phrase_regex(p)), rule, len(p)))
        # sorted() is stable, so equal-length patterns keep table order.
        self.entries = sorted(entries, key=lambda e: -e.length)
        self.comparative = COMPARATIVE.compile() if comparative else None

    def _replace(self, entry: _CompiledEntry, text: str) -> str:
        rule = entry.rule
        if not rule.context_sensitive:
            return entry.pattern.sub(rule.target, text)

        def choose(m: re.Match[str]) -> str:
            if _near_finance(m.string, m.start(), m.end()):
                return t.cast(str, rule.finance_target)
            return rule.target

        return entry.pattern.sub(choose, text)

    def apply(self, text: str) -> str:
        if not text:
            return text
        if self.comparative is not None:
            target = COMPARATIVE.target
            text = self.comparative.sub(lambda m: f"{target} {m.group(1).strip()}، {target} ", text)
        for entry in self.entries:
            text = self._replace(entry, text)
        return text


_DEFAULT_ENGINE: LexiconEngine | None = None


def apply_lexicon(text: t.Any) -> str:
    global _DEFAULT_ENGINE
    if not isinstance(text, str):
        return ""
    if _DEFAULT_ENGINE is None:
        _DEFAULT_ENGINE = LexiconEngine()
    return _DEFAULT_ENGINE.apply(text)


class DialectEnforcer:
    def __init__(
        self,
        generator: Generator,
        *,
        config: PipelineConfig | None = None,
        engine: LexiconEngine | None = None,
    ) -> None:
        self.generator = generator
        self.config = config or PipelineConfig()
        self.engine = engine or LexiconEngine()

    def rewrite_once(self, text: str) -> Outcome[str]:
        try:
            rewritten = self.generator.generate(
                build_rewrite_segments(text),
                temperature=self.config.rewrite_temperature,
                max_output_tokens=self.config.chat_max_output_tokens,
            )
        except GenerationError as e:
            logger.info("Dialect rewrite failed, keeping original reply: %s", e)
            return Degraded(text, "rewrite_failed")
        rewritten = (rewritten or "").strip()
        if not rewritten:
            return Degraded(text, "rewrite_empty")
        return Ok(rewritten)

    def enforce(self, text: str) -> Outcome[str]:
        drift = detect_drift(text, self.config)
        if drift is None:
            return Ok(self.engine.apply(text))
        logger.info("Dialect drift detected (%s); requesting one rewrite", drift)
        outcome = self.rewrite_once(text)
        final = self.engine.apply(outcome.value)
        if isinstance(outcome, Degraded):
            return Degraded(final, outcome.reason)
        return Ok(final)

    def normalize_field(self, text: str) -> str:
        """Deterministic stage only; used for short structured fields such as quiz options."""
        return self.engine.apply(text)
