from __future__ import annotations

import enum
import json
import logging
import random
import typing as t

from .config import PipelineConfig
from .jsonrepair import extract_array, strip_code_fences
from .models import TF_LABELS, JsonDict, Language, QuizItem, QuizParams, Segment
from .outcome import Degraded, Ok, Outcome
from .prompting import build_quiz_segments

logger = logging.getLogger(__name__)

QUESTION_CHARS = 500
OPTION_CHARS = 200
EXPLANATION_CHARS = 800
HINT_CHARS = 300
ANSWER_CHARS = 200

PLACEHOLDER_OPTION = "(اختيار زايد {n})"
PLACEHOLDER_ANSWER = "(الجواب موش متوفّر)"
_WRAPPER_KEYS = ("quiz", "questions", "items")


class QuizState(str, enum.Enum):
    REQUESTED = "requested"
    PROMPTED = "prompted"
    RAW_PARSED = "raw_parsed"
    SANITIZED = "sanitized"
    ACCEPTED = "accepted"
    FALLBACK_GENERATED = "fallback_generated"


class Generator(t.Protocol):
    def generate(self, segments: t.Sequence[Segment], *, temperature: float = ..., max_output_tokens: int = ...) -> str:
        ...


def _as_list(parsed: t.Any) -> list[t.Any] | None:
    if isinstance(parsed, list):
        return parsed
    if isinstance(parsed, dict):
        for key in _WRAPPER_KEYS:
            if isinstance(parsed.get(key), list):
                return t.cast(list[t.Any], parsed[key])
    return None


def _load_list(candidate: str) -> list[t.Any] | None:
    try:
        return _as_list(json.loads(candidate))
    except (ValueError, RecursionError):
        # JSONDecodeError is a ValueError; very deep nesting overflows the decoder.
        return None


def parse_quiz_array(raw: t.Any) -> list[t.Any]:
    """Best-effort JSON array out of model text; never raises, [] when nothing parses."""
    if not isinstance(raw, str) or not raw.strip():
        return []
    cleaned = strip_code_fences(raw)
    items = _load_list(cleaned)
    if items is not None:
        return items

    for repair in (False, True):
        span = extract_array(cleaned, repair=repair) or extract_array(raw, repair=repair)
        if span is None:
            return []
        items = _load_list(span)
        if items is not None:
            return items
    return []


def _clip(value: t.Any, cap: int) -> str:
    if value is None:
        return ""
    s = value if isinstance(value, str) else str(value)
    return " ".join(s.split())[:cap]


def _as_index(value: t.Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        try:
            return int(value.strip())
        except ValueError:
            # Past the interpreter's integer string length limit.
            return None
    return None


def _fit_options(raw: t.Any, count: int, normalize: t.Callable[[str], str]) -> list[str]:
    options: list[str] = []
    if isinstance(raw, list):
        for o in raw:
            text = _clip(normalize(_clip(o, OPTION_CHARS)), OPTION_CHARS)
            if text:
                options.append(text)
    options = options[:count]
    while len(options) < count:
        options.append(PLACEHOLDER_OPTION.format(n=len(options) + 1))
    return options


def _answer_index(item: JsonDict, options: list[str]) -> int | None:
    answer = item.get("answer")
    if isinstance(answer, str) and answer.strip():
        needle = " ".join(answer.split())
        for i, o in enumerate(options):
            if o == needle:
                return i
    return None


def _tf_index(item: JsonDict) -> int | None:
    for key in ("answer", "correct", "isTrue"):
        value = item.get(key)
        if isinstance(value, bool):
            return 0 if value else 1
    return None


def proper_subset(n: int, rng: random.Random) -> list[int]:
    size = rng.randint(1, n - 1)
    return sorted(rng.sample(range(n), size))


def sanitize_item(
    raw: t.Any,
    params: QuizParams,
    *,
    normalize: t.Callable[[str], str] = lambda s: s,
    rng: random.Random | None = None,
    subset_probability: float = 0.75,
) -> QuizItem | None:
    """Validate and repair one raw item; None when it must be discarded."""
    if not isinstance(raw, dict):
        return None
    kind = str(raw.get("type") or "").strip().lower()
    if kind not in params.allowed_types:
        return None

    question = _clip(normalize(_clip(raw.get("question"), QUESTION_CHARS)), QUESTION_CHARS)
    if not question:
        return None
    explanation = _clip(normalize(_clip(raw.get("explanation"), EXPLANATION_CHARS)), EXPLANATION_CHARS)
    hint: str | None = None
    if params.hints_enabled:
        hint = _clip(normalize(_clip(raw.get("hint"), HINT_CHARS)), HINT_CHARS) or None

    if kind == "tf":
        idx = _as_index(raw.get("correctIndex"))
        if idx is None:
            idx = _tf_index(raw)
        idx = 0 if idx is None else min(max(idx, 0), 1)
        return QuizItem(
            type="tf", question=question, explanation=explanation, options=TF_LABELS, correct_index=idx, hint=hint
        )

    if kind == "mcq":
        options = _fit_options(raw.get("options"), params.option_count, normalize)
        idx = _as_index(raw.get("correctIndex"))
        if idx is None:
            idx = _answer_index(raw, options)
        idx = 0 if idx is None else min(max(idx, 0), len(options) - 1)
        return QuizItem(
            type="mcq",
            question=question,
            explanation=explanation,
            options=tuple(options),
            correct_index=idx,
            hint=hint,
        )

    if kind == "mcma":
        options = _fit_options(raw.get("options"), params.option_count, normalize)
        n = len(options)
        indices: set[int] = set()
        raw_indices = raw.get("correctIndices")
        if isinstance(raw_indices, list):
            for v in raw_indices:
                i = _as_index(v)
                if i is not None and 0 <= i < n:
                    indices.add(i)
        chosen = sorted(indices) or [0]
        if n > 2 and len(chosen) == n:
            r = rng or random.Random()
            if r.random() < subset_probability:
                chosen = proper_subset(n, r)
        return QuizItem(
            type="mcma",
            question=question,
            explanation=explanation,
            options=tuple(options),
            correct_indices=tuple(chosen),
            hint=hint,
        )

    answer = _clip(normalize(_clip(raw.get("answerText") or raw.get("answer"), ANSWER_CHARS)), ANSWER_CHARS)
    answer = answer or PLACEHOLDER_ANSWER
    accepted: list[str] = []
    raw_accepted = raw.get("acceptableAnswers")
    if isinstance(raw_accepted, list):
        for a in raw_accepted:
            text = _clip(normalize(_clip(a, ANSWER_CHARS)), ANSWER_CHARS)
            if text and text not in accepted:
                accepted.append(text)
    if answer not in accepted:
        accepted.insert(0, answer)
    return QuizItem(
        type="fitb",
        question=question,
        explanation=explanation,
        answer_text=answer,
        acceptable_answers=tuple(accepted),
        hint=hint,
    )


def sanitize_items(
    raw_items: t.Sequence[t.Any],
    params: QuizParams,
    *,
    normalize: t.Callable[[str], str] = lambda s: s,
    rng: random.Random | None = None,
    subset_probability: float = 0.75,
) -> list[QuizItem]:
    out: list[QuizItem] = []
    for raw in raw_items:
        item = sanitize_item(raw, params, normalize=normalize, rng=rng, subset_probability=subset_probability)
        if item is not None:
            out.append(item)
    return out


_FALLBACK_OPTIONS = (
    "غرض تعليمي ومهم",
    "عندو استعمالات عملية",
    "غرض غير واضح",
    "ما لهوش غرض محدد",
    "غرض تجريبي",
)


def fallback_item(kind: str, number: int, subject: str, option_count: int) -> QuizItem:
    s = subject.strip()[:200] or "الموضوع"
    if kind == "tf":
        return QuizItem(
            type="tf",
            question=f'سؤال {number}: "{s}" موضوع ينجم الواحد يتعلّم عليه ويفهمو.',
            explanation=f'صحيح، "{s}" موضوع تنجم تقرا عليه وتفهمو خطوة بخطوة.',
            options=TF_LABELS,
            correct_index=0,
        )
    if kind == "mcma":
        options = tuple(_FALLBACK_OPTIONS[:option_count])
        correct = (0, 1) if option_count > 2 else (0,)
        return QuizItem(
            type="mcma",
            question=f'سؤال {number}: شنوة الحاجات اللي تنطبق على "{s}"؟ (اختار أكثر من إجابة)',
            explanation=f'"{s}" عندو غرض تعليمي وزادة استعمالات عملية.',
            options=options,
            correct_indices=correct,
        )
    if kind == "fitb":
        return QuizItem(
            type="fitb",
            question=f'سؤال {number}: كمّل الجملة: "{s}" موضوع عندو غرض ____.',
            explanation=f'الإجابة "تعليمي" خاطر "{s}" موضوع تعليمي.',
            answer_text="تعليمي",
            acceptable_answers=("تعليمي", "تعليمية"),
        )
    return QuizItem(
        type="mcq",
        question=f'سؤال {number}: شنوة الغرض من "{s}"؟',
        explanation="الإجابة الأولى صحيحة خاطر الموضوع تعليمي وعندو غرض واضح.",
        options=tuple(_FALLBACK_OPTIONS[:option_count]),
        correct_index=0,
    )


def fallback_quiz(params: QuizParams, subject: str, *, start: int = 1, count: int | None = None) -> list[QuizItem]:
    """Generic items cycling through the allowed types; deterministic and never fails."""
    total = params.question_count if count is None else count
    types = params.allowed_types or ("mcq",)
    return [
        fallback_item(types[(start - 1 + i) % len(types)], start + i, subject, params.option_count)
        for i in range(total)
    ]


class QuizSynthesizer:
    def __init__(
        self,
        generator: Generator,
        *,
        config: PipelineConfig | None = None,
        normalize: t.Callable[[str], str] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.generator = generator
        self.config = config or PipelineConfig()
        self.normalize = normalize or (lambda s: s)
        self.rng = rng or random.Random()

    def synthesize(
        self,
        *,
        subject: str,
        params: QuizParams,
        source_text: str | None = None,
        language: Language = Language.DERJA,
        trace: list[QuizState] | None = None,
    ) -> Outcome[list[QuizItem]]:
        """Run the quiz state machine; ``trace`` (if given) receives each state entered."""
        if trace is None:
            trace = []
        params = params.normalized()
        subject = subject.strip()[: self.config.quiz_subject_chars]
        trace.append(QuizState.REQUESTED)

        segments = build_quiz_segments(subject=subject, params=params, source_text=source_text, language=language)
        trace.append(QuizState.PROMPTED)
        try:
            raw = self.generator.generate(
                segments,
                temperature=self.config.quiz_temperature,
                max_output_tokens=self.config.quiz_max_output_tokens,
            )
        except Exception as e:
            # Any failure here is recovered by the fallback branch below.
            logger.info("Quiz generation unavailable: %s", e)
            raw = ""

        raw_items = parse_quiz_array(raw)
        trace.append(QuizState.RAW_PARSED)
        items = sanitize_items(
            raw_items,
            params,
            normalize=self.normalize,
            rng=self.rng,
            subset_probability=self.config.mcma_subset_probability,
        )
        trace.append(QuizState.SANITIZED)

        threshold = min(self.config.quiz_min_valid_items, params.question_count)
        if len(items) < threshold:
            trace.append(QuizState.FALLBACK_GENERATED)
            reason = "no_model_output" if not raw_items else f"only_{len(items)}_valid_items"
            logger.info("Quiz fell back to generic items (%s)", reason)
            return Degraded(fallback_quiz(params, subject), reason)

        trace.append(QuizState.ACCEPTED)
        items = items[: params.question_count]
        if len(items) < params.question_count:
            missing = params.question_count - len(items)
            items += fallback_quiz(params, subject, start=len(items) + 1, count=missing)
            return Degraded(items, f"padded_{missing}_items")
        return Ok(items)
