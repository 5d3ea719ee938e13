"""Keyword/pattern tests that decide language, grounding and locale for a turn.

Every function here is total: any input, including ``None`` or non-strings,
yields the default branch instead of raising.
"""
from __future__ import annotations

import dataclasses
import re
import typing as t

from .models import Language, ToolToggles

_QUESTION_RE = re.compile(
    r"(\?|؟|شنوة|شنوا|شنية|علاش|كيفاش|وين|وقتاش|قداش|شكون|اش هو|اش هي|آش|"
    r"\b(?:what|when|where|why|how|who|which)\b|\b(?:quoi|quand|pourquoi|comment|combien)\b)",
    re.IGNORECASE,
)
_RECENCY_RE = re.compile(
    r"(توا|تاو|اليوم|الآن|الان|آخر|هالأسبوع|هذا الأسبوع|هالجمعة|البارح|غدوة|"
    r"\b(?:today|tonight|tomorrow|yesterday|current|currently|latest|recent|now|this week|aujourd'hui)\b)",
    re.IGNORECASE,
)
_EXTERNAL_RE = re.compile(
    r"(أخبار|اخبار|خبر|طقس|الطقس|سخانة|حرارة|مطر|شتا|حدث|ماتش|نتيجة|سعر|السوم|بورصة|تحديث|"
    r"\b(?:news|weather|forecast|event|price|stock|score|match|update|election|météo)\b)",
    re.IGNORECASE,
)

_WEATHER_RE = re.compile(
    r"(طقس|الطقس|سخانة|السخانة|حرارة|الحرارة|درجة الحرارة|مطر|المطر|شتا|الشتا|ريح|الريح|برد|البرد|"
    r"\b(?:weather|temperature|forecast|rain|raining|snow|humidity|wind|météo|température|pluie)\b)",
    re.IGNORECASE,
)

_ARABIC_PLACES = (
    "تونس", "صفاقس", "سوسة", "نابل", "بنزرت", "قابس", "القيروان", "المنستير", "المهدية", "قفصة",
    "توزر", "جربة", "مدنين", "تطاوين", "قبلي", "القصرين", "سيدي بوزيد", "الكاف", "باجة", "جندوبة",
    "سليانة", "زغوان", "أريانة", "اريانة", "بن عروس", "منوبة", "الحمامات", "طبرقة",
    "الجزاير", "الجزائر", "ليبيا", "المغرب", "مصر", "فرنسا", "باريس", "إيطاليا", "ايطاليا", "ألمانيا",
)
_LATIN_PLACES = (
    "tunis", "tunisia", "sfax", "sousse", "nabeul", "bizerte", "djerba", "monastir", "hammamet",
    "paris", "london", "rome", "algiers", "cairo", "new york", "france", "italy", "germany",
)
# Arabic names may carry attached prefixes (بصفاقس, وتونس), so they match as substrings.
_PLACES_RE = re.compile(
    "|".join(re.escape(p) for p in _ARABIC_PLACES)
    + "|"
    + "|".join(r"\b" + re.escape(p) + r"\b" for p in _LATIN_PLACES),
    re.IGNORECASE,
)

# "in Paris", "à Lyon" (capitalised name after the preposition).
_LATIN_LOCATIVE_RE = re.compile(r"\b(?:in|at|near|à|en)\s+[A-Z][a-zA-Z\-]+")
# "في مدينة", "فـ بلاصة" ... followed by a word that is not a time expression.
_ARABIC_LOCATIVE_RE = re.compile(r"(?:^|\s)(?:في|فـ|ف)\s+([ء-ي]{3,})")
_TIME_WORDS = {
    "اليوم", "الليلة", "الليل", "الصباح", "الصباحية", "العشية", "غدوة", "البارح", "الأسبوع", "الاسبوع",
    "الجمعة", "الشهر", "الويكاند", "هالوقت", "الوقت", "الشتاء", "الصيف", "الخريف", "الربيع", "حالة",
}

_LANGUAGE_PATTERNS: tuple[tuple[Language, re.Pattern[str]], ...] = (
    (
        Language.ENGLISH,
        re.compile(
            r"(\b(?:answer|reply|respond|speak|write|talk)\s+(?:me\s+)?in\s+english\b|\bin\s+english\s*(?:please|pls)?\s*[:\-,]|"
            r"بالانجليزية|بالإنجليزية|بالانقليزية|بالإنقليزية|بالانجليزي|بالإنجليزي|بالانقليزي|بالإنقليزي|بالأنقليزي)",
            re.IGNORECASE,
        ),
    ),
    (
        Language.FRENCH,
        re.compile(
            r"(\b(?:answer|reply|respond|speak|write|talk)\s+(?:me\s+)?in\s+french\b|\ben\s+fran[cç]ais\b|"
            r"\b(?:r[ée]ponds?|parle|[ée]cris)[\w\-]*\s+en\s+fran[cç]ais\b|بالفرنسية|بالفرنساوي|بالفرنسي|بالفرانساوي)",
            re.IGNORECASE,
        ),
    ),
    (
        Language.FUSHA,
        re.compile(
            r"(بالفصحى|بالفصحة|بالعربية الفصحى|باللغة العربية الفصحى|\b(?:in|answer in)\s+(?:standard|modern standard|formal)\s+arabic\b)",
            re.IGNORECASE,
        ),
    ),
    (
        Language.DERJA,
        re.compile(r"(بالتونسي|بالدارجة|\bin\s+(?:tunisian|derja|darija)\b)", re.IGNORECASE),
    ),
)


@dataclasses.dataclass(frozen=True)
class Intent:
    language: Language
    language_explicit: bool
    needs_web_search: bool
    location_dependent: bool

    @property
    def enforce_dialect(self) -> bool:
        return self.language == Language.DERJA


def _text(value: t.Any) -> str:
    return value if isinstance(value, str) else ""


def requested_language(text: t.Any) -> Language | None:
    """Return the language explicitly asked for in the message, if any."""
    s = _text(text)
    if not s.strip():
        return None
    for language, pattern in _LANGUAGE_PATTERNS:
        if pattern.search(s):
            return language
    return None


def needs_web_search(text: t.Any, search_enabled: bool = True, *, min_chars: int = 10) -> bool:
    if not search_enabled:
        return False
    s = _text(text).strip()
    if len(s) < min_chars:
        return False
    return bool(_QUESTION_RE.search(s) or _RECENCY_RE.search(s) or _EXTERNAL_RE.search(s))


def mentions_place(text: t.Any) -> bool:
    s = _text(text)
    if _PLACES_RE.search(s) or _LATIN_LOCATIVE_RE.search(s):
        return True
    for m in _ARABIC_LOCATIVE_RE.finditer(s):
        if m.group(1) not in _TIME_WORDS:
            return True
    return False


def is_location_dependent(text: t.Any) -> bool:
    s = _text(text)
    if not s.strip():
        return False
    return bool(_WEATHER_RE.search(s)) and not mentions_place(s)


def classify(text: t.Any, tools: ToolToggles | None = None, *, min_chars: int = 10) -> Intent:
    tools = tools or ToolToggles()
    explicit = requested_language(text)
    return Intent(
        language=explicit or Language.DERJA,
        language_explicit=explicit is not None,
        needs_web_search=needs_web_search(text, tools.web_search, min_chars=min_chars),
        location_dependent=is_location_dependent(text),
    )
