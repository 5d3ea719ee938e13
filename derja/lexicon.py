"""Rule table that moves Modern Standard Arabic wording to Tunisian Derja.

Each target must be a form that no pattern in the table matches on its own
word boundaries, otherwise a second pass would rewrite it again.
"""
from __future__ import annotations

import dataclasses
import re

# Letters, diacritics and tatweel of the Arabic block: a match may not touch any of these.
ARABIC_LETTERS = "\u0621-\u064A\u064B-\u0652\u0670-\u06D3"

FINANCE_WORDS = frozenset(
    {
        "دينار", "دنانير", "الدينار", "مليم", "فلوس", "الفلوس", "أورو", "اورو", "يورو", "دولار",
        "بنك", "البنك", "بانكة", "البانكة", "سعر", "السعر", "سوم", "السوم", "ثمن", "الثمن", "حساب",
        "الحساب", "كونط", "الكونط", "شهرية", "الشهرية", "خلاص", "الخلاص", "قرض", "كريدي", "تحويل",
        "يكلف", "تكلف", "يسوى", "تسوى", "نشري", "يشري", "شريت", "بيع", "شراء",
    }
)


@dataclasses.dataclass(frozen=True)
class LexicalRule:
    patterns: tuple[str, ...]
    target: str
    # Replacement used instead of ``target`` when a finance word is nearby.
    finance_target: str | None = None

    @property
    def context_sensitive(self) -> bool:
        return self.finance_target is not None


@dataclasses.dataclass(frozen=True)
class ComparativeRule:
    """``كلما X، كلما Y`` ("much X, much Y") becomes ``قد ما X، قد ما Y``."""

    markers: tuple[str, ...] = ("كلما", "كل ما")
    target: str = "قد ما"
    separators: str = "،,"

    def compile(self) -> re.Pattern[str]:
        marker = "(?:" + "|".join(re.escape(m) for m in self.markers) + ")"
        return re.compile(
            rf"(?<![{ARABIC_LETTERS}]){marker}\s+([^{self.separators}\n.!?؟]+?)\s*[{self.separators}]\s*{marker}\s+"
        )


RULES: tuple[LexicalRule, ...] = (
    LexicalRule(("لم يعد", "لم تعد", "لم أعد", "لم نعد", "لم يعودوا"), "ما عادش"),
    LexicalRule(("لا أعرف", "لا اعرف"), "ما نعرفش"),
    LexicalRule(("لا يوجد", "لا توجد"), "ما فماش"),
    LexicalRule(("ليس لدي", "ليس عندي"), "ما عنديش"),
    LexicalRule(("من فضلك", "لو سمحت"), "يعيشك"),
    LexicalRule(("شكرا جزيلا", "شكراً جزيلاً"), "يعطيك الصحة"),
    LexicalRule(("يجب أن", "يجب ان", "ينبغي أن"), "لازم"),
    LexicalRule(("يوجد", "توجد"), "فما"),
    LexicalRule(("يجب", "ينبغي"), "لازم"),
    LexicalRule(("لماذا",), "علاش"),
    LexicalRule(("ماذا",), "شنوة"),
    LexicalRule(("كيف",), "كيفاش"),
    LexicalRule(("أين", "اين"), "وين"),
    LexicalRule(("متى",), "وقتاش"),
    LexicalRule(("بكم",), "بقداش"),
    LexicalRule(("كم",), "قداش", finance_target="بقداش"),
    LexicalRule(("الرصيد",), "الباقي", finance_target="الصولد"),
    LexicalRule(("الآن", "حاليا", "حالياً"), "توا"),
    LexicalRule(("جدا", "جداً", "كثيرا", "كثيراً"), "برشا"),
    LexicalRule(("قليلا", "قليلاً"), "شوية"),
    LexicalRule(("أريد", "اريد", "أود"), "نحب"),
    LexicalRule(("نعم",), "إيه"),
    LexicalRule(("سوف",), "باش"),
    LexicalRule(("الذي", "التي", "الذين", "اللذين"), "اللي"),
    LexicalRule(("هذا",), "هاذا"),
    LexicalRule(("هذه",), "هاذي"),
    LexicalRule(("أيضا", "أيضاً", "ايضا"), "زادة"),
    LexicalRule(("فقط",), "برك"),
    LexicalRule(("لكن", "لكنّ"), "أما"),
    LexicalRule(("نقود", "أموال"), "فلوس"),
    LexicalRule(("السعر",), "السوم"),
    LexicalRule(("غدا", "غداً"), "غدوة"),
    LexicalRule(("جيد",), "باهي"),
    LexicalRule(("جيدة",), "باهية"),
)

COMPARATIVE = ComparativeRule()
