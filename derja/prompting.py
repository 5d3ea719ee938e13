from __future__ import annotations

import json
import typing as t

from .config import Locale, PipelineConfig
from .models import QUIZ_TYPES, TF_LABELS, InlineImage, Language, QuizParams, Segment, Turn

STYLE_GUIDE = """
قواعد الأسلوب:
- جاوب دايمًا وبالدارجة التونسية وبالحروف العربية.
- تجنّب الفصحى قدر الإمكان، وما تكتبش باللاتيني/فرانكو.
- استعمل Markdown وقت يلزم (عناوين، نقاط، كود بلوك).
- كان ما فهمتش السؤال، إسأل توضيح: "شنية تقصد بـ ...؟".
- ما تذكرش المزوّد/المنصّة في الرد.
""".strip()

_LANGUAGE_GUIDES: dict[Language, str] = {
    Language.ENGLISH: (
        "Style rules:\n"
        "- The user explicitly asked for English: answer this turn in clear English.\n"
        "- Use Markdown when it helps (headings, bullet points, code blocks).\n"
        "- Never mention the model provider or platform."
    ),
    Language.FRENCH: (
        "Règles de style :\n"
        "- L'utilisateur a demandé le français : réponds à ce message en français.\n"
        "- Utilise le Markdown quand c'est utile (titres, listes, blocs de code).\n"
        "- Ne mentionne jamais le fournisseur ou la plateforme."
    ),
    Language.FUSHA: (
        "قواعد الأسلوب:\n"
        "- طلب المستخدم العربية الفصحى: أجب عن هذه الرسالة بالعربية الفصحى.\n"
        "- استخدم Markdown عند الحاجة (عناوين، نقاط، كتل برمجية).\n"
        "- لا تذكر مزوّد الخدمة أو المنصّة في الرد."
    ),
}

CONTEXT_HEADER = "سياق إضافي للاستعانة:"

REWRITE_INSTRUCTION = (
    "عاود اكتب النص اللي لوطة بالدارجة التونسية وبالحروف العربية برك، "
    "من غير ما تبدّل المعنى ومن غير ما تزيد حتى تعليق. "
    "خلّي الكود، الروابط والأرقام كيف ما هوما. رجّع النص المكتوب من جديد برك."
)

SOFT_FAILURE_REPLY = "صارت مشكلة مؤقتة في الخدمة، جرّب بعد شوية."


def locale_directive(locale: Locale) -> str:
    return (
        f"- السؤال على الطقس وما فيهوش بلاصة: اعتبر إنو المستعمل في {locale.place} "
        f"(التوقيت {locale.timezone}) واستعمل الوحدات {locale.units}، "
        "وقول البلاصة اللي اعتمدت عليها."
    )


def style_directive(language: Language, locale: Locale | None = None) -> str:
    guide = STYLE_GUIDE if language == Language.DERJA else _LANGUAGE_GUIDES[language]
    if locale is not None:
        guide = f"{guide}\n{locale_directive(locale)}"
    return guide


def trim_history(
    history: t.Sequence[Turn],
    *,
    max_turns: int = 30,
    turn_chars: int = 4000,
    total_chars: int = 24000,
) -> list[Turn]:
    """Last ``max_turns`` turns, each capped, oldest dropped first until the total fits."""
    kept = [Turn(sender=h.sender, text=h.text[:turn_chars], timestamp=h.timestamp) for h in history[-max_turns:] if h.text]
    total = sum(len(h.text) for h in kept)
    while kept and total > total_chars:
        total -= len(kept.pop(0).text)
    return kept


def build_chat_segments(
    *,
    directive: str,
    context_block: str,
    history: t.Sequence[Turn],
    message: str,
    image: InlineImage | None = None,
    config: PipelineConfig | None = None,
) -> list[Segment]:
    cfg = config or PipelineConfig()
    head = directive
    if context_block:
        head = f"{directive}\n\n{CONTEXT_HEADER}\n{context_block}"

    segments: list[Segment] = [Segment(role="user", text=head)]
    for turn in trim_history(
        history,
        max_turns=cfg.history_turns,
        turn_chars=cfg.history_turn_chars,
        total_chars=cfg.history_total_chars,
    ):
        segments.append(Segment(role="model" if turn.sender == "assistant" else "user", text=turn.text))
    segments.append(Segment(role="user", text=message[: cfg.message_chars], image=image))
    return segments


def build_rewrite_segments(text: str) -> list[Segment]:
    return [Segment(role="user", text=f"{REWRITE_INSTRUCTION}\n\n{text}")]


_ITEM_SHAPES: dict[str, dict[str, t.Any]] = {
    "mcq": {
        "type": "mcq",
        "question": "...",
        "options": ["...", "..."],
        "correctIndex": 0,
        "explanation": "...",
        "hint": "...",
    },
    "mcma": {
        "type": "mcma",
        "question": "...",
        "options": ["...", "..."],
        "correctIndices": [0, 2],
        "explanation": "...",
        "hint": "...",
    },
    "tf": {
        "type": "tf",
        "question": "...",
        "options": list(TF_LABELS),
        "correctIndex": 1,
        "explanation": "...",
        "hint": "...",
    },
    "fitb": {
        "type": "fitb",
        "question": "... ____ ...",
        "answerText": "...",
        "acceptableAnswers": ["...", "..."],
        "explanation": "...",
        "hint": "...",
    },
}


def build_quiz_segments(
    *,
    subject: str,
    params: QuizParams,
    source_text: str | None = None,
    language: Language = Language.DERJA,
) -> list[Segment]:
    types = [tag for tag in params.allowed_types if tag in QUIZ_TYPES]
    shapes = [_ITEM_SHAPES[tag] for tag in types]
    if not params.hints_enabled:
        shapes = [{k: v for k, v in shape.items() if k != "hint"} for shape in shapes]

    lines = [
        style_directive(language),
        "",
        f'المطلوب: كوّن اختبار قصير على الموضوع التالي: "{subject}".',
        f"- عدد الأسئلة: {params.question_count} بالضبط",
        f"- عدد الاختيارات لكل سؤال (mcq و mcma): {params.option_count} بالضبط",
        f"- الصعوبة: {', '.join(params.difficulties)}",
        f"- الأنواع المسموحة برك: {', '.join(types)}",
        f"- مؤقّت (بالدقائق): {params.timer_minutes if params.timer_minutes else 'بدون'}",
        f"- تلميحات: {'نعم' if params.hints_enabled else 'لا'}",
        f"- تصحيح فوري: {'نعم' if params.immediate_feedback else 'لا'}",
        "",
        "القواعد:",
        "- أسئلة على معلومات ثابتة، كل سؤال عندو أحسن إجابة وحدة واضحة. ما فماش أسئلة على الرأي.",
        "- type ما يكونش كان واحد من الأنواع المسموحة.",
        f"- أسئلة tf الاختيارات متاعها ديما {json.dumps(list(TF_LABELS), ensure_ascii=False)}.",
        "- رجّع JSON فقط: Array من objects، بلا حتى كلام زايد وبلا Markdown.",
        "- شكل كل object حسب النوع:",
        json.dumps(shapes, ensure_ascii=False, indent=2),
    ]
    if source_text:
        lines += ["", "اعتمد على المحتوى هذا كمصدر:", source_text]
    return [Segment(role="user", text="\n".join(lines))]
