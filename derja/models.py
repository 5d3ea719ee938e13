from __future__ import annotations

import dataclasses
import datetime as dt
import enum
import typing as t

JsonDict = dict[str, t.Any]

QUIZ_TYPES: tuple[str, ...] = ("mcq", "mcma", "tf", "fitb")
TF_LABELS: tuple[str, str] = ("صحيح", "غالط")


class Language(str, enum.Enum):
    DERJA = "derja"
    ENGLISH = "english"
    FRENCH = "french"
    FUSHA = "fusha"


@dataclasses.dataclass(frozen=True)
class Turn:
    sender: t.Literal["user", "assistant"]
    text: str
    timestamp: str | None = None

    @staticmethod
    def from_dict(data: t.Any) -> "Turn | None":
        if not isinstance(data, dict):
            return None
        text = data.get("text")
        if not isinstance(text, str) or not text.strip():
            return None
        sender = str(data.get("sender") or "user").strip().lower()
        role: t.Literal["user", "assistant"] = "assistant" if sender in {"assistant", "ai", "model", "bot"} else "user"
        ts = data.get("timestamp")
        return Turn(sender=role, text=text, timestamp=str(ts) if ts is not None else None)


@dataclasses.dataclass(frozen=True)
class InlineImage:
    data: str
    mime_type: str

    @staticmethod
    def from_dict(data: t.Any) -> "InlineImage | None":
        if not isinstance(data, dict):
            return None
        payload = data.get("data")
        mime = data.get("mimeType") or data.get("mime_type")
        if not isinstance(payload, str) or not payload or not isinstance(mime, str) or not mime:
            return None
        return InlineImage(data=payload, mime_type=mime)


@dataclasses.dataclass(frozen=True)
class Segment:
    role: t.Literal["user", "model"]
    text: str
    image: InlineImage | None = None


@dataclasses.dataclass(frozen=True)
class ToolToggles:
    web_search: bool = False
    url_fetch: bool = False


@dataclasses.dataclass(frozen=True)
class ContextBundle:
    web_snippet: str | None = None
    fetched_page_text: str | None = None
    document_text: str | None = None

    def is_empty(self) -> bool:
        return not (self.web_snippet or self.fetched_page_text or self.document_text)


@dataclasses.dataclass(frozen=True)
class QuizParams:
    question_count: int = 5
    option_count: int = 4
    difficulties: tuple[str, ...] = ("medium",)
    allowed_types: tuple[str, ...] = ("mcq",)
    timer_minutes: int | None = None
    hints_enabled: bool = False
    immediate_feedback: bool = False

    def normalized(self) -> "QuizParams":
        question_count = min(40, max(2, int(self.question_count)))
        option_count = min(5, max(2, int(self.option_count)))
        difficulties = tuple(str(d).strip() for d in self.difficulties if str(d).strip()) or ("medium",)
        allowed: list[str] = []
        for raw in self.allowed_types:
            tag = str(raw).strip().lower()
            if tag in QUIZ_TYPES and tag not in allowed:
                allowed.append(tag)
        timer = self.timer_minutes
        if timer is not None and timer <= 0:
            timer = None
        return dataclasses.replace(
            self,
            question_count=question_count,
            option_count=option_count,
            difficulties=difficulties,
            allowed_types=tuple(allowed) or ("mcq",),
            timer_minutes=timer,
        )

    def settings_dict(self) -> JsonDict:
        return {
            "questionCount": self.question_count,
            "optionCount": self.option_count,
            "difficulties": list(self.difficulties),
            "allowedTypes": list(self.allowed_types),
            "timerMinutes": self.timer_minutes,
            "hintsEnabled": self.hints_enabled,
            "immediateFeedback": self.immediate_feedback,
        }


@dataclasses.dataclass(frozen=True)
class QuizItem:
    type: str
    question: str
    explanation: str
    options: tuple[str, ...] = ()
    correct_index: int | None = None
    correct_indices: tuple[int, ...] = ()
    answer_text: str | None = None
    acceptable_answers: tuple[str, ...] = ()
    hint: str | None = None

    def to_dict(self) -> JsonDict:
        out: JsonDict = {"type": self.type, "question": self.question}
        if self.type in ("mcq", "tf"):
            out["options"] = list(self.options)
            out["correctIndex"] = self.correct_index
        elif self.type == "mcma":
            out["options"] = list(self.options)
            out["correctIndices"] = list(self.correct_indices)
        elif self.type == "fitb":
            out["answerText"] = self.answer_text
            out["acceptableAnswers"] = list(self.acceptable_answers)
        out["explanation"] = self.explanation
        if self.hint:
            out["hint"] = self.hint
        return out


@dataclasses.dataclass(frozen=True)
class ChatReply:
    reply: str
    is_export: bool = False
    pdf_content: str | None = None
    degraded_reason: str | None = None

    def to_dict(self) -> JsonDict:
        out: JsonDict = {"reply": self.reply}
        if self.is_export:
            out["isPdfExport"] = True
            out["pdfContent"] = self.pdf_content
        return out


@dataclasses.dataclass(frozen=True)
class QuizResult:
    items: tuple[QuizItem, ...]
    params: QuizParams
    degraded_reason: str | None = None

    def to_dict(self) -> JsonDict:
        return {
            "isQuiz": True,
            "quiz": [it.to_dict() for it in self.items],
            "settings": self.params.settings_dict(),
        }


def today_iso() -> str:
    return dt.date.today().isoformat()
