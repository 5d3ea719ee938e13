"""Parse the loose JSON body of an inbound turn into one explicit request mode."""
from __future__ import annotations

import dataclasses
import typing as t

from .errors import InvalidRequest
from .models import InlineImage, JsonDict, QuizParams, ToolToggles, Turn


@dataclasses.dataclass(frozen=True)
class ChatRequest:
    message: str
    history: tuple[Turn, ...] = ()
    document_text: str | None = None
    tools: ToolToggles = ToolToggles()
    image: InlineImage | None = None


@dataclasses.dataclass(frozen=True)
class ExportRequest:
    message: str
    history: tuple[Turn, ...] = ()
    document_text: str | None = None
    tools: ToolToggles = ToolToggles()
    image: InlineImage | None = None


@dataclasses.dataclass(frozen=True)
class QuizRequest:
    subject: str
    params: QuizParams
    document_text: str | None = None
    web_search: bool = False


RequestMode = t.Union[ChatRequest, ExportRequest, QuizRequest]


def _first(body: JsonDict, *keys: str) -> t.Any:
    for k in keys:
        if k in body and body[k] is not None:
            return body[k]
    return None


def _as_bool(value: t.Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _as_int(value: t.Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return default


def _as_str_list(value: t.Any) -> tuple[str, ...]:
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(str(v).strip() for v in value if str(v).strip())


def parse_quiz_params(body: JsonDict) -> QuizParams:
    nested = body.get("quizParams")
    src: JsonDict = nested if isinstance(nested, dict) else {}

    def pick(spec_key: str, legacy_key: str) -> t.Any:
        if spec_key in src and src[spec_key] is not None:
            return src[spec_key]
        return body.get(legacy_key)

    timer_raw = pick("timerMinutes", "quizTimer")
    timer = _as_int(timer_raw, 0) if timer_raw not in (None, "") else None
    return QuizParams(
        question_count=_as_int(pick("questionCount", "quizQuestions"), 5),
        option_count=_as_int(pick("optionCount", "quizOptions"), 4),
        difficulties=_as_str_list(pick("difficulties", "quizDifficulties")),
        allowed_types=_as_str_list(pick("allowedTypes", "quizTypes")),
        timer_minutes=timer,
        hints_enabled=_as_bool(pick("hintsEnabled", "quizHints")),
        immediate_feedback=_as_bool(pick("immediateFeedback", "quizImmediateFeedback")),
    ).normalized()


def parse_request(body: t.Any, *, force_quiz: bool = False) -> RequestMode:
    if not isinstance(body, dict):
        raise InvalidRequest("Request body must be a JSON object.")

    message = body.get("message")
    if not isinstance(message, str) or not message.strip():
        raise InvalidRequest("Missing message.")

    raw_doc = _first(body, "documentText", "pdfText")
    document_text = raw_doc if isinstance(raw_doc, str) and raw_doc.strip() else None
    web_search = _as_bool(_first(body, "webSearchEnabled", "webSearch"))

    if force_quiz or _as_bool(body.get("quizMode")):
        return QuizRequest(
            subject=message.strip(),
            params=parse_quiz_params(body),
            document_text=document_text,
            web_search=web_search,
        )

    raw_history = body.get("history")
    history: list[Turn] = []
    if isinstance(raw_history, list):
        for h in raw_history:
            turn = Turn.from_dict(h)
            if turn is not None:
                history.append(turn)

    tools = ToolToggles(
        web_search=web_search,
        url_fetch=_as_bool(_first(body, "urlFetchEnabled", "fetchUrl")),
    )
    image = InlineImage.from_dict(body.get("image"))
    cls: type[ChatRequest] | type[ExportRequest] = (
        ExportRequest if _as_bool(_first(body, "exportMode", "pdfExport")) else ChatRequest
    )
    return cls(
        message=message,
        history=tuple(history),
        document_text=document_text,
        tools=tools,
        image=image,
    )
