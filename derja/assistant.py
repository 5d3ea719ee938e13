from __future__ import annotations

import datetime as dt
import logging
import random

from .classifier import Intent, classify, requested_language
from .config import PipelineConfig
from .context import ContextAggregator, clean_document_text
from .dialect import DialectEnforcer, LexiconEngine
from .errors import GenerationError
from .gemini import GeminiClient
from .inbound import ChatRequest, ExportRequest, QuizRequest, RequestMode
from .models import ChatReply, Language, QuizResult, ToolToggles
from .outcome import Degraded
from .prompting import SOFT_FAILURE_REPLY, build_chat_segments, style_directive
from .quiz import QuizSynthesizer
from .web import PageFetcher, SearchClient

logger = logging.getLogger(__name__)


def export_document(reply: str, generated_at: dt.datetime | None = None) -> str:
    stamp = (generated_at or dt.datetime.now()).strftime("%Y-%m-%d %H:%M")
    return f"# الردّ من الـ AI\n\n{reply}\n\n---\n*تم التوليد في: {stamp}*\n"


class DerjaAssistant:
    def __init__(
        self,
        *,
        config: PipelineConfig | None = None,
        gemini: GeminiClient | None = None,
        search: SearchClient | None = None,
        fetcher: PageFetcher | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.config = config or PipelineConfig.from_env()
        self.gemini = gemini or GeminiClient(
            model=self.config.gemini_model,
            base_url=self.config.gemini_base_url,
            timeout_s=self.config.generation_timeout_s,
        )
        self.aggregator = ContextAggregator(config=self.config, search=search, fetcher=fetcher)
        self.lexicon = LexiconEngine()
        self.dialect = DialectEnforcer(self.gemini, config=self.config, engine=self.lexicon)
        self.quiz = QuizSynthesizer(self.gemini, config=self.config, normalize=self.dialect.normalize_field, rng=rng)

    def classify(self, message: str, tools: ToolToggles) -> Intent:
        return classify(message, tools, min_chars=self.config.search_min_chars)

    def handle(self, request: RequestMode) -> ChatReply | QuizResult:
        if isinstance(request, QuizRequest):
            return self.make_quiz(request)
        if isinstance(request, ExportRequest):
            return self.export(request)
        return self.reply(request)

    def reply(self, request: ChatRequest | ExportRequest) -> ChatReply:
        intent = self.classify(request.message, request.tools)
        bundle = self.aggregator.gather(
            message=request.message,
            history=request.history,
            document_text=request.document_text,
            tools=request.tools,
            intent=intent,
        )
        directive = style_directive(intent.language, self.config.locale if intent.location_dependent else None)
        segments = build_chat_segments(
            directive=directive,
            context_block=self.aggregator.render_context_block(bundle),
            history=request.history,
            message=request.message,
            image=request.image,
            config=self.config,
        )

        try:
            text = self.gemini.generate(
                segments,
                temperature=self.config.chat_temperature,
                max_output_tokens=self.config.chat_max_output_tokens,
            )
        except GenerationError as e:
            logger.warning("Chat generation failed: %s", e)
            return ChatReply(reply=SOFT_FAILURE_REPLY, degraded_reason="generation_failed")

        text = (text or "").strip()
        if not text:
            return ChatReply(reply=SOFT_FAILURE_REPLY, degraded_reason="empty_reply")
        if not intent.enforce_dialect:
            return ChatReply(reply=text)

        outcome = self.dialect.enforce(text)
        if isinstance(outcome, Degraded):
            return ChatReply(reply=outcome.value, degraded_reason=outcome.reason)
        return ChatReply(reply=outcome.value)

    def export(self, request: ExportRequest) -> ChatReply:
        answer = self.reply(request)
        if answer.degraded_reason in ("generation_failed", "empty_reply"):
            return answer
        document = export_document(answer.reply)
        return ChatReply(
            reply=f"هاذو المعلومات اللي باش تكون في الـ PDF:\n\n{document}",
            is_export=True,
            pdf_content=document,
            degraded_reason=answer.degraded_reason,
        )

    def quiz_source_text(self, request: QuizRequest) -> str | None:
        parts: list[str] = []
        document = clean_document_text(request.document_text, self.config.quiz_document_chars)
        if document:
            parts.append(document)
        if request.web_search:
            snippet = self.aggregator.web_snippet(self.aggregator.search_query(request.subject))
            if snippet:
                parts.append(snippet)
        return "\n\n".join(parts) or None

    def make_quiz(self, request: QuizRequest) -> QuizResult:
        language = requested_language(request.subject) or Language.DERJA
        quiz = self.quiz if language == Language.DERJA else QuizSynthesizer(
            self.gemini, config=self.config, rng=self.quiz.rng
        )
        params = request.params.normalized()
        outcome = quiz.synthesize(
            subject=request.subject,
            params=params,
            source_text=self.quiz_source_text(request),
            language=language,
        )
        reason = outcome.reason if isinstance(outcome, Degraded) else None
        return QuizResult(items=tuple(outcome.value), params=params, degraded_reason=reason)
