import datetime as dt
import http.client
import json
import os
import random
import sys
import unittest
from unittest.mock import MagicMock, patch

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from derja.assistant import DerjaAssistant, export_document
from derja.config import PipelineConfig
from derja.errors import GenerationError
from derja.gemini import GeminiClient
from derja.inbound import ChatRequest, ExportRequest, QuizRequest
from derja.models import QuizParams, ToolToggles
from derja.prompting import SOFT_FAILURE_REPLY
from derja.web import SearchResult

ENGLISH_REPLY = "This is the full answer and it is written in English, which is the wrong script."


class TestDerjaAssistant(unittest.TestCase):
    def setUp(self):
        self.gemini = MagicMock()
        self.search = MagicMock()
        self.search.search.return_value = SearchResult(abstract="الطقس مشمس", results=())
        self.search.search_html.return_value = []
        self.fetcher = MagicMock()
        self.fetcher.fetch_page.return_value = None
        self.assistant = DerjaAssistant(
            config=PipelineConfig(),
            gemini=self.gemini,
            search=self.search,
            fetcher=self.fetcher,
            rng=random.Random(3),
        )

    def test_weather_question_uses_default_locale(self):
        self.gemini.generate.return_value = "الطقس اليوم في تونس العاصمة مشمس."
        reply = self.assistant.handle(ChatRequest(message="شنوة الطقس اليوم؟", tools=ToolToggles(web_search=True)))

        self.assertIsNone(reply.degraded_reason)
        segments = self.gemini.generate.call_args[0][0]
        self.assertIn("Africa/Tunis", segments[0].text)
        self.assertIn("الطقس مشمس", segments[0].text)
        query = self.search.search.call_args[0][0]
        self.assertIn("تونس العاصمة", query)

    def test_explicit_english_is_not_rewritten(self):
        self.gemini.generate.return_value = ENGLISH_REPLY
        reply = self.assistant.handle(ChatRequest(message="answer in english: hello"))

        self.assertEqual(reply.reply, ENGLISH_REPLY)
        self.assertEqual(self.gemini.generate.call_count, 1)

    def test_drift_gets_one_rewrite(self):
        self.gemini.generate.side_effect = [ENGLISH_REPLY, "هذا الجواب بالدارجة"]
        reply = self.assistant.handle(ChatRequest(message="فسرلي الجاذبية"))

        self.assertEqual(reply.reply, "هاذا الجواب بالدارجة")
        self.assertEqual(self.gemini.generate.call_count, 2)

    def test_failed_rewrite_keeps_first_reply(self):
        self.gemini.generate.side_effect = [ENGLISH_REPLY, GenerationError("down")]
        reply = self.assistant.handle(ChatRequest(message="فسرلي الجاذبية"))

        self.assertEqual(reply.reply, ENGLISH_REPLY)
        self.assertEqual(reply.degraded_reason, "rewrite_failed")

    def test_generation_failure_is_soft(self):
        self.gemini.generate.side_effect = GenerationError("HTTP 503", status=503)
        reply = self.assistant.handle(ChatRequest(message="سلام"))

        self.assertEqual(reply.reply, SOFT_FAILURE_REPLY)
        self.assertEqual(reply.degraded_reason, "generation_failed")
        self.assertEqual(reply.to_dict(), {"reply": SOFT_FAILURE_REPLY})

    @patch("derja.gemini.urllib.request.urlopen")
    def test_broken_upstream_response_is_soft(self, mock_urlopen):
        mock_urlopen.side_effect = http.client.IncompleteRead(b"")
        assistant = DerjaAssistant(
            config=PipelineConfig(), gemini=GeminiClient(api_key="k"), search=self.search, fetcher=self.fetcher
        )
        reply = assistant.handle(ChatRequest(message="سلام"))
        self.assertEqual(reply.reply, SOFT_FAILURE_REPLY)
        self.assertEqual(reply.degraded_reason, "generation_failed")

    def test_lexicon_applied_to_clean_reply(self):
        self.gemini.generate.return_value = "لم يعد عندي وقت"
        reply = self.assistant.handle(ChatRequest(message="وينك؟"))
        self.assertEqual(reply.reply, "ما عادش عندي وقت")

    def test_export_mode(self):
        self.gemini.generate.return_value = "ملخص الدرس"
        reply = self.assistant.handle(ExportRequest(message="اعملي ملخص"))

        data = reply.to_dict()
        self.assertTrue(data["isPdfExport"])
        self.assertIn("ملخص الدرس", data["pdfContent"])
        self.assertIn(data["pdfContent"], data["reply"])

    def test_export_document_header(self):
        doc = export_document("نص", dt.datetime(2025, 1, 2, 3, 4))
        self.assertTrue(doc.startswith("# "))
        self.assertIn("2025-01-02 03:04", doc)

    def test_quiz_respects_allowed_types_on_failure(self):
        self.gemini.generate.return_value = "no json here"
        result = self.assistant.handle(
            QuizRequest(subject="التاريخ", params=QuizParams(question_count=5, allowed_types=("tf",)))
        )

        data = result.to_dict()
        self.assertTrue(data["isQuiz"])
        self.assertEqual(len(data["quiz"]), 5)
        self.assertTrue(all(q["type"] == "tf" for q in data["quiz"]))
        self.assertEqual(data["settings"]["allowedTypes"], ["tf"])
        self.assertIsNotNone(result.degraded_reason)

    def test_quiz_fields_are_normalized(self):
        items = [
            {"type": "mcq", "question": f"لماذا {i}؟", "options": ["نعم", "لا"], "correctIndex": 0, "explanation": "."}
            for i in range(3)
        ]
        self.gemini.generate.return_value = json.dumps(items, ensure_ascii=False)
        result = self.assistant.handle(QuizRequest(subject="x", params=QuizParams(question_count=3, option_count=2)))

        self.assertIsNone(result.degraded_reason)
        self.assertEqual(result.items[0].question, "علاش 0؟")
        self.assertEqual(result.items[0].options[0], "إيه")

    def test_quiz_source_text(self):
        request = QuizRequest(subject="x", params=QuizParams(), document_text="doc   text", web_search=True)
        source = self.assistant.quiz_source_text(request)
        self.assertTrue(source.startswith("doc text"))
        self.assertIn("الطقس مشمس", source)


if __name__ == "__main__":
    unittest.main()
