import os
import sys
import unittest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from derja.classifier import classify, is_location_dependent, needs_web_search, requested_language
from derja.models import Language, ToolToggles


class TestRequestedLanguage(unittest.TestCase):
    def test_explicit_english(self):
        self.assertEqual(requested_language("answer in english: hello"), Language.ENGLISH)

    def test_english_in_arabic_script(self):
        self.assertEqual(requested_language("فسرلي الفكرة هاذي بالانجليزي"), Language.ENGLISH)

    def test_french(self):
        self.assertEqual(requested_language("réponds en français stp"), Language.FRENCH)

    def test_formal_register(self):
        self.assertEqual(requested_language("جاوبني بالفصحى من فضلك"), Language.FUSHA)

    def test_no_override(self):
        self.assertIsNone(requested_language("شنوة أحوالك اليوم؟"))

    def test_non_string_input(self):
        self.assertIsNone(requested_language(None))
        self.assertIsNone(requested_language(42))
        self.assertIsNone(requested_language(""))


class TestNeedsWebSearch(unittest.TestCase):
    def test_question_with_search_enabled(self):
        self.assertTrue(needs_web_search("شكون ربح الماتش البارح؟", True))

    def test_search_disabled(self):
        self.assertFalse(needs_web_search("شكون ربح الماتش البارح؟", False))

    def test_too_short(self):
        self.assertFalse(needs_web_search("hi?", True))

    def test_plain_statement(self):
        self.assertFalse(needs_web_search("نحب نقرا كتاب مزيان برشا", True))

    def test_recency_without_question_word(self):
        self.assertTrue(needs_web_search("give me the latest results", True))

    def test_non_string_input(self):
        self.assertFalse(needs_web_search(None, True))
        self.assertFalse(needs_web_search(["list"], True))


class TestLocationDependent(unittest.TestCase):
    def test_weather_without_place(self):
        self.assertTrue(is_location_dependent("شنوة الطقس اليوم؟"))
        self.assertTrue(is_location_dependent("what is the weather today?"))

    def test_weather_with_known_place(self):
        self.assertFalse(is_location_dependent("شنوة الطقس في صفاقس اليوم؟"))
        self.assertFalse(is_location_dependent("what's the weather in Paris today?"))

    def test_not_weather(self):
        self.assertFalse(is_location_dependent("شنوة أحسن كتاب قريتو؟"))

    def test_non_string_input(self):
        self.assertFalse(is_location_dependent(None))
        self.assertFalse(is_location_dependent(3.5))


class TestClassify(unittest.TestCase):
    def test_weather_question_scenario(self):
        intent = classify("شنوة الطقس اليوم؟", ToolToggles(web_search=True))
        self.assertTrue(intent.needs_web_search)
        self.assertTrue(intent.location_dependent)
        self.assertEqual(intent.language, Language.DERJA)
        self.assertTrue(intent.enforce_dialect)

    def test_english_override_skips_dialect(self):
        intent = classify("answer in english: hello")
        self.assertEqual(intent.language, Language.ENGLISH)
        self.assertTrue(intent.language_explicit)
        self.assertFalse(intent.enforce_dialect)

    def test_defaults_for_garbage(self):
        intent = classify(None, ToolToggles(web_search=True, url_fetch=True))
        self.assertEqual(intent.language, Language.DERJA)
        self.assertFalse(intent.language_explicit)
        self.assertFalse(intent.needs_web_search)
        self.assertFalse(intent.location_dependent)


if __name__ == "__main__":
    unittest.main()
