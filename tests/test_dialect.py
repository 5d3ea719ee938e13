import os
import sys
import unittest
from unittest.mock import MagicMock

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from derja.config import PipelineConfig
from derja.dialect import DialectEnforcer, LexiconEngine, apply_lexicon, detect_drift, measure_script
from derja.errors import GenerationError
from derja.lexicon import RULES, LexicalRule
from derja.outcome import Degraded, Ok

ENGLISH_REPLY = "This is the full answer and it is written in English, which is the wrong script."

SAMPLES = [
    "لم يعد عندي وقت",
    "لماذا يجب أن ندرس الآن؟",
    "كم سعر الخبز في السوق؟",
    "كم عمرك؟",
    "الرصيد في البنك قليلا",
    "كلما تقرا أكثر، كلما تفهم أكثر",
    "هذا الكتاب جيد جدا لكن هذه الرواية أيضا جيدة",
    "لا أعرف أين الرصيد الذي تتكلم عليه",
    "```python\nprint('hello')\n``` وهذا مثال",
]


class TestLexiconEngine(unittest.TestCase):
    def setUp(self):
        self.engine = LexiconEngine()

    def test_negation_rewrite(self):
        once = self.engine.apply("لم يعد عندي وقت")
        self.assertEqual(once, "ما عادش عندي وقت")
        self.assertEqual(self.engine.apply(once), once)

    def test_idempotent_on_samples(self):
        for text in SAMPLES:
            once = self.engine.apply(text)
            self.assertEqual(self.engine.apply(once), once, text)

    def test_targets_are_fixed_points(self):
        for rule in RULES:
            self.assertEqual(self.engine.apply(rule.target), rule.target)
            if rule.finance_target:
                self.assertEqual(self.engine.apply(rule.finance_target), rule.finance_target)

    def test_does_not_touch_word_fragments(self):
        self.assertEqual(self.engine.apply("الكمبيوتر"), "الكمبيوتر")
        self.assertEqual(self.engine.apply("هذاك"), "هذاك")
        self.assertEqual(self.engine.apply("كيفاش"), "كيفاش")

    def test_longest_pattern_wins(self):
        self.assertEqual(self.engine.apply("بكم هذا"), "بقداش هاذا")
        self.assertEqual(self.engine.apply("يجب أن نمشيو"), "لازم نمشيو")

    def test_finance_context(self):
        self.assertEqual(self.engine.apply("كم سعر الخبز"), "بقداش سعر الخبز")
        self.assertEqual(self.engine.apply("كم عمرك"), "قداش عمرك")
        self.assertEqual(self.engine.apply("الرصيد في البنك"), "الصولد في البنك")
        self.assertEqual(self.engine.apply("الرصيد متاع اللعبة"), "الباقي متاع اللعبة")

    def test_comparative_idiom(self):
        out = self.engine.apply("كلما تقرا أكثر، كلما تفهم أكثر")
        self.assertEqual(out, "قد ما تقرا أكثر، قد ما تفهم أكثر")

    def test_comparative_can_be_disabled(self):
        engine = LexiconEngine(comparative=False)
        self.assertEqual(engine.apply("كلما تقرا، كلما تفهم"), "كلما تقرا، كلما تفهم")

    def test_custom_table(self):
        engine = LexiconEngine((LexicalRule(("سيارة",), "كرهبة"),), comparative=False)
        self.assertEqual(engine.apply("سيارة جديدة"), "كرهبة جديدة")

    def test_empty_and_non_string(self):
        self.assertEqual(self.engine.apply(""), "")
        self.assertEqual(apply_lexicon(None), "")


class TestDriftDetection(unittest.TestCase):
    def test_latin_reply_drifts(self):
        self.assertEqual(detect_drift(ENGLISH_REPLY), "low_script")

    def test_short_latin_reply_drifts(self):
        self.assertEqual(detect_drift("I do not know."), "latin_ratio")
        self.assertEqual(detect_drift("Sorry, no idea!"), "latin_ratio")

    def test_short_latin_reply_gets_rewritten(self):
        generator = MagicMock()
        generator.generate.return_value = "ما نعرفش"
        outcome = DialectEnforcer(generator).enforce("I do not know.")
        self.assertEqual(outcome.value, "ما نعرفش")
        self.assertEqual(generator.generate.call_count, 1)

    def test_derja_reply_is_clean(self):
        self.assertIsNone(detect_drift("أهلا بيك، شنوة نجم نعاونك اليوم؟ قلّي على الموضوع اللي تحب تفهمو."))

    def test_code_blocks_are_ignored(self):
        text = "هاذا مثال بسيط على الطباعة:\n```python\nprint('hello world and more text here')\n```"
        self.assertEqual(measure_script(text).latin, 0)
        self.assertIsNone(detect_drift(text))

    def test_connectors_in_arabic_text(self):
        text = "الجواب هو أنو الموضوع " * 5 + "the answer is here"
        self.assertEqual(detect_drift(text), "foreign_connectors")

    def test_thresholds_come_from_config(self):
        strict = PipelineConfig(drift_latin_ratio=0.0, drift_min_latin_chars=1)
        self.assertEqual(detect_drift("الموضوع هاذا فيه كلمة API برك", strict), "latin_ratio")
        self.assertIsNone(detect_drift("الموضوع هاذا فيه كلمة API برك"))

    def test_non_string(self):
        self.assertIsNone(detect_drift(None))


class TestDialectEnforcer(unittest.TestCase):
    def setUp(self):
        self.generator = MagicMock()
        self.enforcer = DialectEnforcer(self.generator)

    def test_clean_reply_skips_rewrite(self):
        outcome = self.enforcer.enforce("لماذا السماء زرقاء؟")
        self.assertIsInstance(outcome, Ok)
        self.assertEqual(outcome.value, "علاش السماء زرقاء؟")
        self.generator.generate.assert_not_called()

    def test_drift_triggers_exactly_one_rewrite(self):
        self.generator.generate.return_value = "هذا الجواب بالتونسي"
        outcome = self.enforcer.enforce(ENGLISH_REPLY)
        self.assertIsInstance(outcome, Ok)
        self.assertEqual(outcome.value, "هاذا الجواب بالتونسي")
        self.assertEqual(self.generator.generate.call_count, 1)

    def test_rewrite_that_still_drifts_is_not_retried(self):
        self.generator.generate.return_value = ENGLISH_REPLY
        outcome = self.enforcer.enforce(ENGLISH_REPLY)
        self.assertEqual(outcome.value, ENGLISH_REPLY)
        self.assertEqual(self.generator.generate.call_count, 1)

    def test_rewrite_failure_keeps_original(self):
        self.generator.generate.side_effect = GenerationError("quota", status=429)
        outcome = self.enforcer.enforce(ENGLISH_REPLY)
        self.assertIsInstance(outcome, Degraded)
        self.assertEqual(outcome.reason, "rewrite_failed")
        self.assertEqual(outcome.value, ENGLISH_REPLY)
        self.assertEqual(self.generator.generate.call_count, 1)

    def test_empty_rewrite_keeps_original(self):
        self.generator.generate.return_value = "   "
        outcome = self.enforcer.enforce(ENGLISH_REPLY)
        self.assertIsInstance(outcome, Degraded)
        self.assertEqual(outcome.reason, "rewrite_empty")
        self.assertEqual(outcome.value, ENGLISH_REPLY)

    def test_normalize_field_never_calls_model(self):
        self.assertEqual(self.enforcer.normalize_field("نعم"), "إيه")
        self.generator.generate.assert_not_called()


if __name__ == "__main__":
    unittest.main()
