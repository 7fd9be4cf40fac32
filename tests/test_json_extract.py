import sys
import unittest
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app.ai.json_extract import extract_json


class JsonExtractTests(unittest.TestCase):
    def test_fenced_block_is_preferred(self):
        text = 'Sure! Here you go:\n```json\n{"explanation": "hi", "skills": ["a"]}\n```\nEnjoy.'
        result = extract_json(text)
        self.assertTrue(result.ok)
        self.assertEqual(result.stage, "fenced")
        self.assertEqual(result.value["skills"], ["a"])

    def test_brace_span_inside_chatter(self):
        result = extract_json('The answer is {"a": 1} and that is all')
        self.assertTrue(result.ok)
        self.assertEqual(result.stage, "brace_span")
        self.assertEqual(result.value, {"a": 1})

    def test_bare_array(self):
        result = extract_json('[{"title": "Book"}]')
        self.assertTrue(result.ok)
        self.assertEqual(result.stage, "whole_text")
        self.assertEqual(result.value, [{"title": "Book"}])

    def test_prose_brackets_before_object_do_not_win(self):
        text = 'Top areas: ["Art", "Science"]\n{"explanation": "You love art.", "encouragement": "Go!"}'
        result = extract_json(text)
        self.assertTrue(result.ok)
        self.assertEqual(result.stage, "brace_span")
        self.assertEqual(result.value["explanation"], "You love art.")

    def test_trailing_commas_are_cleaned(self):
        result = extract_json('```json\n{"skills": ["a", "b",],}\n```')
        self.assertTrue(result.ok)
        self.assertTrue(result.stage.startswith("cleanup"))
        self.assertEqual(result.value, {"skills": ["a", "b"]})

    def test_array_with_chatter_recovered_after_cleanup(self):
        result = extract_json('Games:\n[{"name": "Chess",},]\nHave fun')
        self.assertTrue(result.ok)
        self.assertEqual(result.value, [{"name": "Chess"}])

    def test_garbage_reports_failure(self):
        result = extract_json("I'm sorry, I cannot help with that.")
        self.assertFalse(result.ok)
        self.assertIsNone(result.value)
        self.assertTrue(result.error)

    def test_empty_input(self):
        for text in (None, "", "   "):
            result = extract_json(text)
            self.assertFalse(result.ok)
            self.assertEqual(result.error, "empty response")


if __name__ == "__main__":
    unittest.main()
