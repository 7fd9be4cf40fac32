import sys
import unittest
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app.quiz.scoring import score_answers
from app.schemas.quiz import Question

AREAS_6_8 = ["Art", "Science", "Technology", "Nature", "Communication"]


def _question(scoring):
    return Question(text="q", answers=["a", "b", "c", "d"], scoring=scoring)


class ScoringEngineTests(unittest.TestCase):
    def test_art_outranks_science_for_mixed_answers(self):
        questions = [_question({"Art": [3, 2, 1, 0], "Science": [0, 1, 2, 3]}) for _ in range(5)]
        result = score_answers(questions, [0, 0, 3, 3, 1], AREAS_6_8)

        self.assertEqual(result.scores["Art"], 8)
        self.assertEqual(result.scores["Science"], 7)
        self.assertEqual(result.top_career_areas, ["Art", "Science", "Technology"])

    def test_constant_row_scores_value_times_question_count(self):
        questions = [_question({"Nature": [2, 2, 2, 2], "Art": [0, 1, 2, 3]}) for _ in range(6)]
        for answers in ([0, 1, 2, 3, 0, 1], [3, 3, 3, 3, 3, 3], [1, 0, 2, 1, 3, 2]):
            result = score_answers(questions, answers, AREAS_6_8)
            self.assertEqual(result.scores["Nature"], 2 * len(questions))

    def test_only_configured_areas_are_scored(self):
        questions = [_question({"Art": [1, 1, 1, 1], "Business": [5, 5, 5, 5]})]
        result = score_answers(questions, [0], AREAS_6_8)

        self.assertEqual(set(result.scores), set(AREAS_6_8))
        self.assertNotIn("Business", result.top_career_areas)

    def test_short_and_long_answer_arrays_do_not_fail(self):
        questions = [_question({"Art": [0, 1, 2, 3]}) for _ in range(4)]

        short = score_answers(questions, [3], AREAS_6_8)
        self.assertEqual(short.scores["Art"], 3)

        long = score_answers(questions, [1, 1, 1, 1, 3, 3, 3], AREAS_6_8)
        self.assertEqual(long.scores["Art"], 4)

        empty = score_answers(questions, [], AREAS_6_8)
        self.assertEqual(empty.scores, {area: 0 for area in AREAS_6_8})

    def test_out_of_range_and_non_integer_answers_add_nothing(self):
        questions = [_question({"Science": [1, 2, 3, 4]}) for _ in range(5)]
        result = score_answers(questions, [9, -1, "2", True, 1], AREAS_6_8)
        self.assertEqual(result.scores["Science"], 2)

    def test_questions_without_scoring_are_skipped(self):
        questions = [Question(text="warm up", answers=["yes", "no"]), _question({"Art": [0, 0, 0, 4]})]
        result = score_answers(questions, [1, 3], AREAS_6_8)
        self.assertEqual(result.scores["Art"], 4)

    def test_ties_keep_declaration_order(self):
        questions = [_question({"Communication": [2, 0, 0, 0], "Art": [2, 0, 0, 0]})]
        result = score_answers(questions, [0], AREAS_6_8)
        self.assertEqual(result.top_career_areas, ["Art", "Communication", "Science"])


if __name__ == "__main__":
    unittest.main()
