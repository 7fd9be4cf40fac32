import random
import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

import httpx

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app.ai.providers.openai_provider import DisabledTextGenerator
from app.core.document_store import ContentStore, QuizStore, SqliteDatabase
from app.core.errors import QuizInputError, QuizNotFoundError
from app.integrations.main_service import MainServiceClient
from app.integrations.youtube import YouTubeVideoSearch
from app.quiz import QuestionBank
from app.schemas.quiz import Quiz
from app.services.analysis_service import AnalysisService
from app.services.content_service import ContentRecommendationService
from app.services.quiz_resolver import QuizResolver
from app.services import quiz_service
from app.services.quiz_service import QuizService, new_quiz_id, normalize_answers
from app.services.recommendation_extractor import RecommendationExtractor


def build_service(db_path, calls, user_status=200):
    def handler(request: httpx.Request) -> httpx.Response:
        calls.append((request.method, request.url.path))
        if request.url.path.startswith("/api/internal/users/"):
            if user_status != 200:
                return httpx.Response(user_status, json={"message": "unavailable"})
            return httpx.Response(200, json={"_id": "user-1", "firstName": "Ava", "age": 7, "email": "a@example.com"})
        return httpx.Response(200, json={"ok": True})

    db = SqliteDatabase(db_path)
    bank = QuestionBank()
    quiz_store = QuizStore(db)
    generator = DisabledTextGenerator()
    service = QuizService(
        quiz_store=quiz_store,
        content_store=ContentStore(db),
        question_bank=bank,
        analysis=AnalysisService(generator, tables=bank.tables, timeout_s=5),
        content=ContentRecommendationService(generator, None, tables=bank.tables, timeout_s=5),
        extractor=RecommendationExtractor(rng=random.Random(3)),
        main_service=MainServiceClient(base_url="http://main.test", transport=httpx.MockTransport(handler)),
        resolver=QuizResolver(quiz_store, scan_limit=50, allow_owner_mismatch=True),
    )
    return db, quiz_store, service


class AnswerNormalizationTests(unittest.TestCase):
    def test_mixed_answer_shapes(self):
        raw = [2, {"question_index": 1, "answer": 3}, {"question_index": 2, "answer": "1 - A little"}, "Often", None, 1.0]
        self.assertEqual(normalize_answers(raw), [2, 3, 1, 0, 0, 1])

    def test_invalid_objects_become_zero(self):
        self.assertEqual(normalize_answers([{"answer": 2}, True]), [0, 0])
        self.assertEqual(normalize_answers([]), [])

    def test_quiz_ids_are_hex(self):
        quiz_id = new_quiz_id()
        self.assertEqual(len(quiz_id), 24)
        int(quiz_id, 16)


class QuizServiceTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.calls = []
        self.db, self.store, self.service = build_service(str(Path(self._tmp.name) / "quiz.db"), self.calls)

    def tearDown(self):
        self.db.close()
        self._tmp.cleanup()

    async def test_create_requires_an_owner(self):
        with self.assertRaises(QuizInputError):
            await self.service.create_quiz("9-12")
        with self.assertRaises(QuizInputError):
            await self.service.create_quiz("4-5", session_id="guest-1")

    async def test_guest_quiz_round_trip(self):
        quiz = await self.service.create_quiz("6-8", session_id="guest-1")
        stored = self.store.get(quiz.id)
        self.assertEqual(stored.session_id, "guest-1")
        self.assertEqual(stored.career_areas, ["Art", "Science", "Technology", "Nature", "Communication"])
        self.assertFalse(stored.submitted)

        answers = [3] * len(quiz.questions)
        result = await self.service.submit_answers(quiz.id, answers, session_id="guest-1")

        self.assertEqual(len(result.analysis.top_career_areas), 3)
        self.assertTrue(result.analysis.ai_analysis.explanation)
        self.assertEqual(result.user_details, {"id": "guest-1", "type": "guest"})
        self.assertEqual(result.quiz_details["questions"], len(quiz.questions))
        self.assertTrue(result.educational_content.books)
        self.assertEqual(result.educational_content.videos, [])

        saved = self.store.get(quiz.id)
        self.assertTrue(saved.submitted and saved.completed)
        self.assertEqual(saved.answers, answers)
        self.assertIsNotNone(saved.analysis)
        self.assertEqual(self.calls, [])

    async def test_guest_submit_with_wrong_session(self):
        quiz = await self.service.create_quiz("9-12", session_id="guest-1")
        with self.assertRaises(QuizNotFoundError):
            await self.service.submit_answers(quiz.id, [0], session_id="guest-2")
        with self.assertRaises(QuizNotFoundError):
            await self.service.submit_answers("missing", [0], session_id="guest-1")

    async def test_guest_submit_cannot_touch_user_quiz(self):
        quiz = await self.service.create_quiz("9-12", user_id="user-1", token="tok")
        with self.assertRaises(QuizNotFoundError):
            await self.service.submit_answers(quiz.id, [3, 3], session_id="guest-1")
        with self.assertRaises(QuizNotFoundError):
            await self.service.submit_answers(quiz.id, [3, 3])

        stored = self.store.get(quiz.id)
        self.assertFalse(stored.submitted)
        self.assertEqual(stored.answers, [])
        with self.assertRaises(QuizNotFoundError):
            await self.service.guest_recommendations("guest-1", quiz.id)

    async def test_authenticated_submit_awards_completion(self):
        quiz = await self.service.create_quiz("9-12", user_id="user-1", token="tok")
        result = await self.service.submit_answers(quiz.id, [1, 2], user_id="user-1", token="tok")

        self.assertEqual(result.user_details["first_name"], "Ava")
        self.assertIn(("POST", f"/api/student/rewards/complete-quiz/{quiz.id}"), self.calls)

    async def test_career_recommendations_without_quiz(self):
        result = await self.service.career_recommendations("user-1")
        self.assertTrue(result.fallback)
        self.assertEqual(result.quiz_id, "fallback")
        self.assertEqual(len(result.careers), 5)
        self.assertTrue(result.message)

    async def test_career_recommendations_from_submitted_quiz(self):
        quiz = await self.service.create_quiz("13-15", user_id="user-1")
        await self.service.submit_answers(quiz.id, [0] * len(quiz.questions), user_id="user-1")

        result = await self.service.career_recommendations("user-1", quiz.id[:8])
        self.assertFalse(result.fallback)
        self.assertEqual(result.quiz_id, quiz.id)
        self.assertEqual(len(result.careers), 3)
        self.assertTrue(result.traits)

    async def test_answered_quiz_without_analysis_is_analysed_late(self):
        questions = QuestionBank().questions("9-12")
        self.store.save(
            Quiz(id="late-quiz", user_id="user-1", age_range="9-12", questions=questions, answers=[3] * len(questions))
        )

        result = await self.service.career_recommendations("user-1", "late-quiz")
        self.assertEqual(result.quiz_id, "late-quiz")

        stored = self.store.get("late-quiz")
        self.assertTrue(stored.completed)
        self.assertIsNotNone(stored.analysis)

    async def test_legacy_text_analysis(self):
        self.store.save(
            Quiz(
                id="legacy-quiz",
                user_id="user-1",
                age_range="9-12",
                answers=[1, 2],
                submitted=True,
                completed=True,
                analysis="A creative mind who could be a Designer or a Writer.",
            )
        )
        result = await self.service.career_recommendations("user-1", "legacy-quiz")
        self.assertEqual([c.career for c in result.careers], ["Writer", "Designer"])
        self.assertEqual(result.traits[0].trait, "creative")

        bundle = await self.service.generate_educational_content("user-1", "legacy-quiz")
        self.assertEqual(bundle.analysis.career_area_names(), ["Writer", "Designer"])

    async def test_content_without_quiz_uses_user_age(self):
        bundle = await self.service.generate_educational_content("user-1", None, token="tok")

        self.assertTrue(bundle.analysis.fallback)
        self.assertEqual(bundle.analysis.age_range, "6-8")
        self.assertIn("Ava", bundle.analysis.ai_analysis.explanation)
        self.assertEqual(self.service.latest_content("user-1").id, bundle.id)

        resources = await self.service.learning_resources("user-1")
        self.assertEqual(resources.books[0].title, bundle.books[0].title)

    async def test_content_survives_user_lookup_failure(self):
        for status in (503, 404):
            calls = []
            db, _, service = build_service(str(Path(self._tmp.name) / f"lookup-{status}.db"), calls, user_status=status)
            try:
                bundle = await service.generate_educational_content("user-1", None, token="tok")
            finally:
                db.close()

            self.assertTrue(bundle.analysis.fallback)
            self.assertEqual(bundle.analysis.age_range, "9-12")
            self.assertTrue(bundle.books)
            self.assertIn(("GET", "/api/internal/users/user-1"), calls)

    async def test_learning_resources_need_content_or_token(self):
        with self.assertRaises(QuizNotFoundError):
            await self.service.learning_resources("user-2")
        resources = await self.service.learning_resources("user-2", token="tok")
        self.assertTrue(resources.resources)

    async def test_quiz_analysis_view(self):
        with self.assertRaises(QuizNotFoundError):
            self.service.quiz_analysis("user-1")

        self.store.save(Quiz(id="flags-off", user_id="user-1", age_range="9-12", answers=[1]))
        view = self.service.quiz_analysis("user-1", "flags-off")
        self.assertTrue(view.completed)
        self.assertEqual(view.analysis, "No analysis available")
        self.assertIsNotNone(view.updated_at)
        self.assertEqual(view.updated_at, self.store.updated_at("flags-off"))

    async def test_guest_recommendations(self):
        quiz = await self.service.create_quiz("16-18", session_id="guest-9")
        with self.assertRaises(QuizInputError):
            await self.service.guest_recommendations("guest-9", quiz.id)

        await self.service.submit_answers(quiz.id, [2] * len(quiz.questions), session_id="guest-9")
        result = await self.service.guest_recommendations("guest-9", quiz.id)
        self.assertEqual(result.quiz_id, quiz.id)
        self.assertTrue(result.recommendations.games)

        with self.assertRaises(QuizNotFoundError):
            await self.service.guest_recommendations("someone-else", quiz.id)


class ServiceWiringTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.db = SqliteDatabase(str(Path(self._tmp.name) / "wiring.db"))

    def tearDown(self):
        self.db.close()
        self._tmp.cleanup()

    def _wire(self, api_key):
        with patch.object(quiz_service, "get_database", return_value=self.db), patch.object(
            quiz_service, "YouTubeVideoSearch", side_effect=lambda: YouTubeVideoSearch(api_key=api_key)
        ):
            return quiz_service.get_quiz_service.__wrapped__()

    def test_video_search_only_wired_with_api_key(self):
        self.assertIsNone(self._wire("").content.video_provider)

        provider = self._wire("test-key").content.video_provider
        self.assertIsInstance(provider, YouTubeVideoSearch)
        self.assertTrue(provider.enabled)


if __name__ == "__main__":
    unittest.main()
