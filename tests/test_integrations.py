import sys
import unittest
from pathlib import Path

import httpx

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app.core.errors import (
    MainServiceAuthError,
    MainServiceUnavailableError,
    QuizInputError,
    UserNotFoundError,
)
from app.integrations.main_service import MainServiceClient, principal_user_id
from app.integrations.youtube import (
    VideoSearchError,
    YouTubeVideoSearch,
    build_search_text,
    format_duration,
)
from app.schemas.content import VideoQuery


def _main_service_handler(calls):
    def handler(request: httpx.Request) -> httpx.Response:
        calls.append((request.method, request.url.path))
        auth = request.headers.get("Authorization")
        if request.url.path == "/api/health":
            return httpx.Response(200, json={"status": "ok"})
        if auth != "Bearer good-token":
            return httpx.Response(401, json={"message": "unauthorized"})
        if request.url.path == "/api/internal/auth/validate":
            return httpx.Response(200, json={"userId": "user-1", "role": "student"})
        if request.url.path == "/api/internal/users/user-1":
            return httpx.Response(200, json={"_id": "user-1", "firstName": "Ava", "age": 10, "email": "a@example.com"})
        if request.url.path.startswith("/api/internal/users/"):
            return httpx.Response(404, json={"message": "not found"})
        if request.url.path.startswith("/api/student/rewards/complete-quiz/"):
            return httpx.Response(500, json={"message": "rewards down"})
        return httpx.Response(200, json={})

    return handler


class MainServiceClientTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.calls = []
        self.client = MainServiceClient(
            base_url="http://main.test/",
            timeout_s=2,
            transport=httpx.MockTransport(_main_service_handler(self.calls)),
        )

    async def test_ping_and_base_url(self):
        self.assertEqual(self.client.base_url, "http://main.test")
        self.assertTrue(await self.client.ping())

    async def test_validate_token(self):
        principal = await self.client.validate_token("good-token")
        self.assertEqual(principal_user_id(principal), "user-1")

        with self.assertRaises(MainServiceAuthError):
            await self.client.validate_token("bad-token")
        with self.assertRaises(MainServiceAuthError):
            await self.client.validate_token("")

    async def test_get_user(self):
        user = await self.client.get_user("user-1", "good-token")
        self.assertEqual(user["firstName"], "Ava")

        with self.assertRaises(UserNotFoundError):
            await self.client.get_user("ghost", "good-token")
        with self.assertRaises(MainServiceAuthError):
            await self.client.get_user("user-1", "bad-token")
        with self.assertRaises(QuizInputError):
            await self.client.get_user("", "good-token")

    async def test_reward_posts_do_not_raise(self):
        await self.client.post_quiz_completion_award("user-1", "quiz-1", "good-token")
        await self.client.post_reward_update("user-1", 10, "good-token")
        self.assertIn(("POST", "/api/student/rewards/complete-quiz/quiz-1"), self.calls)
        self.assertIn(("POST", "/api/internal/rewards/update"), self.calls)

    async def test_unreachable_service(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = MainServiceClient(base_url="http://main.test", transport=httpx.MockTransport(refuse))
        self.assertFalse(await client.ping())
        with self.assertRaises(MainServiceUnavailableError):
            await client.validate_token("good-token")

    def test_principal_user_id_keys(self):
        self.assertEqual(principal_user_id({"sub": "abc"}), "abc")
        self.assertEqual(principal_user_id({"_id": 42}), "42")
        self.assertIsNone(principal_user_id({}))


class _Executable:
    def __init__(self, payload):
        self.payload = payload

    def execute(self):
        return self.payload


class _Collection:
    def __init__(self, payload, calls, name):
        self.payload = payload
        self.calls = calls
        self.name = name

    def list(self, **kwargs):
        self.calls.append((self.name, kwargs))
        return _Executable(self.payload)


class FakeYouTube:
    def __init__(self, search_payload, videos_payload):
        self.calls = []
        self._search = search_payload
        self._videos = videos_payload

    def search(self):
        return _Collection(self._search, self.calls, "search")

    def videos(self):
        return _Collection(self._videos, self.calls, "videos")


class YouTubeVideoSearchTests(unittest.IsolatedAsyncioTestCase):
    def test_format_duration(self):
        self.assertEqual(format_duration("PT4M10S"), "4:10")
        self.assertEqual(format_duration("PT1H2M5S"), "1:02:05")
        self.assertEqual(format_duration("PT45S"), "0:45")
        self.assertEqual(format_duration("P1DT1M"), "24:01:00")
        self.assertEqual(format_duration("garbage"), "")
        self.assertEqual(format_duration(None), "")

    def test_build_search_text(self):
        text = build_search_text(VideoQuery(query="robots", age_range="9-12", subject="Technology"))
        self.assertEqual(text, "robots Technology for kids ages 9-12 educational")

    async def test_search_maps_results(self):
        fake = FakeYouTube(
            {
                "items": [
                    {"id": {"videoId": "abc"}, "snippet": {"title": "Robots!", "description": "Build one"}},
                    {"id": {"channelId": "skip-me"}, "snippet": {"title": "Channel"}},
                ]
            },
            {"items": [{"id": "abc", "contentDetails": {"duration": "PT3M2S"}}]},
        )
        search = YouTubeVideoSearch(api_key="key", timeout_s=5, service_factory=lambda key: fake)
        videos = await search.search(VideoQuery(query="robots", subject="Technology", max_results=2))

        self.assertEqual(len(videos), 1)
        self.assertEqual(videos[0].url, "https://www.youtube.com/watch?v=abc")
        self.assertEqual(videos[0].duration, "3:02")
        self.assertEqual(videos[0].tag, "Technology")
        search_kwargs = fake.calls[0][1]
        self.assertEqual(search_kwargs["safeSearch"], "strict")
        self.assertEqual(search_kwargs["maxResults"], 2)

    async def test_missing_key_is_an_error(self):
        search = YouTubeVideoSearch(api_key="", service_factory=lambda key: None)
        self.assertFalse(search.enabled)
        with self.assertRaises(VideoSearchError):
            await search.search(VideoQuery(query="robots"))


if __name__ == "__main__":
    unittest.main()
