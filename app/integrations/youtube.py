from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Callable, Protocol

from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from app.core.config import settings
from app.schemas.content import VideoQuery, VideoRecord

logger = logging.getLogger(__name__)

_ISO_DURATION_RE = re.compile(r"^P(?:(\d+)D)?T?(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?$")


class VideoSearchError(RuntimeError):
    pass


class VideoSearchProvider(Protocol):
    async def search(self, query: VideoQuery) -> list[VideoRecord]: ...


def format_duration(iso_duration: str | None) -> str:
    """Turn an ISO 8601 duration such as ``PT1H2M5S`` into ``1:02:05``."""
    if not iso_duration:
        return ""
    match = _ISO_DURATION_RE.match(iso_duration.strip())
    if not match:
        return ""
    days, hours, minutes, seconds = (int(part) if part else 0 for part in match.groups())
    hours += days * 24
    if hours:
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    return f"{minutes}:{seconds:02d}"


def build_search_text(query: VideoQuery) -> str:
    parts = [query.query.strip()]
    if query.subject and query.subject.lower() not in query.query.lower():
        parts.append(query.subject)
    if query.age_range:
        parts.append(f"for kids ages {query.age_range}")
    parts.append("educational")
    return " ".join(part for part in parts if part)


class YouTubeVideoSearch:
    def __init__(
        self,
        api_key: str | None = None,
        timeout_s: float | None = None,
        service_factory: Callable[[str], Any] | None = None,
    ) -> None:
        self._api_key = api_key if api_key is not None else settings.youtube_api_key
        self._timeout_s = timeout_s if timeout_s is not None else settings.youtube_timeout_s
        self._service_factory = service_factory or _default_service
        self._service: Any = None

    @property
    def enabled(self) -> bool:
        return bool(self._api_key)

    async def search(self, query: VideoQuery) -> list[VideoRecord]:
        if not self._api_key:
            raise VideoSearchError("YOUTUBE_API_KEY is missing")
        try:
            return await asyncio.wait_for(asyncio.to_thread(self._search_sync, query), timeout=self._timeout_s)
        except asyncio.TimeoutError as exc:
            raise VideoSearchError(f"video search timed out after {self._timeout_s}s") from exc
        except HttpError as exc:
            raise VideoSearchError(f"video search failed: {exc}") from exc

    def _search_sync(self, query: VideoQuery) -> list[VideoRecord]:
        if self._service is None:
            self._service = self._service_factory(self._api_key or "")
        service = self._service

        search_text = build_search_text(query)
        result = (
            service.search()
            .list(
                q=search_text,
                part="snippet",
                type="video",
                maxResults=query.max_results,
                safeSearch="strict",
                videoEmbeddable="true",
                relevanceLanguage="en",
            )
            .execute()
        )
        items = [item for item in result.get("items", []) if (item.get("id") or {}).get("videoId")]
        if not items:
            return []

        video_ids = [item["id"]["videoId"] for item in items]
        details = service.videos().list(part="contentDetails", id=",".join(video_ids)).execute()
        durations = {
            entry.get("id"): format_duration((entry.get("contentDetails") or {}).get("duration"))
            for entry in details.get("items", [])
        }

        videos: list[VideoRecord] = []
        for item in items:
            video_id = item["id"]["videoId"]
            snippet = item.get("snippet") or {}
            videos.append(
                VideoRecord(
                    title=str(snippet.get("title") or ""),
                    url=f"https://www.youtube.com/watch?v={video_id}",
                    description=str(snippet.get("description") or ""),
                    duration=durations.get(video_id, ""),
                    tag=query.subject,
                )
            )
        logger.info("youtube_search_done query=%r results=%s", search_text, len(videos))
        return videos


def _default_service(api_key: str) -> Any:
    return build("youtube", "v3", developerKey=api_key, cache_discovery=False)
