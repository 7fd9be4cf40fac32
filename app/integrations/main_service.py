from __future__ import annotations

import logging
from typing import Any

import httpx

from app.core.config import settings
from app.core.errors import (
    MainServiceAuthError,
    MainServiceError,
    MainServiceUnavailableError,
    QuizInputError,
    UserNotFoundError,
)

logger = logging.getLogger(__name__)


def _auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}


class MainServiceClient:
    """Client for the platform service that owns users, auth and rewards."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout_s: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = (base_url or settings.main_service_url).rstrip("/")
        self._timeout_s = timeout_s if timeout_s is not None else settings.main_service_timeout_s
        self._transport = transport

    @property
    def base_url(self) -> str:
        return self._base_url

    def _client(self, timeout_s: float | None = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            timeout=timeout_s or self._timeout_s,
            transport=self._transport,
        )

    async def ping(self) -> bool:
        try:
            async with self._client(timeout_s=5.0) as client:
                response = await client.get("/api/health")
        except httpx.HTTPError as exc:
            logger.warning("main_service_ping_failed url=%s: %s", self._base_url, exc)
            return False
        return response.status_code == 200

    async def validate_token(self, token: str) -> dict[str, Any]:
        if not token:
            raise MainServiceAuthError("Invalid token: token is empty")
        try:
            async with self._client() as client:
                response = await client.get("/api/internal/auth/validate", headers=_auth_headers(token))
        except httpx.HTTPError as exc:
            logger.error("main_service_validate_unreachable: %s", exc)
            raise MainServiceUnavailableError("Main service is unavailable") from exc

        if response.status_code >= 400:
            logger.warning("main_service_token_rejected status=%s", response.status_code)
            raise MainServiceAuthError(f"Invalid token: upstream returned {response.status_code}")

        principal = _json_body(response)
        if not principal:
            raise MainServiceAuthError("Invalid token: user data is empty in response")
        if not (principal.get("userId") or principal.get("sub") or principal.get("_id")):
            logger.warning("main_service_principal_without_id keys=%s", sorted(principal))
        return principal

    async def get_user(self, user_id: str, token: str) -> dict[str, Any]:
        if not user_id:
            raise QuizInputError("User ID is required to fetch user data")
        if not token:
            raise QuizInputError("Authentication token is required")

        try:
            async with self._client() as client:
                response = await client.get(f"/api/internal/users/{user_id}", headers=_auth_headers(token))
        except httpx.HTTPError as exc:
            logger.error("main_service_user_unreachable user_id=%s: %s", user_id, exc)
            raise MainServiceUnavailableError("Main service is unavailable") from exc

        if response.status_code == 404:
            raise UserNotFoundError("User not found")
        if response.status_code in (401, 403):
            logger.error("main_service_user_auth_failed user_id=%s status=%s", user_id, response.status_code)
            raise MainServiceAuthError("Authentication error with main service")
        if response.status_code >= 400:
            raise MainServiceError(f"Could not retrieve user data: upstream returned {response.status_code}")

        user = _json_body(response)
        if not user:
            raise UserNotFoundError("User data not returned from main service")
        if not user.get("email"):
            logger.warning("main_service_user_incomplete user_id=%s", user_id)
        return user

    async def post_reward_update(self, user_id: str, points: int, token: str) -> None:
        try:
            async with self._client() as client:
                response = await client.post(
                    "/api/internal/rewards/update",
                    json={"userId": user_id, "points": points},
                    headers=_auth_headers(token),
                )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error("reward_update_failed user_id=%s points=%s: %s", user_id, points, exc)

    async def post_quiz_completion_award(self, user_id: str, quiz_id: str, token: str) -> None:
        try:
            async with self._client() as client:
                response = await client.post(
                    f"/api/student/rewards/complete-quiz/{quiz_id}",
                    json={},
                    headers=_auth_headers(token),
                )
            response.raise_for_status()
            logger.info("quiz_completion_awarded user_id=%s quiz_id=%s", user_id, quiz_id)
        except httpx.HTTPError as exc:
            logger.error("quiz_completion_award_failed user_id=%s quiz_id=%s: %s", user_id, quiz_id, exc)


def _json_body(response: httpx.Response) -> dict[str, Any]:
    try:
        payload = response.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


def principal_user_id(principal: dict[str, Any]) -> str | None:
    for key in ("userId", "sub", "_id", "id"):
        value = principal.get(key)
        if value:
            return str(value)
    return None
