from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from fastapi import Depends, Header, HTTPException, status

from app.core.errors import MainServiceError
from app.integrations.main_service import principal_user_id
from app.services.quiz_service import QuizService, get_quiz_service

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Principal:
    token: str
    user_id: str | None
    claims: dict[str, Any]


def bearer_token(authorization: str | None) -> str:
    if not authorization or not authorization.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Authorization header required",
        )
    token = authorization.strip()
    if token.lower().startswith("bearer "):
        token = token[7:].strip()
    if not token:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Authorization header required",
        )
    return token


async def require_principal(
    authorization: str | None = Header(default=None),
    service: QuizService = Depends(get_quiz_service),
) -> Principal:
    token = bearer_token(authorization)
    try:
        claims = await service.main_service.validate_token(token)
    except MainServiceError as exc:
        logger.warning("token_validation_failed status=%s", exc.status_code)
        raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc
    return Principal(token=token, user_id=principal_user_id(claims), claims=claims)
