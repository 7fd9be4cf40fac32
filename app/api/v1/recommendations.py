from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from app.core.config import settings
from app.core.errors import QuizServiceError
from app.core.rate_limit import guest_rate_limit, rate_limit
from app.core.security import Principal, require_principal
from app.integrations.youtube import VideoSearchError
from app.schemas.content import (
    EducationalContentBundle,
    GuestRecommendations,
    LearningResources,
    VideoQuery,
)
from app.schemas.quiz import QuizAnalysisView
from app.schemas.recommendations import (
    CareerRecommendations,
    GuestRecommendationsRequest,
    RecommendationsRequest,
)
from app.services.quiz_service import QuizService, get_quiz_service

router = APIRouter()


def _raise_service_error(exc: QuizServiceError) -> None:
    raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc


@router.get("/ai/recommendations", response_model=EducationalContentBundle | None)
@rate_limit()
async def latest_recommendations(
    request: Request,
    user_id: str = Query(min_length=1),
    _: Principal = Depends(require_principal),
    service: QuizService = Depends(get_quiz_service),
):
    _ = request
    try:
        return service.latest_content(user_id)
    except QuizServiceError as exc:
        _raise_service_error(exc)


@router.post("/ai/recommendations", response_model=EducationalContentBundle)
@rate_limit()
async def generate_recommendations(
    request: Request,
    payload: RecommendationsRequest,
    principal: Principal = Depends(require_principal),
    service: QuizService = Depends(get_quiz_service),
):
    _ = request
    target_user_id = payload.child_id or payload.user_id
    try:
        return await service.generate_educational_content(target_user_id, payload.quiz_id, principal.token)
    except QuizServiceError as exc:
        _raise_service_error(exc)


@router.get("/ai/career-recommendations", response_model=CareerRecommendations)
@rate_limit()
async def career_recommendations(
    request: Request,
    user_id: str = Query(min_length=1),
    child_id: str | None = Query(default=None),
    quiz_id: str | None = Query(default=None),
    principal: Principal = Depends(require_principal),
    service: QuizService = Depends(get_quiz_service),
):
    _ = request
    try:
        return await service.career_recommendations(child_id or user_id, quiz_id, principal.token)
    except QuizServiceError as exc:
        _raise_service_error(exc)


@router.get("/ai/quiz-analysis", response_model=QuizAnalysisView)
@rate_limit()
async def quiz_analysis(
    request: Request,
    user_id: str = Query(min_length=1),
    quiz_id: str | None = Query(default=None),
    _: Principal = Depends(require_principal),
    service: QuizService = Depends(get_quiz_service),
):
    _ = request
    if settings.is_production:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="This endpoint is only available in development mode",
        )
    try:
        return service.quiz_analysis(user_id, quiz_id)
    except QuizServiceError as exc:
        _raise_service_error(exc)


@router.get("/ai/content/latest", response_model=EducationalContentBundle | None)
@rate_limit()
async def latest_content(
    request: Request,
    user_id: str = Query(min_length=1),
    _: Principal = Depends(require_principal),
    service: QuizService = Depends(get_quiz_service),
):
    _ = request
    return service.latest_content(user_id)


@router.get("/ai/learning-resources", response_model=LearningResources)
@rate_limit()
async def learning_resources(
    request: Request,
    user_id: str = Query(min_length=1),
    principal: Principal = Depends(require_principal),
    service: QuizService = Depends(get_quiz_service),
):
    _ = request
    try:
        return await service.learning_resources(user_id, principal.token)
    except QuizServiceError as exc:
        _raise_service_error(exc)


@router.post("/ai/guest/recommendations", response_model=GuestRecommendations)
@guest_rate_limit()
async def guest_recommendations(
    request: Request,
    payload: GuestRecommendationsRequest,
    service: QuizService = Depends(get_quiz_service),
):
    _ = request
    try:
        return await service.guest_recommendations(payload.session_id, payload.quiz_id)
    except QuizServiceError as exc:
        _raise_service_error(exc)


@router.get("/ai/test/youtube")
async def test_youtube(service: QuizService = Depends(get_quiz_service)):
    timestamp = datetime.now(timezone.utc).isoformat()
    provider = service.content.video_provider
    if provider is None:
        return {"success": False, "message": "YouTube integration not configured", "timestamp": timestamp}
    try:
        videos = await provider.search(
            VideoQuery(query="science education", age_range="9-12", subject="science", max_results=3)
        )
    except VideoSearchError as exc:
        return {
            "success": False,
            "message": "YouTube integration failed",
            "error": str(exc),
            "timestamp": timestamp,
        }
    return {
        "success": True,
        "message": "YouTube integration working",
        "videos": [video.model_dump() for video in videos],
        "timestamp": timestamp,
    }
