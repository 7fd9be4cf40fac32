from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from app.core.config import settings
from app.services.quiz_service import QuizService, get_quiz_service

router = APIRouter()


@router.get("/ai/health", summary="Health Check", description="Check the service and its upstream connectivity.")
async def health_check(service: QuizService = Depends(get_quiz_service)):
    main_service = service.main_service
    connected = await main_service.ping()
    return {
        "status": "healthy",
        "service": "SkillSeed AI Service",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": "1.0.0",
        "main_service_connectivity": {
            "url": main_service.base_url,
            "status": "connected" if connected else "disconnected",
        },
        "environment": {
            "app_env": settings.app_env,
            "main_service_url": settings.main_service_url,
        },
    }
