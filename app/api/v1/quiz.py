from fastapi import APIRouter, Depends, HTTPException, Request, status

from app.core.errors import QuizServiceError
from app.core.rate_limit import guest_rate_limit, rate_limit
from app.core.security import Principal, require_principal
from app.schemas.content import SubmissionResult
from app.schemas.quiz import (
    CreateQuizRequest,
    CreateQuizResponse,
    GuestQuizRequest,
    GuestSubmitRequest,
    Quiz,
    QuizBody,
    QuizQuestionOut,
    SubmitAnswersRequest,
)
from app.services.quiz_service import QuizService, get_quiz_service

router = APIRouter()


def _raise_service_error(exc: QuizServiceError) -> None:
    raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc


def _quiz_response(quiz: Quiz, id_prefix: str) -> CreateQuizResponse:
    return CreateQuizResponse(
        quiz_id=quiz.id,
        session_id=quiz.session_id,
        quiz=QuizBody(
            questions=[
                QuizQuestionOut(id=f"{id_prefix}-{index}", text=question.text, answers=question.answers)
                for index, question in enumerate(quiz.questions)
            ]
        ),
    )


@router.post("/ai/quiz", response_model=CreateQuizResponse)
@rate_limit()
async def create_quiz(
    request: Request,
    payload: CreateQuizRequest,
    principal: Principal = Depends(require_principal),
    service: QuizService = Depends(get_quiz_service),
):
    _ = request
    user_id = payload.user_id or principal.user_id
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User ID is required and could not be determined",
        )
    try:
        quiz = await service.create_quiz(payload.age_range, user_id=user_id, token=principal.token)
    except QuizServiceError as exc:
        _raise_service_error(exc)
    return _quiz_response(quiz, quiz.id)


@router.post("/ai/quiz/submit", response_model=SubmissionResult)
@rate_limit()
async def submit_quiz(
    request: Request,
    payload: SubmitAnswersRequest,
    principal: Principal = Depends(require_principal),
    service: QuizService = Depends(get_quiz_service),
):
    _ = request
    try:
        return await service.submit_answers(
            payload.quiz_id,
            payload.answers,
            user_id=payload.user_id or principal.user_id,
            session_id=payload.session_id,
            token=principal.token,
        )
    except QuizServiceError as exc:
        _raise_service_error(exc)


@router.post("/ai/guest/quiz", response_model=CreateQuizResponse)
@guest_rate_limit()
async def create_guest_quiz(
    request: Request,
    payload: GuestQuizRequest,
    service: QuizService = Depends(get_quiz_service),
):
    _ = request
    try:
        quiz = await service.create_quiz(payload.age_range, session_id=payload.session_id)
    except QuizServiceError as exc:
        _raise_service_error(exc)
    return _quiz_response(quiz, "question")


@router.post("/ai/guest/quiz/submit", response_model=SubmissionResult)
@guest_rate_limit()
async def submit_guest_quiz(
    request: Request,
    payload: GuestSubmitRequest,
    service: QuizService = Depends(get_quiz_service),
):
    _ = request
    try:
        return await service.submit_answers(payload.quiz_id, payload.answers, session_id=payload.session_id)
    except QuizServiceError as exc:
        _raise_service_error(exc)
