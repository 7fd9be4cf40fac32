from functools import lru_cache

from .question_bank import QuestionBank
from .scoring import ScoreResult, score_answers


@lru_cache(maxsize=1)
def get_default_question_bank() -> QuestionBank:
    return QuestionBank()


__all__ = ["QuestionBank", "ScoreResult", "score_answers", "get_default_question_bank"]
