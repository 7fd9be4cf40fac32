from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from app.schemas.quiz import Question

DEFAULT_TOP_N = 3


@dataclass(frozen=True)
class ScoreResult:
    scores: dict[str, float]
    top_career_areas: list[str]


def _answer_index(raw: Any) -> int | None:
    # bool is an int subclass; True must not count as option 1
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float) and raw.is_integer():
        return int(raw)
    return None


def _points(matrix: Mapping[str, Sequence[float]], area: str, answer: int | None) -> float:
    values = matrix.get(area)
    if not values or answer is None or answer < 0 or answer >= len(values):
        return 0.0
    try:
        return float(values[answer])
    except (TypeError, ValueError):
        return 0.0


def score_answers(
    questions: Sequence[Question],
    answers: Sequence[Any],
    career_areas: Sequence[str],
    top_n: int = DEFAULT_TOP_N,
) -> ScoreResult:
    """Accumulate per-area points for each answered question and rank the areas.

    Only areas in ``career_areas`` are tracked. Extra answers, unanswered
    questions and answer indices outside a matrix row contribute nothing.
    Ties keep the declaration order of ``career_areas``.
    """
    areas = list(dict.fromkeys(career_areas))
    scores: dict[str, float] = {area: 0.0 for area in areas}

    for position, raw_answer in enumerate(answers):
        if position >= len(questions):
            break
        matrix = questions[position].scoring
        if not matrix:
            continue
        answer = _answer_index(raw_answer)
        for area in areas:
            scores[area] += _points(matrix, area, answer)

    ranked = sorted(areas, key=lambda area: scores[area], reverse=True)
    return ScoreResult(scores=scores, top_career_areas=ranked[: max(0, top_n)])
