from __future__ import annotations


class QuizServiceError(RuntimeError):
    status_code = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code


class QuizInputError(QuizServiceError):
    """Caller supplied an unsupported age range or omitted a required identifier."""

    status_code = 400


class QuizNotFoundError(QuizServiceError):
    """No quiz could be located after the full resolution chain."""

    status_code = 404


class StoreError(QuizServiceError):
    status_code = 500


class MainServiceError(QuizServiceError):
    status_code = 400


class UserNotFoundError(MainServiceError):
    status_code = 404


class MainServiceAuthError(MainServiceError):
    """Upstream rejected the bearer token (401/403)."""

    status_code = 403


class MainServiceUnavailableError(MainServiceError):
    status_code = 503
