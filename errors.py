"""
Error taxonomy for the Gemora API.

Service functions raise these; the handlers registered in ``main`` turn them
into ``{"message": ..., "error": ...}`` JSON bodies with the matching status.
"""
from typing import Optional


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str, error: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.error = error
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        body = {"message": self.message}
        if self.error:
            body["error"] = self.error
        return body


class InvalidInput(AppError):
    status_code = 400


class Unauthenticated(AppError):
    status_code = 401


class Forbidden(AppError):
    status_code = 403


class NotFound(AppError):
    status_code = 404


class DependencyFailure(AppError):
    status_code = 503
