"""
Typed failures raised by the quiz services.

Each error knows its HTTP status and a stable machine-readable code; the API
layer renders them as {"detail", "code"}. Store failures are wrapped in
StoreError so database internals never reach the caller.
"""

from __future__ import annotations

import functools
import logging

from sqlalchemy.exc import SQLAlchemyError


class QuizError(Exception):
    status_code = 400
    code = "quiz_error"
    default_message = "Request could not be processed"
    # Expected outcomes are logged at info level, without a stack trace.
    expected = True

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class PermissionDenied(QuizError):
    status_code = 403
    code = "permission_denied"
    default_message = "You do not have access to this subject"


class NotFound(QuizError):
    status_code = 404
    code = "not_found"
    default_message = "Not found"


class EmptyScope(QuizError):
    status_code = 422
    code = "empty_scope"
    default_message = "Nothing to practice here yet. Pick a subject or at least one module to get started."


class NoQuestions(QuizError):
    status_code = 422
    code = "no_questions"
    default_message = "The selected modules do not contain any questions yet."


class AllMastered(QuizError):
    status_code = 409
    code = "all_mastered"
    default_message = "Great work! You have already mastered every question in this selection."


class AlreadyCompleted(QuizError):
    status_code = 409
    code = "already_completed"
    default_message = "This quiz has already been submitted"


class AnswerLocked(QuizError):
    status_code = 409
    code = "answer_locked"
    default_message = "This question has already been answered in study mode"


class Conflict(QuizError):
    status_code = 409
    code = "conflict"
    default_message = "That value is already in use"


class SessionExpired(QuizError):
    status_code = 409
    code = "session_expired"
    default_message = "The time limit for this exam has passed"


class InvalidQuestion(QuizError):
    status_code = 422
    code = "invalid_question"
    default_message = "A question needs at least two options and exactly one correct option"


class StoreError(QuizError):
    status_code = 500
    code = "store_error"
    default_message = "Something went wrong, please try again"
    expected = False


def store_boundary(operation: str, logger: logging.Logger):
    """
    Decorator for service methods: rolls back and converts SQLAlchemyError
    into a generic StoreError. Expects the service to expose `self.db`.
    """

    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(self, *args, **kwargs):
            try:
                return fn(self, *args, **kwargs)
            except SQLAlchemyError:
                self.db.rollback()
                logger.exception("store error during %s", operation)
                raise StoreError() from None

        return wrapper

    return decorator
