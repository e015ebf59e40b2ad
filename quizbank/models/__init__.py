"""
Data models. Single import surface for DB entities and session types.

Catalog and people (quizbank.models.models):
- Profile, Subject, Source, Module, Question, Option, Enrollment, Mastery

Quiz sessions (quizbank.models.session):
- QuizSession, Answer, SessionMode, SessionStatus, AnswerStatus
"""

from quizbank.models.models import (
    Profile,
    Subject,
    Source,
    Module,
    Question,
    Option,
    Enrollment,
    Mastery,
)
from quizbank.models.session import QuizSession, Answer, SessionMode, SessionStatus, AnswerStatus

__all__ = [
    "Profile",
    "Subject",
    "Source",
    "Module",
    "Question",
    "Option",
    "Enrollment",
    "Mastery",
    "QuizSession",
    "Answer",
    "SessionMode",
    "SessionStatus",
    "AnswerStatus",
]
