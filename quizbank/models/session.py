"""
Quiz session model: a pre-selected, ordered set of questions answered by one user.
"""

from quizbank.config import Base
from sqlalchemy import Column, String, Integer, JSON, DateTime, ForeignKey, Boolean, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.orm import relationship
from enum import Enum

from quizbank.models.models import new_id
from quizbank.utils.common import utcnow


class SessionMode(str, Enum):
    """How the quiz is presented. Both modes select from unmastered questions."""
    EXAM = "exam"
    STUDY = "study"


class SessionStatus(str, Enum):
    """Session status. in_progress -> completed happens exactly once."""
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class AnswerStatus(str, Enum):
    UNANSWERED = "unanswered"
    ANSWERED = "answered"


class QuizSession(Base):
    """
    One quiz attempt.

    The question set is fixed at creation (one Answer row per question);
    score is frozen when the session completes.
    """
    __tablename__ = "quiz_sessions"

    id = Column(String, primary_key=True, index=True, default=new_id)  # uuid
    user_id = Column(Integer, ForeignKey("profiles.id", ondelete="CASCADE"), index=True, nullable=False)
    mode = Column(SQLEnum(SessionMode), nullable=False, default=SessionMode.STUDY)
    status = Column(SQLEnum(SessionStatus), default=SessionStatus.IN_PROGRESS, nullable=False, index=True)
    title = Column(String, nullable=False)
    settings = Column(JSON, nullable=True)  # scope snapshot: subject_id, module_ids, total_request, ...
    score = Column(Integer, nullable=True)  # 0-100, set on completion

    # Subject the session's score is attributed to in per-subject stats.
    subject_id = Column(String, ForeignKey("subjects.id", ondelete="SET NULL"), index=True, nullable=True)

    started_at = Column(DateTime, default=utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=True)  # advisory unless ENFORCE_EXAM_DEADLINE
    completed_at = Column(DateTime, nullable=True)

    answers = relationship(
        "Answer",
        backref="session",
        cascade="all, delete-orphan",
        order_by="Answer.order_number",
    )


class Answer(Base):
    __tablename__ = "quiz_answers"

    id = Column(String, primary_key=True, index=True, default=new_id)  # uuid
    session_id = Column(String, ForeignKey("quiz_sessions.id", ondelete="CASCADE"), index=True, nullable=False)
    question_id = Column(String, ForeignKey("questions.id", ondelete="CASCADE"), index=True, nullable=False)
    order_number = Column(Integer, nullable=False)  # 1-based presentation order
    selected_option_id = Column(String, nullable=True)
    status = Column(SQLEnum(AnswerStatus), default=AnswerStatus.UNANSWERED, nullable=False)
    is_correct = Column(Boolean, nullable=True)  # set at grading time only
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    question = relationship("Question", foreign_keys=[question_id])

    __table_args__ = (UniqueConstraint("session_id", "question_id", name="uq_answer_session_question"),)
