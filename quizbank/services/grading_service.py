"""
Grading engine: scores a submitted session and applies mastery increments.

The in_progress -> completed transition is claimed first, with a conditional
UPDATE, inside the same transaction that grades and bumps mastery. A retried
or concurrent submit finds nothing to claim and returns the stored score, so
mastery is incremented exactly once per session.

A session built from explicit modules is attributed here, to the subject of
its first answered question (or of its first question when none was answered).
"""

from __future__ import annotations

from datetime import timedelta

from sqlalchemy import update
from sqlalchemy.orm import Session as DBSession

from quizbank.config import settings
from quizbank.models.models import Module, Question, Source
from quizbank.models.session import Answer, AnswerStatus, QuizSession, SessionMode, SessionStatus
from quizbank.services.errors import NotFound, SessionExpired, store_boundary
from quizbank.services.mastery_service import MasteryService, MasteryPolicy
from quizbank.utils.common import percent, utcnow
from quizbank.utils.logger import configure_logging, log_request

logger = configure_logging()


def correct_option_id(question: Question) -> str | None:
    """First option flagged correct, by position. None if the question has none."""
    for option in question.options:
        if option.is_correct:
            return option.id
    return None


class GradingService:
    def __init__(self, db: DBSession, policy: MasteryPolicy | None = None):
        self.db = db
        self.mastery = MasteryService(db, policy)

    def _owned_session(self, session_id: str, user_id: int) -> QuizSession:
        session = (
            self.db.query(QuizSession)
            .filter(QuizSession.id == session_id, QuizSession.user_id == user_id)
            .first()
        )
        if session is None:
            raise NotFound("Quiz session not found")
        return session

    def _subject_of(self, question_id: str | None) -> str | None:
        if question_id is None:
            return None
        return (
            self.db.query(Source.subject_id)
            .join(Module, Module.source_id == Source.id)
            .join(Question, Question.module_id == Module.id)
            .filter(Question.id == question_id)
            .scalar()
        )

    def _check_deadline(self, session: QuizSession) -> None:
        if not settings.enforce_exam_deadline or session.mode != SessionMode.EXAM or session.expires_at is None:
            return
        if utcnow() > session.expires_at + timedelta(seconds=settings.deadline_grace_seconds):
            logger.info("late submission refused session_id=%s", session.id)
            raise SessionExpired()

    @store_boundary("submit_session", logger)
    def submit_session(self, session_id: str, user_id: int, answers: dict[str, str | None] | None = None) -> dict:
        """
        Grade the session. `answers` maps question id -> option id and overlays
        the autosaved selections. Returns score and counts; a session that is
        already completed is left untouched and its stored score returned.
        """
        answers = answers or {}
        with log_request(logger, "submit_session"):
            session = self._owned_session(session_id, user_id)
            if session.status == SessionStatus.COMPLETED:
                return self._stored_result(session)
            self._check_deadline(session)

            now = utcnow()
            claimed = self.db.execute(
                update(QuizSession)
                .where(QuizSession.id == session_id, QuizSession.status == SessionStatus.IN_PROGRESS)
                .values(status=SessionStatus.COMPLETED, completed_at=now)
                .execution_options(synchronize_session=False)
            )
            if claimed.rowcount == 0:
                # Another submit won the transition.
                self.db.rollback()
                session = self._owned_session(session_id, user_id)
                return self._stored_result(session)

            rows = (
                self.db.query(Answer)
                .filter(Answer.session_id == session_id)
                .order_by(Answer.order_number.asc())
                .all()
            )
            study = session.mode == SessionMode.STUDY
            in_session = {a.question_id for a in rows}
            ignored = [qid for qid in answers if qid not in in_session]
            if ignored:
                logger.warning("ignoring answers outside session session_id=%s count=%s", session_id, len(ignored))

            questions = {
                q.id: q
                for q in self.db.query(Question).filter(Question.id.in_(in_session)).all()
            }

            answered = 0
            correct = 0
            correct_ids: list[str] = []
            first_answered: str | None = None
            for answer in rows:
                if study and answer.selected_option_id:
                    # Study picks are final once saved.
                    selected = answer.selected_option_id
                else:
                    selected = answers.get(answer.question_id, answer.selected_option_id)
                question = questions.get(answer.question_id)
                if not selected or question is None:
                    answer.status = AnswerStatus.UNANSWERED
                    answer.is_correct = None
                    continue

                answered += 1
                if first_answered is None:
                    first_answered = answer.question_id
                valid_ids = {o.id for o in question.options}
                is_correct = selected in valid_ids and selected == correct_option_id(question)
                answer.selected_option_id = selected if selected in valid_ids else None
                answer.status = AnswerStatus.ANSWERED
                answer.is_correct = is_correct
                answer.updated_at = now
                if is_correct:
                    correct += 1
                    correct_ids.append(answer.question_id)

            score = percent(correct, answered)
            subject_id = session.subject_id
            if subject_id is None:
                fallback = rows[0].question_id if rows else None
                subject_id = self._subject_of(first_answered or fallback)
            self.db.execute(
                update(QuizSession)
                .where(QuizSession.id == session_id)
                .values(score=score, subject_id=subject_id)
                .execution_options(synchronize_session=False)
            )
            for qid in correct_ids:
                self.mastery.record_correct(user_id, qid)
            self.db.commit()

            logger.info(
                "session graded id=%s user_id=%s score=%s correct=%s answered=%s total=%s",
                session_id, user_id, score, correct, answered, len(rows),
            )
            return {
                "session_id": session_id,
                "score": score,
                "correct": correct,
                "answered": answered,
                "total": len(rows),
                "already_completed": False,
            }

    def _stored_result(self, session: QuizSession) -> dict:
        rows = session.answers
        logger.info("resubmission ignored session_id=%s", session.id)
        return {
            "session_id": session.id,
            "score": session.score or 0,
            "correct": sum(1 for a in rows if a.is_correct),
            "answered": sum(1 for a in rows if a.status == AnswerStatus.ANSWERED),
            "total": len(rows),
            "already_completed": True,
        }

    @store_boundary("get_result", logger)
    def get_result(self, user_id: int, session_id: str) -> dict:
        """Review of a completed session: every question with the pick, the key and the explanation."""
        session = self._owned_session(session_id, user_id)
        if session.status != SessionStatus.COMPLETED:
            raise NotFound("Quiz has not been submitted yet")
        reviews = []
        for a in session.answers:
            q = a.question
            if q is None:
                continue
            reviews.append(
                {
                    "question_id": q.id,
                    "order_number": a.order_number,
                    "content": q.content,
                    "explanation": q.explanation,
                    "selected_option_id": a.selected_option_id,
                    "correct_option_id": correct_option_id(q),
                    "is_correct": bool(a.is_correct),
                    "options": [{"id": o.id, "text": o.text, "is_correct": bool(o.is_correct)} for o in q.options],
                }
            )
        correct = sum(1 for r in reviews if r["is_correct"])
        return {
            "id": session.id,
            "title": session.title,
            "mode": session.mode.value,
            "score": session.score or 0,
            "started_at": session.started_at,
            "completed_at": session.completed_at,
            "total": len(reviews),
            "correct": correct,
            "wrong": len(reviews) - correct,
            "reviews": reviews,
        }
