"""
Session builder: turns a selection scope into a fixed, shuffled set of
unmastered questions, and keeps the autosaved selections of an open session.

Selection is stratified by module so a large module cannot starve a small
one. Mastery is read as a point-in-time snapshot; a concurrent grading in
another session may not be reflected, which is acceptable here.
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional

from sqlalchemy import exists, update
from sqlalchemy.orm import Session as DBSession

from quizbank.config import settings
from quizbank.models.models import Module, Option, Question, Source, Subject, new_id
from quizbank.models.session import Answer, AnswerStatus, QuizSession, SessionMode, SessionStatus
from quizbank.services.catalog_service import CatalogService
from quizbank.services.enrollment_service import EnrollmentService
from quizbank.services.grading_service import correct_option_id
from quizbank.services.errors import (
    AllMastered,
    AlreadyCompleted,
    AnswerLocked,
    EmptyScope,
    NoQuestions,
    NotFound,
    PermissionDenied,
    store_boundary,
)
from quizbank.services.mastery_service import MasteryService, MasteryPolicy
from quizbank.utils.common import dedupe, utcnow
from quizbank.utils.logger import configure_logging, log_request

logger = configure_logging()


@dataclass
class Scope:
    """What the student asked to practice: a subject, explicit modules, or both."""
    subject_id: Optional[str] = None
    module_ids: list[str] = field(default_factory=list)


@dataclass
class ResolvedScope:
    module_ids: list[str]
    subject_by_module: dict[str, str]
    title: str
    subject_id: Optional[str] = None


def stratified_sample(pools: dict[str, list[str]], count: int, rng: random.Random | None = None) -> list[str]:
    """
    Spread `count` picks as evenly as possible over the pools.

    Each round gives every still-active pool ceil(remaining / active) picks,
    drawn from a shuffled copy; pools that run dry drop out. Stops when the
    quota is filled or every pool is exhausted, so the result may be shorter
    than `count`. Pool order matters only for tie-breaking of the last round.
    """
    rng = rng or random.Random()
    remaining_pools = {key: list(items) for key, items in pools.items() if items}
    active = [key for key in pools if key in remaining_pools]
    selected: list[str] = []
    quota = count

    while quota > 0 and active:
        per_pool = math.ceil(quota / len(active))
        for key in reversed(list(active)):
            pool = remaining_pools[key]
            rng.shuffle(pool)
            taken = pool[:per_pool]
            selected.extend(taken)
            quota -= len(taken)
            remaining_pools[key] = pool[len(taken):]
            if not remaining_pools[key]:
                active.remove(key)
            if quota <= 0:
                break

    return selected


class QuizSessionService:
    """Session creation, the resume view and autosave."""

    def __init__(self, db: DBSession, policy: MasteryPolicy | None = None, rng: random.Random | None = None):
        self.db = db
        self.rng = rng or random.Random()
        self.enrollment = EnrollmentService(db)
        self.catalog = CatalogService(db)
        self.mastery = MasteryService(db, policy)

    # ----- scope resolution -----

    def resolve_scope(self, user_id: int, scope: Scope) -> ResolvedScope:
        module_ids = dedupe(m for m in scope.module_ids or [] if m)

        if scope.subject_id:
            subject = self.db.get(Subject, scope.subject_id)
            if subject is None:
                raise NotFound("Subject not found")
            self.enrollment.require_enrolled(user_id, subject.id)

            rows = (
                self.db.query(Module.id, Module.name)
                .join(Source, Source.id == Module.source_id)
                .filter(Source.subject_id == subject.id)
                .all()
            )
            names = {mid: name for mid, name in rows}
            if module_ids:
                outside = [m for m in module_ids if m not in names]
                if outside:
                    raise NotFound("One or more modules do not belong to this subject")
                if len(module_ids) == 1:
                    title = names[module_ids[0]]
                else:
                    title = f"Practice: {subject.name} (selected modules)"
            else:
                module_ids = sorted(names, key=lambda m: (names[m], m))
                title = f"Practice: {subject.name}"
            if not module_ids:
                raise EmptyScope()
            return ResolvedScope(
                module_ids=module_ids,
                subject_by_module={m: subject.id for m in module_ids},
                title=title,
                subject_id=subject.id,
            )

        if not module_ids:
            raise EmptyScope()

        rows = (
            self.db.query(Module.id, Source.subject_id)
            .join(Source, Source.id == Module.source_id)
            .filter(Module.id.in_(module_ids))
            .all()
        )
        subject_by_module = {mid: sid for mid, sid in rows}
        if len(subject_by_module) != len(module_ids):
            raise NotFound("Module not found")
        allowed = self.enrollment.allowed_subject_ids(user_id)
        if not set(subject_by_module.values()) <= allowed:
            logger.info("module scope refused user_id=%s modules=%s", user_id, module_ids)
            raise PermissionDenied()
        return ResolvedScope(module_ids=module_ids, subject_by_module=subject_by_module, title="Custom module quiz")

    # ----- create -----

    @store_boundary("create_session", logger)
    def create_session(self, user_id: int, mode: SessionMode | str, scope: Scope, count: int = 10) -> str:
        mode = SessionMode(mode)
        count = max(1, min(int(count), settings.max_session_questions))
        with log_request(logger, "create_session"):
            resolved = self.resolve_scope(user_id, scope)

            rows = (
                self.db.query(Question.id, Question.module_id)
                .filter(Question.module_id.in_(resolved.module_ids))
                .all()
            )
            if not rows:
                raise NoQuestions()

            mastered = self.mastery.mastered_ids(user_id, [qid for qid, _ in rows])
            pools: dict[str, list[str]] = {mid: [] for mid in resolved.module_ids}
            for qid, mid in rows:
                if qid not in mastered:
                    pools[mid].append(qid)
            if not any(pools.values()):
                raise AllMastered()

            picked = stratified_sample(pools, count, self.rng)
            # Presentation order is independent of the per-module draw order.
            self.rng.shuffle(picked)

            now = utcnow()
            session = QuizSession(
                id=new_id(),
                user_id=user_id,
                mode=mode,
                status=SessionStatus.IN_PROGRESS,
                title=resolved.title,
                settings={
                    "subject_id": resolved.subject_id,
                    "module_ids": resolved.module_ids,
                    "total_request": count,
                    "selected": len(picked),
                    "distribution": "stratified",
                    "mastery_policy": self.mastery.policy.name,
                },
                # Module-scoped sessions are attributed at grading time.
                subject_id=resolved.subject_id,
                started_at=now,
                expires_at=now + timedelta(seconds=len(picked) * settings.seconds_per_question),
            )
            session.answers = [
                Answer(
                    id=new_id(),
                    question_id=qid,
                    order_number=i,
                    status=AnswerStatus.UNANSWERED,
                    updated_at=now,
                )
                for i, qid in enumerate(picked, start=1)
            ]
            self.db.add(session)
            self.db.commit()
            logger.info(
                "session created id=%s user_id=%s mode=%s requested=%s selected=%s modules=%s",
                session.id, user_id, mode.value, count, len(picked), len(resolved.module_ids),
            )
            return session.id

    # ----- read -----

    def _owned_session(self, session_id: str, user_id: int) -> QuizSession:
        session = (
            self.db.query(QuizSession)
            .filter(QuizSession.id == session_id, QuizSession.user_id == user_id)
            .first()
        )
        if session is None:
            raise NotFound("Quiz session not found")
        return session

    @store_boundary("get_session", logger)
    def get_session(self, user_id: int, session_id: str) -> dict:
        """
        Resume view: ordered questions, saved picks and the advisory time left.

        Correctness stays hidden, except in study mode where every answered
        question also carries its key, whether the pick was right, and the
        explanation.
        """
        session = self._owned_session(session_id, user_id)
        answers = [a for a in session.answers if a.question is not None]
        bank = self.catalog.bank_numbers(a.question.module_id for a in answers)
        study = session.mode == SessionMode.STUDY

        elapsed = (utcnow() - session.started_at).total_seconds()
        total = len(answers) * settings.seconds_per_question
        questions = []
        for a in answers:
            item = {
                "question_id": a.question_id,
                "order_number": a.order_number,
                "bank_number": bank.get(a.question_id),
                "content": a.question.content,
                "options": [{"id": o.id, "text": o.text} for o in a.question.options],
                "selected_option_id": a.selected_option_id,
                "status": a.status.value,
            }
            if study and a.status == AnswerStatus.ANSWERED and a.selected_option_id:
                key = correct_option_id(a.question)
                item["correct_option_id"] = key
                item["is_correct"] = a.selected_option_id == key
                item["explanation"] = a.question.explanation
            questions.append(item)
        return {
            "id": session.id,
            "title": session.title,
            "mode": session.mode.value,
            "status": session.status.value,
            "started_at": session.started_at,
            "expires_at": session.expires_at,
            "remaining_seconds": max(0, int(total - elapsed)),
            "questions": questions,
        }

    # ----- autosave -----

    @store_boundary("save_answer", logger)
    def save_answer(self, session_id: str, user_id: int, question_id: str, option_id: str) -> None:
        """
        Store the selection for one question. No scoring, no mastery.
        Exam picks can be changed until submit; a study pick is final once saved.
        """
        session = self._owned_session(session_id, user_id)
        if session.status != SessionStatus.IN_PROGRESS:
            raise AlreadyCompleted()

        answer = (
            self.db.query(Answer)
            .filter(Answer.session_id == session_id, Answer.question_id == question_id)
            .first()
        )
        if answer is None:
            raise NotFound("Question is not part of this quiz")
        option = (
            self.db.query(Option.id)
            .filter(Option.id == option_id, Option.question_id == question_id)
            .first()
        )
        if option is None:
            raise NotFound("Option does not belong to this question")

        study = session.mode == SessionMode.STUDY
        if study and answer.status == AnswerStatus.ANSWERED:
            if answer.selected_option_id == option_id:
                return
            raise AnswerLocked()

        # Guarded on status in the same statement so a save racing a submit cannot land after grading.
        still_open = exists().where(QuizSession.id == session_id, QuizSession.status == SessionStatus.IN_PROGRESS)
        stmt = update(Answer).where(Answer.id == answer.id, still_open)
        if study:
            stmt = stmt.where(Answer.status == AnswerStatus.UNANSWERED)
        result = self.db.execute(
            stmt.values(selected_option_id=option_id, status=AnswerStatus.ANSWERED, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            self.db.rollback()
            self.db.expire_all()
            if self._owned_session(session_id, user_id).status != SessionStatus.IN_PROGRESS:
                raise AlreadyCompleted()
            raise AnswerLocked()
        self.db.commit()
        logger.debug("answer saved session_id=%s question_id=%s", session_id, question_id)
