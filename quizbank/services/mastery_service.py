"""
Mastery store: per-(user, question) correct-answer counters and the threshold
policy that decides when a question counts as mastered.
"""

from __future__ import annotations

from typing import Iterable

from sqlalchemy import update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session as DBSession

from quizbank.config import settings
from quizbank.models.models import Mastery, Module, Question, Source, Subject
from quizbank.utils.common import utcnow
from quizbank.utils.logger import configure_logging

logger = configure_logging()

POLICY_SUBJECT = "subject"
POLICY_FIXED = "fixed"


class MasteryPolicy:
    """
    Threshold resolution, one policy per deployment.

    subject: use subject.mastery_threshold (fallback: default threshold)
    fixed:   every subject uses the same fixed threshold
    """

    def __init__(self, name: str | None = None, default_threshold: int | None = None, fixed_threshold: int | None = None):
        self.name = (name or settings.mastery_policy).lower()
        if self.name not in (POLICY_SUBJECT, POLICY_FIXED):
            raise ValueError(f"Unknown mastery policy: {self.name}")
        self.default_threshold = default_threshold or settings.default_mastery_threshold
        self.fixed_threshold = fixed_threshold or settings.fixed_mastery_threshold

    def threshold_for(self, subject_threshold: int | None) -> int:
        if self.name == POLICY_FIXED:
            return self.fixed_threshold
        return subject_threshold or self.default_threshold

    def is_mastered(self, correct_count: int, subject_threshold: int | None) -> bool:
        return correct_count >= self.threshold_for(subject_threshold)


class MasteryService:
    """Counter reads and the atomic increment applied at grading time."""

    def __init__(self, db: DBSession, policy: MasteryPolicy | None = None):
        self.db = db
        self.policy = policy or MasteryPolicy()

    def counts_for(self, user_id: int, question_ids: Iterable[str]) -> dict[str, int]:
        ids = list(question_ids)
        if not ids:
            return {}
        rows = (
            self.db.query(Mastery.question_id, Mastery.correct_count)
            .filter(Mastery.user_id == user_id, Mastery.question_id.in_(ids))
            .all()
        )
        return {qid: int(count or 0) for qid, count in rows}

    def subject_thresholds(self, question_ids: Iterable[str]) -> dict[str, int]:
        """Threshold to apply per question, via question -> module -> source -> subject."""
        ids = list(question_ids)
        if not ids:
            return {}
        rows = (
            self.db.query(Question.id, Subject.mastery_threshold)
            .join(Module, Module.id == Question.module_id)
            .join(Source, Source.id == Module.source_id)
            .join(Subject, Subject.id == Source.subject_id)
            .filter(Question.id.in_(ids))
            .all()
        )
        return {qid: self.policy.threshold_for(threshold) for qid, threshold in rows}

    def mastered_ids(self, user_id: int, question_ids: Iterable[str]) -> set[str]:
        ids = list(question_ids)
        counts = self.counts_for(user_id, ids)
        thresholds = self.subject_thresholds(ids)
        return {
            qid
            for qid, count in counts.items()
            if count >= thresholds.get(qid, self.policy.threshold_for(None))
        }

    def record_correct(self, user_id: int, question_id: str) -> None:
        """
        Add one correct answer for (user, question) without a read-modify-write.

        PostgreSQL and SQLite get a single INSERT ... ON CONFLICT DO UPDATE
        SET correct_count = correct_count + 1. Other dialects increment in SQL
        and insert only when no row matched. Caller owns the transaction.
        """
        now = utcnow()
        dialect = self.db.get_bind().dialect.name
        if dialect in ("postgresql", "sqlite"):
            insert = postgresql.insert if dialect == "postgresql" else sqlite.insert
            table = Mastery.__table__
            stmt = insert(table).values(
                user_id=user_id,
                question_id=question_id,
                correct_count=1,
                last_answered_at=now,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[table.c.user_id, table.c.question_id],
                set_={
                    "correct_count": table.c.correct_count + 1,
                    "last_answered_at": now,
                },
            )
            self.db.execute(stmt)
            return

        result = self.db.execute(
            update(Mastery)
            .where(Mastery.user_id == user_id, Mastery.question_id == question_id)
            .values(correct_count=Mastery.correct_count + 1, last_answered_at=now)
        )
        if result.rowcount == 0:
            self.db.add(Mastery(user_id=user_id, question_id=question_id, correct_count=1, last_answered_at=now))
            self.db.flush()
