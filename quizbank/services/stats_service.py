"""
Statistics aggregator: mastery progress per subject, quiz averages,
leaderboard, history and per-module analytics.

Per-subject quiz figures use the subject a session is attributed to: the
scope's subject, else the subject of its first answered question, fixed at
grading. A session mixing subjects counts entirely toward that one subject.
"""

from __future__ import annotations

from collections import defaultdict

from sqlalchemy import func
from sqlalchemy.orm import Session as DBSession

from quizbank.config import settings
from quizbank.models.models import Mastery, Module, Profile, Question, Source, Subject
from quizbank.models.session import Answer, QuizSession, SessionStatus
from quizbank.services.enrollment_service import EnrollmentService
from quizbank.services.errors import store_boundary
from quizbank.services.mastery_service import MasteryPolicy
from quizbank.utils.common import display_name, level_for, percent, round_half_up
from quizbank.utils.logger import configure_logging

logger = configure_logging()


class StatsService:
    def __init__(self, db: DBSession, policy: MasteryPolicy | None = None):
        self.db = db
        self.policy = policy or MasteryPolicy()
        self.enrollment = EnrollmentService(db)

    def _question_subjects(self, subject_ids) -> list[tuple[str, str, str]]:
        """(question_id, module_id, subject_id) for every question under the given subjects."""
        return (
            self.db.query(Question.id, Question.module_id, Source.subject_id)
            .join(Module, Module.id == Question.module_id)
            .join(Source, Source.id == Module.source_id)
            .filter(Source.subject_id.in_(list(subject_ids)))
            .all()
        )

    def _mastery_counts(self, user_id: int) -> dict[str, int]:
        rows = self.db.query(Mastery.question_id, Mastery.correct_count).filter(Mastery.user_id == user_id).all()
        return {qid: int(c or 0) for qid, c in rows}

    def _completed_sessions(self, user_id: int) -> list[QuizSession]:
        return (
            self.db.query(QuizSession)
            .filter(QuizSession.user_id == user_id, QuizSession.status == SessionStatus.COMPLETED)
            .order_by(QuizSession.completed_at.desc(), QuizSession.id.asc())
            .all()
        )

    @store_boundary("subject_stats", logger)
    def subject_stats(self, user_id: int) -> dict:
        empty_global = {"total_questions": 0, "mastered": 0, "progress": 0, "remaining": 0}
        allowed = self.enrollment.allowed_subject_ids(user_id)
        if not allowed:
            return {"global": empty_global, "subjects": []}

        subjects = self.db.query(Subject).filter(Subject.id.in_(allowed)).order_by(Subject.name.asc()).all()
        thresholds = {s.id: self.policy.threshold_for(s.mastery_threshold) for s in subjects}
        counts = self._mastery_counts(user_id)

        totals: dict[str, int] = defaultdict(int)
        mastered: dict[str, int] = defaultdict(int)
        for qid, _mid, sid in self._question_subjects(allowed):
            totals[sid] += 1
            if counts.get(qid, 0) >= thresholds[sid]:
                mastered[sid] += 1

        scores: dict[str, list[int]] = defaultdict(list)
        for s in self._completed_sessions(user_id):
            if s.subject_id:
                scores[s.subject_id].append(s.score or 0)

        per_subject = []
        for s in subjects:
            total = totals[s.id]
            done = mastered[s.id]
            subject_scores = scores[s.id]
            per_subject.append(
                {
                    "id": s.id,
                    "name": s.name,
                    "code": s.code,
                    "total_questions": total,
                    "mastered": done,
                    "progress": percent(done, total),
                    "remaining": max(0, total - done),
                    "quiz_count": len(subject_scores),
                    "avg_score": round_half_up(sum(subject_scores) / len(subject_scores)) if subject_scores else 0,
                    "mastery_threshold": thresholds[s.id],
                }
            )

        # Global progress comes from the summed counts, not from averaging percentages.
        global_total = sum(p["total_questions"] for p in per_subject)
        global_mastered = sum(p["mastered"] for p in per_subject)
        return {
            "global": {
                "total_questions": global_total,
                "mastered": global_mastered,
                "progress": percent(global_mastered, global_total),
                "remaining": global_total - global_mastered,
            },
            "subjects": per_subject,
        }

    @store_boundary("user_summary", logger)
    def user_summary(self, user_id: int) -> dict:
        scores = [s.score or 0 for s in self._completed_sessions(user_id)]
        total_score = sum(scores)
        return {
            "total_quiz": len(scores),
            "avg_score": round_half_up(total_score / len(scores)) if scores else 0,
            "total_score": total_score,
            "level": level_for(total_score),
        }

    @store_boundary("top_n", logger)
    def top_n(self, n: int | None = None) -> list[dict]:
        if n is None:
            n = settings.leaderboard_size
        rows = (
            self.db.query(
                QuizSession.user_id,
                func.count(QuizSession.id),
                func.coalesce(func.sum(QuizSession.score), 0),
            )
            .filter(QuizSession.status == SessionStatus.COMPLETED)
            .group_by(QuizSession.user_id)
            .all()
        )
        board = [
            {
                "user_id": user_id,
                "total_quiz": int(count),
                "points": int(points),
                "avg_score": round_half_up(int(points) / int(count)),
            }
            for user_id, count, points in rows
            if count
        ]
        board.sort(key=lambda r: (-r["avg_score"], -r["total_quiz"], r["user_id"]))
        board = board[:max(0, n)]

        profiles = {
            p.id: p
            for p in self.db.query(Profile).filter(Profile.id.in_([r["user_id"] for r in board])).all()
        } if board else {}
        for rank, row in enumerate(board, start=1):
            p = profiles.get(row["user_id"])
            row["rank"] = rank
            row["name"] = display_name(p.full_name if p else None, p.email if p else None)
        return board

    @store_boundary("history", logger)
    def history(self, user_id: int) -> list[dict]:
        """Completed sessions in enrolled subjects, newest first."""
        allowed = self.enrollment.allowed_subject_ids(user_id)
        if not allowed:
            return []
        sessions = [s for s in self._completed_sessions(user_id) if s.subject_id in allowed]
        if not sessions:
            return []

        subject_names = {
            sid: name for sid, name in self.db.query(Subject.id, Subject.name).filter(Subject.id.in_(allowed)).all()
        }
        module_rows = (
            self.db.query(Answer.session_id, Module.name)
            .join(Question, Question.id == Answer.question_id)
            .join(Module, Module.id == Question.module_id)
            .filter(Answer.session_id.in_([s.id for s in sessions]))
            .all()
        )
        modules_by_session: dict[str, set[str]] = defaultdict(set)
        for sid, name in module_rows:
            modules_by_session[sid].add(name)

        out = []
        for s in sessions:
            names = modules_by_session.get(s.id) or set()
            out.append(
                {
                    "id": s.id,
                    "title": s.title,
                    "mode": s.mode.value,
                    "score": s.score or 0,
                    "completed_at": s.completed_at,
                    "subject_id": s.subject_id,
                    "subject_name": subject_names.get(s.subject_id),
                    "module_name": next(iter(names)) if len(names) == 1 else "Mixed",
                }
            )
        return out

    @store_boundary("detailed_analytics", logger)
    def detailed_analytics(self, user_id: int) -> list[dict]:
        """Enrolled subjects -> sources -> modules with progress and answer accuracy."""
        allowed = self.enrollment.allowed_subject_ids(user_id)
        if not allowed:
            return []

        subjects = self.db.query(Subject).filter(Subject.id.in_(allowed)).order_by(Subject.name.asc()).all()
        sources = self.db.query(Source).filter(Source.subject_id.in_(allowed)).order_by(Source.name.asc()).all()
        modules = (
            self.db.query(Module)
            .filter(Module.source_id.in_([s.id for s in sources]))
            .all()
        ) if sources else []

        thresholds = {s.id: self.policy.threshold_for(s.mastery_threshold) for s in subjects}
        counts = self._mastery_counts(user_id)
        total_by_module: dict[str, int] = defaultdict(int)
        mastered_by_module: dict[str, int] = defaultdict(int)
        for qid, mid, sid in self._question_subjects(allowed):
            total_by_module[mid] += 1
            if counts.get(qid, 0) >= thresholds[sid]:
                mastered_by_module[mid] += 1

        graded = (
            self.db.query(Question.module_id, Answer.is_correct)
            .join(Answer, Answer.question_id == Question.id)
            .join(QuizSession, QuizSession.id == Answer.session_id)
            .filter(
                QuizSession.user_id == user_id,
                QuizSession.status == SessionStatus.COMPLETED,
                Answer.is_correct.isnot(None),
            )
            .all()
        )
        attempts: dict[str, int] = defaultdict(int)
        hits: dict[str, int] = defaultdict(int)
        for mid, is_correct in graded:
            attempts[mid] += 1
            if is_correct:
                hits[mid] += 1

        modules_by_source: dict[str, list[Module]] = defaultdict(list)
        for m in modules:
            modules_by_source[m.source_id].append(m)
        sources_by_subject: dict[str, list[Source]] = defaultdict(list)
        for src in sources:
            sources_by_subject[src.subject_id].append(src)

        report = []
        for sub in subjects:
            sub_total = 0
            sub_mastered = 0
            source_rows = []
            for src in sources_by_subject[sub.id]:
                module_rows = []
                for m in sorted(modules_by_source[src.id], key=lambda m: m.name):
                    total = total_by_module[m.id]
                    done = mastered_by_module[m.id]
                    sub_total += total
                    sub_mastered += done
                    module_rows.append(
                        {
                            "id": m.id,
                            "name": m.name,
                            "total_questions": total,
                            "mastered": done,
                            "progress": percent(done, total),
                            "accuracy": percent(hits[m.id], attempts[m.id]),
                        }
                    )
                source_rows.append({"id": src.id, "name": src.name, "type": src.type, "modules": module_rows})
            report.append(
                {
                    "id": sub.id,
                    "name": sub.name,
                    "code": sub.code,
                    "stats": {
                        "total_questions": sub_total,
                        "mastered": sub_mastered,
                        "progress": percent(sub_mastered, sub_total),
                    },
                    "sources": source_rows,
                }
            )
        return report
