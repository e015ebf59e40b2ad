"""
Statistics aggregator: progress, averages, leaderboard, history and analytics.
"""
from datetime import timedelta

import pytest

from quizbank.config import settings
from quizbank.models.models import Mastery, Module, Profile, Source, Subject, new_id
from quizbank.models.session import Answer, AnswerStatus, QuizSession, SessionMode, SessionStatus
from quizbank.services.mastery_service import MasteryPolicy
from quizbank.services.stats_service import StatsService
from quizbank.utils.common import utcnow


def _completed(db, user_id, score, subject_id=None, minutes_ago=0, questions=(), correct=()):
    now = utcnow() - timedelta(minutes=minutes_ago)
    session = QuizSession(
        id=new_id(),
        user_id=user_id,
        mode=SessionMode.STUDY,
        status=SessionStatus.COMPLETED,
        title="Practice",
        score=score,
        subject_id=subject_id,
        started_at=now - timedelta(minutes=5),
        completed_at=now,
    )
    session.answers = [
        Answer(
            id=new_id(),
            question_id=q.id,
            order_number=i,
            status=AnswerStatus.ANSWERED,
            selected_option_id=q.options[0].id,
            is_correct=q.id in correct,
        )
        for i, q in enumerate(questions, start=1)
    ]
    db.add(session)
    db.commit()
    return session


def _master(db, user_id, questions, count=3):
    for q in questions:
        db.add(Mastery(user_id=user_id, question_id=q.id, correct_count=count))
    db.commit()


@pytest.fixture
def maths(db_session, make_questions):
    """A 20-question subject with a single module."""
    subject = Subject(id=new_id(), name="Mathematics", code="MATH", mastery_threshold=3)
    source = Source(id=new_id(), subject_id=subject.id, name="Workbook", type="exercise")
    module = Module(id=new_id(), source_id=source.id, name="Algebra")
    db_session.add_all([subject, source, module])
    db_session.commit()
    return subject, make_questions(module, 20, "Algebra question")


@pytest.mark.integration
class TestSubjectStats:
    def test_fifteen_of_twenty(self, db_session, maths, student, enroll):
        subject, questions = maths
        enroll(student, subject)
        _master(db_session, student.id, questions[:15])

        stats = StatsService(db_session).subject_stats(student.id)
        (row,) = stats["subjects"]
        assert row["total_questions"] == 20
        assert row["mastered"] == 15
        assert row["progress"] == 75
        assert row["remaining"] == 5
        assert row["mastery_threshold"] == 3

    def test_below_threshold_not_mastered(self, db_session, maths, student, enroll):
        subject, questions = maths
        enroll(student, subject)
        _master(db_session, student.id, questions[:4], count=2)
        (row,) = StatsService(db_session).subject_stats(student.id)["subjects"]
        assert row["mastered"] == 0

    def test_fixed_policy_applies_to_stats(self, db_session, maths, student, enroll):
        subject, questions = maths
        enroll(student, subject)
        _master(db_session, student.id, questions[:4], count=1)
        stats = StatsService(db_session, policy=MasteryPolicy("fixed", fixed_threshold=1)).subject_stats(student.id)
        assert stats["subjects"][0]["mastered"] == 4
        assert stats["subjects"][0]["mastery_threshold"] == 1

    def test_global_progress_from_sums(self, db_session, catalog, maths, student, enroll):
        subject, questions = maths
        enroll(student, subject, catalog.chem)
        _master(db_session, student.id, questions[:15])
        # Chemistry: 3 questions, none mastered. Averaging 75% and 0% would give 38.
        stats = StatsService(db_session).subject_stats(student.id)
        assert stats["global"] == {"total_questions": 23, "mastered": 15, "progress": 65, "remaining": 8}

    def test_quiz_count_and_average_per_subject(self, db_session, catalog, student, enroll):
        enroll(student, catalog.bio, catalog.chem)
        _completed(db_session, student.id, 80, catalog.bio.id)
        _completed(db_session, student.id, 45, catalog.bio.id)
        _completed(db_session, student.id, 100, catalog.chem.id)
        rows = {r["code"]: r for r in StatsService(db_session).subject_stats(student.id)["subjects"]}
        assert rows["BIO"]["quiz_count"] == 2
        assert rows["BIO"]["avg_score"] == 63  # 62.5 rounds up
        assert rows["CHEM"]["quiz_count"] == 1

    def test_in_progress_sessions_do_not_count(self, db_session, catalog, student, enroll):
        enroll(student, catalog.bio)
        session = _completed(db_session, student.id, 90, catalog.bio.id)
        session.status = SessionStatus.IN_PROGRESS
        db_session.commit()
        (row, *_) = StatsService(db_session).subject_stats(student.id)["subjects"]
        assert row["quiz_count"] == 0
        assert row["avg_score"] == 0

    def test_not_enrolled_is_empty(self, db_session, catalog, student):
        stats = StatsService(db_session).subject_stats(student.id)
        assert stats["subjects"] == []
        assert stats["global"]["progress"] == 0


@pytest.mark.integration
class TestUserSummary:
    def test_summary(self, db_session, student):
        for score in (100, 100, 100, 100, 100, 90):
            _completed(db_session, student.id, score)
        summary = StatsService(db_session).user_summary(student.id)
        assert summary == {"total_quiz": 6, "avg_score": 98, "total_score": 590, "level": "Diligent Student"}

    def test_no_quizzes(self, db_session, student):
        summary = StatsService(db_session).user_summary(student.id)
        assert summary == {"total_quiz": 0, "avg_score": 0, "total_score": 0, "level": "Beginner"}


@pytest.mark.integration
class TestLeaderboard:
    def test_ranking_and_tiebreak(self, db_session, student, other_student):
        third = Profile(email="zoe@example.com", hashed_password="x", full_name="Zoe")
        db_session.add(third)
        db_session.commit()
        _completed(db_session, student.id, 80)
        _completed(db_session, student.id, 70)
        _completed(db_session, other_student.id, 75)
        _completed(db_session, third.id, 90)

        board = StatsService(db_session).top_n(10)

        assert [r["user_id"] for r in board] == [third.id, student.id, other_student.id]
        assert [r["rank"] for r in board] == [1, 2, 3]
        assert board[1]["avg_score"] == 75 and board[1]["total_quiz"] == 2 and board[1]["points"] == 150
        assert board[0]["name"] == "Zoe"
        assert board[2]["name"] == "alex"

    def test_limit(self, db_session, student, other_student):
        _completed(db_session, student.id, 10)
        _completed(db_session, other_student.id, 20)
        board = StatsService(db_session).top_n(1)
        assert len(board) == 1
        assert board[0]["user_id"] == other_student.id

    def test_zero_means_empty_board(self, db_session, student):
        _completed(db_session, student.id, 10)
        assert StatsService(db_session).top_n(0) == []

    def test_default_size(self, db_session, student, other_student, monkeypatch):
        monkeypatch.setattr(settings, "leaderboard_size", 1)
        _completed(db_session, student.id, 10)
        _completed(db_session, other_student.id, 20)
        assert len(StatsService(db_session).top_n()) == 1

    def test_ignores_unfinished_sessions(self, db_session, student):
        session = _completed(db_session, student.id, 50)
        session.status = SessionStatus.IN_PROGRESS
        db_session.commit()
        assert StatsService(db_session).top_n() == []


@pytest.mark.integration
class TestHistory:
    def test_newest_first_with_module_names(self, db_session, catalog, student, enroll):
        enroll(student, catalog.bio)
        older = _completed(db_session, student.id, 50, catalog.bio.id, minutes_ago=30,
                           questions=catalog.cells_questions[:2])
        newer = _completed(db_session, student.id, 70, catalog.bio.id, minutes_ago=5,
                           questions=[catalog.cells_questions[2], catalog.genetics_questions[0]])

        history = StatsService(db_session).history(student.id)

        assert [h["id"] for h in history] == [newer.id, older.id]
        assert history[0]["module_name"] == "Mixed"
        assert history[1]["module_name"] == "Cells"
        assert history[1]["subject_name"] == "Biology"

    def test_restricted_to_enrolled_subjects(self, db_session, catalog, student, enroll):
        enroll(student, catalog.bio)
        _completed(db_session, student.id, 50, catalog.chem.id, questions=catalog.atoms_questions[:1])
        assert StatsService(db_session).history(student.id) == []


@pytest.mark.integration
class TestDetailedAnalytics:
    def test_tree_with_progress_and_accuracy(self, db_session, catalog, student, enroll):
        enroll(student, catalog.bio)
        _master(db_session, student.id, catalog.cells_questions[:2])
        cells = catalog.cells_questions
        _completed(db_session, student.id, 75, catalog.bio.id,
                   questions=cells[:4], correct={cells[0].id, cells[1].id, cells[2].id})

        (subject,) = StatsService(db_session).detailed_analytics(student.id)

        assert subject["code"] == "BIO"
        assert subject["stats"] == {"total_questions": 55, "mastered": 2, "progress": 4}
        (source,) = subject["sources"]
        assert [m["name"] for m in source["modules"]] == ["Cells", "Genetics"]
        cells_row = source["modules"][0]
        assert cells_row["total_questions"] == 5
        assert cells_row["mastered"] == 2
        assert cells_row["progress"] == 40
        assert cells_row["accuracy"] == 75
        assert source["modules"][1]["accuracy"] == 0

    def test_not_enrolled(self, db_session, catalog, student):
        assert StatsService(db_session).detailed_analytics(student.id) == []
