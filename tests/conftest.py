"""
Pytest configuration and shared fixtures for the test suite.
Points the app at an in-memory database and seeds a small catalog.
"""
import os
import sys
import tempfile
from datetime import timedelta
from pathlib import Path
from types import SimpleNamespace

# Must be set before quizbank.config is imported anywhere.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("LOG_DIR", str(Path(tempfile.gettempdir()) / "quizbank-test-logs"))

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))


# ----- In-memory DB (for tests that need DB without touching real DB) -----
@pytest.fixture
def in_memory_engine():
    """One connection shared by every session, so all of them see the same tables."""
    return create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )


@pytest.fixture
def db_session(in_memory_engine):
    """Create an in-memory database session. Uses quizbank.config.Base for schema."""
    import quizbank.models  # noqa: F401
    from quizbank.config import Base
    Base.metadata.create_all(in_memory_engine)
    SessionLocal = sessionmaker(bind=in_memory_engine, autocommit=False, autoflush=False)
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def make_questions(db_session):
    """Add `count` questions to a module; option 0 ("right") is the correct one."""
    from quizbank.models.models import Option, Question, new_id
    from quizbank.utils.common import utcnow

    def _make(module, count, prefix="Question"):
        base = utcnow()
        questions = []
        for i in range(count):
            q = Question(
                id=new_id(),
                module_id=module.id,
                content=f"{prefix} {i + 1}",
                explanation=f"Because of reason {i + 1}",
                created_at=base + timedelta(microseconds=i),
            )
            q.options = [
                Option(id=new_id(), text=text, is_correct=(pos == 0), position=pos)
                for pos, text in enumerate(["right", "wrong a", "wrong b", "wrong c"])
            ]
            db_session.add(q)
            questions.append(q)
        db_session.commit()
        return questions

    return _make


@pytest.fixture
def catalog(db_session, make_questions):
    """
    Biology (threshold 3): Exam 2023 -> Cells (5 questions), Genetics (50 questions)
    Chemistry (threshold 1): Textbook -> Atoms (3 questions)
    History (threshold 3): no sources at all
    """
    from quizbank.models.models import Module, Source, Subject, new_id

    bio = Subject(id=new_id(), name="Biology", code="BIO", mastery_threshold=3)
    chem = Subject(id=new_id(), name="Chemistry", code="CHEM", mastery_threshold=1)
    hist = Subject(id=new_id(), name="History", code="HIST", mastery_threshold=3)
    bio_exam = Source(id=new_id(), subject_id=bio.id, name="Exam 2023", type="exam")
    chem_book = Source(id=new_id(), subject_id=chem.id, name="Textbook", type="book")
    cells = Module(id=new_id(), source_id=bio_exam.id, name="Cells")
    genetics = Module(id=new_id(), source_id=bio_exam.id, name="Genetics")
    atoms = Module(id=new_id(), source_id=chem_book.id, name="Atoms")
    db_session.add_all([bio, chem, hist, bio_exam, chem_book, cells, genetics, atoms])
    db_session.commit()

    return SimpleNamespace(
        bio=bio,
        chem=chem,
        hist=hist,
        bio_exam=bio_exam,
        chem_book=chem_book,
        cells=cells,
        genetics=genetics,
        atoms=atoms,
        cells_questions=make_questions(cells, 5, "Cell question"),
        genetics_questions=make_questions(genetics, 50, "Genetics question"),
        atoms_questions=make_questions(atoms, 3, "Atom question"),
    )


def _profile(db_session, email, role="student", full_name=None):
    from quizbank.models.models import Profile
    profile = Profile(email=email, hashed_password="not-a-real-hash", full_name=full_name, role=role)
    db_session.add(profile)
    db_session.commit()
    db_session.refresh(profile)
    return profile


@pytest.fixture
def student(db_session):
    return _profile(db_session, "sam@example.com", full_name="Sam Student")


@pytest.fixture
def other_student(db_session):
    return _profile(db_session, "alex@example.com")


@pytest.fixture
def admin_profile(db_session):
    return _profile(db_session, "admin@example.com", role="admin", full_name="Ada Admin")


@pytest.fixture
def enroll(db_session):
    """Enroll a profile in subjects through the real gate."""
    from quizbank.services.enrollment_service import EnrollmentService

    def _enroll(profile, *subjects):
        service = EnrollmentService(db_session)
        for subject in subjects:
            service.enroll(profile.id, subject.id)

    return _enroll
