from quizbank.config import Base
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, Boolean, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from uuid import uuid4

from quizbank.utils.common import utcnow


def new_id() -> str:
    return str(uuid4())


class Profile(Base):
    __tablename__ = "profiles"
    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    full_name = Column(String, nullable=True)
    role = Column(String, nullable=False, default="student")  # student|admin
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    enrollments = relationship("Enrollment", backref="user", cascade="all, delete-orphan")


class Subject(Base):
    __tablename__ = "subjects"
    id = Column(String, primary_key=True, index=True, default=new_id)  # uuid
    name = Column(String, nullable=False)
    code = Column(String, unique=True, index=True, nullable=False)
    mastery_threshold = Column(Integer, nullable=False, default=3)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    sources = relationship("Source", backref="subject", cascade="all, delete-orphan")
    enrollments = relationship("Enrollment", backref="subject", cascade="all, delete-orphan")

    __table_args__ = (CheckConstraint("mastery_threshold >= 1", name="ck_subject_threshold_positive"),)


class Source(Base):
    __tablename__ = "sources"
    id = Column(String, primary_key=True, index=True, default=new_id)  # uuid
    subject_id = Column(String, ForeignKey("subjects.id", ondelete="CASCADE"), index=True, nullable=False)
    name = Column(String, nullable=False)
    type = Column(String, nullable=False, default="exam")  # exam|book|exercise
    created_at = Column(DateTime, default=utcnow, nullable=False)

    modules = relationship("Module", backref="source", cascade="all, delete-orphan")


class Module(Base):
    __tablename__ = "modules"
    id = Column(String, primary_key=True, index=True, default=new_id)  # uuid
    source_id = Column(String, ForeignKey("sources.id", ondelete="CASCADE"), index=True, nullable=False)
    name = Column(String, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    questions = relationship("Question", backref="module", cascade="all, delete-orphan")


class Question(Base):
    __tablename__ = "questions"
    id = Column(String, primary_key=True, index=True, default=new_id)  # uuid
    module_id = Column(String, ForeignKey("modules.id", ondelete="CASCADE"), index=True, nullable=False)
    content = Column(Text, nullable=False)
    explanation = Column(Text, nullable=True)
    # Defines the bank number; never rewritten after insert.
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    options = relationship(
        "Option",
        backref="question",
        cascade="all, delete-orphan",
        order_by="Option.position",
    )


class Option(Base):
    __tablename__ = "options"
    id = Column(String, primary_key=True, index=True, default=new_id)  # uuid
    question_id = Column(String, ForeignKey("questions.id", ondelete="CASCADE"), index=True, nullable=False)
    text = Column(Text, nullable=False)
    is_correct = Column(Boolean, default=False, nullable=False)
    position = Column(Integer, nullable=False, default=0)


class Enrollment(Base):
    __tablename__ = "enrollments"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("profiles.id", ondelete="CASCADE"), index=True, nullable=False)
    subject_id = Column(String, ForeignKey("subjects.id", ondelete="CASCADE"), index=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (UniqueConstraint("user_id", "subject_id", name="uq_enrollment_user_subject"),)


class Mastery(Base):
    __tablename__ = "mastery"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("profiles.id", ondelete="CASCADE"), index=True, nullable=False)
    question_id = Column(String, ForeignKey("questions.id", ondelete="CASCADE"), index=True, nullable=False)
    correct_count = Column(Integer, nullable=False, default=0)
    last_answered_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "question_id", name="uq_mastery_user_question"),
        CheckConstraint("correct_count >= 0", name="ck_mastery_count_non_negative"),
    )
