"""
Content catalog: Subject -> Source -> Module -> Question -> Option.

Student reads are intersected with the enrollment gate; admin methods
(prefixed admin_ or mutating) bypass it. Questions are validated at write
time: at least two options and exactly one flagged correct.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timedelta
from typing import Iterable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session as DBSession

from quizbank.models.models import Mastery, Module, Option, Question, Source, Subject, new_id
from quizbank.models.session import Answer
from quizbank.services.enrollment_service import EnrollmentService
from quizbank.services.errors import Conflict, InvalidQuestion, NotFound, PermissionDenied, store_boundary
from quizbank.utils.common import utcnow
from quizbank.utils.logger import configure_logging, log_request

logger = configure_logging()

ENTITY_KINDS = {"subjects": Subject, "sources": Source, "modules": Module}


def validate_options(options: list[dict]) -> None:
    """Raise InvalidQuestion unless there are >= 2 options and exactly one is correct."""
    if len(options) < 2:
        raise InvalidQuestion("A question needs at least two options")
    correct = sum(1 for o in options if o.get("is_correct"))
    if correct != 1:
        raise InvalidQuestion(f"A question needs exactly one correct option (got {correct})")
    for o in options:
        if not isinstance(o.get("text"), str) or not o["text"].strip():
            raise InvalidQuestion("Option text must not be empty")


class CatalogService:
    """Catalog reads for students and catalog maintenance for admins."""

    def __init__(self, db: DBSession):
        self.db = db
        self.enrollment = EnrollmentService(db)

    # ----- student reads -----

    @store_boundary("list_subjects", logger)
    def list_subjects(self, user_id: int) -> list[Subject]:
        allowed = self.enrollment.allowed_subject_ids(user_id)
        if not allowed:
            return []
        return self.db.query(Subject).filter(Subject.id.in_(allowed)).order_by(Subject.name.asc()).all()

    @store_boundary("list_sources", logger)
    def list_sources(self, user_id: int, subject_id: str) -> list[Source]:
        if self.db.get(Subject, subject_id) is None:
            raise NotFound("Subject not found")
        self.enrollment.require_enrolled(user_id, subject_id)
        return self.db.query(Source).filter(Source.subject_id == subject_id).order_by(Source.name.asc()).all()

    @store_boundary("list_modules", logger)
    def list_modules(self, user_id: int, source_id: str) -> list[Module]:
        source = self.db.get(Source, source_id)
        if source is None:
            raise NotFound("Source not found")
        if source.subject_id not in self.enrollment.allowed_subject_ids(user_id):
            raise PermissionDenied()
        return self.db.query(Module).filter(Module.source_id == source_id).order_by(Module.name.asc()).all()

    def bank_numbers(self, module_ids: Iterable[str]) -> dict[str, int]:
        """1-based position of each question inside its module, by creation order."""
        ids = list(set(module_ids))
        if not ids:
            return {}
        rows = (
            self.db.query(Question.id, Question.module_id)
            .filter(Question.module_id.in_(ids))
            .order_by(Question.module_id.asc(), Question.created_at.asc(), Question.id.asc())
            .all()
        )
        numbers: dict[str, int] = {}
        seen: dict[str, int] = defaultdict(int)
        for qid, mid in rows:
            seen[mid] += 1
            numbers[qid] = seen[mid]
        return numbers

    # ----- admin: subjects / sources / modules -----

    @store_boundary("admin_subjects", logger)
    def admin_subjects(self) -> list[Subject]:
        return self.db.query(Subject).order_by(Subject.name.asc()).all()

    def _require_free_code(self, code: str, subject_id: str | None = None) -> None:
        taken = self.db.query(Subject.id).filter(Subject.code == code, Subject.id != subject_id).first()
        if taken is not None:
            raise Conflict(f"Subject code '{code}' is already in use")

    def _commit_subject(self, subject: Subject) -> None:
        try:
            self.db.commit()
        except IntegrityError:
            # Lost a race with a concurrent write of the same code.
            self.db.rollback()
            raise Conflict(f"Subject code '{subject.code}' is already in use") from None
        self.db.refresh(subject)

    @store_boundary("create_subject", logger)
    def create_subject(self, name: str, code: str, mastery_threshold: int = 3) -> Subject:
        code = code.strip()
        self._require_free_code(code)
        subject = Subject(id=new_id(), name=name.strip(), code=code, mastery_threshold=mastery_threshold)
        self.db.add(subject)
        self._commit_subject(subject)
        logger.info("subject created id=%s code=%s", subject.id, subject.code)
        return subject

    @store_boundary("update_subject", logger)
    def update_subject(self, subject_id: str, name: str, code: str, mastery_threshold: int) -> Subject:
        subject = self.db.get(Subject, subject_id)
        if subject is None:
            raise NotFound("Subject not found")
        code = code.strip()
        self._require_free_code(code, subject_id)
        subject.name = name.strip()
        subject.code = code
        subject.mastery_threshold = mastery_threshold
        self._commit_subject(subject)
        logger.info("subject updated id=%s threshold=%s", subject.id, subject.mastery_threshold)
        return subject

    @store_boundary("create_source", logger)
    def create_source(self, subject_id: str, name: str, type: str = "exam") -> Source:
        if self.db.get(Subject, subject_id) is None:
            raise NotFound("Subject not found")
        source = Source(id=new_id(), subject_id=subject_id, name=name.strip(), type=type or "exam")
        self.db.add(source)
        self.db.commit()
        self.db.refresh(source)
        return source

    @store_boundary("create_module", logger)
    def create_module(self, source_id: str, name: str) -> Module:
        if self.db.get(Source, source_id) is None:
            raise NotFound("Source not found")
        module = Module(id=new_id(), source_id=source_id, name=name.strip())
        self.db.add(module)
        self.db.commit()
        self.db.refresh(module)
        return module

    @store_boundary("admin_modules", logger)
    def admin_modules(self) -> list[tuple[Module, Source, Subject]]:
        return (
            self.db.query(Module, Source, Subject)
            .join(Source, Source.id == Module.source_id)
            .join(Subject, Subject.id == Source.subject_id)
            .order_by(Module.name.asc())
            .all()
        )

    @store_boundary("delete_entity", logger)
    def delete_entity(self, kind: str, entity_id: str) -> None:
        model = ENTITY_KINDS.get(kind)
        if model is None:
            raise NotFound(f"Unknown entity kind: {kind}")
        entity = self.db.get(model, entity_id)
        if entity is None:
            raise NotFound(f"{kind[:-1].capitalize()} not found")
        self._purge_question_refs(self._question_ids_under(kind, entity_id))
        self.db.delete(entity)
        self.db.commit()
        logger.info("deleted %s id=%s", kind, entity_id)

    def _question_ids_under(self, kind: str, entity_id: str) -> list[str]:
        q = self.db.query(Question.id).join(Module, Module.id == Question.module_id)
        if kind == "modules":
            q = q.filter(Module.id == entity_id)
        elif kind == "sources":
            q = q.filter(Module.source_id == entity_id)
        else:
            q = q.join(Source, Source.id == Module.source_id).filter(Source.subject_id == entity_id)
        return [r[0] for r in q.all()]

    def _purge_question_refs(self, question_ids: list[str]) -> None:
        """Rows outside the catalog tree that point at questions about to be deleted."""
        if not question_ids:
            return
        self.db.query(Mastery).filter(Mastery.question_id.in_(question_ids)).delete(synchronize_session=False)
        self.db.query(Answer).filter(Answer.question_id.in_(question_ids)).delete(synchronize_session=False)

    # ----- admin: questions -----

    @store_boundary("questions_by_module", logger)
    def questions_by_module(self, module_id: str) -> list[Question]:
        if self.db.get(Module, module_id) is None:
            raise NotFound("Module not found")
        return (
            self.db.query(Question)
            .filter(Question.module_id == module_id)
            .order_by(Question.created_at.asc(), Question.id.asc())
            .all()
        )

    def _add_question(
        self,
        module_id: str,
        content: str,
        explanation: str | None,
        options: list[dict],
        created_at: datetime | None = None,
    ) -> Question:
        validate_options(options)
        question = Question(
            id=new_id(),
            module_id=module_id,
            content=content,
            explanation=explanation,
            created_at=created_at or utcnow(),
        )
        question.options = [
            Option(id=new_id(), text=o["text"], is_correct=bool(o.get("is_correct")), position=i)
            for i, o in enumerate(options)
        ]
        self.db.add(question)
        self.db.flush()
        return question

    @store_boundary("create_question", logger)
    def create_question(self, module_id: str, content: str, explanation: str | None, options: list[dict]) -> Question:
        if self.db.get(Module, module_id) is None:
            raise NotFound("Module not found")
        question = self._add_question(module_id, content, explanation, options)
        self.db.commit()
        self.db.refresh(question)
        return question

    @store_boundary("update_question", logger)
    def update_question(self, question_id: str, content: str, explanation: str | None) -> Question:
        question = self.db.get(Question, question_id)
        if question is None:
            raise NotFound("Question not found")
        question.content = content
        question.explanation = explanation
        self.db.commit()
        self.db.refresh(question)
        return question

    @store_boundary("replace_options", logger)
    def replace_options(self, question_id: str, options: list[dict]) -> Question:
        question = self.db.get(Question, question_id)
        if question is None:
            raise NotFound("Question not found")
        validate_options(options)
        question.options = [
            Option(id=new_id(), text=o["text"], is_correct=bool(o.get("is_correct")), position=i)
            for i, o in enumerate(options)
        ]
        self.db.commit()
        self.db.refresh(question)
        return question

    @store_boundary("delete_question", logger)
    def delete_question(self, question_id: str) -> None:
        question = self.db.get(Question, question_id)
        if question is None:
            raise NotFound("Question not found")
        self._purge_question_refs([question_id])
        self.db.delete(question)
        self.db.commit()

    # ----- admin: bulk import -----

    def _get_or_create(self, model, match: dict, extra: dict):
        row = self.db.query(model).filter_by(**match).first()
        if row is not None:
            return row
        row = model(id=new_id(), **match, **extra)
        self.db.add(row)
        self.db.flush()
        return row

    @store_boundary("import_catalog", logger)
    def import_catalog(self, subjects: list[dict]) -> dict:
        """
        Import an already-parsed catalog document. Subjects match on code,
        sources on name within subject, modules on name within source;
        questions are always appended. All-or-nothing.
        """
        counts = {"subjects": 0, "sources": 0, "modules": 0, "questions": 0}
        # One microsecond apart so bank numbers follow document order.
        stamp = utcnow()
        with log_request(logger, "import_catalog"):
            try:
                for s in subjects:
                    subject = self._get_or_create(Subject, {"code": s["code"]}, {"name": s["name"]})
                    counts["subjects"] += 1
                    for src in s.get("sources") or []:
                        source = self._get_or_create(
                            Source,
                            {"name": src["name"], "subject_id": subject.id},
                            {"type": src.get("type") or "exam"},
                        )
                        counts["sources"] += 1
                        for mod in src.get("modules") or []:
                            module = self._get_or_create(Module, {"name": mod["name"], "source_id": source.id}, {})
                            counts["modules"] += 1
                            for q in mod.get("questions") or []:
                                self._add_question(
                                    module.id,
                                    q["content"],
                                    q.get("explanation"),
                                    q.get("options") or [],
                                    created_at=stamp + timedelta(microseconds=counts["questions"]),
                                )
                                counts["questions"] += 1
                self.db.commit()
            except InvalidQuestion:
                self.db.rollback()
                raise
        logger.info("import finished counts=%s", counts)
        return counts
