"""
Admin endpoints: catalog maintenance, bulk import, students and enrollments.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from quizbank.config import get_db
from quizbank.models.models import Question, Subject
from quizbank.schemas.admin_schemas import (
    EnrollmentListResponse,
    EnrollmentToggleRequest,
    EnrollmentToggleResponse,
    StudentListResponse,
    StudentResponse,
)
from quizbank.schemas.catalog_schemas import (
    AdminModuleListResponse,
    AdminModuleResponse,
    AdminQuestionListResponse,
    AdminQuestionResponse,
    AdminSubjectListResponse,
    AdminSubjectResponse,
    ImportResponse,
    ImportSubject,
    ModuleCreateRequest,
    ModuleResponse,
    OptionOut,
    QuestionCreateRequest,
    QuestionUpdateRequest,
    ReplaceOptionsRequest,
    SourceCreateRequest,
    SourceResponse,
    SubjectUpsertRequest,
)
from quizbank.schemas.user_schemas import User
from quizbank.services.catalog_service import CatalogService
from quizbank.services.enrollment_service import EnrollmentService
from quizbank.utils.auth import require_admin

admin_routes = APIRouter()


def _subject_out(s: Subject) -> AdminSubjectResponse:
    return AdminSubjectResponse(id=s.id, name=s.name, code=s.code, mastery_threshold=s.mastery_threshold)


def _question_out(q: Question, bank_number: int) -> AdminQuestionResponse:
    return AdminQuestionResponse(
        id=q.id,
        module_id=q.module_id,
        bank_number=bank_number,
        content=q.content,
        explanation=q.explanation,
        options=[OptionOut(id=o.id, text=o.text, is_correct=bool(o.is_correct)) for o in q.options],
    )


# ----- subjects / sources / modules -----

@admin_routes.get("/subjects", response_model=AdminSubjectListResponse)
async def admin_list_subjects(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> AdminSubjectListResponse:
    return AdminSubjectListResponse(subjects=[_subject_out(s) for s in CatalogService(db).admin_subjects()])


@admin_routes.post("/subjects", response_model=AdminSubjectResponse, status_code=201)
async def admin_create_subject(
    req: SubjectUpsertRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> AdminSubjectResponse:
    return _subject_out(CatalogService(db).create_subject(req.name, req.code, req.mastery_threshold))


@admin_routes.put("/subjects/{subject_id}", response_model=AdminSubjectResponse)
async def admin_update_subject(
    subject_id: str,
    req: SubjectUpsertRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> AdminSubjectResponse:
    """Rename a subject or change how many correct answers mark a question mastered."""
    subject = CatalogService(db).update_subject(subject_id, req.name, req.code, req.mastery_threshold)
    return _subject_out(subject)


@admin_routes.post("/sources", response_model=SourceResponse, status_code=201)
async def admin_create_source(
    req: SourceCreateRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> SourceResponse:
    source = CatalogService(db).create_source(req.subject_id, req.name, req.type)
    return SourceResponse(id=source.id, name=source.name, type=source.type)


@admin_routes.get("/modules", response_model=AdminModuleListResponse)
async def admin_list_modules(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> AdminModuleListResponse:
    return AdminModuleListResponse(
        modules=[
            AdminModuleResponse(
                id=m.id,
                name=m.name,
                source_id=src.id,
                source_name=src.name,
                subject_id=subj.id,
                subject_name=subj.name,
            )
            for m, src, subj in CatalogService(db).admin_modules()
        ]
    )


@admin_routes.post("/modules", response_model=ModuleResponse, status_code=201)
async def admin_create_module(
    req: ModuleCreateRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> ModuleResponse:
    module = CatalogService(db).create_module(req.source_id, req.name)
    return ModuleResponse(id=module.id, name=module.name)


@admin_routes.delete("/catalog/{kind}/{entity_id}", status_code=204)
async def admin_delete_entity(
    kind: str,
    entity_id: str,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> None:
    """Delete a subject, source or module together with everything under it."""
    CatalogService(db).delete_entity(kind, entity_id)


# ----- questions -----

@admin_routes.get("/modules/{module_id}/questions", response_model=AdminQuestionListResponse)
async def admin_list_questions(
    module_id: str,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> AdminQuestionListResponse:
    catalog = CatalogService(db)
    questions = catalog.questions_by_module(module_id)
    numbers = catalog.bank_numbers([module_id])
    return AdminQuestionListResponse(questions=[_question_out(q, numbers.get(q.id, 0)) for q in questions])


@admin_routes.post("/questions", response_model=AdminQuestionResponse, status_code=201)
async def admin_create_question(
    req: QuestionCreateRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> AdminQuestionResponse:
    catalog = CatalogService(db)
    question = catalog.create_question(
        req.module_id, req.content, req.explanation, [o.model_dump() for o in req.options]
    )
    return _question_out(question, catalog.bank_numbers([question.module_id]).get(question.id, 0))


@admin_routes.put("/questions/{question_id}", response_model=AdminQuestionResponse)
async def admin_update_question(
    question_id: str,
    req: QuestionUpdateRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> AdminQuestionResponse:
    catalog = CatalogService(db)
    question = catalog.update_question(question_id, req.content, req.explanation)
    return _question_out(question, catalog.bank_numbers([question.module_id]).get(question.id, 0))


@admin_routes.put("/questions/{question_id}/options", response_model=AdminQuestionResponse)
async def admin_replace_options(
    question_id: str,
    req: ReplaceOptionsRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> AdminQuestionResponse:
    """Replace the whole option list. Exactly one option must be correct."""
    catalog = CatalogService(db)
    question = catalog.replace_options(question_id, [o.model_dump() for o in req.options])
    return _question_out(question, catalog.bank_numbers([question.module_id]).get(question.id, 0))


@admin_routes.delete("/questions/{question_id}", status_code=204)
async def admin_delete_question(
    question_id: str,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> None:
    CatalogService(db).delete_question(question_id)


@admin_routes.post("/import", response_model=ImportResponse)
async def admin_import(
    subjects: list[ImportSubject],
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> ImportResponse:
    """Bulk import a parsed catalog document. Nothing is written if any question is invalid."""
    counts = CatalogService(db).import_catalog([s.model_dump() for s in subjects])
    return ImportResponse(**counts, message="Import successful")


# ----- students / enrollments -----

@admin_routes.get("/students", response_model=StudentListResponse)
async def admin_list_students(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> StudentListResponse:
    return StudentListResponse(
        students=[
            StudentResponse(id=p.id, email=p.email, full_name=p.full_name, role=p.role)
            for p in EnrollmentService(db).list_students()
        ]
    )


@admin_routes.get("/students/{user_id}/enrollments", response_model=EnrollmentListResponse)
async def admin_student_enrollments(
    user_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> EnrollmentListResponse:
    return EnrollmentListResponse(user_id=user_id, subject_ids=EnrollmentService(db).student_enrollments(user_id))


@admin_routes.post("/enrollments", response_model=EnrollmentToggleResponse)
async def admin_toggle_enrollment(
    req: EnrollmentToggleRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> EnrollmentToggleResponse:
    """Grant or revoke access. Repeating the same toggle is a no-op (changed=false)."""
    changed = EnrollmentService(db).set_enrollment(req.user_id, req.subject_id, req.enrolled)
    return EnrollmentToggleResponse(success=True, changed=changed)
