"""
Student catalog endpoints. Every listing is filtered by enrollment.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from quizbank.config import get_db
from quizbank.schemas.catalog_schemas import (
    ModuleListResponse,
    ModuleResponse,
    SourceListResponse,
    SourceResponse,
    SubjectListResponse,
    SubjectResponse,
)
from quizbank.schemas.user_schemas import User
from quizbank.services.catalog_service import CatalogService
from quizbank.utils.auth import get_current_user

catalog_routes = APIRouter()


@catalog_routes.get("/subjects", response_model=SubjectListResponse)
async def list_subjects(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> SubjectListResponse:
    """Subjects the current user is enrolled in."""
    subjects = CatalogService(db).list_subjects(current_user.id)
    return SubjectListResponse(subjects=[SubjectResponse(id=s.id, name=s.name, code=s.code) for s in subjects])


@catalog_routes.get("/subjects/{subject_id}/sources", response_model=SourceListResponse)
async def list_sources(
    subject_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> SourceListResponse:
    sources = CatalogService(db).list_sources(current_user.id, subject_id)
    return SourceListResponse(sources=[SourceResponse(id=s.id, name=s.name, type=s.type) for s in sources])


@catalog_routes.get("/sources/{source_id}/modules", response_model=ModuleListResponse)
async def list_modules(
    source_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ModuleListResponse:
    modules = CatalogService(db).list_modules(current_user.id, source_id)
    return ModuleListResponse(modules=[ModuleResponse(id=m.id, name=m.name) for m in modules])
