"""
Catalog schemas: subjects, sources, modules, questions (student and admin views).
"""

from pydantic import BaseModel, Field
from typing import Optional


class SubjectResponse(BaseModel):
    id: str
    name: str
    code: str


class SubjectListResponse(BaseModel):
    subjects: list[SubjectResponse]


class SourceResponse(BaseModel):
    id: str
    name: str
    type: str


class SourceListResponse(BaseModel):
    sources: list[SourceResponse]


class ModuleResponse(BaseModel):
    id: str
    name: str


class ModuleListResponse(BaseModel):
    modules: list[ModuleResponse]


class AdminSubjectResponse(SubjectResponse):
    mastery_threshold: int


class AdminSubjectListResponse(BaseModel):
    subjects: list[AdminSubjectResponse]


class SubjectUpsertRequest(BaseModel):
    name: str = Field(min_length=1)
    code: str = Field(min_length=1)
    mastery_threshold: int = Field(default=3, ge=1, le=100)


class SourceCreateRequest(BaseModel):
    subject_id: str
    name: str = Field(min_length=1)
    type: str = "exam"


class ModuleCreateRequest(BaseModel):
    source_id: str
    name: str = Field(min_length=1)


class AdminModuleResponse(BaseModel):
    id: str
    name: str
    source_id: str
    source_name: str
    subject_id: str
    subject_name: str


class AdminModuleListResponse(BaseModel):
    modules: list[AdminModuleResponse]


class OptionIn(BaseModel):
    text: str
    is_correct: bool = False


class OptionOut(BaseModel):
    id: str
    text: str
    is_correct: bool


class QuestionCreateRequest(BaseModel):
    module_id: str
    content: str = Field(min_length=1)
    explanation: Optional[str] = None
    options: list[OptionIn]


class QuestionUpdateRequest(BaseModel):
    content: str = Field(min_length=1)
    explanation: Optional[str] = None


class ReplaceOptionsRequest(BaseModel):
    options: list[OptionIn]


class AdminQuestionResponse(BaseModel):
    id: str
    module_id: str
    bank_number: int
    content: str
    explanation: Optional[str] = None
    options: list[OptionOut]


class AdminQuestionListResponse(BaseModel):
    questions: list[AdminQuestionResponse]


class ImportQuestion(BaseModel):
    content: str
    explanation: Optional[str] = None
    options: list[OptionIn] = []


class ImportModule(BaseModel):
    name: str
    questions: list[ImportQuestion] = []


class ImportSource(BaseModel):
    name: str
    type: Optional[str] = "exam"
    modules: list[ImportModule] = []


class ImportSubject(BaseModel):
    code: str
    name: str
    sources: list[ImportSource] = []


class ImportResponse(BaseModel):
    subjects: int
    sources: int
    modules: int
    questions: int
    message: str
