"""
API schemas package. Import from submodules or from this package.

Example:
    from quizbank.schemas import CreateSessionRequest, SubjectStatsResponse
    from quizbank.schemas.quiz_schemas import CreateSessionRequest
"""

from quizbank.schemas.auth_schemas import (
    AuthTokenPayload,
    LoginRequest,
    LoginResponse,
    LogoutResponse,
    RegisterRequest,
    RegisterResponse,
)
from quizbank.schemas.user_schemas import User, UpdateProfileRequest, ProfileResponse
from quizbank.schemas.catalog_schemas import (
    SubjectResponse,
    SubjectListResponse,
    SourceResponse,
    SourceListResponse,
    ModuleResponse,
    ModuleListResponse,
    AdminSubjectResponse,
    AdminSubjectListResponse,
    SubjectUpsertRequest,
    SourceCreateRequest,
    ModuleCreateRequest,
    AdminModuleResponse,
    AdminModuleListResponse,
    OptionIn,
    OptionOut,
    QuestionCreateRequest,
    QuestionUpdateRequest,
    ReplaceOptionsRequest,
    AdminQuestionResponse,
    AdminQuestionListResponse,
    ImportSubject,
    ImportResponse,
)
from quizbank.schemas.quiz_schemas import (
    CreateSessionRequest,
    CreateSessionResponse,
    SessionResponse,
    SaveAnswerRequest,
    SaveAnswerResponse,
    SubmitRequest,
    SubmitResponse,
    ResultResponse,
    HistoryResponse,
)
from quizbank.schemas.stats_schemas import (
    SubjectStatsResponse,
    UserSummaryResponse,
    LeaderboardResponse,
    AnalyticsResponse,
)
from quizbank.schemas.admin_schemas import (
    StudentListResponse,
    EnrollmentListResponse,
    EnrollmentToggleRequest,
    EnrollmentToggleResponse,
)

__all__ = [
    # auth
    "AuthTokenPayload",
    "LoginRequest",
    "LoginResponse",
    "LogoutResponse",
    "RegisterRequest",
    "RegisterResponse",
    # user
    "User",
    "UpdateProfileRequest",
    "ProfileResponse",
    # catalog
    "SubjectResponse",
    "SubjectListResponse",
    "SourceResponse",
    "SourceListResponse",
    "ModuleResponse",
    "ModuleListResponse",
    "AdminSubjectResponse",
    "AdminSubjectListResponse",
    "SubjectUpsertRequest",
    "SourceCreateRequest",
    "ModuleCreateRequest",
    "AdminModuleResponse",
    "AdminModuleListResponse",
    "OptionIn",
    "OptionOut",
    "QuestionCreateRequest",
    "QuestionUpdateRequest",
    "ReplaceOptionsRequest",
    "AdminQuestionResponse",
    "AdminQuestionListResponse",
    "ImportSubject",
    "ImportResponse",
    # quiz
    "CreateSessionRequest",
    "CreateSessionResponse",
    "SessionResponse",
    "SaveAnswerRequest",
    "SaveAnswerResponse",
    "SubmitRequest",
    "SubmitResponse",
    "ResultResponse",
    "HistoryResponse",
    # stats
    "SubjectStatsResponse",
    "UserSummaryResponse",
    "LeaderboardResponse",
    "AnalyticsResponse",
    # admin
    "StudentListResponse",
    "EnrollmentListResponse",
    "EnrollmentToggleRequest",
    "EnrollmentToggleResponse",
]
