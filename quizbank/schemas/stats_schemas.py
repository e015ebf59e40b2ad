"""
Progress, leaderboard and analytics schemas (dashboard, profile card, analytics page).
"""

from pydantic import BaseModel, ConfigDict, Field


class GlobalStats(BaseModel):
    total_questions: int
    mastered: int
    progress: int
    remaining: int


class SubjectStats(BaseModel):
    """Mastery progress and quiz average for one enrolled subject."""
    id: str
    name: str
    code: str
    total_questions: int
    mastered: int
    progress: int
    remaining: int
    quiz_count: int
    avg_score: int
    mastery_threshold: int


class SubjectStatsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # "global" is a keyword; exposed under its alias on the wire.
    global_: GlobalStats = Field(alias="global")
    subjects: list[SubjectStats]


class UserSummaryResponse(BaseModel):
    total_quiz: int
    avg_score: int
    total_score: int
    level: str


class LeaderboardEntry(BaseModel):
    rank: int
    user_id: int
    name: str
    avg_score: int
    total_quiz: int
    points: int


class LeaderboardResponse(BaseModel):
    entries: list[LeaderboardEntry]


class ModuleAnalytics(BaseModel):
    id: str
    name: str
    total_questions: int
    mastered: int
    progress: int
    accuracy: int


class SourceAnalytics(BaseModel):
    id: str
    name: str
    type: str
    modules: list[ModuleAnalytics]


class SubjectProgress(BaseModel):
    total_questions: int
    mastered: int
    progress: int


class SubjectAnalytics(BaseModel):
    id: str
    name: str
    code: str
    stats: SubjectProgress
    sources: list[SourceAnalytics]


class AnalyticsResponse(BaseModel):
    subjects: list[SubjectAnalytics]
