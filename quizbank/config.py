from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool
from dotenv import load_dotenv
load_dotenv()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(extra="ignore")

    database_url: str = "sqlite:///./quizbank.db"
    secret_key: str = "change-me-in-production"
    access_token_expire_minutes: int = 30

    # "subject": each subject's mastery_threshold; "fixed": one threshold for every subject
    mastery_policy: str = "subject"
    default_mastery_threshold: int = 3
    fixed_mastery_threshold: int = 1

    seconds_per_question: int = 60
    enforce_exam_deadline: bool = False
    deadline_grace_seconds: int = 30

    leaderboard_size: int = 10
    max_session_questions: int = 200

    log_level: str = "INFO"
    log_dir: str = "logs"


settings = Settings()


def _engine_kwargs(url: str) -> dict:
    if not url.startswith("sqlite"):
        return {"pool_pre_ping": True}
    kwargs: dict = {"connect_args": {"check_same_thread": False}}
    if url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool
    return kwargs


engine = create_engine(settings.database_url, **_engine_kwargs(settings.database_url))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def reset_db():
    import quizbank.models  # noqa: F401  (register tables)
    Base.metadata.drop_all(bind=engine)
    create_db()


def create_db():
    import quizbank.models  # noqa: F401  (register tables)
    Base.metadata.create_all(bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
