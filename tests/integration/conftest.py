"""
Integration test fixtures. Overrides get_db for API tests with the shared in-memory DB.
"""
import pytest


@pytest.fixture
def override_get_db(db_session, in_memory_engine):
    """Session factory on the same engine as db_session, so tests can seed and inspect directly."""
    from sqlalchemy.orm import sessionmaker
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=in_memory_engine)

    def _get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    return _get_db


@pytest.fixture
def api_client(override_get_db):
    """FastAPI TestClient with in-memory DB override."""
    from fastapi.testclient import TestClient
    from quizbank.api import app
    from quizbank.config import get_db
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def login(api_client, db_session):
    """Create a profile with a real password hash and log the client in as it."""
    from quizbank.utils.auth import create_user, get_user_by_email

    def _login(email, password="secret-pass", role="student", full_name=None):
        profile = get_user_by_email(email, db_session)
        if profile is None:
            profile = create_user(email, password, db_session, full_name=full_name, role=role)
        response = api_client.post("/auth/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.text
        return profile

    return _login
