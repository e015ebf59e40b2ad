"""
API integration tests using FastAPI TestClient with in-memory DB.
"""
import pytest
from fastapi.testclient import TestClient

from quizbank.models.models import Question


def _options(correct=0, n=3):
    return [{"text": f"choice {i}", "is_correct": i == correct} for i in range(n)]


@pytest.fixture
def admin_catalog(api_client, login):
    """Build Physics -> Exam 2021 -> Forces (4 questions) through the admin API."""
    login("admin@example.com", role="admin")
    subject = api_client.post("/admin/subjects", json={"name": "Physics", "code": "PHY", "mastery_threshold": 2}).json()
    source = api_client.post("/admin/sources", json={"subject_id": subject["id"], "name": "Exam 2021"}).json()
    module = api_client.post("/admin/modules", json={"source_id": source["id"], "name": "Forces"}).json()
    questions = []
    for i in range(4):
        resp = api_client.post(
            "/admin/questions",
            json={"module_id": module["id"], "content": f"Force question {i + 1}", "explanation": "Newton", "options": _options()},
        )
        assert resp.status_code == 201, resp.text
        questions.append(resp.json())
    api_client.post("/auth/logout")
    return {"subject": subject, "source": source, "module": module, "questions": questions}


@pytest.mark.integration
class TestHealthRoutes:
    """Health and root endpoints (no auth)."""

    def test_root_returns_healthy(self, api_client: TestClient):
        response = api_client.get("/")
        assert response.status_code == 200
        assert "healthy" in response.json()["message"].lower()

    def test_request_id_echoed(self, api_client: TestClient):
        response = api_client.get("/", headers={"x-request-id": "abc-123"})
        assert response.headers["x-request-id"] == "abc-123"


@pytest.mark.integration
class TestAuthRoutes:
    """Auth: register, login, logout, me."""

    def test_register_sets_cookie(self, api_client: TestClient):
        response = api_client.post(
            "/auth/register",
            json={"email": "NewUser@Example.com", "password": "securepass123", "confirm_password": "securepass123"},
        )
        assert response.status_code == 200
        me = api_client.get("/auth/me").json()
        assert me["email"] == "newuser@example.com"
        assert me["role"] == "student"

    def test_register_duplicate_fails(self, api_client: TestClient):
        body = {"email": "dup@example.com", "password": "pass123", "confirm_password": "pass123"}
        api_client.post("/auth/register", json=body)
        assert api_client.post("/auth/register", json=body).status_code == 400

    def test_register_password_mismatch(self, api_client: TestClient):
        response = api_client.post(
            "/auth/register",
            json={"email": "mm@example.com", "password": "a-password", "confirm_password": "b-password"},
        )
        assert response.status_code == 400

    def test_login_wrong_password_fails(self, api_client: TestClient, login):
        login("someone@example.com")
        api_client.post("/auth/logout")
        response = api_client.post("/auth/login", json={"email": "someone@example.com", "password": "nope"})
        assert response.status_code == 401

    def test_protected_route_requires_cookie(self, api_client: TestClient):
        assert api_client.get("/catalog/subjects").status_code == 401

    def test_logout_clears_session(self, api_client: TestClient, login):
        login("leaver@example.com")
        assert api_client.get("/auth/me").status_code == 200
        api_client.post("/auth/logout")
        assert api_client.get("/auth/me").status_code == 401


@pytest.mark.integration
class TestAdminRoutes:
    def test_students_cannot_use_admin(self, api_client: TestClient, login):
        login("student@example.com")
        assert api_client.get("/admin/subjects").status_code == 403

    def test_catalog_built_through_api(self, api_client: TestClient, admin_catalog, login):
        login("admin@example.com", role="admin")
        subjects = api_client.get("/admin/subjects").json()["subjects"]
        assert [(s["code"], s["mastery_threshold"]) for s in subjects] == [("PHY", 2)]
        questions = api_client.get(f"/admin/modules/{admin_catalog['module']['id']}/questions").json()["questions"]
        assert [q["bank_number"] for q in questions] == [1, 2, 3, 4]
        modules = api_client.get("/admin/modules").json()["modules"]
        assert modules[0]["subject_name"] == "Physics"

    def test_invalid_question_rejected(self, api_client: TestClient, admin_catalog, login):
        login("admin@example.com", role="admin")
        response = api_client.post(
            "/admin/questions",
            json={"module_id": admin_catalog["module"]["id"], "content": "Two keys", "options": _options(correct=0) + [{"text": "also", "is_correct": True}]},
        )
        assert response.status_code == 422
        assert response.json()["code"] == "invalid_question"

    def test_replace_options_and_delete(self, api_client: TestClient, admin_catalog, login, db_session):
        login("admin@example.com", role="admin")
        qid = admin_catalog["questions"][0]["id"]
        updated = api_client.put(f"/admin/questions/{qid}/options", json={"options": _options(correct=1, n=2)}).json()
        assert [o["is_correct"] for o in updated["options"]] == [False, True]
        assert api_client.delete(f"/admin/questions/{qid}").status_code == 204
        db_session.expire_all()
        assert db_session.get(Question, qid) is None

    def test_delete_source_cascades(self, api_client: TestClient, admin_catalog, login, db_session):
        login("admin@example.com", role="admin")
        response = api_client.delete(f"/admin/catalog/sources/{admin_catalog['source']['id']}")
        assert response.status_code == 204
        db_session.expire_all()
        assert db_session.query(Question).count() == 0

    def test_import(self, api_client: TestClient, login):
        login("admin@example.com", role="admin")
        doc = [
            {
                "code": "GEO",
                "name": "Geography",
                "sources": [{"name": "Atlas", "type": "book", "modules": [
                    {"name": "Rivers", "questions": [{"content": "Longest river?", "options": _options()}]},
                ]}],
            }
        ]
        response = api_client.post("/admin/import", json=doc)
        assert response.status_code == 200
        assert response.json()["questions"] == 1

    def test_duplicate_subject_code_is_conflict(self, api_client: TestClient, admin_catalog, login):
        login("admin@example.com", role="admin")
        response = api_client.post("/admin/subjects", json={"name": "Physics again", "code": "PHY"})
        assert response.status_code == 409
        assert response.json()["code"] == "conflict"

        other = api_client.post("/admin/subjects", json={"name": "Music", "code": "MUS"}).json()
        renamed = api_client.put(
            f"/admin/subjects/{other['id']}", json={"name": "Music", "code": "PHY", "mastery_threshold": 3}
        )
        assert renamed.status_code == 409

    def test_enrollment_toggle(self, api_client: TestClient, admin_catalog, login):
        student = login("learner@example.com")
        login("admin@example.com", role="admin")
        subject_id = admin_catalog["subject"]["id"]
        body = {"user_id": student.id, "subject_id": subject_id, "enrolled": True}

        assert api_client.post("/admin/enrollments", json=body).json() == {"success": True, "changed": True}
        assert api_client.post("/admin/enrollments", json=body).json() == {"success": True, "changed": False}
        assert api_client.get(f"/admin/students/{student.id}/enrollments").json()["subject_ids"] == [subject_id]
        students = api_client.get("/admin/students").json()["students"]
        assert [s["email"] for s in students] == ["learner@example.com"]


@pytest.mark.integration
class TestStudentQuizFlow:
    @pytest.fixture
    def enrolled(self, api_client, admin_catalog, login):
        student = login("learner@example.com", full_name="Lee Learner")
        login("admin@example.com", role="admin")
        api_client.post(
            "/admin/enrollments",
            json={"user_id": student.id, "subject_id": admin_catalog["subject"]["id"], "enrolled": True},
        )
        login("learner@example.com")
        return admin_catalog

    def test_unenrolled_student_refused(self, api_client: TestClient, admin_catalog, login):
        login("outsider@example.com")
        assert api_client.get("/catalog/subjects").json() == {"subjects": []}
        response = api_client.post("/quiz/sessions", json={"subject_id": admin_catalog["subject"]["id"]})
        assert response.status_code == 403
        assert response.json()["code"] == "permission_denied"

    def test_catalog_browsing(self, api_client: TestClient, enrolled):
        subjects = api_client.get("/catalog/subjects").json()["subjects"]
        assert [s["code"] for s in subjects] == ["PHY"]
        sources = api_client.get(f"/catalog/subjects/{subjects[0]['id']}/sources").json()["sources"]
        assert sources[0]["type"] == "exam"
        modules = api_client.get(f"/catalog/sources/{sources[0]['id']}/modules").json()["modules"]
        assert [m["name"] for m in modules] == ["Forces"]

    def test_full_quiz_round_trip(self, api_client: TestClient, enrolled):
        created = api_client.post("/quiz/sessions", json={"subject_id": enrolled["subject"]["id"], "count": 4, "mode": "exam"})
        assert created.status_code == 201
        session_id = created.json()["session_id"]

        view = api_client.get(f"/quiz/sessions/{session_id}").json()
        assert view["title"] == "Practice: Physics"
        assert len(view["questions"]) == 4
        first, second = view["questions"][0], view["questions"][1]

        # choice 0 is the key for every question built by admin_catalog
        saved = api_client.put(
            f"/quiz/sessions/{session_id}/answers",
            json={"question_id": first["question_id"], "option_id": first["options"][0]["id"]},
        )
        assert saved.json() == {"success": True}

        submitted = api_client.post(
            f"/quiz/sessions/{session_id}/submit",
            json={"answers": {second["question_id"]: second["options"][1]["id"]}},
        ).json()
        assert submitted["score"] == 50
        assert submitted["answered"] == 2
        assert submitted["already_completed"] is False

        again = api_client.post(f"/quiz/sessions/{session_id}/submit", json={"answers": {}}).json()
        assert again["already_completed"] is True
        assert again["score"] == 50

        late = api_client.put(
            f"/quiz/sessions/{session_id}/answers",
            json={"question_id": first["question_id"], "option_id": first["options"][0]["id"]},
        )
        assert late.status_code == 409
        assert late.json()["code"] == "already_completed"

        result = api_client.get(f"/quiz/sessions/{session_id}/result").json()
        assert (result["correct"], result["wrong"], result["total"]) == (1, 3, 4)

        history = api_client.get("/quiz/history").json()["sessions"]
        assert [h["id"] for h in history] == [session_id]
        assert history[0]["module_name"] == "Forces"

        stats = api_client.get("/stats/subjects").json()
        assert stats["global"]["total_questions"] == 4
        assert stats["subjects"][0]["quiz_count"] == 1
        assert stats["subjects"][0]["avg_score"] == 50

        board = api_client.get("/stats/leaderboard?n=5").json()["entries"]
        assert board[0]["name"] == "Lee Learner"
        assert board[0]["rank"] == 1

        analytics = api_client.get("/stats/analytics").json()["subjects"]
        assert analytics[0]["sources"][0]["modules"][0]["accuracy"] == 50

        summary = api_client.get("/user/stats").json()
        assert summary["total_quiz"] == 1

    def test_study_mode_feedback_and_lock(self, api_client: TestClient, enrolled):
        created = api_client.post("/quiz/sessions", json={"subject_id": enrolled["subject"]["id"], "count": 2, "mode": "study"})
        session_id = created.json()["session_id"]
        first = api_client.get(f"/quiz/sessions/{session_id}").json()["questions"][0]
        assert first["correct_option_id"] is None

        wrong, key = first["options"][1]["id"], first["options"][0]["id"]
        api_client.put(f"/quiz/sessions/{session_id}/answers", json={"question_id": first["question_id"], "option_id": wrong})

        answered = api_client.get(f"/quiz/sessions/{session_id}").json()["questions"][0]
        assert answered["correct_option_id"] == key
        assert answered["is_correct"] is False
        assert answered["explanation"] == "Newton"

        changed = api_client.put(
            f"/quiz/sessions/{session_id}/answers", json={"question_id": first["question_id"], "option_id": key}
        )
        assert changed.status_code == 409
        assert changed.json()["code"] == "answer_locked"

    def test_all_mastered_message(self, api_client: TestClient, enrolled, db_session):
        from quizbank.models.models import Mastery
        from quizbank.utils.auth import get_user_by_email
        learner = get_user_by_email("learner@example.com", db_session)
        for q in enrolled["questions"]:
            db_session.add(Mastery(user_id=learner.id, question_id=q["id"], correct_count=2))
        db_session.commit()

        response = api_client.post("/quiz/sessions", json={"subject_id": enrolled["subject"]["id"]})
        assert response.status_code == 409
        assert response.json()["detail"].startswith("Great work")

    def test_empty_scope(self, api_client: TestClient, enrolled):
        response = api_client.post("/quiz/sessions", json={"module_ids": []})
        assert response.status_code == 422
        assert response.json()["code"] == "empty_scope"

    def test_count_validation(self, api_client: TestClient, enrolled):
        response = api_client.post("/quiz/sessions", json={"subject_id": enrolled["subject"]["id"], "count": 0})
        assert response.status_code == 422

    def test_unknown_session(self, api_client: TestClient, enrolled):
        assert api_client.get("/quiz/sessions/does-not-exist").status_code == 404


@pytest.mark.integration
class TestProfileRoutes:
    def test_update_name(self, api_client: TestClient, login):
        login("renamer@example.com")
        response = api_client.patch("/user/profile", json={"full_name": "  Robin Rename "})
        assert response.status_code == 200
        assert response.json()["full_name"] == "Robin Rename"
        assert api_client.get("/auth/me").json()["full_name"] == "Robin Rename"

    def test_name_too_short(self, api_client: TestClient, login):
        login("short@example.com")
        assert api_client.patch("/user/profile", json={"full_name": " ab "}).status_code == 400
