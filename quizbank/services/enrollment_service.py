"""
Enrollment gate: which subjects a student may see.

Every student-facing catalog read goes through allowed_subject_ids(). An empty
enrollment is an empty result downstream, never an error and never "everything".
Admin operations do not consult this service.
"""

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session as DBSession

from quizbank.models.models import Enrollment, Profile, Subject
from quizbank.services.errors import NotFound, PermissionDenied, store_boundary
from quizbank.utils.logger import configure_logging

logger = configure_logging()


class EnrollmentService:
    """Reads and toggles (user, subject) enrollments."""

    def __init__(self, db: DBSession):
        self.db = db

    @store_boundary("allowed_subject_ids", logger)
    def allowed_subject_ids(self, user_id: int) -> set[str]:
        rows = self.db.query(Enrollment.subject_id).filter(Enrollment.user_id == user_id).all()
        return {r[0] for r in rows}

    @store_boundary("is_enrolled", logger)
    def is_enrolled(self, user_id: int, subject_id: str) -> bool:
        return (
            self.db.query(Enrollment.id)
            .filter(Enrollment.user_id == user_id, Enrollment.subject_id == subject_id)
            .first()
            is not None
        )

    def require_enrolled(self, user_id: int, subject_id: str) -> None:
        if not self.is_enrolled(user_id, subject_id):
            logger.info("enrollment refused user_id=%s subject_id=%s", user_id, subject_id)
            raise PermissionDenied()

    @store_boundary("enroll", logger)
    def enroll(self, user_id: int, subject_id: str) -> bool:
        """Idempotent. Returns True when a row was created, False when it already existed."""
        if self.db.get(Profile, user_id) is None:
            raise NotFound("Student not found")
        if self.db.get(Subject, subject_id) is None:
            raise NotFound("Subject not found")
        if self.is_enrolled(user_id, subject_id):
            return False
        try:
            self.db.add(Enrollment(user_id=user_id, subject_id=subject_id))
            self.db.commit()
        except IntegrityError:
            # Lost a race with a concurrent insert of the same pair.
            self.db.rollback()
            return False
        logger.info("enrolled user_id=%s subject_id=%s", user_id, subject_id)
        return True

    @store_boundary("unenroll", logger)
    def unenroll(self, user_id: int, subject_id: str) -> bool:
        deleted = (
            self.db.query(Enrollment)
            .filter(Enrollment.user_id == user_id, Enrollment.subject_id == subject_id)
            .delete(synchronize_session=False)
        )
        self.db.commit()
        if deleted:
            logger.info("unenrolled user_id=%s subject_id=%s", user_id, subject_id)
        return bool(deleted)

    def set_enrollment(self, user_id: int, subject_id: str, enrolled: bool) -> bool:
        """Admin toggle. Returns whether anything changed."""
        if enrolled:
            return self.enroll(user_id, subject_id)
        return self.unenroll(user_id, subject_id)

    @store_boundary("student_enrollments", logger)
    def student_enrollments(self, user_id: int) -> list[str]:
        rows = (
            self.db.query(Enrollment.subject_id)
            .filter(Enrollment.user_id == user_id)
            .order_by(Enrollment.created_at.asc(), Enrollment.id.asc())
            .all()
        )
        return [r[0] for r in rows]

    @store_boundary("list_students", logger)
    def list_students(self) -> list[Profile]:
        return (
            self.db.query(Profile)
            .filter(Profile.role != "admin")
            .order_by(Profile.full_name.asc(), Profile.email.asc())
            .all()
        )
