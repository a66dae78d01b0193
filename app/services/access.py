"""
Course access: a purchased course is added to the user's StudentCourses list and the
user is added to the course roster.

Both writes share one transaction. Each is also idempotent on its own (check before insert,
backed by a unique constraint), so running grant() again after any failure converges
to the same end state.
"""
import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from app.models import Course, CourseStudent, StudentCourseEntry, StudentCourses
from app.models.base import utcnow

log = logging.getLogger("coursepay.access")


@dataclass(frozen=True)
class CourseMeta:
    """What the student's course list shows for a purchase."""

    title: str
    instructor_id: str
    instructor_name: str
    course_image: str = ""
    date_of_purchase: datetime | None = None


@dataclass(frozen=True)
class StudentInfo:
    name: str = ""
    email: str = ""


@dataclass(frozen=True)
class GrantResult:
    entry_added: bool
    roster_added: bool


class CourseAccessGranter:
    def __init__(self, db: Session):
        self.db = db

    def grant(
        self,
        user_id: str,
        course_id: str,
        course_meta: CourseMeta,
        price_paid: float,
        student: StudentInfo | None = None,
    ) -> GrantResult:
        """Grant access to a course. Safe to call any number of times for the same pair."""
        student = student or StudentInfo()
        try:
            result = self._grant_once(user_id, course_id, course_meta, price_paid, student)
        except IntegrityError:
            # A concurrent verify/webhook committed first; re-evaluate against committed rows.
            self.db.rollback()
            log.info("Concurrent access grant detected: user_id=%s course_id=%s", user_id, course_id)
            result = self._grant_once(user_id, course_id, course_meta, price_paid, student)
        return result

    def has_access(self, user_id: str, course_id: str) -> bool:
        return self._find_entry(user_id, course_id) is not None

    def list_courses(self, user_id: str) -> list[StudentCourseEntry]:
        header = self._get_header(user_id)
        if header is None:
            return []
        stmt = (
            select(StudentCourseEntry)
            .where(StudentCourseEntry.student_courses_id == header.id)
            .order_by(StudentCourseEntry.position)
        )
        return list(self.db.exec(stmt).all())

    def _grant_once(
        self,
        user_id: str,
        course_id: str,
        course_meta: CourseMeta,
        price_paid: float,
        student: StudentInfo,
    ) -> GrantResult:
        try:
            entry_added = self._add_student_course(user_id, course_id, course_meta)
            roster_added = self._add_to_roster(user_id, course_id, price_paid, student)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return GrantResult(entry_added=entry_added, roster_added=roster_added)

    def _get_header(self, user_id: str) -> StudentCourses | None:
        return self.db.exec(select(StudentCourses).where(StudentCourses.user_id == user_id)).first()

    def _find_entry(self, user_id: str, course_id: str) -> StudentCourseEntry | None:
        stmt = (
            select(StudentCourseEntry)
            .join(StudentCourses, StudentCourses.id == StudentCourseEntry.student_courses_id)
            .where(StudentCourses.user_id == user_id, StudentCourseEntry.course_id == course_id)
        )
        return self.db.exec(stmt).first()

    def _add_student_course(self, user_id: str, course_id: str, meta: CourseMeta) -> bool:
        header = self._get_header(user_id)
        if header is None:
            header = StudentCourses(user_id=user_id)
            self.db.add(header)
            self.db.flush()
        else:
            existing = self.db.exec(
                select(StudentCourseEntry).where(
                    StudentCourseEntry.student_courses_id == header.id,
                    StudentCourseEntry.course_id == course_id,
                )
            ).first()
            if existing is not None:
                return False

        last_position = self.db.exec(
            select(func.max(StudentCourseEntry.position)).where(StudentCourseEntry.student_courses_id == header.id)
        ).one()
        self.db.add(
            StudentCourseEntry(
                student_courses_id=header.id,
                position=(last_position if last_position is not None else -1) + 1,
                course_id=course_id,
                title=meta.title,
                instructor_id=meta.instructor_id,
                instructor_name=meta.instructor_name,
                date_of_purchase=meta.date_of_purchase or utcnow(),
                course_image=meta.course_image,
            )
        )
        self.db.flush()
        return True

    def _add_to_roster(self, user_id: str, course_id: str, price_paid: float, student: StudentInfo) -> bool:
        if self.db.get(Course, course_id) is None:
            log.warning("Course not in catalog, roster update skipped: course_id=%s user_id=%s", course_id, user_id)
            return False
        existing = self.db.exec(
            select(CourseStudent).where(CourseStudent.course_id == course_id, CourseStudent.student_id == user_id)
        ).first()
        if existing is not None:
            return False
        self.db.add(
            CourseStudent(
                course_id=course_id,
                student_id=user_id,
                student_name=student.name,
                student_email=student.email,
                paid_amount=price_paid,
            )
        )
        self.db.flush()
        return True
