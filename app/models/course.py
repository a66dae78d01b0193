"""Course catalog row and its student roster (one roster row per student and course)."""
from datetime import datetime

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from .base import utc_datetime, utcnow


class Course(SQLModel, table=True):
    __tablename__ = "courses"

    id: str = Field(primary_key=True)
    title: str
    image: str = ""
    pricing: float = 0
    instructor_id: str = Field(index=True)
    instructor_name: str = ""
    created_at: datetime = Field(default_factory=utcnow, sa_type=utc_datetime())


class CourseStudent(SQLModel, table=True):
    __tablename__ = "course_students"
    __table_args__ = (UniqueConstraint("course_id", "student_id", name="ux_course_student"),)

    id: int | None = Field(default=None, primary_key=True)
    course_id: str = Field(foreign_key="courses.id", index=True)
    student_id: str = Field(index=True)
    student_name: str = ""
    student_email: str = ""
    paid_amount: float = 0
    created_at: datetime = Field(default_factory=utcnow, sa_type=utc_datetime())
