"""Purchased courses per user: one header row per user, entries kept in purchase order."""
from datetime import datetime

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from .base import utc_datetime, utcnow


class StudentCourses(SQLModel, table=True):
    __tablename__ = "student_courses"

    id: int | None = Field(default=None, primary_key=True)
    user_id: str = Field(unique=True, index=True)
    created_at: datetime = Field(default_factory=utcnow, sa_type=utc_datetime())


class StudentCourseEntry(SQLModel, table=True):
    __tablename__ = "student_course_entries"
    __table_args__ = (UniqueConstraint("student_courses_id", "course_id", name="ux_student_course_entry"),)

    id: int | None = Field(default=None, primary_key=True)
    student_courses_id: int = Field(foreign_key="student_courses.id", index=True)
    position: int = 0
    course_id: str = Field(index=True)
    title: str
    instructor_id: str
    instructor_name: str
    date_of_purchase: datetime = Field(default_factory=utcnow, sa_type=utc_datetime())
    course_image: str = ""
