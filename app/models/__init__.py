from .audit import AuditLog
from .course import Course, CourseStudent
from .error_log import ErrorLog
from .order import Order, OrderStatus, PaymentMethod, PaymentStatus
from .security_log import SecurityLog
from .student_courses import StudentCourseEntry, StudentCourses

__all__ = [
    "AuditLog",
    "Course",
    "CourseStudent",
    "ErrorLog",
    "Order",
    "OrderStatus",
    "PaymentMethod",
    "PaymentStatus",
    "SecurityLog",
    "StudentCourseEntry",
    "StudentCourses",
]
