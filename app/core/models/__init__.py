from app.auth.models import User
from app.core.models.class_attendance import ClassAttendance
from app.core.models.class_model import SchoolClass
from app.core.models.class_subject import ClassSubject
from app.core.models.lesson_period import LessonPeriod
from app.core.models.room import Room
from app.core.models.subject import Subject
from app.core.models.term import Term, TermClass
from app.core.models.timetable import TimetableSlot
from app.core.models.timetable_settings import SETTINGS_ROW_ID, TimetableSettings
from app.core.models.trainer_class_assignment import TrainerClassAssignment
from app.core.models.trainer_subject_assignment import TrainerSubjectAssignment

__all__ = [
    "ClassAttendance",
    "ClassSubject",
    "LessonPeriod",
    "Room",
    "SETTINGS_ROW_ID",
    "SchoolClass",
    "Subject",
    "Term",
    "TermClass",
    "TimetableSettings",
    "TimetableSlot",
    "TrainerClassAssignment",
    "TrainerSubjectAssignment",
    "User",
]
