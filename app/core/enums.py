from enum import Enum


class UserRole(str, Enum):
    ADMIN = "admin"
    EMPLOYEE = "employee"


# Roles that may be placed on a timetable slot or given class/subject assignments.
TRAINER_ROLES = (UserRole.ADMIN.value, UserRole.EMPLOYEE.value)


class RoomType(str, Enum):
    CLASSROOM = "classroom"
    LAB = "lab"
    COMPUTER_LAB = "computer_lab"
    WORKSHOP = "workshop"
    LECTURE_HALL = "lecture_hall"
    STUDIO = "studio"
    AUDITORIUM = "auditorium"


class SlotStatus(str, Enum):
    SCHEDULED = "scheduled"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class AssignmentAction(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    NONE = "none"


# Sunday=0 .. Saturday=6
DAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")
