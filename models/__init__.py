from models.course import Course
from models.student import Student
from models.teacher import Teacher, TeacherSpecialty
from models.session import Session, SessionInput, SessionType, CreatorRole
from models.training_data import TrainingData
from models.time_window import TimeWindow

__all__ = [
    "Course",
    "Student",
    "Teacher",
    "TeacherSpecialty",
    "Session",
    "SessionInput",
    "SessionType",
    "CreatorRole",
    "TrainingData",
    "TimeWindow",
]
