from app.models.student import Student
from app.models.project import Project
from app.models.location import LocationStats, LocationSession
from app.models.feedback import Feedback
from app.models.patronage import Patronage, PatronageEdge

__all__ = [
    "Student", "Project", "LocationStats", "LocationSession",
    "Feedback", "Patronage", "PatronageEdge",
]
