"""
Project model - one (login, project, date) fact per project attempt.

A student may hold several records for the same project name (retries).
A score of exactly -42 flags the attempt for cheating rather than grading it.
"""

from sqlalchemy import Column, Integer, Float, Text, Index, String
from app.database import Base


class Project(Base):
    """SQLAlchemy model for the projects table."""
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, autoincrement=True)
    campus_id = Column(Integer, nullable=False)
    login = Column(String(50), nullable=False,
                   doc="Login of the student owning the attempt")
    project = Column(Text, nullable=False, doc="Project name")
    score = Column(Float, nullable=False, default=0,
                   doc="Final mark, -42 for a cheating flag")
    status = Column(Text, nullable=False,
                    doc="Status category: success | finished | fail | in_progress")
    date = Column(Text, nullable=False, doc="Attempt date as YYYY-MM-DD")

    __table_args__ = (
        Index("ix_projects_login", "login"),
        Index("ix_projects_login_project_date", "login", "project", "date"),
        Index("ix_projects_score", "score"),
    )

    def __repr__(self):
        return f"<Project(login='{self.login}', project='{self.project}', score={self.score}, status='{self.status}')>"
