"""
Student model - represents a campus user synced from the 42 intranet.

Each student is uniquely identified by their intranet id and login.
Status flags are independent booleans: storage allows contradictory
combinations (e.g. active and alumni), filters test one flag at a time.
"""

import json
from datetime import datetime, timezone
from sqlalchemy import Column, Integer, Float, Text, Boolean, DateTime, Index, String
from app.database import Base


class Student(Base):
    """
    SQLAlchemy model for the students table.

    Read-only to the API: rows are written by the external ingestion sync.
    The image field holds the intranet image JSON ({"link", "versions"}).
    """
    __tablename__ = "students"

    id = Column(Integer, primary_key=True, autoincrement=False,
                doc="Intranet user id")
    login = Column(String(50), nullable=False, unique=True,
                   doc="Intranet login (unique, immutable)")
    campus_id = Column(Integer, nullable=False,
                       doc="Primary campus of the student")
    email = Column(Text, nullable=True)
    first_name = Column(Text, nullable=True)
    last_name = Column(Text, nullable=True)
    usual_full_name = Column(Text, nullable=True)
    displayname = Column(Text, nullable=True)
    image = Column(Text, nullable=True,
                   doc="Image payload as JSON string")

    level = Column(Float, nullable=True, doc="Cursus level")
    wallet = Column(Integer, nullable=True, doc="Wallet balance")
    correction_point = Column(Integer, nullable=True, doc="Evaluation points")
    grade = Column(Text, nullable=True, doc="Cursus grade (e.g. Member, Learner)")
    pool_month = Column(Text, nullable=True, doc="Pool month as lowercase English name")
    pool_year = Column(Text, nullable=True, doc="Pool year as four digits")

    active = Column(Boolean, nullable=False, default=True, doc="active? flag")
    alumni = Column(Boolean, nullable=False, default=False, doc="alumni? flag")
    staff = Column(Boolean, nullable=False, default=False, doc="staff? flag")
    blackholed = Column(Boolean, nullable=False, default=False)
    freeze = Column(Boolean, nullable=False, default=False)
    sinker = Column(Boolean, nullable=False, default=False)
    is_test = Column(Boolean, nullable=False, default=False)
    is_piscine = Column(Boolean, nullable=False, default=False)
    is_trans = Column(Boolean, nullable=False, default=False)

    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc),
                        doc="Timestamp of the last sync touching this row")

    __table_args__ = (
        Index("ix_students_campus_id", "campus_id"),
        Index("ix_students_pool", "pool_month", "pool_year"),
    )

    @property
    def image_dict(self):
        """Parse image JSON string to dict."""
        if isinstance(self.image, dict):
            return self.image
        try:
            return json.loads(self.image) if self.image else None
        except (json.JSONDecodeError, TypeError):
            return None

    def __repr__(self):
        return f"<Student(id={self.id}, login='{self.login}', campus={self.campus_id})>"
