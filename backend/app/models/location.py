"""
Location models - campus attendance in its two stored encodings.

- LocationStats: one row per student with a month -> day -> "HH:MM:SS" map
- LocationSession: one row per logged session with begin/end timestamps

Which encoding a deployment holds is decided once by the attendance
source detection (see app.services.sources).
"""

import json
from datetime import datetime, timezone
from sqlalchemy import Column, Integer, Text, DateTime, Index, String
from app.database import Base


class LocationStats(Base):
    """
    SQLAlchemy model for the location_stats table.

    The months field holds JSON:
    {"2024-03": {"days": {"01": "02:30:00", "02": "00:00:00"}}}
    Older syncs store {"2024-03": {"totalDuration": "41:10:00"}} instead.
    """
    __tablename__ = "location_stats"

    id = Column(Integer, primary_key=True, autoincrement=True)
    login = Column(String(50), nullable=False)
    campus_id = Column(Integer, nullable=False)
    months = Column(Text, nullable=False, default="{}",
                    doc="Month map as JSON string")
    last_updated = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        Index("ix_location_stats_login", "login"),
    )

    @property
    def months_dict(self):
        """Parse months JSON string to dict; malformed payloads read as empty."""
        if isinstance(self.months, dict):
            return self.months
        try:
            value = json.loads(self.months) if self.months else {}
        except (json.JSONDecodeError, TypeError):
            return {}
        return value if isinstance(value, dict) else {}

    def __repr__(self):
        return f"<LocationStats(login='{self.login}', campus={self.campus_id})>"


class LocationSession(Base):
    """SQLAlchemy model for the location_sessions table (one row per session)."""
    __tablename__ = "location_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    login = Column(String(50), nullable=False)
    campus_id = Column(Integer, nullable=False)
    host = Column(Text, nullable=True, doc="Workstation hostname")
    begin_at = Column(DateTime, nullable=False)
    end_at = Column(DateTime, nullable=True,
                    doc="NULL while the session is still open")

    __table_args__ = (
        Index("ix_location_sessions_login", "login"),
        Index("ix_location_sessions_begin_at", "begin_at"),
    )

    def __repr__(self):
        return f"<LocationSession(login='{self.login}', host='{self.host}', begin={self.begin_at})>"
