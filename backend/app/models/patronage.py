"""
Patronage models - the mentor (godfather) / mentee (child) graph.

Two encodings exist across sync revisions:
- Patronage: one row per student listing its godfathers and children
- PatronageEdge: one row per directed edge (user_login -> godfather_login)
"""

import json
from datetime import datetime, timezone
from sqlalchemy import Column, Integer, Text, DateTime, Index, String
from app.database import Base


def _parse_login_list(value) -> list:
    """Parse a JSON list of {"login": ...} objects or plain login strings."""
    if isinstance(value, str):
        try:
            value = json.loads(value) if value else []
        except (json.JSONDecodeError, TypeError):
            return []
    if not isinstance(value, list):
        return []
    logins = []
    for entry in value:
        if isinstance(entry, dict):
            entry = entry.get("login")
        if isinstance(entry, str) and entry:
            logins.append(entry)
    return logins


class Patronage(Base):
    """SQLAlchemy model for the patronages table (per-student encoding)."""
    __tablename__ = "patronages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    login = Column(String(50), nullable=False)
    campus_id = Column(Integer, nullable=False)
    godfathers = Column(Text, nullable=False, default="[]",
                        doc='Mentors as JSON: [{"login": "..."}]')
    children = Column(Text, nullable=False, default="[]",
                      doc='Mentees as JSON: [{"login": "..."}]')
    last_updated = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        Index("ix_patronages_login", "login"),
    )

    @property
    def godfather_logins(self):
        return _parse_login_list(self.godfathers)

    @property
    def children_logins(self):
        return _parse_login_list(self.children)

    def __repr__(self):
        return f"<Patronage(login='{self.login}')>"


class PatronageEdge(Base):
    """SQLAlchemy model for the patronage_edges table (one mentor edge per row)."""
    __tablename__ = "patronage_edges"

    id = Column(Integer, primary_key=True, autoincrement=True)
    campus_id = Column(Integer, nullable=False)
    user_login = Column(String(50), nullable=False, doc="Mentee login")
    godfather_login = Column(String(50), nullable=False, doc="Mentor login")

    __table_args__ = (
        Index("ix_patronage_edges_user_login", "user_login"),
        Index("ix_patronage_edges_godfather_login", "godfather_login"),
    )

    def __repr__(self):
        return f"<PatronageEdge(user='{self.user_login}', godfather='{self.godfather_login}')>"
