"""
Feedback model - evaluation feedback from an evaluator to an evaluated student.
"""

from sqlalchemy import Column, Integer, Float, Text, Index, String
from app.database import Base


class Feedback(Base):
    """
    SQLAlchemy model for the feedbacks table.

    rating is nullable: feedback without a rating still counts toward
    feedback_count but not toward avg_rating.
    """
    __tablename__ = "feedbacks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    campus_id = Column(Integer, nullable=False)
    evaluator = Column(String(50), nullable=False, doc="Login giving the feedback")
    evaluated = Column(String(50), nullable=False, doc="Login receiving the feedback")
    project = Column(Text, nullable=True)
    date = Column(Text, nullable=True, doc="Evaluation date as YYYY-MM-DD")
    rating = Column(Float, nullable=True, doc="Rating on the intranet 0-4 scale")
    comment = Column(Text, nullable=True)

    __table_args__ = (
        Index("ix_feedbacks_evaluated", "evaluated"),
    )

    def __repr__(self):
        return f"<Feedback(evaluator='{self.evaluator}', evaluated='{self.evaluated}', rating={self.rating})>"
