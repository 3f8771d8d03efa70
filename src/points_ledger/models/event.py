from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String, func

from points_ledger.db.base import Base


class Event(Base):
    """Reward budget of an event. Scheduling, guests and organizers live in the events service."""

    __tablename__ = "events"
    __table_args__ = (
        CheckConstraint("points_remain >= 0", name="ck_events_points_remain_non_negative"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    points_remain = Column(Integer, nullable=False, default=0, server_default="0")
    points_awarded = Column(Integer, nullable=False, default=0, server_default="0")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
