from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, Text, Boolean, Float, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from envie2sortir.db.session import Base


class Event(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    establishment_id = Column(Integer, ForeignKey("establishments.id", ondelete="CASCADE"), nullable=False, index=True)

    title = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=True)
    modality = Column(Text, nullable=True)
    start_date = Column(DateTime, nullable=False, index=True)
    end_date = Column(DateTime, nullable=True)
    image_url = Column(String(500), nullable=True)
    price = Column(Float, nullable=True)
    price_unit = Column(String(50), nullable=True)
    max_capacity = Column(Integer, nullable=True)
    is_recurring = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    establishment = relationship("Establishment", back_populates="events")
    engagements = relationship("EventEngagement", back_populates="event", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Event(id={self.id}, title='{self.title}', start_date='{self.start_date}')>"


class EventEngagement(Base):
    __tablename__ = "event_engagements"
    __table_args__ = (UniqueConstraint("event_id", "user_id", name="uq_event_engagement_user"),)

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(20), nullable=False)  # envie, grande-envie, decouvrir, pas-envie
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    event = relationship("Event", back_populates="engagements")
    user = relationship("User")
