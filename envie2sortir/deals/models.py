from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, DateTime, Text, Boolean, Float, ForeignKey, JSON, UniqueConstraint
)
from sqlalchemy.orm import relationship

from envie2sortir.db.session import Base


class DailyDeal(Base):
    __tablename__ = "daily_deals"

    id = Column(Integer, primary_key=True, index=True)
    establishment_id = Column(Integer, ForeignKey("establishments.id", ondelete="CASCADE"), nullable=False, index=True)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    modality = Column(Text, nullable=True)
    original_price = Column(Float, nullable=True)
    discounted_price = Column(Float, nullable=True)
    image_url = Column(String(500), nullable=True)
    pdf_url = Column(String(500), nullable=True)
    promo_url = Column(String(500), nullable=True)

    date_debut = Column(DateTime, nullable=False)
    date_fin = Column(DateTime, nullable=False)
    # Heures au format "HH:MM"
    heure_debut = Column(String(5), nullable=True)
    heure_fin = Column(String(5), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)
    is_recurring = Column(Boolean, default=False, nullable=False)
    recurrence_type = Column(String(20), nullable=True)  # weekly, monthly
    recurrence_days = Column(JSON, nullable=True)  # 1 = lundi ... 7 = dimanche
    recurrence_end_date = Column(DateTime, nullable=True)

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    establishment = relationship("Establishment", back_populates="deals")
    engagements = relationship("DealEngagement", back_populates="deal", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<DailyDeal(id={self.id}, title='{self.title}')>"


class DealEngagement(Base):
    __tablename__ = "deal_engagements"
    __table_args__ = (UniqueConstraint("deal_id", "user_ip", name="uq_deal_engagement_ip"),)

    id = Column(Integer, primary_key=True, index=True)
    deal_id = Column(Integer, ForeignKey("daily_deals.id", ondelete="CASCADE"), nullable=False, index=True)
    establishment_id = Column(Integer, ForeignKey("establishments.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(10), nullable=False)  # liked, disliked
    user_ip = Column(String(64), nullable=False)
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False)

    deal = relationship("DailyDeal", back_populates="engagements")
