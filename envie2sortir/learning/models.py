from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, Boolean, Float, JSON

from envie2sortir.db.session import Base


class EstablishmentLearningPattern(Base):
    __tablename__ = "establishment_learning_patterns"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    detected_type = Column(String(60), nullable=False)
    corrected_type = Column(String(60), nullable=True)
    google_types = Column(JSON, nullable=False, default=list)
    keywords = Column(JSON, nullable=False, default=list)
    confidence = Column(Float, nullable=False, default=0.0)
    is_corrected = Column(Boolean, default=False, nullable=False)
    corrected_by = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<EstablishmentLearningPattern(id={self.id}, name='{self.name}', type='{self.detected_type}')>"

    @property
    def effective_type(self):
        return self.corrected_type or self.detected_type
