from datetime import datetime

from sqlalchemy import Column, Integer, DateTime, Text, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from envie2sortir.db.session import Base


class UserComment(Base):
    __tablename__ = "user_comments"
    # Un seul avis par utilisateur et par établissement
    __table_args__ = (UniqueConstraint("user_id", "establishment_id", name="uq_user_comment_establishment"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    establishment_id = Column(Integer, ForeignKey("establishments.id", ondelete="CASCADE"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    rating = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="comments")
    establishment = relationship("Establishment", back_populates="comments")

    def __repr__(self):
        return f"<UserComment(id={self.id}, user_id={self.user_id}, establishment_id={self.establishment_id})>"
