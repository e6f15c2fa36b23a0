from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey, JSON

from envie2sortir.db.session import Base


class AdminAction(Base):
    """Historique des actions de modération sur les établissements."""
    __tablename__ = "admin_actions"

    id = Column(Integer, primary_key=True, index=True)
    admin_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    establishment_id = Column(Integer, ForeignKey("establishments.id", ondelete="CASCADE"), nullable=False, index=True)
    action = Column(String(20), nullable=False)
    reason = Column(Text, nullable=True)
    previous_status = Column(String(20), nullable=True)
    new_status = Column(String(20), nullable=True)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False, index=True)
