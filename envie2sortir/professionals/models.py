from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey, Text
from sqlalchemy.orm import relationship

from envie2sortir.db.session import Base

SUBSCRIPTION_FREE = "FREE"
SUBSCRIPTION_PREMIUM = "PREMIUM"
SUBSCRIPTION_WAITLIST_BETA = "WAITLIST_BETA"

SUBSCRIPTION_FEATURES = {
    SUBSCRIPTION_FREE: {"max_images": 1, "can_use_promotions": False},
    SUBSCRIPTION_PREMIUM: {"max_images": 5, "can_use_promotions": True},
    # Premium gratuit jusqu'au lancement
    SUBSCRIPTION_WAITLIST_BETA: {"max_images": 5, "can_use_promotions": True},
}


def has_premium_access(subscription: str | None) -> bool:
    return subscription in (SUBSCRIPTION_PREMIUM, SUBSCRIPTION_WAITLIST_BETA)


def get_subscription_features(subscription: str | None) -> dict:
    return SUBSCRIPTION_FEATURES.get(subscription or SUBSCRIPTION_FREE, SUBSCRIPTION_FEATURES[SUBSCRIPTION_FREE])


class Professional(Base):
    """Compte propriétaire d'établissement, distinct du compte utilisateur."""
    __tablename__ = "professionals"

    id = Column(Integer, primary_key=True, index=True)
    siret = Column(String(14), unique=True, nullable=False, index=True)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    email = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    phone = Column(String(20), nullable=True)
    company_name = Column(String, nullable=False)
    legal_status = Column(String, nullable=True)
    subscription_plan = Column(String(20), default=SUBSCRIPTION_FREE, nullable=False)
    siret_verified = Column(Boolean, default=False)
    siret_verified_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    establishments = relationship("Establishment", back_populates="owner")
    conversations = relationship("Conversation", back_populates="professional")

    def __repr__(self):
        return f"<Professional(id={self.id}, siret='{self.siret}', email='{self.email}')>"

    @property
    def user_type(self):
        return "professional"

    @property
    def role(self):
        return "pro"

    @property
    def is_admin(self):
        return False

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()


class SubscriptionLog(Base):
    __tablename__ = "subscription_logs"

    id = Column(Integer, primary_key=True, index=True)
    professional_id = Column(Integer, ForeignKey("professionals.id", ondelete="CASCADE"), nullable=False)
    old_status = Column(String(20), nullable=True)
    new_status = Column(String(20), nullable=False)
    reason = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)


UPDATE_PENDING = "pending"
UPDATE_APPROVED = "approved"
UPDATE_REJECTED = "rejected"


class ProfessionalUpdateRequest(Base):
    """Demande de modification d'un champ sensible, validée par un administrateur."""
    __tablename__ = "professional_update_requests"

    id = Column(Integer, primary_key=True, index=True)
    professional_id = Column(Integer, ForeignKey("professionals.id", ondelete="CASCADE"), nullable=False, index=True)
    field_name = Column(String(50), nullable=False)
    old_value = Column(Text, nullable=True)
    new_value = Column(Text, nullable=False)
    status = Column(String(20), default=UPDATE_PENDING, nullable=False, index=True)
    sms_verified = Column(Boolean, default=False, nullable=False)
    email_verification_token = Column(String(64), unique=True, nullable=True, index=True)
    is_email_verified = Column(Boolean, default=False, nullable=False)
    rejection_reason = Column(Text, nullable=True)
    requested_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    reviewed_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    professional = relationship("Professional")

    def __repr__(self):
        return f"<ProfessionalUpdateRequest(id={self.id}, field='{self.field_name}', status='{self.status}')>"
