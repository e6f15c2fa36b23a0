# envie2sortir/auth/models.py
from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, Boolean, JSON
from sqlalchemy.orm import relationship

from envie2sortir.db.session import Base


class User(Base):
    """Compte consommateur (ou administrateur via role="admin")."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    phone = Column(String, nullable=True)
    # Nul pour les comptes créés par l'inscription newsletter
    hashed_password = Column(String, nullable=True)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    role = Column(String(20), default="user", nullable=False)
    is_verified = Column(Boolean, default=False)
    newsletter_opt_in = Column(Boolean, default=False, nullable=False)
    preferences = Column(JSON, nullable=True)
    karma_points = Column(Integer, default=0, nullable=False)
    gamification_badges = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    comments = relationship("UserComment", back_populates="user", cascade="all, delete-orphan")
    favorites = relationship("UserFavorite", back_populates="user", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"

    @property
    def user_type(self):
        return "user"

    @property
    def is_admin(self):
        return self.role == "admin"

    @property
    def full_name(self):
        """Propriété calculée pour le nom complet"""
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    @property
    def display_name(self):
        """Nom d'affichage pour l'interface utilisateur"""
        return self.full_name or self.email
