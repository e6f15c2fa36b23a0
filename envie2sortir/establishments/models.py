from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, DateTime, Text, Boolean, Float, ForeignKey, JSON, UniqueConstraint
)
from sqlalchemy.orm import relationship

from envie2sortir.db.session import Base

STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"
ESTABLISHMENT_STATUSES = (STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED)


class Establishment(Base):
    __tablename__ = "establishments"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    slug = Column(String(255), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)

    address = Column(String(500), nullable=False, default="")
    city = Column(String(120), nullable=True, index=True)
    postal_code = Column(String(10), nullable=True)
    country = Column(String(60), default="France")
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    activities = Column(JSON, nullable=True)
    services = Column(JSON, nullable=True)
    ambiance = Column(JSON, nullable=True)
    payment_methods = Column(JSON, nullable=True)
    horaires_ouverture = Column(JSON, nullable=True)
    envie_tags = Column(JSON, nullable=True)
    informations_pratiques = Column(JSON, nullable=True)

    phone = Column(String(20), nullable=True)
    email = Column(String, nullable=True)
    website = Column(String, nullable=True)
    instagram = Column(String, nullable=True)
    facebook = Column(String, nullable=True)
    tiktok = Column(String, nullable=True)
    the_fork_link = Column(String, nullable=True)
    uber_eats_link = Column(String, nullable=True)

    price_min = Column(Float, nullable=True)
    price_max = Column(Float, nullable=True)
    price_level = Column(Integer, nullable=True)

    google_place_id = Column(String, nullable=True)
    google_business_url = Column(String, nullable=True)
    google_rating = Column(Float, nullable=True)
    google_review_count = Column(Integer, nullable=True)
    enriched = Column(Boolean, default=False, nullable=False)
    enrichment_date = Column(DateTime(timezone=True), nullable=True)

    status = Column(String(20), default=STATUS_PENDING, nullable=False, index=True)
    rejection_reason = Column(Text, nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)
    subscription = Column(String(20), default="FREE", nullable=False)

    avg_rating = Column(Float, nullable=True)
    total_comments = Column(Integer, default=0, nullable=False)

    owner_id = Column(Integer, ForeignKey("professionals.id"), nullable=False, index=True)
    owner = relationship("Professional", back_populates="establishments")

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    tags = relationship("EstablishmentTag", back_populates="establishment", cascade="all, delete-orphan")
    images = relationship("Image", back_populates="establishment", cascade="all, delete-orphan",
                          order_by="Image.ordre")
    tariffs = relationship("Tariff", back_populates="establishment", cascade="all, delete-orphan")
    menus = relationship("Menu", back_populates="establishment", cascade="all, delete-orphan")
    deals = relationship("DailyDeal", back_populates="establishment")
    events = relationship("Event", back_populates="establishment", cascade="all, delete-orphan")
    comments = relationship("UserComment", back_populates="establishment")

    def __repr__(self):
        return f"<Establishment(id={self.id}, slug='{self.slug}', status='{self.status}')>"

    @property
    def primary_image(self):
        for image in self.images or []:
            if image.is_primary:
                return image.url
        return self.images[0].url if self.images else None


class EstablishmentTag(Base):
    __tablename__ = "etablissement_tags"
    __table_args__ = (UniqueConstraint("establishment_id", "tag", name="uq_etablissement_tag"),)

    id = Column(Integer, primary_key=True, index=True)
    establishment_id = Column(Integer, ForeignKey("establishments.id", ondelete="CASCADE"), nullable=False, index=True)
    tag = Column(String(120), nullable=False, index=True)
    type_tag = Column(String(30), nullable=False, default="manuel")
    poids = Column(Integer, nullable=False, default=1)

    establishment = relationship("Establishment", back_populates="tags")


class Image(Base):
    __tablename__ = "images"

    id = Column(Integer, primary_key=True, index=True)
    establishment_id = Column(Integer, ForeignKey("establishments.id", ondelete="CASCADE"), nullable=False)
    url = Column(String(500), nullable=False)
    is_primary = Column(Boolean, default=False)
    ordre = Column(Integer, default=0)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    establishment = relationship("Establishment", back_populates="images")


class Tariff(Base):
    __tablename__ = "tariffs"

    id = Column(Integer, primary_key=True, index=True)
    establishment_id = Column(Integer, ForeignKey("establishments.id", ondelete="CASCADE"), nullable=False)
    label = Column(String(255), nullable=False)
    price = Column(Float, nullable=False)

    establishment = relationship("Establishment", back_populates="tariffs")


class Menu(Base):
    __tablename__ = "establishment_menus"

    id = Column(Integer, primary_key=True, index=True)
    establishment_id = Column(Integer, ForeignKey("establishments.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    file_url = Column(String(500), nullable=False)
    file_name = Column(String(255), nullable=True)
    file_size = Column(Integer, nullable=True)
    mime_type = Column(String(100), nullable=True)
    ordre = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    establishment = relationship("Establishment", back_populates="menus")
