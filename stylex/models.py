"""
Core tenant tables read by the billing engine.

Shops, staff and notifications are owned by the booking CRUD layer; only the
columns the engine relies on are mapped here.
"""

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    role = Column(String(50), nullable=False, default="client")  # admin, owner, barber, client
    # Shop where this user works as a professional (barbers, and owners who also cut)
    shop_id = Column(
        Integer,
        ForeignKey("barber_shops.id", use_alter=True, name="fk_users_shop_id"),
        nullable=True,
        index=True,
    )
    deleted_at = Column(DateTime, nullable=True)  # Soft delete
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    shops = relationship("BarberShop", back_populates="owner", foreign_keys="BarberShop.owner_id")


class BarberShop(Base):
    __tablename__ = "barber_shops"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    name = Column(String(255), nullable=False)
    deleted_at = Column(DateTime, nullable=True)  # Soft delete
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    owner = relationship("User", back_populates="shops", foreign_keys=[owner_id])


class Notification(Base):
    """In-app notification row; push delivery is handled elsewhere"""

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String(100), nullable=False)  # e.g. SUBSCRIPTION_EXPIRED
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    status = Column(String(50), default="PENDING", nullable=False)  # PENDING, SENT, READ
    payload = Column(JSON, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
