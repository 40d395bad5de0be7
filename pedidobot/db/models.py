"""Database models."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, JSON, Numeric
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class OrderDraftRecord(Base):
    """In-progress order draft, one row per conversation."""

    __tablename__ = "order_drafts"

    conversation_id = Column(String, primary_key=True)
    payload = Column(JSON, nullable=False)  # Serialized OrderDraft
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class Order(Base):
    """Confirmed order model."""

    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    reference = Column(String, unique=True, index=True, nullable=False)
    conversation_id = Column(String, index=True, nullable=False)
    status = Column(String, default="confirmed", nullable=False)  # confirmed, delivered, cancelled
    total = Column(Numeric(10, 2), nullable=False)
    estimated_minutes = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")


class OrderItem(Base):
    """Confirmed order line."""

    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False)
    menu_item_id = Column(String, nullable=False)
    item_name = Column(String, nullable=False)
    quantity = Column(Integer, default=1, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    category = Column(String, nullable=True)

    # Relationships
    order = relationship("Order", back_populates="items")


class CustomerProfile(Base):
    """Customer history keyed by conversation (phone number)."""

    __tablename__ = "customer_profiles"

    id = Column(Integer, primary_key=True, index=True)
    conversation_id = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=True)
    order_count = Column(Integer, default=0, nullable=False)
    last_order_at = Column(DateTime, nullable=True)
    last_order_summary = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
