"""
SQLAlchemy Order and OrderItem models
"""
import uuid

from sqlalchemy import (
    Column, Integer, String, Float, DateTime, JSON, ForeignKey, CheckConstraint
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from storefront.database import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")

ORDER_STATUSES = (
    'pending', 'processing', 'completed', 'paid', 'payment_failed', 'cancelled'
)


def generate_uuid() -> str:
    return str(uuid.uuid4())


class Order(Base):
    """Order database model"""

    __tablename__ = "orders"

    id = Column(String(64), primary_key=True, default=generate_uuid)
    stripe_payment_intent_id = Column(String(255), nullable=True, unique=True, index=True)
    customer_name = Column(String(255), nullable=False)
    customer_email = Column(String(255), nullable=False, index=True)
    total_amount = Column(Float, nullable=False)
    currency = Column(String(3), nullable=False, default='USD')
    status = Column(String(50), nullable=False, default='pending', index=True)
    order_items = Column(JSONType, nullable=True)  # Snapshot at order time
    shipping_address = Column(JSONType, nullable=True)
    billing_address = Column(JSONType, nullable=True)
    metadata_ = Column("metadata", JSONType, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id"
    )

    # Constraints
    __table_args__ = (
        CheckConstraint('total_amount > 0', name='check_total_amount_positive'),
        CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'paid', 'payment_failed', 'cancelled')",
            name='check_order_status_valid'
        ),
    )

    def __repr__(self):
        return (
            f"<Order(id='{self.id}', payment_intent='{self.stripe_payment_intent_id}', "
            f"total={self.total_amount}, status='{self.status}')>"
        )


class OrderItem(Base):
    """Line item owned by an order"""

    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    order_id = Column(String(64), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Float, nullable=False)
    total_price = Column(Float, nullable=False)
    product_snapshot = Column(JSONType, nullable=True)  # Customization at purchase time
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    order = relationship("Order", back_populates="items")

    __table_args__ = (
        CheckConstraint('quantity > 0', name='check_item_quantity_positive'),
    )

    def __repr__(self):
        return f"<OrderItem(id={self.id}, order_id='{self.order_id}', product='{self.product_name}', quantity={self.quantity})>"
