"""
Order Repository - Data Access Layer
"""
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

from sqlalchemy import desc
from sqlalchemy.orm import Session

from storefront.database import dialect_insert
from storefront.models.order import Order, OrderItem, generate_uuid

# Columns a conflicting upsert may overwrite; id and created_at stay as first written
UPSERT_UPDATABLE_COLUMNS = (
    'customer_name',
    'customer_email',
    'total_amount',
    'currency',
    'status',
    'order_items',
    'shipping_address',
    'billing_address',
    'metadata',
)


class OrderRepository:
    """Repository for Order CRUD operations"""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, order_id: str) -> Optional[Order]:
        """Get order by ID"""
        return self.db.query(Order).filter(Order.id == order_id).first()

    def get_by_payment_intent(self, payment_intent_id: str) -> Optional[Order]:
        """Get order by Stripe payment intent ID"""
        return self.db.query(Order).filter(
            Order.stripe_payment_intent_id == payment_intent_id
        ).first()

    def find_recent_by_email_and_amount(
        self,
        email: str,
        total_amount: float,
        window_minutes: int
    ) -> Optional[Order]:
        """
        Heuristic duplicate lookup for submissions without a payment intent

        Matches the customer email and exact total within the trailing window.
        """
        cutoff = datetime.now(timezone.utc) - timedelta(minutes=window_minutes)
        return self.db.query(Order).filter(
            Order.customer_email == email,
            Order.total_amount == total_amount,
            Order.created_at >= cutoff
        ).order_by(desc(Order.created_at)).first()

    def list_orders(self, email: Optional[str] = None, order_id: Optional[str] = None) -> List[Order]:
        """Get orders newest first, optionally filtered by customer email and/or ID"""
        query = self.db.query(Order)
        if email:
            query = query.filter(Order.customer_email == email)
        if order_id:
            query = query.filter(Order.id == order_id)
        return query.order_by(desc(Order.created_at)).all()

    def create(self, order_data: dict, items: Optional[List[dict]] = None) -> Order:
        """
        Create new order with its line items

        Args:
            order_data: Dictionary with order column values
            items: Line item dictionaries

        Returns:
            Created order
        """
        metadata = order_data.pop('metadata', None)
        order = Order(**order_data, metadata_=metadata)
        for item in items or []:
            order.items.append(OrderItem(**item))
        self.db.add(order)
        self.db.commit()
        self.db.refresh(order)
        return order

    def upsert_by_payment_intent(
        self,
        order_data: dict,
        items: Optional[List[dict]] = None,
        overwrite: bool = False
    ) -> Tuple[Order, bool]:
        """
        Insert an order idempotently on stripe_payment_intent_id

        Args:
            order_data: Column values; 'metadata' maps to the metadata column
            items: Line items written only when the row is newly created
            overwrite: On conflict update the existing row instead of leaving it

        Returns:
            (order, created)
        """
        payment_intent_id = order_data.get('stripe_payment_intent_id')
        if not payment_intent_id:
            return self.create(dict(order_data), items), True

        table = Order.__table__
        values = {key: value for key, value in order_data.items() if value is not None}
        if 'id' not in values:
            values['id'] = generate_uuid()

        insert = dialect_insert(self.db)
        stmt = insert(table).values(values)
        if overwrite:
            update_values = {
                column: stmt.excluded[column]
                for column in UPSERT_UPDATABLE_COLUMNS
                if column in values
            }
            update_values['updated_at'] = datetime.now(timezone.utc)
            stmt = stmt.on_conflict_do_update(
                index_elements=[table.c.stripe_payment_intent_id],
                set_=update_values
            )
        else:
            stmt = stmt.on_conflict_do_nothing(
                index_elements=[table.c.stripe_payment_intent_id]
            )

        self.db.execute(stmt)

        # The statement bypasses the identity map; reload whatever won
        order = self.db.query(Order).populate_existing().filter(
            Order.stripe_payment_intent_id == payment_intent_id
        ).one()
        created = order.id == values['id']

        if created and items:
            for item in items:
                self.db.add(OrderItem(order_id=order.id, **item))

        self.db.commit()
        self.db.refresh(order)
        return order, created

    def update_status(
        self,
        order_id: str,
        new_status: str,
        payment_intent_id: Optional[str] = None
    ) -> Optional[Order]:
        """Update order status, attaching the payment intent if the order has none"""
        order = self.get_by_id(order_id)
        if not order:
            return None

        order.status = new_status
        if payment_intent_id and not order.stripe_payment_intent_id:
            order.stripe_payment_intent_id = payment_intent_id
        order.updated_at = datetime.now(timezone.utc)
        self.db.commit()
        self.db.refresh(order)
        return order
