"""
SQLAlchemy EmailLog model
"""
from sqlalchemy import Column, Integer, String, DateTime, UniqueConstraint
from sqlalchemy.sql import func

from storefront.database import Base


class EmailLog(Base):
    """Audit and dedup record of a transactional email"""

    __tablename__ = "email_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    order_id = Column(String(64), nullable=False, index=True)
    email_type = Column(String(50), nullable=False)
    recipient_email = Column(String(255), nullable=False, index=True)
    subject = Column(String(500), nullable=False)
    status = Column(String(20), nullable=False)  # sent / failed
    template_id = Column(String(100), nullable=True)
    message_id = Column(String(255), nullable=True)
    error = Column(String(1000), nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint('order_id', 'email_type', name='uq_email_logs_order_type'),
    )

    def __repr__(self):
        return f"<EmailLog(order_id='{self.order_id}', type='{self.email_type}', status='{self.status}')>"
