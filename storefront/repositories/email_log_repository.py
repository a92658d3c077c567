"""
EmailLog Repository - Data Access Layer
"""
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import desc
from sqlalchemy.orm import Session

from storefront.models.email_log import EmailLog
from storefront.database import dialect_insert


class EmailLogRepository:
    """Repository for transactional email audit records"""

    def __init__(self, db: Session):
        self.db = db

    def find_sent_for_order(self, order_id: str, email_type: str) -> Optional[EmailLog]:
        """Latest successful send of this email type for the order"""
        return self.db.query(EmailLog).filter(
            EmailLog.order_id == order_id,
            EmailLog.email_type == email_type,
            EmailLog.status == 'sent'
        ).order_by(desc(EmailLog.sent_at)).first()

    def find_recent_sent_to(self, recipient: str, email_type: str, window_minutes: int) -> Optional[EmailLog]:
        """Latest successful send to the recipient within the trailing window"""
        cutoff = datetime.now(timezone.utc) - timedelta(minutes=window_minutes)
        return self.db.query(EmailLog).filter(
            EmailLog.recipient_email == recipient,
            EmailLog.email_type == email_type,
            EmailLog.status == 'sent',
            EmailLog.sent_at >= cutoff
        ).order_by(desc(EmailLog.sent_at)).first()

    def find_sent_matching_order(self, order_id: str, recipient: str, email_type: str) -> Optional[EmailLog]:
        """Successful send to the recipient whose subject mentions the order ID"""
        return self.db.query(EmailLog).filter(
            EmailLog.email_type == email_type,
            EmailLog.recipient_email == recipient,
            EmailLog.status == 'sent',
            EmailLog.subject.contains(order_id, autoescape=True)
        ).order_by(desc(EmailLog.created_at)).first()

    def upsert(
        self,
        order_id: str,
        email_type: str,
        recipient: str,
        subject: str,
        status: str,
        template_id: Optional[str] = None,
        message_id: Optional[str] = None,
        error: Optional[str] = None
    ) -> EmailLog:
        """Record a send attempt, keyed by (order_id, email_type)"""
        table = EmailLog.__table__
        values = {
            'order_id': order_id,
            'email_type': email_type,
            'recipient_email': recipient,
            'subject': subject,
            'status': status,
            'template_id': template_id,
            'message_id': message_id,
            'error': error[:1000] if error else None,
            'sent_at': datetime.now(timezone.utc) if status == 'sent' else None,
        }

        insert = dialect_insert(self.db)
        stmt = insert(table).values(values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.order_id, table.c.email_type],
            set_={
                column: stmt.excluded[column]
                for column in values
                if column not in ('order_id', 'email_type')
            }
        )
        self.db.execute(stmt)
        self.db.commit()

        return self.db.query(EmailLog).populate_existing().filter(
            EmailLog.order_id == order_id,
            EmailLog.email_type == email_type
        ).one()
