"""
Notification sink for appointment events.
Fire-and-forget: a failed notification is logged and never aborts a booking.
"""
import logging
from typing import Optional, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from agenda.models.notification import Notification

logger = logging.getLogger(__name__)


class NotificationService:

    @staticmethod
    def notify(
            db: Session,
            recipient_id: UUID,
            title: str,
            message: str,
            type: str,
            related_entity: Optional[Tuple[str, UUID]] = None,
            account_id: Optional[UUID] = None
    ) -> Optional[Notification]:
        """
        Persist an in-app notification.

        Args:
            db: Database session
            recipient_id: User (or professional) that should see it
            title: Short title
            message: Body text
            type: Notification type, e.g. "appointment_cancelled"
            related_entity: (model name, id) of what the notification is about
            account_id: Owning account

        Returns:
            The saved notification, or None when saving failed
        """
        related_model, related_id = related_entity if related_entity else (None, None)

        try:
            notification = Notification(
                account_id=account_id,
                recipient_id=recipient_id,
                title=title,
                message=message,
                type=type,
                related_model=related_model,
                related_id=related_id,
            )
            db.add(notification)
            db.commit()
            logger.info(f"Notification '{type}' sent to {recipient_id}")
            return notification
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to send '{type}' notification to {recipient_id}: {e}")
            return None
