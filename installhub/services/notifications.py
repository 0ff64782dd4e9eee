"""
Notification service for reclamation state changes.
Fire-and-forget: called after the transition has been committed, and a
failure here is logged and swallowed so it can never undo the transition.
"""
from typing import Any, Dict, Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import settings
from ..models.models import Notification, Reclamation


logger = structlog.get_logger(__name__)


def create_notification(
    db: Session,
    template_key: str,
    payload_json: Optional[Dict[str, Any]] = None,
    firm_id=None,
    crew_id=None,
    user_id=None,
) -> Optional[Notification]:
    """
    Create a notification record.

    Returns:
        Notification object if created, None if disabled or failed
    """
    if not settings.enable_notifications:
        return None
    notification = Notification(
        firm_id=firm_id,
        crew_id=crew_id,
        user_id=user_id,
        template_key=template_key,
        payload_json=payload_json,
        status="pending",
    )
    try:
        db.add(notification)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning("notification_failed", template_key=template_key, error=str(exc))
        return None
    return notification


def send_reclamation_notification(db: Session, reclamation: Reclamation, event: str, extra: Optional[Dict] = None):
    """
    Tell the responsible crew (and the office via firm_id) about a reclamation event.

    Args:
        event: created|accepted|rejected|reassigned|completed|cancelled
    """
    payload = {
        "type": event,
        "reclamation": {
            "id": str(reclamation.id),
            "project_id": str(reclamation.project_id),
            "status": reclamation.status,
            "deadline": reclamation.deadline.isoformat() if reclamation.deadline else None,
            "current_crew_id": str(reclamation.current_crew_id),
        },
    }
    if extra:
        payload.update(extra)
    return create_notification(
        db,
        template_key=f"reclamation_{event}",
        payload_json=payload,
        firm_id=reclamation.firm_id,
        crew_id=reclamation.current_crew_id,
    )
