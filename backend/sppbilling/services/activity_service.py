# sppbilling/services/activity_service.py
# Appends to the store's activity log. Called after every significant action.

from typing import Optional, Any
from datetime import datetime, timezone
import logging

from sppbilling.core.store import SchoolStore

logger = logging.getLogger(__name__)


def log_activity(
    store: SchoolStore,
    action: str,
    user_id: Optional[str] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[Any] = None,
    metadata: Optional[dict] = None,
) -> None:
    """
    Append-only audit log. Never raises: logging must never
    block or break the main operation.

    Action format: 'entity.verb'
    Examples:
        'payment.recorded', 'billing.created',
        'academic_year.activated', 'fee_structure.deleted'
    """
    try:
        store.activity_log.append({
            "user_id": str(user_id) if user_id else None,
            "action": action,
            "entity_type": entity_type,
            "entity_id": str(entity_id) if entity_id else None,
            "metadata": metadata or {},
            "created_at": datetime.now(timezone.utc).isoformat(),
        })
        logger.debug(f"activity {action} {entity_type}:{entity_id}")
    except Exception as e:
        # Audit logging must NEVER cause a user-facing error
        logger.error(f"Failed to write activity log [{action}]: {e}")
