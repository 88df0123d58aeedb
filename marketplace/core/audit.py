import uuid
from datetime import datetime
from typing import Any, Dict, Optional
from loguru import logger
from sqlmodel import Session

from marketplace.db.core import engine
from marketplace.db.schema import AuditLog, AuditAction


def _perform_audit_log(
    user_id: uuid.UUID,
    entity_type: str,
    entity_id: Optional[uuid.UUID],
    action: AuditAction,
    changes: Dict[str, Any],
):
    """
    Background worker.
    Creates its OWN session using the global engine, because the request
    session is already closed by the time background tasks run.
    """
    try:
        with Session(engine) as session:
            log_entry = AuditLog(
                actor_user_id=user_id,
                entity_type=entity_type,
                entity_id=entity_id,
                action=action,
                changes=changes,
                timestamp=datetime.utcnow()
            )
            session.add(log_entry)
            session.commit()

    except Exception as e:
        # Audit failures must not break the admin action that triggered them
        logger.error(f"AUDIT LOG FAILED: {e}")
