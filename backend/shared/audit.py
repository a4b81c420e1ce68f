"""
Best-effort audit log.

Audit entries are appended after the primary operation has committed. A
failed append is logged and never turns a successful operation into a
failure.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Optional

from .documents import IDocumentStore
from .exceptions import CareLinkError
from .models import utc_now

logger = logging.getLogger(__name__)

AUDIT_COLLECTION = "auditLog"


class AuditLog:
    """Appends audit entries to the ``auditLog`` collection."""

    def __init__(
        self,
        store: IDocumentStore,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._store = store
        self._clock = clock

    async def record(
        self,
        actor_id: str,
        action: str,
        entity: str,
        entity_id: str,
        data: Optional[dict[str, Any]] = None,
    ) -> Optional[str]:
        """
        Append an audit entry.

        Returns:
            The entry id, or None if the append failed.
        """
        entry = {
            "actor_id": actor_id,
            "action": action,
            "entity": entity,
            "entity_id": entity_id,
            "data": data or {},
            "timestamp": self._clock().isoformat(),
        }
        try:
            return await self._store.append(AUDIT_COLLECTION, entry)
        except CareLinkError as e:
            logger.warning(
                "Audit append failed for %s on %s/%s: %s", action, entity, entity_id, e.message
            )
            return None
