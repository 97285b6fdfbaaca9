import json
import logging
from datetime import datetime, timezone
from typing import Optional, Dict, Any

from ...application.ports.audit_logger import AuditLogger


class StdAuditLogger(AuditLogger):
    def __init__(self) -> None:
        self._logger = logging.getLogger(__name__)

    def log(self, action: str, appointment_id: str, actor_id: Optional[str] = None, from_status: Optional[str] = None, to_status: Optional[str] = None, details: Optional[Dict[str, Any]] = None) -> None:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "action": action,
            "appointment_id": appointment_id,
            "actor_id": actor_id,
            "from_status": from_status,
            "to_status": to_status,
            "details": details or {},
        }
        self._logger.info(f"AUDIT: {json.dumps(entry)}")
