from typing import Optional, Dict, Any, Protocol


class AuditLogger(Protocol):
    def log(self, action: str, appointment_id: str, actor_id: Optional[str] = None, from_status: Optional[str] = None, to_status: Optional[str] = None, details: Optional[Dict[str, Any]] = None) -> None:
        ...
