from dataclasses import dataclass, field
from typing import Any, Mapping
from taskdedup.domain.enums import ActivityAction


@dataclass(frozen=True)
class ActivityEvent:
    """Ustrukturyzowane zdarzenie dla dziennika aktywności (bez formatowania tekstu)."""
    action: ActivityAction
    task_id: str
    tenant_id: str
    actor: str = "system"
    details: Mapping[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict:
        return {
            "action": str(self.action),
            "task_id": self.task_id,
            "tenant_id": self.tenant_id,
            "actor": self.actor,
            "details": dict(self.details),
        }
