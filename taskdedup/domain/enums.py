from enum import Enum

class TaskStatus(str, Enum):
    PENDING = "pending"
    DONE = "done"

    def __str__(self):
        return self.value


class TaskPriority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"

    def __str__(self):
        return self.value


class CleanupReason(str, Enum):
    """Powód usunięcia duplikatu zapisywany w dzienniku aktywności."""
    RACE_CLEANUP = "race_cleanup"
    SCHEDULED_CLEANUP = "scheduled_cleanup"

    def __str__(self):
        return self.value


class ActivityAction(str, Enum):
    TASK_CREATED = "task_created"
    TASK_STATUS_UPDATED = "task_status_updated"
    TASK_DELETED = "task_deleted"
    DUPLICATE_TASK_DELETED = "duplicate_task_deleted"
    DUPLICATE_CLEANUP = "duplicate_cleanup"

    def __str__(self):
        return self.value
