"""Workflow notifications (fire and forget)."""
import enum
import logging
from typing import Any, Callable, Dict, Optional, Protocol

logger = logging.getLogger(__name__)


class NotificationEvent(str, enum.Enum):
    STEP_ASSIGNED = "STEP_ASSIGNED"
    STAGE_ADVANCED = "STAGE_ADVANCED"
    WORKFLOW_APPROVED = "WORKFLOW_APPROVED"
    WORKFLOW_REJECTED = "WORKFLOW_REJECTED"
    WORKFLOW_CANCELLED = "WORKFLOW_CANCELLED"


class Notifier(Protocol):
    def notify(self, actor_id: int, event_kind: str, payload: Dict[str, Any]) -> None:
        ...


class LoggingNotifier:
    """Default delivery: write the notification to the application log."""

    def notify(self, actor_id: int, event_kind: str, payload: Dict[str, Any]) -> None:
        logger.info("Notify user %s: %s %s", actor_id, event_kind, payload)


_default_notifier: Notifier = LoggingNotifier()


def get_notifier() -> Notifier:
    """FastAPI dependency returning the configured notifier."""
    return _default_notifier


class NotificationDispatcher:
    """Hands notifications to a notifier without letting failures escape.

    ``schedule`` defers delivery (e.g. ``BackgroundTasks.add_task`` so it
    runs after the response is sent); without it delivery is immediate.
    """

    def __init__(self, notifier: Notifier, schedule: Optional[Callable[..., Any]] = None):
        self.notifier = notifier
        self.schedule = schedule

    def send(self, actor_id: Optional[int], event: NotificationEvent, payload: Dict[str, Any]) -> None:
        if actor_id is None:
            return
        if self.schedule is not None:
            self.schedule(self._deliver, actor_id, event.value, payload)
        else:
            self._deliver(actor_id, event.value, payload)

    def _deliver(self, actor_id: int, event_kind: str, payload: Dict[str, Any]) -> None:
        try:
            self.notifier.notify(actor_id, event_kind, payload)
        except Exception:
            logger.exception("Notification %s to user %s failed", event_kind, actor_id)
