"""
Notification Feed Module

Per-user live notification feed and the fan-out that writes notifications
when tasks are assigned or commented on. Every recipient gets an independent
write: a failure for one recipient is logged and the others still receive
theirs. An actor never notifies themself.
"""
import logging
from typing import Callable, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from taskflow.core.config import settings
from taskflow.core.errors import NotFound, TaskFlowError
from taskflow.db.store import EntityStore, SERVER_TIMESTAMP, Subscription
from taskflow.models.comment import CommentRead
from taskflow.models.notification import Notification, NotificationRead, NotificationType
from taskflow.models.task import TaskRead

logger = logging.getLogger(__name__)


class NotificationService:
    def __init__(self, store: EntityStore, feed_limit: int = None, preview_length: int = None):
        self.store = store
        self.feed_limit = feed_limit or settings.NOTIFICATION_FEED_LIMIT
        self.preview_length = preview_length or settings.COMMENT_PREVIEW_LENGTH

    def _feed_query(self, user_id: str) -> dict:
        return dict(
            filters={"recipient_id": user_id},
            order_by="created_at",
            descending=True,
            limit=self.feed_limit,
        )

    def list_feed(self, user_id: str) -> List[NotificationRead]:
        """Most recent notifications for user_id, newest first."""
        return self.store.query(Notification, **self._feed_query(user_id))

    def subscribe_feed(
        self,
        user_id: str,
        on_change: Callable[[List[NotificationRead]], None],
        on_error: Optional[Callable[[Exception], None]] = None,
    ) -> Subscription:
        """Live feed of the most recent notifications for user_id."""
        return self.store.live_query(Notification, on_change, on_error=on_error, **self._feed_query(user_id))

    def mark_read(self, notification_id: str, user_id: str) -> NotificationRead:
        notification = self.store.get(Notification, notification_id)
        if notification is None or notification.recipient_id != user_id:
            raise NotFound("Notification not found")
        return self.store.update(Notification, notification_id, {"read": True})

    def _send(self, recipient_id: str, actor, kind: NotificationType, task: TaskRead,
              comment_preview: Optional[str] = None) -> Optional[str]:
        try:
            return self.store.add(Notification, {
                "recipient_id": recipient_id,
                "sender_id": actor.uid,
                "sender_name": actor.display_name or "User",
                "sender_photo": actor.photo_url,
                "type": kind,
                "task_id": task.id,
                "task_title": task.title,
                "comment_preview": comment_preview,
                "read": False,
                "created_at": SERVER_TIMESTAMP,
            })
        except (TaskFlowError, SQLAlchemyError) as e:
            logger.warning("Failed to notify %s about task %s: %s", recipient_id, task.id, e)
            return None

    def _fan_out(self, recipients: Iterable[str], actor, kind: NotificationType, task: TaskRead,
                 comment_preview: Optional[str] = None) -> List[str]:
        written = []
        for recipient_id in dict.fromkeys(recipients):
            if recipient_id == actor.uid:
                continue
            notification_id = self._send(recipient_id, actor, kind, task, comment_preview)
            if notification_id is not None:
                written.append(notification_id)
        return written

    def notify_assignees(self, task: TaskRead, actor, previous_assignee_ids: Iterable[str] = ()) -> List[str]:
        """
        Send task_assigned to every assignee that was not assigned before.

        Returns:
            List[str]: ids of the notifications that were written
        """
        previous = set(previous_assignee_ids)
        recipients = [uid for uid in task.assignee_ids if uid not in previous]
        return self._fan_out(recipients, actor, NotificationType.TASK_ASSIGNED, task)

    def notify_comment(self, task: TaskRead, comment: CommentRead, actor) -> List[str]:
        """Send a comment notification, with a short preview, to every current assignee."""
        preview = comment.text[:self.preview_length]
        return self._fan_out(task.assignee_ids, actor, NotificationType.COMMENT, task, preview)
