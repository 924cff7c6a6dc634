from typing import Callable, List, Optional

from pydantic import ValidationError

from taskflow.core.errors import NotFound, ValidationFailed
from taskflow.db.store import EntityStore, SERVER_TIMESTAMP, Subscription
from taskflow.models.comment import Comment, CommentCreate, CommentRead
from taskflow.models.task import Task
from taskflow.services.notifications import NotificationService


class CommentService:
    """Comments on a task, listed newest first."""

    def __init__(self, store: EntityStore, notifier: NotificationService = None):
        self.store = store
        self.notifier = notifier or NotificationService(store)

    def add_comment(self, task_id: str, text: str, author) -> CommentRead:
        """
        Post a comment and notify every assignee except the author.

        Raises:
            NotFound: If the task does not exist
            ValidationFailed: If the text is blank
        """
        try:
            comment_in = CommentCreate(text=text)
        except ValidationError as e:
            raise ValidationFailed("Comment text must not be empty") from e

        task = self.store.get(Task, task_id)
        if task is None:
            raise NotFound("Task not found")

        comment_id = self.store.add(Comment, {
            "text": comment_in.text,
            "task_id": task_id,
            "user_id": author.uid,
            "user_display_name": author.display_name or "User",
            "user_photo": author.photo_url,
            "created_at": SERVER_TIMESTAMP,
        })
        comment = self.store.get(Comment, comment_id)
        self.notifier.notify_comment(task, comment, author)
        return comment

    def list_comments(self, task_id: str) -> List[CommentRead]:
        return self.store.query(Comment, filters={"task_id": task_id}, order_by="created_at", descending=True)

    def subscribe(
        self,
        task_id: str,
        on_change: Callable[[List[CommentRead]], None],
        on_error: Optional[Callable[[Exception], None]] = None,
    ) -> Subscription:
        return self.store.live_query(
            Comment, on_change, filters={"task_id": task_id},
            order_by="created_at", descending=True, on_error=on_error,
        )
