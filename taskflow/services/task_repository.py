"""
Task Repository Module

Task CRUD, status transitions, assignee mutation and the workspace-scoped
live task subscription. Assignee display data is copied from user profiles
when a task is written and is not refreshed afterwards.
"""
import logging
from typing import Callable, Dict, List, Optional, Union

from pydantic import ValidationError

from taskflow.core.errors import NotFound, ValidationFailed
from taskflow.db.store import EntityStore, SERVER_TIMESTAMP, Subscription
from taskflow.models.comment import Comment
from taskflow.models.task import Assignee, Task, TaskCreate, TaskRead, TaskStatus, TaskUpdate
from taskflow.models.user import UserProfile
from taskflow.services.notifications import NotificationService

logger = logging.getLogger(__name__)

# Fields that cannot be cleared once set
NON_NULLABLE_FIELDS = ("title", "status", "priority")


def _parse(schema, data):
    if isinstance(data, schema):
        return data
    try:
        return schema.model_validate(data)
    except ValidationError as e:
        raise ValidationFailed("; ".join(err["msg"] for err in e.errors())) from e


class TaskRepository:
    def __init__(self, store: EntityStore, notifier: NotificationService = None):
        self.store = store
        self.notifier = notifier or NotificationService(store)

    def _denormalize(self, uids: List[str], company_id: str) -> List[dict]:
        """Snapshot display data of the given users; unknown or foreign users are skipped."""
        profiles = {p.uid: p for p in self.store.get_many(UserProfile, list(dict.fromkeys(uids)))}
        assignees = []
        for uid in dict.fromkeys(uids):
            profile = profiles.get(uid)
            if profile is None or profile.current_company_id != company_id:
                logger.info("Skipping assignee %s: not a member of company %s", uid, company_id)
                continue
            assignees.append(Assignee(
                uid=profile.uid,
                display_name=profile.display_name,
                photo_url=profile.photo_url,
            ).model_dump())
        return assignees

    def get_task(self, task_id: str) -> TaskRead:
        task = self.store.get(Task, task_id)
        if task is None:
            raise NotFound("Task not found")
        return task

    def list_tasks(self, company_id: str) -> List[TaskRead]:
        return self.store.query(Task, filters={"company_id": company_id})

    def create_task(self, task_in: Union[TaskCreate, Dict], company_id: str, creator) -> str:
        """
        Create a task in company_id and notify its assignees.

        Args:
            task_in: Task fields; assignees are user ids
            company_id: Owning workspace
            creator: Acting session (uid, display_name, photo_url)

        Returns:
            str: id of the new task

        Raises:
            ValidationFailed: If the title is blank or a field is invalid
        """
        task_in = _parse(TaskCreate, task_in)
        data = task_in.model_dump(exclude={"assignees"})
        data.update(
            assignees=self._denormalize(task_in.assignees, company_id),
            company_id=company_id,
            created_by=creator.uid,
            created_at=SERVER_TIMESTAMP,
        )
        task_id = self.store.add(Task, data)

        task = self.store.get(Task, task_id)
        if task is not None:
            self.notifier.notify_assignees(task, creator)
        return task_id

    def update_task(self, task_id: str, fields: Union[TaskUpdate, Dict], actor=None) -> TaskRead:
        """
        Merge a subset of the mutable fields into a task.

        The owning company, the creator and the creation timestamp never change.
        When the assignee list changes and an actor is given, newly added
        assignees are notified.
        """
        update = _parse(TaskUpdate, fields)
        changes = update.model_dump(exclude_unset=True)
        for key in NON_NULLABLE_FIELDS:
            if key in changes and changes[key] is None:
                changes.pop(key)

        current = self.get_task(task_id)
        if not changes:
            return current

        if "assignees" in changes:
            changes["assignees"] = self._denormalize(changes["assignees"] or [], current.company_id)

        task = self.store.update(Task, task_id, changes)
        if "assignees" in changes and actor is not None:
            self.notifier.notify_assignees(task, actor, previous_assignee_ids=current.assignee_ids)
        return task

    def set_status(self, task_id: str, status: Union[TaskStatus, str]) -> TaskRead:
        """Persist only the status field of a task."""
        try:
            status = TaskStatus(status)
        except ValueError as e:
            raise ValidationFailed(f"Unknown status: {status}") from e
        return self.store.update(Task, task_id, {"status": status})

    def delete_task(self, task_id: str) -> bool:
        """Delete a task together with its comments. Returns False if it did not exist."""
        if self.store.get(Task, task_id) is None:
            return False
        removed = self.store.delete_where(Comment, {"task_id": task_id})
        if removed:
            logger.debug("Removed %d comments of task %s", removed, task_id)
        return self.store.delete(Task, task_id)

    def subscribe(
        self,
        company_id: str,
        on_change: Callable[[List[TaskRead]], None],
        on_error: Optional[Callable[[Exception], None]] = None,
    ) -> Subscription:
        """
        Live query of every task in company_id.

        on_change receives the full task list after every change; call
        cancel() on the returned subscription when the consumer goes away.
        """
        return self.store.live_query(Task, on_change, filters={"company_id": company_id}, on_error=on_error)
