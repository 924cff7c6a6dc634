from typing import Dict, List, Optional
from sqlmodel import SQLModel

from taskflow.models.task import TaskRead, TaskStatus


class MemberWorkload(SQLModel):
    """Tasks assigned to one member, bucketed by status."""
    uid: str
    display_name: Optional[str] = None
    todo: List[TaskRead] = []
    in_progress: List[TaskRead] = []
    review: List[TaskRead] = []
    done: List[TaskRead] = []

    def bucket(self, status: TaskStatus) -> List[TaskRead]:
        return getattr(self, STATUS_BUCKETS[TaskStatus(status)])

    @property
    def total(self) -> int:
        return len(self.todo) + len(self.in_progress) + len(self.review) + len(self.done)


class WorkloadReport(SQLModel):
    members: List[MemberWorkload] = []
    pending: int = 0
    completed: int = 0

    def for_member(self, uid: str) -> Optional[MemberWorkload]:
        for member in self.members:
            if member.uid == uid:
                return member
        return None


class BoardSummary(SQLModel):
    total: int = 0
    pending: int = 0
    completed: int = 0
    by_status: Dict[str, int] = {}


STATUS_BUCKETS = {
    TaskStatus.TODO: "todo",
    TaskStatus.IN_PROGRESS: "in_progress",
    TaskStatus.REVIEW: "review",
    TaskStatus.DONE: "done",
}
