"""
Workload Aggregator Module

Pure derivations over a workspace's current task set. Nothing here touches
the store; callers recompute on every snapshot.
"""
from typing import Iterable, List, Sequence

from taskflow.core.config import settings
from taskflow.models.task import TaskRead, TaskStatus
from taskflow.schemas.dashboard import BoardSummary, MemberWorkload, STATUS_BUCKETS, WorkloadReport


def _member_fields(member):
    if isinstance(member, str):
        return member, None
    return member.uid, getattr(member, "display_name", None)


def aggregate_workload(tasks: Sequence[TaskRead], members: Iterable) -> WorkloadReport:
    """
    Partition each member's assigned tasks into the four status buckets.

    Args:
        tasks: Current task set of the workspace
        members: Member profiles (anything with a uid) or plain uids

    Returns:
        WorkloadReport: one entry per member, in member order, plus the
        workspace-wide pending (status != done) and completed counts
    """
    report = WorkloadReport()
    for member in members:
        uid, display_name = _member_fields(member)
        workload = MemberWorkload(uid=uid, display_name=display_name)
        for task in tasks:
            if uid in task.assignee_ids:
                workload.bucket(task.status).append(task)
        report.members.append(workload)

    report.completed = sum(1 for task in tasks if task.status == TaskStatus.DONE)
    report.pending = len(tasks) - report.completed
    return report


def recent_tasks(tasks: Sequence[TaskRead], limit: int = None) -> List[TaskRead]:
    """
    Newest tasks first by creation timestamp.

    Equal timestamps keep their snapshot order; tasks without a timestamp
    sort after every timestamped task.
    """
    limit = settings.RECENT_TASKS_LIMIT if limit is None else limit
    ordered = sorted(tasks, key=lambda task: task.created_at or "", reverse=True)
    return ordered[:limit]


def summarize(tasks: Sequence[TaskRead]) -> BoardSummary:
    by_status = {status.value: 0 for status in STATUS_BUCKETS}
    for task in tasks:
        by_status[TaskStatus(task.status).value] += 1
    completed = by_status[TaskStatus.DONE.value]
    return BoardSummary(
        total=len(tasks),
        pending=len(tasks) - completed,
        completed=completed,
        by_status=by_status,
    )
