"""
Dashboard Endpoints Module

Derived views over the current company's task set: per-member workload,
recently created tasks and status counts.
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from taskflow.api import deps
from taskflow.core.session import SessionContext
from taskflow.models.task import TaskRead
from taskflow.schemas.dashboard import BoardSummary, WorkloadReport
from taskflow.services.companies import CompanyService
from taskflow.services.task_repository import TaskRepository
from taskflow.services.workload import aggregate_workload, recent_tasks, summarize

router = APIRouter()


@router.get("/workload", response_model=WorkloadReport)
def read_workload(
    repository: TaskRepository = Depends(deps.get_task_repository),
    companies: CompanyService = Depends(deps.get_company_service),
    session: SessionContext = Depends(deps.get_workspace_session),
):
    members = companies.list_members(session.company_id)
    return aggregate_workload(repository.list_tasks(session.company_id), members)


@router.get("/recent-tasks", response_model=List[TaskRead])
def read_recent_tasks(
    limit: Optional[int] = Query(default=None, ge=1, le=50),
    repository: TaskRepository = Depends(deps.get_task_repository),
    session: SessionContext = Depends(deps.get_workspace_session),
):
    return recent_tasks(repository.list_tasks(session.company_id), limit)


@router.get("/summary", response_model=BoardSummary)
def read_summary(
    repository: TaskRepository = Depends(deps.get_task_repository),
    session: SessionContext = Depends(deps.get_workspace_session),
):
    return summarize(repository.list_tasks(session.company_id))
