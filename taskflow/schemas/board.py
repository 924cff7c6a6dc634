from typing import Optional
from pydantic import BaseModel

from taskflow.models.task import TaskRead


class MoveResponse(BaseModel):
    outcome: str
    wrote: bool
    task: Optional[TaskRead] = None


class CommentPost(BaseModel):
    text: str
