from typing import Optional
from sqlmodel import SQLModel, Field
from pydantic import field_validator


class CommentBase(SQLModel):
    text: str = Field(nullable=False)

    @field_validator("text")
    @classmethod
    def text_not_blank(cls, v):
        if v is None or not v.strip():
            raise ValueError("comment text must not be empty")
        return v


class Comment(CommentBase, table=True):
    """
    Comment on a task. Comments belong to exactly one task and are never
    edited; they are removed only together with their task.
    """
    __tablename__ = "comments"

    id: Optional[str] = Field(default=None, primary_key=True)
    task_id: str = Field(index=True, nullable=False)

    # Author snapshot
    user_id: str = Field(nullable=False)
    user_display_name: str = "User"
    user_photo: Optional[str] = None

    created_at: Optional[str] = None


class CommentCreate(CommentBase):
    pass


class CommentRead(CommentBase):
    id: str
    task_id: str
    user_id: str
    user_display_name: str
    user_photo: Optional[str] = None
    created_at: Optional[str] = None
