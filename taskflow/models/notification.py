"""
Notification Model Module

Notifications are written as a side effect of task assignment and comment
creation, one record per recipient. Only the read flag is ever changed.
"""
from enum import Enum
from typing import Optional
from sqlmodel import SQLModel, Field, AutoString


class NotificationType(str, Enum):
    TASK_ASSIGNED = "task_assigned"
    COMMENT = "comment"


class NotificationBase(SQLModel):
    recipient_id: str = Field(index=True, nullable=False)

    # Sender snapshot
    sender_id: str = Field(nullable=False)
    sender_name: str = "User"
    sender_photo: Optional[str] = None

    type: NotificationType = Field(sa_type=AutoString)

    # Task reference
    task_id: str = Field(nullable=False)
    task_title: str = ""

    comment_preview: Optional[str] = None
    read: bool = False


class Notification(NotificationBase, table=True):
    __tablename__ = "notifications"

    id: Optional[str] = Field(default=None, primary_key=True)
    created_at: Optional[str] = None


class NotificationRead(NotificationBase):
    id: str
    created_at: Optional[str] = None
