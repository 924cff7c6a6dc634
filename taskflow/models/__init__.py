from .user import Account, UserProfile, UserProfileRead, UserRole
from .company import Company, CompanyRead
from .task import Task, TaskRead, TaskStatus, TaskPriority, Assignee, BOARD_COLUMNS
from .comment import Comment, CommentRead
from .notification import Notification, NotificationRead, NotificationType

# Schema each collection's rows are validated against before they leave the store
READ_MODELS = {
    Account: Account,
    UserProfile: UserProfileRead,
    Company: CompanyRead,
    Task: TaskRead,
    Comment: CommentRead,
    Notification: NotificationRead,
}

__all__ = [
    "Account", "UserProfile", "UserProfileRead", "UserRole",
    "Company", "CompanyRead",
    "Task", "TaskRead", "TaskStatus", "TaskPriority", "Assignee", "BOARD_COLUMNS",
    "Comment", "CommentRead",
    "Notification", "NotificationRead", "NotificationType",
    "READ_MODELS",
]
