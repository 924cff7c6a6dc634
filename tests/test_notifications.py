import pytest

from taskflow.core.errors import NotFound, StoreUnavailable
from taskflow.models.comment import CommentRead
from taskflow.models.notification import Notification, NotificationType
from taskflow.services.comments import CommentService
from taskflow.services.notifications import NotificationService
from taskflow.services.task_repository import TaskRepository


@pytest.fixture
def shared_task(store, workspace):
    repository = TaskRepository(store)
    task_id = repository.create_task(
        {"title": "Shared", "assignees": [workspace.alice.uid, workspace.bob.uid]},
        workspace.company.id,
        workspace.alice,
    )
    # Drop the assignment notification so each test starts from an empty feed
    store.delete_where(Notification, {})
    return repository.get_task(task_id)


def test_comment_notifies_other_assignees(store, workspace, shared_task):
    CommentService(store).add_comment(shared_task.id, "Looks good to me", workspace.bob)
    notifications = store.query(Notification)

    assert len(notifications) == 1
    assert notifications[0].recipient_id == workspace.alice.uid
    assert notifications[0].type == NotificationType.COMMENT
    assert notifications[0].comment_preview == "Looks good to me"


def test_comment_preview_is_truncated(store, workspace, shared_task):
    text = "x" * 120
    CommentService(store).add_comment(shared_task.id, text, workspace.alice)

    notification = store.query(Notification)[0]
    assert notification.comment_preview == "x" * 50


def test_feed_is_newest_first_and_capped(store, workspace, shared_task):
    notifier = NotificationService(store)
    for _ in range(25):
        notifier.notify_comment(shared_task, _comment("ping"), workspace.bob)

    feed = notifier.list_feed(workspace.alice.uid)
    assert len(feed) == 20
    stamps = [n.created_at for n in feed]
    assert stamps == sorted(stamps, reverse=True)


def test_live_feed_receives_new_notifications(store, workspace, shared_task):
    notifier = NotificationService(store)
    feeds = []
    subscription = notifier.subscribe_feed(workspace.alice.uid, feeds.append)

    notifier.notify_comment(shared_task, _comment("hello"), workspace.bob)
    notifier.notify_comment(shared_task, _comment("for bob"), workspace.alice)

    assert [len(feed) for feed in feeds] == [0, 1, 1]
    subscription.cancel()


def test_comment_thread_subscription_stops_after_cancel(store, workspace, shared_task):
    comments = CommentService(store)
    threads = []
    subscription = comments.subscribe(shared_task.id, threads.append)

    comments.add_comment(shared_task.id, "first", workspace.alice)
    comments.add_comment(shared_task.id, "second", workspace.bob)
    subscription.cancel()
    comments.add_comment(shared_task.id, "after cancel", workspace.alice)

    assert [[c.text for c in thread] for thread in threads] == [[], ["first"], ["second", "first"]]


def test_failed_recipient_does_not_stop_fan_out(store, workspace, shared_task, monkeypatch):
    carol_uid = "carol"
    task = shared_task.model_copy(update={
        "assignees": shared_task.assignees + [shared_task.assignees[0].model_copy(update={"uid": carol_uid})],
    })
    original_add = store.add

    def flaky_add(model, fields):
        if model is Notification and fields["recipient_id"] == workspace.alice.uid:
            raise StoreUnavailable("offline")
        return original_add(model, fields)

    monkeypatch.setattr(store, "add", flaky_add)
    written = NotificationService(store).notify_comment(task, _comment("status?"), workspace.bob)

    assert len(written) == 1
    assert [n.recipient_id for n in store.query(Notification)] == [carol_uid]


def test_mark_read_only_for_recipient(store, workspace, shared_task):
    notifier = NotificationService(store)
    notification_id = notifier.notify_comment(shared_task, _comment("hi"), workspace.bob)[0]

    with pytest.raises(NotFound):
        notifier.mark_read(notification_id, workspace.bob.uid)
    assert notifier.mark_read(notification_id, workspace.alice.uid).read is True


def _comment(text):
    return CommentRead(id="c", task_id="t", text=text, user_id="u", user_display_name="U")
