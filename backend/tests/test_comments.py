# tests/test_comments.py - task discussion threads
import uuid

import pytest

from projecthub.exceptions import NotFoundError, ValidationError
from projecthub.services.comment import CommentService
from projecthub.services.task import TaskService


@pytest.mark.asyncio
async def test_comments_are_listed_oldest_first(db_session, project, member, feed):
    task = await TaskService(db_session, feed=feed).create_task(project.id, title="Pick a venue")
    service = CommentService(db_session, feed=feed)
    await service.add_comment(task.id, member.id, "  How about the library?  ")
    await service.add_comment(task.id, member.id, "Booked it")

    comments = await service.list_comments(task.id)
    assert [c.content for c in comments] == ["How about the library?", "Booked it"]
    assert comments[0].user.display_name == "Dana"
    assert comments[0].edited_at is None


@pytest.mark.asyncio
async def test_add_rejects_blank_content_and_unknown_author(db_session, project, member, feed):
    task = await TaskService(db_session, feed=feed).create_task(project.id, title="Pick a venue")
    service = CommentService(db_session, feed=feed)

    with pytest.raises(ValidationError) as exc_info:
        await service.add_comment(task.id, member.id, "   ")
    assert list(exc_info.value.by_field()) == ["content"]

    with pytest.raises(ValidationError) as exc_info:
        await service.add_comment(task.id, uuid.uuid4(), "Who am I?")
    assert list(exc_info.value.by_field()) == ["user_id"]

    with pytest.raises(NotFoundError):
        await service.add_comment(uuid.uuid4(), member.id, "Nowhere")
    assert list(await service.list_comments(task.id)) == []


@pytest.mark.asyncio
async def test_edit_stamps_edited_at(db_session, project, member, feed):
    task = await TaskService(db_session, feed=feed).create_task(project.id, title="Pick a venue")
    service = CommentService(db_session, feed=feed)
    comment = await service.add_comment(task.id, member.id, "Library?")

    edited = await service.update_comment(task.id, comment.id, "Library, 3pm")
    assert edited.content == "Library, 3pm"
    assert edited.edited_at is not None


@pytest.mark.asyncio
async def test_comment_must_belong_to_task(db_session, project, member, feed):
    tasks = TaskService(db_session, feed=feed)
    first = await tasks.create_task(project.id, title="First thread")
    second = await tasks.create_task(project.id, title="Second thread")
    service = CommentService(db_session, feed=feed)
    comment = await service.add_comment(first.id, member.id, "Only here")

    with pytest.raises(NotFoundError):
        await service.update_comment(second.id, comment.id, "Moved?")
    with pytest.raises(NotFoundError):
        await service.delete_comment(second.id, comment.id)

    await service.delete_comment(first.id, comment.id)
    assert list(await service.list_comments(first.id)) == []


@pytest.mark.asyncio
async def test_comment_changes_notify_the_task_scope(db_session, project, member, feed):
    task = await TaskService(db_session, feed=feed).create_task(project.id, title="Pick a venue")
    seen = []
    feed.subscribe(str(project.id), seen.append)
    service = CommentService(db_session, feed=feed)

    comment = await service.add_comment(task.id, member.id, "Library?")
    await service.delete_comment(task.id, comment.id)

    assert seen == [str(project.id)] * 2
