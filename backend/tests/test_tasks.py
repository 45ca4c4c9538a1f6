# tests/test_tasks.py - task service: create, update, delete, fetch and query
import uuid

import pytest
from sqlalchemy import func, select

from projecthub.domain.codec import BooleanValue, NumberValue
from projecthub.domain.query import TaskFilters, TaskGroupBy, TaskSort, SortField
from projecthub.exceptions import NotFoundError, ValidationError
from projecthub.models.project import Task, TaskCategory, TaskComment, TaskPropertyValue, TaskSequence
from projecthub.services.comment import CommentService
from projecthub.services.custom_property import CustomPropertyService
from projecthub.services.task import TaskService
from tests.conftest import utc


@pytest.mark.asyncio
async def test_create_applies_family_defaults(db_session, project, feed):
    service = TaskService(db_session, feed=feed)

    project_task = await service.create_task(project.id, title="  Design homepage  ")
    assert project_task.title == "Design homepage"
    assert (project_task.status, project_task.priority) == ("todo", "P2")
    assert project_task.task_number == 1
    assert project_task.created_at is not None

    global_task = await service.create_task(None, title="Renew domain")
    assert (global_task.status, global_task.priority) == ("todo", "medium")
    assert global_task.task_number == 1


@pytest.mark.asyncio
async def test_create_reports_every_problem(db_session, project, feed):
    service = TaskService(db_session, feed=feed)
    with pytest.raises(ValidationError) as exc_info:
        await service.create_task(
            project.id,
            title="ab",
            status="on-hold",
            supporting_links=["nope"],
            custom_properties={uuid.uuid4(): "x"},
        )
    fields = exc_info.value.by_field()
    assert {"title", "status", "supporting_links.0"} <= set(fields)
    assert any(f.startswith("custom_properties.") for f in fields)
    assert await service.fetch_tasks(project.id) == []


@pytest.mark.asyncio
async def test_create_in_missing_project(db_session, feed):
    with pytest.raises(NotFoundError):
        await TaskService(db_session, feed=feed).create_task(uuid.uuid4(), title="Orphan task")


@pytest.mark.asyncio
async def test_legacy_priority_is_normalised(db_session, project, feed):
    service = TaskService(db_session, feed=feed)
    task = await service.create_task(project.id, title="Old client", priority="high")
    assert task.priority == "P1"

    task = await service.update_task(task.id, priority="low")
    assert task.priority == "P3"

    with pytest.raises(ValidationError):
        await service.create_task(project.id, title="Old client", priority="urgent")


@pytest.mark.asyncio
async def test_task_numbers_are_never_reused(db_session, project, feed):
    service = TaskService(db_session, feed=feed)
    first = await service.create_task(project.id, title="First task")
    second = await service.create_task(project.id, title="Second task")
    await service.delete_task(second.id)
    third = await service.create_task(project.id, title="Third task")

    assert (first.task_number, second.task_number, third.task_number) == (1, 2, 3)


@pytest.mark.asyncio
async def test_required_custom_property_blocks_create(db_session, project, feed):
    properties = CustomPropertyService(db_session, feed=feed)
    approved = await properties.create_property(project.id, "Approved", "boolean", is_required=True)
    points = await properties.create_property(project.id, "Points", "number", is_required=True)
    service = TaskService(db_session, feed=feed)

    with pytest.raises(ValidationError) as exc_info:
        await service.create_task(project.id, title="Launch", custom_properties={approved.id: False})
    assert list(exc_info.value.by_field()) == [f"custom_properties.{points.id}"]

    task = await service.create_task(
        project.id, title="Launch", custom_properties={approved.id: False, points.id: "5"}
    )
    assert task.custom_properties == {approved.id: BooleanValue(False), points.id: NumberValue(5.0)}


@pytest.mark.asyncio
async def test_update_merges_then_validates(db_session, project, feed):
    service = TaskService(db_session, feed=feed)
    task = await service.create_task(project.id, title="Write release notes", sprint="S1")

    updated = await service.update_task(task.id, status="in-progress")
    assert (updated.title, updated.sprint, updated.status) == ("Write release notes", "S1", "in-progress")

    with pytest.raises(ValidationError) as exc_info:
        await service.update_task(task.id, title="no", priority="P9")
    assert set(exc_info.value.by_field()) == {"title", "priority"}
    assert (await service.get_task(task.id)).title == "Write release notes"


@pytest.mark.asyncio
async def test_completed_at_is_stamped_and_cleared(db_session, project, feed):
    service = TaskService(db_session, feed=feed)
    task = await service.create_task(project.id, title="Close sprint")
    assert task.completed_at is None

    done = await service.update_task(task.id, status="completed")
    assert done.completed_at is not None
    assert done.completed_at.tzinfo is not None

    reopened = await service.update_task(task.id, status="todo")
    assert reopened.completed_at is None


@pytest.mark.asyncio
async def test_update_custom_properties(db_session, project, feed):
    properties = CustomPropertyService(db_session, feed=feed)
    points = await properties.create_property(project.id, "Points", "number")
    service = TaskService(db_session, feed=feed)
    task = await service.create_task(project.id, title="Estimate me", custom_properties={points.id: 3})

    task = await service.update_task(task.id, custom_properties={points.id: "8"})
    assert task.custom_properties == {points.id: NumberValue(8.0)}

    task = await service.update_task(task.id, custom_properties={points.id: ""})
    assert task.custom_properties == {}


@pytest.mark.asyncio
async def test_delete_missing_task(db_session, feed):
    with pytest.raises(NotFoundError):
        await TaskService(db_session, feed=feed).delete_task(uuid.uuid4())


@pytest.mark.asyncio
async def test_dates_come_back_as_utc(db_session, project, feed):
    service = TaskService(db_session, feed=feed)
    task = await service.create_task(project.id, title="Dated task", due_date=utc(2024, 7, 1, 12))
    fetched = await service.get_task(task.id)
    assert fetched.due_date == utc(2024, 7, 1, 12)
    assert fetched.due_date.tzinfo is not None


@pytest.mark.asyncio
async def test_fetch_is_scoped_and_numbered(db_session, project, member, feed):
    service = TaskService(db_session, feed=feed)
    await service.create_task(project.id, title="Alpha", assigned_to=member.id)
    await service.create_task(project.id, title="Beta")
    await service.create_task(None, title="Global task")

    tasks = await service.fetch_tasks(project.id)
    assert [t.title for t in tasks] == ["Alpha", "Beta"]
    assert [t.task_number for t in tasks] == [1, 2]
    assert tasks[0].assignee_name == "Dana"
    assert [t.title for t in await service.fetch_tasks(None)] == ["Global task"]


@pytest.mark.asyncio
async def test_query_runs_engine_over_scope(db_session, project, feed):
    service = TaskService(db_session, feed=feed)
    await service.create_task(project.id, title="Plan lunch", priority="P3", assigned_team="Ops")
    await service.create_task(project.id, title="Book venue", priority="P1", assigned_team="Ops")
    await service.create_task(project.id, title="Print flyers", priority="P2")

    groups = await service.query(
        project.id,
        TaskFilters(assigned_team={"Ops"}),
        TaskSort(SortField.PRIORITY),
        TaskGroupBy.ASSIGNED_TEAM,
    )
    assert {key: [t.title for t in tasks] for key, tasks in groups.items()} == {
        "Ops": ["Book venue", "Plan lunch"],
    }


@pytest.mark.asyncio
async def test_mutations_publish_scope_changes(db_session, project, feed):
    seen = []
    feed.subscribe(str(project.id), seen.append)
    service = TaskService(db_session, feed=feed)

    task = await service.create_task(project.id, title="Notify me")
    await service.update_task(task.id, title="Notify me again")
    await service.delete_task(task.id)
    await service.create_task(None, title="Elsewhere")

    assert seen == [str(project.id)] * 3


@pytest.mark.asyncio
async def test_numbering_continues_from_stored_sequence(db_session, project, feed):
    db_session.add(TaskSequence(scope=str(project.id), last_number=41))
    await db_session.commit()
    service = TaskService(db_session, feed=feed)

    first = await service.create_task(project.id, title="Forty-second task")
    second = await service.create_task(project.id, title="Forty-third task")
    global_task = await service.create_task(None, title="Unrelated scope")

    assert (first.task_number, second.task_number) == (42, 43)
    assert global_task.task_number == 1


@pytest.mark.asyncio
async def test_unknown_assignee_and_category_are_field_errors(db_session, project, member, feed):
    service = TaskService(db_session, feed=feed)
    with pytest.raises(ValidationError) as exc_info:
        await service.create_task(None, title="Ghost work", assigned_to=uuid.uuid4(), category_id=uuid.uuid4())
    assert set(exc_info.value.by_field()) == {"assigned_to", "category_id"}
    assert await service.fetch_tasks(None) == []

    task = await service.create_task(project.id, title="Real work", assigned_to=member.id)
    with pytest.raises(ValidationError) as exc_info:
        await service.update_task(task.id, assigned_to=uuid.uuid4())
    assert list(exc_info.value.by_field()) == ["assigned_to"]
    assert (await service.get_task(task.id)).assigned_to == member.id


@pytest.mark.asyncio
async def test_known_category_is_accepted(db_session, feed):
    category = TaskCategory(name="Errands", color="#6b7280", icon="folder")
    db_session.add(category)
    await db_session.commit()

    task = await TaskService(db_session, feed=feed).create_task(None, title="Post office", category_id=category.id)
    assert task.category_id == category.id


@pytest.mark.asyncio
async def test_delete_removes_property_values_and_comments(db_session, project, member, feed):
    properties = CustomPropertyService(db_session, feed=feed)
    points = await properties.create_property(project.id, "Points", "number")
    service = TaskService(db_session, feed=feed)
    task = await service.create_task(project.id, title="Short-lived", custom_properties={points.id: 2})
    keeper = await service.create_task(project.id, title="Stays around", custom_properties={points.id: 5})
    await CommentService(db_session, feed=feed).add_comment(task.id, member.id, "Is this still needed?")

    await service.delete_task(task.id)

    value_count = await db_session.scalar(select(func.count()).select_from(TaskPropertyValue))
    comment_count = await db_session.scalar(select(func.count()).select_from(TaskComment))
    assert (value_count, comment_count) == (1, 0)
    assert (await service.get_task(keeper.id)).custom_properties == {points.id: NumberValue(5.0)}
    with pytest.raises(NotFoundError):
        await service.get_task(task.id)


@pytest.mark.asyncio
async def test_legacy_priority_rows_get_a_label(db_session, project, feed):
    db_session.add(Task(project_id=project.id, task_number=1, title="Imported row", priority="high"))
    db_session.add(TaskSequence(scope=str(project.id), last_number=1))
    await db_session.commit()
    service = TaskService(db_session, feed=feed)
    await service.create_task(project.id, title="Fresh row", priority="P3")

    tasks = await service.fetch_tasks(project.id)
    assert [(t.priority, t.priority_label) for t in tasks] == [("high", "P1"), ("P3", "P3")]

    groups = await service.query(project.id, TaskFilters(priority={"P1"}), group_by=TaskGroupBy.PRIORITY)
    assert {key: [t.title for t in tasks] for key, tasks in groups.items()} == {"P1": ["Imported row"]}

    global_task = await service.create_task(None, title="Global row", priority="high")
    assert global_task.priority_label is None


@pytest.mark.asyncio
async def test_retyped_property_no_longer_satisfies_required(db_session, project, feed):
    properties = CustomPropertyService(db_session, feed=feed)
    approval = await properties.create_property(project.id, "Approval", "text")
    service = TaskService(db_session, feed=feed)
    task = await service.create_task(project.id, title="Sign-off", custom_properties={approval.id: "yes please"})

    await properties.update_property(approval.id, property_type="boolean", is_required=True)

    assert (await service.get_task(task.id)).custom_properties == {}
    with pytest.raises(ValidationError) as exc_info:
        await service.update_task(task.id, title="Sign-off again")
    assert list(exc_info.value.by_field()) == [f"custom_properties.{approval.id}"]

    task = await service.update_task(task.id, custom_properties={approval.id: True})
    assert task.custom_properties == {approval.id: BooleanValue(True)}


@pytest.mark.asyncio
async def test_order_index_appends_and_reorder_rewrites(db_session, project, feed):
    service = TaskService(db_session, feed=feed)
    first = await service.create_task(project.id, title="First card")
    second = await service.create_task(project.id, title="Second card")
    third = await service.create_task(project.id, title="Third card")
    elsewhere = await service.create_task(None, title="Global card")
    assert [first.order_index, second.order_index, third.order_index] == [1, 2, 3]
    assert elsewhere.order_index == 1

    seen = []
    feed.subscribe(str(project.id), seen.append)
    tasks = await service.reorder_tasks(project.id, [third.id, elsewhere.id, first.id])

    assert {t.title: t.order_index for t in tasks} == {"Third card": 1, "First card": 2, "Second card": 2}
    assert (await service.get_task(elsewhere.id)).order_index == 1
    assert seen == [str(project.id)]

    ordered = await service.query(project.id, sort=TaskSort(SortField.ORDER_INDEX))
    assert [t.title for t in ordered["All Tasks"]] == ["Third card", "First card", "Second card"]


@pytest.mark.asyncio
async def test_records_carry_comment_counts(db_session, project, member, feed):
    service = TaskService(db_session, feed=feed)
    busy = await service.create_task(project.id, title="Busy thread")
    await service.create_task(project.id, title="Quiet thread")
    comments = CommentService(db_session, feed=feed)
    await comments.add_comment(busy.id, member.id, "First!")
    await comments.add_comment(busy.id, member.id, "Second")

    assert (await service.get_task(busy.id)).comment_count == 2
    assert [t.comment_count for t in await service.fetch_tasks(project.id)] == [2, 0]
