"""WebSocket endpoint pushing live task query results."""

from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from projecthub.api.v1.tasks import serialize_groups
from projecthub.db.session import get_session_factory
from projecthub.domain.query import SortDirection, SortField, TaskGroupBy, TaskSort
from projecthub.domain.records import TaskRecord, scope_key
from projecthub.services.change_feed import change_feed
from projecthub.services.live_query import LiveTaskQuery
from projecthub.services.task import TaskService

router = APIRouter(prefix="/ws", tags=["websocket"])
logger = structlog.get_logger()


class ConnectionManager:
    """Tracks open task websockets per scope."""

    def __init__(self):
        # Map of scope -> set of websocket connections
        self.scope_connections: dict[str, set[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, scope: str) -> None:
        """Accept and register a websocket connection."""
        await websocket.accept()
        self.scope_connections.setdefault(scope, set()).add(websocket)
        logger.info("websocket_connected", scope=scope, connections=self.connection_count(scope))

    def disconnect(self, websocket: WebSocket, scope: str) -> None:
        """Unregister a websocket connection."""
        connections = self.scope_connections.get(scope)
        if connections is None:
            return
        connections.discard(websocket)
        if not connections:
            del self.scope_connections[scope]
        logger.info("websocket_disconnected", scope=scope)

    def connection_count(self, scope: str) -> int:
        return len(self.scope_connections.get(scope, ()))


# Global connection manager instance
manager = ConnectionManager()


@router.websocket("/tasks")
async def task_updates(
    websocket: WebSocket,
    project_id: UUID | None = Query(None),
    group_by: TaskGroupBy = Query(TaskGroupBy.NONE),
    sort: SortField = Query(SortField.TASK_NUMBER),
    direction: SortDirection = Query(SortDirection.ASC),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    """
    Push the grouped task list of a scope on connect and after every change.

    Query parameters:
    - project_id: Optional. Omit for the global task space.
    - group_by, sort, direction: Same meaning as on ``GET /tasks``.

    Messages sent: ``{"type": "tasks_changed", "scope": ..., "groups": [...]}``.
    Clients may send ``{"type": "ping"}`` or ``{"type": "refresh"}``.
    """
    scope = scope_key(project_id)

    async def fetch() -> list[TaskRecord]:
        async with session_factory() as session:
            return await TaskService(session).fetch_tasks(project_id)

    async def push(groups: dict[str, list[TaskRecord]]) -> None:
        await websocket.send_json(
            {
                "type": "tasks_changed",
                "scope": scope,
                "groups": [g.model_dump(mode="json") for g in serialize_groups(groups)],
            }
        )

    live = LiveTaskQuery(
        scope,
        fetch,
        sort=TaskSort(field=sort, direction=direction),
        group_by=group_by,
        on_result=push,
    )

    await manager.connect(websocket, scope)
    live.attach(change_feed)
    try:
        await live.refresh()
        while True:
            message = await websocket.receive_json()
            if message.get("type") == "ping":
                await websocket.send_json({"type": "pong"})
            elif message.get("type") == "refresh":
                await live.refresh()
    except WebSocketDisconnect:
        pass
    finally:
        live.detach()
        manager.disconnect(websocket, scope)
