"""A task query that recomputes itself whenever its scope changes."""

from typing import Awaitable, Callable

import structlog

from projecthub.domain.query import TaskFilters, TaskGroupBy, TaskSort, query_tasks
from projecthub.domain.records import TaskRecord
from projecthub.services.change_feed import ChangeFeed

logger = structlog.get_logger()

TaskFetcher = Callable[[], Awaitable[list[TaskRecord]]]
ResultCallback = Callable[[dict[str, list[TaskRecord]]], Awaitable[None]]


class LiveTaskQuery:
    """Re-fetches a scope and re-runs the query engine on every change.

    Each refresh takes a generation number. When refreshes overlap, only the
    most recently started one may publish its result; older ones are dropped
    so a slow fetch can never overwrite newer data.
    """

    def __init__(
        self,
        scope: str,
        fetcher: TaskFetcher,
        filters: TaskFilters | None = None,
        sort: TaskSort | None = None,
        group_by: TaskGroupBy | str = TaskGroupBy.NONE,
        on_result: ResultCallback | None = None,
    ):
        self.scope = scope
        self.fetcher = fetcher
        self.filters = filters
        self.sort = sort
        self.group_by = TaskGroupBy(group_by)
        self.on_result = on_result
        self.result: dict[str, list[TaskRecord]] | None = None
        self._generation = 0
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def generation(self) -> int:
        return self._generation

    async def refresh(self) -> bool:
        """Fetch and recompute; returns False when a newer refresh superseded this one."""
        self._generation += 1
        generation = self._generation

        tasks = await self.fetcher()
        if generation != self._generation:
            logger.debug(
                "live_query_refresh_discarded",
                scope=self.scope,
                generation=generation,
                latest=self._generation,
            )
            return False

        self.result = query_tasks(tasks, self.filters, self.sort, self.group_by)
        if self.on_result is not None:
            await self.on_result(self.result)
        return True

    async def _on_change(self, scope: str) -> None:
        await self.refresh()

    def attach(self, feed: ChangeFeed) -> None:
        """Refresh on every change published for this query's scope."""
        self.detach()
        self._unsubscribe = feed.subscribe(self.scope, self._on_change)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
