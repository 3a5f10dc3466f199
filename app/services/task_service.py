from contextlib import contextmanager
from typing import Annotated

from fastapi import Depends
from sqlalchemy import case, delete, extract, func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from app.cache.backend import CacheBackendDep
from app.cache.decorators import async_cached, async_invalidates
from app.cache.invalidation import InvalidationCoordinator
from app.cache.keys import CacheKeyDeriver
from app.cache.layer import ReadThroughCache
from app.cache.versions import VersionStore
from app.core.config import SettingsDep
from app.core.errors import ConflictError, NotFoundError, StoreError
from app.database import get_db
from app.models import (
    Task,
    TaskCreate,
    TaskFilter,
    TaskResponse,
    TaskSummary,
    TaskUpdate,
    get_utc_now,
)

import logging

logger = logging.getLogger(__name__)


@contextmanager
def store_errors(operation: str):
    """Turn data store failures into StoreError. Never retried."""
    try:
        yield
    except SQLAlchemyError as e:
        logger.exception(f"Data store failure during {operation}")
        raise StoreError(operation) from e


def _elapsed_seconds(dialect: str):
    if dialect == "sqlite":
        return (
            func.julianday(Task.completed_at) - func.julianday(Task.started_at)
        ) * 86400.0
    return extract("epoch", col(Task.completed_at) - col(Task.started_at))


class TaskService:
    """
    Task CRUD over the relational store with a versioned read-through cache.

    Reads go through ``cache`` under keys from ``keys``; every committed
    mutation is followed by ``invalidator.invalidate(task_id)``.
    """

    def __init__(
        self,
        db: AsyncSession,
        keys: CacheKeyDeriver,
        cache: ReadThroughCache,
        invalidator: InvalidationCoordinator,
    ):
        self.db = db
        self.keys = keys
        self.cache = cache
        self.invalidator = invalidator

    @async_invalidates(lambda task: task.id)
    async def create_task(self, task_data: TaskCreate) -> TaskResponse:
        task = Task.model_validate(task_data)
        with store_errors("insert"):
            self.db.add(task)
            await self.db.commit()
            await self.db.refresh(task)
        logger.info(f"Created task {task.id}")
        return TaskResponse.model_validate(task)

    @async_cached(lambda self, filters=None: self.keys.for_collection(filters))
    async def list_tasks(self, filters: TaskFilter | None = None) -> list[TaskResponse]:
        filters = filters or TaskFilter()
        query = select(Task)
        if filters.priority is not None:
            query = query.where(Task.priority == filters.priority)
        if filters.complete is True:
            query = query.where(col(Task.completed_at).is_not(None))
        elif filters.complete is False:
            query = query.where(col(Task.completed_at).is_(None))
        query = query.order_by(col(Task.created_at).desc(), col(Task.id).desc())

        with store_errors("list"):
            result = await self.db.exec(query)
            tasks = result.all()
        return [TaskResponse.model_validate(task) for task in tasks]

    @async_cached(lambda self, task_id: self.keys.for_entity(task_id))
    async def get_task(self, task_id: int) -> TaskResponse:
        with store_errors("get"):
            task = await self.db.get(Task, task_id)
        if not task:
            raise NotFoundError(task_id)
        return TaskResponse.model_validate(task)

    @async_cached(lambda self: self.keys.for_summary())
    async def get_summary(self) -> TaskSummary:
        completed = case((col(Task.completed_at).is_not(None), 1), else_=0)
        incomplete = case((col(Task.completed_at).is_(None), 1), else_=0)

        with store_errors("summary"):
            dialect = self.db.get_bind().dialect.name
            query = select(
                func.count(col(Task.id)),
                func.coalesce(func.sum(completed), 0),
                func.coalesce(func.sum(incomplete), 0),
                func.avg(_elapsed_seconds(dialect)),
            )
            result = await self.db.exec(query)
            total, done, pending, average = result.one()

        return TaskSummary(
            total_tasks=total,
            completed_tasks=done,
            incomplete_tasks=pending,
            average_completion_time_seconds=(
                float(average) if average is not None else None
            ),
            percent_complete=(done / total) * 100 if total else 0,
        )

    @async_invalidates(lambda task: task.id)
    async def update_task(self, task_id: int, task_data: TaskUpdate) -> TaskResponse:
        with store_errors("update"):
            task = await self.db.get(Task, task_id)
            if not task:
                raise NotFoundError(task_id)
            update_data = task_data.model_dump(exclude_unset=True)
            task.sqlmodel_update(update_data)
            task.updated_at = get_utc_now()
            await self.db.commit()
            await self.db.refresh(task)
        return TaskResponse.model_validate(task)

    @async_invalidates(lambda task_id: task_id)
    async def delete_task(self, task_id: int) -> int:
        with store_errors("delete"):
            statement = (
                delete(Task)
                .where(col(Task.id) == task_id)
                .execution_options(synchronize_session=False)
            )
            result = await self.db.exec(statement)
            deleted = result.rowcount
            await self.db.commit()
        if deleted == 0:
            raise NotFoundError(task_id)
        logger.info(f"Deleted task {task_id}")
        return task_id

    async def _guarded_update(self, task_id: int, *guards, **values) -> Task | None:
        """Apply ``values`` only where every guard holds; None if no row matched."""
        statement = (
            update(Task)
            .where(col(Task.id) == task_id, *guards)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        with store_errors("conditional update"):
            result = await self.db.exec(statement)
            matched = result.rowcount
            await self.db.commit()
            if matched == 0:
                return None
            return await self.db.get(Task, task_id, populate_existing=True)

    async def _existing(self, task_id: int) -> Task:
        with store_errors("get"):
            task = await self.db.get(Task, task_id, populate_existing=True)
        if not task:
            raise NotFoundError(task_id)
        return task

    @async_invalidates(lambda task: task.id)
    async def start_task(self, task_id: int) -> TaskResponse:
        now = get_utc_now()
        task = await self._guarded_update(
            task_id,
            col(Task.started_at).is_(None),
            started_at=now,
            updated_at=now,
        )
        if task is None:
            # zero rows: either the task is missing or it was already started
            await self._existing(task_id)
            raise ConflictError(task_id, f"Task {task_id} already started")
        return TaskResponse.model_validate(task)

    @async_invalidates(lambda task: task.id)
    async def complete_task(self, task_id: int) -> TaskResponse:
        now = get_utc_now()
        task = await self._guarded_update(
            task_id,
            col(Task.started_at).is_not(None),
            col(Task.completed_at).is_(None),
            completed_at=now,
            updated_at=now,
        )
        if task is None:
            existing = await self._existing(task_id)
            if existing.started_at is None:
                raise ConflictError(task_id, f"Task {task_id} has not been started")
            raise ConflictError(task_id, f"Task {task_id} already completed")
        return TaskResponse.model_validate(task)


async def get_task_service(
    backend: CacheBackendDep,
    settings: SettingsDep,
    db: AsyncSession = Depends(get_db),
) -> TaskService:
    versions = VersionStore(backend)
    return TaskService(
        db,
        keys=CacheKeyDeriver(versions),
        cache=ReadThroughCache(backend, ttl=settings.cache_ttl_seconds),
        invalidator=InvalidationCoordinator(versions),
    )


TaskServiceDep = Annotated[TaskService, Depends(get_task_service)]
