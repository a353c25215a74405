from __future__ import annotations

from collections.abc import Callable, Collection
from datetime import datetime
from typing import Any, Protocol

from sqlalchemy import update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from taskboard.domain.models import ContentRecord, ContentTask, VolunteerProfile
from taskboard.domain.state_machine import TaskStatus
from taskboard.infra.db import get_engine

Clock = Callable[[], datetime]

TaskRow = tuple[ContentRecord, ContentTask]


class DuplicateTaskError(Exception):
    pass


class ContentStore(Protocol):
    def get(self, content_id: str) -> ContentRecord | None: ...

    def add(self, record: ContentRecord) -> ContentRecord: ...

    def get_task(self, content_id: str) -> ContentTask | None: ...

    def insert_task(self, task: ContentTask, touched_at: datetime) -> ContentTask: ...

    def update_task_if(
        self,
        content_id: str,
        *,
        expected_status: Collection[TaskStatus],
        expected_assignees: Collection[str | None],
        values: dict[str, Any],
        touched_at: datetime,
    ) -> bool: ...

    def query_tasks(
        self,
        *,
        assigned_to: str | None = None,
        assignees: Collection[str] | None = None,
        status: TaskStatus | None = None,
        newest_first: bool = True,
        limit: int | None = None,
    ) -> list[TaskRow]: ...


class ProfileStore(Protocol):
    def get_profile(self, user_id: str) -> VolunteerProfile | None: ...

    def get_profiles(self, user_ids: Collection[str]) -> dict[str, VolunteerProfile]: ...

    def list_profiles(self) -> list[VolunteerProfile]: ...

    def save_profile(self, profile: VolunteerProfile) -> VolunteerProfile: ...


class SqlContentStore:
    def __init__(self, engine: Engine | None = None) -> None:
        self._engine = engine

    def _session(self) -> Session:
        return Session(self._engine or get_engine(), expire_on_commit=False)

    def get(self, content_id: str) -> ContentRecord | None:
        with self._session() as session:
            return session.get(ContentRecord, content_id)

    def add(self, record: ContentRecord) -> ContentRecord:
        with self._session() as session:
            session.add(record)
            session.commit()
            session.refresh(record)
            return record

    def get_task(self, content_id: str) -> ContentTask | None:
        with self._session() as session:
            return session.get(ContentTask, content_id)

    def insert_task(self, task: ContentTask, touched_at: datetime) -> ContentTask:
        with self._session() as session:
            session.add(task)
            try:
                session.flush()
            except IntegrityError as exc:
                session.rollback()
                raise DuplicateTaskError(task.content_id) from exc
            session.execute(
                update(ContentRecord)
                .where(col(ContentRecord.id) == task.content_id)
                .values(updated_at=touched_at)
            )
            session.commit()
            session.refresh(task)
            return task

    def update_task_if(
        self,
        content_id: str,
        *,
        expected_status: Collection[TaskStatus],
        expected_assignees: Collection[str | None],
        values: dict[str, Any],
        touched_at: datetime,
    ) -> bool:
        """Apply ``values`` only if the stored task still matches the expectation.

        Returns False when another writer changed the task first.
        """
        assignee_clauses = []
        named = [item for item in expected_assignees if item is not None]
        if named:
            assignee_clauses.append(col(ContentTask.assigned_to).in_(named))
        if None in expected_assignees:
            assignee_clauses.append(col(ContentTask.assigned_to).is_(None))

        statement = (
            update(ContentTask)
            .where(col(ContentTask.content_id) == content_id)
            .where(col(ContentTask.status).in_(list(expected_status)))
        )
        if len(assignee_clauses) == 1:
            statement = statement.where(assignee_clauses[0])
        elif assignee_clauses:
            statement = statement.where(assignee_clauses[0] | assignee_clauses[1])
        statement = statement.values(**values, updated_at=touched_at)

        with self._session() as session:
            result = session.execute(statement)
            if result.rowcount != 1:
                session.rollback()
                return False
            session.execute(
                update(ContentRecord)
                .where(col(ContentRecord.id) == content_id)
                .values(updated_at=touched_at)
            )
            session.commit()
            return True

    def query_tasks(
        self,
        *,
        assigned_to: str | None = None,
        assignees: Collection[str] | None = None,
        status: TaskStatus | None = None,
        newest_first: bool = True,
        limit: int | None = None,
    ) -> list[TaskRow]:
        statement = select(ContentRecord, ContentTask).join(
            ContentTask, col(ContentTask.content_id) == col(ContentRecord.id)
        )
        if assigned_to is not None:
            statement = statement.where(col(ContentTask.assigned_to) == assigned_to)
        if assignees is not None:
            statement = statement.where(col(ContentTask.assigned_to).in_(list(assignees)))
        if status is not None:
            statement = statement.where(col(ContentTask.status) == status)
        if newest_first:
            statement = statement.order_by(col(ContentTask.created_at).desc())
        if limit is not None:
            statement = statement.limit(limit)
        with self._session() as session:
            return [(record, task) for record, task in session.exec(statement).all()]


class SqlProfileStore:
    def __init__(self, engine: Engine | None = None) -> None:
        self._engine = engine

    def _session(self) -> Session:
        return Session(self._engine or get_engine(), expire_on_commit=False)

    def get_profile(self, user_id: str) -> VolunteerProfile | None:
        with self._session() as session:
            return session.get(VolunteerProfile, user_id)

    def get_profiles(self, user_ids: Collection[str]) -> dict[str, VolunteerProfile]:
        if not user_ids:
            return {}
        with self._session() as session:
            rows = session.exec(
                select(VolunteerProfile).where(col(VolunteerProfile.id).in_(list(user_ids)))
            ).all()
            return {row.id: row for row in rows}

    def list_profiles(self) -> list[VolunteerProfile]:
        with self._session() as session:
            return list(session.exec(select(VolunteerProfile).order_by(col(VolunteerProfile.id))).all())

    def save_profile(self, profile: VolunteerProfile) -> VolunteerProfile:
        with self._session() as session:
            merged = session.merge(profile)
            session.commit()
            session.refresh(merged)
            return merged