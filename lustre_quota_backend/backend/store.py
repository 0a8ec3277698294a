"""Persistent store of quota applications."""

import contextlib
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional, Union

from sqlalchemy import (
    JSON,
    DateTime,
    Engine,
    Integer,
    String,
    Text,
    create_engine,
    delete,
    func,
    select,
    update,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from lustre_quota_backend.backend import logger
from lustre_quota_backend.backend.exceptions import (
    ConcurrentUpdateError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from lustre_quota_backend.backend.structures import (
    ApplicationClass,
    ApplicationState,
    QuotaApplication,
    UserQuota,
)
from lustre_quota_backend.common.pagination import PagingParams


class Base(DeclarativeBase):
    """Declarative base of the backend tables."""


class Application(Base):
    """Row of the applications table, shared by all application classes."""

    __tablename__ = "applications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    application_class: Mapped[str] = mapped_column("class", String(32), index=True)
    state: Mapped[int] = mapped_column(Integer, nullable=False)
    applier: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    reviewer: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    applyat: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    reviewat: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    decision: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    content: Mapped[dict] = mapped_column(JSON, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)


@dataclass
class ApplicationQuery:
    """Filter of the application list.

    Every set attribute adds a parameterized predicate, predicates are combined with AND.
    """

    application_class: str = ApplicationClass.QUOTA.value
    applier: Optional[str] = None
    states: Optional[list[ApplicationState]] = None
    applied_after: Optional[datetime] = None
    applied_before: Optional[datetime] = None

    def predicates(self) -> list[Any]:
        """Returns SQL predicates of the filter."""
        clauses = [Application.application_class == self.application_class]
        if self.applier and self.applier.strip():
            clauses.append(Application.applier == self.applier.strip())
        if self.states:
            clauses.append(Application.state.in_([int(state) for state in self.states]))
        if self.applied_after is not None:
            clauses.append(Application.applyat >= self.applied_after)
        if self.applied_before is not None:
            clauses.append(Application.applyat < self.applied_before)
        return clauses


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _serialize(content: Union[UserQuota, dict, None]) -> dict:
    if isinstance(content, UserQuota):
        if not content.user and not content.filesystem and content.limits.is_empty():
            msg = "content is required"
            raise ValidationError(msg)
        return content.to_dict()
    if not content:
        msg = "content is required"
        raise ValidationError(msg)
    return dict(content)


def _to_application(row: Application) -> QuotaApplication:
    return QuotaApplication(
        id=row.id,
        application_class=row.application_class,
        state=ApplicationState(row.state),
        applier=row.applier or "",
        reviewer=row.reviewer or "",
        apply_at=row.applyat,
        review_at=row.reviewat,
        decision=row.decision or "",
        content=UserQuota.from_dict(row.content),
        version=row.version,
    )


class ApplicationStore:
    """CRUD and review operations over the applications table.

    Every mutation must affect exactly one row, zero rows means the application is missing.
    """

    def __init__(self, bind: Union[Engine, sessionmaker, str]) -> None:
        """Inits the store from an engine, a session factory or a database URL."""
        if isinstance(bind, str):
            try:
                bind = create_engine(bind)
            except SQLAlchemyError as e:
                raise PersistenceError(f"Invalid database URL: {e}") from e
        if isinstance(bind, Engine):
            self.engine: Optional[Engine] = bind
            self.session_factory = sessionmaker(bind=bind, expire_on_commit=False)
        else:
            self.engine = None
            self.session_factory = bind

    def create_schema(self) -> None:
        """Create the applications table if it does not exist."""
        if self.engine is None:
            msg = "Schema creation requires an engine"
            raise PersistenceError(msg)
        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Unable to create schema: {e}") from e

    @contextlib.contextmanager
    def _transaction(self) -> Iterator[Session]:
        try:
            with self.session_factory.begin() as session:
                yield session
        except SQLAlchemyError as e:
            logger.exception("Application store operation failed")
            raise PersistenceError(str(e)) from e

    def _ensure_changed(self, session: Session, rowcount: int, application_id: int) -> None:
        if rowcount == 1:
            return
        if rowcount == 0:
            if session.get(Application, application_id) is None:
                raise NotFoundError(f"application not found: id={application_id}")
            raise ConcurrentUpdateError(
                f"application was modified concurrently: id={application_id}"
            )
        msg = f"unexpected number of applications changed: id={application_id}, rows={rowcount}"
        raise PersistenceError(msg)

    def create(
        self,
        application_class: str,
        applier: str,
        content: Union[UserQuota, dict],
    ) -> int:
        """Add an application in REVIEWING state and return its id."""
        data = _serialize(content)
        with self._transaction() as session:
            row = Application(
                application_class=application_class,
                state=int(ApplicationState.REVIEWING),
                applier=applier or "",
                applyat=_now(),
                content=data,
                version=1,
            )
            session.add(row)
            session.flush()
            application_id = row.id
        logger.info("Application %s has been created by %s", application_id, applier)
        return application_id

    def get(self, application_id: int) -> QuotaApplication:
        """Returns the application with the id."""
        with self._transaction() as session:
            row = session.get(Application, application_id)
            if row is None:
                raise NotFoundError(f"application not found: id={application_id}")
            return _to_application(row)

    def list(
        self,
        application_class: str,
        applier: Optional[str] = None,
        paging: Optional[PagingParams] = None,
        states: Optional[list[ApplicationState]] = None,
        applied_after: Optional[datetime] = None,
        applied_before: Optional[datetime] = None,
    ) -> tuple[list[QuotaApplication], int]:
        """Returns a page of applications and the total number of matching applications.

        Applications are ordered by state and apply time, both descending.
        """
        predicates = ApplicationQuery(
            application_class, applier, states, applied_after, applied_before
        ).predicates()
        statement = (
            select(Application)
            .where(*predicates)
            .order_by(Application.state.desc(), Application.applyat.desc())
        )
        if paging is not None and paging.paging:
            statement = statement.limit(paging.page_size).offset(paging.offset)

        with self._transaction() as session:
            total = session.scalar(
                select(func.count()).select_from(Application).where(*predicates)
            )
            rows = session.scalars(statement).all()
            return [_to_application(row) for row in rows], int(total or 0)

    def update(self, application_id: int, content: Union[UserQuota, dict]) -> None:
        """Replace the content and restart the review cycle."""
        data = _serialize(content)
        with self._transaction() as session:
            result = session.execute(
                update(Application)
                .where(Application.id == application_id)
                .values(
                    content=data,
                    state=int(ApplicationState.REVIEWING),
                    applyat=_now(),
                    reviewat=None,
                    reviewer=None,
                    decision=None,
                    version=Application.version + 1,
                )
                .execution_options(synchronize_session=False)
            )
            self._ensure_changed(session, result.rowcount, application_id)
        logger.info("Application %s has been updated and is awaiting review", application_id)

    def delete(self, application_id: int) -> None:
        """Delete the application."""
        with self._transaction() as session:
            result = session.execute(
                delete(Application)
                .where(Application.id == application_id)
                .execution_options(synchronize_session=False)
            )
            self._ensure_changed(session, result.rowcount, application_id)
        logger.info("Application %s has been deleted", application_id)

    def get_decision(self, application_id: int) -> str:
        """Returns the review decision, empty if not reviewed yet."""
        with self._transaction() as session:
            row = session.execute(
                select(Application.decision).where(Application.id == application_id)
            ).first()
            if row is None:
                raise NotFoundError(f"application not found: id={application_id}")
            return row[0] or ""

    def review(
        self,
        application_id: int,
        state: ApplicationState,
        decision: str,
        content: Union[UserQuota, dict],
        reviewer: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> None:
        """Record the review outcome.

        If expected_version is given, the update happens only if nobody changed
        the application since it was read.
        """
        data = _serialize(content)
        conditions = [Application.id == application_id]
        if expected_version is not None:
            conditions.append(Application.version == expected_version)
        values: dict[str, Any] = {
            "decision": decision,
            "content": data,
            "reviewat": _now(),
            "state": int(state),
            "version": Application.version + 1,
        }
        if reviewer:
            values["reviewer"] = reviewer

        with self._transaction() as session:
            result = session.execute(
                update(Application)
                .where(*conditions)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            self._ensure_changed(session, result.rowcount, application_id)
        logger.info("Application %s has been reviewed, state: %s", application_id, state.label)
