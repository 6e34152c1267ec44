"""팩토리(레포지터리) 패턴 구현."""
from __future__ import annotations

import asyncio
from typing import Any, Generic, Iterable, Literal, Optional, Type

from sqlalchemy import inspect
from sqlalchemy.orm import Query, Session
from sqlalchemy.orm.attributes import flag_modified

from ormfactory.core import E, EntityTypeError, FactoryClosedError, K, is_soft_deletable
from ormfactory.hooks import FactoryAction, FactoryObserver, NonQueryEvent, QueryEvent
from ormfactory.logging import get_logger
from ormfactory.orm import get_sessionmaker, track_affected_rows
from ormfactory.query import Filter, Include, compose_query

logger = get_logger("ormfactory.factory")


class SqlAlchemyFactory(Generic[E, K]):
    """SqlAlchemy ORM ``Session`` 위에서 한 엔티티 타입의 CRUD 와 쿼리를 제공합니다.

    ``E`` 는 엔티티 타입, ``K`` 는 PK 타입입니다. 세션이 주어지지 않으면 기본
    Session 팩토리로 새 세션을 열고, 팩토리가 닫힐 때 그 세션도 닫습니다.
    UnitOfWork 가 만든 팩토리는 공유 세션을 소유하지 않습니다.

    Example: ::

        with SqlAlchemyFactory(Customer, always_commit=True) as customers:
            customers.save(Customer(name="a"))
            found = customers.find(Customer.name == "a").all()
    """

    def __init__(
        self,
        entity_class: Type[E],
        session: Optional[Session] = None,
        always_commit: bool = False,
        observer: Optional[FactoryObserver] = None,
        owns_session: Optional[bool] = None,
    ):
        self.entity_class = entity_class
        self.always_commit = always_commit
        self.observer = observer or FactoryObserver()
        self.soft_delete = is_soft_deletable(entity_class)
        self.session: Session

        if session is None:
            self.session = get_sessionmaker()()
            self.owns_session = True if owns_session is None else owns_session
        else:
            self.session = session
            self.owns_session = bool(owns_session)

        self.affected_rows = track_affected_rows(self.session)
        self._closed = False

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}[{self.entity_class.__name__}]"

    def __enter__(self) -> SqlAlchemyFactory[E, K]:
        """`module`:contextmanager`의 필수 인터페이스 구현."""
        return self

    def __exit__(
        self, typ: Any = None, value: Any = None, traceback: Any = None
    ) -> Literal[False]:
        self.close()
        return False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """팩토리를 닫습니다. 세션을 소유한 경우에만 세션도 닫습니다."""
        if self._closed:
            return

        self._closed = True
        if self.owns_session:
            self.session.close()

    def _check_open(self) -> None:
        if self._closed:
            raise FactoryClosedError(f"{self!r} is already closed")

    def notify(self, action: FactoryAction, entity: Optional[E] = None) -> None:
        """작업 직전에 관찰자들에게 :class:`NonQueryEvent` 를 알립니다."""
        self.observer.notify(NonQueryEvent(action, self.entity_class, entity))

    # 변경 작업

    def save(self, entity: E) -> None:
        """엔티티를 추가합니다."""
        self._check_open()
        self.notify(FactoryAction.SAVE, entity)
        self.session.add(entity)

        if self.always_commit:
            self.commit()

    def update(self, entity: E) -> E:
        """엔티티의 모든 컬럼을 변경된 것으로 표시합니다.

        세션에 연결되지 않은 엔티티는 ``merge`` 로 연결합니다. 다음 flush 때
        로드된 모든 컬럼(PK 제외)이 UPDATE 문에 포함됩니다.

        Returns:
            세션에 연결된 엔티티 인스턴스.
        """
        self._check_open()
        self.notify(FactoryAction.UPDATE, entity)
        attached = self._attach(entity)

        state = inspect(attached)
        for prop in state.mapper.column_attrs:
            if prop.key not in state.dict:
                continue
            if any(getattr(col, "primary_key", False) for col in prop.columns):
                continue
            flag_modified(attached, prop.key)

        if self.always_commit:
            self.commit()

        return attached

    def delete(self, entity: E) -> None:
        """엔티티를 삭제합니다.

        :class:`~ormfactory.core.SoftDeletable` 엔티티는 ``is_deleted`` 만
        ``True`` 로 바꾸고 레코드는 남겨둡니다.
        """
        self._check_open()
        self.notify(FactoryAction.DELETE, entity)
        self._delete_all([entity])

    def delete_where(self, *filters: Filter, **filter_by: Any) -> int:
        """조건에 맞는 모든 엔티티를 삭제하고 삭제 표시된 엔티티 수를 리턴합니다.

        조건이 없으면 모든 엔티티가 대상입니다.
        """
        self._check_open()
        entities = self._query(None, (), filters, filter_by).all()
        for entity in entities:
            self.notify(FactoryAction.DELETE, entity)

        self._delete_all(entities)
        return len(entities)

    def _attach(self, entity: E) -> E:
        if inspect(entity).session is self.session:
            return entity
        return self.session.merge(entity)

    def _delete_all(self, entities: list[E]) -> None:
        if not entities:
            return

        try:
            for entity in entities:
                if self.soft_delete:
                    setattr(entity, "is_deleted", True)
                    self._attach(entity)
                else:
                    self.session.delete(entity)

            if self.always_commit:
                self.commit()
        except Exception:
            # 반영되지 않은 삭제 표시가 세션에 남지 않도록 되돌립니다.
            for entity in entities:
                if entity in self.session.deleted:
                    self._undelete(entity)
            raise

    def _undelete(self, entity: E) -> None:
        logger.debug("revert pending delete: %r", entity)
        self.session.expunge(entity)
        self.session.add(entity)

    # 조회 작업

    def _resolve_type(self, of_type: Optional[type]) -> type:
        if of_type is None:
            return self.entity_class

        if not (isinstance(of_type, type) and issubclass(of_type, self.entity_class)):
            raise EntityTypeError(
                f"{of_type!r} is not a subtype of {self.entity_class!r}"
            )
        return of_type

    def _query(
        self,
        of_type: Optional[type],
        includes: Iterable[Include],
        filters: Iterable[Filter],
        filter_by: Optional[dict[str, Any]] = None,
    ) -> Query:
        self._check_open()
        entity_class = self._resolve_type(of_type)
        query = compose_query(
            self.session.query(entity_class), includes, filters, filter_by
        )
        self.observer.notify(QueryEvent(entity_class, query))
        return query

    def get_by_id(self, id: K) -> Optional[E]:  # pylint: disable=redefined-builtin
        """PK 로 엔티티를 조회합니다. 못 찾을 경우 ``None`` 을 리턴합니다."""
        self._check_open()
        return self.session.get(self.entity_class, id)

    def first(
        self,
        *filters: Filter,
        of_type: Optional[type] = None,
        includes: Iterable[Include] = (),
        **filter_by: Any,
    ) -> Optional[E]:
        """조건에 맞는 첫 엔티티. 없으면 ``None``."""
        return self._query(of_type, includes, filters, filter_by).first()

    def get_all(self, *includes: Include, of_type: Optional[type] = None) -> Query:
        return self._query(of_type, includes, ())

    def all_including(self, *includes: Include) -> Query:
        return self.get_all(*includes)

    def find(
        self,
        *filters: Filter,
        includes: Iterable[Include] = (),
        of_type: Optional[type] = None,
        **filter_by: Any,
    ) -> Query:
        """조건에 맞는 엔티티들의 쿼리를 리턴합니다.

        리턴된 쿼리는 순회하거나 ``all()``, ``first()`` 같은 메소드를 호출할 때
        실행됩니다.
        """
        return self._query(of_type, includes, filters, filter_by)

    def count(self, *filters: Filter, **filter_by: Any) -> int:
        return self._query(None, (), filters, filter_by).count()

    # 커밋

    def commit(self) -> int:
        """세션의 모든 변경 사항을 커밋하고 영향받은 엔티티 수를 리턴합니다."""
        self._check_open()
        self.notify(FactoryAction.COMMIT)

        try:
            self.session.commit()
        except Exception:
            self.affected_rows.clear()
            raise

        affected = sum(self.affected_rows.take().values())
        logger.debug("%r committed %d entities", self, affected)
        return affected

    # 비동기 작업: 호출한 이벤트 루프를 막지 않도록 워커 스레드에서 실행합니다.

    async def save_async(self, entity: E) -> None:
        await asyncio.to_thread(self.save, entity)

    async def update_async(self, entity: E) -> E:
        return await asyncio.to_thread(self.update, entity)

    async def delete_async(self, entity: E) -> None:
        await asyncio.to_thread(self.delete, entity)

    async def get_by_id_async(self, id: K) -> Optional[E]:  # pylint: disable=redefined-builtin
        return await asyncio.to_thread(self.get_by_id, id)

    async def first_async(
        self,
        *filters: Filter,
        of_type: Optional[type] = None,
        includes: Iterable[Include] = (),
        **filter_by: Any,
    ) -> Optional[E]:
        return await asyncio.to_thread(
            lambda: self.first(*filters, of_type=of_type, includes=includes, **filter_by)
        )

    async def count_async(self, *filters: Filter, **filter_by: Any) -> int:
        return await asyncio.to_thread(lambda: self.count(*filters, **filter_by))

    async def commit_async(self) -> int:
        return await asyncio.to_thread(self.commit)
