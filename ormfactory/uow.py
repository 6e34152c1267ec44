"""UnitOfWork 패턴 모듈.

UoW 는 하나의 SqlAlchemy ``Session`` 을 소유하고, 그 세션을 공유하는
엔티티별 팩토리를 필요할 때 만들어 캐시합니다. 팩토리들의 변경 사항은 UoW 를 통해
한번에 커밋하거나 롤백합니다.

주의:

    UoW 와 팩토리들은 하나의 세션을 공유하므로 여러 스레드에서 동시에 사용하면
    안 됩니다. 비동기 메소드도 호출자가 순서대로 ``await`` 해야 합니다.
"""
from __future__ import annotations

import asyncio
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional, Type

from sqlalchemy import inspect
from sqlalchemy.exc import NoInspectionAvailable

from ormfactory.core import (
    Committable,
    CommitMode,
    ConfigError,
    E,
    FactoryConstructionError,
    UnitOfWorkClosedError,
)
from ormfactory.factory import SqlAlchemyFactory
from ormfactory.hooks import FactoryAction, FactoryObserver
from ormfactory.logging import get_logger
from ormfactory.orm import (
    AffectedRows,
    Session,
    SessionMaker,
    get_sessionmaker,
    track_affected_rows,
)

FactoryMakerFunc = Callable[[Session, bool], SqlAlchemyFactory]
"""공유 세션과 ``always_commit`` 플래그를 받아 팩토리를 만드는 함수."""
FactoryMakerDict = dict[type, FactoryMakerFunc]

logger = get_logger("ormfactory.uow")


class SqlAlchemyUnitOfWork:
    """``SqlAlchemy`` ORM을 이용한 UnitOfWork 패턴 구현입니다.

    Args:
        get_session: 소유할 세션을 만들 Session 팩토리. 없으면 기본 Session
            팩토리를 사용합니다.
        commit_mode: 커밋 결과를 집계하는 방식. 반드시 지정해야 합니다.
        always_commit: 만들어지는 팩토리들이 변경 작업마다 커밋할지 여부.
        auto_rollback: 커밋이 실패했을 때 롤백할지 여부의 기본값.
        factory_makers: 엔티티 클래스별 팩토리 생성 함수. 등록되지 않은 클래스는
            :class:`SqlAlchemyFactory` 를 사용합니다.
        observer: 기본 팩토리들에 전달할 관찰자.
    """

    def __init__(
        self,
        get_session: Optional[SessionMaker] = None,
        *,
        commit_mode: CommitMode,
        always_commit: bool = False,
        auto_rollback: bool = True,
        factory_makers: Optional[FactoryMakerDict] = None,
        observer: Optional[FactoryObserver] = None,
    ) -> None:
        if not isinstance(commit_mode, CommitMode):
            raise ConfigError(f"commit_mode must be a CommitMode, got {commit_mode!r}")

        self.commit_mode = commit_mode
        self.always_commit = always_commit
        self.auto_rollback = auto_rollback
        self.observer = observer or FactoryObserver()
        self.factory_makers = validate_factory_makers(factory_makers or {})

        self.session: Session = (get_session or get_sessionmaker())()
        self.affected_rows = track_affected_rows(self.session)
        self._factories: dict[type, SqlAlchemyFactory] = {}
        self.last_commit: dict[type, int] = {}
        self._closed = False

    def __repr__(self) -> str:
        return f"SqlAlchemyUnitOfWork[{self.commit_mode.name}]"

    def __enter__(self) -> SqlAlchemyUnitOfWork:
        return self

    def __exit__(self, *args: Any) -> None:
        """``with`` 블록을 빠져나갈 때 UoW 를 닫습니다.

        커밋되지 않은 변경 사항은 세션이 닫히면서 버려집니다.
        """
        self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def factories(self) -> Mapping[type, SqlAlchemyFactory]:
        """캐시된 팩토리들. 생성된 순서를 유지합니다."""
        return MappingProxyType(self._factories)

    def _check_open(self) -> None:
        if self._closed:
            raise UnitOfWorkClosedError(f"{self!r} is already closed")

    # 팩토리 관리

    def _make_factory(self, entity_class: Type[E]) -> SqlAlchemyFactory[E, Any]:
        maker = self.factory_makers.get(entity_class)
        if maker:
            factory = maker(self.session, self.always_commit)
        else:
            factory = SqlAlchemyFactory(
                entity_class,
                self.session,
                always_commit=self.always_commit,
                observer=self.observer,
            )

        if not isinstance(factory, Committable):
            raise FactoryConstructionError(
                f"factory maker for {entity_class!r} returned {factory!r}"
            )
        if getattr(factory, "session", None) is not self.session:
            raise FactoryConstructionError(
                f"{factory!r} is not bound to the session of {self!r}"
            )
        return factory

    def _get_or_create(self, entity_class: Type[E]) -> SqlAlchemyFactory[E, Any]:
        self._check_open()
        factory = self._factories.get(entity_class)
        if factory is not None:
            if not factory.closed:
                return factory
            # 닫힌 팩토리는 캐시에서 빼고 새로 만듭니다.
            del self._factories[entity_class]

        factory = self._make_factory(entity_class)
        self._factories[entity_class] = factory
        logger.debug("%r created %r", self, factory)
        return factory

    def create_factory(
        self, entity_class: Type[E], key_type: Optional[type] = None
    ) -> Optional[SqlAlchemyFactory[E, Any]]:
        """``entity_class`` 의 팩토리를 리턴합니다.

        캐시된 팩토리가 열려 있으면 그대로 리턴하고, 아니면 새로 만들어 캐시합니다.
        팩토리 생성 함수가 실패하면 ``None`` 을 리턴하므로 호출자가 확인해야
        합니다. ``key_type`` 은 타입 힌트용입니다.
        """
        try:
            return self._get_or_create(entity_class)
        except UnitOfWorkClosedError:
            raise
        except Exception:
            logger.exception("failed to create factory for %r", entity_class)
            return None

    def __getitem__(self, entity_class: Type[E]) -> SqlAlchemyFactory[E, Any]:
        try:
            return self._get_or_create(entity_class)
        except (UnitOfWorkClosedError, FactoryConstructionError):
            raise
        except Exception as e:
            raise FactoryConstructionError(
                f"cannot create factory for {entity_class!r}: {e}"
            ) from e

    # UnitOfWork 작업

    def _flush(self) -> int:
        for factory in self._factories.values():
            if isinstance(factory, SqlAlchemyFactory):
                factory.notify(FactoryAction.COMMIT)

        try:
            self.session.commit()
        except Exception:
            self.affected_rows.clear()
            raise

        counts = self.affected_rows.take()

        if self.commit_mode is CommitMode.SHARED_FLUSH:
            self.last_commit = dict(counts)
            return sum(counts.values())

        self.last_commit = AffectedRows.attribute(counts, self._factories)
        return sum(self.last_commit.values())

    def commit(self, auto_rollback: Optional[bool] = None) -> int:
        """모든 팩토리의 변경 사항을 커밋하고 영향받은 엔티티 수를 리턴합니다.

        커밋이 실패하면 ``auto_rollback`` (주어지지 않으면 UoW 기본값) 일 때
        :meth:`rollback` 을 호출한 뒤 예외를 다시 발생시킵니다.
        """
        self._check_open()
        try:
            affected = self._flush()
        except Exception:
            if self._should_rollback(auto_rollback):
                logger.warning("%r commit failed, rolling back", self)
                self.rollback()
            raise

        logger.debug("%r committed %d entities: %r", self, affected, self.last_commit)
        return affected

    async def commit_async(self, auto_rollback: Optional[bool] = None) -> int:
        """:meth:`commit` 을 워커 스레드에서 실행합니다."""
        self._check_open()
        try:
            affected = await asyncio.to_thread(self._flush)
        except Exception:
            if self._should_rollback(auto_rollback):
                logger.warning("%r commit failed, rolling back", self)
                self.rollback()
            raise

        logger.debug("%r committed %d entities: %r", self, affected, self.last_commit)
        return affected

    def _should_rollback(self, auto_rollback: Optional[bool]) -> bool:
        return self.auto_rollback if auto_rollback is None else auto_rollback

    def rollback(self) -> None:
        """커밋되지 않은 변경 사항을 버리고 마지막 커밋 상태로 되돌립니다."""
        self._check_open()
        self.session.rollback()
        self.affected_rows.clear()

    def close(self) -> None:
        """모든 팩토리와 세션을 닫습니다. 여러번 호출해도 안전합니다."""
        if self._closed:
            return

        for factory in self._factories.values():
            factory.close()

        self._factories.clear()
        self.session.close()
        self._closed = True


def validate_factory_makers(makers: FactoryMakerDict) -> FactoryMakerDict:
    """팩토리 생성 함수 레지스트리를 검사합니다.

    키는 ORM 에 매핑된 클래스, 값은 호출 가능한 객체여야 합니다.
    """
    for entity_class, maker in makers.items():
        if not callable(maker):
            raise ConfigError(f"factory maker for {entity_class!r} is not callable")
        try:
            inspect(entity_class)
        except NoInspectionAvailable as e:
            raise ConfigError(f"{entity_class!r} is not a mapped class") from e

    return dict(makers)
