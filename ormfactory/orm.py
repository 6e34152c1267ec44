"""ORM 어댑터 모듈"""
from __future__ import annotations

import io
import logging
import re
from collections import Counter
from typing import TYPE_CHECKING, Any, Callable, Iterable, Optional, Type, Union, cast

from sqlalchemy import MetaData, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import clear_mappers as _clear_mappers
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.session import Session
from sqlalchemy.pool import Pool

from ormfactory.logging import get_logger

if TYPE_CHECKING:
    from ormfactory.config import OrmFactoryConfig

SessionMaker = Callable[[], Session]
"""Session 팩토리 타입."""
MapperHook = Callable[[MetaData], Any]
"""``MetaData`` 를 받아 테이블과 매퍼를 등록하는 사용자 함수 타입."""

metadata: Optional[MetaData] = None

_session_factory: Optional[SessionMaker] = None

AFFECTED_ROWS_KEY = "ormfactory.affected_rows"
"""``Session.info`` 에 :class:`AffectedRows` 를 저장하는 키."""

logger = get_logger("ormfactory.orm")


def get_sessionmaker() -> SessionMaker:
    """기본설정으로 SqlAlchemy Session 팩토리를 만듭니다.

    :func:`set_default_sessionmaker` 로 지정된 팩토리가 없다면
    :func:`ormfactory.config.get_config` 설정으로 DB를 초기화합니다.
    """
    from ormfactory.config import get_config

    global _session_factory

    if not _session_factory:
        _session_factory = init_db(config=get_config())

    return _session_factory


def set_default_sessionmaker(session_factory: Optional[SessionMaker]) -> None:
    """팩토리나 UoW 생성시 세션이 주어지지 않을 때 사용할 Session 팩토리를 지정합니다."""
    global _session_factory
    _session_factory = session_factory


def init_db(
    db_url: Optional[str] = None,
    drop_all: bool = False,
    show_log: bool = False,
    init_hooks: Optional[list[MapperHook]] = None,
    config: Optional[OrmFactoryConfig] = None,
) -> SessionMaker:
    """DB 엔진을 초기화 하고 Session 팩토리를 리턴합니다."""
    meta = start_mappers(init_hooks=init_hooks)

    engine = init_engine(
        meta,
        db_url if db_url else (config.get_db_url() if config else "sqlite://"),
        connect_args=config.get_db_connect_args() if config else None,
        poolclass=config.get_db_poolclass() if config else None,
        drop_all=drop_all,
        show_log=show_log or (config.show_log if config else False),
    )
    return cast(SessionMaker, sessionmaker(engine))


def start_mappers(
    use_exist: bool = True, init_hooks: Optional[list[MapperHook]] = None
) -> MetaData:
    """도메인 객체들을 SqlAlchemy ORM 매퍼에 등록합니다."""
    global metadata  # pylint: disable=global-statement,invalid-name
    if use_exist and metadata:
        return metadata

    metadata = MetaData()

    # 사용자 매핑 함수 추가.
    if init_hooks:
        for hook in init_hooks:
            hook(metadata)

    return metadata


def clear_mappers() -> None:
    """ORM 매핑을 초기화 합니다."""
    global metadata  # pylint: disable=global-statement,invalid-name
    _clear_mappers()
    metadata = None


def init_engine(
    meta: MetaData,
    url: str,
    connect_args: Optional[dict[str, Any]] = None,
    poolclass: Optional[Type[Pool]] = None,
    show_log: Union[bool, dict[str, Any]] = False,
    isolation_level: Optional[str] = None,
    drop_all: bool = False,
) -> Engine:
    """ORM Engine을 초기화 하고 ``meta`` 의 테이블들을 생성합니다.

    Args:
        show_log: ``True`` 면 생성된 ``CREATE`` 문만, ``{"all": True}`` 면
            엔진이 남긴 모든 SQL 로그를 출력합니다.
    """
    engine_logger = logging.getLogger("sqlalchemy.engine.Engine")
    out = io.StringIO()
    handler = logging.StreamHandler(out)
    if show_log:
        engine_logger.addHandler(handler)

    kwargs: dict[str, Any] = dict(connect_args=connect_args or {}, echo=bool(show_log))
    if poolclass:
        kwargs["poolclass"] = poolclass
    if isolation_level:
        kwargs["isolation_level"] = isolation_level

    engine = create_engine(url, **kwargs)

    try:
        if drop_all:
            meta.drop_all(engine)

        meta.create_all(engine)
    finally:
        engine_logger.removeHandler(handler)

    if show_log:
        log_txt = out.getvalue()
        if show_log is True:
            logger.info(
                "".join(re.findall("CREATE.*?\n\n", log_txt, re.DOTALL | re.I))
            )
        elif isinstance(show_log, dict):
            if show_log.get("all"):
                logger.info(log_txt)

    return engine


class AffectedRows:
    """세션이 flush 한 엔티티 수를 매핑 클래스별로 집계합니다.

    커밋 사이에 autoflush 로 먼저 쓰여진 엔티티들도 포함됩니다.
    """

    def __init__(self) -> None:
        self.by_class: Counter[type] = Counter()

    def __repr__(self) -> str:
        return f"AffectedRows[{dict(self.by_class)}]"

    @property
    def total(self) -> int:
        return sum(self.by_class.values())

    def record(self, obj: Any) -> None:
        self.by_class[type(obj)] += 1

    @staticmethod
    def attribute(counts: Counter[type], owners: Iterable[type]) -> dict[type, int]:
        """집계된 각 클래스를 ``owners`` 중 하나에만 배정합니다.

        배정되는 클래스는 MRO 상 가장 가까운 ``owners`` 의 클래스이며, 어느 것의
        하위 클래스도 아닌 엔티티는 집계하지 않습니다.
        """
        attributed = dict.fromkeys(owners, 0)
        for cls, n in counts.items():
            owner = next((c for c in cls.__mro__ if c in attributed), None)
            if owner is not None:
                attributed[owner] += n
        return attributed

    def take(self) -> Counter[type]:
        """지금까지의 집계를 리턴하고 초기화합니다."""
        taken, self.by_class = self.by_class, Counter()
        return taken

    def clear(self) -> None:
        self.by_class.clear()


def track_affected_rows(session: Session) -> AffectedRows:
    """세션에 flush 이벤트 리스너를 한 번만 등록하고 집계 객체를 리턴합니다."""
    tracker = session.info.get(AFFECTED_ROWS_KEY)
    if tracker is None:
        tracker = session.info[AFFECTED_ROWS_KEY] = AffectedRows()
        event.listen(session, "after_flush", _record_flushed)
        event.listen(session, "after_soft_rollback", _clear_flushed)
    return cast(AffectedRows, tracker)


def _record_flushed(session: Session, flush_context: Any) -> None:
    # after_flush 시점의 new/dirty/deleted 는 아직 flush 이전 상태입니다.
    tracker: AffectedRows = session.info[AFFECTED_ROWS_KEY]
    for obj in session.new:
        tracker.record(obj)
    for obj in session.deleted:
        tracker.record(obj)
    for obj in session.dirty:
        if session.is_modified(obj, include_collections=False):
            tracker.record(obj)


def _clear_flushed(session: Session, previous_transaction: Any) -> None:
    session.info[AFFECTED_ROWS_KEY].clear()
