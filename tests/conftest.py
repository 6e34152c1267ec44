# pylint: disable=redefined-outer-name
"""pytest 에서 사용될 전역 Fixture들을 정의합니다."""
from __future__ import annotations

from typing import Generator

import pytest
from sqlalchemy.orm import Session

from ormfactory import CommitMode, SqlAlchemyFactory, SqlAlchemyUnitOfWork
from ormfactory.orm import SessionMaker, set_default_sessionmaker
from ormfactory.test.unit import memory_sessionmaker
from tests.app.adapters.orm import init_mappers
from tests.app.domain.models import Customer, Order


@pytest.fixture
def get_session() -> Generator[SessionMaker, None, None]:
    """매번 새로 만들어진 In-memory DB 의 Session 팩토리를 리턴하는 픽스쳐 입니다.

    테스트 동안 기본 Session 팩토리로도 지정됩니다.

    :rtype: :class:`~ormfactory.orm.SessionMaker`
    """
    get_session = memory_sessionmaker(init_hooks=[init_mappers])
    set_default_sessionmaker(get_session)
    yield get_session
    set_default_sessionmaker(None)


@pytest.fixture
def session(get_session: SessionMaker) -> Generator[Session, None, None]:
    """테스트에 사용될 새로운 :class:`.Session` 픽스처를 리턴합니다."""
    session = get_session()
    yield session
    session.close()


@pytest.fixture
def customers(session: Session) -> SqlAlchemyFactory[Customer, int]:
    return SqlAlchemyFactory(Customer, session)


@pytest.fixture
def orders(session: Session) -> SqlAlchemyFactory[Order, int]:
    return SqlAlchemyFactory(Order, session)


@pytest.fixture
def uow(get_session: SessionMaker) -> Generator[SqlAlchemyUnitOfWork, None, None]:
    with SqlAlchemyUnitOfWork(get_session, commit_mode=CommitMode.SHARED_FLUSH) as uow:
        yield uow
