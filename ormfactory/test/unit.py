"""Test 헬퍼를 제공하는 모듈.

- 테스트마다 새로 만들어지는 In-memory SQLite DB 의 Session 팩토리를 제공합니다.

"""
from __future__ import annotations

from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ormfactory.orm import MapperHook, SessionMaker, clear_mappers, start_mappers


def memory_sessionmaker(init_hooks: Optional[list[MapperHook]] = None) -> SessionMaker:
    """매퍼를 다시 등록하고 빈 In-memory SQLite DB 에 연결된 Session 팩토리를 리턴합니다.

    모든 세션과 워커 스레드가 같은 DB 를 보도록 ``StaticPool`` 을 사용합니다.
    """
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    clear_mappers()
    metadata = start_mappers(use_exist=False, init_hooks=init_hooks)
    metadata.create_all(engine)
    return sessionmaker(engine)
