from __future__ import annotations

from enum import Enum
from typing import Protocol, TypeVar, runtime_checkable


class Entity(Protocol):
    """Entity 프로토콜 명세.

    ORM 에 매핑된 도메인 객체라면 무엇이든 엔티티가 될 수 있습니다.
    PK 의 타입은 팩토리의 두번째 타입 파라메터로 표현합니다.
    """


E = TypeVar("E", bound=Entity)
K = TypeVar("K")


class SoftDeletable:
    """논리 삭제(soft delete)를 지원하는 엔티티가 상속해야 하는 믹스인.

    이 클래스를 상속한 엔티티는 팩토리의 ``delete`` 호출시 실제로 삭제되지 않고
    :attr:`is_deleted` 플래그만 ``True`` 로 바뀝니다. 지원 여부는 인스턴스가
    아니라 엔티티 클래스 단위로 결정됩니다.
    """

    is_deleted: bool = False


def is_soft_deletable(entity_class: type) -> bool:
    """엔티티 클래스가 논리 삭제를 지원하는지 확인합니다."""
    return issubclass(entity_class, SoftDeletable)


class CommitMode(Enum):
    """UnitOfWork 커밋 결과(영향받은 레코드 수)를 집계하는 방식."""

    SHARED_FLUSH = "shared"
    """공유 세션을 한 번 flush 하고 그 결과를 그대로 리턴합니다."""

    PER_FACTORY = "per_factory"
    """한 번 flush 한 뒤 영향받은 엔티티를 각 팩토리의 엔티티 클래스별로 집계합니다."""


@runtime_checkable
class Committable(Protocol):
    """UnitOfWork 가 캐시하는 팩토리의 공통 인터페이스."""

    @property
    def closed(self) -> bool:
        ...

    def commit(self) -> int:
        ...

    async def commit_async(self) -> int:
        ...

    def close(self) -> None:
        ...
