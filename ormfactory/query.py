"""필터와 eager-load 옵션을 쿼리에 합성하는 헬퍼."""
from __future__ import annotations

from functools import reduce
from typing import Any, Iterable, Optional, TypeVar

from sqlalchemy.orm import Query, RelationshipProperty, joinedload
from sqlalchemy.orm.attributes import QueryableAttribute
from sqlalchemy.orm.interfaces import LoaderOption

from ormfactory.core import OrmFactoryError

T = TypeVar("T")

Include = Any
"""관계 속성(``Customer.orders``) 또는 로더 옵션(``selectinload(...)``)."""
Filter = Any
"""``Customer.name == "a"`` 와 같은 SQL 표현식."""


def as_loader_option(include: Include) -> LoaderOption:
    """include 항목을 로더 옵션으로 바꿉니다.

    관계 속성은 같은 쿼리에서 함께 로드되도록 ``joinedload`` 로 감쌉니다.
    """
    if isinstance(include, LoaderOption):
        return include

    if isinstance(include, QueryableAttribute) and isinstance(
        include.property, RelationshipProperty
    ):
        return joinedload(include)

    raise OrmFactoryError(f"cannot eager-load {include!r}")


def compose_query(
    query: Query[T],
    includes: Iterable[Include] = (),
    filters: Iterable[Filter] = (),
    filter_by: Optional[dict[str, Any]] = None,
) -> Query[T]:
    """``query`` 에 include 옵션과 필터 조건들을 차례로 접어 넣습니다.

    include 순서는 결과 집합에 영향이 없고, 필터는 모두 AND 로 결합됩니다.
    쿼리는 실행되지 않고 합성된 :class:`~sqlalchemy.orm.Query` 만 리턴합니다.
    """
    query = reduce(lambda q, inc: q.options(as_loader_option(inc)), includes, query)
    query = reduce(lambda q, criterion: q.filter(criterion), filters, query)

    if filter_by:
        query = query.filter_by(**filter_by)

    return query
