"""팩토리 작업을 관찰하는 훅(hook)을 지원합니다.

훅은 감사(audit) 로그 같은 부수 효과를 위한 것이며, 등록된 순서대로 동기적으로
호출됩니다. 핸들러에서 발생한 예외는 숨기지 않고 호출자에게 그대로 전달되며,
이 경우 관찰 대상 작업은 실행되지 않습니다.
"""
from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Type, TypeVar, Union

from sqlalchemy.orm import Query


class FactoryAction(Enum):
    SAVE = "save"
    UPDATE = "update"
    DELETE = "delete"
    COMMIT = "commit"
    QUERY = "query"


@dataclass(frozen=True)
class NonQueryEvent:
    """엔티티를 변경하거나 커밋하기 직전에 발행되는 이벤트."""

    action: FactoryAction
    entity_class: type
    entity: Optional[Any] = None
    """대상 엔티티. 커밋 이벤트에서는 ``None`` 입니다."""


@dataclass(frozen=True)
class QueryEvent:
    """쿼리가 합성된 직후, 실행되기 전에 발행되는 이벤트."""

    entity_class: type
    query: Query
    action: FactoryAction = FactoryAction.QUERY


FactoryEvent = Union[NonQueryEvent, QueryEvent]
FactoryEventType = Union[Type[NonQueryEvent], Type[QueryEvent]]
HandlerMap = dict[FactoryEventType, list[Callable[[Any], Any]]]

F = TypeVar("F", bound=Callable[..., Any])


class FactoryObserver:
    """이벤트 타입별 핸들러 목록을 관리하고 이벤트를 전달합니다."""

    def __init__(self, handlers: Optional[HandlerMap] = None):
        self.handlers: HandlerMap = defaultdict(list)
        if handlers:
            for etype, funcs in handlers.items():
                self.handlers[etype].extend(funcs)

    def __repr__(self) -> str:
        return f"FactoryObserver[{dict(self.handlers)}]"

    def register(self, etype: FactoryEventType, func: Callable[[Any], Any]) -> None:
        self.handlers[etype].append(func)

    def unregister(self, etype: FactoryEventType, func: Callable[[Any], Any]) -> None:
        self.handlers[etype].remove(func)

    def on(self, etype: FactoryEventType) -> Callable[[F], F]:
        """핸들러 데코레이터.

        함수를 ``etype`` 이벤트 핸들러로 등록합니다. ::

            @observer.on(NonQueryEvent)
            def audit(event):
                ...
        """

        def _wrapper(func: F) -> F:
            self.register(etype, func)
            return func

        return _wrapper

    def notify(self, event: FactoryEvent) -> None:
        for handler in self.handlers.get(type(event), ()):
            handler(event)
