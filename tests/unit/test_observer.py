from __future__ import annotations

import pytest

from ormfactory.hooks import FactoryAction, FactoryObserver, NonQueryEvent, QueryEvent


class Thing:
    pass


def test_handlers_run_in_registration_order() -> None:
    observer = FactoryObserver()
    called: list[str] = []

    observer.register(NonQueryEvent, lambda e: called.append("first"))

    @observer.on(NonQueryEvent)
    def second(event: NonQueryEvent) -> None:
        called.append("second")

    observer.notify(NonQueryEvent(FactoryAction.SAVE, Thing, Thing()))
    assert called == ["first", "second"]


def test_handlers_only_receive_their_event_type() -> None:
    observer = FactoryObserver()
    received: list[object] = []
    observer.register(QueryEvent, received.append)

    observer.notify(NonQueryEvent(FactoryAction.COMMIT, Thing))
    assert received == []


def test_unregister_removes_handler() -> None:
    observer = FactoryObserver()
    received: list[object] = []
    observer.register(NonQueryEvent, received.append)
    observer.unregister(NonQueryEvent, received.append)

    observer.notify(NonQueryEvent(FactoryAction.DELETE, Thing))
    assert received == []


def test_handler_errors_are_not_swallowed() -> None:
    observer = FactoryObserver()

    def broken(event: NonQueryEvent) -> None:
        raise ValueError("audit failed")

    observer.register(NonQueryEvent, broken)

    with pytest.raises(ValueError, match="audit failed"):
        observer.notify(NonQueryEvent(FactoryAction.UPDATE, Thing))
