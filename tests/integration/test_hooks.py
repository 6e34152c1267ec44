from __future__ import annotations

import pytest
from sqlalchemy.orm import Query, Session

from ormfactory import (
    CommitMode,
    FactoryAction,
    FactoryObserver,
    NonQueryEvent,
    QueryEvent,
    SqlAlchemyFactory,
    SqlAlchemyUnitOfWork,
)
from ormfactory.orm import SessionMaker
from tests.app.domain.models import Customer, Order


def test_factory_notifies_before_each_operation(session: Session) -> None:
    observer = FactoryObserver()
    actions: list[tuple[FactoryAction, object]] = []

    @observer.on(NonQueryEvent)
    def audit(event: NonQueryEvent) -> None:
        assert event.entity_class is Customer
        actions.append((event.action, event.entity))

    customers = SqlAlchemyFactory(Customer, session, observer=observer)
    customer = Customer("kim")
    customers.save(customer)
    customers.update(customer)
    customers.delete(customer)
    customers.commit()

    assert actions == [
        (FactoryAction.SAVE, customer),
        (FactoryAction.UPDATE, customer),
        (FactoryAction.DELETE, customer),
        (FactoryAction.COMMIT, None),
    ]


def test_query_event_carries_the_composed_query(session: Session) -> None:
    observer = FactoryObserver()
    queries: list[QueryEvent] = []
    observer.register(QueryEvent, queries.append)

    customers = SqlAlchemyFactory(Customer, session, observer=observer)
    query = customers.find(Customer.name == "a")

    [event] = queries
    assert isinstance(event.query, Query)
    assert event.query is query
    assert event.action is FactoryAction.QUERY


def test_raising_hook_aborts_the_operation(session: Session) -> None:
    observer = FactoryObserver()

    def deny(event: NonQueryEvent) -> None:
        if event.action is FactoryAction.SAVE:
            raise PermissionError("read only")

    observer.register(NonQueryEvent, deny)
    orders = SqlAlchemyFactory(Order, session, observer=observer)

    with pytest.raises(PermissionError):
        orders.save(Order("sofa", 1))

    assert orders.commit() == 0


def test_uow_shares_observer_and_notifies_commit(get_session: SessionMaker) -> None:
    observer = FactoryObserver()
    committed: list[type] = []

    @observer.on(NonQueryEvent)
    def on_commit(event: NonQueryEvent) -> None:
        if event.action is FactoryAction.COMMIT:
            committed.append(event.entity_class)

    with SqlAlchemyUnitOfWork(
        get_session, commit_mode=CommitMode.SHARED_FLUSH, observer=observer
    ) as uow:
        uow[Customer].save(Customer("kim"))
        uow[Order].save(Order("sofa", 1))
        uow.commit()

    assert committed == [Customer, Order]
