from __future__ import annotations

from ormfactory import OrmFactoryConfig
from ormfactory.orm import (
    AffectedRows,
    clear_mappers,
    get_sessionmaker,
    init_db,
    set_default_sessionmaker,
    track_affected_rows,
)
from tests import count_rows, insert_customer
from tests.app.adapters.orm import init_mappers
from tests.app.domain.models import Customer, Employee, Manager, Order


def test_affected_rows_attributes_each_class_once() -> None:
    rows = AffectedRows()
    rows.record(Employee("staff"))
    rows.record(Manager("boss"))
    rows.record(Order("sofa", 1))
    assert rows.total == 3

    counts = rows.take()
    assert AffectedRows.attribute(counts, [Employee]) == {Employee: 2}
    assert AffectedRows.attribute(counts, [Employee, Manager]) == {
        Employee: 1,
        Manager: 1,
    }
    assert AffectedRows.attribute(counts, [Manager, Customer]) == {
        Manager: 1,
        Customer: 0,
    }


def test_affected_rows_take_resets_counts() -> None:
    rows = AffectedRows()
    rows.record(Order("sofa", 1))

    assert rows.take() == {Order: 1}
    assert rows.total == 0


def test_tracker_is_registered_once_per_session(session) -> None:
    tracker = track_affected_rows(session)
    assert track_affected_rows(session) is tracker

    session.add(Order("sofa", 1))
    session.flush()
    assert tracker.by_class == {Order: 1}

    session.rollback()
    assert tracker.total == 0


def test_init_db_with_config_creates_tables() -> None:
    clear_mappers()
    try:
        get_session = init_db(
            init_hooks=[init_mappers], config=OrmFactoryConfig(db_url="sqlite://")
        )
        session = get_session()
        insert_customer(session, "kim")
        assert count_rows(session, "customer") == 1
        session.close()
    finally:
        clear_mappers()


def test_default_sessionmaker_is_used_until_reset(get_session) -> None:
    assert get_sessionmaker() is get_session

    set_default_sessionmaker(None)
    set_default_sessionmaker(get_session)
    assert get_sessionmaker() is get_session
