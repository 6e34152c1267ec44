"""SqlAlchemy ``Session`` 위에 구현된 제네릭 팩토리(레포지터리)와 UnitOfWork."""
from .config import OrmFactoryConfig, get_config, set_config  # noqa
from .core import (  # noqa
    CommitMode,
    ConfigError,
    EntityTypeError,
    FactoryClosedError,
    FactoryConstructionError,
    OrmFactoryError,
    SoftDeletable,
    UnitOfWorkClosedError,
)
from .factory import SqlAlchemyFactory  # noqa
from .hooks import FactoryAction, FactoryObserver, NonQueryEvent, QueryEvent  # noqa
from .uow import FactoryMakerDict, FactoryMakerFunc, SqlAlchemyUnitOfWork  # noqa
