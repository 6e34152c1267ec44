from .errors import (  # noqa
    ConfigError,
    EntityTypeError,
    FactoryClosedError,
    FactoryConstructionError,
    OrmFactoryError,
    UnitOfWorkClosedError,
)
from .models import (  # noqa
    Committable,
    CommitMode,
    E,
    Entity,
    K,
    SoftDeletable,
    is_soft_deletable,
)
