class OrmFactoryError(Exception):
    """``OrmFactory`` 와 관련된 모든 에러의 기본 클래스."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    ...


class ConfigError(OrmFactoryError):
    """설정 값이나 팩토리 생성 함수 레지스트리가 잘못된 경우."""

    ...


class FactoryConstructionError(OrmFactoryError):
    """엔티티에 대한 팩토리를 만들 수 없는 경우."""

    ...


class FactoryClosedError(OrmFactoryError):
    """이미 닫힌 팩토리를 사용하려는 경우."""

    ...


class UnitOfWorkClosedError(OrmFactoryError):
    """이미 닫힌 UnitOfWork 를 사용하려는 경우."""

    ...


class EntityTypeError(OrmFactoryError, TypeError):
    """팩토리의 엔티티 클래스와 호환되지 않는 타입을 요청한 경우."""

    ...
