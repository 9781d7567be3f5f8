from sqlalchemy import BigInteger, MetaData
from sqlalchemy.orm import declarative_base
from sqlalchemy.types import TypeDecorator, Integer

# Deterministic constraint names so Alembic can drop what it created
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

Base = declarative_base(metadata=MetaData(naming_convention=NAMING_CONVENTION))


class BigIntegerType(TypeDecorator):
    """BIGINT on PostgreSQL; INTEGER on SQLite so autoincrement primary keys work there."""

    impl = Integer
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(BigInteger())
        return dialect.type_descriptor(Integer())
