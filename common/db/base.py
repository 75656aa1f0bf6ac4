from sqlalchemy import BigInteger, MetaData
from sqlalchemy.orm import declarative_base
from sqlalchemy.types import TypeDecorator, Integer

# Matches the constraint names the migrations create
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_N_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

Base = declarative_base(metadata=MetaData(naming_convention=NAMING_CONVENTION))


class BigIntegerType(TypeDecorator):
    """A type that maps to BigInteger on PostgreSQL and Integer on SQLite.

    SQLite only autoincrements ``INTEGER PRIMARY KEY`` columns.
    """

    impl = Integer
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name in ("postgresql", "mysql"):
            return dialect.type_descriptor(BigInteger())
        return dialect.type_descriptor(Integer())
