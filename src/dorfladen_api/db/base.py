from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase, declared_attr

# Stable constraint names so Alembic autogenerate matches the hand-written revisions.
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# Largest value an Integer column holds on every supported backend (PostgreSQL int4).
INTEGER_MAX = 2_147_483_647


class Base(DeclarativeBase):
    """Declarative base for ledger tables; models set ``__tablename__`` explicitly."""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)

    @declared_attr.directive
    def __tablename__(cls) -> str:  # noqa: N805
        return cls.__name__.lower()
