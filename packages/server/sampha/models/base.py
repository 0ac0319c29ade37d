"""SQLAlchemy declarative base and mixins for sampha models."""
from sqlalchemy import String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from sampha.utils import gen_id


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


class PrefixedIdMixin:
    """
    Mixin for entities with prefixed string IDs ('task_3f9c...').

    Subclasses set ``_id_prefix``; rows created through the API get their id
    from ``generate_id()`` or ``sampha.utils.gen_id`` with the same prefix.
    """
    _id_prefix: str = ""

    id: Mapped[str] = mapped_column(String(64), primary_key=True)

    @classmethod
    def generate_id(cls) -> str:
        return gen_id(cls._id_prefix)
