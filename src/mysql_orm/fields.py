"""
Field markers for MySQL ORM models.

Markers are placed in ``Annotated`` metadata and read by the model
reflector; pydantic validation is unaffected.

Example:
    from typing import Annotated
    from mysql_orm import BaseMySQLModel
    from mysql_orm.fields import PrimaryKey, Relation, SmallInt

    class Subscription(BaseMySQLModel):
        id: int = 0
        user_id: int = 0
        url: str = ""

    class User(BaseMySQLModel):
        email: Annotated[str, PrimaryKey] = ""
        level: SmallInt = 0
        subscriptions: Annotated[list[Subscription], Relation] = []
"""

from collections.abc import Iterable
from typing import Annotated, Any


class _PrimaryKeyMarker:
    """Marks a field as the model's primary key."""

    def __repr__(self) -> str:
        return "PrimaryKey"


class _RelationMarker:
    """
    Marks a field as a join relation.

    A ``list[Model]`` annotation is a one-to-many (or many-to-many) relation,
    any other model annotation is one-to-one. Relation fields are filled by
    the join assembler and never become columns.
    """

    def __repr__(self) -> str:
        return "Relation"


class _SmallIntMarker:
    """Maps an ``int`` field to ``SMALLINT`` instead of ``INT``."""

    def __repr__(self) -> str:
        return "SmallInt"


PrimaryKey = _PrimaryKeyMarker()
Relation = _RelationMarker()
SMALL_INT = _SmallIntMarker()

SmallInt = Annotated[int, SMALL_INT]


def _has_marker(metadata: Iterable[Any], marker_type: type) -> bool:
    return any(isinstance(m, marker_type) for m in metadata)


def is_primary_key(metadata: Iterable[Any]) -> bool:
    return _has_marker(metadata, _PrimaryKeyMarker)


def is_relation(metadata: Iterable[Any]) -> bool:
    return _has_marker(metadata, _RelationMarker)


def is_small_int(metadata: Iterable[Any]) -> bool:
    return _has_marker(metadata, _SmallIntMarker)


__all__ = [
    "PrimaryKey",
    "Relation",
    "SMALL_INT",
    "SmallInt",
    "is_primary_key",
    "is_relation",
    "is_small_int",
]
