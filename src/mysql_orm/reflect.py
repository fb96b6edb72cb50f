"""
Model reflection for MySQL ORM.

Derives table metadata (columns, type affinities, nullability, primary key
and join relations) from pydantic model classes. Each model class is
inspected once and the result is cached for the lifetime of the process.

Example::

    from mysql_orm.reflect import resolve_model

    model = resolve_model(User)
    model.table_name          # "user"
    model.pk_name             # "id"
    [f.column for f in model.fields]
"""

from __future__ import annotations

import copy
import threading
import types
import typing
from dataclasses import dataclass, field, replace
from datetime import datetime
from functools import cached_property
from typing import Annotated, Any, get_args, get_origin

from pydantic import BaseModel
from pydantic.fields import FieldInfo
from pydantic_core import PydanticUndefined, to_json

from .exceptions import ModelDefinitionError, QueryValidationError
from .fields import is_primary_key, is_relation, is_small_int
from .model_base import table_name_for
from .types import ColumnType
from .utils import parse_name, qualified_column, quote_identifier, select_column

_NONE_TYPE = type(None)

_JSON_CONTAINERS = (list, tuple, set, frozenset, dict)


@dataclass(frozen=True)
class Field:
    """
    One mapped column.

    Attributes:
        name: Attribute name on the model class
        column: Column name in the table (alias or snake_case name)
        column_type: Resolved type affinity
        nullable: Whether the annotation allows ``None``
        position: Index of the attribute in the model's field order
        table: Table the column belongs to (used for qualified references)
        python_type: Annotation with ``Optional``/``Annotated`` stripped
        alias: Key used when validating a row into the model
    """

    name: str
    column: str
    column_type: ColumnType
    nullable: bool
    position: int
    table: str
    python_type: Any = field(compare=False, repr=False)
    alias: str | None = None
    info: FieldInfo | None = field(default=None, compare=False, repr=False)

    @cached_property
    def quoted(self) -> str:
        """Plain quoted reference, e.g. ```name```."""
        return quote_identifier(self.column)

    @cached_property
    def quoted_select(self) -> str:
        """SELECT-list reference, e.g. ```user`.`name``` or ``COUNT(*) as `count```."""
        return select_column(self.table, self.column)

    @cached_property
    def quoted_joined(self) -> str:
        """Reference used for joined tables' columns, e.g. ```user`.`name```."""
        return qualified_column(self.table, self.column)

    @property
    def is_primary_key(self) -> bool:
        return self.column_type.is_primary_key

    @property
    def is_json(self) -> bool:
        return self.column_type == ColumnType.JSON

    @property
    def key(self) -> str:
        """Key for this field in a dict passed to ``model_validate``."""
        return self.alias or self.name

    def zero_value(self) -> Any:
        """Value used when a column is not selected or holds SQL NULL."""
        if self.nullable:
            return None
        return default_value(self.info, self.python_type)

    def to_db(self, value: Any) -> Any:
        """Convert an attribute value into a statement argument."""
        if self.is_json:
            if value is None:
                return None
            return to_json(value).decode()
        return value


@dataclass(frozen=True)
class JoinRelation:
    """
    A relation attribute filled by the join assembler.

    Attributes:
        name: Attribute name on the owning model
        position: Index of the attribute in the owning model's field order
        related: Related model class
        plural: ``True`` for ``list[Model]`` relations (one-to-many / many-to-many)
    """

    name: str
    position: int
    related: type[BaseModel]
    plural: bool


@dataclass(frozen=True)
class Model:
    """
    Derived, immutable table metadata for one model class.

    Attributes:
        model_cls: The pydantic model class
        table_name: Table name
        fields: Mapped columns in declaration order
        pk_name: Primary key column name, ``None`` when the model has none
        pk_position: Index of the primary key in ``fields`` (-1 when none)
        joins: Related class name -> relation attribute
        many_to_many: Link record contributing no columns when joined
    """

    model_cls: type[BaseModel]
    table_name: str
    fields: tuple[Field, ...]
    pk_name: str | None = None
    pk_position: int = -1
    joins: dict[str, JoinRelation] = field(default_factory=dict)
    many_to_many: bool = False

    @property
    def name(self) -> str:
        return self.model_cls.__name__

    @property
    def pk_field(self) -> Field | None:
        if self.pk_position == -1:
            return None
        return self.fields[self.pk_position]

    @property
    def has_int_pk(self) -> bool:
        pk = self.pk_field
        return pk is not None and pk.column_type == ColumnType.PK_INTEGER

    @cached_property
    def quoted_table(self) -> str:
        return quote_identifier(self.table_name)

    def require_pk(self) -> Field:
        """Return the primary key field or raise if the model has none."""
        pk = self.pk_field
        if pk is None:
            raise ModelDefinitionError(f"Missing primary key for table ({self.table_name})")
        return pk

    def find_field(self, name: str) -> Field | None:
        """Look up a field by column name, then by attribute name."""
        for f in self.fields:
            if f.column == name:
                return f
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def get_fields(self, columns: typing.Sequence[str] | None = None) -> list[Field]:
        """
        Return the fields for a column allow-list.

        An empty list selects every field. The primary key is always included
        so that joined rows can be grouped. Unknown names raise
        ``QueryValidationError``.
        """
        if not columns:
            return list(self.fields)
        wanted: set[int] = set()
        for column in columns:
            f = self.find_field(column)
            if f is None:
                raise QueryValidationError(f"unrecognized column ({column}) for table ({self.table_name})")
            wanted.add(f.position)
        return [f for i, f in enumerate(self.fields) if i == self.pk_position or f.position in wanted]

    def fields_no_pk(self, columns: typing.Sequence[str] | None = None) -> list[Field]:
        return [f for f in self.get_fields(columns) if not f.is_primary_key]

    def get_values(self, record: BaseModel, fields: typing.Sequence[Field]) -> list[Any]:
        """Read the statement arguments for ``fields`` from a record."""
        return [f.to_db(getattr(record, f.name)) for f in fields]

    def pk_value(self, record: BaseModel) -> Any:
        return getattr(record, self.require_pk().name)

    def with_table(self, table_name: str) -> Model:
        """Copy of the model with the table (and every field's qualifier) replaced."""
        retargeted = tuple(replace(f, table=table_name) for f in self.fields)
        return replace(self, table_name=table_name, fields=retargeted)


def is_empty_pk(value: Any) -> bool:
    """An unset primary key: ``None``, ``""`` or ``0``."""
    return value is None or value == "" or (isinstance(value, int) and not isinstance(value, bool) and value == 0)


def unwrap_optional(annotation: Any) -> tuple[Any, bool, list[Any]]:
    """
    Strip ``X | None`` and nested ``Annotated`` from an annotation.

    Returns:
        (inner annotation, nullable, metadata found on nested ``Annotated``)
    """
    metadata: list[Any] = []
    nullable = False
    origin = get_origin(annotation)
    if origin is types.UnionType or origin is typing.Union:
        args = get_args(annotation)
        non_none_args = [a for a in args if a is not _NONE_TYPE]
        nullable = _NONE_TYPE in args
        if len(non_none_args) != 1:
            raise ModelDefinitionError(f"Unsupported union type ({annotation!r})")
        annotation = non_none_args[0]
    if get_origin(annotation) is Annotated:
        metadata.extend(annotation.__metadata__)
        annotation = annotation.__origin__
    return annotation, nullable, metadata


def map_column_type(python_type: Any, small_int: bool = False) -> ColumnType | None:
    """Map a Python annotation to a column type affinity (``None`` when unsupported)."""
    if python_type is Any:
        return ColumnType.JSON
    origin = get_origin(python_type) or python_type
    if not isinstance(origin, type):
        return None
    # bool is an int subclass, check it first
    if issubclass(origin, bool):
        return ColumnType.BOOLEAN
    if issubclass(origin, int):
        return ColumnType.SMALL_INTEGER if small_int else ColumnType.INTEGER
    if issubclass(origin, float):
        return ColumnType.DOUBLE
    if issubclass(origin, str):
        return ColumnType.TEXT
    if issubclass(origin, datetime):
        return ColumnType.TIMESTAMP
    if issubclass(origin, _JSON_CONTAINERS) or issubclass(origin, BaseModel):
        return ColumnType.JSON
    return None


def default_value(info: FieldInfo | None, python_type: Any) -> Any:
    """Return a field's declared default, or the zero value of its type."""
    if info is not None:
        if info.default is not PydanticUndefined:
            return copy.deepcopy(info.default)
        if info.default_factory is not None:
            return info.default_factory()  # type: ignore[call-arg]
    return zero_of(python_type)


def zero_of(python_type: Any) -> Any:
    if python_type is Any:
        return None
    origin = get_origin(python_type) or python_type
    if not isinstance(origin, type):
        return None
    if issubclass(origin, bool):
        return False
    if issubclass(origin, int):
        return 0
    if issubclass(origin, float):
        return 0.0
    if issubclass(origin, str):
        return ""
    if issubclass(origin, datetime):
        return datetime.min
    if issubclass(origin, _JSON_CONTAINERS):
        return origin()
    if issubclass(origin, BaseModel):
        return origin.model_construct()
    return None


def _resolve_pk(
    model_cls: type[BaseModel],
    candidates: list[tuple[int, str, str, bool]],
) -> int:
    """
    Pick the primary key among ``(index, name, column, marked)`` candidates.

    Precedence: ``primary_key`` in the model config, the ``PrimaryKey``
    marker, then a column named ``id``.
    """
    configured = model_cls.model_config.get("primary_key", None)
    marked = [c for c in candidates if c[3]]
    if len(marked) > 1:
        names = ", ".join(c[1] for c in marked)
        raise ModelDefinitionError(f"More than one primary key declared on {model_cls.__name__}: {names}")
    if configured:
        for index, name, column, _ in candidates:
            if configured in (name, column):
                if marked and marked[0][0] != index:
                    raise ModelDefinitionError(
                        f"More than one primary key declared on {model_cls.__name__}: {configured}, {marked[0][1]}"
                    )
                return index
        raise ModelDefinitionError(f"Primary key ({configured}) is not a column of {model_cls.__name__}")
    if marked:
        return marked[0][0]
    for index, _, column, _ in candidates:
        if column == "id":
            return index
    return -1


def _build_model(model_cls: type[BaseModel]) -> Model:
    table_name = table_name_for(model_cls)
    many_to_many = bool(model_cls.model_config.get("many_to_many", False))

    pending: list[dict[str, Any]] = []
    joins: dict[str, JoinRelation] = {}

    for position, (name, info) in enumerate(model_cls.model_fields.items()):
        if info.exclude is True:
            continue
        inner, nullable, nested_metadata = unwrap_optional(info.annotation)
        metadata = [*info.metadata, *nested_metadata]

        if is_relation(metadata):
            plural = get_origin(inner) is list
            related = get_args(inner)[0] if plural and get_args(inner) else inner
            related, _, _ = unwrap_optional(related)
            if not (isinstance(related, type) and issubclass(related, BaseModel)):
                raise ModelDefinitionError(
                    f"Relation field {model_cls.__name__}.{name} must reference a model, got {related!r}"
                )
            joins[related.__name__] = JoinRelation(name=name, position=position, related=related, plural=plural)
            continue

        column_type = map_column_type(inner, small_int=is_small_int(metadata))
        if column_type is None:
            raise ModelDefinitionError(f"Unsupported type ({inner!r}) for field {model_cls.__name__}.{name}")

        pending.append(
            {
                "name": name,
                "column": info.alias or parse_name(name),
                "column_type": column_type,
                "nullable": nullable,
                "position": position,
                "table": table_name,
                "python_type": inner,
                "alias": info.alias,
                "info": info,
                "marked": is_primary_key(metadata),
            }
        )

    pk_index = _resolve_pk(
        model_cls,
        [(i, p["name"], p["column"], p["marked"]) for i, p in enumerate(pending)],
    )
    if pk_index != -1:
        pk = pending[pk_index]
        python_type = pk["python_type"]
        if isinstance(python_type, type) and issubclass(python_type, int) and not issubclass(python_type, bool):
            pk["column_type"] = ColumnType.PK_INTEGER
        elif isinstance(python_type, type) and issubclass(python_type, str):
            pk["column_type"] = ColumnType.PK_STRING
        else:
            raise ModelDefinitionError(
                f"Unsupported type ({python_type!r}) for primary key {model_cls.__name__}.{pk['name']}"
            )

    fields = tuple(Field(**{k: v for k, v in p.items() if k != "marked"}) for p in pending)
    return Model(
        model_cls=model_cls,
        table_name=table_name,
        fields=fields,
        pk_name=fields[pk_index].column if pk_index != -1 else None,
        pk_position=pk_index,
        joins=joins,
        many_to_many=many_to_many,
    )


_MODEL_CACHE: dict[type[BaseModel], Model] = {}
_cache_lock = threading.Lock()


def resolve_model(model: type[BaseModel] | BaseModel) -> Model:
    """
    Return the cached ``Model`` for a model class or instance.

    Concurrent first-time resolution may build the metadata twice; the first
    stored result wins and every caller receives it.

    Raises:
        ModelDefinitionError: If the class cannot be mapped to a table
    """
    model_cls = model if isinstance(model, type) else type(model)
    if not issubclass(model_cls, BaseModel):
        raise ModelDefinitionError(f"Expected a pydantic model, got {model_cls!r}")

    with _cache_lock:
        cached = _MODEL_CACHE.get(model_cls)
    if cached is not None:
        return cached

    built = _build_model(model_cls)
    with _cache_lock:
        return _MODEL_CACHE.setdefault(model_cls, built)


def clear_model_cache() -> None:
    """Drop all cached model metadata. Useful for testing."""
    with _cache_lock:
        _MODEL_CACHE.clear()


def column_name(model: type[BaseModel] | BaseModel, field_name: str) -> str:
    """
    Return the table-qualified, quoted column for a field.

    Used to disambiguate predicates in join queries::

        Equal(column_name(User, "name"), "alice")  # `user`.`name` = ?
    """
    resolved = resolve_model(model)
    f = resolved.find_field(field_name)
    if f is None:
        raise QueryValidationError(f"unrecognized column ({field_name}) for table ({resolved.table_name})")
    return f.quoted_joined


__all__ = [
    "Field",
    "JoinRelation",
    "Model",
    "resolve_model",
    "clear_model_cache",
    "column_name",
    "is_empty_pk",
    "map_column_type",
]
