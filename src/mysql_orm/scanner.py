"""
Row decoding and join assembly.

A ``RowBinding`` is prepared once per (model, selected columns) pair and
knows which result-row slots feed which model attributes. ``RowAssembler``
streams result rows through the bindings and stitches joined rows back into
nested records.

Rows belonging to the same root record must be contiguous in the result
stream. The assembler groups a row with the previous root record only when
their primary keys are equal; a root whose rows are interleaved with other
roots is emitted once per run. Order by the root primary key when a join
query carries its own ORDER BY.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from typing import Any, Generic, TypeVar

from pydantic import BaseModel
from pydantic_core import from_json

from .exceptions import ModelDefinitionError
from .reflect import Field, JoinRelation, Model, default_value, is_empty_pk, unwrap_optional

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


def decode_value(f: Field, raw: Any) -> Any:
    """
    Decode one raw column value for a field.

    SQL NULL becomes ``None`` for nullable fields and the field's zero value
    otherwise (LEFT JOIN rows with nothing joined arrive as NULLs). JSON
    columns are parsed from text or bytes; an empty payload keeps the zero
    value.
    """
    if raw is None:
        return f.zero_value()
    if f.is_json:
        if isinstance(raw, (bytearray, memoryview)):
            raw = bytes(raw)
        if isinstance(raw, (str, bytes)):
            if not raw:
                return f.zero_value()
            return from_json(raw)
    return raw


class RowBinding:
    """
    Per-model decoding plan.

    Attributes:
        model: Reflected model
        fields: Columns present in the result row, in select order
        width: Number of result-row slots consumed
    """

    def __init__(self, model: Model, fields: Sequence[Field]):
        self.model = model
        self.fields = tuple(fields)
        self.width = len(self.fields)
        self._fillers = self._build_fillers()

    def _build_fillers(self) -> dict[str, Callable[[], Any]]:
        """Zero-value factories for every attribute not present in the row."""
        selected = {f.name for f in self.fields}
        columns = {f.name: f for f in self.model.fields}
        fillers: dict[str, Callable[[], Any]] = {}
        for name, info in self.model.model_cls.model_fields.items():
            if name in selected or info.exclude is True:
                continue
            key = info.alias or name
            if name in columns:
                fillers[key] = columns[name].zero_value
                continue
            inner, nullable, _ = unwrap_optional(info.annotation)
            if nullable:
                fillers[key] = lambda: None
            else:
                fillers[key] = lambda info=info, inner=inner: default_value(info, inner)
        return fillers

    def decode(self, row: Sequence[Any], offset: int = 0) -> dict[str, Any]:
        values = {key: make() for key, make in self._fillers.items()}
        for i, f in enumerate(self.fields):
            values[f.key] = decode_value(f, row[offset + i])
        return values

    def build(self, row: Sequence[Any], offset: int = 0) -> BaseModel:
        return self.model.model_cls.model_validate(self.decode(row, offset))

    def pk_of(self, record: BaseModel) -> Any:
        """Primary key value of a decoded record, ``None`` when empty or undefined."""
        pk = self.model.pk_field
        if pk is None:
            return None
        value = getattr(record, pk.name)
        return None if is_empty_pk(value) else value


class RowAssembler(Generic[T]):
    """
    Reassembles a flat, possibly duplicated join result stream into records.

    Example::

        assembler = RowAssembler(user_model, user_fields, [(sub_model, sub_fields)])
        users = assembler.assemble(rows)
    """

    def __init__(
        self,
        model: Model,
        fields: Sequence[Field],
        joined: Sequence[tuple[Model, Sequence[Field]]] = (),
    ):
        self.root = RowBinding(model, fields)
        self.joins: list[tuple[RowBinding, JoinRelation]] = []
        for join_model, join_fields in joined:
            relation = model.joins.get(join_model.name)
            if relation is None:
                raise ModelDefinitionError(
                    f"unknown join relation {join_model.name} for {model.name}, "
                    "mark the field holding it with Relation"
                )
            self.joins.append((RowBinding(join_model, join_fields), relation))

        self.results: list[T] = []
        self._prev: BaseModel | None = None
        self._prev_pk: Any = None
        self._attached: dict[str, set[Any]] = {}

    def feed(self, row: Sequence[Any]) -> None:
        """Process one result row."""
        record = self.root.build(row)
        offset = self.root.width
        related: list[tuple[BaseModel, RowBinding, JoinRelation]] = []
        for binding, relation in self.joins:
            related.append((binding.build(row, offset), binding, relation))
            offset += binding.width

        pk = self.root.pk_of(record)
        continuation = pk is not None and pk == self._prev_pk
        if not continuation:
            self._attached = {}
        target = self._prev if continuation and self._prev is not None else record

        for joined_record, binding, relation in related:
            joined_pk = binding.pk_of(joined_record)
            if joined_pk is None:
                # nothing joined for this row
                continue
            if not relation.plural:
                setattr(target, relation.name, joined_record)
                continue
            attached = self._attached.setdefault(relation.name, set())
            if joined_pk in attached:
                continue
            attached.add(joined_pk)
            setattr(target, relation.name, [*(getattr(target, relation.name) or []), joined_record])

        if continuation:
            self.results[-1] = target  # type: ignore[assignment]
            return
        self.results.append(record)  # type: ignore[arg-type]
        self._prev = record
        self._prev_pk = pk

    def assemble(self, rows: Iterable[Sequence[Any]]) -> list[T]:
        count = 0
        for row in rows:
            self.feed(row)
            count += 1
        logger.debug(f"Assembled {len(self.results)} {self.root.model.name} record(s) from {count} row(s)")
        return self.results


__all__ = ["RowAssembler", "RowBinding", "decode_value"]
