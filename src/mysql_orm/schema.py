"""
Schema and scaffold generation.

``generate_create_table`` renders the ``CREATE TABLE`` statement for a
model. The remaining generators produce Python source text for accessor
functions and their tests; their output is meant to be pasted into a
project, not imported.
"""

from __future__ import annotations

from pydantic import BaseModel

from .constants import BASE_TYPE_DDL, PK_INTEGER_DDL, PK_STRING_DDL, ZERO_DEFAULT_DDL
from .reflect import Field, Model, resolve_model
from .types import ColumnType
from .utils import parse_name


def column_ddl(f: Field) -> str:
    """Render ``<type>[ NOT NULL][ DEFAULT <v>][ PRIMARY KEY][ AUTO_INCREMENT]`` for one field."""
    if f.column_type == ColumnType.PK_INTEGER:
        return PK_INTEGER_DDL
    if f.column_type == ColumnType.PK_STRING:
        return PK_STRING_DDL
    base = BASE_TYPE_DDL[f.column_type.value]
    if f.nullable:
        return f"{base} NULL"
    default = ZERO_DEFAULT_DDL.get(f.column_type.value)
    if default is None:
        return f"{base} NOT NULL"
    return f"{base} NOT NULL DEFAULT {default}"


def generate_create_table(model: type[BaseModel] | BaseModel | Model) -> str:
    """
    Render the ``CREATE TABLE`` statement for a model.

    Columns follow field declaration order. The output is a pure function of
    the model: repeated calls return identical text.

    Example::

        CREATE TABLE `user`(
        \t`id` INT NOT NULL PRIMARY KEY AUTO_INCREMENT,
        \t`name` VARCHAR(255) NOT NULL DEFAULT ''
        );
    """
    resolved = model if isinstance(model, Model) else resolve_model(model)
    resolved.require_pk()
    columns = ",\n".join(f"\t{f.quoted} {column_ddl(f)}" for f in resolved.fields)
    return f"CREATE TABLE {resolved.quoted_table}(\n{columns}\n);"


def generate_schema(model: type[BaseModel] | BaseModel) -> str:
    """``generate_create_table`` with a header for pasting into a migration file."""
    return "-- AUTO GENERATED - place in a new schema migration file\n\n" + generate_create_table(model) + "\n"


def _has_timestamp(model: Model, name: str) -> bool:
    f = model.find_field(name)
    return f is not None and f.column_type == ColumnType.TIMESTAMP


def _pk_annotation(model: Model) -> str:
    pk = model.require_pk()
    return "int" if pk.column_type == ColumnType.PK_INTEGER else "str"


def generate_model_code(model_cls: type[BaseModel], short_name: str) -> str:
    """
    Render async accessor functions (get/insert/update/delete) for a model.

    ``created``/``updated`` timestamp fields are stamped on insert and update
    when the model declares them.
    """
    model = resolve_model(model_cls)
    pk = model.require_pk()
    cls_name = model_cls.__name__
    snake = parse_name(cls_name)
    stamp_created = _has_timestamp(model, "created")
    stamp_updated = _has_timestamp(model, "updated")

    lines = [
        "# -------------------------------------------- #",
        "# AUTO GENERATED - Place in a new models file",
        "# -------------------------------------------- #",
        "",
    ]
    if stamp_created or stamp_updated:
        lines += ["from datetime import datetime, timezone", ""]
    lines += [
        "from mysql_orm import Database",
        "",
        "",
        f"async def get_{snake}(db: Database, {pk.name}: {_pk_annotation(model)}) -> {cls_name} | None:",
        f"    {short_name} = {cls_name}({pk.name}={pk.name})",
        f"    found = await db.get({short_name})",
        "    if not found:",
        "        return None",
        f"    return {short_name}",
        "",
        "",
        f"async def insert_{snake}(db: Database, {short_name}: {cls_name}) -> None:",
    ]
    if stamp_created:
        lines.append(f"    {short_name}.created = datetime.now(timezone.utc)")
    if stamp_updated:
        lines.append(f"    {short_name}.updated = datetime.now(timezone.utc)")
    lines.append(f"    result = await db.insert({short_name})")
    if model.has_int_pk:
        lines.append(f"    {short_name}.{pk.name} = result.last_insert_id")
    lines += [
        "",
        "",
        f"async def update_{snake}(db: Database, {short_name}: {cls_name}) -> None:",
    ]
    if stamp_updated:
        lines.append(f"    {short_name}.updated = datetime.now(timezone.utc)")
    lines += [
        f"    await db.update({short_name})",
        "",
        "",
        f"async def delete_{snake}(db: Database, {short_name}: {cls_name}) -> None:",
        f"    await db.delete({short_name})",
        "",
    ]
    return "\n".join(lines)


def generate_model_test(model_cls: type[BaseModel], short_name: str) -> str:
    """Render a CRUD round-trip test for the accessors produced by ``generate_model_code``."""
    model = resolve_model(model_cls)
    pk = model.require_pk()
    cls_name = model_cls.__name__
    snake = parse_name(cls_name)
    return "\n".join(
        [
            "# -------------------------------------------- #",
            "# AUTO GENERATED - Place in a new test module",
            "# -------------------------------------------- #",
            "",
            "import pytest",
            "",
            "",
            "@pytest.mark.asyncio",
            f"async def test_{snake}_crud(db):",
            f"    {short_name} = {cls_name}()",
            "    # Fill in model fields here, especially the primary key",
            "",
            f"    await insert_{snake}(db, {short_name})",
            "",
            "    # Make sure we can get the newly inserted row",
            f"    {short_name}2 = await get_{snake}(db, {short_name}.{pk.name})",
            f"    assert {short_name}2 is not None, f\"row {{{short_name}.{pk.name}!r}} not found\"",
            "",
            "    # Make some changes here",
            "",
            f"    await update_{snake}(db, {short_name})",
            "",
            "    # Make sure those changes took effect",
            f"    {short_name}3 = await get_{snake}(db, {short_name}.{pk.name})",
            f"    assert {short_name}3 is not None",
            "",
            "    # Compare fields",
            "",
        ]
    )


def generate_init(class_name: str, short_name: str) -> str:
    """Render a stub module that prints the schema, accessors and test for a new model."""
    return "\n".join(
        [
            "# -------------------------------------------- #",
            "# AUTO GENERATED - Place in a temporary python file",
            "# -------------------------------------------- #",
            "",
            "from mysql_orm import BaseMySQLModel",
            "from mysql_orm.schema import generate_model_code, generate_model_test, generate_schema",
            "",
            "",
            f"class {class_name}(BaseMySQLModel):",
            '    id: str = ""',
            '    name: str = ""',
            '    description: str = ""',
            "",
            "",
            'if __name__ == "__main__":',
            f"    print(generate_schema({class_name}))",
            f'    print(generate_model_code({class_name}, "{short_name}"))',
            f'    print(generate_model_test({class_name}, "{short_name}"))',
            "",
        ]
    )


__all__ = [
    "column_ddl",
    "generate_create_table",
    "generate_schema",
    "generate_model_code",
    "generate_model_test",
    "generate_init",
]
