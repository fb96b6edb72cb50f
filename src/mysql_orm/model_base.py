from typing import Any

from pydantic import BaseModel, ConfigDict

from .utils import parse_name

# Global registry of all MySQL models, used by the scaffold generator and the CLI
_MODEL_REGISTRY: list[type["BaseMySQLModel"]] = []


def get_registered_models() -> list[type["BaseMySQLModel"]]:
    """
    Get all registered MySQL models.

    Returns:
        List of all model classes that inherit from BaseMySQLModel
    """
    return _MODEL_REGISTRY.copy()


def clear_model_registry() -> None:
    """
    Clear the model registry. Useful for testing.
    """
    _MODEL_REGISTRY.clear()


class TableConfigDict(ConfigDict):
    """
    TableConfigDict is a configuration dictionary for MySQL models.

    Extends Pydantic's ConfigDict with table mapping options.

    Attributes:
        table_name: Override the default table name (default: snake_case class name)
        primary_key: Field (or column) name of the primary key. When unset, a field
            annotated with ``PrimaryKey`` is used, then a field whose column is ``id``.
        many_to_many: Marks a pure link record. When joined, the link table only
            takes part in the ON conditions and contributes no columns.
    """

    table_name: str | None
    primary_key: str | None
    many_to_many: bool


def table_name_for(model_cls: type[BaseModel]) -> str:
    """Return the table a model class maps to."""
    table_name = model_cls.model_config.get("table_name", None)
    if isinstance(table_name, str) and table_name:
        return table_name
    return parse_name(model_cls.__name__)


class BaseMySQLModel(BaseModel):
    """
    Base class for models stored in MySQL.

    Any pydantic model can be passed to the adapter; this base adds alias
    support, the model registry and a few shortcuts.

    Field aliases map Python field names to different column names:

    Example:
        class User(BaseMySQLModel):
            model_config = TableConfigDict(table_name="users")

            id: int = 0
            email: str = ""
            password: str = Field("", alias="password_hash")
    """

    # - populate_by_name: Accept both field name and alias when loading rows
    model_config = ConfigDict(
        populate_by_name=True,
    )

    def __init_subclass__(cls, **kwargs: Any) -> None:
        """Register subclasses in the model registry."""
        super().__init_subclass__(**kwargs)
        # Only register concrete models, not intermediate base classes
        if cls.__name__ != "BaseMySQLModel" and not cls.__name__.startswith("_"):
            if cls not in _MODEL_REGISTRY:
                _MODEL_REGISTRY.append(cls)

    @classmethod
    def get_table_name(cls) -> str:
        """
        Get the table name for the model.

        Returns the table_name from model_config if set,
        otherwise the snake_case form of the class name.
        """
        return table_name_for(cls)

    @classmethod
    def column(cls, field_name: str) -> str:
        """Return the table-qualified, quoted column for a field, for use in join predicates."""
        from .reflect import column_name

        return column_name(cls, field_name)
