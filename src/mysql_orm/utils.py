import re

# Column references written as "<expr> as <alias>" in select lists.
_ALIAS_RE = re.compile(r"\s+as\s+", re.IGNORECASE)


def parse_name(name: str) -> str:
    """
    Convert a CamelCase identifier into snake_case.

    Runs of capitals are treated as one acronym segment::

        parse_name("RejectionReason")  # "rejection_reason"
        parse_name("JSONString")       # "json_string"
        parse_name("MyStringJSON")     # "my_string_json"
        parse_name("ID")               # "id"

    Names that are already lower-case (including snake_case) are returned
    unchanged.
    """
    out: list[str] = []
    upper_count = 0
    is_upper = False
    for i, char in enumerate(name):
        is_upper = char.isupper()
        if i != 0 and upper_count == 0 and is_upper and name[i - 1] != "_":
            out.append("_")
        if is_upper:
            upper_count += 1
            continue
        if upper_count > 1:
            # acronym followed by a word: "JSONString" -> "json_" + "string"
            out.append(name[i - upper_count : i - 1].lower())
            out.append("_")
        if upper_count > 0:
            out.append(name[i - 1].lower())
        out.append(char)
        upper_count = 0
    if is_upper:
        out.append(name[len(name) - upper_count :].lower())
    return "".join(out)


def strip_identifier(name: str) -> str:
    """Remove the characters that could break out of a quoted identifier."""
    return name.replace(";", "").replace("`", "")


def quote_identifier(name: str) -> str:
    """Back-tick quote an identifier: ``quote_identifier("user")`` -> ```user```."""
    return f"`{strip_identifier(name)}`"


def qualified_column(table: str, column: str) -> str:
    """Return a table-qualified column reference, e.g. ```user`.`name```."""
    return f"{quote_identifier(table)}.{quote_identifier(column)}"


def select_column(table: str, column: str) -> str:
    """
    Render a column for a SELECT list.

    Plain columns are table-qualified. A column written as an expression with
    an alias (``"COUNT(*) as count"``) keeps the expression verbatim and
    quotes the alias.
    """
    parts = _ALIAS_RE.split(column)
    if len(parts) == 1:
        return qualified_column(table, column)
    if len(parts) != 2:
        raise ValueError(f"Invalid column name: {column!r}")
    return f"{strip_identifier(parts[0])} as {quote_identifier(parts[1].lower())}"


def quote_column_reference(column: str) -> str:
    """
    Quote a column reference used in WHERE and ORDER BY clauses.

    Plain names are quoted; references that are already quoted or
    table-qualified (containing a back-tick or a dot) are passed through.
    """
    if "`" in column or "." in column:
        return column
    return quote_identifier(column)
