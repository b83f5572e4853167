"""Filter spec parsing for the REST and sqlite3 backends."""

from typing import List, Optional, Sequence, Union

from kismetdata.errors import ConfigurationError
from kismetdata.models import DB_MODE, REST_MODE, RestFilter, SnapshotFilter

DB_FILTER_SEPARATOR = "/"


def build_rest_filter(tokens: Sequence[str]) -> RestFilter:
    """Validate REST field selectors; the service decides which fields are legal."""
    fields = tuple(token for token in tokens if token)
    if not fields:
        raise ConfigurationError("Please specify filters for rest calls")
    return RestFilter(fields=fields)


def parse_rest_filter(raw: str) -> RestFilter:
    return build_rest_filter((raw or "").split())


def parse_db_filter(raw: str) -> SnapshotFilter:
    """
    Parse a ``table/column`` filter spec.

    Every token must name the same table. Column order and duplicates are kept.

    Args:
        raw: Whitespace separated tokens, e.g. ``"devices/devmac devices/avg_lat"``

    Returns:
        SnapshotFilter with the table name and requested columns

    Raises:
        ConfigurationError: On an empty spec, a token that is not exactly two
            non-empty parts, or a second table name
    """
    table: Optional[str] = None
    columns: List[str] = []

    for token in (raw or "").split():
        parts = token.split(DB_FILTER_SEPARATOR)
        if len(parts) != 2 or not parts[0] or not parts[1]:
            raise ConfigurationError(f"Bad DB Filter: {token}")

        new_table, column = parts
        if table is None:
            table = new_table
        elif table != new_table:
            raise ConfigurationError(
                f"Bad DB Filter: {token} (all filters must use table '{table}')"
            )
        columns.append(column)

    if table is None:
        raise ConfigurationError("Please specify filters for the database")

    return SnapshotFilter(table=table, columns=tuple(columns))


def parse_filter_spec(raw: str, mode: str) -> Union[RestFilter, SnapshotFilter]:
    if mode == REST_MODE:
        return parse_rest_filter(raw)
    if mode == DB_MODE:
        return parse_db_filter(raw)
    raise ConfigurationError(f"Unknown filter mode: {mode!r}")
