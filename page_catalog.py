"""Read page records from the ``contents.db`` SQLite catalog."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Generator, Tuple

CATALOG_NAME = "contents.db"

BASE_QUERY = "SELECT PID, Title, PageNum FROM Pages"
ORDER_CLAUSE = "ORDER BY PageNum ASC"


class CatalogError(Exception):
    """Raised when the page catalog is missing or cannot be queried."""


@dataclass(frozen=True, slots=True)
class PageRecord:
    """One row of the ``Pages`` table."""

    id: str
    title: str
    page_number: int


def build_page_query(
    start_page: int = 1, end_page: int = 0
) -> Tuple[str, dict[str, int]]:
    """Return the SQL and bound parameters for the requested page range.

    ``end_page <= 0`` leaves the range open-ended and ``start_page <= 1``
    starts at the first page.
    """

    params: dict[str, int] = {}
    where = ""
    if start_page > 0 and end_page > 0:
        where = "WHERE PageNum BETWEEN :start AND :end"
        params = {"start": start_page, "end": end_page}
    elif end_page > 0:
        where = "WHERE PageNum <= :end"
        params = {"end": end_page}
    elif start_page > 1:
        where = "WHERE PageNum >= :start"
        params = {"start": start_page}

    sql = " ".join(part for part in (BASE_QUERY, where, ORDER_CLAUSE) if part)
    return sql, params


def _connect_read_only(db_path: Path) -> sqlite3.Connection:
    # A plain connect() would silently create an empty database.
    uri = f"{db_path.resolve().as_uri()}?mode=ro"
    return sqlite3.connect(uri, uri=True)


def _iterate_rows(
    connection: sqlite3.Connection, cursor: sqlite3.Cursor
) -> Generator[PageRecord, None, None]:
    try:
        for pid, title, page_number in cursor:
            yield PageRecord(
                id=str(pid),
                title="" if title is None else str(title),
                page_number=int(page_number),
            )
    finally:
        connection.close()


def iter_pages(
    db_path: str | Path, start_page: int = 1, end_page: int = 0
) -> Generator[PageRecord, None, None]:
    """Return a single-pass iterator over pages in ascending page order.

    The catalog is opened and queried eagerly so a missing or malformed
    store raises :class:`CatalogError` here rather than on first use. The
    connection is released once the iterator is exhausted or closed.
    """

    path = Path(db_path)
    if not path.is_file():
        raise CatalogError(f"Database file not found: {path}")

    sql, params = build_page_query(start_page, end_page)
    try:
        connection = _connect_read_only(path)
    except sqlite3.Error as exc:
        raise CatalogError(f"Unable to open {path}: {exc}") from exc

    try:
        cursor = connection.execute(sql, params)
    except sqlite3.Error as exc:
        connection.close()
        raise CatalogError(f"Unable to query {path}: {exc}") from exc
    return _iterate_rows(connection, cursor)


__all__ = [
    "CATALOG_NAME",
    "CatalogError",
    "PageRecord",
    "build_page_query",
    "iter_pages",
]
