"""
Read-only data access for the academic store.

`AcademicDataSource.fetch_rows` returns an empty list when a query matches no
rows and raises `DataAccessError` when the query itself fails.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Protocol, Sequence

import httpx
from postgrest.exceptions import APIError

from ..core.errors import DataAccessError
from .records import parse_timestamp

LOGGER = logging.getLogger(__name__)

Row = Dict[str, Any]


class AcademicDataSource(Protocol):
    def fetch_rows(
        self,
        table: str,
        *,
        columns: str = "*",
        eq: Mapping[str, Any] | None = None,
        in_: Mapping[str, Sequence[Any]] | None = None,
        gte: Mapping[str, datetime] | None = None,
        lte: Mapping[str, datetime] | None = None,
    ) -> List[Row]:
        ...


def _has_empty_membership(in_: Mapping[str, Sequence[Any]] | None) -> bool:
    return bool(in_) and any(len(values) == 0 for values in in_.values())


class SupabaseDataSource:
    """`AcademicDataSource` backed by a supabase-py client."""

    def __init__(self, client) -> None:
        self.client = client

    def fetch_rows(
        self,
        table: str,
        *,
        columns: str = "*",
        eq: Mapping[str, Any] | None = None,
        in_: Mapping[str, Sequence[Any]] | None = None,
        gte: Mapping[str, datetime] | None = None,
        lte: Mapping[str, datetime] | None = None,
    ) -> List[Row]:
        if _has_empty_membership(in_):
            return []
        query = self.client.table(table).select(columns)
        for column, value in (eq or {}).items():
            query = query.eq(column, value)
        for column, values in (in_ or {}).items():
            query = query.in_(column, list(values))
        for column, value in (gte or {}).items():
            query = query.gte(column, value.isoformat())
        for column, value in (lte or {}).items():
            query = query.lte(column, value.isoformat())
        try:
            response = query.execute()
        except APIError as exc:
            LOGGER.error("Supabase query on %s failed: %s", table, exc.message)
            raise DataAccessError(table, exc.message or str(exc)) from exc
        except httpx.HTTPError as exc:
            LOGGER.error("Supabase request for %s failed: %s", table, exc)
            raise DataAccessError(table, str(exc) or exc.__class__.__name__, rejected=False) from exc
        rows = response.data or []
        LOGGER.debug("Fetched %s rows from %s", len(rows), table)
        return rows


class InMemoryDataSource:
    """Dictionary-backed data source, used for fixtures and offline runs."""

    def __init__(self, tables: Mapping[str, Iterable[Row]] | None = None) -> None:
        self.tables: Dict[str, List[Row]] = {name: list(rows) for name, rows in (tables or {}).items()}
        self.queries: List[str] = []

    @classmethod
    def from_json(cls, path: Path) -> "InMemoryDataSource":
        with path.open("r", encoding="utf-8") as fh:
            payload = json.load(fh)
        if not isinstance(payload, dict):
            raise ValueError(f"Expected a mapping of table name to rows in {path}")
        return cls(payload)

    def fetch_rows(
        self,
        table: str,
        *,
        columns: str = "*",
        eq: Mapping[str, Any] | None = None,
        in_: Mapping[str, Sequence[Any]] | None = None,
        gte: Mapping[str, datetime] | None = None,
        lte: Mapping[str, datetime] | None = None,
    ) -> List[Row]:
        if _has_empty_membership(in_):
            return []
        self.queries.append(table)
        if table not in self.tables:
            raise DataAccessError(table, "relation does not exist")

        matched: List[Row] = []
        for row in self.tables[table]:
            if any(row.get(column) != value for column, value in (eq or {}).items()):
                continue
            if any(row.get(column) not in values for column, values in (in_ or {}).items()):
                continue
            if not _within_bounds(row, gte, lambda value, bound: value >= bound):
                continue
            if not _within_bounds(row, lte, lambda value, bound: value <= bound):
                continue
            matched.append(dict(row))
        return matched


def _within_bounds(row: Row, bounds: Mapping[str, datetime] | None, compare) -> bool:
    for column, bound in (bounds or {}).items():
        value = parse_timestamp(row.get(column))
        if value is None or not compare(value, bound):
            return False
    return True
