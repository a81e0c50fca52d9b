# pluginforge/core/store.py
"""
Table-shaped storage collaborators for generation jobs and project history.

InMemoryTable is the default; SupabaseTable talks to a PostgREST endpoint with
requests when SUPABASE_URL / SUPABASE_KEY are configured.
"""
import uuid
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests

from pluginforge.utils.config import (
    JOBS_TABLE,
    PROJECTS_TABLE,
    STORE_TIMEOUT,
    SUPABASE_KEY,
    SUPABASE_URL,
)

logger = logging.getLogger(__name__)


class StoreError(RuntimeError):
    pass


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class TableStore:
    name = ""

    def insert(self, row: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    def get(self, row_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def update(self, row_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError


class InMemoryTable(TableStore):
    def __init__(self, name: str):
        self.name = name
        self._rows: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def insert(self, row: Dict[str, Any]) -> Dict[str, Any]:
        row = dict(row)
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", utc_now())
        with self._lock:
            self._rows[row["id"]] = row
            return dict(row)

    def get(self, row_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            row = self._rows.get(row_id)
            return dict(row) if row is not None else None

    def update(self, row_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            if row_id not in self._rows:
                raise StoreError(f"{self.name}: row {row_id} not found")
            self._rows[row_id].update(fields)
            return dict(self._rows[row_id])

    def all(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [dict(r) for r in self._rows.values()]


class SupabaseTable(TableStore):
    """PostgREST table access (the REST surface Supabase exposes under /rest/v1)."""

    def __init__(self, url: str, key: str, name: str, timeout: int = STORE_TIMEOUT):
        self.name = name
        self.base = f"{url.rstrip('/')}/rest/v1/{name}"
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        })

    def _rows(self, resp: requests.Response) -> List[Dict[str, Any]]:
        if resp.status_code >= 400:
            raise StoreError(f"{self.name}: HTTP {resp.status_code}: {resp.text[:500]}")
        data = resp.json() if resp.content else []
        return data if isinstance(data, list) else [data]

    def insert(self, row: Dict[str, Any]) -> Dict[str, Any]:
        try:
            resp = self.session.post(self.base, json=row, timeout=self.timeout)
        except requests.RequestException as e:
            raise StoreError(f"{self.name}: insert failed: {e}") from e
        rows = self._rows(resp)
        return rows[0] if rows else dict(row)

    def get(self, row_id: str) -> Optional[Dict[str, Any]]:
        try:
            resp = self.session.get(self.base, params={"id": f"eq.{row_id}", "select": "*"}, timeout=self.timeout)
        except requests.RequestException as e:
            raise StoreError(f"{self.name}: select failed: {e}") from e
        rows = self._rows(resp)
        return rows[0] if rows else None

    def update(self, row_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        try:
            resp = self.session.patch(self.base, params={"id": f"eq.{row_id}"}, json=fields, timeout=self.timeout)
        except requests.RequestException as e:
            raise StoreError(f"{self.name}: update failed: {e}") from e
        rows = self._rows(resp)
        if not rows:
            raise StoreError(f"{self.name}: row {row_id} not found")
        return rows[0]


_tables: Dict[str, TableStore] = {}


def _table(name: str) -> TableStore:
    if name not in _tables:
        if SUPABASE_URL and SUPABASE_KEY:
            logger.info("Using Supabase table %s", name)
            _tables[name] = SupabaseTable(SUPABASE_URL, SUPABASE_KEY, name)
        else:
            _tables[name] = InMemoryTable(name)
    return _tables[name]


def get_job_store() -> TableStore:
    return _table(JOBS_TABLE)


def get_project_store() -> TableStore:
    return _table(PROJECTS_TABLE)
