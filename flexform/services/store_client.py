from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from typing import Any

import httpx

from flexform.core.config import settings
from flexform.core.errors import RecordNotFound, StoreConnectionError, StoreError

_LOG = logging.getLogger("flexform.store")


def _timestamp_literal(value: Any, *, end_of_day: bool = False) -> str:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.max if end_of_day else time.min)
    else:
        text = str(value or "").strip()
        if not text:
            raise ValueError("Empty timestamp filter")
        if "T" not in text and " " not in text and len(text) == 10:
            # Date-only bound: whole day inclusive.
            parsed = datetime.combine(date.fromisoformat(text), time.max if end_of_day else time.min)
        else:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.isoformat()


@dataclass
class StoreFilter:
    equals: dict[str, Any] = field(default_factory=dict)
    since: Any = None
    until: Any = None
    timestamp_column: str = "created_at"
    limit: int | None = None
    # (department, email): rows of that department or created by that email
    visible_to: tuple[str, str] | None = None

    def to_params(self, *, with_limit: bool = True) -> list[tuple[str, str]]:
        params: list[tuple[str, str]] = []
        for column, value in self.equals.items():
            if value is None or value == "":
                continue
            params.append((column, f"eq.{value}"))
        if self.visible_to is not None:
            department, email = self.visible_to
            params.append(("or", f'(department.eq."{department}",created_by.eq."{email}")'))
        if self.since:
            params.append((self.timestamp_column, f"gte.{_timestamp_literal(self.since)}"))
        if self.until:
            params.append((self.timestamp_column, f"lte.{_timestamp_literal(self.until, end_of_day=True)}"))
        if with_limit and self.limit:
            params.append(("limit", str(int(self.limit))))
        return params


class SubmissionStoreClient:
    """Thin wrapper over one PostgREST table.

    No caching and no retries: every call goes to the network and any
    transport or HTTP failure surfaces as ``StoreError``.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        table: str | None = None,
        *,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = str(base_url or "").strip().rstrip("/")
        self.api_key = str(api_key or "").strip()
        self.table = str(table or settings.SUBMISSIONS_TABLE)
        self.timeout = float(timeout or settings.STORE_TIMEOUT_SECONDS)
        self.transport = transport

    def _headers(self, extra: dict[str, str] | None = None) -> dict[str, str]:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        headers.update(extra or {})
        return headers

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        if not self.base_url:
            raise StoreError("SUPABASE_URL is not configured")
        headers = self._headers(kwargs.pop("headers", None))
        try:
            with httpx.Client(base_url=self.base_url, timeout=self.timeout, transport=self.transport) as client:
                response = client.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            _LOG.warning("store request failed method=%s path=%s error=%s", method, path, exc)
            raise StoreError(f"Store request failed: {exc}") from exc
        if response.status_code >= 400:
            payload: dict[str, Any] = {}
            try:
                payload = response.json() if response.content else {}
            except ValueError:
                payload = {}
            detail = ""
            if isinstance(payload, dict):
                detail = str(payload.get("message") or payload.get("error") or payload.get("hint") or "")
            detail = detail or response.text or response.reason_phrase
            _LOG.warning("store error method=%s path=%s status=%s detail=%s", method, path, response.status_code, detail)
            raise StoreError(f"HTTP {response.status_code}: {detail}", status_code=response.status_code)
        return response

    @property
    def _table_path(self) -> str:
        return f"/rest/v1/{self.table}"

    def ping(self) -> bool:
        try:
            self._request("GET", "/rest/v1/")
        except StoreError as exc:
            raise StoreConnectionError(exc.message, status_code=exc.status_code) from exc
        return True

    def insert(self, record: dict[str, Any]) -> Any:
        response = self._request(
            "POST",
            self._table_path,
            json=[record],
            headers={"Prefer": "return=representation"},
        )
        rows = response.json() if response.content else []
        if not rows:
            raise StoreError("Insert returned no row")
        return rows[0].get("id")

    def insert_many(self, records: list[dict[str, Any]]) -> int:
        if not records:
            return 0
        self._request("POST", self._table_path, json=list(records), headers={"Prefer": "return=minimal"})
        return len(records)

    def select_all(self, filter: StoreFilter | None = None) -> list[dict[str, Any]]:
        params = [("select", "*"), ("order", "created_at.desc")]
        params.extend((filter or StoreFilter()).to_params())
        response = self._request("GET", self._table_path, params=params)
        rows = response.json() if response.content else []
        return list(rows or [])

    def select_one(self, record_id: Any) -> dict[str, Any]:
        params = [("select", "*"), ("id", f"eq.{record_id}"), ("limit", "1")]
        response = self._request("GET", self._table_path, params=params)
        rows = response.json() if response.content else []
        if not rows:
            raise RecordNotFound(f"Record {record_id} not found", status_code=404)
        return rows[0]

    def count(self, filter: StoreFilter | None = None) -> int:
        params = [("select", "id")]
        params.extend((filter or StoreFilter()).to_params(with_limit=False))
        response = self._request("HEAD", self._table_path, params=params, headers={"Prefer": "count=exact"})
        content_range = response.headers.get("content-range", "")
        total = content_range.rsplit("/", 1)[-1] if "/" in content_range else ""
        try:
            return int(total)
        except ValueError:
            raise StoreError(f"Unexpected Content-Range: {content_range or '-'}")


def build_store_client(api_key: str | None = None) -> SubmissionStoreClient:
    key = api_key or settings.SUPABASE_SERVICE_KEY or settings.SUPABASE_ANON_KEY
    return SubmissionStoreClient(settings.SUPABASE_URL, key, settings.SUBMISSIONS_TABLE)
