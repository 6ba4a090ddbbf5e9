"""Legacy spreadsheet import.

Rows are read lazily from a CSV export, mapped onto the submission table's
columns, normalized and classified. Every value holding an address is
encrypted through the key manager before anything leaves the process. Rows
are grouped into fixed-size batches only to bound memory and to report
progress; a failed row or a failed upload batch is counted and skipped,
never rolled back.
"""

from __future__ import annotations

import csv
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from itertools import islice
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator

from flexform.core.config import settings
from flexform.core.errors import ImportRowError, StoreError
from flexform.services.classifier import (
    DateWarnings,
    classify_department,
    classify_security,
    integrity_hash,
    normalize_date,
)
from flexform.services.key_manager import KeyManager, encrypt_contact_columns
from flexform.services.store_client import SubmissionStoreClient

_LOG = logging.getLogger("flexform.import")

LEGACY_COLUMNS: dict[str, str] = {
    "ID": "original_id",
    "Short Description": "short_description",
    "Contact / Organizer": "contact_organizer",
    "Where (building/room #/lab)?": "location",
    "When did the event occur?": "event_occurred",
    "When was the event detected?": "event_detected",
    "Expected Results": "expected_results",
    "Based on process conf., Gemba 100% effective": "process_confidence",
    "Outcome of Gemba": "gemba_outcome",
}
DATE_FIELDS = ("event_occurred", "event_detected")


@dataclass
class ImportStats:
    total_records: int = 0
    processed_records: int = 0
    encrypted_fields: int = 0
    warnings: int = 0
    errors: int = 0
    uploaded_records: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "totalRecords": self.total_records,
            "processedRecords": self.processed_records,
            "encryptedFields": self.encrypted_fields,
            "warnings": self.warnings,
            "errors": self.errors,
        }


@dataclass
class ImportResult:
    batch_id: str
    stats: ImportStats
    records: list[dict[str, Any]] = field(default_factory=list)


ProgressCallback = Callable[[int, ImportStats], None]


def _undecodable(value: Any) -> bool:
    # surrogateescape maps each byte that is not valid UTF-8 to U+DC80..U+DCFF
    return isinstance(value, str) and any("\udc80" <= ch <= "\udcff" for ch in value)


def read_csv_rows(path: str | Path) -> Iterator[dict[str, Any] | ImportRowError]:
    """Yield CSV rows as dicts.

    A row with bytes that are not UTF-8, or one the csv module cannot
    parse, is yielded as an ``ImportRowError`` instead so the importer can
    count it and move on.
    """
    with open(path, newline="", encoding="utf-8-sig", errors="surrogateescape") as handle:
        reader = csv.DictReader(handle)
        while True:
            try:
                row = next(reader)
            except StopIteration:
                return
            except csv.Error as exc:
                yield ImportRowError(reader.line_num, f"unreadable CSV line: {exc}")
                continue
            if any(_undecodable(key) or _undecodable(value) for key, value in row.items()):
                yield ImportRowError(reader.line_num, "line is not valid UTF-8")
                continue
            yield row


def map_legacy_row(row: dict[str, Any]) -> dict[str, Any]:
    mapped: dict[str, Any] = {}
    for source, target in LEGACY_COLUMNS.items():
        if source not in row:
            continue
        value = row[source]
        if value is None:
            continue
        text = str(value).strip()
        mapped[target] = text or None
    return mapped


def new_batch_id() -> str:
    return f"import_{int(time.time() * 1000)}"


def _batched(items: Iterable[Any], size: int) -> Iterator[list[Any]]:
    iterator = iter(items)
    while True:
        chunk = list(islice(iterator, size))
        if not chunk:
            return
        yield chunk


class GembaImporter:
    def __init__(
        self,
        key_manager: KeyManager,
        *,
        batch_size: int | None = None,
        upload_batch_size: int | None = None,
        delay_ms: int | None = None,
        source_file: str | None = None,
        import_user: str | None = None,
        progress: ProgressCallback | None = None,
    ):
        self.key_manager = key_manager
        self.batch_size = max(1, int(batch_size or settings.IMPORT_BATCH_SIZE))
        self.upload_batch_size = max(1, int(upload_batch_size or settings.IMPORT_UPLOAD_BATCH_SIZE))
        self.delay_ms = int(settings.IMPORT_DELAY_MS if delay_ms is None else delay_ms)
        self.source_file = source_file or settings.IMPORT_SOURCE_FILE
        self.import_user = import_user or settings.IMPORT_USER
        self.progress = progress

    def process_row(
        self,
        row: dict[str, Any],
        *,
        row_number: int,
        batch_id: str,
        stats: ImportStats,
    ) -> dict[str, Any]:
        if isinstance(row, ImportRowError):
            raise row
        if not isinstance(row, dict):
            raise ImportRowError(row_number, "row is not a mapping")
        if None in row:
            raise ImportRowError(row_number, "row has more cells than the header")
        try:
            mapped = map_legacy_row(row)
            if not mapped:
                raise ImportRowError(row_number, "no known columns")

            date_warnings = DateWarnings()
            for name in DATE_FIELDS:
                if name in mapped:
                    mapped[name] = normalize_date(mapped[name], date_warnings)

            secure = dict(mapped)
            encrypted = encrypt_contact_columns(secure, self.key_manager)

            secure["department"] = classify_department(mapped.get("location"))
            secure["security_classification"] = classify_security(mapped)
            secure["data_hash"] = integrity_hash(mapped)
            secure["import_batch"] = batch_id
            secure["source_file"] = self.source_file
            secure["created_by"] = self.import_user
            secure["audit_log"] = [
                {
                    "action": "IMPORT",
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                    "user": self.import_user,
                    "source": self.source_file,
                    "batch": batch_id,
                }
            ]
        except ImportRowError:
            raise
        except Exception as exc:
            raise ImportRowError(row_number, str(exc)) from exc

        stats.warnings += date_warnings.count
        stats.encrypted_fields += len(encrypted)
        return secure

    def _upload(self, records: list[dict[str, Any]], store: SubmissionStoreClient, stats: ImportStats) -> None:
        for index, chunk in enumerate(_batched(records, self.upload_batch_size)):
            if index and self.delay_ms > 0:
                time.sleep(self.delay_ms / 1000.0)
            try:
                stats.uploaded_records += store.insert_many(chunk)
            except StoreError as exc:
                stats.errors += len(chunk)
                _LOG.error("upload batch failed size=%s error=%s", len(chunk), exc.message)

    def run(
        self,
        rows: Iterable[dict[str, Any]],
        *,
        store: SubmissionStoreClient | None = None,
        keep_records: bool = True,
    ) -> ImportResult:
        result = ImportResult(batch_id=new_batch_id(), stats=ImportStats())
        stats = result.stats
        row_number = 0

        for batch_number, batch in enumerate(_batched(rows, self.batch_size), start=1):
            processed: list[dict[str, Any]] = []
            for row in batch:
                row_number += 1
                stats.total_records += 1
                try:
                    processed.append(
                        self.process_row(row, row_number=row_number, batch_id=result.batch_id, stats=stats)
                    )
                except ImportRowError as exc:
                    stats.errors += 1
                    _LOG.error("import row skipped row=%s error=%s", exc.row_number, exc.message)
                    continue
                stats.processed_records += 1

            _LOG.info(
                "batch %s processed rows=%s total=%s errors=%s",
                batch_number,
                len(processed),
                stats.total_records,
                stats.errors,
            )
            if store is not None and processed:
                self._upload(processed, store, stats)
            if keep_records:
                result.records.extend(processed)
            if self.progress is not None:
                self.progress(batch_number, stats)

        return result
