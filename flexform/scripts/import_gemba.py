from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from flexform.core.config import settings
from flexform.core.errors import DecryptionError, StoreError
from flexform.services.csv_import import GembaImporter, ImportStats, read_csv_rows
from flexform.services.key_manager import KeyManager, ServiceKeyUnlocker
from flexform.services.store_client import SubmissionStoreClient

_LOG = logging.getLogger("flexform.scripts.import")


def _resolve_service_key(passphrase: str) -> str:
    if str(settings.ENCRYPTED_SERVICE_KEY or "").strip():
        return ServiceKeyUnlocker().unlock(passphrase)
    return str(settings.SUPABASE_SERVICE_KEY or "").strip()


def _print_report(batch_id: str, stats: ImportStats) -> None:
    print("IMPORT REPORT")
    print(f"batch: {batch_id}")
    for key, value in stats.as_dict().items():
        print(f"{key}: {value}")
    print(f"uploadedRecords: {stats.uploaded_records}")


def run_import(csv_path: Path, *, store: SubmissionStoreClient, key_manager: KeyManager) -> int:
    store.ping()

    def _progress(batch_number: int, stats: ImportStats) -> None:
        print(f"batch {batch_number}: {stats.processed_records}/{stats.total_records} processed")

    importer = GembaImporter(key_manager, progress=_progress)
    result = importer.run(read_csv_rows(csv_path), store=store, keep_records=False)
    _print_report(result.batch_id, result.stats)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="flexform-import", description="Import legacy Gemba CSV rows")
    parser.add_argument("csv_path", nargs="?", default=settings.IMPORT_SOURCE_FILE)
    args = parser.parse_args(argv)
    logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    csv_path = Path(args.csv_path)
    if not csv_path.is_file():
        _LOG.error("CSV file not found: %s", csv_path)
        return 1

    passphrase = str(settings.FLEXFORM_MASTER_PASSWORD or "").strip()
    if not settings.SUPABASE_URL or not passphrase:
        _LOG.error("SUPABASE_URL and FLEXFORM_MASTER_PASSWORD are required")
        return 1
    try:
        service_key = _resolve_service_key(passphrase)
    except DecryptionError:
        _LOG.error("could not unlock the service key")
        return 1
    if not service_key:
        _LOG.error("SUPABASE_SERVICE_KEY is required")
        return 1

    store = SubmissionStoreClient(settings.SUPABASE_URL, service_key, settings.SUBMISSIONS_TABLE)
    key_manager = KeyManager().initialize(passphrase)
    try:
        return run_import(csv_path, store=store, key_manager=key_manager)
    except StoreError as exc:
        _LOG.error("store unavailable: %s", exc.message)
        return 1


if __name__ == "__main__":
    sys.exit(main())
