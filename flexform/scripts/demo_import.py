from __future__ import annotations

import argparse
import logging
import secrets
import sys
from pathlib import Path
from typing import Any

from flexform.core.config import settings
from flexform.services.csv_import import DATE_FIELDS, GembaImporter, read_csv_rows
from flexform.services.key_manager import KeyManager

_LOG = logging.getLogger("flexform.scripts.demo_import")


def analyze_records(records: list[dict[str, Any]], encrypted_fields: int) -> dict[str, Any]:
    """Summarise what a real import would do with the processed rows."""
    departments = sorted({str(r.get("department")) for r in records if r.get("department")})
    dates = sum(1 for r in records for name in DATE_FIELDS if r.get(name))
    return {
        "total_records": len(records),
        "emails_found": encrypted_fields,
        "dates_processed": dates,
        "departments": departments,
    }


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="flexform-import-demo", description="Offline analysis of a Gemba CSV")
    parser.add_argument("csv_path", nargs="?", default=settings.IMPORT_SOURCE_FILE)
    args = parser.parse_args(argv)
    logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    csv_path = Path(args.csv_path)
    if not csv_path.is_file():
        _LOG.error("CSV file not found: %s", csv_path)
        return 1

    # Throwaway key: nothing produced here leaves the process.
    key_manager = KeyManager().initialize(secrets.token_urlsafe(24))
    result = GembaImporter(key_manager, delay_ms=0).run(read_csv_rows(csv_path))
    report = analyze_records(result.records, result.stats.encrypted_fields)

    print("DEMO ANALYSIS REPORT")
    print(f"Total records: {report['total_records']}")
    print(f"Email addresses to encrypt: {report['emails_found']}")
    print(f"Date fields processed: {report['dates_processed']}")
    print(f"Departments identified: {len(report['departments'])} ({', '.join(report['departments']) or '-'})")
    print(f"Date warnings: {result.stats.warnings}")
    print(f"Row errors: {result.stats.errors}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
