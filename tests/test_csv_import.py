import csv
import json
import os
import tempfile
import unittest
from pathlib import Path

import httpx

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from flexform.core.errors import ImportRowError
from flexform.services.csv_import import GembaImporter, map_legacy_row, read_csv_rows
from flexform.services.key_manager import KeyManager
from flexform.services.store_client import SubmissionStoreClient

HEADER = [
    "ID",
    "Short Description",
    "Contact / Organizer",
    "Where (building/room #/lab)?",
    "When did the event occur?",
    "When was the event detected?",
    "Expected Results",
]
ROWS = [
    ["1", "Spill in lab", "jane@company.com", "NYA Building 2", "01OCT25", "02OCT25", "Clean up"],
    ["2", "Door jammed", "bob@company.com", "QC corridor", "not-a-date", "", "Fix door"],
    ["3", "Label missing", "", "Annex", "2025-09-30", "", "Relabel"],
]


class CsvImportTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.key_manager = KeyManager().initialize("import-test")

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.csv_path = Path(self._tmp.name) / "gemba.csv"
        with open(self.csv_path, "w", newline="", encoding="utf-8") as handle:
            writer = csv.writer(handle)
            writer.writerow(HEADER)
            writer.writerows(ROWS)

    def tearDown(self):
        self._tmp.cleanup()

    def _importer(self, **kwargs):
        kwargs.setdefault("delay_ms", 0)
        return GembaImporter(self.key_manager, **kwargs)

    def test_offline_run_processes_every_row(self):
        result = self._importer().run(read_csv_rows(self.csv_path))
        stats = result.stats.as_dict()

        self.assertEqual(stats["totalRecords"], 3)
        self.assertEqual(stats["processedRecords"], 3)
        self.assertEqual(stats["errors"], 0)
        self.assertGreaterEqual(stats["warnings"], 1)
        self.assertEqual(stats["encryptedFields"], 2)
        self.assertEqual(len(result.records), 3)

        first, second, third = result.records
        self.assertEqual(first["event_occurred"], "2025-10-01")
        self.assertIsNone(second["event_occurred"])
        self.assertIsNone(second["event_detected"])
        self.assertEqual(first["department"], "NYA")
        self.assertEqual(second["department"], "QC")
        self.assertEqual(third["department"], "general")

        self.assertNotIn("contact_organizer", first)
        self.assertEqual(self.key_manager.decrypt_value(first["contact_organizer_encrypted"]), "jane@company.com")
        self.assertEqual(first["contact_organizer_hash"], self.key_manager.hash_value("jane@company.com"))
        self.assertFalse(any(key.endswith("_encrypted") for key in third))

        for record in result.records:
            self.assertEqual(record["import_batch"], result.batch_id)
            self.assertEqual(record["created_by"], "data-import@system")
            self.assertEqual(record["audit_log"][0]["action"], "IMPORT")
            self.assertEqual(len(record["data_hash"]), 64)

    def test_no_plaintext_email_leaves_the_importer(self):
        result = self._importer().run(read_csv_rows(self.csv_path))
        dumped = json.dumps(result.records)
        self.assertNotIn("jane@company.com", dumped)
        self.assertNotIn("bob@company.com", dumped)

    def test_non_email_contact_stays_plain(self):
        result = self._importer().run([{"ID": "9", "Contact / Organizer": "Front desk"}])
        self.assertEqual(result.records[0]["contact_organizer"], "Front desk")
        self.assertEqual(result.stats.encrypted_fields, 0)

    def test_bad_rows_are_counted_and_skipped(self):
        rows = [
            {"ID": "1", "Short Description": "ok"},
            {"ID": "2", None: ["extra"]},
            {"Unrelated": "x"},
            "not a row",
        ]
        result = self._importer().run(rows)
        self.assertEqual(result.stats.total_records, 4)
        self.assertEqual(result.stats.processed_records, 1)
        self.assertEqual(result.stats.errors, 3)

    def test_progress_reported_per_batch(self):
        seen = []
        importer = self._importer(batch_size=2, progress=lambda n, stats: seen.append((n, stats.total_records)))
        importer.run(read_csv_rows(self.csv_path))
        self.assertEqual(seen, [(1, 2), (2, 3)])

    def test_upload_failures_count_whole_chunk(self):
        posts = []

        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            posts.append(len(body))
            if len(posts) == 2:
                return httpx.Response(500, json={"message": "boom"})
            return httpx.Response(201)

        store = SubmissionStoreClient("https://store.test", "key", "gemba_requests", transport=httpx.MockTransport(handler))
        result = self._importer(upload_batch_size=2).run(read_csv_rows(self.csv_path), store=store)

        self.assertEqual(posts, [2, 1])
        self.assertEqual(result.stats.uploaded_records, 2)
        self.assertEqual(result.stats.errors, 1)

    def test_row_with_non_utf8_bytes_is_counted_not_fatal(self):
        legacy = Path(self._tmp.name) / "legacy.csv"
        legacy.write_bytes(
            b"ID,Short Description,Contact / Organizer,Where (building/room #/lab)?\r\n"
            b"1,Spill,jane@company.com,NYA lab\r\n"
            b"2,caf\xe9 spill,bob@company.com,QC corridor\r\n"
            b"3,Label missing,,Annex\r\n"
        )
        result = self._importer().run(read_csv_rows(legacy))

        self.assertEqual(result.stats.total_records, 3)
        self.assertEqual(result.stats.processed_records, 2)
        self.assertEqual(result.stats.errors, 1)
        self.assertEqual([r["original_id"] for r in result.records], ["1", "3"])

    def test_reader_yields_error_for_undecodable_line(self):
        legacy = Path(self._tmp.name) / "legacy.csv"
        legacy.write_bytes(b"ID,Short Description\r\n1,ok\r\n2,\x93quoted\x94\r\n")
        rows = list(read_csv_rows(legacy))

        self.assertEqual(rows[0], {"ID": "1", "Short Description": "ok"})
        self.assertIsInstance(rows[1], ImportRowError)
        self.assertEqual(rows[1].row_number, 3)

    def test_address_in_any_text_column_is_encrypted(self):
        result = self._importer().run(
            [{"ID": "5", "Short Description": "ping ops@company.com", "Contact / Organizer": "lee@company.com"}]
        )
        record = result.records[0]

        self.assertNotIn("short_description", record)
        self.assertEqual(
            self.key_manager.decrypt_value(record["short_description_encrypted"]), "ping ops@company.com"
        )
        self.assertEqual(record["short_description_hash"], self.key_manager.hash_value("ping ops@company.com"))
        self.assertEqual(result.stats.encrypted_fields, 2)
        self.assertNotIn("ops@company.com", json.dumps(result.records))

    def test_rows_without_contact_column_or_with_bad_dates_are_kept(self):
        rows = [
            {"ID": "1", "Short Description": "No contact key", "Where (building/room #/lab)?": "QC"},
            {"ID": "2", "Contact / Organizer": "", "When did the event occur?": "31/31/99"},
            {"ID": "3", "Contact / Organizer": "kim@company.com", "When did the event occur?": "01OCT25"},
        ]
        result = self._importer().run(rows)
        stats = result.stats.as_dict()

        self.assertEqual(stats["totalRecords"], 3)
        self.assertEqual(stats["processedRecords"], 3)
        self.assertEqual(stats["errors"], 0)
        self.assertGreaterEqual(stats["warnings"], 1)
        self.assertEqual(stats["encryptedFields"], 1)

        no_contact, bad_date, with_contact = result.records
        self.assertFalse(any(key.startswith("contact_organizer") for key in no_contact))
        self.assertIsNone(bad_date["event_occurred"])
        self.assertFalse(any(key.endswith("_encrypted") for key in bad_date))
        self.assertEqual(with_contact["event_occurred"], "2025-10-01")
        self.assertIn("contact_organizer_encrypted", with_contact)

    def test_map_legacy_row_blanks_become_none(self):
        mapped = map_legacy_row({"ID": " 7 ", "Expected Results": "  ", "Ignored": "x"})
        self.assertEqual(mapped, {"original_id": "7", "expected_results": None})


if __name__ == "__main__":
    unittest.main()
