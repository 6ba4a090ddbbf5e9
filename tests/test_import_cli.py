import csv
import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from flexform.core.config import settings
from flexform.core.errors import StoreConnectionError
from flexform.scripts import demo_import, import_gemba


class ImportCliTests(unittest.TestCase):
    def setUp(self):
        self._backup = {
            "SUPABASE_URL": settings.SUPABASE_URL,
            "SUPABASE_SERVICE_KEY": settings.SUPABASE_SERVICE_KEY,
            "FLEXFORM_MASTER_PASSWORD": settings.FLEXFORM_MASTER_PASSWORD,
            "ENCRYPTED_SERVICE_KEY": settings.ENCRYPTED_SERVICE_KEY,
        }
        settings.SUPABASE_URL = "https://store.test"
        settings.SUPABASE_SERVICE_KEY = "svc"
        settings.FLEXFORM_MASTER_PASSWORD = "master"
        settings.ENCRYPTED_SERVICE_KEY = ""

        self._tmp = tempfile.TemporaryDirectory()
        self.csv_path = Path(self._tmp.name) / "gemba.csv"
        with open(self.csv_path, "w", newline="", encoding="utf-8") as handle:
            writer = csv.writer(handle)
            writer.writerow(["ID", "Contact / Organizer", "Where (building/room #/lab)?", "When did the event occur?"])
            writer.writerow(["1", "jane@company.com", "NYA lab", "01OCT25"])
            writer.writerow(["2", "", "QC", "bad"])

    def tearDown(self):
        self._tmp.cleanup()
        for key, value in self._backup.items():
            setattr(settings, key, value)

    def test_missing_csv_exits_1(self):
        self.assertEqual(import_gemba.main([str(Path(self._tmp.name) / "missing.csv")]), 1)

    def test_missing_credentials_exit_1(self):
        settings.FLEXFORM_MASTER_PASSWORD = ""
        self.assertEqual(import_gemba.main([str(self.csv_path)]), 1)
        settings.FLEXFORM_MASTER_PASSWORD = "master"
        settings.SUPABASE_SERVICE_KEY = ""
        self.assertEqual(import_gemba.main([str(self.csv_path)]), 1)

    def test_ping_failure_exits_1(self):
        with mock.patch.object(import_gemba.SubmissionStoreClient, "ping", side_effect=StoreConnectionError("refused")):
            self.assertEqual(import_gemba.main([str(self.csv_path)]), 1)

    def test_successful_import_uploads_and_exits_0(self):
        uploaded = []
        with mock.patch.object(import_gemba.SubmissionStoreClient, "ping", return_value=True), mock.patch.object(
            import_gemba.SubmissionStoreClient,
            "insert_many",
            side_effect=lambda records: uploaded.extend(records) or len(records),
        ), mock.patch("builtins.print") as printed:
            self.assertEqual(import_gemba.main([str(self.csv_path)]), 0)

        self.assertEqual(len(uploaded), 2)
        self.assertIn("contact_organizer_encrypted", uploaded[0])
        output = [" ".join(str(a) for a in call.args) for call in printed.call_args_list]
        self.assertIn("totalRecords: 2", output)
        self.assertIn("warnings: 1", output)

    def test_undecodable_row_does_not_abort_import(self):
        self.csv_path.write_bytes(
            b"ID,Contact / Organizer,Where (building/room #/lab)?\r\n"
            b"1,jane@company.com,NYA lab\r\n"
            b"2,Caf\xe9 team,QC\r\n"
        )
        uploaded = []
        with mock.patch.object(import_gemba.SubmissionStoreClient, "ping", return_value=True), mock.patch.object(
            import_gemba.SubmissionStoreClient,
            "insert_many",
            side_effect=lambda records: uploaded.extend(records) or len(records),
        ), mock.patch("builtins.print") as printed:
            self.assertEqual(import_gemba.main([str(self.csv_path)]), 0)

        self.assertEqual(len(uploaded), 1)
        output = [" ".join(str(a) for a in call.args) for call in printed.call_args_list]
        self.assertIn("totalRecords: 2", output)
        self.assertIn("errors: 1", output)

    def test_demo_runs_offline(self):
        with mock.patch("builtins.print") as printed:
            self.assertEqual(demo_import.main([str(self.csv_path)]), 0)
        output = [" ".join(str(a) for a in call.args) for call in printed.call_args_list]
        self.assertIn("Email addresses to encrypt: 1", output)
        self.assertIn("Date fields processed: 1", output)
        self.assertIn("Departments identified: 2 (NYA, QC)", output)

    def test_demo_missing_csv_exits_1(self):
        self.assertEqual(demo_import.main([str(Path(self._tmp.name) / "missing.csv")]), 1)


if __name__ == "__main__":
    unittest.main()
