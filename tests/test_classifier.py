import os
import unittest

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from flexform.services.classifier import (
    DateWarnings,
    classify_department,
    classify_security,
    integrity_hash,
    normalize_date,
)


class NormalizeDateTests(unittest.TestCase):
    def test_compact_legacy_format(self):
        self.assertEqual(normalize_date("01OCT25"), "2025-10-01")
        self.assertEqual(normalize_date("15jan24"), "2024-01-15")

    def test_iso_and_us_formats(self):
        self.assertEqual(normalize_date("2025-03-04"), "2025-03-04")
        self.assertEqual(normalize_date("2025-03-04T10:30:00Z"), "2025-03-04")
        self.assertEqual(normalize_date("3/4/2025"), "2025-03-04")

    def test_unparseable_counts_warning(self):
        warnings = DateWarnings()
        self.assertIsNone(normalize_date("not-a-date", warnings))
        self.assertIsNone(normalize_date("32XYZ25", warnings))
        self.assertEqual(warnings.count, 2)

    def test_blank_is_none_without_warning(self):
        warnings = DateWarnings()
        self.assertIsNone(normalize_date("", warnings))
        self.assertIsNone(normalize_date("   ", warnings))
        self.assertIsNone(normalize_date(None, warnings))
        self.assertEqual(warnings.count, 0)


class ClassifyTests(unittest.TestCase):
    def test_department_keywords(self):
        self.assertEqual(classify_department("NYA Building 3, Lab 2"), "NYA")
        self.assertEqual(classify_department("Forbes annex"), "FORBES")
        self.assertEqual(classify_department("qc lab"), "QC")
        self.assertEqual(classify_department("Micro suite"), "MICROBIOLOGY")
        self.assertEqual(classify_department("Annex"), "general")
        self.assertEqual(classify_department(None), "general")

    def test_first_keyword_wins(self):
        self.assertEqual(classify_department("NYA QC room"), "NYA")

    def test_security_classification(self):
        self.assertEqual(classify_security({"note": "Sensitive material"}), "confidential")
        self.assertEqual(classify_security({"note": "CONFIDENTIAL"}), "confidential")
        self.assertEqual(classify_security({"contact": "a@b.com"}), "internal")
        self.assertEqual(classify_security({"note": "nothing special"}), "internal")

    def test_integrity_hash_ignores_key_order(self):
        a = integrity_hash({"a": 1, "b": "x"})
        b = integrity_hash({"b": "x", "a": 1})
        self.assertEqual(a, b)
        self.assertEqual(len(a), 64)
        self.assertNotEqual(a, integrity_hash({"a": 2, "b": "x"}))


if __name__ == "__main__":
    unittest.main()
