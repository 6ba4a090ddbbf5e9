import os
import unittest

from fastapi.testclient import TestClient

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from flexform.main import app


class HttpHardeningTests(unittest.TestCase):
    def setUp(self):
        self.client = TestClient(app)

    def tearDown(self):
        self.client.close()

    def test_health_has_security_headers_and_request_id(self):
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok"})

        self.assertEqual(response.headers.get("x-content-type-options"), "nosniff")
        self.assertEqual(response.headers.get("x-frame-options"), "DENY")
        self.assertEqual(response.headers.get("referrer-policy"), "no-referrer")
        self.assertEqual(response.headers.get("cache-control"), "no-store")

        request_id = response.headers.get("x-request-id")
        self.assertIsNotNone(request_id)
        self.assertRegex(str(request_id), r"^[A-Za-z0-9._-]{1,128}$")

    def test_valid_request_id_is_preserved(self):
        response = self.client.get("/health", headers={"X-Request-ID": "portal-check_2025.10"})
        self.assertEqual(response.headers.get("x-request-id"), "portal-check_2025.10")

    def test_invalid_request_id_is_replaced(self):
        bad_request_id = "bad id with spaces"
        response = self.client.get("/health", headers={"X-Request-ID": bad_request_id})
        self.assertNotEqual(response.headers.get("x-request-id"), bad_request_id)
        self.assertRegex(str(response.headers.get("x-request-id")), r"^[A-Za-z0-9._-]{1,128}$")

    def test_error_response_keeps_security_headers(self):
        response = self.client.get("/api/forms")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.headers.get("x-frame-options"), "DENY")
        self.assertTrue(bool(response.headers.get("x-request-id")))

    def test_request_is_logged(self):
        with self.assertLogs("flexform.http", level="INFO") as logs:
            self.client.get("/health")
        self.assertTrue(any("GET /health status=200" in line for line in logs.output))

    def test_landing(self):
        response = self.client.get("/")
        self.assertEqual(response.json()["status"], "ok")


if __name__ == "__main__":
    unittest.main()
