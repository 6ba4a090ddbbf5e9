import json
import os
import unittest
from datetime import date

import httpx

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from flexform.core.errors import RecordNotFound, StoreConnectionError, StoreError
from flexform.services.store_client import StoreFilter, SubmissionStoreClient


class StoreClientTests(unittest.TestCase):
    def setUp(self):
        self.requests: list[httpx.Request] = []
        self.responder = lambda request: httpx.Response(200, json=[])

    def _client(self) -> SubmissionStoreClient:
        def handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return self.responder(request)

        return SubmissionStoreClient("https://store.test/", "svc-key", "gemba_requests", transport=httpx.MockTransport(handler))

    def test_auth_headers_sent(self):
        self._client().select_all()
        request = self.requests[0]
        self.assertEqual(request.headers["apikey"], "svc-key")
        self.assertEqual(request.headers["authorization"], "Bearer svc-key")
        self.assertEqual(request.url.path, "/rest/v1/gemba_requests")

    def test_insert_returns_new_id(self):
        self.responder = lambda request: httpx.Response(201, json=[{"id": 42}])
        record_id = self._client().insert({"short_description": "x"})
        self.assertEqual(record_id, 42)
        request = self.requests[0]
        self.assertEqual(request.method, "POST")
        self.assertEqual(request.headers["prefer"], "return=representation")
        self.assertEqual(json.loads(request.content), [{"short_description": "x"}])

    def test_insert_many_uses_minimal_return(self):
        self.responder = lambda request: httpx.Response(201)
        self.assertEqual(self._client().insert_many([{"a": 1}, {"a": 2}]), 2)
        self.assertEqual(self.requests[0].headers["prefer"], "return=minimal")
        self.assertEqual(self._client().insert_many([]), 0)
        self.assertEqual(len(self.requests), 1)

    def test_select_all_translates_filter(self):
        self.responder = lambda request: httpx.Response(200, json=[{"id": 1}])
        flt = StoreFilter(
            equals={"department": "QC", "created_by": None},
            since=date(2025, 10, 1),
            until="2025-10-31",
            limit=5,
        )
        rows = self._client().select_all(flt)
        self.assertEqual(rows, [{"id": 1}])
        params = self.requests[0].url.params
        self.assertEqual(params["department"], "eq.QC")
        self.assertNotIn("created_by", params)
        self.assertEqual(params.get_list("created_at"), ["gte.2025-10-01T00:00:00+00:00", "lte.2025-10-31T23:59:59.999999+00:00"])
        self.assertEqual(params["limit"], "5")
        self.assertEqual(params["order"], "created_at.desc")

    def test_visibility_scope_becomes_or_filter(self):
        self.responder = lambda request: httpx.Response(200, headers={"Content-Range": "0-0/1"}, json=[])
        flt = StoreFilter(visible_to=("QC", "ann@company.com"))
        self._client().select_all(flt)
        self._client().count(flt)
        for request in self.requests:
            self.assertEqual(request.url.params["or"], '(department.eq."QC",created_by.eq."ann@company.com")')
        self.assertNotIn("or", [name for name, _ in StoreFilter().to_params()])

    def test_select_one_missing_raises_not_found(self):
        with self.assertRaises(RecordNotFound):
            self._client().select_one(99)
        self.assertEqual(self.requests[0].url.params["id"], "eq.99")

    def test_count_reads_content_range(self):
        self.responder = lambda request: httpx.Response(200, headers={"Content-Range": "0-9/57"})
        self.assertEqual(self._client().count(StoreFilter(equals={"created_by": "a@b.com"}, limit=3)), 57)
        request = self.requests[0]
        self.assertEqual(request.method, "HEAD")
        self.assertEqual(request.headers["prefer"], "count=exact")
        self.assertNotIn("limit", request.url.params)

    def test_count_without_range_is_store_error(self):
        self.responder = lambda request: httpx.Response(200)
        with self.assertRaises(StoreError):
            self._client().count()

    def test_http_error_carries_status_and_message(self):
        self.responder = lambda request: httpx.Response(403, json={"message": "permission denied"})
        with self.assertRaises(StoreError) as ctx:
            self._client().select_all()
        self.assertEqual(ctx.exception.status_code, 403)
        self.assertIn("permission denied", ctx.exception.message)

    def test_transport_failure_is_store_error(self):
        def boom(request):
            raise httpx.ConnectError("refused", request=request)

        self.responder = boom
        with self.assertRaises(StoreError):
            self._client().select_all()

    def test_ping_failure_is_connection_error(self):
        self.responder = lambda request: httpx.Response(401, json={"message": "bad key"})
        with self.assertRaises(StoreConnectionError):
            self._client().ping()
        self.assertEqual(self.requests[0].url.path, "/rest/v1/")

    def test_missing_base_url_is_store_error(self):
        with self.assertRaises(StoreError):
            SubmissionStoreClient("", "k").select_all()


if __name__ == "__main__":
    unittest.main()
