"""
Security tests: oversized payloads and hostile input on the public endpoints.
"""
import json

from django.http import HttpResponse
from django.test import TestCase, SimpleTestCase, Client, RequestFactory, override_settings
from django.urls import reverse

from dto_be.middleware.security import RequestSizeLimitMiddleware
from tests.fakes import FakeTableStore
from utils.supabase_store import USERS_TABLE, set_store


class RequestSizeLimitTests(SimpleTestCase):
    def setUp(self):
        self.factory = RequestFactory()

    @override_settings(MAX_REQUEST_SIZE=1024)
    def test_oversized_post_is_rejected(self):
        middleware = RequestSizeLimitMiddleware(lambda r: HttpResponse("ok"))
        request = self.factory.post("/api/chat/sessions/", data="x" * 2048, content_type="text/plain")

        response = middleware(request)

        self.assertEqual(response.status_code, 413)
        self.assertEqual(json.loads(response.content), {"error": "İstek çok büyük", "max_size_kb": 1})

    @override_settings(MAX_REQUEST_SIZE=1024)
    def test_small_post_and_any_get_pass(self):
        middleware = RequestSizeLimitMiddleware(lambda r: HttpResponse("ok"))
        self.assertEqual(middleware(self.factory.post("/", data="x" * 10, content_type="text/plain")).status_code, 200)
        self.assertEqual(middleware(self.factory.get("/")).status_code, 200)

    def test_invalid_content_length_passes(self):
        middleware = RequestSizeLimitMiddleware(lambda r: HttpResponse("ok"))
        request = self.factory.post("/", data="{}", content_type="application/json")
        request.META["CONTENT_LENGTH"] = "not-a-number"
        self.assertEqual(middleware(request).status_code, 200)


class InjectionTests(TestCase):
    def setUp(self):
        self.client = Client()
        self.store = FakeTableStore()
        set_store(self.store)
        self.addCleanup(set_store, None)
        self.store.seed(USERS_TABLE, username="ahmet", password="Gizli123", role="user")

    def _login(self, payload):
        return self.client.post(reverse("authentication:login"), data=json.dumps(payload),
                                content_type="application/json")

    def test_quote_in_username_is_rejected(self):
        resp = self._login({"username": "ahmet' OR '1'='1", "password": "x"})
        self.assertEqual(resp.status_code, 400)
        self.assertIn("username", resp.json()["errors"])

    def test_injection_in_password_is_just_a_wrong_password(self):
        resp = self._login({"username": "ahmet", "password": "' OR '1'='1"})
        self.assertEqual(resp.status_code, 401)
        self.assertFalse(self.client.get(reverse("authentication:me")).json()["authenticated"])
